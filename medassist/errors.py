"""
Error taxonomy shared by the chat flow and the HTTP layer.

Every external call site converts vendor exceptions into one of these kinds.
`public_message` is what a caller sees; `str(exc)` may carry internal detail
and is only logged.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, public_message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.public_message = public_message or message or self.default_message


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "You don't have permission to perform this action"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    default_message = "Invalid request"


class ClassificationError(AppError):
    """Internal fault while classifying a prompt. Treated as a denial."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "classification_failed"
    default_message = "Error during prompt classification"


class ModelError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "model_error"
    default_message = "Failed to process chat request"

    PREFIX = "AI model error: "

    @classmethod
    def wrap(cls, exc: BaseException) -> ModelError:
        detail = str(exc) or "Unknown error processing your request"
        return cls(f"{cls.PREFIX}{detail}", public_message=cls.default_message)


class PersistenceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "persistence_error"
    default_message = "Storage error"


class PolicyServiceError(AppError):
    """The remote policy decision point could not be reached or answered badly."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "policy_unavailable"
    default_message = "Authorization service unavailable"
