from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy.orm import Session

from medassist.errors import AuthenticationError, ValidationError
from medassist.identity import JwtTokenValidator, TokenValidationError
from medassist.models.users import User
from medassist.security.config import SecurityConfig

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Return the bearer token from the configured header, or None when absent.

    A present but malformed header is a client error (400), not a missing identity.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise ValidationError(f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise ValidationError(f"Invalid {header_name}. Missing token after '{bearer_prefix}'.")
    return token


def resolve_user_id(token: str, config: SecurityConfig, validator: JwtTokenValidator | None) -> str:
    """
    Map a bearer token to a user id.

    - dummy provider: the token is the user id
    - jwt provider: the validated `sub` claim
    """

    if config.auth.provider == "dummy":
        return token

    if validator is None:
        raise RuntimeError("JWT auth configured but no token validator was built at startup")
    try:
        return validator.validate_and_extract(token).user_id
    except TokenValidationError as exc:
        raise AuthenticationError("Invalid or expired token") from exc


def load_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or inactive user")
    return user
