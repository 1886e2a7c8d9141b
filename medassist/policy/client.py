from __future__ import annotations

from typing import Any, Mapping, Protocol

from medassist.policy.types import UserAttributes


class PolicyClient(Protocol):
    """
    Policy decision point + attribute store.

    Implementations raise `medassist.errors.PolicyServiceError` when the
    backing service cannot answer; callers decide whether that fails open or
    closed.
    """

    def check(
        self,
        user_id: str,
        action: str,
        resource: str,
        context: Mapping[str, Any] | None = None,
    ) -> bool: ...

    def get_user_attributes(self, user_id: str) -> UserAttributes: ...

    def get_user_permissions(self, user_id: str) -> list[str]: ...

    def assign_role(self, user_id: str, role: str) -> None: ...

    def set_user_attributes(self, user_id: str, attributes: Mapping[str, Any]) -> UserAttributes: ...
