"""Caller identity produced after validating a session token."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenContext:
    user_id: str
    """Identity-provider user id (`sub`). Matches `users.id`."""

    session_id: str | None = None
    """Provider session id (`sid`), if present."""

    role: str | None = None
    """Role from the configured custom claim; informational, the policy client decides."""

    authorized_party: str | None = None
    """Origin the token was issued for (`azp`)."""

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "role": self.role,
            "authorized_party": self.authorized_party,
        }
