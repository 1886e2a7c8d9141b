"""Value types exchanged with the policy decision point."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


# Resource types known to the policy. "prompt" is the abstract resource the
# classifier checks intents against; "chat" gates conversations and history.
RESOURCE_PROMPT = "prompt"
RESOURCE_CHAT = "chat"
RESOURCE_AI_RESPONSE = "aiResponse"

ACTION_VIEW = "view"
ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_PROCESS = "process"

# Most restricted role tier; gets the extra banned-prompt patterns.
PATIENT_ROLE = "patient"

SENSITIVITY_NORMAL = "Normal"
SENSITIVITY_SENSITIVE = "Sensitive"
SENSITIVITY_RESTRICTED = "Restricted"

_KNOWN_ATTRIBUTE_KEYS = frozenset({"department", "clearance", "specialization", "role"})


@dataclass(frozen=True)
class UserAttributes:
    """
    ABAC attributes of a user.

    Known fields are typed; anything else the policy store returns is kept in
    `extra` so newer attributes pass through without changing this type.
    """

    department: str | None = None
    clearance: int | float | None = None
    specialization: str | None = None
    role: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> UserAttributes:
        raw = raw or {}
        clearance = raw.get("clearance")
        # bool is an int subclass; a boolean clearance is not a level.
        if isinstance(clearance, bool) or not isinstance(clearance, (int, float)):
            clearance = None
        return cls(
            department=_str_or_none(raw.get("department")),
            clearance=clearance,
            specialization=_str_or_none(raw.get("specialization")),
            role=_str_or_none(raw.get("role")),
            extra={k: v for k, v in raw.items() if k not in _KNOWN_ATTRIBUTE_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        for key in ("department", "clearance", "specialization", "role"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class PermissionFilters:
    """
    Per-request scope derived from user attributes. Never persisted.

    Present keys combine with AND when applied to a search or system prompt.
    `sensitivity` is a single level, an ordered tuple of levels, or None for
    "all levels".
    """

    department: str | None = None
    sensitivity: str | tuple[str, ...] | None = None
    specialization: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.department is not None:
            data["department"] = self.department
        if self.sensitivity is not None:
            data["sensitivity"] = (
                list(self.sensitivity) if isinstance(self.sensitivity, tuple) else self.sensitivity
            )
        if self.specialization is not None:
            data["specialization"] = self.specialization
        return data


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
