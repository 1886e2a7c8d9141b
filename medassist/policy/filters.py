from __future__ import annotations

from medassist.policy.types import SENSITIVITY_NORMAL, SENSITIVITY_SENSITIVE, PermissionFilters, UserAttributes


def derive_permission_filters(attributes: UserAttributes) -> PermissionFilters:
    """
    Map user attributes to response filters. Pure; no I/O.

    Clearance ladder:
        < 3   -> "Normal"
        3..4  -> ["Normal", "Sensitive"]
        >= 5  -> no sensitivity restriction
    """

    sensitivity: str | tuple[str, ...] | None = None
    if attributes.clearance is not None:
        if attributes.clearance < 3:
            sensitivity = SENSITIVITY_NORMAL
        elif attributes.clearance < 5:
            sensitivity = (SENSITIVITY_NORMAL, SENSITIVITY_SENSITIVE)

    return PermissionFilters(
        department=attributes.department or None,
        sensitivity=sensitivity,
        specialization=attributes.specialization or None,
    )
