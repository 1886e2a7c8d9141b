from __future__ import annotations

from medassist.chat.classifier import Classification
from medassist.policy.types import PermissionFilters

BASE_SYSTEM_PROMPT = (
    "You are a medical assistant following strict privacy and security guidelines. "
    "You can only discuss medical information that the user has access to based on their role. "
    "Always respect confidentiality and privacy of medical data."
)

MODE_CLAUSES: dict[Classification, str] = {
    Classification.VIEW: "You are in VIEW mode - only provide information, do not suggest or allow changes to records.",
    Classification.UPDATE: "You are in UPDATE mode - you can suggest updates to records the user has access to.",
    Classification.CREATE: "You are in CREATE mode - you can help create new records within the user's permission scope.",
    Classification.DELETE: "You are in DELETE mode - you can discuss deletion of records within the user's permission scope.",
}


def build_system_prompt(classification: Classification, filters: PermissionFilters | None = None) -> str:
    """
    Compose the permission-aware system prompt.

    Order is fixed: baseline, mode clause, department, sensitivity, specialization.
    """

    filters = filters or PermissionFilters()
    lines = [BASE_SYSTEM_PROMPT]

    mode = MODE_CLAUSES.get(classification)
    if mode:
        lines.append(mode)

    if filters.department:
        lines.append(
            f"The user belongs to the {filters.department} department - "
            "only discuss information related to this department."
        )

    if isinstance(filters.sensitivity, tuple):
        lines.append(f"The user has access to {', '.join(filters.sensitivity)} sensitivity levels.")
    elif filters.sensitivity:
        lines.append(f"The user has access to {filters.sensitivity} sensitivity level only.")

    if filters.specialization:
        lines.append(f"The user's specialization is {filters.specialization} - focus responses on this area.")

    return "\n".join(lines)
