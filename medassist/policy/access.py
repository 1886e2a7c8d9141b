from __future__ import annotations

import logging

from medassist.errors import PolicyServiceError
from medassist.policy.client import PolicyClient
from medassist.policy.types import ACTION_VIEW, RESOURCE_CHAT

logger = logging.getLogger(__name__)


def can_view_history(policy: PolicyClient, caller_id: str, owner_id: str) -> bool:
    """
    Decide whether `caller_id` may read the chat history owned by `owner_id`.

    - policy allows              -> True
    - policy denies              -> False (fail closed, quietly)
    - policy service unavailable -> True only for the caller's own history

    A PDP outage must not lock users out of their own conversations, but it
    must never open anyone else's.
    """

    try:
        allowed = policy.check(caller_id, ACTION_VIEW, RESOURCE_CHAT, {"owner": owner_id})
    except PolicyServiceError as exc:
        if caller_id == owner_id:
            logger.warning("Policy check failed for user=%s; allowing self-access to history: %s", caller_id, exc)
            return True
        logger.error("Policy check failed for user=%s reading owner=%s; denying: %s", caller_id, owner_id, exc)
        return False

    if not allowed:
        logger.warning("User %s not authorized to view chat history of %s", caller_id, owner_id)
    return allowed
