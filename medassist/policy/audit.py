from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session

from medassist.models.audit import AuditLog

logger = logging.getLogger("medassist.audit")


class AuditLogger:
    """
    Append-only access-attempt log.

    Each entry goes to the `audit_logs` table and to the `medassist.audit`
    logger. Writing is best effort: a failure is logged and never raised, so
    auditing can not block the request it describes.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory

    def log_access_attempt(
        self,
        user_id: str,
        action: str,
        resource: str,
        allowed: bool,
        context: Mapping[str, Any] | None = None,
        *,
        user_role: str | None = None,
    ) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc),
            "user_id": user_id,
            "user_role": user_role,
            "action": action,
            "resource": resource,
            "allowed": allowed,
            "context": dict(context or {}),
        }
        logger.info(
            "access user=%s action=%s resource=%s allowed=%s context=%s",
            user_id,
            action,
            resource,
            allowed,
            entry["context"],
        )

        if self._session_factory is None:
            return
        try:
            with self._session_factory() as db:
                db.add(AuditLog(**entry))
                db.commit()
        except Exception:
            logger.exception("Failed to write audit entry user=%s action=%s resource=%s", user_id, action, resource)
