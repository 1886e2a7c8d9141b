from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.errors import PersistenceError
from medassist.models.chat import ChatSession
from medassist.policy.access import can_view_history
from medassist.policy.client import PolicyClient

logger = logging.getLogger(__name__)

DEFAULT_REUSE_WINDOW = timedelta(hours=1)
DEFAULT_HISTORY_LIMIT = 10
MAX_HISTORY_LIMIT = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ChatSessionSummary:
    id: str
    messages: list[dict[str, Any]]
    started_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: ChatSession) -> ChatSessionSummary:
        return cls(
            id=row.id,
            messages=list(row.messages or []),
            started_at=_as_utc(row.started_at),
            updated_at=_as_utc(row.updated_at),
        )


class ConversationStore:
    """
    Per-user chat sessions with a recency-based reuse rule.

    A session is a rolling window of one continuous interaction: while its
    last update is within `reuse_window`, each save overwrites its message
    list. Otherwise a new session is started.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        policy: PolicyClient,
        *,
        reuse_window: timedelta = DEFAULT_REUSE_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._policy = policy
        self._reuse_window = reuse_window
        self._clock = clock

    def _is_recent(self, updated_at: datetime, now: datetime) -> bool:
        return _as_utc(updated_at) > now - self._reuse_window

    def save_conversation(self, user_id: str, messages: Sequence[Mapping[str, Any]]) -> str | None:
        """
        Save or merge `messages` into the user's active session.

        Returns the session id, or None when there was nothing to save or the
        write failed (the failure is logged).
        """

        if not messages:
            logger.warning("No messages to save for user %s", user_id)
            return None

        logger.debug("Saving conversation for user %s with %d messages", user_id, len(messages))
        try:
            return self._save(user_id, [dict(m) for m in messages])
        except PersistenceError as exc:
            logger.error("Error saving conversation for user %s (%d messages): %s", user_id, len(messages), exc)
            return None

    def _save(self, user_id: str, messages: list[dict[str, Any]]) -> str:
        now = self._clock()
        try:
            with self._session_factory() as db:
                latest = db.scalars(
                    select(ChatSession)
                    .where(ChatSession.user_id == user_id)
                    .order_by(ChatSession.updated_at.desc())
                    .limit(1)
                ).first()

                if latest is not None and self._is_recent(latest.updated_at, now):
                    latest.messages = messages
                    latest.updated_at = now
                    db.commit()
                    logger.debug("Updated chat session %s", latest.id)
                    return latest.id

                chat = ChatSession(user_id=user_id, messages=messages, started_at=now, updated_at=now)
                db.add(chat)
                db.commit()
                logger.debug("Created new chat session %s for user %s", chat.id, user_id)
                return chat.id
        except SQLAlchemyError as exc:
            raise PersistenceError(f"chat session write failed: {type(exc).__name__}") from exc

    def get_history(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[ChatSessionSummary]:
        """Most recently updated sessions first, at most `limit` (clamped to 1..MAX_HISTORY_LIMIT)."""

        limit = min(max(limit, 1), MAX_HISTORY_LIMIT)
        logger.debug("Getting chat history for user %s, limit: %d", user_id, limit)
        if not can_view_history(self._policy, user_id, user_id):
            return []

        try:
            with self._session_factory() as db:
                rows = db.scalars(
                    select(ChatSession)
                    .where(ChatSession.user_id == user_id)
                    .order_by(ChatSession.updated_at.desc())
                    .limit(limit)
                ).all()
                return [ChatSessionSummary.from_row(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.error("Error reading chat history for user %s: %s", user_id, type(exc).__name__)
            return []

    def get_session(self, user_id: str, session_id: str) -> ChatSessionSummary | None:
        """One of the user's own sessions, or None (also when it belongs to someone else or the read fails)."""

        if not can_view_history(self._policy, user_id, user_id):
            return None

        try:
            with self._session_factory() as db:
                row = db.scalars(
                    select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user_id)
                ).first()
                return ChatSessionSummary.from_row(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.error("Error reading chat session %s for user %s: %s", session_id, user_id, type(exc).__name__)
            return None
