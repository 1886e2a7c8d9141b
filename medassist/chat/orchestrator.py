"""
Permission-aware chat flow.

Stages run in order on the caller's thread:
    validate -> classify -> authorize -> audit -> persist -> compose -> generate

Authorization failures abort before any model call. Auditing and persistence
are best effort. Model invocation failures raise ModelError; failures after
streaming has begun surface as a final error chunk.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence

from medassist.chat.classifier import Classification, ClassificationResult, PromptClassifier
from medassist.chat.llm import Attachment, CompletionClient
from medassist.chat.prompts import build_system_prompt
from medassist.chat.store import ConversationStore
from medassist.chat.streaming import guard_stream
from medassist.errors import AuthorizationError, ClassificationError, ModelError, PolicyServiceError, ValidationError
from medassist.policy.audit import AuditLogger
from medassist.policy.client import PolicyClient
from medassist.policy.types import ACTION_PROCESS, ACTION_VIEW, RESOURCE_AI_RESPONSE, RESOURCE_CHAT, PermissionFilters

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10


@dataclass
class ChatReply:
    classification: Classification
    filters: PermissionFilters
    system_prompt: str
    chunks: Iterator[str]


class ChatOrchestrator:
    def __init__(
        self,
        *,
        classifier: PromptClassifier,
        policy: PolicyClient,
        store: ConversationStore,
        completion: CompletionClient,
        audit: AuditLogger,
        max_steps: int = DEFAULT_MAX_STEPS,
        executor: Executor | None = None,
    ) -> None:
        self._classifier = classifier
        self._policy = policy
        self._store = store
        self._completion = completion
        self._audit = audit
        self._max_steps = max_steps
        # None: save inline (tests, scripts). Otherwise one detached attempt per request.
        self._executor = executor

    def process_chat(
        self,
        user_id: str,
        messages: Sequence[Mapping[str, Any]],
        attachments: Sequence[Attachment] = (),
    ) -> ChatReply:
        if not messages:
            raise ValidationError("At least one message is required")
        logger.debug("Processing chat for user %s with %d messages", user_id, len(messages))

        result = self._classifier.classify(user_id, messages)
        if not result.allowed:
            logger.info(
                "Chat denied for user %s: classification=%s reason=%s",
                user_id,
                result.classification.value,
                result.reason,
            )
            if result.classification is Classification.ERROR:
                raise ClassificationError(result.reason)
            raise AuthorizationError(result.reason or "Prompt not allowed")

        action = self._authorize(user_id, result)
        self._audit.log_access_attempt(
            user_id,
            ACTION_PROCESS,
            RESOURCE_AI_RESPONSE,
            True,
            {
                "messageCount": len(messages),
                "filters": result.filters.to_dict(),
                "classification": result.classification.value,
                "action": action,
            },
        )
        self._persist(user_id, messages)

        system_prompt = build_system_prompt(result.classification, result.filters)
        try:
            chunks = self._completion.stream_completion(
                system_prompt,
                messages,
                max_steps=self._max_steps,
                attachments=attachments,
            )
        except Exception as exc:
            error = ModelError.wrap(exc)
            logger.error("AI processing error for user %s: %s", user_id, error)
            raise error from exc

        return ChatReply(
            classification=result.classification,
            filters=result.filters,
            system_prompt=system_prompt,
            chunks=guard_stream(chunks),
        )

    def _authorize(self, user_id: str, result: ClassificationResult) -> str:
        action = result.classification.value if result.classification.is_action else ACTION_VIEW
        try:
            allowed = self._policy.check(
                user_id,
                action,
                RESOURCE_CHAT,
                {"classification": result.classification.value, "filters": result.filters.to_dict()},
            )
        except PolicyServiceError as exc:
            logger.error("Authorization check failed for user %s: %s", user_id, exc)
            raise AuthorizationError(f"Unable to verify permission to {action} chat") from exc

        if not allowed:
            self._audit.log_access_attempt(user_id, action, RESOURCE_CHAT, False, {"classification": action})
            raise AuthorizationError(f"User does not have permission to {action} chat")
        return action

    def _persist(self, user_id: str, messages: Sequence[Mapping[str, Any]]) -> None:
        snapshot = [dict(m) for m in messages]
        if self._executor is None:
            try:
                self._save(user_id, snapshot)
            except Exception as exc:
                logger.error("Failed to save conversation for user %s: %s", user_id, exc)
            return

        try:
            future = self._executor.submit(self._save, user_id, snapshot)
        except RuntimeError:
            # Executor already shut down (server stopping).
            logger.warning("Conversation save for user %s skipped: executor unavailable", user_id)
            return
        future.add_done_callback(lambda f: _log_save_outcome(user_id, f))

    def _save(self, user_id: str, messages: list[dict[str, Any]]) -> str | None:
        session_id = self._store.save_conversation(user_id, messages)
        if session_id is None:
            logger.warning("Conversation for user %s was not recorded", user_id)
        return session_id


def _log_save_outcome(user_id: str, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Failed to save conversation for user %s: %s", user_id, exc)
    else:
        logger.debug("Saved conversation for user %s session=%s", user_id, future.result())
