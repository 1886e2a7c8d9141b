"""
Prompt classification: intent, banned phrasing and response filters.

The keyword and banned-pattern lists are placeholder product policy, plain
English regexes rather than a trained classifier. Keep them here, in one
place, so they can be replaced wholesale.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from medassist.errors import PolicyServiceError
from medassist.policy.client import PolicyClient
from medassist.policy.filters import derive_permission_filters
from medassist.policy.types import PATIENT_ROLE, RESOURCE_PROMPT, PermissionFilters, UserAttributes

logger = logging.getLogger(__name__)


class Classification(str, enum.Enum):
    VIEW = "view"
    UPDATE = "update"
    CREATE = "create"
    DELETE = "delete"
    UNKNOWN = "unknown"
    ERROR = "error"

    @property
    def is_action(self) -> bool:
        return self in _ACTIONS


_ACTIONS = frozenset({Classification.VIEW, Classification.UPDATE, Classification.CREATE, Classification.DELETE})


# First match wins, in this order; anything else is a view.
INTENT_PATTERNS: tuple[tuple[Classification, re.Pattern[str]], ...] = (
    (Classification.UPDATE, re.compile(r"\b(?:updat|chang|modif|edit)\w*")),
    (Classification.DELETE, re.compile(r"delete|remove|erase")),
    (Classification.CREATE, re.compile(r"\b(?:creat\w*|add(?:s|ed|ing)?\b|new\b|schedul\w*|book(?:s|ed|ing)?\s+an?\b)")),
)

COMMON_BANNED_PATTERNS: tuple[re.Pattern[str], ...] = (
    # system-bypass phrasing
    re.compile(r"\bignore\s+(?:\w+\s+){0,2}(?:instructions?|polic(?:y|ies)|rules|guidelines)\b"),
    re.compile(r"\b(?:bypass|override|disable)\s+(?:\w+\s+){0,2}(?:security|permissions?|polic(?:y|ies)|restrictions?|filters?)\b"),
    re.compile(r"\b(?:reveal|show|print)\s+(?:\w+\s+){0,2}system\s+prompt\b"),
    re.compile(r"\bpretend\s+(?:you\s+are|to\s+be)\s+(?:an?\s+)?(?:admin|administrator|doctor)\b"),
    # code-injection markers
    re.compile(r"<\s*script\b"),
    re.compile(r"\b(?:eval|exec)\s*\("),
    re.compile(r"\b(?:drop|truncate)\s+table\b"),
    re.compile(r";\s*--"),
    # cross-patient data requests
    re.compile(r"\ball\s+(?:the\s+)?patients?(?:'s?)?\s+(?:data|records|information|files)\b"),
    re.compile(r"\bevery\s+patient'?s?\b"),
)

PATIENT_BANNED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bother\s+patients?\b"),
    re.compile(r"\bdoctor'?s?\s+notes?\b"),
    re.compile(r"\b(?:staff|employee)\s+(?:records|schedules?|data)\b"),
    re.compile(r"\binternal\s+(?:notes?|memos?|documents?)\b"),
)

PROHIBITED_CONTENT_REASON = "Prompt contains prohibited content"
NO_USER_MESSAGE_REASON = "No valid user message found"
CLASSIFICATION_ERROR_REASON = "Error during prompt classification"


@dataclass(frozen=True)
class ClassificationResult:
    allowed: bool
    classification: Classification
    reason: str | None = None
    filters: PermissionFilters = field(default_factory=PermissionFilters)
    last_prompt: str = ""


def find_last_user_prompt(messages: Sequence[Mapping[str, Any]]) -> str | None:
    """Return the content of the most recent user message, or None."""
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str) and content.strip():
            return content
        return None
    return None


def classify_intent(prompt: str) -> Classification:
    lowered = prompt.lower()
    for classification, pattern in INTENT_PATTERNS:
        if pattern.search(lowered):
            return classification
    return Classification.VIEW


def banned_patterns_for(role: str | None) -> tuple[re.Pattern[str], ...]:
    if role == PATIENT_ROLE:
        return COMMON_BANNED_PATTERNS + PATIENT_BANNED_PATTERNS
    return COMMON_BANNED_PATTERNS


def contains_banned_content(prompt: str, role: str | None) -> bool:
    lowered = prompt.lower()
    return any(p.search(lowered) for p in banned_patterns_for(role))


class PromptClassifier:
    """
    Classify the latest user prompt and decide whether it may proceed.

    The banned-pattern check and the remote action check are independent;
    either one can deny. Nothing raised inside `classify` reaches the caller.
    """

    def __init__(self, policy: PolicyClient) -> None:
        self._policy = policy

    def classify(self, user_id: str, messages: Sequence[Mapping[str, Any]]) -> ClassificationResult:
        try:
            return self._classify(user_id, messages)
        except Exception:
            logger.exception("Error classifying prompt for user %s", user_id)
            return ClassificationResult(
                allowed=False,
                classification=Classification.ERROR,
                reason=CLASSIFICATION_ERROR_REASON,
            )

    def _classify(self, user_id: str, messages: Sequence[Mapping[str, Any]]) -> ClassificationResult:
        prompt = find_last_user_prompt(messages)
        if prompt is None:
            return ClassificationResult(
                allowed=False,
                classification=Classification.UNKNOWN,
                reason=NO_USER_MESSAGE_REASON,
            )

        logger.debug("Classifying prompt from user %s: %r", user_id, prompt[:50])
        classification = classify_intent(prompt)
        attributes = self._fetch_attributes(user_id)

        if contains_banned_content(prompt, attributes.role):
            logger.info("Prompt from user %s rejected by banned pattern (role=%s)", user_id, attributes.role)
            return ClassificationResult(
                allowed=False,
                classification=classification,
                reason=PROHIBITED_CONTENT_REASON,
                last_prompt=prompt,
            )

        if not self._policy.check(user_id, classification.value, RESOURCE_PROMPT, {"prompt_length": len(prompt)}):
            return ClassificationResult(
                allowed=False,
                classification=classification,
                reason=f"User does not have permission to {classification.value} via prompts",
                last_prompt=prompt,
            )

        return ClassificationResult(
            allowed=True,
            classification=classification,
            filters=derive_permission_filters(attributes),
            last_prompt=prompt,
        )

    def _fetch_attributes(self, user_id: str) -> UserAttributes:
        try:
            return self._policy.get_user_attributes(user_id)
        except PolicyServiceError as exc:
            logger.warning("Could not fetch attributes for user %s; continuing without: %s", user_id, exc)
        except Exception:
            logger.exception("Unexpected error fetching attributes for user %s; continuing without", user_id)
        return UserAttributes()
