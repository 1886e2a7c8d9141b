"""
Composition root: build the collaborators once and hand them to the app.

Nothing here is a process-wide singleton; `create_app` stores the result on
`app.state.services` and tests build their own with fakes.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from medassist.chat.classifier import PromptClassifier
from medassist.chat.llm import CompletionClient, GeminiCompletionClient
from medassist.chat.orchestrator import ChatOrchestrator
from medassist.chat.store import ConversationStore
from medassist.identity import JwtConfig, JwtTokenValidator
from medassist.policy.audit import AuditLogger
from medassist.policy.client import PolicyClient
from medassist.policy.local import LocalPolicyClient
from medassist.policy.permit import PermitPolicyClient
from medassist.security.config import SecurityConfig
from medassist.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    policy: PolicyClient
    store: ConversationStore
    orchestrator: ChatOrchestrator
    token_validator: JwtTokenValidator | None = None
    executor: Executor | None = None

    def shutdown(self) -> None:
        if self.executor is not None:
            # Let in-flight saves finish; they are single attempts and short.
            self.executor.shutdown(wait=True)


def build_policy_client(settings: Settings, session_factory: Callable[[], Session]) -> PolicyClient:
    if settings.policy_backend == "permit":
        logger.info("Using hosted policy decision point: %s", settings.permit_pdp_url)
        return PermitPolicyClient(
            pdp_url=settings.permit_pdp_url,
            api_url=settings.permit_api_url,
            api_key=settings.permit_api_key,
            project=settings.permit_project,
            environment=settings.permit_environment,
            timeout=settings.permit_timeout_seconds,
        )

    path = settings.resolved_policy_config_path()
    logger.info("Using local policy config: %s", path)
    return LocalPolicyClient.from_yaml(path, session_factory)


def build_completion_client(settings: Settings) -> CompletionClient:
    if not settings.llm_api_key:
        logger.warning("APP_LLM_API_KEY is not set; chat requests will fail at the model call")
    return GeminiCompletionClient(
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        api_base=settings.llm_api_base,
        timeout=settings.llm_timeout_seconds,
    )


def build_services(
    settings: Settings,
    session_factory: Callable[[], Session],
    security_config: SecurityConfig,
) -> Services:
    policy = build_policy_client(settings, session_factory)
    store = ConversationStore(
        session_factory,
        policy,
        reuse_window=timedelta(seconds=settings.session_reuse_window_seconds),
    )
    executor = ThreadPoolExecutor(
        max_workers=max(1, settings.background_save_workers),
        thread_name_prefix="conversation-save",
    )
    orchestrator = ChatOrchestrator(
        classifier=PromptClassifier(policy),
        policy=policy,
        store=store,
        completion=build_completion_client(settings),
        audit=AuditLogger(session_factory),
        max_steps=settings.llm_max_steps,
        executor=executor,
    )

    validator = None
    if security_config.auth.provider == "jwt":
        validator = JwtTokenValidator(JwtConfig.from_environ())

    return Services(
        policy=policy,
        store=store,
        orchestrator=orchestrator,
        token_validator=validator,
        executor=executor,
    )
