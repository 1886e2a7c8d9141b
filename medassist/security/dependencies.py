from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from medassist.chat.orchestrator import ChatOrchestrator
from medassist.chat.store import ConversationStore
from medassist.db.session import get_db
from medassist.errors import AuthenticationError, AuthorizationError
from medassist.models.users import User
from medassist.policy.client import PolicyClient
from medassist.security.auth import extract_bearer_token, load_user, resolve_user_id
from medassist.security.config import SecurityConfig
from medassist.services import Services


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not built. Did app startup run?")
    return services


def get_orchestrator(services: Services = Depends(get_services)) -> ChatOrchestrator:
    return services.orchestrator


def get_conversation_store(services: Services = Depends(get_services)) -> ConversationStore:
    return services.store


def get_policy_client(services: Services = Depends(get_services)) -> PolicyClient:
    return services.policy


def get_current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven).

    Runs after routing on every endpoint, so route handlers only read
    `get_current_user` and never parse headers themselves.
    """

    rule = config.match(request.url.path, request.method.upper())
    if not rule.auth_required:
        return

    token = extract_bearer_token(request, config)
    if token is None:
        raise AuthenticationError("Authentication required")

    services = getattr(request.app.state, "services", None)
    validator = services.token_validator if services is not None else None
    user = load_user(db, resolve_user_id(token, config, validator))
    request.state.user = user

    if rule.required_roles and user.role not in rule.required_roles:
        raise AuthorizationError(f"Insufficient role. Required one of: {sorted(rule.required_roles)}")
