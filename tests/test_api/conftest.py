"""
App fixtures: the real FastAPI app wired to the test database and fakes.

The lifespan is not run (TestClient is used without a context manager), so
the fixtures put the security config and services on app.state themselves.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from medassist.chat.classifier import PromptClassifier
from medassist.chat.orchestrator import ChatOrchestrator
from medassist.chat.store import ConversationStore
from medassist.db.session import get_db
from medassist.main import create_app
from medassist.policy.audit import AuditLogger
from medassist.security.config import load_security_config
from medassist.services import Services

SECURITY_CONFIG = Path(__file__).resolve().parents[2] / "config" / "security_config.yaml"


@pytest.fixture
def services(session_factory, fake_policy, fake_completion) -> Services:
    store = ConversationStore(session_factory, fake_policy)
    orchestrator = ChatOrchestrator(
        classifier=PromptClassifier(fake_policy),
        policy=fake_policy,
        store=store,
        completion=fake_completion,
        audit=AuditLogger(session_factory),
    )
    return Services(policy=fake_policy, store=store, orchestrator=orchestrator)


@pytest.fixture
def client(session_factory, seeded_users, services):
    app = create_app()
    app.state.security_config = load_security_config(SECURITY_CONFIG)
    app.state.services = services

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {user_id}"}

    return _headers
