"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine shared through a StaticPool,
so services that open their own sessions (store, local policy, audit) see the
same database as the test. Each test gets a fresh engine.

Fake collaborators (policy client, completion client) live here so every
test package can use them.
"""
from __future__ import annotations

from typing import Any, Mapping

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medassist.errors import PolicyServiceError
from medassist.policy.types import UserAttributes


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from medassist.db.base import Base
    from medassist.models import audit, chat, users  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_users(db_session):
    from medassist.models.users import User

    db_session.add_all(
        [
            User(id="u_admin", email="admin@example.com", role="admin", clearance=5),
            User(
                id="u_doctor",
                email="doctor@example.com",
                role="doctor",
                department="Cardiology",
                clearance=4,
                specialization="Electrophysiology",
            ),
            User(id="u_patient", email="patient@example.com", role="patient", department="Cardiology", clearance=1),
            User(id="u_inactive", email="gone@example.com", role="doctor", is_active=False),
        ]
    )
    db_session.commit()
    return db_session


class FakePolicyClient:
    """Allows everything unless told otherwise; records every check."""

    def __init__(self) -> None:
        self.attributes: dict[str, UserAttributes] = {}
        self.denied: set[tuple[str, str]] = set()
        self.check_error: Exception | None = None
        self.attributes_error: Exception | None = None
        self.permissions: dict[str, list[str]] = {}
        self.checks: list[tuple[str, str, str]] = []
        self.assigned: list[tuple[str, str]] = []

    def check(self, user_id: str, action: str, resource: str, context: Mapping[str, Any] | None = None) -> bool:
        self.checks.append((user_id, action, resource))
        if self.check_error is not None:
            raise self.check_error
        return (action, resource) not in self.denied

    def get_user_attributes(self, user_id: str) -> UserAttributes:
        if self.attributes_error is not None:
            raise self.attributes_error
        return self.attributes.get(user_id, UserAttributes())

    def get_user_permissions(self, user_id: str) -> list[str]:
        return list(self.permissions.get(user_id, []))

    def assign_role(self, user_id: str, role: str) -> None:
        self.assigned.append((user_id, role))

    def set_user_attributes(self, user_id: str, attributes: Mapping[str, Any]) -> UserAttributes:
        merged = {**self.attributes.get(user_id, UserAttributes()).to_dict(), **attributes}
        self.attributes[user_id] = UserAttributes.from_mapping(merged)
        return self.attributes[user_id]


class FakeCompletionClient:
    def __init__(self) -> None:
        self.chunks: list[str] = ["Hello", ", ", "world"]
        self.start_error: Exception | None = None
        self.fail_at: int | None = None
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def stream_completion(self, system_prompt, messages, *, max_steps, attachments=()):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "max_steps": max_steps,
                "attachments": list(attachments),
            }
        )
        if self.start_error is not None:
            raise self.start_error
        return self._iterate()

    def _iterate(self):
        try:
            for i, chunk in enumerate(self.chunks):
                if self.fail_at is not None and i == self.fail_at:
                    raise RuntimeError("connection reset by provider")
                yield chunk
        finally:
            self.closed = True


@pytest.fixture
def fake_policy() -> FakePolicyClient:
    return FakePolicyClient()


@pytest.fixture
def fake_completion() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def policy_outage() -> PolicyServiceError:
    return PolicyServiceError("policy service unreachable: ConnectionError")
