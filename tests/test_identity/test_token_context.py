"""Tests for TokenContext."""

from medassist.identity.context import TokenContext


def test_token_context_to_dict():
    ctx = TokenContext(
        user_id="user_2abc",
        session_id="sess_1",
        role="doctor",
        authorized_party="https://app.example.com",
    )
    assert ctx.to_dict() == {
        "user_id": "user_2abc",
        "session_id": "sess_1",
        "role": "doctor",
        "authorized_party": "https://app.example.com",
    }


def test_token_context_optional_fields_default_to_none():
    ctx = TokenContext(user_id="user_1")
    assert ctx.role is None
    assert ctx.to_dict()["session_id"] is None
