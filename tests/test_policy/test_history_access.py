"""The self-access fallback for chat history is isolated in one function."""

from medassist.policy.access import can_view_history


def test_allowed_when_policy_allows(fake_policy):
    assert can_view_history(fake_policy, "u1", "u1") is True
    assert fake_policy.checks == [("u1", "view", "chat")]


def test_denied_when_policy_denies_even_for_self(fake_policy):
    fake_policy.denied.add(("view", "chat"))
    assert can_view_history(fake_policy, "u1", "u1") is False


def test_outage_allows_self_access(fake_policy, policy_outage):
    fake_policy.check_error = policy_outage
    assert can_view_history(fake_policy, "u1", "u1") is True


def test_outage_denies_access_to_someone_else(fake_policy, policy_outage):
    fake_policy.check_error = policy_outage
    assert can_view_history(fake_policy, "u1", "u2") is False


def test_policy_allow_for_someone_else_is_respected(fake_policy):
    assert can_view_history(fake_policy, "admin", "u2") is True
