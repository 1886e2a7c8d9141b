"""Route rule matching and config loading."""

from pathlib import Path

import pytest

from medassist.security.config import SecurityConfig, SecurityConfigModel, load_security_config

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "security_config.yaml"


def _config(routes, default=None):
    return SecurityConfig(SecurityConfigModel.model_validate({"default": default or {}, "routes": routes}))


def test_exact_path_preferred_over_template():
    cfg = _config(
        [
            {"path": "/chat/{session_id}", "methods": ["GET"], "required_roles": ["admin"]},
            {"path": "/chat/history", "methods": ["GET"]},
        ]
    )
    assert cfg.match("/chat/history", "get").required_roles == frozenset()
    assert cfg.match("/chat/abc-123", "GET").required_roles == frozenset({"admin"})


def test_template_does_not_cross_segments():
    cfg = _config([{"path": "/admin/users/{user_id}/role", "methods": ["PUT"], "required_roles": ["admin"]}])
    assert cfg.match("/admin/users/a/b/role", "PUT").required_roles == frozenset()


def test_method_must_match():
    cfg = _config([{"path": "/health", "methods": ["GET"], "auth_required": False}])
    assert cfg.match("/health", "GET").auth_required is False
    assert cfg.match("/health", "POST").auth_required is True


def test_roles_imply_auth_even_when_default_is_public():
    cfg = _config(
        [{"path": "/admin/x", "methods": ["GET"], "required_roles": ["admin"]}],
        default={"auth_required": False},
    )
    assert cfg.match("/admin/x", "GET").auth_required is True
    assert cfg.match("/anything", "GET").auth_required is False


def test_repo_config_loads():
    cfg = load_security_config(REPO_CONFIG)
    assert cfg.auth.provider == "dummy"
    assert cfg.match("/health", "GET").auth_required is False
    assert cfg.match("/chat", "POST").auth_required is True
    assert cfg.match("/admin/users/u1/permissions", "GET").required_roles == frozenset({"admin"})


def test_missing_security_key_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("routes: []\n", encoding="utf-8")
    with pytest.raises(ValueError, match="security"):
        load_security_config(path)


def test_wildcard_methods():
    cfg = _config([{"path": "/public/{name}", "methods": ["*"], "auth_required": False}])
    assert cfg.match("/public/a", "DELETE").auth_required is False
    assert cfg.match("/public/a", "post").auth_required is False
