from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    # dummy: the bearer token is the user id (local development only)
    # jwt:   the bearer token is an identity-provider session JWT
    provider: Literal["dummy", "jwt"] = "dummy"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[str] = Field(default_factory=list)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_roles: list[str] = Field(default_factory=list)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_roles: frozenset[str]


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/chat/{session_id}" -> r"^/chat/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """
    Route rules from security_config.yaml, resolved per request.

    A literal path beats a templated one, so "/chat/history" never falls
    into "/chat/{session_id}". Within each group the first listed rule wins.
    A rule whose methods include "*" applies to every method.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model
        self._literal: list[RouteRule] = []
        self._templated: list[tuple[re.Pattern[str], RouteRule]] = []
        for rule in model.routes:
            if "{" in rule.path:
                self._templated.append((_path_template_to_regex(rule.path), rule))
            else:
                self._literal.append(rule)

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        method = method.upper()
        default = self.model.default

        rule = next((r for r in self._literal if r.path == path and _allows(r, method)), None)
        if rule is None:
            rule = next((r for rx, r in self._templated if _allows(r, method) and rx.match(path)), None)
        if rule is None:
            return EffectiveRule(
                auth_required=default.auth_required,
                required_roles=frozenset(default.required_roles),
            )
        return _effective(rule, default)


def _allows(rule: RouteRule, method: str) -> bool:
    methods = rule.normalized_methods()
    return "*" in methods or method in methods


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # Naming roles makes a rule auth-required even under a public default.
    auth_required = rule.auth_required
    if auth_required is None:
        auth_required = default.auth_required or bool(rule.required_roles)
    return EffectiveRule(
        auth_required=auth_required,
        required_roles=frozenset(rule.required_roles or default.required_roles),
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")
    return SecurityConfig(SecurityConfigModel.model_validate(raw["security"]))
