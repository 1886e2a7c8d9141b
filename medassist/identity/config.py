"""Bearer-token settings from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class JwtConfig:
    """
    Hosted identity provider (session JWT) configuration.

    Required:
        AUTH_JWT_ISSUER: Expected `iss`, e.g. https://clerk.example.com
    Optional:
        AUTH_JWT_JWKS_URL: JWKS endpoint (default: <issuer>/.well-known/jwks.json).
        AUTH_JWT_AUDIENCE: Expected `aud`; audience is not verified when unset.
        AUTH_JWT_ROLE_CLAIM: Dotted path of the role claim (default "metadata.role").
        CLOCK_SKEW_SECONDS: Seconds of tolerance for exp/nbf (default 60).
        JWKS_CACHE_TTL_SECONDS: How long to cache JWKS (default 3600).
    """

    issuer: str
    jwks_url: str
    audience: str | None
    role_claim: str
    clock_skew_seconds: int
    jwks_cache_ttl_seconds: int

    @classmethod
    def from_environ(cls) -> JwtConfig:
        issuer = _strip_or_none(_getenv("AUTH_JWT_ISSUER"))
        if not issuer:
            raise ValueError("AUTH_JWT_ISSUER must be set")
        issuer = issuer.rstrip("/")
        return cls(
            issuer=issuer,
            jwks_url=_strip_or_none(_getenv("AUTH_JWT_JWKS_URL")) or f"{issuer}/.well-known/jwks.json",
            audience=_strip_or_none(_getenv("AUTH_JWT_AUDIENCE")),
            role_claim=_strip_or_none(_getenv("AUTH_JWT_ROLE_CLAIM")) or "metadata.role",
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 60),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", 3600),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
