"""
Validate identity-provider session tokens (RS256 JWTs) and extract claims.

Before any claim is trusted the token must pass:
    1. signature check against the provider's published JWKS,
    2. issuer (`iss`) check,
    3. audience (`aud`) check when an audience is configured,
    4. lifetime (`exp` / `nbf`) checks with a small clock-skew leeway.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from .config import JwtConfig
from .context import TokenContext
from .jwks_cache import JWKSCache

logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails. Do not log the token."""


def _get_kid(token: str) -> str | None:
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError:
        return None
    kid = header.get("kid") if isinstance(header, dict) else None
    return str(kid) if kid else None


def _claim_at(payload: dict[str, Any], dotted: str) -> Any:
    value: Any = payload
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _extract_claims(payload: dict[str, Any], role_claim: str = "metadata.role") -> TokenContext:
    user_id = payload.get("sub")
    if not user_id:
        raise TokenValidationError("Invalid token: missing subject")

    role = _claim_at(payload, role_claim)
    sid = payload.get("sid")
    azp = payload.get("azp")
    return TokenContext(
        user_id=str(user_id),
        session_id=str(sid) if sid else None,
        role=str(role) if role else None,
        authorized_party=str(azp) if azp else None,
    )


class JwtTokenValidator:
    """Validates session tokens and builds a TokenContext. Reuse one instance per process."""

    def __init__(self, config: JwtConfig | None = None) -> None:
        self._config = config or JwtConfig.from_environ()
        self._jwks = JWKSCache(self._config.jwks_url, self._config.jwks_cache_ttl_seconds)

    def validate_and_extract(self, token: str) -> TokenContext:
        kid = _get_kid(token)
        if not kid:
            logger.debug("Token missing or invalid kid")
            raise TokenValidationError("Invalid token: missing key id")

        try:
            signing_key = self._jwks.get_signing_key(kid)
        except Exception as exc:
            logger.warning("JWKS fetch failed: %s", type(exc).__name__)
            raise TokenValidationError("Unable to load signing keys") from exc
        if signing_key is None:
            logger.debug("No signing key found for kid")
            raise TokenValidationError("Invalid token: unknown signing key")

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._config.audience,
                issuer=self._config.issuer,
                leeway=self._config.clock_skew_seconds,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iss": True,
                    "verify_aud": self._config.audience is not None,
                    "require": ["exp", "sub"],
                },
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Token expired")
            raise TokenValidationError("Token expired") from e
        except jwt.InvalidIssuerError as e:
            logger.info("Token invalid issuer")
            raise TokenValidationError("Invalid token: issuer") from e
        except jwt.InvalidAudienceError as e:
            logger.info("Token invalid audience")
            raise TokenValidationError("Invalid token: audience") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise TokenValidationError("Invalid token") from e

        return _extract_claims(payload, self._config.role_claim)
