"""Tests for token validation and claim extraction."""

import time
from unittest.mock import patch

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm
from jwt.api_jwk import PyJWK

from medassist.identity.config import JwtConfig
from medassist.identity.validator import JwtTokenValidator, TokenValidationError, _extract_claims

ISSUER = "https://clerk.example.com"
KID = "test-key-1"


def _config(*, audience=None) -> JwtConfig:
    return JwtConfig(
        issuer=ISSUER,
        jwks_url=f"{ISSUER}/.well-known/jwks.json",
        audience=audience,
        role_claim="metadata.role",
        clock_skew_seconds=60,
        jwks_cache_ttl_seconds=3600,
    )


@pytest.fixture(scope="module")
def rsa_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = RSAAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    jwk["kid"] = KID
    return private_key, PyJWK.from_dict(jwk)


def _token(private_key, **overrides):
    now = int(time.time())
    payload = {
        "sub": "user_2abc",
        "sid": "sess_9",
        "azp": "https://app.example.com",
        "iss": ISSUER,
        "exp": now + 600,
        "nbf": now - 10,
        "metadata": {"role": "doctor"},
    }
    payload.update(overrides)
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": KID})


def _validate(rsa_key, token, *, audience=None):
    _, public_jwk = rsa_key
    with patch("medassist.identity.validator.JWKSCache") as mock_cache:
        mock_cache.return_value.get_signing_key.return_value = public_jwk
        return JwtTokenValidator(config=_config(audience=audience)).validate_and_extract(token)


def test_extract_claims():
    ctx = _extract_claims({"sub": "user_1", "sid": "s", "metadata": {"role": "admin"}})
    assert ctx.user_id == "user_1"
    assert ctx.session_id == "s"
    assert ctx.role == "admin"
    assert ctx.authorized_party is None


def test_extract_claims_custom_role_path():
    ctx = _extract_claims({"sub": "u", "public_metadata": {"role": "patient"}}, "public_metadata.role")
    assert ctx.role == "patient"


def test_extract_claims_requires_subject():
    with pytest.raises(TokenValidationError):
        _extract_claims({"metadata": {"role": "admin"}})


def test_validator_invalid_token_raises():
    validator = JwtTokenValidator(config=_config())
    with pytest.raises(TokenValidationError):
        validator.validate_and_extract("not-a-jwt")


def test_validator_missing_kid_raises():
    payload = {"sub": "u", "iss": ISSUER, "exp": time.time() + 300}
    token = jwt.encode(payload, "x" * 32, algorithm="HS256", headers={})
    validator = JwtTokenValidator(config=_config())
    with pytest.raises(TokenValidationError, match="key id"):
        validator.validate_and_extract(token)


def test_validator_valid_token_roundtrip(rsa_key):
    ctx = _validate(rsa_key, _token(rsa_key[0]))
    assert ctx.user_id == "user_2abc"
    assert ctx.session_id == "sess_9"
    assert ctx.role == "doctor"
    assert ctx.authorized_party == "https://app.example.com"


def test_validator_expired_token(rsa_key):
    token = _token(rsa_key[0], exp=int(time.time()) - 3600)
    with pytest.raises(TokenValidationError, match="expired"):
        _validate(rsa_key, token)


def test_validator_wrong_issuer(rsa_key):
    token = _token(rsa_key[0], iss="https://evil.example.com")
    with pytest.raises(TokenValidationError, match="issuer"):
        _validate(rsa_key, token)


def test_validator_checks_audience_when_configured(rsa_key):
    token = _token(rsa_key[0], aud="other-api")
    with pytest.raises(TokenValidationError, match="audience"):
        _validate(rsa_key, token, audience="medassist-api")

    ctx = _validate(rsa_key, _token(rsa_key[0], aud="medassist-api"), audience="medassist-api")
    assert ctx.user_id == "user_2abc"


def test_validator_unknown_signing_key(rsa_key):
    with patch("medassist.identity.validator.JWKSCache") as mock_cache:
        mock_cache.return_value.get_signing_key.return_value = None
        validator = JwtTokenValidator(config=_config())
        with pytest.raises(TokenValidationError, match="unknown signing key"):
            validator.validate_and_extract(_token(rsa_key[0]))
