"""
Signing-key cache for the identity provider's JWKS endpoint.

Keys are fetched once per TTL and indexed by `kid`. A token signed with a
key we have not seen forces one refresh (the provider rotated keys) before
the key is reported missing.
"""

from __future__ import annotations

import logging
import time

import requests
from jwt import InvalidKeyError, PyJWK, PyJWKError

logger = logging.getLogger(__name__)


class JWKSCache:
    def __init__(self, jwks_url: str, ttl_seconds: int) -> None:
        self._url = jwks_url
        self._ttl = ttl_seconds
        self._keys: dict[str, PyJWK] | None = None
        self._fetched_at: float = 0.0

    def _fetch(self) -> dict[str, PyJWK]:
        resp = requests.get(self._url, timeout=10)
        resp.raise_for_status()
        keys: dict[str, PyJWK] = {}
        for entry in resp.json().get("keys") or []:
            kid = entry.get("kid")
            if not kid:
                continue
            try:
                keys[kid] = PyJWK.from_dict(entry)
            except (InvalidKeyError, PyJWKError) as exc:  # unsupported key type
                logger.debug("Skipping JWK kid=%s: %s", kid, type(exc).__name__)
        return keys

    def _refresh(self) -> dict[str, PyJWK]:
        self._keys = self._fetch()
        self._fetched_at = time.monotonic()
        logger.debug("JWKS refreshed url=%s keys=%d", self._url, len(self._keys))
        return self._keys

    def _current(self) -> dict[str, PyJWK]:
        if self._keys is None or (time.monotonic() - self._fetched_at) >= self._ttl:
            return self._refresh()
        return self._keys

    def get_signing_key(self, kid: str) -> PyJWK | None:
        key = self._current().get(kid)
        if key is not None:
            return key
        logger.info("kid not in cached JWKS; refreshing once")
        return self._refresh().get(kid)
