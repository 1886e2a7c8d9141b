"""
HTTP client for a Permit.io-style hosted policy decision point.

Two endpoints are involved:
    - the PDP (``POST /allowed``) answers yes/no for (user, action, resource);
    - the management API stores user attributes, role assignments and the
      role schema (``/v2/facts/...`` and ``/v2/schema/...``).

Network and HTTP failures are raised as PolicyServiceError so callers can
choose between failing open (self-access) and failing closed.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from medassist.errors import PolicyServiceError
from medassist.policy.types import UserAttributes

logger = logging.getLogger(__name__)

DEFAULT_TENANT = "default"


class PermitPolicyClient:
    def __init__(
        self,
        *,
        pdp_url: str,
        api_url: str,
        api_key: str,
        project: str,
        environment: str,
        timeout: float = 10.0,
        tenant: str = DEFAULT_TENANT,
        session: requests.Session | None = None,
    ) -> None:
        self._pdp_url = pdp_url.rstrip("/")
        self._api_url = api_url.rstrip("/")
        self._project = project
        self._environment = environment
        self._timeout = timeout
        self._tenant = tenant
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    # ---- URL helpers -----------------------------------------------------------------

    def _facts_url(self, path: str) -> str:
        return f"{self._api_url}/v2/facts/{self._project}/{self._environment}/{path}"

    def _schema_url(self, path: str) -> str:
        return f"{self._api_url}/v2/schema/{self._project}/{self._environment}/{path}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Policy service request failed: %s %s", method, type(exc).__name__)
            raise PolicyServiceError(f"policy service unreachable: {type(exc).__name__}") from exc
        return resp

    def _json_or_raise(self, resp: requests.Response, what: str) -> Any:
        try:
            resp.raise_for_status()
            return resp.json()
        except requests.HTTPError as exc:
            logger.warning("Policy service %s returned status=%s", what, resp.status_code)
            raise PolicyServiceError(f"policy service {what} failed with status {resp.status_code}") from exc
        except ValueError as exc:
            raise PolicyServiceError(f"policy service {what} returned invalid JSON") from exc

    # ---- PolicyClient ----------------------------------------------------------------

    def check(
        self,
        user_id: str,
        action: str,
        resource: str,
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        payload: dict[str, Any] = {
            "user": {"key": user_id},
            "action": action,
            "resource": {"type": resource, "tenant": self._tenant},
            "context": dict(context or {}),
        }
        resp = self._request("POST", f"{self._pdp_url}/allowed", json=payload)
        body = self._json_or_raise(resp, "check")
        allowed = bool(body.get("allow", False)) if isinstance(body, dict) else False
        logger.debug("PDP: %s user=%s action=%s resource=%s", "allowed" if allowed else "denied", user_id, action, resource)
        return allowed

    def get_user_attributes(self, user_id: str) -> UserAttributes:
        resp = self._request("GET", self._facts_url(f"users/{user_id}"))
        if resp.status_code == 404:
            return UserAttributes()
        body = self._json_or_raise(resp, "get user")
        attrs = body.get("attributes") if isinstance(body, dict) else None
        return UserAttributes.from_mapping(attrs if isinstance(attrs, dict) else {})

    def get_user_permissions(self, user_id: str) -> list[str]:
        """
        Union of the permissions of every role assigned to the user.

        Returned as "resource:action" strings, sorted.
        """

        resp = self._request("GET", self._facts_url("role_assignments"), params={"user": user_id})
        assignments = self._json_or_raise(resp, "list role assignments")
        if not isinstance(assignments, list):
            return []

        permissions: set[str] = set()
        for role_key in {a.get("role") for a in assignments if isinstance(a, dict)}:
            if not role_key:
                continue
            role_resp = self._request("GET", self._schema_url(f"roles/{role_key}"))
            role = self._json_or_raise(role_resp, "get role")
            if isinstance(role, dict):
                permissions.update(str(p) for p in role.get("permissions") or [])
        return sorted(permissions)

    def assign_role(self, user_id: str, role: str) -> None:
        payload = {"user": user_id, "role": role, "tenant": self._tenant}
        resp = self._request("POST", self._facts_url("role_assignments"), json=payload)
        self._json_or_raise(resp, "assign role")
        logger.info("PDP: assigned role=%s user=%s", role, user_id)

    def set_user_attributes(self, user_id: str, attributes: Mapping[str, Any]) -> UserAttributes:
        resp = self._request("PATCH", self._facts_url(f"users/{user_id}"), json={"attributes": dict(attributes)})
        body = self._json_or_raise(resp, "update user")
        attrs = body.get("attributes") if isinstance(body, dict) else None
        return UserAttributes.from_mapping(attrs if isinstance(attrs, dict) else attributes)
