"""
Local policy decision point: YAML roles + user attributes from the database.

Key ideas:
- Load YAML once at startup (resources + roles).
- Resolve role inheritance (extends) and detect cycles.
- Precompute effective "resource:action" permissions per role.
- At runtime, answer check(user, action, resource) from the user's role row.

Stands in for the hosted PDP in development and tests; PermitPolicyClient
answers the same questions remotely.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.errors import PolicyServiceError, ValidationError
from medassist.models.users import User
from medassist.policy.types import UserAttributes

logger = logging.getLogger(__name__)


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class ResourceDef:
    """Resource type and the actions it supports."""

    key: str
    actions: frozenset[str]
    name: str | None = None


@dataclass(frozen=True)
class RoleDef:
    """Role definition loaded from YAML (direct permissions and parent link)."""

    key: str
    permissions: frozenset[str]
    extends: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PolicyConfig:
    """Fully-loaded policy configuration."""

    resources: Mapping[str, ResourceDef]
    roles: Mapping[str, RoleDef]


class PolicyConfigError(ValueError):
    """Raised when the policy YAML configuration is invalid."""


# ---- Loader and inheritance resolution ----------------------------------------------


def _split_permission(permission: str) -> tuple[str, str]:
    resource, sep, action = permission.partition(":")
    if not sep or not resource or not action:
        raise PolicyConfigError(f"permission {permission!r} must look like 'resource:action'")
    return resource, action


def load_policy_config(path: Path) -> PolicyConfig:
    """
    Load and validate policy YAML from disk.

    Expected shape (simplified):

        resources:
          chat:
            name: Chat
            actions: [view, create]

        roles:
          patient:
            permissions: [chat:view, chat:create]
          doctor:
            extends: patient
            permissions: [prompt:update]
    """

    raw_text = path.read_text(encoding="utf-8")
    raw = yaml.safe_load(raw_text) or {}

    resources_raw = raw.get("resources") or {}
    roles_raw = raw.get("roles") or {}

    if not isinstance(resources_raw, dict):
        raise PolicyConfigError("resources must be a mapping")
    if not isinstance(roles_raw, dict):
        raise PolicyConfigError("roles must be a mapping")

    resources: dict[str, ResourceDef] = {}
    for key, val in resources_raw.items():
        if not isinstance(val, dict):
            raise PolicyConfigError(f"resource {key!r} must be a mapping")
        actions_raw = val.get("actions") or []
        if not isinstance(actions_raw, list) or not actions_raw:
            raise PolicyConfigError(f"resource {key!r} must have a non-empty actions list")
        resources[key] = ResourceDef(
            key=key,
            actions=frozenset(str(a) for a in actions_raw),
            name=str(val["name"]) if val.get("name") is not None else None,
        )

    roles: dict[str, RoleDef] = {}
    for key, val in roles_raw.items():
        if not isinstance(val, dict):
            raise PolicyConfigError(f"role {key!r} must be a mapping")
        extends = val.get("extends")
        if extends is not None:
            extends = str(extends).strip() or None
        perms_list = val.get("permissions") or []
        if not isinstance(perms_list, list):
            raise PolicyConfigError(f"role {key!r}.permissions must be a list when present")
        description = val.get("description")
        roles[key] = RoleDef(
            key=key,
            permissions=frozenset(str(p) for p in perms_list),
            extends=extends,
            description=str(description) if description is not None else None,
        )

    for role in roles.values():
        if role.extends and role.extends not in roles:
            raise PolicyConfigError(f"role {role.key!r} extends unknown role {role.extends!r}")

    # Every granted permission must name a declared resource and one of its actions.
    for role in roles.values():
        unknown: list[str] = []
        for perm in role.permissions:
            resource, action = _split_permission(perm)
            res = resources.get(resource)
            if res is None or action not in res.actions:
                unknown.append(perm)
        if unknown:
            raise PolicyConfigError(f"role {role.key!r} references unknown permissions: {sorted(unknown)}")

    return PolicyConfig(resources=resources, roles=roles)


def compute_effective_permissions(config: PolicyConfig) -> dict[str, frozenset[str]]:
    """
    Resolve role inheritance and compute effective permissions per role.

    Detect cycles in extends and raise PolicyConfigError if found.
    """

    effective: dict[str, frozenset[str]] = {}
    visiting: set[str] = set()

    def dfs(role_key: str) -> frozenset[str]:
        if role_key in effective:
            return effective[role_key]
        if role_key in visiting:
            raise PolicyConfigError(f"cycle detected in role inheritance at {role_key!r}")
        visiting.add(role_key)
        role = config.roles[role_key]
        perms = set(role.permissions)
        if role.extends:
            perms.update(dfs(role.extends))
        result = frozenset(perms)
        effective[role_key] = result
        visiting.remove(role_key)
        return result

    for key in config.roles.keys():
        dfs(key)

    return effective


# ---- Policy client -------------------------------------------------------------------


class LocalPolicyClient:
    """
    PolicyClient backed by a PolicyConfig and the `users` table.

    Usage:
        client = LocalPolicyClient.from_yaml(Path("config/policy.yaml"), SessionLocal)
        client.check("user_doctor_card", "update", "prompt")
    """

    def __init__(
        self,
        config: PolicyConfig,
        effective_permissions: Mapping[str, frozenset[str]],
        session_factory: Callable[[], Session],
    ) -> None:
        self._config = config
        self._effective_permissions = dict(effective_permissions)
        self._session_factory = session_factory

    @classmethod
    def from_yaml(cls, path: Path, session_factory: Callable[[], Session]) -> LocalPolicyClient:
        """Convenience: load YAML and build a client in one step."""
        cfg = load_policy_config(path)
        return cls(cfg, compute_effective_permissions(cfg), session_factory)

    @property
    def config(self) -> PolicyConfig:
        return self._config

    def role_permissions(self, role: str | None) -> frozenset[str]:
        if not role:
            return frozenset()
        return self._effective_permissions.get(role, frozenset())

    def _load_user(self, db: Session, user_id: str) -> User | None:
        return db.get(User, user_id)

    def check(
        self,
        user_id: str,
        action: str,
        resource: str,
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        try:
            with self._session_factory() as db:
                user = self._load_user(db, user_id)
                role = user.role if user is not None and user.is_active else None
        except SQLAlchemyError as exc:
            raise PolicyServiceError(f"policy user lookup failed: {type(exc).__name__}") from exc

        if role is None:
            logger.debug("Policy: unknown or inactive user=%s action=%s resource=%s", user_id, action, resource)
            return False

        allowed = f"{resource}:{action}" in self.role_permissions(role)
        logger.debug(
            "Policy: %s user=%s role=%s action=%s resource=%s",
            "allowed" if allowed else "denied",
            user_id,
            role,
            action,
            resource,
        )
        return allowed

    def get_user_attributes(self, user_id: str) -> UserAttributes:
        try:
            with self._session_factory() as db:
                user = self._load_user(db, user_id)
                if user is None:
                    return UserAttributes()
                return UserAttributes(
                    department=user.department,
                    clearance=user.clearance,
                    specialization=user.specialization,
                    role=user.role,
                )
        except SQLAlchemyError as exc:
            raise PolicyServiceError(f"policy attribute lookup failed: {type(exc).__name__}") from exc

    def get_user_permissions(self, user_id: str) -> list[str]:
        return sorted(self.role_permissions(self.get_user_attributes(user_id).role))

    def assign_role(self, user_id: str, role: str) -> None:
        if role not in self._config.roles:
            raise ValidationError(f"Unknown role {role!r}")
        try:
            with self._session_factory() as db:
                user = self._load_user(db, user_id)
                if user is None:
                    raise ValidationError(f"Unknown user {user_id!r}")
                user.role = role
                db.commit()
        except SQLAlchemyError as exc:
            raise PolicyServiceError(f"role assignment failed: {type(exc).__name__}") from exc
        logger.info("Policy: assigned role=%s user=%s", role, user_id)

    def set_user_attributes(self, user_id: str, attributes: Mapping[str, Any]) -> UserAttributes:
        updates = UserAttributes.from_mapping(attributes)
        if updates.extra:
            # No column to hold them locally; the hosted PDP keeps arbitrary keys.
            logger.warning("Policy: ignoring unsupported attributes %s for user=%s", sorted(updates.extra), user_id)
        if updates.role is not None and updates.role not in self._config.roles:
            raise ValidationError(f"Unknown role {updates.role!r}")

        try:
            with self._session_factory() as db:
                user = self._load_user(db, user_id)
                if user is None:
                    raise ValidationError(f"Unknown user {user_id!r}")
                for key in ("department", "clearance", "specialization", "role"):
                    if key == "role" and updates.role is None:
                        continue
                    if key in attributes:
                        setattr(user, key, getattr(updates, key))
                db.commit()
        except SQLAlchemyError as exc:
            raise PolicyServiceError(f"attribute update failed: {type(exc).__name__}") from exc

        return self.get_user_attributes(user_id)
