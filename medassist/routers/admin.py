from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from medassist.db.session import get_db
from medassist.models.users import User
from medassist.policy.client import PolicyClient
from medassist.schemas.users import (
    RoleAssignmentIn,
    UserAttributesIn,
    UserAttributesOut,
    UserPermissionsOut,
)
from medassist.security.dependencies import get_policy_client

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_user(db: Session, user_id: str) -> None:
    if db.get(User, user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsOut)
def user_permissions(
    user_id: str,
    db: Session = Depends(get_db),
    policy: PolicyClient = Depends(get_policy_client),
) -> UserPermissionsOut:
    _require_user(db, user_id)
    return UserPermissionsOut(user_id=user_id, permissions=policy.get_user_permissions(user_id))


@router.put("/users/{user_id}/role", response_model=UserPermissionsOut)
def assign_role(
    user_id: str,
    body: RoleAssignmentIn,
    db: Session = Depends(get_db),
    policy: PolicyClient = Depends(get_policy_client),
) -> UserPermissionsOut:
    _require_user(db, user_id)
    policy.assign_role(user_id, body.role)
    return UserPermissionsOut(user_id=user_id, permissions=policy.get_user_permissions(user_id))


@router.patch("/users/{user_id}/attributes", response_model=UserAttributesOut)
def update_attributes(
    user_id: str,
    body: UserAttributesIn,
    db: Session = Depends(get_db),
    policy: PolicyClient = Depends(get_policy_client),
) -> UserAttributesOut:
    _require_user(db, user_id)
    attrs = policy.set_user_attributes(user_id, body.model_dump(exclude_unset=True))
    return UserAttributesOut(
        department=attrs.department,
        clearance=attrs.clearance,
        specialization=attrs.specialization,
        role=attrs.role,
    )
