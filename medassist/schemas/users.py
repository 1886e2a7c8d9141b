from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    role: str
    department: str | None
    clearance: int | None
    specialization: str | None
    is_active: bool
    created_at: datetime


class RoleAssignmentIn(BaseModel):
    role: str = Field(min_length=1)


class UserAttributesIn(BaseModel):
    department: str | None = None
    clearance: int | None = Field(default=None, ge=0)
    specialization: str | None = None


class UserAttributesOut(BaseModel):
    department: str | None = None
    clearance: float | int | None = None
    specialization: str | None = None
    role: str | None = None


class UserPermissionsOut(BaseModel):
    user_id: str
    permissions: list[str]
