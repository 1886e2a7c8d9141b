from __future__ import annotations

from fastapi import APIRouter, Depends

from medassist.models.users import User
from medassist.schemas.users import UserOut
from medassist.security.dependencies import get_current_user

router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> User:
    return user
