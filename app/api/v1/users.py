from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.v1.common import EMAIL_PATTERN, UserResponse
from app.core.schemas import CamelModel
from app.core.security import require_roles
from app.core.tenancy import TenantContext, get_tenant_context
from app.db import models
from app.db.models import UserRole
from app.db.session import get_db
from app.services import users as user_service

router = APIRouter(tags=["Usuarios"])

can_manage_users = require_roles(UserRole.OWNER, UserRole.MANAGER)


class UserCreate(CamelModel):
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    role: UserRole = UserRole.MECHANIC


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = None
    avatar: Optional[str] = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


@router.get("/users/me", response_model=UserResponse)
def get_profile(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, ctx, ctx.user_id)


@router.put("/users/me", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.update_profile(db, ctx, payload.model_dump(exclude_unset=True))


@router.patch("/users/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: PasswordChange,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    user_service.change_password(db, ctx, payload.current_password, payload.new_password)


@router.get("/users", response_model=list[UserResponse])
def list_users(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, ctx)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, ctx, user_id)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _: models.User = Depends(can_manage_users),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.create_user(db, ctx, payload.model_dump())


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UserUpdate,
    _: models.User = Depends(can_manage_users),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return user_service.update_user(db, ctx, user_id, payload.model_dump(exclude_unset=True))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    _: models.User = Depends(can_manage_users),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, ctx, user_id)
