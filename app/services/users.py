from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import get_password_hash, verify_password
from app.core.tenancy import TenantContext
from app.db import models
from app.db.models import UserRole

PROFILE_FIELDS = ("name", "phone", "avatar")


def _active_query(db: Session, ctx: TenantContext):
    return db.query(models.User).filter(
        models.User.tenant_id == ctx.tenant_id,
        models.User.deleted_at.is_(None),
    )


def list_users(db: Session, ctx: TenantContext) -> list[models.User]:
    return _active_query(db, ctx).order_by(models.User.name.asc()).all()


def get_user(db: Session, ctx: TenantContext, user_id: str) -> models.User:
    user = _active_query(db, ctx).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError("Usuario nao encontrado")
    return user


def _ensure_can_assign(ctx: TenantContext, role: str) -> None:
    if ctx.role in {UserRole.MECHANIC.value, UserRole.RECEPTIONIST.value}:
        raise ForbiddenError("Sem permissao para gerenciar usuarios")
    if role == UserRole.OWNER.value and ctx.role != UserRole.OWNER.value:
        raise ForbiddenError("Apenas o dono pode criar outro dono")


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[str] = None) -> None:
    # login resolves users by email alone, so addresses stay unique across workshops
    query = db.query(models.User).filter(
        models.User.email == email,
        models.User.deleted_at.is_(None),
    )
    if exclude_id:
        query = query.filter(models.User.id != exclude_id)
    if query.first():
        raise ConflictError("Email ja cadastrado")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email ja cadastrado") from exc


def create_user(db: Session, ctx: TenantContext, data: dict) -> models.User:
    role = UserRole(data.get("role") or UserRole.MECHANIC).value
    _ensure_can_assign(ctx, role)

    tenant = db.query(models.Tenant).filter(models.Tenant.id == ctx.tenant_id).first()
    if not tenant:
        raise NotFoundError("Oficina nao encontrada")
    active_users = _active_query(db, ctx).filter(models.User.is_active.is_(True)).count()
    if active_users >= tenant.max_users:
        raise ForbiddenError(f"Limite de {tenant.max_users} usuarios do plano atingido", code="PLAN_LIMIT")

    email = data["email"].strip().lower()
    _ensure_email_free(db, email)
    try:
        password_hash = get_password_hash(data["password"])
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc
    user = models.User(
        tenant_id=ctx.tenant_id,
        email=email,
        name=data["name"],
        phone=data.get("phone"),
        role=role,
        password_hash=password_hash,
    )
    db.add(user)
    _commit(db)
    db.refresh(user)
    return user


def update_user(db: Session, ctx: TenantContext, user_id: str, data: dict) -> models.User:
    user = get_user(db, ctx, user_id)
    if user.id != ctx.user_id:
        _ensure_can_assign(ctx, user.role)
    new_role = UserRole(data["role"]).value if data.get("role") else user.role
    if new_role != user.role:
        if user.id == ctx.user_id:
            raise ForbiddenError("Voce nao pode alterar o proprio papel")
        _ensure_can_assign(ctx, new_role)
        user.role = new_role
    if data.get("email"):
        email = data["email"].strip().lower()
        if email != user.email:
            _ensure_email_free(db, email, exclude_id=user.id)
            user.email = email
    for field in PROFILE_FIELDS:
        if data.get(field) is not None:
            setattr(user, field, data[field])
    if data.get("is_active") is not None:
        if user.id == ctx.user_id and not data["is_active"]:
            raise BadRequestError("Voce nao pode desativar a si mesmo")
        user.is_active = data["is_active"]
    _commit(db)
    db.refresh(user)
    return user


def update_profile(db: Session, ctx: TenantContext, data: dict) -> models.User:
    user = get_user(db, ctx, ctx.user_id)
    for field in PROFILE_FIELDS:
        if data.get(field) is not None:
            setattr(user, field, data[field])
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, ctx: TenantContext, current_password: str, new_password: str) -> None:
    user = get_user(db, ctx, ctx.user_id)
    if not verify_password(current_password, user.password_hash):
        raise BadRequestError("Senha atual incorreta")
    try:
        user.password_hash = get_password_hash(new_password)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc
    db.commit()


def delete_user(db: Session, ctx: TenantContext, user_id: str) -> models.User:
    if user_id == ctx.user_id:
        raise BadRequestError("Voce nao pode excluir a si mesmo")
    user = get_user(db, ctx, user_id)
    _ensure_can_assign(ctx, user.role)
    user.deleted_at = datetime.utcnow()
    user.is_active = False
    db.commit()
    db.refresh(user)
    return user
