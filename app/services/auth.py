import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, ConflictError
from app.core.security import create_user_token, get_password_hash, verify_password
from app.db import models
from app.db.models import UserRole

logger = logging.getLogger("oficina")


class InvalidCredentials(Exception):
    pass


def authenticate(db: Session, email: str, password: str) -> tuple[models.User, str]:
    user = (
        db.query(models.User)
        .join(models.Tenant, models.Tenant.id == models.User.tenant_id)
        .filter(
            models.User.email == email.strip().lower(),
            models.User.deleted_at.is_(None),
            models.User.is_active.is_(True),
            models.Tenant.is_active.is_(True),
            models.Tenant.deleted_at.is_(None),
        )
        .order_by(models.User.created_at.asc())
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user, create_user_token(user)


def register_tenant(db: Session, data: dict) -> tuple[models.Tenant, models.User, str]:
    """Create a workshop and its OWNER atomically."""
    email = data["email"].strip().lower()
    if data.get("cnpj"):
        if db.query(models.Tenant.id).filter(models.Tenant.cnpj == data["cnpj"]).first():
            raise ConflictError("CNPJ ja cadastrado")
    if db.query(models.User.id).filter(models.User.email == email, models.User.deleted_at.is_(None)).first():
        raise ConflictError("Email ja cadastrado")
    try:
        password_hash = get_password_hash(data["password"])
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc

    tenant = models.Tenant(
        name=data["tenant_name"],
        trade_name=data.get("trade_name"),
        cnpj=data.get("cnpj"),
        phone=data.get("phone"),
        email=email,
    )
    db.add(tenant)
    db.flush()
    owner = models.User(
        tenant_id=tenant.id,
        email=email,
        name=data["name"],
        phone=data.get("phone"),
        role=UserRole.OWNER.value,
        password_hash=password_hash,
    )
    db.add(owner)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Oficina ou email ja cadastrado") from exc
    db.refresh(tenant)
    db.refresh(owner)
    logger.info("tenant registered id=%s owner=%s", tenant.id, owner.id)
    return tenant, owner, create_user_token(owner)
