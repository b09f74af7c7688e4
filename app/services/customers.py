from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.core.tenancy import TenantContext
from app.db import models

CUSTOMER_FIELDS = (
    "name",
    "cpf_cnpj",
    "email",
    "phone",
    "whatsapp",
    "street",
    "number",
    "complement",
    "neighborhood",
    "city",
    "state",
    "zip_code",
    "notes",
)


def _active_query(db: Session, ctx: TenantContext):
    return db.query(models.Customer).filter(
        models.Customer.tenant_id == ctx.tenant_id,
        models.Customer.is_active.is_(True),
        models.Customer.deleted_at.is_(None),
    )


def list_customers(db: Session, ctx: TenantContext, search: Optional[str] = None) -> list[models.Customer]:
    query = _active_query(db, ctx)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Customer.name.ilike(pattern),
                models.Customer.phone.ilike(pattern),
                models.Customer.cpf_cnpj.ilike(pattern),
            )
        )
    return query.order_by(models.Customer.name.asc()).all()


def get_customer(db: Session, ctx: TenantContext, customer_id: str) -> models.Customer:
    customer = _active_query(db, ctx).filter(models.Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Cliente nao encontrado")
    return customer


def _ensure_tax_id_free(db: Session, ctx: TenantContext, cpf_cnpj: Optional[str], exclude_id: Optional[str] = None) -> None:
    if not cpf_cnpj:
        return
    # the unique key covers soft-deleted rows too
    query = db.query(models.Customer).filter(
        models.Customer.tenant_id == ctx.tenant_id,
        models.Customer.cpf_cnpj == cpf_cnpj,
    )
    if exclude_id:
        query = query.filter(models.Customer.id != exclude_id)
    if query.first():
        raise ConflictError("CPF/CNPJ ja cadastrado")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("CPF/CNPJ ja cadastrado") from exc


def create_customer(db: Session, ctx: TenantContext, data: dict) -> models.Customer:
    _ensure_tax_id_free(db, ctx, data.get("cpf_cnpj"))
    customer = models.Customer(tenant_id=ctx.tenant_id, **{k: data.get(k) for k in CUSTOMER_FIELDS})
    db.add(customer)
    _commit(db)
    db.refresh(customer)
    return customer


def update_customer(db: Session, ctx: TenantContext, customer_id: str, data: dict) -> models.Customer:
    customer = get_customer(db, ctx, customer_id)
    if data.get("cpf_cnpj") and data["cpf_cnpj"] != customer.cpf_cnpj:
        _ensure_tax_id_free(db, ctx, data["cpf_cnpj"], exclude_id=customer.id)
    for field in CUSTOMER_FIELDS:
        if field in data and data[field] is not None:
            setattr(customer, field, data[field])
    _commit(db)
    db.refresh(customer)
    return customer


def delete_customer(db: Session, ctx: TenantContext, customer_id: str) -> models.Customer:
    customer = get_customer(db, ctx, customer_id)
    customer.deleted_at = datetime.utcnow()
    customer.is_active = False
    db.commit()
    db.refresh(customer)
    return customer
