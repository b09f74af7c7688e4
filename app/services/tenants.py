from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.core.tenancy import TenantContext
from app.db import models
from app.services.service_orders import PENDING_STATUSES

TENANT_FIELDS = (
    "name",
    "trade_name",
    "cnpj",
    "phone",
    "whatsapp",
    "email",
    "street",
    "number",
    "complement",
    "neighborhood",
    "city",
    "state",
    "zip_code",
    "logo",
    "primary_color",
    "default_markup",
    "default_labor_rate",
)


def get_tenant(db: Session, ctx: TenantContext) -> models.Tenant:
    tenant = (
        db.query(models.Tenant)
        .filter(models.Tenant.id == ctx.tenant_id, models.Tenant.deleted_at.is_(None))
        .first()
    )
    if not tenant:
        raise NotFoundError("Oficina nao encontrada")
    return tenant


def update_tenant(db: Session, ctx: TenantContext, data: dict) -> models.Tenant:
    if not ctx.is_manager:
        raise ForbiddenError("Apenas donos e gerentes podem alterar a oficina")
    tenant = get_tenant(db, ctx)
    if data.get("cnpj") and data["cnpj"] != tenant.cnpj:
        taken = (
            db.query(models.Tenant.id)
            .filter(models.Tenant.cnpj == data["cnpj"], models.Tenant.id != tenant.id)
            .first()
        )
        if taken:
            raise ConflictError("CNPJ ja cadastrado")
    for field in TENANT_FIELDS:
        if field in data and data[field] is not None:
            setattr(tenant, field, data[field])
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("CNPJ ja cadastrado") from exc
    db.refresh(tenant)
    return tenant


def get_stats(db: Session, ctx: TenantContext) -> dict:
    customers = (
        db.query(models.Customer)
        .filter(
            models.Customer.tenant_id == ctx.tenant_id,
            models.Customer.is_active.is_(True),
            models.Customer.deleted_at.is_(None),
        )
        .count()
    )
    vehicles = (
        db.query(models.Vehicle)
        .filter(
            models.Vehicle.tenant_id == ctx.tenant_id,
            models.Vehicle.is_active.is_(True),
            models.Vehicle.deleted_at.is_(None),
        )
        .count()
    )
    orders = db.query(models.ServiceOrder).filter(
        models.ServiceOrder.tenant_id == ctx.tenant_id,
        models.ServiceOrder.deleted_at.is_(None),
    )
    return {
        "customers": customers,
        "vehicles": vehicles,
        "service_orders": orders.count(),
        "pending_orders": orders.filter(
            models.ServiceOrder.status.in_([status.value for status in PENDING_STATUSES])
        ).count(),
    }
