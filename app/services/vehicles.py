from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.tenancy import TenantContext
from app.db import models
from app.services.plates import is_valid_plate, normalize_plate

VEHICLE_FIELDS = (
    "customer_id",
    "chassi",
    "renavam",
    "brand",
    "model",
    "version",
    "year",
    "model_year",
    "color",
    "fuel_type",
    "transmission",
    "engine",
    "mileage",
    "notes",
)


def _active_query(db: Session, ctx: TenantContext):
    return db.query(models.Vehicle).filter(
        models.Vehicle.tenant_id == ctx.tenant_id,
        models.Vehicle.is_active.is_(True),
        models.Vehicle.deleted_at.is_(None),
    )


def list_vehicles(
    db: Session,
    ctx: TenantContext,
    search: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> list[models.Vehicle]:
    query = _active_query(db, ctx)
    if customer_id:
        query = query.filter(models.Vehicle.customer_id == customer_id)
    if search:
        pattern = f"%{search.strip()}%"
        plate_pattern = f"%{normalize_plate(search)}%"
        query = query.filter(
            or_(
                models.Vehicle.plate.ilike(plate_pattern),
                models.Vehicle.brand.ilike(pattern),
                models.Vehicle.model.ilike(pattern),
            )
        )
    return query.order_by(models.Vehicle.created_at.desc()).all()


def get_vehicle(db: Session, ctx: TenantContext, vehicle_id: str) -> models.Vehicle:
    vehicle = _active_query(db, ctx).filter(models.Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFoundError("Veiculo nao encontrado")
    return vehicle


def find_by_plate(db: Session, ctx: TenantContext, plate: str) -> Optional[models.Vehicle]:
    return _active_query(db, ctx).filter(models.Vehicle.plate == normalize_plate(plate)).first()


def get_by_plate(db: Session, ctx: TenantContext, plate: str) -> models.Vehicle:
    vehicle = find_by_plate(db, ctx, plate)
    if not vehicle:
        raise NotFoundError("Veiculo nao encontrado")
    return vehicle


def _validated_plate(plate: str) -> str:
    normalized = normalize_plate(plate)
    if not is_valid_plate(normalized):
        raise BadRequestError("Placa invalida. Use o formato AAA9999 ou AAA9A99", code="INVALID_PLATE")
    return normalized


def _ensure_customer(db: Session, ctx: TenantContext, customer_id: str) -> None:
    exists = (
        db.query(models.Customer.id)
        .filter(
            models.Customer.id == customer_id,
            models.Customer.tenant_id == ctx.tenant_id,
            models.Customer.is_active.is_(True),
            models.Customer.deleted_at.is_(None),
        )
        .first()
    )
    if not exists:
        raise NotFoundError("Cliente nao encontrado")


def _ensure_plate_free(db: Session, ctx: TenantContext, plate: str, exclude_id: Optional[str] = None) -> None:
    # soft-deleted vehicles keep their plate reserved
    query = db.query(models.Vehicle).filter(
        models.Vehicle.tenant_id == ctx.tenant_id,
        models.Vehicle.plate == plate,
    )
    if exclude_id:
        query = query.filter(models.Vehicle.id != exclude_id)
    if query.first():
        raise ConflictError("Placa ja cadastrada")


def _ensure_vehicle_quota(db: Session, ctx: TenantContext) -> None:
    tenant = db.query(models.Tenant).filter(models.Tenant.id == ctx.tenant_id).first()
    if not tenant:
        raise NotFoundError("Oficina nao encontrada")
    count = _active_query(db, ctx).count()
    if count >= tenant.max_vehicles:
        raise ForbiddenError(
            f"Limite de {tenant.max_vehicles} veiculos do plano atingido",
            code="PLAN_LIMIT",
        )


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Placa ja cadastrada") from exc


def create_vehicle(db: Session, ctx: TenantContext, data: dict) -> models.Vehicle:
    plate = _validated_plate(data["plate"])
    _ensure_customer(db, ctx, data["customer_id"])
    _ensure_plate_free(db, ctx, plate)
    _ensure_vehicle_quota(db, ctx)
    values = {k: data[k] for k in VEHICLE_FIELDS if data.get(k) is not None}
    vehicle = models.Vehicle(tenant_id=ctx.tenant_id, plate=plate, **values)
    db.add(vehicle)
    _commit(db)
    db.refresh(vehicle)
    return vehicle


def update_vehicle(db: Session, ctx: TenantContext, vehicle_id: str, data: dict) -> models.Vehicle:
    vehicle = get_vehicle(db, ctx, vehicle_id)
    if data.get("plate"):
        plate = _validated_plate(data["plate"])
        if plate != vehicle.plate:
            _ensure_plate_free(db, ctx, plate, exclude_id=vehicle.id)
            vehicle.plate = plate
    if data.get("customer_id") and data["customer_id"] != vehicle.customer_id:
        _ensure_customer(db, ctx, data["customer_id"])
    for field in VEHICLE_FIELDS:
        if field in data and data[field] is not None:
            setattr(vehicle, field, data[field])
    _commit(db)
    db.refresh(vehicle)
    return vehicle


def delete_vehicle(db: Session, ctx: TenantContext, vehicle_id: str) -> models.Vehicle:
    vehicle = get_vehicle(db, ctx, vehicle_id)
    vehicle.deleted_at = datetime.utcnow()
    vehicle.is_active = False
    db.commit()
    db.refresh(vehicle)
    return vehicle
