"""Service orders: numbering, status machine, line items and totals.

Totals are recomputed from the full item set on every item mutation. Writers
touching the same order are serialized (striped in-process lock plus a row
lock where the database supports it) so the read-modify-write of the totals
cannot interleave.
"""
import logging
import threading
import zlib
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.tenancy import TenantContext
from app.db import models
from app.db.models import ItemType, OSStatus

logger = logging.getLogger("oficina.service_orders")

STATUS_FLOW = [
    OSStatus.DRAFT,
    OSStatus.DIAGNOSING,
    OSStatus.QUOTING,
    OSStatus.WAITING_APPROVAL,
    OSStatus.APPROVED,
    OSStatus.IN_PROGRESS,
    OSStatus.QUALITY_CHECK,
    OSStatus.COMPLETED,
    OSStatus.DELIVERED,
]
TERMINAL_STATUSES = {OSStatus.DELIVERED, OSStatus.CANCELLED}
PENDING_STATUSES = [OSStatus.DRAFT, OSStatus.DIAGNOSING, OSStatus.QUOTING, OSStatus.WAITING_APPROVAL]

STATUS_TIMESTAMPS = {
    OSStatus.APPROVED: "approved_at",
    OSStatus.IN_PROGRESS: "started_at",
    OSStatus.COMPLETED: "completed_at",
    OSStatus.DELIVERED: "delivered_at",
}

_LOCK_STRIPES = 64
_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]


@contextmanager
def write_lock(key: str) -> Iterator[None]:
    lock = _locks[zlib.crc32(key.encode("utf-8")) % _LOCK_STRIPES]
    with lock:
        yield


def next_status(current: str) -> Optional[OSStatus]:
    """The single forward step offered to the operator, if any."""
    status = OSStatus(current)
    if status not in STATUS_FLOW:
        return None
    idx = STATUS_FLOW.index(status)
    if idx + 1 >= len(STATUS_FLOW):
        return None
    return STATUS_FLOW[idx + 1]


def is_allowed_transition(current: str, target: str) -> bool:
    current_status = OSStatus(current)
    target_status = OSStatus(target)
    if current_status == target_status:
        return current_status not in TERMINAL_STATUSES
    if current_status in TERMINAL_STATUSES:
        return False
    if target_status == OSStatus.CANCELLED:
        return True
    return STATUS_FLOW.index(target_status) > STATUS_FLOW.index(current_status)


def _order_query(db: Session, ctx: TenantContext):
    return db.query(models.ServiceOrder).filter(
        models.ServiceOrder.tenant_id == ctx.tenant_id,
        models.ServiceOrder.deleted_at.is_(None),
    )


def get_order(db: Session, ctx: TenantContext, order_id: str, for_update: bool = False) -> models.ServiceOrder:
    query = _order_query(db, ctx).filter(models.ServiceOrder.id == order_id)
    if for_update:
        query = query.with_for_update()
    order = query.first()
    if not order:
        raise NotFoundError("Ordem de servico nao encontrada")
    return order


def list_orders(
    db: Session,
    ctx: TenantContext,
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    vehicle_id: Optional[str] = None,
) -> list[models.ServiceOrder]:
    query = _order_query(db, ctx)
    if status:
        query = query.filter(models.ServiceOrder.status == status)
    if customer_id:
        query = query.filter(models.ServiceOrder.customer_id == customer_id)
    if vehicle_id:
        query = query.filter(models.ServiceOrder.vehicle_id == vehicle_id)
    return query.order_by(models.ServiceOrder.created_at.desc(), models.ServiceOrder.number.desc()).all()


def _next_number(db: Session, tenant_id: str) -> int:
    # soft-deleted orders keep their number, so they count here too
    last = (
        db.query(func.max(models.ServiceOrder.number))
        .filter(models.ServiceOrder.tenant_id == tenant_id)
        .scalar()
    )
    return (last or 0) + 1


def create_order(db: Session, ctx: TenantContext, data: dict) -> models.ServiceOrder:
    customer = (
        db.query(models.Customer)
        .filter(
            models.Customer.id == data["customer_id"],
            models.Customer.tenant_id == ctx.tenant_id,
            models.Customer.is_active.is_(True),
            models.Customer.deleted_at.is_(None),
        )
        .first()
    )
    if not customer:
        raise NotFoundError("Cliente nao encontrado")
    vehicle = (
        db.query(models.Vehicle)
        .filter(
            models.Vehicle.id == data["vehicle_id"],
            models.Vehicle.tenant_id == ctx.tenant_id,
            models.Vehicle.is_active.is_(True),
            models.Vehicle.deleted_at.is_(None),
        )
        .first()
    )
    if not vehicle:
        raise NotFoundError("Veiculo nao encontrado")
    if vehicle.customer_id != customer.id:
        raise BadRequestError("Veiculo nao pertence ao cliente informado")

    mileage_in = data.get("mileage_in")
    with write_lock(f"numbering:{ctx.tenant_id}"):
        order = models.ServiceOrder(
            tenant_id=ctx.tenant_id,
            created_by_id=ctx.user_id,
            number=_next_number(db, ctx.tenant_id),
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            mileage_in=mileage_in,
            fuel_level=data.get("fuel_level"),
            entry_notes=data.get("entry_notes"),
            entry_photos=data.get("entry_photos") or [],
            status=OSStatus.DRAFT.value,
        )
        if mileage_in is not None and (vehicle.mileage or 0) < mileage_in:
            vehicle.mileage = mileage_in
        db.add(order)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError("Numero de OS ja utilizado, tente novamente") from exc
    db.refresh(order)
    logger.info("service order created tenant=%s number=%s id=%s", ctx.tenant_id, order.number, order.id)
    return order


def update_order(db: Session, ctx: TenantContext, order_id: str, data: dict) -> models.ServiceOrder:
    order = get_order(db, ctx, order_id)
    for field in ("mileage_out", "fuel_level", "entry_notes", "exit_notes", "exit_photos", "discount"):
        if field in data and data[field] is not None:
            setattr(order, field, data[field])
    mileage_out = data.get("mileage_out")
    if mileage_out is not None and order.vehicle and (order.vehicle.mileage or 0) < mileage_out:
        order.vehicle.mileage = mileage_out
    db.commit()
    db.refresh(order)
    return order


def _apply_status(order: models.ServiceOrder, status: OSStatus) -> None:
    order.status = status.value
    stamp = STATUS_TIMESTAMPS.get(status)
    if stamp:
        setattr(order, stamp, datetime.utcnow())


def update_status(
    db: Session,
    ctx: TenantContext,
    order_id: str,
    status: str,
    force: bool = False,
) -> models.ServiceOrder:
    target = OSStatus(status)
    with write_lock(order_id):
        order = get_order(db, ctx, order_id, for_update=True)
        if not is_allowed_transition(order.status, target.value):
            if not force:
                raise BadRequestError(
                    f"Transicao de status invalida: {order.status} -> {target.value}",
                    code="INVALID_STATUS_TRANSITION",
                )
            if not ctx.is_manager:
                raise ForbiddenError("Apenas donos e gerentes podem forcar a mudanca de status")
            logger.warning(
                "forced status change order=%s %s -> %s by user=%s",
                order.id,
                order.status,
                target.value,
                ctx.user_id,
            )
        previous = order.status
        _apply_status(order, target)
        db.commit()
    db.refresh(order)
    logger.info("service order status order=%s %s -> %s", order.id, previous, order.status)
    return order


def advance_to(order: models.ServiceOrder, target: OSStatus) -> bool:
    """Move an order forward as a side effect of another operation; never moves it back."""
    current = OSStatus(order.status)
    if current in TERMINAL_STATUSES or current == target:
        return False
    if STATUS_FLOW.index(current) > STATUS_FLOW.index(target):
        return False
    _apply_status(order, target)
    return True


def delete_order(db: Session, ctx: TenantContext, order_id: str) -> models.ServiceOrder:
    order = get_order(db, ctx, order_id)
    order.deleted_at = datetime.utcnow()
    db.commit()
    db.refresh(order)
    return order


def recompute_totals(db: Session, order: models.ServiceOrder) -> None:
    db.flush()
    items = db.query(models.OSItem).filter(models.OSItem.service_order_id == order.id).all()
    total_parts = 0.0
    total_labor = 0.0
    for item in items:
        if item.type == ItemType.PART.value:
            total_parts += item.total_price or 0
        else:
            total_labor += item.total_price or 0
    order.total_parts = round(total_parts, 2)
    order.total_labor = round(total_labor, 2)
    # discount is stored only; totals ignore it
    order.total_price = round(total_parts + total_labor, 2)


def insert_item(db: Session, order: models.ServiceOrder, data: dict) -> models.OSItem:
    quantity = data.get("quantity")
    quantity = 1 if quantity is None else quantity
    unit_price = data.get("unit_price") or 0
    item_type = ItemType(data.get("type") or ItemType.PART)
    item = models.OSItem(
        service_order_id=order.id,
        type=item_type.value,
        description=data["description"],
        part_number=data.get("part_number"),
        brand=data.get("brand"),
        quantity=quantity,
        unit_cost=data.get("unit_cost") or 0,
        unit_price=unit_price,
        total_price=round(quantity * unit_price, 2),
        labor_hours=data.get("labor_hours"),
        labor_rate=data.get("labor_rate"),
        diagnostic_id=data.get("diagnostic_id"),
        extracted_part_id=data.get("extracted_part_id"),
    )
    db.add(item)
    return item


def add_item(db: Session, ctx: TenantContext, order_id: str, data: dict) -> models.OSItem:
    with write_lock(order_id):
        order = get_order(db, ctx, order_id, for_update=True)
        item = insert_item(db, order, data)
        recompute_totals(db, order)
        db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, ctx: TenantContext, order_id: str, item_id: str) -> models.ServiceOrder:
    with write_lock(order_id):
        order = get_order(db, ctx, order_id, for_update=True)
        item = (
            db.query(models.OSItem)
            .filter(models.OSItem.id == item_id, models.OSItem.service_order_id == order.id)
            .first()
        )
        if not item:
            raise NotFoundError("Item nao encontrado")
        db.delete(item)
        recompute_totals(db, order)
        db.commit()
    db.refresh(order)
    return order
