from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.v1.common import OSItemResponse, ServiceOrderResponse, order_response
from app.core.schemas import CamelModel
from app.core.tenancy import TenantContext, get_tenant_context
from app.db.models import ItemType, OSStatus
from app.db.session import get_db
from app.services import service_orders as order_service

router = APIRouter(tags=["Ordens de Servico"])


class ServiceOrderCreate(CamelModel):
    customer_id: str
    vehicle_id: str
    mileage_in: Optional[int] = Field(default=None, ge=0)
    fuel_level: Optional[int] = Field(default=None, ge=0, le=100)
    entry_notes: Optional[str] = None
    entry_photos: list[str] = []


class ServiceOrderUpdate(CamelModel):
    mileage_out: Optional[int] = Field(default=None, ge=0)
    fuel_level: Optional[int] = Field(default=None, ge=0, le=100)
    entry_notes: Optional[str] = None
    exit_notes: Optional[str] = None
    exit_photos: Optional[list[str]] = None
    discount: Optional[float] = Field(default=None, ge=0)


class StatusUpdate(CamelModel):
    status: OSStatus
    force: bool = False


class OSItemCreate(CamelModel):
    type: ItemType = ItemType.PART
    description: str = Field(..., min_length=1)
    part_number: Optional[str] = None
    brand: Optional[str] = None
    quantity: float = Field(default=1, gt=0)
    unit_cost: float = Field(default=0, ge=0)
    unit_price: float = Field(..., ge=0)
    labor_hours: Optional[float] = Field(default=None, ge=0)
    labor_rate: Optional[float] = Field(default=None, ge=0)


@router.get("/service-orders", response_model=list[ServiceOrderResponse])
def list_service_orders(
    status_filter: Optional[OSStatus] = Query(default=None, alias="status"),
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    vehicle_id: Optional[str] = Query(default=None, alias="vehicleId"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    orders = order_service.list_orders(
        db,
        ctx,
        status=status_filter.value if status_filter else None,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
    )
    return [order_response(order) for order in orders]


@router.get("/service-orders/{order_id}")
def get_service_order(
    order_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return order_response(order_service.get_order(db, ctx, order_id), detail=True)


@router.post("/service-orders", status_code=status.HTTP_201_CREATED)
def create_service_order(
    payload: ServiceOrderCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    order = order_service.create_order(db, ctx, payload.model_dump())
    return order_response(order, detail=True)


@router.put("/service-orders/{order_id}")
def update_service_order(
    order_id: str,
    payload: ServiceOrderUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    order = order_service.update_order(db, ctx, order_id, payload.model_dump(exclude_unset=True))
    return order_response(order, detail=True)


@router.patch("/service-orders/{order_id}/status")
def update_service_order_status(
    order_id: str,
    payload: StatusUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    order = order_service.update_status(db, ctx, order_id, payload.status.value, force=payload.force)
    return order_response(order, detail=True)


@router.delete("/service-orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service_order(
    order_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    order_service.delete_order(db, ctx, order_id)


@router.post(
    "/service-orders/{order_id}/items",
    response_model=OSItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_service_order_item(
    order_id: str,
    payload: OSItemCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return order_service.add_item(db, ctx, order_id, payload.model_dump())


@router.delete("/service-orders/{order_id}/items/{item_id}")
def remove_service_order_item(
    order_id: str,
    item_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    order = order_service.remove_item(db, ctx, order_id, item_id)
    return order_response(order, detail=True)
