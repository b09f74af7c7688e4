from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.v1.common import TenantResponse
from app.core.schemas import CamelModel
from app.core.tenancy import TenantContext, get_tenant_context
from app.db.session import get_db
from app.services import tenants as tenant_service

router = APIRouter(tags=["Oficina"])


class TenantUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    trade_name: Optional[str] = None
    cnpj: Optional[str] = Field(default=None, pattern=r"^\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}$")
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)
    zip_code: Optional[str] = None
    logo: Optional[str] = None
    primary_color: Optional[str] = None
    default_markup: Optional[float] = Field(default=None, ge=0)
    default_labor_rate: Optional[float] = Field(default=None, ge=0)


class TenantStatsResponse(CamelModel):
    customers: int
    vehicles: int
    service_orders: int
    pending_orders: int


@router.get("/tenants/me", response_model=TenantResponse)
def get_my_tenant(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return tenant_service.get_tenant(db, ctx)


@router.put("/tenants/me", response_model=TenantResponse)
def update_my_tenant(
    payload: TenantUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return tenant_service.update_tenant(db, ctx, payload.model_dump(exclude_unset=True))


@router.get("/tenants/me/stats", response_model=TenantStatsResponse)
def get_my_tenant_stats(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return tenant_service.get_stats(db, ctx)
