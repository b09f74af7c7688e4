from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.v1.common import EMAIL_PATTERN, TAX_ID_PATTERN, CustomerResponse
from app.core.schemas import CamelModel
from app.core.tenancy import TenantContext, get_tenant_context
from app.db.session import get_db
from app.services import customers as customer_service

router = APIRouter(tags=["Clientes"])


class CustomerBase(CamelModel):
    cpf_cnpj: Optional[str] = Field(default=None, pattern=TAX_ID_PATTERN)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    whatsapp: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)
    zip_code: Optional[str] = None
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)


class CustomerUpdate(CustomerBase):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = Field(default=None, min_length=8)


@router.get("/customers", response_model=list[CustomerResponse])
def list_customers(
    search: Optional[str] = Query(default=None),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return customer_service.list_customers(db, ctx, search)


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return customer_service.get_customer(db, ctx, customer_id)


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return customer_service.create_customer(db, ctx, payload.model_dump())


@router.put("/customers/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return customer_service.update_customer(db, ctx, customer_id, payload.model_dump(exclude_unset=True))


@router.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    customer_service.delete_customer(db, ctx, customer_id)
