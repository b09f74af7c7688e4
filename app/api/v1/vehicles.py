import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.ai.gateway import AIGateway, get_ai_gateway
from app.ai.schemas import PlateOCRResult
from app.api.v1.common import VehicleResponse, VehicleWithCustomerResponse, read_image_upload
from app.core.schemas import CamelModel
from app.core.tenancy import TenantContext, get_tenant_context
from app.db.session import get_db
from app.services import vehicles as vehicle_service

logger = logging.getLogger("oficina")
router = APIRouter(tags=["Veiculos"])

FuelType = Literal["GASOLINE", "ETHANOL", "FLEX", "DIESEL", "ELECTRIC", "HYBRID", "GNV"]
Transmission = Literal["MANUAL", "AUTOMATIC", "CVT", "AUTOMATED"]


class VehicleBase(CamelModel):
    chassi: Optional[str] = Field(default=None, max_length=17)
    renavam: Optional[str] = None
    version: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    model_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    color: Optional[str] = None
    engine: Optional[str] = None
    mileage: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class VehicleCreate(VehicleBase):
    customer_id: str
    plate: str = Field(..., min_length=7, max_length=8)
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    fuel_type: FuelType = "FLEX"
    transmission: Transmission = "MANUAL"


class VehicleUpdate(VehicleBase):
    customer_id: Optional[str] = None
    plate: Optional[str] = Field(default=None, min_length=7, max_length=8)
    brand: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None


class PlateLookupResponse(CamelModel):
    ocr: PlateOCRResult
    vehicle: Optional[VehicleWithCustomerResponse] = None
    found: bool
    message: str


@router.get("/vehicles", response_model=list[VehicleResponse])
def list_vehicles(
    search: Optional[str] = Query(default=None),
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return vehicle_service.list_vehicles(db, ctx, search=search, customer_id=customer_id)


@router.get("/vehicles/plate/{plate}", response_model=VehicleWithCustomerResponse)
def get_vehicle_by_plate(
    plate: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return vehicle_service.get_by_plate(db, ctx, plate)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleWithCustomerResponse)
def get_vehicle(
    vehicle_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return vehicle_service.get_vehicle(db, ctx, vehicle_id)


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def create_vehicle(
    payload: VehicleCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return vehicle_service.create_vehicle(db, ctx, payload.model_dump())


@router.put("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: str,
    payload: VehicleUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return vehicle_service.update_vehicle(db, ctx, vehicle_id, payload.model_dump(exclude_unset=True))


@router.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(
    vehicle_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    vehicle_service.delete_vehicle(db, ctx, vehicle_id)


@router.post("/vehicles/ocr-plate", response_model=PlateOCRResult)
def recognize_plate(
    image: UploadFile = File(...),
    _: TenantContext = Depends(get_tenant_context),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    data, _mime = read_image_upload(image)
    return gateway.recognize_plate(data)


@router.post("/vehicles/ocr-plate-and-lookup", response_model=PlateLookupResponse)
def recognize_plate_and_lookup(
    image: UploadFile = File(...),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    data, _mime = read_image_upload(image)
    ocr = gateway.recognize_plate(data)
    if not ocr.plate:
        return PlateLookupResponse(
            ocr=ocr,
            found=False,
            message="Nao foi possivel identificar a placa. Tente novamente ou digite manualmente.",
        )
    vehicle = vehicle_service.find_by_plate(db, ctx, ocr.plate)
    logger.info("plate lookup plate=%s found=%s", ocr.plate, bool(vehicle))
    if not vehicle:
        return PlateLookupResponse(
            ocr=ocr,
            found=False,
            message=f"Veiculo com placa {ocr.plate} nao cadastrado. Deseja cadastrar?",
        )
    return PlateLookupResponse(
        ocr=ocr,
        vehicle=VehicleWithCustomerResponse.model_validate(vehicle),
        found=True,
        message=f"Veiculo encontrado: {vehicle.brand} {vehicle.model}",
    )
