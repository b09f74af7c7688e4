"""Payloads and upload checks shared by the routers."""
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, UploadFile, status

from app.core.config import settings
from app.core.schemas import CamelModel
from app.db import models
from app.services.images import detect_image_mime
from app.services.service_orders import next_status

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TAX_ID_PATTERN = r"^(\d{3}\.\d{3}\.\d{3}-\d{2}|\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2})$"

AUDIO_CONTENT_TYPES = {
    "audio/webm",
    "audio/mp3",
    "audio/mpeg",
    "audio/wav",
    "audio/x-wav",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
}


class UserResponse(CamelModel):
    id: str
    tenant_id: str
    email: str
    name: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class TenantResponse(CamelModel):
    id: str
    name: str
    trade_name: Optional[str] = None
    cnpj: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    logo: Optional[str] = None
    primary_color: Optional[str] = None
    plan: str
    max_users: int
    max_vehicles: int
    default_markup: float
    default_labor_rate: float
    is_active: bool
    created_at: datetime


class CustomerResponse(CamelModel):
    id: str
    name: str
    cpf_cnpj: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class VehicleResponse(CamelModel):
    id: str
    customer_id: str
    plate: str
    chassi: Optional[str] = None
    renavam: Optional[str] = None
    brand: str
    model: str
    version: Optional[str] = None
    year: Optional[int] = None
    model_year: Optional[int] = None
    color: Optional[str] = None
    fuel_type: str
    transmission: str
    engine: Optional[str] = None
    mileage: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime


class VehicleWithCustomerResponse(VehicleResponse):
    customer: Optional[CustomerResponse] = None


class OSItemResponse(CamelModel):
    id: str
    service_order_id: str
    type: str
    description: str
    part_number: Optional[str] = None
    brand: Optional[str] = None
    quantity: float
    unit_cost: float
    unit_price: float
    total_price: float
    labor_hours: Optional[float] = None
    labor_rate: Optional[float] = None
    diagnostic_id: Optional[str] = None
    extracted_part_id: Optional[str] = None
    created_at: datetime


class DiagnosticResponse(CamelModel):
    id: str
    service_order_id: str
    mechanic_id: str
    source: str
    audio_url: Optional[str] = None
    audio_duration: Optional[int] = None
    image_url: Optional[str] = None
    transcription: Optional[str] = None
    extracted_parts: Optional[list[dict[str, Any]]] = None
    extracted_symptoms: Optional[list[dict[str, Any]]] = None
    summary: Optional[str] = None
    recommendations: Optional[list[str]] = None
    image_analysis: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ServiceOrderResponse(CamelModel):
    id: str
    number: int
    customer_id: str
    vehicle_id: str
    created_by_id: Optional[str] = None
    status: str
    next_status: Optional[str] = None
    mileage_in: Optional[int] = None
    mileage_out: Optional[int] = None
    fuel_level: Optional[int] = None
    entry_notes: Optional[str] = None
    exit_notes: Optional[str] = None
    entry_photos: Optional[list[str]] = None
    exit_photos: Optional[list[str]] = None
    total_parts: float
    total_labor: float
    discount: float
    total_price: float
    approved_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ServiceOrderDetailResponse(ServiceOrderResponse):
    customer: Optional[CustomerResponse] = None
    vehicle: Optional[VehicleResponse] = None
    items: list[OSItemResponse] = []
    diagnostics: list[DiagnosticResponse] = []


def order_response(order: models.ServiceOrder, detail: bool = False) -> ServiceOrderResponse:
    schema = ServiceOrderDetailResponse if detail else ServiceOrderResponse
    response = schema.model_validate(order)
    following = next_status(order.status)
    response.next_status = following.value if following else None
    return response


def read_audio_upload(file: UploadFile) -> bytes:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in AUDIO_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tipo de audio invalido. Use webm, mp3, wav, m4a ou mp4",
        )
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Arquivo de audio vazio")
    if len(data) > settings.MAX_AUDIO_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Audio acima de {settings.MAX_AUDIO_BYTES // (1024 * 1024)}MB",
        )
    return data


def read_image_upload(file: UploadFile) -> tuple[bytes, str]:
    data = file.file.read()
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Imagem acima de {settings.MAX_IMAGE_BYTES // (1024 * 1024)}MB",
        )
    return data, detect_image_mime(data)
