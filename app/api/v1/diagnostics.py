import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.ai.gateway import AIGateway, get_ai_gateway
from app.ai.schemas import DiagnosticExtraction, ImageAnalysisResult
from app.api.v1.common import DiagnosticResponse, OSItemResponse, read_audio_upload, read_image_upload
from app.core.schemas import CamelModel
from app.core.tenancy import TenantContext, get_tenant_context
from app.db.session import get_db
from app.services import diagnostics as diagnostic_service

logger = logging.getLogger("oficina.diagnostics")
router = APIRouter(tags=["Diagnosticos"])


class DiagnosticCreate(CamelModel):
    service_order_id: str
    audio_url: Optional[str] = None
    audio_duration: Optional[int] = Field(default=None, ge=0)


class ProcessRequest(CamelModel):
    transcription: Optional[str] = None


class CreateItemsRequest(CamelModel):
    selected_parts: Optional[list[str]] = None


class TextDiagnosticRequest(CamelModel):
    text: str
    auto_create_items: bool = False


class ProcessResponse(CamelModel):
    diagnostic: DiagnosticResponse
    extraction: DiagnosticExtraction


class CreateItemsResponse(CamelModel):
    items: list[OSItemResponse]
    items_created: int


class PipelineResponse(CamelModel):
    diagnostic: DiagnosticResponse
    transcription: Optional[str] = None
    extraction: DiagnosticExtraction
    items_created: int = 0
    items: list[OSItemResponse] = []
    analysis: Optional[ImageAnalysisResult] = None


@router.get("/diagnostics/service-order/{order_id}", response_model=list[DiagnosticResponse])
def list_order_diagnostics(
    order_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return diagnostic_service.list_by_order(db, ctx, order_id)


@router.get("/diagnostics/{diagnostic_id}", response_model=DiagnosticResponse)
def get_diagnostic(
    diagnostic_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return diagnostic_service.get_diagnostic(db, ctx, diagnostic_id)


@router.post("/diagnostics", response_model=DiagnosticResponse, status_code=status.HTTP_201_CREATED)
def create_diagnostic(
    payload: DiagnosticCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return diagnostic_service.create_diagnostic(
        db,
        ctx,
        payload.service_order_id,
        audio_url=payload.audio_url,
        audio_duration=payload.audio_duration,
    )


@router.post("/diagnostics/{diagnostic_id}/transcribe", response_model=DiagnosticResponse)
def transcribe_diagnostic(
    diagnostic_id: str,
    audio: Optional[UploadFile] = File(default=None),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    if audio is None:
        return diagnostic_service.transcribe(db, ctx, gateway, diagnostic_id)
    data = read_audio_upload(audio)
    return diagnostic_service.transcribe(
        db,
        ctx,
        gateway,
        diagnostic_id,
        data,
        audio.filename or "audio.webm",
        audio.content_type or "audio/webm",
    )


@router.post("/diagnostics/{diagnostic_id}/process", response_model=ProcessResponse)
def process_diagnostic(
    diagnostic_id: str,
    payload: Optional[ProcessRequest] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    manual = payload.transcription if payload else None
    diagnostic, extraction = diagnostic_service.process_transcription(db, ctx, gateway, diagnostic_id, manual)
    return ProcessResponse(diagnostic=DiagnosticResponse.model_validate(diagnostic), extraction=extraction)


@router.post("/diagnostics/{diagnostic_id}/create-items", response_model=CreateItemsResponse)
def create_items(
    diagnostic_id: str,
    payload: Optional[CreateItemsRequest] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    selected = payload.selected_parts if payload else None
    items = diagnostic_service.create_items_from_extraction(db, ctx, diagnostic_id, selected)
    return CreateItemsResponse(
        items=[OSItemResponse.model_validate(item) for item in items],
        items_created=len(items),
    )


def _pipeline_response(result: dict) -> PipelineResponse:
    return PipelineResponse(
        diagnostic=DiagnosticResponse.model_validate(result["diagnostic"]),
        transcription=result["transcription"],
        extraction=result["extraction"],
        items_created=result["items_created"],
        items=[OSItemResponse.model_validate(item) for item in result["items"]],
        analysis=result.get("analysis"),
    )


@router.post("/diagnostics/upload-audio/{order_id}", response_model=PipelineResponse)
def upload_audio(
    order_id: str,
    audio: UploadFile = File(...),
    auto_create_items: bool = Form(default=False, alias="autoCreateItems"),
    audio_duration: Optional[int] = Form(default=None, alias="audioDuration"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    data = read_audio_upload(audio)
    logger.info("audio diagnostic order=%s bytes=%s", order_id, len(data))
    result = diagnostic_service.process_audio(
        db,
        ctx,
        gateway,
        order_id,
        data,
        audio.filename or "audio.webm",
        audio.content_type or "audio/webm",
        audio_duration=audio_duration,
        auto_create_items=auto_create_items,
    )
    return _pipeline_response(result)


@router.post("/diagnostics/text/{order_id}", response_model=PipelineResponse)
def text_diagnostic(
    order_id: str,
    payload: TextDiagnosticRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    result = diagnostic_service.process_text(
        db,
        ctx,
        gateway,
        order_id,
        payload.text,
        auto_create_items=payload.auto_create_items,
    )
    return _pipeline_response(result)


@router.post("/diagnostics/image/{order_id}", response_model=PipelineResponse)
def image_diagnostic(
    order_id: str,
    image: UploadFile = File(...),
    context: Optional[str] = Form(default=None),
    auto_create_items: bool = Form(default=False, alias="autoCreateItems"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    data, mime = read_image_upload(image)
    result = diagnostic_service.process_image(
        db,
        ctx,
        gateway,
        order_id,
        data,
        image.filename or "foto.jpg",
        mime,
        context=context,
        auto_create_items=auto_create_items,
    )
    return _pipeline_response(result)
