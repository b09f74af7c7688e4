"""Diagnostic pipeline: audio/text/photo in, structured parts out, quote items created.

Every step is persisted before the next one runs, so a failure in extraction
leaves the diagnostic with its audio reference and transcription intact and the
caller can retry ``process`` later.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.ai.gateway import AIGateway, image_analysis_to_parts, image_analysis_to_symptoms
from app.ai.schemas import DiagnosticExtraction, ExtractedPart
from app.core.errors import BadRequestError, NotFoundError
from app.core.tenancy import TenantContext
from app.db import models
from app.db.models import ItemType, OSStatus
from app.services import service_orders
from app.services.storage import StorageError, build_object_name, get_storage_client

logger = logging.getLogger("oficina.diagnostics")

MIN_TEXT_LENGTH = 10


def list_by_order(db: Session, ctx: TenantContext, order_id: str) -> list[models.Diagnostic]:
    order = service_orders.get_order(db, ctx, order_id)
    return (
        db.query(models.Diagnostic)
        .filter(models.Diagnostic.service_order_id == order.id)
        .order_by(models.Diagnostic.created_at.desc())
        .all()
    )


def get_diagnostic(db: Session, ctx: TenantContext, diagnostic_id: str) -> models.Diagnostic:
    diagnostic = (
        db.query(models.Diagnostic)
        .join(models.ServiceOrder, models.ServiceOrder.id == models.Diagnostic.service_order_id)
        .filter(
            models.Diagnostic.id == diagnostic_id,
            models.ServiceOrder.tenant_id == ctx.tenant_id,
            models.ServiceOrder.deleted_at.is_(None),
        )
        .first()
    )
    if not diagnostic:
        raise NotFoundError("Diagnostico nao encontrado")
    return diagnostic


def create_diagnostic(
    db: Session,
    ctx: TenantContext,
    order_id: str,
    audio_url: Optional[str] = None,
    audio_duration: Optional[int] = None,
    source: str = "manual",
) -> models.Diagnostic:
    with service_orders.write_lock(order_id):
        order = service_orders.get_order(db, ctx, order_id, for_update=True)
        diagnostic = models.Diagnostic(
            service_order_id=order.id,
            mechanic_id=ctx.user_id,
            source=source,
            audio_url=audio_url,
            audio_duration=audio_duration,
        )
        db.add(diagnostic)
        if order.status == OSStatus.DRAFT.value:
            service_orders.advance_to(order, OSStatus.DIAGNOSING)
        db.commit()
    db.refresh(diagnostic)
    logger.info("diagnostic created id=%s order=%s source=%s", diagnostic.id, order_id, source)
    return diagnostic


def _store_upload(ctx: TenantContext, kind: str, owner_id: str, content: bytes, filename: str, content_type: str) -> str:
    storage = get_storage_client()
    return storage.upload_bytes(content, build_object_name(ctx.tenant_id, kind, owner_id, filename), content_type)


def transcribe(
    db: Session,
    ctx: TenantContext,
    gateway: AIGateway,
    diagnostic_id: str,
    audio: Optional[bytes] = None,
    filename: str = "audio.webm",
    content_type: str = "audio/webm",
) -> models.Diagnostic:
    diagnostic = get_diagnostic(db, ctx, diagnostic_id)
    if audio:
        diagnostic.audio_url = _store_upload(ctx, "audio", diagnostic.id, audio, filename, content_type)
        db.commit()
    elif diagnostic.audio_url:
        try:
            audio = get_storage_client().download_bytes(diagnostic.audio_url)
        except StorageError as exc:
            raise BadRequestError(str(exc)) from exc
    else:
        raise BadRequestError("Diagnostico sem audio para transcrever")

    transcription = gateway.transcribe(audio, filename, content_type)
    diagnostic.transcription = transcription
    db.commit()
    db.refresh(diagnostic)
    logger.info("diagnostic transcribed id=%s chars=%s", diagnostic.id, len(transcription))
    return diagnostic


def _store_extraction(diagnostic: models.Diagnostic, extraction: DiagnosticExtraction) -> None:
    dumped = extraction.model_dump(by_alias=True)
    diagnostic.extracted_parts = dumped["parts"]
    diagnostic.extracted_symptoms = dumped["symptoms"]
    diagnostic.summary = extraction.summary
    diagnostic.recommendations = extraction.recommendations


def process_transcription(
    db: Session,
    ctx: TenantContext,
    gateway: AIGateway,
    diagnostic_id: str,
    manual_transcription: Optional[str] = None,
) -> tuple[models.Diagnostic, DiagnosticExtraction]:
    diagnostic = get_diagnostic(db, ctx, diagnostic_id)
    text = manual_transcription or diagnostic.transcription
    if not text:
        raise BadRequestError("Nenhuma transcricao disponivel para processar")

    extraction = gateway.extract(text)
    diagnostic.transcription = text
    _store_extraction(diagnostic, extraction)
    db.commit()
    db.refresh(diagnostic)
    logger.info("diagnostic processed id=%s parts=%s", diagnostic.id, len(extraction.parts))
    return diagnostic, extraction


def _item_description(part: dict) -> str:
    label = f"{part['action'].capitalize()} - {part['part']}"
    if part.get("position"):
        label = f"{label} {part['position']}"
    return label


def create_items_from_extraction(
    db: Session,
    ctx: TenantContext,
    diagnostic_id: str,
    selected_part_ids: Optional[list[str]] = None,
) -> list[models.OSItem]:
    """Materialize extracted parts as zero-priced PART items on the order.

    ``selected_part_ids`` of None means every extracted part; an empty list
    selects nothing. Ids not present in the extraction are rejected.
    """
    diagnostic = get_diagnostic(db, ctx, diagnostic_id)
    if diagnostic.extracted_parts is None:
        raise BadRequestError("Diagnostico ainda nao foi processado")

    parts = [ExtractedPart.model_validate(raw).model_dump() for raw in diagnostic.extracted_parts]
    if selected_part_ids is not None:
        known = {part["id"] for part in parts}
        unknown = [part_id for part_id in selected_part_ids if part_id not in known]
        if unknown:
            raise BadRequestError(f"Pecas nao encontradas no diagnostico: {', '.join(unknown)}")
        wanted = set(selected_part_ids)
        parts = [part for part in parts if part["id"] in wanted]

    order_id = diagnostic.service_order_id
    with service_orders.write_lock(order_id):
        order = service_orders.get_order(db, ctx, order_id, for_update=True)
        items = [
            service_orders.insert_item(
                db,
                order,
                {
                    "type": ItemType.PART,
                    "description": _item_description(part),
                    "quantity": 1,
                    "unit_cost": 0,
                    "unit_price": 0,
                    "diagnostic_id": diagnostic.id,
                    "extracted_part_id": part["id"],
                },
            )
            for part in parts
        ]
        service_orders.recompute_totals(db, order)
        service_orders.advance_to(order, OSStatus.QUOTING)
        db.commit()
    for item in items:
        db.refresh(item)
    logger.info("items created from diagnostic=%s count=%s order=%s", diagnostic.id, len(items), order_id)
    return items


def _pipeline_result(
    diagnostic: models.Diagnostic,
    extraction: DiagnosticExtraction,
    items: Optional[list[models.OSItem]],
) -> dict:
    return {
        "diagnostic": diagnostic,
        "transcription": diagnostic.transcription,
        "extraction": extraction,
        "items_created": len(items) if items is not None else 0,
        "items": items or [],
    }


def process_audio(
    db: Session,
    ctx: TenantContext,
    gateway: AIGateway,
    order_id: str,
    audio: bytes,
    filename: str,
    content_type: str,
    audio_duration: Optional[int] = None,
    auto_create_items: bool = False,
) -> dict:
    """Upload, transcribe, extract and optionally materialize, in one call."""
    service_orders.get_order(db, ctx, order_id)
    diagnostic = create_diagnostic(db, ctx, order_id, audio_duration=audio_duration, source="audio")
    diagnostic = transcribe(db, ctx, gateway, diagnostic.id, audio, filename, content_type)
    diagnostic, extraction = process_transcription(db, ctx, gateway, diagnostic.id)
    items = create_items_from_extraction(db, ctx, diagnostic.id) if auto_create_items and extraction.parts else None
    return _pipeline_result(diagnostic, extraction, items)


def process_text(
    db: Session,
    ctx: TenantContext,
    gateway: AIGateway,
    order_id: str,
    text: str,
    auto_create_items: bool = False,
) -> dict:
    text = (text or "").strip()
    if len(text) < MIN_TEXT_LENGTH:
        raise BadRequestError(f"Texto do diagnostico deve ter ao menos {MIN_TEXT_LENGTH} caracteres")
    service_orders.get_order(db, ctx, order_id)
    diagnostic = create_diagnostic(db, ctx, order_id, source="text")
    diagnostic, extraction = process_transcription(db, ctx, gateway, diagnostic.id, manual_transcription=text)
    items = create_items_from_extraction(db, ctx, diagnostic.id) if auto_create_items and extraction.parts else None
    return _pipeline_result(diagnostic, extraction, items)


def process_image(
    db: Session,
    ctx: TenantContext,
    gateway: AIGateway,
    order_id: str,
    image: bytes,
    filename: str,
    mime_type: str,
    context: Optional[str] = None,
    auto_create_items: bool = False,
) -> dict:
    """Photo of a part: vision analysis stored and turned into extracted parts."""
    service_orders.get_order(db, ctx, order_id)
    analysis = gateway.analyze_image(image, mime_type, context)

    diagnostic = create_diagnostic(db, ctx, order_id, source="image")
    diagnostic.image_url = _store_upload(ctx, "images", diagnostic.id, image, filename, mime_type)
    diagnostic.image_analysis = analysis.model_dump(by_alias=True)
    extraction = DiagnosticExtraction(
        parts=image_analysis_to_parts(analysis),
        symptoms=image_analysis_to_symptoms(analysis),
        summary=analysis.description,
        recommendations=analysis.recommendations,
    )
    if context:
        diagnostic.transcription = context
    _store_extraction(diagnostic, extraction)
    db.commit()
    db.refresh(diagnostic)
    logger.info("image diagnostic id=%s parts=%s", diagnostic.id, len(extraction.parts))

    items = create_items_from_extraction(db, ctx, diagnostic.id) if auto_create_items and extraction.parts else None
    result = _pipeline_result(diagnostic, extraction, items)
    result["analysis"] = analysis
    return result
