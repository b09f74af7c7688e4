import io
import unittest
from unittest.mock import MagicMock

import pytest
from PIL import Image

from app.ai.gateway import MOCK_TRANSCRIPTION
from app.core.errors import AIServiceError, BadRequestError, NotFoundError
from app.db.models import ItemType, OSStatus
from app.services import diagnostics, service_orders
from factories import context_for, make_customer_and_vehicle, make_workshop

LEAK_TEXT = "Amortecedor dianteiro esquerdo vazando, precisa trocar"


@pytest.fixture()
def order_setup(db_session):
    tenant, owner = make_workshop(db_session)
    ctx = context_for(owner)
    customer, vehicle = make_customer_and_vehicle(db_session, tenant)
    order = service_orders.create_order(db_session, ctx, {"customer_id": customer.id, "vehicle_id": vehicle.id})
    return ctx, order


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def test_creating_diagnostic_moves_draft_to_diagnosing(db_session, order_setup):
    ctx, order = order_setup
    diagnostic = diagnostics.create_diagnostic(db_session, ctx, order.id)
    db_session.refresh(order)
    assert order.status == OSStatus.DIAGNOSING.value
    assert diagnostic.mechanic_id == ctx.user_id
    assert [d.id for d in diagnostics.list_by_order(db_session, ctx, order.id)] == [diagnostic.id]


def test_text_flow_without_items(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    assert result["items_created"] == 0
    stored = diagnostics.get_diagnostic(db_session, ctx, result["diagnostic"].id)
    assert stored.transcription == LEAK_TEXT
    assert stored.extracted_parts[0]["part"] == "Amortecedor"
    assert stored.extracted_parts[0]["id"] == result["extraction"].parts[0].id
    assert stored.extracted_symptoms[0]["relatedParts"] == ["Amortecedor"]
    db_session.refresh(order)
    assert order.status == OSStatus.DIAGNOSING.value


def test_text_too_short(db_session, gateway, order_setup):
    ctx, order = order_setup
    with pytest.raises(BadRequestError):
        diagnostics.process_text(db_session, ctx, gateway, order.id, "  curto   ")


def test_text_flow_with_items_moves_to_quoting(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT, auto_create_items=True)
    assert result["items_created"] == 1
    item = result["items"][0]
    assert item.type == ItemType.PART.value
    assert item.description == "Trocar - Amortecedor dianteiro"
    assert (item.quantity, item.unit_price, item.total_price) == (1, 0, 0)
    assert item.extracted_part_id == result["extraction"].parts[0].id
    db_session.refresh(order)
    assert order.status == OSStatus.QUOTING.value
    assert order.total_price == 0


def test_auto_create_without_parts_keeps_status(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(
        db_session, ctx, gateway, order.id, "carro fazendo barulho na suspensao", auto_create_items=True
    )
    assert result["extraction"].parts == []
    assert (result["items_created"], result["items"]) == (0, [])
    db_session.refresh(order)
    assert order.status == OSStatus.DIAGNOSING.value
    assert order.items == []


def test_selection_by_part_id(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, MOCK_TRANSCRIPTION)
    parts = result["extraction"].parts
    wanted = [parts[2].id, parts[0].id]

    items = diagnostics.create_items_from_extraction(db_session, ctx, result["diagnostic"].id, wanted)
    assert sorted(i.extracted_part_id for i in items) == sorted(wanted)
    assert "Trocar - Pastilhas de freio" in [i.description for i in items]


def test_unknown_part_id_is_rejected(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    with pytest.raises(BadRequestError):
        diagnostics.create_items_from_extraction(db_session, ctx, result["diagnostic"].id, ["0"])
    db_session.refresh(order)
    assert order.items == []


def test_empty_selection_creates_nothing(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    items = diagnostics.create_items_from_extraction(db_session, ctx, result["diagnostic"].id, [])
    assert items == []


def test_items_require_processed_diagnostic(db_session, order_setup):
    ctx, order = order_setup
    diagnostic = diagnostics.create_diagnostic(db_session, ctx, order.id)
    with pytest.raises(BadRequestError):
        diagnostics.create_items_from_extraction(db_session, ctx, diagnostic.id)


def test_materialization_does_not_regress_status(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    service_orders.update_status(db_session, ctx, order.id, "APPROVED")
    diagnostics.create_items_from_extraction(db_session, ctx, result["diagnostic"].id)
    db_session.refresh(order)
    assert order.status == OSStatus.APPROVED.value
    assert len(order.items) == 1


def test_reprocessing_overwrites_extraction(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    diagnostic, extraction = diagnostics.process_transcription(
        db_session, ctx, gateway, result["diagnostic"].id, "pastilhas no limite"
    )
    assert [p["part"] for p in diagnostic.extracted_parts] == ["Pastilhas de freio"]
    assert diagnostic.transcription == "pastilhas no limite"


def test_process_without_transcription(db_session, gateway, order_setup):
    ctx, order = order_setup
    diagnostic = diagnostics.create_diagnostic(db_session, ctx, order.id)
    with pytest.raises(BadRequestError):
        diagnostics.process_transcription(db_session, ctx, gateway, diagnostic.id)


def test_audio_flow_stores_audio_and_transcription(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_audio(
        db_session, ctx, gateway, order.id, b"webm-bytes", "nota.webm", "audio/webm", auto_create_items=True
    )
    diagnostic = result["diagnostic"]
    assert diagnostic.audio_url.startswith("file://")
    assert diagnostic.transcription == MOCK_TRANSCRIPTION
    assert result["items_created"] == 3

    again = diagnostics.transcribe(db_session, ctx, gateway, diagnostic.id)
    assert again.transcription == MOCK_TRANSCRIPTION


def test_failed_extraction_keeps_transcription(db_session, order_setup):
    ctx, order = order_setup
    failing = MagicMock()
    failing.transcribe.return_value = "amortecedor vazando muito"
    failing.extract.side_effect = AIServiceError("OpenAI erro HTTP 500: boom", status_code=500)

    with pytest.raises(AIServiceError):
        diagnostics.process_audio(db_session, ctx, failing, order.id, b"audio", "a.webm", "audio/webm")
    stored = diagnostics.list_by_order(db_session, ctx, order.id)[0]
    assert stored.transcription == "amortecedor vazando muito"
    assert stored.extracted_parts is None


def test_image_flow(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_image(
        db_session, ctx, gateway, order.id, _png_bytes(), "freio.png", "image/png", auto_create_items=True
    )
    diagnostic = result["diagnostic"]
    assert diagnostic.source == "image"
    assert diagnostic.image_analysis["parts"][0]["condition"] == "worn"
    assert result["items"][0].description == "Verificar - Pastilha de freio"
    db_session.refresh(order)
    assert order.status == OSStatus.QUOTING.value


def test_other_tenant_cannot_see_diagnostic(db_session, gateway, order_setup):
    ctx, order = order_setup
    result = diagnostics.process_text(db_session, ctx, gateway, order.id, LEAK_TEXT)
    _, stranger = make_workshop(db_session, "Outra Oficina")
    with pytest.raises(NotFoundError):
        diagnostics.get_diagnostic(db_session, context_for(stranger), result["diagnostic"].id)
    with pytest.raises(NotFoundError):
        diagnostics.process_text(db_session, context_for(stranger), gateway, order.id, LEAK_TEXT)


class ItemDescriptionTests(unittest.TestCase):
    def test_without_position(self):
        self.assertEqual(
            diagnostics._item_description({"action": "verificar", "part": "Coifa do câmbio", "position": None}),
            "Verificar - Coifa do câmbio",
        )
