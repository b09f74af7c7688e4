import json
import unittest
from unittest.mock import MagicMock, patch

import httpx

from app.ai import openai_client
from app.ai.gateway import (
    MOCK_PLATES,
    MOCK_TRANSCRIPTION,
    AIGateway,
    GoogleVisionPlateReader,
    MockLanguageBackend,
    MockPlateReader,
    OpenAILanguageBackend,
    build_ai_gateway,
    image_analysis_to_parts,
)
from app.ai.schemas import ImageAnalysisResult
from app.core.config import Settings
from app.core.errors import AIServiceError


def _mock_gateway() -> AIGateway:
    return AIGateway(MockLanguageBackend(), MockPlateReader())


def _response(status_code: int, payload=None, text: str | None = None) -> httpx.Response:
    request = httpx.Request("POST", "https://example.test")
    if payload is not None:
        return httpx.Response(status_code, json=payload, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


class MockExtractionTests(unittest.TestCase):
    def test_leaking_front_shock_absorber(self):
        extraction = _mock_gateway().extract("Amortecedor dianteiro esquerdo vazando, precisa trocar")
        self.assertEqual(len(extraction.parts), 1)
        part = extraction.parts[0]
        self.assertEqual(part.part, "Amortecedor")
        self.assertEqual(part.position, "dianteiro")
        self.assertEqual(part.action, "trocar")
        self.assertEqual(part.urgency, "high")
        self.assertEqual([s.symptom for s in extraction.symptoms], ["Vazamento de óleo"])
        self.assertEqual(extraction.symptoms[0].related_parts, ["Amortecedor"])
        self.assertEqual(extraction.recommendations, ["Trocar Amortecedor dianteiro"])

    def test_canned_transcription_yields_three_parts(self):
        gateway = _mock_gateway()
        transcription = gateway.transcribe(b"audio")
        self.assertEqual(transcription, MOCK_TRANSCRIPTION)
        extraction = gateway.extract(transcription)
        names = [p.part for p in extraction.parts]
        self.assertEqual(names, ["Amortecedor", "Coifa do câmbio", "Pastilhas de freio"])
        self.assertEqual(extraction.parts[1].urgency, "medium")
        self.assertEqual(extraction.parts[2].notes, "No limite de uso")
        self.assertEqual(extraction.summary, "Diagnóstico identificou 3 peça(s) para manutenção.")

    def test_leak_and_worn_pads_yield_two_parts(self):
        extraction = _mock_gateway().extract(
            "O amortecedor está vazando, precisa trocar. As pastilhas de freio estão no limite."
        )
        self.assertEqual([p.part for p in extraction.parts], ["Amortecedor", "Pastilhas de freio"])
        self.assertEqual([p.urgency for p in extraction.parts], ["high", "medium"])
        self.assertEqual(len(extraction.recommendations), 2)

    def test_noise_symptom_without_parts(self):
        extraction = _mock_gateway().extract("carro fazendo barulho na suspensao")
        self.assertEqual(extraction.parts, [])
        self.assertEqual(extraction.symptoms[0].symptom, "Ruído anormal")
        self.assertEqual(extraction.symptoms[0].related_parts, [])

    def test_same_input_same_output_except_ids(self):
        gateway = _mock_gateway()
        first = gateway.extract(MOCK_TRANSCRIPTION)
        second = gateway.extract(MOCK_TRANSCRIPTION)
        self.assertEqual(
            first.model_dump(exclude={"parts": {"__all__": {"id"}}}),
            second.model_dump(exclude={"parts": {"__all__": {"id"}}}),
        )
        ids = [p.id for p in first.parts] + [p.id for p in second.parts]
        self.assertEqual(len(set(ids)), len(ids))

    def test_model_ids_are_replaced(self):
        language = MagicMock()
        language.extract.return_value = {
            "parts": [{"id": "0", "part": "Vela", "action": "trocar", "urgency": "low"}],
            "symptoms": [],
            "summary": "ok",
            "recommendations": [],
        }
        extraction = AIGateway(language, MockPlateReader()).extract("texto qualquer")
        self.assertNotEqual(extraction.parts[0].id, "0")

    def test_invalid_urgency_is_rejected(self):
        language = MagicMock()
        language.extract.return_value = {"parts": [{"part": "Vela", "action": "trocar", "urgency": "urgente"}]}
        with self.assertRaises(AIServiceError):
            AIGateway(language, MockPlateReader()).extract("texto qualquer")


class MockPlateTests(unittest.TestCase):
    def test_plate_depends_only_on_image_bytes(self):
        gateway = _mock_gateway()
        first = gateway.recognize_plate(b"foto-1")
        again = gateway.recognize_plate(b"foto-1")
        self.assertEqual(first.plate, again.plate)
        self.assertIn(first.plate, MOCK_PLATES)
        self.assertEqual(first.confidence, 0.9)
        self.assertNotIn(first.plate, first.suggestions)

    def test_empty_ocr_text(self):
        reader = MagicMock()
        reader.read_text.return_value = ""
        result = AIGateway(MockLanguageBackend(), reader).recognize_plate(b"x")
        self.assertIsNone(result.plate)
        self.assertEqual(result.confidence, 0)
        self.assertEqual(result.suggestions, [])


class ImageAnalysisTests(unittest.TestCase):
    def test_parts_in_good_condition_are_skipped(self):
        analysis = ImageAnalysisResult.model_validate(
            {
                "description": "Disco e pastilha",
                "parts": [
                    {"name": "Disco de freio", "condition": "good"},
                    {"name": "Pastilha de freio", "condition": "worn", "notes": "70%"},
                    {"name": "Mangueira", "condition": "critical"},
                ],
                "issues": [],
                "recommendations": [],
            }
        )
        parts = image_analysis_to_parts(analysis)
        self.assertEqual([p.part for p in parts], ["Pastilha de freio", "Mangueira"])
        self.assertEqual((parts[0].action, parts[0].urgency), ("verificar", "medium"))
        self.assertEqual((parts[1].action, parts[1].urgency), ("trocar", "high"))


class GatewaySelectionTests(unittest.TestCase):
    def _settings(self, provider, openai_key="", google_key=""):
        settings = Settings()
        settings.AI_PROVIDER = provider
        settings.OPENAI_API_KEY = openai_key
        settings.GOOGLE_CLOUD_API_KEY = google_key
        return settings

    def test_auto_without_keys_is_mock(self):
        gateway = build_ai_gateway(self._settings("auto"))
        self.assertIsInstance(gateway.language, MockLanguageBackend)
        self.assertIsInstance(gateway.plates, MockPlateReader)

    def test_auto_mixes_per_capability(self):
        gateway = build_ai_gateway(self._settings("auto", openai_key="sk-test"))
        self.assertIsInstance(gateway.language, OpenAILanguageBackend)
        self.assertIsInstance(gateway.plates, MockPlateReader)

    def test_live_requires_keys(self):
        with self.assertRaises(RuntimeError):
            build_ai_gateway(self._settings("live"))
        gateway = build_ai_gateway(self._settings("live", "sk-test", "g-key"))
        self.assertIsInstance(gateway.plates, GoogleVisionPlateReader)


class OpenAIClientTests(unittest.TestCase):
    @patch("app.ai.openai_client.httpx.Client.post")
    def test_json_completion_parses_content(self, mock_post):
        mock_post.return_value = _response(
            200,
            {
                "model": "gpt-4o-mini",
                "choices": [{"message": {"content": json.dumps({"parts": [], "summary": "ok"})}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 5},
            },
        )
        data, meta = openai_client.request_json_completion("sk", "gpt-4o-mini", "sys", "user", 5)
        self.assertEqual(data["summary"], "ok")
        self.assertEqual(meta["input_tokens"], 10)
        body = mock_post.call_args.kwargs["json"]
        self.assertEqual(body["temperature"], 0.3)
        self.assertEqual(body["response_format"], {"type": "json_object"})

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_malformed_json_raises(self, mock_post):
        mock_post.return_value = _response(200, {"choices": [{"message": {"content": "nao e json"}}]})
        with self.assertRaises(AIServiceError):
            openai_client.request_json_completion("sk", "gpt-4o-mini", "sys", "user", 5)

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_empty_content_raises(self, mock_post):
        mock_post.return_value = _response(200, {"choices": [{"message": {"content": ""}}]})
        with self.assertRaises(AIServiceError):
            openai_client.request_json_completion("sk", "gpt-4o-mini", "sys", "user", 5)

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_http_error_carries_status(self, mock_post):
        mock_post.return_value = _response(429, {"error": {"message": "Rate limit"}})
        with self.assertRaises(AIServiceError) as ctx:
            openai_client.request_json_completion("sk", "gpt-4o-mini", "sys", "user", 5)
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertIn("Rate limit", ctx.exception.message)

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_transcription_returns_stripped_text(self, mock_post):
        mock_post.return_value = _response(200, text="  amortecedor vazando \n")
        text = openai_client.transcribe_audio("sk", b"audio", "a.webm", "audio/webm", 5)
        self.assertEqual(text, "amortecedor vazando")
        self.assertEqual(mock_post.call_args.kwargs["data"]["language"], "pt")

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_vision_without_annotations_is_empty(self, mock_post):
        mock_post.return_value = _response(200, {"responses": [{}]})
        self.assertEqual(openai_client.detect_text("key", b"img", 5), "")

    @patch("app.ai.openai_client.httpx.Client.post")
    def test_vision_returns_full_text(self, mock_post):
        mock_post.return_value = _response(
            200, {"responses": [{"textAnnotations": [{"description": "BRASIL\nABC1D23"}]}]}
        )
        reader = GoogleVisionPlateReader("key", 5)
        result = AIGateway(MockLanguageBackend(), reader).recognize_plate(b"img")
        self.assertEqual(result.plate, "ABC1D23")
