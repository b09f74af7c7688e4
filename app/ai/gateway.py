"""AI gateway: speech-to-text, diagnostic extraction, plate OCR and photo analysis.

Two families of backends exist for each capability, a live one calling the
external APIs and a deterministic local one used for development and demos.
The combination is chosen once, from configuration, by ``build_ai_gateway``.
"""
import hashlib
import logging
from functools import lru_cache
from typing import Optional, Protocol

from pydantic import ValidationError

from app.ai import openai_client, prompts
from app.ai.schemas import (
    DiagnosticExtraction,
    ExtractedPart,
    ExtractedSymptom,
    ImageAnalysisResult,
    PlateOCRResult,
    new_part_id,
)
from app.core.config import Settings, get_settings
from app.core.errors import AIServiceError
from app.services.plates import extract_plate_from_text, generate_plate_suggestions

logger = logging.getLogger("oficina.ai")

PLATE_CONFIDENCE = 0.9

MOCK_TRANSCRIPTION = (
    "Verificando o veículo, o amortecedor dianteiro esquerdo está vazando óleo, precisa trocar. "
    "A coifa do câmbio também está rasgada. Freios estão ok, mas as pastilhas estão no limite, "
    "recomendo trocar em breve."
)
MOCK_PLATES = ("ABC1D23", "XYZ4E56", "BRA2E19")


class LanguageBackend(Protocol):
    def transcribe(self, audio: bytes, filename: str, content_type: str) -> str: ...

    def extract(self, transcription: str) -> dict: ...

    def analyze_image(self, image: bytes, mime_type: str, context: Optional[str]) -> dict: ...


class PlateReader(Protocol):
    def read_text(self, image: bytes) -> str: ...


class OpenAILanguageBackend:
    def __init__(self, api_key: str, timeout: float):
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY nao configurada")
        self.api_key = api_key
        self.timeout = timeout

    def transcribe(self, audio: bytes, filename: str, content_type: str) -> str:
        return openai_client.transcribe_audio(self.api_key, audio, filename, content_type, self.timeout)

    def extract(self, transcription: str) -> dict:
        data, meta = openai_client.request_json_completion(
            self.api_key,
            openai_client.EXTRACTION_MODEL,
            prompts.EXTRACTION_SYSTEM_PROMPT,
            prompts.build_extraction_user_prompt(transcription),
            self.timeout,
        )
        logger.info("extraction meta=%s", meta)
        return data

    def analyze_image(self, image: bytes, mime_type: str, context: Optional[str]) -> dict:
        data, meta = openai_client.request_json_completion(
            self.api_key,
            openai_client.VISION_MODEL,
            prompts.IMAGE_ANALYSIS_SYSTEM_PROMPT,
            openai_client.build_image_content(prompts.build_image_user_prompt(context), image, mime_type),
            self.timeout,
            max_tokens=1000,
        )
        logger.info("image analysis meta=%s", meta)
        return data


class GoogleVisionPlateReader:
    def __init__(self, api_key: str, timeout: float):
        if not api_key:
            raise RuntimeError("GOOGLE_CLOUD_API_KEY nao configurada")
        self.api_key = api_key
        self.timeout = timeout

    def read_text(self, image: bytes) -> str:
        return openai_client.detect_text(self.api_key, image, self.timeout)


class MockLanguageBackend:
    """Keyword heuristics so the system runs without credentials. Not a real extractor."""

    def transcribe(self, audio: bytes, filename: str, content_type: str) -> str:
        logger.warning("Transcricao em modo simulacao (sem credencial OpenAI)")
        return MOCK_TRANSCRIPTION

    def extract(self, transcription: str) -> dict:
        logger.warning("Extracao em modo simulacao (sem credencial OpenAI)")
        text = transcription.lower()
        parts: list[dict] = []
        symptoms: list[dict] = []

        if "amortecedor" in text:
            position = None
            if "dianteiro" in text:
                position = "dianteiro"
            elif "traseiro" in text:
                position = "traseiro"
            parts.append(
                {
                    "part": "Amortecedor",
                    "position": position,
                    "action": "trocar" if "trocar" in text else "verificar",
                    "urgency": "high" if "vazando" in text else "medium",
                    "notes": "Vazamento de óleo detectado" if "vazando" in text else None,
                }
            )

        if "coifa" in text:
            parts.append(
                {
                    "part": "Coifa do câmbio",
                    "action": "trocar" if "rasgada" in text or "trocar" in text else "verificar",
                    "urgency": "medium" if "rasgada" in text else "low",
                }
            )

        if "pastilha" in text:
            parts.append(
                {
                    "part": "Pastilhas de freio",
                    "action": "trocar",
                    "urgency": "medium" if "limite" in text else "low",
                    "notes": "No limite de uso",
                }
            )

        if "vazando" in text or "vazamento" in text:
            symptoms.append(
                {"symptom": "Vazamento de óleo", "severity": "high", "relatedParts": ["Amortecedor"]}
            )

        if "barulho" in text or "ruído" in text or "ruido" in text:
            symptoms.append({"symptom": "Ruído anormal", "severity": "medium"})

        recommendations = []
        for part in parts:
            label = f"{part['action'].capitalize()} {part['part']}"
            if part.get("position"):
                label = f"{label} {part['position']}"
            recommendations.append(label)

        return {
            "parts": parts,
            "symptoms": symptoms,
            "summary": f"Diagnóstico identificou {len(parts)} peça(s) para manutenção.",
            "recommendations": recommendations,
        }

    def analyze_image(self, image: bytes, mime_type: str, context: Optional[str]) -> dict:
        logger.warning("Analise de imagem em modo simulacao (sem credencial OpenAI)")
        return {
            "description": "Imagem de peça automotiva (modo simulação)",
            "parts": [
                {
                    "name": "Pastilha de freio",
                    "condition": "worn",
                    "notes": "Desgaste de aproximadamente 70%, recomendada troca em breve",
                }
            ],
            "issues": ["Desgaste avançado da pastilha", "Possível contaminação por óleo"],
            "recommendations": [
                "Substituir pastilhas de freio em até 5.000 km",
                "Verificar possível vazamento de fluido",
            ],
        }


class MockPlateReader:
    def read_text(self, image: bytes) -> str:
        logger.warning("OCR de placa em modo simulacao (sem credencial Google Cloud)")
        digest = hashlib.sha256(image).digest()
        plate = MOCK_PLATES[digest[0] % len(MOCK_PLATES)]
        return f"Placa do veículo: {plate}\nBRASIL"


class AIGateway:
    def __init__(self, language: LanguageBackend, plates: PlateReader):
        self.language = language
        self.plates = plates

    def transcribe(self, audio: bytes, filename: str = "audio.webm", content_type: str = "audio/webm") -> str:
        return self.language.transcribe(audio, filename, content_type)

    def extract(self, transcription: str) -> DiagnosticExtraction:
        raw = self.language.extract(transcription)
        try:
            extraction = DiagnosticExtraction.model_validate(raw)
        except ValidationError as exc:
            raise AIServiceError(f"Extracao fora do formato esperado: {exc.error_count()} erro(s)") from exc
        # ids are always assigned here, never trusted from the model output
        for part in extraction.parts:
            part.id = new_part_id()
        logger.info(
            "extraction parts=%s symptoms=%s",
            len(extraction.parts),
            len(extraction.symptoms),
        )
        return extraction

    def recognize_plate(self, image: bytes) -> PlateOCRResult:
        raw_text = self.plates.read_text(image)
        if not raw_text:
            return PlateOCRResult(plate=None, confidence=0, raw_text="", suggestions=[])
        plate = extract_plate_from_text(raw_text)
        logger.info("plate ocr result=%s", plate or "nao encontrada")
        return PlateOCRResult(
            plate=plate,
            confidence=PLATE_CONFIDENCE if plate else 0,
            raw_text=raw_text,
            suggestions=generate_plate_suggestions(raw_text, exclude=plate),
        )

    def analyze_image(self, image: bytes, mime_type: str = "image/jpeg", context: Optional[str] = None) -> ImageAnalysisResult:
        raw = self.language.analyze_image(image, mime_type, context)
        try:
            analysis = ImageAnalysisResult.model_validate(raw)
        except ValidationError as exc:
            raise AIServiceError(f"Analise de imagem fora do formato esperado: {exc.error_count()} erro(s)") from exc
        logger.info("image analysis parts=%s", len(analysis.parts))
        return analysis


def build_ai_gateway(settings: Settings) -> AIGateway:
    provider = settings.AI_PROVIDER
    timeout = settings.OPENAI_TIMEOUT_SECONDS
    if provider == "mock":
        return AIGateway(MockLanguageBackend(), MockPlateReader())
    if provider == "live":
        return AIGateway(
            OpenAILanguageBackend(settings.OPENAI_API_KEY, timeout),
            GoogleVisionPlateReader(settings.GOOGLE_CLOUD_API_KEY, timeout),
        )
    language: LanguageBackend = (
        OpenAILanguageBackend(settings.OPENAI_API_KEY, timeout)
        if settings.OPENAI_API_KEY
        else MockLanguageBackend()
    )
    plates: PlateReader = (
        GoogleVisionPlateReader(settings.GOOGLE_CLOUD_API_KEY, timeout)
        if settings.GOOGLE_CLOUD_API_KEY
        else MockPlateReader()
    )
    return AIGateway(language, plates)


@lru_cache
def get_ai_gateway() -> AIGateway:
    gateway = build_ai_gateway(get_settings())
    logger.info(
        "ai gateway language=%s plates=%s",
        type(gateway.language).__name__,
        type(gateway.plates).__name__,
    )
    return gateway


def image_analysis_to_parts(analysis: ImageAnalysisResult) -> list[ExtractedPart]:
    """Parts needing work (anything not in good condition) as extraction entries."""
    urgency = {"worn": "medium", "damaged": "high", "critical": "high"}
    parts: list[ExtractedPart] = []
    for item in analysis.parts:
        if item.condition == "good":
            continue
        parts.append(
            ExtractedPart(
                part=item.name,
                action="verificar" if item.condition == "worn" else "trocar",
                urgency=urgency[item.condition],
                notes=item.notes or None,
            )
        )
    return parts


def image_analysis_to_symptoms(analysis: ImageAnalysisResult) -> list[ExtractedSymptom]:
    related = [item.name for item in analysis.parts if item.condition != "good"]
    return [ExtractedSymptom(symptom=issue, severity="medium", related_parts=related) for issue in analysis.issues]
