import base64
import json
import logging
import time
from typing import Any, Optional

import httpx

from app.core.errors import AIServiceError

logger = logging.getLogger("oficina.ai")

OPENAI_BASE_URL = "https://api.openai.com/v1"
GOOGLE_VISION_URL = "https://vision.googleapis.com/v1/images:annotate"

TRANSCRIPTION_MODEL = "whisper-1"
TRANSCRIPTION_LANGUAGE = "pt"
EXTRACTION_MODEL = "gpt-4o-mini"
VISION_MODEL = "gpt-4o"


def _extract_error_message(res: httpx.Response) -> str:
    try:
        payload = res.json()
    except ValueError:
        return res.text
    if isinstance(payload, dict):
        err = payload.get("error") or {}
        if isinstance(err, dict):
            return err.get("message") or payload.get("message") or res.text
        return payload.get("message") or res.text
    return res.text


def _raise_for_status(res: httpx.Response, service: str) -> None:
    if res.status_code >= 400:
        message = _extract_error_message(res)
        raise AIServiceError(f"{service} erro HTTP {res.status_code}: {message}", status_code=res.status_code)


def _extract_text(payload: dict) -> str:
    choices = payload.get("choices") or []
    if choices:
        message = (choices[0] or {}).get("message") or {}
        content = message.get("content")
        if isinstance(content, str) and content.strip():
            return content
    raise AIServiceError("Resposta vazia do modelo")


def _parse_json_object(raw_text: str) -> dict:
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise AIServiceError(f"Resposta do modelo nao e JSON valido: {exc}") from exc
    if not isinstance(data, dict):
        raise AIServiceError("Resposta do modelo nao e um objeto JSON")
    return data


def transcribe_audio(
    api_key: str,
    audio: bytes,
    filename: str,
    content_type: str,
    timeout: float,
) -> str:
    start = time.perf_counter()
    try:
        with httpx.Client(headers={"Authorization": f"Bearer {api_key}"}, timeout=timeout) as client:
            res = client.post(
                f"{OPENAI_BASE_URL}/audio/transcriptions",
                data={
                    "model": TRANSCRIPTION_MODEL,
                    "language": TRANSCRIPTION_LANGUAGE,
                    "response_format": "text",
                },
                files={"file": (filename, audio, content_type)},
            )
    except httpx.HTTPError as exc:
        raise AIServiceError(f"Falha na chamada de transcricao: {exc}") from exc
    _raise_for_status(res, "Whisper")
    text = res.text.strip()
    logger.info(
        "transcription done model=%s chars=%s latency_ms=%s",
        TRANSCRIPTION_MODEL,
        len(text),
        int((time.perf_counter() - start) * 1000),
    )
    return text


def request_json_completion(
    api_key: str,
    model: str,
    system_prompt: str,
    user_content: Any,
    timeout: float,
    max_tokens: Optional[int] = None,
) -> tuple[dict, dict[str, Any]]:
    """Chat completion constrained to a JSON object; returns (parsed, meta)."""
    body: dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        "temperature": 0.3,
        "response_format": {"type": "json_object"},
    }
    if max_tokens:
        body["max_tokens"] = max_tokens

    start = time.perf_counter()
    try:
        with httpx.Client(headers={"Authorization": f"Bearer {api_key}"}, timeout=timeout) as client:
            res = client.post(f"{OPENAI_BASE_URL}/chat/completions", json=body)
    except httpx.HTTPError as exc:
        raise AIServiceError(f"Falha na chamada OpenAI: {exc}") from exc
    _raise_for_status(res, "OpenAI")
    try:
        payload = res.json()
    except ValueError as exc:
        raise AIServiceError("Resposta OpenAI ilegivel") from exc

    data = _parse_json_object(_extract_text(payload))
    usage = payload.get("usage") or {}
    meta = {
        "model": payload.get("model", model),
        "input_tokens": usage.get("prompt_tokens"),
        "output_tokens": usage.get("completion_tokens"),
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }
    return data, meta


def build_image_content(prompt: str, image: bytes, mime_type: str) -> list[dict]:
    encoded = base64.b64encode(image).decode("ascii")
    return [
        {"type": "text", "text": prompt},
        {
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{encoded}", "detail": "high"},
        },
    ]


def detect_text(api_key: str, image: bytes, timeout: float) -> str:
    """Google Cloud Vision TEXT_DETECTION; full detected text or ''."""
    body = {
        "requests": [
            {
                "image": {"content": base64.b64encode(image).decode("ascii")},
                "features": [{"type": "TEXT_DETECTION", "maxResults": 10}],
            }
        ]
    }
    try:
        with httpx.Client(timeout=timeout) as client:
            res = client.post(GOOGLE_VISION_URL, params={"key": api_key}, json=body)
    except httpx.HTTPError as exc:
        raise AIServiceError(f"Falha na chamada Google Vision: {exc}") from exc
    _raise_for_status(res, "Google Vision")
    try:
        payload = res.json()
    except ValueError as exc:
        raise AIServiceError("Resposta Google Vision ilegivel") from exc
    responses = payload.get("responses") or [{}]
    annotations = (responses[0] or {}).get("textAnnotations") or []
    if not annotations:
        return ""
    return annotations[0].get("description") or ""
