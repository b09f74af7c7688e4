"""Brazilian license plate rules and OCR post-processing.

Two formats are accepted: legacy ``ABC1234`` (dash tolerated on input) and
Mercosul ``ABC1D23``. Plates are stored upper case, without separators.
"""
import re
from typing import Optional

LEGACY_PLATE_RE = re.compile(r"^[A-Z]{3}[0-9]{4}$")
MERCOSUL_PLATE_RE = re.compile(r"^[A-Z]{3}[0-9][A-Z][0-9]{2}$")

_LEGACY_SEARCH_RE = re.compile(r"[A-Z]{3}[0-9]{4}")
_MERCOSUL_SEARCH_RE = re.compile(r"[A-Z]{3}[0-9][A-Z][0-9]{2}")

# OCR confusions between glyphs
LETTER_TO_DIGIT = {"O": "0", "I": "1", "S": "5", "B": "8", "G": "6", "Z": "2"}
DIGIT_TO_LETTER = {digit: letter for letter, digit in LETTER_TO_DIGIT.items()}

MAX_SUGGESTIONS = 3


def normalize_plate(value: str) -> str:
    return re.sub(r"[\s\-]+", "", value or "").upper()


def is_valid_plate(value: str) -> bool:
    plate = normalize_plate(value)
    return bool(LEGACY_PLATE_RE.match(plate) or MERCOSUL_PLATE_RE.match(plate))


def plate_format(value: str) -> Optional[str]:
    plate = normalize_plate(value)
    if MERCOSUL_PLATE_RE.match(plate):
        return "mercosul"
    if LEGACY_PLATE_RE.match(plate):
        return "legacy"
    return None


def _clean_ocr_text(raw_text: str) -> str:
    return re.sub(r"[\s\-]+", "", raw_text or "").upper()


def extract_plate_from_text(raw_text: str) -> Optional[str]:
    """First plate-shaped substring of the OCR text, Mercosul before legacy."""
    text = _clean_ocr_text(raw_text)
    match = _MERCOSUL_SEARCH_RE.search(text)
    if match:
        return match.group(0)
    match = _LEGACY_SEARCH_RE.search(text)
    if match:
        return match.group(0)
    return None


def _as_letter(char: str) -> Optional[str]:
    if char.isalpha():
        return char
    return DIGIT_TO_LETTER.get(char)


def _as_digit(char: str) -> Optional[str]:
    if char.isdigit():
        return char
    return LETTER_TO_DIGIT.get(char)


def _coerce_window(window: str) -> list[str]:
    head = [_as_letter(ch) for ch in window[:3]]
    d3 = _as_digit(window[3])
    tail = [_as_digit(ch) for ch in window[5:7]]
    if any(ch is None for ch in head) or d3 is None or any(ch is None for ch in tail):
        return []
    prefix = "".join(head) + d3
    suffix = "".join(tail)
    candidates = []
    middle_letter = _as_letter(window[4])
    if middle_letter:
        candidates.append(prefix + middle_letter + suffix)
    middle_digit = _as_digit(window[4])
    if middle_digit:
        candidates.append(prefix + middle_digit + suffix)
    return candidates


def generate_plate_suggestions(
    raw_text: str,
    exclude: Optional[str] = None,
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """Alternative plate guesses for a low-confidence scan.

    Every 7-character alphanumeric window of the OCR text is coerced position
    by position through the confusion table; windows that become a valid
    plate are kept, deduplicated, in reading order.
    """
    text = re.sub(r"[^A-Z0-9]", "", (raw_text or "").upper())
    suggestions: list[str] = []
    for start in range(0, len(text) - 6):
        for candidate in _coerce_window(text[start : start + 7]):
            if candidate == exclude or candidate in suggestions:
                continue
            if is_valid_plate(candidate):
                suggestions.append(candidate)
            if len(suggestions) >= limit:
                return suggestions
    return suggestions
