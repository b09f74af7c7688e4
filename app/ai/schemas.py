import uuid
from typing import Literal, Optional

from pydantic import Field, field_validator

from app.core.schemas import CamelModel

Urgency = Literal["low", "medium", "high"]
PartCondition = Literal["good", "worn", "damaged", "critical"]


def new_part_id() -> str:
    return uuid.uuid4().hex[:12]


class ExtractedPart(CamelModel):
    id: str = Field(default_factory=new_part_id)
    part: str
    position: Optional[str] = None
    action: str
    urgency: Urgency
    notes: Optional[str] = None


class ExtractedSymptom(CamelModel):
    symptom: str
    severity: Urgency
    related_parts: list[str] = Field(default_factory=list)

    @field_validator("related_parts", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or []


class DiagnosticExtraction(CamelModel):
    parts: list[ExtractedPart] = Field(default_factory=list)
    symptoms: list[ExtractedSymptom] = Field(default_factory=list)
    summary: str = ""
    recommendations: list[str] = Field(default_factory=list)


class PlateOCRResult(CamelModel):
    plate: Optional[str] = None
    confidence: float = Field(default=0, ge=0, le=1)
    raw_text: str = ""
    suggestions: list[str] = Field(default_factory=list)


class AnalyzedPart(CamelModel):
    name: str
    condition: PartCondition
    notes: str = ""


class ImageAnalysisResult(CamelModel):
    description: str
    parts: list[AnalyzedPart] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
