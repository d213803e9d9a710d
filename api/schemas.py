"""
api/schemas.py — Pydantic request & response models
=====================================================
Centralises all data-transfer objects so that FastAPI can auto-generate
OpenAPI docs and perform input validation.  The retinal assessment result
itself lives in assessment/schema.py because the client and the gateway
share it.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessment.schema import AssessmentMetadata
from records.visit import DISEASES, parse_diseases


# ── Request Models ───────────────────────────────────────────────────────────


class VitalsRequest(BaseModel):
    """
    Vitals as typed by the operator.  Missing or non-positive values are
    accepted here and reported back as insufficient data rather than 422,
    matching how the form behaves.

    `diseases` takes either a list or the stored comma-separated form; only
    entries from the medical-history checklist are accepted.
    """
    systolic: Optional[float] = Field(None, description="Systolic pressure (mmHg).")
    diastolic: Optional[float] = Field(None, description="Diastolic pressure (mmHg).")
    age: Optional[float] = Field(None, description="Age at time of visit (years).")
    height_cm: Optional[float] = Field(None, description="Height (cm), for BMI.")
    weight_kg: Optional[float] = Field(None, description="Weight (kg), for BMI.")
    diseases: List[str] = Field(default_factory=list, description="Medical history checklist.")

    @field_validator("diseases", mode="before")
    @classmethod
    def split_diseases(cls, value):
        if value is None or isinstance(value, str):
            return parse_diseases(value)
        return value

    @field_validator("diseases")
    @classmethod
    def check_known_diseases(cls, value: List[str]) -> List[str]:
        unknown = [d for d in value if d not in DISEASES]
        if unknown:
            raise ValueError(f"Unknown condition(s): {', '.join(unknown)}")
        return value


class ImageRequest(BaseModel):
    """Wire shape of the managed function: camelCase `imageData`."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData", description="JPEG/PNG data URI.")
    metadata: Optional[AssessmentMetadata] = None


# ── Response Models ──────────────────────────────────────────────────────────


class EpwvData(BaseModel):
    epwv: float
    risk_category: str
    confidence: str
    interpretation: str
    recommendations: List[str]


class VitalsResponse(BaseModel):
    mean_arterial_pressure: Optional[float] = None
    epwv: Optional[EpwvData] = None
    message: str


class DimensionsData(BaseModel):
    width: int
    height: int


class ImageValidationResponse(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    dimensions: Optional[DimensionsData] = None


class ErrorResponse(BaseModel):
    error: str
    dimensions: Optional[DimensionsData] = None


class StoredImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    image_data: str = Field(..., alias="imageData")
