"""
assessment/schema.py — Structured retinal risk-assessment result
==================================================================
The vision model is forced to answer through the `assess_stroke_risk`
function call; its arguments are validated into `RetinalImageAssessment`.
Wire names are camelCase (what the model and the managed endpoint emit);
Python attributes are snake_case.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"
    INSUFFICIENT_QUALITY = "Insufficient Quality"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class RiskFactors(_WireModel):
    vessel_caliber_abnormalities: Optional[bool] = Field(None, alias="vesselCaliberAbnormalities")
    arteriovenous_nicking: Optional[bool] = Field(None, alias="arteriovenousNicking")
    cotton_wool_spots: Optional[bool] = Field(None, alias="cottonWoolSpots")
    retinal_hemorrhages: Optional[bool] = Field(None, alias="retinalHemorrhages")
    exudates: Optional[bool] = None
    optic_disc_abnormalities: Optional[bool] = Field(None, alias="opticDiscAbnormalities")
    findings: List[str]


class RetinalImageAssessment(_WireModel):
    image_quality_score: float = Field(..., ge=0, le=100, alias="imageQualityScore")
    stroke_risk_percentage: float = Field(..., ge=0, le=100, alias="strokeRiskPercentage")
    risk_level: RiskLevel = Field(..., alias="riskLevel")
    risk_factors: RiskFactors = Field(..., alias="riskFactors")
    clinical_recommendations: List[str] = Field(..., alias="clinicalRecommendations")
    confidence: float = Field(..., ge=0, le=100)


class AssessmentMetadata(_WireModel):
    """Where the image came from; forwarded to the endpoint as-is."""
    source: Optional[Literal["camera", "gallery", "upload"]] = None
    eye: Optional[Literal["left", "right"]] = None
    mode: Optional[Literal["macula", "disc"]] = None


ASSESS_STROKE_RISK = "assess_stroke_risk"

ASSESS_STROKE_RISK_TOOL: dict = {
    "type": "function",
    "function": {
        "name": ASSESS_STROKE_RISK,
        "description": "Provide structured stroke risk assessment from retinal image analysis",
        "parameters": {
            "type": "object",
            "properties": {
                "imageQualityScore": {
                    "type": "number",
                    "description": "Image quality score from 0-100",
                },
                "strokeRiskPercentage": {
                    "type": "number",
                    "description": "Stroke risk percentage from 0-100",
                },
                "riskLevel": {
                    "type": "string",
                    "enum": [level.value for level in RiskLevel],
                    "description": "Categorical risk level",
                },
                "riskFactors": {
                    "type": "object",
                    "properties": {
                        "vesselCaliberAbnormalities": {"type": "boolean"},
                        "arteriovenousNicking": {"type": "boolean"},
                        "cottonWoolSpots": {"type": "boolean"},
                        "retinalHemorrhages": {"type": "boolean"},
                        "exudates": {"type": "boolean"},
                        "opticDiscAbnormalities": {"type": "boolean"},
                        "findings": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["findings"],
                },
                "clinicalRecommendations": {
                    "type": "array",
                    "items": {"type": "string"},
                },
                "confidence": {
                    "type": "number",
                    "description": "Analysis confidence from 0-100",
                },
            },
            "required": [
                "imageQualityScore",
                "strokeRiskPercentage",
                "riskLevel",
                "riskFactors",
                "clinicalRecommendations",
                "confidence",
            ],
        },
    },
}

FORCED_TOOL_CHOICE: dict = {"type": "function", "function": {"name": ASSESS_STROKE_RISK}}
