"""
assessment/gateway.py — Multimodal model call for retinal stroke risk
=======================================================================
Server-side half of the risk assessment: wraps one chat-completions call
to the AI gateway, forcing the model to answer through the
`assess_stroke_risk` function so the reply is structured, not free text.

⚠️  AI output supplements, and never replaces, clinical judgement.
"""

import json

import httpx
from pydantic import ValidationError

from assessment.errors import GatewayError, NoStructuredResultError, error_for_status
from assessment.schema import (
    ASSESS_STROKE_RISK_TOOL,
    FORCED_TOOL_CHOICE,
    AssessmentMetadata,
    RetinalImageAssessment,
)
from config import AI_GATEWAY_API_KEY, AI_GATEWAY_URL, AI_MODEL, REQUEST_TIMEOUT_SECONDS
from utils.logger import get_logger

logger = get_logger("assessment.gateway")

SYSTEM_PROMPT = """You are an expert ophthalmologist and vascular neurologist AI assistant specialized in retinal imaging analysis for stroke risk assessment.

IMPORTANT: The provided image may be from various sources:
- Direct camera capture (highest quality, controlled lighting)
- Uploaded from photo gallery (quality may vary)
- Medical imaging device export (professional quality)

Analyze the provided retinal macula image for biomarkers associated with cerebrovascular disease and stroke risk.

Assess the following indicators with special attention to image quality:
1. Image quality and suitability for analysis
2. Retinal vessel caliber (arteriolar narrowing, venular widening)
3. Arteriovenous nicking severity
4. Cotton wool spots (retinal nerve fiber layer infarcts)
5. Retinal hemorrhages (dot-blot or flame-shaped)
6. Hard exudates (lipid deposits)
7. Optic disc abnormalities
8. Overall microvascular health

If image quality is poor or unsuitable for medical analysis, clearly state this in your assessment and recommend re-capturing with better lighting/focus.

Be conservative and emphasize that AI analysis supplements but does not replace clinical judgment."""

UPLOAD_NOTE = (
    "\n\nNote: This image was uploaded from storage/gallery rather than captured "
    "directly. Consider potential quality variations."
)

USER_INSTRUCTION = "Analyze this retinal macula image for stroke risk assessment."


def build_system_prompt(metadata: AssessmentMetadata | None) -> str:
    if metadata is not None and metadata.source in ("upload", "gallery"):
        return SYSTEM_PROMPT + UPLOAD_NOTE
    return SYSTEM_PROMPT


def build_request_body(
    image_data: str,
    metadata: AssessmentMetadata | None = None,
    model: str = AI_MODEL,
) -> dict:
    """Chat-completions body with the image attached and the tool forced."""
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": build_system_prompt(metadata)},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_INSTRUCTION},
                    {"type": "image_url", "image_url": {"url": image_data}},
                ],
            },
        ],
        "tools": [ASSESS_STROKE_RISK_TOOL],
        "tool_choice": FORCED_TOOL_CHOICE,
    }


def parse_tool_call(payload: dict) -> RetinalImageAssessment:
    """
    Pull the forced function-call arguments out of a completion response.

    Raises NoStructuredResultError if the call is missing or its arguments
    do not satisfy the assessment schema.
    """
    try:
        tool_call = payload["choices"][0]["message"]["tool_calls"][0]
        arguments = tool_call["function"]["arguments"]
    except (KeyError, IndexError, TypeError):
        raise NoStructuredResultError("No tool call returned from AI")

    try:
        if isinstance(arguments, str):
            arguments = json.loads(arguments)
        return RetinalImageAssessment.model_validate(arguments)
    except (json.JSONDecodeError, ValidationError) as e:
        raise NoStructuredResultError(f"Malformed tool call arguments: {e}")


class RetinalRiskAnalyzer:
    """
    One request per `analyze()` call; no retries, no queueing.

    `transport` lets tests substitute an `httpx.MockTransport`.
    """

    def __init__(
        self,
        api_key: str | None = AI_GATEWAY_API_KEY,
        url: str = AI_GATEWAY_URL,
        model: str = AI_MODEL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api_key = api_key
        self._url = url
        self._model = model
        self._timeout = timeout
        self._transport = transport

    def analyze(
        self,
        image_data: str,
        metadata: AssessmentMetadata | None = None,
    ) -> RetinalImageAssessment:
        if not self._api_key:
            logger.error("AI gateway API key is not configured.")
            raise GatewayError("AI_GATEWAY_API_KEY is not configured")

        body = build_request_body(image_data, metadata, model=self._model)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        logger.info(
            "Requesting retinal risk assessment (model=%s, source=%s)",
            self._model,
            metadata.source if metadata else None,
        )
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("AI gateway unreachable: %s", e)
            raise GatewayError(f"AI gateway unavailable: {e}")

        if resp.status_code >= 300:
            logger.error("AI gateway error: %s %s", resp.status_code, resp.text[:500])
            raise error_for_status(resp.status_code)

        try:
            payload = resp.json()
        except ValueError:
            raise NoStructuredResultError("AI gateway returned a non-JSON body")

        assessment = parse_tool_call(payload)
        logger.info(
            "Assessment received: risk=%s (%.0f%%), quality=%.0f, confidence=%.0f",
            assessment.risk_level.value,
            assessment.stroke_risk_percentage,
            assessment.image_quality_score,
            assessment.confidence,
        )
        return assessment
