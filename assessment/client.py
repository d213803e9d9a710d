"""
assessment/client.py — Client for the managed risk-assessment endpoint
========================================================================
Posts one validated retinal image to the `/analyze-retinal-image`
function and returns the parsed structured result.

Request body:
    {"imageData": "<data-URI>", "metadata": {"source", "eye", "mode"}}

Status mapping (see assessment/errors.py):
    429 → RateLimitedError, 402 → PaymentRequiredError,
    other non-2xx / transport failure → GatewayError,
    2xx without a valid assessment → NoStructuredResultError.
"""

import httpx
from pydantic import ValidationError

from assessment.errors import GatewayError, NoStructuredResultError, error_for_status
from assessment.schema import AssessmentMetadata, RetinalImageAssessment
from config import REQUEST_TIMEOUT_SECONDS, RISK_ASSESSMENT_API_KEY, RISK_ASSESSMENT_URL
from utils.logger import get_logger

logger = get_logger("assessment.client")


def _error_detail(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    detail = body.get("error") or body.get("detail")
    if detail is None or isinstance(detail, str):
        return detail
    # FastAPI validation errors carry a list of dicts here.
    return str(detail)


class RiskAssessmentClient:
    """Thin synchronous client; one POST per `assess()`."""

    def __init__(
        self,
        endpoint: str = RISK_ASSESSMENT_URL,
        api_key: str | None = RISK_ASSESSMENT_API_KEY,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def assess(
        self,
        image_data: str,
        metadata: AssessmentMetadata | None = None,
    ) -> RetinalImageAssessment:
        body = {
            "imageData": image_data,
            "metadata": metadata.to_wire() if metadata is not None else {},
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.post(self.endpoint, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error("Risk assessment endpoint unreachable: %s", e)
            raise GatewayError(f"Risk assessment service unavailable: {e}")

        if resp.status_code >= 300:
            detail = _error_detail(resp)
            logger.warning("Risk assessment failed: status=%s detail=%s", resp.status_code, detail)
            raise error_for_status(resp.status_code, detail)

        try:
            return RetinalImageAssessment.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error("Risk assessment response did not match schema: %s", e)
            raise NoStructuredResultError(str(e))
