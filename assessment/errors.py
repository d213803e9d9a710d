"""
assessment/errors.py — Remote risk-assessment failure taxonomy
================================================================
Every failure of the remote call maps to exactly one of these classes.
Each carries the message shown to the operator and the HTTP status the
service answers with, so routes and the client stay symmetrical:

    429  RateLimitedError         provider throttled the request
    402  PaymentRequiredError     provider quota / credits exhausted
    500  GatewayError             any other non-2xx or transport failure
    500  NoStructuredResultError  2xx but no usable structured payload

None of them are retried automatically; the operator re-triggers.
"""


class AssessmentError(Exception):
    status_code: int = 500
    user_message: str = "Risk assessment failed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.user_message
        super().__init__(self.detail)


class RateLimitedError(AssessmentError):
    status_code = 429
    user_message = "Rate limits exceeded, please try again later."


class PaymentRequiredError(AssessmentError):
    status_code = 402
    user_message = "Payment required, please add funds to your AI workspace."


class GatewayError(AssessmentError):
    status_code = 500
    user_message = "AI gateway error"


class NoStructuredResultError(AssessmentError):
    status_code = 500
    user_message = "No structured result returned from AI"


def error_for_status(status_code: int, detail: str | None = None) -> AssessmentError:
    """Map a non-2xx HTTP status to its assessment error."""
    if status_code == 429:
        return RateLimitedError(detail)
    if status_code == 402:
        return PaymentRequiredError(detail)
    return GatewayError(detail)
