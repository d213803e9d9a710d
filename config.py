"""
config.py — Centralised configuration & clinical constants
===========================================================
Every tunable constant in the project lives here so that the rest of the
codebase can import from a single source of truth.  Secrets and endpoint
URLs are read from the environment so they never live in the source tree.
"""

import os

# ─── Logging ─────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ─── ePWV Risk Stratification ────────────────────────────────────────────────
# Risk category is keyed on the raw ePWV value (m/s), not age-adjusted.
#   ePWV <  8        → Low
#   8 ≤ ePWV < 12    → Medium
#   ePWV ≥ 12        → High
EPWV_MEDIUM_THRESHOLD: float = 8.0
EPWV_HIGH_THRESHOLD: float = 12.0

# ─── ePWV Confidence Envelopes ───────────────────────────────────────────────
# Outside the outer envelope → Low confidence.
# Inside the outer but outside the inner envelope → Moderate.
# Inside the inner envelope → High.
CONFIDENCE_OUTER_AGE = (18, 90)        # years
CONFIDENCE_OUTER_MAP = (60, 120)       # mmHg
CONFIDENCE_INNER_AGE = (25, 80)
CONFIDENCE_INNER_MAP = (70, 110)

# ─── Image Intake ────────────────────────────────────────────────────────────
IMAGE_MAX_BYTES: int = 10 * 1024 * 1024    # Hard cap checked before decoding
IMAGE_MIN_DIMENSION: int = 512             # px, applies to width and height
IMAGE_MAX_DIMENSION: int = 4096

# ─── Retinal Capture ─────────────────────────────────────────────────────────
CAPTURE_DEVICE_INDEX: int = 0
CAPTURE_WIDTH: int = 1920              # High resolution for medical imaging
CAPTURE_HEIGHT: int = 1920
CAPTURE_JPEG_QUALITY: int = 100
CAPTURE_STORAGE_DIR: str = os.getenv("CAPTURE_STORAGE_DIR", "captures")

# ─── Remote Risk Assessment ──────────────────────────────────────────────────
# Managed function endpoint the client talks to (this service's own
# /analyze-retinal-image route when run locally).
RISK_ASSESSMENT_URL: str = os.getenv(
    "RISK_ASSESSMENT_URL", "http://localhost:8000/analyze-retinal-image"
)
RISK_ASSESSMENT_API_KEY: str | None = os.getenv("RISK_ASSESSMENT_API_KEY")

# Multimodal chat-completions gateway used by the server side.
AI_GATEWAY_URL: str = os.getenv(
    "AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions"
)
AI_GATEWAY_API_KEY: str | None = os.getenv("AI_GATEWAY_API_KEY")
AI_MODEL: str = os.getenv("AI_MODEL", "google/gemini-2.5-pro")

# Vision models are slow; one request, no retries.
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60"))

# ─── API ─────────────────────────────────────────────────────────────────────
API_TITLE = "Vascular Risk Screening API"
API_VERSION = "0.1.0"
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
