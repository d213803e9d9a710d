"""
api/app.py — FastAPI application factory
==========================================
Creates and configures the FastAPI instance.  All wiring is centralised
here so that `main.py` stays minimal.

CORS
----
All origins are allowed by default (the capture front-end is served from
a different origin during development).  In a production deployment
restrict `allow_origins` to the front-end domain.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from api.session import PersistFn, VisitSession
from assessment.errors import AssessmentError
from assessment.gateway import RetinalRiskAnalyzer
from config import API_TITLE, API_VERSION, CAPTURE_STORAGE_DIR
from utils.logger import get_logger

logger = get_logger("api.app")


async def _assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.user_message})


def create_app(
    analyzer: RetinalRiskAnalyzer | None = None,
    persist: PersistFn | None = None,
    capture_dir: str | None = None,
) -> FastAPI:
    """
    Construct and return the configured FastAPI application.

    This is a *factory function* (rather than a module-level singleton)
    so that tests can create isolated app instances, each with its own
    visit session and, optionally, a stubbed analyzer.

    `persist` receives the visit record on `POST /visit/save` and returns
    the stored row.  Patients and visits live in the external database
    service, so without one the save route answers 503.
    """
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description=(
            "ePWV arterial-stiffness estimation and AI-assisted retinal "
            "stroke-risk assessment. ⚠️ SCREENING AID ONLY — not a diagnostic device."
        ),
    )

    app.state.session = VisitSession()
    app.state.analyzer = analyzer or RetinalRiskAnalyzer()
    app.state.persist = persist
    app.state.capture_dir = capture_dir or CAPTURE_STORAGE_DIR

    # ── CORS ────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],           # Restrict in production!
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AssessmentError, _assessment_error_handler)

    # ── Mount routes ────────────────────────────────────────────────────
    app.include_router(router)

    return app
