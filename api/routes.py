"""
api/routes.py — FastAPI route definitions
==========================================
All HTTP endpoints are defined here and wired into the app via
`app.include_router(router)` in `api/app.py`.

Endpoint summary
----------------
    GET    /health                 — Liveness probe
    GET    /diseases               — Medical-history checklist
    POST   /vitals/epwv            — MAP → ePWV → risk for one set of vitals
    POST   /images/validate        — Intake gate (format, size, dimensions)
    POST   /analyze-retinal-image  — Gate + remote stroke-risk assessment
    POST   /visit/vitals           — Store vitals, BMI inputs and history
    POST   /visit/image            — Validate & store the visit's retinal image
    POST   /visit/analyze          — Assess the stored image (one at a time)
    GET    /visit                  — Current visit state
    GET    /visit/record           — Derived Visit columns for persistence
    POST   /visit/save             — Hand the record to the visit store
    POST   /visit/reset            — Start a new visit
    GET    /captures/{file_name}   — A stored capture as a data URI
    DELETE /captures/{file_name}   — Remove a stored capture
    GET    /docs                   — Auto-generated Swagger UI (FastAPI built-in)

Remote assessment failures are turned into `{"error": ...}` responses
with status 429 / 402 / 500 by the handler registered in `api/app.py`.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.schemas import (
    ErrorResponse,
    ImageRequest,
    ImageValidationResponse,
    StoredImageResponse,
    VitalsRequest,
    VitalsResponse,
)
from api.session import (
    AnalysisInProgressError,
    NoImageError,
    PersistFn,
    SaveFailedError,
    SessionError,
    StaleAnalysisError,
    VisitSession,
)
from assessment.gateway import RetinalRiskAnalyzer
from camera.capture import delete_image, load_stored_image
from imaging.validator import ImageValidation, validate_image
from records.visit import DISEASES
from utils.logger import get_logger
from vitals.epwv import EpwvResult, VitalReading, assess_vitals

logger = get_logger("api.routes")

router = APIRouter()

INSUFFICIENT_VITALS = (
    "Please complete the vital signs (age and blood pressure) to calculate ePWV."
)

# Documented error bodies for the OpenAPI schema.
IMAGE_REJECTED = {400: {"model": ErrorResponse, "description": "Image failed the intake gate"}}
ASSESSMENT_ERRORS = {
    429: {"model": ErrorResponse, "description": "Rate limited by the AI provider"},
    402: {"model": ErrorResponse, "description": "AI workspace out of credits"},
    500: {"model": ErrorResponse, "description": "Gateway failure or no structured result"},
}


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_session(request: Request) -> VisitSession:
    return request.app.state.session


def get_analyzer(request: Request) -> RetinalRiskAnalyzer:
    return request.app.state.analyzer


def get_persist(request: Request) -> PersistFn | None:
    return request.app.state.persist


def get_capture_dir(request: Request) -> str:
    return request.app.state.capture_dir


def _reading(vitals: VitalsRequest) -> VitalReading:
    return VitalReading(systolic=vitals.systolic, diastolic=vitals.diastolic, age=vitals.age)


def _vitals_response(reading: VitalReading, result: EpwvResult | None) -> VitalsResponse:
    return VitalsResponse(
        mean_arterial_pressure=reading.mean_arterial_pressure,
        epwv=result.to_dict() if result is not None else None,
        message="ePWV calculated." if result is not None else INSUFFICIENT_VITALS,
    )


def _rejection(validation: ImageValidation) -> JSONResponse:
    body = ErrorResponse(error=validation.reason, dimensions=validation.to_dict()["dimensions"])
    return JSONResponse(status_code=400, content=body.model_dump())


# ── Health ────────────────────────────────────────────────────────────────────

@router.get("/health")
async def health():
    """Simple liveness check."""
    return {"status": "ok", "service": "Vascular Risk Screening"}


@router.get("/diseases")
async def diseases():
    """Conditions offered on the medical-history checklist."""
    return {"diseases": DISEASES}


# ── Stateless computations ────────────────────────────────────────────────────

@router.post("/vitals/epwv", response_model=VitalsResponse)
async def compute_epwv(vitals: VitalsRequest):
    """
    Compute MAP, ePWV, risk category and confidence.

    Missing or non-positive fields do not fail the request; `epwv` is null
    and `message` asks for the missing vitals.
    """
    reading = _reading(vitals)
    return _vitals_response(reading, assess_vitals(reading))


@router.post("/images/validate", response_model=ImageValidationResponse)
async def validate(request: ImageRequest):
    """Run the intake gate only; always 200, verdict in the body."""
    return validate_image(request.image_data).to_dict()


@router.post("/analyze-retinal-image", responses={**IMAGE_REJECTED, **ASSESSMENT_ERRORS})
def analyze_retinal_image(
    request: ImageRequest,
    analyzer: RetinalRiskAnalyzer = Depends(get_analyzer),
):
    """
    Validate the image, then request a structured stroke-risk assessment.

    400 on intake rejection; 429 / 402 / 500 on remote failure.
    """
    validation = validate_image(request.image_data)
    if not validation.is_valid:
        return _rejection(validation)

    assessment = analyzer.analyze(request.image_data, request.metadata)
    return assessment.to_wire()


# ── Visit session ─────────────────────────────────────────────────────────────

@router.post("/visit/vitals", response_model=VitalsResponse)
def visit_vitals(vitals: VitalsRequest, session: VisitSession = Depends(get_session)):
    reading = _reading(vitals)
    result = session.set_vitals(
        reading,
        height_cm=vitals.height_cm,
        weight_kg=vitals.weight_kg,
        diseases=vitals.diseases,
    )
    return _vitals_response(reading, result)


@router.post(
    "/visit/image", response_model=ImageValidationResponse, responses=IMAGE_REJECTED
)
def visit_image(request: ImageRequest, session: VisitSession = Depends(get_session)):
    """Keep the image on the visit if it passes the intake gate."""
    validation = session.set_image(request.image_data, request.metadata)
    if not validation.is_valid:
        return _rejection(validation)
    return validation.to_dict()


@router.post("/visit/analyze", responses=ASSESSMENT_ERRORS)
def visit_analyze(
    session: VisitSession = Depends(get_session),
    analyzer: RetinalRiskAnalyzer = Depends(get_analyzer),
):
    """
    Assess the stored image.  Returns 409 while another analysis is
    pending or when the image changed mid-analysis, and 422 if no image
    has been stored yet.
    """
    try:
        assessment = session.analyze(analyzer.analyze)
    except (AnalysisInProgressError, StaleAnalysisError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NoImageError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return assessment.to_wire()


@router.get("/visit")
def visit_state(session: VisitSession = Depends(get_session)):
    return session.snapshot()


@router.get("/visit/record")
def visit_record(session: VisitSession = Depends(get_session)):
    """Columns the caller writes onto the Visit record."""
    record = session.visit_record()
    if not record:
        raise HTTPException(status_code=404, detail="No vitals or assessment recorded yet.")
    return record


@router.post("/visit/save", responses={500: {"model": ErrorResponse}})
def visit_save(
    session: VisitSession = Depends(get_session),
    persist: PersistFn | None = Depends(get_persist),
):
    """
    Persist the visit record.  A failed save keeps the whole draft so the
    operator can retry.
    """
    if persist is None:
        raise HTTPException(status_code=503, detail="Visit storage is not configured.")
    try:
        saved = session.save(persist)
    except SaveFailedError as e:
        body = ErrorResponse(error=e.user_message)
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    except SessionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return saved


@router.post("/visit/reset")
def visit_reset(session: VisitSession = Depends(get_session)):
    session.reset()
    return {"status": "ok", "message": "Visit reset. Ready for the next patient."}


# ── Stored captures ───────────────────────────────────────────────────────────

@router.get("/captures/{file_name}", response_model=StoredImageResponse)
def stored_capture(file_name: str, capture_dir: str = Depends(get_capture_dir)):
    try:
        image_data = load_stored_image(file_name, capture_dir)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Capture not found.")
    return StoredImageResponse(file_name=file_name, image_data=image_data)


@router.delete("/captures/{file_name}")
def remove_capture(file_name: str, capture_dir: str = Depends(get_capture_dir)):
    try:
        deleted = delete_image(file_name, capture_dir)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Capture not found.")
    return {"status": "ok", "file_name": file_name}
