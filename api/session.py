"""
api/session.py — Visit Session Manager
========================================
Holds the in-progress visit (vitals, ePWV result, captured image, retinal
assessment) between requests so that a failed step never forces the
operator to redo an earlier one:

    * analysis failure  → captured image is kept, analysis can be retried
    * save failure      → everything is kept, save can be retried

Thread safety
-------------
Request handlers may run in a threadpool, so all mutable state is guarded
by `_lock`.  Only one analysis may be in flight at a time; a second
request while one is pending is refused instead of double-submitting.

Every accepted image (and every reset) bumps `_image_generation`.  An
analysis only writes its result back if the generation it started with is
still current, so a slow call can never attach its result to a newer
image or to the next patient's visit.

Lifecycle
---------
    1. `set_vitals(...)`      — compute MAP / ePWV / risk, keep BMI & history.
    2. `set_image(...)`       — validate and keep the retinal image.
    3. `analyze(assess_fn)`   — one remote assessment call.
    4. `visit_record()`       — derived columns for the Visit record.
    5. `save(persist_fn)`     — hand the record to the persistence layer.
    6. `reset()`              — start the next visit.
"""

import threading
from typing import Callable

from assessment.errors import AssessmentError, GatewayError
from assessment.schema import AssessmentMetadata, RetinalImageAssessment
from imaging.validator import ImageValidation, validate_image
from records.visit import assessment_visit_fields, epwv_visit_fields, patient_visit_fields
from utils.logger import get_logger
from vitals.epwv import EpwvResult, VitalReading, assess_vitals

logger = get_logger("api.session")

DISCLAIMER = (
    "⚠️ This is an AI-assisted screening aid — NOT a diagnostic device. "
    "ePWV is an estimate derived from age and blood pressure, and retinal "
    "stroke-risk scores come from a general-purpose vision model. "
    "Clinical interpretation and patient management decisions must be "
    "confirmed by a qualified healthcare professional."
)

AssessFn = Callable[[str, AssessmentMetadata | None], RetinalImageAssessment]
PersistFn = Callable[[dict], dict]


class SessionError(Exception):
    pass


class AnalysisInProgressError(SessionError):
    pass


class NoImageError(SessionError):
    pass


class StaleAnalysisError(SessionError):
    """The image was replaced or the visit reset while the call was running."""


class SaveFailedError(SessionError):
    user_message = "Save failed, please try again."


class VisitSession:
    """
    In-memory draft of one visit.

    Instantiate once at application startup and reuse across requests.
    """

    def __init__(self):
        self._lock = threading.Lock()

        self._status = "idle"               # idle | analyzing | complete | error
        self._error_message = ""
        self._reading: VitalReading | None = None
        self._epwv: EpwvResult | None = None
        self._patient: dict = {}
        self._image_data: str | None = None
        self._metadata: AssessmentMetadata | None = None
        self._image_generation = 0
        self._analysis_token: object | None = None
        self._assessment: RetinalImageAssessment | None = None
        self._saved_record: dict | None = None

        logger.info("VisitSession initialised.")

    # ── Properties ─────────────────────────────────────────────────────────

    @property
    def status(self) -> str:
        with self._lock:
            return self._status

    @property
    def error_message(self) -> str:
        with self._lock:
            return self._error_message

    @property
    def has_image(self) -> bool:
        with self._lock:
            return self._image_data is not None

    @property
    def assessment(self) -> RetinalImageAssessment | None:
        with self._lock:
            return self._assessment

    # ── Vitals ─────────────────────────────────────────────────────────────

    def set_vitals(
        self,
        reading: VitalReading,
        height_cm: float | None = None,
        weight_kg: float | None = None,
        diseases: list[str] | None = None,
    ) -> EpwvResult | None:
        """Store vitals and (re)compute ePWV; None means insufficient data."""
        result = assess_vitals(reading)
        with self._lock:
            self._reading = reading
            self._epwv = result
            self._patient = patient_visit_fields(height_cm, weight_kg, diseases)
        return result

    # ── Image ──────────────────────────────────────────────────────────────

    def set_image(
        self,
        image_data: str,
        metadata: AssessmentMetadata | None = None,
    ) -> ImageValidation:
        """
        Validate and keep an image.  A rejected image leaves the previously
        accepted one (if any) in place.
        """
        validation = validate_image(image_data)
        if not validation.is_valid:
            return validation
        with self._lock:
            self._image_data = image_data
            self._metadata = metadata
            self._image_generation += 1
            # A new image invalidates the previous assessment.
            self._assessment = None
            if self._analysis_token is None:
                self._status = "idle"
                self._error_message = ""
        logger.info("Image stored for analysis (%s).", validation.dimensions)
        return validation

    # ── Analysis ───────────────────────────────────────────────────────────

    def analyze(self, assess_fn: AssessFn) -> RetinalImageAssessment:
        """
        Run one remote assessment on the stored image.

        Raises AnalysisInProgressError if one is already pending,
        NoImageError if nothing has been captured, StaleAnalysisError if the
        image changed before the call returned, and re-raises whatever
        `assess_fn` raised after recording it.
        """
        token = object()
        with self._lock:
            if self._analysis_token is not None:
                logger.warning("Analysis already in progress.")
                raise AnalysisInProgressError("An analysis is already in progress.")
            if self._image_data is None:
                raise NoImageError("Capture or upload an image before analysis.")
            self._analysis_token = token
            self._status = "analyzing"
            self._error_message = ""
            image_data, metadata = self._image_data, self._metadata
            generation = self._image_generation

        try:
            assessment = assess_fn(image_data, metadata)
        except AssessmentError as e:
            self._finish(token, generation, error=e.user_message)
            raise
        except Exception as e:
            logger.exception("Unexpected failure during analysis: %s", e)
            self._finish(token, generation, error=GatewayError.user_message)
            raise

        self._finish(token, generation, assessment=assessment)
        return assessment

    def _finish(
        self,
        token: object,
        generation: int,
        assessment: RetinalImageAssessment | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            owner = self._analysis_token is token
            if owner:
                self._analysis_token = None
            if generation != self._image_generation:
                # reset() already moved status on; only a replaced image
                # leaves the session parked in "analyzing".
                if owner:
                    self._status = "idle"
                stale = True
            else:
                stale = False
                if error is not None:
                    self._status = "error"
                    self._error_message = error
                else:
                    self._assessment = assessment
                    self._status = "complete"

        if stale:
            logger.warning("Image changed during analysis; result discarded.")
            raise StaleAnalysisError(
                "The image changed while it was being analysed. Please analyse again."
            )
        if error is not None:
            logger.error("Analysis error: %s", error)

    # ── Record / persistence ───────────────────────────────────────────────

    def visit_record(self) -> dict:
        """Derived Visit columns from whatever has been computed so far."""
        with self._lock:
            reading, epwv, assessment = self._reading, self._epwv, self._assessment
            patient = dict(self._patient)
        record: dict = {}
        if reading is not None:
            record.update(epwv_visit_fields(reading, epwv))
            record.update(patient)
        if assessment is not None:
            record.update(assessment_visit_fields(assessment))
        return record

    def save(self, persist_fn: PersistFn) -> dict:
        """
        Hand the visit record to the persistence collaborator.

        Any failure there is reported as SaveFailedError; session state is
        left untouched so the save can simply be retried.
        """
        record = self.visit_record()
        if not record:
            raise SessionError("Nothing to save yet.")
        try:
            saved = persist_fn(record)
        except Exception as e:
            logger.error("Visit save failed: %s", e)
            raise SaveFailedError(SaveFailedError.user_message) from e
        with self._lock:
            self._saved_record = saved
        logger.info("Visit saved.")
        return saved

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "status": self._status,
                "message": self._error_message or None,
                "vitals": (
                    {
                        "systolic": self._reading.systolic,
                        "diastolic": self._reading.diastolic,
                        "age": self._reading.age,
                        "mean_arterial_pressure": self._reading.mean_arterial_pressure,
                        "bmi": self._patient.get("bmi"),
                        "diseases": self._patient.get("diseases"),
                    }
                    if self._reading is not None
                    else None
                ),
                "epwv": self._epwv.to_dict() if self._epwv is not None else None,
                "has_image": self._image_data is not None,
                "image_metadata": self._metadata.to_wire() if self._metadata else None,
                "assessment": self._assessment.to_wire() if self._assessment else None,
                "saved": self._saved_record is not None,
                "disclaimer": DISCLAIMER,
            }

    def reset(self) -> None:
        with self._lock:
            self._status = "idle"
            self._error_message = ""
            self._reading = None
            self._epwv = None
            self._patient = {}
            self._image_data = None
            self._metadata = None
            self._image_generation += 1
            self._analysis_token = None
            self._assessment = None
            self._saved_record = None
        logger.info("Session reset.")
