import threading

import pytest

from api.session import (
    AnalysisInProgressError,
    NoImageError,
    SaveFailedError,
    SessionError,
    StaleAnalysisError,
    VisitSession,
)
from assessment.errors import RateLimitedError
from assessment.schema import RetinalImageAssessment
from conftest import image_data_uri
from vitals.epwv import VitalReading


@pytest.fixture
def session():
    return VisitSession()


def test_vitals_compute_epwv(session):
    result = session.set_vitals(VitalReading(systolic=140, diastolic=90, age=67))
    assert result is not None
    assert session.snapshot()["vitals"]["mean_arterial_pressure"] == 106.7


def test_rejected_image_keeps_previous(session, valid_jpeg_uri):
    assert session.set_image(valid_jpeg_uri).is_valid
    rejected = session.set_image(image_data_uri(300, 300))
    assert not rejected.is_valid
    assert session.has_image


def test_analyze_requires_image(session):
    with pytest.raises(NoImageError):
        session.analyze(lambda image, meta: None)


def test_failed_analysis_keeps_image_for_retry(session, valid_jpeg_uri, assessment_payload):
    session.set_image(valid_jpeg_uri)

    def throttled(image, meta):
        raise RateLimitedError()

    with pytest.raises(RateLimitedError):
        session.analyze(throttled)
    assert session.status == "error"
    assert session.error_message == RateLimitedError.user_message
    assert session.has_image

    expected = RetinalImageAssessment.model_validate(assessment_payload)
    assert session.analyze(lambda image, meta: expected) is expected
    assert session.status == "complete"


def test_second_analysis_refused_while_pending(session, valid_jpeg_uri, assessment_payload):
    session.set_image(valid_jpeg_uri)
    started = threading.Event()
    release = threading.Event()
    expected = RetinalImageAssessment.model_validate(assessment_payload)

    def slow(image, meta):
        started.set()
        release.wait(timeout=5)
        return expected

    worker = threading.Thread(target=session.analyze, args=(slow,))
    worker.start()
    assert started.wait(timeout=5)
    try:
        with pytest.raises(AnalysisInProgressError):
            session.analyze(slow)
    finally:
        release.set()
        worker.join(timeout=5)
    assert session.assessment is expected


def test_unexpected_failure_allows_retry(session, valid_jpeg_uri, assessment_payload):
    session.set_image(valid_jpeg_uri)

    def broken(image, meta):
        raise KeyError("choices")

    with pytest.raises(KeyError):
        session.analyze(broken)
    assert session.status == "error"
    assert session.error_message == "AI gateway error"
    assert session.has_image

    expected = RetinalImageAssessment.model_validate(assessment_payload)
    assert session.analyze(lambda image, meta: expected) is expected
    assert session.status == "complete"


def _run_slow_analysis(session, expected, during):
    """Start an analysis, call `during()` while it is pending, then let it finish."""
    started = threading.Event()
    release = threading.Event()
    outcome = {}

    def slow(image, meta):
        started.set()
        release.wait(timeout=5)
        return expected

    def target():
        try:
            outcome["result"] = session.analyze(slow)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=target)
    worker.start()
    assert started.wait(timeout=5)
    try:
        during()
    finally:
        release.set()
        worker.join(timeout=5)
    return outcome


def test_result_discarded_when_image_replaced(session, assessment_payload):
    session.set_image(image_data_uri(1024, 1024))
    expected = RetinalImageAssessment.model_validate(assessment_payload)

    outcome = _run_slow_analysis(
        session, expected, lambda: session.set_image(image_data_uri(800, 800))
    )

    assert isinstance(outcome.get("error"), StaleAnalysisError)
    assert session.assessment is None
    assert session.status == "idle"
    assert session.has_image
    assert session.visit_record() == {}

    # The replacement image can be analysed normally afterwards.
    assert session.analyze(lambda image, meta: expected) is expected


def test_result_discarded_when_reset(session, valid_jpeg_uri, assessment_payload):
    session.set_image(valid_jpeg_uri)
    expected = RetinalImageAssessment.model_validate(assessment_payload)

    outcome = _run_slow_analysis(session, expected, session.reset)

    assert isinstance(outcome.get("error"), StaleAnalysisError)
    snap = session.snapshot()
    assert snap["assessment"] is None
    assert snap["status"] == "idle"
    assert snap["has_image"] is False


def test_vitals_keep_bmi_and_history(session):
    session.set_vitals(
        VitalReading(systolic=120, diastolic=80, age=45),
        height_cm=180,
        weight_kg=81,
        diseases=["Hypertension", "Family History"],
    )
    record = session.visit_record()
    assert record["bmi"] == 25.0
    assert record["diseases"] == "Hypertension, Family History"
    assert session.snapshot()["vitals"]["bmi"] == 25.0


def test_save_failure_preserves_state(session, valid_jpeg_uri, assessment_payload):
    session.set_vitals(VitalReading(systolic=120, diastolic=80, age=45))
    session.set_image(valid_jpeg_uri)
    expected = RetinalImageAssessment.model_validate(assessment_payload)
    session.analyze(lambda image, meta: expected)

    def broken_store(record):
        raise ConnectionError("database unreachable")

    with pytest.raises(SaveFailedError) as excinfo:
        session.save(broken_store)
    assert str(excinfo.value) == "Save failed, please try again."
    assert session.has_image
    assert session.assessment is expected

    stored = []
    saved = session.save(lambda record: stored.append(record) or {"id": "visit-1", **record})
    assert saved["id"] == "visit-1"
    assert stored[0]["mean_bp"] == 93.3
    assert stored[0]["stroke_risk_level"] == "Moderate"
    assert session.snapshot()["saved"] is True


def test_save_with_nothing_recorded(session):
    with pytest.raises(SessionError):
        session.save(lambda record: record)


def test_reset(session, valid_jpeg_uri):
    session.set_vitals(VitalReading(systolic=120, diastolic=80, age=45))
    session.set_image(valid_jpeg_uri)
    session.reset()
    snap = session.snapshot()
    assert snap["status"] == "idle"
    assert snap["vitals"] is None
    assert snap["has_image"] is False
