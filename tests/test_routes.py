import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from assessment.errors import GatewayError, NoStructuredResultError, PaymentRequiredError, RateLimitedError
from assessment.schema import RetinalImageAssessment
from conftest import encode_image, image_data_uri


class StubAnalyzer:
    """Stands in for RetinalRiskAnalyzer; records calls, never touches the network."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def analyze(self, image_data, metadata=None):
        self.calls.append((image_data, metadata))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def assessment(assessment_payload):
    return RetinalImageAssessment.model_validate(assessment_payload)


@pytest.fixture
def analyzer(assessment):
    return StubAnalyzer(result=assessment)


@pytest.fixture
def client(analyzer):
    return TestClient(create_app(analyzer=analyzer))


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_epwv_endpoint(client):
    resp = client.post("/vitals/epwv", json={"systolic": 140, "diastolic": 90, "age": 67})
    assert resp.status_code == 200
    body = resp.json()
    assert body["mean_arterial_pressure"] == 106.7
    assert body["epwv"]["confidence"] == "High"
    assert body["epwv"]["risk_category"] in {"Low", "Medium", "High"}


def test_epwv_endpoint_insufficient_data(client):
    resp = client.post("/vitals/epwv", json={"systolic": 140, "age": 67})
    assert resp.status_code == 200
    body = resp.json()
    assert body["epwv"] is None
    assert body["mean_arterial_pressure"] is None
    assert "complete the vital signs" in body["message"]


def test_validate_endpoint(client):
    body = client.post("/images/validate", json={"imageData": image_data_uri(400, 400)}).json()
    assert body["is_valid"] is False
    assert body["dimensions"] == {"width": 400, "height": 400}


def test_analyze_success(client, analyzer, valid_jpeg_uri):
    resp = client.post(
        "/analyze-retinal-image",
        json={"imageData": valid_jpeg_uri, "metadata": {"source": "upload", "eye": "left"}},
    )
    assert resp.status_code == 200
    assert resp.json()["riskLevel"] == "Moderate"
    assert len(analyzer.calls) == 1
    assert analyzer.calls[0][1].source == "upload"


def test_analyze_rejects_bad_format_without_calling_model(client, analyzer):
    resp = client.post("/analyze-retinal-image", json={"imageData": "data:image/gif;base64,R0lG"})
    assert resp.status_code == 400
    assert "JPEG or PNG" in resp.json()["error"]
    assert analyzer.calls == []


def test_analyze_rejects_small_image(client, analyzer):
    resp = client.post("/analyze-retinal-image", json={"imageData": image_data_uri(400, 400)})
    assert resp.status_code == 400
    assert resp.json()["dimensions"] == {"width": 400, "height": 400}
    assert analyzer.calls == []


@pytest.mark.parametrize(
    "error, status",
    [
        (RateLimitedError(), 429),
        (PaymentRequiredError(), 402),
        (GatewayError(), 500),
        (NoStructuredResultError(), 500),
    ],
)
def test_analyze_error_mapping(valid_jpeg_uri, error, status):
    client = TestClient(create_app(analyzer=StubAnalyzer(error=error)))
    resp = client.post("/analyze-retinal-image", json={"imageData": valid_jpeg_uri})
    assert resp.status_code == status
    assert resp.json() == {"error": error.user_message}


def test_visit_flow(client, valid_jpeg_uri):
    assert client.get("/visit/record").status_code == 404
    assert client.post("/visit/analyze").status_code == 422

    client.post("/visit/vitals", json={"systolic": 120, "diastolic": 80, "age": 45})
    assert client.post("/visit/image", json={"imageData": valid_jpeg_uri}).status_code == 200
    assert client.post("/visit/analyze").json()["strokeRiskPercentage"] == 14

    state = client.get("/visit").json()
    assert state["status"] == "complete"
    assert state["has_image"] is True

    record = client.get("/visit/record").json()
    assert record["mean_bp"] == 93.3
    assert record["stroke_risk_level"] == "Moderate"

    client.post("/visit/reset")
    assert client.get("/visit").json()["has_image"] is False


def test_visit_image_rejected(client):
    resp = client.post("/visit/image", json={"imageData": image_data_uri(5000, 5000, "png")})
    assert resp.status_code == 400
    assert "too large" in resp.json()["error"].lower()


def test_visit_analysis_failure_keeps_image(valid_jpeg_uri):
    client = TestClient(create_app(analyzer=StubAnalyzer(error=RateLimitedError())))
    client.post("/visit/image", json={"imageData": valid_jpeg_uri})
    resp = client.post("/visit/analyze")
    assert resp.status_code == 429
    state = client.get("/visit").json()
    assert state["status"] == "error"
    assert state["has_image"] is True


def test_visit_analysis_unexpected_error_allows_retry(assessment, valid_jpeg_uri):
    analyzer = StubAnalyzer(error=KeyError("choices"))
    client = TestClient(create_app(analyzer=analyzer), raise_server_exceptions=False)
    client.post("/visit/image", json={"imageData": valid_jpeg_uri})

    assert client.post("/visit/analyze").status_code == 500
    state = client.get("/visit").json()
    assert state["status"] == "error"
    assert state["message"] == GatewayError.user_message

    analyzer.error, analyzer.result = None, assessment
    assert client.post("/visit/analyze").status_code == 200
    assert client.get("/visit").json()["status"] == "complete"


def test_diseases_endpoint(client):
    diseases = client.get("/diseases").json()["diseases"]
    assert "Atrial Fibrillation" in diseases


def test_visit_vitals_with_bmi_and_history(client):
    resp = client.post(
        "/visit/vitals",
        json={
            "systolic": 120,
            "diastolic": 80,
            "age": 45,
            "height_cm": 180,
            "weight_kg": 81,
            "diseases": "Hypertension, Stroke",
        },
    )
    assert resp.status_code == 200
    record = client.get("/visit/record").json()
    assert record["bmi"] == 25.0
    assert record["diseases"] == "Hypertension, Stroke"


def test_visit_vitals_unknown_condition(client):
    resp = client.post("/visit/vitals", json={"age": 45, "diseases": ["Gout"]})
    assert resp.status_code == 422


def test_visit_save_without_store(client):
    client.post("/visit/vitals", json={"systolic": 120, "diastolic": 80, "age": 45})
    assert client.post("/visit/save").status_code == 503


def test_visit_save_failure_then_retry(analyzer, valid_jpeg_uri):
    stored = []
    failures = [ConnectionError("database unreachable")]

    def persist(record):
        if failures:
            raise failures.pop()
        stored.append(record)
        return {"id": "visit-1", **record}

    client = TestClient(create_app(analyzer=analyzer, persist=persist))
    assert client.post("/visit/save").status_code == 422

    client.post("/visit/vitals", json={"systolic": 120, "diastolic": 80, "age": 45})
    client.post("/visit/image", json={"imageData": valid_jpeg_uri})
    client.post("/visit/analyze")

    resp = client.post("/visit/save")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Save failed, please try again."}
    state = client.get("/visit").json()
    assert state["has_image"] is True
    assert state["assessment"]["riskLevel"] == "Moderate"
    assert state["saved"] is False

    resp = client.post("/visit/save")
    assert resp.status_code == 200
    assert resp.json()["id"] == "visit-1"
    assert stored[0]["stroke_risk_level"] == "Moderate"
    assert client.get("/visit").json()["saved"] is True


def test_stored_capture_routes(analyzer, tmp_path):
    name = "retinal_left_macula_1700000000000.jpg"
    (tmp_path / name).write_bytes(encode_image(1024, 1024, ".jpg"))
    client = TestClient(create_app(analyzer=analyzer, capture_dir=str(tmp_path)))

    body = client.get(f"/captures/{name}").json()
    assert body["fileName"] == name
    assert body["imageData"].startswith("data:image/jpeg;base64,")

    assert client.delete(f"/captures/{name}").status_code == 200
    assert not (tmp_path / name).exists()
    assert client.delete(f"/captures/{name}").status_code == 404
    assert client.get(f"/captures/{name}").status_code == 404
    assert client.get("/captures/notes.txt").status_code == 400
