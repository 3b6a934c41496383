"""
Test suite for the HTTP API

Exercises the FastAPI app through TestClient with the mock LLM router.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from archrisk.llm_client import LLMResponse
from archrisk.observability.config import TelemetryConfig
from archrisk.observability.init import shutdown_observability
from archrisk.server import create_app


@pytest.fixture
def client(test_config):
    return TestClient(create_app(test_config))


@pytest.fixture
def offline_client(offline_config, monkeypatch):
    monkeypatch.delenv("ARCHRISK_TEST_UNSET_API_KEY", raising=False)
    return TestClient(create_app(offline_config))


@pytest.fixture
def metrics_client(test_config):
    test_config.telemetry = TelemetryConfig()
    test_config.telemetry.tracing.enabled = False
    test_config.telemetry.logging.enabled = False
    yield TestClient(create_app(test_config))
    shutdown_observability()


class TestStatusEndpoints:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {
            "message": "archrisk backend is running",
            "llm": "configured",
        }

    def test_root_without_api_key(self, offline_client):
        assert offline_client.get("/").json()["llm"] == "missing api key"

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["uptime_seconds"] >= 0

    def test_metrics_disabled(self, client):
        assert client.get("/metrics").status_code == 404

    def test_metrics_enabled(self, metrics_client):
        metrics_client.post("/api/analyze", json={"systemName": "Shop"})
        metrics_client.post(
            "/api/analyze", json={"systemName": "Shop", "components": "API, DB"}
        )

        response = metrics_client.get("/metrics")

        assert response.status_code == 200
        assert "archrisk_analysis_rejected_total 1.0" in response.text
        assert "archrisk_analysis_requests_total" in response.text


class TestAnalyzeEndpoint:
    """Test POST /api/analyze"""

    def test_llm_report(self, client, sample_input_data):
        response = client.post("/api/analyze", json=sample_input_data)

        assert response.status_code == 200
        data = response.json()
        assert data["riskScore"] == 7.4
        assert data["metadata"]["systemName"] == "ShopFront"
        assert data["metadata"]["confidenceLevel"] == "High"
        assert len(data["trafficSimulation"]) == 7

    def test_fallback_without_api_key(self, offline_client):
        response = offline_client.post(
            "/api/analyze",
            json={"systemName": "Test", "components": "API,DB", "databases": "single"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["metadata"]["confidenceLevel"] == "Low (Fallback)"
        assert data["metadata"]["generatedBy"] == "Seeded Fallback Engine"
        assert [c["name"] for c in data["components"]] == ["API", "DB"]
        assert sum(c["percentage"] for c in data["riskDistribution"]) == 100

    def test_fallback_is_deterministic(self, offline_client):
        body = {"systemName": "Test", "components": "API,DB", "databases": "single"}

        first = offline_client.post("/api/analyze", json=body).json()
        second = offline_client.post("/api/analyze", json=body).json()
        first.pop("metadata")
        second.pop("metadata")

        assert first == second

    def test_llm_error_falls_back(self, client, sample_input_data):
        router = Mock()
        router.generate = AsyncMock(side_effect=ConnectionError("unreachable"))
        client.app.state.pipeline.llm_router = router

        data = client.post("/api/analyze", json=sample_input_data).json()
        assert data["metadata"]["confidenceLevel"] == "Low (Fallback)"

    def test_malformed_llm_output_falls_back(self, client, sample_input_data):
        router = Mock()
        router.generate = AsyncMock(
            return_value=LLMResponse(content="```json\n{not json\n```", model="m")
        )
        client.app.state.pipeline.llm_router = router

        response = client.post("/api/analyze", json=sample_input_data)

        assert response.status_code == 200
        assert response.json()["metadata"]["confidenceLevel"] == "Low (Fallback)"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"systemName": "Shop"},
            {"components": "API"},
            {"systemName": "", "components": ""},
        ],
    )
    def test_missing_fields(self, client, body):
        response = client.post("/api/analyze", json=body)

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing required fields: systemName or components"
        }

    def test_empty_body_is_missing_fields(self, client):
        response = client.post("/api/analyze")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing required fields: systemName or components"
        }

    @pytest.mark.parametrize("content", ["{bad", '{"systemName": "Shop",', "\xff"])
    def test_malformed_json_body(self, client, content):
        response = client.post(
            "/api/analyze",
            content=content.encode("latin-1"),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Request body must be valid JSON"}

    def test_non_object_body(self, client):
        response = client.post("/api/analyze", json=["Shop", "API"])

        assert response.status_code == 400
        assert "error" in response.json()

    def test_structured_field_rejected(self, client):
        response = client.post(
            "/api/analyze",
            json={"systemName": "Shop", "components": {"api": "gateway"}},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid input fields"

    def test_cors_headers(self, client, sample_input_data):
        response = client.post(
            "/api/analyze",
            json=sample_input_data,
            headers={"Origin": "http://localhost:5173"},
        )

        assert response.headers["access-control-allow-origin"] == "*"
