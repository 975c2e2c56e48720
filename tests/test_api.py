"""
HTTP API tests (offline ports injected through the dependency override).
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from agents.errors import InferenceError
from agents.mock import mock_ports
from agents.ports import ReportSink
from api.main import app
from api.routes import get_ports


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def ports():
    return mock_ports()


@pytest.fixture
def client(ports):
    app.dependency_overrides[get_ports] = lambda: ports
    yield TestClient(app)
    app.dependency_overrides.clear()


# ─── System ──────────────────────────────────────────────────────────────────

class TestSystemEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


# ─── Pipeline ────────────────────────────────────────────────────────────────

class TestPipelineEndpoint:
    def test_run_returns_persisted_report(self, client, ports):
        response = client.post(
            "/api/v1/pipeline/run",
            json={"query": "app for music streaming", "thread_id": "api-1", "user_id": "u-1"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["record_id"] in ports.sink.reports
        assert body["degraded_steps"] == []
        assert body["report"]["query"]["thread_id"] == "api-1"
        assert len(body["report"]["competitors"]["competitors"]) == 3
        assert body["report"]["summary"]

    def test_blank_query_is_rejected(self, client, ports):
        response = client.post("/api/v1/pipeline/run", json={"query": "   "})
        assert response.status_code == 422
        assert ports.sink.calls == 0

    def test_missing_query_field_is_rejected(self, client):
        assert client.post("/api/v1/pipeline/run", json={}).status_code == 422

    def test_persistence_failure_is_500(self, client, ports):
        ports.sink.error = RuntimeError("disk full")
        response = client.post("/api/v1/pipeline/run", json={"query": "app for notes"})
        assert response.status_code == 500
        assert "disk full" in response.json()["detail"]


# ─── Reports ─────────────────────────────────────────────────────────────────

class TestReportsEndpoint:
    def test_read_back_report(self, client):
        record_id = client.post("/api/v1/pipeline/run", json={"query": "app for notes"}).json()["record_id"]
        response = client.get(f"/api/v1/reports/{record_id}")
        assert response.status_code == 200
        assert response.json()["report_id"] == record_id

    def test_unknown_report_is_404(self, client):
        assert client.get("/api/v1/reports/nope").status_code == 404

    def test_sink_without_reader_is_501(self, client):
        class WriteOnlySink(ReportSink):
            def persist(self, report):
                return report.report_id

        app.dependency_overrides[get_ports] = lambda: mock_ports(sink=WriteOnlySink())
        assert client.get("/api/v1/reports/anything").status_code == 501


# ─── Error Mapping ───────────────────────────────────────────────────────────

class TestErrorMapping:
    def test_invalid_query_lists_errors(self, client):
        body = client.post("/api/v1/pipeline/run", json={"query": ""}).json()
        assert isinstance(body["detail"], list) and body["detail"]

    def test_unconfigured_inference_is_503(self, client):
        def unavailable():
            raise InferenceError("OPENAI_API_KEY (or OPENROUTER_API_KEY) is not configured")

        app.dependency_overrides[get_ports] = unavailable
        response = client.post("/api/v1/pipeline/run", json={"query": "app for notes"})
        assert response.status_code == 503
        assert "not configured" in response.json()["detail"]
