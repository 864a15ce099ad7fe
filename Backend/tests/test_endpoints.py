"""
test_endpoints.py
~~~~~~~~~~~~~~~~~
HTTP surface through FastAPI's TestClient. Celery runs eagerly (memory KV
backend), so a submit drives the whole job before the response returns.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import BASE_SPEC, TEST_CSV, FakeLLM
from specmatch import tasks
from specmatch.api.deps import get_orchestrator, get_search_engine
from specmatch.main import app
from specmatch.services.orchestrator import build_orchestrator
from specmatch.services.search import build_search_engine


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def client(store, llm, monkeypatch):
    monkeypatch.setattr(tasks, "create_kv_store", lambda: store)
    monkeypatch.setattr(tasks, "build_llm_client", lambda: llm)
    app.dependency_overrides[get_orchestrator] = lambda: build_orchestrator(store, llm)
    app.dependency_overrides[get_search_engine] = lambda: build_search_engine(store, llm)
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, base=("spec.txt", BASE_SPEC, "text/plain"), tests=("tests.csv", TEST_CSV, "text/csv"), updated=None):
    files = {}
    if base:
        files["baseFsd"] = base
    if tests:
        files["testsCsv"] = tests
    if updated:
        files["updatedFsd"] = updated
    return client.post("/api/submit", files=files)


class TestJobFlow:

    def test_submit_status_result(self, client, llm):
        response = upload(client)
        assert response.status_code == 200
        job_id = response.json()["jobId"]

        status = client.get(f"/api/status/{job_id}")
        assert status.status_code == 200
        assert status.json() == {"phase": "complete", "message": "Analysis complete", "progress": 100}

        result = client.get(f"/api/result/{job_id}")
        assert result.status_code == 200
        body = result.json()
        assert body["status"] == "ok"
        assert body["coverageMetrics"]["coveredRequirements"] == 1
        assert body["coverageMetrics"]["coveragePercentage"] == 100
        assert body["links"][0]["requirementId"] == "REQ-1"
        assert body["links"][0]["testcaseId"] == "TC-1"

        assert client.get(f"/api/result/{job_id}").status_code == 404
        assert client.get(f"/api/status/{job_id}").status_code == 404

    def test_search_after_result_is_consumed(self, client):
        job_id = upload(client).json()["jobId"]
        client.get(f"/api/result/{job_id}")

        response = client.get("/api/search", params={"query": "malformed", "jobId": job_id})
        assert response.status_code == 200
        hits = response.json()
        assert [h["testCaseId"] for h in hits] == ["TC-1"]
        assert hits[0]["testCaseSource"] == "tests.csv"
        assert hits[0]["confidence"] == 1.0

        everywhere = client.get("/api/search", params={"query": "malformed", "jobId": "all"}).json()
        assert [h["testCaseId"] for h in everywhere] == ["TC-1"]

        assert client.get("/api/search", params={"query": "malformed", "jobIds": f"{job_id},other"}).json() == hits

    def test_process_is_idempotent(self, client, llm):
        job_id = upload(client).json()["jobId"]

        response = client.post("/api/process", json={"jobId": job_id})
        assert response.status_code == 200
        assert response.json()["phase"] == "complete"
        assert len(llm.calls_for("analysis")) == 1

    def test_failed_analysis_is_reported_in_status(self, store, monkeypatch):
        broken = FakeLLM(responder=lambda prompt, purpose: "no json here")
        monkeypatch.setattr(tasks, "create_kv_store", lambda: store)
        monkeypatch.setattr(tasks, "build_llm_client", lambda: broken)
        app.dependency_overrides[get_orchestrator] = lambda: build_orchestrator(store, broken)
        try:
            client = TestClient(app)
            job_id = upload(client).json()["jobId"]
            status = client.get(f"/api/status/{job_id}").json()
        finally:
            app.dependency_overrides.clear()

        assert status["phase"] == "error"
        assert status["progress"] == 0


class TestValidation:

    def test_missing_tests_file(self, client):
        response = upload(client, tests=None)
        assert response.status_code == 400
        assert response.json()["detail"] == "Base FSD and Tests CSV are required"

    def test_pdf_extension_with_text_content(self, client):
        response = upload(client, base=("spec.pdf", b"not a pdf at all", "application/pdf"))
        assert response.status_code == 400

    def test_wrong_table_extension(self, client):
        response = upload(client, tests=("tests.txt", TEST_CSV, "text/plain"))
        assert response.status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/api/status/missing").status_code == 404
        assert client.get("/api/result/missing").status_code == 404
        assert client.post("/api/process", json={"jobId": "missing"}).status_code == 404

    def test_empty_search_query(self, client):
        response = client.get("/api/search", params={"query": "  "})
        assert response.status_code == 400


class TestMisc:

    def test_client_log(self, client, caplog):
        caplog.set_level("INFO")
        response = client.post("/api/log", json={"jobId": "j1", "type": "llm_response", "duration": 12.5})
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert any('"type": "llm_response"' in r.getMessage() for r in caplog.records)

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
