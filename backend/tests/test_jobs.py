import asyncio
import base64

import httpx
from fastapi import BackgroundTasks

from conftest import PDF_BYTES, pdf_response
from sos_relay.config import settings
from sos_relay.routers.jobs import start_job
from sos_relay.schemas.job import JobCreate


class TestStartJob:
    def _body(self, **overrides):
        body = {"companyName": "Acme LLC", "recordId": "REC1", "jurisdiction": "GA"}
        body.update(overrides)
        return body

    def test_accepts_and_queues(self, client, upstream):
        upstream.search_responses = [(200, {"results": []})]
        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 202
        data = r.json()
        assert data["status"] == "QUEUED"
        assert data["jobId"]

    def test_full_relay_runs_after_acknowledgement(self, client, upstream):
        payload = {"results": [{"url": "http://x/profile", "documents": [{"name": "cert", "url": "http://x/cert.pdf"}]}]}
        upstream.search_responses = [(200, payload)]
        upstream.route("http://x/cert.pdf", pdf_response)

        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 202

        assert upstream.search_calls == [{"searchQuery": "Acme LLC", "state": "GA", "liveData": "true"}]
        assert upstream.record_callbacks() == [{**payload, "requestId": "REC1"}]
        files = upstream.file_callbacks()
        assert len(files) == 2
        cert = next(f for f in files if f["sourceUrl"] == "http://x/cert.pdf")
        assert cert["fileName"] == "Acme LLC - cert.pdf"
        assert base64.b64decode(cert["base64Data"]) == PDF_BYTES

    def test_pending_search_exhausts_and_relays_empty_result(self, client, upstream):
        upstream.search_responses = [(200, {"retryId": "abc"})]

        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 202

        assert len(upstream.search_calls) == 3
        assert upstream.callbacks == [("record", {"retryId": "abc", "requestId": "REC1"})]

    def test_blocked_document_falls_back_and_job_continues(self, client, upstream):
        payload = {"results": [{"documents": [
            {"name": "bylaws", "url": "http://x/bylaws.pdf"},
            {"name": "cert", "url": "http://x/cert.pdf"},
        ]}]}
        upstream.search_responses = [(200, payload)]
        upstream.route("http://x/bylaws.pdf", lambda r: httpx.Response(403, text="no"))
        upstream.route("http://x/cert.pdf", pdf_response)

        client.post("/v1/sos/jobs", json=self._body())

        files = {f["sourceUrl"]: f for f in upstream.file_callbacks()}
        assert files["http://x/bylaws.pdf"]["urlOnly"] is True
        assert "base64Data" not in files["http://x/bylaws.pdf"]
        assert "base64Data" in files["http://x/cert.pdf"]

    def test_upstream_failure_still_acknowledged(self, client, upstream):
        upstream.search_responses = [(500, {"error": "down"})]
        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 202
        assert upstream.callbacks == []

    def test_credential_failure_aborts_before_callbacks(self, client, upstream):
        upstream.search_responses = [(200, {"results": []})]
        upstream.token_status = 400
        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 202
        assert upstream.callbacks == []

    def test_state_is_accepted_for_jurisdiction(self, client, upstream):
        upstream.search_responses = [(200, {"results": []})]
        body = {"companyName": "Acme LLC", "recordId": "REC1", "state": "FL"}
        r = client.post("/v1/sos/jobs", json=body)
        assert r.status_code == 202
        assert upstream.search_calls[0]["state"] == "FL"

    def test_missing_field_rejected(self, client, upstream):
        body = self._body()
        del body["recordId"]
        r = client.post("/v1/sos/jobs", json=body)
        assert r.status_code == 422
        assert upstream.search_calls == []

    def test_blank_field_rejected(self, client, upstream):
        r = client.post("/v1/sos/jobs", json=self._body(companyName="   "))
        assert r.status_code == 422
        assert upstream.search_calls == []

    def test_api_key_enforced_when_configured(self, client, upstream, monkeypatch):
        monkeypatch.setattr(settings, "inbound_api_key", "inbound-secret")
        upstream.search_responses = [(200, {"results": []})]

        r = client.post("/v1/sos/jobs", json=self._body())
        assert r.status_code == 401

        r = client.post("/v1/sos/jobs", json=self._body(), headers={"x-api-key": "inbound-secret"})
        assert r.status_code == 202


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


class RecordingPipeline:
    def __init__(self):
        self.jobs = []

    async def run_job(self, job):
        self.jobs.append(job)


def test_acknowledgement_precedes_relay():
    pipeline = RecordingPipeline()
    tasks = BackgroundTasks()
    req = JobCreate.model_validate({"companyName": "Acme LLC", "recordId": "REC1", "jurisdiction": "GA"})

    accepted = asyncio.run(start_job(req, tasks, pipeline))

    # The response exists and nothing has run yet.
    assert accepted.status == "QUEUED"
    assert pipeline.jobs == []
    assert len(tasks.tasks) == 1

    asyncio.run(tasks())
    assert len(pipeline.jobs) == 1
    assert pipeline.jobs[0].job_id == accepted.job_id
    assert pipeline.jobs[0].record_id == "REC1"
