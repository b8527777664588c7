import json

import httpx
import pytest
from fastapi.testclient import TestClient

from sos_relay.config import Settings
from sos_relay.dependencies import get_pipeline
from sos_relay.main import app
from sos_relay.services.pipeline_service import RelayPipeline

SEARCH_URL = "https://search.example.com/v1/search"
CRM_BASE = "https://crm.example.com"
PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


class FakeUpstream:
    """Stands in for the search API, the CRM and the document hosts."""

    def __init__(self):
        self.search_responses: list[tuple[int, object]] = []
        self.search_calls: list[dict] = []
        self.routes: dict = {}
        self.document_requests: list[httpx.Request] = []
        self.callbacks: list[tuple[str, dict]] = []
        self.callback_headers: list[httpx.Headers] = []
        self.callback_hook = None
        self.token_status = 200
        self.token_requests: list[dict] = []

    def route(self, url: str, handler):
        self.routes[url] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "search.example.com":
            self.search_calls.append(dict(request.url.params))
            if len(self.search_responses) > 1:
                status, body = self.search_responses.pop(0)
            else:
                status, body = self.search_responses[0]
            return httpx.Response(status, json=body)

        if request.url.host == "crm.example.com":
            if request.url.path == "/services/oauth2/token":
                form = dict(httpx.QueryParams(request.content.decode()))
                self.token_requests.append(form)
                if self.token_status != 200:
                    return httpx.Response(self.token_status, json={"error": "invalid_grant"})
                return httpx.Response(
                    200,
                    json={"access_token": f"token-{len(self.token_requests)}", "instance_url": CRM_BASE},
                )
            body = json.loads(request.content)
            kind = "record" if request.url.path.endswith("/callback") else "file"
            self.callbacks.append((kind, body))
            self.callback_headers.append(request.headers)
            status = self.callback_hook(kind, body, request) if self.callback_hook else 200
            return httpx.Response(status, json={"ok": status < 400})

        self.document_requests.append(request)
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    def file_callbacks(self) -> list[dict]:
        return [body for kind, body in self.callbacks if kind == "file"]

    def record_callbacks(self) -> list[dict]:
        return [body for kind, body in self.callbacks if kind == "record"]


def pdf_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Type": "application/pdf"}, content=PDF_BYTES)


def html_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Type": "text/html; charset=utf-8"}, text="<html>Checking your browser</html>")


@pytest.fixture
def test_settings():
    return Settings(
        search_api_endpoint=SEARCH_URL,
        search_api_key="search-key",
        callback_base=CRM_BASE,
        client_id="client",
        client_secret="secret",
        username="relay@example.com",
        password="pw",
        poll_delay_seconds=0,
        max_workers=2,
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def transport(upstream):
    return httpx.MockTransport(upstream.handler)


@pytest.fixture
def pipeline(test_settings, transport):
    return RelayPipeline(test_settings, transport=transport)


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()
