from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import FakeBackend, sse
from pagesmith.config import get_settings
from pagesmith.errors import TransportError
from pagesmith.main import app
from pagesmith.services.page_generator import PageGenerator, get_page_generator
from pagesmith.services.prompt_store import PromptStore, get_prompt_store

PAGE = "<!DOCTYPE html><html><body>Hi</body></html>"


@pytest.fixture
def prompts_dir(tmp_path):
    prompts = tmp_path / "prompts"
    prompts.mkdir()
    (prompts / "system_prompt.txt").write_text("You write complete HTML pages.")
    (prompts / "layout.txt").write_text("Use a header and a footer.")
    (prompts / "home.txt").write_text("Generate the home page.")
    (prompts / "contact.txt").write_text("Generate a contact page.")
    return prompts


@pytest.fixture
def serve(settings, prompts_dir):
    """Point the app at a fake backend; returns a function that installs one."""
    store = PromptStore(prompts_dir)
    app.dependency_overrides[get_prompt_store] = lambda: store

    def install(backend: FakeBackend) -> TestClient:
        generator = PageGenerator(backend, settings)
        app.dependency_overrides[get_page_generator] = lambda: generator
        return TestClient(app)

    yield install
    app.dependency_overrides.clear()


def test_home_page_is_streamed_clean(serve) -> None:
    backend = FakeBackend([sse("Sure!\n```html\n"), sse(PAGE[:20]), sse(PAGE[20:]), sse("\n```")])
    client = serve(backend)

    response = client.get("/")

    assert response.status_code == 200
    assert response.text == PAGE
    assert response.headers["content-type"].startswith("text/html")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-request-id"]

    request = backend.requests[0]
    assert request.user_prompt == "Generate the home page."
    assert request.system_prompt == "You write complete HTML pages.\n\nUse a header and a footer."


def test_unknown_page_is_404(serve) -> None:
    backend = FakeBackend([sse(PAGE)])
    client = serve(backend)

    response = client.get("/pricing")

    assert response.status_code == 404
    assert response.json()["error"] == "Prompt file not found: pricing.txt"
    assert backend.requests == []


def test_failed_generation_is_502(serve) -> None:
    backend = FakeBackend(
        error=TransportError("HTTP 401", status_code=401),
        complete_error=TransportError("HTTP 401", status_code=401),
    )
    client = serve(backend)

    response = client.get("/contact")

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Page generation failed"
    assert body["request_id"] == response.headers["x-request-id"]


def test_post_body_is_appended_as_user_input(serve) -> None:
    backend = FakeBackend([sse(PAGE)])
    client = serve(backend)

    response = client.post("/contact", content="name=Ada")

    assert response.text == PAGE
    assert backend.requests[0].user_prompt == "Generate a contact page.\n\nUser Input: name=Ada"


def test_empty_generation_returns_empty_page(serve) -> None:
    client = serve(FakeBackend(["data: [DONE]"]))

    response = client.get("/")

    assert response.status_code == 200
    assert response.text == ""


def test_request_id_header_is_reused(serve) -> None:
    client = serve(FakeBackend([sse(PAGE)]))

    response = client.get("/", headers={"X-Request-ID": "abc123"})

    assert response.headers["x-request-id"] == "abc123"


def test_health(serve) -> None:
    client = serve(FakeBackend())

    response = client.get("/api/health")

    assert response.status_code == 200
    settings = get_settings()
    assert response.json() == {"status": "healthy", "backend": settings.ai_backend, "model": settings.ai_model}


def test_static_files(serve, tmp_path, monkeypatch) -> None:
    public = tmp_path / "public"
    public.mkdir()
    (public / "style.css").write_text("body { margin: 0; }")
    monkeypatch.setattr(get_settings(), "public_dir", str(public))
    backend = FakeBackend()
    client = serve(backend)

    response = client.get("/style.css")
    assert response.status_code == 200
    assert response.text == "body { margin: 0; }"
    assert response.headers["content-type"].startswith("text/css")

    assert client.get("/missing.js").status_code == 404
    assert client.post("/style.css").status_code == 405
    assert backend.requests == []
