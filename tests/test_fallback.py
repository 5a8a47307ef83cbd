from __future__ import annotations

import json
import logging

import pytest

from fakes import FakeBackend
from pagesmith.errors import FallbackExhausted, TransportError
from pagesmith.models.request import ChatRequest
from pagesmith.services.fallback import FallbackSupervisor

PAGE = "<!DOCTYPE html><html><body>Hi</body></html>"


def completion(content: str) -> str:
    return json.dumps({
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    })


@pytest.fixture
def request_() -> ChatRequest:
    return ChatRequest(system_prompt="sys", user_prompt="home", model="gpt-test")


@pytest.mark.asyncio
async def test_non_streaming_retry_returns_clean_page(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_body=completion("Here you go!\n```html\n" + PAGE + "\n```"))
    supervisor = FallbackSupervisor(backend)

    content = await supervisor.recover(request_, TransportError("HTTP 500", status_code=500))

    assert content == PAGE
    assert backend.complete_calls == 1


@pytest.mark.asyncio
async def test_retry_strips_reasoning_blocks(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_body=completion("<think>layout first</think>\n" + PAGE))
    supervisor = FallbackSupervisor(backend)

    assert await supervisor.recover(request_, TransportError("boom")) == PAGE


@pytest.mark.asyncio
async def test_partial_content_used_after_timeout(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_error=TransportError("HTTP 503", status_code=503))
    supervisor = FallbackSupervisor(backend)
    timeout = TransportError("read timed out", transient=True)

    content = await supervisor.recover(request_, timeout, partial="Sure!\n```html\n<html><body>partial")

    assert content == "<!DOCTYPE html>\n<html><body>partial"


@pytest.mark.asyncio
async def test_transient_retry_failure_also_allows_partial_content(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_error=TransportError("timed out", transient=True))
    supervisor = FallbackSupervisor(backend)

    content = await supervisor.recover(request_, TransportError("HTTP 502"), partial="<html><p>half")

    assert content == "<!DOCTYPE html>\n<html><p>half"


@pytest.mark.asyncio
async def test_timeout_without_partial_content_is_exhausted(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_error=TransportError("timed out", transient=True))
    supervisor = FallbackSupervisor(backend)

    with pytest.raises(FallbackExhausted, match="no partial content"):
        await supervisor.recover(request_, TransportError("timed out", transient=True))


@pytest.mark.asyncio
async def test_hard_failures_are_exhausted_even_with_partial_content(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_error=TransportError("HTTP 401", status_code=401, body='{"error": "bad key"}'))
    supervisor = FallbackSupervisor(backend)

    with pytest.raises(FallbackExhausted, match="Both streaming and non-streaming") as excinfo:
        await supervisor.recover(request_, TransportError("HTTP 401"), partial="<html>ignored")

    assert isinstance(excinfo.value.__cause__, TransportError)


@pytest.mark.asyncio
async def test_empty_retry_body_counts_as_failure(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_body=completion(""))
    supervisor = FallbackSupervisor(backend)

    with pytest.raises(FallbackExhausted):
        await supervisor.recover(request_, TransportError("HTTP 500"))

    content = await supervisor.recover(
        request_, TransportError("cut off", transient=True), partial="<html><body>kept"
    )
    assert content == "<!DOCTYPE html>\n<html><body>kept"


@pytest.mark.asyncio
async def test_retry_adds_missing_doctype(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_body=completion("<html><body>Hi</body></html>"))
    supervisor = FallbackSupervisor(backend)

    content = await supervisor.recover(request_, TransportError("HTTP 500", status_code=500))

    assert content == "<!DOCTYPE html>\n<html><body>Hi</body></html>"


@pytest.mark.asyncio
async def test_retry_wraps_plain_text_answer(request_: ChatRequest) -> None:
    backend = FakeBackend(complete_body=completion("The page is down.\nTry later."))
    supervisor = FallbackSupervisor(backend)

    content = await supervisor.recover(request_, TransportError("HTTP 500", status_code=500))

    assert content.startswith("<!DOCTYPE html>")
    assert "The page is down.<br>\nTry later." in content


def messages(caplog, level: int):
    return [record.getMessage() for record in caplog.records if record.levelno == level]


@pytest.mark.asyncio
async def test_raw_bodies_are_logged_when_both_attempts_fail(request_: ChatRequest, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="pagesmith")
    backend = FakeBackend(complete_error=TransportError("HTTP 401", status_code=401, body='{"error": "bad key"}'))
    supervisor = FallbackSupervisor(backend)

    with pytest.raises(FallbackExhausted):
        await supervisor.recover(request_, TransportError("HTTP 500", body='{"error": "overloaded"}'))

    warnings = messages(caplog, logging.WARNING)
    assert any(m.startswith("Raw streaming error body") and "overloaded" in m for m in warnings)
    assert any(m.startswith("Raw non-streaming error body") and "bad key" in m for m in warnings)


@pytest.mark.asyncio
async def test_raw_retry_response_is_logged_at_debug(request_: ChatRequest, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="pagesmith")
    body = completion(PAGE)
    supervisor = FallbackSupervisor(FakeBackend(complete_body=body))

    await supervisor.recover(request_, TransportError("HTTP 500"))

    debug = messages(caplog, logging.DEBUG)
    assert any(m.startswith("Raw non-streaming response") and "chatcmpl-1" in m for m in debug)


@pytest.mark.asyncio
async def test_retry_without_content_logs_the_body(request_: ChatRequest, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="pagesmith")
    supervisor = FallbackSupervisor(FakeBackend(complete_body=completion("")))

    with pytest.raises(FallbackExhausted):
        await supervisor.recover(request_, TransportError("HTTP 500"))

    warnings = messages(caplog, logging.WARNING)
    assert any(m.startswith("Non-streaming response without content") for m in warnings)
