"""Tests for the assistant gateway against a mocked generateContent endpoint."""
import json

import httpx
import pytest

from cryptofolio.core.config import get_settings
from cryptofolio.core.errors import ConfigurationError, ErrorCode, UpstreamError, ValidationError
from cryptofolio.services.assistant_gateway import (
    ONBOARDING_MESSAGE,
    AssistantGateway,
    GatewayConfig,
    extract_text,
)
from cryptofolio.services.prompt_composer import NO_PORTFOLIO_SENTENCE
from cryptofolio.services.schemas import AssistantRequest

from conftest import make_entry, make_history

TEST_KEY = "AIzaGatewayTestKey000000000000000"


def _ok_body(text="BTC is up."):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class Recorder:
    """MockTransport handler that records requests and returns a canned response."""

    def __init__(self, status_code=200, json_body=None, text=None):
        self.status_code = status_code
        self.json_body = _ok_body() if json_body is None and text is None else json_body
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body)


def _gateway(handler, api_key=TEST_KEY, **overrides):
    config = GatewayConfig(api_key=api_key, **overrides)
    return AssistantGateway(config, transport=httpx.MockTransport(handler))


def _request(message="What's my portfolio worth?", portfolio=None, coins=None, history=None):
    return AssistantRequest(
        message=message,
        portfolio=[make_entry("bitcoin", 1, 50000)] if portfolio is None else portfolio,
        selected_coins=coins or [],
        chat_history=history or [],
    )


@pytest.mark.asyncio
async def test_bitcoin_scenario_single_system_instruction_and_user_message():
    handler = Recorder()
    text = await _gateway(handler).generate(_request())

    assert text == "BTC is up."
    assert len(handler.requests) == 1
    sent = handler.requests[0]
    assert sent.method == "POST"
    assert sent.url.path.endswith("/models/gemini-2.0-flash-exp:generateContent")
    assert sent.url.params["key"] == TEST_KEY

    body = json.loads(sent.content)
    assert body["contents"] == [{"role": "user", "parts": [{"text": "What's my portfolio worth?"}]}]
    system_parts = body["systemInstruction"]["parts"]
    assert len(system_parts) == 1
    assert "BITCOIN" in system_parts[0]["text"]
    assert "$50000.00" in system_parts[0]["text"]
    assert body["generationConfig"] == {
        "temperature": 0.7,
        "topK": 40,
        "topP": 0.95,
        "maxOutputTokens": 1024,
    }


@pytest.mark.asyncio
async def test_upstream_429_raises_upstream_error():
    handler = Recorder(status_code=429, json_body={"error": {"message": "quota"}})
    with pytest.raises(UpstreamError) as exc_info:
        await _gateway(handler).generate(_request())

    assert exc_info.value.status_code == 429
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_HTTP_ERROR


@pytest.mark.asyncio
async def test_missing_credential_raises_before_any_call():
    handler = Recorder()
    with pytest.raises(ConfigurationError):
        await _gateway(handler, api_key=None).generate(_request())
    assert handler.requests == []


@pytest.mark.asyncio
async def test_blank_message_rejected_without_call():
    handler = Recorder()
    with pytest.raises(ValidationError):
        await _gateway(handler).generate(_request(message="   "))
    assert handler.requests == []


@pytest.mark.asyncio
async def test_empty_portfolio_short_circuits():
    handler = Recorder()
    text = await _gateway(handler).generate(_request(portfolio=[]))
    assert text == ONBOARDING_MESSAGE
    assert handler.requests == []


@pytest.mark.asyncio
async def test_empty_portfolio_steers_model_when_not_required():
    handler = Recorder()
    await _gateway(handler, require_portfolio=False).generate(_request(portfolio=[]))

    body = json.loads(handler.requests[0].content)
    assert NO_PORTFOLIO_SENTENCE in body["systemInstruction"]["parts"][0]["text"]


@pytest.mark.asyncio
async def test_history_window_forwarded():
    handler = Recorder()
    await _gateway(handler).generate(_request(history=make_history(12)))

    contents = json.loads(handler.requests[0].content)["contents"]
    assert len(contents) == 11
    assert contents[0]["parts"][0]["text"] == "turn 2"
    assert contents[-1]["role"] == "user"


@pytest.mark.asyncio
async def test_reply_text_returned_untouched():
    raw = "  **Bold** advice\n\n- item one\n"
    handler = Recorder(json_body=_ok_body(raw))
    assert await _gateway(handler).generate(_request()) == raw


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {},
    {"candidates": []},
    {"candidates": [{"finishReason": "SAFETY"}]},
    {"candidates": [{"content": {"parts": []}}]},
])
async def test_malformed_body_raises(body):
    handler = Recorder(json_body=body)
    with pytest.raises(UpstreamError) as exc_info:
        await _gateway(handler).generate(_request())
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_MALFORMED


@pytest.mark.asyncio
async def test_non_json_body_raises():
    handler = Recorder(text="<html>bad gateway</html>")
    with pytest.raises(UpstreamError) as exc_info:
        await _gateway(handler).generate(_request())
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_MALFORMED


@pytest.mark.asyncio
async def test_transport_failure_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        await _gateway(handler).generate(_request())
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_UNREACHABLE


def test_config_from_settings(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", TEST_KEY)
    monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")
    monkeypatch.setenv("CHAT_WINDOW_SIZE", "4")

    config = GatewayConfig.from_settings(get_settings())
    assert config.api_key == TEST_KEY
    assert config.model == "gemini-1.5-pro"
    assert config.window_size == 4
    assert config.timeout_seconds is None
    assert config.endpoint.endswith("/models/gemini-1.5-pro:generateContent")


def test_extract_text_happy_path():
    assert extract_text(_ok_body("hi")) == "hi"
