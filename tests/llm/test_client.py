"""Tests for the chat completion client."""

from __future__ import annotations

import io
import json
from urllib.error import HTTPError, URLError

import pytest

from docpatch.llm.client import (
    ChatClient,
    Completion,
    InvalidResponseError,
    RateLimitedError,
    TransportError,
)


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def read(self):
        if isinstance(self._payload, bytes):
            return self._payload
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch) -> None:
    for key in ChatClient.ENV_MODEL_KEYS + ChatClient.ENV_BASE_URL_KEYS + ChatClient.ENV_API_KEY_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_client_constructs_request() -> None:
    captured = {}

    def fake_runner(request):
        captured.update(vars(request))
        return Completion(text="response", finish_reason="stop")

    client = ChatClient(
        model="custom-model",
        base_url="http://localhost:8080/v1/",
        temperature=0.15,
        max_tokens=256,
        api_key="secret",
        request_timeout=42.0,
        runner=fake_runner,
    )
    result = client.complete("Hello world", system="system message")

    assert result == Completion(text="response", finish_reason="stop")
    assert captured == {
        "prompt": "Hello world",
        "system": "system message",
        "model": "custom-model",
        "temperature": 0.15,
        "max_tokens": 256,
        "base_url": "http://localhost:8080/v1",
        "api_key": "secret",
        "request_timeout": 42.0,
    }


def test_client_resolves_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("DOCPATCH_LLM_BASE_URL", "https://llm.internal/v1/")
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")

    client = ChatClient()

    assert client.model == "gpt-4o-mini"
    assert client.base_url == "https://llm.internal/v1"
    assert client.api_key == "env-key"


def test_client_defaults() -> None:
    client = ChatClient()

    assert client.model == ChatClient.DEFAULT_MODEL
    assert client.base_url == ChatClient.DEFAULT_BASE_URL
    assert client.api_key is None
    assert client.max_tokens == 512


def test_client_http_posts_payload(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse(
            {
                "choices": [
                    {
                        "message": {"role": "assistant", "content": "Foo does things."},
                        "finish_reason": "stop",
                    }
                ]
            }
        )

    monkeypatch.setattr("docpatch.llm.client.urlopen", fake_urlopen)

    client = ChatClient(
        model="gpt-3.5-turbo",
        base_url="http://localhost:8080/v1",
        api_key="key",
        temperature=0.1,
        max_tokens=128,
        request_timeout=15.0,
    )
    completion = client.complete("Document Foo", system="be brief")

    assert completion == Completion(text="Foo does things.", finish_reason="stop")
    assert captured["url"] == "http://localhost:8080/v1/chat/completions"
    assert captured["headers"]["authorization"] == "Bearer key"
    assert captured["payload"] == {
        "model": "gpt-3.5-turbo",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "Document Foo"},
        ],
        "temperature": 0.1,
        "max_tokens": 128,
    }
    assert captured["timeout"] == 15.0


def test_client_reports_truncated_completion(monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        return FakeResponse({"choices": [{"text": "Foo does", "finish_reason": "length"}]})

    monkeypatch.setattr("docpatch.llm.client.urlopen", fake_urlopen)

    completion = ChatClient(base_url="http://localhost:8080/v1").complete("prompt")

    assert completion.truncated is True
    assert completion.text == "Foo does"


def _http_error(code: int, body: bytes) -> HTTPError:
    return HTTPError("http://localhost/v1/chat/completions", code, "error", {}, io.BytesIO(body))


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (_http_error(429, b"slow down"), RateLimitedError),
        (_http_error(500, b"server error"), TransportError),
        (URLError("connection refused"), TransportError),
    ],
)
def test_client_maps_transport_failures(monkeypatch, error, expected) -> None:
    def fake_urlopen(request, timeout=None):
        raise error

    monkeypatch.setattr("docpatch.llm.client.urlopen", fake_urlopen)

    with pytest.raises(expected) as excinfo:
        ChatClient(base_url="http://localhost/v1").complete("prompt")

    assert excinfo.value.reason in {"rate_limited", "transport"}


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        {"choices": []},
        {"choices": [{"message": {"role": "user", "content": "echo"}}]},
        {"choices": [{"finish_reason": "stop"}]},
    ],
)
def test_client_rejects_invalid_responses(monkeypatch, payload) -> None:
    monkeypatch.setattr("docpatch.llm.client.urlopen", lambda request, timeout=None: FakeResponse(payload))

    with pytest.raises(InvalidResponseError):
        ChatClient(base_url="http://localhost/v1").complete("prompt")
