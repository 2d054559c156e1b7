"""Client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

_AUTO_BASE_URL = object()
_AUTO_API_KEY = object()


class GenerationError(RuntimeError):
    """Base class for failures of the documentation generation capability."""

    reason = "error"


class RateLimitedError(GenerationError):
    """The endpoint rejected the request because of rate limiting."""

    reason = "rate_limited"


class InvalidResponseError(GenerationError):
    """The endpoint answered with something that is not usable documentation."""

    reason = "invalid_response"


class TransportError(GenerationError):
    """The request could not be delivered or the endpoint failed."""

    reason = "transport"


@dataclass
class LLMRequest:
    """Represents a chat completion request."""

    prompt: str
    system: Optional[str]
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


@dataclass(frozen=True)
class Completion:
    """Text returned by the model and why it stopped."""

    text: str
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


class ChatClient:
    """Sends prompts to a chat/completions endpoint over HTTP."""

    DEFAULT_MODEL = "gpt-3.5-turbo"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MAX_TOKENS = 512
    ENV_MODEL_KEYS = ("DOCPATCH_LLM_MODEL", "OPENAI_MODEL")
    ENV_BASE_URL_KEYS = ("DOCPATCH_LLM_BASE_URL", "OPENAI_BASE_URL")
    ENV_API_KEY_KEYS = ("DOCPATCH_LLM_API_KEY", "OPENAI_API_KEY")

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None | object = _AUTO_BASE_URL,
        temperature: Optional[float] = 0.1,
        max_tokens: Optional[int] = DEFAULT_MAX_TOKENS,
        api_key: str | None | object = _AUTO_API_KEY,
        request_timeout: Optional[float] = 60.0,
        runner: Callable[[LLMRequest], Completion] | None = None,
    ) -> None:
        self.model = self._resolve_model(model)
        self.base_url = self._resolve_base_url(base_url)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = self._resolve_api_key(api_key)
        self.request_timeout = request_timeout
        self._runner = runner or self._http_runner

    def complete(self, prompt: str, *, system: str | None = None) -> Completion:
        """Send the prompt and return the model's completion."""
        request = LLMRequest(
            prompt=prompt,
            system=system,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        return self._runner(request)

    @staticmethod
    def _http_runner(request: LLMRequest) -> Completion:
        endpoint = f"{request.base_url}/chat/completions"
        payload: dict[str, object] = {
            "model": request.model,
            "messages": ChatClient._build_messages(request.system, request.prompt),
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens

        data = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if request.api_key:
            headers["Authorization"] = f"Bearer {request.api_key}"

        http_request = Request(endpoint, data=data, headers=headers, method="POST")
        timeout = request.request_timeout or 60.0

        try:
            with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = detail.strip() or exc.reason
            if exc.code == 429:
                raise RateLimitedError(f"LLM endpoint rate limited the request: {message}") from exc
            raise TransportError(f"LLM endpoint failed with status {exc.code}: {message}") from exc
        except URLError as exc:
            raise TransportError(f"LLM endpoint unreachable: {exc.reason}") from exc
        except TimeoutError as exc:
            raise TransportError("LLM endpoint timed out") from exc

        try:
            response_payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidResponseError("LLM endpoint returned invalid JSON") from exc
        if not isinstance(response_payload, dict):
            raise InvalidResponseError("LLM endpoint returned an unexpected payload")

        return ChatClient._extract_completion(response_payload)

    @staticmethod
    def _build_messages(system: str | None, prompt: str) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    @staticmethod
    def _extract_completion(payload: dict[str, object]) -> Completion:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise InvalidResponseError("LLM endpoint returned no choices")
        first = choices[0]
        finish_reason = first.get("finish_reason")
        finish_reason = finish_reason if isinstance(finish_reason, str) else None

        message = first.get("message")
        if isinstance(message, dict):
            role = message.get("role")
            if role not in (None, "assistant"):
                raise InvalidResponseError(f"unexpected message role in answer: {role!r}")
            content = message.get("content")
            if isinstance(content, str):
                return Completion(text=content, finish_reason=finish_reason)
        text = first.get("text")
        if isinstance(text, str):
            return Completion(text=text, finish_reason=finish_reason)
        raise InvalidResponseError("LLM endpoint returned a choice without content")

    def _resolve_model(self, model: str | None) -> str:
        if model:
            return model
        return self._first_env_value(self.ENV_MODEL_KEYS) or self.DEFAULT_MODEL

    def _resolve_base_url(self, base_url: str | None | object) -> str:
        if base_url is not _AUTO_BASE_URL and base_url:
            return str(base_url).rstrip("/")
        env_value = self._first_env_value(self.ENV_BASE_URL_KEYS)
        return (env_value or self.DEFAULT_BASE_URL).rstrip("/")

    def _resolve_api_key(self, api_key: str | None | object) -> str | None:
        if api_key is _AUTO_API_KEY or api_key is None:
            return self._first_env_value(self.ENV_API_KEY_KEYS)
        return str(api_key)

    @staticmethod
    def _first_env_value(keys: Sequence[str]) -> str | None:
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return None


__all__ = [
    "ChatClient",
    "Completion",
    "GenerationError",
    "InvalidResponseError",
    "LLMRequest",
    "RateLimitedError",
    "TransportError",
]
