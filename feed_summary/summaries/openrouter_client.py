"""OpenRouter chat completions provider used for summary generation.

Each call is a single HTTP attempt. Failures are mapped onto the
``OpenRouterError`` family and left for the caller to report.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Type

import httpx

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
CHAT_COMPLETIONS_PATH = "/chat/completions"


class OpenRouterError(RuntimeError):
    """Base error raised for OpenRouter failures."""


class AuthenticationError(OpenRouterError):
    """Raised when the API key is missing, rejected or lacks access."""


class RateLimitError(OpenRouterError):
    """Raised when OpenRouter answers HTTP 429."""


class TransientError(OpenRouterError):
    """Raised for HTTP 5xx answers, timeouts and connection failures."""


class ClientConfigurationError(OpenRouterError):
    """Raised when a response cannot be read as a chat completion."""


_STATUS_ERRORS: Dict[int, Type[OpenRouterError]] = {
    401: AuthenticationError,
    403: AuthenticationError,
    429: RateLimitError,
}


@dataclass
class ChatCompletionResult:
    """The first choice of a chat completion plus its accounting data."""

    content: str
    usage: Mapping[str, Any] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict)
    finish_reason: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChatCompletionResult":
        error = data.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            raise OpenRouterError(str(error["message"]))

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
            raise ClientConfigurationError("OpenRouter chat response missing choices")
        choice = choices[0]

        message = choice.get("message")
        content = message.get("content") if isinstance(message, Mapping) else None
        if not isinstance(content, str):
            raise ClientConfigurationError("OpenRouter chat response missing text content")

        usage = data.get("usage")
        finish_reason = choice.get("finish_reason")
        return cls(
            content=content,
            usage=dict(usage) if isinstance(usage, Mapping) else {},
            raw=data,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
        )


def build_chat_payload(
    messages: Sequence[Mapping[str, Any]],
    *,
    model: str,
    temperature: float,
    max_tokens: Optional[int] = None,
    reasoning_effort: Optional[str] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": model,
        "messages": list(messages),
        "temperature": temperature,
    }
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if reasoning_effort:
        payload["reasoning"] = {"effort": reasoning_effort}
    return payload


class OpenRouterClient:
    """Blocking chat provider backed by a long-lived ``httpx.Client``."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        referer: Optional[str] = None,
        title: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError("OpenRouter API key is required")

        headers = {"Authorization": f"Bearer {api_key}"}
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def generate(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[str] = None,
    ) -> ChatCompletionResult:
        payload = build_chat_payload(
            messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            reasoning_effort=reasoning_effort,
        )
        try:
            response = self._http.post(CHAT_COMPLETIONS_PATH, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientError("OpenRouter request timed out") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"OpenRouter request failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_for(response)
        return ChatCompletionResult.from_payload(_json_object(response))


def _error_for(response: httpx.Response) -> OpenRouterError:
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, Mapping) else None
    detail = error.get("message") if isinstance(error, Mapping) else None
    message = str(detail or response.text or f"HTTP {status}")

    error_cls = _STATUS_ERRORS.get(status)
    if error_cls is None:
        error_cls = TransientError if status >= 500 else OpenRouterError
    return error_cls(f"OpenRouter error ({status}): {message}")


def _json_object(response: httpx.Response) -> Mapping[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise ClientConfigurationError("OpenRouter returned a non-JSON response") from exc
    if not isinstance(data, Mapping):
        raise ClientConfigurationError("OpenRouter response was not a JSON object")
    return data
