"""Asynchronous summarize/expand calls against a chat provider."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence

from .errors import NotConfiguredError, ServiceError
from .openrouter_client import ChatCompletionResult
from .prompts import PromptLoader
from .types import SummaryOptions

SuccessCallback = Callable[[str], None]
ErrorCallback = Callable[[ServiceError], None]


class ChatProvider(Protocol):
    """Anything that can turn chat messages into a completion (blocking)."""

    def generate(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        model: str,
        temperature: float = ...,
        max_tokens: Optional[int] = ...,
        reasoning_effort: Optional[str] = ...,
    ) -> ChatCompletionResult:
        ...


@dataclass(frozen=True)
class Prompt:
    """A user message paired with the instruction template it runs under."""

    message: str
    system_context: str

    def messages(self) -> List[Mapping[str, str]]:
        return [
            {"role": "system", "content": self.system_context},
            {"role": "user", "content": self.message},
        ]


def build_expand_message(prior_summary: str, content: str) -> str:
    return f"Existing summary:\n{prior_summary}\n\nArticle:\n{content}"


class GenerationClient:
    """Binds the summarize and expand instruction templates to a provider.

    Every call returns an :class:`asyncio.Future`. Its completion is routed to
    exactly one of ``on_success(text)`` or ``on_error(ServiceError)``, on the
    event loop thread. Calls raise :class:`NotConfiguredError` synchronously
    when no provider is set.
    """

    def __init__(
        self,
        provider: Optional[ChatProvider],
        *,
        model: str,
        summarize_prompt: str,
        expand_prompt: str,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[str] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._provider = provider
        self.model = model
        self.summarize_prompt = summarize_prompt
        self.expand_prompt = expand_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.reasoning_effort = reasoning_effort
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_options(
        cls,
        provider: Optional[ChatProvider],
        options: SummaryOptions,
        *,
        prompt_loader: Optional[PromptLoader] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "GenerationClient":
        loader = prompt_loader or PromptLoader(options.prompts_dir)
        instructions = loader.load_pair(options.summarize_prompt, options.expand_prompt)
        return cls(
            provider,
            model=options.model,
            summarize_prompt=instructions.summarize.text,
            expand_prompt=instructions.expand.text,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            reasoning_effort=options.reasoning_effort,
            loop=loop,
        )

    @property
    def is_configured(self) -> bool:
        return self._provider is not None

    def require_provider(self) -> ChatProvider:
        if self._provider is None:
            raise NotConfiguredError()
        return self._provider

    def summarize(self, content: str, on_success: SuccessCallback, on_error: ErrorCallback) -> asyncio.Future:
        prompt = Prompt(message=content, system_context=self.summarize_prompt)
        return self.chat_async(prompt, on_success, on_error)

    def expand(
        self,
        prior_summary: str,
        content: str,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> asyncio.Future:
        prompt = Prompt(
            message=build_expand_message(prior_summary, content),
            system_context=self.expand_prompt,
        )
        return self.chat_async(prompt, on_success, on_error)

    def chat_async(self, prompt: Prompt, on_success: SuccessCallback, on_error: ErrorCallback) -> asyncio.Future:
        provider = self.require_provider()
        loop = self._loop or asyncio.get_running_loop()
        call = partial(
            provider.generate,
            prompt.messages(),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            reasoning_effort=self.reasoning_effort,
        )
        future = loop.run_in_executor(None, call)
        future.add_done_callback(partial(self._deliver, on_success, on_error))
        self._logger.debug("chat request submitted (model=%s, %d chars)", self.model, len(prompt.message))
        return future

    def _deliver(self, on_success: SuccessCallback, on_error: ErrorCallback, future: asyncio.Future) -> None:
        if future.cancelled():
            on_error(ServiceError("Summary request was cancelled"))
            return
        exc = future.exception()
        if exc is not None:
            self._logger.debug("chat request failed: %s", exc)
            on_error(ServiceError(str(exc) or exc.__class__.__name__, exc))
            return
        result = future.result()
        content = result.content if isinstance(result, ChatCompletionResult) else str(result)
        on_success(content.strip())
