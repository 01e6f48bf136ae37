"""Tests for the asynchronous generation client."""

import asyncio

import pytest

from feed_summary.summaries import (
    ChatCompletionResult,
    GenerationClient,
    NotConfiguredError,
    RateLimitError,
    ServiceError,
    SummaryOptions,
)
from feed_summary.summaries.generation import Prompt, build_expand_message


class FakeProvider:
    """Blocking provider that records messages and replays a canned outcome."""

    def __init__(self, content="  A short summary.  ", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def generate(self, messages, *, model, temperature=0.2, max_tokens=None, reasoning_effort=None):
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "reasoning_effort": reasoning_effort,
            }
        )
        if self.error is not None:
            raise self.error
        return ChatCompletionResult(content=self.content, usage={}, raw={})


def _client(provider):
    return GenerationClient(
        provider,
        model="test/model",
        summarize_prompt="Summarise in one sentence.",
        expand_prompt="Add one paragraph.",
        max_tokens=200,
    )


async def _settle(future):
    try:
        await future
    except Exception:
        pass
    # Let done-callbacks scheduled on the loop run.
    await asyncio.sleep(0)


class TestPrompt:
    def test_messages(self):
        prompt = Prompt(message="Body", system_context="Rules")
        assert prompt.messages() == [
            {"role": "system", "content": "Rules"},
            {"role": "user", "content": "Body"},
        ]

    def test_expand_message_labels_sections(self):
        message = build_expand_message("Old summary.", "Article text")
        assert message == "Existing summary:\nOld summary.\n\nArticle:\nArticle text"


class TestGenerationClient:
    def test_unconfigured_raises_synchronously(self):
        client = _client(None)
        assert client.is_configured is False
        with pytest.raises(NotConfiguredError):
            client.summarize("text", lambda text: None, lambda error: None)
        with pytest.raises(NotConfiguredError):
            client.expand("prior", "text", lambda text: None, lambda error: None)

    @pytest.mark.asyncio
    async def test_summarize_success(self):
        provider = FakeProvider()
        client = _client(provider)
        results, errors = [], []

        future = client.summarize("Article body", results.append, errors.append)
        await _settle(future)

        assert results == ["A short summary."]
        assert errors == []
        call = provider.calls[0]
        assert call["model"] == "test/model"
        assert call["max_tokens"] == 200
        assert call["messages"][0] == {"role": "system", "content": "Summarise in one sentence."}
        assert call["messages"][1] == {"role": "user", "content": "Article body"}

    @pytest.mark.asyncio
    async def test_expand_sends_prior_summary(self):
        provider = FakeProvider(content="More detail.")
        client = _client(provider)
        results = []

        future = client.expand("Intro.", "Article body", results.append, lambda error: None)
        await _settle(future)

        assert results == ["More detail."]
        messages = provider.calls[0]["messages"]
        assert messages[0]["content"] == "Add one paragraph."
        assert messages[1]["content"] == "Existing summary:\nIntro.\n\nArticle:\nArticle body"

    @pytest.mark.asyncio
    async def test_provider_error_becomes_service_error(self):
        provider = FakeProvider(error=RateLimitError("slow down"))
        client = _client(provider)
        results, errors = [], []

        future = client.summarize("Article body", results.append, errors.append)
        await _settle(future)

        assert results == []
        assert len(errors) == 1
        assert isinstance(errors[0], ServiceError)
        assert str(errors[0]) == "slow down"
        assert isinstance(errors[0].cause, RateLimitError)

    @pytest.mark.asyncio
    async def test_exactly_one_callback(self):
        client = _client(FakeProvider())
        outcomes = []

        future = client.summarize(
            "Article body",
            lambda text: outcomes.append(("ok", text)),
            lambda error: outcomes.append(("err", str(error))),
        )
        await _settle(future)
        await asyncio.sleep(0)

        assert outcomes == [("ok", "A short summary.")]

    def test_from_options_loads_builtin_prompts(self, tmp_path):
        options = SummaryOptions(summaries_dir=tmp_path, model="test/model", reasoning_effort=None)

        client = GenerationClient.from_options(None, options)

        assert "one sentence" in client.summarize_prompt
        assert "paragraph" in client.expand_prompt
        assert client.model == "test/model"
        assert client.is_configured is False

    def test_from_options_prefers_user_prompts(self, tmp_path):
        prompts_dir = tmp_path / "prompts"
        prompts_dir.mkdir()
        (prompts_dir / "summarize.md").write_text("Custom summary rules.\n")
        options = SummaryOptions(summaries_dir=tmp_path, model="m", prompts_dir=prompts_dir)

        client = GenerationClient.from_options(FakeProvider(), options)

        assert client.summarize_prompt == "Custom summary rules."
        assert client.is_configured is True


class TestStateMachineWithGenerationClient:
    @pytest.mark.asyncio
    async def test_end_to_end_summary(self, store, sample_entries):
        from feed_summary.summaries import SummaryStateMachine

        machine = SummaryStateMachine(store, _client(FakeProvider()))
        entry = sample_entries[0]
        results = []

        future = machine.request_summary(entry, results.append)
        assert machine.record(entry).pending is True
        await _settle(future)

        assert results == ["A short summary."]
        assert machine.record(entry).cached_text == "A short summary."
        assert machine.record(entry).pending is False
