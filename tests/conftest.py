"""Pytest configuration and fixtures."""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import pytest

from feed_summary.entries import Entry, EntryStore
from feed_summary.summaries import ServiceError, SummaryStateMachine


@dataclass
class RecordedCall:
    """A generation request captured by FakeGenerationClient."""

    kind: str
    content: str
    on_success: Callable[[str], None]
    on_error: Callable[[ServiceError], None]
    prior_summary: Optional[str] = None

    def succeed(self, text: str) -> None:
        self.on_success(text)

    def fail(self, message: str = "upstream exploded") -> None:
        self.on_error(ServiceError(message))


@dataclass
class FakeGenerationClient:
    """Stands in for GenerationClient; completions are fired by the test."""

    configured: bool = True
    calls: List[RecordedCall] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return self.configured

    def summarize(self, content, on_success, on_error):
        self.calls.append(RecordedCall("summarize", content, on_success, on_error))
        return None

    def expand(self, prior_summary, content, on_success, on_error):
        self.calls.append(
            RecordedCall("expand", content, on_success, on_error, prior_summary=prior_summary)
        )
        return None

    @property
    def last(self) -> RecordedCall:
        return self.calls[-1]


@pytest.fixture
def sample_entries():
    """Five entries, the last one without any content."""
    return [
        Entry(entry_id="e1", title="First post", feed_title="Blog", content="Article body text"),
        Entry(
            entry_id="e2",
            title="Second post",
            feed_title="Blog",
            content="<p>Hello <b>world</b> &amp; friends</p><p>Second paragraph</p>",
            content_type="html",
        ),
        Entry(entry_id="e3", title="Third post", feed_title="News", content="Third body"),
        Entry(entry_id="e4", title="Fourth post", feed_title="News", content="Fourth body"),
        Entry(entry_id="e5", title="Empty post", feed_title="News", content=None),
    ]


@pytest.fixture
def store(sample_entries):
    return EntryStore(sample_entries)


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def machine(store, fake_client, notifications):
    return SummaryStateMachine(store, fake_client, notify=notifications.append)
