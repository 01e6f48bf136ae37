"""Per-entry summary lifecycle: cache, in-flight flag and request orchestration."""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Callable, List, Mapping, Optional

from ..entries import PENDING_KEY, SUMMARY_KEY, Entry, EntryStore
from .errors import BusyError, NoContentError, NothingToExpandError, NotConfiguredError, ServiceError
from .extractor import extract_content
from .generation import GenerationClient
from .types import SummaryRecord

SummaryCallback = Callable[[str], None]
FailureCallback = Callable[[ServiceError], None]
Notifier = Callable[[str], None]
ChangeListener = Callable[[Entry], None]

PARAGRAPH_SEPARATOR = "\n\n"


class SummaryStateMachine:
    """Public facade used by the synchronizers, the CLI and the TUI browser.

    Each entry moves between ``EMPTY``, ``GENERATING``, ``CACHED`` and
    ``EXPANDING``. Both in-flight states share the single ``summary-pending``
    flag, so at most one request per entry is outstanding at any time.
    Synchronous failures (busy, not configured, no content, nothing to expand)
    raise before the flag is touched. Provider failures arrive later through
    ``on_error`` after the flag has been cleared.
    """

    def __init__(
        self,
        store: EntryStore,
        client: Optional[GenerationClient] = None,
        *,
        max_chars: Optional[int] = None,
        notify: Optional[Notifier] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.max_chars = max_chars
        self._client = client
        self._logger = logger or logging.getLogger(__name__)
        self._notify = notify or self._logger.warning
        self._listeners: List[ChangeListener] = []

    @property
    def is_configured(self) -> bool:
        return self._client is not None and self._client.is_configured

    def subscribe(self, listener: ChangeListener) -> None:
        """Call ``listener(entry)`` after every change to an entry's record."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def record(self, entry: Entry) -> SummaryRecord:
        cached = self.store.get_meta(entry, SUMMARY_KEY)
        pending = bool(self.store.get_meta(entry, PENDING_KEY, False))
        return SummaryRecord(cached_text=cached if isinstance(cached, str) else None, pending=pending)

    def request_summary(
        self,
        entry: Entry,
        on_success: SummaryCallback,
        on_error: Optional[FailureCallback] = None,
    ) -> Optional[asyncio.Future]:
        """Deliver the cached summary, or start generating one.

        Returns the in-flight future, or ``None`` on a cache hit.
        """
        record = self.record(entry)
        if record.cached_text is not None:
            self._log_debug("cache-hit", entry)
            on_success(record.cached_text)
            return None
        if record.pending:
            raise BusyError()
        content = extract_content(entry, self.max_chars)
        if content is None:
            raise NoContentError()
        client = self._require_client()

        def submit(ok: SummaryCallback, err: FailureCallback) -> asyncio.Future:
            return client.summarize(content, ok, err)

        return self._issue(
            entry,
            "generate",
            submit,
            partial(self._on_generated, entry, on_success, on_error),
            partial(self._on_failed, entry, on_error),
        )

    def request_expansion(
        self,
        entry: Entry,
        on_success: SummaryCallback,
        on_error: Optional[FailureCallback] = None,
    ) -> asyncio.Future:
        """Ask for one more paragraph and append it to the cached summary."""
        record = self.record(entry)
        if record.pending:
            raise BusyError()
        client = self._require_client()
        content = extract_content(entry, self.max_chars)
        if content is None:
            raise NoContentError()
        if record.cached_text is None:
            raise NothingToExpandError()
        prior = record.cached_text

        def submit(ok: SummaryCallback, err: FailureCallback) -> asyncio.Future:
            return client.expand(prior, content, ok, err)

        return self._issue(
            entry,
            "expand",
            submit,
            partial(self._on_expanded, entry, prior, on_success, on_error),
            partial(self._on_failed, entry, on_error),
        )

    def remove(self, entry: Entry) -> bool:
        """Drop the cached summary; report whether anything was removed."""
        if self.record(entry).cached_text is None:
            return False
        self.store.set_meta(entry, SUMMARY_KEY, None)
        self._log_debug("removed", entry)
        self._emit(entry)
        return True

    def remove_all(self) -> int:
        removed = 0

        def remove_one(entry: Entry) -> None:
            nonlocal removed
            if self.remove(entry):
                removed += 1

        self.store.for_each_entry(remove_one)
        return removed

    # ---- Internals ------------------------------------------------------
    def _require_client(self) -> GenerationClient:
        if self._client is None or not self._client.is_configured:
            raise NotConfiguredError()
        return self._client

    def _issue(
        self,
        entry: Entry,
        event: str,
        submit: Callable[[SummaryCallback, FailureCallback], asyncio.Future],
        on_success: SummaryCallback,
        on_error: FailureCallback,
    ) -> asyncio.Future:
        self._set_pending(entry, True)
        try:
            future = submit(on_success, on_error)
        except BaseException:
            self._set_pending(entry, False)
            raise
        self._log_debug(f"{event}-started", entry)
        self._emit(entry)
        return future

    def _on_generated(
        self,
        entry: Entry,
        on_success: SummaryCallback,
        on_error: Optional[FailureCallback],
        text: str,
    ) -> None:
        self._set_pending(entry, False)
        if not self._store_summary(entry, text, on_error):
            return
        self._log_debug("generate-finished", entry, {"chars": len(text)})
        self._emit(entry)
        on_success(text)

    def _on_expanded(
        self,
        entry: Entry,
        prior: str,
        on_success: SummaryCallback,
        on_error: Optional[FailureCallback],
        text: str,
    ) -> None:
        self._set_pending(entry, False)
        # Last writer wins: a removal during the request falls back to the prior text.
        current = self.record(entry).cached_text
        base = current if current is not None else prior
        combined = f"{base}{PARAGRAPH_SEPARATOR}{text}"
        if not self._store_summary(entry, combined, on_error):
            return
        self._log_debug("expand-finished", entry, {"chars": len(combined)})
        self._emit(entry)
        on_success(combined)

    def _on_failed(self, entry: Entry, on_error: Optional[FailureCallback], error: ServiceError) -> None:
        self._set_pending(entry, False)
        self._log_debug("failed", entry, {"error": str(error)})
        self._emit(entry)
        if on_error is not None:
            on_error(error)
        self._notify(f"Summary failed: {error}")

    def _store_summary(self, entry: Entry, text: str, on_error: Optional[FailureCallback]) -> bool:
        try:
            self.store.set_meta(entry, SUMMARY_KEY, text)
        except OSError as exc:
            self._on_failed(entry, on_error, ServiceError(f"Could not save summary: {exc}", exc))
            return False
        return True

    def _set_pending(self, entry: Entry, pending: bool) -> None:
        self.store.set_meta(entry, PENDING_KEY, pending)

    def _emit(self, entry: Entry) -> None:
        for listener in list(self._listeners):
            listener(entry)

    def _log_debug(self, event: str, entry: Entry, extra: Optional[Mapping[str, object]] = None) -> None:
        payload = {"event": event, "entry_id": entry.entry_id, "title": entry.title}
        if extra:
            payload.update(dict(extra))
        self._logger.debug("summary-state", extra={"summary": payload})
