"""Keep list and detail surfaces in step with the summary state machine."""
from __future__ import annotations

import logging
import textwrap
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Optional

from .entries import Entry
from .summaries.errors import BusyError, ServiceError, SummaryError
from .summaries.service import SummaryStateMachine
from .surfaces import EntryDetailView, EntryListView

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]
InsertStrategy = Callable[[EntryDetailView, str], None]

GENERATING_MESSAGE = "Generating summary..."
EXTENDING_MESSAGE = "Extending summary..."
SUMMARY_HEADING = "Summary:"
GENERATE_HINT = "Summary: none yet (press S to generate)"
REVEAL_HINT = "Summary: hidden (press S to show)"


def format_summary(text: str, width: int) -> str:
    """Wrap each paragraph of ``text`` to ``width`` columns."""
    paragraphs = text.split("\n\n")
    return "\n\n".join(textwrap.fill(paragraph, width=max(width, 1)) for paragraph in paragraphs)


def insert_at_anchor(surface: EntryDetailView, text: str) -> None:
    """Place the summary block right below the entry headers."""
    surface.insert_at_anchor(text)


def insert_at_end(surface: EntryDetailView, text: str) -> None:
    """Place the summary block after the entry body."""
    surface.insert_at_end(text)


def _log_notify(message: str) -> None:
    logger.info(message)


class ListSynchronizer:
    """Shows summaries as decorations under entry rows of a list surface."""

    def __init__(
        self,
        machine: SummaryStateMachine,
        surface: EntryListView,
        *,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.machine = machine
        self.surface = surface
        self.notify = notify or _log_notify
        # Wrap width per entry, captured when the user last acted on it.
        self._widths: Dict[str, int] = {}

    def attach(self) -> None:
        self.machine.subscribe(self.on_record_changed)

    def detach(self) -> None:
        self.machine.unsubscribe(self.on_record_changed)
        self._widths.clear()
        self.surface.clear_decorations()

    def on_record_changed(self, entry: Entry) -> None:
        """Bring a visible decoration up to date after a change made elsewhere."""
        if not self.surface.has_decoration(entry):
            return
        record = self.machine.record(entry)
        if record.pending:
            return
        self._revert(entry, self._widths.get(entry.entry_id, self.surface.fill_width()))

    def toggle(self, entry: Optional[Entry] = None) -> None:
        entry = entry or self._selected()
        if entry is None:
            return
        if self.surface.has_decoration(entry):
            self.surface.remove_decoration(entry)
            return
        self._show(entry)

    def expand(self, entry: Optional[Entry] = None) -> None:
        entry = entry or self._selected()
        if entry is None:
            return
        record = self.machine.record(entry)
        if record.cached_text is None:
            self._show(entry)
            return

        width = self.surface.fill_width()
        self._widths[entry.entry_id] = width
        previous = self.surface.decoration(entry)
        placeholder = f"{format_summary(record.cached_text, width)}\n\n{EXTENDING_MESSAGE}"
        self.surface.add_decoration(entry, placeholder)
        try:
            self.machine.request_expansion(
                entry,
                partial(self._replace_if_shown, entry, width),
                partial(self._revert_if_shown, entry, width),
            )
        except SummaryError as exc:
            if previous is not None:
                self.surface.add_decoration(entry, previous)
            else:
                self._revert(entry, width)
            self.notify(str(exc))

    def _show(self, entry: Entry) -> None:
        width = self.surface.fill_width()
        self._widths[entry.entry_id] = width
        previous = self.surface.decoration(entry)
        self.surface.add_decoration(entry, GENERATING_MESSAGE)
        try:
            self.machine.request_summary(
                entry,
                partial(self._replace_if_shown, entry, width),
                partial(self._remove_placeholder, entry),
            )
        except SummaryError as exc:
            if previous is not None:
                self.surface.add_decoration(entry, previous)
            else:
                self.surface.remove_decoration(entry)
            self.notify(str(exc))

    def _replace_if_shown(self, entry: Entry, width: int, text: str) -> None:
        # The block may have been hidden while the request was in flight.
        if self.surface.has_decoration(entry):
            self.surface.add_decoration(entry, format_summary(text, width))

    def _remove_placeholder(self, entry: Entry, error: ServiceError) -> None:
        self.surface.remove_decoration(entry)

    def _revert_if_shown(self, entry: Entry, width: int, error: ServiceError) -> None:
        if self.surface.has_decoration(entry):
            self._revert(entry, width)

    def _revert(self, entry: Entry, width: int) -> None:
        cached = self.machine.record(entry).cached_text
        if cached is None:
            self.surface.remove_decoration(entry)
        else:
            self.surface.add_decoration(entry, format_summary(cached, width))

    def _selected(self) -> Optional[Entry]:
        entry = self.surface.selected_entry()
        if entry is None:
            self.notify("No entry selected.")
        return entry


@dataclass
class DetailViewState:
    """Surface-local display state of a detail view."""

    visible: bool = False
    pending_message: Optional[str] = None
    pending_entry_id: Optional[str] = None
    fill_width: int = 70

    def reset(self) -> None:
        self.visible = False
        self.pending_message = None
        self.pending_entry_id = None


class DetailSynchronizer:
    """Inserts a summary block into a detail surface after every render.

    The displayed block follows a fixed precedence:

    1. request pending, cache present and visible: cache, then placeholder
    2. request pending: placeholder only
    3. no cache: a hint to generate one
    4. cache present but hidden: a hint to reveal it
    5. cache present and visible: the formatted cache
    """

    def __init__(
        self,
        machine: SummaryStateMachine,
        surface: EntryDetailView,
        *,
        notify: Optional[Notifier] = None,
        insert: InsertStrategy = insert_at_anchor,
    ) -> None:
        self.machine = machine
        self.surface = surface
        self.notify = notify or _log_notify
        self.insert = insert
        self.state = DetailViewState(fill_width=surface.fill_width())
        self._attached = False

    def attach(self) -> None:
        self._attached = True
        self.surface.add_render_hook(self.on_render)
        self.machine.subscribe(self.on_record_changed)
        self.surface.refresh()

    def detach(self) -> None:
        self._attached = False
        self.surface.remove_render_hook(self.on_render)
        self.machine.unsubscribe(self.on_record_changed)
        self.state.reset()
        self.surface.refresh()

    def on_record_changed(self, entry: Entry) -> None:
        bound = self.surface.entry
        if bound is not None and bound.entry_id == entry.entry_id:
            self.surface.refresh()

    def on_render(self, surface: EntryDetailView) -> None:
        if surface.entry is None:
            return
        self.insert(surface, self.render_block())

    def render_block(self) -> str:
        entry = self.surface.entry
        if entry is None:
            return ""
        record = self.machine.record(entry)
        pending = self._pending_here()
        message = self.state.pending_message or ""
        if pending and record.cached_text is not None and self.state.visible:
            return f"{self._formatted(record.cached_text)}\n\n{message}"
        if pending:
            return message
        if record.cached_text is None:
            return GENERATE_HINT
        if not self.state.visible:
            return REVEAL_HINT
        return self._formatted(record.cached_text)

    def toggle_summary(self) -> None:
        entry = self._bound_entry()
        if entry is None:
            return
        if self.machine.record(entry).cached_text is not None:
            self.state.fill_width = self.surface.fill_width()
            self.state.visible = not self.state.visible
            self.surface.refresh()
            return
        self._generate(entry)

    def expand(self) -> None:
        entry = self._bound_entry()
        if entry is None:
            return
        record = self.machine.record(entry)
        if record.cached_text is None:
            self._generate(entry)
            return
        if not self.state.visible:
            self.state.fill_width = self.surface.fill_width()
            self.state.visible = True
            self.surface.refresh()
            return
        if self._pending_here():
            self.notify(str(BusyError()))
            return
        self.state.fill_width = self.surface.fill_width()
        self._begin(entry, EXTENDING_MESSAGE)
        try:
            self.machine.request_expansion(
                entry,
                partial(self._finished, entry),
                partial(self._failed, entry),
            )
        except SummaryError as exc:
            self._abort(entry, exc)

    # ---- Internals ------------------------------------------------------
    def _generate(self, entry: Entry) -> None:
        if self._pending_here():
            self.notify(str(BusyError()))
            return
        self.state.fill_width = self.surface.fill_width()
        self._begin(entry, GENERATING_MESSAGE)
        try:
            self.machine.request_summary(
                entry,
                partial(self._finished, entry),
                partial(self._failed, entry),
            )
        except SummaryError as exc:
            self._abort(entry, exc)

    def _begin(self, entry: Entry, message: str) -> None:
        self.state.pending_message = message
        self.state.pending_entry_id = entry.entry_id
        self.surface.refresh()

    def _end(self, entry: Entry) -> None:
        if self.state.pending_entry_id == entry.entry_id:
            self.state.pending_message = None
            self.state.pending_entry_id = None

    def _abort(self, entry: Entry, exc: SummaryError) -> None:
        self._end(entry)
        self.surface.refresh()
        self.notify(str(exc))

    def _finished(self, entry: Entry, text: str) -> None:
        if not self._attached:
            return
        self._end(entry)
        self.state.visible = True
        self.surface.refresh()

    def _failed(self, entry: Entry, error: ServiceError) -> None:
        if not self._attached:
            return
        self._end(entry)
        self.surface.refresh()

    def _pending_here(self) -> bool:
        entry = self.surface.entry
        return (
            entry is not None
            and self.state.pending_message is not None
            and self.state.pending_entry_id == entry.entry_id
        )

    def _formatted(self, text: str) -> str:
        return f"{SUMMARY_HEADING}\n{format_summary(text, self.state.fill_width)}"

    def _bound_entry(self) -> Optional[Entry]:
        entry = self.surface.entry
        if entry is None:
            self.notify("No entry selected.")
        return entry
