"""List and detail surfaces that can carry summary blocks."""
from __future__ import annotations

import textwrap
from typing import Callable, Dict, List, Optional, Sequence, Union

from .entries import Entry
from .summaries.extractor import html_to_text

ChangeCallback = Callable[[], None]
RenderHook = Callable[["EntryDetailView"], None]

MIN_FILL_WIDTH = 20


class EntryListView:
    """Selectable list of entries with optional text decorations below rows.

    A decoration is attached to an entry's row; its existence is the only
    visibility signal the list surface has.
    """

    DECORATION_INDENT = 4

    def __init__(
        self,
        entries: Sequence[Entry],
        *,
        width: int = 80,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self.entries = list(entries)
        self.selected_index = 0
        self.width = width
        self.on_change = on_change
        self._decorations: Dict[str, str] = {}

    def selected_entry(self) -> Optional[Entry]:
        if not self.entries:
            return None
        index = min(max(self.selected_index, 0), len(self.entries) - 1)
        return self.entries[index]

    def set_selection(self, index: int) -> None:
        if not self.entries:
            return
        index = max(0, min(len(self.entries) - 1, index))
        if index == self.selected_index:
            return
        self.selected_index = index
        self._changed()

    def line_for(self, entry: Entry) -> Optional[int]:
        for index, candidate in enumerate(self.entries):
            if candidate.entry_id == entry.entry_id:
                return index
        return None

    def fill_width(self) -> int:
        return max(MIN_FILL_WIDTH, self.width - self.DECORATION_INDENT)

    # ---- Decorations ----------------------------------------------------
    def decoration(self, entry: Entry) -> Optional[str]:
        return self._decorations.get(entry.entry_id)

    def has_decoration(self, entry: Entry) -> bool:
        return entry.entry_id in self._decorations

    def add_decoration(self, entry: Entry, text: str) -> None:
        if self.line_for(entry) is None:
            return
        self._decorations[entry.entry_id] = text
        self._changed()

    def remove_decoration(self, entry: Entry) -> bool:
        if self._decorations.pop(entry.entry_id, None) is None:
            return False
        self._changed()
        return True

    def clear_decorations(self) -> None:
        if not self._decorations:
            return
        self._decorations.clear()
        self._changed()

    def decoration_lines(self, entry: Entry) -> List[str]:
        text = self.decoration(entry)
        if text is None:
            return []
        indent = " " * self.DECORATION_INDENT
        return [f"{indent}{line}" if line else "" for line in text.split("\n")]

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()


class EntryDetailView:
    """Renders one entry as header lines, a separator and the body text.

    Hooks registered with :meth:`add_render_hook` run after every render,
    whether triggered by :meth:`refresh` or by navigating with :meth:`show`.
    """

    HEADER_SEPARATOR = ""

    def __init__(
        self,
        entry: Optional[Entry] = None,
        *,
        width: int = 80,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self.entry = entry
        self.width = width
        self.on_change = on_change
        self.lines: List[str] = []
        self._render_hooks: List[RenderHook] = []
        self.refresh()

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def fill_width(self) -> int:
        return max(MIN_FILL_WIDTH, self.width)

    def show(self, entry: Optional[Entry]) -> None:
        self.entry = entry
        self.refresh()

    def refresh(self) -> None:
        self.lines = self._render_entry()
        for hook in list(self._render_hooks):
            hook(self)
        if self.on_change is not None:
            self.on_change()

    # ---- Render pipeline ------------------------------------------------
    def add_render_hook(self, hook: RenderHook) -> None:
        if hook not in self._render_hooks:
            self._render_hooks.append(hook)

    def remove_render_hook(self, hook: RenderHook) -> None:
        if hook in self._render_hooks:
            self._render_hooks.remove(hook)

    def anchor_index(self) -> Optional[int]:
        for index, line in enumerate(self.lines):
            if line == self.HEADER_SEPARATOR:
                return index
        return None

    def insert_at_anchor(self, text: str) -> None:
        """Insert ``text`` right after the header separator line."""
        anchor = self.anchor_index()
        if anchor is None:
            self.insert_at_end(text)
            return
        block = text.split("\n") + [self.HEADER_SEPARATOR]
        self.lines[anchor + 1:anchor + 1] = block

    def insert_at_end(self, text: str) -> None:
        self.lines.extend([self.HEADER_SEPARATOR] + text.split("\n"))

    def _render_entry(self) -> List[str]:
        entry = self.entry
        if entry is None:
            return ["No entry selected."]

        lines = [f"Title: {entry.display_title}"]
        if entry.feed_title:
            lines.append(f"Feed: {entry.feed_title}")
        if entry.published:
            lines.append(f"Date: {entry.published}")
        if entry.link:
            lines.append(f"Link: {entry.link}")
        lines.append(self.HEADER_SEPARATOR)

        body = entry.content or ""
        if entry.is_markup:
            body = html_to_text(body)
        if not body.strip():
            lines.append("(no content)")
            return lines
        for index, paragraph in enumerate(body.split("\n\n")):
            if index:
                lines.append("")
            lines.extend(textwrap.fill(paragraph, width=self.fill_width()).split("\n"))
        return lines


Surface = Union[EntryListView, EntryDetailView]
SurfaceHook = Callable[[Surface], None]


class SurfaceRegistry:
    """Tracks open surfaces and notifies subscribers as they open and close."""

    def __init__(self) -> None:
        self.list_views: List[EntryListView] = []
        self.detail_views: List[EntryDetailView] = []
        self._open_hooks: List[SurfaceHook] = []
        self._close_hooks: List[SurfaceHook] = []

    @property
    def surfaces(self) -> List[Surface]:
        return [*self.list_views, *self.detail_views]

    def open(self, surface: Surface) -> Surface:
        bucket: List = self.list_views if isinstance(surface, EntryListView) else self.detail_views
        if surface not in bucket:
            bucket.append(surface)
            for hook in list(self._open_hooks):
                hook(surface)
        return surface

    def close(self, surface: Surface) -> None:
        bucket: List = self.list_views if isinstance(surface, EntryListView) else self.detail_views
        if surface in bucket:
            for hook in list(self._close_hooks):
                hook(surface)
            bucket.remove(surface)

    def add_open_hook(self, hook: SurfaceHook) -> None:
        if hook not in self._open_hooks:
            self._open_hooks.append(hook)

    def remove_open_hook(self, hook: SurfaceHook) -> None:
        if hook in self._open_hooks:
            self._open_hooks.remove(hook)

    def add_close_hook(self, hook: SurfaceHook) -> None:
        if hook not in self._close_hooks:
            self._close_hooks.append(hook)

    def remove_close_hook(self, hook: SurfaceHook) -> None:
        if hook in self._close_hooks:
            self._close_hooks.remove(hook)
