from __future__ import annotations

from typing import List, Optional, Sequence, TYPE_CHECKING

from prompt_toolkit.application import Application
from prompt_toolkit.data_structures import Point
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, ScrollOffsets, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import D
from prompt_toolkit.styles import Style

from .mode import SummaryMode
from .surfaces import EntryDetailView, EntryListView, SurfaceRegistry

if TYPE_CHECKING:
    from .entries import Entry
    from .summaries import OpenRouterClient, SummaryOptions, SummaryStateMachine


class FeedBrowser:
    """Interactive two-pane entry browser backed by prompt_toolkit."""

    PAGE_JUMP = 10

    def __init__(
        self,
        entries: Sequence["Entry"],
        summary_options: "SummaryOptions",
        *,
        machine: Optional["SummaryStateMachine"] = None,
    ) -> None:
        self.entries = list(entries)
        self.summary_options = summary_options
        entry_count = len(self.entries)
        noun = "entry" if entry_count == 1 else "entries"
        self.status: str = f"{entry_count} {noun} | summaries in {summary_options.summaries_dir}"
        self._app: Optional[Application] = None
        self._summary_client: Optional["OpenRouterClient"] = None

        if machine is None:
            from .cli import create_state_machine

            machine, self._summary_client = create_state_machine(
                self.entries, summary_options, notify=self._set_status
            )
        self.machine = machine
        if not machine.is_configured:
            self.status = "Summary provider unavailable: set OPENROUTER_API_KEY to enable generation."

        self.list_view = EntryListView(self.entries, on_change=self._invalidate)
        self.detail_view = EntryDetailView(
            self.list_view.selected_entry(), on_change=self._invalidate
        )
        self.registry = SurfaceRegistry()
        self.registry.open(self.list_view)
        self.registry.open(self.detail_view)
        self.mode = SummaryMode(self.machine, self.registry, notify=self._set_status)
        self.mode.activate()

    def _set_status(self, message: str) -> None:
        self.status = message
        self._invalidate()

    def _invalidate(self) -> None:
        if self._app:
            self._app.invalidate()

    def _update_widths(self) -> None:
        if self._app is None:
            return
        columns = self._app.output.get_size().columns
        self.list_view.width = columns
        if self.detail_view.width != columns:
            self.detail_view.width = columns
            self.detail_view.refresh()

    # ---- Summary actions ------------------------------------------------
    def _require_mode(self) -> bool:
        if not self.mode.active:
            self._set_status("Summary mode is off (press m to enable).")
            return False
        return True

    def _handle_list_toggle(self) -> None:
        sync = self.mode.list_synchronizer(self.list_view)
        if self._require_mode() and sync is not None:
            self._update_widths()
            sync.toggle()

    def _handle_list_expand(self) -> None:
        sync = self.mode.list_synchronizer(self.list_view)
        if self._require_mode() and sync is not None:
            self._update_widths()
            sync.expand()

    def _handle_detail_toggle(self) -> None:
        sync = self.mode.detail_synchronizer(self.detail_view)
        if self._require_mode() and sync is not None:
            self._update_widths()
            sync.toggle_summary()

    def _handle_detail_expand(self) -> None:
        sync = self.mode.detail_synchronizer(self.detail_view)
        if self._require_mode() and sync is not None:
            self._update_widths()
            sync.expand()

    def _handle_remove(self) -> None:
        entry = self.list_view.selected_entry()
        if entry is None:
            self._set_status("No entry selected.")
            return
        if self.machine.remove(entry):
            self._set_status(f"Removed summary for {entry.display_title}.")
        else:
            self._set_status(f"No cached summary for {entry.display_title}.")

    def _handle_remove_all(self) -> None:
        count = self.machine.remove_all()
        noun = "summary" if count == 1 else "summaries"
        self._set_status(f"Removed {count} cached {noun}.")

    def _handle_mode_toggle(self) -> None:
        enabled = self.mode.toggle()
        self._set_status("Summary mode on." if enabled else "Summary mode off.")

    # ---- Layout helpers -------------------------------------------------
    def _table(self) -> tuple[str, List[str]]:
        from .cli import format_entry_table, summary_label

        labels = [summary_label(self.machine.record(entry)) for entry in self.entries]
        return format_entry_table(self.entries, labels)

    def _header_fragment(self) -> list[tuple[str, str]]:
        header, _ = self._table()
        return [("class:entry-list.header", header)]

    def _entry_fragments(self) -> list[tuple[str, str]]:
        _, rows = self._table()
        fragments: list[tuple[str, str]] = []
        for idx, (entry, line) in enumerate(zip(self.entries, rows)):
            if fragments:
                fragments.append(("", "\n"))
            selected = idx == self.list_view.selected_index
            style = "class:entry-list.selected" if selected else "class:entry-list"
            fragments.append((style, line))
            for decoration in self.list_view.decoration_lines(entry):
                fragments.append(("", "\n"))
                fragments.append(("class:summary", decoration))
        return fragments

    def _cursor_line(self) -> int:
        line = 0
        for idx, entry in enumerate(self.entries):
            if idx == self.list_view.selected_index:
                return line
            line += 1 + len(self.list_view.decoration_lines(entry))
        return 0

    def _detail_fragments(self) -> list[tuple[str, str]]:
        return [("class:detail", self.detail_view.text)]

    def _instructions_fragment(self) -> list[tuple[str, str]]:
        text = (
            "Up/Down navigate | s/e list summary/extend | S/E detail summary/extend | "
            "x remove | X remove all | m mode | q quit"
        )
        return [("class:instructions", text)]

    def _status_fragment(self) -> list[tuple[str, str]]:
        return [("class:status", self.status)]

    # ---- Selection helpers ----------------------------------------------
    def _move_selection(self, delta: int) -> None:
        self._set_selection(self.list_view.selected_index + delta)

    def _set_selection(self, index: int) -> None:
        previous = self.list_view.selected_index
        self.list_view.set_selection(index)
        if self.list_view.selected_index != previous:
            self.detail_view.show(self.list_view.selected_entry())

    # ---- Key bindings ---------------------------------------------------
    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(-1)

        @kb.add("down")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(1)

        @kb.add("pageup")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(-self.PAGE_JUMP)

        @kb.add("pagedown")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(self.PAGE_JUMP)

        @kb.add("home")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._set_selection(0)

        @kb.add("end")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            if self.entries:
                self._set_selection(len(self.entries) - 1)

        @kb.add("s")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_list_toggle()

        @kb.add("e")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_list_expand()

        @kb.add("S")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_detail_toggle()

        @kb.add("E")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_detail_expand()

        @kb.add("x")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_remove()

        @kb.add("X")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_remove_all()

        @kb.add("m")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_mode_toggle()

        @kb.add("q")
        @kb.add("Q")
        @kb.add("escape")
        @kb.add("c-c")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            event.app.exit(result=0)

        return kb

    def _cleanup(self) -> None:
        self.mode.deactivate()
        if self._summary_client is not None:
            self._summary_client.close()
            self._summary_client = None

    # ---- Public API -----------------------------------------------------
    def run(self) -> int:  # pragma: no cover - interactive
        header_window = Window(
            content=FormattedTextControl(self._header_fragment, focusable=False),
            height=1,
            always_hide_cursor=True,
        )
        body_window = Window(
            content=FormattedTextControl(
                self._entry_fragments,
                focusable=True,
                get_cursor_position=lambda: Point(0, self._cursor_line()),
            ),
            height=D(min=3),
            wrap_lines=False,
            always_hide_cursor=True,
            scroll_offsets=ScrollOffsets(top=2, bottom=2),
        )
        detail_window = Window(
            content=FormattedTextControl(self._detail_fragments, focusable=False),
            height=D(min=6),
            wrap_lines=True,
            always_hide_cursor=True,
        )
        instructions_window = Window(
            content=FormattedTextControl(self._instructions_fragment),
            height=1,
            always_hide_cursor=True,
        )
        status_window = Window(
            content=FormattedTextControl(self._status_fragment),
            height=1,
            always_hide_cursor=True,
        )

        layout = Layout(
            HSplit(
                [
                    header_window,
                    body_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    detail_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    instructions_window,
                    status_window,
                ]
            )
        )

        style = Style.from_dict(
            {
                "entry-list": "",
                "entry-list.selected": "reverse",
                "entry-list.header": "bold",
                "summary": "fg:#5f87af",
                "instructions": "fg:#888888",
                "status": "fg:#000000 bg:#e5e5e5",
                "detail": "",
            }
        )

        self._app = Application(
            layout=layout,
            key_bindings=self._build_key_bindings(),
            style=style,
            full_screen=True,
        )
        try:
            result = self._app.run()
        finally:
            self._cleanup()
        return 0 if result is None else result


def browse_entries(entries: Sequence["Entry"], summary_options: "SummaryOptions") -> int:
    browser = FeedBrowser(entries=entries, summary_options=summary_options)
    return browser.run()
