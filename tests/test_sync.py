"""Tests for the list and detail surface synchronizers."""

import pytest

from feed_summary.entries import PENDING_KEY, SUMMARY_KEY, EntryStore
from feed_summary.summaries import SummaryStateMachine
from feed_summary.surfaces import EntryDetailView, EntryListView
from feed_summary.sync import (
    EXTENDING_MESSAGE,
    GENERATE_HINT,
    GENERATING_MESSAGE,
    REVEAL_HINT,
    DetailSynchronizer,
    ListSynchronizer,
    format_summary,
    insert_at_end,
)

BUSY = "A summary request is already in progress for this entry."


class ReadOnlyArchive:
    def read(self, entry):
        return None

    def write(self, entry, text):
        raise PermissionError("read-only")

    def delete(self, entry):
        return False


@pytest.fixture
def list_view(sample_entries):
    return EntryListView(sample_entries, width=60)


@pytest.fixture
def list_sync(machine, list_view, notifications):
    sync = ListSynchronizer(machine, list_view, notify=notifications.append)
    sync.attach()
    return sync


@pytest.fixture
def detail_view(sample_entries):
    return EntryDetailView(sample_entries[0], width=60)


@pytest.fixture
def detail_sync(machine, detail_view, notifications):
    sync = DetailSynchronizer(machine, detail_view, notify=notifications.append)
    sync.attach()
    return sync


def block_of(view):
    """Return the lines between the header separator and the next blank line."""
    start = view.anchor_index() + 1
    end = view.lines.index("", start)
    return "\n".join(view.lines[start:end])


def test_format_summary_wraps_each_paragraph():
    text = "one two three four five\n\nsix"
    assert format_summary(text, 10) == "one two\nthree four\nfive\n\nsix"


class TestListSynchronizer:
    def test_toggle_generates_and_shows(self, list_sync, list_view, fake_client, sample_entries):
        entry = sample_entries[0]

        list_sync.toggle()
        assert list_view.decoration(entry) == GENERATING_MESSAGE

        fake_client.last.succeed("Short summary.")
        assert list_view.decoration(entry) == "Short summary."
        assert list_view.decoration_lines(entry) == ["    Short summary."]

    def test_toggle_hides_and_reshows_from_cache(self, list_sync, list_view, fake_client, store, sample_entries):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, "Cached.")

        list_sync.toggle(entry)
        assert list_view.decoration(entry) == "Cached."
        list_sync.toggle(entry)
        assert list_view.has_decoration(entry) is False
        list_sync.toggle(entry)
        assert list_view.decoration(entry) == "Cached."
        assert fake_client.calls == []

    def test_hidden_result_is_not_shown_but_cached(self, list_sync, list_view, fake_client, machine, sample_entries):
        entry = sample_entries[0]

        list_sync.toggle(entry)
        list_sync.toggle(entry)
        fake_client.last.succeed("Late.")

        assert list_view.has_decoration(entry) is False
        assert machine.record(entry).cached_text == "Late."

    def test_failure_removes_placeholder(self, list_sync, list_view, fake_client, notifications, sample_entries):
        entry = sample_entries[0]

        list_sync.toggle(entry)
        fake_client.last.fail("quota")

        assert list_view.has_decoration(entry) is False
        assert notifications == ["Summary failed: quota"]

    def test_sync_error_is_reported(self, list_sync, list_view, notifications, sample_entries):
        entry = sample_entries[4]

        list_sync.toggle(entry)

        assert list_view.has_decoration(entry) is False
        assert notifications == ["Entry has no content to summarise."]

    def test_expand_appends(self, list_sync, list_view, fake_client, store, sample_entries):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, "Intro.")

        list_sync.expand(entry)
        assert list_view.decoration(entry) == f"Intro.\n\n{EXTENDING_MESSAGE}"

        fake_client.last.succeed("More.")
        assert list_view.decoration(entry) == "Intro.\n\nMore."

    def test_expand_without_cache_generates(self, list_sync, list_view, fake_client, sample_entries):
        entry = sample_entries[0]

        list_sync.expand(entry)

        assert fake_client.last.kind == "summarize"
        assert list_view.decoration(entry) == GENERATING_MESSAGE

    def test_expand_failure_restores_cache(self, list_sync, list_view, fake_client, store, sample_entries):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, "Intro.")

        list_sync.expand(entry)
        fake_client.last.fail()

        assert list_view.decoration(entry) == "Intro."

    def test_expand_busy_restores_previous_decoration(
        self, list_sync, list_view, fake_client, store, notifications, sample_entries
    ):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, "Intro.")
        list_sync.toggle(entry)
        store.set_meta(entry, PENDING_KEY, True)

        list_sync.expand(entry)

        assert list_view.decoration(entry) == "Intro."
        assert notifications == [BUSY]
        assert fake_client.calls == []

    def test_removal_elsewhere_clears_decoration(self, list_sync, list_view, machine, store, sample_entries):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, "Intro.")
        list_sync.toggle(entry)

        machine.remove(entry)

        assert list_view.has_decoration(entry) is False

    def test_detach_clears_decorations(self, list_sync, list_view, fake_client, store, sample_entries):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Intro.")
        list_sync.toggle(sample_entries[0])

        list_sync.detach()

        assert list_view.has_decoration(sample_entries[0]) is False


    def test_save_failure_clears_placeholder(self, sample_entries, fake_client, notifications):
        store = EntryStore(sample_entries, archive=ReadOnlyArchive())
        machine = SummaryStateMachine(store, fake_client, notify=notifications.append)
        view = EntryListView(sample_entries)
        sync = ListSynchronizer(machine, view, notify=notifications.append)
        sync.attach()
        view_entry = sample_entries[0]

        sync.toggle(view_entry)
        fake_client.last.succeed("Will not be saved.")

        assert view.has_decoration(view_entry) is False
        assert machine.record(view_entry).pending is False
        assert notifications == ["Summary failed: Could not save summary: read-only"]

    def test_outside_change_keeps_action_width(self, list_sync, list_view, fake_client, machine, store, sample_entries):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, " ".join(f"word{i}" for i in range(30)))
        list_view.width = 40
        list_sync.toggle(entry)

        list_view.width = 200
        machine.request_expansion(entry, lambda text: None)
        fake_client.last.succeed("Extra detail arrives from another surface.")

        lines = list_view.decoration(entry).split("\n")
        assert max(len(line) for line in lines) <= 36
        assert "surface." in lines[-1]


class TestDetailSynchronizer:
    def test_initial_hint(self, detail_sync, detail_view):
        assert detail_view.lines[:3] == ["Title: First post", "Feed: Blog", ""]
        assert block_of(detail_view) == GENERATE_HINT
        assert detail_view.lines[-1] == "Article body text"

    def test_generate_then_show(self, detail_sync, detail_view, fake_client):
        detail_sync.toggle_summary()
        assert block_of(detail_view) == GENERATING_MESSAGE

        fake_client.last.succeed("A summary.")

        assert detail_view.text.count("Summary:\nA summary.") == 1
        assert detail_sync.state.visible is True
        assert detail_sync.state.pending_message is None

    def test_toggle_hides_cached(self, detail_sync, detail_view, store, sample_entries):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Cached.")
        detail_view.refresh()
        assert block_of(detail_view) == REVEAL_HINT

        detail_sync.toggle_summary()
        assert block_of(detail_view) == "Summary:\nCached."

        detail_sync.toggle_summary()
        assert block_of(detail_view) == REVEAL_HINT

    def test_expand_shows_cache_and_placeholder(self, detail_sync, detail_view, fake_client, store, sample_entries):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Intro.")
        detail_sync.toggle_summary()

        detail_sync.expand()

        assert "Summary:\nIntro.\n\nExtending summary..." in detail_view.text
        fake_client.last.succeed("More.")
        assert "Summary:\nIntro.\n\nMore." in detail_view.text
        assert EXTENDING_MESSAGE not in detail_view.text

    def test_expand_hidden_cache_reveals_first(self, detail_sync, detail_view, fake_client, store, sample_entries):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Intro.")

        detail_sync.expand()

        assert detail_sync.state.visible is True
        assert fake_client.calls == []

    def test_pending_hidden_cache_shows_placeholder_only(
        self, detail_sync, detail_view, fake_client, store, sample_entries
    ):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Intro.")
        detail_sync.toggle_summary()
        detail_sync.expand()

        detail_sync.state.visible = False
        detail_view.refresh()

        assert block_of(detail_view) == EXTENDING_MESSAGE

    def test_busy_when_already_pending(self, detail_sync, fake_client, notifications):
        detail_sync.toggle_summary()
        detail_sync.toggle_summary()

        assert len(fake_client.calls) == 1
        assert notifications == [BUSY]

    def test_navigation_reinserts_block(self, detail_sync, detail_view, fake_client, sample_entries):
        detail_sync.toggle_summary()

        detail_view.show(sample_entries[2])
        assert block_of(detail_view) == GENERATE_HINT

        detail_view.show(sample_entries[0])
        assert block_of(detail_view) == GENERATING_MESSAGE

        fake_client.last.succeed("Back again.")
        assert block_of(detail_view) == "Summary:\nBack again."

    def test_sync_error_restores_hint(self, machine, notifications, sample_entries):
        view = EntryDetailView(sample_entries[4])
        sync = DetailSynchronizer(machine, view, notify=notifications.append)
        sync.attach()

        sync.toggle_summary()

        assert block_of(view) == GENERATE_HINT
        assert "(no content)" in view.lines
        assert notifications == ["Entry has no content to summarise."]

    def test_change_from_another_surface(self, detail_sync, detail_view, machine, fake_client, sample_entries):
        machine.request_summary(sample_entries[0], lambda text: None)
        assert block_of(detail_view) == GENERATE_HINT

        fake_client.last.succeed("Elsewhere.")
        assert block_of(detail_view) == REVEAL_HINT

        machine.remove(sample_entries[0])
        assert block_of(detail_view) == GENERATE_HINT

    def test_insert_at_end(self, machine, sample_entries):
        view = EntryDetailView(sample_entries[0])
        DetailSynchronizer(machine, view, insert=insert_at_end).attach()

        assert view.lines[-3:] == ["Article body text", "", GENERATE_HINT]

    def test_detach_removes_block_and_ignores_results(self, detail_sync, detail_view, fake_client):
        detail_sync.toggle_summary()
        detail_sync.detach()

        fake_client.last.succeed("Too late.")

        assert GENERATE_HINT not in detail_view.text
        assert "Too late." not in detail_view.text
        assert detail_view.lines == ["Title: First post", "Feed: Blog", "", "Article body text"]

    def test_generation_failure_restores_hint(self, detail_sync, detail_view, fake_client):
        detail_sync.toggle_summary()
        fake_client.last.fail()

        assert block_of(detail_view) == GENERATE_HINT
        assert GENERATING_MESSAGE not in detail_view.text
        assert detail_sync.state.pending_message is None

    def test_expansion_failure_restores_cache(self, detail_sync, detail_view, fake_client, store, sample_entries):
        store.set_meta(sample_entries[0], SUMMARY_KEY, "Intro.")
        detail_sync.toggle_summary()
        detail_sync.expand()

        fake_client.last.fail()

        assert block_of(detail_view) == "Summary:\nIntro."
        assert EXTENDING_MESSAGE not in detail_view.text

    @pytest.mark.parametrize("reveal", ["toggle_summary", "expand"])
    def test_reveal_wraps_to_current_width(self, machine, store, sample_entries, reveal):
        entry = sample_entries[0]
        store.set_meta(entry, SUMMARY_KEY, " ".join(f"word{i}" for i in range(40)))
        view = EntryDetailView(entry, width=30)
        sync = DetailSynchronizer(machine, view)
        sync.attach()

        view.width = 120
        getattr(sync, reveal)()

        summary_lines = view.lines[view.anchor_index() + 2:view.lines.index("", view.anchor_index() + 1)]
        assert max(len(line) for line in summary_lines) > 29
        assert max(len(line) for line in summary_lines) <= 120
