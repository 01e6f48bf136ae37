"""Feed entries and the per-entry metadata store."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

if TYPE_CHECKING:
    from .summaries.storage import SummaryArchive

logger = logging.getLogger(__name__)

SUMMARY_KEY = "summary"
PENDING_KEY = "summary-pending"

_MISSING = object()


@dataclass(frozen=True)
class Entry:
    """A single article from a feed export."""

    entry_id: str
    title: str = ""
    feed_title: str = ""
    link: str = ""
    published: str = ""
    content: Optional[str] = None
    content_type: str = "text"

    @property
    def is_markup(self) -> bool:
        return self.content_type.lower() in {"html", "xhtml", "markup"}

    @property
    def display_title(self) -> str:
        return self.title.strip() or self.link or self.entry_id


def iter_jsonl(path: Path) -> Iterable[dict]:
    """Yield JSON objects from a JSON Lines file, skipping malformed rows."""
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed feed line in %s", path)
                continue


def entry_from_obj(obj: Any) -> Optional[Entry]:
    if not isinstance(obj, dict):
        return None
    entry_id = obj.get("id") or obj.get("entry_id") or obj.get("link")
    if not entry_id:
        return None
    content = obj.get("content")
    if content is not None and not isinstance(content, str):
        content = None
    feed = obj.get("feed_title") or obj.get("feed") or ""
    if isinstance(feed, dict):
        feed = feed.get("title") or ""
    return Entry(
        entry_id=str(entry_id),
        title=str(obj.get("title") or ""),
        feed_title=str(feed),
        link=str(obj.get("link") or ""),
        published=str(obj.get("published") or obj.get("date") or ""),
        content=content,
        content_type=str(obj.get("content_type") or "text"),
    )


def load_entries(path: Path) -> list[Entry]:
    """Load entries from a ``.json`` export (list or ``{"entries": [...]}``) or JSON Lines."""
    path = Path(path).expanduser()
    if path.suffix.lower() == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("entries", [])
        objects: Iterable[Any] = payload if isinstance(payload, list) else []
    else:
        objects = iter_jsonl(path)

    entries: list[Entry] = []
    seen: set[str] = set()
    for obj in objects:
        entry = entry_from_obj(obj)
        if entry is None or entry.entry_id in seen:
            continue
        seen.add(entry.entry_id)
        entries.append(entry)
    return entries


class EntryStore:
    """Per-entry key/value metadata keyed by entry identity.

    The ``summary`` key is written through to the optional archive and loaded
    from it lazily. Every other key, including ``summary-pending``, lives only
    in memory and therefore starts out unset after a restart.
    """

    def __init__(
        self,
        entries: Sequence[Entry] = (),
        archive: Optional["SummaryArchive"] = None,
    ) -> None:
        self._entries: Dict[str, Entry] = {}
        self._meta: Dict[str, Dict[str, Any]] = {}
        self._archive = archive
        for entry in entries:
            self.add(entry)

    def add(self, entry: Entry) -> None:
        self._entries.setdefault(entry.entry_id, entry)

    def get(self, entry_id: str) -> Optional[Entry]:
        return self._entries.get(entry_id)

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_meta(self, entry: Entry, key: str, default: Any = None) -> Any:
        meta = self._meta.setdefault(entry.entry_id, {})
        if key not in meta and key == SUMMARY_KEY and self._archive is not None:
            meta[key] = self._archive.read(entry)
        value = meta.get(key, _MISSING)
        if value is _MISSING or value is None:
            return default
        return value

    def set_meta(self, entry: Entry, key: str, value: Any) -> None:
        self.add(entry)
        if key == SUMMARY_KEY and self._archive is not None:
            if value is None:
                self._archive.delete(entry)
            else:
                self._archive.write(entry, value)
        self._meta.setdefault(entry.entry_id, {})[key] = value

    def for_each_entry(self, fn: Callable[[Entry], None]) -> None:
        for entry in self.entries:
            fn(entry)
