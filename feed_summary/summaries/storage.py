"""Filesystem helpers for locating and persisting cached summaries."""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import yaml

if TYPE_CHECKING:
    from ..entries import Entry

_FRONT_MATTER_DELIMITER = "---"
_DEFAULT_SUMMARY_FILENAME = "summary.md"


class SummaryPathResolver:
    """Determines where an entry's summary lives on disk."""

    def __init__(self, summary_root: Path) -> None:
        self.summary_root = Path(summary_root).expanduser().resolve()

    def cache_path_for(self, entry: "Entry") -> Path:
        """Return the markdown path where the entry's summary should live."""
        return self.summary_dir_for(entry) / _DEFAULT_SUMMARY_FILENAME

    def summary_dir_for(self, entry: "Entry") -> Path:
        feed_slug = _slugify(entry.feed_title)
        digest = hashlib.sha1(entry.entry_id.encode("utf-8")).hexdigest()[:12]
        title_slug = _slugify(entry.title)[:48].rstrip("-") or "default"
        return self.summary_root / feed_slug / f"{digest}-{title_slug}"


class SummaryArchive:
    """Reads, writes and deletes summary markdown files for entries."""

    def __init__(self, resolver: SummaryPathResolver) -> None:
        self._resolver = resolver

    @classmethod
    def at(cls, summary_root: Path) -> "SummaryArchive":
        return cls(SummaryPathResolver(summary_root))

    @property
    def resolver(self) -> SummaryPathResolver:
        return self._resolver

    def read(self, entry: "Entry") -> Optional[str]:
        path = self._resolver.cache_path_for(entry)
        if not path.is_file():
            return None
        _, body = load_summary(path)
        return body

    def write(self, entry: "Entry", text: str) -> Path:
        path = self._resolver.cache_path_for(entry)
        metadata: Dict[str, object] = {
            "entry_id": entry.entry_id,
            "title": entry.title,
            "feed": entry.feed_title,
            "link": entry.link,
            "updated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        write_summary(path, text, metadata)
        return path

    def delete(self, entry: "Entry") -> bool:
        path = self._resolver.cache_path_for(entry)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        try:
            path.parent.rmdir()
        except OSError:
            pass
        return True


def load_summary(markdown_path: Path) -> Tuple[Dict[str, object], str]:
    """Read a summary markdown file and return its front matter and body."""
    raw_text = Path(markdown_path).read_text(encoding="utf-8")
    return _split_front_matter(raw_text)


def write_summary(markdown_path: Path, body: str, metadata: Optional[Dict[str, object]]) -> Path:
    """Persist summary markdown with YAML front matter.

    The body is stored verbatim followed by a single newline so that
    ``load_summary`` returns exactly what was written.
    """
    markdown_path = Path(markdown_path)
    markdown_path.parent.mkdir(parents=True, exist_ok=True)
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise TypeError("metadata must be a mapping")
    front_matter = yaml.safe_dump(dict(metadata), sort_keys=True, allow_unicode=True).strip()
    header = f"{_FRONT_MATTER_DELIMITER}\n{front_matter}\n{_FRONT_MATTER_DELIMITER}\n"
    markdown_path.write_text(f"{header}\n{body}\n", encoding="utf-8")
    return markdown_path


def _slugify(value: str) -> str:
    normalized = "".join(ch.lower() if ch.isalnum() else "-" for ch in value.strip())
    parts = [part for part in normalized.split("-") if part]
    slug = "-".join(parts)
    return slug or "default"


def _split_front_matter(content: str) -> Tuple[Dict[str, object], str]:
    opening = f"{_FRONT_MATTER_DELIMITER}\n"
    closing = f"\n{_FRONT_MATTER_DELIMITER}\n"
    if not content.startswith(opening):
        return {}, _strip_final_newline(content)

    end = content.find(closing, len(opening) - 1)
    if end == -1:
        # No closing delimiter found; treat entire file as body to avoid data loss.
        return {}, _strip_final_newline(content)

    front_matter_text = content[len(opening):end].strip()
    metadata = yaml.safe_load(front_matter_text) if front_matter_text else {}
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise ValueError("Summary front matter must deserialize to a mapping")

    body = content[end + len(closing):]
    if body.startswith("\n"):
        body = body[1:]
    return metadata, _strip_final_newline(body)


def _strip_final_newline(text: str) -> str:
    return text[:-1] if text.endswith("\n") else text
