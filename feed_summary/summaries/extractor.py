"""Plain-text extraction of entry content for prompting."""
from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..entries import Entry

_BLOCK_TAG_RE = re.compile(
    r"</?(?:p|div|section|article|blockquote|pre|h[1-6]|ul|ol|li|table|tr|figure|figcaption|header|footer)\b[^>]*>",
    re.IGNORECASE,
)
_BREAK_TAG_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_DROP_BLOCK_RE = re.compile(r"<(script|style|head)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_INLINE_WS_RE = re.compile(r"[ \t\r\f\v]+")
_PARAGRAPH_RE = re.compile(r"\n\s*\n+")


def html_to_text(markup: str) -> str:
    """Collapse HTML into readable plain text with paragraph breaks preserved."""
    text = _COMMENT_RE.sub("", markup)
    text = _DROP_BLOCK_RE.sub("", text)
    text = _BREAK_TAG_RE.sub("\n", text)
    text = _BLOCK_TAG_RE.sub("\n\n", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")

    paragraphs = []
    for block in _PARAGRAPH_RE.split(text):
        lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in block.split("\n")]
        joined = "\n".join(line for line in lines if line)
        if joined:
            paragraphs.append(joined)
    return "\n\n".join(paragraphs)


def extract_content(entry: "Entry", max_chars: Optional[int] = None) -> Optional[str]:
    """Return the entry's content as plain text, or ``None`` when there is none.

    ``max_chars`` is a hard cutoff; ``None`` disables truncation.
    """
    raw = entry.content
    if raw is None:
        return None
    text = html_to_text(raw) if entry.is_markup else raw
    if not text.strip():
        return None
    if max_chars is not None:
        text = text[: max(0, max_chars)]
    return text
