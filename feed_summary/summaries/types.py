"""Dataclasses shared across the summaries feature."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class SummaryState(Enum):
    """Lifecycle states of a single entry's summary."""

    EMPTY = "empty"
    GENERATING = "generating"
    CACHED = "cached"
    EXPANDING = "expanding"


@dataclass(frozen=True)
class SummaryRecord:
    """Snapshot of an entry's cached summary and in-flight flag."""

    cached_text: Optional[str] = None
    pending: bool = False

    @property
    def has_cache(self) -> bool:
        return self.cached_text is not None

    @property
    def state(self) -> SummaryState:
        if self.pending:
            return SummaryState.EXPANDING if self.has_cache else SummaryState.GENERATING
        return SummaryState.CACHED if self.has_cache else SummaryState.EMPTY


@dataclass
class SummaryOptions:
    """Options shared by the CLI commands and the TUI browser."""

    summaries_dir: Path
    model: str
    temperature: float = 0.2
    max_tokens: Optional[int] = None
    reasoning_effort: Optional[str] = "medium"
    summarize_prompt: str = "summarize"
    expand_prompt: str = "expand"
    prompts_dir: Optional[Path] = None
    max_chars: Optional[int] = 10000
