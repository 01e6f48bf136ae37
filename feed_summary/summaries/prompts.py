"""Instruction templates sent as the system message of summary requests."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

BUILTIN_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
TEMPLATE_SUFFIXES = (".md", ".txt")

logger = logging.getLogger(__name__)


class PromptValidationError(ValueError):
    """Raised when an instruction template is unusable."""


@dataclass(frozen=True)
class PromptDocument:
    name: str
    content: str
    path: Path

    @property
    def text(self) -> str:
        return self.content.strip()

    @property
    def builtin(self) -> bool:
        return self.path.parent == BUILTIN_PROMPTS_DIR


@dataclass(frozen=True)
class InstructionPair:
    """The summarize and expand templates a generation client runs with."""

    summarize: PromptDocument
    expand: PromptDocument


class PromptLoader:
    """Finds templates by name, user directories first, then the built-ins.

    A name may also be a path to a file. Names without a suffix match
    ``<name>.md`` or ``<name>.txt``.
    """

    def __init__(
        self,
        prompts_dir: Optional[Path] = None,
        extra_search_dirs: Optional[Sequence[Path]] = None,
    ) -> None:
        dirs: List[Path] = []
        if prompts_dir:
            dirs.append(Path(prompts_dir).expanduser())
        for directory in extra_search_dirs or ():
            dirs.append(Path(directory).expanduser())
        dirs.append(BUILTIN_PROMPTS_DIR)
        self.search_dirs: List[Path] = list(dict.fromkeys(dirs))

    def resolve(self, name: str) -> Path:
        explicit = Path(name).expanduser()
        if explicit.is_file():
            return explicit
        for candidate in self._candidates(name):
            if candidate.is_file():
                return candidate
        roots = ", ".join(str(directory) for directory in self.search_dirs)
        raise FileNotFoundError(f"Prompt '{name}' was not found in {roots}.")

    def load(self, name: str) -> PromptDocument:
        path = self.resolve(name)
        content = path.read_text(encoding="utf-8")
        validate_instructions(content, path)
        document = PromptDocument(name=name, content=content, path=path)
        logger.debug("loaded prompt %s from %s", name, path)
        return document

    def load_pair(self, summarize: str, expand: str) -> InstructionPair:
        return InstructionPair(summarize=self.load(summarize), expand=self.load(expand))

    def _candidates(self, name: str) -> Iterator[Path]:
        has_suffix = Path(name).suffix in TEMPLATE_SUFFIXES
        for directory in self.search_dirs:
            if has_suffix:
                yield directory / name
                continue
            for suffix in TEMPLATE_SUFFIXES:
                yield directory / f"{name}{suffix}"


def validate_instructions(content: str, path: Path) -> None:
    if not content.strip():
        raise PromptValidationError(f"Prompt '{path}' is empty.")
    # Instructions are sent verbatim; nothing fills placeholders.
    if "{{" in content or "}}" in content:
        raise PromptValidationError(f"Prompt '{path}' contains '{{{{...}}}}' placeholders.")
