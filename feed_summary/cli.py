from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from .entries import Entry, EntryStore, load_entries
from .summaries import (
    AuthenticationError,
    GenerationClient,
    OpenRouterClient,
    OpenRouterError,
    PromptValidationError,
    SummaryArchive,
    SummaryError,
    SummaryOptions,
    SummaryRecord,
    SummaryState,
    SummaryStateMachine,
)

logger = logging.getLogger("feed_summary")

DEFAULT_MODEL = "x-ai/grok-4-fast:free"


def get_default_summaries_dir() -> Path:
    return Path("~/.feed-summary/summaries").expanduser()


def get_openrouter_config_path() -> Path:
    return Path("~/.config/openrouter/key").expanduser()


def load_openrouter_api_key() -> Optional[str]:
    env_key = os.getenv("OPENROUTER_API_KEY")
    if env_key and env_key.strip():
        return env_key.strip()

    config_path = get_openrouter_config_path()
    try:
        contents = config_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return contents or None


def build_openrouter_client() -> OpenRouterClient:
    api_key = load_openrouter_api_key()
    if not api_key:
        raise AuthenticationError(
            "OpenRouter API key not found. Set OPENROUTER_API_KEY or place a key in ~/.config/openrouter/key."
        )

    base_url = os.getenv("OPENROUTER_API_BASE", "https://openrouter.ai/api/v1")
    referer = os.getenv("OPENROUTER_REFERER") or None
    title = os.getenv("OPENROUTER_TITLE", "feed-summary") or None
    return OpenRouterClient(
        api_key=api_key,
        base_url=base_url,
        referer=referer,
        title=title,
    )


def normalize_reasoning_effort(value: Optional[str]) -> Optional[str]:
    if value is None:
        return "medium"
    if value.lower() == "none":
        return None
    return value


def create_state_machine(
    entries: Sequence[Entry],
    options: SummaryOptions,
    *,
    notify: Optional[Callable[[str], None]] = None,
) -> tuple[SummaryStateMachine, Optional[OpenRouterClient]]:
    """Wire store, archive, prompts and provider together.

    A missing API key leaves the provider unset; requests then fail with
    ``NotConfiguredError`` instead of aborting start-up.
    """
    store = EntryStore(entries, archive=SummaryArchive.at(options.summaries_dir))
    try:
        client: Optional[OpenRouterClient] = build_openrouter_client()
    except AuthenticationError as exc:
        logger.info("Summaries disabled: %s", exc)
        client = None
    generation = GenerationClient.from_options(client, options)
    machine = SummaryStateMachine(store, generation, max_chars=options.max_chars, notify=notify)
    return machine, client


def summary_options_from_args(args: argparse.Namespace) -> SummaryOptions:
    max_chars = args.max_chars if args.max_chars and args.max_chars > 0 else None
    return SummaryOptions(
        summaries_dir=(args.summaries_dir or get_default_summaries_dir()).expanduser(),
        model=args.model,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        reasoning_effort=normalize_reasoning_effort(args.reasoning_effort),
        summarize_prompt=args.summarize_prompt,
        expand_prompt=args.expand_prompt,
        prompts_dir=args.prompts_dir,
        max_chars=max_chars,
    )


def format_entry_table(
    entries: Sequence[Entry],
    summary_labels: Optional[Sequence[str]] = None,
    *,
    title_width: int = 60,
) -> tuple[str, list[str]]:
    if not entries:
        header = "Idx  Title  Feed  Date  Summary"
        return header, []

    titles = [_clip(entry.display_title, title_width) for entry in entries]
    feeds = [entry.feed_title or "?" for entry in entries]
    dates = [entry.published[:10] or "?" for entry in entries]
    labels = list(summary_labels) if summary_labels is not None else ["?"] * len(entries)

    index_width = max(len("Idx"), len(str(len(entries))))
    title_col = max(len("Title"), max(len(title) for title in titles))
    feed_col = max(len("Feed"), max(len(feed) for feed in feeds))
    date_col = max(len("Date"), max(len(date) for date in dates))

    header = (
        f"{'Idx'.rjust(index_width)}  "
        f"{'Title'.ljust(title_col)}  "
        f"{'Feed'.ljust(feed_col)}  "
        f"{'Date'.ljust(date_col)}  "
        f"Summary"
    )

    lines: list[str] = []
    for index, (title, feed, date, label) in enumerate(zip(titles, feeds, dates, labels), start=1):
        line = (
            f"{str(index).rjust(index_width)}  "
            f"{title.ljust(title_col)}  "
            f"{feed.ljust(feed_col)}  "
            f"{date.ljust(date_col)}  "
            f"{label}"
        )
        lines.append(line)
    return header, lines


_STATE_LABELS = {
    SummaryState.EMPTY: "-",
    SummaryState.GENERATING: "generating",
    SummaryState.CACHED: "yes",
    SummaryState.EXPANDING: "extending",
}


def summary_label(record: SummaryRecord) -> str:
    return _STATE_LABELS[record.state]


def _clip(text: str, width: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 3] + "..."


def resolve_entry(candidate: str, entries: Sequence[Entry]) -> Entry:
    stripped = candidate.strip()
    for entry in entries:
        if entry.entry_id == stripped:
            return entry
    if stripped.isdigit():
        if not entries:
            raise LookupError("Feed contains no entries.")
        index = int(stripped)
        if not 1 <= index <= len(entries):
            raise LookupError(f"Entry index {index} out of range (1..{len(entries)}).")
        return entries[index - 1]
    raise LookupError(f"Entry not found: {candidate}. Provide a 1-based index or an entry id.")


def load_feed(parser: argparse.ArgumentParser, feed: Path) -> list[Entry]:
    feed = feed.expanduser()
    if not feed.is_file():
        parser.error(f"Feed file does not exist: {feed}")
    try:
        return load_entries(feed)
    except (OSError, ValueError) as exc:
        parser.error(f"Failed to read feed {feed}: {exc}")
        raise


async def _await_summary(machine: SummaryStateMachine, entry: Entry, expand: bool) -> str:
    loop = asyncio.get_running_loop()
    done: asyncio.Future[str] = loop.create_future()

    def on_success(text: str) -> None:
        if not done.done():
            done.set_result(text)

    def on_error(error: SummaryError) -> None:
        if not done.done():
            done.set_exception(error)

    if expand and machine.record(entry).cached_text is not None:
        machine.request_expansion(entry, on_success, on_error)
    else:
        machine.request_summary(entry, on_success, on_error)
    return await done


def handle_summaries_generate(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    entries = load_feed(parser, args.feed)
    targets: list[Entry] = []
    for candidate in args.entries:
        try:
            targets.append(resolve_entry(candidate, entries))
        except LookupError as exc:
            parser.error(str(exc))

    try:
        machine, client = create_state_machine(entries, summary_options_from_args(args), notify=logger.debug)
    except (FileNotFoundError, PromptValidationError) as exc:
        parser.error(str(exc))
        return 2
    except OpenRouterError as exc:
        parser.error(f"Failed to initialise OpenRouter client: {exc}")
        return 2

    async def run_all() -> int:
        exit_code = 0
        for entry in targets:
            try:
                text = await _await_summary(machine, entry, expand=args.expand)
            except SummaryError as exc:
                print(f"[failed] {entry.display_title}: {exc}", file=sys.stderr)
                exit_code = 1
                continue
            print(f"# {entry.display_title}")
            print(text)
            print()
        return exit_code

    try:
        return asyncio.run(run_all())
    finally:
        if client:
            client.close()


def handle_summaries_show(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    entries = load_feed(parser, args.feed)
    try:
        entry = resolve_entry(args.entry, entries)
    except LookupError as exc:
        parser.error(str(exc))
        return 2
    summaries_dir = (args.summaries_dir or get_default_summaries_dir()).expanduser()
    store = EntryStore(entries, archive=SummaryArchive.at(summaries_dir))
    machine = SummaryStateMachine(store)
    cached = machine.record(entry).cached_text
    if cached is None:
        print(f"No cached summary for {entry.display_title}.", file=sys.stderr)
        return 1
    sys.stdout.write(cached)
    if not cached.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def handle_summaries_remove(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    entries = load_feed(parser, args.feed)
    if args.all and args.entries:
        parser.error("Specify either entries or --all, not both.")
    if not args.all and not args.entries:
        parser.error("Specify at least one entry or --all.")

    summaries_dir = (args.summaries_dir or get_default_summaries_dir()).expanduser()
    store = EntryStore(entries, archive=SummaryArchive.at(summaries_dir))
    machine = SummaryStateMachine(store)

    if args.all:
        count = machine.remove_all()
        print(f"Removed {count} cached summaries.")
        return 0

    for candidate in args.entries:
        try:
            entry = resolve_entry(candidate, entries)
        except LookupError as exc:
            parser.error(str(exc))
            return 2
        if machine.remove(entry):
            print(f"[removed] {entry.display_title}")
        else:
            print(f"[none] {entry.display_title}")
    return 0


def _add_summary_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--summaries-dir",
        type=Path,
        help="Directory to store cached summaries (default: ~/.feed-summary/summaries)",
    )
    p.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"OpenRouter model identifier to use (default: {DEFAULT_MODEL})",
    )
    p.add_argument(
        "--temperature",
        type=float,
        default=0.2,
        help="Sampling temperature for the completion (default: 0.2)",
    )
    p.add_argument(
        "--max-tokens",
        type=int,
        help="Optional cap for completion tokens",
    )
    p.add_argument(
        "--reasoning-effort",
        choices=["low", "medium", "high", "none"],
        default="none",
        help="Reasoning effort hint when supported by the chosen model (default: none)",
    )
    p.add_argument(
        "--summarize-prompt",
        default="summarize",
        help="Instruction template used for one-sentence summaries (default: summarize)",
    )
    p.add_argument(
        "--expand-prompt",
        default="expand",
        help="Instruction template used when extending a summary (default: expand)",
    )
    p.add_argument(
        "--prompts-dir",
        type=Path,
        help="Extra directory searched for instruction templates before the built-in ones",
    )
    p.add_argument(
        "--max-chars",
        type=int,
        default=10000,
        help="Truncate article text to this many characters before prompting; 0 disables (default: 10000)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="feed-summary",
        description="Browse feed entries and generate short LLM summaries for them.",
    )
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics written to stderr (default: WARNING)",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list", help="List entries of a feed export")
    p_list.add_argument("feed", type=Path, help="Feed export (.json or .jsonl)")
    p_list.add_argument("--limit", type=int, default=20, help="Limit number of entries (default: 20)")
    p_list.add_argument(
        "--summaries-dir",
        type=Path,
        help="Directory holding cached summaries (default: ~/.feed-summary/summaries)",
    )

    p_browse = sub.add_parser("browse", help="Interactively browse entries and their summaries")
    p_browse.add_argument("feed", type=Path, help="Feed export (.json or .jsonl)")
    p_browse.add_argument("--limit", type=int, help="Limit number of entries")
    _add_summary_options(p_browse)

    p_summaries = sub.add_parser("summaries", help="Generate and inspect cached summaries")
    summaries_sub = p_summaries.add_subparsers(dest="summaries_cmd", required=True)

    p_generate = summaries_sub.add_parser("generate", help="Generate (or print cached) summaries for entries")
    p_generate.add_argument("feed", type=Path, help="Feed export (.json or .jsonl)")
    p_generate.add_argument("entries", nargs="+", help="Entry indices or ids to summarise")
    p_generate.add_argument(
        "--expand",
        action="store_true",
        help="Extend existing summaries with one more paragraph",
    )
    _add_summary_options(p_generate)

    p_show = summaries_sub.add_parser("show", help="Print the cached summary of an entry")
    p_show.add_argument("feed", type=Path, help="Feed export (.json or .jsonl)")
    p_show.add_argument("entry", help="Entry index or id")
    p_show.add_argument("--summaries-dir", type=Path, help="Directory holding cached summaries")

    p_remove = summaries_sub.add_parser("remove", help="Delete cached summaries")
    p_remove.add_argument("feed", type=Path, help="Feed export (.json or .jsonl)")
    p_remove.add_argument("entries", nargs="*", help="Entry indices or ids")
    p_remove.add_argument("--all", action="store_true", help="Remove summaries of every entry in the feed")
    p_remove.add_argument("--summaries-dir", type=Path, help="Directory holding cached summaries")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.cmd == "list":
        entries = load_feed(parser, args.feed)
        shown = entries[: args.limit] if args.limit else entries
        if not shown:
            print(f"No entries found in {args.feed}")
            return 0
        summaries_dir = (args.summaries_dir or get_default_summaries_dir()).expanduser()
        machine = SummaryStateMachine(EntryStore(shown, archive=SummaryArchive.at(summaries_dir)))
        labels = [summary_label(machine.record(entry)) for entry in shown]
        header, lines = format_entry_table(shown, labels)
        print(header)
        for line in lines:
            print(line)
        return 0

    if args.cmd == "browse":
        entries = load_feed(parser, args.feed)
        if args.limit:
            entries = entries[: args.limit]
        if not entries:
            print(f"No entries found in {args.feed}")
            return 0
        try:
            from .browser import browse_entries
        except ModuleNotFoundError as exc:
            if exc.name == "prompt_toolkit":
                parser.error(
                    "Interactive browsing requires optional dependency 'prompt_toolkit'. "
                    "Install it from the repo with `python -m pip install .[browser]`."
                )
            raise
        try:
            return browse_entries(entries, summary_options_from_args(args))
        except (FileNotFoundError, PromptValidationError) as exc:
            parser.error(str(exc))
            return 2

    if args.cmd == "summaries":
        if args.summaries_cmd == "generate":
            return handle_summaries_generate(args, parser)
        if args.summaries_cmd == "show":
            return handle_summaries_show(args, parser)
        if args.summaries_cmd == "remove":
            return handle_summaries_remove(args, parser)
        parser.error("Unknown summaries subcommand")
        return 2

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
