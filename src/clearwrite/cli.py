"""Command-line grammar check over a plain-text document."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .editor.document_model import RichDocument
from .grammar.client import GrammarChecker
from .services.session import GrammarSession
from .services.settings import Settings, SettingsStore, redact_secret
from .utils.logging import resolve_level, setup_logging

LOGGER = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None, *, checker: GrammarChecker | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.output and not args.fix_all:
        parser.error("--output requires --fix-all")

    try:
        payload = _load_text(args.text, args.file)
    except OSError as exc:
        print(f"Unable to read {args.file}: {exc}", file=sys.stderr)
        return 1
    if not payload.strip():
        print("No input text provided.", file=sys.stderr)
        return 1

    store = SettingsStore(args.settings) if args.settings else SettingsStore()
    settings = store.load(
        overrides={
            "language": args.language,
            "endpoint": args.endpoint,
            "max_fragment_chars": args.max_fragment_chars,
        }
    )
    setup_logging(
        resolve_level(verbose=args.verbose, debug_logging=settings.debug_logging),
        console=args.verbose,
        trace_requests=settings.debug_logging,
    )
    LOGGER.info(
        "Checking %d char(s) against %s (language=%s, api key=%s)",
        len(payload),
        settings.endpoint,
        settings.language,
        redact_secret(settings.api_key) or "none",
    )
    result = asyncio.run(_run_check(payload, settings, checker=checker, fix_all=args.fix_all))

    if args.output:
        args.output.write_text(result["text"], encoding="utf-8")
    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0
    _print_report(result)
    if args.fix_all and not args.output:
        print()
        print(result["text"])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check a plain-text document with a grammar service.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--file",
        type=Path,
        help="File containing the text to check. Paragraphs are separated by blank lines.",
    )
    source.add_argument("--text", help="Inline text to check. Reads stdin when neither --file nor --text is given.")
    parser.add_argument("--language", help="Language code sent to the grammar service (default en-US).")
    parser.add_argument("--endpoint", help="Grammar service endpoint URL.")
    parser.add_argument(
        "--max-fragment-chars",
        type=int,
        help="Largest fragment submitted in one request (default 1000).",
    )
    parser.add_argument("--settings", type=Path, help="Path to an alternate settings.json file.")
    parser.add_argument(
        "--fix-all",
        action="store_true",
        help="Apply the first replacement of every finding and emit the corrected text.",
    )
    parser.add_argument("--output", type=Path, help="Write the corrected text here (with --fix-all).")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to the console.")
    return parser


async def _run_check(
    text: str,
    settings: Settings,
    *,
    checker: GrammarChecker | None = None,
    fix_all: bool = False,
) -> dict[str, Any]:
    document = RichDocument.from_text(text)
    async with GrammarSession(document, settings=settings, checker=checker, auto_check=False) as session:
        items = await session.check()
        applied = session.fix_all() if fix_all else 0
        stats = session.stats()
        return {
            "items": [item.to_dict() for item in items],
            "applied": applied,
            "stats": {"words": stats.words, "characters": stats.characters},
            "text": document.flat_text(),
            "version": document.version_signature(),
        }


def _print_report(result: dict[str, Any]) -> None:
    items = result["items"]
    stats = result["stats"]
    print(f"words: {stats['words']}")
    print(f"characters: {stats['characters']}")
    print(f"findings: {len(items)}")
    for item in items:
        print(_format_item(item))
    if result["applied"]:
        print(f"applied: {result['applied']}")


def _format_item(item: dict[str, Any]) -> str:
    replacements = ", ".join(item["replacements"][:3]) or "-"
    return (
        f"  [{item['severity']}] {item['from']}-{item['to']} {item['message']}"
        f" | {item['context']!r} -> {replacements}"
    )


def _load_text(inline: str | None, path: Path | None) -> str:
    """Return the input text with its trailing line terminators removed.

    Leading whitespace is kept so reported positions match the source.
    """

    if inline is not None:
        raw = inline
    elif path is not None:
        raw = path.read_text(encoding="utf-8")
    else:
        raw = sys.stdin.read()
    return raw.rstrip("\r\n")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
