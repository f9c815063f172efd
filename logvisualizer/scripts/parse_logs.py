#!/usr/bin/env python3
"""Parse ascension logs and print a per-log summary.

Usage:
  python -m logvisualizer.scripts.parse_logs Char_ascend_20140101.txt
  python -m logvisualizer.scripts.parse_logs logs/*.txt --json
  python -m logvisualizer.scripts.parse_logs old/*.txt --old-ascension-counting --include-notes
  python -m logvisualizer.scripts.parse_logs rundowns/*.txt --preparsed
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from logvisualizer import config, observability
from logvisualizer.batch import BatchResult, format_failure_report, parse_logs
from logvisualizer.config import ParserSettings
from logvisualizer.log_data import LogData


def _log_summary(log_data: LogData) -> dict[str, Any]:
    summary = log_data.summary
    return {
        "character": log_data.character_name,
        "class": str(log_data.character_class),
        "path": str(log_data.ascension_path),
        "totalTurns": log_data.last_turn_spent.turnNumber,
        "days": len(log_data.day_changes),
        "levels": [
            {"level": level.levelNumber, "turn": level.levelReachedOnTurn} for level in summary.levels
        ],
        "questTurncounts": dict(summary.quest_turncounts.counts),
    }


def _print_text(name: str, entry: dict[str, Any]) -> None:
    print(f"{name}")
    print(f"  character: {entry['character'] or '-'} ({entry['class']}, {entry['path']})")
    print(f"  turns: {entry['totalTurns']} over {entry['days']} days")
    levels = ", ".join(f"L{level['level']}@{level['turn']}" for level in entry["levels"])
    print(f"  levels: {levels or '-'}")
    for quest, turns in entry["questTurncounts"].items():
        print(f"  {quest}: {turns}")


def _report(batch: BatchResult, as_json: bool) -> None:
    entries = {name: _log_summary(log_data) for name, log_data in sorted(batch.logs.items())}
    if as_json:
        payload = {
            "logs": entries,
            "failures": [failure.model_dump() for failure in batch.failures],
        }
        print(json.dumps(payload, indent=2))
    else:
        for name, entry in entries.items():
            _print_text(name, entry)
    if batch.failures:
        print(format_failure_report(batch.failures), file=sys.stderr)


async def _run(args: argparse.Namespace) -> int:
    settings = ParserSettings(
        useOldAscensionCounting=args.old_ascension_counting or config.OLD_ASCENSION_COUNTING,
        includeNotes=args.include_notes or config.INCLUDE_NOTES,
    )
    observability.initialize()
    try:
        batch = await parse_logs(
            args.logs,
            settings=settings,
            concurrency=args.concurrency,
            preparsed=args.preparsed,
        )
    finally:
        observability.shutdown()
    _report(batch, args.json)
    return 0 if batch.ok else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Parse ascension session logs")
    parser.add_argument("logs", nargs="+", help="Session log files (.txt or .xml)")
    parser.add_argument("--json", action="store_true", help="Print the summaries as JSON")
    parser.add_argument(
        "--old-ascension-counting",
        action="store_true",
        help="Read the whole log instead of stopping at the end of the ascension",
    )
    parser.add_argument("--include-notes", action="store_true", help="Keep user notes found in the logs")
    parser.add_argument("--preparsed", action="store_true", help="Treat .txt files as turn rundowns")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=config.BATCH_CONCURRENCY,
        help="Number of logs parsed at the same time",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
