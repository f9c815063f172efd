"""Parser for logs that were already condensed into per-area turn rundowns."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from logvisualizer.data_tables import DataTables, default_data_tables
from logvisualizer.log_data import ASCENSION_START, LogData
from logvisualizer.models import (
    ConsumableVersion,
    FamiliarChange,
    Item,
    ParsedLogClass,
    Pull,
    SimpleTurnInterval,
    Statgain,
    TurnInterval,
    new_consumable,
)
from logvisualizer.parsers.context import ParseContext
from logvisualizer.parsers.line_parsers import (
    DayChangeLineParser,
    LineParseError,
    LineParser,
    parse_with_first_match,
)
from logvisualizer.parsers.mafia_log import LogParseError
from logvisualizer.parsers.patterns import (
    ALL_BEFORE_COLON,
    AREA_STATGAIN,
    BADMOON,
    CONSUMED,
    DISINTEGRATED_COMBAT,
    FAMILIAR_CHANGED,
    FREE_RUNAWAYS_USAGE,
    HUNTED_COMBAT,
    ITEM_FOUND,
    PULL,
    SEMIRARE,
    TURNS_USED,
)

logger = logging.getLogger("logvisualizer.parser")

_RUNDOWN_END_MARKERS = ("Ascended!", "Turn rundown finished!")
_ASCEND_LOG_NAME = re.compile(r"(.+?)_ascend(.*?)(?:_\d+_\d+)?\.[^.]+$")
_NUMBER = re.compile(r"-?\d+")

_TURN_INTERVAL_CAPTURE = re.compile(
    r"\[(\d+)(?:-(\d+))?\]\s*(.*?)(?:\s*\[(-?\d+),(-?\d+),(-?\d+)\])?\s*"
)
_DROPPED_ITEMS_CAPTURE = re.compile(r".*\]\s*Got\s*(.*)")
_CONSUMABLE_CAPTURE = re.compile(
    r"\s*o>\s*(\w+)\s+(\d*)\s*(.+?)(?:\s*\(.*\))?\s*(?:\[[-?\d,]+\])?\s*"
)
_ADVENTURE_GAIN_CAPTURE = re.compile(r"\((\d+) adventures gained\)")
_CONSUMABLE_STATS_CAPTURE = re.compile(r".+\[(-?\d+),(-?\d+),(-?\d+)\]\s*")
_FAMILIAR_NAME_CAPTURE = re.compile(r".*\]\s*(.*?)(?:\s*\(.*\))?\s*")
_PULLS_CAPTURE = re.compile(r".*\]\s*pulled\s*(.*)")
_PULL_ENTRY_CAPTURE = re.compile(r"(\d+)\s*(.+)")
_HUNTED_NAME = re.compile(r".*Started hunting\s+(.+)")
_DISINTEGRATED_NAME = re.compile(r".*Disintegrated\s+(.+)")
_ITEM_SEPARATOR = re.compile(r",\s*")


def _first_number(line: str) -> int:
    match = _NUMBER.search(line)
    if match is None:
        raise LineParseError(f"Expected a number in line: {line!r}")
    return int(match.group(0))


def _after_colon(line: str) -> str:
    return ALL_BEFORE_COLON.sub("", line, count=1)


def _last_interval(log_data: LogData) -> TurnInterval:
    return log_data.last_turn_spent


def preparsed_log_name(file_name: str) -> str:
    """Build the aggregate name for a rundown file.

    ``Name_ascend42.txt`` style names turn into ``Name-42``, anything else
    just loses its ``.txt`` suffix.
    """
    match = _ASCEND_LOG_NAME.fullmatch(file_name) if "_ascend" in file_name else None
    if match is not None:
        return f"{match.group(1)}-{match.group(2)}"
    return file_name.replace(".txt", "")


class TurnsSpentLineParser(LineParser):
    """``[n] Area [mus,myst,mox]`` and ``[a-b] Area`` interval lines."""

    def is_compatible(self, line: str) -> bool:
        return TURNS_USED.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        match = _TURN_INTERVAL_CAPTURE.fullmatch(line)
        if match is None:
            raise LineParseError(f"Malformed turn interval line: {line!r}")
        first, last, area_name = int(match.group(1)), match.group(2), match.group(3)
        has_stats = AREA_STATGAIN.fullmatch(line) is not None and match.group(4) is not None

        if last is not None:
            start, end = first - 1, int(last)
        elif first == 0 and area_name == ASCENSION_START:
            start, end = 0, 0
        else:
            start, end = first - 1, first

        seed = log_data.last_turn_spent
        if end == 0 and len(log_data.turn_intervals_spent) == 1 and seed.areaName == area_name:
            # the aggregate already starts with its own ascension start interval
            interval = seed
        else:
            interval = SimpleTurnInterval(areaName=area_name, startTurn=max(0, start), endTurn=end)
            log_data.add_turn_interval_spent(interval)
        if has_stats:
            interval.add_stat_gain(
                Statgain(mus=int(match.group(4)), myst=int(match.group(5)), mox=int(match.group(6)))
            )

        if log_data.parsed_log_creator == ParsedLogClass.NOT_DEFINED:
            if interval.endTurn != 0 and not has_stats:
                log_data.parsed_log_creator = ParsedLogClass.AFH_PARSER
            else:
                log_data.parsed_log_creator = ParsedLogClass.LOG_VISUALIZER


class DroppedItemLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return ITEM_FOUND.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        found_on_turn = _first_number(line)
        match = _DROPPED_ITEMS_CAPTURE.fullmatch(line)
        if match is None:
            return
        interval = _last_interval(log_data)
        for name in _ITEM_SEPARATOR.split(match.group(1)):
            if name:
                interval.add_dropped_item(Item(name=name, amount=1, foundOnTurn=found_on_turn))


class ConsumableLineParser(LineParser):
    """``o> Ate 2 name (5 adventures gained) [1,2,3]`` style lines.

    The rundown does not record the exact turn of usage, so the middle of
    the current interval is used.
    """

    def is_compatible(self, line: str) -> bool:
        return CONSUMED.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        match = _CONSUMABLE_CAPTURE.fullmatch(line)
        if match is None:
            raise LineParseError(f"Malformed consumable line: {line!r}")
        verb, amount, name = match.group(1), match.group(2), match.group(3)

        adventure_gain = 0
        gain = _ADVENTURE_GAIN_CAPTURE.search(line)
        if gain is not None:
            adventure_gain = int(gain.group(1))
        stat_gain = Statgain()
        stats = _CONSUMABLE_STATS_CAPTURE.fullmatch(line)
        if stats is not None:
            stat_gain = Statgain(mus=int(stats.group(1)), myst=int(stats.group(2)), mox=int(stats.group(3)))

        if verb == "Ate":
            version = ConsumableVersion.FOOD
        elif verb == "Drank":
            version = ConsumableVersion.BOOZE
        elif context.data_tables.spleen_hit(name) > 0 and adventure_gain > 0:
            version = ConsumableVersion.SPLEEN
        else:
            version = ConsumableVersion.OTHER

        interval = _last_interval(log_data)
        interval.add_consumable_used(
            new_consumable(
                version,
                name,
                adventure_gain,
                int(amount) if amount else 1,
                interval.startTurn + interval.totalTurns // 2,
                log_data.last_day_change.dayNumber,
                stat_gain,
            )
        )


class FamiliarChangeLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return FAMILIAR_CHANGED.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn_number = _first_number(line)
        # AFH rundowns note the turn after the change
        if log_data.parsed_log_creator == ParsedLogClass.AFH_PARSER:
            turn_number = max(0, turn_number - 1)
        match = _FAMILIAR_NAME_CAPTURE.fullmatch(line)
        if match is None or not match.group(1):
            raise LineParseError(f"Missing familiar name: {line!r}")
        log_data.add_familiar_change(FamiliarChange(familiarName=match.group(1), turnNumber=turn_number))


class PullLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return PULL.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn_number = _first_number(line)
        day_number = log_data.last_day_change.dayNumber
        match = _PULLS_CAPTURE.fullmatch(line)
        if match is None:
            return
        for entry in _ITEM_SEPARATOR.split(match.group(1)):
            pull = _PULL_ENTRY_CAPTURE.fullmatch(entry.strip())
            if pull is None:
                continue
            log_data.add_pull(
                Pull(
                    itemName=pull.group(2),
                    amount=int(pull.group(1)),
                    turnNumber=turn_number,
                    dayNumber=day_number,
                )
            )


class FreeRunawaysLineParser(LineParser):
    """``&> 3 \\ 5 free retreats`` lines: successful over attempted."""

    def is_compatible(self, line: str) -> bool:
        return FREE_RUNAWAYS_USAGE.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        numbers = [int(number) for number in _NUMBER.findall(line)]
        if len(numbers) < 2:
            raise LineParseError(f"Malformed free runaways line: {line!r}")
        successful, attempted = numbers[0], numbers[1]
        interval = _last_interval(log_data)
        interval.add_free_runaways(successful)
        if isinstance(interval, SimpleTurnInterval):
            interval.unsuccessfulFreeRunaways += max(0, attempted - successful)


class _NamedEventLineParser(LineParser):
    """Turn-numbered event lines that end up in one of the summary lists."""

    def __init__(self, pattern: re.Pattern, name_pattern: Optional[re.Pattern] = None):
        self.pattern = pattern
        self.name_pattern = name_pattern
        self.events: list[tuple[str, int]] = []

    def is_compatible(self, line: str) -> bool:
        return self.pattern.fullmatch(line) is not None

    def event_name(self, line: str) -> Optional[str]:
        if self.name_pattern is None:
            return _after_colon(line)
        match = self.name_pattern.fullmatch(line)
        return match.group(1) if match is not None else None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn_number = _first_number(line)
        name = self.event_name(line)
        if name:
            self.record(name, turn_number, log_data)

    def record(self, name: str, turn_number: int, log_data: LogData) -> None:
        self.events.append((name, turn_number))
        log_data.last_turn_spent.add_notes(f"{name} ({turn_number})")


class _HuntedCombatLineParser(_NamedEventLineParser):
    def __init__(self) -> None:
        super().__init__(HUNTED_COMBAT, _HUNTED_NAME)

    def record(self, name: str, turn_number: int, log_data: LogData) -> None:
        log_data.add_hunted_combat(name, turn_number)


class PreparsedLogParser:
    """Parse turn rundown logs into interval-mode aggregates.

    Only the rundown part of a file is read. Parsing stops at the
    ``Ascended!`` or ``Turn rundown finished!`` line; whatever summaries
    follow it are recomputed from the intervals instead.
    """

    def __init__(self, data_tables: Optional[DataTables] = None):
        self.data_tables = data_tables if data_tables is not None else default_data_tables()

    def parse_file(self, path: Path) -> LogData:
        path = Path(path)
        with path.open(encoding="utf-8", errors="replace") as handle:
            lines = handle.read().splitlines()
        return self.parse_lines(lines, preparsed_log_name(path.name))

    def parse_lines(self, lines: Iterable[str], log_name: str = "") -> LogData:
        log_data = LogData(detailed=False)
        if log_name:
            log_data.set_log_name(log_name)
        context = ParseContext(self.data_tables)

        semirares = _NamedEventLineParser(SEMIRARE)
        bad_moon = _NamedEventLineParser(BADMOON)
        disintegrated = _NamedEventLineParser(DISINTEGRATED_COMBAT, _DISINTEGRATED_NAME)
        line_parsers: list[LineParser] = [
            TurnsSpentLineParser(),
            DroppedItemLineParser(),
            ConsumableLineParser(),
            FamiliarChangeLineParser(),
            PullLineParser(),
            FreeRunawaysLineParser(),
            DayChangeLineParser(),
            semirares,
            bad_moon,
            _HuntedCombatLineParser(),
            disintegrated,
        ]

        try:
            for line in lines:
                if not line:
                    continue
                if line.startswith(_RUNDOWN_END_MARKERS):
                    break
                parse_with_first_match((line,), line_parsers, log_data, context)
            summary = log_data.create_log_summary(self.data_tables)
        except (LineParseError, ValidationError) as exc:
            raise LogParseError(log_name or "<unnamed>", log_data.last_turn_spent.turnNumber, str(exc)) from exc

        summary.semirares = list(semirares.events)
        summary.bad_moon_adventures = list(bad_moon.events)
        summary.disintegrated_combats = list(disintegrated.events)
        logger.info(
            "Parsed rundown %s: %d turns in %d intervals",
            log_name or "<unnamed>",
            log_data.last_turn_spent.turnNumber,
            len(log_data.turn_intervals_spent),
        )
        return log_data
