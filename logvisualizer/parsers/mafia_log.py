"""Text session log parser: block dispatch, ascension-end detection and finalization."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Optional, Sequence

from pydantic import ValidationError

from logvisualizer.config import ParserSettings
from logvisualizer.data_tables import DataTables, default_data_tables
from logvisualizer.log_data import LogData
from logvisualizer.models import DayChange, MPGain
from logvisualizer.parsers.block_parsers import (
    AscensionDataBlockParser,
    BlockParser,
    ConsumableBlockParser,
    EncounterBlockParser,
    HybridDataBlockParser,
    PlayerSnapshotBlockParser,
    ServiceBlockParser,
)
from logvisualizer.parsers.block_reader import BlockType, LogBlock, SessionLogReader, SessionLogReadError
from logvisualizer.parsers.context import ParseContext
from logvisualizer.parsers.line_parsers import (
    DayChangeLineParser,
    EquipmentLineParser,
    FamiliarChangeLineParser,
    ItemAcquisitionLineParser,
    LearnedSkillLineParser,
    LineParseError,
    LineParser,
    MeatLineParser,
    MeatSpentLineParser,
    MPGainLineParser,
    NotesLineParser,
    PullLineParser,
    PoolMPBuffLineParser,
    SkillCastLineParser,
    StatLineParser,
    parse_with_first_match,
)

logger = logging.getLogger("logvisualizer.parser")

_LOG_SUFFIX = ".txt"
_WINS_THE_FIGHT = "wins the fight!"
_ROUND_ZERO = re.compile(r"Round 0: (.*) +(?:wins|loses) initiative!")
_ENCOUNTER_NAME = re.compile(r"Encounter: (.*) *$")
_REGEN_SLOTS = ("hat", "weapon", "offhand", "shirt", "pants", "acc1", "acc2", "acc3")


class LogParseError(Exception):
    """Raised when a structural problem abandons the parse of one log."""

    def __init__(self, file_name: str, last_turn: int, message: str):
        super().__init__(f"{file_name}: {message} (last parsed turn {last_turn})")
        self.file_name = file_name
        self.last_turn = last_turn


# ── Ascension end detection ─────────────────────────────────────────

def _line(lines: Sequence[str], index: int) -> str:
    return lines[index] if index < len(lines) else ""


def _is_fight_won(lines: Sequence[str]) -> bool:
    return any(line.endswith(_WINS_THE_FIGHT) for line in lines)


def _is_mirror_boss(lines: Sequence[str]) -> bool:
    """The final boss of one path is the player's name spelled backwards."""
    player = _ROUND_ZERO.search(_line(lines, 2))
    boss = _ENCOUNTER_NAME.search(_line(lines, 1))
    if player is None or boss is None:
        return False
    return boss.group(1).lower() == player.group(1).lower()[::-1]


def _is_sorceress_chamber_fight(lines: Sequence[str]) -> bool:
    if "The Naughty Sorceress' Chamber" not in _line(lines, 0):
        return False
    return _is_mirror_boss(lines) or "Encounter: Wa" in _line(lines, 1)


class EndingRule(NamedTuple):
    block_type: BlockType
    name: str
    matches: Callable[[Sequence[str]], bool]


# Tried in this order, first match wins. The named bosses come before the
# generic chamber rule, so a block naming both is reported by its boss.
ENDING_RULES: tuple[EndingRule, ...] = (
    EndingRule(
        BlockType.ENCOUNTER,
        "Naughty Sorceress defeated",
        lambda lines: _line(lines, 1).endswith("Naughty Sorceress (3)") and _is_fight_won(lines),
    ),
    EndingRule(
        BlockType.ENCOUNTER,
        "Rain King defeated",
        lambda lines: _line(lines, 1).endswith("The Rain King") and _is_fight_won(lines),
    ),
    EndingRule(
        BlockType.ENCOUNTER,
        "Avatar of Jarlsberg defeated",
        lambda lines: _line(lines, 1).endswith("Avatar of Jarlsberg") and _is_fight_won(lines),
    ),
    EndingRule(
        BlockType.ENCOUNTER,
        "Sorceress chamber boss defeated",
        lambda lines: _is_sorceress_chamber_fight(lines) and _is_fight_won(lines),
    ),
    EndingRule(
        BlockType.SERVICE,
        "Body donated",
        lambda lines: _line(lines, 0).startswith("Took choice 1089/30"),
    ),
    EndingRule(
        BlockType.OTHER,
        "MacGuffin returned",
        lambda lines: len(lines) > 2
        and "Encounter: Returning the MacGuffin" in lines[1]
        and "choice.php?pwd&whichchoice=1054&option=1" in lines,
    ),
    EndingRule(
        BlockType.OTHER,
        "King Ralph freed",
        lambda lines: len(lines) > 1 and "Tower: Freeing King Ralph" in lines[1],
    ),
)


def find_ending(block: LogBlock) -> Optional[EndingRule]:
    """Return the first rule in ``ENDING_RULES`` that ``block`` fires, if any."""
    for rule in ENDING_RULES:
        if rule.block_type == block.blockType and rule.matches(block.lines):
            return rule
    return None


# ── Finalization ────────────────────────────────────────────────────

def _add_mp_regen(log_data: LogData, data_tables: DataTables) -> None:
    for turn in log_data.turns_spent:
        regen = sum(
            data_tables.mp_from_equipment(getattr(turn.usedEquipment, slot)) for slot in _REGEN_SLOTS
        )
        if regen:
            turn.add_mp_gain(MPGain(encounterMPGain=regen))


def _rebuild_day_changes(log_data: LogData) -> None:
    """Derive day changes from the day numbers recorded on the turns.

    Skipped days get a change on the turn before the first turn of the next
    recorded day, keeping any comments already written for that day.
    """
    previous_comments = {day.dayNumber: comment for day, comment in log_data.header_footer_comments}
    current_day = 1
    for turn in log_data.turns_spent:
        while current_day < turn.dayNumber:
            current_day += 1
            log_data.add_day_change(DayChange(dayNumber=current_day, turnNumber=max(0, turn.turnNumber - 1)))
            comment = previous_comments.get(current_day)
            if comment is not None:
                log_data.set_header_footer_comment(current_day, comment)


def finalize_session(log_data: LogData, data_tables: Optional[DataTables] = None) -> LogData:
    """Run the post-parse passes and compute the summary."""
    data_tables = data_tables if data_tables is not None else default_data_tables()
    _add_mp_regen(log_data, data_tables)
    _rebuild_day_changes(log_data)
    turns = log_data.turns_spent
    log_data.set_familiar_changes(turn.usedFamiliar for turn in turns)
    log_data.set_equipment_changes(turn.usedEquipment for turn in turns)
    log_data.create_log_summary(data_tables)
    return log_data


# ── Parser ──────────────────────────────────────────────────────────

class MafiaLogParser:
    """Parse mafia session logs into detailed session aggregates.

    The parser holds only stateless line and block parsers. All change
    tracking lives in a ``ParseContext`` created per parse, so one instance
    can serve concurrent parses.
    """

    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        data_tables: Optional[DataTables] = None,
    ):
        self.settings = settings or ParserSettings()
        self.data_tables = data_tables if data_tables is not None else default_data_tables()
        include_notes = self.settings.includeNotes

        self.block_parsers: dict[BlockType, BlockParser] = {
            BlockType.ENCOUNTER: EncounterBlockParser(include_notes),
            BlockType.CONSUMABLE: ConsumableBlockParser(include_notes),
            BlockType.PLAYER_SNAPSHOT: PlayerSnapshotBlockParser(),
            BlockType.ASCENSION_DATA: AscensionDataBlockParser(),
            BlockType.HYBRID_DATA: HybridDataBlockParser(),
            BlockType.SERVICE: ServiceBlockParser(),
        }
        self.line_parsers: list[LineParser] = [
            ItemAcquisitionLineParser(),
            SkillCastLineParser(),
            FamiliarChangeLineParser(),
            MeatLineParser(encounter=False),
            MeatSpentLineParser(),
            StatLineParser(),
            MPGainLineParser(MPGainLineParser.NOT_ENCOUNTER),
            EquipmentLineParser(),
            PullLineParser(),
            PoolMPBuffLineParser(),
            DayChangeLineParser(),
            LearnedSkillLineParser(),
        ]
        if include_notes:
            self.line_parsers.append(NotesLineParser())

    def parse_file(self, path: Path) -> LogData:
        """Parse one log file. ``OSError`` from opening it propagates unchanged."""
        path = Path(path)
        reader = SessionLogReader.from_path(path)
        name = path.name[: -len(_LOG_SUFFIX)] if path.name.endswith(_LOG_SUFFIX) else path.name
        return self._parse(reader, name)

    def parse_lines(self, lines: Iterable[str], log_name: str = "") -> LogData:
        return self._parse(SessionLogReader(lines), log_name)

    def _parse(self, reader: SessionLogReader, log_name: str) -> LogData:
        log_data = LogData(detailed=True)
        if log_name:
            log_data.set_log_name(log_name)
        context = ParseContext(self.data_tables, self.settings)

        try:
            self._consume_blocks(reader, log_data, context)
            finalize_session(log_data, self.data_tables)
        except (SessionLogReadError, LineParseError, ValidationError) as exc:
            raise LogParseError(log_name or "<unnamed>", log_data.last_turn_spent.turnNumber, str(exc)) from exc

        logger.info(
            "Parsed %s: %d turns over %d days",
            log_name or "<unnamed>",
            log_data.last_turn_spent.turnNumber,
            len(log_data.day_changes),
        )
        return log_data

    def _consume_blocks(self, reader: SessionLogReader, log_data: LogData, context: ParseContext) -> None:
        check_endings = not self.settings.useOldAscensionCounting
        while reader.has_next():
            block = reader.next()
            ending = find_ending(block) if check_endings else None
            self.parse_block(block, log_data, context)
            if ending is not None:
                logger.info("Ascension ended on turn %d: %s", log_data.last_turn_spent.turnNumber, ending.name)
                break

    def parse_block(self, block: LogBlock, log_data: LogData, context: ParseContext) -> None:
        if block.blockType == BlockType.COMBING:
            return
        parser = self.block_parsers.get(block.blockType)
        if parser is not None:
            parser.parse_block(block.lines, log_data, context)
        else:
            parse_with_first_match(block.lines, self.line_parsers, log_data, context)
