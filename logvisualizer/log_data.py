"""Session aggregate owning everything parsed out of one ascension log."""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, TypeVar, Union

from logvisualizer.data_tables import DataTables
from logvisualizer.models import (
    NO_EQUIPMENT,
    NO_FAMILIAR,
    AscensionPath,
    CharacterClass,
    DayChange,
    DetailedTurnInterval,
    EquipmentChange,
    FamiliarChange,
    GameMode,
    HeaderFooterComment,
    LevelData,
    ParsedLogClass,
    PlayerSnapshot,
    Pull,
    SimpleTurnInterval,
    SingleTurn,
    TurnInterval,
)
from logvisualizer.summary import LogSummary

logger = logging.getLogger("logvisualizer.log_data")

ASCENSION_START = "Ascension Start"

_MAX_SKILLS_PER_ENTRY = 5
_HYBRID_COUNT_PATTERN = re.compile(r"^(.*) \((\d+)\)$")
_DATE_PATTERN = re.compile(r"(?<!\d)(\d{8})(?!\d)")

Turn = Union[SingleTurn, TurnInterval]
V = TypeVar("V")


def _last_before(mapping: dict[int, V], number: int) -> Optional[V]:
    keys = [key for key in mapping if key < number]
    return mapping[max(keys)] if keys else None


def _sorted_values(mapping: dict[int, V]) -> list[V]:
    return [mapping[key] for key in sorted(mapping)]


def parse_log_file_name(name: str) -> tuple[str, str]:
    """Split a session log file name into (character name, YYYYMMDD start date).

    Either part is an empty string when the name does not carry it.
    """
    stem = name.rsplit("/", 1)[-1]
    character = stem.split("_", 1)[0] if "_" in stem else ""
    dates = _DATE_PATTERN.findall(stem)
    return character, dates[-1] if dates else ""


class LogData:
    """Mutable aggregate of turns, changes and summaries for one ascension.

    A detailed aggregate holds SingleTurns that are grouped into turn
    intervals by ``create_log_summary``. A preparsed aggregate is fed turn
    intervals directly. The two modes are fixed at construction.
    """

    def __init__(self, detailed: bool = True):
        self.is_detailed = detailed
        self.is_sub_interval = False
        self.mafia_turn_iteration = True
        self.log_name = ""
        self.character_name = ""
        self.start_date = ""
        self.character_class = CharacterClass.NOT_DEFINED
        self.game_mode = GameMode.NOT_DEFINED
        self.ascension_path = AscensionPath.NOT_DEFINED
        self.parsed_log_creator = ParsedLogClass.NOT_DEFINED

        self._turns: list[SingleTurn] = []
        self._intervals: list[TurnInterval] = []
        self._familiar_changes: dict[int, FamiliarChange] = {}
        self._equipment_changes: dict[int, EquipmentChange] = {}
        self._day_changes: dict[int, DayChange] = {}
        self._header_footer: dict[int, HeaderFooterComment] = {}
        self._levels: dict[int, LevelData] = {}
        self._player_snapshots: dict[int, PlayerSnapshot] = {}
        self._pulls: list[Pull] = []
        self._learned_skills: list[tuple[str, int]] = []
        self._hybrid_content: list[tuple[str, int]] = []
        self._hunted_combats: list[tuple[str, int]] = []
        self._lost_combats: list[tuple[str, int]] = []
        self._summary: Optional[LogSummary] = None

        self.add_day_change(DayChange(dayNumber=1, turnNumber=0))
        self._levels[1] = LevelData(levelNumber=1, levelReachedOnTurn=0)
        self._equipment_changes[0] = NO_EQUIPMENT
        self._familiar_changes[0] = NO_FAMILIAR

        first: Turn
        if detailed:
            first = SingleTurn(
                areaName=ASCENSION_START,
                encounterName=ASCENSION_START,
                turnNumber=0,
                dayNumber=1,
                usedEquipment=NO_EQUIPMENT,
                usedFamiliar=NO_FAMILIAR,
            )
            self._turns.append(first)
        else:
            first = SimpleTurnInterval(areaName=ASCENSION_START, startTurn=0, endTurn=0)
            self._intervals.append(first)
        self._last_turn: Turn = first
        self._penultimate_turn: Turn = first

    # ── Metadata ────────────────────────────────────────────────────

    def set_character_class(self, value: Union[str, CharacterClass]) -> None:
        if isinstance(value, str):
            value = CharacterClass.from_string(value)
        self.character_class = value

    def set_log_name(self, name: str) -> None:
        self.log_name = name
        character, start_date = parse_log_file_name(name)
        if character and not self.character_name:
            self.character_name = character
        if start_date and not self.start_date:
            self.start_date = start_date

    # ── Turns ───────────────────────────────────────────────────────

    def add_turn_spent(self, turn: SingleTurn) -> None:
        if not self.is_detailed:
            raise ValueError("This aggregate is based on a preparsed log, only add turn intervals.")
        if self.mafia_turn_iteration:
            self._add_turn_folding_into_penultimate(turn)
        else:
            self._add_turn_folding_into_last(turn)

    def _add_turn_folding_into_penultimate(self, turn: SingleTurn) -> None:
        last = self._last_turn
        if last.turnNumber == turn.turnNumber:
            # A free action logged with the same turn number as the adventure
            # before it belongs to that adventure when they share an area.
            penultimate = self._penultimate_turn
            if last.areaName == penultimate.areaName and last is not penultimate:
                penultimate.add_encounter(last.to_encounter(penultimate.turnNumber))
                penultimate.add_single_turn_data(last)
                if last.is_ran_away_on_this_turn() and last.is_runaways_equipment_equipped():
                    penultimate.add_free_runaways(1)
                self._turns.pop()
        else:
            self._penultimate_turn = last
        self._last_turn = turn
        self._turns.append(turn)

    def _add_turn_folding_into_last(self, turn: SingleTurn) -> None:
        last = self._last_turn
        if last.turnNumber == turn.turnNumber and isinstance(last, SingleTurn):
            if turn.freeRunaways == 0 and turn.is_ran_away_on_this_turn() and turn.is_runaways_equipment_equipped():
                turn.add_free_runaways(1)
            last.add_encounter(turn.to_encounter())
            last.add_single_turn_data(turn)
            return
        self._penultimate_turn = last
        self._last_turn = turn
        self._turns.append(turn)

    def add_turn_interval_spent(self, interval: TurnInterval) -> None:
        if self.is_detailed:
            raise ValueError("This aggregate is based on a detailed log, only add single turns.")
        self._penultimate_turn = self._last_turn
        self._last_turn = interval
        self._intervals.append(interval)

    @property
    def last_turn_spent(self) -> Turn:
        return self._last_turn

    @property
    def turns_spent(self) -> list[SingleTurn]:
        if not self.is_detailed:
            raise ValueError("Only detailed aggregates contain single turns.")
        return list(self._turns)

    @property
    def turn_intervals_spent(self) -> list[TurnInterval]:
        return list(self._intervals)

    # ── Familiar and equipment changes ──────────────────────────────

    def add_familiar_change(self, change: FamiliarChange) -> None:
        # Only the last change of a turn is kept.
        self._familiar_changes.pop(change.turnNumber, None)
        last = self.last_familiar_change
        if last is None or last.familiarName != change.familiarName:
            self._familiar_changes[change.turnNumber] = change

    def set_familiar_changes(self, changes: Iterable[FamiliarChange]) -> None:
        self._familiar_changes.clear()
        for change in sorted(changes, key=lambda item: item.turnNumber):
            self.add_familiar_change(change)

    @property
    def familiar_changes(self) -> list[FamiliarChange]:
        return _sorted_values(self._familiar_changes)

    @property
    def last_familiar_change(self) -> Optional[FamiliarChange]:
        return self._familiar_changes[max(self._familiar_changes)] if self._familiar_changes else None

    def last_familiar_change_before(self, turn: int) -> Optional[FamiliarChange]:
        if turn < 0:
            raise ValueError("Turn number cannot be negative.")
        return _last_before(self._familiar_changes, turn)

    def add_equipment_change(self, change: EquipmentChange) -> None:
        self._equipment_changes.pop(change.turnNumber, None)
        last = self.last_equipment_change
        if last is None or not last.equals_ignore_turn(change):
            self._equipment_changes[change.turnNumber] = change

    def set_equipment_changes(self, changes: Iterable[EquipmentChange]) -> None:
        self._equipment_changes.clear()
        for change in sorted(changes, key=lambda item: item.turnNumber):
            self.add_equipment_change(change)

    @property
    def equipment_changes(self) -> list[EquipmentChange]:
        return _sorted_values(self._equipment_changes)

    @property
    def last_equipment_change(self) -> Optional[EquipmentChange]:
        return self._equipment_changes[max(self._equipment_changes)] if self._equipment_changes else None

    def last_equipment_change_before(self, turn: int) -> Optional[EquipmentChange]:
        if turn < 0:
            raise ValueError("Turn number cannot be negative.")
        return _last_before(self._equipment_changes, turn)

    # ── Days ────────────────────────────────────────────────────────

    def add_day_change(self, day_change: DayChange) -> None:
        self._day_changes[day_change.dayNumber] = day_change
        self._header_footer[day_change.dayNumber] = HeaderFooterComment()

    def clear_day_changes(self) -> None:
        self._day_changes.clear()
        self._header_footer.clear()

    @property
    def day_changes(self) -> list[DayChange]:
        return _sorted_values(self._day_changes)

    @property
    def last_day_change(self) -> Optional[DayChange]:
        return self._day_changes[max(self._day_changes)] if self._day_changes else None

    def current_day(self, turn_number: int) -> DayChange:
        if turn_number < 0:
            raise ValueError("Turn number cannot be negative.")
        days = self.day_changes
        current = self._day_changes.get(1, days[0] if days else DayChange(dayNumber=1, turnNumber=0))
        for day in days:
            if day.turnNumber > turn_number:
                break
            current = day
        return current

    def header_footer_comment(self, day_number: int) -> Optional[HeaderFooterComment]:
        return self._header_footer.get(day_number)

    def set_header_footer_comment(self, day_number: int, comment: HeaderFooterComment) -> None:
        if day_number not in self._day_changes:
            raise ValueError(f"No day change recorded for day {day_number}.")
        self._header_footer[day_number] = comment

    @property
    def last_header_footer_comment(self) -> Optional[HeaderFooterComment]:
        last = self.last_day_change
        return self._header_footer.get(last.dayNumber) if last else None

    @property
    def header_footer_comments(self) -> list[tuple[DayChange, HeaderFooterComment]]:
        return [(day, self._header_footer[day.dayNumber]) for day in self.day_changes]

    # ── Levels and snapshots ────────────────────────────────────────

    def add_level(self, level: LevelData) -> None:
        self._levels[level.levelNumber] = level

    @property
    def levels(self) -> list[LevelData]:
        return _sorted_values(self._levels)

    def current_level(self, turn_number: int) -> LevelData:
        if turn_number < 0:
            raise ValueError("Turn number cannot be negative.")
        levels = self.levels
        current = self._levels.get(1, levels[0] if levels else LevelData(levelNumber=1, levelReachedOnTurn=0))
        for level in levels:
            if level.levelReachedOnTurn > turn_number:
                break
            current = level
        return current

    def add_player_snapshot(self, snapshot: PlayerSnapshot) -> None:
        self._player_snapshots[snapshot.turnNumber] = snapshot

    @property
    def player_snapshots(self) -> list[PlayerSnapshot]:
        return _sorted_values(self._player_snapshots)

    def last_player_snapshot_before(self, turn: int) -> Optional[PlayerSnapshot]:
        if turn < 0:
            raise ValueError("Turn number cannot be negative.")
        return _last_before(self._player_snapshots, turn)

    # ── Pulls, skills and combat records ────────────────────────────

    def add_pull(self, pull: Pull) -> None:
        self._pulls.append(pull)

    @property
    def pulls(self) -> list[Pull]:
        return list(self._pulls)

    def add_learned_skill(self, skill_name: str, turn_number: int) -> None:
        """Record a learned skill, joining up to five skills learned on one turn."""
        for index, (names, turn) in enumerate(self._learned_skills):
            if turn == turn_number and names.count(";") < _MAX_SKILLS_PER_ENTRY - 1:
                self._learned_skills[index] = (f"{names}; {skill_name}", turn)
                return
        self._learned_skills.append((skill_name, turn_number))

    @property
    def learned_skills(self) -> list[tuple[str, int]]:
        return list(self._learned_skills)

    def add_hybrid_content(self, text: str, turn_number: int) -> None:
        """Record hybridization content; repeats on one turn become ``text (n)``."""
        for index, (existing, turn) in enumerate(self._hybrid_content):
            if turn != turn_number or not existing.startswith(text):
                continue
            match = _HYBRID_COUNT_PATTERN.match(existing)
            if match and match.group(1) == text:
                updated = f"{text} ({int(match.group(2)) + 1})"
            else:
                updated = f"{text} (2)"
            self._hybrid_content[index] = (updated, turn)
            return
        self._hybrid_content.append((text, turn_number))

    @property
    def hybrid_content(self) -> list[tuple[str, int]]:
        return list(self._hybrid_content)

    def add_hunted_combat(self, encounter_name: str, turn_number: int) -> None:
        self._hunted_combats.append((encounter_name, turn_number))

    @property
    def hunted_combats(self) -> list[tuple[str, int]]:
        return list(self._hunted_combats)

    def add_lost_combat(self, encounter_name: str, turn_number: int) -> None:
        self._lost_combats.append((encounter_name, turn_number))

    @property
    def lost_combats(self) -> list[tuple[str, int]]:
        return list(self._lost_combats)

    # ── Summary ─────────────────────────────────────────────────────

    def create_log_summary(self, data_tables: Optional[DataTables] = None) -> LogSummary:
        """Group single turns into area intervals and compute the summary."""
        if self.is_detailed:
            self._intervals = []
            for turn in self._turns:
                previous = self._intervals[-1] if self._intervals else None
                if isinstance(previous, DetailedTurnInterval) and previous.areaName == turn.areaName:
                    previous.add_turn(turn)
                else:
                    self._intervals.append(DetailedTurnInterval.from_turn(turn))
        self._summary = LogSummary(self, data_tables)
        logger.debug(
            "Created summary for %s: %d intervals", self.log_name or "<unnamed>", len(self._intervals)
        )
        return self._summary

    @property
    def summary(self) -> LogSummary:
        if self._summary is None:
            raise ValueError("The log summary has to be created first.")
        return self._summary

    @property
    def has_summary(self) -> bool:
        return self._summary is not None

    def sub_interval_log(
        self, start_turn: int, end_turn: int, data_tables: Optional[DataTables] = None
    ) -> LogData:
        """Return a new aggregate holding only the data between two turns."""
        if end_turn <= start_turn:
            raise ValueError("The end turn must be greater than the start turn.")
        if end_turn <= 0:
            raise ValueError("The end turn must be greater than zero.")

        sub = LogData(self.is_detailed)
        sub.is_sub_interval = True
        sub.log_name = self.log_name
        sub.character_name = self.character_name
        sub.start_date = self.start_date
        sub.parsed_log_creator = self.parsed_log_creator
        sub.character_class = self.character_class
        sub.game_mode = self.game_mode
        sub.ascension_path = self.ascension_path
        sub._turns.clear()
        sub._familiar_changes.clear()
        sub.clear_day_changes()

        if self.is_detailed:
            sub._turns = [turn for turn in self._turns if start_turn <= turn.turnNumber <= end_turn]
        else:
            sub._intervals = [
                interval
                for interval in self._intervals
                if interval.startTurn <= end_turn
                and (
                    (interval.startTurn >= start_turn and interval.endTurn <= end_turn)
                    or start_turn < interval.endTurn <= end_turn
                    or start_turn <= interval.startTurn < end_turn
                )
            ]

        familiar = self.last_familiar_change_before(start_turn)
        if familiar is not None:
            sub.add_familiar_change(familiar)
        for change in self.familiar_changes:
            if start_turn <= change.turnNumber <= end_turn:
                sub.add_familiar_change(change)

        for day in self.day_changes:
            if start_turn <= day.turnNumber < end_turn:
                sub.add_day_change(day)
                sub._header_footer[day.dayNumber] = self._header_footer[day.dayNumber]
        if sub._day_changes:
            previous_day = _last_before(self._day_changes, min(sub._day_changes))
        else:
            previous_day = self.current_day(start_turn)
        if previous_day is not None:
            sub.add_day_change(previous_day)

        before_interval: Optional[LevelData] = None
        for level in self.levels:
            if level.levelReachedOnTurn > end_turn:
                break
            if level.levelReachedOnTurn < start_turn:
                before_interval = level
            else:
                sub.add_level(level)
        if before_interval is not None:
            sub.add_level(before_interval)

        snapshot = self.last_player_snapshot_before(start_turn)
        if snapshot is not None:
            sub.add_player_snapshot(snapshot)
        for snapshot in self.player_snapshots:
            if start_turn <= snapshot.turnNumber < end_turn:
                sub.add_player_snapshot(snapshot)

        equipment = self.last_equipment_change_before(start_turn)
        if equipment is not None:
            sub.add_equipment_change(equipment)
        for change in self.equipment_changes:
            if start_turn < change.turnNumber < end_turn:
                sub.add_equipment_change(change)

        included_days = {day.dayNumber for day in sub.day_changes}
        for pull in self._pulls:
            if start_turn <= pull.turnNumber <= end_turn and pull.dayNumber in included_days:
                sub.add_pull(pull)
        for name, turn in self._hunted_combats:
            if start_turn <= turn <= end_turn:
                sub.add_hunted_combat(name, turn)
        for name, turn in self._lost_combats:
            if start_turn <= turn <= end_turn:
                sub.add_lost_combat(name, turn)

        if sub._turns:
            sub._last_turn = sub._turns[-1]
        elif sub._intervals:
            sub._last_turn = sub._intervals[-1]

        sub.create_log_summary(data_tables)

        # Interval comments are shared with the parent's matching intervals.
        parents = {(interval.areaName, interval.endTurn): interval for interval in self._intervals}
        for interval in sub._intervals:
            parent = parents.get((interval.areaName, interval.endTurn))
            if parent is not None:
                interval.preIntervalComment = parent.preIntervalComment
                interval.notes = parent.notes
        return sub
