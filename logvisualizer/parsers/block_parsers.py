"""Parsers that own the grammar of one block type each."""
from __future__ import annotations

import html
import logging
import re
from typing import Optional, Sequence

from logvisualizer.log_data import LogData
from logvisualizer.models import (
    NO_EQUIPMENT,
    NO_EQUIPMENT_STRING,
    NO_FAMILIAR,
    AscensionPath,
    CharacterClass,
    ConsumableVersion,
    DayChange,
    EquipmentChange,
    FamiliarChange,
    GameMode,
    MeatGain,
    PlayerSnapshot,
    SingleTurn,
    Statgain,
    TurnVersion,
    new_consumable,
)
from logvisualizer.parsers.block_reader import BROKEN_AREAS_ENCOUNTERS
from logvisualizer.parsers.context import ParseContext
from logvisualizer.parsers.line_parsers import (
    CombatItemUsedLineParser,
    CombatRecognizerLineParser,
    DisintegrateLineParser,
    EquipmentLineParser,
    FreeRunawaysLineParser,
    ItemAcquisitionLineParser,
    LineParser,
    MeatLineParser,
    MeatSpentLineParser,
    MPGainLineParser,
    NotesLineParser,
    OnTheTrailLineParser,
    RedRayStatsLineParser,
    SkillCastLineParser,
    StarfishMPGainLineParser,
    StatLineParser,
    parse_with_first_match,
)
from logvisualizer.parsers.patterns import (
    ENCOUNTER_START,
    GAIN_LOSE,
    GAIN_LOSE_CAPTURE,
    MOXIE_SUBSTAT_NAMES,
    MUSCLE_SUBSTAT_NAMES,
    MYST_SUBSTAT_NAMES,
    SPECIAL_CONSUMABLES,
    parse_number,
)

logger = logging.getLogger("logvisualizer.parser")

_FIRST_NUMBER = re.compile(r"\d+")


def _new_turn(
    log_data: LogData,
    area_name: str,
    encounter_name: str,
    turn_number: int,
    turn_version: TurnVersion = TurnVersion.NOT_DEFINED,
    day_number: Optional[int] = None,
) -> SingleTurn:
    """Build a turn wearing the aggregate's current equipment and familiar."""
    if day_number is None:
        day = log_data.last_day_change
        day_number = day.dayNumber if day is not None else 1
    return SingleTurn(
        areaName=area_name,
        encounterName=encounter_name,
        turnNumber=turn_number,
        dayNumber=day_number,
        usedEquipment=log_data.last_equipment_change or NO_EQUIPMENT,
        usedFamiliar=log_data.last_familiar_change or NO_FAMILIAR,
        turnVersion=turn_version,
    )


def _current_day_number(log_data: LogData) -> int:
    day = log_data.last_day_change
    return day.dayNumber if day is not None else 1


class BlockParser:
    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        raise NotImplementedError


# ── Encounters ──────────────────────────────────────────────────────

_OTHER_ENCOUNTER_AREAS = {
    "Unlucky Sewer",
    "Sewer With Clovers",
    "Lemon Party",
    "Guild Challenge",
    "Mining (In Disguise)",
    "Itznotyerzitz Mine (in Disguise)",
}
_GAME_GRID_AREAS = {
    "DemonStar",
    "Meteoid",
    "The Fighters of Fighting",
    "Dungeon Fist!",
    "Space Trip",
    "Jackass Plumber",
}
_CRAFTING_PREFIXES = ("Cook ", "Mix ", "Smith ")
_SHORE_AREA_SUFFIX = " Vacation"
_SHORE_TRIP_COST = 500
_GAME_GRID_TURNS = 5
_HYBRIDIZING_AREA = "Hybridizing yourself"
_HYBRIDIZE = re.compile(r"You acquire an intrinsic: (.+) Hybrid$")
_CLOWNLORD_CHOICE_ENCOUNTER = "Adventurer, $1.99"
_CLOWNLORD = "Clownlord Beelzebozo"
_CLOWNLORD_CHOICES = ("choice.php?whichchoice=151option=1", "choice.php?whichchoice=152option=1")
_FAX_DREAMS = "Rainy Fax Dreams on your Wedding Day"
_HP_LOSE = re.compile(r"You lose \d+ hit points.?")
_FIGHT_WON = re.compile(r"Round \d+: .+ wins the fight!")


class EncounterBlockParser(BlockParser):
    """Turns spent adventuring, including their combat and noncombat lines."""

    def __init__(self, include_notes: bool = False):
        self.line_parsers: list[LineParser] = [
            ItemAcquisitionLineParser(),
            SkillCastLineParser(),
            MeatLineParser(encounter=True),
            MeatSpentLineParser(),
            StatLineParser(),
            MPGainLineParser(MPGainLineParser.ENCOUNTER),
            CombatRecognizerLineParser(),
            EquipmentLineParser(),
            OnTheTrailLineParser(),
            FreeRunawaysLineParser(),
            DisintegrateLineParser(),
            StarfishMPGainLineParser(),
            RedRayStatsLineParser(),
            CombatItemUsedLineParser(),
        ]
        if include_notes:
            self.line_parsers.append(NotesLineParser())

    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        turn_line = self._turn_line(lines, 0)
        if turn_line is None:
            self._parse_all_lines(lines, log_data, context)
            return

        hybrid = _HYBRIDIZE.fullmatch(turn_line)
        if hybrid is not None:
            log_data.add_turn_spent(
                _new_turn(
                    log_data,
                    _HYBRIDIZING_AREA,
                    hybrid.group(1),
                    log_data.last_turn_spent.turnNumber + 1,
                    TurnVersion.OTHER,
                )
            )
            turn_line = self._turn_line(lines, 3)
            if turn_line is None:
                return

        if turn_line.startswith(ENCOUNTER_START):
            encounter_name = turn_line[len(ENCOUNTER_START):]
            turn = _new_turn(
                log_data,
                encounter_name,
                encounter_name,
                log_data.last_turn_spent.turnNumber + 1,
                TurnVersion.OTHER,
            )
        else:
            turn = self._adventure_turn(turn_line, lines, log_data, context)
            if turn is None:
                self._parse_all_lines(lines, log_data, context)
                return

        if not self._special_encounter_handling(turn, lines, log_data):
            log_data.add_turn_spent(turn)
        self._parse_all_lines(lines, log_data, context)
        self._lost_combat_handling(lines, turn, log_data)

    @staticmethod
    def _turn_line(lines: Sequence[str], index: int) -> Optional[str]:
        if index < len(lines) and lines[index].startswith("["):
            return lines[index]
        if index + 1 < len(lines):
            return lines[index + 1]
        return None

    def _adventure_turn(
        self, turn_line: str, lines: Sequence[str], log_data: LogData, context: ParseContext
    ) -> Optional[SingleTurn]:
        """Build the turn of a ``[n] Area`` block; ``None`` for an empty encounter."""
        close = turn_line.find("]")
        area_name = context.data_tables.standard_area_name(turn_line[close + 2:])
        is_crafting = area_name.startswith(_CRAFTING_PREFIXES)
        number = _FIRST_NUMBER.search(turn_line[:close])
        turn_number = int(number.group(0)) if number else log_data.last_turn_spent.turnNumber + 1
        if is_crafting:
            turn_number = max(0, turn_number - 1)

        encounter_name = ""
        is_multiple_combats = False
        for line in lines:
            if not line.startswith(ENCOUNTER_START):
                continue
            if len(line) == len(ENCOUNTER_START):
                return None
            encounter_name = line[len(ENCOUNTER_START):]
            is_multiple_combats = line in BROKEN_AREAS_ENCOUNTERS
            if _FAX_DREAMS not in encounter_name:
                break

        if is_multiple_combats:
            # Several fights logged under one turn marker, one per encounter line.
            area_name = encounter_name
            extra_combats = sum(1 for line in lines if line.startswith(ENCOUNTER_START)) - 1
            for _ in range(extra_combats):
                log_data.add_turn_spent(
                    _new_turn(log_data, area_name, encounter_name, turn_number, TurnVersion.COMBAT)
                )
                turn_number += 1

        if is_crafting or area_name in _OTHER_ENCOUNTER_AREAS:
            version = TurnVersion.OTHER
        else:
            version = TurnVersion.NONCOMBAT
        return _new_turn(log_data, area_name, encounter_name, turn_number, version)

    def _parse_all_lines(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        parse_with_first_match(lines, self.line_parsers, log_data, context)

    @staticmethod
    def _special_encounter_handling(turn: SingleTurn, lines: Sequence[str], log_data: LogData) -> bool:
        """Add turns for encounters that take several turns; ``True`` when handled."""
        if turn.areaName.endswith(_SHORE_AREA_SUFFIX):
            trips = 5 if log_data.ascension_path == AscensionPath.WAY_OF_THE_SURPRISING_FIST else 3
            for offset in range(trips):
                trip = turn if offset == 0 else turn.model_copy(
                    update={"turnNumber": turn.turnNumber + offset}, deep=True
                )
                trip.turnVersion = TurnVersion.OTHER
                if offset == 0 and trips == 3:
                    trip.add_meat(MeatGain(meatSpent=_SHORE_TRIP_COST))
                log_data.add_turn_spent(trip)
            return True

        if turn.encounterName == _CLOWNLORD_CHOICE_ENCOUNTER:
            choices = [
                line.replace("pwd", "").replace("&", "") for line in lines if "choice.php?" in line
            ]
            if tuple(choices[:2]) == _CLOWNLORD_CHOICES:
                log_data.add_turn_spent(turn)
                log_data.add_turn_spent(
                    _new_turn(
                        log_data,
                        turn.areaName,
                        _CLOWNLORD,
                        turn.turnNumber + 1,
                        TurnVersion.COMBAT,
                        turn.dayNumber,
                    )
                )
                return True
            return False

        if turn.areaName in _GAME_GRID_AREAS:
            turn.turnVersion = TurnVersion.OTHER
            log_data.add_turn_spent(turn)
            for offset in range(1, _GAME_GRID_TURNS):
                log_data.add_turn_spent(
                    _new_turn(
                        log_data,
                        turn.areaName,
                        turn.encounterName,
                        turn.turnNumber + offset,
                        TurnVersion.OTHER,
                        turn.dayNumber,
                    )
                )
            return True

        return False

    @staticmethod
    def _lost_combat_handling(lines: Sequence[str], turn: SingleTurn, log_data: LogData) -> None:
        if turn.turnVersion != TurnVersion.COMBAT or not lines:
            return
        last_line = lines[-1]
        if ("outfit" in last_line or last_line.startswith("mcd")) and len(lines) > 1:
            last_line = lines[-2]
        if not last_line.startswith("You lose ") or _HP_LOSE.fullmatch(last_line) is None:
            return

        start = 0
        if turn.encounterName:
            for index in range(len(lines) - 1, -1, -1):
                if lines[index].startswith(ENCOUNTER_START):
                    start = index
                    break
        if any(_FIGHT_WON.fullmatch(line) for line in lines[start:]):
            return
        log_data.add_lost_combat(turn.encounterName, turn.turnNumber)


# ── Consumables ─────────────────────────────────────────────────────

_CONSUMABLE_BOUGHT_USED = re.compile(r"([\w\s]+) (\d+) (.+) for \d+ Meat")
_CONSUMABLE_USED = re.compile(r"([\w\s]+) (\d+) (.+)")
_CONSUMABLE_USED_SINGLE = re.compile(r"(\w+) (.+)")
_LLAMA_COCKROACH_ENCOUNTER = "Encounter: Form of...Cockroach!"
_COCKROACH_AREA = "Form of...Cockroach!"
_COCKROACH_TURNS = 3


class ConsumableBlockParser(BlockParser):
    """Food, booze, spleen and other item usage with the gains it produced.

    Only consumables that gave adventures or stats, or that are tracked by
    name, are recorded on the last turn.
    """

    def __init__(self, include_notes: bool = False):
        self.gain_parsers: list[LineParser] = [
            MPGainLineParser(MPGainLineParser.CONSUMABLE),
            MeatLineParser(encounter=False),
            MeatSpentLineParser(),
            EquipmentLineParser(),
        ]
        self.cockroach_parsers: list[LineParser] = [
            StatLineParser(),
            MPGainLineParser(MPGainLineParser.ENCOUNTER),
            EquipmentLineParser(),
        ]
        if include_notes:
            self.gain_parsers.append(NotesLineParser())
            self.cockroach_parsers.append(NotesLineParser())

    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        if not lines:
            return
        consumption_line = lines[0]
        match = (
            _CONSUMABLE_BOUGHT_USED.fullmatch(consumption_line)
            or _CONSUMABLE_USED.fullmatch(consumption_line)
        )
        if match is not None:
            usage, amount, item_name = match.group(1), int(match.group(2)), match.group(3)
        else:
            single = _CONSUMABLE_USED_SINGLE.match(consumption_line)
            if single is None:
                logger.debug("Unrecognized consumable line: %s", consumption_line)
                return
            usage, amount, item_name = single.group(1), 1, single.group(2)
        item_name = html.unescape(item_name)
        if amount <= 0:
            return

        adventure_gain = 0
        stat_gain = Statgain()
        for index, line in enumerate(lines[1:], start=1):
            if line == _LLAMA_COCKROACH_ENCOUNTER:
                self._parse_cockroach_usage(lines[index:], log_data, context)
                break
            if any(parser.parse_line(line, log_data, context) for parser in self.gain_parsers):
                continue
            if GAIN_LOSE.fullmatch(line) is None:
                continue
            gain = GAIN_LOSE_CAPTURE.match(line)
            if gain is None:
                continue
            value = parse_number(gain.group(1))
            if line.startswith("You lose"):
                value = -value
            identifier = gain.group(2)
            if identifier.startswith("Adventure"):
                adventure_gain += value
            elif identifier in MUSCLE_SUBSTAT_NAMES:
                stat_gain = stat_gain.add_stats(mus=value)
            elif identifier in MYST_SUBSTAT_NAMES:
                stat_gain = stat_gain.add_stats(myst=value)
            elif identifier in MOXIE_SUBSTAT_NAMES:
                stat_gain = stat_gain.add_stats(mox=value)

        adventure_gain = max(0, adventure_gain)
        if adventure_gain == 0 and stat_gain.is_all_stats_zero() and item_name.lower() not in SPECIAL_CONSUMABLES:
            return

        if "eat" in usage:
            version = ConsumableVersion.FOOD
        elif "drink" in usage:
            version = ConsumableVersion.BOOZE
        elif "chew" in usage or context.data_tables.spleen_hit(item_name) > 0:
            version = ConsumableVersion.SPLEEN
        else:
            version = ConsumableVersion.OTHER

        turn = log_data.last_turn_spent
        turn.add_consumable_used(
            new_consumable(
                version,
                item_name,
                adventure_gain,
                amount,
                turn.turnNumber,
                _current_day_number(log_data),
                stat_gain,
            )
        )

    def _parse_cockroach_usage(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        last_turn_number = log_data.last_turn_spent.turnNumber
        for offset in range(1, _COCKROACH_TURNS + 1):
            log_data.add_turn_spent(
                _new_turn(
                    log_data, _COCKROACH_AREA, _COCKROACH_AREA, last_turn_number + offset, TurnVersion.OTHER
                )
            )
        # Every parser sees every line here.
        for line in lines:
            for parser in self.cockroach_parsers:
                parser.parse_line(line, log_data, context)


# ── Player snapshots ────────────────────────────────────────────────

_STATS_WITH_BUFFED = re.compile(r"(?:Mus|Mys|Mox): \d+ \(\d+\).*")
_STATS_WITHOUT_BUFFED = re.compile(r"(?:Mus|Mys|Mox): \d+(?:$|, tnp =.*)")
_NOT_FAMILIAR_NAME = re.compile(r"Pet: | \(\d+ lbs\)\s*")
_SNAPSHOT_SLOTS = {
    "Hat: ": "hat",
    "Weapon: ": "weapon",
    "Off-hand: ": "offhand",
    "Shirt: ": "shirt",
    "Pants: ": "pants",
    "Acc. 1: ": "acc1",
    "Acc. 2: ": "acc2",
    "Acc. 3: ": "acc3",
}
_FAM_EQUIP_START = "Item: "
_NO_EQUIP_MARKER = "(none)"
_DAY_CHANGE_OCCURRED = "Day change occurred"


def _value_after_colon(line: str) -> str:
    return line[line.index(":") + 2:]


def _snapshot_equipment_name(line: str) -> str:
    item_name = _value_after_colon(line).lower()
    if _NO_EQUIP_MARKER in item_name:
        return NO_EQUIPMENT_STRING
    if item_name.endswith(")"):
        if item_name.startswith("("):
            return item_name[1:-1]
        return item_name[: item_name.rindex("(")].rstrip()
    return item_name


class PlayerSnapshotBlockParser(BlockParser):
    """Stats, equipment, familiar and class as printed by a player snapshot."""

    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        turn_number = log_data.last_turn_spent.turnNumber
        slots = {slot: NO_EQUIPMENT_STRING for slot in EquipmentChange.SLOTS}
        stats: list[int] = []
        adventures_left = 0
        meat = 0

        for line in lines:
            if not line:
                continue
            if _STATS_WITH_BUFFED.fullmatch(line):
                if len(stats) < 3:
                    stats.append(int(line[line.index("(") + 1: line.index(")")]))
            elif _STATS_WITHOUT_BUFFED.fullmatch(line):
                if len(stats) < 3:
                    stats.append(int(line.split(" ", 1)[1].split(",", 1)[0]))
            elif line.startswith("Pet: "):
                if log_data.ascension_path != AscensionPath.ED:
                    names = [part for part in _NOT_FAMILIAR_NAME.split(line) if part]
                    if names:
                        log_data.add_familiar_change(FamiliarChange(familiarName=names[0], turnNumber=turn_number))
            elif line.startswith("Advs: "):
                adventures_left = parse_number(_value_after_colon(line))
            elif line.startswith("Meat: ") and "%" not in line:
                meat = parse_number(_value_after_colon(line))
            elif line.startswith(tuple(_SNAPSHOT_SLOTS)):
                prefix = next(prefix for prefix in _SNAPSHOT_SLOTS if line.startswith(prefix))
                slots[_SNAPSHOT_SLOTS[prefix]] = _snapshot_equipment_name(line)
            elif line.startswith(_FAM_EQUIP_START) and "%" not in line:
                slots["famEquip"] = _snapshot_equipment_name(line)
            elif line.startswith(_DAY_CHANGE_OCCURRED):
                log_data.add_day_change(
                    DayChange(dayNumber=_current_day_number(log_data) + 1, turnNumber=turn_number)
                )
            elif log_data.character_class == CharacterClass.NOT_DEFINED and line.startswith("Class: "):
                log_data.set_character_class(line[len("Class: "):])

        familiar = log_data.last_familiar_change
        if familiar is not None:
            context.familiar_equipment[familiar.familiarName] = slots["famEquip"]
        context.push_equipment(EquipmentChange(turnNumber=turn_number, **slots), log_data)

        if len(stats) == 3:
            log_data.add_player_snapshot(
                PlayerSnapshot(
                    musStats=stats[0],
                    mystStats=stats[1],
                    moxStats=stats[2],
                    adventuresLeft=adventures_left,
                    meat=meat,
                    turnNumber=turn_number,
                )
            )


# ── Ascension metadata, hybrids and services ────────────────────────

class AscensionDataBlockParser(BlockParser):
    """Character class, game mode and path from the ascension header."""

    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        if log_data.character_class == CharacterClass.NOT_DEFINED:
            log_data.character_class = next(
                (
                    clazz
                    for line in lines
                    for clazz in CharacterClass
                    if clazz != CharacterClass.NOT_DEFINED and line.endswith(str(clazz))
                ),
                CharacterClass.NOT_DEFINED,
            )
        if log_data.game_mode == GameMode.NOT_DEFINED:
            log_data.game_mode = next(
                (
                    mode
                    for line in lines
                    for mode in GameMode
                    if mode != GameMode.NOT_DEFINED and line.startswith(str(mode))
                ),
                GameMode.NOT_DEFINED,
            )
        if log_data.ascension_path == AscensionPath.NOT_DEFINED:
            log_data.ascension_path = next(
                (
                    path
                    for line in lines
                    for path in AscensionPath
                    if path != AscensionPath.NOT_DEFINED and str(path) in line
                ),
                AscensionPath.NOT_DEFINED,
            )


_ACQUIRE_INTRINSIC = "You acquire an intrinsic: "
_ACQUIRE_ITEM = "You acquire an item: "
_GENE_TONIC = "Gene Tonic"


class HybridDataBlockParser(BlockParser):
    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        action: Optional[str] = None
        result: Optional[str] = None
        for line in lines:
            if line.startswith(_ACQUIRE_INTRINSIC):
                result = line[len(_ACQUIRE_INTRINSIC):]
            elif line.startswith(_ACQUIRE_ITEM) and _GENE_TONIC in line:
                result = line[len(_ACQUIRE_ITEM):]
            elif line.startswith("Hybridizing yourself"):
                action = "Hybridizing"
            elif line.startswith("Making a Gene Tonic"):
                action = "Making"
        if action and result:
            log_data.add_hybrid_content(f"{action} {result}", log_data.last_turn_spent.turnNumber)


_SERVICE_CHOICE = re.compile(r"Took choice 1089/([0-9]*):")
_SERVICE_ADVENTURES = re.compile(r"You lose ([0-9]*) Adventure")
_SERVICES = {
    "1": "Donate Blood",
    "2": "Feed the Children (But Not Too Much)",
    "3": "Build Playground Mazes",
    "4": "Feed Conspirators",
    "5": "Breed More Collies",
    "6": "Reduce Gazelle Population",
    "7": "Make Sausage",
    "8": "Be a Living Statue",
    "9": "Make Margaritas",
    "10": "Clean Steam Tunnels",
    "11": "Coil Wire",
    "30": "Donate Body",
}
_UNKNOWN_SERVICE = "unknown"
_DONATE_BODY = "Donate Body"


class ServiceBlockParser(BlockParser):
    """Community service choices, each costing a fixed number of turns."""

    def __init__(self) -> None:
        self._item_parser = ItemAcquisitionLineParser()

    def parse_block(self, lines: Sequence[str], log_data: LogData, context: ParseContext) -> None:
        choice = _SERVICE_CHOICE.search(lines[0]) if lines else None
        service = _SERVICES.get(choice.group(1), _UNKNOWN_SERVICE) if choice else _UNKNOWN_SERVICE

        adventures = 0
        if service not in {_DONATE_BODY, _UNKNOWN_SERVICE} and len(lines) > 2:
            spent = _SERVICE_ADVENTURES.search(lines[2])
            if spent is not None and spent.group(1):
                adventures = int(spent.group(1))

        previous = log_data.last_turn_spent
        turn_number = previous.turnNumber
        if self._probably_spent_turn(previous):
            turn_number += 1
        day_number = _current_day_number(log_data)
        for _ in range(adventures):
            log_data.add_turn_spent(
                _new_turn(
                    log_data,
                    f"Community Service: {service}",
                    service,
                    turn_number,
                    TurnVersion.OTHER,
                    day_number,
                )
            )
            turn_number += 1

        if len(lines) > 3:
            self._item_parser.parse_line(lines[3], log_data, context)

    @staticmethod
    def _probably_spent_turn(turn) -> bool:
        if isinstance(turn, SingleTurn) and turn.turnVersion == TurnVersion.COMBAT:
            return True
        return not turn.areaName.startswith(("Mix", "Cook"))
