"""Derived statistics computed from a finished session aggregate."""
from __future__ import annotations

import logging
import math
from collections import Counter
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from logvisualizer.data_tables import DataTables, QuestDefinition, default_data_tables
from logvisualizer.models import (
    NO_MEAT,
    NO_MP,
    NO_STATS,
    CharacterClass,
    Consumable,
    ConsumableVersion,
    CountableCollection,
    DayChange,
    Encounter,
    FreeRunaways,
    LevelData,
    MeatGain,
    MPGain,
    Statgain,
    StatClass,
    TurnInterval,
    TurnVersion,
)

if TYPE_CHECKING:
    from logvisualizer.log_data import LogData

logger = logging.getLogger("logvisualizer.summary")

_GUILD_CHALLENGE = "Guild Challenge"
_ENCHANTED_BARBELL = "enchanted barbell"
_CONCENTRATED_MAGICALNESS_PILL = "concentrated magicalness pill"
_GIANT_MOXIE_WEED = "giant moxie weed"
_NUNS_AREA = "Themthar Hills"
_ROMANTIC_ARROW_SKILLS = ("fire a badly romantic arrow", "wink at")
_MAX_LEVEL = 35

_HIPSTER_COMBAT_NAMES = {
    "angry bassist",
    "blue-haired girl",
    "evil ex-girlfriend",
    "peeved roommate",
    "random scenester",
    "black crayon beast",
    "black crayon beetle",
    "black crayon constellation",
    "black crayon golem",
    "black crayon demon",
    "black crayon man",
    "black crayon elemental",
    "black crayon crimbo elf",
    "black crayon fish",
    "black crayon goblin",
    "black crayon hippy",
    "black crayon hobo",
    "black crayon shambling monstrosity",
    "black crayon manloid",
    "black crayon mer-kin",
    "black crayon frat orc",
    "black crayon penguin",
    "black crayon pirate",
    "black crayon flower",
    "black crayon slime",
    "black crayon undead thing",
    "black crayon spiraling shape",
}

# Substats a class starts an ascension with.
_CLASS_START_SUBSTATS: dict[CharacterClass, Statgain] = {
    CharacterClass.SEAL_CLUBBER: Statgain(mus=9, myst=1, mox=4),
    CharacterClass.TURTLE_TAMER: Statgain(mus=9, myst=4, mox=1),
    CharacterClass.PASTAMANCER: Statgain(mus=4, myst=9, mox=1),
    CharacterClass.SAUCEROR: Statgain(mus=1, myst=9, mox=4),
    CharacterClass.DISCO_BANDIT: Statgain(mus=4, myst=1, mox=9),
    CharacterClass.ACCORDION_THIEF: Statgain(mus=1, myst=4, mox=9),
}


def level_stat_border(level: int) -> int:
    """Main stat (not substats) needed to reach ``level``."""
    if level <= 1:
        return 0
    return (level - 1) * (level - 1) + 4


class Goatlet(BaseModel):
    turnsSpent: int = 0
    dairyGoatsFound: int = 0
    cheeseFound: int = 0
    milkFound: int = 0


class EightBitRealm(BaseModel):
    turnsSpent: int = 0
    bulletsFound: int = 0
    bloopersFound: int = 0


class QuestTurncounts(BaseModel):
    """Turns spent per quest, keyed by the quest names of the quest table."""

    counts: dict[str, int] = Field(default_factory=dict)

    def __getitem__(self, quest_name: str) -> int:
        return self.counts[quest_name]

    @classmethod
    def compute(
        cls,
        intervals: list[TurnInterval],
        dropped_items: CountableCollection,
        quests: list[QuestDefinition],
    ) -> QuestTurncounts:
        counts: dict[str, int] = {}
        for quest in quests:
            total = quest.offset
            for quest_area in quest.areas:
                if quest_area.untilItem:
                    total += _turns_until_item_found(quest_area.area, quest_area.untilItem, intervals, dropped_items)
                else:
                    total += _turns_in_area(quest_area.area, intervals)
            counts[quest.name] = total
        return cls(counts=counts)


def _turns_in_area(area_name: str, intervals: list[TurnInterval]) -> int:
    return sum(interval.totalTurns for interval in intervals if interval.areaName == area_name)


def _turns_until_item_found(
    area_name: str,
    item_name: str,
    intervals: list[TurnInterval],
    dropped_items: CountableCollection,
) -> int:
    item = dropped_items.get(item_name)
    finished_on = item.foundOnTurn if item is not None else math.inf
    turns = 0
    for interval in intervals:
        if interval.areaName != area_name or interval.startTurn > finished_on:
            continue
        if interval.endTurn <= finished_on:
            turns += interval.totalTurns
        else:
            # The interval in which the item dropped only counts up to that turn.
            turns += int(finished_on) - interval.startTurn
            break
    return turns


class ConsumptionDayStats:
    def __init__(self, day_number: int):
        self.day_number = day_number
        self.consumables_used: CountableCollection = CountableCollection()
        self.turns_from_food = 0
        self.turns_from_booze = 0
        self.turns_from_spleen = 0
        self.turns_from_other = 0
        self.fullness_hit = 0
        self.drunkenness_hit = 0
        self.spleen_hit = 0
        self.food_statgains = NO_STATS
        self.booze_statgains = NO_STATS
        self.used_statgains = NO_STATS
        self.total_statgains = NO_STATS

    def add_consumable(self, consumable: Consumable, data_tables: DataTables) -> None:
        self.consumables_used.add(consumable)
        self.total_statgains = self.total_statgains + consumable.statGain
        if consumable.version == ConsumableVersion.FOOD:
            self.turns_from_food += consumable.adventureGain
            self.fullness_hit += data_tables.fullness_hit(consumable.name) * consumable.amount
            self.food_statgains = self.food_statgains + consumable.statGain
        elif consumable.version == ConsumableVersion.BOOZE:
            self.turns_from_booze += consumable.adventureGain
            self.drunkenness_hit += data_tables.drunkenness_hit(consumable.name) * consumable.amount
            self.booze_statgains = self.booze_statgains + consumable.statGain
        elif consumable.version == ConsumableVersion.SPLEEN:
            self.turns_from_spleen += consumable.adventureGain
            self.spleen_hit += data_tables.spleen_hit(consumable.name) * consumable.amount
            self.used_statgains = self.used_statgains + consumable.statGain
        else:
            self.turns_from_other += consumable.adventureGain
            self.used_statgains = self.used_statgains + consumable.statGain


class ConsumptionSummary:
    """Consumption grouped by the day the consumable was used on."""

    def __init__(self, consumables: list[Consumable], day_changes: list[DayChange], data_tables: DataTables):
        self.day_statistics: list[ConsumptionDayStats] = []
        for day in sorted(day_changes, key=lambda item: item.dayNumber):
            stats = ConsumptionDayStats(day.dayNumber)
            for consumable in consumables:
                if consumable.dayNumberOfUsage == day.dayNumber:
                    stats.add_consumable(consumable, data_tables)
            self.day_statistics.append(stats)

    @property
    def total_turns_from_food(self) -> int:
        return sum(day.turns_from_food for day in self.day_statistics)

    @property
    def total_turns_from_booze(self) -> int:
        return sum(day.turns_from_booze for day in self.day_statistics)

    @property
    def total_turns_from_other(self) -> int:
        return sum(day.turns_from_spleen + day.turns_from_other for day in self.day_statistics)

    @property
    def total_statgains(self) -> Statgain:
        total = NO_STATS
        for day in self.day_statistics:
            total = total + day.total_statgains
        return total


class LogSummary:
    """Statistics over the turn intervals of a finished aggregate."""

    def __init__(self, log_data: LogData, data_tables: Optional[DataTables] = None):
        tables = data_tables if data_tables is not None else default_data_tables()
        intervals = log_data.turn_intervals_spent

        self.consumables_used: CountableCollection = CountableCollection(key=lambda consumable: consumable.name)
        self.dropped_items: CountableCollection = CountableCollection()
        self.skills_cast: CountableCollection = CountableCollection()
        self.disintegrated_combats: list[tuple[str, int]] = []
        self.semirares: list[tuple[str, int]] = []
        self.bad_moon_adventures: list[tuple[str, int]] = []
        self.romantic_arrow_usages: list[tuple[str, int]] = []
        self.wandering_adventures: list[tuple[str, int]] = []
        self.hipster_combats: list[tuple[str, int]] = []
        self.free_runaway_combats: list[Encounter] = []
        self.goatlet = Goatlet()
        self.eight_bit_realm = EightBitRealm()
        self.total_statgains = NO_STATS
        self.combat_statgains = NO_STATS
        self.noncombat_statgains = NO_STATS
        self.other_statgains = NO_STATS
        self.total_mp_gains = NO_MP
        self.total_turns_combat = 0
        self.total_turns_noncombat = 0
        self.total_turns_other = 0
        self.total_meat_gain = 0
        self.total_meat_spent = 0

        turns_per_area: Counter[str] = Counter()
        familiar_usage: Counter[str] = Counter()
        consumables: list[Consumable] = []
        attempted_runaways = 0
        successful_runaways = 0

        for interval in intervals:
            for consumable in interval.consumablesUsed:
                self.total_statgains = self.total_statgains + consumable.statGain
                self.consumables_used.add(consumable)
                consumables.append(consumable)
            self.dropped_items.add_all(interval.droppedItems)
            self.skills_cast.add_all(interval.skillsCast)
            self.total_mp_gains = self.total_mp_gains + interval.mpGain
            if interval.totalTurns > 0:
                turns_per_area[interval.areaName] += interval.totalTurns

            for turn in interval.turns:
                self._count_turn(turn, tables, familiar_usage)

            runaways = interval.get_run_away_attempts()
            attempted_runaways += runaways.attempted
            successful_runaways += runaways.successful

            self._count_special_areas(interval)

            if interval.areaName != _NUNS_AREA:
                self.total_meat_gain += interval.meatGain.encounterMeatGain
            self.total_meat_gain += interval.meatGain.otherMeatGain
            self.total_meat_spent += interval.meatGain.meatSpent

        self.turns_per_area = turns_per_area.most_common()
        self.familiar_usage = familiar_usage.most_common()
        self.free_runaways = FreeRunaways(attempted=attempted_runaways, successful=successful_runaways)

        self.consumption = ConsumptionSummary(consumables, log_data.day_changes, tables)
        rollover = (
            log_data.last_turn_spent.turnNumber
            - self.consumption.total_turns_from_food
            - self.consumption.total_turns_from_booze
            - self.consumption.total_turns_from_other
        )
        self.total_turns_from_rollover = max(0, rollover)

        self.total_skill_casts = sum(skill.amount for skill in self.skills_cast)
        self.total_mp_used = sum(skill.mpCost for skill in self.skills_cast)

        if log_data.is_sub_interval:
            self.levels: list[LevelData] = log_data.levels
        else:
            self.levels = self._compute_levels(log_data, intervals)

        self.meat_per_level: dict[int, MeatGain] = {}
        self.mp_per_level: dict[int, MPGain] = {}
        for interval in intervals:
            for turn in interval.turns:
                level = log_data.current_level(turn.turnNumber).levelNumber
                if not turn.meatGain.is_meat_gain_zero():
                    self.meat_per_level[level] = self.meat_per_level.get(level, NO_MEAT) + turn.meatGain
                if not turn.mpGain.is_mp_gain_zero():
                    self.mp_per_level[level] = self.mp_per_level.get(level, NO_MP) + turn.mpGain

        self.quest_turncounts = QuestTurncounts.compute(intervals, self.dropped_items, tables.quests)

    def _count_turn(self, turn, tables: DataTables, familiar_usage: Counter) -> None:
        self.total_statgains = self.total_statgains + turn.statGain
        if turn.turnVersion == TurnVersion.COMBAT:
            self.total_turns_combat += 1
            self.combat_statgains = self.combat_statgains + turn.statGain
            familiar_usage[turn.usedFamiliar.familiarName] += 1
        elif turn.turnVersion == TurnVersion.NONCOMBAT:
            self.total_turns_noncombat += 1
            self.noncombat_statgains = self.noncombat_statgains + turn.statGain
        elif turn.turnVersion == TurnVersion.OTHER:
            self.total_turns_other += 1
            self.other_statgains = self.other_statgains + turn.statGain

        if turn.isDisintegrated:
            self.disintegrated_combats.append((turn.encounterName, turn.turnNumber))
        if tables.is_semirare(turn):
            self.semirares.append((turn.encounterName, turn.turnNumber))
        if tables.is_bad_moon(turn):
            self.bad_moon_adventures.append((turn.encounterName, turn.turnNumber))

        for encounter in turn.encounters:
            if tables.is_wandering(encounter.encounterName):
                self.wandering_adventures.append((encounter.encounterName, encounter.turnNumber))
            if encounter.turnVersion != TurnVersion.COMBAT:
                continue
            if any(skill in encounter.skillNames for skill in _ROMANTIC_ARROW_SKILLS):
                self.romantic_arrow_usages.append((encounter.encounterName, encounter.turnNumber))
            if encounter.encounterName in _HIPSTER_COMBAT_NAMES:
                self.hipster_combats.append((encounter.areaName, encounter.turnNumber))
            if encounter.freeRunaways > 0:
                self.free_runaway_combats.append(encounter)

    def _count_special_areas(self, interval: TurnInterval) -> None:
        if interval.areaName == "Goatlet":
            self.goatlet.turnsSpent += interval.totalTurns
            for turn in interval.turns:
                if turn.encounterName == "dairy goat":
                    self.goatlet.dairyGoatsFound += 1
            for item in interval.droppedItems:
                if item.name == "goat cheese":
                    self.goatlet.cheeseFound += item.amount
                elif item.name == "glass of goat's milk":
                    self.goatlet.milkFound += item.amount
        elif interval.areaName == "8-Bit Realm":
            self.eight_bit_realm.turnsSpent += interval.totalTurns
            for turn in interval.turns:
                if turn.encounterName == "Bullet Bill":
                    self.eight_bit_realm.bulletsFound += 1
                elif turn.encounterName == "Blooper":
                    self.eight_bit_realm.bloopersFound += 1

    # ── Levels ──────────────────────────────────────────────────────

    def _guess_character_class(self, log_data: LogData, intervals: list[TurnInterval]) -> CharacterClass:
        guild_items: set[str] = set()
        for interval in intervals:
            if interval.areaName != _GUILD_CHALLENGE:
                continue
            for item in interval.droppedItems:
                if item.name in (_ENCHANTED_BARBELL, _CONCENTRATED_MAGICALNESS_PILL, _GIANT_MOXIE_WEED):
                    guild_items.add(item.name)

        stats = self.total_statgains
        if stats.mus > stats.myst and stats.mus > stats.mox:
            if _GIANT_MOXIE_WEED in guild_items:
                return CharacterClass.SEAL_CLUBBER
            return CharacterClass.TURTLE_TAMER
        if stats.myst > stats.mus and stats.myst > stats.mox:
            if _GIANT_MOXIE_WEED in guild_items:
                return CharacterClass.SAUCEROR
            return CharacterClass.PASTAMANCER
        if _CONCENTRATED_MAGICALNESS_PILL in guild_items:
            return CharacterClass.ACCORDION_THIEF
        return CharacterClass.DISCO_BANDIT

    def _compute_levels(self, log_data: LogData, intervals: list[TurnInterval]) -> list[LevelData]:
        if log_data.character_class == CharacterClass.NOT_DEFINED:
            log_data.character_class = self._guess_character_class(log_data, intervals)
            logger.debug("Inferred character class %s", log_data.character_class)

        stat_class = log_data.character_class.stat_class
        stats = _CLASS_START_SUBSTATS.get(log_data.character_class, NO_STATS)
        snapshots = iter(log_data.player_snapshots)
        snapshot = next(snapshots, None)

        levels = [LevelData(levelNumber=1, levelReachedOnTurn=0, statsAtLevelReached=stats)]
        combat = noncombat = other = 0

        for interval in intervals:
            for turn in interval.turns:
                stats = stats + turn.statGain
                for consumable in turn.consumablesUsed:
                    stats = stats + consumable.statGain

                if snapshot is not None and snapshot.turnNumber <= turn.turnNumber:
                    # Snapshots report main stats, which are always right.
                    stats = Statgain(
                        mus=max(stats.mus, snapshot.musStats * snapshot.musStats),
                        myst=max(stats.myst, snapshot.mystStats * snapshot.mystStats),
                        mox=max(stats.mox, snapshot.moxStats * snapshot.moxStats),
                    )
                    snapshot = next(snapshots, None)

                if turn.turnVersion == TurnVersion.COMBAT:
                    combat += 1
                elif turn.turnVersion == TurnVersion.NONCOMBAT:
                    noncombat += 1
                elif turn.turnVersion == TurnVersion.OTHER:
                    other += 1

                while levels[-1].levelNumber < _MAX_LEVEL and _is_level_reached(
                    stat_class, level_stat_border(levels[-1].levelNumber + 1), stats
                ):
                    levels.append(_finish_level(levels[-1], turn.turnNumber, stats, combat, noncombat, other))
                    combat = noncombat = other = 0

        if log_data.is_detailed:
            for level in levels:
                log_data.add_level(level)
        return levels


def _is_level_reached(stat_class: StatClass, border: int, stats: Statgain) -> bool:
    substats = {
        StatClass.MUSCLE: stats.mus,
        StatClass.MYSTICALITY: stats.myst,
        StatClass.MOXIE: stats.mox,
    }[stat_class]
    return border <= math.sqrt(max(0, substats))


def _finish_level(
    current: LevelData, turn_number: int, stats: Statgain, combat: int, noncombat: int, other: int
) -> LevelData:
    new_level = LevelData(
        levelNumber=current.levelNumber + 1,
        levelReachedOnTurn=turn_number,
        statsAtLevelReached=stats,
    )
    substats_current = level_stat_border(current.levelNumber) ** 2
    substats_new = level_stat_border(new_level.levelNumber) ** 2
    turn_difference = turn_number - current.levelReachedOnTurn

    current.combatTurns = combat
    current.noncombatTurns = noncombat
    current.otherTurns = other
    if turn_difference > 0:
        current.statGainPerTurn = (substats_new - substats_current) / turn_difference
    else:
        current.statGainPerTurn = float(substats_new - substats_current)
    return new_level
