"""Pydantic models for a parsed ascension log."""
from __future__ import annotations

import copy
from enum import Enum
from typing import Callable, ClassVar, Generic, Hashable, Iterable, Iterator, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

NO_EQUIPMENT_STRING = "none"
NO_FAMILIAR_STRING = "none"

RUNAWAY_EQUIPMENT = ("navel ring of navel gazing", "greatest american pants")


# ── Enumerations ────────────────────────────────────────────────────

class StatClass(str, Enum):
    MUSCLE = "Muscle"
    MYSTICALITY = "Mysticality"
    MOXIE = "Moxie"


class CharacterClass(Enum):
    SEAL_CLUBBER = ("Seal Clubber", StatClass.MUSCLE)
    TURTLE_TAMER = ("Turtle Tamer", StatClass.MUSCLE)
    PASTAMANCER = ("Pastamancer", StatClass.MYSTICALITY)
    SAUCEROR = ("Sauceror", StatClass.MYSTICALITY)
    DISCO_BANDIT = ("Disco Bandit", StatClass.MOXIE)
    ACCORDION_THIEF = ("Accordion Thief", StatClass.MOXIE)
    AVATAR_OF_BORIS = ("Avatar of Boris", StatClass.MUSCLE)
    AVATAR_OF_JARLSBERG = ("Avatar of Jarlsberg", StatClass.MYSTICALITY)
    AVATAR_OF_SNEAKY_PETE = ("Avatar of Sneaky Pete", StatClass.MOXIE)
    ED = ("Ed", StatClass.MYSTICALITY)
    NOT_DEFINED = ("not defined", StatClass.MUSCLE)

    def __init__(self, display_name: str, stat_class: StatClass):
        self.display_name = display_name
        self.stat_class = stat_class

    def __str__(self) -> str:
        return self.display_name

    @classmethod
    def from_string(cls, name: str) -> CharacterClass:
        for clazz in cls:
            if clazz.display_name == name:
                return clazz
        return cls.NOT_DEFINED


class _NamedEnum(str, Enum):
    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, name: str):
        for member in cls:
            if member.value == name:
                return member
        return cls.NOT_DEFINED


class GameMode(_NamedEnum):
    CASUAL = "Casual"
    SOFTCORE = "Softcore"
    HARDCORE = "Hardcore"
    NOT_DEFINED = "not defined"


class AscensionPath(_NamedEnum):
    # Matching is by substring in definition order, so longer names that
    # contain a shorter one must come first.
    NONE = "No-Path"
    TEETOTALER = "Teetotaler"
    BOOZETAFARIAN = "Boozetafarian"
    OXYGENARIAN = "Oxygenarian"
    BEES_HATE_YOU = "Bees Hate You"
    WAY_OF_THE_SURPRISING_FIST = "Way of the Surprising Fist"
    TRENDY = "Trendy"
    AVATAR_OF_BORIS = "Avatar of Boris"
    BUGBEAR_INVASION = "Bugbear Invasion"
    ZOMBIE_SLAYER = "Zombie Slayer"
    AVATAR_OF_JARLSBERG = "Avatar of Jarlsberg"
    BIG = "BIG!"
    KOLHS = "KOLHS"
    CLASS_ACT_II = "Class Act II: A Class For Pigs"
    CLASS_ACT = "Class Act"
    AVATAR_OF_SNEAKY_PETE = "Avatar of Sneaky Pete"
    SLOW_AND_STEADY = "Slow and Steady"
    HEAVY_RAINS = "Heavy Rains"
    PICKY = "Picky"
    STANDARD = "Standard"
    ED = "Actually Ed the Undying"
    NOT_DEFINED = "not defined"


class ParsedLogClass(_NamedEnum):
    LOG_VISUALIZER = "LOG_VISUALIZER"
    AFH_PARSER = "AFH_PARSER"
    NOT_DEFINED = "NOT_DEFINED"


class TurnVersion(_NamedEnum):
    COMBAT = "COMBAT"
    NONCOMBAT = "NONCOMBAT"
    OTHER = "OTHER"
    NOT_DEFINED = "NOT_DEFINED"


class ConsumableVersion(str, Enum):
    FOOD = "FOOD"
    BOOZE = "BOOZE"
    SPLEEN = "SPLEEN"
    OTHER = "OTHER"

    @classmethod
    def from_string(cls, name: str) -> ConsumableVersion:
        for member in cls:
            if member.value == name:
                return member
        return cls.OTHER


# ── Gains ───────────────────────────────────────────────────────────

class Statgain(BaseModel):
    model_config = ConfigDict(frozen=True)

    mus: int = 0
    myst: int = 0
    mox: int = 0

    def __add__(self, other: Statgain) -> Statgain:
        return Statgain(mus=self.mus + other.mus, myst=self.myst + other.myst, mox=self.mox + other.mox)

    def add_stats(self, mus: int = 0, myst: int = 0, mox: int = 0) -> Statgain:
        return Statgain(mus=self.mus + mus, myst=self.myst + myst, mox=self.mox + mox)

    def is_all_stats_zero(self) -> bool:
        return self.mus == 0 and self.myst == 0 and self.mox == 0

    @property
    def total(self) -> int:
        return self.mus + self.myst + self.mox


class MeatGain(BaseModel):
    model_config = ConfigDict(frozen=True)

    encounterMeatGain: int = 0
    otherMeatGain: int = 0
    meatSpent: int = 0

    def __add__(self, other: MeatGain) -> MeatGain:
        return MeatGain(
            encounterMeatGain=self.encounterMeatGain + other.encounterMeatGain,
            otherMeatGain=self.otherMeatGain + other.otherMeatGain,
            meatSpent=self.meatSpent + other.meatSpent,
        )

    def is_meat_gain_zero(self) -> bool:
        return self.encounterMeatGain == 0 and self.otherMeatGain == 0 and self.meatSpent == 0


class MPGain(BaseModel):
    model_config = ConfigDict(frozen=True)

    encounterMPGain: int = 0
    starfishMPGain: int = 0
    restingMPGain: int = 0
    outOfEncounterMPGain: int = 0
    consumableMPGain: int = 0

    def __add__(self, other: MPGain) -> MPGain:
        return MPGain(
            encounterMPGain=self.encounterMPGain + other.encounterMPGain,
            starfishMPGain=self.starfishMPGain + other.starfishMPGain,
            restingMPGain=self.restingMPGain + other.restingMPGain,
            outOfEncounterMPGain=self.outOfEncounterMPGain + other.outOfEncounterMPGain,
            consumableMPGain=self.consumableMPGain + other.consumableMPGain,
        )

    @property
    def total(self) -> int:
        return (
            self.encounterMPGain
            + self.starfishMPGain
            + self.restingMPGain
            + self.outOfEncounterMPGain
            + self.consumableMPGain
        )

    def is_mp_gain_zero(self) -> bool:
        return all(value == 0 for value in self.model_dump().values())


NO_STATS = Statgain()
NO_MEAT = MeatGain()
NO_MP = MPGain()


# ── Countables ──────────────────────────────────────────────────────

class Item(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    amount: int = Field(default=1, ge=1)
    foundOnTurn: int = Field(default=0, ge=0)

    @property
    def key(self) -> Hashable:
        return self.name

    def merge(self, other: Item) -> None:
        self.amount += other.amount
        self.foundOnTurn = min(self.foundOnTurn, other.foundOnTurn)


class Skill(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    amount: int = Field(default=0, ge=0)
    mpCost: int = 0
    turnNumberOfCast: int = Field(default=0, ge=0)

    @property
    def key(self) -> Hashable:
        return self.name

    def set_casts(self, amount: int, mp_cost_offset: int, base_cost: int) -> None:
        """Set the cast count and derive the MP cost from the skill's base cost.

        A skill with a positive base cost never drops below 1 MP per cast.
        """
        if amount < 0:
            raise ValueError("Amount of casts below 0.")
        if mp_cost_offset < -3:
            raise ValueError("MP cost offset below -3.")
        cost = base_cost
        if cost > 0:
            cost = max(1, cost + mp_cost_offset)
        self.amount = amount
        self.mpCost = cost * amount

    def merge(self, other: Skill) -> None:
        self.amount += other.amount
        self.mpCost += other.mpCost
        self.turnNumberOfCast = min(self.turnNumberOfCast, other.turnNumberOfCast)


class CombatItem(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    amount: int = Field(default=1, ge=1)
    turnNumberOfUsage: int = Field(default=0, ge=0)

    @property
    def key(self) -> Hashable:
        return self.name

    def merge(self, other: CombatItem) -> None:
        self.amount += other.amount
        self.turnNumberOfUsage = min(self.turnNumberOfUsage, other.turnNumberOfUsage)


class Consumable(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    adventureGain: int = Field(default=0, ge=0)
    amount: int = Field(default=1, ge=1)
    turnNumberOfUsage: int = Field(default=0, ge=0)
    dayNumberOfUsage: int = Field(default=1, ge=1)
    statGain: Statgain = NO_STATS
    version: ConsumableVersion = ConsumableVersion.OTHER

    @property
    def key(self) -> Hashable:
        return (self.name, self.dayNumberOfUsage)

    def merge(self, other: Consumable) -> None:
        self.amount += other.amount
        self.adventureGain += other.adventureGain
        self.statGain = self.statGain + other.statGain
        self.turnNumberOfUsage = min(self.turnNumberOfUsage, other.turnNumberOfUsage)


C = TypeVar("C", Item, Skill, CombatItem, Consumable)


class CountableCollection(Generic[C]):
    """Name-keyed collection that merges elements sharing a key.

    Elements are copied on insertion so merging never mutates the caller's
    object.
    """

    def __init__(self, elements: Iterable[C] = (), key: Optional[Callable[[C], Hashable]] = None):
        self._key = key or (lambda element: element.key)
        self._elements: dict[Hashable, C] = {}
        for element in elements:
            self.add(element)

    def add(self, element: C) -> None:
        key = self._key(element)
        existing = self._elements.get(key)
        if existing is None:
            self._elements[key] = element.model_copy()
        else:
            existing.merge(element)

    def add_all(self, elements: Iterable[C]) -> None:
        for element in elements:
            self.add(element)

    def get(self, key: Hashable) -> Optional[C]:
        return self._elements.get(key)

    def elements(self) -> list[C]:
        return sorted(self._elements.values(), key=lambda element: (element.name, str(self._key(element))))

    def __iter__(self) -> Iterator[C]:
        return iter(self.elements())

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._elements

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CountableCollection):
            return NotImplemented
        return self.elements() == other.elements()

    def __deepcopy__(self, memo: dict) -> CountableCollection[C]:
        clone = CountableCollection(key=self._key)
        clone._elements = {key: copy.deepcopy(value, memo) for key, value in self._elements.items()}
        return clone


# ── Turn actions ────────────────────────────────────────────────────

class FamiliarChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    familiarName: str
    turnNumber: int = Field(ge=0)


class EquipmentChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    turnNumber: int = Field(ge=0)
    hat: str = NO_EQUIPMENT_STRING
    weapon: str = NO_EQUIPMENT_STRING
    offhand: str = NO_EQUIPMENT_STRING
    shirt: str = NO_EQUIPMENT_STRING
    pants: str = NO_EQUIPMENT_STRING
    acc1: str = NO_EQUIPMENT_STRING
    acc2: str = NO_EQUIPMENT_STRING
    acc3: str = NO_EQUIPMENT_STRING
    famEquip: str = NO_EQUIPMENT_STRING

    SLOTS: ClassVar[tuple[str, ...]] = ("hat", "weapon", "offhand", "shirt", "pants", "acc1", "acc2", "acc3", "famEquip")

    def slot_items(self) -> list[str]:
        return [getattr(self, slot) for slot in self.SLOTS]

    def equals_ignore_turn(self, other: EquipmentChange) -> bool:
        return self.slot_items() == other.slot_items()

    def with_turn(self, turn_number: int) -> EquipmentChange:
        return self.model_copy(update={"turnNumber": turn_number})

    def with_slots(self, turn_number: int, **slots: str) -> EquipmentChange:
        return EquipmentChange(**{**self.model_dump(), **slots, "turnNumber": turn_number})


class DayChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    dayNumber: int = Field(ge=1)
    turnNumber: int = Field(ge=0)


class Pull(BaseModel):
    model_config = ConfigDict(frozen=True)

    itemName: str
    amount: int = Field(ge=1)
    turnNumber: int = Field(ge=0)
    dayNumber: int = Field(ge=1)


class PlayerSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    musStats: int = Field(ge=0)
    mystStats: int = Field(ge=0)
    moxStats: int = Field(ge=0)
    adventuresLeft: int = Field(default=0, ge=0)
    meat: int = Field(default=0, ge=0)
    turnNumber: int = Field(ge=0)


class LevelData(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    levelNumber: int = Field(ge=1)
    levelReachedOnTurn: int = Field(ge=0)
    combatTurns: int = Field(default=0, ge=0)
    noncombatTurns: int = Field(default=0, ge=0)
    otherTurns: int = Field(default=0, ge=0)
    statsAtLevelReached: Statgain = NO_STATS
    statGainPerTurn: float = Field(default=0.0, ge=0)

    @property
    def total_turns(self) -> int:
        return self.combatTurns + self.noncombatTurns + self.otherTurns


class FreeRunaways(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempted: int = Field(default=0, ge=0)
    successful: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _successful_within_attempts(self) -> FreeRunaways:
        if self.successful > self.attempted:
            raise ValueError("Successful free runaways cannot exceed attempted ones.")
        return self

    def __add__(self, other: FreeRunaways) -> FreeRunaways:
        return FreeRunaways(attempted=self.attempted + other.attempted, successful=self.successful + other.successful)


class LogComment(BaseModel):
    comments: str = ""

    def add_comments(self, text: str) -> None:
        if not text:
            return
        self.comments = f"{self.comments}\n{text}" if self.comments else text

    def is_empty(self) -> bool:
        return not self.comments

    def __str__(self) -> str:
        return self.comments


class HeaderFooterComment(BaseModel):
    header: LogComment = Field(default_factory=LogComment)
    footer: LogComment = Field(default_factory=LogComment)

    def add_header_comments(self, text: str) -> None:
        self.header.add_comments(text)

    def add_footer_comments(self, text: str) -> None:
        self.footer.add_comments(text)


NO_FAMILIAR = FamiliarChange(familiarName=NO_FAMILIAR_STRING, turnNumber=0)
NO_EQUIPMENT = EquipmentChange(turnNumber=0)


# ── Turns ───────────────────────────────────────────────────────────

class AbstractTurn(BaseModel):
    """Data shared by single turns and turn intervals."""

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    areaName: str
    statGain: Statgain = NO_STATS
    meatGain: MeatGain = NO_MEAT
    mpGain: MPGain = NO_MP
    freeRunaways: int = Field(default=0, ge=0)
    isFreeTurn: bool = False
    notes: LogComment = Field(default_factory=LogComment)
    droppedItems: CountableCollection = Field(default_factory=CountableCollection)
    skillsCast: CountableCollection = Field(default_factory=CountableCollection)
    combatItemsUsed: CountableCollection = Field(default_factory=CountableCollection)
    consumablesUsed: CountableCollection = Field(default_factory=CountableCollection)

    def add_stat_gain(self, gain: Statgain) -> None:
        self.statGain = self.statGain + gain

    def add_meat(self, gain: MeatGain) -> None:
        self.meatGain = self.meatGain + gain

    def add_mp_gain(self, gain: MPGain) -> None:
        self.mpGain = self.mpGain + gain

    def add_free_runaways(self, amount: int) -> None:
        self.freeRunaways += amount

    def add_notes(self, text: str) -> None:
        self.notes.add_comments(text)

    def add_dropped_item(self, item: Item) -> None:
        self.droppedItems.add(item)

    def add_skill_cast(self, skill: Skill) -> None:
        self.skillsCast.add(skill)

    def add_combat_item_used(self, combat_item: CombatItem) -> None:
        self.combatItemsUsed.add(combat_item)

    def add_consumable_used(self, consumable: Consumable) -> None:
        self.consumablesUsed.add(consumable)

    def add_turn_data(self, other: AbstractTurn) -> None:
        self.add_stat_gain(other.statGain)
        self.add_meat(other.meatGain)
        self.add_mp_gain(other.mpGain)
        self.add_free_runaways(other.freeRunaways)
        self.droppedItems.add_all(other.droppedItems)
        self.skillsCast.add_all(other.skillsCast)
        self.combatItemsUsed.add_all(other.combatItemsUsed)
        self.consumablesUsed.add_all(other.consumablesUsed)
        self.notes.add_comments(other.notes.comments)

    def get_total_stat_gain(self) -> Statgain:
        total = self.statGain
        for consumable in self.consumablesUsed:
            total = total + consumable.statGain
        return total


class Encounter(BaseModel):
    """Immutable snapshot of a free action folded into an earlier turn."""

    model_config = ConfigDict(frozen=True)

    areaName: str
    encounterName: str
    turnNumber: int = Field(ge=0)
    dayNumber: int = Field(ge=1)
    turnVersion: TurnVersion = TurnVersion.NOT_DEFINED
    statGain: Statgain = NO_STATS
    meatGain: MeatGain = NO_MEAT
    mpGain: MPGain = NO_MP
    freeRunaways: int = 0
    isDisintegrated: bool = False
    isBanished: bool = False
    skillNames: tuple[str, ...] = ()


class SingleTurn(AbstractTurn):
    encounterName: str = ""
    turnNumber: int = Field(ge=0)
    dayNumber: int = Field(default=1, ge=1)
    usedEquipment: EquipmentChange = NO_EQUIPMENT
    usedFamiliar: FamiliarChange = NO_FAMILIAR
    turnVersion: TurnVersion = TurnVersion.NOT_DEFINED
    isDisintegrated: bool = False
    isBanished: bool = False
    banishedInfo: str = ""
    encounters: list[Encounter] = Field(default_factory=list)

    def add_dropped_item(self, item: Item) -> None:
        super().add_dropped_item(item.model_copy(update={"foundOnTurn": self.turnNumber}))

    def add_skill_cast(self, skill: Skill) -> None:
        super().add_skill_cast(skill.model_copy(update={"turnNumberOfCast": self.turnNumber}))

    def add_consumable_used(self, consumable: Consumable) -> None:
        super().add_consumable_used(consumable.model_copy(update={"turnNumberOfUsage": self.turnNumber}))

    def set_disintegrated(self, disintegrated: bool) -> None:
        self.isDisintegrated = disintegrated and self.turnVersion == TurnVersion.COMBAT

    def set_banished(self, banished: bool, banisher: Optional[str], turns: Optional[int]) -> None:
        if self.turnVersion != TurnVersion.COMBAT:
            return
        self.isBanished = banished
        if banished:
            self.banishedInfo = f"{self.encounterName} {{{banisher or 'unknown'} ({turns or '???'} turns )}}"

    def is_ran_away_on_this_turn(self) -> bool:
        return self.turnVersion == TurnVersion.COMBAT and "return" in self.skillsCast

    def is_runaways_equipment_equipped(self) -> bool:
        return any(item in RUNAWAY_EQUIPMENT for item in self.usedEquipment.slot_items())

    def add_encounter(self, encounter: Encounter) -> None:
        self.encounters.append(encounter)

    def to_encounter(self, turn_number: Optional[int] = None) -> Encounter:
        return Encounter(
            areaName=self.areaName,
            encounterName=self.encounterName,
            turnNumber=self.turnNumber if turn_number is None else turn_number,
            dayNumber=self.dayNumber,
            turnVersion=self.turnVersion,
            statGain=self.statGain,
            meatGain=self.meatGain,
            mpGain=self.mpGain,
            freeRunaways=self.freeRunaways,
            isDisintegrated=self.isDisintegrated,
            isBanished=self.isBanished,
            skillNames=tuple(skill.name for skill in self.skillsCast),
        )

    def add_single_turn_data(self, other: SingleTurn) -> None:
        self.add_turn_data(other)
        if other.isDisintegrated:
            self.isDisintegrated = True


class TurnInterval(AbstractTurn):
    startTurn: int = Field(ge=0)
    endTurn: int = Field(ge=0)
    preIntervalComment: LogComment = Field(default_factory=LogComment)

    @property
    def turnNumber(self) -> int:
        return self.endTurn

    @property
    def totalTurns(self) -> int:
        return self.endTurn - self.startTurn

    @property
    def postIntervalComment(self) -> LogComment:
        return self.notes

    def set_post_interval_comment(self, comment: LogComment) -> None:
        self.notes = comment.model_copy()

    def get_run_away_attempts(self) -> FreeRunaways:
        return FreeRunaways(attempted=self.freeRunaways, successful=self.freeRunaways)


class SimpleTurnInterval(TurnInterval):
    unsuccessfulFreeRunaways: int = Field(default=0, ge=0)

    def __init__(self, **data):
        start = data.get("startTurn", 0)
        end = data.get("endTurn", 0)
        if start < 0 or end < 0:
            raise ValueError("Turn numbers must not be below 0.")
        data["endTurn"] = max(start, end)
        super().__init__(**data)

    @property
    def turns(self) -> list[SingleTurn]:
        return []

    def get_run_away_attempts(self) -> FreeRunaways:
        return FreeRunaways(
            attempted=self.freeRunaways + self.unsuccessfulFreeRunaways,
            successful=self.freeRunaways,
        )


class DetailedTurnInterval(TurnInterval):
    turns: list[SingleTurn] = Field(default_factory=list)
    unsuccessfulFreeRunaways: int = Field(default=0, ge=0)

    @classmethod
    def from_turn(cls, turn: SingleTurn, free: bool = False) -> DetailedTurnInterval:
        start = turn.turnNumber if free else turn.turnNumber - 1
        interval = cls(areaName=turn.areaName, startTurn=max(0, start), endTurn=turn.turnNumber)
        interval.add_turn_data(turn)
        interval.turns.append(turn)
        return interval

    @classmethod
    def from_turns(cls, turns: Iterable[SingleTurn], area_name: str) -> DetailedTurnInterval:
        turns = list(turns)
        if not turns:
            return cls(areaName=area_name, startTurn=0, endTurn=0)
        interval = cls.from_turn(turns[0])
        for turn in turns[1:]:
            interval.add_turn(turn)
        return interval

    def add_turn(self, turn: SingleTurn) -> None:
        if turn.areaName != self.areaName:
            raise ValueError("The area name of the turn must be the same as that of the turn interval.")
        if self.startTurn >= turn.turnNumber:
            self.startTurn = max(0, turn.turnNumber - 1)
        if self.endTurn < turn.turnNumber:
            self.endTurn = turn.turnNumber
        self.add_turn_data(turn)
        if (
            turn.turnVersion == TurnVersion.COMBAT
            and turn.is_ran_away_on_this_turn()
            and turn.is_runaways_equipment_equipped()
        ):
            self.unsuccessfulFreeRunaways += 1
        self.turns.append(turn)

    def get_run_away_attempts(self) -> FreeRunaways:
        return FreeRunaways(
            attempted=self.freeRunaways + self.unsuccessfulFreeRunaways,
            successful=self.freeRunaways,
        )


def new_consumable(
    version: ConsumableVersion,
    name: str,
    adventure_gain: int,
    amount: int,
    turn_number: int,
    day_number: int = 1,
    stat_gain: Statgain = NO_STATS,
) -> Consumable:
    return Consumable(
        name=name,
        adventureGain=adventure_gain,
        amount=amount,
        turnNumberOfUsage=turn_number,
        dayNumberOfUsage=day_number,
        statGain=stat_gain,
        version=version,
    )
