"""Single-line parsers for mafia session logs.

Each parser answers ``is_compatible(line)`` and, when it does, folds the
line into the session aggregate. ``parse_line`` runs both steps and reports
whether the line was consumed, so callers can stop at the first match.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from logvisualizer.log_data import LogData
from logvisualizer.models import (
    NO_EQUIPMENT,
    NO_EQUIPMENT_STRING,
    NO_FAMILIAR_STRING,
    CombatItem,
    DayChange,
    EquipmentChange,
    FamiliarChange,
    Item,
    MeatGain,
    MPGain,
    Pull,
    SingleTurn,
    Skill,
    Statgain,
    TurnVersion,
)
from logvisualizer.parsers.context import ParseContext
from logvisualizer.parsers.patterns import (
    ACQUIRE_EFFECT,
    AFTER_BATTLE,
    BANISH_ITEMS,
    BANISH_SKILLS,
    COMBAT_ROUND_LINE_BEGINNING,
    DAY_CHANGE,
    GAIN_LOSE,
    MOXIE_SUBSTAT_NAMES,
    MP_NAMES,
    MUSCLE_SUBSTAT_NAMES,
    MYST_SUBSTAT_NAMES,
    PUNCT,
    TRIVIAL_COMBAT_SKILL_CLASSES,
    parse_number,
)

logger = logging.getLogger("logvisualizer.parser")

_GAIN_PREFIX_LENGTH = len("You gain ")
_LOSE_STRING = "You lose"
_REST_AREAS = {"Rest in your dwelling", "Rest in your bed in the Chateau"}
_SUBSTAT_NAMES = MUSCLE_SUBSTAT_NAMES | MYST_SUBSTAT_NAMES | MOXIE_SUBSTAT_NAMES


class LineParseError(ValueError):
    """Raised when a line judged compatible does not hold the expected shape."""


class LineParser:
    """Base class: one line shape, one effect on the session aggregate."""

    def is_compatible(self, line: str) -> bool:
        raise NotImplementedError

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        raise NotImplementedError

    def parse_line(self, line: str, log_data: LogData, context: ParseContext) -> bool:
        if not self.is_compatible(line):
            return False
        self.parse(line, log_data, context)
        return True


def parse_with_first_match(
    lines: Iterable[str], parsers: list[LineParser], log_data: LogData, context: ParseContext
) -> None:
    """Offer every line to ``parsers`` in order; at most one parser fires per line."""
    for line in lines:
        for parser in parsers:
            if parser.parse_line(line, log_data, context):
                break


def _require(match: Optional[re.Match], line: str) -> re.Match:
    if match is None:
        raise LineParseError(f"Line does not hold the expected shape: {line!r}")
    return match


def _gain_amount_part(line: str) -> str:
    offset = _GAIN_PREFIX_LENGTH
    if line.startswith(AFTER_BATTLE):
        offset += len(AFTER_BATTLE)
    return line[offset:]


def _last_single_turn(log_data: LogData) -> Optional[SingleTurn]:
    turn = log_data.last_turn_spent
    return turn if isinstance(turn, SingleTurn) else None


# ── Items and skills ────────────────────────────────────────────────

_SINGLE_ITEM_STRING = "You acquire an item: "
_ACQUIRE_STRING = "You acquire"
_MULTIPLE_ITEMS_OLD = re.compile(rf"You acquire \d+ [\s\w{PUNCT}]+")
_MULTIPLE_ITEMS_NEW = re.compile(rf"You acquire [\s\w{PUNCT}]+ \(\d+\)")
_MULTIPLE_ITEMS_OLD_CAPTURE = re.compile(r"You acquire (\d*,?\d+) (.+)")
_MULTIPLE_ITEMS_NEW_CAPTURE = re.compile(r"You acquire (.+) \((\d*,?\d+)\)")


class ItemAcquisitionLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return (
            not line.startswith(ACQUIRE_EFFECT)
            and line.startswith(_ACQUIRE_STRING)
            and (
                line.startswith(_SINGLE_ITEM_STRING)
                or _MULTIPLE_ITEMS_OLD.fullmatch(line) is not None
                or _MULTIPLE_ITEMS_NEW.fullmatch(line) is not None
            )
        )

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        amount = 1
        if line.startswith(_SINGLE_ITEM_STRING):
            item_name = line[len(_SINGLE_ITEM_STRING):]
        elif _MULTIPLE_ITEMS_OLD.fullmatch(line):
            match = _require(_MULTIPLE_ITEMS_OLD_CAPTURE.search(line), line)
            amount = parse_number(match.group(1))
            item_name = match.group(2)
        else:
            match = _require(_MULTIPLE_ITEMS_NEW_CAPTURE.search(line), line)
            item_name = match.group(1)
            amount = parse_number(match.group(2))

        turn = log_data.last_turn_spent
        turn.add_dropped_item(Item(name=item_name, amount=amount, foundOnTurn=turn.turnNumber))


_SKILL_CHARS = rf"[\w{PUNCT}\s]+"
_SKILL_CAST = re.compile(rf"cast \d+ {_SKILL_CHARS}|.*casts {_SKILL_CHARS}!(?: \(auto-attack\))?")
_COMBAT_CAST_CAPTURE = re.compile(rf".*casts ({_SKILL_CHARS})!(?: \(auto-attack\))?")
_NONCOMBAT_CAST_CAPTURE = re.compile(rf"cast (\d+) ({_SKILL_CHARS})")


class SkillCastLineParser(LineParser):
    """Combat (``casts X!``) and out-of-combat (``cast N X``) skill usage.

    Casting a banishing skill in combat also marks the turn as banished.
    """

    def is_compatible(self, line: str) -> bool:
        return "cast" in line and _SKILL_CAST.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        amount = 1
        if "casts" in line:
            match = _require(_COMBAT_CAST_CAPTURE.search(line), line)
            skill_name = match.group(1).lower()
        else:
            match = _require(_NONCOMBAT_CAST_CAPTURE.search(line), line)
            amount = int(match.group(1))
            skill_name = match.group(2).lower()

        turn = log_data.last_turn_spent
        skill = Skill(name=skill_name, turnNumberOfCast=turn.turnNumber)
        equipment = log_data.last_equipment_change or NO_EQUIPMENT
        skill.set_casts(
            amount,
            context.data_tables.mp_cost_offset(equipment),
            context.data_tables.skill_mp_cost(skill_name),
        )
        if TRIVIAL_COMBAT_SKILL_CLASSES.get(skill_name) == log_data.character_class:
            skill.mpCost = 0
        turn.add_skill_cast(skill)

        if skill_name in BANISH_SKILLS and isinstance(turn, SingleTurn):
            turn.set_banished(True, skill_name, None)


_COMBAT_ITEM_USED_CAPTURE = re.compile(rf".*uses ({_SKILL_CHARS})!(?: \(auto-attack\))?")


class CombatItemUsedLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return "uses" in line and _COMBAT_ITEM_USED_CAPTURE.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        match = _require(_COMBAT_ITEM_USED_CAPTURE.fullmatch(line), line)
        item_name = match.group(1).lower()
        turn = log_data.last_turn_spent
        turn.add_combat_item_used(CombatItem(name=item_name, amount=1, turnNumberOfUsage=turn.turnNumber))
        logger.debug("Combat item %s used on turn %d", item_name, turn.turnNumber)
        if item_name in BANISH_ITEMS and isinstance(turn, SingleTurn):
            turn.set_banished(True, item_name, None)


_LEARNED_SKILL_STRING = "You learned a new skill: "


class LearnedSkillLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return line.startswith(_LEARNED_SKILL_STRING)

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        log_data.add_learned_skill(line[len(_LEARNED_SKILL_STRING):], log_data.last_turn_spent.turnNumber)


# ── Gains ───────────────────────────────────────────────────────────

_MEAT_GAIN = re.compile(r"^You gain \d*,?\d+ Meat")
_MEAT_SPENT = re.compile(r"^You (?:spent|lose) \d*,?\d+ Meat")
_MEAT_SPENT_STRING = "You spent "


class MeatLineParser(LineParser):
    """Meat gained, booked as encounter meat or as other meat."""

    def __init__(self, encounter: bool):
        self.encounter = encounter

    def is_compatible(self, line: str) -> bool:
        return _MEAT_GAIN.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        amount = parse_number(line[_GAIN_PREFIX_LENGTH:].split(" ", 1)[0])
        if self.encounter:
            log_data.last_turn_spent.add_meat(MeatGain(encounterMeatGain=amount))
        else:
            log_data.last_turn_spent.add_meat(MeatGain(otherMeatGain=amount))


class MeatSpentLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return _MEAT_SPENT.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        offset = len(_MEAT_SPENT_STRING) if line.startswith(_MEAT_SPENT_STRING) else _GAIN_PREFIX_LENGTH
        amount = parse_number(line[offset:].split(" ", 1)[0])
        log_data.last_turn_spent.add_meat(MeatGain(meatSpent=amount))


class StatLineParser(LineParser):
    """Substat gains and losses; the last word names the substat."""

    def is_compatible(self, line: str) -> bool:
        if GAIN_LOSE.fullmatch(line) is None:
            return False
        return line.rsplit(" ", 1)[-1] in _SUBSTAT_NAMES

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        amount_text, _, substat_name = _gain_amount_part(line).partition(" ")
        amount = parse_number(amount_text)
        if line.startswith(_LOSE_STRING):
            amount = -amount

        if substat_name in MUSCLE_SUBSTAT_NAMES:
            gain = Statgain(mus=amount)
        elif substat_name in MYST_SUBSTAT_NAMES:
            gain = Statgain(myst=amount)
        else:
            gain = Statgain(mox=amount)
        log_data.last_turn_spent.add_stat_gain(gain)


class MPGainLineParser(LineParser):
    """MP gains, booked according to where they were logged.

    ``ENCOUNTER`` gains made while resting count as resting MP.
    """

    ENCOUNTER = "ENCOUNTER"
    NOT_ENCOUNTER = "NOT_ENCOUNTER"
    CONSUMABLE = "CONSUMABLE"

    def __init__(self, gain_type: str):
        if gain_type not in {self.ENCOUNTER, self.NOT_ENCOUNTER, self.CONSUMABLE}:
            raise ValueError(f"Unknown MP gain type: {gain_type}")
        self.gain_type = gain_type

    def is_compatible(self, line: str) -> bool:
        if GAIN_LOSE.fullmatch(line) is None or line.startswith(_LOSE_STRING):
            return False
        return any(line.endswith(name) for name in MP_NAMES)

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        amount_text = _gain_amount_part(line).split(" ", 1)[0]
        try:
            amount = parse_number(amount_text)
        except ValueError:
            logger.warning("Skipping MP gain with malformed amount %r: %s", amount_text, line)
            return

        turn = log_data.last_turn_spent
        if self.gain_type == self.ENCOUNTER:
            if turn.areaName in _REST_AREAS:
                turn.add_mp_gain(MPGain(restingMPGain=amount))
            else:
                turn.add_mp_gain(MPGain(encounterMPGain=amount))
        elif self.gain_type == self.NOT_ENCOUNTER:
            turn.add_mp_gain(MPGain(outOfEncounterMPGain=amount))
        else:
            turn.add_mp_gain(MPGain(consumableMPGain=amount))


_POOL_MP_BUFF_ACQUISITION = "You acquire an effect: Mental A-cue-ity (duration: 10 Adventures)"
_POOL_MP_BUFF_AMOUNT = 100


class PoolMPBuffLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return line == _POOL_MP_BUFF_ACQUISITION

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        log_data.last_turn_spent.add_mp_gain(MPGain(encounterMPGain=_POOL_MP_BUFF_AMOUNT))


_STARFISH_ATTACKS = tuple(
    re.compile(r"Round \d+: .+ " + pattern)
    for pattern in (
        r"floats behind your opponent, and begins to glow brightly.\s*Starlight shines through your "
        r"opponent, doing \d+ damage, and pours into your body.",
        r"leaps on your opponent, sliming \w+ for \d+ damage.\s*It's inspiring!",
        r"de-rezzes \w+ for \d+ damage, then offers you a drink out of his identity disc.\s*It's a little "
        r"too intimate for your comfort, but it's still refreshing.",
        r"tosses his identity disc at \w+ for \d+ damage, then invites you to drink some glowing blue "
        r"liquid out of the disc.\s*The whole thing's a little more intimate than you're comfortable with, "
        r"but it's still refreshing.",
        r"bounces his disc off of \w+ for \d+ damage, and it ricochets into you, giving you quite a shock.",
        r"flops toward \w+, gasping for water, and manages to tailsmack \w+ for \d+ slimy, clammy damage.",
        r"quacks loudly, and a bolt of enriched wheat energy tears through your opponent for \d+ damage, "
        r"then arcs toward you, energizing your nervous system.",
        r"rises into the air and spreads her wings, bathing your opponent in cold light and dealing \d+ "
        r"damage.\s*It's inspiring.",
        r"fixes an evil glare on your opponent, causing \w+ to suffer \d+ damage worth of heebie-jeebies."
        r"\s*A plume of oily black smoke emerges from his bark, and you accidentally inhale some of it."
        r"\s*You realize, to your horror, that it smells... good.",
        r"holds up an empty bottle of booze and gazes at it sadly.\s*Starlight filters through the bottle, "
        r"through the spirit hobo, and through the booze inside the spirit hobo, then pierces your opponent "
        r"for \d+ damage, and then shines into you.\s*What the hell\?",
        r"slimes your opponent thoroughly, dealing \d+ damage.\s*The resulting ectoplasmic shock wave gives "
        r"you a mystical jolt.",
        r"swoops through your opponent, somehow transferring \d+ points of \w+ lifeforce into \w+ Points "
        r"for you.\s*You feel slightly skeeved out.",
        r"swoops back and forth through your opponent, scaring the bejeezus out of \w+ to the tune of \d+ "
        r"damage.\s*Then he converts the bejeezus into \w+ Points!",
    )
)
_NUMBER = re.compile(r"\d+")


class StarfishMPGainLineParser(LineParser):
    """MP-restoring familiar attacks: the damage dealt is moved from
    encounter MP to familiar MP."""

    def is_compatible(self, line: str) -> bool:
        if not line.startswith(COMBAT_ROUND_LINE_BEGINNING):
            return False
        if "opponent" not in line and "disc" not in line and "tailsmack" not in line:
            return False
        return any(pattern.fullmatch(line) for pattern in _STARFISH_ATTACKS)

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        if "opponent" in line:
            tail = line[line.rindex("opponent"):]
        elif "tailsmack" in line:
            tail = line[line.rindex("tailsmack"):]
        elif "de-rezzes" in line:
            tail = line[line.rindex("de-rezzes"):]
        else:
            head = line[: line.rindex("damage")]
            tail = head[head.rindex("disc"):]
        damage = int(_require(_NUMBER.search(tail), line).group(0))

        turn = log_data.last_turn_spent
        turn.add_mp_gain(MPGain(starfishMPGain=damage))
        turn.add_mp_gain(MPGain(encounterMPGain=-damage))


_RED_RAY_STRING = (
    " swings his eyestalk toward your opponent, firing a searing ray of heat at it, dealing "
)
_RED_RAY_GAINS_MARKER = "That was way more entertaining than fireworks!"
_SENTENCE_END = re.compile(r"[.!]")


class RedRayStatsLineParser(LineParser):
    """Stat gains reported inline after a red ray attack."""

    def __init__(self) -> None:
        self._stat_parser = StatLineParser()

    def is_compatible(self, line: str) -> bool:
        return line.startswith(COMBAT_ROUND_LINE_BEGINNING) and _RED_RAY_STRING in line and "You gain " in line

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        _, _, gains = line.partition(_RED_RAY_GAINS_MARKER)
        for sentence in _SENTENCE_END.split(gains):
            self._stat_parser.parse_line(sentence.strip(), log_data, context)


# ── Combat flags ────────────────────────────────────────────────────

_FIRST_COMBAT_ROUND = "Round 0: "


class CombatRecognizerLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return line.startswith(_FIRST_COMBAT_ROUND)

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn = _last_single_turn(log_data)
        if turn is not None:
            turn.turnVersion = TurnVersion.COMBAT


_YELLOW_EFFECT = re.compile(r"You acquire an effect:\s*Everything Looks Yellow.*$")
_MAJOR_YELLOW_RAY = re.compile(
    r"Round \d+: .+? swings his eyestalk around and unleashes a massive ray of yellow energy, "
    r"completely disintegrating your opponent."
)


class DisintegrateLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        yellow_ray = line.startswith(ACQUIRE_EFFECT) and _YELLOW_EFFECT.fullmatch(line) is not None
        major_ray = line.startswith(COMBAT_ROUND_LINE_BEGINNING) and _MAJOR_YELLOW_RAY.fullmatch(line) is not None
        return yellow_ray or major_ray

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn = _last_single_turn(log_data)
        if turn is not None:
            turn.set_disintegrated(True)


_ON_THE_TRAIL = re.compile(r"You acquire an effect:\s*On the Trail.*$")


class OnTheTrailLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return line.startswith(ACQUIRE_EFFECT) and _ON_THE_TRAIL.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn = _last_single_turn(log_data)
        if turn is not None:
            log_data.add_hunted_combat(turn.encounterName, turn.turnNumber)


_FREE_RUNAWAY_MARKERS = (
    " snatches you up in his jaws, tosses you onto his back, and flooms away, weaving slightly and hiccelping fire.",
    " kicks you in the butt to speed your escape. ",
    " uses the divine champagne popper",
    " uses the glob of Blank-Out",
    " uses the Louder Than Bomb",
    " uses the green smoke bomb",
)


class FreeRunawaysLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return line.startswith(COMBAT_ROUND_LINE_BEGINNING) and any(
            marker in line for marker in _FREE_RUNAWAY_MARKERS
        )

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        log_data.last_turn_spent.add_free_runaways(1)


# ── Familiar and equipment changes ──────────────────────────────────

_FAMILIAR_CHANGE_START = "familiar "
_FAMILIAR_CHANGE_CAPTURE = re.compile(rf"familiar ([\w{PUNCT}\s]+) \((\d+) lbs\)")
_SERVANT_CHANGE = re.compile(r"choice\.php\?whichchoice=1053&option=[0-9].*&sid=([0-9])")
_SERVANT_NAMES = {
    1: "Cat",
    2: "Belly-Dancer",
    3: "Maid",
    4: "Bodyguard",
    5: "Scribe",
    6: "Priest",
    7: "Assassin",
}


class FamiliarChangeLineParser(LineParser):
    """``familiar X (n lbs)`` switches and servant changes.

    A familiar switch also swaps the familiar equipment to whatever that
    familiar last wore.
    """

    def is_compatible(self, line: str) -> bool:
        return line.startswith(_FAMILIAR_CHANGE_START) or _SERVANT_CHANGE.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        if line.endswith("lock"):
            return
        turn_number = log_data.last_turn_spent.turnNumber

        servant = _SERVANT_CHANGE.search(line)
        if servant is not None:
            familiar_name = _SERVANT_NAMES.get(int(servant.group(1)), "Unknown")
        else:
            if line.endswith(NO_FAMILIAR_STRING):
                familiar_name = NO_FAMILIAR_STRING
                fam_equip = NO_EQUIPMENT_STRING
            else:
                familiar_name = _require(_FAMILIAR_CHANGE_CAPTURE.search(line), line).group(1)
                fam_equip = context.familiar_equipment.get(familiar_name, NO_EQUIPMENT_STRING)
            context.push_equipment(
                context.current_equipment.with_slots(turn_number, famEquip=fam_equip), log_data
            )

        log_data.add_familiar_change(FamiliarChange(familiarName=familiar_name, turnNumber=turn_number))


_EQUIPMENT_SLOTS = {
    "hat": "hat",
    "weapon": "weapon",
    "off-hand": "offhand",
    "offhand": "offhand",
    "shirt": "shirt",
    "pants": "pants",
    "acc1": "acc1",
    "acc2": "acc2",
    "acc3": "acc3",
    "familiarequip": "famEquip",
    "familiar": "famEquip",
}
_OUTFIT_SLOT_NAMES = ("hat", "weapon", "offhand", "shirt", "pants", "acc1", "acc2", "acc3")
_PREVIOUS_OUTFITS = {"custom outfit backup", "custom outfit your previous outfit"}


class EquipmentLineParser(LineParser):
    """Equip, unequip and outfit commands. Lines are matched lowercased."""

    def parse_line(self, line: str, log_data: LogData, context: ParseContext) -> bool:
        return super().parse_line(line.lower(), log_data, context)

    def is_compatible(self, line: str) -> bool:
        return line.startswith(("equip", "unequip", "outfit", "custom outfit"))

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn_number = log_data.last_turn_spent.turnNumber

        if line.startswith("outfit"):
            outfit = context.data_tables.outfit(line.split(" ", 1)[-1])
            if outfit is not None:
                cleared = {slot: NO_EQUIPMENT_STRING for slot in _OUTFIT_SLOT_NAMES if getattr(outfit, slot)}
                context.push_equipment(context.current_equipment.with_slots(turn_number, **cleared), log_data)
            return

        if line.startswith("custom outfit"):
            if line in _PREVIOUS_OUTFITS:
                restored = context.pop_equipment()
                log_data.add_equipment_change(restored.with_turn(turn_number))
            else:
                cleared = {slot: NO_EQUIPMENT_STRING for slot in _OUTFIT_SLOT_NAMES}
                context.push_equipment(context.current_equipment.with_slots(turn_number, **cleared), log_data)
            return

        rest = line.split(" ", 1)[-1]
        slot_name, _, item_name = rest.partition(" ")
        if line.startswith("unequip") and not item_name:
            self._change_slot(slot_name, NO_EQUIPMENT_STRING, turn_number, log_data, context)
            return
        if not item_name:
            return
        if not line.startswith("equip"):
            item_name = NO_EQUIPMENT_STRING
        self._change_slot(slot_name, item_name, turn_number, log_data, context)

    @staticmethod
    def _change_slot(
        slot_name: str, item_name: str, turn_number: int, log_data: LogData, context: ParseContext
    ) -> None:
        slot = _EQUIPMENT_SLOTS.get(slot_name)
        if slot is None:
            return
        if slot == "famEquip":
            familiar = log_data.last_familiar_change
            if familiar is not None:
                context.familiar_equipment[familiar.familiarName] = item_name
        change: EquipmentChange = context.current_equipment.with_slots(turn_number, **{slot: item_name})
        context.push_equipment(change, log_data)


# ── Pulls, days and notes ───────────────────────────────────────────

_PULL = re.compile(r"pull: \d+ .+")
_PULLED_ITEM = re.compile(r"([0-9]+ ((?:[^,]+)|(?:, [^0-9]))*)(?:, )?")


class PullLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return _PULL.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        turn_number = log_data.last_turn_spent.turnNumber
        day = log_data.last_day_change
        day_number = day.dayNumber if day is not None else 1
        for match in _PULLED_ITEM.finditer(line):
            amount_text, _, item_name = match.group(1).partition(" ")
            log_data.add_pull(
                Pull(
                    itemName=item_name,
                    amount=max(1, int(amount_text)),
                    turnNumber=turn_number,
                    dayNumber=day_number,
                )
            )


class DayChangeLineParser(LineParser):
    def is_compatible(self, line: str) -> bool:
        return DAY_CHANGE.fullmatch(line) is not None

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        day_number = int(_require(_NUMBER.search(line), line).group(0))
        log_data.add_day_change(DayChange(dayNumber=day_number, turnNumber=log_data.last_turn_spent.turnNumber))


_NOTES_START = " > Note: "
_HEADER_START = " > Header: "
_FOOTER_START = " > Footer: "


class NotesLineParser(LineParser):
    """User notes attached to the last turn and header/footer notes of the current day."""

    def is_compatible(self, line: str) -> bool:
        return line.startswith((_NOTES_START, _HEADER_START, _FOOTER_START))

    def parse(self, line: str, log_data: LogData, context: ParseContext) -> None:
        if line.startswith(_NOTES_START):
            log_data.last_turn_spent.add_notes(line[len(_NOTES_START):])
            return
        comment = log_data.last_header_footer_comment
        if comment is None:
            return
        if line.startswith(_HEADER_START):
            comment.add_header_comments(line[len(_HEADER_START):])
        else:
            comment.add_footer_comments(line[len(_FOOTER_START):])
