"""Streaming reader for ascension logs serialized as XML."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import IO, Callable, Optional, Union

from logvisualizer.data_tables import DataTables, default_data_tables
from logvisualizer.log_data import LogData
from logvisualizer.models import (
    NO_EQUIPMENT,
    NO_EQUIPMENT_STRING,
    NO_FAMILIAR,
    AscensionPath,
    Consumable,
    ConsumableVersion,
    DayChange,
    EquipmentChange,
    FamiliarChange,
    GameMode,
    HeaderFooterComment,
    Item,
    LevelData,
    LogComment,
    MeatGain,
    MPGain,
    PlayerSnapshot,
    Pull,
    SingleTurn,
    Skill,
    Statgain,
    TurnVersion,
    new_consumable,
)

logger = logging.getLogger("logvisualizer.xml")

_ROOT = "ascensionlogxml"
_LINEBREAK = "{n}"


class XMLLogFormatError(ValueError):
    """Raised when an XML log is not well-formed or holds malformed values.

    Failing to open or read the file raises ``OSError`` instead.
    """


# ── Element helpers ─────────────────────────────────────────────────

def _text(element: Optional[ET.Element]) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _child_text(element: ET.Element, tag: str) -> str:
    return _text(element.find(tag))


def _child_int(element: ET.Element, tag: str, default: int = 0) -> int:
    text = _child_text(element, tag)
    return int(text) if text else default


def _attr_int(element: ET.Element, name: str, default: int = 0) -> int:
    value = element.get(name)
    return int(value) if value else default


def _notes(element: Optional[ET.Element]) -> str:
    return _text(element).replace(_LINEBREAK, "\n")


def _statgain(element: Optional[ET.Element]) -> Statgain:
    if element is None:
        return Statgain()
    return Statgain(
        mus=_attr_int(element, "muscle"),
        myst=_attr_int(element, "myst"),
        mox=_attr_int(element, "moxie"),
    )


def _meatgain(element: Optional[ET.Element]) -> MeatGain:
    if element is None:
        return MeatGain()
    return MeatGain(
        encounterMeatGain=_child_int(element, "insideencounter"),
        otherMeatGain=_child_int(element, "other"),
        meatSpent=_child_int(element, "meatspent"),
    )


def _mpgain(element: Optional[ET.Element]) -> MPGain:
    if element is None:
        return MPGain()
    return MPGain(
        encounterMPGain=_child_int(element, "insideencounter"),
        starfishMPGain=_child_int(element, "starfish"),
        restingMPGain=_child_int(element, "resting"),
        outOfEncounterMPGain=_child_int(element, "outofencounter"),
        consumableMPGain=_child_int(element, "consumable"),
    )


def _equipment(element: ET.Element, turn_number: int) -> EquipmentChange:
    slots = {}
    for slot in EquipmentChange.SLOTS:
        value = _child_text(element, slot.lower())
        slots[slot] = value or NO_EQUIPMENT_STRING
    return EquipmentChange(turnNumber=turn_number, **slots)


def _item(element: ET.Element, turn_number: int) -> Item:
    return Item(
        name=_child_text(element, "name"),
        amount=_attr_int(element, "amount", 1),
        foundOnTurn=turn_number,
    )


def _skill(element: ET.Element, turn_number: int) -> Skill:
    return Skill(
        name=_child_text(element, "name"),
        amount=_attr_int(element, "amount", 1),
        mpCost=_attr_int(element, "mpcost", 1),
        turnNumberOfCast=turn_number,
    )


def _consumable(element: ET.Element, turn_number: int) -> Consumable:
    return new_consumable(
        ConsumableVersion.from_string(element.get("version", "")),
        _child_text(element, "name"),
        _child_int(element, "adventuregain"),
        _attr_int(element, "amount", 1),
        turn_number,
        _child_int(element, "consumedonday", 1),
        _statgain(element.find("statgain")),
    )


# ── Reader state ────────────────────────────────────────────────────

class _XMLLogState:
    """Everything one XML parse accumulates while the events stream by."""

    def __init__(self) -> None:
        self.log_data = LogData(detailed=True)
        self.log_data.mafia_turn_iteration = False
        self.familiar_stack: list[FamiliarChange] = [NO_FAMILIAR]
        self.equipment_stack: list[EquipmentChange] = [NO_EQUIPMENT]
        self.scopes: list[str] = []
        self.format_version = ""
        self.seen_ascension = False
        self.interval_area = ""
        self.interval_end = 0
        self.interval_notes: dict[int, tuple[LogComment, LogComment]] = {}

    @property
    def parent(self) -> str:
        return self.scopes[-2] if len(self.scopes) > 1 else ""

    def familiar_for(self, name: str, turn_number: int) -> FamiliarChange:
        if not name:
            return NO_FAMILIAR
        top = self.familiar_stack[-1]
        if name == top.familiarName:
            return top
        change = FamiliarChange(familiarName=name, turnNumber=max(0, turn_number - 1))
        if top.turnNumber != change.turnNumber:
            self.familiar_stack.append(change)
        return change

    def equipment_for(self, element: Optional[ET.Element], turn_number: int) -> EquipmentChange:
        if element is None:
            return NO_EQUIPMENT
        change_turn = max(0, turn_number - 1)
        current = _equipment(element, change_turn)
        top = self.equipment_stack[-1]
        if current.equals_ignore_turn(top):
            return top
        if top.turnNumber != change_turn:
            self.equipment_stack.append(current)
        return current


# ── Start-element handlers ──────────────────────────────────────────

def _start_root(state: _XMLLogState, element: ET.Element) -> None:
    state.format_version = element.get("version", "")
    logger.debug("XML log format version %s", state.format_version or "<unknown>")


def _start_ascension(state: _XMLLogState, element: ET.Element) -> None:
    log_data = state.log_data
    state.seen_ascension = True
    character = element.get("charactername", "")
    start_date = element.get("startdate", "")
    log_data.log_name = f"{character}-{start_date}"
    log_data.character_name = character
    log_data.start_date = start_date
    log_data.set_character_class(element.get("characterclass", ""))
    log_data.game_mode = GameMode.from_string(element.get("gamemode", ""))
    log_data.ascension_path = AscensionPath.from_string(element.get("ascensionpath", ""))


def _start_turn_interval(state: _XMLLogState, element: ET.Element) -> None:
    state.interval_area = element.get("area", "")
    state.interval_end = _attr_int(element, "endturn", -1)


_START_HANDLERS: dict[str, Callable[[_XMLLogState, ET.Element], None]] = {
    _ROOT: _start_root,
    "ascension": _start_ascension,
    "turninterval": _start_turn_interval,
}


# ── End-element handlers ────────────────────────────────────────────

def _end_turn(state: _XMLLogState, element: ET.Element) -> None:
    turn_number = _attr_int(element, "turnnumber")
    area_name = _child_text(element, "areaname") or state.interval_area
    turn = SingleTurn(
        areaName=area_name,
        encounterName=_child_text(element, "encountername"),
        turnNumber=turn_number,
        dayNumber=_child_int(element, "day", 1),
        usedFamiliar=state.familiar_for(_child_text(element, "familiar"), turn_number),
        usedEquipment=state.equipment_for(element.find("equipment"), turn_number),
        turnVersion=TurnVersion.from_string(element.get("turnversion", "")),
        statGain=_statgain(element.find("statgain")),
        meatGain=_meatgain(element.find("meatgain")),
        mpGain=_mpgain(element.find("mpgain")),
        freeRunaways=_child_int(element, "freerunaways"),
    )
    disintegration = element.find("disintegration")
    if disintegration is not None and disintegration.get("used") == "true":
        turn.set_disintegrated(True)
    for item in element.findall("itemdrop"):
        turn.add_dropped_item(_item(item, turn_number))
    for skill in element.findall("skillcast"):
        turn.add_skill_cast(_skill(skill, turn_number))
    for consumable in element.findall("consumable"):
        turn.add_consumable_used(_consumable(consumable, turn_number))

    state.log_data.add_turn_spent(turn)
    if state.interval_end < turn_number:
        state.interval_end = turn_number
    element.clear()


def _end_notes(state: _XMLLogState, element: ET.Element) -> None:
    if state.parent != "turninterval":
        return
    pre = LogComment(comments=_notes(element.find("preintervalnotes")))
    post = LogComment(comments=_notes(element.find("postintervalnotes")))
    state.interval_notes[state.interval_end] = (pre, post)
    if not post.is_empty():
        state.log_data.last_turn_spent.notes = post.model_copy()


def _end_day(state: _XMLLogState, element: ET.Element) -> None:
    if state.parent != "daychanges":
        return
    day_number = _attr_int(element, "daynumber", 1)
    state.log_data.add_day_change(
        DayChange(dayNumber=day_number, turnNumber=_child_int(element, "turnwhenreached"))
    )
    comment = HeaderFooterComment()
    comment.add_header_comments(_notes(element.find("headernotes")))
    comment.add_footer_comments(_notes(element.find("footernotes")))
    state.log_data.set_header_footer_comment(day_number, comment)
    element.clear()


def _end_level(state: _XMLLogState, element: ET.Element) -> None:
    gain_per_turn = _child_text(element, "mainstatgainperturn")
    state.log_data.add_level(
        LevelData(
            levelNumber=_attr_int(element, "levelnumber", 1),
            levelReachedOnTurn=_attr_int(element, "onturn"),
            combatTurns=_child_int(element, "combatturns"),
            noncombatTurns=_child_int(element, "noncombatturns"),
            otherTurns=_child_int(element, "otherturns"),
            statGainPerTurn=float(gain_per_turn) if gain_per_turn else 0.0,
            statsAtLevelReached=_statgain(element.find("statswhenreached")),
        )
    )
    element.clear()


def _end_player_snapshot(state: _XMLLogState, element: ET.Element) -> None:
    stats = _statgain(element.find("stats"))
    state.log_data.add_player_snapshot(
        PlayerSnapshot(
            musStats=stats.mus,
            mystStats=stats.myst,
            moxStats=stats.mox,
            adventuresLeft=_child_int(element, "adventuresleft"),
            meat=_child_int(element, "currentmeat"),
            turnNumber=_attr_int(element, "onturn"),
        )
    )
    element.clear()


def _end_pull(state: _XMLLogState, element: ET.Element) -> None:
    state.log_data.add_pull(
        Pull(
            itemName=_child_text(element, "itemname"),
            amount=_child_int(element, "amount", 1),
            turnNumber=_attr_int(element, "onturn"),
            dayNumber=_attr_int(element, "daynumber", 1),
        )
    )
    element.clear()


def _end_combat(state: _XMLLogState, element: ET.Element) -> None:
    name = element.get("name", "")
    turn_number = _attr_int(element, "onturn")
    if state.parent == "huntedcombats":
        state.log_data.add_hunted_combat(name, turn_number)
    elif state.parent == "lostcombats":
        state.log_data.add_lost_combat(name, turn_number)


_END_HANDLERS: dict[str, Callable[[_XMLLogState, ET.Element], None]] = {
    "turn": _end_turn,
    "notes": _end_notes,
    "day": _end_day,
    "level": _end_level,
    "playersnapshot": _end_player_snapshot,
    "pull": _end_pull,
    "combat": _end_combat,
}


# ── Reader ──────────────────────────────────────────────────────────

class XMLLogReader:
    """Rebuild a detailed session aggregate from its XML serialization.

    Day changes, levels and MP gains are taken as serialized. Familiar and
    equipment change lists are rebuilt from the turns and the summary is
    recomputed, after which the per-interval notes of the turn rundown are
    put back onto the intervals with the same end turn.
    """

    def __init__(self, data_tables: Optional[DataTables] = None):
        self.data_tables = data_tables if data_tables is not None else default_data_tables()

    def read(self, path: Union[str, Path]) -> LogData:
        """Read one XML log. ``OSError`` from opening it propagates unchanged."""
        path = Path(path)
        with path.open("rb") as handle:
            return self.read_stream(handle, path.name)

    def read_stream(self, source: IO[bytes], source_name: str = "<stream>") -> LogData:
        state = _XMLLogState()
        try:
            for event, element in ET.iterparse(source, events=("start", "end")):
                if event == "start":
                    state.scopes.append(element.tag)
                    handler = _START_HANDLERS.get(element.tag)
                else:
                    handler = _END_HANDLERS.get(element.tag)
                if handler is not None:
                    handler(state, element)
                if event == "end":
                    state.scopes.pop()
        except ET.ParseError as exc:
            raise XMLLogFormatError(f"{source_name}: malformed XML ({exc})") from exc
        except ValueError as exc:
            raise XMLLogFormatError(f"{source_name}: malformed value ({exc})") from exc

        if not state.seen_ascension:
            raise XMLLogFormatError(f"{source_name}: no ascension element found")
        self._finish(state)
        logger.info(
            "Read XML log %s: %d turns, format version %s",
            source_name,
            state.log_data.last_turn_spent.turnNumber,
            state.format_version or "<unknown>",
        )
        return state.log_data

    def _finish(self, state: _XMLLogState) -> None:
        log_data = state.log_data
        turns = log_data.turns_spent
        log_data.set_familiar_changes(turn.usedFamiliar for turn in turns)
        log_data.set_equipment_changes(turn.usedEquipment for turn in turns)
        log_data.create_log_summary(self.data_tables)
        for interval in log_data.turn_intervals_spent:
            notes = state.interval_notes.get(interval.endTurn)
            if notes is None:
                continue
            pre, post = notes
            interval.preIntervalComment = pre.model_copy()
            interval.set_post_interval_comment(post)


def read_xml_log(path: Union[str, Path], data_tables: Optional[DataTables] = None) -> LogData:
    return XMLLogReader(data_tables).read(path)
