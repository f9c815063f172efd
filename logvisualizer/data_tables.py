"""Read-only game data tables loaded from YAML."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from logvisualizer import config
from logvisualizer.models import EquipmentChange, SingleTurn

logger = logging.getLogger("logvisualizer.data_tables")

_NON_ASCII_PATTERN = re.compile(r"[^\x00-\x7f]")
_BAD_MOON_PREFIX = "flowers for "
_MIN_MP_COST_OFFSET = -3

_OUTFIT_SLOTS = {"hat", "weapon", "offhand", "shirt", "pants", "acc1", "acc2", "acc3"}


class DataTableError(ValueError):
    """Raised when a data table file cannot be parsed into its expected shape."""


class Outfit(BaseModel):
    """Slots an outfit occupies. Familiar equipment is never part of one."""

    name: str
    hat: bool = False
    weapon: bool = False
    offhand: bool = False
    shirt: bool = False
    pants: bool = False
    acc1: bool = False
    acc2: bool = False
    acc3: bool = False


class QuestArea(BaseModel):
    area: str
    untilItem: Optional[str] = None


class QuestDefinition(BaseModel):
    name: str
    areas: list[QuestArea] = Field(default_factory=list)
    offset: int = 0


def _normalize(name: str) -> str:
    return _NON_ASCII_PATTERN.sub("", name).strip().lower()


def _load_yaml(path: Path, default: Any) -> Any:
    if not path.exists():
        logger.warning("Data table %s is missing, using an empty table", path.name)
        return default
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise DataTableError(f"Malformed data table {path.name}: {exc}") from exc
    if payload is None:
        return default
    if not isinstance(payload, type(default)):
        raise DataTableError(f"Data table {path.name} must be a {type(default).__name__}")
    return payload


def _number_table(path: Path) -> dict[str, int]:
    table: dict[str, int] = {}
    for key, value in _load_yaml(path, {}).items():
        try:
            table[_normalize(str(key))] = int(value)
        except (TypeError, ValueError) as exc:
            raise DataTableError(f"Non-numeric value for '{key}' in {path.name}") from exc
    return table


def _name_set(path: Path) -> set[str]:
    return {_normalize(str(entry)) for entry in _load_yaml(path, [])}


class DataTables:
    """Lookup tables shared read-only between concurrent parses."""

    def __init__(
        self,
        *,
        area_name_mappings: Optional[dict[str, str]] = None,
        equipment_mp_regen: Optional[dict[str, int]] = None,
        mp_cost_offsets: Optional[dict[str, int]] = None,
        skill_mp_costs: Optional[dict[str, int]] = None,
        spleen_hits: Optional[dict[str, int]] = None,
        fullness_hits: Optional[dict[str, int]] = None,
        drunkenness_hits: Optional[dict[str, int]] = None,
        outfits: Optional[dict[str, Outfit]] = None,
        semirares: Optional[set[str]] = None,
        bad_moon: Optional[set[str]] = None,
        wandering: Optional[set[str]] = None,
        quests: Optional[list[QuestDefinition]] = None,
    ):
        self._area_name_mappings = dict(area_name_mappings or {})
        self._equipment_mp_regen = dict(equipment_mp_regen or {})
        self._mp_cost_offsets = dict(mp_cost_offsets or {})
        self._skill_mp_costs = dict(skill_mp_costs or {})
        self._spleen_hits = dict(spleen_hits or {})
        self._fullness_hits = dict(fullness_hits or {})
        self._drunkenness_hits = dict(drunkenness_hits or {})
        self._outfits = dict(outfits or {})
        self._semirares = set(semirares or ())
        self._bad_moon = set(bad_moon or ())
        self._wandering = set(wandering or ())
        self._quests = list(quests or [])

    @classmethod
    def load(cls, directory: Optional[Path] = None) -> DataTables:
        directory = Path(directory or config.DATA_DIR)

        outfits: dict[str, Outfit] = {}
        for name, slots in _load_yaml(directory / "outfits.yaml", {}).items():
            unknown = set(slots or ()) - _OUTFIT_SLOTS
            if unknown:
                raise DataTableError(f"Unknown slots {sorted(unknown)} for outfit '{name}'")
            outfits[_normalize(str(name))] = Outfit(name=str(name), **{slot: True for slot in slots or ()})

        quests: list[QuestDefinition] = []
        for name, payload in _load_yaml(directory / "quests.yaml", {}).items():
            try:
                quests.append(QuestDefinition(name=str(name), **(payload or {})))
            except ValidationError as exc:
                raise DataTableError(f"Malformed quest definition '{name}'") from exc

        tables = cls(
            area_name_mappings={
                str(key): str(value)
                for key, value in _load_yaml(directory / "area_name_mappings.yaml", {}).items()
            },
            equipment_mp_regen=_number_table(directory / "equipment_mp_regen.yaml"),
            mp_cost_offsets=_number_table(directory / "mp_cost_offsets.yaml"),
            skill_mp_costs=_number_table(directory / "skill_mp_costs.yaml"),
            spleen_hits=_number_table(directory / "spleen_hits.yaml"),
            fullness_hits=_number_table(directory / "fullness_hits.yaml"),
            drunkenness_hits=_number_table(directory / "drunkenness_hits.yaml"),
            outfits=outfits,
            semirares=_name_set(directory / "semirares.yaml"),
            bad_moon=_name_set(directory / "bad_moon.yaml"),
            wandering=_name_set(directory / "wandering.yaml"),
            quests=quests,
        )
        logger.debug("Loaded data tables from %s", directory)
        return tables

    # ── Lookups ─────────────────────────────────────────────────────

    def standard_area_name(self, area_name: str) -> str:
        return self._area_name_mappings.get(area_name, area_name)

    def mp_from_equipment(self, item_name: str) -> int:
        return self._equipment_mp_regen.get(_normalize(item_name), 0)

    def mp_cost_offset(self, equipment: EquipmentChange) -> int:
        offset = sum(self._mp_cost_offsets.get(_normalize(item), 0) for item in equipment.slot_items())
        return max(_MIN_MP_COST_OFFSET, offset)

    def skill_mp_cost(self, skill_name: str) -> int:
        return self._skill_mp_costs.get(_normalize(skill_name), 0)

    def spleen_hit(self, name: str) -> int:
        return self._spleen_hits.get(_normalize(name), 0)

    def fullness_hit(self, name: str) -> int:
        return self._fullness_hits.get(_normalize(name), 0)

    def drunkenness_hit(self, name: str) -> int:
        return self._drunkenness_hits.get(_normalize(name), 0)

    def outfit(self, name: str) -> Optional[Outfit]:
        return self._outfits.get(_normalize(name))

    def is_semirare(self, turn: SingleTurn) -> bool:
        return _normalize(turn.encounterName) in self._semirares

    def is_bad_moon(self, turn: SingleTurn) -> bool:
        name = _normalize(turn.encounterName)
        return name in self._bad_moon or name.startswith(_BAD_MOON_PREFIX)

    def is_wandering(self, encounter_name: str) -> bool:
        return _normalize(encounter_name) in self._wandering

    @property
    def quests(self) -> list[QuestDefinition]:
        return list(self._quests)


@lru_cache(maxsize=1)
def default_data_tables() -> DataTables:
    """Tables shipped with the package, loaded once per process.

    Parsers fall back to these when no tables are passed. Build an empty
    ``DataTables()`` explicitly to parse without any lookups.
    """
    return DataTables.load()
