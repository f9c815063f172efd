"""Mutable state shared by the block and line parsers of one parse run."""
from __future__ import annotations

from typing import Optional

from logvisualizer.config import ParserSettings
from logvisualizer.data_tables import DataTables, default_data_tables
from logvisualizer.log_data import LogData
from logvisualizer.models import NO_EQUIPMENT, EquipmentChange


class ParseContext:
    """Rolling change-tracking state owned by a single parse invocation.

    The equipment stack starts with the no-equipment sentinel. A change is
    only pushed when its slots differ from the current top.
    """

    def __init__(
        self,
        data_tables: Optional[DataTables] = None,
        settings: Optional[ParserSettings] = None,
    ):
        self.data_tables = data_tables if data_tables is not None else default_data_tables()
        self.settings = settings or ParserSettings()
        self.equipment_stack: list[EquipmentChange] = [NO_EQUIPMENT]
        self.familiar_equipment: dict[str, str] = {}

    @property
    def current_equipment(self) -> EquipmentChange:
        return self.equipment_stack[-1] if self.equipment_stack else NO_EQUIPMENT

    def push_equipment(self, change: EquipmentChange, log_data: LogData) -> EquipmentChange:
        """Push ``change`` unless it repeats the current top; return the effective top."""
        if change.equals_ignore_turn(self.current_equipment):
            return self.current_equipment
        self.equipment_stack.append(change)
        log_data.add_equipment_change(change)
        return change

    def pop_equipment(self) -> EquipmentChange:
        """Drop the current top and return the equipment worn before it."""
        if self.equipment_stack:
            self.equipment_stack.pop()
        return self.current_equipment
