"""Split a mafia session log into typed blocks of lines."""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict

from logvisualizer.parsers.patterns import (
    COMBAT_ROUND_LINE_BEGINNING,
    CONSUMABLE_USED,
    ENCOUNTER_START,
    TURNS_USED,
)

logger = logging.getLogger("logvisualizer.reader")

# Areas whose encounters are logged without a leading turn marker.
BROKEN_AREAS_ENCOUNTERS = {
    "Encounter: Big Wisniewski",
    "Encounter: The Big Wisniewski",
    "Encounter: The Man",
    "Encounter: Lord Spookyraven",
    "Encounter: Ed the Undying",
    "Encounter: The Infiltrationist",
    "Encounter: giant sandworm",
    "Encounter: Wu Tang the Betrayer",
}

SERVICE_BLOCK_PREFIX = "Took choice 1089"
SNAPSHOT_DELIMITER = "=-" * 22 + "="
HYBRID_PREFIXES = ("Hybridizing yourself", "Making a Gene Tonic")

_FAMILIAR_POUND_GAIN_END = "gains a pound!"
_PLAYER_SNAPSHOT_TITLE = "Player Snapshot"
_ASCENSION_DATA_PREFIX = "Ascension #"
_LEVEL_12_BOSSFIGHT_PREFIX = "bigisland.php?"
_CONSUMABLE_PREFIXES = ("use", "eat", "drink", "Buy", "chew")
_BLACKLISTED_PREFIXES = ("mall.php", "manageprices.php", "familiarnames.php")
_MAX_LINE_LENGTH = 450
_SERVICE_BLOCK_SIZE = 4
_FIGHT_LOOKAHEAD = 3


class SessionLogReadError(RuntimeError):
    """Raised when a block is requested from an exhausted reader."""


class BlockType(str, Enum):
    ENCOUNTER = "ENCOUNTER"
    CONSUMABLE = "CONSUMABLE"
    PLAYER_SNAPSHOT = "PLAYER_SNAPSHOT"
    ASCENSION_DATA = "ASCENSION_DATA"
    HYBRID_DATA = "HYBRID_DATA"
    SERVICE = "SERVICE"
    COMBING = "COMBING"
    OTHER = "OTHER"


class LogBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    blockType: BlockType
    lines: tuple[str, ...]


def _is_skippable(line: str) -> bool:
    return not line or len(line) >= _MAX_LINE_LENGTH or line.startswith(_BLACKLISTED_PREFIXES)


def _is_consumable_start(line: str) -> bool:
    return line.startswith(_CONSUMABLE_PREFIXES) and CONSUMABLE_USED.fullmatch(line) is not None


class SessionLogReader:
    """Cursor over the lines of one session log, yielding ``LogBlock`` objects.

    Look-ahead never consumes a line it cannot account for: the cursor is
    marked before peeking and reset when the peeked lines belong elsewhere.
    """

    def __init__(self, lines: Iterable[str]):
        self._lines = [line.rstrip("\r\n") for line in lines]
        self._position = 0
        self._mark = 0
        self._skip_noise()

    @classmethod
    def from_path(cls, path: Path) -> SessionLogReader:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            return cls(handle)

    # ── Cursor ──────────────────────────────────────────────────────

    def _read_line(self) -> Optional[str]:
        if self._position >= len(self._lines):
            return None
        line = self._lines[self._position]
        self._position += 1
        return line

    def _peek(self, offset: int = 0) -> Optional[str]:
        index = self._position + offset
        return self._lines[index] if index < len(self._lines) else None

    def _mark_position(self) -> None:
        self._mark = self._position

    def _reset(self) -> None:
        self._position = self._mark

    def _skip_noise(self) -> None:
        while self._position < len(self._lines) and _is_skippable(self._lines[self._position]):
            self._position += 1

    # ── Public API ──────────────────────────────────────────────────

    def has_next(self) -> bool:
        return self._position < len(self._lines)

    def next(self) -> LogBlock:
        line = self._peek()
        if line is None:
            raise SessionLogReadError("There are no more blocks to be read.")
        line2 = self._peek(1) or ""

        if "Combing" in line and "Beach Head" in line:
            block = LogBlock(blockType=BlockType.COMBING, lines=self._read_fixed(2))
        elif self._is_encounter_start(line, line2):
            block = LogBlock(blockType=BlockType.ENCOUNTER, lines=self._read_encounter_block())
        elif _is_consumable_start(line):
            block = LogBlock(blockType=BlockType.CONSUMABLE, lines=self._read_normal_block())
        elif line == SNAPSHOT_DELIMITER and _PLAYER_SNAPSHOT_TITLE in line2:
            block = LogBlock(blockType=BlockType.PLAYER_SNAPSHOT, lines=self._read_snapshot_block())
        elif line.startswith(_ASCENSION_DATA_PREFIX):
            block = LogBlock(blockType=BlockType.ASCENSION_DATA, lines=self._read_normal_block())
        elif line.startswith(HYBRID_PREFIXES):
            block = LogBlock(blockType=BlockType.HYBRID_DATA, lines=self._read_normal_block())
        elif line.startswith(SERVICE_BLOCK_PREFIX):
            block = LogBlock(blockType=BlockType.SERVICE, lines=self._read_fixed(_SERVICE_BLOCK_SIZE))
        else:
            block = LogBlock(blockType=BlockType.OTHER, lines=self._read_normal_block())

        self._skip_noise()
        return block

    def __iter__(self) -> Iterator[LogBlock]:
        while self.has_next():
            yield self.next()

    # ── Block grammars ──────────────────────────────────────────────

    @staticmethod
    def _is_encounter_start(line: str, line2: str) -> bool:
        is_adventure = (line.startswith("[") and TURNS_USED.match(line) is not None) or (
            line2.startswith(ENCOUNTER_START) and line2 in BROKEN_AREAS_ENCOUNTERS
        )
        return is_adventure or "cast 1 Rain Man" in line

    def _read_fixed(self, count: int) -> tuple[str, ...]:
        lines = []
        for _ in range(count):
            line = self._read_line()
            if line is None:
                break
            lines.append(line)
        return tuple(lines)

    def _read_normal_block(self) -> tuple[str, ...]:
        lines: list[str] = []
        while True:
            line = self._peek()
            if not line:
                # Consume the terminating blank line.
                self._read_line()
                break
            if line.startswith(SERVICE_BLOCK_PREFIX) and lines:
                break
            lines.append(line)
            self._read_line()
        return tuple(lines)

    def _read_snapshot_block(self) -> tuple[str, ...]:
        lines = list(self._read_fixed(3))
        while True:
            line = self._read_line()
            if line is None or line == SNAPSHOT_DELIMITER:
                break
            lines.append(line)
        return tuple(lines)

    def _read_encounter_block(self) -> tuple[str, ...]:
        lines: list[str] = []
        while True:
            line = self._read_line()
            if line is None:
                break

            if line.endswith(_FAMILIAR_POUND_GAIN_END) and self._peek() == "":
                # The weight gain message is followed by two spurious lines
                # after a blank one.
                lines.append(line)
                self._position = min(len(self._lines), self._position + 3)
                continue

            if not line.strip():
                if lines and "choice.php?" in lines[-1] and "whichchoice=1023&option=1" in lines[-1]:
                    detour = self._read_underworld_detour()
                    if detour is None:
                        break
                    lines.extend(detour)
                    continue
                continuation = self._read_fight_continuation()
                if continuation is None:
                    break
                lines.append(line)
                lines.extend(continuation)
                continue

            lines.append(line)
        return tuple(lines)

    def _read_underworld_detour(self) -> Optional[list[str]]:
        """Collect the lines of an underworld visit up to the return choice.

        Returns ``None`` (with the cursor restored) when a new turn starts
        before the visit is closed.
        """
        self._mark_position()
        detour: list[str] = []
        while True:
            line = self._read_line()
            if line is None or line.startswith("["):
                self._reset()
                return None
            if "choice.php" in line and (
                "whichchoice=1024&option=2" in line or "whichchoice=1024&option=1" in line
            ):
                detour.append(line)
                return detour
            if line:
                detour.append(line)

    def _read_fight_continuation(self) -> Optional[list[str]]:
        """Look a few lines past a blank line for a combat round that continues the fight."""
        self._mark_position()
        skipped: list[str] = []
        for _ in range(_FIGHT_LOOKAHEAD):
            line = self._read_line()
            if line is None or line.startswith("[") or line.startswith(_LEVEL_12_BOSSFIGHT_PREFIX):
                break
            if line.startswith(COMBAT_ROUND_LINE_BEGINNING):
                logger.debug("Encounter continues after a blank line: %s", line)
                return skipped + [line]
            skipped.append(line)
        self._reset()
        return None
