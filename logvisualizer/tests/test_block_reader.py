import tempfile
import unittest
from pathlib import Path

from logvisualizer.parsers.block_reader import (
    SNAPSHOT_DELIMITER,
    BlockType,
    SessionLogReader,
    SessionLogReadError,
)


class SessionLogReaderTests(unittest.TestCase):
    def test_blocks_are_typed_by_their_first_line(self) -> None:
        reader = SessionLogReader(
            [
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "You gain 5 Beefiness",
                "",
                "eat 1 fortune cookie",
                "You gain 1 Adventure",
                "",
                "some other line",
                "another line",
            ]
        )

        blocks = list(reader)

        self.assertEqual(
            [block.blockType for block in blocks],
            [BlockType.ENCOUNTER, BlockType.CONSUMABLE, BlockType.OTHER],
        )
        self.assertEqual(
            blocks[0].lines,
            ("[1] The Spooky Forest", "Encounter: Arboreal Respite", "You gain 5 Beefiness"),
        )
        self.assertEqual(blocks[1].lines, ("eat 1 fortune cookie", "You gain 1 Adventure"))
        self.assertEqual(blocks[2].lines, ("some other line", "another line"))
        self.assertFalse(reader.has_next())

    def test_fight_continues_after_blank_line(self) -> None:
        reader = SessionLogReader(
            [
                "[2] The Bat Hole Entryway",
                "Encounter: screaming bat",
                "Round 0: Tester wins initiative!",
                "",
                "Round 1: Tester attacks!",
                "Round 2: Tester wins the fight!",
                "",
                "[3] The Bat Hole Entryway",
                "Encounter: screaming bat",
            ]
        )

        first = reader.next()
        second = reader.next()

        self.assertEqual(first.blockType, BlockType.ENCOUNTER)
        self.assertEqual(len(first.lines), 6)
        self.assertEqual(first.lines[-1], "Round 2: Tester wins the fight!")
        self.assertEqual(second.lines[0], "[3] The Bat Hole Entryway")

    def test_noise_lines_are_skipped(self) -> None:
        reader = SessionLogReader(
            [
                "mall.php?whichitem=1",
                "x" * 500,
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
            ]
        )

        block = reader.next()

        self.assertEqual(block.blockType, BlockType.ENCOUNTER)
        self.assertEqual(block.lines, ("[1] The Spooky Forest", "Encounter: Arboreal Respite"))

    def test_player_snapshot_block_reads_to_closing_delimiter(self) -> None:
        reader = SessionLogReader(
            [
                SNAPSHOT_DELIMITER,
                "                   Player Snapshot",
                SNAPSHOT_DELIMITER,
                "Class: Sauceror",
                "Mus: 10",
                SNAPSHOT_DELIMITER,
                "",
                "[1] The Spooky Forest",
            ]
        )

        block = reader.next()

        self.assertEqual(block.blockType, BlockType.PLAYER_SNAPSHOT)
        self.assertIn("Class: Sauceror", block.lines)
        self.assertEqual(reader.next().blockType, BlockType.ENCOUNTER)

    def test_exhausted_reader_raises(self) -> None:
        reader = SessionLogReader(["only line"])
        reader.next()

        self.assertFalse(reader.has_next())
        with self.assertRaises(SessionLogReadError):
            reader.next()

    def test_from_path_strips_line_endings(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "Tester_ascend_20140101.txt"
        path.write_text("[1] The Spooky Forest\r\nEncounter: Arboreal Respite\r\n", encoding="utf-8")

        block = SessionLogReader.from_path(path).next()

        self.assertEqual(block.lines, ("[1] The Spooky Forest", "Encounter: Arboreal Respite"))


if __name__ == "__main__":
    unittest.main()
