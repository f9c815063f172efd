import tempfile
import unittest
from pathlib import Path

from logvisualizer.data_tables import DataTables
from logvisualizer.log_data import ASCENSION_START
from logvisualizer.models import ConsumableVersion, ParsedLogClass, Statgain
from logvisualizer.parsers.mafia_log import LogParseError
from logvisualizer.parsers.preparsed import PreparsedLogParser, preparsed_log_name

_RUNDOWN = [
    "===Day 1===",
    "[0] Ascension Start",
    "[1] The Spooky Forest [1,4,2]",
    "  -> Turn[1] Mosquito (1 lbs)",
    "  +> [1] Got mosquito larva, spooky sapling",
    "  o> Ate 1 fortune cookie (1 adventures gained) [0,0,0]",
    "",
    "[2-4] The Bat Hole Entryway [3,3,3]",
    "  &> 1 \\ 2 free retreats",
    "  #> [3] Semirare: Knob Goblin Embezzler",
    "  *> [4] Started hunting screaming bat",
    "  }> [4] Disintegrated screaming bat",
    "===Day 2===",
    "[5] The Guano Junction",
    "  #> Turn [5] pulled 1 hand in glove, 2 bat wing",
    "Turn rundown finished!",
    "[6] Ignored Area",
]


class PreparsedLogParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = PreparsedLogParser(DataTables())

    def test_rundown_becomes_turn_intervals(self) -> None:
        log_data = self.parser.parse_lines(_RUNDOWN, log_name="Tester-42")

        intervals = log_data.turn_intervals_spent
        self.assertFalse(log_data.is_detailed)
        self.assertEqual(
            [(interval.areaName, interval.startTurn, interval.endTurn) for interval in intervals],
            [
                (ASCENSION_START, 0, 0),
                ("The Spooky Forest", 0, 1),
                ("The Bat Hole Entryway", 1, 4),
                ("The Guano Junction", 4, 5),
            ],
        )
        self.assertEqual(intervals[1].statGain, Statgain(mus=1, myst=4, mox=2))
        self.assertEqual(log_data.last_turn_spent.turnNumber, 5)
        self.assertEqual(log_data.parsed_log_creator, ParsedLogClass.LOG_VISUALIZER)

    def test_interval_contents(self) -> None:
        log_data = self.parser.parse_lines(_RUNDOWN)
        forest, bat = log_data.turn_intervals_spent[1:3]

        self.assertEqual(forest.droppedItems.get("mosquito larva").foundOnTurn, 1)
        self.assertIn("spooky sapling", forest.droppedItems)
        cookie = forest.consumablesUsed.get(("fortune cookie", 1))
        self.assertEqual((cookie.version, cookie.adventureGain, cookie.amount), (ConsumableVersion.FOOD, 1, 1))

        runaways = bat.get_run_away_attempts()
        self.assertEqual((runaways.attempted, runaways.successful), (2, 1))
        self.assertIn("Knob Goblin Embezzler (3)", bat.notes.comments)
        self.assertEqual(log_data.familiar_changes[-1].familiarName, "Mosquito")

    def test_summary_lists_and_pulls(self) -> None:
        log_data = self.parser.parse_lines(_RUNDOWN)
        summary = log_data.summary

        self.assertEqual(summary.semirares, [("Knob Goblin Embezzler", 3)])
        self.assertEqual(summary.disintegrated_combats, [("screaming bat", 4)])
        self.assertEqual(log_data.hunted_combats, [("screaming bat", 4)])
        self.assertEqual(
            [(pull.itemName, pull.amount, pull.turnNumber, pull.dayNumber) for pull in log_data.pulls],
            [("hand in glove", 1, 5, 2), ("bat wing", 2, 5, 2)],
        )
        self.assertEqual([day.dayNumber for day in log_data.day_changes], [1, 2])
        self.assertEqual((summary.free_runaways.attempted, summary.free_runaways.successful), (2, 1))

    def test_afh_rundowns_shift_familiar_changes(self) -> None:
        log_data = self.parser.parse_lines(
            [
                "[1] The Spooky Forest",
                "  -> Turn[2] Leprechaun (3 lbs)",
            ]
        )

        self.assertEqual(log_data.parsed_log_creator, ParsedLogClass.AFH_PARSER)
        change = log_data.last_familiar_change
        self.assertEqual((change.familiarName, change.turnNumber), ("Leprechaun", 1))

    def test_malformed_line_reports_last_turn(self) -> None:
        with self.assertRaises(LogParseError) as ctx:
            self.parser.parse_lines(["[1] The Spooky Forest [1,1,1]", "  -> Turn[1]"], log_name="Tester-42")

        self.assertEqual(ctx.exception.last_turn, 1)

    def test_parse_file_names_the_aggregate(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "Tester_ascend42.txt"
        path.write_text("\n".join(_RUNDOWN), encoding="utf-8")

        log_data = self.parser.parse_file(path)

        self.assertEqual(log_data.log_name, "Tester-42")
        self.assertEqual(log_data.last_turn_spent.turnNumber, 5)

    def test_preparsed_log_name(self) -> None:
        self.assertEqual(preparsed_log_name("Tester_ascend42.txt"), "Tester-42")
        self.assertEqual(preparsed_log_name("rundown.txt"), "rundown")


if __name__ == "__main__":
    unittest.main()
