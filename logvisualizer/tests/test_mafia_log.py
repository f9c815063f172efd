import tempfile
import unittest
from pathlib import Path

from logvisualizer.config import ParserSettings
from logvisualizer.data_tables import DataTables, QuestArea, QuestDefinition
from logvisualizer.log_data import LogData
from logvisualizer.models import ConsumableVersion, DayChange, SingleTurn, TurnVersion
from logvisualizer.parsers.block_reader import BlockType, LogBlock
from logvisualizer.parsers.mafia_log import (
    ENDING_RULES,
    LogParseError,
    MafiaLogParser,
    finalize_session,
    find_ending,
)


def _bat_hole_turn(turn_number: int) -> list[str]:
    return [
        f"[{turn_number}] The Bat Hole Entryway",
        "Encounter: screaming bat",
        "Round 0: Tester wins initiative!",
        "Round 1: Tester wins the fight!",
        "You gain 3 Meat",
        "",
    ]


_SORCERESS_FIGHT = [
    "[10] The Naughty Sorceress' Chamber",
    "Encounter: Naughty Sorceress (3)",
    "Round 0: Tester wins initiative!",
    "Round 1: Tester wins the fight!",
    "",
    "[11] The Spooky Forest",
    "Encounter: Arboreal Respite",
    "",
]


class MafiaLogParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.data_tables = DataTables(
            quests=[
                QuestDefinition(name="batQuestTurns", areas=[QuestArea(area="The Bat Hole Entryway")]),
            ]
        )
        self.parser = MafiaLogParser(data_tables=self.data_tables)

    def test_encounter_turns_collect_their_gains(self) -> None:
        log_data = self.parser.parse_lines(
            [
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "You gain 5 Beefiness",
                "You gain 10 Meat",
                "",
                *_bat_hole_turn(2),
            ],
            log_name="Tester_ascend_20140101",
        )

        turns = log_data.turns_spent
        self.assertEqual([turn.turnNumber for turn in turns], [0, 1, 2])
        forest, bat = turns[1], turns[2]
        self.assertEqual(forest.turnVersion, TurnVersion.NONCOMBAT)
        self.assertEqual(forest.statGain.mus, 5)
        self.assertEqual(forest.meatGain.encounterMeatGain, 10)
        self.assertEqual(bat.turnVersion, TurnVersion.COMBAT)
        self.assertEqual(bat.encounterName, "screaming bat")
        self.assertEqual(log_data.character_name, "Tester")
        self.assertEqual(log_data.start_date, "20140101")
        self.assertTrue(log_data.has_summary)

    def test_quest_turncount_counts_area_turns(self) -> None:
        lines = []
        for turn_number in range(1, 6):
            lines.extend(_bat_hole_turn(turn_number))

        log_data = self.parser.parse_lines(lines)

        self.assertEqual(log_data.summary.quest_turncounts["batQuestTurns"], 5)
        self.assertEqual(log_data.summary.total_turns_combat, 5)
        self.assertEqual(log_data.summary.total_meat_gain, 15)

    def test_skipped_days_are_synthesized(self) -> None:
        log_data = self.parser.parse_lines(
            [
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "",
                "===Day 3===",
                "",
                "[2] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "",
            ]
        )

        self.assertEqual([day.dayNumber for day in log_data.day_changes], [1, 2, 3])
        self.assertEqual(log_data.turns_spent[-1].dayNumber, 3)
        first_turn_of_day_three = min(turn.turnNumber for turn in log_data.turns_spent if turn.dayNumber == 3)
        day_two = log_data.day_changes[1]
        self.assertEqual(day_two.turnNumber, first_turn_of_day_three - 1)

    def test_day_changes_follow_turn_days(self) -> None:
        log_data = LogData()
        for turn_number, day in [(1, 1), (2, 1), (3, 3), (4, 3)]:
            log_data.add_turn_spent(
                SingleTurn(
                    areaName="The Spooky Forest",
                    encounterName="Arboreal Respite",
                    turnNumber=turn_number,
                    dayNumber=day,
                )
            )
        log_data.add_day_change(DayChange(dayNumber=3, turnNumber=3))
        log_data.header_footer_comment(3).add_header_comments("Day three")

        finalize_session(log_data, DataTables())

        self.assertEqual([(day.dayNumber, day.turnNumber) for day in log_data.day_changes], [(1, 0), (2, 2), (3, 2)])
        self.assertEqual(log_data.header_footer_comment(3).header.comments, "Day three")

    def test_parsing_stops_at_ascension_end(self) -> None:
        log_data = self.parser.parse_lines(_SORCERESS_FIGHT)

        self.assertEqual(log_data.last_turn_spent.turnNumber, 10)

    def test_old_ascension_counting_reads_whole_log(self) -> None:
        parser = MafiaLogParser(ParserSettings(useOldAscensionCounting=True), self.data_tables)

        log_data = parser.parse_lines(_SORCERESS_FIGHT)

        self.assertEqual(log_data.last_turn_spent.turnNumber, 11)

    def test_find_ending_matches_block_type(self) -> None:
        block = LogBlock(blockType=BlockType.SERVICE, lines=("Took choice 1089/30: Donate Body",))

        self.assertEqual(find_ending(block).name, "Body donated")
        self.assertIsNone(find_ending(LogBlock(blockType=BlockType.OTHER, lines=block.lines)))

    def test_find_ending_reports_the_first_matching_rule(self) -> None:
        block = LogBlock(
            blockType=BlockType.ENCOUNTER,
            lines=(
                "[10] The Naughty Sorceress' Chamber",
                "Encounter: Wall of Naughty Sorceress (3)",
                "Round 0: Tester wins initiative!",
                "Round 1: Tester wins the fight!",
            ),
        )

        self.assertEqual(find_ending(block).name, "Naughty Sorceress defeated")
        self.assertEqual(ENDING_RULES[3].name, "Sorceress chamber boss defeated")
        self.assertTrue(ENDING_RULES[3].matches(block.lines))

    def test_consumables_on_one_turn_merge(self) -> None:
        log_data = self.parser.parse_lines(
            [
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "",
                "eat 1 fortune cookie",
                "You gain 1 Adventure",
                "",
                "eat 1 fortune cookie",
                "You gain 1 Adventure",
                "",
            ]
        )

        consumable = log_data.turns_spent[-1].consumablesUsed.get(("fortune cookie", 1))
        self.assertEqual(consumable.amount, 2)
        self.assertEqual(consumable.adventureGain, 2)
        self.assertEqual(consumable.version, ConsumableVersion.FOOD)
        self.assertEqual(log_data.summary.consumption.total_turns_from_food, 2)

    def test_consumable_without_gains_is_ignored(self) -> None:
        log_data = self.parser.parse_lines(
            [
                "[1] The Spooky Forest",
                "Encounter: Arboreal Respite",
                "",
                "use 1 chewing gum on a string",
                "You acquire an item: worthless trinket",
                "",
            ]
        )

        self.assertEqual(len(log_data.turns_spent[-1].consumablesUsed), 0)

    def test_malformed_line_reports_last_turn(self) -> None:
        with self.assertRaises(LogParseError) as ctx:
            self.parser.parse_lines(
                [
                    "[1] The Spooky Forest",
                    "Encounter: Arboreal Respite",
                    "",
                    "familiar Mosquito",
                    "",
                ],
                log_name="Tester_ascend_20140101",
            )

        self.assertEqual(ctx.exception.last_turn, 1)
        self.assertEqual(ctx.exception.file_name, "Tester_ascend_20140101")

    def test_parse_file_uses_file_name_without_suffix(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "Tester_ascend_20140101.txt"
        path.write_text("[1] The Spooky Forest\nEncounter: Arboreal Respite\n", encoding="utf-8")

        log_data = self.parser.parse_file(path)

        self.assertEqual(log_data.log_name, "Tester_ascend_20140101")
        self.assertEqual(log_data.last_turn_spent.turnNumber, 1)

    def test_missing_file_raises_os_error(self) -> None:
        with self.assertRaises(OSError):
            self.parser.parse_file(Path("/nonexistent/Tester_ascend_20140101.txt"))

    def test_finalizing_an_empty_log_keeps_the_seed(self) -> None:
        log_data = finalize_session(LogData())

        self.assertEqual([turn.turnNumber for turn in log_data.turns_spent], [0])
        self.assertEqual([day.dayNumber for day in log_data.day_changes], [1])


class DefaultDataTablesTests(unittest.TestCase):
    def test_parser_without_tables_uses_shipped_tables(self) -> None:
        lines = []
        for turn_number in range(1, 6):
            lines.extend(_bat_hole_turn(turn_number))

        log_data = MafiaLogParser().parse_lines(lines)

        self.assertEqual(log_data.summary.quest_turncounts["batQuestTurns"], 5)

    def test_finalizing_without_tables_uses_shipped_tables(self) -> None:
        log_data = LogData()
        for turn_number in range(1, 4):
            log_data.add_turn_spent(
                SingleTurn(areaName="The Bat Hole Entryway", encounterName="screaming bat", turnNumber=turn_number)
            )

        finalize_session(log_data)

        self.assertEqual(log_data.summary.quest_turncounts["batQuestTurns"], 3)


if __name__ == "__main__":
    unittest.main()
