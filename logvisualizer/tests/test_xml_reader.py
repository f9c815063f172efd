import io
import tempfile
import unittest
from pathlib import Path

from logvisualizer.data_tables import DataTables, QuestArea, QuestDefinition
from logvisualizer.models import AscensionPath, CharacterClass, GameMode, TurnVersion
from logvisualizer.parsers.mafia_log import MafiaLogParser
from logvisualizer.parsers.xml_reader import XMLLogFormatError, XMLLogReader, read_xml_log

_SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ascensionlogxml version="1">
  <ascension charactername="Tester" startdate="20140101" characterclass="Sauceror"
             gamemode="Hardcore" ascensionpath="Standard">
    <turnrundown>
      <turninterval area="The Spooky Forest" startturn="0" endturn="2">
        <turn turnnumber="1" turnversion="NONCOMBAT">
          <encountername>Arboreal Respite</encountername>
          <day>1</day>
          <familiar>Mosquito</familiar>
          <statgain muscle="1" myst="4" moxie="2"/>
          <meatgain><insideencounter>15</insideencounter></meatgain>
        </turn>
        <turn turnnumber="2" turnversion="COMBAT">
          <encountername>spooky vampire</encountername>
          <day>1</day>
          <familiar>Leprechaun</familiar>
          <itemdrop amount="1"><name>mosquito larva</name></itemdrop>
          <consumable version="FOOD" amount="1">
            <name>fortune cookie</name>
            <adventuregain>1</adventuregain>
            <consumedonday>1</consumedonday>
          </consumable>
        </turn>
        <notes>
          <preintervalnotes>Before{n}forest</preintervalnotes>
          <postintervalnotes>After</postintervalnotes>
        </notes>
      </turninterval>
      <turninterval area="The Bat Hole Entryway" startturn="2" endturn="3">
        <turn turnnumber="3" turnversion="COMBAT">
          <encountername>screaming bat</encountername>
          <day>2</day>
          <familiar>Leprechaun</familiar>
        </turn>
      </turninterval>
    </turnrundown>
    <daychanges>
      <day daynumber="1"><turnwhenreached>0</turnwhenreached></day>
      <day daynumber="2"><turnwhenreached>2</turnwhenreached><headernotes>Day two</headernotes></day>
    </daychanges>
    <playersnapshots>
      <playersnapshot onturn="2">
        <stats muscle="3" myst="5" moxie="4"/>
        <adventuresleft>40</adventuresleft>
        <currentmeat>300</currentmeat>
      </playersnapshot>
    </playersnapshots>
    <pulls>
      <pull onturn="1" daynumber="1"><itemname>hand in glove</itemname><amount>1</amount></pull>
    </pulls>
    <huntedcombats><combat name="dairy goat" onturn="3"/></huntedcombats>
    <lostcombats><combat name="screaming bat" onturn="3"/></lostcombats>
  </ascension>
</ascensionlogxml>
"""


class XMLLogReaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = XMLLogReader(
            DataTables(
                quests=[
                    QuestDefinition(
                        name="mosquitoQuestTurns",
                        areas=[QuestArea(area="The Spooky Forest", untilItem="mosquito larva")],
                    )
                ]
            )
        )

    def _read(self, text: str = _SAMPLE_XML):
        return self.reader.read_stream(io.BytesIO(text.encode("utf-8")), "sample.xml")

    def test_ascension_metadata(self) -> None:
        log_data = self._read()

        self.assertEqual(log_data.log_name, "Tester-20140101")
        self.assertEqual(log_data.character_name, "Tester")
        self.assertEqual(log_data.character_class, CharacterClass.SAUCEROR)
        self.assertEqual(log_data.game_mode, GameMode.HARDCORE)
        self.assertEqual(log_data.ascension_path, AscensionPath.STANDARD)

    def test_turns_and_changes_are_rebuilt(self) -> None:
        log_data = self._read()

        turns = log_data.turns_spent
        self.assertEqual([turn.turnNumber for turn in turns], [0, 1, 2, 3])
        self.assertEqual(turns[1].statGain.myst, 4)
        self.assertEqual(turns[2].turnVersion, TurnVersion.COMBAT)
        self.assertEqual(turns[3].dayNumber, 2)
        self.assertEqual(
            [change.familiarName for change in log_data.familiar_changes],
            ["Mosquito", "Leprechaun"],
        )

    def test_interval_notes_are_restored(self) -> None:
        log_data = self._read()

        forest = log_data.turn_intervals_spent[1]
        self.assertEqual(forest.areaName, "The Spooky Forest")
        self.assertEqual(forest.preIntervalComment.comments, "Before\nforest")
        self.assertEqual(forest.postIntervalComment.comments, "After")
        self.assertTrue(log_data.turn_intervals_spent[2].preIntervalComment.is_empty())

    def test_serialized_records(self) -> None:
        log_data = self._read()

        self.assertEqual([day.dayNumber for day in log_data.day_changes], [1, 2])
        self.assertEqual(log_data.header_footer_comment(2).header.comments, "Day two")
        snapshot = log_data.player_snapshots[0]
        self.assertEqual((snapshot.mystStats, snapshot.meat, snapshot.turnNumber), (5, 300, 2))
        self.assertEqual([(pull.itemName, pull.turnNumber) for pull in log_data.pulls], [("hand in glove", 1)])
        self.assertEqual(log_data.hunted_combats, [("dairy goat", 3)])
        self.assertEqual(log_data.lost_combats, [("screaming bat", 3)])

    def test_summary_is_recomputed(self) -> None:
        summary = self._read().summary

        self.assertEqual(summary.quest_turncounts["mosquitoQuestTurns"], 2)
        self.assertEqual(summary.consumables_used.get("fortune cookie").adventureGain, 1)
        self.assertEqual(summary.total_meat_gain, 15)
        self.assertEqual([(level.levelNumber, level.levelReachedOnTurn) for level in summary.levels], [(1, 0), (2, 2)])

    def test_malformed_xml_raises_format_error(self) -> None:
        with self.assertRaises(XMLLogFormatError):
            self._read("<ascensionlogxml><ascension charactername='Tester'>")

    def test_malformed_value_raises_format_error(self) -> None:
        with self.assertRaises(XMLLogFormatError):
            self._read(
                "<ascensionlogxml><ascension charactername='Tester'>"
                "<turn turnnumber='many'/></ascension></ascensionlogxml>"
            )

    def test_missing_ascension_raises_format_error(self) -> None:
        with self.assertRaises(XMLLogFormatError):
            self._read("<ascensionlogxml version='1'/>")

    def test_unreadable_file_raises_os_error(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)

        with self.assertRaises(OSError):
            read_xml_log(Path(tmpdir.name) / "missing.xml")

    def test_read_from_path(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "Tester-20140101.xml"
        path.write_text(_SAMPLE_XML, encoding="utf-8")

        log_data = self.reader.read(path)

        self.assertEqual(log_data.last_turn_spent.turnNumber, 3)


_SESSION_LINES = [
    "[1] The Spooky Forest",
    "Encounter: Arboreal Respite",
    "You gain 5 Beefiness",
    "You gain 10 Meat",
    "",
    "[2] The Bat Hole Entryway",
    "Encounter: screaming bat",
    "Round 0: Tester wins initiative!",
    "Round 1: Tester wins the fight!",
    "You gain 3 Meat",
    "",
    "[3] The Bat Hole Entryway",
    "Encounter: screaming bat",
    "Round 0: Tester wins initiative!",
    "Round 1: Tester wins the fight!",
    "You gain 3 Meat",
    "",
]

_SESSION_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ascensionlogxml version="1">
  <ascension charactername="Tester" startdate="20140101">
    <turnrundown>
      <turninterval area="The Spooky Forest" startturn="0" endturn="1">
        <turn turnnumber="1" turnversion="NONCOMBAT">
          <encountername>Arboreal Respite</encountername>
          <day>1</day>
          <statgain muscle="5" myst="0" moxie="0"/>
          <meatgain><insideencounter>10</insideencounter></meatgain>
        </turn>
      </turninterval>
      <turninterval area="The Bat Hole Entryway" startturn="1" endturn="3">
        <turn turnnumber="2" turnversion="COMBAT">
          <encountername>screaming bat</encountername>
          <day>1</day>
          <meatgain><insideencounter>3</insideencounter></meatgain>
        </turn>
        <turn turnnumber="3" turnversion="COMBAT">
          <encountername>screaming bat</encountername>
          <day>1</day>
          <meatgain><insideencounter>3</insideencounter></meatgain>
        </turn>
      </turninterval>
    </turnrundown>
    <daychanges>
      <day daynumber="1"><turnwhenreached>0</turnwhenreached></day>
    </daychanges>
  </ascension>
</ascensionlogxml>
"""


class TextAndXMLAgreementTests(unittest.TestCase):
    def setUp(self) -> None:
        tables = DataTables(
            quests=[QuestDefinition(name="batQuestTurns", areas=[QuestArea(area="The Bat Hole Entryway")])]
        )
        self.text_log = MafiaLogParser(data_tables=tables).parse_lines(_SESSION_LINES)
        self.xml_log = XMLLogReader(tables).read_stream(io.BytesIO(_SESSION_XML.encode("utf-8")))

    @staticmethod
    def _turn_rows(log_data):
        return [
            (
                turn.turnNumber,
                turn.areaName,
                turn.encounterName,
                turn.dayNumber,
                turn.turnVersion,
                turn.statGain,
                turn.meatGain,
                turn.mpGain,
                turn.usedFamiliar.familiarName,
            )
            for turn in log_data.turns_spent
        ]

    def test_turn_sequences_match(self) -> None:
        self.assertEqual(self._turn_rows(self.xml_log), self._turn_rows(self.text_log))
        self.assertEqual([turn.turnNumber for turn in self.xml_log.turns_spent], [0, 1, 2, 3])

    def test_day_changes_match(self) -> None:
        def days(log_data):
            return [(day.dayNumber, day.turnNumber) for day in log_data.day_changes]

        self.assertEqual(days(self.xml_log), days(self.text_log))

    def test_summaries_match(self) -> None:
        text, xml = self.text_log.summary, self.xml_log.summary

        self.assertEqual(xml.quest_turncounts.counts, text.quest_turncounts.counts)
        self.assertEqual(xml.quest_turncounts["batQuestTurns"], 2)
        self.assertEqual(dict(xml.turns_per_area), dict(text.turns_per_area))
        self.assertEqual(xml.total_statgains, text.total_statgains)
        self.assertEqual((xml.total_meat_gain, text.total_meat_gain), (16, 16))
        self.assertEqual(xml.total_turns_combat, text.total_turns_combat)
        self.assertEqual(
            [(level.levelNumber, level.levelReachedOnTurn) for level in xml.levels],
            [(level.levelNumber, level.levelReachedOnTurn) for level in text.levels],
        )


if __name__ == "__main__":
    unittest.main()
