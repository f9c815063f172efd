import tempfile
import unittest
from pathlib import Path

from logvisualizer.batch import ParseFailure, format_failure_report, parse_log, parse_logs
from logvisualizer.config import ParserSettings
from logvisualizer.data_tables import DataTables

_GOOD_LOG = "[1] The Spooky Forest\nEncounter: Arboreal Respite\nYou gain 5 Beefiness\n"
_BROKEN_LOG = "[1] The Spooky Forest\nEncounter: Arboreal Respite\n\nfamiliar Mosquito\n"
_RUNDOWN = "[1] The Spooky Forest [1,4,2]\n[2-3] The Haunted Pantry\nTurn rundown finished!\n"


class _LogDirMixin:
    def _write(self, name: str, content: str) -> Path:
        path = self.directory / name
        path.write_text(content, encoding="utf-8")
        return path

    def _make_dir(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.directory = Path(tmpdir.name)


class ParseLogTests(_LogDirMixin, unittest.TestCase):
    def setUp(self) -> None:
        self._make_dir()

    def test_parser_is_chosen_by_format(self) -> None:
        text_log = parse_log(self._write("Tester_ascend_20140101.txt", _GOOD_LOG), data_tables=DataTables())
        rundown = parse_log(self._write("Tester_ascend42.txt", _RUNDOWN), data_tables=DataTables(), preparsed=True)

        self.assertTrue(text_log.is_detailed)
        self.assertFalse(rundown.is_detailed)
        self.assertEqual(rundown.log_name, "Tester-42")
        self.assertEqual(rundown.last_turn_spent.turnNumber, 3)

    def test_failure_report_format(self) -> None:
        report = format_failure_report(
            [
                ParseFailure(fileName="a.txt", lastTurn=12, error="boom"),
                ParseFailure(fileName="b.xml", error="bad"),
            ]
        )

        self.assertEqual(report, "a.txt: failed after turn 12 (boom)\nb.xml: failed after turn 0 (bad)")


class ParseLogsTests(_LogDirMixin, unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._make_dir()

    async def test_failures_do_not_abort_siblings(self) -> None:
        paths = [
            self._write("good.txt", _GOOD_LOG),
            self._write("broken.txt", _BROKEN_LOG),
            self._write("broken.xml", "<ascensionlogxml>"),
            self.directory / "missing.txt",
        ]

        batch = await parse_logs(paths, settings=ParserSettings(), data_tables=DataTables(), concurrency=2)

        self.assertFalse(batch.ok)
        self.assertEqual(list(batch.logs), ["good.txt"])
        self.assertEqual(batch.logs["good.txt"].turns_spent[-1].statGain.mus, 5)
        failures = {failure.fileName: failure for failure in batch.failures}
        self.assertEqual(set(failures), {"broken.txt", "broken.xml", "missing.txt"})
        self.assertEqual(failures["broken.txt"].lastTurn, 1)
        self.assertEqual(failures["broken.xml"].lastTurn, 0)

    async def test_all_good_batch_is_ok(self) -> None:
        paths = [self._write(f"Tester_ascend_2014010{day}.txt", _GOOD_LOG) for day in range(1, 4)]

        batch = await parse_logs(paths, settings=ParserSettings(), data_tables=DataTables())

        self.assertTrue(batch.ok)
        self.assertEqual(len(batch.logs), 3)
        self.assertEqual(format_failure_report(batch.failures), "")


if __name__ == "__main__":
    unittest.main()
