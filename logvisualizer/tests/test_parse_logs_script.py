import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from logvisualizer.observability import otel
from logvisualizer.scripts import parse_logs as script

_GOOD_LOG = "[1] The Spooky Forest\nEncounter: Arboreal Respite\nYou gain 5 Beefiness\n"


class ParseLogsScriptTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.directory = Path(tmpdir.name)

    def _run(self, *args: str) -> tuple[int, str, str]:
        stdout, stderr = io.StringIO(), io.StringIO()
        with patch("sys.argv", ["parse_logs", *args]), contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(
            stderr
        ):
            code = script.main()
        return code, stdout.getvalue(), stderr.getvalue()

    def test_json_summary(self) -> None:
        path = self.directory / "Tester_ascend_20140101.txt"
        path.write_text(_GOOD_LOG, encoding="utf-8")

        code, out, _ = self._run(str(path), "--json")

        self.assertEqual(code, 0)
        payload = json.loads(out)
        entry = payload["logs"]["Tester_ascend_20140101.txt"]
        self.assertEqual(entry["character"], "Tester")
        self.assertEqual(entry["totalTurns"], 1)
        self.assertEqual(payload["failures"], [])

    def test_failures_are_reported_on_stderr(self) -> None:
        code, out, err = self._run(str(self.directory / "missing.txt"))

        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("missing.txt: failed after turn 0", err)


class OtelHelpersTests(unittest.TestCase):
    def test_otlp_endpoint_normalization(self) -> None:
        self.assertEqual(
            otel._normalize_otlp_endpoint("http://collector:4318", "/v1/traces"),
            "http://collector:4318/v1/traces",
        )
        self.assertEqual(
            otel._normalize_otlp_endpoint("http://collector:4318/v1/", "/v1/metrics"),
            "http://collector:4318/v1/metrics",
        )
        self.assertEqual(otel._normalize_otlp_endpoint("  ", "/v1/traces"), "")

    def test_recording_without_initialization_is_a_no_op(self) -> None:
        otel.record_ingestion("session_log", "ok", 12, project_id="logvisualizer")
        otel.record_parser_failure("mafia_log", project_id="logvisualizer")
        otel.record_parsed_turns(-5, project_id="logvisualizer")
        with otel.start_span("logvisualizer.parse_log", {"file": "a.txt"}) as span:
            self.assertIsNone(span)


if __name__ == "__main__":
    unittest.main()
