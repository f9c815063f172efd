"""Concurrent parsing of many ascension logs with per-file failure collection."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from logvisualizer import config
from logvisualizer.config import ParserSettings
from logvisualizer.data_tables import DataTables, default_data_tables
from logvisualizer.log_data import LogData
from logvisualizer.observability import (
    record_ingestion,
    record_parsed_turns,
    record_parser_failure,
    start_span,
)
from logvisualizer.parsers.mafia_log import LogParseError, MafiaLogParser
from logvisualizer.parsers.preparsed import PreparsedLogParser
from logvisualizer.parsers.xml_reader import XMLLogFormatError, XMLLogReader

logger = logging.getLogger("logvisualizer.batch")

_PROJECT_ID = "logvisualizer"
_XML_SUFFIX = ".xml"


class ParseFailure(BaseModel):
    fileName: str
    lastTurn: int = 0
    error: str = ""


class BatchResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    logs: dict[str, LogData] = Field(default_factory=dict)
    failures: list[ParseFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def format_failure_report(failures: Iterable[ParseFailure]) -> str:
    """Render one ``file: failed after turn N (error)`` line per failure."""
    return "\n".join(
        f"{failure.fileName}: failed after turn {failure.lastTurn} ({failure.error})" for failure in failures
    )


def _parser_name(path: Path, preparsed: bool) -> str:
    if path.suffix.lower() == _XML_SUFFIX:
        return "xml"
    return "preparsed" if preparsed else "mafia_log"


def parse_log(
    path: Union[str, Path],
    settings: Optional[ParserSettings] = None,
    data_tables: Optional[DataTables] = None,
    preparsed: bool = False,
) -> LogData:
    """Parse one file with the parser its format calls for."""
    path = Path(path)
    data_tables = data_tables if data_tables is not None else default_data_tables()
    parser_name = _parser_name(path, preparsed)
    if parser_name == "xml":
        return XMLLogReader(data_tables).read(path)
    if parser_name == "preparsed":
        return PreparsedLogParser(data_tables).parse_file(path)
    return MafiaLogParser(settings, data_tables).parse_file(path)


def _parse_timed(
    path: Path,
    settings: ParserSettings,
    data_tables: DataTables,
    preparsed: bool,
) -> LogData:
    parser_name = _parser_name(path, preparsed)
    t0 = time.monotonic()
    result = "error"
    with start_span("logvisualizer.parse_log", {"file": path.name, "parser": parser_name}):
        try:
            log_data = parse_log(path, settings, data_tables, preparsed)
            result = "ok"
        except Exception:
            record_parser_failure(parser_name, project_id=_PROJECT_ID)
            raise
        finally:
            duration_ms = int((time.monotonic() - t0) * 1000)
            record_ingestion("session_log", result, duration_ms, project_id=_PROJECT_ID)
    record_parsed_turns(log_data.last_turn_spent.turnNumber, project_id=_PROJECT_ID)
    return log_data


def _failure_for(path: Path, exc: BaseException) -> ParseFailure:
    last_turn = exc.last_turn if isinstance(exc, LogParseError) else 0
    return ParseFailure(fileName=path.name, lastTurn=last_turn, error=str(exc))


async def parse_logs(
    paths: Iterable[Union[str, Path]],
    settings: Optional[ParserSettings] = None,
    data_tables: Optional[DataTables] = None,
    concurrency: Optional[int] = None,
    preparsed: bool = False,
) -> BatchResult:
    """Parse every file in its own worker thread.

    A failing file never aborts its siblings: every error is collected as a
    ``ParseFailure``. Only interrupts such as cancellation propagate, once
    all parses have finished.
    """
    paths = [Path(path) for path in paths]
    settings = settings or ParserSettings.from_env()
    data_tables = data_tables if data_tables is not None else default_data_tables()
    semaphore = asyncio.Semaphore(max(1, concurrency or config.BATCH_CONCURRENCY))

    async def _run(path: Path) -> LogData:
        async with semaphore:
            return await asyncio.to_thread(_parse_timed, path, settings, data_tables, preparsed)

    outcomes = await asyncio.gather(*(_run(path) for path in paths), return_exceptions=True)

    batch = BatchResult()
    unexpected: list[BaseException] = []
    for path, outcome in zip(paths, outcomes):
        if isinstance(outcome, Exception):
            failure = _failure_for(path, outcome)
            if isinstance(outcome, (LogParseError, XMLLogFormatError, OSError)):
                logger.warning("Parsing %s failed after turn %d: %s", failure.fileName, failure.lastTurn, failure.error)
            else:
                logger.error("Unexpected error parsing %s", failure.fileName, exc_info=outcome)
            batch.failures.append(failure)
        elif isinstance(outcome, BaseException):
            unexpected.append(outcome)
        else:
            batch.logs[path.name] = outcome

    if unexpected:
        raise unexpected[0]
    logger.info("Parsed %d logs, %d failed", len(batch.logs), len(batch.failures))
    return batch
