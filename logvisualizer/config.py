"""Log Visualizer Configuration."""
from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Package root (the directory holding this file)
PACKAGE_ROOT = Path(__file__).resolve().parent

# Data tables
DATA_DIR = Path(os.getenv("LOGVIS_DATA_DIR", str(PACKAGE_ROOT / "data")))

# Parsing flags
OLD_ASCENSION_COUNTING = _env_bool("LOGVIS_OLD_ASCENSION_COUNTING", False)
INCLUDE_NOTES = _env_bool("LOGVIS_INCLUDE_NOTES", False)

# Batch parsing
BATCH_CONCURRENCY = max(1, _env_int("LOGVIS_BATCH_CONCURRENCY", 4))

# Observability
OTEL_ENABLED = _env_bool("LOGVIS_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("LOGVIS_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("LOGVIS_OTEL_SERVICE_NAME", "logvisualizer")
PROM_PORT = _env_int("LOGVIS_PROM_PORT", 0)


class ParserSettings(BaseModel):
    """Flags consulted while parsing a single log, passed down explicitly."""

    useOldAscensionCounting: bool = False
    includeNotes: bool = False

    @classmethod
    def from_env(cls) -> ParserSettings:
        return cls(
            useOldAscensionCounting=_env_bool("LOGVIS_OLD_ASCENSION_COUNTING", OLD_ASCENSION_COUNTING),
            includeNotes=_env_bool("LOGVIS_INCLUDE_NOTES", INCLUDE_NOTES),
        )
