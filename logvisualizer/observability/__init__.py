"""Observability helpers."""

from logvisualizer.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_ingestion,
    record_parser_failure,
    record_parsed_turns,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_ingestion",
    "record_parser_failure",
    "record_parsed_turns",
]
