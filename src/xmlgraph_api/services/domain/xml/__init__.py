"""
XML Domain

Parses XML into events, selects subtrees by path and builds nested records.
"""

from .errors import (
    InvalidPathExpression,
    LoadFailed,
    MalformedDocument,
    ReservedKeyCollision,
    SecurityViolation,
    SourceUnavailable,
    XmlProcessingError,
)
from .parser import iter_events, parse_events
from .path_selector import compile_path, select
from .record_builder import Record, RecordBuilder, build_record
from .tree import build_tree, replay_events

__all__ = [
    "XmlProcessingError",
    "SourceUnavailable",
    "SecurityViolation",
    "InvalidPathExpression",
    "LoadFailed",
    "MalformedDocument",
    "ReservedKeyCollision",
    "iter_events",
    "parse_events",
    "compile_path",
    "select",
    "Record",
    "RecordBuilder",
    "build_record",
    "build_tree",
    "replay_events",
]
