"""Codec for the multi-record mech setup format.

A file starts with ``Version=`` and ``NumMechs=`` headers followed by records.
Each record opens with a ``MechName=`` line and owns every ``key=value`` line
up to the next ``MechName=``. Keys may repeat within one record; repeats are
stored under a suffixed key so nothing is lost, and the suffix is stripped
again when the document is written.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict

LINE_ENDING = "\r\n"
DEFAULT_VERSION = "11"
DUPLICATE_SUFFIX = "._duplicate"

RECORD_KEY = "MechName"
VERSION_KEY = "Version"
COUNT_KEY = "NumMechs"

_LINE_SPLIT_RE = re.compile(r"\r\n|\n")

Record = Dict[str, str]


@dataclass(slots=True)
class MultiRecordDocument:
    """Ordered records keyed by record name."""

    records: dict[str, Record] = field(default_factory=dict)
    version: str = DEFAULT_VERSION


def unique_key(record: Record, key: str) -> str:
    """Return ``key`` or its suffixed form when ``record`` already holds it."""
    while key in record:
        key += DUPLICATE_SUFFIX
    return key


def original_key(key: str) -> str:
    """Strip any duplicate suffix added by :func:`unique_key`."""
    index = key.find(DUPLICATE_SUFFIX)
    return key if index < 0 else key[:index]


def parse_records(text: str) -> MultiRecordDocument:
    """Parse mech setup text into a :class:`MultiRecordDocument`."""
    document = MultiRecordDocument()
    current: Record | None = None
    for line in _LINE_SPLIT_RE.split(text):
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        if key == RECORD_KEY:
            current = document.records.setdefault(value, {})
            continue
        if current is None:
            if key == VERSION_KEY and value:
                document.version = value
            continue
        current[unique_key(current, key)] = value
    return document


def serialize_records(document: MultiRecordDocument) -> str:
    """Render ``document`` in the game's CRLF-delimited layout."""
    lines = [f"{VERSION_KEY}={document.version}", f"{COUNT_KEY}={len(document.records)}"]
    for name, record in document.records.items():
        lines.append(f"{RECORD_KEY}={name}")
        lines.extend(f"{original_key(key)}={value}" for key, value in record.items())
    return LINE_ENDING.join(lines)


__all__ = [
    "DEFAULT_VERSION",
    "DUPLICATE_SUFFIX",
    "LINE_ENDING",
    "MultiRecordDocument",
    "Record",
    "original_key",
    "parse_records",
    "serialize_records",
    "unique_key",
]
