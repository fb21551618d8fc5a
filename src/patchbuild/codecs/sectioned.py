"""Codec for the game's sectioned ``key=value`` configuration files.

The format resembles ini but allows a key to repeat inside a section; every
occurrence is kept, in order, and written back as repeated lines. Comments and
lines outside any section are not preserved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Union

LINE_ENDING = "\r\n"

_SECTION_RE = re.compile(r"^\s*\[(?P<name>.*)\]\s*$")
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True, slots=True)
class Scalar:
    """A key that occurs once in its section."""

    value: str


@dataclass(frozen=True, slots=True)
class Repeated:
    """A key that occurs several times in its section, in file order."""

    values: tuple[str, ...]


Value = Union[Scalar, Repeated]
Section = Dict[str, Value]
ConfigDocument = Dict[str, Section]


def _accumulate(section: Section, key: str, value: str) -> None:
    current = section.get(key)
    if current is None:
        section[key] = Scalar(value)
    elif isinstance(current, Scalar):
        section[key] = Repeated((current.value, value))
    else:
        section[key] = Repeated((*current.values, value))


def parse_document(text: str) -> ConfigDocument:
    """Parse sectioned text into an ordered document."""
    document: ConfigDocument = {}
    current: Section | None = None
    for line in _LINE_SPLIT_RE.split(text):
        match = _SECTION_RE.match(line)
        if match:
            current = document.setdefault(match.group("name"), {})
            continue
        if current is None or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if not key:
            continue
        _accumulate(current, key, value.strip())
    return document


def serialize_document(document: ConfigDocument) -> str:
    """Render ``document`` back to text, one line per value, CRLF separated."""
    lines: list[str] = []
    for name, section in document.items():
        lines.append(f"[{name}]")
        for key, value in section.items():
            if isinstance(value, Repeated):
                lines.extend(f"{key}={item}" for item in value.values)
            else:
                lines.append(f"{key}={value.value}")
        lines.append("")
    return LINE_ENDING.join(lines)


__all__ = [
    "ConfigDocument",
    "LINE_ENDING",
    "Repeated",
    "Scalar",
    "Section",
    "Value",
    "parse_document",
    "serialize_document",
]
