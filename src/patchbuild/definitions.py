"""Typed patch definitions produced by ingestion and consumed by the appliers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass(frozen=True, slots=True)
class ByteEdit:
    """Replace bytes at a fixed offset once the expected bytes are confirmed."""

    offset: int
    from_bytes: bytes
    to_bytes: bytes
    category: str = ""


@dataclass(frozen=True, slots=True)
class TargetFileSpec:
    """Identity and baseline of a packed file."""

    name: str
    original_size: int
    required_hash: str


@dataclass(slots=True)
class BinaryPatchSet:
    """All byte edits for one packed file, grouped by category."""

    target: TargetFileSpec
    categories: dict[str, list[ByteEdit]] = field(default_factory=dict)

    def add(self, category: str, edits: list[ByteEdit]) -> None:
        """Append ``edits`` to ``category``, creating it on first use."""
        self.categories.setdefault(category, []).extend(edits)

    def edits(self) -> Iterator[ByteEdit]:
        for edits in self.categories.values():
            yield from edits

    def __len__(self) -> int:
        return sum(len(edits) for edits in self.categories.values())


@dataclass(frozen=True, slots=True)
class ArchiveTextPatch:
    """Opaque archive patcher instructions from one fragment file."""

    name: str
    text: str


@dataclass(slots=True)
class RecordPatch:
    """Declarative patch for one record: ``initial`` seeds new records, ``persist`` always wins."""

    initial: dict[str, str] = field(default_factory=dict)
    persist: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"initial": dict(self.initial), "persist": dict(self.persist)}


# document name -> section -> key -> value
DocumentPatches = Dict[str, Dict[str, Dict[str, str]]]
RecordPatches = Dict[str, RecordPatch]


@dataclass(slots=True)
class PatchDefinitions:
    """Everything ingested for one build, in ingestion order."""

    binary: dict[str, BinaryPatchSet] = field(default_factory=dict)
    archive: list[ArchiveTextPatch] = field(default_factory=list)
    documents: DocumentPatches = field(default_factory=dict)
    records: RecordPatches = field(default_factory=dict)

    def summary(self) -> dict[str, int]:
        return {
            "binary": len(self.binary),
            "archive": len(self.archive),
            "documents": len(self.documents),
            "records": len(self.records),
        }


__all__ = [
    "ArchiveTextPatch",
    "BinaryPatchSet",
    "ByteEdit",
    "DocumentPatches",
    "PatchDefinitions",
    "RecordPatch",
    "RecordPatches",
    "TargetFileSpec",
]
