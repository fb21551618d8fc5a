"""Typed records written to the patch package manifest."""

from __future__ import annotations

import json
from typing import Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordModel(BaseModel):
    """Base model with strict fields and camelCase manifest aliases."""

    model_config = ConfigDict(extra="forbid", frozen=False, populate_by_name=True)


class ByteAction(RecordModel):
    """A byte edit that was verified and written."""

    offset: str
    from_bytes: List[str] = Field(alias="from")
    to_bytes: List[str] = Field(alias="to")
    comment: str


class DocumentAction(RecordModel):
    """A key set in a sectioned configuration document."""

    section: str
    key: str
    value: str


class BinaryFileOperation(RecordModel):
    operation_type: Literal["binaryFilePatcher"] = Field(default="binaryFilePatcher", alias="operationType")
    file_path: str = Field(alias="filePath")
    file_original_size: int = Field(alias="fileOriginalSize")
    required_hash: str = Field(alias="requiredHash")
    patch_applied_hash: str = Field(alias="patchAppliedHash")
    actions: List[ByteAction] = Field(default_factory=list)


class ArchiveOperation(RecordModel):
    operation_type: Literal["archivePatcher"] = Field(default="archivePatcher", alias="operationType")
    file_path: str = Field(alias="filePath")
    data: str
    required_hash: str = Field(alias="requiredHash")
    patch_applied_hash: str = Field(alias="patchAppliedHash")


class RecordSetOperation(RecordModel):
    operation_type: Literal["configPatcher"] = Field(default="configPatcher", alias="operationType")
    data: str


class DocumentOperation(RecordModel):
    operation_type: Literal["documentPatcher"] = Field(default="documentPatcher", alias="operationType")
    file: str
    actions: List[DocumentAction] = Field(default_factory=list)


PatchOperation = Union[BinaryFileOperation, ArchiveOperation, RecordSetOperation, DocumentOperation]


class PackageMeta(RecordModel):
    version: str
    name: str


class PatchPackage(RecordModel):
    """The single build artifact: metadata, target digests and ordered operations."""

    meta: PackageMeta
    target_hashes: Dict[str, str] = Field(default_factory=dict, alias="targetHashes")
    operations: List[PatchOperation] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """Return the manifest as plain JSON-ready data using manifest key names."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.to_payload(), indent=indent)


__all__ = [
    "ArchiveOperation",
    "BinaryFileOperation",
    "ByteAction",
    "DocumentAction",
    "DocumentOperation",
    "PackageMeta",
    "PatchOperation",
    "PatchPackage",
    "RecordModel",
    "RecordSetOperation",
]
