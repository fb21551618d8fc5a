"""Directory-based patch source provider.

Layout under the patch root::

    bin/<packed file>/.fileinfo.json   {"originalPackedSize": int, "hash_original": str}
    bin/<packed file>/<category>.json  {"replacements": [{"offset", "from", "to"}, ...]}
    upk/<fragment>                     archive patcher instruction text
    ini/<document>/<fragment>.json     {section: {key: value}}
    mechsetup/<fragment>.json          {record: {"initial": {...}, "persist": {...}}}

Fragments are read in sorted file-name order. Binary fragments may also be
YAML, which allows ``0x`` integer literals and comments. Any malformed file
raises :class:`~patchbuild.errors.FormatError`. Other files in a fragment folder
are skipped with a warning; a missing category folder just means there are no
patches of that kind.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Protocol, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .definitions import (
    ArchiveTextPatch,
    BinaryPatchSet,
    ByteEdit,
    DocumentPatches,
    PatchDefinitions,
    RecordPatch,
    RecordPatches,
    TargetFileSpec,
)
from .errors import FormatError

LOGGER = logging.getLogger(__name__)

BINARY_DIR = "bin"
ARCHIVE_DIR = "upk"
DOCUMENT_DIR = "ini"
RECORD_DIR = "mechsetup"
FILE_INFO_NAME = ".fileinfo.json"

_STRUCTURED_SUFFIXES = {".json", ".yaml", ".yml"}
_HEX_SEPARATORS = re.compile(r"[\s,]+")


class PatchSource(Protocol):
    """Anything that can produce the patch definitions for a build."""

    def load(self) -> PatchDefinitions:
        ...


# ---------------------------------------------------------------- fragment shapes
class _FragmentModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _coerce_byte_sequence(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        tokens = [token for token in _HEX_SEPARATORS.split(value.strip()) if token]
        cleaned = "".join(token[2:] if token.lower().startswith("0x") else token for token in tokens)
        try:
            return bytes.fromhex(cleaned)
        except ValueError as error:
            raise ValueError(f"invalid hex byte string {value!r}") from error
    if isinstance(value, list):
        result = bytearray()
        for item in value:
            if isinstance(item, str):
                item = int(item, 16)
            if isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 0xFF:
                raise ValueError(f"byte values must be integers 0-255, got {item!r}")
            result.append(item)
        return bytes(result)
    raise ValueError(f"expected a byte list or hex string, got {type(value).__name__}")


class ReplacementModel(_FragmentModel):
    offset: int = Field(ge=0)
    from_bytes: bytes = Field(alias="from")
    to_bytes: bytes = Field(alias="to")

    @field_validator("offset", mode="before")
    @classmethod
    def _parse_offset(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value, 0)
        return value

    @field_validator("from_bytes", "to_bytes", mode="before")
    @classmethod
    def _parse_bytes(cls, value: Any) -> bytes:
        return _coerce_byte_sequence(value)


class BinaryFragmentModel(_FragmentModel):
    replacements: List[ReplacementModel] = Field(default_factory=list)


class FileInfoModel(_FragmentModel):
    original_packed_size: int = Field(alias="originalPackedSize", ge=0)
    hash_original: str


ScalarValue = Union[str, int, float, bool]


class RecordPatchModel(_FragmentModel):
    initial: Dict[str, ScalarValue] = Field(default_factory=dict)
    persist: Dict[str, ScalarValue] = Field(default_factory=dict)


# ---------------------------------------------------------------- helpers
def to_text(value: Any) -> str:
    """Render a JSON scalar the way the game files spell it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def deep_merge(target: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Overlay ``overlay`` onto ``target`` recursively; later scalars win."""
    for key, value in overlay.items():
        current = target.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            deep_merge(current, value)
        elif isinstance(value, Mapping):
            target[key] = deep_merge({}, value)
        else:
            target[key] = value
    return target


def _read_structured(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as error:
        raise FormatError(f"Cannot read patch file {path.name}: {error}", details={"path": path.as_posix()}) from error
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as error:
        raise FormatError(f"Malformed patch file {path.name}: {error}", details={"path": path.as_posix()}) from error


def _read_mapping(path: Path) -> dict[str, Any]:
    data = _read_structured(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FormatError(
            f"Patch file {path.name} must contain a mapping at the top level",
            details={"path": path.as_posix()},
        )
    return data


def _validate(model: type[BaseModel], data: Any, path: Path) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as error:
        raise FormatError(
            f"Invalid patch file {path.name}: {error.error_count()} error(s)",
            details={"path": path.as_posix(), "errors": error.errors(include_url=False)},
        ) from error


def _sorted_files(folder: Path) -> list[Path]:
    return sorted((entry for entry in folder.iterdir() if entry.is_file()), key=lambda entry: entry.name)


def _sorted_dirs(folder: Path) -> list[Path]:
    return sorted((entry for entry in folder.iterdir() if entry.is_dir()), key=lambda entry: entry.name)


def _structured_files(folder: Path, *, skip: tuple[str, ...] = ()) -> list[Path]:
    """Return JSON/YAML fragments in name order, warning about anything else."""
    fragments = []
    for entry in _sorted_files(folder):
        if entry.name in skip:
            continue
        if entry.suffix.lower() not in _STRUCTURED_SUFFIXES:
            LOGGER.warning("Ignoring %s: patch fragments must be .json, .yaml or .yml", entry.as_posix())
            continue
        fragments.append(entry)
    return fragments


# ---------------------------------------------------------------- provider
class DirectoryPatchSource:
    """Read every patch definition under ``root``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def load(self) -> PatchDefinitions:
        if not self.root.is_dir():
            raise FormatError(f"Patch folder not found: {self.root}", details={"path": self.root.as_posix()})
        definitions = PatchDefinitions(
            binary=self.load_binary(),
            archive=self.load_archive(),
            documents=self.load_documents(),
            records=self.load_records(),
        )
        LOGGER.info(
            "Ingested %(binary)d binary target(s), %(archive)d archive fragment(s), "
            "%(documents)d document(s), %(records)d record(s)",
            definitions.summary(),
        )
        return definitions

    def load_binary(self) -> dict[str, BinaryPatchSet]:
        folder = self.root / BINARY_DIR
        if not folder.is_dir():
            return {}
        patch_sets: dict[str, BinaryPatchSet] = {}
        for target_dir in _sorted_dirs(folder):
            info_path = target_dir / FILE_INFO_NAME
            if not info_path.is_file():
                raise FormatError(
                    f"Binary patch folder {target_dir.name} has no {FILE_INFO_NAME}",
                    details={"path": target_dir.as_posix()},
                )
            info = _validate(FileInfoModel, _read_mapping(info_path), info_path)
            patch_set = BinaryPatchSet(
                target=TargetFileSpec(
                    name=target_dir.name,
                    original_size=info.original_packed_size,
                    required_hash=info.hash_original.lower(),
                )
            )
            for fragment in _structured_files(target_dir, skip=(FILE_INFO_NAME,)):
                model = _validate(BinaryFragmentModel, _read_mapping(fragment), fragment)
                category = fragment.stem
                patch_set.add(
                    category,
                    [
                        ByteEdit(
                            offset=item.offset,
                            from_bytes=item.from_bytes,
                            to_bytes=item.to_bytes,
                            category=category,
                        )
                        for item in model.replacements
                    ],
                )
            patch_sets[target_dir.name] = patch_set
        return patch_sets

    def load_archive(self) -> list[ArchiveTextPatch]:
        folder = self.root / ARCHIVE_DIR
        if not folder.is_dir():
            return []
        patches = []
        for fragment in _sorted_files(folder):
            try:
                text = fragment.read_bytes().decode("utf-8")
            except (OSError, UnicodeDecodeError) as error:
                raise FormatError(
                    f"Cannot read archive patch {fragment.name}: {error}",
                    details={"path": fragment.as_posix()},
                ) from error
            patches.append(ArchiveTextPatch(name=fragment.name, text=text))
        return patches

    def load_documents(self) -> DocumentPatches:
        folder = self.root / DOCUMENT_DIR
        if not folder.is_dir():
            return {}
        documents: DocumentPatches = {}
        for document_dir in _sorted_dirs(folder):
            merged: dict[str, Any] = {}
            for fragment in _structured_files(document_dir):
                deep_merge(merged, _read_mapping(fragment))
            documents[document_dir.name] = self._normalise_document(merged, document_dir)
        return documents

    @staticmethod
    def _normalise_document(merged: Mapping[str, Any], source: Path) -> dict[str, dict[str, str]]:
        document: dict[str, dict[str, str]] = {}
        for section, keys in merged.items():
            if not isinstance(keys, Mapping):
                raise FormatError(
                    f"Section {section!r} in {source.name} must map keys to values",
                    details={"path": source.as_posix(), "section": section},
                )
            values: dict[str, str] = {}
            for key, value in keys.items():
                if isinstance(value, (Mapping, list)) or value is None:
                    raise FormatError(
                        f"Key {section}.{key} in {source.name} must have a scalar value",
                        details={"path": source.as_posix(), "section": section, "key": key},
                    )
                values[str(key)] = to_text(value)
            document[str(section)] = values
        return document

    def load_records(self) -> RecordPatches:
        folder = self.root / RECORD_DIR
        if not folder.is_dir():
            return {}
        merged: dict[str, Any] = {}
        origins: dict[str, Path] = {}
        for fragment in _structured_files(folder):
            data = _read_mapping(fragment)
            for name, entry in data.items():
                _validate(RecordPatchModel, entry, fragment)
                origins[name] = fragment
            deep_merge(merged, data)
        records: RecordPatches = {}
        for name, entry in merged.items():
            model = _validate(RecordPatchModel, entry, origins[name])
            records[str(name)] = RecordPatch(
                initial={key: to_text(value) for key, value in model.initial.items()},
                persist={key: to_text(value) for key, value in model.persist.items()},
            )
        return records


__all__ = [
    "ARCHIVE_DIR",
    "BINARY_DIR",
    "DOCUMENT_DIR",
    "DirectoryPatchSource",
    "FILE_INFO_NAME",
    "PatchSource",
    "RECORD_DIR",
    "deep_merge",
    "to_text",
]
