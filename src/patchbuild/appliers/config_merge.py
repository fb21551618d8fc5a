"""Declarative merges over the sectioned config files and the mech setup records.

Both merges are pure functions returning a new document plus an ordered log of
what changed; the ``apply_*`` wrappers handle file resolution, reading and
writing. Last writer wins: a patched key always ends up as a single scalar.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

from ..codecs.multirecord import MultiRecordDocument, parse_records, serialize_records
from ..codecs.sectioned import ConfigDocument, Scalar, parse_document, serialize_document
from ..config import BuildConfig
from ..context import BuildContext
from ..definitions import RecordPatch
from ..errors import BaselineError, ConfigError, FormatError
from ..schema import DocumentAction, DocumentOperation, RecordSetOperation
from ..sources import to_text

LOGGER = logging.getLogger(__name__)

DEFAULT_PREFIX = "Default"
LOCALIZATION_SUFFIX = ".int"


@dataclass(frozen=True, slots=True)
class DocumentChange:
    section: str
    key: str
    value: str
    created: bool

    @property
    def status(self) -> Literal["create", "set"]:
        return "create" if self.created else "set"


RecordAction = Literal["delete", "create", "reset", "update"]


@dataclass(frozen=True, slots=True)
class RecordChange:
    name: str
    action: RecordAction


def merge_document(
    document: ConfigDocument,
    patch: Mapping[str, Mapping[str, str]],
) -> tuple[ConfigDocument, list[DocumentChange]]:
    """Set every patched key, recording whether it already existed."""

    merged: ConfigDocument = {name: dict(section) for name, section in document.items()}
    changes: list[DocumentChange] = []
    for section_name, keys in patch.items():
        section = merged.setdefault(section_name, {})
        for key, value in keys.items():
            created = key not in section
            section[key] = Scalar(value)
            changes.append(DocumentChange(section=section_name, key=key, value=value, created=created))
    return merged, changes


def merge_records(
    document: MultiRecordDocument,
    patches: Mapping[str, RecordPatch],
    *,
    template: Mapping[str, str] | None = None,
    clean_slate: bool = False,
) -> tuple[MultiRecordDocument, list[RecordChange]]:
    """Apply the record lifecycle: drop unpatched records, seed new ones, overlay ``persist``.

    New records (every record, with ``clean_slate``) start from ``template``
    with ``initial`` on top. ``persist`` is always applied last.
    """

    defaults = dict(template or {})
    records = {name: dict(record) for name, record in document.records.items() if name in patches}
    changes = [RecordChange(name, "delete") for name in document.records if name not in patches]

    for name, patch in patches.items():
        existing = name in records
        if not existing or clean_slate:
            record = dict(defaults)
            record.update(patch.initial)
            records[name] = record
            changes.append(RecordChange(name, "reset" if existing else "create"))
        else:
            changes.append(RecordChange(name, "update"))
        records[name].update(patch.persist)

    return MultiRecordDocument(records=records, version=document.version), changes


def resolve_document_path(config: BuildConfig, name: str) -> Path:
    """Locate a sectioned config file by name."""
    if name.startswith(DEFAULT_PREFIX):
        return config.default_config_dir / name
    if name.endswith(LOCALIZATION_SUFFIX):
        return config.localization_dir / name
    return config.user_config_dir / name


def _read_text(path: Path, label: str) -> str:
    if not path.is_file():
        raise BaselineError(f"{label} not found: {path.name}", details={"path": path.as_posix()})
    return path.read_bytes().decode("utf-8-sig")


def apply_document_patches(context: BuildContext) -> list[DocumentOperation]:
    """Merge and rewrite every patched sectioned config file."""

    operations: list[DocumentOperation] = []
    for name, patch in context.definitions.documents.items():
        path = resolve_document_path(context.config, name)
        LOGGER.info("Patching %s", name)
        document = parse_document(_read_text(path, "Config file"))
        merged, changes = merge_document(document, patch)
        for change in changes:
            marker = "[CREATE]" if change.created else "[SETVAL]"
            LOGGER.info("%s: %s = %s", marker, change.key, change.value)
        path.write_bytes(serialize_document(merged).encode("utf-8"))
        operations.append(
            DocumentOperation(
                file=name,
                actions=[
                    DocumentAction(section=change.section, key=change.key, value=change.value)
                    for change in changes
                ],
            )
        )
    return operations


def serialize_record_patches(patches: Mapping[str, RecordPatch]) -> str:
    return json.dumps({name: patch.to_dict() for name, patch in patches.items()}, separators=(",", ":"))


def load_record_template(path: Path) -> dict[str, str]:
    """Load the default record entry used to seed new mech setup records."""
    if not path.is_file():
        raise ConfigError(f"Record template not found: {path}", details={"path": path.as_posix()})
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as error:
        raise FormatError(f"Malformed record template {path.name}: {error}", details={"path": path.as_posix()}) from error
    if not isinstance(data, dict):
        raise FormatError(f"Record template {path.name} must be a mapping", details={"path": path.as_posix()})
    return {str(key): to_text(value) for key, value in data.items()}


def apply_record_patches(context: BuildContext) -> RecordSetOperation | None:
    """Rewrite the mech setup file from the record patch set.

    Returns ``None`` when no record patches were ingested; the setup file is
    left untouched in that case.
    """

    patches = context.definitions.records
    if not patches:
        LOGGER.info("No record patches to apply")
        return None

    if context.record_template is None:
        context.record_template = load_record_template(context.config.paths.record_template)
    path = context.config.record_file
    document = parse_records(_read_text(path, "Record file"))
    merged, changes = merge_records(
        document,
        patches,
        template=context.record_template,
        clean_slate=context.config.records.clean_slate,
    )
    for change in changes:
        LOGGER.info("[%s]: %s", change.action.upper(), change.name)
    path.write_bytes(serialize_records(merged).encode("utf-8"))
    LOGGER.info("Records written to %s", path.name)
    return RecordSetOperation(data=serialize_record_patches(patches))


__all__ = [
    "DocumentChange",
    "RecordChange",
    "apply_document_patches",
    "apply_record_patches",
    "load_record_template",
    "merge_document",
    "merge_records",
    "resolve_document_path",
    "serialize_record_patches",
]
