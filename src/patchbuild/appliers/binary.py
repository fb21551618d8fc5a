"""Verified fixed-offset byte patching of packed game files.

Each target goes through the same sequence: baseline check (restoring from the
backup when needed), fresh backup, decompression, byte edits, digest. Edits
run in category order, then in list order. An edit whose expected bytes are
not found is reported and skipped; the remaining edits still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterable

from ..context import BuildContext
from ..definitions import BinaryPatchSet, ByteEdit
from ..errors import BaselineError, VerificationMismatch
from ..schema import BinaryFileOperation, ByteAction
from ..tools.backup import BaselineResult, backup, ensure_baseline
from ..utils.hashing import file_hash, format_bytes, format_offset

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FileReport:
    """Per-target outcome of the binary pass."""

    name: str
    path: Path
    total: int = 0
    actions: list[ByteAction] = field(default_factory=list)
    mismatches: list[VerificationMismatch] = field(default_factory=list)
    baseline: BaselineResult | None = None
    operation: BinaryFileOperation | None = None

    @property
    def errors(self) -> int:
        return len(self.mismatches)


@dataclass(slots=True)
class BinaryPassReport:
    """Outcome of patching every binary target."""

    files: list[FileReport] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(report.total for report in self.files)

    @property
    def errors(self) -> int:
        return sum(report.errors for report in self.files)

    @property
    def operations(self) -> list[BinaryFileOperation]:
        return [report.operation for report in self.files if report.operation is not None]


def resolve_action(edit: ByteEdit) -> ByteAction:
    """Return the manifest form of ``edit``."""
    offset = format_offset(edit.offset)
    return ByteAction(
        offset=offset,
        from_bytes=format_bytes(edit.from_bytes),
        to_bytes=format_bytes(edit.to_bytes),
        comment=f"({edit.category}) {offset}",
    )


def apply_edit(handle: BinaryIO, edit: ByteEdit, *, label: str = "") -> ByteAction:
    """Verify and write one edit through an open ``r+b`` handle.

    Raises :class:`VerificationMismatch` without writing anything when the
    bytes at the offset are not ``edit.from_bytes``.
    """

    handle.seek(edit.offset)
    actual = handle.read(len(edit.from_bytes))
    if actual != edit.from_bytes:
        raise VerificationMismatch(
            f"{label}:{format_offset(edit.offset)} mismatch",
            details={
                "file": label,
                "category": edit.category,
                "offset": format_offset(edit.offset),
                "expected": format_bytes(edit.from_bytes),
                "actual": format_bytes(actual),
            },
        )
    handle.seek(edit.offset)
    handle.write(edit.to_bytes)
    return resolve_action(edit)


def apply_edits(path: Path | str, edits: Iterable[ByteEdit], *, name: str | None = None) -> FileReport:
    """Apply ``edits`` in order to ``path`` in place, skipping mismatches."""

    target = Path(path)
    report = FileReport(name=name or target.name, path=target)
    with target.open("r+b") as handle:
        for edit in edits:
            report.total += 1
            category = f"({edit.category})"
            try:
                action = apply_edit(handle, edit, label=report.name)
            except VerificationMismatch as mismatch:
                report.mismatches.append(mismatch)
                LOGGER.warning(
                    "%-12s %s:%s > [ FAIL ] ( Mismatch ) expected %s, got %s",
                    category,
                    report.name,
                    format_offset(edit.offset),
                    " ".join(mismatch.details["expected"]),
                    " ".join(mismatch.details["actual"]) or "<end of file>",
                )
                continue
            report.actions.append(action)
            LOGGER.info("%-12s %s:%s > [ PASS ]", category, report.name, action.offset)
    return report


def patch_binary_file(context: BuildContext, patch_set: BinaryPatchSet) -> FileReport:
    """Run the full baseline, backup, decompress and edit sequence for one target."""

    config = context.config
    spec = patch_set.target
    path = config.cooked_dir / spec.name
    if not path.is_file():
        raise BaselineError(f"Game file not found: {spec.name}", details={"path": path.as_posix()})

    baseline = ensure_baseline(path, spec.original_size, spec.required_hash)
    if not baseline.ok:
        message = (
            f"No original game file found for {spec.name} (no backup either)"
            if baseline.action == "missing-backup"
            else f"Backup of {spec.name} does not match its baseline"
        )
        raise BaselineError(
            message,
            details={
                "path": path.as_posix(),
                "action": baseline.action,
                "expected_size": spec.original_size,
                "actual_size": baseline.size,
                "expected_hash": spec.required_hash,
                "actual_hash": baseline.digest,
            },
        )

    LOGGER.info("%s [CREATE BACKUP FILE]", spec.name)
    backup(path)
    LOGGER.info("%s [DECOMPRESS UPK]", spec.name)
    context.tools.decompress(path, config.unpacked_dir, replace_original=True)

    report = apply_edits(path, patch_set.edits(), name=spec.name)
    report.baseline = baseline

    applied_hash = file_hash(path)
    LOGGER.info("%s patched hash: %s", spec.name, applied_hash)
    report.operation = BinaryFileOperation(
        file_path=config.target_path(spec.name),
        file_original_size=spec.original_size,
        required_hash=spec.required_hash,
        patch_applied_hash=applied_hash,
        actions=list(report.actions),
    )
    return report


def apply_binary_patches(context: BuildContext) -> BinaryPassReport:
    """Patch every binary target, one file at a time."""

    result = BinaryPassReport()
    for patch_set in context.definitions.binary.values():
        report = patch_binary_file(context, patch_set)
        result.files.append(report)
        LOGGER.info("%s: %d edit(s), %d error(s) / skipped", report.name, report.total, report.errors)
        if context.strict and report.errors:
            raise VerificationMismatch(
                f"{report.errors} byte edit(s) in {report.name} did not match",
                details={"file": report.name, "mismatches": [item.details for item in report.mismatches]},
            )
    LOGGER.info("Binary patches: %d total, %d error(s) / skipped", result.total, result.errors)
    return result


__all__ = [
    "BinaryPassReport",
    "FileReport",
    "apply_binary_patches",
    "apply_edit",
    "apply_edits",
    "patch_binary_file",
    "resolve_action",
]
