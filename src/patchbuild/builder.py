"""Patch package orchestration.

A build ingests every patch definition first, then runs the passes in a fixed
order: binary edits (they decompress packed files, which must happen before
any archive-level patching), archive text patches, mech setup records, and
finally the sectioned config files. The manifest is written only after every
pass succeeded; any fatal error leaves no manifest behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .appliers.archive import ArchivePassResult, apply_archive_patches
from .appliers.binary import BinaryPassReport, apply_binary_patches
from .appliers.config_merge import apply_document_patches, apply_record_patches
from .config import BuildConfig
from .context import BuildContext
from .definitions import PatchDefinitions
from .schema import PackageMeta, PatchPackage
from .sources import DirectoryPatchSource, PatchSource
from .tools.backup import backup_path, restore
from .tools.external import ExternalTool, SubprocessTools
from .utils.hashing import file_hash

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildResult:
    """Everything a finished build produced."""

    package: PatchPackage
    manifest_path: Path
    binary: BinaryPassReport = field(default_factory=BinaryPassReport)
    archive: ArchivePassResult | None = None

    @property
    def errors(self) -> int:
        return self.binary.errors


@dataclass(slots=True)
class TargetStatus:
    """Read-only baseline state of one packed target."""

    name: str
    path: Path
    exists: bool
    at_baseline: bool
    has_backup: bool
    size: int | None = None
    digest: str | None = None


def create_context(
    config: BuildConfig,
    *,
    tools: ExternalTool | None = None,
    strict: bool = False,
) -> BuildContext:
    """Build a context with subprocess-backed tools unless ``tools`` is given."""
    if tools is None:
        tools = SubprocessTools(
            decompressor=config.tools.decompressor,
            archive_patcher=config.tools.archive_patcher,
            launcher=tuple(config.tools.launcher),
        )
    return BuildContext(config=config, tools=tools, strict=strict)


class PatchPackageBuilder:
    """Run a full build for one :class:`BuildContext`."""

    def __init__(self, context: BuildContext, source: PatchSource | None = None) -> None:
        self._context = context
        self._source = source or DirectoryPatchSource(context.config.paths.patches)

    @property
    def context(self) -> BuildContext:
        return self._context

    def ingest(self) -> PatchDefinitions:
        """Read every patch definition into the context."""
        definitions = self._source.load()
        self._context.definitions = definitions
        summary = definitions.summary()
        LOGGER.info("%d ini patch file(s)", summary["documents"])
        LOGGER.info("%d mech setup(s)", summary["records"])
        LOGGER.info("%d binary patch target(s)", summary["binary"])
        LOGGER.info("%d upk patch(es)", summary["archive"])
        return definitions

    def build(self) -> BuildResult:
        """Ingest, apply every pass in order and write the manifest."""
        context = self._context
        config = context.config
        LOGGER.info("Build started: %s %s", config.package.name, config.package.version)

        self.ingest()
        package = PatchPackage(meta=PackageMeta(version=config.package.version, name=config.package.name))

        binary = apply_binary_patches(context)
        for operation in binary.operations:
            package.operations.append(operation)
            package.target_hashes[operation.file_path] = operation.patch_applied_hash

        archive = apply_archive_patches(context)
        if archive is not None:
            package.operations.append(archive.operation)
            package.target_hashes[archive.target_path] = archive.operation.patch_applied_hash

        record_operation = apply_record_patches(context)
        if record_operation is not None:
            package.operations.append(record_operation)

        package.operations.extend(apply_document_patches(context))

        manifest_path = self.write_manifest(package)
        LOGGER.info("Manifest written to %s", manifest_path)
        return BuildResult(package=package, manifest_path=manifest_path, binary=binary, archive=archive)

    def write_manifest(self, package: PatchPackage) -> Path:
        path = self._context.config.manifest_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(package.to_json(), encoding="utf-8")
        return path

    # ------------------------------------------------------------ maintenance
    def baseline_status(self) -> list[TargetStatus]:
        """Report whether each binary target is at its baseline, without mutating it."""
        definitions = self._context.definitions if self._context.definitions.binary else self.ingest()
        statuses = []
        for name, patch_set in definitions.binary.items():
            path = self._context.config.cooked_dir / name
            has_backup = backup_path(path).is_file()
            if not path.is_file():
                statuses.append(TargetStatus(name, path, exists=False, at_baseline=False, has_backup=has_backup))
                continue
            size = path.stat().st_size
            digest = file_hash(path) if size == patch_set.target.original_size else None
            at_baseline = digest is not None and (
                not patch_set.target.required_hash or digest == patch_set.target.required_hash
            )
            statuses.append(
                TargetStatus(
                    name,
                    path,
                    exists=True,
                    at_baseline=at_baseline,
                    has_backup=has_backup,
                    size=size,
                    digest=digest,
                )
            )
        return statuses

    def restore_targets(self) -> list[Path]:
        """Copy every binary target's backup over the live file."""
        definitions = self._context.definitions if self._context.definitions.binary else self.ingest()
        restored = []
        for name in definitions.binary:
            restored.append(restore(self._context.config.cooked_dir / name))
        return restored


__all__ = [
    "BuildResult",
    "PatchPackageBuilder",
    "TargetStatus",
    "create_context",
]
