"""Combine archive patcher fragments and run them in a single patcher call.

The fragments depend on each other, so they are never applied piecemeal: one
combined instruction file, one patcher run, and any failure aborts the build.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..context import BuildContext
from ..definitions import ArchiveTextPatch
from ..errors import BaselineError
from ..schema import ArchiveOperation
from ..tools.external import format_patcher_output
from ..utils.hashing import file_hash

LOGGER = logging.getLogger(__name__)

FRAGMENT_SEPARATOR = "\r\n\r\n"


@dataclass(slots=True)
class ArchivePassResult:
    operation: ArchiveOperation
    target_path: str
    stdout: str


def combine_fragments(patches: Sequence[ArchiveTextPatch]) -> str:
    """Concatenate fragment bodies in ingestion order."""
    return FRAGMENT_SEPARATOR.join(patch.text for patch in patches)


def apply_archive_patches(context: BuildContext) -> ArchivePassResult | None:
    """Run every ingested archive fragment through the patcher.

    Returns ``None`` when there is nothing to apply.
    """

    patches = context.definitions.archive
    if not patches:
        LOGGER.info("No archive patches to apply")
        return None

    config = context.config
    for patch in patches:
        LOGGER.info("Merging archive patch %s", patch.name)
    combined = combine_fragments(patches)

    composite = config.cooked_dir / config.archive.composite_target
    if not composite.is_file():
        raise BaselineError(f"Game file not found: {composite.name}", details={"path": composite.as_posix()})
    required_hash = file_hash(composite)

    instruction_path = config.instruction_path
    instruction_path.parent.mkdir(parents=True, exist_ok=True)
    instruction_path.write_bytes(combined.encode("utf-8"))
    LOGGER.info("Merged %d fragment(s) into %s", len(patches), instruction_path)

    stdout = context.tools.apply_archive_patch(config.cooked_dir, instruction_path)
    for line in format_patcher_output(stdout):
        LOGGER.info("%s", line)

    target_path = config.target_path(config.archive.composite_target)
    operation = ArchiveOperation(
        file_path=target_path,
        data=combined,
        required_hash=required_hash,
        patch_applied_hash=file_hash(composite),
    )
    return ArchivePassResult(operation=operation, target_path=target_path, stdout=stdout)


__all__ = ["ArchivePassResult", "FRAGMENT_SEPARATOR", "apply_archive_patches", "combine_fragments"]
