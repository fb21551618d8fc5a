"""Single-generation backups for packed game files.

Every packed file is copied to a ``.backup`` sibling immediately before it is
mutated. The copy is replaced on every run rather than versioned, so the
backup always reflects the last known-good baseline that a build started from.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ..errors import BaselineError
from ..utils.hashing import file_hash

LOGGER = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"

BaselineAction = Literal["already-baseline", "restored", "missing-backup", "backup-mismatch"]


@dataclass(slots=True)
class BaselineResult:
    """Outcome of bringing a target file to its baseline state."""

    ok: bool
    action: BaselineAction
    path: Path
    size: int | None = None
    digest: str | None = None


def backup_path(path: Path | str) -> Path:
    """Return the backup sibling for ``path``."""
    target = Path(path)
    return target.with_name(target.name + BACKUP_SUFFIX)


def backup(path: Path | str) -> Path:
    """Copy ``path`` over its backup sibling and return the backup path."""
    target = Path(path)
    destination = backup_path(target)
    shutil.copyfile(target, destination)
    LOGGER.debug("Backed up %s to %s", target, destination)
    return destination


def restore(path: Path | str) -> Path:
    """Copy the backup sibling of ``path`` over the live file."""
    target = Path(path)
    source = backup_path(target)
    if not source.is_file():
        raise BaselineError(
            f"No backup found for {target.name}",
            details={"path": target.as_posix(), "backup": source.as_posix()},
        )
    shutil.copyfile(source, target)
    LOGGER.debug("Restored %s from %s", target, source)
    return target


def _matches(path: Path, expected_size: int, expected_hash: str | None) -> tuple[bool, int, str | None]:
    size = path.stat().st_size
    if size != expected_size:
        return False, size, None
    if not expected_hash:
        return True, size, None
    digest = file_hash(path)
    return digest == expected_hash.lower(), size, digest


def ensure_baseline(
    path: Path | str,
    expected_size: int,
    expected_hash: str | None = None,
) -> BaselineResult:
    """Bring ``path`` to its baseline, restoring from backup when needed.

    The live file must exist. When its size (or, if ``expected_hash`` is given,
    its digest) does not match, the ``.backup`` sibling is copied over it and
    checked again. The result is never ``ok`` when the baseline could not be
    reached; callers decide whether that is fatal.
    """

    target = Path(path)
    if not target.is_file():
        raise BaselineError(
            f"Game file not found: {target.name}",
            details={"path": target.as_posix()},
        )

    ok, size, digest = _matches(target, expected_size, expected_hash)
    if ok:
        return BaselineResult(ok=True, action="already-baseline", path=target, size=size, digest=digest)

    if not backup_path(target).is_file():
        LOGGER.error("%s is not at baseline and has no backup", target.name)
        return BaselineResult(ok=False, action="missing-backup", path=target, size=size, digest=digest)

    LOGGER.info("%s [RESTORE FROM BACKUP]", target.name)
    restore(target)
    ok, size, digest = _matches(target, expected_size, expected_hash)
    action: BaselineAction = "restored" if ok else "backup-mismatch"
    return BaselineResult(ok=ok, action=action, path=target, size=size, digest=digest)


__all__ = [
    "BACKUP_SUFFIX",
    "BaselineAction",
    "BaselineResult",
    "backup",
    "backup_path",
    "ensure_baseline",
    "restore",
]
