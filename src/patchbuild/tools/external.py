"""Subprocess adapters for the package decompressor and the archive patcher.

Both tools are opaque executables, run by full path from their own directory.
The caller always waits for them to exit; there is no timeout.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from ..errors import ArchivePatchFailure, DecompressionFailure, ToolInvocationError

LOGGER = logging.getLogger(__name__)

OPENING_PACKAGE_MARKER = "Opening package"


@runtime_checkable
class ExternalTool(Protocol):
    """Capability interface for the two external executables."""

    def decompress(self, archive_path: Path, output_dir: Path, *, replace_original: bool = True) -> Path:
        ...

    def apply_archive_patch(self, archive_dir: Path, instruction_file: Path) -> str:
        ...


@dataclass(slots=True)
class ToolRun:
    """Captured result of one tool invocation."""

    command: tuple[str, ...]
    cwd: Path
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def details(self) -> dict[str, object]:
        return {
            "command": list(self.command),
            "cwd": self.cwd.as_posix(),
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


def _run_tool(
    executable: Path,
    args: Sequence[str],
    *,
    launcher: Sequence[str] = (),
    error_cls: type[ToolInvocationError],
    label: str,
) -> ToolRun:
    command = (*launcher, str(executable), *args)
    cwd = executable.parent
    try:
        process = subprocess.run(  # noqa: S603  # executables come from the build config
            list(command),
            cwd=cwd,
            capture_output=True,
            text=False,
            check=False,
        )
    except OSError as error:
        raise error_cls(
            f"{label} could not be started: {error}",
            details={"command": list(command), "cwd": cwd.as_posix()},
        ) from error

    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    run = ToolRun(command=command, cwd=cwd, exit_code=process.returncode, stdout=stdout, stderr=stderr)
    if not run.ok:
        message = stderr.strip() or stdout.strip() or f"exit code {process.returncode}"
        raise error_cls(f"{label} failed: {message}", details=run.details())
    return run


@dataclass(slots=True)
class SubprocessTools:
    """:class:`ExternalTool` backed by real executables."""

    decompressor: Path
    archive_patcher: Path
    launcher: tuple[str, ...] = field(default_factory=tuple)

    def decompress(self, archive_path: Path, output_dir: Path, *, replace_original: bool = True) -> Path:
        """Decompress ``archive_path`` into ``output_dir`` and return the result path.

        With ``replace_original`` the decompressed file is moved over the
        compressed one and the original path is returned.
        """

        archive_path = Path(archive_path).resolve()
        output_dir = Path(output_dir).resolve()
        output_dir.mkdir(parents=True, exist_ok=True)
        _run_tool(
            Path(self.decompressor).resolve(),
            [str(archive_path), f"-out={output_dir}"],
            launcher=self.launcher,
            error_cls=DecompressionFailure,
            label="Decompression",
        )
        output_path = output_dir / archive_path.name
        if not replace_original:
            return output_path
        try:
            os.replace(output_path, archive_path)
        except OSError as error:
            raise DecompressionFailure(
                f"Decompression failure: cannot replace {archive_path.name}: {error}",
                details={"output": output_path.as_posix(), "target": archive_path.as_posix()},
            ) from error
        return archive_path

    def apply_archive_patch(self, archive_dir: Path, instruction_file: Path) -> str:
        """Run the archive patcher against ``archive_dir`` and return its stdout."""

        run = _run_tool(
            Path(self.archive_patcher).resolve(),
            [str(Path(instruction_file).resolve()), str(Path(archive_dir).resolve())],
            launcher=self.launcher,
            error_cls=ArchivePatchFailure,
            label="Archive patch",
        )
        return run.stdout


def format_patcher_output(stdout: str) -> list[str]:
    """Split patcher stdout into log lines, separating each opened package."""
    lines: list[str] = []
    for line in stdout.splitlines():
        if OPENING_PACKAGE_MARKER in line and lines:
            lines.append("")
        lines.append(line)
    return lines


__all__ = [
    "ExternalTool",
    "OPENING_PACKAGE_MARKER",
    "SubprocessTools",
    "ToolRun",
    "format_patcher_output",
]
