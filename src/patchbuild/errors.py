"""Error taxonomy shared by every patch build component."""

from __future__ import annotations

from typing import Any, Mapping


class PatchBuildError(RuntimeError):
    """Base class for failures raised while building a patch package."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ConfigError(PatchBuildError):
    """Raised when the build configuration is missing or invalid."""


class BaselineError(PatchBuildError):
    """Raised when a target file is missing or cannot be brought to its baseline."""


class VerificationMismatch(PatchBuildError):
    """Raised when the bytes at an edit offset differ from the expected bytes.

    Binary patching absorbs this error per edit: it is logged and counted, and
    the edit is skipped. Only strict builds let it escape.
    """


class ToolInvocationError(PatchBuildError):
    """Raised when an external tool exits non-zero or cannot be started."""


class DecompressionFailure(ToolInvocationError):
    """Raised when the package decompressor fails."""


class ArchivePatchFailure(ToolInvocationError):
    """Raised when the archive patcher fails."""


class FormatError(PatchBuildError):
    """Raised when a patch definition file is malformed."""


__all__ = [
    "ArchivePatchFailure",
    "BaselineError",
    "ConfigError",
    "DecompressionFailure",
    "FormatError",
    "PatchBuildError",
    "ToolInvocationError",
    "VerificationMismatch",
]
