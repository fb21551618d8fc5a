"""Build verified, replayable patch packages for a game installation."""

from .builder import BuildResult, PatchPackageBuilder, create_context
from .config import BuildConfig, load_build_config
from .context import BuildContext
from .errors import (
    ArchivePatchFailure,
    BaselineError,
    ConfigError,
    DecompressionFailure,
    FormatError,
    PatchBuildError,
    ToolInvocationError,
    VerificationMismatch,
)
from .schema import PatchPackage

__all__ = [
    "ArchivePatchFailure",
    "BaselineError",
    "BuildConfig",
    "BuildContext",
    "BuildResult",
    "ConfigError",
    "DecompressionFailure",
    "FormatError",
    "PatchBuildError",
    "PatchPackage",
    "PatchPackageBuilder",
    "ToolInvocationError",
    "VerificationMismatch",
    "create_context",
    "load_build_config",
]
