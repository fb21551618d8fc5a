"""File-state and external tool integrations used by the appliers."""

from .backup import BaselineResult, backup, backup_path, ensure_baseline, restore
from .external import ExternalTool, SubprocessTools, ToolRun, format_patcher_output

__all__ = [
    "BaselineResult",
    "ExternalTool",
    "SubprocessTools",
    "ToolRun",
    "backup",
    "backup_path",
    "ensure_baseline",
    "format_patcher_output",
    "restore",
]
