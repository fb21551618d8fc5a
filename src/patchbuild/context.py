"""Explicit state shared by the passes of one build run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from .config import BuildConfig
from .definitions import PatchDefinitions
from .tools.external import ExternalTool


@dataclass(slots=True)
class BuildContext:
    """Configuration, capabilities and ingested patches for a build.

    Passes read from the context and return their operations; the orchestrator
    assembles the package. ``record_template`` is loaded on first use unless a
    template was supplied up front.
    """

    config: BuildConfig
    tools: ExternalTool
    definitions: PatchDefinitions = field(default_factory=PatchDefinitions)
    record_template: Optional[Dict[str, str]] = None
    strict: bool = False


__all__ = ["BuildContext"]
