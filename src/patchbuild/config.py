"""Build configuration loading and validation.

The build configuration is a YAML mapping (JSON files load as well). Relative
paths are resolved against the directory holding the configuration file, and
the game directories must exist before anything is patched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "build.yaml"

GAME_ROOT = "HawkenGame"
COOKED_DIR = "CookedPC"
UNPACKED_DIR = "unpacked"
CONFIG_DIR = "Config"
LOCALIZATION_DIR = ("Localization", "INT")

REQUIRED_SECTIONS = ("game", "package")


class ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GameSettings(ConfigModel):
    install_dir: Path
    ini_dir: Path


class PackageSettings(ConfigModel):
    name: str
    version: str
    target_prefix: str = "./HawkenGame/CookedPC"

    @field_validator("name", "version", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


class ToolSettings(ConfigModel):
    decompressor: Path = Path("../utils/decompress.exe")
    archive_patcher: Path = Path("../utils/PatchUPK.exe")
    launcher: List[str] = Field(default_factory=list)


class PathSettings(ConfigModel):
    patches: Path = Path("patches")
    out: Path = Path("out")
    manifest: str = "gamePatch.json"
    record_template: Path = Path("../utils/defaultMechsetupEntry.json")


class RecordSettings(ConfigModel):
    file: str = "HawkenGame/MechSetup_default.txt"
    clean_slate: bool = True


class ArchiveSettings(ConfigModel):
    composite_target: str = "Robots.u"
    instruction_file: str = "temp_upkutils_patch.txt"


class BuildConfig(ConfigModel):
    """Validated build configuration with absolute paths."""

    game: GameSettings
    package: PackageSettings
    tools: ToolSettings = Field(default_factory=ToolSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    records: RecordSettings = Field(default_factory=RecordSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)

    # ------------------------------------------------------------ game layout
    @property
    def cooked_dir(self) -> Path:
        """Directory holding the packed archives."""
        return self.game.install_dir / GAME_ROOT / COOKED_DIR

    @property
    def unpacked_dir(self) -> Path:
        return self.game.install_dir / GAME_ROOT / UNPACKED_DIR

    @property
    def default_config_dir(self) -> Path:
        return self.game.install_dir / GAME_ROOT / CONFIG_DIR

    @property
    def localization_dir(self) -> Path:
        return self.game.install_dir.joinpath(GAME_ROOT, *LOCALIZATION_DIR)

    @property
    def user_config_dir(self) -> Path:
        return self.game.ini_dir / GAME_ROOT / CONFIG_DIR

    @property
    def record_file(self) -> Path:
        return self.game.install_dir / self.records.file

    # ----------------------------------------------------------- build output
    @property
    def manifest_path(self) -> Path:
        return self.paths.out / self.paths.manifest

    @property
    def instruction_path(self) -> Path:
        return self.paths.out / self.archive.instruction_file

    def target_path(self, name: str) -> str:
        """Return the manifest path for a packed file name."""
        return f"{self.package.target_prefix.rstrip('/')}/{name}"

    def resolved(self, base_dir: Path) -> "BuildConfig":
        """Return a copy with every relative path anchored at ``base_dir``."""

        def anchor(path: Path) -> Path:
            return path if path.is_absolute() else (base_dir / path).resolve()

        return self.model_copy(
            update={
                "game": self.game.model_copy(
                    update={
                        "install_dir": anchor(self.game.install_dir),
                        "ini_dir": anchor(self.game.ini_dir),
                    }
                ),
                "tools": self.tools.model_copy(
                    update={
                        "decompressor": anchor(self.tools.decompressor),
                        "archive_patcher": anchor(self.tools.archive_patcher),
                    }
                ),
                "paths": self.paths.model_copy(
                    update={
                        "patches": anchor(self.paths.patches),
                        "out": anchor(self.paths.out),
                        "record_template": anchor(self.paths.record_template),
                    }
                ),
            }
        )


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for entry in error.errors():
        location = ".".join(str(item) for item in entry.get("loc", ()))
        parts.append(f"{location}: {entry.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_build_config(data: Mapping[str, Any], *, base_dir: Path, check_dirs: bool = True) -> BuildConfig:
    """Validate a raw configuration mapping."""

    for section in REQUIRED_SECTIONS:
        if not isinstance(data.get(section), Mapping):
            raise ConfigError(f"Build config has no '{section}' section", details={"section": section})

    game = data["game"]
    for key, label in (("install_dir", "game install path"), ("ini_dir", "game ini path")):
        value = game.get(key)
        if value is None or not str(value).strip():
            raise ConfigError(f"Build config is missing the {label}", details={"key": f"game.{key}"})

    try:
        config = BuildConfig.model_validate(dict(data))
    except ValidationError as error:
        raise ConfigError(
            f"Invalid build config: {_format_validation_error(error)}",
            details={"errors": error.errors(include_url=False)},
        ) from error

    config = config.resolved(base_dir)
    if check_dirs:
        if not config.game.install_dir.is_dir():
            raise ConfigError(
                "Invalid game install directory",
                details={"path": config.game.install_dir.as_posix()},
            )
        if not config.game.ini_dir.is_dir():
            raise ConfigError(
                "Invalid game ini directory",
                details={"path": config.game.ini_dir.as_posix()},
            )
    return config


def load_build_config(config_path: Path | str, *, check_dirs: bool = True) -> BuildConfig:
    """Load and validate the build configuration stored at ``config_path``."""

    path = Path(config_path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}", details={"path": path.as_posix()})

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}", details={"path": path.as_posix()}) from error

    if not isinstance(data, Mapping):
        raise ConfigError("Configuration must be a mapping at the top level.", details={"path": path.as_posix()})

    return parse_build_config(data, base_dir=path.resolve().parent, check_dirs=check_dirs)


__all__ = [
    "BuildConfig",
    "DEFAULT_CONFIG_NAME",
    "load_build_config",
    "parse_build_config",
]
