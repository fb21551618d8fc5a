from __future__ import annotations

import json
import os
import shutil
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchbuild.config import BuildConfig, load_build_config  # noqa: E402

TARGET_NAME = "HawkenGame.u"
COMPOSITE_NAME = "Robots.u"


def baseline_bytes(size: int = 100) -> bytes:
    """Return ``size`` bytes with ``DE AD`` at offsets 16-17."""
    data = bytearray(index % 251 for index in range(size))
    data[16:18] = b"\xde\xad"
    return bytes(data)


@dataclass
class FakeTools:
    """In-process stand-in for the decompressor and archive patcher.

    Decompression is the identity transform; the archive patcher appends the
    instruction text to the composite target so its digest changes.
    """

    composite: str = COMPOSITE_NAME
    fail_archive: bool = False
    decompressed: list[Path] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)

    def decompress(self, archive_path: Path, output_dir: Path, *, replace_original: bool = True) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / archive_path.name
        shutil.copyfile(archive_path, output_path)
        self.decompressed.append(archive_path)
        if not replace_original:
            return output_path
        os.replace(output_path, archive_path)
        return archive_path

    def apply_archive_patch(self, archive_dir: Path, instruction_file: Path) -> str:
        from patchbuild.errors import ArchivePatchFailure

        if self.fail_archive:
            raise ArchivePatchFailure("Archive patch failed: exit code 3", details={"exit_code": 3})
        text = instruction_file.read_bytes().decode("utf-8")
        self.instructions.append(text)
        with (archive_dir / self.composite).open("ab") as handle:
            handle.write(text.encode("utf-8"))
        return f"Opening package {self.composite}\r\nApplied\r\n"


@dataclass
class GameFixture:
    """A synthetic game install, user config folder and patch tree."""

    root: Path
    install_dir: Path
    ini_dir: Path
    build_dir: Path
    patches_dir: Path
    config_path: Path

    @property
    def cooked_dir(self) -> Path:
        return self.install_dir / "HawkenGame" / "CookedPC"

    @property
    def target(self) -> Path:
        return self.cooked_dir / TARGET_NAME

    @property
    def composite(self) -> Path:
        return self.cooked_dir / COMPOSITE_NAME

    @property
    def record_file(self) -> Path:
        return self.install_dir / "HawkenGame" / "MechSetup_default.txt"

    @property
    def manifest_path(self) -> Path:
        return self.build_dir / "out" / "gamePatch.json"

    def load_config(self) -> BuildConfig:
        return load_build_config(self.config_path)

    def write_json(self, relative: str, payload: Any) -> Path:
        path = self.patches_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def write_text(self, relative: str, text: str) -> Path:
        path = self.patches_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def add_binary_target(self, *, fragments: dict[str, list[dict[str, Any]]]) -> None:
        data = self.target.read_bytes()
        self.write_json(
            f"bin/{TARGET_NAME}/.fileinfo.json",
            {"originalPackedSize": len(data), "hash_original": _md5(data)},
        )
        for category, replacements in fragments.items():
            self.write_json(f"bin/{TARGET_NAME}/{category}.json", {"replacements": replacements})


def _md5(data: bytes) -> str:
    import hashlib

    return hashlib.md5(data).hexdigest()


def _write_crlf(path: Path, lines: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes("\r\n".join(lines).encode("utf-8"))


@pytest.fixture()
def game(tmp_path: Path) -> GameFixture:
    """Create a game install with one packed target, config files and records."""

    install_dir = tmp_path / "game"
    ini_dir = tmp_path / "documents"
    build_dir = tmp_path / "build"
    patches_dir = build_dir / "patches"
    patches_dir.mkdir(parents=True)

    cooked = install_dir / "HawkenGame" / "CookedPC"
    cooked.mkdir(parents=True)
    (cooked / TARGET_NAME).write_bytes(baseline_bytes())
    (cooked / COMPOSITE_NAME).write_bytes(b"robots-package")

    _write_crlf(
        install_dir / "HawkenGame" / "Config" / "DefaultGame.ini",
        ["[Engine.GameInfo]", "MaxPlayers=8", "ServerActors=A", "ServerActors=B", ""],
    )
    _write_crlf(
        install_dir / "HawkenGame" / "Localization" / "INT" / "HawkenGame.int",
        ["[Menu]", "Title=Hawken", ""],
    )
    _write_crlf(
        ini_dir / "HawkenGame" / "Config" / "HawkenUser.ini",
        ["[Settings]", "Fov=90", ""],
    )
    _write_crlf(
        install_dir / "HawkenGame" / "MechSetup_default.txt",
        [
            "Version=11",
            "NumMechs=2",
            "MechName=Assault",
            "Weapon=Vulcan",
            "Ability=Boost",
            "MechName=Scout",
            "Weapon=SMC",
        ],
    )

    template_path = build_dir / "defaultMechsetupEntry.json"
    template_path.write_text(json.dumps({"Weapon": "None", "Armor": "100"}), encoding="utf-8")

    config_path = build_dir / "build.yaml"
    config_path.write_text(
        textwrap.dedent(
            f"""
            game:
              install_dir: "{install_dir.as_posix()}"
              ini_dir: "{ini_dir.as_posix()}"
            package:
              name: Test Patch
              version: "1.2.3"
            paths:
              patches: patches
              out: out
              record_template: defaultMechsetupEntry.json
            """
        ).lstrip(),
        encoding="utf-8",
    )

    return GameFixture(
        root=tmp_path,
        install_dir=install_dir,
        ini_dir=ini_dir,
        build_dir=build_dir,
        patches_dir=patches_dir,
        config_path=config_path,
    )


@pytest.fixture()
def fake_tools() -> FakeTools:
    return FakeTools()


def dump_yaml(path: Path, data: dict[str, Any]) -> Path:
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
    return path
