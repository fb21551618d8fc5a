from __future__ import annotations

import hashlib
import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import TARGET_NAME, FakeTools, GameFixture
from patchbuild import builder as builder_module
from patchbuild.cli import app

runner = CliRunner()

EDIT = {"offset": 16, "from": [0xDE, 0xAD], "to": [0xBE, 0xEF]}


def _use_fake_tools(monkeypatch, tools: FakeTools) -> None:
    def fake_create_context(config, *, strict: bool = False):
        return builder_module.create_context(config, tools=tools, strict=strict)

    monkeypatch.setattr("patchbuild.cli.create_context", fake_create_context)


def test_build_command_writes_manifest_and_summary(game: GameFixture, monkeypatch) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})
    _use_fake_tools(monkeypatch, FakeTools())

    result = runner.invoke(app, ["build", "--config", str(game.config_path)])

    assert result.exit_code == 0, result.output
    assert "Package: Test Patch 1.2.3" in result.output
    assert f"- {TARGET_NAME}: 1 edit(s), 0 error(s) / skipped" in result.output
    assert "Errors / Skipped: 0" in result.output
    payload = json.loads(game.manifest_path.read_text(encoding="utf-8"))
    assert payload["operations"][0]["operationType"] == "binaryFilePatcher"


def test_strict_build_fails_on_mismatch(game: GameFixture, monkeypatch) -> None:
    game.add_binary_target(fragments={"core": [{"offset": 16, "from": [0x00], "to": [0x01]}]})
    _use_fake_tools(monkeypatch, FakeTools())

    result = runner.invoke(app, ["build", "-c", str(game.config_path), "--strict"])

    assert result.exit_code == 1
    assert "Fatal:" in result.output
    assert not game.manifest_path.exists()


def test_build_with_missing_config_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["build", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "Fatal: Config file not found" in result.output


def test_verify_reports_targets(game: GameFixture) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})

    clean = runner.invoke(app, ["verify", "--config", str(game.config_path)])
    assert clean.exit_code == 0, clean.output
    assert f"- {TARGET_NAME}: baseline (no backup)" in clean.output

    game.target.write_bytes(b"tampered")
    tampered = runner.invoke(app, ["verify", "--config", str(game.config_path)])
    assert tampered.exit_code == 1
    assert f"- {TARGET_NAME}: modified (no backup)" in tampered.output


def test_restore_command_restores_from_backup(game: GameFixture, monkeypatch) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})
    _use_fake_tools(monkeypatch, FakeTools())
    original = game.target.read_bytes()
    assert runner.invoke(app, ["build", "--config", str(game.config_path)]).exit_code == 0
    assert game.target.read_bytes() != original

    result = runner.invoke(app, ["restore", "--config", str(game.config_path)])

    assert result.exit_code == 0, result.output
    assert f"Restored {TARGET_NAME}" in result.output
    assert game.target.read_bytes() == original


def test_restore_without_backup_fails(game: GameFixture) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})

    result = runner.invoke(app, ["restore", "--config", str(game.config_path)])

    assert result.exit_code == 1
    assert "No backup found" in result.output


def test_hash_command_prints_digests(tmp_path: Path) -> None:
    path = tmp_path / "file.bin"
    path.write_bytes(b"hello")

    result = runner.invoke(app, ["hash", str(path), str(tmp_path / "missing.bin")])

    assert result.exit_code == 1
    assert f"{hashlib.md5(b'hello').hexdigest()}  {path}" in result.output
    assert "missing.bin: not found" in result.output


def test_unknown_log_level_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--log-level", "CHATTY", "hash", str(tmp_path)])

    assert result.exit_code != 0
