from __future__ import annotations

import json

import pytest

from conftest import COMPOSITE_NAME, TARGET_NAME, FakeTools, GameFixture
from patchbuild.appliers.config_merge import load_record_template
from patchbuild.builder import PatchPackageBuilder, create_context
from patchbuild.errors import ArchivePatchFailure, ConfigError, FormatError
from patchbuild.tools.backup import backup_path
from patchbuild.utils.hashing import file_hash

EDIT = {"offset": 16, "from": [0xDE, 0xAD], "to": [0xBE, 0xEF]}


def _populate(game: GameFixture) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})
    game.write_text("upk/robots.txt", "OBJECT=Robots.Default")
    game.write_json("mechsetup/assault.json", {"Assault": {"persist": {"Ability": "Shield"}}})
    game.write_json("ini/DefaultGame.ini/patch.json", {"Engine.GameInfo": {"MaxPlayers": 12}})


def test_full_build_writes_manifest_in_pass_order(game: GameFixture, fake_tools: FakeTools) -> None:
    _populate(game)
    builder = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools))

    result = builder.build()

    assert result.manifest_path == game.manifest_path.resolve()
    payload = json.loads(game.manifest_path.read_text(encoding="utf-8"))
    assert payload["meta"] == {"version": "1.2.3", "name": "Test Patch"}
    assert [operation["operationType"] for operation in payload["operations"]] == [
        "binaryFilePatcher",
        "archivePatcher",
        "configPatcher",
        "documentPatcher",
    ]
    binary_op, archive_op, record_op, document_op = payload["operations"]
    assert binary_op["actions"] == [
        {"offset": "0x00000010", "from": ["0xde", "0xad"], "to": ["0xbe", "0xef"], "comment": "(core) 0x00000010"}
    ]
    assert binary_op["fileOriginalSize"] == 100
    assert archive_op["data"] == "OBJECT=Robots.Default"
    assert json.loads(record_op["data"]) == {"Assault": {"initial": {}, "persist": {"Ability": "Shield"}}}
    assert document_op == {
        "operationType": "documentPatcher",
        "file": "DefaultGame.ini",
        "actions": [{"section": "Engine.GameInfo", "key": "MaxPlayers", "value": "12"}],
    }
    assert payload["targetHashes"] == {
        f"./HawkenGame/CookedPC/{TARGET_NAME}": file_hash(game.target),
        f"./HawkenGame/CookedPC/{COMPOSITE_NAME}": file_hash(game.composite),
    }
    assert result.errors == 0


def test_manifest_is_compact_json(game: GameFixture, fake_tools: FakeTools) -> None:
    result = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools)).build()

    text = result.manifest_path.read_text(encoding="utf-8")
    assert "\n" not in text
    assert json.loads(text) == {"meta": {"version": "1.2.3", "name": "Test Patch"}, "targetHashes": {}, "operations": []}


def test_fatal_error_leaves_no_manifest(game: GameFixture) -> None:
    _populate(game)
    builder = PatchPackageBuilder(create_context(game.load_config(), tools=FakeTools(fail_archive=True)))

    with pytest.raises(ArchivePatchFailure):
        builder.build()

    assert not game.manifest_path.exists()


def test_mismatches_still_produce_manifest(game: GameFixture, fake_tools: FakeTools) -> None:
    game.add_binary_target(fragments={"core": [{"offset": 16, "from": [0xCA, 0xFE], "to": [0x00, 0x00]}]})

    result = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools)).build()

    assert result.errors == 1
    payload = json.loads(game.manifest_path.read_text(encoding="utf-8"))
    assert payload["operations"][0]["actions"] == []


def test_baseline_status_and_restore(game: GameFixture, fake_tools: FakeTools) -> None:
    game.add_binary_target(fragments={"core": [EDIT]})
    builder = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools))

    (status,) = builder.baseline_status()
    assert status.at_baseline and not status.has_backup

    builder.build()
    (status,) = builder.baseline_status()
    assert status.exists and not status.at_baseline and status.has_backup

    assert builder.restore_targets() == [game.target]
    (status,) = builder.baseline_status()
    assert status.at_baseline
    assert game.target.read_bytes() == backup_path(game.target).read_bytes()


def test_record_template_errors(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_record_template(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(FormatError):
        load_record_template(bad)

    good = tmp_path / "good.json"
    good.write_text('{"Armor": 100, "Jet": true}', encoding="utf-8")
    assert load_record_template(good) == {"Armor": "100", "Jet": "true"}


def test_record_patches_require_the_record_template(game: GameFixture, fake_tools: FakeTools) -> None:
    game.write_json("mechsetup/assault.json", {"Assault": {"persist": {"Ability": "Shield"}}})
    (game.build_dir / "defaultMechsetupEntry.json").unlink()
    before = game.record_file.read_bytes()
    builder = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools))

    with pytest.raises(ConfigError, match="Record template not found"):
        builder.build()

    assert game.record_file.read_bytes() == before
    assert not game.manifest_path.exists()


def test_template_is_only_needed_for_record_patches(game: GameFixture, fake_tools: FakeTools) -> None:
    game.write_json("ini/DefaultGame.ini/patch.json", {"Engine.GameInfo": {"MaxPlayers": 12}})
    (game.build_dir / "defaultMechsetupEntry.json").unlink()

    result = PatchPackageBuilder(create_context(game.load_config(), tools=fake_tools)).build()

    assert result.manifest_path.is_file()
    assert result.package.operations[0].operation_type == "documentPatcher"
