"""Tests for modplan cfg (programmatic config editor)."""

from pathlib import Path

import pytest
import tomlkit
from click.exceptions import Exit as ClickExit
from typer.testing import CliRunner

from modplan.cfg import _coerce, _describe_target, _load_toml, _save_toml
from modplan.cfg import app as cfg_app
from modplan.config import load_config

runner = CliRunner()

SAMPLE_TOML = """\
# Project config
[project]
name = "engine"
format = "json"

# Desktop
[targets.linux]
triple = "linux-x11"
arch = "x86_64"
flags = ["trace"]

[targets.android]
os = "android"
"""


def _make_project(tmp_path: Path, toml_content: str = SAMPLE_TOML) -> Path:
    (tmp_path / "modplan.toml").write_text(toml_content, encoding="utf-8")
    return tmp_path


class TestLoadSave:
    def test_round_trip_preserves_comments(self, tmp_path: Path) -> None:
        root = _make_project(tmp_path)
        doc, path = _load_toml(root)
        _save_toml(doc, path)
        result = path.read_text(encoding="utf-8")
        assert "# Project config" in result
        assert "# Desktop" in result

    def test_load_nonexistent_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ClickExit):
            _load_toml(tmp_path)


class TestHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("False", False), ("4", 4), ("0.5", 0.5), ("toml", "toml")],
    )
    def test_coerce(self, raw: str, expected: object) -> None:
        assert _coerce(raw) == expected
        assert type(_coerce(raw)) is type(expected)

    def test_describe_target(self) -> None:
        assert _describe_target({"triple": "linux-x11", "arch": "x86_64"}) == "linux-x11@x86_64"
        assert _describe_target({"os": "linux", "env": "wayland"}) == "linux-wayland"
        assert _describe_target({"triple": "linux@arm", "arch": "arm"}) == "linux@arm"


class TestCLIListTargets:
    def test_list_targets_output(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["list-targets"])
        assert result.exit_code == 0
        assert "linux" in result.output
        assert "flags: trace" in result.output
        assert "android" in result.output

    def test_list_targets_no_targets(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path, '[project]\nname = "x"\n')
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["list-targets"])
        assert result.exit_code == 0
        assert "No targets defined" in result.output

    def test_outside_project(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["list-targets"])
        assert result.exit_code == 1


class TestCLIShow:
    def test_show_all(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["show"])
        assert result.exit_code == 0
        assert "engine" in result.output

    def test_show_key(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["show", "targets.linux.triple"])
        assert result.exit_code == 0
        assert "linux-x11" in result.output

    def test_show_missing_key(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["show", "nonexistent.key"])
        assert result.exit_code == 1


class TestCLIAddRemoveTarget:
    def test_add_target(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(
            cfg_app,
            [
                "add-target",
                "web",
                "--triple",
                "wasm32-unknown-unknown",
                "--flag",
                "webgl",
                "--flag",
                "png",
                "--no-default-flags",
            ],
        )
        assert result.exit_code == 0, result.output
        cfg = load_config(tmp_path, target="web")
        assert cfg.build_target.family == "wasm"
        assert cfg.target_flags == ["webgl", "png"]
        assert cfg.use_default_flags is False
        assert "# Desktop" in (tmp_path / "modplan.toml").read_text(encoding="utf-8")

    def test_add_target_first_in_file(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path, '[project]\nname = "x"\n')
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["add-target", "linux", "--triple", "linux"])
        assert result.exit_code == 0, result.output
        assert load_config(tmp_path).target_name == "linux"

    def test_add_duplicate_target(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["add-target", "linux", "--triple", "linux"])
        assert result.exit_code == 1

    def test_add_invalid_triple(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["add-target", "bad", "--triple", "linux x11"])
        assert result.exit_code == 1
        assert "bad" not in tomlkit.parse((tmp_path / "modplan.toml").read_text())["targets"]

    def test_remove_target(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["remove-target", "android"])
        assert result.exit_code == 0
        assert load_config(tmp_path).all_targets == ["linux"]

    def test_remove_missing_is_idempotent(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["remove-target", "ios"])
        assert result.exit_code == 0
        assert "already removed" in result.output


class TestCLISet:
    def test_set_string(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["set", "project.format", "toml"])
        assert result.exit_code == 0
        assert load_config(tmp_path).output_format == "toml"

    def test_set_bool_creates_table(self, tmp_path: Path, monkeypatch) -> None:
        _make_project(tmp_path, '[project]\nname = "x"\n')
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cfg_app, ["set", "targets.linux.os", "linux"])
        assert result.exit_code == 0
        result = runner.invoke(cfg_app, ["set", "targets.linux.default-flags", "false"])
        assert result.exit_code == 0
        cfg = load_config(tmp_path)
        assert cfg.build_target.os == "linux"
        assert cfg.use_default_flags is False
