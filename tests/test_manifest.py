"""Tests for manifest loading."""

from pathlib import Path

import pytest

from modplan.errors import CycleError, ManifestError, UnknownFlagError
from modplan.manifest import load_manifest, parse_manifest
from modplan.platform import BuildTarget

SAMPLE_MANIFEST = """\
# Engine facade
[facade]
name = "engine"
default-flags = ["png", "x11"]

[flags]
png = ["render/png"]
hdr = ["render/hdr"]
x11 = ["winit/x11"]
wayland = ["winit/wayland"]
trace = ["app/trace", "render/trace"]

[modules.app]
group = "app"
features = ["trace"]

[modules.render]
group = "rendering"
optional = true
features = ["png", "hdr", "trace"]
params = { backend = "wgpu", msaa = 4 }

[modules.winit]
group = "windowing"
features = ["x11", "wayland"]

[modules.winit-x11]
group = "windowing"
gates = ["winit/x11"]
slot = "windowing-backend"
platform = "linux-x11"

[modules.winit-wayland]
group = "windowing"
gates = ["winit/wayland"]
slot = "windowing-backend"
platform = "linux-wayland"

[modules.android-log]
group = "log"
platform = 'cfg(target_os = "android")'
"""

LINUX_X11 = BuildTarget.parse("linux-x11@x86_64")


def _manifest(body: str) -> str:
    return "[facade]\nname = \"t\"\n\n" + body


class TestParseManifest:
    def test_sample(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        assert session.name == "engine"
        assert session.default_flags == ("png", "x11")
        assert len(session.registry) == 6
        assert session.registry.frozen
        assert session.graph.frozen

    def test_optional_module_gets_own_flag(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        assert session.registry.get("render").gates == ("render",)
        assert session.graph.implied_by("render/png") == ("render",)

    def test_features_of_required_module_do_not_gate(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        app = session.registry.get("app")
        assert app.is_default
        assert app.features == ("trace",)
        assert session.graph.implied_by("app/trace") == ()

    def test_params_and_platform(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        assert dict(session.registry.get("render").params) == {"backend": "wgpu", "msaa": 4}
        android_log = session.registry.get("android-log")
        assert str(android_log.platform) == 'cfg(target_os = "android")'

    def test_default_resolution(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        resolved = session.resolve(session.requested_flags(), LINUX_X11)
        assert resolved.module_names == ["app", "render", "winit", "winit-x11"]
        assert resolved.features_of(session.registry.get("render")) == ("png",)

    def test_umbrella_flag_enables_scoped_features(self) -> None:
        session = parse_manifest(SAMPLE_MANIFEST)
        resolved = session.resolve(["trace"], LINUX_X11)
        assert {"app/trace", "render/trace", "render"} <= resolved.flags
        assert resolved.features_of(session.registry.get("app")) == ("trace",)

    def test_empty_manifest(self) -> None:
        session = parse_manifest("")
        assert len(session.registry) == 0
        assert session.resolve([], LINUX_X11).modules == ()

    def test_single_variant_slot_warns(self) -> None:
        text = _manifest(
            '[flags]\ngl = []\n\n[modules.gl]\ngroup = "render"\ngates = ["gl"]\nslot = "backend"\n'
        )
        with pytest.warns(UserWarning, match="single variant"):
            parse_manifest(text)


class TestManifestErrors:
    def test_invalid_toml(self) -> None:
        with pytest.raises(ManifestError, match="Invalid TOML"):
            parse_manifest("[facade\n", source="broken.toml")

    def test_source_in_message(self) -> None:
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest('[modules.x]\ngroup = "g"\nbogus = 1\n', source="features.toml")
        assert exc_info.value.source == "features.toml"
        assert str(exc_info.value).startswith("features.toml:")

    def test_unknown_module_key(self) -> None:
        with pytest.raises(ManifestError, match="unknown keys"):
            parse_manifest('[modules.x]\ngroup = "g"\nbogus = 1\n')

    def test_unknown_facade_key(self) -> None:
        with pytest.raises(ManifestError, match="unknown keys"):
            parse_manifest('[facade]\nnmae = "typo"\n')

    def test_missing_group(self) -> None:
        with pytest.raises(ManifestError, match="missing 'group'"):
            parse_manifest("[modules.x]\noptional = true\n")

    def test_slash_in_module_name(self) -> None:
        with pytest.raises(ManifestError, match="may not contain"):
            parse_manifest('[modules."a/b"]\ngroup = "g"\n')

    def test_gates_must_be_list(self) -> None:
        with pytest.raises(ManifestError, match="list of non-empty strings"):
            parse_manifest('[flags]\nf = []\n\n[modules.x]\ngroup = "g"\ngates = "f"\n')

    def test_params_must_be_scalars(self) -> None:
        with pytest.raises(ManifestError, match="table of scalars"):
            parse_manifest('[modules.x]\ngroup = "g"\nparams = { nested = [1, 2] }\n')

    def test_malformed_platform(self) -> None:
        with pytest.raises(ManifestError, match="modules.x.platform"):
            parse_manifest('[modules.x]\ngroup = "g"\nplatform = "cfg(all(unix"\n')

    def test_undeclared_gate(self) -> None:
        with pytest.raises(UnknownFlagError) as exc_info:
            parse_manifest('[modules.x]\ngroup = "g"\ngates = ["ghost"]\n')
        assert exc_info.value.flags == ("ghost",)
        assert "module 'x'" in str(exc_info.value)

    def test_undeclared_forward_target(self) -> None:
        with pytest.raises(UnknownFlagError, match="implied by 'png'"):
            parse_manifest('[flags]\npng = ["render/png"]\n')

    def test_undeclared_default_flag(self) -> None:
        with pytest.raises(UnknownFlagError, match="default flags"):
            parse_manifest('[facade]\ndefault-flags = ["nope"]\n')

    def test_forwarding_cycle(self) -> None:
        text = '[flags]\na = ["b"]\nb = ["c"]\nc = ["a"]\n'
        with pytest.raises(CycleError) as exc_info:
            parse_manifest(text)
        assert exc_info.value.source == "c"
        assert exc_info.value.target == "a"


class TestLoadManifest:
    def test_load_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "features.toml"
        path.write_text(SAMPLE_MANIFEST, encoding="utf-8")
        session = load_manifest(path)
        assert session.name == "engine"

    def test_errors_name_the_file(self, tmp_path: Path) -> None:
        path = tmp_path / "features.toml"
        path.write_text('[modules.x]\ngroup = "g"\nbogus = 1\n', encoding="utf-8")
        with pytest.raises(ManifestError, match="features.toml"):
            load_manifest(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_manifest(tmp_path / "missing.toml")
