"""Centralised project configuration loader for modplan.

Reads ``modplan.toml`` from the project root and exposes every setting as
simple attributes so commands never hardcode the manifest location, output
path or build target.

The configuration supports **multiple targets**.  Each target names a
platform descriptor and may add its own requested flags; the manifest and
output settings are shared.

Example ``modplan.toml``::

    [project]
    name = "engine"
    manifest = "features.toml"
    output = "build/plan.json"
    format = "json"

    [targets.linux]
    triple = "linux-x11"
    arch = "x86_64"

    [targets.android]
    os = "android"
    arch = "aarch64"
    flags = ["webgl"]
    default-flags = false

Usage::

    from modplan.config import load_config
    cfg = load_config(target="android")
    cfg.build_target        # BuildTarget(os="android", arch="aarch64", ...)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from modplan.platform import BuildTarget

CONFIG_NAME = "modplan.toml"

_OUTPUT_FORMATS = ("json", "toml")


@dataclass
class ProjectConfig:
    """Parsed project configuration with computed paths."""

    # Root directory (where modplan.toml lives)
    root: Path

    project_name: str = ""

    # --- [project] ---
    manifest_path: Path = field(default_factory=lambda: Path())
    output_path: Path | None = None
    output_format: str = "json"

    # --- selected target ---
    target_name: str = ""
    build_target: BuildTarget = field(default_factory=lambda: BuildTarget(os="linux"))
    target_flags: list[str] = field(default_factory=list)
    use_default_flags: bool = True

    # --- All known target names ---
    all_targets: list[str] = field(default_factory=list)


def _resolve(root: Path, rel: str | None) -> Path | None:
    """Resolve a path relative to project root."""
    if rel is None:
        return None
    p = Path(rel)
    if p.is_absolute():
        return p
    return root / p


def _find_root(start: Path | None = None) -> Path:
    """Walk up from *start* (or cwd) to find modplan.toml, like git finds ``.git/``."""
    if start is not None:
        return start
    candidate = Path.cwd().resolve()
    while candidate != candidate.parent:
        if (candidate / CONFIG_NAME).exists():
            return candidate
        candidate = candidate.parent
    raise FileNotFoundError(
        f"Could not find {CONFIG_NAME} in any parent of the current directory. "
        f"Run modplan commands from within a project that contains {CONFIG_NAME}."
    )


def parse_build_target(tgt: dict[str, Any], name: str = "") -> BuildTarget:
    """Build a :class:`BuildTarget` from a ``[targets.<name>]`` table."""
    if "triple" in tgt:
        base = BuildTarget.parse(str(tgt["triple"]))
    elif "os" in tgt:
        base = BuildTarget(os=str(tgt["os"]))
    else:
        raise KeyError(f"Target '{name}' needs either 'triple' or 'os'")
    return BuildTarget(
        os=str(tgt.get("os", base.os)),
        arch=str(tgt.get("arch", base.arch)),
        env=str(tgt.get("env", base.env)),
        family=str(tgt.get("family", "")),
    )


def load_config(
    root: Path | None = None,
    target: str | None = None,
) -> ProjectConfig:
    """Load modplan.toml.

    Args:
        root: Project root directory.  Auto-detected if ``None``.
        target: Name of the target to load (key under ``[targets]``).
                Defaults to the first target defined in the file.
    """
    root = _find_root(root)
    toml_path = root / CONFIG_NAME
    if not toml_path.exists():
        raise FileNotFoundError(f"Config not found: {toml_path}")

    with open(toml_path, "rb") as f:
        raw = tomllib.load(f)

    project = raw.get("project", {})
    targets_dict = raw.get("targets", {})
    all_target_names = list(targets_dict.keys())

    if not targets_dict:
        raise KeyError(f"{CONFIG_NAME} has no [targets] section")
    if target is None:
        target = all_target_names[0]
    if target not in targets_dict:
        raise KeyError(
            f"Target '{target}' not found in {CONFIG_NAME}.  Available targets: {all_target_names}"
        )
    tgt = targets_dict[target]

    output_format = project.get("format", "json")
    if output_format not in _OUTPUT_FORMATS:
        raise KeyError(f"Unknown project.format {output_format!r}; use one of {_OUTPUT_FORMATS}")

    try:
        build_target = parse_build_target(tgt, target)
    except ValueError as exc:
        raise KeyError(f"Target '{target}': {exc}") from exc

    flags = tgt.get("flags", [])
    if not isinstance(flags, list) or not all(isinstance(f, str) and f for f in flags):
        raise KeyError(f"Target '{target}': flags must be a list of strings")
    use_default_flags = tgt.get("default-flags", True)
    if not isinstance(use_default_flags, bool):
        raise KeyError(f"Target '{target}': default-flags must be true or false")

    return ProjectConfig(
        root=root,
        project_name=project.get("name", root.name),
        manifest_path=_resolve(root, project.get("manifest", "features.toml")) or root,
        output_path=_resolve(root, project.get("output")),
        output_format=output_format,
        target_name=target,
        build_target=build_target,
        target_flags=list(flags),
        use_default_flags=use_default_flags,
        all_targets=all_target_names,
    )
