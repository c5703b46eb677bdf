"""manifest.py - Load module and flag declarations from TOML.

A manifest describes the facade: its default flags, facade-level forwarding
flags, and every optional module.  Loading it produces a sealed
:class:`~modplan.session.Session`.

Example::

    [facade]
    name = "engine"
    default-flags = ["png", "x11"]

    [flags]
    png = ["render/png"]
    x11 = ["winit/x11"]
    trace = ["app/trace", "render/trace"]

    [modules.render]
    group = "rendering"
    optional = true
    features = ["png", "hdr", "trace"]

    [modules.winit-x11]
    group = "windowing"
    gates = ["winit/x11"]
    slot = "windowing-backend"
    platform = "linux-x11"

Rules:

* ``optional = true`` declares a flag named after the module and gates the
  module on it.
* Each ``features`` entry ``f`` declares the scoped flag ``<module>/f``.
  For optional modules the scoped flag implies the module flag, so enabling
  ``render/png`` pulls ``render`` in.
* Every flag referenced anywhere must be declared by ``[flags]``, by an
  optional module or by a module feature.
"""

from __future__ import annotations

import sys
import warnings
from collections import Counter
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from modplan.errors import ManifestError, UnknownFlagError
from modplan.flags import FlagGraph
from modplan.platform import parse_constraint
from modplan.registry import Module, ModuleRegistry
from modplan.session import Session

_MODULE_KEYS = {
    "group",
    "optional",
    "gates",
    "implies",
    "features",
    "slot",
    "platform",
    "claims",
    "params",
}

_FACADE_KEYS = {"name", "default-flags"}


def _str_list(value: Any, what: str, source: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise ManifestError(f"{what} must be a list of non-empty strings", source)
    return value


def _opt_str(value: Any, what: str, source: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ManifestError(f"{what} must be a non-empty string", source)
    return value


def _build_module(name: str, decl: Any, graph: FlagGraph, source: str) -> Module:
    if not isinstance(decl, dict):
        raise ManifestError(f"[modules.{name}] must be a table", source)
    extra = set(decl) - _MODULE_KEYS
    if extra:
        raise ManifestError(f"[modules.{name}] has unknown keys: {sorted(extra)}", source)
    if "/" in name:
        raise ManifestError(f"Module name '{name}' may not contain '/'", source)

    group = _opt_str(decl.get("group"), f"modules.{name}.group", source)
    if group is None:
        raise ManifestError(f"[modules.{name}] is missing 'group'", source)

    optional = decl.get("optional", False)
    if not isinstance(optional, bool):
        raise ManifestError(f"modules.{name}.optional must be true or false", source)

    gates = _str_list(decl.get("gates", []), f"modules.{name}.gates", source)
    features = _str_list(decl.get("features", []), f"modules.{name}.features", source)

    if optional:
        graph.declare(name)
        gates = [name, *gates]
    for feature in features:
        scoped = f"{name}/{feature}"
        graph.declare(scoped)
        if optional:
            graph.add_implication(scoped, name)

    platform_text = _opt_str(decl.get("platform"), f"modules.{name}.platform", source)
    try:
        platform = parse_constraint(platform_text) if platform_text else None
    except ManifestError as exc:
        raise ManifestError(f"modules.{name}.platform: {exc}", source) from exc

    params = decl.get("params", {})
    if not isinstance(params, dict) or not all(
        isinstance(v, (str, int, float, bool)) for v in params.values()
    ):
        raise ManifestError(f"modules.{name}.params must be a table of scalars", source)

    return Module(
        name=name,
        group=group,
        gates=tuple(dict.fromkeys(gates)),
        implies=tuple(_str_list(decl.get("implies", []), f"modules.{name}.implies", source)),
        platform=platform,
        slot=_opt_str(decl.get("slot"), f"modules.{name}.slot", source),
        claims=tuple(_str_list(decl.get("claims", []), f"modules.{name}.claims", source)),
        features=tuple(features),
        params=params,
    )


def parse_manifest(text: str, source: str = "<manifest>") -> Session:
    """Parse manifest *text* into a sealed :class:`Session`."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"Invalid TOML: {exc}", source) from exc

    facade = raw.get("facade", {})
    if not isinstance(facade, dict):
        raise ManifestError("[facade] must be a table", source)
    extra = set(facade) - _FACADE_KEYS
    if extra:
        raise ManifestError(f"[facade] has unknown keys: {sorted(extra)}", source)
    facade_name = _opt_str(facade.get("name"), "facade.name", source) or ""
    default_flags = _str_list(facade.get("default-flags", []), "facade.default-flags", source)

    flag_table = raw.get("flags", {})
    module_table = raw.get("modules", {})
    if not isinstance(flag_table, dict):
        raise ManifestError("[flags] must be a table", source)
    if not isinstance(module_table, dict):
        raise ManifestError("[modules] must be a table", source)

    graph = FlagGraph()
    for flag in flag_table:
        graph.declare(flag)

    registry = ModuleRegistry()
    for name, decl in module_table.items():
        registry.register(_build_module(name, decl, graph, source))

    # Edges last: forwarding targets may be scoped flags declared by modules.
    for flag, targets in flag_table.items():
        targets = _str_list(targets, f"flags.{flag}", source)
        unknown = [t for t in targets if t not in graph]
        if unknown:
            raise UnknownFlagError(unknown, context=f"implied by '{flag}' in {source}")
        for target in targets:
            graph.add_implication(flag, target)

    slot_sizes = Counter(m.slot for m in registry.all_modules() if m.slot is not None)
    for slot, count in slot_sizes.items():
        if count == 1:
            warnings.warn(
                f"{source}: slot '{slot}' has a single variant; check for a misspelled slot name",
                UserWarning,
                stacklevel=2,
            )

    return Session(registry, graph, default_flags=default_flags, name=facade_name)


def load_manifest(path: str | Path) -> Session:
    """Read and parse the manifest at *path*."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")
    return parse_manifest(path.read_text(encoding="utf-8"), source=str(path))
