"""plan.py - Build Plan Emitter.

Turns a :class:`~modplan.resolver.ResolvedSet` into the ordered module list
and final flag set consumed by the external compile/link step.  ``emit`` is
a pure function; serialisation is deterministic so two plans built from the
same inputs are byte-identical.

JSON layout::

    {
      "target": "linux-x11@x86_64",
      "flags": ["png", "render", "render/png"],
      "modules": [
        {"name": "render", "group": "rendering", "features": ["png"], "params": {}}
      ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import tomlkit

from modplan.registry import ParamValue
from modplan.resolver import ResolvedSet


@dataclass(frozen=True)
class PlannedModule:
    """One module entry in a build plan."""

    name: str
    group: str
    slot: str | None = None
    features: tuple[str, ...] = ()
    params: tuple[tuple[str, ParamValue], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "group": self.group}
        if self.slot is not None:
            d["slot"] = self.slot
        d["features"] = list(self.features)
        d["params"] = dict(self.params)
        return d


@dataclass(frozen=True)
class BuildPlan:
    """Ordered module identities plus the final active-flag set."""

    target: str
    flags: tuple[str, ...] = ()
    modules: tuple[PlannedModule, ...] = field(default_factory=tuple)

    @property
    def module_names(self) -> list[str]:
        return [m.name for m in self.modules]

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "flags": list(self.flags),
            "modules": [m.to_dict() for m in self.modules],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_toml(self) -> str:
        doc = tomlkit.document()
        doc.add("target", self.target)
        doc.add("flags", self.flags_array())
        modules = tomlkit.aot()
        for module in self.modules:
            tbl = tomlkit.table()
            tbl.add("name", module.name)
            tbl.add("group", module.group)
            if module.slot is not None:
                tbl.add("slot", module.slot)
            tbl.add("features", list(module.features))
            if module.params:
                params = tomlkit.inline_table()
                params.update(dict(module.params))
                tbl.add("params", params)
            modules.append(tbl)
        doc.add("modules", modules)
        return tomlkit.dumps(doc)

    def flags_array(self) -> tomlkit.items.Array:
        arr = tomlkit.array()
        arr.extend(self.flags)
        if len(self.flags) > 4:
            arr.multiline(True)
        return arr

    def serialize(self, fmt: str = "json") -> str:
        if fmt == "json":
            return self.to_json()
        if fmt == "toml":
            return self.to_toml()
        raise ValueError(f"Unknown plan format: {fmt!r} (use json or toml)")


def emit(resolved: ResolvedSet) -> BuildPlan:
    """Build the plan for *resolved*; never fails for a valid resolved set."""
    modules = tuple(
        PlannedModule(
            name=m.name,
            group=m.group,
            slot=m.slot,
            features=resolved.features_of(m),
            params=tuple(sorted(m.params.items())),
        )
        for m in resolved.modules
    )
    return BuildPlan(
        target=str(resolved.target), flags=tuple(sorted(resolved.flags)), modules=modules
    )
