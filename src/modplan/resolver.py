"""resolver.py - Requested flags + build target -> conflict-free module set.

Resolution loop::

    validate requested flags
    active = closure(requested)
    repeat:
        candidates = default modules + modules gated by any active flag
        selected   = one module per slot (Platform Selector for explicit slots,
                     platform filter for implicit per-module slots)
        active'    = closure(active | flags implied by selected modules)
    until active' == active
    reject residual resource-claim conflicts

The active set only ever grows inside the finite set of declared flags, so
the loop runs at most ``len(graph)`` times.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from modplan.errors import Conflict, ConflictError, ResolutionError, UnknownFlagError
from modplan.flags import FlagGraph
from modplan.platform import BuildTarget
from modplan.registry import Module, ModuleRegistry
from modplan.selector import PlatformSelector, matches


@dataclass(frozen=True)
class ResolvedSet:
    """Closed flag set plus the modules it selects for one build target."""

    target: BuildTarget
    requested: frozenset[str] = field(compare=False)
    flags: frozenset[str] = frozenset()
    modules: tuple[Module, ...] = ()
    activated_by: Mapping[str, tuple[str, ...]] = field(
        default_factory=dict, compare=False, hash=False
    )

    @property
    def module_names(self) -> list[str]:
        return [m.name for m in self.modules]

    def features_of(self, module: Module) -> tuple[str, ...]:
        """Active ``<module>/<feature>`` flags for *module*, prefix stripped."""
        prefix = f"{module.name}/"
        return tuple(sorted(f[len(prefix) :] for f in self.flags if f.startswith(prefix)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": str(self.target),
            "requested": sorted(self.requested),
            "flags": sorted(self.flags),
            "modules": [
                {"name": m.name, "group": m.group, "activated_by": list(self.activated_by[m.name])}
                for m in self.modules
            ],
        }


@dataclass(frozen=True)
class Resolution:
    """Non-raising resolution outcome."""

    ok: bool
    target: BuildTarget
    resolved: ResolvedSet | None = None
    error: ResolutionError | None = None

    @property
    def error_msg(self) -> str:
        return str(self.error) if self.error is not None else ""


class Resolver:
    """Resolves flag requests against an immutable registry and flag graph."""

    def __init__(
        self,
        registry: ModuleRegistry,
        graph: FlagGraph,
        selector: PlatformSelector | None = None,
    ) -> None:
        self.registry = registry
        self.graph = graph
        self.selector = selector or PlatformSelector()

    def resolve(self, requested: Iterable[str], target: BuildTarget) -> ResolvedSet:
        """Resolve *requested* for *target*; raises :class:`ResolutionError`."""
        requested_set = frozenset(requested)
        unknown = [f for f in requested_set if not self.graph.is_known(f)]
        if unknown:
            raise UnknownFlagError(unknown)

        active = self.graph.closure(requested_set)
        while True:
            selected = self._select(active, target)
            implied = {flag for m in selected for flag in m.implies}
            grown = self.graph.closure(active | implied)
            if grown == active:
                break
            active = grown

        conflicts = find_conflicts(selected)
        if conflicts:
            raise ConflictError(conflicts)

        activated_by = {
            m.name: tuple(sorted(f for f in set(m.gates) if f in active)) for m in selected
        }
        return ResolvedSet(
            target=target,
            requested=requested_set,
            flags=active,
            modules=tuple(selected),
            activated_by=MappingProxyType(activated_by),
        )

    def try_resolve(self, requested: Iterable[str], target: BuildTarget) -> Resolution:
        """Like :meth:`resolve` but reports failures in the returned record."""
        try:
            resolved = self.resolve(requested, target)
        except ResolutionError as exc:
            return Resolution(ok=False, target=target, error=exc)
        return Resolution(ok=True, target=target, resolved=resolved)

    def _candidates(self, active: frozenset[str]) -> list[Module]:
        seen: dict[str, Module] = {m.name: m for m in self.registry.defaults()}
        for flag in active:
            for module in self.registry.lookup(flag):
                seen.setdefault(module.name, module)
        return sorted(seen.values(), key=self.registry.index_of)

    def _select(self, active: frozenset[str], target: BuildTarget) -> list[Module]:
        slots: dict[str, list[Module]] = {}
        for module in self._candidates(active):
            slots.setdefault(module.slot_key, []).append(module)

        selected: list[Module] = []
        for group in slots.values():
            if group[0].slot is not None:
                selected.append(self.selector.select(group, target))
            elif matches(group[0], target):
                # Implicit slot: platform-conditional inclusion, not a variant choice.
                selected.append(group[0])
        selected.sort(key=self.registry.index_of)
        return selected


def find_conflicts(modules: Iterable[Module]) -> list[Conflict]:
    """Resource claims held by more than one module, in first-claim order."""
    holders: dict[str, list[str]] = {}
    for module in modules:
        for claim in dict.fromkeys(module.claims):
            holders.setdefault(claim, []).append(module.name)
    return [
        Conflict(kind="claim", key=claim, modules=tuple(names))
        for claim, names in holders.items()
        if len(names) > 1
    ]
