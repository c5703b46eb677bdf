"""session.py - One immutable registry + flag graph, shared by reference.

A :class:`Session` is built once per tool invocation (usually by
:func:`modplan.manifest.load_manifest`), validated, frozen, and then read by
any number of resolutions, including concurrent ones.  There is no
process-wide state: callers pass the session around explicitly.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor

from modplan.errors import UnknownFlagError
from modplan.flags import FlagGraph
from modplan.plan import BuildPlan, emit
from modplan.platform import BuildTarget
from modplan.registry import ModuleRegistry
from modplan.resolver import Resolution, ResolvedSet, Resolver

ResolveRequest = tuple[Iterable[str], BuildTarget]


class Session:
    """Sealed declaration set plus a resolver bound to it."""

    def __init__(
        self,
        registry: ModuleRegistry,
        graph: FlagGraph,
        default_flags: Sequence[str] = (),
        name: str = "",
    ) -> None:
        self.name = name
        self.registry = registry
        self.graph = graph
        self.default_flags = tuple(dict.fromkeys(default_flags))
        self._validate()
        registry.freeze()
        graph.freeze()
        self.resolver = Resolver(registry, graph)

    def _validate(self) -> None:
        for module in self.registry.all_modules():
            unknown = [f for f in (*module.gates, *module.implies) if f not in self.graph]
            if unknown:
                raise UnknownFlagError(unknown, context=f"declared by module '{module.name}'")
        unknown = [f for f in self.default_flags if f not in self.graph]
        if unknown:
            raise UnknownFlagError(unknown, context="listed in default flags")

    def requested_flags(self, flags: Iterable[str] = (), use_defaults: bool = True) -> list[str]:
        """Caller flags, preceded by the facade defaults unless opted out."""
        merged = list(self.default_flags) if use_defaults else []
        merged.extend(flags)
        return list(dict.fromkeys(merged))

    def resolve(self, flags: Iterable[str], target: BuildTarget) -> ResolvedSet:
        return self.resolver.resolve(flags, target)

    def try_resolve(self, flags: Iterable[str], target: BuildTarget) -> Resolution:
        return self.resolver.try_resolve(flags, target)

    def plan(self, flags: Iterable[str], target: BuildTarget) -> BuildPlan:
        return emit(self.resolve(flags, target))

    def resolve_many(
        self,
        requests: Sequence[ResolveRequest],
        max_workers: int | None = None,
    ) -> list[Resolution]:
        """Resolve independent requests in parallel; results keep request order."""
        if not requests:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self.resolver.try_resolve, list(flags), target)
                for flags, target in requests
            ]
            return [fut.result() for fut in futures]
