"""flags.py - Feature-flag implication graph.

Edges read "enabling *source* implies enabling *target*".  The graph must
stay acyclic: every :meth:`FlagGraph.add_implication` runs an incremental
reachability search from *target* and rejects the edge if it can already
reach *source*.  Diamonds (two routes to the same flag) are fine.

The graph is built once per session in a single-writer phase, then frozen
and shared by reference.  Reads after :meth:`FlagGraph.freeze` take no lock.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator

from modplan.errors import CycleError, FrozenError, UnknownFlagError


class FlagGraph:
    """Directed acyclic graph over feature-flag identifiers."""

    def __init__(self) -> None:
        # Insertion-ordered: dict keys double as the declaration order.
        self._succ: dict[str, dict[str, None]] = {}
        self._lock = threading.Lock()
        self._frozen = False

    # -- construction ------------------------------------------------------

    def _check_writable(self) -> None:
        if self._frozen:
            raise FrozenError("Flag graph is frozen; declare flags before resolving")

    def declare(self, flag: str) -> None:
        """Declare *flag* (idempotent)."""
        if not flag:
            raise ValueError("Flag names must be non-empty")
        with self._lock:
            self._check_writable()
            self._succ.setdefault(flag, {})

    def add_implication(self, source: str, target: str) -> None:
        """Add ``source -> target``.

        Raises :class:`CycleError` if the edge would close a loop; the graph
        is left exactly as it was.
        """
        if not source or not target:
            raise ValueError("Flag names must be non-empty")
        with self._lock:
            self._check_writable()
            if target in self._succ.get(source, {}):
                return
            if source == target:
                raise CycleError(source, target, (target,))
            back = self._path_unlocked(target, source)
            if back is not None:
                raise CycleError(source, target, back)
            self._succ.setdefault(source, {})[target] = None
            self._succ.setdefault(target, {})

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- queries -----------------------------------------------------------

    def is_known(self, flag: str) -> bool:
        return flag in self._succ

    def __contains__(self, flag: object) -> bool:
        return flag in self._succ

    def __len__(self) -> int:
        return len(self._succ)

    def __iter__(self) -> Iterator[str]:
        return iter(self.flags())

    def flags(self) -> list[str]:
        """All declared flags in declaration order."""
        return list(self._succ)

    def edges(self) -> list[tuple[str, str]]:
        return [(src, dst) for src, targets in self._succ.items() for dst in targets]

    def implied_by(self, flag: str) -> tuple[str, ...]:
        """Direct successors of *flag*."""
        if flag not in self._succ:
            raise UnknownFlagError(flag)
        return tuple(self._succ[flag])

    def closure(self, flags: Iterable[str]) -> frozenset[str]:
        """Return every flag reachable from *flags*, including *flags* themselves."""
        start = set(flags)
        unknown = [f for f in start if f not in self._succ]
        if unknown:
            raise UnknownFlagError(unknown)

        seen = set(start)
        queue = deque(start)
        while queue:
            for nxt in self._succ[queue.popleft()]:
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return frozenset(seen)

    def path(self, source: str, target: str) -> tuple[str, ...] | None:
        """Shortest implication path ``source -> ... -> target``, or ``None``."""
        for flag in (source, target):
            if flag not in self._succ:
                raise UnknownFlagError(flag)
        return self._path_unlocked(source, target)

    def _path_unlocked(self, source: str, target: str) -> tuple[str, ...] | None:
        if source not in self._succ:
            return None
        parent: dict[str, str | None] = {source: None}
        queue = deque([source])
        while queue:
            node = queue.popleft()
            if node == target:
                route = [node]
                while (prev := parent[route[-1]]) is not None:
                    route.append(prev)
                return tuple(reversed(route))
            for nxt in self._succ[node]:
                if nxt not in parent:
                    parent[nxt] = node
                    queue.append(nxt)
        return None

    def topological_order(self) -> list[str]:
        """Kahn's algorithm with declaration order as the tie-break."""
        indegree = {flag: 0 for flag in self._succ}
        for _, dst in self.edges():
            indegree[dst] += 1
        order_index = {flag: i for i, flag in enumerate(self._succ)}
        ready = [flag for flag, deg in indegree.items() if deg == 0]
        order: list[str] = []
        while ready:
            ready.sort(key=order_index.__getitem__)
            flag = ready.pop(0)
            order.append(flag)
            for nxt in self._succ[flag]:
                indegree[nxt] -= 1
                if indegree[nxt] == 0:
                    ready.append(nxt)
        return order
