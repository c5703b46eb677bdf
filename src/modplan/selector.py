"""selector.py - Pick one platform variant per capability slot."""

from __future__ import annotations

from collections.abc import Iterable

from modplan.errors import AmbiguousVariantError, NoMatchingVariantError
from modplan.platform import BuildTarget
from modplan.registry import Module


def matches(module: Module, target: BuildTarget) -> bool:
    """True if *module* has no platform constraint or its constraint holds."""
    return module.platform is None or module.platform.matches(target)


class PlatformSelector:
    """Chooses among mutually exclusive variants sharing one slot key.

    Exactly one candidate must match the target.  Zero or several matches
    are declaration errors for the module authors and are never resolved
    silently.
    """

    def select(self, candidates: Iterable[Module], target: BuildTarget) -> Module:
        pool = list(candidates)
        slot = pool[0].slot_key if pool else "<empty>"
        hits = [m for m in pool if matches(m, target)]
        if not hits:
            raise NoMatchingVariantError(slot, target, [m.name for m in pool])
        if len(hits) > 1:
            raise AmbiguousVariantError(slot, target, [m.name for m in hits])
        return hits[0]
