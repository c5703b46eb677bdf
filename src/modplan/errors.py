"""errors.py - Error taxonomy for session setup and resolution.

Two families:

* :class:`ConfigurationError` - raised while building the registry / flag
  graph.  Fatal for the session: nothing may be resolved against a
  half-built declaration set.
* :class:`ResolutionError` - raised per resolution request.  Shared state
  is never touched, so the next request starts clean.

Conflicts are collected as :class:`Conflict` records and only wrapped in
:class:`ConflictError` when they are surfaced to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


class ModplanError(Exception):
    """Base class for every error raised by modplan."""


# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------


class ConfigurationError(ModplanError):
    """The static declarations are malformed."""


class DuplicateModuleError(ConfigurationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Module '{name}' is already registered")


class CycleError(ConfigurationError):
    """Adding ``source -> target`` would close a loop in the flag graph."""

    def __init__(self, source: str, target: str, path: Iterable[str] = ()) -> None:
        self.source = source
        self.target = target
        # Existing route target -> ... -> source that the new edge would close.
        self.path = tuple(path)
        loop = " -> ".join((source, *self.path)) if self.path else f"{source} -> {target}"
        super().__init__(f"Implication {source} -> {target} creates a cycle: {loop}")


class FrozenError(ConfigurationError):
    """Mutation attempted after the session was sealed."""


class ManifestError(ConfigurationError):
    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(ModplanError):
    """A single resolution request cannot be satisfied."""


class UnknownFlagError(ResolutionError):
    def __init__(self, flags: str | Iterable[str], context: str = "") -> None:
        if isinstance(flags, str):
            flags = (flags,)
        self.flags = tuple(sorted(set(flags)))
        names = ", ".join(f"'{f}'" for f in self.flags)
        msg = f"Unknown flag{'s' if len(self.flags) > 1 else ''}: {names}"
        if context:
            msg += f" ({context})"
        super().__init__(msg)


class NoMatchingVariantError(ResolutionError):
    def __init__(self, slot: str, target: object, candidates: Iterable[str]) -> None:
        self.slot = slot
        self.target = target
        self.candidates = tuple(candidates)
        super().__init__(
            f"No variant for slot '{slot}' matches target '{target}' "
            f"(candidates: {', '.join(self.candidates) or 'none'})"
        )


class AmbiguousVariantError(ResolutionError):
    def __init__(self, slot: str, target: object, matches: Iterable[str]) -> None:
        self.slot = slot
        self.target = target
        self.matches = tuple(matches)
        super().__init__(
            f"Slot '{slot}' has {len(self.matches)} variants matching target "
            f"'{target}': {', '.join(self.matches)}"
        )


@dataclass(frozen=True)
class Conflict:
    """Two or more selected modules that cannot coexist."""

    kind: str
    key: str
    modules: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.kind} '{self.key}' held by {', '.join(self.modules)}"

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "key": self.key, "modules": list(self.modules)}


class ConflictError(ResolutionError):
    def __init__(self, conflicts: Iterable[Conflict]) -> None:
        self.conflicts = tuple(conflicts)
        details = "; ".join(str(c) for c in self.conflicts)
        super().__init__(f"Conflicting modules selected: {details}")
