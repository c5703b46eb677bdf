"""registry.py - Static catalog of optional capability modules.

Every module carries its owning subsystem group, the flags it is gated
behind, the flags it implies once selected, an optional platform
constraint and an optional capability slot.  A flag -> modules index is
built at registration time so :meth:`ModuleRegistry.lookup` stays O(1).

Registration order is preserved everywhere; it is the order build plans
list modules in.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from modplan.errors import DuplicateModuleError, FrozenError
from modplan.platform import PlatformConstraint

ParamValue = str | int | float | bool


@dataclass(frozen=True)
class Module:
    """A unit of optional functionality."""

    name: str
    group: str
    gates: tuple[str, ...] = ()
    implies: tuple[str, ...] = ()
    platform: PlatformConstraint | None = None
    slot: str | None = None
    claims: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    params: Mapping[str, ParamValue] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Module name must be non-empty")
        # Normalise list inputs so instances stay hashable.
        for attr in ("gates", "implies", "claims", "features"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def is_default(self) -> bool:
        """Default modules have no gate and are candidates in every resolution."""
        return not self.gates

    @property
    def slot_key(self) -> str:
        """Explicit slot, or a private per-module key when none is declared."""
        return self.slot if self.slot is not None else f"<module:{self.name}>"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "group": self.group, "gates": list(self.gates)}
        if self.implies:
            d["implies"] = list(self.implies)
        if self.platform is not None:
            d["platform"] = str(self.platform)
        if self.slot is not None:
            d["slot"] = self.slot
        if self.claims:
            d["claims"] = list(self.claims)
        if self.features:
            d["features"] = list(self.features)
        if self.params:
            d["params"] = dict(self.params)
        return d


class _ModuleView:
    """Restartable, lazy view over the registry in registration order."""

    def __init__(self, modules: list[Module]) -> None:
        self._modules = modules

    def __iter__(self) -> Iterator[Module]:
        return (m for m in self._modules)

    def __len__(self) -> int:
        return len(self._modules)


class ModuleRegistry:
    """Catalog of every optional module, indexed by gating flag."""

    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._modules: list[Module] = []
        self._by_name: dict[str, int] = {}
        self._by_flag: dict[str, list[Module]] = {}
        self._defaults: list[Module] = []
        self._lock = threading.Lock()
        self._frozen = False
        for module in modules:
            self.register(module)

    def register(self, module: Module) -> None:
        """Add *module*; raises :class:`DuplicateModuleError` on a repeated name."""
        with self._lock:
            if self._frozen:
                raise FrozenError(f"Registry is frozen; cannot register '{module.name}'")
            if module.name in self._by_name:
                raise DuplicateModuleError(module.name)
            self._by_name[module.name] = len(self._modules)
            self._modules.append(module)
            if module.is_default:
                self._defaults.append(module)
            for flag in dict.fromkeys(module.gates):
                self._by_flag.setdefault(flag, []).append(module)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, flag: str) -> tuple[Module, ...]:
        """Modules gated by *flag* (empty when nothing is)."""
        return tuple(self._by_flag.get(flag, ()))

    def defaults(self) -> tuple[Module, ...]:
        return tuple(self._defaults)

    def all_modules(self) -> _ModuleView:
        """Every registered module, in registration order.

        The returned view can be iterated any number of times.
        """
        return _ModuleView(self._modules)

    def get(self, name: str) -> Module:
        try:
            return self._modules[self._by_name[name]]
        except KeyError:
            raise KeyError(f"Unknown module '{name}'") from None

    def index_of(self, module: Module) -> int:
        return self._by_name[module.name]

    def gating_flags(self) -> list[str]:
        return list(self._by_flag)

    def groups(self) -> list[str]:
        return list(dict.fromkeys(m.group for m in self._modules))

    def in_group(self, group: str) -> list[Module]:
        return [m for m in self._modules if m.group == group]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self.all_modules())
