"""platform.py - Build targets and platform constraints.

A :class:`BuildTarget` is the read-only descriptor supplied by the invoking
build environment (OS family, architecture, optional environment such as a
display protocol).  A :class:`PlatformConstraint` is a predicate over it.

Constraints are declared either as ``cfg(...)`` expressions::

    cfg(target_os = "android")
    cfg(all(unix, not(target_os = "macos")))

or as shorthand descriptors that must match OS and environment::

    linux-x11        # os == "linux" and env == "x11"
    windows          # os == "windows"
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from modplan.errors import ManifestError

# ---------------------------------------------------------------------------
# Known values
# ---------------------------------------------------------------------------

_KNOWN_ARCHES = {
    "x86",
    "i386",
    "i586",
    "i686",
    "x86_64",
    "arm",
    "armv7",
    "aarch64",
    "wasm32",
    "wasm64",
    "riscv64gc",
    "powerpc64",
    "mips",
}

_VENDORS = {"unknown", "pc", "apple", "uwp", "none", "sun"}

_UNIX_OSES = {"linux", "android", "macos", "ios", "freebsd", "netbsd", "openbsd", "dragonfly"}

_OS_ALIASES = {"darwin": "macos", "win32": "windows"}

# cfg(key = "value") keys mapped to BuildTarget attributes.
_CFG_KEYS = {
    "target_os": "os",
    "target_arch": "arch",
    "target_env": "env",
    "target_family": "family",
}

# Bare cfg identifiers, e.g. cfg(unix).
_CFG_FAMILIES = {"unix", "windows", "wasm"}

_DESCRIPTOR_RE = re.compile(r"^[a-z0-9_.]+(-[a-z0-9_.]+)*(@[a-z0-9_]+)?$")


def _derive_family(os_name: str, arch: str) -> str:
    if arch.startswith("wasm"):
        return "wasm"
    if os_name == "windows":
        return "windows"
    if os_name in _UNIX_OSES:
        return "unix"
    return ""


@dataclass(frozen=True)
class BuildTarget:
    """Target platform descriptor: OS family, architecture and environment."""

    os: str
    arch: str = ""
    env: str = ""
    family: str = ""

    def __post_init__(self) -> None:
        if not self.family:
            object.__setattr__(self, "family", _derive_family(self.os, self.arch))

    @classmethod
    def parse(cls, descriptor: str) -> BuildTarget:
        """Parse ``os[-env][@arch]`` or a Rust-style ``arch-vendor-os[-env]`` triple."""
        text = descriptor.strip().lower()
        if not text:
            raise ValueError("Empty build target descriptor")
        if not _DESCRIPTOR_RE.match(text):
            raise ValueError(f"Malformed build target descriptor: {descriptor!r}")

        arch = ""
        if "@" in text:
            text, arch = text.split("@", 1)

        parts = text.split("-")
        if len(parts) >= 3 and parts[0] in _KNOWN_ARCHES and not arch:
            arch = parts[0]
            rest = parts[1:]
            if rest[0] in _VENDORS:
                rest = rest[1:]
            os_name = rest[0] if rest else ""
            env = "-".join(rest[1:])
            # aarch64-linux-android: Android is reported as the env of a linux triple.
            if os_name == "linux" and env.startswith("android"):
                os_name, env = "android", ""
        else:
            os_name = parts[0]
            env = "-".join(parts[1:])

        os_name = _OS_ALIASES.get(os_name, os_name)
        if not os_name:
            raise ValueError(f"Build target descriptor has no OS: {descriptor!r}")
        return cls(os=os_name, arch=arch, env=env)

    def get(self, key: str) -> str:
        return getattr(self, key)

    def __str__(self) -> str:
        text = f"{self.os}-{self.env}" if self.env else self.os
        return f"{text}@{self.arch}" if self.arch else text


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


class PlatformConstraint:
    """Predicate over a :class:`BuildTarget`."""

    def matches(self, target: BuildTarget) -> bool:
        raise NotImplementedError

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return f"cfg({self.render()})"


@dataclass(frozen=True)
class TargetIs(PlatformConstraint):
    key: str
    value: str

    def matches(self, target: BuildTarget) -> bool:
        return target.get(self.key) == self.value

    def render(self) -> str:
        if self.key == "family" and self.value in _CFG_FAMILIES:
            return self.value
        return f'target_{self.key} = "{self.value}"'


@dataclass(frozen=True)
class AllOf(PlatformConstraint):
    terms: tuple[PlatformConstraint, ...]

    def matches(self, target: BuildTarget) -> bool:
        return all(t.matches(target) for t in self.terms)

    def render(self) -> str:
        return f"all({', '.join(t.render() for t in self.terms)})"


@dataclass(frozen=True)
class AnyOf(PlatformConstraint):
    terms: tuple[PlatformConstraint, ...]

    def matches(self, target: BuildTarget) -> bool:
        return any(t.matches(target) for t in self.terms)

    def render(self) -> str:
        return f"any({', '.join(t.render() for t in self.terms)})"


@dataclass(frozen=True)
class Not(PlatformConstraint):
    term: PlatformConstraint

    def matches(self, target: BuildTarget) -> bool:
        return not self.term.matches(target)

    def render(self) -> str:
        return f"not({self.term.render()})"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r'|"(?P<string>[^"]*)"'
    r"|(?P<punct>[(),=])"
    r")"
)


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ManifestError(f"Unexpected character {text[pos]!r} in {text!r}")
        kind = m.lastgroup or ""
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


class _CfgParser:
    """Recursive-descent parser for the body of a ``cfg(...)`` expression."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            raise ManifestError(f"Unexpected end of platform expression {self.text!r}")
        self.pos += 1
        return tok

    def _expect(self, value: str) -> None:
        kind, tok = self._next()
        if tok != value or kind != "punct":
            raise ManifestError(f"Expected {value!r} but found {tok!r} in {self.text!r}")

    def parse(self) -> PlatformConstraint:
        expr = self._expr()
        if self._peek() is not None:
            raise ManifestError(f"Trailing input in platform expression {self.text!r}")
        return expr

    def _list(self) -> tuple[PlatformConstraint, ...]:
        self._expect("(")
        terms: list[PlatformConstraint] = []
        while True:
            tok = self._peek()
            if tok == ("punct", ")"):
                self.pos += 1
                return tuple(terms)
            terms.append(self._expr())
            tok = self._peek()
            if tok == ("punct", ","):
                self.pos += 1
            elif tok != ("punct", ")"):
                raise ManifestError(f"Expected ',' or ')' in {self.text!r}")

    def _expr(self) -> PlatformConstraint:
        kind, tok = self._next()
        if kind != "ident":
            raise ManifestError(f"Expected identifier but found {tok!r} in {self.text!r}")

        if tok == "all":
            return AllOf(self._list())
        if tok == "any":
            return AnyOf(self._list())
        if tok == "not":
            terms = self._list()
            if len(terms) != 1:
                raise ManifestError(f"not() takes exactly one term in {self.text!r}")
            return Not(terms[0])

        if self._peek() == ("punct", "="):
            self.pos += 1
            vkind, value = self._next()
            if vkind != "string":
                raise ManifestError(f"Expected quoted value after {tok} = in {self.text!r}")
            if tok not in _CFG_KEYS:
                raise ManifestError(f"Unknown platform key {tok!r} in {self.text!r}")
            return TargetIs(_CFG_KEYS[tok], value)

        if tok in _CFG_FAMILIES:
            return TargetIs("family", tok)
        raise ManifestError(f"Unknown platform predicate {tok!r} in {self.text!r}")


def parse_constraint(text: str) -> PlatformConstraint:
    """Parse a ``cfg(...)`` expression or an ``os[-env][@arch]`` shorthand."""
    stripped = text.strip()
    if not stripped:
        raise ManifestError("Empty platform constraint")

    if stripped.startswith("cfg(") and stripped.endswith(")"):
        return _CfgParser(stripped[4:-1]).parse()

    try:
        target = BuildTarget.parse(stripped)
    except ValueError as exc:
        raise ManifestError(str(exc)) from exc

    terms: list[PlatformConstraint] = [TargetIs("os", target.os)]
    if target.env:
        terms.append(TargetIs("env", target.env))
    if target.arch:
        terms.append(TargetIs("arch", target.arch))
    return terms[0] if len(terms) == 1 else AllOf(tuple(terms))
