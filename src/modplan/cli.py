"""Shared CLI utilities for modplan commands.

Provides common Typer options, config/session loading helpers, and
standardised output / error helpers so that every command gets consistent
``--target`` support, error reporting and JSON output without boilerplate.

Usage in a command::

    import typer
    from modplan.cli import TargetOption, get_config, error_exit, json_print

    app = typer.Typer()

    @app.callback(invoke_without_command=True)
    def main(target: str | None = TargetOption) -> None:
        cfg = get_config(target)
        ...
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from modplan.config import ProjectConfig, load_config
from modplan.errors import ModplanError
from modplan.manifest import load_manifest
from modplan.platform import BuildTarget
from modplan.session import Session

# Re-usable Typer option for --target
TargetOption: str | None = typer.Option(
    None,
    "--target",
    "-t",
    help="Target name from modplan.toml (default: first target).",
)

TripleOption: str | None = typer.Option(
    None,
    "--triple",
    help="Override the build target, e.g. 'linux-x11' or 'x86_64-pc-windows-msvc'.",
)


def get_config(target: str | None = None) -> ProjectConfig:
    """Load the project config for the given target."""
    return load_config(target=target)


def get_session(cfg: ProjectConfig) -> Session:
    """Load the manifest referenced by *cfg*."""
    return load_manifest(cfg.manifest_path)


def load_project(
    target: str | None, *, json_mode: bool = False
) -> tuple[ProjectConfig, Session]:
    """Load config + manifest, converting setup errors into a clean exit."""
    try:
        cfg = get_config(target)
        return cfg, get_session(cfg)
    except (FileNotFoundError, KeyError, ModplanError) as exc:
        error_exit(_message(exc), json_mode=json_mode)


def pick_target(cfg: ProjectConfig, triple: str | None, *, json_mode: bool = False) -> BuildTarget:
    """Return the ``--triple`` override if given, else the configured target."""
    if triple is None:
        return cfg.build_target
    try:
        return BuildTarget.parse(triple)
    except ValueError as exc:
        error_exit(str(exc), json_mode=json_mode)


def _message(exc: BaseException) -> str:
    # KeyError wraps its message in quotes.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)


# ---------------------------------------------------------------------------
# Standardised output helpers
# ---------------------------------------------------------------------------

_err_console = Console(stderr=True)


def error_exit(msg: str, *, json_mode: bool = False, code: int = 1) -> NoReturn:
    """Print *msg* as an error and ``raise typer.Exit(code)``."""
    if json_mode:
        print(json.dumps({"error": msg}, indent=2))
    else:
        _err_console.print(
            f"[red bold]error:[/red bold] {escape(msg)}", highlight=False, soft_wrap=True
        )
    raise typer.Exit(code=code)


def json_print(data: dict[str, Any] | list[Any]) -> None:
    """Print *data* as pretty-printed JSON to stdout."""
    print(json.dumps(data, indent=2))


def write_output(text: str, output: str | Path | None) -> None:
    """Write *text* to *output*, or to stdout when no path is given."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    _err_console.print(f"Written to {path}", highlight=False, soft_wrap=True)
