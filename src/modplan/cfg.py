"""modplan cfg: Programmatic editor for modplan.toml.

Uses tomlkit for format-preserving round-trip editing (comments,
ordering, and whitespace are retained).

Usage::

    modplan cfg list-targets
    modplan cfg show [KEY]
    modplan cfg add-target android --triple aarch64-linux-android --flag webgl
    modplan cfg remove-target old_target
    modplan cfg set project.format toml
"""

import contextlib
from pathlib import Path

import tomlkit
import typer

from modplan.config import CONFIG_NAME
from modplan.platform import BuildTarget

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _find_root() -> Path:
    """Walk up from cwd to find modplan.toml."""
    candidate = Path.cwd().resolve()
    while candidate != candidate.parent:
        if (candidate / CONFIG_NAME).exists():
            return candidate
        candidate = candidate.parent
    typer.secho(
        f"Error: Could not find {CONFIG_NAME} in any parent directory.\n"
        "Run this command from within a modplan project.",
        fg=typer.colors.RED,
        err=True,
    )
    raise typer.Exit(code=1)


def _load_toml(root: Path | None = None) -> tuple[tomlkit.TOMLDocument, Path]:
    """Load modplan.toml as a tomlkit document, preserving formatting."""
    if root is None:
        root = _find_root()
    toml_path = root / CONFIG_NAME
    if not toml_path.exists():
        typer.secho(f"Error: {toml_path} not found.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    doc = tomlkit.parse(toml_path.read_text(encoding="utf-8"))
    return doc, toml_path


def _save_toml(doc: tomlkit.TOMLDocument, path: Path) -> None:
    """Write tomlkit document back, preserving formatting."""
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def _describe_target(tgt: dict) -> str:
    if "triple" in tgt:
        desc = str(tgt["triple"])
    else:
        desc = str(tgt.get("os", "?"))
        if tgt.get("env"):
            desc += f"-{tgt['env']}"
    if tgt.get("arch") and "@" not in desc:
        desc += f"@{tgt['arch']}"
    return desc


def _coerce(value: str) -> str | int | float | bool:
    """Coerce a CLI string to bool/int/float where it looks like one."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        with contextlib.suppress(ValueError):
            return float(value)
    return value


# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="Read and edit modplan.toml programmatically.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Examples:[/bold]
  modplan cfg list-targets                       List configured build targets
  modplan cfg show project.manifest              Read a config value
  modplan cfg add-target web --triple wasm32-unknown-unknown --flag webgl
  modplan cfg set project.format toml            Set a config value

[dim]Useful for scripting and automation. Supports dotted key paths
for nested TOML tables (e.g. 'targets.linux.triple').[/dim]""",
)


@app.command("list-targets")
def list_targets() -> None:
    """List all targets defined in modplan.toml."""
    doc, _ = _load_toml()
    targets = doc.get("targets", {})
    if not targets:
        typer.echo("No targets defined.")
        return
    for i, name in enumerate(targets.keys()):
        tgt = targets[name]
        flags = ", ".join(tgt.get("flags", [])) or "-"
        marker = "→" if i == 0 else " "
        typer.echo(f"  {marker} {name}  ({_describe_target(tgt)}, flags: {flags})")
    typer.secho("\n  → = default target", dim=True)


@app.command("show")
def show(
    key: str | None = typer.Argument(
        None, help="Dot-separated key to show, e.g. 'project.manifest'"
    ),
) -> None:
    """Show the current config, or a specific key."""
    doc, _ = _load_toml()

    if key is None:
        typer.echo(tomlkit.dumps(doc))
        return

    current = doc
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            typer.secho(f"Key '{key}' not found.", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    if isinstance(current, dict):
        typer.echo(tomlkit.dumps(current))
    else:
        typer.echo(str(current))


@app.command("add-target")
def add_target(
    name: str = typer.Argument(..., help="Target name (e.g. 'linux')."),
    triple: str = typer.Option(
        ..., "--triple", help="Target descriptor, e.g. 'linux-x11' or 'aarch64-linux-android'."
    ),
    flags: list[str] | None = typer.Option(
        None, "--flag", help="Extra flag requested for this target (repeatable)."
    ),
    no_default_flags: bool = typer.Option(
        False, "--no-default-flags", help="Do not request the facade's default flags."
    ),
) -> None:
    """Add a new [targets.<name>] section."""
    try:
        BuildTarget.parse(triple)
    except ValueError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    doc, toml_path = _load_toml()
    if "targets" not in doc:
        doc["targets"] = tomlkit.table(is_super_table=True)
    targets = doc["targets"]
    if name in targets:
        typer.secho(f"Error: Target '{name}' already exists.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    tbl = tomlkit.table()
    tbl.add("triple", triple)
    if flags:
        tbl.add("flags", list(flags))
    if no_default_flags:
        tbl.add("default-flags", False)
    targets[name] = tbl

    _save_toml(doc, toml_path)
    typer.secho(f"Added [targets.{name}] ({triple}) to {CONFIG_NAME}", fg=typer.colors.GREEN)


@app.command("remove-target")
def remove_target(
    name: str = typer.Argument(..., help="Target name to remove."),
) -> None:
    """Remove a target section from modplan.toml (idempotent)."""
    doc, toml_path = _load_toml()
    targets = doc.get("targets", {})
    if name not in targets:
        typer.secho(f"Target '{name}' not found (already removed).", fg=typer.colors.YELLOW)
        return

    del targets[name]
    _save_toml(doc, toml_path)
    typer.secho(f"Removed [targets.{name}] from {CONFIG_NAME}", fg=typer.colors.GREEN)


@app.command("set")
def set_value(
    key: str = typer.Argument(
        ..., help="Dot-separated key, e.g. 'project.format' or 'targets.linux.arch'."
    ),
    value: str = typer.Argument(..., help="Value to set."),
) -> None:
    """Set a scalar config key."""
    doc, toml_path = _load_toml()

    parts = key.split(".")
    current = doc
    for part in parts[:-1]:
        if part not in current:
            current[part] = tomlkit.table()
        current = current[part]

    parsed_value = _coerce(value)
    current[parts[-1]] = parsed_value
    _save_toml(doc, toml_path)
    typer.secho(f"Set {key} = {parsed_value!r}", fg=typer.colors.GREEN)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
