"""resolve_cli.py - Resolve a flag request and show the selected modules.

Usage::

    modplan resolve                         # default flags, default target
    modplan resolve trace wayland -t linux  # extra flags for a named target
    modplan resolve png --no-default-flags --triple windows
    modplan resolve --explain               # show which flag pulled each module in
    modplan resolve --json
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from modplan.cli import (
    TargetOption,
    TripleOption,
    error_exit,
    json_print,
    load_project,
    pick_target,
)
from modplan.errors import ConflictError, ResolutionError
from modplan.resolver import ResolvedSet
from modplan.session import Session


def _render(console: Console, resolved: ResolvedSet, session: Session, explain: bool) -> None:
    tbl = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    tbl.add_column("Module")
    tbl.add_column("Group", style="dim")
    tbl.add_column("Features")
    if explain:
        tbl.add_column("Activated by")

    for module in resolved.modules:
        row = [module.name, module.group, ", ".join(resolved.features_of(module)) or "-"]
        if explain:
            gates = resolved.activated_by[module.name]
            row.append(", ".join(gates) if gates else "[dim]default[/]")
        tbl.add_row(*row)

    console.print(
        f"[bold]{session.name or 'facade'}[/] for [cyan]{resolved.target}[/]: "
        f"{len(resolved.modules)} module(s), {len(resolved.flags)} flag(s)",
        highlight=False,
    )
    console.print(tbl)

    if explain:
        console.print()
        for flag in sorted(resolved.flags - resolved.requested):
            origin = next(
                (
                    path
                    for req in sorted(resolved.requested)
                    if (path := session.graph.path(req, flag)) is not None
                ),
                None,
            )
            how = " -> ".join(origin) if origin else "implied by a selected module"
            console.print(f"  [dim]{flag}[/]: {how}", highlight=False)


_EPILOG = """\
[bold]Examples:[/bold]

modplan resolve                                Default flags for the default target

modplan resolve trace -t linux                 Add 'trace' for target 'linux'

modplan resolve png --no-default-flags         Only what 'png' needs

modplan resolve --triple windows --explain     Why each module was selected

[dim]Flags and targets are read from modplan.toml and the manifest it names.[/dim]"""

app = typer.Typer(
    help="Resolve requested feature flags into a module set.",
    rich_markup_mode="rich",
)


@app.command(epilog=_EPILOG)
def main(
    flags: list[str] | None = typer.Argument(None, help="Flags to request."),
    target: str | None = TargetOption,
    triple: str | None = TripleOption,
    no_default_flags: bool = typer.Option(
        False, "--no-default-flags", help="Do not request the facade's default flags."
    ),
    explain: bool = typer.Option(False, "--explain", help="Show why each module is included."),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
) -> None:
    """Resolve flags and print the selected modules."""
    cfg, session = load_project(target, json_mode=json_output)
    build_target = pick_target(cfg, triple, json_mode=json_output)
    use_defaults = cfg.use_default_flags and not no_default_flags
    requested = session.requested_flags([*cfg.target_flags, *(flags or [])], use_defaults)

    try:
        resolved = session.resolve(requested, build_target)
    except ConflictError as exc:
        if json_output:
            json_print(
                {"error": str(exc), "conflicts": [c.to_dict() for c in exc.conflicts]}
            )
            raise typer.Exit(code=1) from exc
        error_exit(str(exc))
    except ResolutionError as exc:
        error_exit(str(exc), json_mode=json_output)

    if json_output:
        json_print(resolved.to_dict())
        return

    _render(Console(stderr=True), resolved, session, explain)


def main_entry() -> None:
    """Run the resolve CLI app."""
    app()


if __name__ == "__main__":
    main_entry()
