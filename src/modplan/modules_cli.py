"""modules_cli.py - List the modules declared in the manifest.

Usage::

    modplan modules
    modplan modules --group audio
    modplan modules --json
"""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from modplan.cli import TargetOption, error_exit, json_print, load_project
from modplan.registry import Module


def _gate_label(module: Module) -> str:
    return ", ".join(module.gates) if module.gates else "[dim]default[/]"


def _render_group(console: Console, group: str, modules: list[Module]) -> None:
    tbl = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    tbl.add_column("Module")
    tbl.add_column("Gated by")
    tbl.add_column("Slot", style="dim")
    tbl.add_column("Platform", style="dim")
    tbl.add_column("Implies", style="dim")

    for m in modules:
        tbl.add_row(
            m.name,
            _gate_label(m),
            m.slot or "",
            str(m.platform) if m.platform is not None else "",
            ", ".join(m.implies),
        )

    title = f"[bold]{group}[/]"
    subtitle = f"{len(modules)} module(s)"
    console.print(Panel(tbl, title=title, subtitle=subtitle, border_style="blue"))


app = typer.Typer(
    help="List modules in the registry.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Examples:[/bold]

modplan modules                        Tables grouped by subsystem

modplan modules --group rendering      One subsystem only

modplan modules --json                 Machine-readable JSON output""",
)


@app.callback(invoke_without_command=True)
def main(
    group: str | None = typer.Option(None, "--group", "-g", help="Only show this group"),
    target: str | None = TargetOption,
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
) -> None:
    """Print every registered module, grouped by subsystem."""
    _, session = load_project(target, json_mode=json_output)
    registry = session.registry

    groups = registry.groups()
    if group is not None:
        if group not in groups:
            error_exit(f"Unknown group '{group}'. Available: {groups}", json_mode=json_output)
        groups = [group]

    if json_output:
        json_print(
            {
                "facade": session.name,
                "default_flags": list(session.default_flags),
                "modules": [m.to_dict() for g in groups for m in registry.in_group(g)],
            }
        )
        return

    console = Console(stderr=True)
    console.print()
    for g in groups:
        _render_group(console, g, registry.in_group(g))
        console.print()


def main_entry() -> None:
    """Run the modules CLI app."""
    app()


if __name__ == "__main__":
    main_entry()
