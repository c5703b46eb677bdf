"""main.py - Umbrella CLI entry point for modplan.

Single-command modules are registered as flat commands; ``cfg`` is the only
multi-command module and is mounted as a sub-app.
"""

import typer

from modplan import cfg, doctor, graph_cli, modules_cli, plan_cli, resolve_cli

app = typer.Typer(
    help="Resolve feature flags into the module set of a composed facade.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Typical workflow:[/bold]
  modplan doctor               Validate config, manifest and every target
  modplan modules              Browse the module registry
  modplan graph                Visualise flag implications
  modplan resolve trace        See which modules a request selects
  modplan plan -o plan.json    Emit the build plan for the compile step

[dim]All subcommands read project settings from modplan.toml.
Run 'modplan <cmd> --help' for details.[/dim]""",
)

# Flat commands: (name, module, help).  Each module exposes `main` and `app`.
_COMMANDS = [
    ("resolve", resolve_cli, "Resolve requested flags into a module set."),
    ("plan", plan_cli, "Emit a deterministic build plan."),
    ("graph", graph_cli, "Render the feature-flag implication graph."),
    ("modules", modules_cli, "List modules in the registry."),
    ("doctor", doctor, "Diagnostic checks for project health."),
]

for _name, _mod, _help in _COMMANDS:
    _epilog = getattr(_mod, "_EPILOG", None) or _mod.app.info.epilog
    app.command(name=_name, help=_help, epilog=_epilog if isinstance(_epilog, str) else None)(
        _mod.main
    )

app.add_typer(cfg.app, name="cfg", help="Read and edit modplan.toml programmatically.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
