"""plan_cli.py - Emit build plans for the external compile/link step.

Usage::

    modplan plan                            # default target, JSON to stdout
    modplan plan trace -o build/plan.json
    modplan plan --format toml
    modplan plan --all-targets              # every configured target, resolved in parallel
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer

from modplan.cli import (
    TargetOption,
    TripleOption,
    error_exit,
    load_project,
    pick_target,
    write_output,
)
from modplan.config import ProjectConfig, load_config
from modplan.errors import ResolutionError
from modplan.plan import BuildPlan, emit
from modplan.session import Session


def plan_all_targets(
    cfg: ProjectConfig,
    session: Session,
    flags: list[str],
    use_defaults: bool,
    jobs: int | None = None,
) -> dict[str, BuildPlan | ResolutionError]:
    """Resolve every configured target concurrently.

    Returns ``{target_name: BuildPlan | ResolutionError}`` in config order.
    """
    names = list(cfg.all_targets)
    target_cfgs = [
        cfg if name == cfg.target_name else load_config(root=cfg.root, target=name)
        for name in names
    ]
    requests = [
        (
            session.requested_flags(
                [*tcfg.target_flags, *flags], use_defaults and tcfg.use_default_flags
            ),
            tcfg.build_target,
        )
        for tcfg in target_cfgs
    ]
    results: dict[str, BuildPlan | ResolutionError] = {}
    for name, outcome in zip(names, session.resolve_many(requests, max_workers=jobs)):
        if outcome.resolved is not None:
            results[name] = emit(outcome.resolved)
        elif outcome.error is not None:
            results[name] = outcome.error
    return results


_EPILOG = """\
[bold]Examples:[/bold]

modplan plan                                   JSON plan for the default target

modplan plan trace -t linux -o plan.json       Write the plan to a file

modplan plan --format toml                     TOML instead of JSON

modplan plan --all-targets                     One plan per configured target

[bold]Plan contents:[/bold]

target     Canonical build target descriptor
flags      Final closed set of active flags (sorted)
modules    Selected modules in registration order, with active
           module features and compile-time params

[dim]Output path and format default to [project] output / format in modplan.toml.[/dim]"""

app = typer.Typer(
    help="Emit a deterministic build plan.",
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
    all_targets: bool = typer.Option(
        False, "--all-targets", help="Emit one plan per configured target."
    ),
    fmt: str | None = typer.Option(None, "--format", "-f", help="Output format: json, toml"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    jobs: int | None = typer.Option(None, "--jobs", "-j", help="Worker threads for --all-targets"),
) -> None:
    """Resolve flags and emit the build plan."""
    cfg, session = load_project(target)
    fmt = fmt or cfg.output_format
    if fmt not in ("json", "toml"):
        error_exit(f"Unknown format: {fmt}. Use json or toml.")
    if output is None and cfg.output_path is not None:
        output = str(cfg.output_path)
    use_defaults = not no_default_flags

    if all_targets:
        if triple is not None:
            error_exit("--triple cannot be combined with --all-targets")
        try:
            results = plan_all_targets(cfg, session, flags or [], use_defaults, jobs)
        except (FileNotFoundError, KeyError) as exc:
            error_exit(str(exc))
        plans = {name: r for name, r in results.items() if isinstance(r, BuildPlan)}
        for name, r in results.items():
            if isinstance(r, ResolutionError):
                print(f"{name}: {r}", file=sys.stderr)
        if len(plans) != len(results):
            raise typer.Exit(code=1)
        if fmt == "json":
            text = json.dumps({name: plan.to_dict() for name, plan in plans.items()}, indent=2)
            write_output(text, output)
            return
        # TOML: one document per target, written side by side.
        for name, plan in plans.items():
            dest = None
            if output is not None:
                dest = f"{Path(output).with_suffix('')}.{name}.toml"
            write_output(plan.to_toml(), dest)
        return

    build_target = pick_target(cfg, triple)
    requested = session.requested_flags(
        [*cfg.target_flags, *(flags or [])], use_defaults and cfg.use_default_flags
    )
    try:
        plan = session.plan(requested, build_target)
    except ResolutionError as exc:
        error_exit(str(exc))

    write_output(plan.serialize(fmt), output)


def main_entry() -> None:
    """Run the plan CLI app."""
    app()


if __name__ == "__main__":
    main_entry()
