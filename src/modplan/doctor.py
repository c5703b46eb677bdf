"""doctor.py – Diagnostic command for modplan project health.

Validates the whole declaration set in a single command: config file,
manifest location, manifest contents (duplicate modules, cycles, unknown
flags, malformed platform expressions) and a default resolution for every
configured target.  Prints a checklist with actionable fix suggestions.

Usage::

    modplan doctor
    modplan doctor --json
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any

import typer

from modplan.cli import get_config, json_print
from modplan.config import ProjectConfig, load_config
from modplan.errors import ConfigurationError, ModplanError, ResolutionError
from modplan.manifest import load_manifest
from modplan.session import Session

# ---------------------------------------------------------------------------
# Check result data
# ---------------------------------------------------------------------------

_PASS = "pass"
_FAIL = "fail"
_WARN = "warn"


@dataclass
class CheckResult:
    """Result of a single diagnostic check."""

    name: str
    status: str  # "pass", "fail", "warn"
    message: str
    fix: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize to a plain dict for JSON output."""
        d: dict[str, str] = {
            "name": self.name,
            "status": self.status,
            "message": self.message,
        }
        if self.fix:
            d["fix"] = self.fix
        return d


@dataclass
class DoctorReport:
    """Aggregated results from all diagnostic checks."""

    project: str = ""
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True if no checks failed."""
        return all(c.status != _FAIL for c in self.checks)

    @property
    def pass_count(self) -> int:
        return sum(1 for c in self.checks if c.status == _PASS)

    @property
    def fail_count(self) -> int:
        return sum(1 for c in self.checks if c.status == _FAIL)

    @property
    def warn_count(self) -> int:
        return sum(1 for c in self.checks if c.status == _WARN)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            "project": self.project,
            "passed": self.passed,
            "summary": {
                "pass": self.pass_count,
                "fail": self.fail_count,
                "warn": self.warn_count,
            },
            "checks": [c.to_dict() for c in self.checks],
        }


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def check_config_parse(target: str | None = None) -> tuple[CheckResult, ProjectConfig | None]:
    """Check that modplan.toml exists and parses without errors."""
    try:
        cfg = get_config(target=target)
    except FileNotFoundError as exc:
        return (
            CheckResult(
                name="modplan.toml",
                status=_FAIL,
                message=str(exc),
                fix="Create modplan.toml with a [project] table and at least one [targets.<name>].",
            ),
            None,
        )
    except (KeyError, ValueError) as exc:
        return (
            CheckResult(name="modplan.toml", status=_FAIL, message=f"Invalid config: {exc}"),
            None,
        )
    return (
        CheckResult(
            name="modplan.toml",
            status=_PASS,
            message=f"Parsed successfully ({len(cfg.all_targets)} target(s))",
        ),
        cfg,
    )


def check_manifest(cfg: ProjectConfig) -> tuple[CheckResult, Session | None]:
    """Check that the manifest exists and builds a valid session."""
    path = cfg.manifest_path
    if not path.exists():
        return (
            CheckResult(
                name="Manifest",
                status=_FAIL,
                message=f"Not found: {path}",
                fix="Set [project] manifest in modplan.toml or create the file.",
            ),
            None,
        )
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            session = load_manifest(path)
        except (ConfigurationError, ResolutionError) as exc:
            return (
                CheckResult(
                    name="Manifest",
                    status=_FAIL,
                    message=f"{type(exc).__name__}: {exc}",
                    fix="Fix the declaration named above; no plan can be produced until then.",
                ),
                None,
            )
    msg = (
        f"{len(session.registry)} module(s), {len(session.graph)} flag(s), "
        f"{len(session.graph.edges())} implication(s)"
    )
    if caught:
        return (
            CheckResult(
                name="Manifest",
                status=_WARN,
                message=f"{msg}; {'; '.join(str(w.message) for w in caught)}",
            ),
            session,
        )
    return CheckResult(name="Manifest", status=_PASS, message=msg), session


def check_target(cfg: ProjectConfig, session: Session) -> CheckResult:
    """Check that the configured flags resolve for *cfg*'s target."""
    name = f"Target {cfg.target_name} ({cfg.build_target})"
    requested = session.requested_flags(cfg.target_flags, cfg.use_default_flags)
    try:
        resolved = session.resolve(requested, cfg.build_target)
    except ModplanError as exc:
        return CheckResult(
            name=name,
            status=_FAIL,
            message=f"{type(exc).__name__}: {exc}",
            fix="Adjust the target's flags or the module platform constraints.",
        )
    return CheckResult(
        name=name,
        status=_PASS,
        message=f"{len(resolved.modules)} module(s) from {len(requested)} requested flag(s)",
    )


# ---------------------------------------------------------------------------
# Main diagnostic runner
# ---------------------------------------------------------------------------


def run_doctor(target: str | None = None) -> DoctorReport:
    """Run all diagnostic checks and return a report."""
    report = DoctorReport()

    # 1. Config parse
    config_result, cfg = check_config_parse(target)
    report.checks.append(config_result)
    if cfg is None:
        return report
    report.project = cfg.project_name

    # 2. Manifest
    manifest_result, session = check_manifest(cfg)
    report.checks.append(manifest_result)
    if session is None:
        return report

    # 3. One resolution per target
    names = [target] if target is not None else cfg.all_targets
    for tgt_name in names:
        try:
            tgt_cfg = cfg if tgt_name == cfg.target_name else load_config(cfg.root, tgt_name)
        except (KeyError, ValueError) as exc:
            report.checks.append(
                CheckResult(
                    name=f"Target {tgt_name}",
                    status=_FAIL,
                    message=f"Invalid target: {exc.args[0] if exc.args else exc}",
                    fix=f"Fix [targets.{tgt_name}] in modplan.toml.",
                )
            )
            continue
        report.checks.append(check_target(tgt_cfg, session))

    return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

_EPILOG = """\
[bold]Example:[/bold]

modplan doctor                    Check every target

modplan doctor --target linux     Check one target

modplan doctor --json             Machine-readable output

[dim]Validates: modplan.toml, the manifest (duplicates, cycles, unknown flags,
platform expressions) and a default resolution per target.[/dim]"""

_STATUS_ICONS = {
    _PASS: "✅",
    _FAIL: "❌",
    _WARN: "⚠️",
}

app = typer.Typer(
    help="Diagnostic checks for modplan project health.",
    rich_markup_mode="rich",
    epilog=_EPILOG,
)


@app.callback(invoke_without_command=True)
def main(
    target: str | None = typer.Option(
        None, "--target", "-t", help="Only check this target (default: all targets)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
) -> None:
    """Run diagnostic checks on the modplan project."""
    report = run_doctor(target=target)

    if json_output:
        json_print(report.to_dict())
    else:
        print(f"\nModplan Doctor — project: {report.project or '(unknown)'}")
        print("=" * 60)

        for check in report.checks:
            icon = _STATUS_ICONS.get(check.status, "?")
            print(f"  {icon}  {check.name}: {check.message}")
            if check.fix:
                print(f"       Fix: {check.fix}")

        print("=" * 60)
        parts = []
        if report.pass_count:
            parts.append(f"{report.pass_count} passed")
        if report.fail_count:
            parts.append(f"{report.fail_count} failed")
        if report.warn_count:
            parts.append(f"{report.warn_count} warnings")
        print(f"  {', '.join(parts)}")

        if report.passed:
            print("\n  Declarations look healthy!\n")
        else:
            print("\n  Issues found. Fix the failures above and re-run.\n")

    if not report.passed:
        raise typer.Exit(code=1)


def main_entry() -> None:
    """Run the Typer CLI application."""
    app()


if __name__ == "__main__":
    main_entry()
