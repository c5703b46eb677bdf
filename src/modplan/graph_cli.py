"""graph_cli.py - Flag implication graph visualization.

Renders the manifest's flag graph as Mermaid or DOT, highlighting default
flags, module flags and module-scoped features.

Usage:
    modplan graph                          # Mermaid output to stdout
    modplan graph --format dot             # DOT output
    modplan graph --format summary         # Text summary
    modplan graph --focus trace            # Only neighbours of 'trace'
    modplan graph --output graph.md        # Write to file
"""

import re
import sys
from typing import TypedDict

import typer

from modplan.cli import TargetOption, load_project, write_output
from modplan.session import Session


class NodeInfo(TypedDict):
    """Type-safe node info for flag graph nodes."""

    kind: str  # "default", "module", "feature", "flag"
    gates: int  # number of modules gated by this flag


def _sanitize_id(name: str) -> str:
    """Sanitize a flag name for use as a graph node ID."""
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)


def _flag_kind(flag: str, session: Session) -> str:
    if flag in session.default_flags:
        return "default"
    if "/" in flag:
        return "feature"
    if flag in session.registry:
        return "module"
    return "flag"


def build_graph(session: Session) -> tuple[dict[str, NodeInfo], list[tuple[str, str]]]:
    """Collect flag nodes and implication edges from *session*.

    Returns:
        nodes: {flag: {"kind": str, "gates": int}}
        edges: [(source_flag, implied_flag)]
    """
    nodes: dict[str, NodeInfo] = {}
    for flag in session.graph.topological_order():
        nodes[flag] = {
            "kind": _flag_kind(flag, session),
            "gates": len(session.registry.lookup(flag)),
        }
    return nodes, session.graph.edges()


def _focus_graph(
    nodes: dict[str, NodeInfo],
    edges: list[tuple[str, str]],
    focus: str,
    depth: int = 1,
) -> tuple[dict[str, NodeInfo], list[tuple[str, str]]]:
    """Filter graph to only show neighbours of the focus flag."""
    focus_lower = focus.lower()
    focus_name = None
    # Prefer exact match, then fall back to partial match
    for name in nodes:
        if name.lower() == focus_lower:
            focus_name = name
            break
    if not focus_name:
        for name in nodes:
            if focus_lower in name.lower():
                focus_name = name
                break
    if not focus_name:
        return {}, []

    # BFS in both directions up to depth
    visited = {focus_name}
    frontier = {focus_name}
    for _ in range(depth):
        next_frontier: set[str] = set()
        for src, dst in edges:
            if src in frontier and dst not in visited:
                next_frontier.add(dst)
                visited.add(dst)
            if dst in frontier and src not in visited:
                next_frontier.add(src)
                visited.add(src)
        frontier = next_frontier

    filtered_nodes = {k: v for k, v in nodes.items() if k in visited}
    filtered_edges = [(a, b) for a, b in edges if a in visited and b in visited]
    return filtered_nodes, filtered_edges


def render_mermaid(nodes: dict[str, NodeInfo], edges: list[tuple[str, str]]) -> str:
    """Render graph as Mermaid flowchart markup."""
    lines = ["graph LR"]

    lines.append("    classDef default_flag fill:#2ecc71,stroke:#27ae60,color:#fff")
    lines.append("    classDef module fill:#3498db,stroke:#2980b9,color:#fff")
    lines.append("    classDef feature fill:#f39c12,stroke:#e67e22,color:#fff")
    lines.append("    classDef flag fill:#95a5a6,stroke:#7f8c8d,color:#fff")
    lines.append("")

    style = {"default": "default_flag", "module": "module", "feature": "feature"}
    for name, info in nodes.items():
        label = f"{name} ({info['gates']})" if info["gates"] else name
        lines.append(f'    {_sanitize_id(name)}["{label}"]:::{style.get(info["kind"], "flag")}')

    lines.append("")

    for src, dst in edges:
        lines.append(f"    {_sanitize_id(src)} --> {_sanitize_id(dst)}")

    return "\n".join(lines)


def render_dot(nodes: dict[str, NodeInfo], edges: list[tuple[str, str]]) -> str:
    """Render graph as Graphviz DOT format."""
    lines = ["digraph flags {", "    rankdir=LR;", "    node [shape=box, style=filled];", ""]

    color_map = {
        "default": "#2ecc71",
        "module": "#3498db",
        "feature": "#f39c12",
        "flag": "#95a5a6",
    }

    for name, info in nodes.items():
        color = color_map.get(info["kind"], "#95a5a6")
        font_color = "black" if info["kind"] == "feature" else "white"
        lines.append(
            f'    {_sanitize_id(name)} [label="{name}", fillcolor="{color}", fontcolor="{font_color}"];'
        )

    lines.append("")

    for src, dst in edges:
        lines.append(f"    {_sanitize_id(src)} -> {_sanitize_id(dst)};")

    lines.append("}")
    return "\n".join(lines)


def render_summary(nodes: dict[str, NodeInfo], edges: list[tuple[str, str]]) -> str:
    """Render a text summary of the graph statistics."""
    by_kind: dict[str, int] = {}
    for info in nodes.values():
        by_kind[info["kind"]] = by_kind.get(info["kind"], 0) + 1

    lines = [f"Flags: {len(nodes)}", f"Implications: {len(edges)}", "By kind:"]
    for kind in ("default", "module", "feature", "flag"):
        if by_kind.get(kind):
            lines.append(f"  {kind}: {by_kind[kind]}")

    sources = {e[0] for e in edges}
    targets = {e[1] for e in edges}

    # Flags that neither gate a module nor imply anything have no effect.
    inert = [n for n, info in nodes.items() if info["gates"] == 0 and n not in sources]
    if inert:
        lines.append(f"\nFlags with no effect (gate nothing, imply nothing): {len(inert)}")
        for name in sorted(inert)[:10]:
            lines.append(f"  - {name}")
        if len(inert) > 10:
            lines.append(f"  ... and {len(inert) - 10} more")

    fan_out: dict[str, int] = {}
    for src, _ in edges:
        fan_out[src] = fan_out.get(src, 0) + 1
    roots = [n for n in sources if n not in targets]
    if roots:
        lines.append("\nBroadest top-level flags (most direct implications):")
        for name in sorted(roots, key=lambda n: (-fan_out[n], n))[:10]:
            lines.append(f"  - {name}: implies {fan_out[name]}")

    return "\n".join(lines)


_EPILOG = """\
[bold]Examples:[/bold]
  modplan graph                                 Mermaid diagram of all flags
  modplan graph --format dot                    Graphviz DOT format
  modplan graph --format summary                Text summary only
  modplan graph --focus trace --depth 2         Neighbourhood around one flag
  modplan graph -o flags.md                     Write output to file

[bold]Output formats:[/bold]
  mermaid    Mermaid flowchart (default; paste into docs)
  dot        Graphviz DOT (pipe to 'dot -Tpng')
  summary    Text breakdown by flag kind

[dim]Node labels show how many modules each flag gates.[/dim]"""

app = typer.Typer(
    help="Render the feature-flag implication graph.",
    rich_markup_mode="rich",
    epilog=_EPILOG,
)


@app.callback(invoke_without_command=True)
def main(
    fmt: str = typer.Option(
        "mermaid", "--format", "-f", help="Output format: mermaid, dot, summary"
    ),
    focus: str | None = typer.Option(
        None, "--focus", help="Focus on a specific flag and its neighbours"
    ),
    depth: int = typer.Option(1, "--depth", help="Neighbourhood depth for --focus"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    target: str | None = TargetOption,
) -> None:
    """Render the flag implication graph of the project manifest."""
    _, session = load_project(target)

    nodes, edges = build_graph(session)

    if not nodes:
        print("No flags declared.", file=sys.stderr)
        raise typer.Exit(code=1)

    if focus:
        nodes, edges = _focus_graph(nodes, edges, focus, depth)
        if not nodes:
            print(f"No flag matching '{focus}' found.", file=sys.stderr)
            raise typer.Exit(code=1)

    if fmt == "mermaid":
        result = render_mermaid(nodes, edges)
    elif fmt == "dot":
        result = render_dot(nodes, edges)
    elif fmt == "summary":
        result = render_summary(nodes, edges)
    else:
        print(f"Unknown format: {fmt}. Use mermaid, dot, or summary.", file=sys.stderr)
        raise typer.Exit(code=1)

    write_output(result, output)


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
