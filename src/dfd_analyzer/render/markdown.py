"""Render an analysis result as a Markdown report."""

from __future__ import annotations

from collections import Counter

from dfd_analyzer.models import DFDSourceData
from dfd_analyzer.render.mermaid import to_flowchart_text
from dfd_analyzer.render.themes import Theme


def render_markdown(data: DFDSourceData, name: str, theme: Theme | None = None,
                    notes: list[str] | None = None) -> str:
    """Produce a full Markdown report for one component file."""
    sections: list[str] = []
    all_nodes = data.all_nodes()
    roles = Counter(n.role.value for n in all_nodes)

    # ── Title ────────────────────────────────────────────────────────────
    sections.append(f"# Data Flow: {name}\n")

    # ── Summary box ──────────────────────────────────────────────────────
    summary_lines = [
        f"- **Nodes**: {len(all_nodes)}",
        f"- **Edges**: {len(data.edges)}",
        f"- **Inputs**: {roles.get('input', 0)}",
        f"- **Outputs**: {roles.get('output', 0)}",
        f"- **Stores**: {roles.get('store', 0)}",
        f"- **Processes**: {roles.get('process', 0)}",
        f"- **Subgraphs**: {len(data.all_subgraphs())}",
    ]
    sections.append("\n".join(summary_lines) + "\n")

    # ── Errors ───────────────────────────────────────────────────────────
    if data.errors:
        sections.append("## Errors\n")
        for err in data.errors:
            loc = f" (line {err.line}, column {err.column})" if err.line is not None else ""
            sections.append(f"- **{err.kind.value}**: {err.message}{loc}")
        sections.append("")

    # ── Nodes ────────────────────────────────────────────────────────────
    if all_nodes:
        sections.append("## Nodes\n")
        sections.append("| ID | Label | Role | Category | Location |")
        sections.append("|---|---|---|---|---|")
        for node in all_nodes:
            line = node.metadata.get("line")
            loc = f"`{line}:{node.metadata.get('column', 0)}`" if line else ""
            label = node.label.replace("|", "\\|")
            sections.append(
                f"| `{node.id}` | {label} | {node.role.value} | {node.category or ''} | {loc} |"
            )
        sections.append("")

    # ── Diagram ──────────────────────────────────────────────────────────
    sections.append("## Diagram\n")
    sections.append("```mermaid")
    sections.append(to_flowchart_text(data, theme))
    sections.append("```\n")

    # ── Analyzer notes ───────────────────────────────────────────────────
    if notes:
        sections.append("## Analyzer Notes\n")
        for note in notes:
            sections.append(f"- {note}")
        sections.append("")

    return "\n".join(sections)
