"""Render a DFDSourceData as mermaid flowchart text."""

from __future__ import annotations

import json
import logging

from dfd_analyzer.models import DFDEdge, DFDNode, DFDSourceData, DFDSubgraph
from dfd_analyzer.render._helpers import (
    STYLE_CLASSES,
    Shape,
    escape_label,
    sanitize_id,
    shape_of,
    style_class,
)
from dfd_analyzer.render.themes import Theme, get_theme

log = logging.getLogger(__name__)

EMPTY_MESSAGE = "No data flow detected in this component"

_INDENT = "  "


def to_flowchart_text(data: DFDSourceData, theme: Theme | None = None) -> str:
    """Produce flowchart text; identical (data, theme) pairs give identical text."""
    theme = theme or get_theme()
    if not data.all_nodes():
        return _empty_diagram(theme)

    lines: list[str] = [_init_directive(theme), "flowchart TB"]
    styled: list[DFDNode] = []

    input_props = [n for n in data.nodes if n.category == "prop" and style_class(n) == "inputProp"]
    output_props = [n for n in data.nodes if n.category == "prop" and style_class(n) == "outputProp"]
    grouped = {n.id for n in input_props} | {n.id for n in output_props}
    others = [n for n in data.nodes if n.id not in grouped]

    # ── Nodes ────────────────────────────────────────────────────────────
    if input_props:
        lines.extend(_group("InputProps", "Input Props", input_props, _INDENT))
        styled.extend(input_props)
    for node in others:
        lines.append(_INDENT + _node_line(node))
        styled.append(node)
    for root in data.all_subgraph_roots():
        lines.extend(_subgraph_lines(root, _INDENT, styled))
    if output_props:
        lines.extend(_group("OutputProps", "Output Props", output_props, _INDENT))
        styled.extend(output_props)

    # ── Edges ────────────────────────────────────────────────────────────
    for index, edge in enumerate(data.edges, start=1):
        lines.extend(_edge_lines(edge, f"e{index}"))

    # ── Styling ──────────────────────────────────────────────────────────
    lines.append("")
    lines.append(f"{_INDENT}%% Styling")
    for name in STYLE_CLASSES:
        style = theme.style(name)
        lines.append(
            f"{_INDENT}classDef {name} fill:{style.fill},stroke:{style.stroke},"
            f"stroke-width:{style.stroke_width}px,color:{style.font}"
        )
    for node in styled:
        lines.append(f"{_INDENT}class {sanitize_id(node.id)} {style_class(node)}")

    log.debug("Mermaid: %d lines for %d nodes", len(lines), len(styled))
    return "\n".join(lines)


def _empty_diagram(theme: Theme) -> str:
    style = theme.style("external")
    return "\n".join([
        "flowchart LR",
        f'{_INDENT}message["{EMPTY_MESSAGE}"]',
        f"{_INDENT}style message fill:{style.fill},stroke:{style.stroke},stroke-width:2px",
    ])


def _init_directive(theme: Theme) -> str:
    config = {
        "theme": "base",
        "themeVariables": theme.variables,
        "flowchart": {"curve": "basis", "padding": 20},
    }
    return f"%%{{init: {json.dumps(config, separators=(', ', ': '))}}}%%"


def _group(group_id: str, label: str, nodes: list[DFDNode], indent: str) -> list[str]:
    lines = [f'{indent}subgraph {group_id}["{label}"]', f"{indent}{_INDENT}direction TB"]
    lines.extend(indent + _INDENT + _node_line(n) for n in nodes)
    lines.append(f"{indent}end")
    return lines


def _subgraph_lines(sub: DFDSubgraph, indent: str, styled: list[DFDNode]) -> list[str]:
    lines = [
        f'{indent}subgraph {sanitize_id(sub.id)}["{escape_label(sub.label)}"]',
        f"{indent}{_INDENT}direction TB",
    ]
    for element in sub.elements:
        if isinstance(element, DFDSubgraph):
            lines.extend(_subgraph_lines(element, indent + _INDENT, styled))
        else:
            lines.append(indent + _INDENT + _node_line(element))
            styled.append(element)
    lines.append(f"{indent}end")
    return lines


def _node_line(node: DFDNode) -> str:
    node_id = sanitize_id(node.id)
    shape = shape_of(node)
    if shape is Shape.HEXAGON:
        text = node.label
        if node.category == "jsx-element" and node.label != "text":
            text = f"<{node.label}>"
        return f'{node_id}@{{ shape: hex, label: "{escape_label(text)}" }}'
    label = escape_label(node.label)
    if shape is Shape.ROUNDED:
        return f'{node_id}("{label}")'
    if shape is Shape.CYLINDER:
        return f'{node_id}[("{label}")]'
    if shape is Shape.SUBPROCESS:
        return f'{node_id}[["{label}"]]'
    return f'{node_id}["{label}"]'


def _edge_lines(edge: DFDEdge, edge_id: str) -> list[str]:
    if edge.is_cleanup:
        arrow = "-.->"
    elif edge.is_long_arrow:
        arrow = "---->"
    else:
        arrow = "-->"
    from_id = sanitize_id(edge.from_)
    to_id = sanitize_id(edge.to)
    if edge.label:
        line = f'{_INDENT}{from_id} {edge_id}@{arrow}|"{escape_label(edge.label)}"| {to_id}'
    else:
        line = f"{_INDENT}{from_id} {edge_id}@{arrow} {to_id}"
    return [line, f"{_INDENT}{edge_id}@{{ animate: true }}"]
