"""Render a DFDSourceData as vis-network style node and edge dictionaries."""

from __future__ import annotations

import logging
from typing import Any

from dfd_analyzer.models import DFDEdge, DFDNode, DFDSourceData, DFDSubgraph, NodeRole
from dfd_analyzer.render._helpers import Shape, layout_level, sanitize_id, shape_of, style_class
from dfd_analyzer.render.themes import Theme, get_theme

log = logging.getLogger(__name__)

_VIS_SHAPES = {
    Shape.ROUNDED: "ellipse",
    Shape.CYLINDER: "database",
    Shape.SUBPROCESS: "box",
    Shape.HEXAGON: "hexagon",
    Shape.RECTANGLE: "box",
}

LONG_ARROW_LENGTH = 300


def to_network_object(data: DFDSourceData, theme: Theme | None = None) -> dict[str, list[dict[str, Any]]]:
    """Produce ``{"nodes": [...], "edges": [...]}`` for a hierarchical vis-network layout.

    Every subgraph also becomes a container node, so that edges pointing
    at a subgraph (branch guards, exported handlers) have an endpoint.
    Nodes inside a subgraph carry the innermost subgraph id as ``group``.
    """
    theme = theme or get_theme()
    nodes: list[dict[str, Any]] = []
    for node in data.nodes:
        nodes.append(_vis_node(node, theme, group=_top_level_group(node)))
    for root in data.all_subgraph_roots():
        _walk(root, None, theme, nodes)
    edges = [_vis_edge(edge, theme) for edge in data.edges]
    log.debug("Network: %d nodes, %d edges", len(nodes), len(edges))
    return {"nodes": nodes, "edges": edges}


def _top_level_group(node: DFDNode) -> str | None:
    if node.category == "prop":
        return "output-props" if node.role is NodeRole.OUTPUT else "input-props"
    return None


def _walk(sub: DFDSubgraph, parent: str | None, theme: Theme, out: list[dict[str, Any]]) -> None:
    container = DFDNode(
        id=sub.id,
        label=sub.label,
        role=NodeRole.SUBGRAPH,
        metadata={
            "category": "subgraph",
            "kind": sub.kind.value,
            "condition": sub.condition.expression if sub.condition else None,
        },
    )
    out.append(_vis_node(container, theme, group=parent))
    group = sanitize_id(sub.id)
    for element in sub.elements:
        if isinstance(element, DFDSubgraph):
            _walk(element, group, theme, out)
        else:
            out.append(_vis_node(element, theme, group=group))


def _vis_node(node: DFDNode, theme: Theme, group: str | None) -> dict[str, Any]:
    shape = shape_of(node)
    style = theme.style(style_class(node))
    vis: dict[str, Any] = {
        "id": sanitize_id(node.id),
        "label": node.label,
        "shape": _VIS_SHAPES[shape],
        "color": {"background": style.fill, "border": style.stroke},
        "font": {"size": theme.font_size, "color": style.font},
        "borderWidth": style.stroke_width,
        "level": layout_level(node),
        "metadata": {"role": node.role.value, **{k: v for k, v in node.metadata.items() if v is not None}},
    }
    if group is not None:
        vis["group"] = group
    if shape is Shape.SUBPROCESS:
        # vertical bars left and right, like a flowchart subroutine
        vis["shapeProperties"] = {"borderDashes": [2, 0, 2, 0]}
    elif shape is Shape.HEXAGON:
        vis["margin"] = 5
        if node.role is NodeRole.SUBGRAPH:
            vis["shapeProperties"] = {"borderDashes": [5, 5]}
    return vis


def _vis_edge(edge: DFDEdge, theme: Theme) -> dict[str, Any]:
    vis: dict[str, Any] = {
        "from": sanitize_id(edge.from_),
        "to": sanitize_id(edge.to),
        "arrows": "to",
        "color": {"color": theme.edge_color},
        "font": {"size": theme.font_size - 2, "color": theme.edge_color},
        "smooth": {"type": "cubicBezier"},
    }
    if edge.label:
        vis["label"] = edge.label
    if edge.is_cleanup:
        vis["dashes"] = True
    if edge.is_long_arrow:
        vis["length"] = LONG_ARROW_LENGTH
    return vis
