"""Shared helpers for render backends (mermaid, network, markdown)."""

from __future__ import annotations

import re
from enum import Enum

from dfd_analyzer.models import DFDNode, NodeRole

_ID_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")


class Shape(str, Enum):
    ROUNDED = "rounded"
    CYLINDER = "cylinder"
    SUBPROCESS = "subprocess"
    HEXAGON = "hexagon"
    RECTANGLE = "rectangle"


# Colour classes shared by every theme; a theme must define all of them.
STYLE_CLASSES = (
    "inputProp",
    "outputProp",
    "process",
    "dataStore",
    "contextData",
    "jsxElement",
    "exportedHandler",
    "external",
    "subgraph",
)


def sanitize_id(raw: str) -> str:
    """Restrict an id to ``[A-Za-z0-9_]``; both transformers must agree on this."""
    return _ID_UNSAFE_RE.sub("_", raw)


def escape_label(label: str) -> str:
    """Escape a label for use inside a double-quoted mermaid string."""
    return (
        label.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "#quot;")
        .replace("'", "#39;")
        .replace("\n", "<br/>")
    )


def shape_of(node: DFDNode) -> Shape:
    """Shape bucket for a node, decided by role then category."""
    role = node.role
    category = node.category
    if role is NodeRole.INPUT or role is NodeRole.OUTPUT:
        if category == "prop":
            return Shape.ROUNDED
        if category == "jsx-element":
            return Shape.HEXAGON
        return Shape.RECTANGLE
    if role is NodeRole.STORE:
        return Shape.CYLINDER
    if role is NodeRole.PROCESS:
        return Shape.SUBPROCESS
    if role is NodeRole.SUBGRAPH:
        return Shape.HEXAGON
    raise ValueError(f"Unhandled node role: {role!r}")


def style_class(node: DFDNode) -> str:
    """Colour class for a node; one of STYLE_CLASSES."""
    role = node.role
    category = node.category
    if category == "exported-handler":
        return "exportedHandler"
    if role is NodeRole.INPUT:
        return "inputProp" if category == "prop" else "external"
    if role is NodeRole.OUTPUT:
        if category == "jsx-element":
            return "jsxElement"
        return "outputProp" if category in ("prop", "event") else "external"
    if role is NodeRole.STORE:
        return "contextData" if category == "context" else "dataStore"
    if role is NodeRole.PROCESS:
        return "process"
    if role is NodeRole.SUBGRAPH:
        return "subgraph"
    raise ValueError(f"Unhandled node role: {role!r}")


def layout_level(node: DFDNode) -> int:
    """Column for hierarchical layouts: inputs left, rendered output right."""
    role = node.role
    category = node.category
    if role is NodeRole.INPUT:
        return 0
    if role is NodeRole.STORE:
        return 1
    if role is NodeRole.PROCESS:
        return 2
    if role is NodeRole.OUTPUT:
        if category == "prop" or category == "event":
            return 5
        return 3
    if role is NodeRole.SUBGRAPH:
        return 4
    raise ValueError(f"Unhandled node role: {role!r}")
