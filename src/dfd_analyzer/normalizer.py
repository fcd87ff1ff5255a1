"""Normalize flowchart text into canonical node/edge/subgraph sets and compare two of them.

Only structure survives normalization: comments, init directives,
``style`` / ``class`` / ``classDef`` lines, indentation, quote style and
HTML entities are all discarded or unified first. Node, edge and
subgraph ids are compared as written, so both sides must come from
transformers that sanitize ids the same way.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_COMMENT_RE = re.compile(r"%%.*$", re.MULTILINE)
_STYLE_LINE_RE = re.compile(r"^\s*(?:style|class|classDef|linkStyle)\s+\S.*$", re.MULTILINE)
_ANIMATION_RE = re.compile(r"^\s*\w+@\{\s*animate:.*\}\s*$", re.MULTILINE)
_SINGLE_QUOTED_RE = re.compile(r"'([^'\n]*)'")

_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", "#quot;"),
    ("&#39;", "'"),
    ("#39;", "'"),
    ("&amp;", "&"),
)

# legacy bracket shapes, most specific first; each captures (id, label)
_NODE_PATTERNS = (
    re.compile(r'(\w+)\s*\[\(\s*"([^"]*)"\s*\)\]'),       # [("label")]  cylinder
    re.compile(r'(\w+)\s*\[\[\s*"([^"]*)"\s*\]\]'),       # [["label"]]  subprocess
    re.compile(r'(\w+)\s*\(\(\s*"([^"]*)"\s*\)\)'),       # (("label"))  circle
    re.compile(r'(\w+)\s*\{\{\s*"([^"]*)"\s*\}\}'),       # {{"label"}}  hexagon
    re.compile(r'(\w+)\s*\[\s*"([^"]*)"\s*\]'),           # ["label"]
    re.compile(r'(\w+)\s*\(\s*"([^"]*)"\s*\)'),           # ("label")
    re.compile(r'(\w+)\s*\{\s*"([^"]*)"\s*\}'),           # {"label"}
    re.compile(r'(\w+)@\{\s*shape:\s*[\w-]+\s*,\s*label:\s*"([^"]*)"\s*\}'),
)

_EDGE_RE = re.compile(
    r'(\w+)\s+(?:\w+@)?(?:---->|-\.->|-->|==>|---|-\.-)'
    r'\s*(?:\|"([^"]*)"\||\|([^|"]*)\|)?\s*(\w+)'
)

_SUBGRAPH_RE = re.compile(r'subgraph\s+(\w+)\s*\[\s*"([^"]*)"\s*\]')


@dataclass
class NormalizedDiagram:
    nodes: set[str] = field(default_factory=set)
    edges: set[str] = field(default_factory=set)
    subgraphs: set[str] = field(default_factory=set)
    original_text: str = ""


@dataclass
class ComparisonResult:
    passed: bool
    missing_nodes: list[str] = field(default_factory=list)
    extra_nodes: list[str] = field(default_factory=list)
    missing_edges: list[str] = field(default_factory=list)
    extra_edges: list[str] = field(default_factory=list)
    missing_subgraphs: list[str] = field(default_factory=list)
    extra_subgraphs: list[str] = field(default_factory=list)


def canonical_text(
    text: str,
    *,
    ignore_comments: bool = True,
    ignore_styles: bool = True,
    ignore_quote_style: bool = True,
) -> str:
    """Apply the textual normalizations, line by line."""
    if ignore_comments:
        text = _COMMENT_RE.sub("", text)
    if ignore_styles:
        text = _STYLE_LINE_RE.sub("", text)
        text = _ANIMATION_RE.sub("", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(line for line in lines if line)
    if ignore_quote_style:
        text = _SINGLE_QUOTED_RE.sub(r'"\1"', text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def _extract_nodes(text: str) -> set[str]:
    nodes: set[str] = set()
    for line in text.splitlines():
        if line.startswith("subgraph "):
            continue
        for pattern in _NODE_PATTERNS:
            for m in pattern.finditer(line):
                nodes.add(f"node:{m.group(1)}:{m.group(2).strip()}")
    return nodes


def _extract_edges(text: str) -> set[str]:
    edges: set[str] = set()
    for m in _EDGE_RE.finditer(text):
        label = (m.group(2) if m.group(2) is not None else m.group(3) or "").strip()
        edges.add(f"edge:{m.group(1)}:{m.group(4)}:{label}")
    return edges


def _extract_subgraphs(text: str) -> set[str]:
    return {f"subgraph:{m.group(1)}:{m.group(2).strip()}" for m in _SUBGRAPH_RE.finditer(text)}


def normalize(text: str, **options: bool) -> NormalizedDiagram:
    """Reduce flowchart text to ``node:id:label``, ``edge:from:to:label`` and
    ``subgraph:id:label`` sets."""
    canonical = canonical_text(text, **options)
    return NormalizedDiagram(
        nodes=_extract_nodes(canonical),
        edges=_extract_edges(canonical),
        subgraphs=_extract_subgraphs(canonical),
        original_text=text,
    )


def compare(generated: NormalizedDiagram, reference: NormalizedDiagram) -> ComparisonResult:
    """Set difference in both directions; lists are sorted for stable reports."""
    result = ComparisonResult(
        passed=False,
        missing_nodes=sorted(reference.nodes - generated.nodes),
        extra_nodes=sorted(generated.nodes - reference.nodes),
        missing_edges=sorted(reference.edges - generated.edges),
        extra_edges=sorted(generated.edges - reference.edges),
        missing_subgraphs=sorted(reference.subgraphs - generated.subgraphs),
        extra_subgraphs=sorted(generated.subgraphs - reference.subgraphs),
    )
    result.passed = not any((
        result.missing_nodes, result.extra_nodes,
        result.missing_edges, result.extra_edges,
        result.missing_subgraphs, result.extra_subgraphs,
    ))
    return result


def compare_text(generated: str, reference: str) -> ComparisonResult:
    return compare(normalize(generated), normalize(reference))


def generate_diff_report(result: ComparisonResult) -> str:
    """Human-readable summary of a comparison."""
    if result.passed:
        return "PASS: diagrams match"

    lines = ["FAIL: diagrams differ", ""]
    sections = (
        ("Missing nodes (in reference but not in generated)", result.missing_nodes),
        ("Extra nodes (in generated but not in reference)", result.extra_nodes),
        ("Missing edges (in reference but not in generated)", result.missing_edges),
        ("Extra edges (in generated but not in reference)", result.extra_edges),
        ("Missing subgraphs (in reference but not in generated)", result.missing_subgraphs),
        ("Extra subgraphs (in generated but not in reference)", result.extra_subgraphs),
    )
    for title, items in sections:
        if not items:
            continue
        lines.append(f"{title}:")
        lines.extend(f"  - {item}" for item in items)
        lines.append("")
    return "\n".join(lines).rstrip("\n")
