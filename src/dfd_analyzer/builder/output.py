"""Rendered-output subgraphs.

Elements are flattened into their enclosing subgraph, each listed before
its descendants, and only elements carrying references become nodes.
Branches become nested conditional / loop / await subgraphs. A branch left
without content keeps its top element so that ``{loading && <Spinner />}``
still shows what is rendered; other empty subgraphs are dropped.
"""

from __future__ import annotations

import logging

from dfd_analyzer.builder.edges import connect_element, reference_label
from dfd_analyzer.builder.graph import GraphAccumulator
from dfd_analyzer.diagnostics import Diagnostics
from dfd_analyzer.ir.facts import OutputBranch, OutputElement, OutputItem, RenderedOutput
from dfd_analyzer.models import DFDNode, DFDSubgraph, NodeRole, SubgraphCondition, SubgraphKind

log = logging.getLogger(__name__)

_BRANCH_KINDS = {
    "conditional": SubgraphKind.CONDITIONAL,
    "loop": SubgraphKind.LOOP,
    "await": SubgraphKind.AWAIT,
}

Element = DFDNode | DFDSubgraph


def merge_nested_loops(branch: OutputBranch) -> OutputBranch:
    """``rows.map(r => r.cells.map(...))`` with nothing in between is one loop."""
    while branch.kind == "loop" and len(branch.children) == 1 \
            and isinstance(branch.children[0], OutputBranch) \
            and branch.children[0].kind == "loop":
        inner = branch.children[0]
        branch = OutputBranch(
            kind="loop",
            expression=branch.expression,
            refs=branch.refs + [r for r in inner.refs if r not in branch.refs],
            children=inner.children,
        )
    return branch


class OutputSubgraphBuilder:
    def __init__(
        self,
        graph: GraphAccumulator,
        diagnostics: Diagnostics,
        exported_by_ref: dict[str, str] | None = None,
    ):
        self.graph = graph
        self.diagnostics = diagnostics
        self.exported_by_ref = exported_by_ref or {}

    def build(self, output: RenderedOutput, label: str) -> DFDSubgraph | None:
        if output.is_empty():
            return None
        root = DFDSubgraph(
            id=self.graph.new_id("subgraph"),
            label=label,
            kind=SubgraphKind.RENDERED_OUTPUT,
        )
        root.elements = self._items(output.children)
        log.debug("Rendered output subgraph: %d elements", len(root.elements))
        return root

    def _items(self, items: list[OutputItem]) -> list[Element]:
        out: list[Element] = []
        for item in items:
            if isinstance(item, OutputElement):
                out.extend(self._element(item))
            else:
                sub = self._branch(item)
                if sub is not None:
                    out.append(sub)
        return out

    def _element(self, element: OutputElement, *, force: bool = False) -> list[Element]:
        out: list[Element] = []
        if element.refs or force:
            out.append(self._element_node(element))
        out.extend(self._items(element.children))
        return out

    def _element_node(self, element: OutputElement) -> DFDNode:
        node = self.graph.add_node("jsx_element", element.tag, NodeRole.OUTPUT, {
            "category": "jsx-element",
            "tag": element.tag,
            "line": element.line,
            "column": element.column,
        }, top_level=False)
        for ref in element.refs:
            if ref.kind == "ref" and ref.name in self.exported_by_ref:
                self.graph.add_edge(node.id, self.exported_by_ref[ref.name], ref.name,
                                    is_long_arrow=True)
                continue
            if not connect_element(self.graph, node.id, ref):
                self.diagnostics.note("builder", f"<{element.tag}> uses unbound name '{ref.name}'")
        return node

    def _branch(self, branch: OutputBranch) -> DFDSubgraph | None:
        branch = merge_nested_loops(branch)
        sub_id = self.graph.new_id("subgraph")
        elements = self._items(branch.children)
        if not elements and branch.children and isinstance(branch.children[0], OutputElement):
            elements = self._element(branch.children[0], force=True)
        if not elements:
            return None
        sub = DFDSubgraph(
            id=sub_id,
            label=branch.label,
            kind=_BRANCH_KINDS[branch.kind],
            elements=elements,
            condition=SubgraphCondition(expression=branch.expression),
        )
        for ref in branch.refs:
            binding = self.graph.binding(ref.name)
            if binding is None:
                continue
            self.graph.add_edge(binding.node_id, sub.id, reference_label(binding, ref))
        return sub
