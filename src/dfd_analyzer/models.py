"""Pydantic models for the DFD JSON contract shared with external consumers."""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NodeRole(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    PROCESS = "process"
    STORE = "store"
    SUBGRAPH = "subgraph"


class SubgraphKind(str, Enum):
    RENDERED_OUTPUT = "rendered-output"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    AWAIT = "await"
    EXPORTED_HANDLERS = "exported-handlers"


class ErrorKind(str, Enum):
    SYNTAX = "syntax"
    COMPONENT_NOT_FOUND = "component-not-found"
    TIMEOUT = "timeout"


class _ContractModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ── Errors ──────────────────────────────────────────────────────────────────

class ParseError(_ContractModel):
    message: str
    line: int | None = None
    column: int | None = None
    kind: ErrorKind = ErrorKind.SYNTAX


# ── Graph ───────────────────────────────────────────────────────────────────

class DFDNode(_ContractModel):
    id: str
    label: str
    role: NodeRole
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def category(self) -> str | None:
        return self.metadata.get("category")


class DFDEdge(_ContractModel):
    from_: str = Field(alias="from")
    to: str
    label: str | None = None
    is_cleanup: bool = False
    is_long_arrow: bool = False


class SubgraphCondition(_ContractModel):
    expression: str


class DFDSubgraph(_ContractModel):
    id: str
    label: str
    kind: SubgraphKind
    elements: list[Union[DFDNode, DFDSubgraph]] = Field(default_factory=list)
    condition: SubgraphCondition | None = None

    def iter_nodes(self):
        """Yield every node in this subgraph tree, depth first."""
        for element in self.elements:
            if isinstance(element, DFDSubgraph):
                yield from element.iter_nodes()
            else:
                yield element

    def iter_subgraphs(self):
        """Yield this subgraph and all nested subgraphs, depth first."""
        yield self
        for element in self.elements:
            if isinstance(element, DFDSubgraph):
                yield from element.iter_subgraphs()


class DFDSourceData(_ContractModel):
    """Top-level artifact of one analysis run."""

    nodes: list[DFDNode] = Field(default_factory=list)
    edges: list[DFDEdge] = Field(default_factory=list)
    root_subgraph: DFDSubgraph | None = None
    subgraphs: list[DFDSubgraph] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)

    def all_subgraph_roots(self) -> list[DFDSubgraph]:
        roots = [self.root_subgraph] if self.root_subgraph else []
        return roots + list(self.subgraphs)

    def all_nodes(self) -> list[DFDNode]:
        """Top-level nodes plus every node living inside a subgraph tree."""
        found = list(self.nodes)
        for root in self.all_subgraph_roots():
            found.extend(root.iter_nodes())
        return found

    def all_subgraphs(self) -> list[DFDSubgraph]:
        found: list[DFDSubgraph] = []
        for root in self.all_subgraph_roots():
            found.extend(root.iter_subgraphs())
        return found

    def endpoint_ids(self) -> set[str]:
        """Ids an edge may legally reference."""
        ids = {n.id for n in self.all_nodes()}
        ids.update(s.id for s in self.all_subgraphs())
        return ids

    def dangling_edges(self) -> list[DFDEdge]:
        ids = self.endpoint_ids()
        return [e for e in self.edges if e.from_ not in ids or e.to not in ids]

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape consumed by the host and UI."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not data.get("subgraphs"):
            data.pop("subgraphs", None)
        if not data.get("errors"):
            data.pop("errors", None)
        return data


DFDSubgraph.model_rebuild()
