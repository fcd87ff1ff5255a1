"""Fact dataclasses produced by the analyzers and consumed by the builder."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

_SIMPLE_EXPR_RE = re.compile(r"^[\w$]+(?:\??\.[\w$]+)*$")


@dataclass
class Reference:
    """One use of a bound name inside a process body or the rendered output."""

    name: str
    kind: str                      # "read"|"invoke"|"write"|"ref"
    attribute: str | None = None   # element attribute the use sits in
    property: str | None = None    # member used through the name: data.name -> "name"


@dataclass
class Prop:
    name: str
    declared_type: str | None = None
    is_destructured: bool = False
    is_rest: bool = False
    has_default: bool = False
    is_event: bool = False         # Vue emit / Svelte dispatcher event
    line: int = 0
    column: int = 0


@dataclass
class ReactivePrimitive:
    name: str                      # call name: "useState", "ref", "$state", ...
    kind: str                      # "state"|"computed"|"context"|"store"|"custom"
    variables: list[str] = field(default_factory=list)
    is_read_write_pair: bool = False
    is_function_only: bool = False
    dependencies: list[str] | None = None
    init_references: list[str] = field(default_factory=list)  # names the initializer reads
    is_object_pattern: bool = False  # bound via { a, b } = ...
    callable_variables: list[str] = field(default_factory=list)
    arguments: list[str] = field(default_factory=list)   # literal/identifier argument text
    type_argument: str | None = None
    library: str | None = None
    category: str = ""             # node category: "state", "reducer", "library-hook", ...
    data_fetching: bool = False    # consolidated into one library-hook node
    aliases: dict[str, str] = field(default_factory=dict)  # $count -> count
    line: int = 0
    column: int = 0
    metadata: dict = field(default_factory=dict)
    init: Any = field(default=None, repr=False, compare=False)  # value syntax node

    @property
    def reader(self) -> str | None:
        return self.variables[0] if self.variables else None

    @property
    def writer(self) -> str | None:
        if self.is_read_write_pair and len(self.variables) == 2:
            return self.variables[1]
        return None


@dataclass
class ExternalCall:
    callee: str                    # flattened callee: "api.fetchUser", "childRef.current.focus"
    arguments: list[str] = field(default_factory=list)
    callback_references: list[str] = field(default_factory=list)
    ref_name: str | None = None    # set for calls through x.current.method()
    method_name: str | None = None

    @property
    def is_imperative_handle_call(self) -> bool:
        return self.ref_name is not None


@dataclass
class ExportedMethod:
    name: str
    references: list[str] = field(default_factory=list)
    accesses: list[Reference] = field(default_factory=list)
    external_calls: list[ExternalCall] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class Process:
    name: str
    kind: str                      # "effect"|"callback"|"memo"|"event-handler"|
                                   # "custom-function"|"imperative-handle"|"cleanup"
    dependencies: list[str] | None = None
    references: list[str] = field(default_factory=list)
    accesses: list[Reference] = field(default_factory=list)
    external_calls: list[ExternalCall] = field(default_factory=list)
    cleanup: Process | None = None
    emits: list[str] = field(default_factory=list)   # event names passed to emit()/dispatch()
    is_inline: bool = False
    attribute: str | None = None   # event attribute an inline handler is bound to
    ref_name: str | None = None    # imperative-handle target ref
    exported_methods: list[ExportedMethod] = field(default_factory=list)
    line: int = 0
    column: int = 0


# ── Rendered output tree ────────────────────────────────────────────────────

@dataclass
class OutputElement:
    tag: str
    refs: list[Reference] = field(default_factory=list)
    children: list[OutputItem] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class OutputBranch:
    kind: str                      # "conditional"|"loop"|"await"
    expression: str
    negated: bool = False
    refs: list[Reference] = field(default_factory=list)
    children: list[OutputItem] = field(default_factory=list)

    @property
    def label(self) -> str:
        if self.kind == "loop":
            return "{loop: %s}" % self.expression
        if self.kind == "await":
            return "{await: %s}" % self.expression
        if self.negated:
            expr = self.expression
            if expr.startswith("!") and _SIMPLE_EXPR_RE.match(expr[1:]):
                return "{%s}" % expr[1:]
            if _SIMPLE_EXPR_RE.match(expr):
                return "{!%s}" % expr
            return "{!(%s)}" % expr
        return "{%s}" % self.expression


OutputItem = Union[OutputElement, OutputBranch]


@dataclass
class RenderedOutput:
    children: list[OutputItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.children


# ── Aggregate ───────────────────────────────────────────────────────────────

@dataclass
class ComponentFacts:
    name: str
    framework: str                 # "react"|"vue"|"svelte"
    props: list[Prop] = field(default_factory=list)
    primitives: list[ReactivePrimitive] = field(default_factory=list)
    processes: list[Process] = field(default_factory=list)
    output: RenderedOutput = field(default_factory=RenderedOutput)
    emitter_names: list[str] = field(default_factory=list)  # emit / dispatch bindings
