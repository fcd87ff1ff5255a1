"""Fact extraction orchestrator.

Usage:
    from dfd_analyzer.analyzer import extract_facts

    facts = extract_facts(adapted, types=TypeQuery(resolver, "Counter.tsx"))

Runs the four Fact Analyzers over one adapted source. The symbol table is
built once, after props and primitives are known, and shared read-only by
the process and rendered-output passes.
"""

from __future__ import annotations

import logging

from dfd_analyzer.analyzer.component import locate_component
from dfd_analyzer.analyzer.primitives import analyze_primitives, resolve_dependencies
from dfd_analyzer.analyzer.processes import analyze_processes, declared_process_names
from dfd_analyzer.analyzer.props import analyze_props
from dfd_analyzer.analyzer.references import ReferenceCollector, module_bindings
from dfd_analyzer.analyzer.rendered_output import analyze_rendered_output
from dfd_analyzer.diagnostics import Diagnostics
from dfd_analyzer.ir.facts import ComponentFacts
from dfd_analyzer.ir.symbols import SymbolKind, SymbolTable
from dfd_analyzer.source.adapter import AdaptedSource
from dfd_analyzer.type_query import TypeQuery

log = logging.getLogger(__name__)


def extract_facts(
    adapted: AdaptedSource,
    *,
    types: TypeQuery | None = None,
    extra_fetch_hooks: frozenset[str] = frozenset(),
    extra_process_properties: frozenset[str] = frozenset(),
    diagnostics: Diagnostics | None = None,
) -> ComponentFacts:
    """Extract ComponentFacts; raises ComponentNotFound when no component shape exists."""
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    shape = locate_component(adapted)
    log.info("Analyzing %s component %s (%s)", shape.framework, shape.name, shape.kind)

    props = analyze_props(shape, types)
    primitives = analyze_primitives(shape, types, extra_fetch_hooks, extra_process_properties)

    symbols = SymbolTable()
    for prop in props.props:
        symbols.add(prop.name, SymbolKind.EVENT if prop.is_event else SymbolKind.PROP)
    for name in props.props_objects:
        symbols.add(name, SymbolKind.PROPS_OBJECT)
    emitters = set(props.emitters)
    if shape.framework == "vue":
        emitters.add("$emit")
    for name in emitters:
        symbols.add(name, SymbolKind.EMITTER)
    for prim in primitives:
        for var in prim.variables:
            symbols.add(var, SymbolKind.PRIMITIVE, owner=prim.name)
        for alias, var in prim.aliases.items():
            symbols.add(alias, SymbolKind.PRIMITIVE, owner=var)
    for name in declared_process_names(shape):
        symbols.add(name, SymbolKind.PROCESS)

    collector = ReferenceCollector(symbols, module_bindings(shape.module.root, shape.node), emitters)
    resolve_dependencies(primitives, collector)

    output, inline_handlers, bound = analyze_rendered_output(shape, adapted, collector)
    processes = analyze_processes(shape, collector, bound, inline_handlers)

    known = {p.name for p in processes}
    for name in bound:
        if symbols.get(name) is not None and symbols.get(name).kind == SymbolKind.PROCESS \
                and name not in known:
            diagnostics.note("processes", f"Handler '{name}' is bound but has no analyzable body")

    return ComponentFacts(
        name=shape.name,
        framework=shape.framework,
        props=props.props,
        primitives=primitives,
        processes=processes,
        output=output,
        emitter_names=sorted(emitters),
    )
