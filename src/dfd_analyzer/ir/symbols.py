"""Flat per-run symbol table shared read-only by the analyzers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SymbolKind(str, Enum):
    PROP = "prop"
    PROPS_OBJECT = "props-object"    # `props` in `props.title`
    EVENT = "event"
    EMITTER = "emitter"              # `emit` / `dispatch`
    PRIMITIVE = "primitive"
    PROCESS = "process"
    TEMPLATE_REF = "template-ref"


@dataclass(frozen=True)
class Symbol:
    name: str
    kind: SymbolKind
    owner: str                       # the fact that binds the name


@dataclass
class SymbolTable:
    symbols: dict[str, Symbol] = field(default_factory=dict)

    def add(self, name: str, kind: SymbolKind, owner: str | None = None) -> None:
        # First binding wins; shadowing inside the component is not modelled.
        if name and name not in self.symbols:
            self.symbols[name] = Symbol(name=name, kind=kind, owner=owner or name)

    def get(self, name: str) -> Symbol | None:
        return self.symbols.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.symbols

    def names(self, *kinds: SymbolKind) -> set[str]:
        if not kinds:
            return set(self.symbols)
        return {n for n, s in self.symbols.items() if s.kind in kinds}

    def is_props_object(self, name: str) -> bool:
        sym = self.symbols.get(name)
        return sym is not None and sym.kind == SymbolKind.PROPS_OBJECT

    def is_emitter(self, name: str) -> bool:
        sym = self.symbols.get(name)
        return sym is not None and sym.kind == SymbolKind.EMITTER
