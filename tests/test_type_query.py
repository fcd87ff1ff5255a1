"""Tests for the bounded type-query wrapper."""

from __future__ import annotations

import threading

from dfd_analyzer.models import ErrorKind, NodeRole
from dfd_analyzer.pipeline import analyze_source
from dfd_analyzer.type_query import StaticTypeResolver, TypeQuery, TypeQueryResult


class _Blocking:
    def __init__(self):
        self.release = threading.Event()

    def resolve_type(self, file_path, identifier, line, column):
        self.release.wait(5)
        return TypeQueryResult(type_string="string")


class _Failing:
    def resolve_type(self, file_path, identifier, line, column):
        raise RuntimeError("language service crashed")


def test_no_resolver():
    tq = TypeQuery()
    assert not tq.available
    assert tq.type_of("x") is None
    assert tq.is_callable("x") is None


def test_static_resolver_and_classification():
    tq = TypeQuery(StaticTypeResolver({"save": "(id: number) => void", "name": "string"}), "a.tsx")
    assert tq.type_of("name") == "string"
    assert tq.is_callable("save") is True
    assert tq.is_callable("name") is False
    assert tq.is_callable("missing") is None
    tq.close()


def test_explicit_is_function_wins():
    class Resolver:
        def resolve_type(self, file_path, identifier, line, column):
            return TypeQueryResult(type_string="Handler", is_function=True)

    tq = TypeQuery(Resolver(), "a.tsx")
    assert tq.is_callable("h") is True
    tq.close()


def test_timeout_disables_resolver():
    resolver = _Blocking()
    tq = TypeQuery(resolver, "a.tsx", timeout_ms=50)
    try:
        assert tq.type_of("slow") is None
        assert not tq.available
        (err,) = tq.errors
        assert err.kind == ErrorKind.TIMEOUT
        assert "Type query for 'slow' timed out" in err.message
        assert tq.type_of("other") is None
        assert len(tq.errors) == 1
    finally:
        resolver.release.set()
        tq.close()


def test_resolver_failure_is_a_miss():
    tq = TypeQuery(_Failing(), "a.tsx")
    assert tq.type_of("x") is None
    assert tq.available
    assert tq.errors == []
    tq.close()


def test_resolved_type_flips_prop_direction():
    source = "export function Row({ save, title }) { return <div>{title}</div>; }\n"
    plain = analyze_source(source, "Row.tsx").data
    assert [n.role for n in plain.nodes if n.label == "save"] == [NodeRole.INPUT]

    resolver = StaticTypeResolver({"save": "() => void"})
    typed = analyze_source(source, "Row.tsx", resolver=resolver).data
    (save,) = [n for n in typed.nodes if n.label == "save"]
    assert save.role == NodeRole.OUTPUT
    assert save.metadata["declaredType"] == "() => void"
