"""External type-query capability and the timeout wrapper the analyzers use.

A resolver is anything with a ``resolve_type(file_path, identifier, line,
column)`` method, typically a bridge to a language service. Analyzers never
call it directly; they go through ``TypeQuery``, which bounds each call and
turns a missing resolver, a miss or a timeout into ``None`` so that the
syntactic heuristics take over.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Protocol

from dfd_analyzer.errors import ParseTimeout
from dfd_analyzer.ir.type_classifier import classify
from dfd_analyzer.models import ParseError

log = logging.getLogger(__name__)

DEFAULT_TYPE_QUERY_TIMEOUT_MS = 3000


@dataclass
class TypeQueryResult:
    type_string: str
    is_function: bool | None = None


class TypeResolver(Protocol):
    def resolve_type(
        self, file_path: str, identifier: str, line: int, column: int,
    ) -> TypeQueryResult | None: ...


@dataclass
class StaticTypeResolver:
    """Resolver backed by a fixed ``identifier -> type string`` table."""

    types: dict[str, str] = field(default_factory=dict)

    def resolve_type(self, file_path, identifier, line, column):
        type_string = self.types.get(identifier)
        if type_string is None:
            return None
        return TypeQueryResult(type_string=type_string)


class TypeQuery:
    """Bounded access to an optional TypeResolver.

    After the first timeout the resolver is considered unavailable for the
    rest of the run and every later query returns None immediately.
    """

    def __init__(
        self,
        resolver: TypeResolver | None = None,
        file_path: str | None = None,
        timeout_ms: int = DEFAULT_TYPE_QUERY_TIMEOUT_MS,
    ):
        self.resolver = resolver
        self.file_path = file_path or ""
        self.timeout_ms = timeout_ms
        self.errors: list[ParseError] = []
        self._disabled = resolver is None
        self._cache: dict[tuple[str, int, int], TypeQueryResult | None] = {}
        self._executor: ThreadPoolExecutor | None = None

    @property
    def available(self) -> bool:
        return not self._disabled

    def resolve(self, name: str, line: int = 0, column: int = 0) -> TypeQueryResult | None:
        if self._disabled:
            return None
        key = (name, line, column)
        if key in self._cache:
            return self._cache[key]
        result = self._query(name, line, column)
        self._cache[key] = result
        return result

    def type_of(self, name: str, line: int = 0, column: int = 0) -> str | None:
        result = self.resolve(name, line, column)
        return result.type_string if result is not None else None

    def is_callable(self, name: str, line: int = 0, column: int = 0) -> bool | None:
        """True/False when the resolver answered, None when it did not."""
        result = self.resolve(name, line, column)
        if result is None:
            return None
        if result.is_function is not None:
            return result.is_function
        return classify(result.type_string).is_function

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _query(self, name: str, line: int, column: int) -> TypeQueryResult | None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dfd-typeq")
        started = time.monotonic()
        future = self._executor.submit(
            self.resolver.resolve_type, self.file_path, name, line, column,
        )
        try:
            return future.result(timeout=self.timeout_ms / 1000.0)
        except FuturesTimeout:
            elapsed = int((time.monotonic() - started) * 1000)
            err = ParseTimeout(elapsed, self.timeout_ms, what=f"Type query for '{name}'")
            log.warning("%s", err.message)
            self.errors.append(err.to_parse_error())
            self._disabled = True
            self.close()
            return None
        except Exception:
            log.exception("Type query for '%s' failed (non-fatal)", name)
            return None
