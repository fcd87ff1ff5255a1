"""Exceptions raised inside the pipeline and their ParseError conversions.

None of these cross the pipeline boundary: ``pipeline.analyze_source``
turns them into ``DFDSourceData.errors`` entries.
"""

from __future__ import annotations

from dfd_analyzer.models import ErrorKind, ParseError

COMPONENT_NOT_FOUND_MESSAGE = (
    "No component detected in the file. Please ensure the file contains a "
    "valid React, Vue or Svelte component."
)


class AnalysisError(Exception):
    kind: ErrorKind = ErrorKind.SYNTAX

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def to_parse_error(self) -> ParseError:
        return ParseError(message=self.message, line=self.line, column=self.column, kind=self.kind)


class SyntaxFailure(AnalysisError):
    kind = ErrorKind.SYNTAX

    def __init__(self, detail: str, line: int | None = None, column: int | None = None):
        if line is not None and column is not None:
            message = f"Syntax error at line {line}, column {column}: {detail}"
        else:
            message = f"Syntax error: {detail}"
        super().__init__(message, line, column)
        self.detail = detail


class ComponentNotFound(AnalysisError):
    kind = ErrorKind.COMPONENT_NOT_FOUND

    def __init__(self, message: str = COMPONENT_NOT_FOUND_MESSAGE):
        super().__init__(message)


class ParseTimeout(AnalysisError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, elapsed_ms: int, limit_ms: int, what: str = "Parsing"):
        super().__init__(f"{what} timed out after {elapsed_ms}ms (limit: {limit_ms}ms)")
        self.elapsed_ms = elapsed_ms
        self.limit_ms = limit_ms
