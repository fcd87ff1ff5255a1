"""Source Adapter: turn raw component text into a parsed script module.

React files are script-only. Vue and Svelte single-file components are
split into their script and template regions first; the template is kept
as raw text for the markup tokenizer.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from tree_sitter import Node, Tree

from dfd_analyzer.errors import AnalysisError, ParseTimeout, SyntaxFailure
from dfd_analyzer.models import ParseError
from dfd_analyzer.source import sfc
from dfd_analyzer.source.syntax import first_error, get_parser, grammar_for, node_text

log = logging.getLogger(__name__)

DEFAULT_PARSE_TIMEOUT_MS = 5000
_READ_CHUNK = 64 * 1024

_FRAMEWORK_BY_SUFFIX = {
    ".vue": "vue",
    ".svelte": "svelte",
}


@dataclass
class ScriptModule:
    """A parsed script region plus the offsets mapping it back to the file."""

    source: str
    grammar: str
    tree: Tree | None
    framework: str = "react"
    filename: str | None = None
    line_offset: int = 0          # file lines before the script region
    column_offset: int = 0        # columns before the region on its first line
    attrs: dict[str, str] = field(default_factory=dict)

    @property
    def root(self) -> Node | None:
        return self.tree.root_node if self.tree is not None else None

    def is_empty(self) -> bool:
        root = self.root
        if root is None:
            return True
        return not any(c.type != "comment" for c in root.named_children)

    def position(self, node: Node) -> tuple[int, int]:
        """1-based (line, column) of ``node`` in the original file."""
        row, col = node.start_point
        column = col + 1 + (self.column_offset if row == 0 else 0)
        return row + 1 + self.line_offset, column


@dataclass
class AdaptedSource:
    module: ScriptModule
    template: str | None = None
    template_line: int = 1        # file line of the template's first character
    framework: str = "react"


def detect_framework(filename: str | None) -> str:
    """Framework from a file name or a bare hint (``"vue"``, ``"svelte"``)."""
    name = (filename or "").lower()
    if name in ("vue", "svelte", "react"):
        return name
    for suffix, framework in _FRAMEWORK_BY_SUFFIX.items():
        if name.endswith(suffix):
            return framework
    return "react"


def parse_script(
    text: str,
    grammar: str,
    timeout_ms: int = DEFAULT_PARSE_TIMEOUT_MS,
) -> Tree:
    """Parse ``text`` with a hard wall-clock limit.

    tree-sitter polls the progress callback while it parses; once the
    deadline passes the callback halts the parse and ParseTimeout is raised.
    """
    parser = get_parser(grammar)
    data = text.encode("utf-8")
    started = time.monotonic()
    deadline = started + timeout_ms / 1000.0
    expired = False

    def read(offset, point):
        return data[offset:offset + _READ_CHUNK]

    def past_deadline(offset, has_error):
        nonlocal expired
        expired = time.monotonic() > deadline
        return expired

    try:
        tree = parser.parse(read, progress_callback=past_deadline)
    except ValueError:
        if not expired:
            raise
        tree = None
    if expired or tree is None:
        elapsed = int((time.monotonic() - started) * 1000)
        log.warning("Parse exceeded %dms limit", timeout_ms)
        raise ParseTimeout(elapsed, timeout_ms)
    return tree


def adapt_source(
    source: str,
    filename: str | None = None,
    timeout_ms: int = DEFAULT_PARSE_TIMEOUT_MS,
) -> AdaptedSource | ParseError:
    """Adapt ``source`` into a script module, or describe why it could not be."""
    try:
        return adapt_or_raise(source, filename, timeout_ms)
    except AnalysisError as exc:
        return exc.to_parse_error()


def adapt_or_raise(
    source: str,
    filename: str | None = None,
    timeout_ms: int = DEFAULT_PARSE_TIMEOUT_MS,
) -> AdaptedSource:
    framework = detect_framework(filename)
    if framework == "react":
        grammar = grammar_for(filename)
        module = _module(source, grammar, timeout_ms, framework, filename)
        return AdaptedSource(module=module, framework=framework)

    parts = sfc.split_vue(source) if framework == "vue" else sfc.split_svelte(source)
    if framework == "vue" and parts.script is None and parts.template is None and source.strip():
        raise SyntaxFailure("No <script> or <template> block found")

    script = parts.script
    if script is None:
        module = _module("", "typescript", timeout_ms, framework, filename)
    else:
        grammar = grammar_for(None, script.lang or "ts")
        module = _module(
            script.content, grammar, timeout_ms, framework, filename,
            line_offset=script.line - 1, column_offset=script.column - 1,
            attrs=script.attrs,
        )

    template = parts.template
    log.debug("Adapted %s component: script=%s template=%s",
              framework, script is not None, template is not None)
    return AdaptedSource(
        module=module,
        template=template.content if template is not None else None,
        template_line=template.line if template is not None else 1,
        framework=framework,
    )


def _module(
    text: str,
    grammar: str,
    timeout_ms: int,
    framework: str,
    filename: str | None,
    *,
    line_offset: int = 0,
    column_offset: int = 0,
    attrs: dict[str, str] | None = None,
) -> ScriptModule:
    tree = parse_script(text, grammar, timeout_ms)
    module = ScriptModule(
        source=text,
        grammar=grammar,
        tree=tree,
        framework=framework,
        filename=filename,
        line_offset=line_offset,
        column_offset=column_offset,
        attrs=dict(attrs or {}),
    )
    bad = first_error(tree.root_node)
    if bad is not None:
        line, column = module.position(bad)
        raise SyntaxFailure(_describe(bad), line, column)
    return module


def _describe(node: Node) -> str:
    if node.is_missing:
        return f"Missing '{node.type}'"
    snippet = node_text(node).strip().splitlines()
    token = snippet[0][:20] if snippet else ""
    if not token:
        return "Unexpected end of input"
    return f"Unexpected token '{token}'"
