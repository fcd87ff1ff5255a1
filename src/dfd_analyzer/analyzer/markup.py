"""Tolerant tokenizer for Vue templates and Svelte markup.

Produces an element tree without requiring well-formed HTML: a closing tag
pops back to the nearest matching open element, unclosed elements end with
their parent, and void elements never take children. Svelte logic blocks
(``{#if}``, ``{#each}``, ``{#await}``, ``{#key}``) become MarkupBlock nodes
holding one MarkupBranch per ``{:...}`` clause.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Union

from dfd_analyzer.source.sfc import line_column

log = logging.getLogger(__name__)

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
})

_TAG_NAME_RE = re.compile(r"[A-Za-z][\w.:-]*")
_ATTR_NAME_RE = re.compile(r"[^\s=/>\"'{}]+")
_BLOCK_KINDS = frozenset({"if", "each", "await", "key", "snippet"})


@dataclass
class MarkupAttr:
    name: str
    value: str | None = None       # None for a bare boolean attribute
    braced: bool = False           # Svelte attr={expr} or shorthand {name}
    line: int = 0
    column: int = 0


@dataclass
class MarkupExpr:
    """A display expression: Vue ``{{ x }}`` or Svelte ``{x}`` / ``{@html x}``."""

    text: str
    line: int = 0
    column: int = 0


@dataclass
class MarkupElement:
    tag: str
    attrs: list[MarkupAttr] = field(default_factory=list)
    children: list[MarkupNode] = field(default_factory=list)
    line: int = 0
    column: int = 0

    def attr(self, *names: str) -> MarkupAttr | None:
        for a in self.attrs:
            if a.name in names:
                return a
        return None


@dataclass
class MarkupBranch:
    keyword: str                   # "if", "else if", "else", "each", "await", "then", "catch", "key"
    expression: str = ""
    children: list[MarkupNode] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class MarkupBlock:
    kind: str                      # "if" | "each" | "await" | "key" | "snippet"
    branches: list[MarkupBranch] = field(default_factory=list)


MarkupNode = Union[MarkupElement, MarkupExpr, MarkupBlock]


@dataclass
class _Frame:
    children: list[MarkupNode]
    tag: str | None = None         # element frame
    block: MarkupBlock | None = None


class MarkupTokenizer:
    def __init__(self, text: str, framework: str, line_offset: int = 0):
        self.text = text
        self.framework = framework
        self.line_offset = line_offset
        self.pos = 0

    def parse(self) -> list[MarkupNode]:
        root: list[MarkupNode] = []
        stack = [_Frame(root)]
        text = self.text
        n = len(text)
        while self.pos < n:
            ch = text[self.pos]
            if text.startswith("<!--", self.pos):
                end = text.find("-->", self.pos + 4)
                self.pos = n if end < 0 else end + 3
            elif ch == "<" and text.startswith("</", self.pos):
                self._close_tag(stack)
            elif ch == "<" and self.pos + 1 < n and text[self.pos + 1].isalpha():
                self._open_tag(stack)
            elif self.framework == "vue" and text.startswith("{{", self.pos):
                self._vue_mustache(stack)
            elif self.framework == "svelte" and ch == "{":
                self._svelte_tag(stack)
            else:
                self.pos += 1
        return root

    # ── Tags ────────────────────────────────────────────────────────────

    def _open_tag(self, stack: list[_Frame]) -> None:
        start = self.pos
        m = _TAG_NAME_RE.match(self.text, self.pos + 1)
        if m is None:
            self.pos += 1
            return
        tag = m.group(0)
        self.pos = m.end()
        attrs, self_closing = self._attributes()
        line, col = self._at(start)
        element = MarkupElement(tag=tag, attrs=attrs, line=line, column=col)
        stack[-1].children.append(element)
        if self_closing or tag.lower() in VOID_ELEMENTS:
            return
        if tag.lower() in ("script", "style"):
            # raw text content
            end = self.text.lower().find(f"</{tag.lower()}", self.pos)
            self.pos = len(self.text) if end < 0 else end
            return
        stack.append(_Frame(element.children, tag=tag))

    def _close_tag(self, stack: list[_Frame]) -> None:
        m = _TAG_NAME_RE.match(self.text, self.pos + 2)
        end = self.text.find(">", self.pos)
        self.pos = len(self.text) if end < 0 else end + 1
        if m is None:
            return
        tag = m.group(0)
        for i in range(len(stack) - 1, 0, -1):
            if stack[i].block is not None:
                break  # a tag never closes across a logic block
            if stack[i].tag == tag:
                del stack[i:]
                return
        log.debug("Stray closing tag </%s> ignored", tag)

    def _attributes(self) -> tuple[list[MarkupAttr], bool]:
        attrs: list[MarkupAttr] = []
        text = self.text
        n = len(text)
        while self.pos < n:
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch == ">":
                self.pos += 1
                return attrs, False
            elif text.startswith("/>", self.pos):
                self.pos += 2
                return attrs, True
            elif ch == "{":
                # Svelte shorthand {name} or spread {...rest}
                line, col = self._at(self.pos)
                inner = self._braced()
                name = inner.strip().lstrip(".")
                attrs.append(MarkupAttr(name=name, value=name, braced=True, line=line, column=col))
            else:
                m = _ATTR_NAME_RE.match(text, self.pos)
                if m is None:
                    self.pos += 1
                    continue
                line, col = self._at(self.pos)
                attr = MarkupAttr(name=m.group(0), line=line, column=col)
                self.pos = m.end()
                self._skip_space()
                if self.pos < n and text[self.pos] == "=":
                    self.pos += 1
                    self._skip_space()
                    attr.value, attr.braced = self._attr_value()
                attrs.append(attr)
        return attrs, False

    def _attr_value(self) -> tuple[str, bool]:
        text = self.text
        if self.pos >= len(text):
            return "", False
        ch = text[self.pos]
        if ch in "\"'":
            end = text.find(ch, self.pos + 1)
            end = len(text) if end < 0 else end
            value = text[self.pos + 1:end]
            self.pos = end + 1
            stripped = value.strip()
            if self.framework == "svelte" and stripped.startswith("{") and stripped.endswith("}"):
                return stripped[1:-1], True
            return value, False
        if ch == "{":
            return self._braced(), True
        m = re.compile(r"[^\s>]+").match(text, self.pos)
        if m is None:
            return "", False
        value = m.group(0)
        if value.endswith("/") and text.startswith(">", m.end()):
            value = value[:-1]
            self.pos = m.end() - 1
        else:
            self.pos = m.end()
        return value, False

    # ── Mustaches and logic blocks ──────────────────────────────────────

    def _vue_mustache(self, stack: list[_Frame]) -> None:
        start = self.pos
        end = self.text.find("}}", self.pos + 2)
        end = len(self.text) if end < 0 else end
        expr = self.text[self.pos + 2:end].strip()
        self.pos = end + 2
        if expr:
            line, col = self._at(start)
            stack[-1].children.append(MarkupExpr(expr, line, col))

    def _svelte_tag(self, stack: list[_Frame]) -> None:
        start = self.pos
        inner = self._braced().strip()
        line, col = self._at(start)
        if not inner:
            return
        head = inner[0]
        if head == "#":
            keyword, _, rest = inner[1:].partition(" ")
            block = MarkupBlock(kind=keyword if keyword in _BLOCK_KINDS else "key")
            branch = MarkupBranch(keyword=block.kind, expression=rest.strip(), line=line, column=col)
            block.branches.append(branch)
            stack[-1].children.append(block)
            stack.append(_Frame(branch.children, block=block))
        elif head == ":":
            frame = self._innermost_block(stack)
            if frame is None:
                return
            clause = inner[1:].strip()
            keyword, expression = clause, ""
            for kw in ("else if", "else", "then", "catch"):
                if clause.startswith(kw):
                    keyword, expression = kw, clause[len(kw):].strip()
                    break
            branch = MarkupBranch(keyword=keyword, expression=expression, line=line, column=col)
            frame.block.branches.append(branch)
            frame.children = branch.children
            del stack[stack.index(frame) + 1:]
        elif head == "/":
            frame = self._innermost_block(stack)
            if frame is not None:
                del stack[stack.index(frame):]
        elif head == "@":
            keyword, _, rest = inner[1:].partition(" ")
            if keyword in ("html", "render", "debug") and rest.strip():
                stack[-1].children.append(MarkupExpr(rest.strip(), line, col))
        else:
            stack[-1].children.append(MarkupExpr(inner, line, col))

    @staticmethod
    def _innermost_block(stack: list[_Frame]) -> _Frame | None:
        for frame in reversed(stack[1:]):
            if frame.block is not None:
                return frame
        return None

    def _braced(self) -> str:
        """Consume a brace-balanced ``{...}`` starting at ``pos``; return its inside."""
        text = self.text
        depth = 0
        i = self.pos
        quote: str | None = None
        while i < len(text):
            ch = text[i]
            if quote is not None:
                if ch == "\\":
                    i += 2
                    continue
                if ch == quote:
                    quote = None
            elif ch in "\"'`":
                quote = ch
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    inner = text[self.pos + 1:i]
                    self.pos = i + 1
                    return inner
            i += 1
        inner = text[self.pos + 1:]
        self.pos = len(text)
        return inner

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _at(self, offset: int) -> tuple[int, int]:
        line, col = line_column(self.text, offset)
        return line + self.line_offset, col


def tokenize_markup(text: str, framework: str, line_offset: int = 0) -> list[MarkupNode]:
    return MarkupTokenizer(text, framework, line_offset).parse()
