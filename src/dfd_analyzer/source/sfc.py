"""Split Vue / Svelte single-file components into script, template and style regions.

Only block boundaries are located here; the template is returned as raw
text and never has to be well-formed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_OPEN_TAG_RE = r"<{tag}\b((?:[^>\"']|\"[^\"]*\"|'[^']*')*)>"
_ATTR_RE = re.compile(r"([\w:@.-]+)(?:\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s\"'>]+)))?")


@dataclass
class SFCSection:
    content: str
    start: int                     # offset of content in the original source
    end: int
    line: int                      # 1-based line of the first content character
    column: int                    # 1-based column of the first content character
    attrs: dict[str, str] = field(default_factory=dict)

    @property
    def lang(self) -> str | None:
        return self.attrs.get("lang")


@dataclass
class ParsedSFC:
    script: SFCSection | None = None
    template: SFCSection | None = None
    styles: list[SFCSection] = field(default_factory=list)
    scripts: list[SFCSection] = field(default_factory=list)


def line_column(source: str, offset: int) -> tuple[int, int]:
    line = source.count("\n", 0, offset) + 1
    last_nl = source.rfind("\n", 0, offset)
    return line, offset - last_nl


def parse_attrs(text: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(text or ""):
        value = next((g for g in m.groups()[1:] if g is not None), "")
        attrs[m.group(1)] = value
    return attrs


def _blocks(source: str, tag: str, spans: list[tuple[int, int]] | None = None) -> list[SFCSection]:
    """Find ``<tag ...>...</tag>`` blocks, honouring nesting of the same tag."""
    open_re = re.compile(_OPEN_TAG_RE.format(tag=tag), re.IGNORECASE)
    token_re = re.compile(
        _OPEN_TAG_RE.format(tag=tag) + r"|</" + tag + r"\s*>", re.IGNORECASE,
    )
    found: list[SFCSection] = []
    pos = 0
    while True:
        m = open_re.search(source, pos)
        if m is None:
            break
        if spans and any(s <= m.start() < e for s, e in spans):
            pos = m.end()
            continue
        if m.group(0).endswith("/>"):
            pos = m.end()
            continue
        depth = 1
        scan = m.end()
        close_start = close_end = -1
        for tok in token_re.finditer(source, scan):
            if tok.group(0).startswith("</"):
                depth -= 1
                if depth == 0:
                    close_start, close_end = tok.start(), tok.end()
                    break
            elif tag != "script" and not tok.group(0).endswith("/>"):
                depth += 1
        if close_start < 0:
            # Unterminated block: the rest of the file is its content.
            close_start = close_end = len(source)
        line, column = line_column(source, m.end())
        found.append(SFCSection(
            content=source[m.end():close_start],
            start=m.end(),
            end=close_start,
            line=line,
            column=column,
            attrs=parse_attrs(m.group(1)),
        ))
        pos = close_end
    return found


def _pick_script(scripts: list[SFCSection]) -> SFCSection | None:
    """Prefer ``<script setup>``, then an instance (non-module) script, then the first."""
    if not scripts:
        return None
    for s in scripts:
        if "setup" in s.attrs:
            return s
    for s in scripts:
        if s.attrs.get("context") != "module" and "module" not in s.attrs:
            return s
    return scripts[0]


def split_vue(source: str) -> ParsedSFC:
    templates = _blocks(source, "template")
    template = templates[0] if templates else None
    template_spans = [(template.start, template.end)] if template else []
    scripts = _blocks(source, "script", template_spans)
    styles = _blocks(source, "style", template_spans)
    return ParsedSFC(script=_pick_script(scripts), template=template, styles=styles, scripts=scripts)


def split_svelte(source: str) -> ParsedSFC:
    """Svelte markup is everything outside the script and style blocks."""
    scripts = _blocks(source, "script")
    styles = _blocks(source, "style")
    markup = source
    # Blank the blocks out, keeping newlines so markup line numbers stay file-relative.
    tag_re = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
    markup = tag_re.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), markup)
    template = SFCSection(content=markup, start=0, end=len(source), line=1, column=1)
    return ParsedSFC(script=_pick_script(scripts), template=template, styles=styles, scripts=scripts)
