"""Tests for the source adapter and single-file component splitting."""

from __future__ import annotations

import re

import pytest

from dfd_analyzer.errors import ParseTimeout, SyntaxFailure
from dfd_analyzer.models import ErrorKind
from dfd_analyzer.source.adapter import (
    adapt_or_raise,
    adapt_source,
    detect_framework,
    parse_script,
)
from dfd_analyzer.source.sfc import line_column, parse_attrs, split_svelte, split_vue
from dfd_analyzer.source.syntax import grammar_for

VUE_SFC = """\
<template>
  <div>{{ count }}</div>
</template>
<script setup lang="ts">
import { ref } from 'vue'
const count = ref(0)
</script>
<style scoped>
div { color: red; }
</style>
"""

SVELTE_SFC = """\
<script>
  let count = 0;
</script>

<button on:click={() => count += 1}>{count}</button>

<style>
  button { color: red; }
</style>
"""


class TestFrameworkDetection:
    def test_by_suffix(self):
        assert detect_framework("src/App.vue") == "vue"
        assert detect_framework("Counter.svelte") == "svelte"
        assert detect_framework("Counter.tsx") == "react"
        assert detect_framework(None) == "react"

    def test_bare_hint(self):
        assert detect_framework("svelte") == "svelte"

    def test_grammar(self):
        assert grammar_for("a.tsx") == "tsx"
        assert grammar_for("a.ts") == "typescript"
        assert grammar_for("a.jsx") == "javascript"
        assert grammar_for(None) == "tsx"
        assert grammar_for(None, "ts") == "typescript"
        assert grammar_for(None, "js") == "javascript"


class TestSfcSplit:
    def test_vue_blocks(self):
        parts = split_vue(VUE_SFC)
        assert "{{ count }}" in parts.template.content
        assert parts.script.attrs == {"setup": "", "lang": "ts"}
        assert parts.script.lang == "ts"
        assert parts.script.line == 4
        assert len(parts.styles) == 1

    def test_setup_script_preferred(self):
        source = "<script>\nexport default {}\n</script>\n<script setup>\nconst a = 1\n</script>\n"
        parts = split_vue(source)
        assert len(parts.scripts) == 2
        assert "setup" in parts.script.attrs

    def test_nested_template_tags(self):
        source = "<template><div><template v-if=\"a\"><p/></template></div></template>"
        parts = split_vue(source)
        assert parts.template.content == "<div><template v-if=\"a\"><p/></template></div>"

    def test_svelte_markup_keeps_lines(self):
        parts = split_svelte(SVELTE_SFC)
        markup = parts.template.content
        assert "<script" not in markup
        assert "<style" not in markup
        assert "{count}" in markup
        assert markup.count("\n") == SVELTE_SFC.count("\n")

    def test_attrs(self):
        assert parse_attrs(' setup lang="ts" context=\'module\'') == {
            "setup": "", "lang": "ts", "context": "module",
        }

    def test_line_column(self):
        assert line_column("ab\ncd", 4) == (2, 2)


class TestAdapt:
    def test_react_module(self):
        adapted = adapt_or_raise("const x = 1;\n", "Counter.tsx")
        assert adapted.framework == "react"
        assert adapted.module.grammar == "tsx"
        assert adapted.template is None
        assert not adapted.module.is_empty()

    def test_comment_only_module_is_empty(self):
        adapted = adapt_or_raise("// nothing here\n", "Empty.tsx")
        assert adapted.module.is_empty()

    def test_vue_positions_are_file_relative(self):
        adapted = adapt_or_raise(VUE_SFC, "Counter.vue")
        module = adapted.module
        assert module.grammar == "typescript"
        assert "setup" in module.attrs
        first = module.root.named_children[0]
        assert first.type == "import_statement"
        assert module.position(first) == (5, 1)
        assert adapted.template_line == 1

    def test_svelte_template(self):
        adapted = adapt_or_raise(SVELTE_SFC, "Counter.svelte")
        assert adapted.framework == "svelte"
        assert "on:click" in adapted.template

    def test_syntax_error_reports_position(self):
        with pytest.raises(SyntaxFailure) as info:
            adapt_or_raise("const = ;\n", "Broken.tsx")
        exc = info.value
        assert exc.line == 1
        assert exc.message.startswith("Syntax error at line 1, column ")

    def test_adapt_source_returns_parse_error(self):
        result = adapt_source("function (", "Broken.tsx")
        assert result.kind == ErrorKind.SYNTAX
        assert result.line is not None

    def test_vue_without_blocks(self):
        with pytest.raises(SyntaxFailure, match="No <script> or <template> block found"):
            adapt_or_raise("just some text", "Thing.vue")


def _large_module(lines: int = 50000) -> str:
    return "\n".join(
        f"const value{i} = {{ a: [{i}, {i} + 1], b: 'x' }};" for i in range(lines)
    )


class TestParseTimeout:
    def test_expired_parse_raises(self):
        with pytest.raises(ParseTimeout) as info:
            parse_script(_large_module(), "tsx", timeout_ms=1)
        exc = info.value
        assert exc.limit_ms == 1
        assert re.fullmatch(r"Parsing timed out after \d+ms \(limit: 1ms\)", exc.message)

    def test_adapt_source_reports_timeout(self):
        result = adapt_source(_large_module(), "Big.tsx", timeout_ms=1)
        assert result.kind == ErrorKind.TIMEOUT
        assert "(limit: 1ms)" in result.message

    def test_within_limit_parses(self):
        tree = parse_script("const x = 1;\n", "tsx", timeout_ms=5000)
        assert tree.root_node.type == "program"
        assert not tree.root_node.has_error
