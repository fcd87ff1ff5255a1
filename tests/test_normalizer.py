"""Tests for the flowchart normalizer and comparator."""

from __future__ import annotations

from dfd_analyzer.normalizer import (
    canonical_text,
    compare,
    compare_text,
    generate_diff_report,
    normalize,
)

REFERENCE = """\
%%{init: {"theme": "base"}}%%
flowchart TB
  subgraph InputProps["Input Props"]
    direction TB
    prop_1("label")
  end
  store_2[("count")]
  process_3[["increment"]]
  subgraph subgraph_4["JSX Output"]
    direction TB
    jsx_element_5@{ shape: hex, label: "&lt;button&gt;" }
  end
  store_2 e1@-->|"count"| jsx_element_5
  e1@{ animate: true }
  jsx_element_5 e2@-->|"onClick"| process_3
  e2@{ animate: true }
  process_3 e3@-.->|"cleanup"| cleanup_6
  classDef process fill:#F3E5F5,stroke:#9C27B0
  class process_3 process
"""

# Same structure: single quotes, different comments, indentation and styling.
VARIANT = """\
%% generated elsewhere
flowchart TB
subgraph InputProps['Input Props']
direction TB
prop_1('label')
end
%% state
store_2[('count')]
    process_3[['increment']]
subgraph subgraph_4['JSX Output']
  jsx_element_5@{ shape: hex, label: '<button>' }
end
store_2 e1@-->|'count'| jsx_element_5
jsx_element_5 e2@-->|'onClick'| process_3
process_3 e3@-.->|'cleanup'| cleanup_6
style process_3 fill:#000
"""


class TestNormalize:
    def test_extracts_sets(self):
        d = normalize(REFERENCE)
        assert d.nodes == {
            "node:prop_1:label",
            "node:store_2:count",
            "node:process_3:increment",
            "node:jsx_element_5:<button>",
        }
        assert d.edges == {
            "edge:store_2:jsx_element_5:count",
            "edge:jsx_element_5:process_3:onClick",
            "edge:process_3:cleanup_6:cleanup",
        }
        assert d.subgraphs == {
            "subgraph:InputProps:Input Props",
            "subgraph:subgraph_4:JSX Output",
        }
        assert d.original_text == REFERENCE

    def test_legacy_edge_syntax(self):
        d = normalize("flowchart LR\n  A --> B\n  B -->|go| C\n  C ----> D\n")
        assert d.edges == {"edge:A:B:", "edge:B:C:go", "edge:C:D:"}

    def test_canonical_text_drops_styling(self):
        text = canonical_text("  a[\"x\"]  \n\n  classDef foo fill:#fff\n  class a foo\n  %% note\n")
        assert text == 'a["x"]'

    def test_comments_kept_when_asked(self):
        text = canonical_text("%% keep\nA --> B", ignore_comments=False)
        assert "%% keep" in text


class TestCompare:
    def test_quote_and_comment_differences_pass(self):
        """Texts differing only in quoting, comments and styling compare equal."""
        result = compare_text(VARIANT, REFERENCE)
        assert result.passed
        assert result.missing_nodes == []
        assert result.extra_nodes == []
        assert result.missing_edges == []
        assert result.extra_edges == []
        assert result.missing_subgraphs == []
        assert result.extra_subgraphs == []

    def test_differences_reported_both_ways(self):
        changed = REFERENCE.replace('|"count"|', '|"total"|').replace(
            'process_3[["increment"]]', 'process_3[["decrement"]]')
        result = compare(normalize(changed), normalize(REFERENCE))
        assert not result.passed
        assert result.missing_edges == ["edge:store_2:jsx_element_5:count"]
        assert result.extra_edges == ["edge:store_2:jsx_element_5:total"]
        assert result.missing_nodes == ["node:process_3:increment"]
        assert result.extra_nodes == ["node:process_3:decrement"]
        assert result.missing_subgraphs == []

    def test_missing_subgraph(self):
        generated = REFERENCE.replace('subgraph subgraph_4["JSX Output"]', 'subgraph subgraph_4["Template Output"]')
        result = compare_text(generated, REFERENCE)
        assert result.missing_subgraphs == ["subgraph:subgraph_4:JSX Output"]
        assert result.extra_subgraphs == ["subgraph:subgraph_4:Template Output"]


class TestDiffReport:
    def test_pass(self):
        assert generate_diff_report(compare_text(REFERENCE, REFERENCE)) == "PASS: diagrams match"

    def test_fail_lists_sections(self):
        report = generate_diff_report(compare_text("flowchart TB\n  A --> B", REFERENCE))
        assert report.startswith("FAIL: diagrams differ")
        assert "Missing nodes (in reference but not in generated):" in report
        assert "  - node:store_2:count" in report
        assert "Extra edges (in generated but not in reference):" in report
        assert "  - edge:A:B:" in report
        assert "Extra nodes" not in report
