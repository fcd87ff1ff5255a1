"""Tests for the click command line."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from dfd_analyzer import __version__
from dfd_analyzer.cli import main

COUNTER = """\
export function Counter() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}
"""


def _write(directory: str, name: str, text: str) -> str:
    path = Path(directory) / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_analyze_mermaid_to_stdout():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        result = CliRunner().invoke(main, ["analyze", path])
    assert result.exit_code == 0, result.output
    assert "flowchart TB" in result.stdout
    assert '[("count")]' in result.stdout


def test_analyze_json():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        result = CliRunner().invoke(main, ["analyze", path, "-f", "json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert {"nodes", "edges"} <= set(payload)
    assert "errors" not in payload
    assert any(n["label"] == "count" for n in payload["nodes"])


def test_analyze_network_with_theme():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        result = CliRunner().invoke(main, ["analyze", path, "-f", "network", "-t", "dark"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["nodes"]
    assert payload["edges"]


def test_analyze_markdown_to_file():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        out = Path(d) / "report.md"
        result = CliRunner().invoke(main, ["analyze", path, "-f", "md", "-o", str(out)])
        report = out.read_text(encoding="utf-8")
    assert result.exit_code == 0, result.output
    assert "Written to" in result.output
    assert report.startswith("# Data Flow: Counter.tsx")
    assert "```mermaid" in report


def test_analyze_reports_errors_on_stderr():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "helpers.ts", "export const x = 1;\n")
        result = CliRunner().invoke(main, ["analyze", path])
    assert result.exit_code == 0
    assert "helpers.ts: component-not-found: No component detected" in result.output


def test_invalid_config():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        config = _write(d, "settings.yaml", "parse_timeout_ms: -1\n")
        result = CliRunner().invoke(main, ["analyze", path, "-c", config])
    assert result.exit_code != 0
    assert "Invalid settings" in result.output


def test_invalid_theme_file():
    with tempfile.TemporaryDirectory() as d:
        path = _write(d, "Counter.tsx", COUNTER)
        theme = _write(d, "mine.yaml", "background: '#fff'\nstyles: {}\n")
        result = CliRunner().invoke(main, ["analyze", path, "--theme-file", theme])
    assert result.exit_code != 0
    assert "Invalid theme" in result.output


class TestCompare:
    def test_identical_passes(self):
        with tempfile.TemporaryDirectory() as d:
            a = _write(d, "a.mmd", 'flowchart TB\n  A["x"]\n  B["y"]\n  A --> B\n')
            b = _write(d, "b.mmd", "%% ref\nflowchart TB\nA['x']\nB['y']\nA --> B\n")
            result = CliRunner().invoke(main, ["compare", a, b])
        assert result.exit_code == 0
        assert "PASS: diagrams match" in result.output

    def test_difference_exits_one(self):
        with tempfile.TemporaryDirectory() as d:
            a = _write(d, "a.mmd", "flowchart TB\n  A --> B\n")
            b = _write(d, "b.mmd", "flowchart TB\n  A --> C\n")
            result = CliRunner().invoke(main, ["compare", a, b])
        assert result.exit_code == 1
        assert "FAIL: diagrams differ" in result.output
        assert "edge:A:C:" in result.output
