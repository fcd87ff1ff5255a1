"""CLI entry point for dfd-analyzer."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from dfd_analyzer import __version__
from dfd_analyzer.config import load_settings
from dfd_analyzer.pipeline import AnalysisResult, analyze_file
from dfd_analyzer.render.themes import Theme, get_theme, load_theme_file, theme_names


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose logging.")
@click.version_option(version=__version__)
def main(verbose: bool) -> None:
    """Data-flow diagrams for React, Vue and Svelte components."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(["mermaid", "network", "json", "md"], case_sensitive=False),
    default="mermaid",
    help="Output format (default: mermaid).",
)
@click.option(
    "-t", "--theme", "theme_name",
    type=click.Choice(theme_names()),
    default=None,
    help="Built-in theme. Defaults to the configured theme.",
)
@click.option(
    "--theme-file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    default=None,
    help="Custom theme YAML; overrides --theme.",
)
@click.option(
    "-c", "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    default=None,
    help="Settings YAML. Defaults to ./.dfd-analyzer.yaml when present.",
)
@click.option(
    "-o", "--output",
    type=click.Path(resolve_path=True),
    default=None,
    help="Output file path. Defaults to stdout.",
)
def analyze(
    path: str,
    fmt: str,
    theme_name: str | None,
    theme_file: str | None,
    config_path: str | None,
    output: str | None,
) -> None:
    """Analyze one component file and print its data-flow diagram."""
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except (ValidationError, ValueError) as exc:
        raise click.ClickException(f"Invalid settings: {exc}") from exc

    theme = _resolve_theme(theme_file, theme_name or settings.theme)
    result = analyze_file(Path(path), settings=settings)

    for err in result.data.errors:
        click.echo(f"{Path(path).name}: {err.kind.value}: {err.message}", err=True)

    if fmt == "json":
        text = json.dumps(result.data.to_json_dict(), indent=2)
    elif fmt == "network":
        from dfd_analyzer.render.network import to_network_object
        text = json.dumps(to_network_object(result.data, theme), indent=2)
    elif fmt == "md":
        text = _markdown(result, Path(path).name, theme)
    else:
        from dfd_analyzer.render.mermaid import to_flowchart_text
        text = to_flowchart_text(result.data, theme)

    _emit(text, output)


@main.command()
@click.argument("generated", type=click.Path(exists=True, dir_okay=False))
@click.argument("reference", type=click.Path(exists=True, dir_okay=False))
def compare(generated: str, reference: str) -> None:
    """Compare two flowchart texts structurally; exit 1 when they differ."""
    from dfd_analyzer.normalizer import compare_text, generate_diff_report

    result = compare_text(
        Path(generated).read_text(encoding="utf-8"),
        Path(reference).read_text(encoding="utf-8"),
    )
    click.echo(generate_diff_report(result))
    if not result.passed:
        sys.exit(1)


def _resolve_theme(theme_file: str | None, name: str) -> Theme:
    try:
        if theme_file:
            return load_theme_file(Path(theme_file))
        return get_theme(name)
    except (ValidationError, ValueError, KeyError) as exc:
        raise click.ClickException(f"Invalid theme: {exc}") from exc


def _markdown(result: AnalysisResult, name: str, theme: Theme) -> str:
    from dfd_analyzer.render.markdown import render_markdown
    notes = [f"[{n.stage}] {n.message}" for n in result.diagnostics.notes]
    return render_markdown(result.data, name, theme, notes=notes)


def _emit(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Written to {output}")
    else:
        click.echo(text)


if __name__ == "__main__":
    main()
