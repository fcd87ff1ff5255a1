"""End-to-end pipeline: source text -> adapted module -> facts -> DFDSourceData."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from dfd_analyzer.analyzer import extract_facts
from dfd_analyzer.builder import build
from dfd_analyzer.config import AnalyzerSettings
from dfd_analyzer.diagnostics import Diagnostics
from dfd_analyzer.errors import AnalysisError
from dfd_analyzer.ir.facts import ComponentFacts
from dfd_analyzer.models import DFDSourceData, ErrorKind, ParseError
from dfd_analyzer.source.adapter import adapt_or_raise
from dfd_analyzer.type_query import TypeQuery, TypeResolver

log = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Graph of one run plus what the stages noted along the way."""
    data: DFDSourceData
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    facts: ComponentFacts | None = None

    @property
    def ok(self) -> bool:
        return not self.data.errors


def analyze_source(
    source: str,
    filename: str | None = None,
    *,
    settings: AnalyzerSettings | None = None,
    resolver: TypeResolver | None = None,
) -> AnalysisResult:
    """Analyze one component source. Never raises; failures land in ``data.errors``.

    Args:
        source: Full file text (React module, Vue SFC or Svelte SFC).
        filename: Used for the framework and grammar choice (``.vue``,
                  ``.svelte``, ``.tsx`` ...) and passed to the resolver.
        settings: Timeouts and registry extensions; defaults when None.
        resolver: Optional type-query capability.
    """
    settings = settings or AnalyzerSettings()
    diagnostics = Diagnostics()
    types = TypeQuery(resolver, filename, settings.type_query_timeout_ms)
    facts: ComponentFacts | None = None
    try:
        adapted = adapt_or_raise(source, filename, settings.parse_timeout_ms)
        if adapted.module.is_empty() and not (adapted.template or "").strip():
            log.info("Empty component source: %s", filename or "<input>")
            return AnalysisResult(data=DFDSourceData(), diagnostics=diagnostics)

        facts = extract_facts(
            adapted,
            types=types,
            extra_fetch_hooks=settings.fetch_hooks,
            extra_process_properties=settings.process_properties,
            diagnostics=diagnostics,
        )
        data = build(facts, diagnostics)
    except AnalysisError as exc:
        log.info("Analysis stopped: %s", exc.message)
        data = DFDSourceData(errors=[exc.to_parse_error()])
    except Exception as exc:
        log.exception("Analysis of %s failed (non-fatal)", filename or "<input>")
        data = DFDSourceData(errors=[
            ParseError(message=f"Analysis failed: {exc}", kind=ErrorKind.SYNTAX),
        ])
    finally:
        types.close()

    if types.errors:
        data.errors.extend(types.errors)
    return AnalysisResult(data=data, diagnostics=diagnostics, facts=facts)


def analyze_file(
    path: Path,
    *,
    settings: AnalyzerSettings | None = None,
    resolver: TypeResolver | None = None,
) -> AnalysisResult:
    """Read ``path`` and analyze it; the file name picks the framework."""
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return analyze_source(source, str(path), settings=settings, resolver=resolver)
