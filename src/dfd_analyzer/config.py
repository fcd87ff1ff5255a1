"""Analyzer settings and their YAML loading."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".dfd-analyzer.yaml"


class AnalyzerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    parse_timeout_ms: int = Field(default=5000, gt=0)
    type_query_timeout_ms: int = Field(default=3000, gt=0)
    theme: str = "light"
    # Hooks to consolidate like useSWR / useQuery.
    extra_data_fetching_hooks: list[str] = Field(default_factory=list)
    # Members of consolidated hooks to treat as processes, e.g. "revalidate".
    extra_process_properties: list[str] = Field(default_factory=list)

    @property
    def fetch_hooks(self) -> frozenset[str]:
        return frozenset(self.extra_data_fetching_hooks)

    @property
    def process_properties(self) -> frozenset[str]:
        return frozenset(self.extra_process_properties)


def load_settings(path: Path | None = None) -> AnalyzerSettings:
    """Load settings from ``path`` or ``./.dfd-analyzer.yaml``; defaults when absent."""
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not path.exists():
            return AnalyzerSettings()
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    settings = AnalyzerSettings.model_validate(data)
    log.debug("Loaded settings from %s", path)
    return settings
