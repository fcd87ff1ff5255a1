"""Theme models and the packaged theme table."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from dfd_analyzer.render._helpers import STYLE_CLASSES

log = logging.getLogger(__name__)

THEMES_FILE = Path(__file__).with_name("themes.yaml")
DEFAULT_THEME = "light"


class NodeStyle(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    fill: str
    stroke: str
    font: str
    stroke_width: int = 2


class Theme(BaseModel):
    """Colours for one rendering. Transformers read nothing else."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    background: str
    edge_color: str
    font_size: int = 14
    variables: dict[str, str] = Field(default_factory=dict)
    styles: dict[str, NodeStyle]

    @model_validator(mode="after")
    def _all_classes_styled(self) -> Theme:
        missing = [c for c in STYLE_CLASSES if c not in self.styles]
        if missing:
            raise ValueError(f"theme '{self.name}' has no style for: {', '.join(missing)}")
        return self

    def style(self, style_class: str) -> NodeStyle:
        return self.styles[style_class]


def _parse_themes(text: str, source: str) -> dict[str, Theme]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{source}: expected a mapping of theme name to theme")
    themes = {}
    for name, body in data.items():
        if not isinstance(body, dict):
            raise ValueError(f"{source}: theme '{name}' must be a mapping")
        themes[name] = Theme.model_validate({"name": name, **body})
    return themes


@lru_cache(maxsize=1)
def builtin_themes() -> dict[str, Theme]:
    """The light / dark / high-contrast themes shipped with the package."""
    return _parse_themes(THEMES_FILE.read_text(encoding="utf-8"), str(THEMES_FILE))


def theme_names() -> list[str]:
    return list(builtin_themes())


def get_theme(name: str = DEFAULT_THEME) -> Theme:
    themes = builtin_themes()
    if name not in themes:
        raise KeyError(f"Unknown theme '{name}' (available: {', '.join(themes)})")
    return themes[name]


def load_theme_file(path: Path, name: str | None = None) -> Theme:
    """Load a custom theme YAML.

    The file either holds a single theme body, or a mapping of several
    named themes from which ``name`` (or the first one) is taken.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if isinstance(data, dict) and "styles" in data:
        theme = Theme.model_validate({"name": data.get("name", path.stem), **data})
    else:
        themes = _parse_themes(text, str(path))
        if not themes:
            raise ValueError(f"{path}: no themes defined")
        if name is not None and name not in themes:
            raise KeyError(f"{path}: no theme named '{name}'")
        theme = themes[name] if name is not None else next(iter(themes.values()))
    log.debug("Loaded theme '%s' from %s", theme.name, path)
    return theme
