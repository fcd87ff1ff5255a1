"""Structured diagnostics sink passed explicitly through the pipeline stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass
class Note:
    stage: str
    message: str


@dataclass
class Diagnostics:
    """Collects facts that a stage skipped without reporting an error."""

    notes: list[Note] = field(default_factory=list)

    def note(self, stage: str, message: str) -> None:
        self.notes.append(Note(stage=stage, message=message))
        log.debug("[%s] %s", stage, message)

    def for_stage(self, stage: str) -> list[str]:
        return [n.message for n in self.notes if n.stage == stage]

    def __len__(self) -> int:
        return len(self.notes)
