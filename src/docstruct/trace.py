"""Structured trace sink for parse diagnostics.

Every pipeline stage records ``{stage, section, reason, detail}`` events in
document order. Tests assert against the records; the same events are
mirrored to the module logger at DEBUG level for interactive runs.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

# Stage names
STAGE_DETECT = "detect"
STAGE_TOC = "toc"
STAGE_BIND = "bind"
STAGE_ASSEMBLE = "assemble"
STAGE_ORPHAN = "orphan"
STAGE_DEDUP = "dedup"
STAGE_DEPTH = "depth"
STAGE_CLAMP = "clamp"


@dataclass(frozen=True, slots=True)
class TraceEvent:
    """One diagnostic record."""

    stage: str
    section: str        # citation (or line reference) the event is about
    reason: str
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "section": self.section,
            "reason": self.reason,
            "detail": dict(self.detail),
        }


class TraceLog:
    """Ordered, append-only list of TraceEvents owned by one parse."""

    def __init__(self) -> None:
        self._events: list[TraceEvent] = []

    def record(self, stage: str, section: str, reason: str, **detail: Any) -> TraceEvent:
        event = TraceEvent(stage=stage, section=section, reason=reason, detail=detail)
        self._events.append(event)
        log.debug("[%s] %s: %s %s", stage, section, reason, detail or "")
        return event

    @property
    def events(self) -> tuple[TraceEvent, ...]:
        return tuple(self._events)

    def by_stage(self, stage: str) -> list[TraceEvent]:
        return [e for e in self._events if e.stage == stage]

    def reasons(self, stage: str) -> list[str]:
        """Reasons recorded for *stage*, in order."""
        return [e.reason for e in self._events if e.stage == stage]

    def to_dicts(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[TraceEvent]:
        return iter(self._events)
