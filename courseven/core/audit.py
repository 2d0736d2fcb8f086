"""Append-only JSONL audit log of events published on the bus."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List

from pydantic import BaseModel, Field

from courseven.core.events import AppEvent, AppEventBus, event_name


class AuditEvent(BaseModel):
    """Structured record for one published event."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event: str = Field(..., description="Event name, e.g. 'EnrollmentJoined'.")
    actor: str = Field(default="anonymous")
    payload: Dict[str, Any] = Field(default_factory=dict)


class AuditLogger:
    """Writes one JSON line per audit event."""

    def __init__(self, output_path: Path, *, actor: Callable[[], str | None] | None = None):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._actor = actor

    def log(self, event: AuditEvent | Dict[str, Any]) -> AuditEvent:
        if not isinstance(event, AuditEvent):
            event = AuditEvent(**event)
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(event.model_dump_json() + "\n")
        return event

    def record(self, event: AppEvent) -> AuditEvent:
        """Log an application event, tagging it with the current actor if known."""
        actor = self._actor() if self._actor else None
        return self.log(
            AuditEvent(
                event=event_name(event),
                actor=actor or "anonymous",
                payload=asdict(event),
            )
        )

    def attach(self, bus: AppEventBus) -> Callable[[], None]:
        """Subscribe to ``bus`` and return the unsubscribe callable."""
        return bus.subscribe(self.record)

    def read(self) -> List[AuditEvent]:
        if not self.output_path.exists():
            return []
        with self.output_path.open("r", encoding="utf-8") as handle:
            return [AuditEvent.model_validate_json(line) for line in handle if line.strip()]

    def extend(self, events: Iterable[AuditEvent | Dict[str, Any]]) -> None:
        for event in events:
            self.log(event)


__all__ = ["AuditEvent", "AuditLogger"]
