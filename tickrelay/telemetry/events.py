"""Structured telemetry models (events, pipeline counters)."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(slots=True)
class TelemetryEvent:
    """Generic event used by JSON-line logs under ``logs/relay_YYYYMMDD.jsonl``."""

    timestamp: datetime
    event_type: str
    level: str = "INFO"
    payload: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(slots=True)
class PipelineStats:
    """Counters aggregated from every pipeline component.

    ``messages_discarded`` counts malformed or unrecognized packets; it is
    kept apart from ``ticks_rejected`` (valid ticks the admission filter
    declined) so stream noise never looks like filtering.
    """

    started_at: datetime
    messages_received: int = 0
    messages_discarded: int = 0
    ticks_admitted: int = 0
    ticks_rejected: int = 0
    batches_flushed: int = 0
    items_flushed: int = 0
    deliveries_ok: int = 0
    deliveries_failed: int = 0
    deliveries_skipped: int = 0
    connects: int = 0
    reconnects_scheduled: int = 0
    symbols_tracked: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["started_at"] = self.started_at.isoformat()
        payload["last_updated"] = self.last_updated.isoformat()
        return payload


__all__ = ["TelemetryEvent", "PipelineStats"]
