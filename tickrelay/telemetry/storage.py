"""Helpers for persisting telemetry artifacts (events, pipeline stats)."""
from __future__ import annotations

import json
from pathlib import Path

from tickrelay.core.errors import TelemetryError
from tickrelay.telemetry.events import PipelineStats, TelemetryEvent


class TelemetryStorage:
    """Write structured telemetry objects to disk.

    The dispatcher appends a :class:`TelemetryEvent` for every failed delivery
    and the runtime writes a :class:`PipelineStats` snapshot on shutdown.
    """

    def __init__(
        self,
        *,
        logs_dir: Path,
        reports_dir: Path,
    ) -> None:
        self._logs_dir = logs_dir
        self._reports_dir = reports_dir
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        self._reports_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # JSON event logs
    # ------------------------------------------------------------------
    def append_event(self, event: TelemetryEvent) -> Path:
        """Append ``event`` as JSON to ``logs/relay_YYYYMMDD.jsonl``."""

        date_str = event.timestamp.strftime("%Y%m%d")
        path = self._logs_dir / f"relay_{date_str}.jsonl"
        try:
            with path.open("a", encoding="utf-8") as handle:
                json.dump(event.to_dict(), handle, ensure_ascii=False)
                handle.write("\n")
        except OSError as exc:  # pragma: no cover - filesystem errors are rare
            raise TelemetryError(f"Failed to write telemetry event: {exc}") from exc
        return path

    # ------------------------------------------------------------------
    # Pipeline stats JSON report
    # ------------------------------------------------------------------
    def write_pipeline_stats(self, stats: PipelineStats) -> Path:
        """Persist ``stats`` to ``reports/pipeline_stats_YYYYMMDD.json``."""

        date_str = stats.last_updated.strftime("%Y%m%d")
        path = self._reports_dir / f"pipeline_stats_{date_str}.json"
        try:
            with path.open("w", encoding="utf-8") as handle:
                json.dump(stats.to_dict(), handle, indent=2, ensure_ascii=False)
        except OSError as exc:  # pragma: no cover
            raise TelemetryError(f"Failed to write pipeline stats: {exc}") from exc
        return path


def default_storage(base_dir: Path) -> TelemetryStorage:
    """Factory returning storage rooted under ``base_dir``."""

    logs_dir = base_dir / "logs"
    reports_dir = base_dir / "reports"
    return TelemetryStorage(logs_dir=logs_dir, reports_dir=reports_dir)


__all__ = ["TelemetryStorage", "default_storage"]
