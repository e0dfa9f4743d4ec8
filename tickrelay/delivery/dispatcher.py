"""Turn flushed batches into webhook deliveries, fire-and-forget."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Sequence, Set

from tickrelay.config.models import ChannelConfig
from tickrelay.core.enums import DeliveryOutcome
from tickrelay.core.errors import DeliveryError, TelemetryError
from tickrelay.core.time_utils import bucket_open_time, now_utc
from tickrelay.core.types import ChannelName
from tickrelay.delivery.webhook import WebhookClient
from tickrelay.pipeline.models import AdmittedItem
from tickrelay.telemetry.events import TelemetryEvent
from tickrelay.telemetry.storage import TelemetryStorage

LOGGER = logging.getLogger(__name__)


def build_payload(items: Sequence[AdmittedItem], channel: ChannelConfig) -> Dict[str, Any]:
    """Build the ``{"items": [...]}`` body for one channel.

    On bucketed channels ``openTime`` is the batch's last ``observed_at``
    floored to the channel's bucket width, aligned to the epoch.
    """

    bucket_ms = channel.bucket_ms
    open_time = None
    if bucket_ms is not None and items:
        open_time = bucket_open_time(items[-1].observed_at, bucket_ms)
    return {"items": [item.to_payload(interval=channel.interval, open_time=open_time) for item in items]}


class DeliveryDispatcher:
    """Deliver batches to channel endpoints without ever blocking ingestion.

    :meth:`submit` schedules :meth:`dispatch` as an asyncio task and returns
    at once. Failures are logged (and recorded as telemetry events) and the
    batch is dropped; nothing is retried or re-enqueued. At most
    ``max_inflight`` requests run concurrently per channel, so a hanging
    endpoint never holds up another channel.
    """

    def __init__(
        self,
        channels: Iterable[ChannelConfig],
        client: WebhookClient,
        *,
        max_inflight: int = 8,
        telemetry: TelemetryStorage | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._channels: Dict[ChannelName, ChannelConfig] = {ChannelName(c.name): c for c in channels}
        self._client = client
        self._max_inflight = max_inflight
        self._semaphores: Dict[ChannelName, asyncio.Semaphore] = {}
        self._telemetry = telemetry
        self._logger = logger or LOGGER
        self._tasks: Set[asyncio.Task[DeliveryOutcome]] = set()
        self.outcomes: Dict[DeliveryOutcome, int] = {outcome: 0 for outcome in DeliveryOutcome}

    @property
    def channels(self) -> Mapping[ChannelName, ChannelConfig]:
        return self._channels

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def submit(self, items: Sequence[AdmittedItem], channel: ChannelName) -> None:
        """Schedule delivery of ``items`` on the running loop and return."""

        task = asyncio.get_running_loop().create_task(self._run(list(items), channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def dispatch(self, items: Sequence[AdmittedItem], channel: ChannelName) -> DeliveryOutcome:
        """Deliver one batch to ``channel``; never raises for delivery faults."""

        config = self._channels.get(channel)
        if config is None or config.url is None:
            self._logger.debug("Channel has no endpoint; batch skipped", extra={"channel": channel, "items": len(items)})
            return self._record(DeliveryOutcome.SKIPPED)
        payload = build_payload(items, config)
        try:
            async with self._semaphore(channel):
                latency_ms = await self._client.post(config.url, payload)
        except DeliveryError as exc:
            self._logger.warning(
                "Delivery failed; dropping batch: %s",
                exc,
                extra={"channel": channel, "items": len(items), "status_code": exc.status_code},
            )
            self._record_failure(channel, items, exc)
            return self._record(DeliveryOutcome.FAILED)
        self._logger.debug(
            "Batch delivered",
            extra={"channel": channel, "items": len(items), "latency_ms": round(latency_ms, 1)},
        )
        return self._record(DeliveryOutcome.OK)

    def _semaphore(self, channel: ChannelName) -> asyncio.Semaphore:
        semaphore = self._semaphores.get(channel)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self._max_inflight)
            self._semaphores[channel] = semaphore
        return semaphore

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for in-flight deliveries; returns how many were still running after ``timeout``."""

        if not self._tasks:
            return 0
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            self._logger.warning("Deliveries still in flight at shutdown", extra={"pending": len(pending)})
        return len(pending)

    async def _run(self, items: Sequence[AdmittedItem], channel: ChannelName) -> DeliveryOutcome:
        try:
            return await self.dispatch(items, channel)
        except Exception:
            self._logger.exception("Unexpected delivery error", extra={"channel": channel, "items": len(items)})
            return self._record(DeliveryOutcome.FAILED)

    def _record(self, outcome: DeliveryOutcome) -> DeliveryOutcome:
        self.outcomes[outcome] += 1
        return outcome

    def _record_failure(self, channel: ChannelName, items: Sequence[AdmittedItem], exc: DeliveryError) -> None:
        if self._telemetry is None:
            return
        event = TelemetryEvent(
            timestamp=now_utc(),
            event_type="delivery_failed",
            level="WARNING",
            payload={"channel": channel, "items": len(items), "error": str(exc), "status_code": exc.status_code},
            context={"url": exc.url},
        )
        try:
            self._telemetry.append_event(event)
        except TelemetryError as err:  # pragma: no cover - filesystem errors are rare
            self._logger.warning("Failed to record delivery failure: %s", err)


__all__ = ["DeliveryDispatcher", "build_payload"]
