"""Wiring of feed → admission → batching → delivery for one relay instance."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Iterator

from tickrelay.config.models import ChannelConfig, RelayConfig
from tickrelay.core.enums import DeliveryOutcome
from tickrelay.core.time_utils import now_ms, now_utc
from tickrelay.core.types import ChannelName, EpochMs
from tickrelay.delivery.dispatcher import DeliveryDispatcher
from tickrelay.feed.packets import parse_packet
from tickrelay.feed.stream import StreamConnectionManager
from tickrelay.feed.transport import TransportFactory
from tickrelay.pipeline.admission import AdmissionFilter
from tickrelay.pipeline.batching import BatchAccumulator
from tickrelay.pipeline.models import AdmittedItem
from tickrelay.pipeline.scheduler import PeriodicTimer, Scheduler
from tickrelay.telemetry.events import PipelineStats

LOGGER = logging.getLogger(__name__)


class TickRelay:
    """Own every pipeline component; nothing here is process-global.

    Ticker items are routed to every channel. Kline items go to channels with
    a matching ``interval`` and to channels without one.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        scheduler: Scheduler,
        dispatcher: DeliveryDispatcher,
        transport_factory: TransportFactory,
        clock: Callable[[], EpochMs] = now_ms,
        sample: Callable[[], float] = random.random,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._sample = sample
        self._logger = logger or LOGGER
        self._channels: list[ChannelConfig] = list(config.delivery.channels)
        self._dispatcher = dispatcher
        self._filter = AdmissionFilter(config.filter)
        self._accumulator = BatchAccumulator(scheduler, config.batch.window_sec, dispatcher.submit)
        self._manager = StreamConnectionManager(
            config.feed.stream_url(),
            scheduler=scheduler,
            on_message=self.handle_message,
            transport_factory=transport_factory,
            config=config.connection,
            logger=self._logger.getChild("stream"),
        )
        self._stats_timer = PeriodicTimer(scheduler, name="stats")
        self._started_at = now_utc()
        self.messages_received = 0
        self.messages_discarded = 0

    @property
    def connection(self) -> StreamConnectionManager:
        return self._manager

    @property
    def admission(self) -> AdmissionFilter:
        return self._filter

    @property
    def accumulator(self) -> BatchAccumulator:
        return self._accumulator

    # ------------------------------------------------------------------
    # Message path
    # ------------------------------------------------------------------
    def handle_message(self, raw: str | bytes) -> None:
        """Parse, filter and enqueue one raw feed message."""

        self.messages_received += 1
        tick = parse_packet(raw, self._clock())
        if tick is None:
            self.messages_discarded += 1
            self._logger.debug("Discarded unrecognized packet", extra={"size": len(raw)})
            return
        if not self._filter.admit(tick):
            return
        item = AdmittedItem.from_tick(tick)
        for channel in self._route(item):
            self._accumulator.enqueue(item, channel)
        rate = self._config.telemetry.tick_log_sample_rate
        if rate and self._sample() < rate:
            self._logger.info(
                "Tick admitted",
                extra={"symbol": item.symbol, "price": item.price, "ts": item.observed_at},
            )

    def _route(self, item: AdmittedItem) -> Iterator[ChannelName]:
        for channel in self._channels:
            if item.candle is not None and channel.interval and channel.interval != item.candle.interval:
                continue
            yield ChannelName(channel.name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        self._manager.start()
        self._stats_timer.start(self._config.telemetry.stats_interval_sec, self._log_stats)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Start the pipeline and keep it running until ``stop_event`` is set."""

        self.start()
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self, drain_timeout: float | None = None) -> None:
        """Cancel every timer, then let in-flight deliveries finish."""

        self._manager.stop()
        self._stats_timer.stop()
        dropped = self._accumulator.cancel_all()
        timeout = drain_timeout if drain_timeout is not None else self._config.delivery.drain_timeout_sec
        pending = await self._dispatcher.drain(timeout)
        self._logger.info("Relay stopped", extra={"dropped_items": dropped, "undelivered_batches": pending})

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------
    def stats(self) -> PipelineStats:
        outcomes = self._dispatcher.outcomes
        return PipelineStats(
            started_at=self._started_at,
            messages_received=self.messages_received,
            messages_discarded=self.messages_discarded,
            ticks_admitted=self._filter.admitted,
            ticks_rejected=self._filter.rejected,
            batches_flushed=self._accumulator.batches_flushed,
            items_flushed=self._accumulator.items_flushed,
            deliveries_ok=outcomes[DeliveryOutcome.OK],
            deliveries_failed=outcomes[DeliveryOutcome.FAILED],
            deliveries_skipped=outcomes[DeliveryOutcome.SKIPPED],
            connects=self._manager.connects,
            reconnects_scheduled=self._manager.reconnects_scheduled,
            symbols_tracked=self._filter.symbols_tracked,
        )

    def _log_stats(self) -> None:
        stats = self.stats()
        self._logger.info("Pipeline stats", extra={"stats": stats.to_dict(), "phase": self._manager.phase.value})


__all__ = ["TickRelay"]
