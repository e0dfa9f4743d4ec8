"""Stream connection manager: connect, heartbeat, detect failure, reconnect.

State machine::

    DISCONNECTED --start()--> CONNECTING --open--> CONNECTED
    CONNECTED/CONNECTING --close|error--> DISCONNECTED (one reconnect armed)
    DISCONNECTED --reconnect timer--> CONNECTING
    any --stop()--> CLOSING --> DISCONNECTED (terminal)

Every connection gets a new epoch number. Transport signals carry the epoch
they were created for and are ignored once a newer connection exists, which
keeps late callbacks from a dead socket from tearing down a live one.
"""
from __future__ import annotations

import logging
from typing import Callable

from tickrelay.config.models import ConnectionConfig
from tickrelay.core.enums import ConnectionPhase
from tickrelay.feed.transport import StreamTransport, TransportFactory
from tickrelay.pipeline.scheduler import OneShotTimer, PeriodicTimer, Scheduler

LOGGER = logging.getLogger(__name__)

MessageHandler = Callable[[str | bytes], None]


class _EpochListener:
    """Transport listener that tags every signal with its connection epoch."""

    def __init__(self, manager: "StreamConnectionManager", epoch: int) -> None:
        self._manager = manager
        self._epoch = epoch

    def on_open(self) -> None:
        self._manager._handle_open(self._epoch)

    def on_message(self, raw: str | bytes) -> None:
        self._manager._handle_message(self._epoch, raw)

    def on_error(self, error: BaseException) -> None:
        self._manager._handle_error(self._epoch, error)

    def on_close(self, code: int | None, reason: str | None) -> None:
        self._manager._handle_close(self._epoch, code, reason)


class StreamConnectionManager:
    """Own the lifecycle of the single combined-stream subscription.

    Parameters
    ----------
    url:
        Combined-stream URL (see :meth:`FeedConfig.stream_url`).
    scheduler:
        Timer source for heartbeat and reconnect.
    on_message:
        Called with every raw message received while connected.
    transport_factory:
        Builds a transport for one connection attempt.
    """

    def __init__(
        self,
        url: str,
        *,
        scheduler: Scheduler,
        on_message: MessageHandler,
        transport_factory: TransportFactory,
        config: ConnectionConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        cfg = config or ConnectionConfig()
        self._url = url
        self._on_message = on_message
        self._transport_factory = transport_factory
        self._heartbeat_sec = cfg.heartbeat_interval_sec
        self._reconnect_delay_sec = cfg.reconnect_delay_sec
        self._logger = logger or LOGGER
        self._heartbeat = PeriodicTimer(scheduler, name="heartbeat")
        self._reconnect = OneShotTimer(scheduler, name="reconnect")
        self._phase = ConnectionPhase.DISCONNECTED
        self._transport: StreamTransport | None = None
        self._epoch = 0
        self._stopped = True
        self.connects = 0
        self.reconnects_scheduled = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect.armed

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat.running

    def start(self) -> None:
        if not self._stopped:
            return
        self._stopped = False
        self._logger.info("Starting stream connection", extra={"url": self._url})
        self._connect()

    def stop(self) -> None:
        """Cancel heartbeat/reconnect timers and close the transport."""

        if self._stopped:
            return
        self._stopped = True
        self._phase = ConnectionPhase.CLOSING
        self._heartbeat.stop()
        self._reconnect.cancel()
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                transport.close()
            except Exception as exc:
                self._logger.warning("Transport close failed: %s", exc)
        self._phase = ConnectionPhase.DISCONNECTED
        self._logger.info("Stream connection stopped")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _connect(self) -> None:
        if self._stopped:
            return
        self._epoch += 1
        self._phase = ConnectionPhase.CONNECTING
        self.connects += 1
        epoch = self._epoch
        self._logger.info("Connecting to stream", extra={"epoch": epoch})
        try:
            transport = self._transport_factory(self._url, _EpochListener(self, epoch))
            self._transport = transport
            transport.start()
        except Exception as exc:
            self._logger.warning("Stream connect failed: %s", exc, extra={"epoch": epoch})
            self._drop(epoch)

    def _handle_open(self, epoch: int) -> None:
        if self._is_stale(epoch):
            return
        self._phase = ConnectionPhase.CONNECTED
        self._heartbeat.start(self._heartbeat_sec, self._send_heartbeat)
        self._logger.info("Stream connected", extra={"epoch": epoch})

    def _handle_message(self, epoch: int, raw: str | bytes) -> None:
        if self._is_stale(epoch) or self._phase is not ConnectionPhase.CONNECTED:
            return
        try:
            self._on_message(raw)
        except Exception:
            self._logger.exception("Message handler failed", extra={"epoch": epoch})

    def _handle_error(self, epoch: int, error: BaseException) -> None:
        if self._is_stale(epoch):
            return
        self._logger.warning("Stream error: %s", error, extra={"epoch": epoch})
        self._drop(epoch)

    def _handle_close(self, epoch: int, code: int | None, reason: str | None) -> None:
        if self._is_stale(epoch):
            return
        self._logger.info("Stream closed", extra={"epoch": epoch, "code": code, "reason": reason})
        self._drop(epoch)

    def _drop(self, epoch: int) -> None:
        """Go DISCONNECTED and arm the reconnect timer unless already armed."""

        self._heartbeat.stop()
        self._phase = ConnectionPhase.DISCONNECTED
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                transport.close()
            except Exception as exc:
                self._logger.debug("Transport close after drop failed: %s", exc)
        if self._reconnect.arm(self._reconnect_delay_sec, self._connect):
            self.reconnects_scheduled += 1
            self._logger.info(
                "Reconnect scheduled",
                extra={"epoch": epoch, "delay_sec": self._reconnect_delay_sec},
            )

    def _send_heartbeat(self) -> None:
        transport = self._transport
        if transport is None or self._phase is not ConnectionPhase.CONNECTED:
            return
        try:
            transport.ping()
        except Exception as exc:
            self._logger.debug("Heartbeat failed: %s", exc, extra={"epoch": self._epoch})

    def _is_stale(self, epoch: int) -> bool:
        return self._stopped or epoch != self._epoch or self._reconnect.armed


__all__ = ["StreamConnectionManager", "MessageHandler"]
