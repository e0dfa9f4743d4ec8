"""Time-windowed batching of admitted items per delivery channel."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Sequence

from tickrelay.core.types import ChannelName
from tickrelay.pipeline.models import AdmittedItem
from tickrelay.pipeline.scheduler import OneShotTimer, Scheduler

LOGGER = logging.getLogger(__name__)

FlushCallback = Callable[[Sequence[AdmittedItem], ChannelName], None]


@dataclass(slots=True)
class BatchWindow:
    """Pending items of one channel plus its flush timer."""

    timer: OneShotTimer
    items: List[AdmittedItem] = field(default_factory=list)

    def swap(self) -> List[AdmittedItem]:
        """Take the pending items, leaving an empty buffer behind."""

        items, self.items = self.items, []
        return items


class BatchAccumulator:
    """Collect admitted items and flush each channel once per window.

    The first enqueue into an idle channel arms that channel's timer; later
    enqueues only append, so an item waits at most ``window_sec``. When the
    timer fires the buffer is swapped out and handed to ``on_flush`` in
    enqueue order.
    """

    def __init__(self, scheduler: Scheduler, window_sec: float, on_flush: FlushCallback) -> None:
        self._scheduler = scheduler
        self._window_sec = window_sec
        self._on_flush = on_flush
        self._windows: Dict[ChannelName, BatchWindow] = {}
        self.batches_flushed = 0
        self.items_flushed = 0

    def enqueue(self, item: AdmittedItem, channel: ChannelName) -> None:
        window = self._windows.get(channel)
        if window is None:
            window = BatchWindow(timer=OneShotTimer(self._scheduler, name=f"flush:{channel}"))
            self._windows[channel] = window
        window.items.append(item)
        window.timer.arm(self._window_sec, partial(self._flush, channel))

    def is_armed(self, channel: ChannelName) -> bool:
        window = self._windows.get(channel)
        return window is not None and window.timer.armed

    def pending(self, channel: ChannelName) -> tuple[AdmittedItem, ...]:
        window = self._windows.get(channel)
        return tuple(window.items) if window else ()

    def cancel_all(self) -> int:
        """Disarm every window and drop pending items; returns the dropped count."""

        dropped = 0
        for channel, window in self._windows.items():
            window.timer.cancel()
            items = window.swap()
            if items:
                LOGGER.info("Dropping pending batch", extra={"channel": channel, "items": len(items)})
            dropped += len(items)
        return dropped

    def _flush(self, channel: ChannelName) -> None:
        window = self._windows[channel]
        items = window.swap()
        if not items:
            return
        self.batches_flushed += 1
        self.items_flushed += len(items)
        try:
            self._on_flush(items, channel)
        except Exception:
            LOGGER.exception("Flush handler failed", extra={"channel": channel, "items": len(items)})


__all__ = ["BatchAccumulator", "BatchWindow", "FlushCallback"]
