from __future__ import annotations

import heapq
import json
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import httpx
import pytest

from tickrelay.config.models import (
    BatchConfig,
    ChannelConfig,
    ConnectionConfig,
    DeliveryConfig,
    FeedConfig,
    FilterConfig,
    RelayConfig,
    TelemetryConfig,
)
from tickrelay.core.types import EpochMs, Symbol
from tickrelay.feed.transport import TransportListener
from tickrelay.pipeline.models import AdmittedItem, Tick


@dataclass(order=True)
class _ManualHandle:
    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: time only moves through :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[_ManualHandle] = []
        self._seq = 0

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        self._seq += 1
        handle = _ManualHandle(self.now + delay, self._seq, callback)
        heapq.heappush(self._queue, handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0].when <= target + 1e-9:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = handle.when
            handle.callback()
        self.now = target


class FakeTransport:
    def __init__(self, url: str, listener: TransportListener) -> None:
        self.url = url
        self.listener = listener
        self.started = False
        self.closed = False
        self.pings = 0
        self.fail_ping = False

    def start(self) -> None:
        self.started = True

    def ping(self) -> None:
        if self.fail_ping:
            raise ConnectionError("socket gone")
        self.pings += 1

    def close(self) -> None:
        self.closed = True


class FakeTransportFactory:
    def __init__(self) -> None:
        self.created: List[FakeTransport] = []
        self.fail_next = False

    def __call__(self, url: str, listener: TransportListener) -> FakeTransport:
        if self.fail_next:
            self.fail_next = False
            raise OSError("connection refused")
        transport = FakeTransport(url, listener)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> EpochMs:
        return EpochMs(self.now_ms)

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class WebhookRecorder:
    """``httpx.MockTransport`` handler recording requests per URL."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_by_url: Dict[str, int] = {}
        self.errors_by_url: Dict[str, Exception] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.errors_by_url:
            raise self.errors_by_url[url]
        return httpx.Response(self.status_by_url.get(url, 200), json={"ok": True})

    def bodies(self, url: str) -> List[dict]:
        return [json.loads(request.content) for request in self.requests if str(request.url) == url]


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def webhook_recorder() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(
        feed=FeedConfig(symbols=["BTCUSDT", "ETHUSDT"], streams=["miniTicker"]),
        connection=ConnectionConfig(heartbeat_interval_sec=15, reconnect_delay_sec=3),
        filter=FilterConfig(throttle_sec=2, min_pct_move=0.0005),
        batch=BatchConfig(window_sec=0.8),
        delivery=DeliveryConfig(
            timeout_sec=8,
            channels=[
                ChannelConfig(name="1h", interval="1h", url="https://hooks.test/1h"),
                ChannelConfig(name="4h", interval="4h", url=None),
            ],
        ),
        telemetry=TelemetryConfig(tick_log_sample_rate=0.0, stats_interval_sec=60),
    )


@pytest.fixture
def tick_factory() -> Callable[..., Tick]:
    def _factory(price: float, at_ms: int, symbol: str = "XUSDT") -> Tick:
        return Tick(symbol=Symbol(symbol), price=price, observed_at=EpochMs(at_ms))

    return _factory


@pytest.fixture
def item_factory() -> Callable[..., AdmittedItem]:
    def _factory(price: float, at_ms: int, symbol: str = "BTCUSDT") -> AdmittedItem:
        return AdmittedItem(symbol=Symbol(symbol), price=price, observed_at=EpochMs(at_ms))

    return _factory
