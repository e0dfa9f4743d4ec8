"""Parsing of Binance combined-stream packets into :class:`Tick` objects.

Two payload families are recognized:

* ``24hrMiniTicker`` (``<symbol>@miniTicker``): ``{"s": "BTCUSDT", "c": "..."}``;
* ``kline`` (``<symbol>@kline_<interval>``): ``{"e": "kline", "s": ...,
  "k": {"i", "t", "T", "o", "h", "l", "c", "v", "x"}}``.

Combined streams wrap either of them as ``{"stream": ..., "data": {...}}``; bare
payloads are accepted too. Anything else is stream noise and yields ``None``.
"""
from __future__ import annotations

import json
import math
from typing import Any, Mapping, Optional

from tickrelay.core.types import EpochMs, Symbol
from tickrelay.pipeline.models import Candle, Tick


def parse_packet(raw: str | bytes, observed_at: EpochMs) -> Optional[Tick]:
    """Return a tick for a valid packet, ``None`` for anything unusable."""

    try:
        packet = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(packet, Mapping):
        return None
    data = packet.get("data") or packet
    if not isinstance(data, Mapping):
        return None
    if data.get("e") == "kline":
        return _parse_kline(data, observed_at)
    symbol = _symbol(data.get("s"))
    price = _price(data.get("c"))
    if symbol is None or price is None:
        return None
    return Tick(symbol=symbol, price=price, observed_at=observed_at)


def _parse_kline(data: Mapping[str, Any], observed_at: EpochMs) -> Optional[Tick]:
    kline = data.get("k")
    if not isinstance(kline, Mapping):
        return None
    symbol = _symbol(data.get("s") or kline.get("s"))
    interval = kline.get("i")
    if symbol is None or not isinstance(interval, str) or not interval:
        return None
    open_, high, low, close = (_price(kline.get(key)) for key in ("o", "h", "l", "c"))
    volume = _volume(kline.get("v"))
    if open_ is None or high is None or low is None or close is None or volume is None:
        return None
    try:
        open_time = EpochMs(int(kline["t"]))
        close_time = EpochMs(int(kline["T"]))
    except (KeyError, TypeError, ValueError):
        return None
    candle = Candle(
        interval=interval,
        open_time=open_time,
        close_time=close_time,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume,
        is_final=bool(kline.get("x", False)),
    )
    return Tick(symbol=symbol, price=close, observed_at=observed_at, candle=candle)


def _symbol(value: Any) -> Optional[Symbol]:
    if not isinstance(value, str):
        return None
    symbol = value.strip().upper()
    return Symbol(symbol) if symbol else None


def _price(value: Any) -> Optional[float]:
    """Parse a price; zero, negative and non-finite values are unusable."""

    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def _volume(value: Any) -> Optional[float]:
    """Parse a kline volume; absent means 0, negative or non-finite is unusable."""

    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return None
    try:
        volume = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(volume) or volume < 0:
        return None
    return volume


__all__ = ["parse_packet"]
