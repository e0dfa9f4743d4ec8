"""Value objects flowing through the relay pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from tickrelay.core.types import EpochMs, Symbol


@dataclass(frozen=True, slots=True)
class Candle:
    """Kline snapshot attached to ticks from ``kline_<interval>`` streams."""

    interval: str
    open_time: EpochMs
    close_time: EpochMs
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_final: bool


@dataclass(frozen=True, slots=True)
class Tick:
    """One observed sample from the feed; ``price`` is the last/close price."""

    symbol: Symbol
    price: float
    observed_at: EpochMs
    candle: Optional[Candle] = None


@dataclass(frozen=True, slots=True)
class AdmittedItem:
    """A tick that passed the admission filter, owned by the batcher until flush."""

    symbol: Symbol
    price: float
    observed_at: EpochMs
    candle: Optional[Candle] = None

    @classmethod
    def from_tick(cls, tick: Tick) -> "AdmittedItem":
        return cls(symbol=tick.symbol, price=tick.price, observed_at=tick.observed_at, candle=tick.candle)

    def to_payload(self, *, interval: str | None = None, open_time: int | None = None) -> Dict[str, Any]:
        """Serialize for the webhook body.

        Candle items carry their own interval and bucket; ticker items get
        ``interval``/``openTime``/``isFinal`` only when the channel is bucketed.
        """

        if self.candle is not None:
            candle = self.candle
            return {
                "symbol": self.symbol,
                "interval": candle.interval,
                "openTime": candle.open_time,
                "closeTime": candle.close_time,
                "open": candle.open,
                "high": candle.high,
                "low": candle.low,
                "close": candle.close,
                "volume": candle.volume,
                "isFinal": candle.is_final,
            }
        payload: Dict[str, Any] = {
            "symbol": self.symbol,
            "price": self.price,
            "ts": self.observed_at,
        }
        if interval is not None and open_time is not None:
            payload["interval"] = interval
            payload["isFinal"] = False
            payload["openTime"] = open_time
        return payload


__all__ = ["Candle", "Tick", "AdmittedItem"]
