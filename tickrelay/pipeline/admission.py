"""Per-symbol admission filter (throttle + minimum relative move)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from tickrelay.config.models import FilterConfig
from tickrelay.core.types import EpochMs, Symbol
from tickrelay.pipeline.models import Tick

CandleKey = Tuple[Symbol, str]


@dataclass(slots=True)
class SymbolState:
    """What the filter remembers about one symbol (or one symbol's kline interval)."""

    last_price: Optional[float] = None
    last_sent_at: Optional[EpochMs] = None


class AdmissionFilter:
    """Decide whether a tick is interesting enough to forward.

    A tick passes when at least ``throttle_ms`` elapsed since the symbol's last
    admitted tick *and* the price moved at least ``min_pct_move`` relative to
    the last observed price. The first tick of a symbol always passes. The
    baseline price is updated on every tick, admitted or not, so a slow drift
    made of small steps never accumulates into an admission.

    Kline ticks are tracked per ``(symbol, interval)``: a ``1h`` candle update
    never uses up the throttle slot of the ``4h`` candle of the same symbol.
    Ticker ticks are tracked per symbol.
    """

    def __init__(self, config: FilterConfig) -> None:
        self._throttle_ms = config.throttle_ms
        self._min_pct_move = config.min_pct_move
        self._states: Dict[Symbol, SymbolState] = {}
        self._candle_states: Dict[CandleKey, SymbolState] = {}
        self.admitted = 0
        self.rejected = 0

    @property
    def states(self) -> Mapping[Symbol, SymbolState]:
        return self._states

    @property
    def candle_states(self) -> Mapping[CandleKey, SymbolState]:
        return self._candle_states

    @property
    def symbols_tracked(self) -> int:
        return len(set(self._states) | {symbol for symbol, _ in self._candle_states})

    def admit(self, tick: Tick) -> bool:
        """Return whether ``tick`` is admitted and record it in its state."""

        if not math.isfinite(tick.price) or tick.price <= 0:
            self.rejected += 1
            return False
        state = self._state_for(tick)
        prev_price = state.last_price
        admitted = self._check_throttle(state, tick.observed_at) and self._check_move(prev_price, tick.price)
        state.last_price = tick.price
        if admitted:
            state.last_sent_at = tick.observed_at
            self.admitted += 1
        else:
            self.rejected += 1
        return admitted

    def _state_for(self, tick: Tick) -> SymbolState:
        if tick.candle is not None:
            key = (tick.symbol, tick.candle.interval)
            state = self._candle_states.get(key)
            if state is None:
                state = self._candle_states[key] = SymbolState()
            return state
        state = self._states.get(tick.symbol)
        if state is None:
            state = self._states[tick.symbol] = SymbolState()
        return state

    def _check_throttle(self, state: SymbolState, now: EpochMs) -> bool:
        if state.last_sent_at is None:
            return True
        return now - state.last_sent_at >= self._throttle_ms

    def _check_move(self, prev_price: Optional[float], price: float) -> bool:
        if prev_price is None or prev_price <= 0:
            return True
        return abs(price / prev_price - 1) >= self._min_pct_move


__all__ = ["AdmissionFilter", "CandleKey", "SymbolState"]
