from __future__ import annotations

import math

import pytest

from tickrelay.config.models import FilterConfig
from tickrelay.core.types import EpochMs, Symbol
from tickrelay.pipeline.admission import AdmissionFilter
from tickrelay.pipeline.models import Candle, Tick


@pytest.fixture
def admission() -> AdmissionFilter:
    return AdmissionFilter(FilterConfig(throttle_sec=2, min_pct_move=0.0005))


def test_admission_should_follow_throttle_then_move_scenario(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0)) is True  # first observation
    assert admission.admit(tick_factory(100.02, 500)) is False  # elapsed < 2s
    assert admission.admit(tick_factory(100.10, 2_100)) is True  # elapsed ok, move 0.08%


def test_admission_should_reject_small_move_after_throttle(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0)) is True
    assert admission.admit(tick_factory(100.01, 3_000)) is False  # move 0.01% < 0.05%


def test_admission_should_throttle_regardless_of_move(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0)) is True
    assert admission.admit(tick_factory(150.0, 1_999)) is False
    assert admission.admit(tick_factory(200.0, 2_000)) is True


def test_admission_should_update_last_price_always_and_last_sent_only_on_admit(admission, tick_factory) -> None:
    admission.admit(tick_factory(100.0, 0))
    admission.admit(tick_factory(100.02, 500))
    state = admission.states[Symbol("XUSDT")]
    assert state.last_price == 100.02
    assert state.last_sent_at == 0

    admission.admit(tick_factory(101.0, 2_500))
    assert state.last_price == 101.0
    assert state.last_sent_at == 2_500


def test_admission_should_measure_move_against_last_observed_price(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0)) is True
    # each step is 0.03% from the previous observation, below the 0.05% threshold,
    # even though the cumulative drift from the admitted price exceeds it
    assert admission.admit(tick_factory(100.03, 2_000)) is False
    assert admission.admit(tick_factory(100.06, 4_000)) is False
    assert admission.admit(tick_factory(100.09, 6_000)) is False
    assert admission.admit(tick_factory(100.20, 8_000)) is True


def test_admission_should_track_symbols_independently(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0, symbol="AUSDT")) is True
    assert admission.admit(tick_factory(0.5, 100, symbol="BUSDT")) is True
    assert admission.admit(tick_factory(0.51, 200, symbol="BUSDT")) is False
    assert set(admission.states) == {Symbol("AUSDT"), Symbol("BUSDT")}


@pytest.mark.parametrize("price", [0.0, -1.0, math.nan, math.inf])
def test_admission_should_never_admit_unusable_prices(admission, tick_factory, price) -> None:
    assert admission.admit(tick_factory(price, 0)) is False
    assert Symbol("XUSDT") not in admission.states


def test_admission_should_count_decisions(admission, tick_factory) -> None:
    admission.admit(tick_factory(100.0, 0))
    admission.admit(tick_factory(100.0, 10))
    admission.admit(tick_factory(101.0, 5_000))
    assert admission.admitted == 2
    assert admission.rejected == 1


def test_admission_without_thresholds_should_admit_every_tick(tick_factory) -> None:
    admission = AdmissionFilter(FilterConfig(throttle_sec=0, min_pct_move=0))
    assert all(admission.admit(tick_factory(100.0, at)) for at in (0, 0, 1, 1))


def _candle_tick(interval: str, price: float, at_ms: int, symbol: str = "XUSDT") -> Tick:
    candle = Candle(
        interval=interval,
        open_time=EpochMs(0),
        close_time=EpochMs(3_599_999),
        open=price,
        high=price,
        low=price,
        close=price,
        volume=1.0,
        is_final=False,
    )
    return Tick(symbol=Symbol(symbol), price=price, observed_at=EpochMs(at_ms), candle=candle)


def test_admission_should_throttle_each_kline_interval_separately(admission) -> None:
    assert admission.admit(_candle_tick("1h", 100.0, 0)) is True
    assert admission.admit(_candle_tick("4h", 100.0, 50)) is True
    assert admission.admit(_candle_tick("1h", 101.0, 2_500)) is True
    assert admission.admit(_candle_tick("4h", 101.0, 2_550)) is True
    assert admission.admit(_candle_tick("4h", 102.0, 2_600)) is False
    assert set(admission.candle_states) == {(Symbol("XUSDT"), "1h"), (Symbol("XUSDT"), "4h")}


def test_admission_should_keep_ticker_and_kline_states_apart(admission, tick_factory) -> None:
    assert admission.admit(tick_factory(100.0, 0)) is True
    assert admission.admit(_candle_tick("1h", 100.0, 10)) is True
    assert admission.states[Symbol("XUSDT")].last_sent_at == 0
    assert admission.candle_states[(Symbol("XUSDT"), "1h")].last_sent_at == 10
    assert admission.symbols_tracked == 1
