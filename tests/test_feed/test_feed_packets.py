from __future__ import annotations

import json

import pytest

from tickrelay.core.types import EpochMs
from tickrelay.feed.packets import parse_packet

NOW = EpochMs(1_700_000_000_000)


def _combined(data: object, stream: str = "btcusdt@miniTicker") -> str:
    return json.dumps({"stream": stream, "data": data})


def test_parse_packet_should_read_combined_mini_ticker() -> None:
    raw = _combined({"e": "24hrMiniTicker", "E": 1, "s": "BTCUSDT", "c": "43250.10", "o": "43000"})
    tick = parse_packet(raw, NOW)
    assert tick is not None
    assert tick.symbol == "BTCUSDT"
    assert tick.price == pytest.approx(43250.10)
    assert tick.observed_at == NOW
    assert tick.candle is None


def test_parse_packet_should_accept_bare_payload_and_bytes() -> None:
    raw = json.dumps({"s": "ethusdt", "c": "2200.5"}).encode()
    tick = parse_packet(raw, NOW)
    assert tick is not None
    assert tick.symbol == "ETHUSDT"
    assert tick.price == 2200.5


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        "null",
        _combined({"c": "100"}),
        _combined({"s": "BTCUSDT"}),
        _combined({"s": "", "c": "100"}),
        _combined({"s": "BTCUSDT", "c": "0"}),
        _combined({"s": "BTCUSDT", "c": "-5"}),
        _combined({"s": "BTCUSDT", "c": "NaN"}),
        _combined({"s": "BTCUSDT", "c": "Infinity"}),
        _combined({"s": "BTCUSDT", "c": "abc"}),
        _combined({"s": "BTCUSDT", "c": True}),
        _combined("plain string"),
        json.dumps({"result": None, "id": 1}),
    ],
)
def test_parse_packet_should_discard_unusable_messages(raw: str) -> None:
    assert parse_packet(raw, NOW) is None


def test_parse_packet_should_read_kline_candle() -> None:
    raw = _combined(
        {
            "e": "kline",
            "s": "BTCUSDT",
            "k": {
                "s": "BTCUSDT",
                "i": "1h",
                "t": 1_699_999_200_000,
                "T": 1_700_002_799_999,
                "o": "43000.0",
                "h": "43300.0",
                "l": "42950.0",
                "c": "43250.0",
                "v": "812.5",
                "x": False,
            },
        },
        stream="btcusdt@kline_1h",
    )
    tick = parse_packet(raw, NOW)
    assert tick is not None
    assert tick.price == 43250.0
    candle = tick.candle
    assert candle is not None
    assert candle.interval == "1h"
    assert candle.open_time == 1_699_999_200_000
    assert candle.close_time == 1_700_002_799_999
    assert (candle.open, candle.high, candle.low, candle.close) == (43000.0, 43300.0, 42950.0, 43250.0)
    assert candle.volume == 812.5
    assert candle.is_final is False


def test_parse_packet_should_discard_incomplete_kline() -> None:
    raw = _combined({"e": "kline", "s": "BTCUSDT", "k": {"i": "1h", "c": "43250.0"}})
    assert parse_packet(raw, NOW) is None
    assert parse_packet(_combined({"e": "kline", "s": "BTCUSDT", "k": "oops"}), NOW) is None


def _kline_fields(**overrides: object) -> dict:
    fields = {
        "i": "1h",
        "t": 1_699_999_200_000,
        "T": 1_700_002_799_999,
        "o": "43000.0",
        "h": "43300.0",
        "l": "42950.0",
        "c": "43250.0",
        "v": "812.5",
        "x": True,
    }
    fields.update(overrides)
    return fields


@pytest.mark.parametrize(
    "overrides",
    [
        {"o": "NaN"},
        {"h": "Infinity"},
        {"l": "-Infinity"},
        {"o": "0"},
        {"v": "NaN"},
        {"v": "Infinity"},
        {"v": "-1"},
        {"h": None},
    ],
)
def test_parse_packet_should_discard_kline_with_unusable_fields(overrides: dict) -> None:
    raw = _combined({"e": "kline", "s": "BTCUSDT", "k": _kline_fields(**overrides)}, stream="btcusdt@kline_1h")
    assert parse_packet(raw, NOW) is None


def test_parse_packet_should_accept_kline_with_zero_or_missing_volume() -> None:
    zero = parse_packet(_combined({"e": "kline", "s": "BTCUSDT", "k": _kline_fields(v="0")}), NOW)
    fields = _kline_fields()
    del fields["v"]
    missing = parse_packet(_combined({"e": "kline", "s": "BTCUSDT", "k": fields}), NOW)
    assert zero is not None and zero.candle is not None
    assert missing is not None and missing.candle is not None
    assert zero.candle.volume == 0.0
    assert missing.candle.volume == 0.0
    assert zero.candle.is_final is True
