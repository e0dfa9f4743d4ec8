"""Typed configuration models for the tick relay.

The config subsystem relies on pydantic to validate YAML files and to provide
strongly-typed objects to the rest of the runtime. Every knob has a documented
default so a minimal ``tickrelay.yml`` only lists symbols and channels.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, field_validator, model_validator

from tickrelay.core.time_utils import interval_to_ms

DEFAULT_WS_ENDPOINT = "wss://stream.binance.com:9443"


class FeedConfig(BaseModel):
    """Upstream combined-stream subscription settings."""

    ws_endpoint: str = Field(DEFAULT_WS_ENDPOINT, min_length=6)
    symbols: List[str] = Field(..., min_length=1)
    streams: List[str] = Field(default_factory=lambda: ["miniTicker"], min_length=1)

    @field_validator("symbols")
    @classmethod
    def _normalize_symbols(cls, value: List[str]) -> List[str]:
        """Upper-case symbols and drop duplicates while keeping order."""

        seen: list[str] = []
        for raw in value:
            symbol = raw.strip().upper()
            if not symbol:
                raise ValueError("symbol entries must be non-empty")
            if symbol not in seen:
                seen.append(symbol)
        return seen

    @field_validator("streams")
    @classmethod
    def _validate_streams(cls, value: List[str]) -> List[str]:
        for stream in value:
            if stream.startswith("kline_"):
                interval_to_ms(stream.removeprefix("kline_"))
            elif not stream:
                raise ValueError("stream names must be non-empty")
        return value

    def topics(self) -> list[str]:
        """Return per-symbol topics such as ``btcusdt@miniTicker``."""

        return [f"{symbol.lower()}@{stream}" for symbol in self.symbols for stream in self.streams]

    def stream_url(self) -> str:
        """Single combined-stream URL covering every configured topic."""

        base = self.ws_endpoint.rstrip("/")
        return f"{base}/stream?streams={'/'.join(self.topics())}"


class ConnectionConfig(BaseModel):
    """Heartbeat and reconnect timings for the stream connection."""

    heartbeat_interval_sec: PositiveFloat = 15.0
    reconnect_delay_sec: PositiveFloat = 3.0


class FilterConfig(BaseModel):
    """Admission filter thresholds.

    ``min_pct_move`` is a fraction: ``0.0005`` means a 0.05% relative move.
    """

    throttle_sec: float = Field(2.0, ge=0)
    min_pct_move: float = Field(0.0005, ge=0, lt=1)

    @property
    def throttle_ms(self) -> int:
        return int(round(self.throttle_sec * 1000))


class BatchConfig(BaseModel):
    """Batch window length shared by every channel."""

    window_sec: PositiveFloat = 0.8


class ChannelConfig(BaseModel):
    """Downstream delivery target.

    A channel without ``url`` stays inert: batches are built but never sent.
    ``interval`` makes the channel bucketed (``openTime`` is derived per flush)
    and routes kline items of the same interval to it.
    """

    name: str = Field(..., min_length=1)
    url: Optional[str] = None
    interval: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _blank_url_is_absent(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("interval")
    @classmethod
    def _validate_interval(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            interval_to_ms(value)
        return value

    @property
    def bucket_ms(self) -> Optional[int]:
        return interval_to_ms(self.interval) if self.interval else None


class DeliveryConfig(BaseModel):
    """Webhook delivery settings."""

    timeout_sec: PositiveFloat = 8.0
    secret_header: str = Field("X-Relay-Secret", min_length=1)
    max_inflight: int = Field(8, ge=1)
    drain_timeout_sec: PositiveFloat = 10.0
    channels: List[ChannelConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_channel_names(self) -> "DeliveryConfig":
        names = [channel.name for channel in self.channels]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate channel names: {', '.join(duplicates)}")
        return self


class TelemetryConfig(BaseModel):
    """Logging/telemetry switches."""

    log_level: str = Field("INFO")
    reports_dir: str = Field("data/telemetry")
    stats_interval_sec: PositiveFloat = 60.0
    tick_log_sample_rate: float = Field(0.02, ge=0, le=1)


class RelayConfig(BaseModel):
    """Top-level contents of ``tickrelay.yml``."""

    feed: FeedConfig
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


class SecretsConfig(BaseModel):
    """Secrets kept out of the main config (``secrets.yaml``)."""

    shared_secret: Optional[str] = Field(None, min_length=8)

    model_config = ConfigDict(frozen=True)


class AppConfig(BaseModel):
    """Runtime config composed of the relay settings and secrets."""

    relay: RelayConfig
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
