"""Configuration loading and validation package."""

from .loader import load_app_config, load_relay_config, load_secrets_config, resolve_secrets_path
from .models import (
    AppConfig,
    BatchConfig,
    ChannelConfig,
    ConnectionConfig,
    DeliveryConfig,
    FeedConfig,
    FilterConfig,
    RelayConfig,
    SecretsConfig,
    TelemetryConfig,
)

__all__ = [
    "AppConfig",
    "BatchConfig",
    "ChannelConfig",
    "ConnectionConfig",
    "DeliveryConfig",
    "FeedConfig",
    "FilterConfig",
    "RelayConfig",
    "SecretsConfig",
    "TelemetryConfig",
    "load_app_config",
    "load_relay_config",
    "load_secrets_config",
    "resolve_secrets_path",
]
