"""Error hierarchy shared by the relay subsystems.

Centralizing exception types makes it easier for the runtime to distinguish
between faults it recovers from (a dropped stream, a failed webhook call) and
faults that stop start-up (a broken config file). Submodules should raise the
most specific error available.
"""
from __future__ import annotations


class CoreError(Exception):
    """Base class for all custom exceptions in the application."""


class ConfigurationError(CoreError):
    """Raised when configuration files are missing or invalid."""


class FeedError(CoreError):
    """Raised when the upstream stream transport cannot be operated."""


class DeliveryError(CoreError):
    """Raised when a webhook call fails (network, timeout or non-2xx status)."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TelemetryError(CoreError):
    """Raised for telemetry/logging persistence issues."""
