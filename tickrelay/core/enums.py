"""Enumerations shared across relay subsystems."""
from __future__ import annotations

from enum import Enum


class ConnectionPhase(str, Enum):
    """Lifecycle phase of the upstream stream subscription."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class DeliveryOutcome(str, Enum):
    """Result of a single batch delivery to one channel."""

    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"  # channel has no endpoint configured
