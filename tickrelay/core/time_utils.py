"""Utilities for dealing with epoch timestamps and fixed-width buckets.

All timestamps exchanged with the feed and the webhooks are integer epoch
milliseconds. Buckets are aligned to the epoch, never to a wall-clock timezone.
"""
from __future__ import annotations

import re
import time
from datetime import datetime, timezone

from .types import EpochMs

_INTERVAL_RE = re.compile(r"^(\d+)([smhdw])$")
_UNIT_MS = {
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}


def now_ms() -> EpochMs:
    """Return the current wall-clock time in epoch milliseconds."""

    return EpochMs(int(time.time() * 1000))


def now_utc() -> datetime:
    """Return the current UTC datetime with tzinfo."""

    return datetime.now(timezone.utc)


def interval_to_ms(interval: str) -> int:
    """Return the width of a feed interval such as ``1h`` or ``15m`` in ms.

    Months (``1M``) are not fixed-width and are rejected.
    """

    match = _INTERVAL_RE.match(interval.strip())
    if match is None:
        raise ValueError(f"Unsupported interval: {interval!r}")
    count = int(match.group(1))
    if count <= 0:
        raise ValueError(f"Interval must be positive: {interval!r}")
    return count * _UNIT_MS[match.group(2)]


def bucket_open_time(timestamp_ms: int, bucket_ms: int) -> EpochMs:
    """Floor ``timestamp_ms`` to the start of its epoch-aligned bucket."""

    if bucket_ms <= 0:
        raise ValueError("bucket_ms must be positive")
    return EpochMs((timestamp_ms // bucket_ms) * bucket_ms)
