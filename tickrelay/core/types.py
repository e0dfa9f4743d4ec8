"""Shared type aliases for readability and contract enforcement."""
from __future__ import annotations

from typing import NewType

Symbol = NewType("Symbol", str)
ChannelName = NewType("ChannelName", str)
EpochMs = NewType("EpochMs", int)
