"""Admission, batching and scheduling primitives of the relay pipeline.

:mod:`tickrelay.pipeline.relay` wires these together with the feed and the
delivery packages; it is not re-exported here to keep this package free of
import cycles with :mod:`tickrelay.feed`.
"""

from .admission import AdmissionFilter, SymbolState
from .batching import BatchAccumulator, BatchWindow
from .models import AdmittedItem, Candle, Tick
from .scheduler import LoopScheduler, OneShotTimer, PeriodicTimer, Scheduler

__all__ = [
    "AdmissionFilter",
    "AdmittedItem",
    "BatchAccumulator",
    "BatchWindow",
    "Candle",
    "LoopScheduler",
    "OneShotTimer",
    "PeriodicTimer",
    "Scheduler",
    "SymbolState",
    "Tick",
]
