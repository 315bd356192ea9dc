"""
Support package: deadlock detection and diagnostic support data.
"""

from procboot.support.data import SupportData, collect_support_data
from procboot.support.deadlock import (
    DeadlockDetector,
    DeadlockReport,
    DeadlockSettings,
    DetectorInterruptedError,
    ThreadState,
)
from procboot.support.locks import TrackedLock, WaitForGraph, get_default_graph

__all__ = [
    "DeadlockDetector",
    "DeadlockReport",
    "DeadlockSettings",
    "DetectorInterruptedError",
    "SupportData",
    "ThreadState",
    "TrackedLock",
    "WaitForGraph",
    "collect_support_data",
    "get_default_graph",
]
