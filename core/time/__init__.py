"""
Shopfront Core Time - Public API
==================================
Explicit clock protocol and validity windows.
Doctrine: NO datetime.now() in engine logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
)
from core.time.temporal import (
    ALWAYS,
    ValidityWindow,
    parse_timestamp,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "ALWAYS",
    "ValidityWindow",
    "parse_timestamp",
]
