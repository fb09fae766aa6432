"""
Shopfront Core Time - Explicit Clock Protocol
===============================================
Doctrine: NO datetime.now() inside offer evaluation.

The evaluation context always carries the current time. This module
provides the Clock protocol for the layers that build that context
(HTTP adapter, catalog refresher, telemetry stamps).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Production clock, reads real system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Test clock returning a fixed timestamp.

    Usage:
        clock = FixedClock(datetime(2026, 3, 1, tzinfo=timezone.utc))
        context = EvaluationContext(current_time=clock.now_utc())
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, seconds: float) -> None:
        """Move the fixed time forward (offer windows opening/closing in tests)."""
        self._fixed_dt = self._fixed_dt + timedelta(seconds=seconds)
