"""
Shopfront Core Time - Validity Windows
========================================
Pure functions for offer and experiment validity.
All functions take explicit datetime arguments. No hidden clock access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


# ══════════════════════════════════════════════════════════════
# VALIDITY WINDOW - Half-open interval [start, end)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValidityWindow:
    """
    A half-open time interval [start, end).

    Either bound may be None, meaning unbounded on that side.
    Invariant: start < end when both are set (enforced at construction).
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                raise ValueError(f"ValidityWindow {name} must be timezone-aware.")
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError(
                f"ValidityWindow start ({self.start}) must be < end ({self.end})."
            )

    def contains(self, dt: datetime) -> bool:
        """True when start <= dt < end."""
        if self.start is not None and dt < self.start:
            return False
        if self.end is not None and dt >= self.end:
            return False
        return True

    def has_ended(self, dt: datetime) -> bool:
        return self.end is not None and dt >= self.end

    def not_started(self, dt: datetime) -> bool:
        return self.start is not None and dt < self.start


ALWAYS = ValidityWindow()


# ══════════════════════════════════════════════════════════════
# PURE TEMPORAL FUNCTIONS
# ══════════════════════════════════════════════════════════════

def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a store timestamp (ISO-8601 string or datetime) into an aware datetime.

    Naive values are interpreted as UTC. None and "" map to None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp '{value}'.") from exc
    else:
        raise ValueError(f"Invalid timestamp '{value}'.")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
