"""
Shopfront Core Config - Operator-Configurable Rules
=====================================================
Doctrine: No hardcoded caps or currency in engine logic.
Discount caps and engine settings come from operator-configured
data (Django settings or an in-memory store), not from source code.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Protocol


def _to_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}.") from exc
    if not number.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}.")
    return number


# ══════════════════════════════════════════════════════════════
# EVALUATION OPTIONS (global caps)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EvaluationOptions:
    """
    Global caps applied by the conflict resolver.

    None means unbounded for that cap.
    """

    max_offers: Optional[int] = None
    max_total_discount: Optional[Decimal] = None
    max_discount_percent: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.max_offers is not None:
            if not isinstance(self.max_offers, int) or self.max_offers < 0:
                raise ValueError("max_offers must be a non-negative integer.")
        total = _to_decimal(self.max_total_discount, "max_total_discount")
        if total is not None and total < 0:
            raise ValueError("max_total_discount must be >= 0.")
        percent = _to_decimal(self.max_discount_percent, "max_discount_percent")
        if percent is not None and not 0 <= percent <= 100:
            raise ValueError(
                f"max_discount_percent must be between 0 and 100, got {percent}."
            )
        object.__setattr__(self, "max_total_discount", total)
        object.__setattr__(self, "max_discount_percent", percent)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "EvaluationOptions":
        data = data or {}
        return cls(
            max_offers=data.get("max_offers"),
            max_total_discount=data.get("max_total_discount"),
            max_discount_percent=data.get("max_discount_percent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_offers": self.max_offers,
            "max_total_discount": (
                None if self.max_total_discount is None else str(self.max_total_discount)
            ),
            "max_discount_percent": (
                None if self.max_discount_percent is None else str(self.max_discount_percent)
            ),
        }


UNBOUNDED = EvaluationOptions()


# ══════════════════════════════════════════════════════════════
# ENGINE SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EngineSettings:
    """
    Storefront-wide offer engine settings.

    Fields:
        currency_symbol:       Prefix used in upsell hints ("add ₹500 more ...").
        potential_max_missing: Ineligible offers with more missing conditions
                               than this are not reported as potential offers.
        catalog_refresh_seconds: Interval for CatalogRefresher (0 disables).
        telemetry_queue_size:  Bound on undelivered telemetry batches.
        default_options:       Caps used when a caller passes none.
    """

    currency_symbol: str = "₹"
    potential_max_missing: int = 2
    catalog_refresh_seconds: int = 0
    telemetry_queue_size: int = 1000
    default_options: EvaluationOptions = field(default_factory=EvaluationOptions)

    def __post_init__(self) -> None:
        if self.potential_max_missing < 0:
            raise ValueError("potential_max_missing must be >= 0.")
        if self.catalog_refresh_seconds < 0:
            raise ValueError("catalog_refresh_seconds must be >= 0.")
        if self.telemetry_queue_size <= 0:
            raise ValueError("telemetry_queue_size must be positive.")


def settings_from_mapping(data: Optional[Mapping[str, Any]]) -> EngineSettings:
    """
    Build EngineSettings from the OFFER_ENGINE dict in Django settings.

    Unknown keys are ignored; missing keys keep their defaults.
    """
    data = data or {}
    defaults = EngineSettings()
    return EngineSettings(
        currency_symbol=data.get("CURRENCY_SYMBOL", defaults.currency_symbol),
        potential_max_missing=int(
            data.get("POTENTIAL_MAX_MISSING", defaults.potential_max_missing)
        ),
        catalog_refresh_seconds=int(
            data.get("CATALOG_REFRESH_SECONDS", defaults.catalog_refresh_seconds)
        ),
        telemetry_queue_size=int(
            data.get("TELEMETRY_QUEUE_SIZE", defaults.telemetry_queue_size)
        ),
        default_options=EvaluationOptions(
            max_offers=data.get("MAX_OFFERS"),
            max_total_discount=data.get("MAX_TOTAL_DISCOUNT"),
            max_discount_percent=data.get("MAX_DISCOUNT_PERCENT"),
        ),
    )


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """
    Protocol for operator-configured caps, keyed by distribution channel.

    Implementations may back this with a database, file, or in-memory store.
    """

    def get_options(self, channel: str) -> EvaluationOptions:
        """Fetch the caps for a channel."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY CONFIG STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryConfigStore:
    """Channel-scoped caps with a storefront-wide fallback."""

    def __init__(self, default: EvaluationOptions | None = None) -> None:
        self._default = default or UNBOUNDED
        self._by_channel: Dict[str, EvaluationOptions] = {}

    def set_options(self, channel: str, options: EvaluationOptions) -> None:
        self._by_channel[channel] = options

    def get_options(self, channel: str) -> EvaluationOptions:
        return self._by_channel.get(channel, self._default)

    def with_overrides(self, channel: str, **overrides: Any) -> EvaluationOptions:
        """Channel options with individual caps replaced (None clears a cap)."""
        return replace(self.get_options(channel), **overrides)
