"""
Shopfront Experiments - Value Objects
=======================================
Experiments, variants, assignments and telemetry rows.

An experiment's variants decide which offers a visitor may see:
- activate_offer_ids: offers unioned into the visitor's offer set
- suppress_offer_ids: offers removed from the visitor's offer set
Experiments and variants are read-only inputs; exposure and conversion
rows are the only state this package writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from core.time.temporal import ALWAYS, ValidityWindow

EXPERIMENT_STATUS_DRAFT = "draft"
EXPERIMENT_STATUS_RUNNING = "running"
EXPERIMENT_STATUS_PAUSED = "paused"
EXPERIMENT_STATUS_COMPLETED = "completed"
EXPERIMENT_STATUS_ARCHIVED = "archived"
VALID_EXPERIMENT_STATUSES = frozenset({
    EXPERIMENT_STATUS_DRAFT,
    EXPERIMENT_STATUS_RUNNING,
    EXPERIMENT_STATUS_PAUSED,
    EXPERIMENT_STATUS_COMPLETED,
    EXPERIMENT_STATUS_ARCHIVED,
})

CONVERSION_ADD_TO_CART = "add_to_cart"
CONVERSION_CHECKOUT_STARTED = "checkout_started"
CONVERSION_PURCHASE = "purchase"


@dataclass(frozen=True)
class ExperimentVariant:
    variant_id: str
    experiment_id: str
    name: str = ""
    weight: int = 1
    activate_offer_ids: Tuple[str, ...] = ()
    suppress_offer_ids: Tuple[str, ...] = ()
    is_control: bool = False

    def __post_init__(self):
        if not self.variant_id:
            raise ValueError("variant_id must be non-empty.")
        if not self.experiment_id:
            raise ValueError("experiment_id must be non-empty.")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int) or self.weight < 0:
            raise ValueError("weight must be a non-negative integer.")
        object.__setattr__(self, "activate_offer_ids", tuple(self.activate_offer_ids))
        object.__setattr__(self, "suppress_offer_ids", tuple(self.suppress_offer_ids))


@dataclass(frozen=True)
class Experiment:
    experiment_id: str
    name: str
    variants: Tuple[ExperimentVariant, ...]
    status: str = EXPERIMENT_STATUS_RUNNING
    traffic_percent: int = 100
    window: ValidityWindow = ALWAYS

    def __post_init__(self):
        if not self.experiment_id:
            raise ValueError("experiment_id must be non-empty.")
        if self.status not in VALID_EXPERIMENT_STATUSES:
            raise ValueError(f"status '{self.status}' not valid.")
        if not 0 <= self.traffic_percent <= 100:
            raise ValueError("traffic_percent must be between 0 and 100.")
        variants = tuple(self.variants)
        if not variants:
            raise ValueError("Experiment must have at least one variant.")
        seen = set()
        for variant in variants:
            if variant.experiment_id != self.experiment_id:
                raise ValueError(
                    f"Variant '{variant.variant_id}' belongs to experiment "
                    f"'{variant.experiment_id}', not '{self.experiment_id}'."
                )
            if variant.variant_id in seen:
                raise ValueError(f"Duplicate variant_id '{variant.variant_id}'.")
            seen.add(variant.variant_id)
        object.__setattr__(self, "variants", variants)

    @property
    def total_weight(self) -> int:
        return sum(v.weight for v in self.variants)

    @property
    def offer_ids(self) -> FrozenSet[str]:
        """Every offer any variant activates."""
        return frozenset(
            offer_id for v in self.variants for offer_id in v.activate_offer_ids
        )

    def is_running(self, now: datetime) -> bool:
        return self.status == EXPERIMENT_STATUS_RUNNING and self.window.contains(now)

    def variant(self, variant_id: str) -> Optional[ExperimentVariant]:
        for candidate in self.variants:
            if candidate.variant_id == variant_id:
                return candidate
        return None


@dataclass(frozen=True)
class VariantAssignment:
    experiment_id: str
    variant_id: str
    visitor_id: str
    is_control: bool = False


@dataclass(frozen=True)
class ExperimentContext:
    """
    A visitor together with the variants they currently hold.

    Conversions fan out over `assignments`.
    """

    visitor_id: str
    assignments: Tuple[VariantAssignment, ...] = ()
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if not self.visitor_id:
            raise ValueError("visitor_id must be non-empty.")
        object.__setattr__(self, "assignments", tuple(self.assignments))

    def variant_for(self, experiment_id: str) -> Optional[str]:
        for assignment in self.assignments:
            if assignment.experiment_id == experiment_id:
                return assignment.variant_id
        return None

    def assignment_map(self) -> Dict[str, str]:
        return {a.experiment_id: a.variant_id for a in self.assignments}

    @classmethod
    def from_mapping(
        cls,
        visitor_id: str,
        assignments: Mapping[str, str],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> "ExperimentContext":
        return cls(
            visitor_id=visitor_id,
            assignments=tuple(
                VariantAssignment(experiment_id, variant_id, visitor_id)
                for experiment_id, variant_id in sorted(assignments.items())
            ),
            user_id=user_id,
            session_id=session_id,
        )


# ══════════════════════════════════════════════════════════════
# TELEMETRY ROWS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExposureEvent:
    experiment_id: str
    variant_id: str
    visitor_id: str
    offer_id: str
    occurred_at: datetime
    channel: str = "web"
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def dedupe_key(self) -> Tuple[str, str, str, str]:
        return (self.experiment_id, self.variant_id, self.visitor_id, self.offer_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "variant_id": self.variant_id,
            "visitor_id": self.visitor_id,
            "offer_id": self.offer_id,
            "channel": self.channel,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class ConversionEvent:
    experiment_id: str
    variant_id: str
    visitor_id: str
    conversion_type: str
    occurred_at: datetime
    value: Optional[Decimal] = None
    order_id: Optional[str] = None
    properties: Mapping[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if not self.conversion_type:
            raise ValueError("conversion_type must be non-empty.")
        if self.value is not None:
            try:
                value = Decimal(str(self.value))
            except InvalidOperation as exc:
                raise ValueError(f"value must be numeric, got {self.value!r}.") from exc
            if not value.is_finite():
                raise ValueError(f"value must be finite, got {self.value!r}.")
            object.__setattr__(self, "value", value)
        object.__setattr__(self, "properties", dict(self.properties or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "variant_id": self.variant_id,
            "visitor_id": self.visitor_id,
            "conversion_type": self.conversion_type,
            "value": None if self.value is None else str(self.value),
            "order_id": self.order_id,
            "properties": dict(self.properties),
            "occurred_at": self.occurred_at.isoformat(),
        }
