"""
Shopfront Experiments - Variant Statistics
============================================
Per-variant exposure/conversion summary for one experiment.

conversion_rate = converting visitors / exposed visitors, as a
percentage with two decimals. Conversions from visitors never exposed
still count toward conversions and conversion_value.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Set, Tuple

from engines.experiments.models import ConversionEvent, Experiment, ExposureEvent

RATE_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class VariantStats:
    variant_id: str
    variant_name: str
    is_control: bool
    exposed_visitors: int
    exposures: int
    conversions: int
    converted_visitors: int
    conversion_value: Decimal
    conversion_rate: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "variant_name": self.variant_name,
            "is_control": self.is_control,
            "exposed_visitors": self.exposed_visitors,
            "exposures": self.exposures,
            "conversions": self.conversions,
            "converted_visitors": self.converted_visitors,
            "conversion_value": str(self.conversion_value),
            "conversion_rate": str(self.conversion_rate),
        }


def experiment_stats(
    experiment: Experiment,
    exposures: Iterable[ExposureEvent],
    conversions: Iterable[ConversionEvent],
) -> Tuple[VariantStats, ...]:
    """One row per variant, in the experiment's variant order."""
    exposure_rows: Dict[str, int] = {v.variant_id: 0 for v in experiment.variants}
    exposed: Dict[str, Set[str]] = {v.variant_id: set() for v in experiment.variants}
    conversion_rows: Dict[str, int] = {v.variant_id: 0 for v in experiment.variants}
    converted: Dict[str, Set[str]] = {v.variant_id: set() for v in experiment.variants}
    value: Dict[str, Decimal] = {v.variant_id: Decimal("0") for v in experiment.variants}

    for event in exposures:
        if event.experiment_id != experiment.experiment_id or event.variant_id not in exposed:
            continue
        exposure_rows[event.variant_id] += 1
        exposed[event.variant_id].add(event.visitor_id)

    for event in conversions:
        if event.experiment_id != experiment.experiment_id or event.variant_id not in converted:
            continue
        conversion_rows[event.variant_id] += 1
        converted[event.variant_id].add(event.visitor_id)
        if event.value is not None:
            value[event.variant_id] += event.value

    rows = []
    for variant in experiment.variants:
        visitors = len(exposed[variant.variant_id])
        converting = len(converted[variant.variant_id] & exposed[variant.variant_id])
        if visitors:
            rate = (Decimal(converting) * 100 / Decimal(visitors)).quantize(
                RATE_PLACES, rounding=ROUND_HALF_UP,
            )
        else:
            rate = Decimal("0.00")
        rows.append(VariantStats(
            variant_id=variant.variant_id,
            variant_name=variant.name,
            is_control=variant.is_control,
            exposed_visitors=visitors,
            exposures=exposure_rows[variant.variant_id],
            conversions=conversion_rows[variant.variant_id],
            converted_visitors=len(converted[variant.variant_id]),
            conversion_value=value[variant.variant_id],
            conversion_rate=rate,
        ))
    return tuple(rows)
