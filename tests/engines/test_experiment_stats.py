"""
Tests — Experiment variant statistics
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from engines.experiments.models import (
    ConversionEvent,
    Experiment,
    ExperimentVariant,
    ExposureEvent,
)
from engines.experiments.stats import experiment_stats


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

EXPERIMENT = Experiment(
    experiment_id="e1",
    name="Flat vs percent",
    variants=(
        ExperimentVariant("control", "e1", name="Control", is_control=True),
        ExperimentVariant("flat", "e1", name="Flat ₹100", activate_offer_ids=("off-flat",)),
    ),
)


def _exposure(variant, visitor, offer="off-flat", experiment="e1"):
    return ExposureEvent(experiment, variant, visitor, offer, occurred_at=T0)


def _conversion(variant, visitor, value=None, experiment="e1"):
    return ConversionEvent(experiment, variant, visitor, "purchase", occurred_at=T0, value=value)


class TestExperimentStats:
    def test_rows_in_variant_order(self):
        rows = experiment_stats(EXPERIMENT, [], [])
        assert [r.variant_id for r in rows] == ["control", "flat"]
        assert rows[0].is_control
        assert rows[0].conversion_rate == Decimal("0.00")

    def test_counts_and_rate(self):
        exposures = [
            _exposure("flat", "v1"),
            _exposure("flat", "v1", offer="off-other"),
            _exposure("flat", "v2"),
            _exposure("flat", "v3"),
            _exposure("control", "v4"),
        ]
        conversions = [
            _conversion("flat", "v1", value="250"),
            _conversion("flat", "v1", value="100.50"),
            _conversion("flat", "v9", value="10"),
            _conversion("control", "v4"),
        ]
        control, flat = experiment_stats(EXPERIMENT, exposures, conversions)

        assert flat.exposures == 4
        assert flat.exposed_visitors == 3
        assert flat.conversions == 3
        assert flat.converted_visitors == 2
        assert flat.conversion_value == Decimal("360.50")
        assert flat.conversion_rate == Decimal("33.33")

        assert control.exposed_visitors == 1
        assert control.conversion_rate == Decimal("100.00")
        assert control.conversion_value == Decimal("0")

    def test_other_experiments_and_unknown_variants_ignored(self):
        rows = experiment_stats(
            EXPERIMENT,
            [_exposure("flat", "v1", experiment="e2"), _exposure("ghost", "v1")],
            [_conversion("ghost", "v1")],
        )
        assert all(r.exposures == 0 and r.conversions == 0 for r in rows)

    def test_rate_rounds_half_up(self):
        exposures = [_exposure("flat", f"v{i}") for i in range(8)]
        conversions = [_conversion("flat", "v0")]
        flat = experiment_stats(EXPERIMENT, exposures, conversions)[1]
        assert flat.conversion_rate == Decimal("12.50")

    def test_to_dict(self):
        flat = experiment_stats(EXPERIMENT, [_exposure("flat", "v1")], [])[1]
        assert flat.to_dict()["conversion_rate"] == "0.00"
        assert flat.to_dict()["variant_name"] == "Flat ₹100"
