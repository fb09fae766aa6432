from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.offer_store.models import (
    ConversionRecord,
    ExperimentRecord,
    ExposureRecord,
    OfferRecord,
    VariantRecord,
)
from core.offer_store.provider import DbExperimentStats, DbOfferCatalog, DbTelemetrySink
from core.offer_store.service import (
    list_active_offer_rows,
    list_running_experiment_rows,
    record_conversions,
    record_exposures,
)
from engines.experiments.models import ConversionEvent, ExposureEvent
from engines.experiments.telemetry import ExperimentTelemetry
from engines.offers.models import Cart, EvaluationContext, LineItem
from engines.offers.services import evaluate_offers_for_cart

pytestmark = pytest.mark.django_db(transaction=True)


OCCURRED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _seed_offers() -> None:
    OfferRecord.objects.create(
        offer_id="off-10",
        name="10% off",
        offer_type="percent_discount",
        priority=5,
        benefit={"discount_percent": 10},
    )
    OfferRecord.objects.create(
        offer_id="off-flat",
        name="Flat 100",
        offer_type="flat_discount",
        status="inactive",
        priority=9,
        benefit={"discount_amount": 100},
    )
    OfferRecord.objects.create(
        offer_id="off-broken",
        name="Broken",
        offer_type="buy_x_get_y",
        benefit={},
    )


def _seed_experiment(status: str = "running") -> ExperimentRecord:
    experiment = ExperimentRecord.objects.create(
        experiment_id="exp-flat",
        name="Flat vs percent",
        status=status,
    )
    VariantRecord.objects.create(
        variant_id="exp-flat-treatment",
        experiment=experiment,
        name="Flat",
        weight=1,
        offer_ids=["off-flat"],
        sort_order=0,
    )
    VariantRecord.objects.create(
        variant_id="exp-flat-control",
        experiment=experiment,
        name="Control",
        weight=0,
        is_control=True,
        sort_order=1,
    )
    return experiment


def _exposure(visitor_id: str = "visitor-1", offer_id: str = "off-flat") -> ExposureEvent:
    return ExposureEvent(
        experiment_id="exp-flat",
        variant_id="exp-flat-treatment",
        visitor_id=visitor_id,
        offer_id=offer_id,
        occurred_at=OCCURRED_AT,
        session_id=visitor_id,
    )


def test_active_rows_include_experiment_activated_offers() -> None:
    _seed_offers()
    assert [row["id"] for row in list_active_offer_rows()] == ["off-10", "off-broken"]

    _seed_experiment()
    assert [row["id"] for row in list_active_offer_rows()] == [
        "off-flat",
        "off-10",
        "off-broken",
    ]


def test_paused_experiment_does_not_activate_offers() -> None:
    _seed_offers()
    _seed_experiment(status="paused")
    assert list_running_experiment_rows() == ()
    assert "off-flat" not in [row["id"] for row in list_active_offer_rows()]


def test_experiment_rows_carry_variants_in_order() -> None:
    _seed_experiment()
    (row,) = list_running_experiment_rows()
    assert [variant["id"] for variant in row["variants"]] == [
        "exp-flat-treatment",
        "exp-flat-control",
    ]
    assert row["variants"][1]["is_control"] is True


def test_db_catalog_skips_malformed_offers() -> None:
    _seed_offers()
    _seed_experiment()
    catalog = DbOfferCatalog()

    offers = asyncio.run(catalog.fetch_active_offers())
    experiments = asyncio.run(catalog.fetch_running_experiments())

    assert [offer.offer_id for offer in offers] == ["off-flat", "off-10"]
    assert [experiment.experiment_id for experiment in experiments] == ["exp-flat"]
    assert experiments[0].total_weight == 1


def test_db_catalog_feeds_evaluation() -> None:
    _seed_offers()
    _seed_experiment()
    cart = Cart(lines=(LineItem("line_0", "p1", "v1", "TEA", Decimal("1000"), 1),))
    context = EvaluationContext(current_time=OCCURRED_AT, session_id="visitor-1")

    result = asyncio.run(evaluate_offers_for_cart(DbOfferCatalog(), cart, None, context))

    assert [plan.offer_id for plan in result.plans] == ["off-flat", "off-10"]
    assert result.total_discount == Decimal("200.00")
    assert result.assignments == {"exp-flat": "exp-flat-treatment"}


def test_caps_and_exclusions_read_from_store() -> None:
    OfferRecord.objects.create(
        offer_id="off-capped",
        name="10% off up to 200",
        offer_type="percent_discount",
        benefit={"discount_percent": 10},
        qualifying_filters={"exclude_categories": ["gift-cards"]},
        caps_config={"max_discount_amount": 200},
    )
    (offer,) = asyncio.run(DbOfferCatalog().fetch_active_offers())
    assert offer.caps.max_discount_amount == Decimal("200.00")
    assert offer.scope.exclude_categories == ("gift-cards",)

    cart = Cart(lines=(
        LineItem("line_0", "p1", "v1", "TV", Decimal("5000"), 1),
        LineItem("line_1", "p2", "v2", "GC", Decimal("1000"), 1, categories=("gift-cards",)),
    ))
    context = EvaluationContext(current_time=OCCURRED_AT)
    result = asyncio.run(evaluate_offers_for_cart(DbOfferCatalog(), cart, None, context))
    assert result.total_discount == Decimal("200.00")
    assert result.plans[0].affected_line_ids == ("line_0",)


def test_record_exposures_is_an_upsert() -> None:
    assert record_exposures([_exposure(), _exposure(visitor_id="visitor-2")]) == 2
    assert record_exposures([_exposure(), _exposure(offer_id="off-10")]) == 1
    assert ExposureRecord.objects.count() == 3


def test_record_conversions_appends() -> None:
    event = ConversionEvent(
        experiment_id="exp-flat",
        variant_id="exp-flat-treatment",
        visitor_id="visitor-1",
        conversion_type="purchase",
        occurred_at=OCCURRED_AT,
        value="499.50",
        order_id="ord-1",
        properties={"items": 2},
    )
    assert record_conversions([event, event]) == 2
    stored = ConversionRecord.objects.first()
    assert stored.conversion_value == Decimal("499.50")
    assert stored.properties == {"items": 2}


def test_db_sink_through_telemetry_deliver() -> None:
    telemetry = ExperimentTelemetry([DbTelemetrySink()])
    summary = telemetry.deliver("exposure", [_exposure(), _exposure()])
    assert summary["delivered"] == 1
    assert summary["failed"] == 0
    assert ExposureRecord.objects.count() == 1


def test_experiment_stats_from_stored_telemetry() -> None:
    _seed_experiment()
    record_exposures([_exposure("visitor-1"), _exposure("visitor-2")])
    record_conversions([
        ConversionEvent(
            experiment_id="exp-flat",
            variant_id="exp-flat-treatment",
            visitor_id="visitor-1",
            conversion_type="purchase",
            occurred_at=OCCURRED_AT,
            value="250",
        ),
    ])

    rows = DbExperimentStats().for_experiment("exp-flat")

    treatment, control = rows
    assert treatment.variant_id == "exp-flat-treatment"
    assert treatment.exposed_visitors == 2
    assert treatment.conversions == 1
    assert treatment.conversion_rate == Decimal("50.00")
    assert treatment.conversion_value == Decimal("250.00")
    assert control.exposures == 0


def test_experiment_stats_unknown_experiment() -> None:
    assert DbExperimentStats().for_experiment("missing") is None
