"""
Shopfront Offer Store - Service Layer
======================================
DB reads for the offer catalog and DB writes for experiment telemetry.

Reads return plain row dicts; parsing into engine objects happens in
engines.offers.catalog. Exposure writes are upserts on the
(experiment, variant, visitor, offer) unique constraint.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from django.db import transaction

from core.offer_store.models import (
    ConversionRecord,
    ExperimentRecord,
    ExperimentStatus,
    ExposureRecord,
    OfferRecord,
    OfferStatus,
)
from engines.experiments.models import ConversionEvent, ExposureEvent


def list_running_experiment_rows() -> tuple[dict[str, Any], ...]:
    experiments = (
        ExperimentRecord.objects.filter(status=ExperimentStatus.RUNNING)
        .prefetch_related("variants")
        .order_by("experiment_id")
    )
    return tuple(experiment.to_row() for experiment in experiments)


def list_active_offer_rows() -> tuple[dict[str, Any], ...]:
    """
    Active offers, priority descending.

    Inactive offers activated by a running experiment's variant are
    included so the assigner can switch them on for that variant.
    """
    activated: set[str] = set()
    for row in list_running_experiment_rows():
        for variant in row["variants"]:
            activated.update(variant["offer_ids"])

    offers = OfferRecord.objects.filter(status=OfferStatus.ACTIVE)
    if activated:
        offers = offers | OfferRecord.objects.filter(offer_id__in=sorted(activated))
    return tuple(offer.to_row() for offer in offers.order_by("-priority", "offer_id"))


def record_exposures(events: Iterable[ExposureEvent]) -> int:
    """Insert exposures, keeping existing rows. Returns the number created."""
    created_count = 0
    with transaction.atomic():
        for event in events:
            _, created = ExposureRecord.objects.get_or_create(
                experiment_id=event.experiment_id,
                variant_id=event.variant_id,
                visitor_id=event.visitor_id,
                offer_id=event.offer_id,
                defaults={
                    "user_id": event.user_id,
                    "session_id": event.session_id,
                    "channel": event.channel,
                    "occurred_at": event.occurred_at,
                },
            )
            if created:
                created_count += 1
    return created_count


def record_conversions(events: Iterable[ConversionEvent]) -> int:
    records = [
        ConversionRecord(
            experiment_id=event.experiment_id,
            variant_id=event.variant_id,
            visitor_id=event.visitor_id,
            user_id=event.user_id,
            session_id=event.session_id,
            conversion_type=event.conversion_type,
            conversion_value=event.value,
            order_id=event.order_id,
            properties=dict(event.properties),
            occurred_at=event.occurred_at,
        )
        for event in events
    ]
    ConversionRecord.objects.bulk_create(records)
    return len(records)


def list_exposures(experiment_id: str) -> tuple[ExposureEvent, ...]:
    return tuple(
        ExposureEvent(
            experiment_id=row.experiment_id,
            variant_id=row.variant_id,
            visitor_id=row.visitor_id,
            offer_id=row.offer_id,
            occurred_at=row.occurred_at,
            channel=row.channel,
            user_id=row.user_id,
            session_id=row.session_id,
        )
        for row in ExposureRecord.objects.filter(experiment_id=experiment_id)
    )


def list_conversions(experiment_id: str) -> tuple[ConversionEvent, ...]:
    return tuple(
        ConversionEvent(
            experiment_id=row.experiment_id,
            variant_id=row.variant_id,
            visitor_id=row.visitor_id,
            conversion_type=row.conversion_type,
            occurred_at=row.occurred_at,
            value=row.conversion_value,
            order_id=row.order_id,
            properties=row.properties or {},
            user_id=row.user_id,
            session_id=row.session_id,
        )
        for row in ConversionRecord.objects.filter(experiment_id=experiment_id)
    )
