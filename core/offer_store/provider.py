"""
Shopfront Offer Store - DB Providers
=====================================
Engine-facing adapters over the offer store service layer:
- DbOfferCatalog: async OfferCatalog (ORM calls run via sync_to_async)
- DbTelemetrySink: TelemetrySink writing exposure/conversion rows
- DbExperimentStats: per-variant statistics from stored telemetry
"""

from __future__ import annotations

import logging
from typing import Sequence

from asgiref.sync import sync_to_async
from django.db import DatabaseError

from core.offer_store.models import ExperimentRecord
from core.offer_store.service import (
    list_active_offer_rows,
    list_conversions,
    list_exposures,
    list_running_experiment_rows,
    record_conversions,
    record_exposures,
)
from engines.experiments.models import ConversionEvent, Experiment, ExposureEvent
from engines.experiments.stats import VariantStats, experiment_stats
from engines.experiments.telemetry import TelemetrySink
from engines.offers.catalog import parse_experiment, parse_offers
from engines.offers.errors import CatalogFetchError, TelemetryDeliveryError
from engines.offers.models import Offer

logger = logging.getLogger("shopfront.catalog")


class DbOfferCatalog:
    async def fetch_active_offers(self) -> list[Offer]:
        try:
            rows = await sync_to_async(list_active_offer_rows)()
        except DatabaseError as exc:
            raise CatalogFetchError("offers", str(exc)) from exc
        offers, _ = parse_offers(rows)
        return offers

    async def fetch_running_experiments(self) -> list[Experiment]:
        try:
            rows = await sync_to_async(list_running_experiment_rows)()
        except DatabaseError as exc:
            raise CatalogFetchError("experiments", str(exc)) from exc
        experiments: list[Experiment] = []
        for row in rows:
            try:
                experiments.append(parse_experiment(row))
            except ValueError as exc:
                logger.warning(f"Skipping experiment {row.get('id')}: {exc}")
        return experiments


class DbTelemetrySink(TelemetrySink):
    @property
    def sink_id(self) -> str:
        return "db"

    def write_exposures(self, events: Sequence[ExposureEvent]) -> None:
        try:
            record_exposures(events)
        except DatabaseError as exc:
            raise TelemetryDeliveryError(self.sink_id, str(exc)) from exc

    def write_conversions(self, events: Sequence[ConversionEvent]) -> None:
        try:
            record_conversions(events)
        except DatabaseError as exc:
            raise TelemetryDeliveryError(self.sink_id, str(exc)) from exc


class DbExperimentStats:
    def for_experiment(self, experiment_id: str) -> tuple[VariantStats, ...] | None:
        record = (
            ExperimentRecord.objects.prefetch_related("variants")
            .filter(experiment_id=experiment_id)
            .first()
        )
        if record is None:
            return None
        experiment = parse_experiment(record.to_row())
        return experiment_stats(
            experiment,
            list_exposures(experiment_id),
            list_conversions(experiment_id),
        )
