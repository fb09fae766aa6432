"""
Shopfront Django Adapter Wiring
================================
Constructs HttpApiDependencies for local/staging live runs.

This module is adapter-only glue:
- engine settings come from settings.OFFER_ENGINE
- offers and experiments are read from core.offer_store
- telemetry is written to core.offer_store by a background worker
"""

from __future__ import annotations

import threading

from django.conf import settings as django_settings

from core.config.rules import EvaluationOptions, InMemoryConfigStore, settings_from_mapping
from core.http_api.dependencies import HttpApiDependencies
from core.offer_store.provider import DbExperimentStats, DbOfferCatalog, DbTelemetrySink
from core.time.clock import SystemClock
from engines.experiments.telemetry import ExperimentTelemetry
from engines.offers.services import OfferEvaluationService

_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: HttpApiDependencies | None = None


def _create_dependencies() -> HttpApiDependencies:
    engine_settings = settings_from_mapping(getattr(django_settings, "OFFER_ENGINE", {}))
    clock = SystemClock()
    config_store = InMemoryConfigStore(default=engine_settings.default_options)
    for channel, options in getattr(django_settings, "OFFER_ENGINE_CHANNEL_OPTIONS", {}).items():
        config_store.set_options(channel, EvaluationOptions.from_mapping(options))
    telemetry = ExperimentTelemetry(
        sinks=[DbTelemetrySink()],
        clock=clock,
        queue_size=engine_settings.telemetry_queue_size,
    )
    offer_service = OfferEvaluationService(
        catalog=DbOfferCatalog(),
        telemetry=telemetry,
        config_store=config_store,
        settings=engine_settings,
        clock=clock,
    )
    return HttpApiDependencies(
        offer_service=offer_service,
        stats_provider=DbExperimentStats(),
    )


def build_dependencies() -> HttpApiDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def set_dependencies(dependencies: HttpApiDependencies | None) -> None:
    """Replace the wired dependencies (tests); None rebuilds lazily."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = dependencies
