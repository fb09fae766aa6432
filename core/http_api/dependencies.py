"""
Shopfront HTTP API - Dependencies
==================================
Injected services for handler wiring.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from engines.experiments.stats import VariantStats
from engines.offers.services import OfferEvaluationService


class ExperimentStatsProvider(Protocol):
    def for_experiment(self, experiment_id: str) -> Optional[tuple[VariantStats, ...]]:
        """None when the experiment does not exist."""
        ...


@dataclass(frozen=True)
class HttpApiDependencies:
    offer_service: OfferEvaluationService
    stats_provider: ExperimentStatsProvider
