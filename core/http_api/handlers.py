"""
Shopfront HTTP API - Framework-Agnostic Handlers
=================================================
Pure handler functions over contracts and injected dependencies.

Offer evaluation never fails the request: engine errors degrade to an
empty result so the storefront shows "no discounts available" and
checkout proceeds.
"""

from __future__ import annotations

from typing import Any

from asgiref.sync import async_to_sync

from core.http_api.contracts import (
    ConversionHttpRequest,
    EvaluateOffersHttpRequest,
    ExperimentStatsReadRequest,
)
from core.http_api.dependencies import HttpApiDependencies
from core.http_api.errors import NOT_FOUND, error_response, success_response
from engines.experiments.models import ExperimentContext


def post_evaluate_offers(
    request: EvaluateOffersHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    result = async_to_sync(dependencies.offer_service.evaluate_or_empty)(
        request.items,
        user=request.user,
        channel=request.channel,
        session_id=request.session_id,
        options=request.options,
    )
    return success_response(result.to_dict())


def post_record_conversion(
    request: ConversionHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    context = ExperimentContext.from_mapping(
        request.visitor_id,
        request.assignments,
        user_id=request.user_id,
        session_id=request.session_id,
    )
    queued = dependencies.offer_service.record_conversion(
        context,
        request.conversion_type,
        value=request.value,
        order_id=request.order_id,
        properties=request.properties,
    )
    return success_response({"queued": queued})


def get_experiment_stats(
    request: ExperimentStatsReadRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    stats = dependencies.stats_provider.for_experiment(request.experiment_id)
    if stats is None:
        return error_response(
            code=NOT_FOUND,
            message=f"Experiment '{request.experiment_id}' not found.",
        )
    return success_response({
        "experiment_id": request.experiment_id,
        "variants": [row.to_dict() for row in stats],
    })
