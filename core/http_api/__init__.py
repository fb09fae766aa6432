"""
Shopfront HTTP API - Public API
================================
"""

from core.http_api.contracts import (
    ConversionHttpRequest,
    EvaluateOffersHttpRequest,
    ExperimentStatsReadRequest,
    HttpApiErrorBody,
    HttpApiResponse,
)
from core.http_api.dependencies import ExperimentStatsProvider, HttpApiDependencies
from core.http_api.errors import error_response, success_response
from core.http_api.handlers import (
    get_experiment_stats,
    post_evaluate_offers,
    post_record_conversion,
)

__all__ = [
    "EvaluateOffersHttpRequest",
    "ConversionHttpRequest",
    "ExperimentStatsReadRequest",
    "HttpApiErrorBody",
    "HttpApiResponse",
    "ExperimentStatsProvider",
    "HttpApiDependencies",
    "error_response",
    "success_response",
    "post_evaluate_offers",
    "post_record_conversion",
    "get_experiment_stats",
]
