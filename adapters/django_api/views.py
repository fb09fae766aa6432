"""
Shopfront Django Adapter Views
===============================
Pass-through HTTP views over core/http_api handlers.
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
from core.config.rules import EvaluationOptions
from core.http_api.contracts import (
    ConversionHttpRequest,
    EvaluateOffersHttpRequest,
    ExperimentStatsReadRequest,
)
from core.http_api.errors import (
    INVALID_REQUEST,
    METHOD_NOT_ALLOWED,
    NOT_FOUND,
    error_response,
)
from core.http_api.handlers import (
    get_experiment_stats,
    post_evaluate_offers,
    post_record_conversion,
)
from engines.offers.models import UserRecord


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        METHOD_NOT_ALLOWED,
        "Method not allowed for this endpoint.",
        status=405,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_optional_string(value: Any, field_name: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string.")
    return value


def _parse_user(value: Any) -> UserRecord | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("user must be an object.")
    orders = value.get("lifetime_orders", 0)
    if isinstance(orders, bool) or not isinstance(orders, int) or orders < 0:
        raise ValueError("user.lifetime_orders must be a non-negative integer.")
    return UserRecord(
        user_id=str(value.get("id") or ""),
        segments=tuple(value.get("segments") or ()),
        lifetime_orders=orders,
    )


def _parse_options(value: Any) -> EvaluationOptions | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("options must be an object.")
    return EvaluationOptions.from_mapping(value)


def _parse_decimal(value: Any, field_name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name} must be numeric.") from exc
    if not number.is_finite():
        raise ValueError(f"{field_name} must be numeric.")
    return number


def _evaluate_contract(body: dict[str, Any]) -> EvaluateOffersHttpRequest:
    items = body.get("items", [])
    if not isinstance(items, list):
        raise ValueError("items must be a list.")
    return EvaluateOffersHttpRequest(
        items=tuple(items),
        channel=body.get("channel") or "web",
        session_id=_parse_optional_string(body.get("session_id"), "session_id"),
        user=_parse_user(body.get("user")),
        options=_parse_options(body.get("options")),
    )


def _conversion_contract(body: dict[str, Any]) -> ConversionHttpRequest:
    return ConversionHttpRequest(
        visitor_id=body.get("visitor_id") or "",
        conversion_type=body.get("conversion_type") or "",
        assignments=body.get("assignments") or {},
        value=_parse_decimal(body.get("value"), "value"),
        order_id=_parse_optional_string(body.get("order_id"), "order_id"),
        properties=body.get("properties") or {},
        user_id=_parse_optional_string(body.get("user_id"), "user_id"),
        session_id=_parse_optional_string(body.get("session_id"), "session_id"),
    )


def _dispatch_write(handler, contract_factory, request: HttpRequest) -> JsonResponse:
    try:
        contract = contract_factory(_parse_json_body(request))
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc), status=400)
    return JsonResponse(handler(contract, build_dependencies()))


@csrf_exempt
def evaluate_offers_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(post_evaluate_offers, _evaluate_contract, request)


@csrf_exempt
def record_conversion_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(post_record_conversion, _conversion_contract, request)


@csrf_exempt
def experiment_stats_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        contract = ExperimentStatsReadRequest(
            experiment_id=request.GET.get("experiment_id", ""),
        )
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc), status=400)
    payload = get_experiment_stats(contract, build_dependencies())
    status = 404 if not payload["ok"] and payload["error"]["code"] == NOT_FOUND else 200
    return JsonResponse(payload, status=status)
