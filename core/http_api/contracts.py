"""
Shopfront HTTP API - Contracts
===============================
Framework-agnostic request/response DTOs for storefront endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional

from core.config.rules import EvaluationOptions
from engines.offers.models import UserRecord


@dataclass(frozen=True)
class EvaluateOffersHttpRequest:
    items: tuple[Mapping[str, Any], ...]
    channel: str = "web"
    session_id: Optional[str] = None
    user: Optional[UserRecord] = None
    options: Optional[EvaluationOptions] = None

    def __post_init__(self):
        if not isinstance(self.items, tuple):
            raise ValueError("items must be a tuple.")
        if not self.channel or not isinstance(self.channel, str):
            raise ValueError("channel must be a non-empty string.")
        if self.session_id is not None and not isinstance(self.session_id, str):
            raise ValueError("session_id must be a string or None.")
        if self.user is not None and not isinstance(self.user, UserRecord):
            raise ValueError("user must be UserRecord or None.")
        if self.options is not None and not isinstance(self.options, EvaluationOptions):
            raise ValueError("options must be EvaluationOptions or None.")


@dataclass(frozen=True)
class ConversionHttpRequest:
    visitor_id: str
    conversion_type: str
    assignments: Mapping[str, str]
    value: Optional[Decimal] = None
    order_id: Optional[str] = None
    properties: Mapping[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if not self.visitor_id or not isinstance(self.visitor_id, str):
            raise ValueError("visitor_id must be a non-empty string.")
        if not self.conversion_type or not isinstance(self.conversion_type, str):
            raise ValueError("conversion_type must be a non-empty string.")
        if not isinstance(self.assignments, Mapping):
            raise ValueError("assignments must be an object.")
        for experiment_id, variant_id in self.assignments.items():
            if not isinstance(experiment_id, str) or not isinstance(variant_id, str):
                raise ValueError("assignments must map experiment ids to variant ids.")
        if not isinstance(self.properties, Mapping):
            raise ValueError("properties must be an object.")


@dataclass(frozen=True)
class ExperimentStatsReadRequest:
    experiment_id: str

    def __post_init__(self):
        if not self.experiment_id or not isinstance(self.experiment_id, str):
            raise ValueError("experiment_id must be a non-empty string.")


@dataclass(frozen=True)
class HttpApiErrorBody:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HttpApiResponse:
    ok: bool
    data: Any = None
    error: Optional[HttpApiErrorBody] = None
    meta: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            payload: dict[str, Any] = {"ok": True, "data": self.data}
            if self.meta:
                payload["meta"] = dict(self.meta)
            return payload
        if self.error is None:
            raise ValueError("error must be set when ok is False.")
        return {"ok": False, "error": self.error.to_dict()}
