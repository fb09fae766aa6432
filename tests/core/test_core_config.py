"""
Tests for core.config — Operator-configurable caps and engine settings.
"""

import pytest
from decimal import Decimal

from core.config.rules import (
    UNBOUNDED,
    EngineSettings,
    EvaluationOptions,
    InMemoryConfigStore,
    settings_from_mapping,
)


# ── EvaluationOptions Tests ──────────────────────────────────

class TestEvaluationOptions:
    def test_defaults_are_unbounded(self):
        options = EvaluationOptions()
        assert options.max_offers is None
        assert options.max_total_discount is None
        assert options.max_discount_percent is None

    def test_coerces_numbers_to_decimal(self):
        options = EvaluationOptions(max_total_discount=250, max_discount_percent=12.5)
        assert options.max_total_discount == Decimal("250")
        assert options.max_discount_percent == Decimal("12.5")

    def test_negative_max_offers(self):
        with pytest.raises(ValueError, match="max_offers"):
            EvaluationOptions(max_offers=-1)

    def test_negative_total(self):
        with pytest.raises(ValueError, match="max_total_discount"):
            EvaluationOptions(max_total_discount=-5)

    def test_percent_out_of_range(self):
        with pytest.raises(ValueError, match="between 0 and 100"):
            EvaluationOptions(max_discount_percent=150)

    def test_non_numeric(self):
        with pytest.raises(ValueError, match="must be numeric"):
            EvaluationOptions(max_total_discount="lots")

    def test_from_mapping_and_to_dict(self):
        options = EvaluationOptions.from_mapping(
            {"max_offers": 2, "max_total_discount": "300.00"}
        )
        assert options.to_dict() == {
            "max_offers": 2,
            "max_total_discount": "300.00",
            "max_discount_percent": None,
        }

    def test_from_mapping_none(self):
        assert EvaluationOptions.from_mapping(None) == UNBOUNDED

    def test_frozen_immutability(self):
        options = EvaluationOptions(max_offers=1)
        with pytest.raises(AttributeError):
            options.max_offers = 5


# ── EngineSettings Tests ─────────────────────────────────────

class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.currency_symbol == "₹"
        assert settings.potential_max_missing == 2
        assert settings.default_options == UNBOUNDED

    def test_negative_potential_threshold(self):
        with pytest.raises(ValueError, match="potential_max_missing"):
            EngineSettings(potential_max_missing=-1)

    def test_queue_size_positive(self):
        with pytest.raises(ValueError, match="telemetry_queue_size"):
            EngineSettings(telemetry_queue_size=0)

    def test_from_django_mapping(self):
        settings = settings_from_mapping({
            "CURRENCY_SYMBOL": "$",
            "POTENTIAL_MAX_MISSING": 1,
            "MAX_OFFERS": 3,
            "MAX_DISCOUNT_PERCENT": 40,
            "UNKNOWN_KEY": "ignored",
        })
        assert settings.currency_symbol == "$"
        assert settings.potential_max_missing == 1
        assert settings.default_options.max_offers == 3
        assert settings.default_options.max_discount_percent == Decimal("40")
        assert settings.default_options.max_total_discount is None

    def test_from_empty_mapping(self):
        assert settings_from_mapping(None) == EngineSettings()


# ── InMemoryConfigStore Tests ────────────────────────────────

class TestInMemoryConfigStore:
    def test_fallback_to_default(self):
        store = InMemoryConfigStore()
        assert store.get_options("web") == UNBOUNDED

    def test_channel_override(self):
        default = EvaluationOptions(max_offers=3)
        store = InMemoryConfigStore(default=default)
        store.set_options("ios", EvaluationOptions(max_offers=1))
        assert store.get_options("ios").max_offers == 1
        assert store.get_options("web").max_offers == 3

    def test_with_overrides(self):
        store = InMemoryConfigStore(default=EvaluationOptions(max_offers=3, max_total_discount=100))
        options = store.with_overrides("web", max_total_discount=None)
        assert options.max_offers == 3
        assert options.max_total_discount is None
        assert store.get_options("web").max_total_discount == Decimal("100")
