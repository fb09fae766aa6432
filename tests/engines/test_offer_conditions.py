"""
Tests — Condition Matcher (eligibility policies)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from core.time.temporal import ValidityWindow
from engines.offers.models import (
    Cart,
    EvaluationContext,
    LineItem,
    Offer,
    OfferConditions,
    PercentDiscount,
    RequiredItem,
    UserRecord,
)
from engines.offers.policies import (
    is_excluded,
    lifetime_orders_policy,
    match_offer,
    min_subtotal_policy,
    required_items_policy,
    segment_policy,
)


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
CTX = EvaluationContext(current_time=T0)


def _cart(*lines):
    return Cart(lines=tuple(lines))


def _line(line_id="l1", sku="SKU-1", price="100", quantity=1, categories=()):
    return LineItem(line_id, f"p-{sku}", f"v-{sku}", sku, Decimal(price), quantity, categories=categories)


def _offer(conditions=None, **kwargs):
    return Offer(
        offer_id=kwargs.pop("offer_id", "o1"),
        name=kwargs.pop("name", "Ten off"),
        params=PercentDiscount(10),
        conditions=conditions or OfferConditions(),
        **kwargs,
    )


class TestMinSubtotal:
    def test_met(self):
        offer = _offer(OfferConditions(min_subtotal=1000))
        assert min_subtotal_policy(offer, _cart(_line(price="1000")), CTX) == ()

    def test_shortfall_message(self):
        offer = _offer(OfferConditions(min_subtotal=2000))
        assert min_subtotal_policy(offer, _cart(_line(price="1500")), CTX) == (
            "add ₹500 more to subtotal",
        )

    def test_fractional_shortfall(self):
        offer = _offer(OfferConditions(min_subtotal=100))
        assert min_subtotal_policy(offer, _cart(_line(price="79.50")), CTX) == (
            "add ₹20.50 more to subtotal",
        )

    def test_currency_symbol(self):
        offer = _offer(OfferConditions(min_subtotal=50))
        assert min_subtotal_policy(offer, _cart(_line(price="20")), CTX, currency_symbol="$") == (
            "add $30 more to subtotal",
        )


class TestRequiredItems:
    def test_sku_quantity(self):
        offer = _offer(OfferConditions(required_items=(RequiredItem(sku="SKU-1", quantity=3),)))
        assert required_items_policy(offer, _cart(_line(quantity=3)), CTX) == ()
        assert required_items_policy(offer, _cart(_line(quantity=1)), CTX) == (
            "add 2 more of SKU-1",
        )

    def test_category_quantity(self):
        offer = _offer(OfferConditions(required_items=(RequiredItem(category="snacks", quantity=2),)))
        cart = _cart(_line(categories=("snacks",)))
        assert required_items_policy(offer, cart, CTX) == ("add 1 more item from snacks",)

    def test_each_failure_reported(self):
        offer = _offer(OfferConditions(required_items=(
            RequiredItem(sku="SKU-9"),
            RequiredItem(category="frozen", quantity=2),
        )))
        assert required_items_policy(offer, _cart(_line()), CTX) == (
            "add 1 more of SKU-9",
            "add 2 more items from frozen",
        )


class TestSegments:
    def test_no_segments_always_passes(self):
        assert segment_policy(_offer(), _cart(_line()), CTX) == ()

    def test_anonymous_user_fails_segment_gate(self):
        offer = _offer(OfferConditions(segments=("vip",)))
        assert segment_policy(offer, _cart(_line()), CTX) == ("sign in to unlock this offer",)

    def test_intersection(self):
        offer = _offer(OfferConditions(segments=("vip", "staff")))
        ctx = EvaluationContext(current_time=T0, user=UserRecord("u1", segments=("staff",)))
        assert segment_policy(offer, _cart(_line()), ctx) == ()

    def test_no_intersection(self):
        offer = _offer(OfferConditions(segments=("vip",)))
        ctx = EvaluationContext(current_time=T0, user=UserRecord("u1", segments=("new",)))
        assert segment_policy(offer, _cart(_line()), ctx) == ("available to vip customers only",)


class TestLifetimeOrders:
    def test_first_order_offer(self):
        offer = _offer(OfferConditions(max_lifetime_orders=0))
        returning = EvaluationContext(current_time=T0, user=UserRecord("u1", lifetime_orders=4))
        assert lifetime_orders_policy(offer, _cart(_line()), CTX) == ()
        assert lifetime_orders_policy(offer, _cart(_line()), returning) == (
            "available on your first order only",
        )

    def test_loyal_customer_offer(self):
        offer = _offer(OfferConditions(min_lifetime_orders=3))
        ctx = EvaluationContext(current_time=T0, user=UserRecord("u1", lifetime_orders=2))
        assert lifetime_orders_policy(offer, _cart(_line()), ctx) == (
            "place 1 more order to unlock this offer",
        )


class TestExclusion:
    def test_outside_window_excluded(self):
        offer = _offer(window=ValidityWindow(end=T0))
        assert is_excluded(offer, CTX)

    def test_not_started_excluded(self):
        offer = _offer(window=ValidityWindow(start=T0 + timedelta(seconds=1)))
        assert is_excluded(offer, CTX)

    def test_wrong_channel_excluded(self):
        offer = _offer(channels=("ios", "android"))
        assert is_excluded(offer, CTX)
        assert not is_excluded(offer, EvaluationContext(current_time=T0, channel="ios"))


class TestMatchOffer:
    def test_eligible(self):
        result = match_offer(_offer(OfferConditions(min_subtotal=100)), _cart(_line()), CTX)
        assert result.eligible
        assert result.missing_conditions == ()

    def test_all_failures_collected(self):
        offer = _offer(OfferConditions(
            min_subtotal=500,
            required_items=(RequiredItem(sku="SKU-2"),),
            segments=("vip",),
        ))
        result = match_offer(offer, _cart(_line()), CTX)
        assert not result.eligible
        assert result.missing_conditions == (
            "add ₹400 more to subtotal",
            "add 1 more of SKU-2",
            "sign in to unlock this offer",
        )

    def test_expired_offer_excluded_silently(self):
        offer = _offer(
            OfferConditions(min_subtotal=5000),
            window=ValidityWindow(start=T0 - timedelta(days=2), end=T0 - timedelta(days=1)),
        )
        result = match_offer(offer, _cart(_line()), CTX)
        assert result.excluded
        assert not result.eligible
        assert result.missing_conditions == ()

    def test_expired_offer_excluded_even_if_active_status(self):
        offer = _offer(status="active", window=ValidityWindow(end=T0 - timedelta(minutes=1)))
        assert match_offer(offer, _cart(_line()), CTX).excluded
