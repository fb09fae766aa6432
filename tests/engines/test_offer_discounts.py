"""
Tests — Discount Calculator
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from engines.offers.discounts import CALCULATORS, compute_discount
from engines.offers.models import (
    EMPTY_CART,
    NO_CAPS,
    BuyXGetY,
    Cart,
    FlatDiscount,
    FreeItem,
    ItemFilter,
    LineItem,
    Offer,
    OfferCaps,
    PercentDiscount,
)


def _line(line_id, sku, price, quantity=1, categories=()):
    return LineItem(line_id, f"p-{sku}", f"v-{sku}", sku, Decimal(str(price)), quantity, categories=categories)


def _offer(params, scope=None, offer_id="o1", caps=NO_CAPS):
    return Offer(offer_id=offer_id, name=offer_id, params=params, scope=scope or ItemFilter(), caps=caps)


class TestPercentDiscount:
    def test_whole_cart(self):
        cart = Cart(lines=(_line("a", "TEA", 1000),))
        result = compute_discount(_offer(PercentDiscount(10)), cart)
        assert result.discount_amount == Decimal("100.00")
        assert result.affected_line_ids == ("a",)

    def test_rounds_half_up(self):
        cart = Cart(lines=(_line("a", "TEA", "0.25"),))
        result = compute_discount(_offer(PercentDiscount(10)), cart)
        assert result.discount_amount == Decimal("0.03")

    def test_category_scope(self):
        cart = Cart(lines=(
            _line("a", "TEA", 200, categories=("drinks",)),
            _line("b", "CHIPS", 100, categories=("snacks",)),
        ))
        result = compute_discount(_offer(PercentDiscount(50), ItemFilter(categories=("snacks",))), cart)
        assert result.discount_amount == Decimal("50.00")
        assert result.affected_line_ids == ("b",)

    def test_scope_absent_from_cart(self):
        cart = Cart(lines=(_line("a", "TEA", 200),))
        result = compute_discount(_offer(PercentDiscount(50), ItemFilter(skus=("CHIPS",))), cart)
        assert result.discount_amount == Decimal("0.00")
        assert result.missing_conditions == ("add CHIPS to cart to use this offer",)

    def test_percent_bounds(self):
        with pytest.raises(ValueError, match="between 0 and 100"):
            PercentDiscount(101)
        with pytest.raises(ValueError, match="percent must be numeric"):
            PercentDiscount("ten")
        with pytest.raises(ValueError, match="percent must be finite"):
            PercentDiscount("NaN")
        assert compute_discount(
            _offer(PercentDiscount(100)), Cart(lines=(_line("a", "TEA", "12.34"),)),
        ).discount_amount == Decimal("12.34")


class TestFlatDiscount:
    def test_fixed_amount(self):
        cart = Cart(lines=(_line("a", "TEA", 500),))
        assert compute_discount(_offer(FlatDiscount(75)), cart).discount_amount == Decimal("75.00")

    def test_capped_at_scope_subtotal(self):
        cart = Cart(lines=(
            _line("a", "TEA", 500),
            _line("b", "CHIPS", 40, categories=("snacks",)),
        ))
        offer = _offer(FlatDiscount(100), ItemFilter(categories=("snacks",)))
        result = compute_discount(offer, cart)
        assert result.discount_amount == Decimal("40.00")
        assert result.affected_line_ids == ("b",)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match=">= 0"):
            FlatDiscount(-1)


class TestBuyXGetY:
    def test_buy_two_get_one_with_five_units(self):
        cart = Cart(lines=(_line("a", "SOAP", 50, quantity=5),))
        result = compute_discount(_offer(BuyXGetY(2, 1)), cart)
        assert result.discount_amount == Decimal("50.00")
        assert result.affected_line_ids == ("a",)

    def test_two_complete_groups(self):
        cart = Cart(lines=(_line("a", "SOAP", 50, quantity=6),))
        assert compute_discount(_offer(BuyXGetY(2, 1)), cart).discount_amount == Decimal("100.00")

    def test_cheapest_units_are_free(self):
        cart = Cart(lines=(
            _line("a", "BIG", 300, quantity=2),
            _line("b", "SMALL", 80, quantity=1),
        ))
        result = compute_discount(_offer(BuyXGetY(2, 1)), cart)
        assert result.discount_amount == Decimal("80.00")
        assert result.affected_line_ids == ("b",)

    def test_equal_prices_tie_break_on_cart_order(self):
        cart = Cart(lines=(
            _line("a", "X", 60),
            _line("b", "Y", 60),
            _line("c", "Z", 60),
        ))
        result = compute_discount(_offer(BuyXGetY(2, 1)), cart)
        assert result.affected_line_ids == ("a",)

    def test_max_sets(self):
        cart = Cart(lines=(_line("a", "SOAP", 50, quantity=9),))
        assert compute_discount(_offer(BuyXGetY(2, 1, max_sets=2)), cart).discount_amount == Decimal("100.00")

    def test_not_enough_units(self):
        cart = Cart(lines=(_line("a", "SOAP", 50, quantity=2),))
        result = compute_discount(_offer(BuyXGetY(2, 1)), cart)
        assert result.discount_amount == Decimal("0.00")
        assert result.missing_conditions == ("add 1 more qualifying item to get 1 free",)

    def test_scope_limits_qualifying_units(self):
        cart = Cart(lines=(
            _line("a", "SOAP", 50, quantity=2, categories=("bath",)),
            _line("b", "TEA", 10, quantity=5, categories=("drinks",)),
        ))
        offer = _offer(BuyXGetY(2, 1), ItemFilter(categories=("bath",)))
        result = compute_discount(offer, cart)
        assert result.discount_amount == Decimal("0.00")
        assert result.missing_conditions == ("add 1 more qualifying item to get 1 free",)

    def test_invalid_quantities(self):
        with pytest.raises(ValueError, match="buy_quantity"):
            BuyXGetY(0, 1)
        with pytest.raises(ValueError, match="max_sets"):
            BuyXGetY(1, 1, max_sets=0)


class TestFreeItem:
    def test_gift_in_cart(self):
        cart = Cart(lines=(
            _line("a", "TEA", 500),
            _line("b", "MUG", 120, quantity=2),
        ))
        result = compute_discount(_offer(FreeItem("MUG")), cart)
        assert result.discount_amount == Decimal("120.00")
        assert result.affected_line_ids == ("b",)

    def test_gift_missing_is_never_added(self):
        cart = Cart(lines=(_line("a", "TEA", 500),))
        result = compute_discount(_offer(FreeItem("MUG", gift_name="Free Mug")), cart)
        assert result.discount_amount == Decimal("0.00")
        assert result.missing_conditions == ("add Free Mug to cart to claim it free",)
        assert len(cart.lines) == 1


class TestDispatch:
    def test_every_param_type_has_a_calculator(self):
        assert set(CALCULATORS) == {PercentDiscount, FlatDiscount, BuyXGetY, FreeItem}

    def test_empty_cart_yields_zero(self):
        result = compute_discount(_offer(FlatDiscount(50)), EMPTY_CART)
        assert result.discount_amount == Decimal("0.00")
        assert result.affected_line_ids == ()

    def test_discount_never_exceeds_scope(self):
        cart = Cart(lines=(_line("a", "TEA", "3.33"),))
        for params in (PercentDiscount(100), FlatDiscount(1000), BuyXGetY(1, 1), FreeItem("TEA")):
            assert compute_discount(_offer(params), cart).discount_amount <= cart.subtotal


class TestExclusionFilters:
    def _cart(self):
        return Cart(lines=(
            _line("a", "TEA", 200, categories=("drinks",)),
            _line("b", "WINE", 300, categories=("drinks", "alcohol")),
        ))

    def test_excluded_category_left_out_of_whole_cart_offer(self):
        offer = _offer(PercentDiscount(10), ItemFilter(exclude_categories=("alcohol",)))
        result = compute_discount(offer, self._cart())
        assert result.discount_amount == Decimal("20.00")
        assert result.affected_line_ids == ("a",)

    def test_exclusion_beats_inclusion(self):
        scope = ItemFilter(categories=("drinks",), exclude_skus=("WINE",))
        result = compute_discount(_offer(FlatDiscount(1000), scope), self._cart())
        assert result.discount_amount == Decimal("200.00")
        assert result.affected_line_ids == ("a",)

    def test_everything_excluded(self):
        scope = ItemFilter(exclude_categories=("drinks",))
        assert compute_discount(_offer(PercentDiscount(10), scope), self._cart()).discount_amount == Decimal("0.00")


class TestOfferCaps:
    def test_max_discount_amount(self):
        cart = Cart(lines=(_line("a", "TV", 5000),))
        capped = _offer(PercentDiscount(10), caps=OfferCaps(max_discount_amount=200))
        assert compute_discount(capped, cart).discount_amount == Decimal("200.00")

    def test_under_the_cap_unchanged(self):
        cart = Cart(lines=(_line("a", "TEA", 1000),))
        capped = _offer(PercentDiscount(10), caps=OfferCaps(max_discount_amount=200))
        assert compute_discount(capped, cart).discount_amount == Decimal("100.00")

    def test_min_price_floor(self):
        cart = Cart(lines=(_line("a", "TEA", 120),))
        floored = _offer(FlatDiscount(100), caps=OfferCaps(min_price_floor=50))
        assert compute_discount(floored, cart).discount_amount == Decimal("70.00")

    def test_floor_above_price_gives_nothing(self):
        cart = Cart(lines=(_line("a", "TEA", 40),))
        floored = _offer(FlatDiscount(10), caps=OfferCaps(min_price_floor=50))
        result = compute_discount(floored, cart)
        assert result.discount_amount == Decimal("0.00")
        assert result.affected_line_ids == ("a",)

    def test_floor_measured_on_affected_lines(self):
        cart = Cart(lines=(_line("a", "MUG", 100, quantity=3), _line("b", "TEA", 1000)))
        offer = _offer(BuyXGetY(2, 1), ItemFilter(skus=("MUG",)), caps=OfferCaps(min_price_floor=250))
        assert compute_discount(offer, cart).discount_amount == Decimal("50.00")

    def test_negative_caps_rejected(self):
        with pytest.raises(ValueError, match="min_price_floor must be >= 0"):
            OfferCaps(min_price_floor=-5)
