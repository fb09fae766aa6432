"""
Shopfront Offer Engine - Discount Calculator
==============================================
compute_discount(offer, cart) -> DiscountComputation

One calculator per discount parameter class; the dispatch table is
total over the DiscountParams union.

Invariants:
- discount_amount is quantized money, 0 <= discount <= scope subtotal
- per-offer caps (max discount, price floor) are applied last
- a calculator never mutates the cart and never adds lines to it
- when the cart is one step away from unlocking the discount (gift not
  in cart, not enough units for a group), the step is reported as a
  missing condition instead of a discount
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Callable, Dict, List, Tuple, Type

from engines.offers.models import (
    ZERO,
    BuyXGetY,
    Cart,
    DiscountComputation,
    FlatDiscount,
    FreeItem,
    ItemFilter,
    LineItem,
    Offer,
    PercentDiscount,
    to_money,
)

NO_DISCOUNT = DiscountComputation(discount_amount=ZERO)


def _scope_missing(scope: ItemFilter) -> Tuple[str, ...]:
    return (f"add {scope.describe()} to cart to use this offer",)


def _line_ids(lines: Tuple[LineItem, ...]) -> Tuple[str, ...]:
    return tuple(line.line_id for line in lines)


def compute_percent(offer: Offer, params: PercentDiscount, cart: Cart) -> DiscountComputation:
    scope_lines = cart.lines_matching(offer.scope)
    if not scope_lines:
        return DiscountComputation(ZERO, missing_conditions=_scope_missing(offer.scope))
    scope_subtotal = cart.scope_subtotal(offer.scope)
    discount = to_money(scope_subtotal * params.percent / Decimal(100))
    return DiscountComputation(
        discount_amount=min(discount, scope_subtotal),
        affected_line_ids=_line_ids(scope_lines),
    )


def compute_flat(offer: Offer, params: FlatDiscount, cart: Cart) -> DiscountComputation:
    scope_lines = cart.lines_matching(offer.scope)
    if not scope_lines:
        return DiscountComputation(ZERO, missing_conditions=_scope_missing(offer.scope))
    scope_subtotal = cart.scope_subtotal(offer.scope)
    discount = max(ZERO, min(params.amount, scope_subtotal))
    return DiscountComputation(
        discount_amount=discount,
        affected_line_ids=_line_ids(scope_lines),
    )


def compute_buy_x_get_y(offer: Offer, params: BuyXGetY, cart: Cart) -> DiscountComputation:
    """
    Free units are the cheapest qualifying units.

    Units are expanded one per quantity and ordered by (unit price, cart
    position); groups = units // (buy + get), capped by max_sets.
    """
    scope_lines = cart.lines_matching(offer.scope)
    units: List[Tuple[Decimal, int, str]] = []
    for position, line in enumerate(scope_lines):
        units.extend((line.unit_price, position, line.line_id) for _ in range(line.quantity))

    groups = len(units) // params.group_size
    if params.max_sets is not None:
        groups = min(groups, params.max_sets)
    if groups == 0:
        needed = params.group_size - len(units)
        noun = "item" if needed == 1 else "items"
        return DiscountComputation(
            ZERO,
            missing_conditions=(
                f"add {needed} more qualifying {noun} to get {params.get_quantity} free",
            ),
        )

    units.sort(key=lambda unit: (unit[0], unit[1]))
    free_units = units[: groups * params.get_quantity]
    discount = to_money(sum((unit[0] for unit in free_units), ZERO))
    free_line_ids = {unit[2] for unit in free_units}
    return DiscountComputation(
        discount_amount=discount,
        affected_line_ids=tuple(
            line.line_id for line in scope_lines if line.line_id in free_line_ids
        ),
    )


def compute_free_item(offer: Offer, params: FreeItem, cart: Cart) -> DiscountComputation:
    gift_line = cart.find_line(params.gift_sku)
    if gift_line is None:
        label = params.gift_name or params.gift_sku
        return DiscountComputation(
            ZERO, missing_conditions=(f"add {label} to cart to claim it free",),
        )
    return DiscountComputation(
        discount_amount=gift_line.unit_price,
        affected_line_ids=(gift_line.line_id,),
    )


CALCULATORS: Dict[Type, Callable[[Offer, object, Cart], DiscountComputation]] = {
    PercentDiscount: compute_percent,
    FlatDiscount: compute_flat,
    BuyXGetY: compute_buy_x_get_y,
    FreeItem: compute_free_item,
}


def _apply_caps(offer: Offer, cart: Cart, computation: DiscountComputation) -> DiscountComputation:
    """Per-offer caps; the price floor is measured on the affected lines."""
    if offer.caps.is_unbounded or computation.discount_amount <= 0:
        return computation
    affected = set(computation.affected_line_ids)
    base_amount = sum(
        (line.line_total for line in cart.lines if line.line_id in affected), ZERO,
    )
    return replace(
        computation,
        discount_amount=offer.caps.apply(computation.discount_amount, base_amount),
    )


def compute_discount(offer: Offer, cart: Cart) -> DiscountComputation:
    if cart.is_empty:
        return NO_DISCOUNT
    calculator = CALCULATORS[type(offer.params)]
    return _apply_caps(offer, cart, calculator(offer, offer.params, cart))
