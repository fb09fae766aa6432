"""
Shopfront Offer Engine - Eligibility Policies
===============================================
Condition matcher: one policy per condition type, ANDed.

A policy returns an empty tuple when its condition holds, or one
human-readable missing condition per failure ("add ₹120 more to
subtotal") used for upsell hints.
Time window and channel are not policies: an offer failing them can
never be satisfied by changing the cart, so it is excluded silently.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Tuple

from engines.offers.models import (
    Cart,
    EligibilityResult,
    EvaluationContext,
    Offer,
    format_money,
)

logger = logging.getLogger("shopfront.offers")

DEFAULT_CURRENCY_SYMBOL = "₹"


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def min_subtotal_policy(
    offer: Offer, cart: Cart, context: EvaluationContext,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Tuple[str, ...]:
    threshold = offer.conditions.min_subtotal
    if threshold is None or cart.subtotal >= threshold:
        return ()
    shortfall = threshold - cart.subtotal
    return (f"add {format_money(shortfall, currency_symbol)} more to subtotal",)


def required_items_policy(
    offer: Offer, cart: Cart, context: EvaluationContext,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Tuple[str, ...]:
    missing: List[str] = []
    for required in offer.conditions.required_items:
        if required.sku is not None:
            held = cart.quantity_of_sku(required.sku)
        else:
            held = cart.quantity_in_category(required.category)
        if held >= required.quantity:
            continue
        shortfall = required.quantity - held
        if required.sku is not None:
            missing.append(f"add {shortfall} more of {required.label}")
        else:
            missing.append(
                f"add {shortfall} more {_plural(shortfall, 'item')} from {required.label}"
            )
    return tuple(missing)


def segment_policy(
    offer: Offer, cart: Cart, context: EvaluationContext,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Tuple[str, ...]:
    segments = offer.conditions.segments
    if not segments:
        return ()
    if context.user is None:
        return ("sign in to unlock this offer",)
    if set(segments) & set(context.user.segments):
        return ()
    return (f"available to {', '.join(segments)} customers only",)


def lifetime_orders_policy(
    offer: Offer, cart: Cart, context: EvaluationContext,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Tuple[str, ...]:
    conditions = offer.conditions
    orders = context.user.lifetime_orders if context.user is not None else 0
    if conditions.min_lifetime_orders is not None and orders < conditions.min_lifetime_orders:
        remaining = conditions.min_lifetime_orders - orders
        return (f"place {remaining} more {_plural(remaining, 'order')} to unlock this offer",)
    if conditions.max_lifetime_orders is not None and orders > conditions.max_lifetime_orders:
        limit = conditions.max_lifetime_orders
        if limit == 0:
            return ("available on your first order only",)
        return (f"available to customers with at most {limit} {_plural(limit, 'order')}",)
    return ()


EligibilityPolicy = Callable[..., Tuple[str, ...]]

ELIGIBILITY_POLICIES: Tuple[EligibilityPolicy, ...] = (
    min_subtotal_policy,
    required_items_policy,
    segment_policy,
    lifetime_orders_policy,
)


def is_excluded(offer: Offer, context: EvaluationContext) -> bool:
    """Outside the validity window or not offered on this channel."""
    if not offer.window.contains(context.current_time):
        return True
    return not offer.available_on(context.channel)


def match_offer(
    offer: Offer,
    cart: Cart,
    context: EvaluationContext,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> EligibilityResult:
    """
    Evaluate every condition of one offer against the cart and context.

    All policies run even after a failure so every missing condition
    is reported.
    """
    if is_excluded(offer, context):
        logger.debug(
            f"Offer {offer.offer_id} excluded (window/channel) "
            f"at {context.current_time.isoformat()} on {context.channel}"
        )
        return EligibilityResult(eligible=False, excluded=True)

    missing: List[str] = []
    for policy in ELIGIBILITY_POLICIES:
        missing.extend(policy(offer, cart, context, currency_symbol=currency_symbol))

    return EligibilityResult(
        eligible=not missing,
        missing_conditions=tuple(missing),
    )
