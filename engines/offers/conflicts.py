"""
Shopfront Offer Engine - Conflict Resolver
============================================
Turns individually eligible offers into one consistent application plan.

Order of operations:
1. Rank: priority desc, discount desc, offer_id asc (total order)
2. Greedy walk; an offer whose exclusivity group is already held is rejected
3. Overflow beyond max_offers is rejected
4. Lowest-ranked admitted offers are dropped until the total and percent
   caps hold (offers are never partially applied)
5. Total discount = sum of plans, clamped to [0, subtotal]

Every rejection is deterministic (same input -> same rejection) and
carries a machine-readable code plus a human-readable detail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from core.config.rules import UNBOUNDED, EvaluationOptions
from engines.offers.models import (
    ZERO,
    ApplicationPlan,
    Candidate,
    Cart,
    RejectedOffer,
    RejectionCode,
    to_money,
)

logger = logging.getLogger("shopfront.offers")


@dataclass(frozen=True)
class ConflictResolution:
    plans: Tuple[ApplicationPlan, ...]
    rejected: Tuple[RejectedOffer, ...]
    total_discount: Decimal


def rank_key(candidate: Candidate) -> tuple:
    return (-candidate.offer.priority, -candidate.discount, candidate.offer.offer_id)


def _reject(
    candidate: Candidate,
    reason: str,
    detail: str,
    winner: Optional[Candidate] = None,
) -> RejectedOffer:
    return RejectedOffer(
        offer_id=candidate.offer.offer_id,
        offer_name=candidate.offer.name,
        reason=reason,
        detail=detail,
        competing_offer_id=None if winner is None else winner.offer.offer_id,
        competing_offer_name=None if winner is None else winner.offer.name,
    )


def _total(candidates: Iterable[Candidate]) -> Decimal:
    return sum((c.discount for c in candidates), ZERO)


def _cap_violation(
    admitted: List[Candidate], subtotal: Decimal, options: EvaluationOptions,
) -> Optional[str]:
    total = _total(admitted)
    if options.max_total_discount is not None and total > options.max_total_discount:
        return (
            f"Total discount {to_money(total)} would exceed maximum "
            f"{to_money(options.max_total_discount)}"
        )
    if options.max_discount_percent is not None:
        if total * 100 > options.max_discount_percent * subtotal:
            return (
                f"Total discount {to_money(total)} would exceed "
                f"{options.max_discount_percent}% of subtotal {subtotal}"
            )
    return None


def _to_plan(candidate: Candidate) -> ApplicationPlan:
    offer = candidate.offer
    return ApplicationPlan(
        offer_id=offer.offer_id,
        offer_name=offer.name,
        offer_type=offer.offer_type,
        discount=candidate.discount,
        affected_line_ids=candidate.computation.affected_line_ids,
        display_text=offer.display_text,
        priority=offer.priority,
        exclusivity_group=offer.exclusivity_group,
    )


def resolve_conflicts(
    candidates: Iterable[Candidate],
    cart: Cart,
    options: EvaluationOptions | None = None,
) -> ConflictResolution:
    options = options or UNBOUNDED
    ordered = sorted(candidates, key=rank_key)
    admitted: List[Candidate] = []
    rejected: List[RejectedOffer] = []

    # ── Step 2: exclusivity groups ────────────────────────────
    group_holders: dict[str, Candidate] = {}
    for candidate in ordered:
        group = candidate.offer.exclusivity_group
        if group is not None and group in group_holders:
            winner = group_holders[group]
            rejected.append(_reject(
                candidate,
                RejectionCode.EXCLUSIVITY_CONFLICT,
                f"Cannot combine with \"{winner.offer.name}\" "
                f"(exclusivity group \"{group}\")",
                winner=winner,
            ))
            continue
        if group is not None:
            group_holders[group] = candidate
        admitted.append(candidate)

    # ── Step 3: max offers ────────────────────────────────────
    if options.max_offers is not None and len(admitted) > options.max_offers:
        overflow = admitted[options.max_offers:]
        admitted = admitted[:options.max_offers]
        for candidate in overflow:
            rejected.append(_reject(
                candidate,
                RejectionCode.MAX_OFFERS_EXCEEDED,
                f"Maximum {options.max_offers} offers already applied",
            ))

    # ── Step 4: discount caps, lowest-ranked out first ────────
    while admitted:
        violation = _cap_violation(admitted, cart.subtotal, options)
        if violation is None:
            break
        dropped = admitted.pop()
        rejected.append(_reject(dropped, RejectionCode.DISCOUNT_CAP_EXCEEDED, violation))

    # ── Step 5: total ─────────────────────────────────────────
    total = min(max(ZERO, to_money(_total(admitted))), cart.subtotal)

    for rejection in rejected:
        logger.debug(
            f"Offer {rejection.offer_id} rejected: {rejection.reason} "
            f"({rejection.detail})"
        )

    return ConflictResolution(
        plans=tuple(_to_plan(c) for c in admitted),
        rejected=tuple(rejected),
        total_discount=total,
    )


def rejection_message(rejection: RejectedOffer) -> str:
    """Storefront disclosure text for a rejected offer."""
    if rejection.reason == RejectionCode.EXCLUSIVITY_CONFLICT:
        return (
            f"\"{rejection.offer_name}\" cannot be combined with "
            f"\"{rejection.competing_offer_name}\""
        )
    if rejection.reason == RejectionCode.MAX_OFFERS_EXCEEDED:
        return (
            f"\"{rejection.offer_name}\" was not applied: maximum number of "
            f"offers already applied"
        )
    if rejection.reason == RejectionCode.DISCOUNT_CAP_EXCEEDED:
        return f"\"{rejection.offer_name}\" would exceed the maximum discount limit"
    return rejection.detail
