"""
Shopfront Experiments - Variant Assigner
==========================================
Deterministic visitor -> variant assignment and offer filtering.

Per (experiment, visitor): unassigned -> assigned(variant), terminal for
the experiment's lifetime. The assignment is a pure function of
(experiment id, visitor id, variant weights), so no stored assignment
has to be read back to reproduce it.

Visitor identity is the user id when signed in, else the session id.
When an anonymous session later signs in the two identities may land
in different variants; past assignments are not reconciled.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from engines.experiments.models import Experiment, ExperimentVariant, VariantAssignment
from engines.offers.models import Offer

logger = logging.getLogger("shopfront.experiments")

TRAFFIC_BUCKETS = 100


def stable_hash(value: str) -> int:
    """First 32 bits of SHA-256, stable across processes and releases."""
    return int(hashlib.sha256(value.encode("utf-8")).hexdigest()[:8], 16)


def in_traffic_allocation(experiment: Experiment, visitor_id: str) -> bool:
    bucket = stable_hash(f"{experiment.experiment_id}:{visitor_id}:traffic") % TRAFFIC_BUCKETS
    return bucket < experiment.traffic_percent


def select_variant(experiment: Experiment, visitor_id: str) -> ExperimentVariant:
    """Map the visitor hash into the cumulative weight ranges of the variants."""
    total = experiment.total_weight
    if total == 0:
        return experiment.variants[0]
    position = stable_hash(f"{experiment.experiment_id}:{visitor_id}:variant") % total
    cumulative = 0
    for variant in experiment.variants:
        cumulative += variant.weight
        if position < cumulative:
            return variant
    return experiment.variants[-1]


def assign(
    experiment: Experiment, visitor_id: Optional[str],
) -> Optional[VariantAssignment]:
    """None for anonymous visitors and visitors outside the traffic allocation."""
    if not visitor_id:
        return None
    if not in_traffic_allocation(experiment, visitor_id):
        logger.debug(
            f"Visitor {visitor_id} outside traffic allocation of "
            f"{experiment.experiment_id} ({experiment.traffic_percent}%)"
        )
        return None
    variant = select_variant(experiment, visitor_id)
    return VariantAssignment(
        experiment_id=experiment.experiment_id,
        variant_id=variant.variant_id,
        visitor_id=visitor_id,
        is_control=variant.is_control,
    )


@dataclass(frozen=True)
class AssignmentResult:
    assignments: Tuple[VariantAssignment, ...]
    activated_offer_ids: FrozenSet[str]
    suppressed_offer_ids: FrozenSet[str]
    offer_variants: Dict[str, Tuple[str, str]]

    def assignment_map(self) -> Dict[str, str]:
        return {a.experiment_id: a.variant_id for a in self.assignments}


EMPTY_ASSIGNMENT = AssignmentResult((), frozenset(), frozenset(), {})


def assign_all(
    experiments: Iterable[Experiment],
    visitor_id: Optional[str],
    now: datetime,
) -> AssignmentResult:
    """
    Assign the visitor to every running experiment and collect offer effects.

    - the assigned variant's activate list is unioned in
    - the assigned variant's suppress list is subtracted
    - offers activated only by sibling variants are subtracted
    - outside the allocation, every offer the experiment activates is subtracted
    offer_variants maps an offer id to the (experiment, variant) that
    activated it, used to attribute exposures.
    """
    assignments: List[VariantAssignment] = []
    activated: Set[str] = set()
    suppressed: Set[str] = set()
    offer_variants: Dict[str, Tuple[str, str]] = {}

    for experiment in sorted(experiments, key=lambda e: e.experiment_id):
        if not experiment.is_running(now):
            continue
        assignment = assign(experiment, visitor_id)
        if assignment is None:
            suppressed.update(experiment.offer_ids)
            continue
        assignments.append(assignment)
        variant = experiment.variant(assignment.variant_id)
        own = set(variant.activate_offer_ids)
        activated.update(own)
        suppressed.update(experiment.offer_ids - own)
        suppressed.update(variant.suppress_offer_ids)
        for offer_id in variant.activate_offer_ids:
            offer_variants.setdefault(
                offer_id, (experiment.experiment_id, variant.variant_id),
            )

    return AssignmentResult(
        assignments=tuple(assignments),
        activated_offer_ids=frozenset(activated),
        suppressed_offer_ids=frozenset(suppressed),
        offer_variants=offer_variants,
    )


def filter_offers(offers: Sequence[Offer], result: AssignmentResult) -> Tuple[Offer, ...]:
    """
    Base active set, plus activated offers, minus suppressed offers.

    Input order is preserved. An inactive offer survives only when an
    assigned variant activates it.
    """
    kept = []
    for offer in offers:
        if offer.offer_id in result.suppressed_offer_ids:
            continue
        if offer.is_active or offer.offer_id in result.activated_offer_ids:
            kept.append(offer)
    return tuple(kept)
