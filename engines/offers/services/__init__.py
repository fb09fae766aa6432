"""
Shopfront Offer Engine - Evaluation Orchestrator
==================================================
Single entry point consumed by the storefront:

    Catalog -> Experiment Assigner -> Condition Matcher
            -> Discount Calculator -> Conflict Resolver -> EvaluationResult

Two shapes:
- evaluate_offers_sync: caller already holds the offers (pure, never suspends)
- evaluate_offers_for_cart: fetches offers and experiments first; the
  fetch is the only suspension point

Exposure telemetry is queued after evaluation and never blocks it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from core.config.rules import UNBOUNDED, ConfigStore, EngineSettings, EvaluationOptions
from core.time.clock import Clock, SystemClock
from engines.experiments.assigner import EMPTY_ASSIGNMENT, assign_all, filter_offers
from engines.experiments.models import Experiment, ExperimentContext, ExposureEvent
from engines.experiments.telemetry import ExperimentTelemetry
from engines.offers.cart import normalize_cart
from engines.offers.catalog import OfferCatalog, parse_offer, sort_for_catalog
from engines.offers.conflicts import rejection_message, resolve_conflicts
from engines.offers.discounts import compute_discount
from engines.offers.errors import CatalogFetchError, OfferDefinitionError, OfferEngineError
from engines.offers.models import (
    ZERO,
    Candidate,
    Cart,
    EvaluationContext,
    EvaluationResult,
    Offer,
    PotentialOffer,
    UserRecord,
)
from engines.offers.policies import match_offer

logger = logging.getLogger("shopfront.offers")

DEFAULT_SETTINGS = EngineSettings()

OfferInput = Union[Offer, Mapping[str, Any]]


def _load_offers(offers: Iterable[OfferInput]) -> Tuple[List[Offer], List[str]]:
    loaded: List[Offer] = []
    skipped: List[str] = []
    for item in offers:
        if isinstance(item, Offer):
            loaded.append(item)
            continue
        try:
            loaded.append(parse_offer(item))
        except OfferDefinitionError as exc:
            logger.warning(f"Skipping offer: {exc}")
            skipped.append(str(exc))
    return loaded, skipped


def evaluate_offers_sync(
    offers: Iterable[OfferInput],
    cart: Cart,
    user: Optional[UserRecord],
    context: EvaluationContext,
    options: Optional[EvaluationOptions] = None,
    experiments: Sequence[Experiment] = (),
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> EvaluationResult:
    """
    Evaluate loaded offers against a normalized cart.

    Pure: the same inputs always yield the same result, and no input
    is mutated. Malformed offer rows are skipped with a warning.
    """
    if user is not None:
        context = replace(context, user=user)
    options = options or settings.default_options or UNBOUNDED

    loaded, rejection_log = _load_offers(offers)

    assignment = EMPTY_ASSIGNMENT
    if experiments:
        assignment = assign_all(experiments, context.visitor_id, context.current_time)
    visible = filter_offers(sort_for_catalog(loaded), assignment)

    if cart.is_empty:
        return EvaluationResult(
            subtotal=ZERO,
            rejection_log=tuple(rejection_log),
            assignments=assignment.assignment_map(),
        )

    applicable: List[Offer] = []
    candidates: List[Candidate] = []
    potential: List[PotentialOffer] = []

    for offer in visible:
        eligibility = match_offer(offer, cart, context, currency_symbol=settings.currency_symbol)
        if eligibility.excluded:
            continue
        if not eligibility.eligible:
            if len(eligibility.missing_conditions) <= settings.potential_max_missing:
                potential.append(PotentialOffer(offer, eligibility.missing_conditions))
            continue

        computation = compute_discount(offer, cart)
        if computation.discount_amount > ZERO:
            applicable.append(offer)
            candidates.append(Candidate(offer, computation))
        elif computation.missing_conditions:
            if len(computation.missing_conditions) <= settings.potential_max_missing:
                potential.append(PotentialOffer(offer, computation.missing_conditions))
        else:
            logger.debug(f"Offer {offer.offer_id} eligible but yields no discount")
            rejection_log.append(f"\"{offer.name}\" does not reduce this cart")

    resolution = resolve_conflicts(candidates, cart, options)
    rejection_log.extend(rejection_message(r) for r in resolution.rejected)

    shown = {o.offer_id for o in applicable} | {p.offer.offer_id for p in potential}
    offer_variants = {
        offer_id: pair
        for offer_id, pair in assignment.offer_variants.items()
        if offer_id in shown
    }

    logger.info(
        f"Evaluated {len(visible)} offer(s) for subtotal {cart.subtotal}: "
        f"{len(resolution.plans)} applied, {len(resolution.rejected)} rejected, "
        f"{len(potential)} potential, total discount {resolution.total_discount}"
    )

    return EvaluationResult(
        subtotal=cart.subtotal,
        applicable_offers=tuple(applicable),
        plans=resolution.plans,
        total_discount=resolution.total_discount,
        potential_offers=tuple(potential),
        rejected_offers=resolution.rejected,
        rejection_log=tuple(rejection_log),
        assignments=assignment.assignment_map(),
        offer_variants=offer_variants,
    )


async def evaluate_offers_for_cart(
    catalog: OfferCatalog,
    cart: Cart,
    user: Optional[UserRecord],
    context: EvaluationContext,
    options: Optional[EvaluationOptions] = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> EvaluationResult:
    """
    Fetch offers and running experiments, then evaluate synchronously.

    Raises CatalogFetchError (with the underlying cause attached) when
    either fetch fails.
    """
    try:
        offers, experiments = await asyncio.gather(
            catalog.fetch_active_offers(),
            catalog.fetch_running_experiments(),
        )
    except CatalogFetchError:
        raise
    except Exception as exc:
        raise CatalogFetchError("offer catalog", str(exc)) from exc
    return evaluate_offers_sync(
        offers, cart, user, context, options, experiments=experiments, settings=settings,
    )


def exposure_events(
    result: EvaluationResult, context: EvaluationContext,
) -> Tuple[ExposureEvent, ...]:
    """One exposure per shown offer that an assigned variant activated."""
    visitor_id = context.visitor_id
    if not visitor_id:
        return ()
    return tuple(
        ExposureEvent(
            experiment_id=experiment_id,
            variant_id=variant_id,
            visitor_id=visitor_id,
            offer_id=offer_id,
            occurred_at=context.current_time,
            channel=context.channel,
            user_id=None if context.user is None else context.user.user_id,
            session_id=context.session_id,
        )
        for offer_id, (experiment_id, variant_id) in sorted(result.offer_variants.items())
    )


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class OfferEvaluationService:
    """
    Storefront-facing service: external cart shape in, EvaluationResult out.

    Options come from the caller, else the ConfigStore for the channel,
    else the engine settings' defaults.
    """

    def __init__(
        self,
        catalog: OfferCatalog,
        telemetry: Optional[ExperimentTelemetry] = None,
        config_store: Optional[ConfigStore] = None,
        settings: EngineSettings = DEFAULT_SETTINGS,
        clock: Optional[Clock] = None,
    ) -> None:
        self._catalog = catalog
        self._telemetry = telemetry
        self._config_store = config_store
        self._settings = settings
        self._clock = clock or SystemClock()

    def build_context(
        self,
        user: Optional[UserRecord] = None,
        channel: str = "web",
        session_id: Optional[str] = None,
    ) -> EvaluationContext:
        return EvaluationContext(
            current_time=self._clock.now_utc(),
            channel=channel,
            user=user,
            session_id=session_id,
        )

    def options_for(self, channel: str) -> EvaluationOptions:
        if self._config_store is not None:
            return self._config_store.get_options(channel)
        return self._settings.default_options

    async def evaluate(
        self,
        items: Iterable[Mapping[str, Any]],
        user: Optional[UserRecord] = None,
        channel: str = "web",
        session_id: Optional[str] = None,
        options: Optional[EvaluationOptions] = None,
    ) -> EvaluationResult:
        """Raises CartNormalizationError or CatalogFetchError."""
        cart = normalize_cart(items)
        context = self.build_context(user=user, channel=channel, session_id=session_id)
        result = await evaluate_offers_for_cart(
            self._catalog,
            cart,
            user,
            context,
            options or self.options_for(channel),
            settings=self._settings,
        )
        if self._telemetry is not None:
            self._telemetry.log_exposures(exposure_events(result, context))
        return result

    async def evaluate_or_empty(
        self,
        items: Iterable[Mapping[str, Any]],
        user: Optional[UserRecord] = None,
        channel: str = "web",
        session_id: Optional[str] = None,
        options: Optional[EvaluationOptions] = None,
    ) -> EvaluationResult:
        """
        Evaluate, treating any engine error as "no discounts available".

        Checkout must never be blocked by offer evaluation.
        """
        try:
            return await self.evaluate(
                items, user=user, channel=channel, session_id=session_id, options=options,
            )
        except OfferEngineError as exc:
            logger.error(f"Offer evaluation failed, returning no discounts: {exc}", exc_info=True)
            return EvaluationResult.empty()

    def record_conversion(
        self,
        context: ExperimentContext,
        conversion_type: str,
        value: Any = None,
        order_id: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> int:
        if self._telemetry is None:
            return 0
        return self._telemetry.log_conversion(
            context, conversion_type, value=value, order_id=order_id, properties=properties,
        )
