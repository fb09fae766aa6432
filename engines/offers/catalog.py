"""
Shopfront Offer Engine - Offer Catalog
========================================
Reads the currently active offers from the external store.

The catalog never writes and holds no business logic beyond turning
store rows into Offer objects. Rows are plain mappings:

    {
        "id": "off-10pct", "name": "10% off", "offer_type": "percent_discount",
        "marketing_text": "...", "priority": 10, "status": "active",
        "valid_from": "2026-01-01T00:00:00Z", "valid_until": null,
        "exclusivity_group": "sitewide", "channels": ["web"],
        "benefit": {"discount_percent": 10},
        "qualifying_filters": {"skus": [], "categories": ["snacks"],
                               "exclude_skus": ["CHIPS-XL"], "exclude_categories": []},
        "caps_config": {"max_discount_amount": 200, "min_price_floor": null},
        "conditions": {"min_subtotal": 500, "required_items": [...],
                       "segments": ["vip"], "min_lifetime_orders": 1,
                       "max_lifetime_orders": null},
    }

A malformed row raises OfferDefinitionError from parse_offer; the
catalog skips it with a warning and keeps loading the rest.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from core.time.temporal import ALWAYS, ValidityWindow, parse_timestamp
from engines.experiments.models import Experiment, ExperimentVariant
from engines.offers.errors import CatalogFetchError, OfferDefinitionError
from engines.offers.models import (
    NO_CAPS,
    OFFER_STATUS_ACTIVE,
    OFFER_TYPE_BUY_X_GET_Y,
    OFFER_TYPE_FLAT,
    OFFER_TYPE_FREE_ITEM,
    OFFER_TYPE_PERCENT,
    BuyXGetY,
    DiscountParams,
    FlatDiscount,
    FreeItem,
    ItemFilter,
    Offer,
    OfferCaps,
    OfferConditions,
    PercentDiscount,
    RequiredItem,
)

logger = logging.getLogger("shopfront.catalog")


# ══════════════════════════════════════════════════════════════
# ROW PARSING
# ══════════════════════════════════════════════════════════════

def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _require(data: Mapping[str, Any], *keys: str) -> Any:
    value = _first(data, *keys)
    if value is None:
        raise ValueError(f"{keys[0]} is required.")
    return value


def _section(row: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = row.get(key) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{key} must be an object.")
    return value


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer.")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer.") from exc
    if number != value and str(number) != str(value):
        raise ValueError(f"{name} must be an integer.")
    return number


def _parse_params(offer_type: str, benefit: Mapping[str, Any]) -> DiscountParams:
    if offer_type == OFFER_TYPE_PERCENT:
        return PercentDiscount(percent=_require(benefit, "discount_percent", "percent"))
    if offer_type == OFFER_TYPE_FLAT:
        return FlatDiscount(amount=_require(benefit, "discount_amount", "amount"))
    if offer_type == OFFER_TYPE_BUY_X_GET_Y:
        max_sets = _first(benefit, "max_sets")
        return BuyXGetY(
            buy_quantity=_int(_require(benefit, "buy_quantity", "buy_qty"), "buy_quantity"),
            get_quantity=_int(_require(benefit, "get_quantity", "get_qty"), "get_quantity"),
            max_sets=None if max_sets is None else _int(max_sets, "max_sets"),
        )
    if offer_type == OFFER_TYPE_FREE_ITEM:
        return FreeItem(
            gift_sku=str(_require(benefit, "gift_sku", "free_sku")),
            gift_name=str(benefit.get("gift_name") or ""),
        )
    raise ValueError(f"offer_type '{offer_type}' not valid.")


def _parse_required_item(item: Mapping[str, Any]) -> RequiredItem:
    if not isinstance(item, Mapping):
        raise ValueError("required_items entries must be objects.")
    return RequiredItem(
        sku=item.get("sku"),
        category=item.get("category"),
        quantity=_int(item.get("quantity", 1), "required_items.quantity"),
    )


def _parse_conditions(data: Mapping[str, Any]) -> OfferConditions:
    min_orders = data.get("min_lifetime_orders")
    max_orders = data.get("max_lifetime_orders")
    return OfferConditions(
        min_subtotal=data.get("min_subtotal"),
        required_items=tuple(
            _parse_required_item(item) for item in data.get("required_items") or ()
        ),
        segments=tuple(data.get("segments") or ()),
        min_lifetime_orders=None if min_orders is None else _int(min_orders, "min_lifetime_orders"),
        max_lifetime_orders=None if max_orders is None else _int(max_orders, "max_lifetime_orders"),
    )


def _parse_caps(data: Mapping[str, Any]) -> OfferCaps:
    if not data:
        return NO_CAPS
    return OfferCaps(
        max_discount_amount=data.get("max_discount_amount"),
        min_price_floor=data.get("min_price_floor"),
    )


def _parse_window(row: Mapping[str, Any]) -> ValidityWindow:
    start = parse_timestamp(row.get("valid_from"))
    end = parse_timestamp(row.get("valid_until"))
    if start is None and end is None:
        return ALWAYS
    return ValidityWindow(start=start, end=end)


def parse_offer(row: Mapping[str, Any]) -> Offer:
    """Build an Offer from a store row. Raises OfferDefinitionError."""
    offer_id = str(row.get("id") or row.get("offer_id") or "")
    if not offer_id:
        raise OfferDefinitionError("<unknown>", "id is required.")
    try:
        offer_type = row.get("offer_type")
        if not offer_type:
            raise ValueError("offer_type is required.")
        filters = _section(row, "qualifying_filters")
        return Offer(
            offer_id=offer_id,
            name=str(row.get("name") or ""),
            params=_parse_params(offer_type, _section(row, "benefit")),
            marketing_text=str(row.get("marketing_text") or ""),
            priority=_int(row.get("priority", 0), "priority"),
            status=row.get("status") or OFFER_STATUS_ACTIVE,
            window=_parse_window(row),
            conditions=_parse_conditions(_section(row, "conditions")),
            exclusivity_group=row.get("exclusivity_group") or None,
            scope=ItemFilter(
                skus=tuple(filters.get("skus") or ()),
                categories=tuple(filters.get("categories") or ()),
                exclude_skus=tuple(filters.get("exclude_skus") or ()),
                exclude_categories=tuple(filters.get("exclude_categories") or ()),
            ),
            channels=tuple(row.get("channels") or ()),
            caps=_parse_caps(_section(row, "caps_config")),
        )
    except (ValueError, TypeError) as exc:
        raise OfferDefinitionError(offer_id, str(exc)) from exc


def parse_offers(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[Offer], List[str]]:
    """
    Parse every row, skipping malformed ones.

    Returns (offers, skipped) where skipped holds one log line per
    skipped row.
    """
    offers: List[Offer] = []
    skipped: List[str] = []
    for row in rows:
        try:
            offers.append(parse_offer(row))
        except OfferDefinitionError as exc:
            logger.warning(f"Skipping offer: {exc}")
            skipped.append(str(exc))
    return offers, skipped


def _parse_variant(experiment_id: str, row: Mapping[str, Any]) -> ExperimentVariant:
    return ExperimentVariant(
        variant_id=str(row.get("id") or row.get("variant_id") or ""),
        experiment_id=experiment_id,
        name=str(row.get("name") or ""),
        weight=_int(row.get("weight", 1), "weight"),
        activate_offer_ids=tuple(row.get("offer_ids") or row.get("activate_offer_ids") or ()),
        suppress_offer_ids=tuple(row.get("suppress_offer_ids") or ()),
        is_control=bool(row.get("is_control", False)),
    )


def parse_experiment(row: Mapping[str, Any]) -> Experiment:
    """Build an Experiment (with its variants) from a store row. Raises ValueError."""
    experiment_id = str(row.get("id") or row.get("experiment_id") or "")
    start = parse_timestamp(row.get("start_date"))
    end = parse_timestamp(row.get("end_date"))
    return Experiment(
        experiment_id=experiment_id,
        name=str(row.get("name") or ""),
        variants=tuple(
            _parse_variant(experiment_id, variant) for variant in row.get("variants") or ()
        ),
        status=row.get("status") or "running",
        traffic_percent=_int(row.get("traffic_percent", 100), "traffic_percent"),
        window=ALWAYS if start is None and end is None else ValidityWindow(start, end),
    )


def sort_for_catalog(offers: Iterable[Offer]) -> List[Offer]:
    """Priority descending, offer id ascending."""
    return sorted(offers, key=lambda o: (-o.priority, o.offer_id))


# ══════════════════════════════════════════════════════════════
# CATALOG PROTOCOL + IN-MEMORY IMPLEMENTATION
# ══════════════════════════════════════════════════════════════

class OfferCatalog(Protocol):
    async def fetch_active_offers(self) -> List[Offer]:
        """Active offers, priority descending. Raises CatalogFetchError."""
        ...

    async def fetch_running_experiments(self) -> List[Experiment]:
        """Running experiments with their variants. Raises CatalogFetchError."""
        ...


class InMemoryOfferCatalog:
    """
    Catalog over rows held in memory.

    Offers an experiment variant activates are returned even when their
    own status is inactive, so the assigner can switch them on.
    """

    def __init__(
        self,
        offers: Sequence[Offer] = (),
        experiments: Sequence[Experiment] = (),
    ) -> None:
        self._offers = tuple(offers)
        self._experiments = tuple(experiments)

    @classmethod
    def from_rows(
        cls,
        offer_rows: Iterable[Mapping[str, Any]],
        experiment_rows: Iterable[Mapping[str, Any]] = (),
    ) -> "InMemoryOfferCatalog":
        offers, _ = parse_offers(offer_rows)
        try:
            experiments = [parse_experiment(row) for row in experiment_rows]
        except ValueError as exc:
            raise CatalogFetchError("experiments", str(exc)) from exc
        return cls(offers, experiments)

    async def fetch_active_offers(self) -> List[Offer]:
        activated = {
            offer_id
            for experiment in self._experiments
            for offer_id in experiment.offer_ids
        }
        return sort_for_catalog(
            o for o in self._offers if o.is_active or o.offer_id in activated
        )

    async def fetch_running_experiments(self) -> List[Experiment]:
        return [e for e in self._experiments if e.status == "running"]


# ══════════════════════════════════════════════════════════════
# CATALOG SNAPSHOT + PERIODIC REFRESH
# ══════════════════════════════════════════════════════════════

class CatalogSnapshot:
    __slots__ = ("offers", "experiments", "version")

    def __init__(
        self,
        offers: Tuple[Offer, ...] = (),
        experiments: Tuple[Experiment, ...] = (),
        version: int = 0,
    ) -> None:
        self.offers = offers
        self.experiments = experiments
        self.version = version


class CatalogRefresher:
    """
    Holds the last good catalog snapshot and refreshes it on an interval.

    - a failed refresh keeps the previous snapshot and is logged
    - a refresh cancelled mid-fetch never replaces the snapshot
    - stop() cancels the periodic task
    """

    def __init__(self, catalog: OfferCatalog, interval_seconds: float = 0) -> None:
        self._catalog = catalog
        self._interval = interval_seconds
        self._snapshot = CatalogSnapshot()
        self._task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    async def refresh(self) -> CatalogSnapshot:
        """Fetch once. Raises CatalogFetchError; the held snapshot is unchanged then."""
        offers, experiments = await asyncio.gather(
            self._catalog.fetch_active_offers(),
            self._catalog.fetch_running_experiments(),
        )
        # Only reached when the fetch was neither cancelled nor failed.
        self._snapshot = CatalogSnapshot(
            offers=tuple(offers),
            experiments=tuple(experiments),
            version=self._snapshot.version + 1,
        )
        logger.info(
            f"Catalog refreshed: {len(offers)} offer(s), "
            f"{len(experiments)} experiment(s) (version {self._snapshot.version})"
        )
        return self._snapshot

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except CatalogFetchError as exc:
                logger.error(f"Catalog refresh failed: {exc}", exc_info=True)
            except Exception as exc:
                logger.error(
                    f"Catalog refresh failed unexpectedly: {type(exc).__name__}: {exc}",
                    exc_info=True,
                )
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start periodic refresh on the running loop. No-op when interval is 0."""
        if self._interval <= 0 or self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
