"""
Shopfront Offer Engine - Value Objects
========================================
Immutable inputs and outputs of offer evaluation.

Money is Decimal, quantized to two places with ROUND_HALF_UP.
Discount parameters are a tagged union: the parameter class decides
the offer type, so an offer cannot carry fields of two types at once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from core.time.temporal import ALWAYS, ValidityWindow

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any, name: str = "Amount") -> Decimal:
    """Finite Decimal from a number or numeric string. Raises ValueError."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got {value!r}.")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}.") from exc
    if not number.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}.")
    return number


def to_money(value: Any) -> Decimal:
    """Quantize a numeric value to the currency's two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, symbol: str = "₹") -> str:
    """₹500 for whole amounts, ₹499.50 otherwise."""
    amount = to_money(amount)
    if amount == amount.to_integral_value():
        return f"{symbol}{int(amount)}"
    return f"{symbol}{amount}"


# ══════════════════════════════════════════════════════════════
# CONSTANTS
# ══════════════════════════════════════════════════════════════

OFFER_TYPE_PERCENT = "percent_discount"
OFFER_TYPE_FLAT = "flat_discount"
OFFER_TYPE_BUY_X_GET_Y = "buy_x_get_y"
OFFER_TYPE_FREE_ITEM = "free_item"
VALID_OFFER_TYPES = frozenset({
    OFFER_TYPE_PERCENT, OFFER_TYPE_FLAT, OFFER_TYPE_BUY_X_GET_Y, OFFER_TYPE_FREE_ITEM,
})

OFFER_STATUS_ACTIVE = "active"
OFFER_STATUS_INACTIVE = "inactive"
VALID_OFFER_STATUSES = frozenset({OFFER_STATUS_ACTIVE, OFFER_STATUS_INACTIVE})

CHANNEL_WEB = "web"
CHANNEL_IOS = "ios"
CHANNEL_ANDROID = "android"


class RejectionCode:
    """Machine-readable reasons for offers dropped by conflict resolution."""

    EXCLUSIVITY_CONFLICT = "exclusivity_conflict"
    MAX_OFFERS_EXCEEDED = "max_offers_exceeded"
    DISCOUNT_CAP_EXCEEDED = "discount_cap_exceeded"


# ══════════════════════════════════════════════════════════════
# DISCOUNT PARAMETERS (tagged union)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PercentDiscount:
    offer_type: ClassVar[str] = OFFER_TYPE_PERCENT

    percent: Decimal

    def __post_init__(self):
        percent = to_decimal(self.percent, "percent")
        if not 0 <= percent <= 100:
            raise ValueError(f"percent must be between 0 and 100, got {percent}.")
        object.__setattr__(self, "percent", percent)


@dataclass(frozen=True)
class FlatDiscount:
    offer_type: ClassVar[str] = OFFER_TYPE_FLAT

    amount: Decimal

    def __post_init__(self):
        amount = to_money(self.amount)
        if amount < 0:
            raise ValueError("amount must be >= 0.")
        object.__setattr__(self, "amount", amount)


@dataclass(frozen=True)
class BuyXGetY:
    offer_type: ClassVar[str] = OFFER_TYPE_BUY_X_GET_Y

    buy_quantity: int
    get_quantity: int
    max_sets: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.buy_quantity, int) or self.buy_quantity <= 0:
            raise ValueError("buy_quantity must be a positive integer.")
        if not isinstance(self.get_quantity, int) or self.get_quantity <= 0:
            raise ValueError("get_quantity must be a positive integer.")
        if self.max_sets is not None and (
            not isinstance(self.max_sets, int) or self.max_sets <= 0
        ):
            raise ValueError("max_sets must be a positive integer or None.")

    @property
    def group_size(self) -> int:
        return self.buy_quantity + self.get_quantity


@dataclass(frozen=True)
class FreeItem:
    offer_type: ClassVar[str] = OFFER_TYPE_FREE_ITEM

    gift_sku: str
    gift_name: str = ""

    def __post_init__(self):
        if not self.gift_sku:
            raise ValueError("gift_sku must be non-empty.")


DiscountParams = Union[PercentDiscount, FlatDiscount, BuyXGetY, FreeItem]


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    line_id: str
    product_id: str
    variant_id: str
    sku: str
    unit_price: Decimal
    quantity: int
    name: str = ""
    categories: Tuple[str, ...] = ()

    def __post_init__(self):
        price = to_money(self.unit_price)
        if price < 0:
            raise ValueError("unit_price must be non-negative.")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be a positive integer.")
        object.__setattr__(self, "unit_price", price)
        object.__setattr__(self, "categories", tuple(self.categories))

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def has_sku(self, sku: str) -> bool:
        return sku in (self.sku, self.variant_id, self.product_id)

    def in_category(self, category: str) -> bool:
        return category in self.categories


@dataclass(frozen=True)
class ItemFilter:
    """
    Restricts an offer to SKUs and/or categories.

    An empty filter matches the whole cart. Excluded SKUs and categories
    never match, even when they are also listed for inclusion.
    """

    skus: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    exclude_skus: Tuple[str, ...] = ()
    exclude_categories: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("skus", "categories", "exclude_skus", "exclude_categories"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def is_whole_cart(self) -> bool:
        return not (self.skus or self.categories or self.exclude_skus or self.exclude_categories)

    def excludes(self, line: LineItem) -> bool:
        if any(line.has_sku(sku) for sku in self.exclude_skus):
            return True
        return any(line.in_category(c) for c in self.exclude_categories)

    def matches(self, line: LineItem) -> bool:
        if self.is_whole_cart:
            return True
        if self.excludes(line):
            return False
        if not self.skus and not self.categories:
            return True
        if any(line.has_sku(sku) for sku in self.skus):
            return True
        return any(line.in_category(c) for c in self.categories)

    def describe(self) -> str:
        parts = list(self.skus) + list(self.categories)
        return ", ".join(parts) if parts else "any item"


@dataclass(frozen=True)
class Cart:
    """
    Normalized cart. subtotal is computed once here and read everywhere else.
    """

    lines: Tuple[LineItem, ...] = ()
    subtotal: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))
        line_ids = [line.line_id for line in self.lines]
        if len(line_ids) != len(set(line_ids)):
            raise ValueError("line_id values must be unique within a cart.")
        total = sum((line.line_total for line in self.lines), ZERO)
        object.__setattr__(self, "subtotal", to_money(total))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def lines_matching(self, item_filter: ItemFilter) -> Tuple[LineItem, ...]:
        return tuple(line for line in self.lines if item_filter.matches(line))

    def scope_subtotal(self, item_filter: ItemFilter) -> Decimal:
        if item_filter.is_whole_cart:
            return self.subtotal
        return to_money(
            sum((line.line_total for line in self.lines_matching(item_filter)), ZERO)
        )

    def quantity_of_sku(self, sku: str) -> int:
        return sum(line.quantity for line in self.lines if line.has_sku(sku))

    def quantity_in_category(self, category: str) -> int:
        return sum(line.quantity for line in self.lines if line.in_category(category))

    def find_line(self, sku: str) -> Optional[LineItem]:
        for line in self.lines:
            if line.has_sku(sku):
                return line
        return None


EMPTY_CART = Cart()


# ══════════════════════════════════════════════════════════════
# OFFER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RequiredItem:
    """At least `quantity` units of a SKU, or of a category, must be in the cart."""

    sku: Optional[str] = None
    category: Optional[str] = None
    quantity: int = 1

    def __post_init__(self):
        if (self.sku is None) == (self.category is None):
            raise ValueError("RequiredItem needs exactly one of sku or category.")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("RequiredItem quantity must be a positive integer.")

    @property
    def label(self) -> str:
        return self.sku if self.sku is not None else self.category


@dataclass(frozen=True)
class OfferConditions:
    min_subtotal: Optional[Decimal] = None
    required_items: Tuple[RequiredItem, ...] = ()
    segments: Tuple[str, ...] = ()
    min_lifetime_orders: Optional[int] = None
    max_lifetime_orders: Optional[int] = None

    def __post_init__(self):
        if self.min_subtotal is not None:
            object.__setattr__(self, "min_subtotal", to_money(self.min_subtotal))
        object.__setattr__(self, "required_items", tuple(self.required_items))
        object.__setattr__(self, "segments", tuple(self.segments))
        for name in ("min_lifetime_orders", "max_lifetime_orders"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, int) or value < 0):
                raise ValueError(f"{name} must be a non-negative integer or None.")


@dataclass(frozen=True)
class OfferCaps:
    """
    Per-offer limits on the computed discount ("10% off up to ₹200").

    max_discount_amount caps the discount itself; min_price_floor keeps
    the discounted lines from being priced below the floor in total.
    """

    max_discount_amount: Optional[Decimal] = None
    min_price_floor: Optional[Decimal] = None

    def __post_init__(self):
        for name in ("max_discount_amount", "min_price_floor"):
            value = getattr(self, name)
            if value is None:
                continue
            amount = to_money(value)
            if amount < 0:
                raise ValueError(f"{name} must be >= 0.")
            object.__setattr__(self, name, amount)

    @property
    def is_unbounded(self) -> bool:
        return self.max_discount_amount is None and self.min_price_floor is None

    def apply(self, discount: Decimal, base_amount: Decimal) -> Decimal:
        if self.max_discount_amount is not None:
            discount = min(discount, self.max_discount_amount)
        if self.min_price_floor is not None:
            discount = min(discount, max(ZERO, base_amount - self.min_price_floor))
        return to_money(max(ZERO, discount))


NO_CAPS = OfferCaps()


@dataclass(frozen=True)
class Offer:
    offer_id: str
    name: str
    params: DiscountParams
    marketing_text: str = ""
    priority: int = 0
    status: str = OFFER_STATUS_ACTIVE
    window: ValidityWindow = ALWAYS
    conditions: OfferConditions = field(default_factory=OfferConditions)
    exclusivity_group: Optional[str] = None
    scope: ItemFilter = field(default_factory=ItemFilter)
    channels: Tuple[str, ...] = ()
    caps: OfferCaps = NO_CAPS

    def __post_init__(self):
        if not self.offer_id:
            raise ValueError("offer_id must be non-empty.")
        if not self.name:
            raise ValueError("name must be non-empty.")
        if not isinstance(self.params, (PercentDiscount, FlatDiscount, BuyXGetY, FreeItem)):
            raise ValueError(f"params type {type(self.params).__name__} not valid.")
        if self.status not in VALID_OFFER_STATUSES:
            raise ValueError(f"status '{self.status}' not valid.")
        if not isinstance(self.priority, int):
            raise ValueError("priority must be an integer.")
        object.__setattr__(self, "channels", tuple(self.channels))

    @property
    def offer_type(self) -> str:
        return self.params.offer_type

    @property
    def is_active(self) -> bool:
        return self.status == OFFER_STATUS_ACTIVE

    @property
    def display_text(self) -> str:
        return self.marketing_text or self.name

    def available_on(self, channel: str) -> bool:
        return not self.channels or channel in self.channels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "name": self.name,
            "offer_type": self.offer_type,
            "marketing_text": self.marketing_text,
            "priority": self.priority,
            "exclusivity_group": self.exclusivity_group,
        }


# ══════════════════════════════════════════════════════════════
# EVALUATION CONTEXT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UserRecord:
    user_id: str
    segments: Tuple[str, ...] = ()
    lifetime_orders: int = 0

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id must be non-empty.")
        object.__setattr__(self, "segments", tuple(self.segments))


@dataclass(frozen=True)
class EvaluationContext:
    """
    Everything evaluation may read besides cart and offers.

    current_time is injected; the engine never reads the wall clock.
    session_id identifies an anonymous visitor for experiment assignment.
    """

    current_time: datetime
    channel: str = CHANNEL_WEB
    user: Optional[UserRecord] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if self.current_time.tzinfo is None:
            raise ValueError("current_time must be timezone-aware.")

    @property
    def visitor_id(self) -> Optional[str]:
        if self.user is not None:
            return self.user.user_id
        return self.session_id


# ══════════════════════════════════════════════════════════════
# EVALUATION OUTPUTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EligibilityResult:
    """
    Condition matcher verdict.

    excluded=True means the offer can never be satisfied by changing the
    cart (outside its window, wrong channel) and is dropped from every list.
    """

    eligible: bool
    missing_conditions: Tuple[str, ...] = ()
    excluded: bool = False


@dataclass(frozen=True)
class DiscountComputation:
    discount_amount: Decimal
    affected_line_ids: Tuple[str, ...] = ()
    missing_conditions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Candidate:
    """An eligible offer together with its computed discount."""

    offer: Offer
    computation: DiscountComputation

    @property
    def discount(self) -> Decimal:
        return self.computation.discount_amount


@dataclass(frozen=True)
class ApplicationPlan:
    offer_id: str
    offer_name: str
    offer_type: str
    discount: Decimal
    affected_line_ids: Tuple[str, ...]
    display_text: str
    priority: int = 0
    exclusivity_group: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_type": self.offer_type,
            "discount": str(self.discount),
            "affected_line_ids": list(self.affected_line_ids),
            "display_text": self.display_text,
        }


@dataclass(frozen=True)
class PotentialOffer:
    offer: Offer
    missing_conditions: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer": self.offer.to_dict(),
            "missing_conditions": list(self.missing_conditions),
        }


@dataclass(frozen=True)
class RejectedOffer:
    offer_id: str
    offer_name: str
    reason: str
    detail: str
    competing_offer_id: Optional[str] = None
    competing_offer_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "reason": self.reason,
            "detail": self.detail,
            "competing_offer_id": self.competing_offer_id,
        }


@dataclass(frozen=True)
class EvaluationResult:
    subtotal: Decimal = ZERO
    applicable_offers: Tuple[Offer, ...] = ()
    plans: Tuple[ApplicationPlan, ...] = ()
    total_discount: Decimal = ZERO
    potential_offers: Tuple[PotentialOffer, ...] = ()
    rejected_offers: Tuple[RejectedOffer, ...] = ()
    rejection_log: Tuple[str, ...] = ()
    assignments: Mapping[str, str] = field(default_factory=dict)
    offer_variants: Mapping[str, Tuple[str, str]] = field(default_factory=dict)

    @property
    def payable(self) -> Decimal:
        return max(ZERO, self.subtotal - self.total_discount)

    @classmethod
    def empty(cls, subtotal: Decimal = ZERO) -> "EvaluationResult":
        return cls(subtotal=to_money(subtotal))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": str(self.subtotal),
            "total_discount": str(self.total_discount),
            "payable": str(self.payable),
            "applicable_offers": [o.to_dict() for o in self.applicable_offers],
            "plans": [p.to_dict() for p in self.plans],
            "potential_offers": [p.to_dict() for p in self.potential_offers],
            "rejected_offers": [r.to_dict() for r in self.rejected_offers],
            "rejection_log": list(self.rejection_log),
            "assignments": dict(self.assignments),
        }
