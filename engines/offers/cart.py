"""
Shopfront Offer Engine - Cart Normalizer
==========================================
Single translation point from the storefront cart shape to Cart.

External line shape (as held by the cart/session store):
    {
        "product": {"id": str, "name": str, "category": str, "tags": [str]},
        "variant": {"id": str, "price": number, "sku": str (optional)},
        "quantity": int,
    }

No other component accepts the external shape.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Tuple

from engines.offers.errors import CartNormalizationError
from engines.offers.models import Cart, LineItem


def _categories(index: int, product: Mapping[str, Any]) -> Tuple[str, ...]:
    tags = product.get("tags") or ()
    if not isinstance(tags, (list, tuple)):
        raise CartNormalizationError(index, "product.tags must be a list.")
    seen: List[str] = []
    category = product.get("category")
    if category:
        seen.append(str(category))
    for tag in tags:
        if tag and str(tag) not in seen:
            seen.append(str(tag))
    return tuple(seen)


def normalize_line(index: int, item: Mapping[str, Any]) -> LineItem:
    if not isinstance(item, Mapping):
        raise CartNormalizationError(index, "line must be an object.")
    product = item.get("product")
    variant = item.get("variant")
    if not isinstance(product, Mapping) or not product.get("id"):
        raise CartNormalizationError(index, "product.id is required.")
    if not isinstance(variant, Mapping) or not variant.get("id"):
        raise CartNormalizationError(index, "variant.id is required.")
    if variant.get("price") is None:
        raise CartNormalizationError(index, "variant.price is required.")

    quantity = item.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise CartNormalizationError(index, "quantity must be an integer.")

    variant_id = str(variant["id"])
    try:
        return LineItem(
            line_id=f"line_{index}",
            product_id=str(product["id"]),
            variant_id=variant_id,
            sku=str(variant.get("sku") or variant_id),
            unit_price=variant["price"],
            quantity=quantity,
            name=str(product.get("name", "")),
            categories=_categories(index, product),
        )
    except (ValueError, TypeError) as exc:
        raise CartNormalizationError(index, str(exc)) from exc


def normalize_cart(items: Iterable[Mapping[str, Any]]) -> Cart:
    """
    Translate storefront cart lines into a Cart.

    Line order is preserved; line ids are positional (line_0, line_1, ...).
    Raises CartNormalizationError on the first invalid line.
    """
    return Cart(lines=tuple(
        normalize_line(index, item) for index, item in enumerate(items or ())
    ))
