"""
Cart service: line-item operations and checkout aggregation.

The cart itself lives in the Flask session as a list of plain dicts; this
module converts to and from CartLineItem and never touches the store except
through the grade price resolver.
"""
import logging
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError

from ricequote.exceptions import NotFoundError, QuoteEngineError
from ricequote.models.cart import CartLineItem, CartSummary, EnrichedLineItem, PriceSource, parse_quantity_unit, kg_of
from ricequote.models.catalog import Product
from ricequote.services.grade_price_service import GradePriceResolver
from ricequote.utils.formatters import money, parse_price_label

logger = logging.getLogger(__name__)

CART_SESSION_KEY = 'cart'

ZERO = Decimal('0')


class CartAggregator:
    """Consolidates frozen and live-priced line items into one total."""

    def __init__(self, resolver: GradePriceResolver):
        self.resolver = resolver

    def enrich(self, item: CartLineItem) -> EnrichedLineItem:
        bags = Decimal(item.number_of_bags)
        quantity = Decimal(item.quantity)

        if item.is_frozen:
            return EnrichedLineItem(
                item=item,
                display_price=item.frozen_total_price,
                subtotal=item.frozen_total_price * bags,
                price_source=PriceSource.FROZEN,
            )

        price_per_kg = None
        try:
            price_per_kg = self.resolver.resolve(item.product_id, item.grade)
        except (QuoteEngineError, SQLAlchemyError) as e:
            logger.warning(f"[CART] Live price lookup failed for {item.product_id}/{item.grade}: {e}")

        if price_per_kg is not None:
            line_price = price_per_kg * item.kg * quantity
            return EnrichedLineItem(
                item=item,
                display_price=line_price,
                subtotal=line_price * bags,
                price_source=PriceSource.LIVE,
                live_price_per_kg=price_per_kg,
            )

        label_price = parse_price_label(item.price_label)
        if label_price is not None:
            line_price = label_price * quantity
            return EnrichedLineItem(
                item=item,
                display_price=line_price,
                subtotal=line_price * bags,
                price_source=PriceSource.FALLBACK,
            )

        logger.info(f"[CART] No price for line {item.line_id}, counted as 0")
        return EnrichedLineItem(item=item, display_price=ZERO, subtotal=ZERO,
                                price_source=PriceSource.UNAVAILABLE)

    def aggregate(self, items: Iterable[CartLineItem]) -> CartSummary:
        enriched = [self.enrich(item) for item in items]
        return CartSummary(
            items=enriched,
            subtotal=sum((e.subtotal for e in enriched), ZERO),
            item_count=sum(e.item.quantity * e.item.number_of_bags for e in enriched),
            total_bags=sum(e.item.number_of_bags for e in enriched),
        )


def load_cart(session) -> List[CartLineItem]:
    return [CartLineItem.from_dict(raw) for raw in session.get(CART_SESSION_KEY) or []]


def save_cart(session, items: List[CartLineItem]) -> None:
    session[CART_SESSION_KEY] = [item.to_dict() for item in items]
    session.modified = True


def _find(items: List[CartLineItem], line_id: str) -> CartLineItem:
    for item in items:
        if item.line_id == line_id:
            return item
    raise NotFoundError(f"Cart line {line_id} not found")


class CartService:
    """Add/merge/update/remove operations on a list of line items."""

    def __init__(self, resolver: GradePriceResolver):
        self.resolver = resolver

    def build_line(self, product: Product, grade: str, quantity_unit: str,
                   packing: str = '', number_of_bags: int = 1) -> CartLineItem:
        """
        New line with its total frozen at today's grade price.

        When the grade has no price the line is left unfrozen and keeps the
        product's price-range label for display.
        """
        unit = parse_quantity_unit(quantity_unit)
        price_per_kg = self.resolver.resolve(product.id, grade)
        frozen_total = price_per_kg * kg_of(unit) if price_per_kg is not None else None
        label = (f"Total: {money(frozen_total)} for {unit.value}"
                 if frozen_total is not None else product.price_range)
        return CartLineItem(
            product_id=product.id,
            product_name=product.display_name(),
            grade=grade,
            quantity_unit=unit,
            number_of_bags=number_of_bags,
            frozen_total_price=frozen_total,
            price_label=label,
            packing=packing,
            category=product.category,
            hsn=product.hsn,
        )

    def add(self, items: List[CartLineItem], new_item: CartLineItem) -> List[CartLineItem]:
        """Append a line, or merge into an identical one (quantity += 1)."""
        for item in items:
            if item.merge_key() == new_item.merge_key():
                item.quantity += 1
                if item.is_frozen and new_item.is_frozen:
                    item.frozen_total_price = item.frozen_total_price + new_item.frozen_total_price
                else:
                    # A partly frozen total would undercount; price the merged line live
                    item.frozen_total_price = None
                logger.info(f"[CART] Merged into line {item.line_id} (quantity {item.quantity})")
                return items
        items.append(new_item)
        logger.info(f"[CART] Added line {new_item.line_id} {new_item.product_id}/{new_item.grade}")
        return items

    def update_bags(self, items: List[CartLineItem], line_id: str, number_of_bags: int) -> List[CartLineItem]:
        """Set the bag multiplier; below 1 removes the line."""
        item = _find(items, line_id)
        if number_of_bags < 1:
            return self.remove(items, line_id)
        item.number_of_bags = number_of_bags
        return items

    def remove(self, items: List[CartLineItem], line_id: str) -> List[CartLineItem]:
        _find(items, line_id)
        logger.info(f"[CART] Removed line {line_id}")
        return [item for item in items if item.line_id != line_id]

    def clear(self) -> List[CartLineItem]:
        return []
