"""Cart line items and the aggregated cart summary."""
import enum
import re
import time
import uuid
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from ricequote.exceptions import ValidationError
from ricequote.utils.formatters import to_decimal

KG_PER_TON = Decimal('1000')
KG_PER_QUINTAL = Decimal('100')

_KG_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)kg$")


class QuantityUnit(enum.Enum):
    """Pack sizes offered on product cards."""
    KG_5 = "5kg"
    KG_10 = "10kg"
    KG_25 = "25kg"
    KG_50 = "50kg"
    KG_100 = "100kg"
    TON_1 = "1ton"


def kg_of(descriptor: Union[QuantityUnit, str]) -> Decimal:
    """
    Kilograms in a quantity descriptor.

    "1ton" is exactly 1000 kg; every other descriptor carries its kg value as
    a numeric prefix ("25kg" -> 25).
    """
    if isinstance(descriptor, QuantityUnit):
        descriptor = descriptor.value
    normalized = (descriptor or '').replace(' ', '').lower()
    if normalized == QuantityUnit.TON_1.value:
        return KG_PER_TON
    match = _KG_PATTERN.match(normalized)
    if not match:
        raise ValidationError(
            f"Unknown quantity '{descriptor}'",
            errors={'quantity': 'Choose one of ' + ', '.join(u.value for u in QuantityUnit)},
        )
    return Decimal(match.group(1))


def parse_quantity_unit(value: str) -> QuantityUnit:
    normalized = (value or '').replace(' ', '').lower()
    try:
        return QuantityUnit(normalized)
    except ValueError:
        raise ValidationError(
            f"Unknown quantity '{value}'",
            errors={'quantity': 'Choose one of ' + ', '.join(u.value for u in QuantityUnit)},
        )


def new_line_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class CartLineItem:
    """
    One line in a customer's cart.

    `frozen_total_price` is captured when the line is added and is never
    re-derived from the catalog; `number_of_bags` multiplies it at checkout.
    `price_label` is the last display price seen, used only as a fallback.
    """

    product_id: str
    product_name: str
    grade: str
    quantity_unit: QuantityUnit
    number_of_bags: int = 1
    quantity: int = 1
    frozen_total_price: Optional[Decimal] = None
    price_label: str = ''
    packing: str = ''
    category: str = ''
    hsn: str = '10063020'
    line_id: str = field(default_factory=new_line_id)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def __post_init__(self):
        if not isinstance(self.quantity_unit, QuantityUnit):
            self.quantity_unit = parse_quantity_unit(self.quantity_unit)
        if self.number_of_bags < 1:
            raise ValidationError('Number of bags must be at least 1', errors={'number_of_bags': 'min 1'})
        if self.quantity < 1:
            raise ValidationError('Quantity must be at least 1', errors={'quantity': 'min 1'})

    @property
    def kg(self) -> Decimal:
        return kg_of(self.quantity_unit)

    @property
    def is_frozen(self) -> bool:
        return self.frozen_total_price is not None

    def merge_key(self):
        return (self.product_id, self.grade, self.packing, self.quantity_unit)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['quantity_unit'] = self.quantity_unit.value
        data['frozen_total_price'] = None if self.frozen_total_price is None else str(self.frozen_total_price)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLineItem':
        return cls(
            product_id=str(data['product_id']),
            product_name=data.get('product_name') or '',
            grade=data.get('grade') or '',
            quantity_unit=data['quantity_unit'],
            number_of_bags=int(data.get('number_of_bags') or 1),
            quantity=int(data.get('quantity') or 1),
            frozen_total_price=to_decimal(data.get('frozen_total_price')),
            price_label=data.get('price_label') or '',
            packing=data.get('packing') or '',
            category=data.get('category') or '',
            hsn=data.get('hsn') or '10063020',
            line_id=data.get('line_id') or new_line_id(),
            timestamp=int(data.get('timestamp') or time.time() * 1000),
        )


class PriceSource(enum.Enum):
    FROZEN = "frozen"
    LIVE = "live"
    FALLBACK = "fallback"
    UNAVAILABLE = "unavailable"


@dataclass
class EnrichedLineItem:
    item: CartLineItem
    display_price: Decimal
    subtotal: Decimal
    price_source: PriceSource
    live_price_per_kg: Optional[Decimal] = None

    @property
    def price_fetched(self) -> bool:
        return self.price_source in (PriceSource.FROZEN, PriceSource.LIVE)

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data.update({
            'display_price': self.display_price,
            'subtotal': self.subtotal,
            'price_source': self.price_source.value,
            'price_fetched': self.price_fetched,
            'live_price_per_kg': self.live_price_per_kg,
        })
        return data


@dataclass
class CartSummary:
    items: List[EnrichedLineItem]
    subtotal: Decimal
    item_count: int
    total_bags: int

    @property
    def fetched_count(self) -> int:
        return sum(1 for i in self.items if i.price_fetched)

    @property
    def fallback_count(self) -> int:
        return sum(1 for i in self.items if not i.price_fetched)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [i.to_dict() for i in self.items],
            'subtotal': self.subtotal,
            'item_count': self.item_count,
            'total_bags': self.total_bags,
            'fetched_count': self.fetched_count,
            'fallback_count': self.fallback_count,
        }
