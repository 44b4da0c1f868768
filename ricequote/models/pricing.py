"""Value objects for the price breakdown calculator."""
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from ricequote.models.cart import QuantityUnit


class TransportStatus(enum.Enum):
    """Whether inland transport is part of the quote and, if so, priced."""
    NOT_APPLICABLE = "not_applicable"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class QuoteInput:
    """
    Everything a breakdown depends on.

    Exactly one of `price_per_kg` (single product) or `cart_subtotal`
    (cart order, base currency) is set.
    """

    currency: str
    price_per_kg: Optional[Decimal] = None
    cart_subtotal: Optional[Decimal] = None
    quantity: Optional[Union[QuantityUnit, str]] = None
    packing: Optional[str] = None
    branding: bool = False
    cif: bool = False
    port: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_cart(self) -> bool:
        return self.cart_subtotal is not None


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemized quote in `currency`. Derived, never persisted on its own."""

    currency: str
    exchange_rate: Decimal
    base_price: Decimal
    packing_price: Decimal
    branding_price: Decimal
    quantity_price: Decimal
    insurance_price: Decimal
    freight_price: Decimal
    transport_price_per_unit: Decimal
    transport_total: Decimal
    grand_total: Decimal
    grand_total_base: Decimal
    transport_status: TransportStatus
    quintals: Decimal
    cif: bool
    is_cart: bool = False

    @property
    def transport_available(self) -> bool:
        return self.transport_status is not TransportStatus.UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currency': self.currency,
            'exchange_rate': self.exchange_rate,
            'base_price': self.base_price,
            'packing_price': self.packing_price,
            'branding_price': self.branding_price,
            'quantity_price': self.quantity_price,
            'insurance_price': self.insurance_price,
            'freight_price': self.freight_price,
            'transport_price_per_unit': self.transport_price_per_unit,
            'transport_total': self.transport_total,
            'grand_total': self.grand_total,
            'grand_total_base': self.grand_total_base,
            'transport_status': self.transport_status.value,
            'transport_available': self.transport_available,
            'quintals': self.quintals,
            'quintals_estimated': self.is_cart,
            'cif': self.cif,
        }
