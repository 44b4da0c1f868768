"""
Order/quote request shapes.

Single-product, cart and sample-courier orders share one storage layout but
each has its own required fields, so they are modelled as separate classes
joined in the `OrderKind` union instead of one record with ad hoc optionals.
"""
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from ricequote.utils.formatters import to_decimal
from ricequote.utils.validators import split_phone


class OrderStatus(enum.Enum):
    """Order status enum."""
    PENDING = "Pending"
    QUOTED = "Quoted"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.QUOTED, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.QUOTED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderType(enum.Enum):
    """Order type; decides counter, id prefix and storage segment."""
    BULK = "bulk"
    CART = "cart"
    SAMPLE_COURIER = "sample_courier"

    @property
    def counter_name(self) -> str:
        # Cart orders share the bulk numbering space on purpose
        return 'sampleCourier' if self is OrderType.SAMPLE_COURIER else 'bulkQuote'

    @property
    def id_prefix(self) -> str:
        return 'SampleCourier' if self is OrderType.SAMPLE_COURIER else 'BulkQuote'

    @property
    def path_segment(self) -> str:
        return 'sample_courier' if self is OrderType.SAMPLE_COURIER else 'bulk'

    @property
    def audit_entity(self) -> str:
        return 'CART_QUOTE' if self is OrderType.CART else 'ORDER'


def order_path(segment: str, quote_id: str) -> str:
    return f"quotes/{segment}/{quote_id}"


def parse_choice(value: Any) -> Optional[bool]:
    """Read a Yes/No form choice. None means the customer did not choose."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('yes', 'y', 'true', '1', 'cif'):
        return True
    if text in ('no', 'n', 'false', '0', 'fob'):
        return False
    return None


def yes_no(value: Optional[bool]) -> str:
    return 'Yes' if value else 'No'


def _text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return str(value).strip() if value is not None else ''


@dataclass
class CustomerInfo:
    full_name: str
    email: str
    country_code: str
    phone_number: str
    street: str
    city: str
    address_state: str
    address_country: str
    pincode: str

    REQUIRED = ('full_name', 'email', 'phone_number', 'street', 'city',
                'address_state', 'address_country', 'pincode')

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'CustomerInfo':
        country_code = _text(payload, 'country_code') or '+91'
        number = _text(payload, 'phone_number')
        if not number and payload.get('phone'):
            parts = split_phone(payload['phone'])
            country_code, number = parts['country_code'], parts['number']
        return cls(
            full_name=_text(payload, 'full_name'),
            email=_text(payload, 'email'),
            country_code=country_code,
            phone_number=number,
            street=_text(payload, 'street'),
            city=_text(payload, 'city'),
            address_state=_text(payload, 'address_state'),
            address_country=_text(payload, 'address_country'),
            pincode=_text(payload, 'pincode'),
        )

    @property
    def phone(self) -> str:
        return f"{self.country_code} {self.phone_number}"

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if not getattr(self, name)]

    def to_document(self) -> Dict[str, Any]:
        return {
            'name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'street': self.street,
            'city': self.city,
            'addressState': self.address_state,
            'addressCountry': self.address_country,
            'pincode': self.pincode,
        }


@dataclass
class SingleProductOrder:
    """Bulk quote for one product/grade."""

    product_id: str
    grade: str
    quantity: str
    packing: str
    state: str
    port: str
    currency: str
    cif: Optional[bool]
    custom_logo: Optional[bool]
    additional_info: str = ''

    order_type = OrderType.BULK

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'SingleProductOrder':
        return cls(
            product_id=_text(payload, 'product_id'),
            grade=_text(payload, 'grade'),
            quantity=_text(payload, 'quantity'),
            packing=_text(payload, 'packing'),
            state=_text(payload, 'state'),
            port=_text(payload, 'port'),
            currency=_text(payload, 'currency').upper(),
            cif=parse_choice(payload.get('cif')),
            custom_logo=parse_choice(payload.get('custom_logo')),
            additional_info=_text(payload, 'additional_info'),
        )

    def missing_fields(self) -> List[str]:
        missing = [name for name in ('product_id', 'grade', 'quantity', 'packing', 'state', 'port', 'currency')
                   if not getattr(self, name)]
        if self.cif is None:
            missing.append('cif')
        if self.custom_logo is None:
            missing.append('custom_logo')
        return missing


@dataclass
class CartOrder:
    """Checkout of the whole cart; line items come from the cart itself."""

    packing: str
    currency: str
    custom_logo: Optional[bool]
    cif: bool = False
    state: str = ''
    port: str = ''
    additional_info: str = ''

    order_type = OrderType.CART

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'CartOrder':
        return cls(
            packing=_text(payload, 'packing'),
            currency=_text(payload, 'currency').upper(),
            custom_logo=parse_choice(payload.get('custom_logo')),
            cif=bool(parse_choice(payload.get('cif'))),
            state=_text(payload, 'state'),
            port=_text(payload, 'port'),
            additional_info=_text(payload, 'additional_info'),
        )

    def missing_fields(self) -> List[str]:
        missing = [name for name in ('packing', 'currency') if not getattr(self, name)]
        if self.custom_logo is None:
            missing.append('custom_logo')
        return missing


@dataclass
class SampleItem:
    product_id: str
    product_name: str
    grade: str
    packet_size: str
    price: Decimal

    def to_document(self) -> Dict[str, Any]:
        return {
            'productId': self.product_id,
            'productName': self.product_name,
            'grade': self.grade,
            'packetSize': self.packet_size,
            'price': self.price,
        }


@dataclass
class SampleCourierOrder:
    """Paid sample packets couriered before a bulk order."""

    items: List[SampleItem] = field(default_factory=list)
    shipping_charge: Decimal = Decimal('0')
    payment_method: str = ''
    currency: str = 'INR'
    additional_info: str = ''

    order_type = OrderType.SAMPLE_COURIER

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'SampleCourierOrder':
        items = []
        for raw in payload.get('items') or []:
            items.append(SampleItem(
                product_id=_text(raw, 'product_id'),
                product_name=_text(raw, 'product_name'),
                grade=_text(raw, 'grade'),
                packet_size=_text(raw, 'packet_size'),
                price=to_decimal(raw.get('price')) or Decimal('0'),
            ))
        return cls(
            items=items,
            shipping_charge=to_decimal(payload.get('shipping_charge')) or Decimal('0'),
            payment_method=_text(payload, 'payment_method'),
            currency=(_text(payload, 'currency') or 'INR').upper(),
            additional_info=_text(payload, 'additional_info'),
        )

    @property
    def rice_total(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal('0'))

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.items:
            missing.append('items')
        if not self.payment_method:
            missing.append('payment_method')
        return missing


OrderKind = Union[SingleProductOrder, CartOrder, SampleCourierOrder]
