"""Catalog records: products and their grades."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ricequote.utils.formatters import to_decimal


@dataclass
class Grade:
    """A quality tier of a product with its own per-kg price (INR)."""

    label: str
    price_per_kg: Optional[Decimal]
    harvest: str = ''
    origin: str = ''
    stock: str = ''
    moq: int = 0
    key: Optional[str] = None

    @classmethod
    def from_document(cls, value: Dict[str, Any], key: Optional[str] = None) -> 'Grade':
        price = value.get('price_inr')
        if price is None:
            price = value.get('price_inr_per_kg')
        moq = to_decimal(value.get('moq'))
        return cls(
            label=str(value.get('grade') or value.get('name') or ''),
            price_per_kg=to_decimal(price),
            harvest=str(value.get('harvest') or ''),
            origin=str(value.get('origin') or ''),
            stock=str(value.get('stock') or ''),
            moq=int(moq) if moq is not None else 0,
            key=key,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            'grade': self.label,
            'price_inr': self.price_per_kg,
            'harvest': self.harvest,
            'origin': self.origin,
            'stock': self.stock,
            'moq': self.moq,
        }

    @property
    def normalized_label(self) -> str:
        return self.label.strip().lower()


@dataclass
class Product:
    """Catalog entry. Grades are stored as children of the product node."""

    id: str
    name: Dict[str, str] = field(default_factory=dict)
    description: Dict[str, str] = field(default_factory=dict)
    category: str = ''
    price_range: str = ''
    hsn: str = '10063020'
    grades: List[Grade] = field(default_factory=list)

    @classmethod
    def from_document(cls, product_id: str, value: Dict[str, Any], grades: Optional[Dict[str, Any]] = None) -> 'Product':
        name = value.get('name') or {}
        if isinstance(name, str):
            name = {'en': name}
        description = value.get('description') or {}
        if isinstance(description, str):
            description = {'en': description}
        return cls(
            id=product_id,
            name=name,
            description=description,
            category=value.get('category') or '',
            price_range=value.get('price') or '',
            hsn=value.get('hsn') or '10063020',
            grades=[Grade.from_document(v, key=k) for k, v in sorted((grades or {}).items()) if v],
        )

    def display_name(self, language: str = 'en') -> str:
        return self.name.get(language) or self.name.get('en') or self.id
