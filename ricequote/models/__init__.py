"""Models package - exports the document table and domain records."""
from ricequote.models.document import Document
from ricequote.models.catalog import Product, Grade
from ricequote.models.cart import (
    QuantityUnit, CartLineItem, EnrichedLineItem, CartSummary, PriceSource, kg_of, parse_quantity_unit
)
from ricequote.models.pricing import QuoteInput, PriceBreakdown, TransportStatus
from ricequote.models.order import (
    OrderStatus, OrderType, CustomerInfo, SingleProductOrder, CartOrder,
    SampleCourierOrder, SampleItem, OrderKind, ALLOWED_TRANSITIONS, order_path
)
from ricequote.models.audit import (
    AuditAction, AuditEntry, Actor, ActorContext, derive_action, compute_changes
)

__all__ = [
    # Storage
    'Document',
    # Catalog
    'Product', 'Grade',
    # Cart
    'QuantityUnit', 'CartLineItem', 'EnrichedLineItem', 'CartSummary', 'PriceSource',
    'kg_of', 'parse_quantity_unit',
    # Pricing
    'QuoteInput', 'PriceBreakdown', 'TransportStatus',
    # Orders
    'OrderStatus', 'OrderType', 'CustomerInfo', 'SingleProductOrder', 'CartOrder',
    'SampleCourierOrder', 'SampleItem', 'OrderKind', 'ALLOWED_TRANSITIONS', 'order_path',
    # Audit
    'AuditAction', 'AuditEntry', 'Actor', 'ActorContext', 'derive_action', 'compute_changes',
]
