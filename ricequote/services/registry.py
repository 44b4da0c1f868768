"""
Wires the engine services once per app on top of the document store.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from flask import Flask

from ricequote.services.audit_service import AuditLogger
from ricequote.services.cache_service import CacheService
from ricequote.services.cart_service import CartAggregator, CartService
from ricequote.services.catalog_service import CatalogService
from ricequote.services.currency_service import ExchangeRateService
from ricequote.services.document_store import DocumentStore
from ricequote.services.grade_price_service import GradePriceResolver
from ricequote.services.order_id_service import OrderIdAllocator
from ricequote.services.order_service import OrderSubmissionCoordinator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: DocumentStore
    audit: AuditLogger
    rates: ExchangeRateService
    resolver: GradePriceResolver
    catalog: CatalogService
    cart: CartService
    aggregator: CartAggregator
    allocator: OrderIdAllocator
    orders: OrderSubmissionCoordinator


def build_services(store: DocumentStore, cache: Optional[CacheService] = None,
                   base_currency: str = 'INR', rates_ttl: int = 300,
                   whatsapp_number: str = '') -> Services:
    audit = AuditLogger(store)
    rates = ExchangeRateService(store, audit, cache=cache, base_currency=base_currency, ttl=rates_ttl)
    resolver = GradePriceResolver(store)
    catalog = CatalogService(store, audit)
    allocator = OrderIdAllocator(store)
    orders = OrderSubmissionCoordinator(
        store=store,
        allocator=allocator,
        audit_logger=audit,
        resolver=resolver,
        rates=rates,
        catalog=catalog,
        whatsapp_number=whatsapp_number,
    )
    return Services(
        store=store,
        audit=audit,
        rates=rates,
        resolver=resolver,
        catalog=catalog,
        cart=CartService(resolver),
        aggregator=CartAggregator(resolver),
        allocator=allocator,
        orders=orders,
    )


_services: Optional[Services] = None


def init_services(app: Flask) -> None:
    """Initialize services singleton. Requires init_store and init_cache."""
    global _services
    from ricequote.services.cache_service import get_cache
    from ricequote.services.document_store import get_store

    _services = build_services(
        get_store(),
        cache=get_cache(),
        base_currency=app.config.get('BASE_CURRENCY', 'INR'),
        rates_ttl=app.config.get('CACHE_RATES_TTL', 300),
        whatsapp_number=app.config.get('WHATSAPP_NUMBER', ''),
    )
    app.extensions['services'] = _services
    logger.info("[APP] Engine services ready")


def get_services() -> Services:
    """Get services instance."""
    if _services is None:
        raise RuntimeError("Services not initialized.")
    return _services
