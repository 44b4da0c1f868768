"""
Price breakdown calculator.

All components are computed in the base currency and each is then multiplied
by the display currency's rate, so grand_total == grand_total_base * rate.
"""
import logging
import math
from decimal import Decimal

from ricequote.exceptions import ValidationError
from ricequote.models.cart import KG_PER_QUINTAL, KG_PER_TON, kg_of
from ricequote.models.pricing import PriceBreakdown, QuoteInput, TransportStatus
from ricequote.services.currency_service import CurrencyConverter
from ricequote.services import pricing_tables

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

# Cart orders carry no weight, so a quintal count is estimated from value
CART_VALUE_PER_QUINTAL = Decimal('10000')


def estimate_cart_quintals(subtotal: Decimal) -> Decimal:
    if subtotal <= 0:
        return Decimal('1')
    return Decimal(math.ceil(subtotal / CART_VALUE_PER_QUINTAL))


class PriceBreakdownCalculator:
    """Pure: the same QuoteInput and rate table always give the same breakdown."""

    def __init__(self, converter: CurrencyConverter):
        self.converter = converter

    def _packing_price(self, packing) -> Decimal:
        if not packing:
            return ZERO
        canonical = pricing_tables.canonical_packing(packing)
        if canonical is None:
            raise ValidationError(f"Unknown packing '{packing}'", errors={'packing': packing})
        return pricing_tables.PACKING_PRICES[canonical]

    def _port(self, port) -> str:
        canonical = pricing_tables.canonical_port(port)
        if canonical is None:
            raise ValidationError(f"Unknown port '{port}'", errors={'port': port})
        return canonical

    def compute(self, quote: QuoteInput) -> PriceBreakdown:
        rate = self.converter.rate(quote.currency)

        if quote.is_cart:
            subtotal = Decimal(quote.cart_subtotal)
            base_price = ZERO
            quantity_price = subtotal
            quintals = estimate_cart_quintals(subtotal)
            # Cart freight is rated per estimated quintal
            freight_units = quintals
        else:
            if quote.price_per_kg is None:
                raise ValidationError('A price per kg is required', errors={'price_per_kg': 'required'})
            if quote.quantity is None:
                raise ValidationError('Quantity is required', errors={'quantity': 'required'})
            price_per_kg = Decimal(quote.price_per_kg)
            kg = kg_of(quote.quantity)
            base_price = price_per_kg * KG_PER_QUINTAL
            quantity_price = price_per_kg * kg
            quintals = kg / KG_PER_QUINTAL
            freight_units = kg / KG_PER_TON

        packing_price = self._packing_price(quote.packing)
        branding_price = pricing_tables.BRANDING_PRICE if quote.branding else ZERO

        insurance_price = ZERO
        freight_price = ZERO
        transport_per_unit = ZERO
        transport_total = ZERO
        transport_status = TransportStatus.NOT_APPLICABLE

        if quote.cif:
            insurance_price = quantity_price * pricing_tables.INSURANCE_RATE
            if quote.port:
                port = self._port(quote.port)
                freight_price = pricing_tables.FREIGHT_PER_TONNE[port] * freight_units
                if quote.state:
                    route_rate = pricing_tables.get_transport_price(quote.state, port)
                    if route_rate is None:
                        logger.info(f"[PRICE] No transport route {quote.state} -> {port}")
                        transport_status = TransportStatus.UNAVAILABLE
                    else:
                        transport_status = TransportStatus.AVAILABLE
                        transport_per_unit = route_rate
                        transport_total = route_rate * quintals

        grand_total_base = (
            quantity_price + packing_price + branding_price
            + insurance_price + freight_price + transport_total
        )

        return PriceBreakdown(
            currency=quote.currency.upper(),
            exchange_rate=rate,
            base_price=base_price * rate,
            packing_price=packing_price * rate,
            branding_price=branding_price * rate,
            quantity_price=quantity_price * rate,
            insurance_price=insurance_price * rate,
            freight_price=freight_price * rate,
            transport_price_per_unit=transport_per_unit * rate,
            transport_total=transport_total * rate,
            grand_total=grand_total_base * rate,
            grand_total_base=grand_total_base,
            transport_status=transport_status,
            quintals=quintals,
            cif=quote.cif,
            is_cart=quote.is_cart,
        )
