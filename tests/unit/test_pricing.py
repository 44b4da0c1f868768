"""
Unit tests for the price breakdown calculator.
"""

import pytest
from decimal import Decimal

from ricequote.exceptions import ValidationError
from ricequote.models import QuoteInput, TransportStatus, QuantityUnit, kg_of
from ricequote.services.currency_service import CurrencyConverter, DEFAULT_RATES
from ricequote.services.pricing_service import PriceBreakdownCalculator, estimate_cart_quintals
from ricequote.utils.formatters import round_money, money


@pytest.fixture
def calculator():
    return PriceBreakdownCalculator(CurrencyConverter(DEFAULT_RATES))


def single(**overrides):
    values = dict(currency='INR', price_per_kg=Decimal('95'), quantity='10kg', packing='Jute Bags')
    values.update(overrides)
    return QuoteInput(**values)


class TestQuantityDescriptor:
    """Tests for kg parsing of quantity descriptors."""

    @pytest.mark.parametrize('descriptor,kg', [
        ('5kg', Decimal('5')),
        ('25kg', Decimal('25')),
        ('100kg', Decimal('100')),
        ('1ton', Decimal('1000')),
        (QuantityUnit.KG_50, Decimal('50')),
    ])
    def test_kg_of(self, descriptor, kg):
        assert kg_of(descriptor) == kg

    def test_unknown_descriptor_rejected(self):
        with pytest.raises(ValidationError):
            kg_of('two sacks')


class TestSingleProductBreakdown:
    """Tests for single product quotes."""

    def test_fob_jute_in_inr(self, calculator):
        """Grade A at 95/kg, 10kg, FOB, jute bags."""
        breakdown = calculator.compute(single())

        assert breakdown.base_price == Decimal('9500')
        assert breakdown.quantity_price == Decimal('950')
        assert breakdown.packing_price == Decimal('87.98')
        assert breakdown.insurance_price == 0
        assert breakdown.freight_price == 0
        assert breakdown.grand_total == Decimal('1037.98')
        assert breakdown.transport_status is TransportStatus.NOT_APPLICABLE
        assert money(breakdown.grand_total, 'INR') == '₹1,037.98'

    def test_fob_jute_in_usd(self, calculator):
        breakdown = calculator.compute(single(currency='USD'))

        assert breakdown.grand_total_base == Decimal('1037.98')
        assert breakdown.grand_total == Decimal('1037.98') * (Decimal('1') / Decimal('87.98'))
        assert round_money(breakdown.grand_total) == Decimal('11.80')

    @pytest.mark.parametrize('currency', ['INR', 'USD', 'EUR', 'GBP'])
    def test_grand_total_is_base_times_rate(self, calculator, currency):
        breakdown = calculator.compute(single(currency=currency, cif=True, port='Mundra', state='Punjab'))
        expected = breakdown.grand_total_base * DEFAULT_RATES[currency]
        assert abs(breakdown.grand_total - expected) <= abs(expected) * Decimal('1e-6')

    @pytest.mark.parametrize('quantity', [u.value for u in QuantityUnit])
    def test_quantity_price_is_price_times_kg(self, calculator, quantity):
        breakdown = calculator.compute(single(quantity=quantity))
        assert breakdown.quantity_price == Decimal('95') * kg_of(quantity)

    def test_cif_with_route(self, calculator):
        breakdown = calculator.compute(single(cif=True, port='Mundra', state='Gujarat'))

        assert breakdown.insurance_price == Decimal('9.50')
        assert breakdown.freight_price == Decimal('4399') * Decimal('0.01')
        assert breakdown.transport_price_per_unit == Decimal('90')
        assert breakdown.transport_total == Decimal('9.0')
        assert breakdown.transport_available is True
        assert breakdown.grand_total == Decimal('950') + Decimal('87.98') + Decimal('9.50') \
            + Decimal('43.99') + Decimal('9.0')

    def test_cif_without_route_flags_transport(self, calculator):
        """A state with no route to the port is flagged, not priced at zero silently."""
        breakdown = calculator.compute(single(cif=True, port='Mundra', state='Kerala'))

        assert breakdown.transport_total == 0
        assert breakdown.transport_price_per_unit == 0
        assert breakdown.transport_available is False
        assert breakdown.transport_status is TransportStatus.UNAVAILABLE
        assert breakdown.freight_price > 0

    def test_fob_ignores_port_and_state(self, calculator):
        breakdown = calculator.compute(single(cif=False, port='Mundra', state='Gujarat'))

        assert breakdown.freight_price == 0
        assert breakdown.transport_total == 0
        assert breakdown.transport_available is True

    def test_port_display_name_accepted(self, calculator):
        breakdown = calculator.compute(single(cif=True, port='Mundra Port', state='Gujarat'))
        assert breakdown.transport_status is TransportStatus.AVAILABLE

    def test_branding_surcharge(self, calculator):
        breakdown = calculator.compute(single(branding=True))
        assert breakdown.branding_price == Decimal('879.80')
        assert breakdown.grand_total == Decimal('1037.98') + Decimal('879.80')

    def test_compute_is_idempotent(self, calculator):
        quote = single(currency='EUR', cif=True, port='Kandla', state='Punjab', branding=True)
        assert calculator.compute(quote) == calculator.compute(quote)

    @pytest.mark.parametrize('overrides,field', [
        ({'currency': 'JPY'}, 'currency'),
        ({'packing': 'Cardboard Box'}, 'packing'),
        ({'cif': True, 'port': 'Atlantis'}, 'port'),
    ])
    def test_unknown_inputs_rejected(self, calculator, overrides, field):
        with pytest.raises(ValidationError) as exc:
            calculator.compute(single(**overrides))
        assert field in exc.value.errors


class TestCartBreakdown:
    """Tests for cart order quotes."""

    def test_cart_uses_subtotal_and_estimated_quintals(self, calculator):
        breakdown = calculator.compute(QuoteInput(
            currency='INR', cart_subtotal=Decimal('2200'), packing='PP (Polypropylene Woven Bags)',
            cif=True, port='Mundra', state='Gujarat',
        ))

        assert breakdown.base_price == 0
        assert breakdown.quantity_price == Decimal('2200')
        assert breakdown.quintals == 1
        assert breakdown.insurance_price == Decimal('22.00')
        assert breakdown.freight_price == Decimal('4399')
        assert breakdown.transport_total == Decimal('90')
        assert breakdown.grand_total == Decimal('2200') + Decimal('43.99') + Decimal('22.00') \
            + Decimal('4399') + Decimal('90')
        assert breakdown.to_dict()['quintals_estimated'] is True

    @pytest.mark.parametrize('subtotal,quintals', [
        (Decimal('0'), 1),
        (Decimal('1'), 1),
        (Decimal('10000'), 1),
        (Decimal('10000.01'), 2),
        (Decimal('45000'), 5),
    ])
    def test_quintal_estimate(self, subtotal, quintals):
        assert estimate_cart_quintals(subtotal) == quintals
