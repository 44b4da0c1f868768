"""
Unit tests for contact validators and price formatting helpers.
"""

import pytest
from decimal import Decimal

from ricequote.models import CustomerInfo
from ricequote.utils.formatters import money, parse_price_label, to_decimal
from ricequote.utils.validators import split_phone, validate_email, validate_phone


class TestPhoneValidation:

    @pytest.mark.parametrize('number,code', [
        ('9876543210', '+91'),
        ('2025550123', '+1'),
        ('501234567', '+971'),
        ('412345678', '+61'),
        ('9123456789', '+98'),
        ('1234567890', '+49'),
    ])
    def test_valid(self, number, code):
        assert validate_phone(number, code) is None

    @pytest.mark.parametrize('number,code', [
        ('', '+91'),
        ('98765', '+91'),
        ('9876543210', '+971'),
        ('98765abcde', '+91'),
    ])
    def test_invalid(self, number, code):
        assert validate_phone(number, code) is not None

    def test_split_phone(self):
        assert split_phone('+971 501234567') == {'country_code': '+971', 'number': '501234567'}
        assert split_phone('9876543210') == {'country_code': '+91', 'number': '9876543210'}

    def test_customer_from_combined_phone(self):
        customer = CustomerInfo.from_payload({'phone': '+44 2071234567'})
        assert customer.country_code == '+44'
        assert customer.phone_number == '2071234567'
        assert customer.phone == '+44 2071234567'


class TestEmailValidation:

    @pytest.mark.parametrize('email', ['asha@example.com', 'a.b+c@trade.co.in'])
    def test_valid(self, email):
        assert validate_email(email) is None

    @pytest.mark.parametrize('email', ['', 'asha', 'asha@example', 'asha @example.com', '@example.com'])
    def test_invalid(self, email):
        assert validate_email(email) is not None


class TestFormatters:

    @pytest.mark.parametrize('label,amount', [
        ('₹9,500-14,600 per qtls', Decimal('9500')),
        ('Total: ₹950.00 for 10kg', Decimal('950.00')),
        ('Price on request', None),
        (None, None),
    ])
    def test_parse_price_label(self, label, amount):
        assert parse_price_label(label) == amount

    def test_to_decimal_goes_through_str(self):
        assert to_decimal(95.1) == Decimal('95.1')
        assert to_decimal('abc') is None
        assert to_decimal(True) is None

    def test_money(self):
        assert money(Decimal('1037.98')) == '₹1,037.98'
        assert money(Decimal('11.7979'), 'USD') == '$11.80'
        assert money(None) == 'Price on request'
