"""
Integration tests for the order submission coordinator on an in-memory store.
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import OperationalError

from ricequote.exceptions import (
    AllocationFailure, AuditFailure, InvalidStatusTransition, NotFoundError,
    PersistenceFailure, SubmissionInProgress, ValidationError
)
from ricequote.models import (
    AuditAction, CartLineItem, CartOrder, CustomerInfo, SampleCourierOrder, SingleProductOrder
)
from ricequote.services.currency_service import CurrencyConverter
from ricequote.services.order_service import SubmissionState


def bulk_order(**overrides):
    payload = {
        'product_id': 'pusa-basmati',
        'grade': 'Grade A',
        'quantity': '10kg',
        'packing': 'Jute Bags',
        'state': 'Gujarat',
        'port': 'Mundra',
        'currency': 'INR',
        'cif': 'No',
        'custom_logo': 'No',
    }
    payload.update(overrides)
    return SingleProductOrder.from_payload(payload)


def cart_items():
    return [
        CartLineItem(product_id='pusa-basmati', product_name='Pusa Basmati Rice', grade='Grade A',
                     quantity_unit='10kg', number_of_bags=2, frozen_total_price=Decimal('500')),
        CartLineItem(product_id='basmati-1121', product_name='1121 Basmati Rice', grade='Golden Sella',
                     quantity_unit='5kg', frozen_total_price=Decimal('1200')),
    ]


class TestBulkSubmission:
    """Tests for single product submissions."""

    def test_happy_path(self, services, customer, user_context):
        result = services.orders.submit(bulk_order(), customer, user_context)

        assert result.quote_id == 'BulkQuote-1'
        assert result.state is SubmissionState.COMPLETE
        assert result.audit_recorded is True
        assert result.breakdown.grand_total == Decimal('1037.98')

        stored = services.store.get('quotes/bulk/BulkQuote-1')
        assert stored['status'] == 'Pending'
        assert stored['type'] == 'bulk'
        assert stored['productName'] == 'Pusa Basmati Rice'
        assert stored['breakdown']['grand_total'] == Decimal('1037.98')
        assert stored['priceOnRequest'] is False
        assert stored['email'] == 'asha@example.com'

        entries = services.audit.get_audit_logs(path_prefix='quotes/bulk/BulkQuote-1')
        assert len(entries) == 1
        assert entries[0].action is AuditAction.CREATE
        assert entries[0].before is None
        assert entries[0].entity == 'ORDER'
        assert entries[0].actor.email == 'buyer@example.com'

    def test_message_and_deep_link(self, services, customer, user_context):
        result = services.orders.submit(bulk_order(currency='USD'), customer, user_context)

        assert 'BulkQuote-1' in result.message
        assert '$11.80 (FOB)' in result.message
        assert result.whatsapp_url.startswith('https://wa.me/919000000000?text=')
        assert ' ' not in result.whatsapp_url

    def test_ids_increase(self, services, customer, user_context):
        first = services.orders.submit(bulk_order(), customer, user_context)
        second = services.orders.submit(bulk_order(grade='Grade B'), customer, user_context)
        assert (first.quote_id, second.quote_id) == ('BulkQuote-1', 'BulkQuote-2')

    def test_unpriced_grade_becomes_price_on_request(self, services, customer, user_context):
        result = services.orders.submit(bulk_order(grade='Grade Z'), customer, user_context)

        assert result.price_on_request is True
        assert result.breakdown is None
        assert services.store.get(f'quotes/bulk/{result.quote_id}')['breakdown'] is None
        assert 'Price on request' in result.message

    def test_invalid_phone_allocates_nothing(self, services, customer, user_context):
        customer.phone_number = '12345'
        with pytest.raises(ValidationError) as exc:
            services.orders.submit(bulk_order(), customer, user_context)

        assert 'phone_number' in exc.value.errors
        assert services.store.get('counters/bulkQuote') is None

    def test_missing_fields_reported_together(self, services, user_context):
        with pytest.raises(ValidationError) as exc:
            services.orders.submit(bulk_order(cif='', packing=''), CustomerInfo.from_payload({}), user_context)

        errors = exc.value.errors
        assert {'cif', 'packing', 'full_name', 'email', 'pincode'} <= set(errors)

    def test_unknown_product(self, services, customer, user_context):
        with pytest.raises(ValidationError):
            services.orders.submit(bulk_order(product_id='wild-rice'), customer, user_context)

    def test_unknown_currency(self, services, customer, user_context):
        with pytest.raises(ValidationError):
            services.orders.submit(bulk_order(currency='JPY'), customer, user_context)
        assert services.store.get('counters/bulkQuote') is None


class TestCartAndSampleSubmission:

    def test_cart_order(self, services, customer, user_context):
        cleared = []
        result = services.orders.submit(
            CartOrder.from_payload({'packing': 'Jute Bags', 'currency': 'INR', 'custom_logo': 'No'}),
            customer, user_context,
            cart_items=cart_items(), clear_cart=lambda: cleared.append(True),
        )

        assert result.quote_id == 'BulkQuote-1'
        assert cleared == [True]
        stored = services.store.get('quotes/bulk/BulkQuote-1')
        assert stored['type'] == 'cart'
        assert stored['cartSubtotal'] == Decimal('2200')
        assert stored['totalBags'] == 3
        assert stored['breakdown']['grand_total'] == Decimal('2287.98')

        entry = services.audit.get_audit_logs(path_prefix='quotes/bulk/BulkQuote-1')[0]
        assert entry.entity == 'CART_QUOTE'

    def test_empty_cart_rejected(self, services, customer, user_context):
        cleared = []
        with pytest.raises(ValidationError):
            services.orders.submit(
                CartOrder.from_payload({'packing': 'Jute Bags', 'currency': 'INR', 'custom_logo': 'No'}),
                customer, user_context, cart_items=[], clear_cart=lambda: cleared.append(True),
            )
        assert cleared == []

    def test_sample_courier_uses_own_counter(self, services, customer, user_context):
        services.orders.submit(bulk_order(), customer, user_context)
        order = SampleCourierOrder.from_payload({
            'items': [{'product_id': 'pusa-basmati', 'product_name': 'Pusa Basmati Rice',
                       'grade': 'Grade A', 'packet_size': '1kg', 'price': '250'}],
            'shipping_charge': '150',
            'payment_method': 'UPI',
        })
        result = services.orders.submit(order, customer, user_context)

        assert result.quote_id == 'SampleCourier-1'
        stored = services.store.get('quotes/sample_courier/SampleCourier-1')
        assert stored['total'] == Decimal('400')
        assert stored['type'] == 'sample_courier'


class TestSubmissionFailures:

    def test_allocation_failure_persists_nothing(self, services, customer, user_context, monkeypatch):
        def broken(order_type):
            raise AllocationFailure('bulkQuote', 'transaction did not commit')

        monkeypatch.setattr(services.allocator, 'allocate_quote_id', broken)
        with pytest.raises(AllocationFailure):
            services.orders.submit(bulk_order(), customer, user_context)

        assert services.store.children('quotes/bulk') == {}
        assert services.audit.get_audit_logs() == []

    def test_persistence_failure_burns_the_id(self, services, customer, user_context, monkeypatch):
        original_set = services.store.set
        failures = []

        def flaky_set(path, value):
            if path.startswith('quotes/') and not failures:
                failures.append(path)
                raise OperationalError('INSERT INTO documents', {}, Exception('disk full'))
            return original_set(path, value)

        monkeypatch.setattr(services.store, 'set', flaky_set)
        with pytest.raises(PersistenceFailure) as exc:
            services.orders.submit(bulk_order(), customer, user_context)
        assert exc.value.quote_id == 'BulkQuote-1'

        result = services.orders.submit(bulk_order(), customer, user_context)
        assert result.quote_id == 'BulkQuote-2'
        assert services.store.get('quotes/bulk/BulkQuote-1') is None

    def test_audit_failure_keeps_the_order(self, services, customer, user_context, monkeypatch):
        def broken(*args, **kwargs):
            raise AuditFailure('quotes/bulk/BulkQuote-1', 'history unavailable')

        monkeypatch.setattr(services.audit, 'log', broken)
        result = services.orders.submit(bulk_order(), customer, user_context)

        assert result.audit_recorded is False
        assert result.state is SubmissionState.COMPLETE
        assert services.store.get('quotes/bulk/BulkQuote-1') is not None

    def test_second_submission_while_in_flight(self, services, customer, user_context, monkeypatch):
        original = services.allocator.allocate_quote_id
        nested = []

        def allocate_and_resubmit(order_type):
            try:
                services.orders.submit(bulk_order(), customer, user_context)
            except SubmissionInProgress as e:
                nested.append(e)
            return original(order_type)

        monkeypatch.setattr(services.allocator, 'allocate_quote_id', allocate_and_resubmit)
        result = services.orders.submit(bulk_order(), customer, user_context)

        assert len(nested) == 1
        assert result.quote_id == 'BulkQuote-1'

        monkeypatch.setattr(services.allocator, 'allocate_quote_id', original)
        assert services.orders.submit(bulk_order(), customer, user_context).quote_id == 'BulkQuote-2'


    def test_stored_rate_matches_priced_breakdown(self, services, customer, user_context, monkeypatch):
        tables = iter([
            {'INR': Decimal('1'), 'USD': Decimal('0.0114')},
            {'INR': Decimal('1'), 'USD': Decimal('0.0120')},
        ])
        monkeypatch.setattr(services.rates, 'converter', lambda: CurrencyConverter(next(tables), 'INR'))

        result = services.orders.submit(bulk_order(currency='USD'), customer, user_context)

        stored = services.store.get(f'quotes/bulk/{result.quote_id}')
        assert stored['exchangeRate'] == Decimal('0.0114')
        assert stored['exchangeRate'] == stored['breakdown']['exchange_rate']


class TestAdminOrderManagement:

    @pytest.fixture
    def order_id(self, services, customer, user_context):
        return services.orders.submit(bulk_order(), customer, user_context).quote_id

    def test_status_transition_is_audited(self, services, admin_context, order_id):
        change = services.orders.update_status('bulk', order_id, 'quoted', admin_context)

        assert change.value['status'] == 'Quoted'
        assert change.audit_recorded is True
        entry = services.audit.get_audit_logs(path_prefix=f'quotes/bulk/{order_id}')[0]
        assert entry.action is AuditAction.UPDATE
        assert entry.changes == [{'field': 'status', 'from': 'Pending', 'to': 'Quoted'}]
        assert entry.actor.role == 'admin'

    def test_terminal_status(self, services, admin_context, order_id):
        services.orders.update_status('bulk', order_id, 'Completed', admin_context)
        with pytest.raises(InvalidStatusTransition):
            services.orders.update_status('bulk', order_id, 'Cancelled', admin_context)

    def test_no_way_back_to_pending(self, services, admin_context, order_id):
        services.orders.update_status('bulk', order_id, 'Quoted', admin_context)
        with pytest.raises(InvalidStatusTransition):
            services.orders.update_status('bulk', order_id, 'Pending', admin_context)

    def test_unknown_status_or_order(self, services, admin_context, order_id):
        with pytest.raises(ValidationError):
            services.orders.update_status('bulk', order_id, 'Shipped', admin_context)
        with pytest.raises(NotFoundError):
            services.orders.update_status('bulk', 'BulkQuote-99', 'Quoted', admin_context)
        with pytest.raises(NotFoundError):
            services.orders.update_status('retail', order_id, 'Quoted', admin_context)

    def test_delete_is_audited_and_counter_kept(self, services, admin_context, customer, user_context, order_id):
        services.orders.delete_order('bulk', order_id, admin_context)

        assert services.store.get(f'quotes/bulk/{order_id}') is None
        entry = services.audit.get_audit_logs(path_prefix=f'quotes/bulk/{order_id}')[0]
        assert entry.action is AuditAction.DELETE
        assert entry.after is None
        assert services.store.get('counters/bulkQuote') == 1

        assert services.orders.submit(bulk_order(), customer, user_context).quote_id == 'BulkQuote-2'

    def test_status_update_survives_broken_history(self, services, admin_context, order_id, monkeypatch):
        def broken(*args, **kwargs):
            raise AuditFailure(f'quotes/bulk/{order_id}', 'history unavailable')

        monkeypatch.setattr(services.audit, 'log', broken)
        change = services.orders.update_status('bulk', order_id, 'Quoted', admin_context)

        assert change.audit_recorded is False
        assert services.store.get(f'quotes/bulk/{order_id}')['status'] == 'Quoted'

    def test_delete_survives_broken_history(self, services, admin_context, order_id, monkeypatch):
        def broken(*args, **kwargs):
            raise AuditFailure(f'quotes/bulk/{order_id}', 'history unavailable')

        monkeypatch.setattr(services.audit, 'log', broken)
        change = services.orders.delete_order('bulk', order_id, admin_context)

        assert change.audit_recorded is False
        assert services.store.get(f'quotes/bulk/{order_id}') is None
