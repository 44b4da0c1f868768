"""
Order submission and admin order management.

A submission moves through
DRAFT -> VALIDATING -> ID_ALLOCATED -> PERSISTED -> AUDITED -> COMPLETE,
and FAILED from any state. Ids are allocated before the order is written, so
a failed write burns its id; a failed audit write never rolls the order back.
"""
import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ricequote.blueprints.metrics import (
    quote_submissions_total, order_id_allocation_failures_total
)
from ricequote.exceptions import (
    AllocationFailure, InvalidStatusTransition, NotFoundError,
    PersistenceFailure, PriceUnavailable, QuoteEngineError, SubmissionInProgress, ValidationError
)
from ricequote.models.audit import ActorContext
from ricequote.models.cart import CartLineItem, CartSummary, kg_of
from ricequote.models.order import (
    ALLOWED_TRANSITIONS, CartOrder, CustomerInfo, OrderKind, OrderStatus, OrderType,
    SampleCourierOrder, SingleProductOrder, order_path, yes_no
)
from ricequote.models.pricing import PriceBreakdown, QuoteInput
from ricequote.services.audit_service import AuditedChange, AuditLogger
from ricequote.services.cart_service import CartAggregator
from ricequote.services.catalog_service import CatalogService
from ricequote.services.currency_service import ExchangeRateService
from ricequote.services.document_store import DocumentStore
from ricequote.services.grade_price_service import GradePriceResolver
from ricequote.services.message_service import build_quote_message, whatsapp_link
from ricequote.services.order_id_service import OrderIdAllocator
from ricequote.services.pricing_service import PriceBreakdownCalculator
from ricequote.utils.validators import validate_email, validate_phone

logger = logging.getLogger(__name__)

ORDER_SEGMENTS = {t.path_segment for t in OrderType}


class SubmissionState(enum.Enum):
    DRAFT = "draft"
    VALIDATING = "validating"
    ID_ALLOCATED = "id_allocated"
    PERSISTED = "persisted"
    AUDITED = "audited"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class SubmissionResult:
    quote_id: str
    order_type: OrderType
    document: Dict[str, Any]
    breakdown: Optional[PriceBreakdown]
    message: str
    whatsapp_url: str
    audit_recorded: bool
    state: SubmissionState = SubmissionState.COMPLETE

    @property
    def price_on_request(self) -> bool:
        return bool(self.document.get('priceOnRequest'))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quote_id': self.quote_id,
            'type': self.order_type.value,
            'state': self.state.value,
            'breakdown': self.breakdown.to_dict() if self.breakdown else None,
            'price_on_request': self.price_on_request,
            'audit_recorded': self.audit_recorded,
            'message': self.message,
            'whatsapp_url': self.whatsapp_url,
        }


@dataclass
class _Prepared:
    """What validation produced for the later states."""
    fields: Dict[str, Any]
    breakdown: Optional[PriceBreakdown]
    price_on_request: bool
    exchange_rate: Any
    cart: Optional[CartSummary] = None
    product_name: str = ''


def _now_ms() -> int:
    return int(time.time() * 1000)


class OrderSubmissionCoordinator:
    """Validates, prices, numbers, persists and audits customer orders."""

    def __init__(
        self,
        store: DocumentStore,
        allocator: OrderIdAllocator,
        audit_logger: AuditLogger,
        resolver: GradePriceResolver,
        rates: ExchangeRateService,
        catalog: CatalogService,
        whatsapp_number: str = '',
    ):
        self.store = store
        self.allocator = allocator
        self.audit_logger = audit_logger
        self.resolver = resolver
        self.rates = rates
        self.catalog = catalog
        self.whatsapp_number = whatsapp_number
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    # ---------------------------------------------------------------- pricing

    def _calculator(self) -> PriceBreakdownCalculator:
        return PriceBreakdownCalculator(self.rates.converter())

    def quote_single(self, order: SingleProductOrder) -> PriceBreakdown:
        """Breakdown at today's grade price. Raises PriceUnavailable on a miss."""
        price_per_kg = self.resolver.resolve_or_raise(order.product_id, order.grade)
        return self._calculator().compute(QuoteInput(
            currency=order.currency,
            price_per_kg=price_per_kg,
            quantity=order.quantity,
            packing=order.packing,
            branding=bool(order.custom_logo),
            cif=bool(order.cif),
            port=order.port,
            state=order.state,
        ))

    def quote_cart(self, order: CartOrder, items: List[CartLineItem]):
        """Aggregate the cart and price it; returns (summary, breakdown)."""
        summary = CartAggregator(self.resolver).aggregate(items)
        breakdown = self._calculator().compute(QuoteInput(
            currency=order.currency,
            cart_subtotal=summary.subtotal,
            packing=order.packing,
            branding=bool(order.custom_logo),
            cif=order.cif,
            port=order.port,
            state=order.state,
        ))
        return summary, breakdown

    # ------------------------------------------------------------- validation

    def _validate_contact(self, order: OrderKind, customer: CustomerInfo) -> None:
        errors = {}
        for name in customer.missing_fields() + order.missing_fields():
            errors[name] = 'required'
        if customer.phone_number:
            phone_error = validate_phone(customer.phone_number, customer.country_code)
            if phone_error:
                errors['phone_number'] = phone_error
        if customer.email:
            email_error = validate_email(customer.email)
            if email_error:
                errors['email'] = email_error
        if errors:
            raise ValidationError('Please correct the highlighted fields', errors=errors)

    def _prepare_single(self, order: SingleProductOrder) -> _Prepared:
        kg_of(order.quantity)
        try:
            product_name = self.catalog.get_product(order.product_id).display_name()
        except NotFoundError:
            raise ValidationError(f"Product {order.product_id} not found", errors={'product_id': 'unknown'})

        try:
            breakdown = self.quote_single(order)
        except PriceUnavailable as e:
            logger.info(f"[ORDER] {e.message}; submitting as price on request")
            breakdown = None
        # The stored rate must be the one the breakdown was priced with
        if breakdown is not None:
            exchange_rate = breakdown.exchange_rate
        else:
            exchange_rate = self.rates.converter().rate(order.currency)

        fields = {
            'productId': order.product_id,
            'productName': product_name,
            'grade': order.grade,
            'quantity': order.quantity,
            'packing': order.packing,
            'state': order.state,
            'port': order.port,
            'cif': yes_no(order.cif),
            'customLogo': yes_no(order.custom_logo),
            'additionalInfo': order.additional_info,
        }
        return _Prepared(fields, breakdown, breakdown is None, exchange_rate, product_name=product_name)

    def _prepare_cart(self, order: CartOrder, items: List[CartLineItem]) -> _Prepared:
        if not items:
            raise ValidationError('Your cart is empty', errors={'cart': 'empty'})
        summary, breakdown = self.quote_cart(order, items)
        fields = {
            'items': [line.to_dict() for line in summary.items],
            'cartSubtotal': summary.subtotal,
            'itemCount': summary.item_count,
            'totalBags': summary.total_bags,
            'packing': order.packing,
            'state': order.state,
            'port': order.port,
            'cif': yes_no(order.cif),
            'customLogo': yes_no(order.custom_logo),
            'additionalInfo': order.additional_info,
        }
        return _Prepared(fields, breakdown, False, breakdown.exchange_rate, cart=summary)

    def _prepare_sample(self, order: SampleCourierOrder) -> _Prepared:
        exchange_rate = self.rates.converter().rate(order.currency)
        fields = {
            'items': [item.to_document() for item in order.items],
            'riceTotal': order.rice_total,
            'shippingCharge': order.shipping_charge,
            'total': order.rice_total + order.shipping_charge,
            'paymentMethod': order.payment_method,
            'additionalInfo': order.additional_info,
        }
        return _Prepared(fields, None, False, exchange_rate)

    # ------------------------------------------------------------- submission

    def _owner_key(self, actor_context: ActorContext, customer: CustomerInfo) -> str:
        actor = actor_context.resolve()
        if actor.role == 'system':
            return f"customer:{customer.email.lower()}"
        return f"actor:{actor_context.owner_key}"

    def submit(
        self,
        order: OrderKind,
        customer: CustomerInfo,
        actor_context: ActorContext,
        cart_items: Optional[List[CartLineItem]] = None,
        clear_cart: Optional[Callable[[], None]] = None,
    ) -> SubmissionResult:
        """
        Run one submission to COMPLETE or raise.

        Raises:
            ValidationError: input rejected, nothing allocated
            SubmissionInProgress: the same customer already has one running
            AllocationFailure: no id allocated, nothing persisted
            PersistenceFailure: id allocated and burnt, order not saved
        """
        order_type = order.order_type
        kind = order_type.value
        owner = self._owner_key(actor_context, customer)

        with self._in_flight_lock:
            if owner in self._in_flight:
                quote_submissions_total.labels(kind=kind, outcome='in_progress').inc()
                raise SubmissionInProgress()
            self._in_flight.add(owner)

        state = SubmissionState.DRAFT
        try:
            state = SubmissionState.VALIDATING
            self._validate_contact(order, customer)
            if isinstance(order, SingleProductOrder):
                prepared = self._prepare_single(order)
            elif isinstance(order, CartOrder):
                prepared = self._prepare_cart(order, cart_items or [])
            else:
                prepared = self._prepare_sample(order)

            try:
                quote_id = self.allocator.allocate_quote_id(order_type)
            except AllocationFailure:
                order_id_allocation_failures_total.inc()
                raise
            state = SubmissionState.ID_ALLOCATED

            now = _now_ms()
            document = {'quoteId': quote_id, 'type': kind}
            document.update(customer.to_document())
            document.update(prepared.fields)
            document.update({
                'breakdown': prepared.breakdown.to_dict() if prepared.breakdown else None,
                'priceOnRequest': prepared.price_on_request,
                'status': OrderStatus.PENDING.value,
                'currency': order.currency,
                'exchangeRate': prepared.exchange_rate,
                'createdAt': now,
                'updatedAt': now,
            })

            path = order_path(order_type.path_segment, quote_id)
            try:
                self.store.set(path, document)
            except SQLAlchemyError as e:
                logger.error(f"[ORDER] Write of {quote_id} failed, id is burnt: {e}")
                raise PersistenceFailure(quote_id, str(e)) from e
            state = SubmissionState.PERSISTED

            audit_recorded = self.audit_logger.record(path, order_type.audit_entity, None, document, actor_context)
            if audit_recorded:
                state = SubmissionState.AUDITED

            if isinstance(order, CartOrder) and clear_cart is not None:
                clear_cart()

            message = build_quote_message(quote_id, order, customer, prepared.breakdown,
                                          cart=prepared.cart, product_name=prepared.product_name)
            state = SubmissionState.COMPLETE
            quote_submissions_total.labels(kind=kind, outcome='complete').inc()
            logger.info(f"[ORDER] {quote_id} submitted ({kind})")
            return SubmissionResult(
                quote_id=quote_id,
                order_type=order_type,
                document=document,
                breakdown=prepared.breakdown,
                message=message,
                whatsapp_url=whatsapp_link(self.whatsapp_number, message),
                audit_recorded=audit_recorded,
                state=state,
            )
        except QuoteEngineError as e:
            quote_submissions_total.labels(kind=kind, outcome=type(e).__name__).inc()
            reason = getattr(e, 'reason', None)
            logger.warning(f"[ORDER] {kind} submission FAILED in state {state.value}: {e.message}"
                           + (f" ({reason})" if reason else ""))
            raise
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(owner)

    # ------------------------------------------------------------------ admin

    def _admin_path(self, segment: str, quote_id: str) -> str:
        if segment not in ORDER_SEGMENTS:
            raise NotFoundError(f"Unknown order kind '{segment}'")
        return order_path(segment, quote_id)

    def update_status(self, segment: str, quote_id: str, status: str,
                      actor_context: ActorContext) -> AuditedChange:
        """Move an order to a new status along the allowed transitions."""
        path = self._admin_path(segment, quote_id)
        try:
            requested = next(s for s in OrderStatus if s.value.lower() == (status or '').strip().lower())
        except StopIteration:
            raise ValidationError(f"Unknown status '{status}'",
                                  errors={'status': 'Choose one of ' + ', '.join(s.value for s in OrderStatus)})

        captured = {}

        def apply(current):
            if current is None:
                raise NotFoundError(f"Order {quote_id} not found")
            current_status = OrderStatus(current.get('status') or OrderStatus.PENDING.value)
            if requested not in ALLOWED_TRANSITIONS[current_status]:
                raise InvalidStatusTransition(current_status.value, requested.value)
            captured['before'] = current
            updated = dict(current)
            updated['status'] = requested.value
            updated['updatedAt'] = _now_ms()
            return updated

        result = self.store.transaction(path, apply)
        if not result.committed:
            raise PersistenceFailure(quote_id, "status update did not commit")

        before = captured['before']
        entity = OrderType(before.get('type', OrderType.BULK.value)).audit_entity
        audit_recorded = self.audit_logger.record(path, entity, before, result.value, actor_context, changes=[
            {'field': 'status', 'from': before.get('status'), 'to': requested.value}
        ])
        logger.info(f"[ORDER] {quote_id} {before.get('status')} -> {requested.value}")
        return AuditedChange(result.value, audit_recorded)

    def delete_order(self, segment: str, quote_id: str, actor_context: ActorContext) -> AuditedChange:
        """Delete an order. Its counter value is never handed out again."""
        path = self._admin_path(segment, quote_id)
        current = self.store.get(path)
        if current is None:
            raise NotFoundError(f"Order {quote_id} not found")
        entity = OrderType(current.get('type', OrderType.BULK.value)).audit_entity
        change = self.audit_logger.write_with_history(path, entity, None, actor_context)
        logger.info(f"[ORDER] {quote_id} deleted")
        return change
