"""Quotes blueprint: price previews and order submissions."""
import logging

from flask import Blueprint, current_app, jsonify, request, session

from ricequote.exceptions import PriceUnavailable
from ricequote.middleware import current_actor
from ricequote.models.order import CartOrder, CustomerInfo, SampleCourierOrder, SingleProductOrder
from ricequote.services.cart_service import load_cart, save_cart
from ricequote.services.registry import get_services
from ricequote.utils.serialization import to_plain

logger = logging.getLogger(__name__)

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _preview_payload():
    # Previews fall back to the display currency; submissions must name one
    data = dict(_payload())
    if not data.get('currency'):
        data['currency'] = current_app.config.get('DEFAULT_DISPLAY_CURRENCY', 'USD')
    return data


@quotes_bp.route('/price', methods=['POST'])
def price_single():
    """Breakdown for one product/grade; degrades to price on request."""
    order = SingleProductOrder.from_payload(_preview_payload())
    try:
        breakdown = get_services().orders.quote_single(order)
    except PriceUnavailable as e:
        logger.info(f"[QUOTES] {e.message}")
        return jsonify({'status': 'ok', 'price_on_request': True, 'breakdown': None})
    return jsonify(to_plain({'status': 'ok', 'price_on_request': False, 'breakdown': breakdown.to_dict()}))


@quotes_bp.route('/cart/price', methods=['POST'])
def price_cart():
    """Breakdown for the whole session cart."""
    order = CartOrder.from_payload(_preview_payload())
    summary, breakdown = get_services().orders.quote_cart(order, load_cart(session))
    return jsonify(to_plain({'status': 'ok', 'cart': summary.to_dict(), 'breakdown': breakdown.to_dict()}))


@quotes_bp.route('/bulk', methods=['POST'])
def submit_bulk():
    data = _payload()
    result = get_services().orders.submit(
        SingleProductOrder.from_payload(data),
        CustomerInfo.from_payload(data),
        current_actor(),
    )
    return jsonify(to_plain(dict(result.to_dict(), status='ok'))), 201


@quotes_bp.route('/cart', methods=['POST'])
def submit_cart():
    data = _payload()
    result = get_services().orders.submit(
        CartOrder.from_payload(data),
        CustomerInfo.from_payload(data),
        current_actor(),
        cart_items=load_cart(session),
        clear_cart=lambda: save_cart(session, []),
    )
    return jsonify(to_plain(dict(result.to_dict(), status='ok'))), 201


@quotes_bp.route('/sample', methods=['POST'])
def submit_sample():
    data = _payload()
    result = get_services().orders.submit(
        SampleCourierOrder.from_payload(data),
        CustomerInfo.from_payload(data),
        current_actor(),
    )
    return jsonify(to_plain(dict(result.to_dict(), status='ok'))), 201
