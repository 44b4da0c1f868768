"""Cart blueprint: the customer's cart, kept in the Flask session."""
from flask import Blueprint, jsonify, request, session

from ricequote.exceptions import ValidationError
from ricequote.services.cart_service import load_cart, save_cart
from ricequote.services.registry import get_services
from ricequote.utils.serialization import to_plain

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


def _summary_response(items, status_code=200):
    summary = get_services().aggregator.aggregate(items)
    return jsonify(to_plain(dict(summary.to_dict(), status='ok'))), status_code


def _bags(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('Number of bags must be a whole number', errors={'number_of_bags': str(value)})


@cart_bp.route('/', methods=['GET'])
def view_cart():
    """Cart with live subtotals."""
    return _summary_response(load_cart(session))


@cart_bp.route('/items', methods=['POST'])
def add_item():
    """Add a line priced at today's grade price, or merge into an identical one."""
    data = request.get_json(silent=True) or request.form.to_dict()
    product_id = (data.get('product_id') or '').strip()
    if not product_id:
        raise ValidationError('Product is required', errors={'product_id': 'required'})

    services = get_services()
    product = services.catalog.get_product(product_id)
    line = services.cart.build_line(
        product,
        grade=(data.get('grade') or '').strip(),
        quantity_unit=data.get('quantity_unit') or data.get('quantity') or '',
        packing=(data.get('packing') or '').strip(),
        number_of_bags=_bags(data.get('number_of_bags', 1)),
    )
    items = services.cart.add(load_cart(session), line)
    save_cart(session, items)
    return _summary_response(items, 201)


@cart_bp.route('/items/<line_id>', methods=['PATCH'])
def update_item(line_id):
    """Change the number of bags; fewer than 1 removes the line."""
    data = request.get_json(silent=True) or request.form.to_dict()
    items = get_services().cart.update_bags(load_cart(session), line_id, _bags(data.get('number_of_bags')))
    save_cart(session, items)
    return _summary_response(items)


@cart_bp.route('/items/<line_id>', methods=['DELETE'])
def remove_item(line_id):
    items = get_services().cart.remove(load_cart(session), line_id)
    save_cart(session, items)
    return _summary_response(items)


@cart_bp.route('/', methods=['DELETE'])
def clear_cart():
    save_cart(session, get_services().cart.clear())
    return _summary_response([])
