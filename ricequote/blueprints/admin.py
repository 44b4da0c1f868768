"""Admin blueprint: order status, exchange rates and catalog grades."""
from flask import Blueprint, jsonify, request

from ricequote.exceptions import ValidationError
from ricequote.middleware import admin_required, current_actor
from ricequote.services.registry import get_services
from ricequote.utils.serialization import to_plain

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _ok(change, **body):
    """Success body; audit_recorded is false when the history write failed."""
    return jsonify(to_plain(dict(body, status='ok', audit_recorded=change.audit_recorded)))


# ============================================================================
# ORDERS
# ============================================================================

@admin_bp.route('/quotes/<kind>/<quote_id>/status', methods=['POST'])
@admin_required
def update_quote_status(kind, quote_id):
    status = _payload().get('status')
    if not status:
        raise ValidationError('Status is required', errors={'status': 'required'})
    change = get_services().orders.update_status(kind, quote_id, status, current_actor())
    return _ok(change, order=change.value)


@admin_bp.route('/quotes/<kind>/<quote_id>', methods=['DELETE'])
@admin_required
def delete_quote(kind, quote_id):
    change = get_services().orders.delete_order(kind, quote_id, current_actor())
    return _ok(change, deleted=quote_id)


# ============================================================================
# EXCHANGE RATES
# ============================================================================

@admin_bp.route('/exchange-rates', methods=['GET'])
@admin_required
def list_exchange_rates():
    return jsonify(to_plain({'status': 'ok', 'rates': get_services().rates.get_rates()}))


@admin_bp.route('/exchange-rates', methods=['PUT'])
@admin_required
def set_exchange_rate():
    data = _payload()
    change = get_services().rates.set_rate(data.get('currency'), data.get('rate'), current_actor())
    return _ok(change, rates=change.value)


@admin_bp.route('/exchange-rates/<code>', methods=['DELETE'])
@admin_required
def delete_exchange_rate(code):
    change = get_services().rates.delete_rate(code, current_actor())
    return _ok(change, rates=change.value)


@admin_bp.route('/exchange-rates/reset', methods=['POST'])
@admin_required
def reset_exchange_rates():
    change = get_services().rates.reset_defaults(current_actor())
    return _ok(change, rates=change.value)


# ============================================================================
# CATALOG GRADES
# ============================================================================

@admin_bp.route('/products/<product_id>/grades', methods=['POST'])
@admin_required
def add_grade(product_id):
    change = get_services().catalog.add_grade(product_id, _payload(), current_actor())
    return _ok(change, key=change.value.key, grade=change.value.to_document()), 201


@admin_bp.route('/products/<product_id>/grades/<key>', methods=['PUT'])
@admin_required
def update_grade(product_id, key):
    change = get_services().catalog.update_grade(product_id, key, _payload(), current_actor())
    return _ok(change, key=change.value.key, grade=change.value.to_document())


@admin_bp.route('/products/<product_id>/grades/<key>', methods=['DELETE'])
@admin_required
def delete_grade(product_id, key):
    change = get_services().catalog.delete_grade(product_id, key, current_actor())
    return _ok(change, deleted=key)
