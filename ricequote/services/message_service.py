"""
Quote message builder.

Produces the chat message a customer sends to the sales desk after submitting,
and the wa.me deep link that opens it. Nothing is sent from the server.
"""
from typing import Optional
from urllib.parse import quote

from ricequote.models.cart import CartSummary
from ricequote.models.order import (
    CartOrder, CustomerInfo, OrderKind, SampleCourierOrder, SingleProductOrder, yes_no
)
from ricequote.models.pricing import PriceBreakdown
from ricequote.utils.formatters import money


def whatsapp_link(number: str, text: str) -> str:
    digits = ''.join(ch for ch in (number or '') if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(text, safe='')}"


def _customer_lines(customer: CustomerInfo) -> list:
    return [
        '1. *Customer Details*',
        f" - Name: {customer.full_name}",
        f" - Email: {customer.email}",
        f" - Phone: {customer.phone}",
        f" - Address: {customer.street}, {customer.city}, {customer.address_state}, "
        f"{customer.address_country} - {customer.pincode}",
        '',
    ]


def _breakdown_lines(breakdown: Optional[PriceBreakdown], is_cart: bool) -> list:
    lines = ['4. *Pricing Breakdown*']
    if breakdown is None:
        lines.append(' - Price on request')
        return lines + ['']

    currency = breakdown.currency
    if not is_cart:
        lines.append(f" - Grade Price: {money(breakdown.base_price, currency)} per quintal")
    lines.append(f" - Packing Price: {money(breakdown.packing_price, currency)} per bag")
    lines.append(f" - Quantity Price: {money(breakdown.quantity_price, currency)}")
    if breakdown.branding_price:
        lines.append(f" - Custom Logo: {money(breakdown.branding_price, currency)}")
    if breakdown.cif:
        lines.append(f" - Insurance: {money(breakdown.insurance_price, currency)}")
        lines.append(f" - Freight: {money(breakdown.freight_price, currency)}")
        if breakdown.transport_total:
            lines.append(
                f" - Transport: {money(breakdown.transport_price_per_unit, currency)} per quintal "
                f"({money(breakdown.transport_total, currency)} total)"
            )
        elif not breakdown.transport_available:
            lines.append(' - Transport: not available for this route, quoted separately')
    term = 'CIF' if breakdown.cif else 'FOB'
    lines.append(f" - Total Price: {money(breakdown.grand_total, currency)} ({term})")
    return lines + ['']


def build_quote_message(
    quote_id: str,
    order: OrderKind,
    customer: CustomerInfo,
    breakdown: Optional[PriceBreakdown] = None,
    cart: Optional[CartSummary] = None,
    product_name: str = '',
) -> str:
    """Plain-text message summarising a submitted order."""
    lines = [f"*New Quote Request: {quote_id}*", '']
    lines += _customer_lines(customer)

    lines.append('2. *Order Details*')
    if isinstance(order, SingleProductOrder):
        lines += [
            f" - Variety: {product_name or order.product_id}",
            f" - Grade: {order.grade}",
            f" - Packing: {order.packing}",
            f" - Quantity: {order.quantity}",
            f" - State: {order.state}",
            f" - Port: {order.port}",
            f" - CIF: {yes_no(order.cif)}",
            f" - Currency: {order.currency}",
        ]
    elif isinstance(order, CartOrder):
        lines += [
            ' - Order Type: Shopping Cart',
            f" - Packing: {order.packing or 'Not specified'}",
            f" - Currency: {order.currency}",
        ]
        if order.cif:
            lines.append(f" - CIF: Yes ({order.state or 'no state'} to {order.port or 'no port'})")
        if cart is not None:
            lines.append(f" - Total Items: {cart.item_count}")
            lines.append(f" - Cart Subtotal: {money(cart.subtotal)}")
            for index, line in enumerate(cart.items, start=1):
                item = line.item
                price = money(line.subtotal) if line.price_fetched else (item.price_label or 'Price on request')
                lines.append(
                    f"   {index}. {item.product_name} | {item.grade or 'Not specified'} | "
                    f"{item.quantity_unit.value} x {item.quantity} x {item.number_of_bags} bags | {price}"
                )
    elif isinstance(order, SampleCourierOrder):
        lines.append(' - Order Type: Sample Courier')
        for index, item in enumerate(order.items, start=1):
            lines.append(f"   {index}. {item.product_name} | {item.grade} | {item.packet_size} | "
                         f"{money(item.price, order.currency)}")
        lines.append(f" - Shipping: {money(order.shipping_charge, order.currency)}")
        lines.append(f" - Total: {money(order.rice_total + order.shipping_charge, order.currency)}")
        lines.append(f" - Payment: {order.payment_method}")
    lines.append('')

    if not isinstance(order, SampleCourierOrder):
        lines += ['3. *Customization*', f" - Custom Logo: {yes_no(order.custom_logo)}", '']
        lines += _breakdown_lines(breakdown, isinstance(order, CartOrder))

    lines += ['5. *Additional Information*', f" {order.additional_info or 'None'}", '',
              'Thank you.', f"Best regards,\n{customer.full_name}"]
    return '\n'.join(lines)
