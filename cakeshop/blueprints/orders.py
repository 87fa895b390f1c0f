"""Orders blueprint - checkout, order reads and status changes."""
from flask import Blueprint, jsonify, g
from cakeshop.database import get_session
from cakeshop.middleware import require_auth, require_staff
from cakeshop.services import order_service, order_lifecycle_service
from cakeshop.utils.request_parsing import checkout_fields, json_body, parse_id

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _line_requests(items) -> list:
    lines = []
    for item in items:
        if not isinstance(item, dict):
            item = {}
        line = {
            'menuId': parse_id(item.get('menuId')),
            'quantity': item.get('quantity'),
            'size': item.get('size'),
        }
        if item.get('customCakeId') is not None:
            line['customCakeId'] = parse_id(item.get('customCakeId'))
        lines.append(line)
    return lines


@orders_bp.route('', methods=['POST'])
@require_auth
def create_order():
    """
    Place an order.

    Body: {items?, customerInfo, deliveryMethod, deliveryAddress, pickupDate, paymentMethod}.
    Without ``items`` the caller's cart is checked out and emptied.
    """
    db_session = get_session()
    payload = json_body()
    checkout = checkout_fields(payload)

    items = payload.get('items')
    if items is None:
        order = order_service.place_order_from_cart(db_session, g.caller, **checkout)
    else:
        lines = _line_requests(items if isinstance(items, list) else [])
        order = order_service.assemble_order(db_session, g.caller, lines, **checkout)

    return jsonify({
        'status': 'success',
        'message': 'Order placed',
        'orderId': order.id,
        'order': order.to_dict(),
    }), 201


@orders_bp.route('/user/me', methods=['GET'])
@require_auth
def my_orders():
    db_session = get_session()
    orders = order_service.list_customer_orders(db_session, g.caller)
    return jsonify({'status': 'success', 'orders': [o.to_dict() for o in orders]})


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_auth
def get_order(order_id: int):
    db_session = get_session()
    order = order_service.get_order(db_session, g.caller, order_id)
    return jsonify({'status': 'success', 'order': order.to_dict()})


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@require_auth
def update_status(order_id: int):
    """Move an order to {status}. Customers may only cancel their own orders."""
    db_session = get_session()
    payload = json_body()

    order = order_lifecycle_service.transition(db_session, g.caller, order_id, payload.get('status'))
    return jsonify({
        'status': 'success',
        'message': f"Order {order.id} is now {order.status}",
        'order': order.to_dict(),
    })


@orders_bp.route('/<int:order_id>/payment', methods=['POST'])
@require_auth
@require_staff
def confirm_payment(order_id: int):
    db_session = get_session()
    payload = json_body()

    order = order_lifecycle_service.confirm_payment(db_session, g.caller, order_id, payload.get('paymentId'))
    return jsonify({'status': 'success', 'message': 'Payment confirmed', 'order': order.to_dict()})
