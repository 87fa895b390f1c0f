"""Custom cakes blueprint - design submission, staff pricing and ordering."""
from flask import Blueprint, jsonify, g
from cakeshop.database import get_session
from cakeshop.middleware import require_auth, require_staff
from cakeshop.services import custom_cake_service, order_service
from cakeshop.utils.request_parsing import checkout_fields, json_body

custom_cakes_bp = Blueprint('custom_cakes', __name__, url_prefix='/api/custom-cakes')


@custom_cakes_bp.route('', methods=['POST'])
@require_auth
def create_custom_cake():
    db_session = get_session()
    cake = custom_cake_service.create_custom_cake(db_session, g.caller, json_body())
    return jsonify({
        'status': 'success',
        'message': 'Design submitted for review',
        'customCake': cake.to_dict(),
    }), 201


@custom_cakes_bp.route('', methods=['GET'])
@require_auth
def list_custom_cakes():
    db_session = get_session()
    cakes = custom_cake_service.list_custom_cakes(db_session, g.caller)
    return jsonify({'status': 'success', 'customCakes': [c.to_dict() for c in cakes]})


@custom_cakes_bp.route('/<int:custom_cake_id>', methods=['GET'])
@require_auth
def get_custom_cake(custom_cake_id: int):
    db_session = get_session()
    cake = custom_cake_service.get_custom_cake(db_session, g.caller, custom_cake_id)
    return jsonify({'status': 'success', 'customCake': cake.to_dict()})


@custom_cakes_bp.route('/<int:custom_cake_id>/price', methods=['PUT'])
@require_auth
@require_staff
def price_custom_cake(custom_cake_id: int):
    db_session = get_session()
    payload = json_body()
    cake = custom_cake_service.set_price(db_session, g.caller, custom_cake_id, payload.get('price'))
    return jsonify({'status': 'success', 'message': 'Custom cake priced', 'customCake': cake.to_dict()})


@custom_cakes_bp.route('/<int:custom_cake_id>/order', methods=['POST'])
@require_auth
def order_custom_cake(custom_cake_id: int):
    """Order a priced design. Body carries the checkout fields and an optional quantity."""
    db_session = get_session()
    payload = json_body()

    order = order_service.place_custom_cake_order(
        db_session, g.caller, custom_cake_id,
        quantity=payload.get('quantity', 1),
        **checkout_fields(payload)
    )
    return jsonify({
        'status': 'success',
        'message': 'Order placed',
        'orderId': order.id,
        'order': order.to_dict(),
    }), 201
