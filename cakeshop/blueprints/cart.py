"""Cart blueprint - the caller's persistent cart."""
from flask import Blueprint, jsonify, g
from cakeshop.database import get_session
from cakeshop.middleware import require_auth
from cakeshop.services import cart_service
from cakeshop.utils.request_parsing import json_body, parse_id

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


@cart_bp.route('', methods=['GET'])
@require_auth
def view_cart():
    db_session = get_session()
    contents = cart_service.get_cart_lines(db_session, g.caller)
    return jsonify({'status': 'success', **contents})


@cart_bp.route('/add', methods=['POST'])
@require_auth
def add_item():
    """Add {menuId, quantity, size} to the cart. Validation errors leave the cart untouched."""
    db_session = get_session()
    payload = json_body()

    try:
        item = cart_service.add_to_cart(
            db_session, g.caller,
            parse_id(payload.get('menuId')),
            payload.get('quantity', 1),
            payload.get('size'),
        )
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise

    return jsonify({'status': 'success', 'message': 'Added to cart', 'cartItem': item.to_dict()})


@cart_bp.route('/update', methods=['PUT'])
@require_auth
def update_item():
    db_session = get_session()
    payload = json_body()

    try:
        item = cart_service.update_cart_item(
            db_session, g.caller, parse_id(payload.get('cartItemId')), payload.get('quantity')
        )
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise

    return jsonify({'status': 'success', 'message': 'Cart updated', 'cartItem': item.to_dict()})


@cart_bp.route('/remove', methods=['DELETE'])
@require_auth
def remove_item():
    db_session = get_session()
    payload = json_body()

    try:
        cart_service.remove_cart_item(db_session, g.caller, parse_id(payload.get('cartItemId')))
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise

    return jsonify({'status': 'success', 'message': 'Item removed from cart'})
