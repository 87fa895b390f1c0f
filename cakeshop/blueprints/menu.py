"""Menu blueprint - public catalog reads."""
from flask import Blueprint, jsonify, request
from cakeshop.database import get_session
from cakeshop.exceptions import ProductNotFound
from cakeshop.models import MenuItem

menu_bp = Blueprint('menu', __name__, url_prefix='/api/menu')


@menu_bp.route('', methods=['GET'])
def list_menu():
    """List active menu items, optionally filtered by ?category=."""
    db_session = get_session()
    query = db_session.query(MenuItem).filter(MenuItem.active.is_(True))

    category = (request.args.get('category') or '').strip()
    if category:
        query = query.filter(MenuItem.category == category)

    items = query.order_by(MenuItem.category, MenuItem.name).all()
    return jsonify({'status': 'success', 'menu': [item.to_dict() for item in items]})


@menu_bp.route('/<int:menu_id>', methods=['GET'])
def get_menu_item(menu_id: int):
    db_session = get_session()
    item = db_session.get(MenuItem, menu_id)
    if not item or not item.active:
        raise ProductNotFound(menu_id)
    return jsonify({'status': 'success', 'item': item.to_dict()})
