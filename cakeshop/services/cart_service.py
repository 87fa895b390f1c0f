"""Cart service - cart line validation and the persistent customer cart."""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from cakeshop.models import Cart, CartItem, MenuItem
from cakeshop.exceptions import (
    CartItemNotFound, InsufficientStock, InvalidQuantity, ProductNotFound, VariantRequired
)
from cakeshop.services import inventory_service
from cakeshop.services.auth_service import CallerIdentity, require_caller

logger = logging.getLogger(__name__)

DEFAULT_SIZED_CATEGORIES = frozenset({'cake', 'cakes'})


class CartLine(NamedTuple):
    """A cart line that passed validation, with the price resolved at that moment."""
    menu_id: Optional[int]
    quantity: int
    unit_price: Decimal
    name: str
    size_id: Optional[int] = None
    size_name: Optional[str] = None
    stock_at_validation: int = 0
    custom_cake_id: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def _sized_categories():
    if has_app_context():
        return current_app.config.get('SIZED_CATEGORIES', DEFAULT_SIZED_CATEGORIES)
    return DEFAULT_SIZED_CATEGORIES


def requires_variant(product: MenuItem) -> bool:
    """Sized products, and every product in a sized category, must be ordered with a size."""
    return bool(product.has_sizes) or (product.category or '').strip().lower() in _sized_categories()


def parse_quantity(value) -> int:
    """Accept ints and digit strings; anything else (including bools and floats) is refused."""
    if isinstance(value, bool):
        raise InvalidQuantity()
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise InvalidQuantity()
    if qty < 1:
        raise InvalidQuantity()
    return qty


def validate_cart_line(
    session: Session,
    caller: Optional[CallerIdentity],
    menu_id,
    quantity,
    size=None,
) -> CartLine:
    """
    Decide whether ``quantity`` of a menu item (and size) can go in a cart.

    Checks run in order: authenticated caller, quantity, product exists and
    is active, size given when required, stock covers the quantity. Reads
    only; nothing is written.

    Raises:
        AuthenticationRequired, InvalidQuantity, ProductNotFound,
        VariantRequired, InsufficientStock (with the real stock, never clamped)
    """
    require_caller(caller)
    qty = parse_quantity(quantity)

    product = session.get(MenuItem, menu_id) if isinstance(menu_id, int) else None
    if not product or not product.active:
        raise ProductNotFound(menu_id)

    item_size = None
    if requires_variant(product):
        if size is None or (isinstance(size, str) and not size.strip()):
            raise VariantRequired(product.name)
        item_size = product.find_size(size)
        if not item_size:
            raise VariantRequired(product.name, str(size))

    size_id = item_size.id if item_size else None
    availability = inventory_service.check_availability(session, product.id, qty, size_id)
    if not availability.available:
        raise InsufficientStock(
            product.name, qty, availability.current_stock,
            item_size.size_name if item_size else None
        )

    return CartLine(
        menu_id=product.id,
        quantity=qty,
        unit_price=Decimal(item_size.price if item_size else product.base_price),
        name=product.name,
        size_id=size_id,
        size_name=item_size.size_name if item_size else None,
        stock_at_validation=availability.current_stock,
    )


# =====================================================
# PERSISTENT CART
# =====================================================

def get_or_create_cart(session: Session, customer_id: int) -> Cart:
    """Get the customer's cart, creating it on first use."""
    cart = session.query(Cart).filter(Cart.customer_id == customer_id).first()
    if not cart:
        cart = Cart(customer_id=customer_id)
        session.add(cart)
        session.flush()
    return cart


def _get_own_item(session: Session, caller: CallerIdentity, cart_item_id) -> CartItem:
    item = (
        session.query(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .filter(CartItem.id == cart_item_id, Cart.customer_id == caller.customer_id)
        .first()
    )
    if not item:
        raise CartItemNotFound(cart_item_id)
    return item


def add_to_cart(session: Session, caller: Optional[CallerIdentity], menu_id, quantity, size=None) -> CartItem:
    """
    Add a line to the caller's cart or raise the quantity of an identical line.

    The combined quantity must still be covered by stock.
    """
    line = validate_cart_line(session, caller, menu_id, quantity, size)
    cart = get_or_create_cart(session, caller.customer_id)

    item = session.query(CartItem).filter(
        CartItem.cart_id == cart.id,
        CartItem.menu_id == line.menu_id,
        CartItem.size_id.is_(None) if line.size_id is None else CartItem.size_id == line.size_id
    ).first()

    if item:
        new_qty = item.quantity + line.quantity
        if new_qty > line.stock_at_validation:
            raise InsufficientStock(line.name, new_qty, line.stock_at_validation, line.size_name)
        item.quantity = new_qty
    else:
        item = CartItem(cart_id=cart.id, menu_id=line.menu_id, size_id=line.size_id, quantity=line.quantity)
        session.add(item)

    session.flush()
    logger.info(f"Customer {caller.customer_id} cart: menu {line.menu_id} size {line.size_id} qty {item.quantity}")
    return item


def update_cart_item(session: Session, caller: Optional[CallerIdentity], cart_item_id, quantity) -> CartItem:
    """Set the quantity of one of the caller's cart items, re-checking stock."""
    require_caller(caller)
    item = _get_own_item(session, caller, cart_item_id)
    line = validate_cart_line(session, caller, item.menu_id, quantity, item.size_id)
    item.quantity = line.quantity
    session.flush()
    return item


def remove_cart_item(session: Session, caller: Optional[CallerIdentity], cart_item_id) -> None:
    require_caller(caller)
    item = _get_own_item(session, caller, cart_item_id)
    session.delete(item)
    session.flush()


def clear_cart(session: Session, customer_id: int) -> None:
    """Remove every item from the customer's cart."""
    cart = session.query(Cart).filter(Cart.customer_id == customer_id).first()
    if cart:
        session.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        session.expire(cart, ['items'])
        session.flush()


def get_cart_lines(session: Session, caller: Optional[CallerIdentity]) -> Dict:
    """Cart items with current catalog names and prices (advisory until checkout)."""
    require_caller(caller)
    cart = session.query(Cart).filter(Cart.customer_id == caller.customer_id).first()
    if not cart:
        return {'cartItems': [], 'total': '0.00'}

    items = []
    total = Decimal('0.00')
    for item in cart.items:
        product = item.menu_item
        unit_price = Decimal(item.size.price if item.size else product.base_price)
        subtotal = unit_price * item.quantity
        total += subtotal
        data = item.to_dict()
        data.update({
            'name': product.name,
            'price': str(unit_price),
            'subtotal': str(subtotal),
            'stock': item.size.stock if item.size else product.stock,
        })
        items.append(data)

    return {'cartItems': items, 'total': str(total.quantize(Decimal('0.01')))}


def cart_line_requests(session: Session, customer_id: int) -> List[Dict]:
    """The customer's cart as line requests for order assembly, in the order items were added."""
    cart = session.query(Cart).filter(Cart.customer_id == customer_id).first()
    if not cart:
        return []
    return [
        {'menuId': item.menu_id, 'quantity': item.quantity, 'size': item.size_id}
        for item in cart.items
    ]


def cleanup_carts_after_debit(
    session: Session,
    stock_keys: Iterable[Tuple[int, Optional[int]]],
    exclude_customer_id: Optional[int] = None,
) -> Dict[str, List[Dict]]:
    """
    Bring other customers' carts back within remaining stock.

    Items asking for more than what is left are reduced to the remaining
    stock, or removed when nothing is left. Flushes only; the caller commits.
    """
    results = {'removed': [], 'reduced': []}

    for menu_id, size_id in sorted(set(stock_keys), key=lambda k: (k[0], k[1] or 0)):
        remaining = inventory_service.get_stock(session, menu_id, size_id)

        query = (
            session.query(CartItem)
            .join(Cart, Cart.id == CartItem.cart_id)
            .filter(CartItem.menu_id == menu_id, CartItem.quantity > remaining)
        )
        query = query.filter(CartItem.size_id.is_(None) if size_id is None else CartItem.size_id == size_id)
        if exclude_customer_id is not None:
            query = query.filter(Cart.customer_id != exclude_customer_id)

        for item in query.all():
            entry = {
                'customerId': item.cart.customer_id,
                'menuId': menu_id,
                'sizeId': size_id,
                'quantity': item.quantity,
            }
            if remaining <= 0:
                session.delete(item)
                results['removed'].append(entry)
            else:
                entry['newQuantity'] = remaining
                item.quantity = remaining
                results['reduced'].append(entry)

    session.flush()

    if results['removed'] or results['reduced']:
        logger.info(
            f"Cart cleanup: removed {len(results['removed'])} item(s), reduced {len(results['reduced'])} item(s)"
        )
    return results
