"""
Order assembly - turns validated cart lines into a persisted order.

Every line is re-validated against the catalog and stock at checkout time.
The order and all of its items are written in one transaction, or not at
all. Assembly reserves nothing: stock is debited when staff accept the
order (see order_lifecycle_service).
"""
import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cakeshop.models import Customer, CustomCake, CustomCakeStatus, Order, OrderItem, OrderStatus
from cakeshop.exceptions import (
    AssemblyFailed, CustomCakeNotFound, CustomCakeNotPriced, InsufficientStock, InvalidQuantity,
    OrderNotFound, PersistenceFailure, ShopError, StockChangedDuringCheckout
)
from cakeshop.services import cart_service
from cakeshop.services.auth_service import CallerIdentity, require_caller
from cakeshop.services.cart_service import CartLine
from cakeshop.services.delivery_policy import validate_fulfillment
from cakeshop.blueprints.metrics import orders_assembled_total

logger = logging.getLogger(__name__)


def _custom_cake_line(session: Session, caller: CallerIdentity, request: Dict) -> CartLine:
    """A priced custom cake as a single synthetic line."""
    cake_id = request.get('customCakeId')
    cake = session.get(CustomCake, cake_id) if isinstance(cake_id, int) else None
    if not cake or (cake.customer_id != caller.customer_id and not caller.is_staff):
        raise CustomCakeNotFound(cake_id)
    if cake.price is None or cake.status != CustomCakeStatus.PRICED.value:
        raise CustomCakeNotPriced(cake.id)

    qty = cart_service.parse_quantity(request.get('quantity', 1))
    return CartLine(
        menu_id=None,
        quantity=qty,
        unit_price=Decimal(cake.price),
        name=cake.display_name,
        size_name=cake.size,
        custom_cake_id=cake.id,
    )


def _revalidate_lines(session: Session, caller: CallerIdentity, line_requests: Sequence[Dict]) -> List[CartLine]:
    """
    Validate every requested line against the current catalog and stock.

    All failing lines are collected and reported together.
    """
    lines = []
    changed = []

    for index, request in enumerate(line_requests, start=1):
        try:
            if request.get('customCakeId') is not None:
                lines.append(_custom_cake_line(session, caller, request))
            else:
                lines.append(cart_service.validate_cart_line(
                    session, caller, request.get('menuId'), request.get('quantity'), request.get('size')
                ))
        except ShopError as e:
            failure = {'line': index, 'menuId': request.get('menuId'), 'kind': e.kind, 'message': e.message}
            if request.get('customCakeId') is not None:
                failure['customCakeId'] = request.get('customCakeId')
            if isinstance(e, InsufficientStock):
                failure['currentStock'] = e.current_stock
                failure['requested'] = e.requested
            changed.append(failure)

    if changed:
        raise StockChangedDuringCheckout(changed)
    return lines


def _snapshot_item(position: int, line: CartLine) -> OrderItem:
    """Copy a validated line into an order item."""
    return OrderItem(
        position=position,
        menu_id=line.menu_id,
        size_id=line.size_id,
        custom_cake_id=line.custom_cake_id,
        item_name=line.name,
        size_name=line.size_name,
        quantity=line.quantity,
        price=line.unit_price,
    )


def _contact_snapshot(session: Session, caller: CallerIdentity, customer_info: Optional[Dict]) -> Dict:
    info = customer_info or {}
    customer = session.get(Customer, caller.customer_id)
    profile_name = customer.full_name if customer else None
    profile_email = customer.email if customer else caller.email
    profile_phone = customer.phone if customer else None

    return {
        'customer_name': (info.get('fullName') or profile_name or profile_email or 'Customer').strip(),
        'customer_email': (info.get('email') or profile_email or '').strip(),
        'customer_phone': (info.get('phone') or profile_phone or None),
    }


def assemble_order(
    session: Session,
    caller: Optional[CallerIdentity],
    line_requests: Sequence[Dict],
    delivery_method=None,
    payment_method=None,
    delivery_address: Optional[str] = None,
    pickup_date=None,
    customer_info: Optional[Dict] = None,
    before_commit: Optional[Callable[[Order], None]] = None,
) -> Order:
    """
    Assemble and persist an order from line requests.

    Each line request is ``{'menuId', 'quantity', 'size'}`` or
    ``{'customCakeId', 'quantity'}``. ``before_commit`` runs inside the
    order's transaction, after the order has been flushed.

    Returns:
        The committed order, status ``pending`` and payment not verified.

    Raises:
        AuthenticationRequired: no caller
        AssemblyFailed: wraps the validation error that stopped the order
            (StockChangedDuringCheckout, VariantRequired, DeliveryAddressRequired, ...)
        PersistenceFailure: the database refused the write; nothing was saved
    """
    caller = require_caller(caller)

    try:
        if not line_requests:
            raise InvalidQuantity('An order needs at least one item')

        lines = _revalidate_lines(session, caller, line_requests)
        fulfillment = validate_fulfillment(delivery_method, delivery_address, pickup_date, payment_method)

        total = sum((line.line_total for line in lines), Decimal('0.00')).quantize(Decimal('0.01'))

        order = Order(
            customer_id=caller.customer_id,
            total_amount=total,
            delivery_method=fulfillment.delivery_method,
            delivery_address=fulfillment.delivery_address,
            pickup_date=fulfillment.pickup_date,
            payment_method=fulfillment.payment_method,
            payment_verified=False,
            status=OrderStatus.PENDING.value,
            stock_debited=False,
            **_contact_snapshot(session, caller, customer_info)
        )
        order.items = [_snapshot_item(position, line) for position, line in enumerate(lines)]
        session.add(order)
        session.flush()

        if before_commit:
            before_commit(order)

        session.commit()

    except ShopError as e:
        session.rollback()
        if isinstance(e, AssemblyFailed):
            raise
        logger.info(f"Order assembly refused for customer {caller.customer_id}: {e.kind} {e.message}")
        raise AssemblyFailed(e)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Order assembly failed to persist for customer {caller.customer_id}: {e}")
        raise PersistenceFailure()

    orders_assembled_total.labels(
        payment_method=order.payment_method,
        delivery_method=order.delivery_method
    ).inc()
    logger.info(f"Order {order.id} placed by customer {caller.customer_id}: {len(lines)} item(s), total {total}")
    return order


def place_order_from_cart(session: Session, caller: Optional[CallerIdentity], **checkout) -> Order:
    """Assemble an order from the caller's cart and empty the cart in the same transaction."""
    caller = require_caller(caller)
    line_requests = cart_service.cart_line_requests(session, caller.customer_id)

    def _clear_cart(order):
        cart_service.clear_cart(session, caller.customer_id)

    return assemble_order(session, caller, line_requests, before_commit=_clear_cart, **checkout)


def place_custom_cake_order(
    session: Session,
    caller: Optional[CallerIdentity],
    custom_cake_id: int,
    quantity=1,
    **checkout
) -> Order:
    """Order a priced custom cake as a single line."""
    caller = require_caller(caller)
    request = {'customCakeId': custom_cake_id, 'quantity': quantity}

    try:
        _custom_cake_line(session, caller, request)
    except ShopError as e:
        raise AssemblyFailed(e)

    def _mark_ordered(order):
        # Only a design still priced can be claimed
        result = session.execute(
            update(CustomCake)
            .where(CustomCake.id == custom_cake_id, CustomCake.status == CustomCakeStatus.PRICED.value)
            .values(status=CustomCakeStatus.ORDERED.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CustomCakeNotPriced(custom_cake_id)

    return assemble_order(session, caller, [request], before_commit=_mark_ordered, **checkout)


def get_order(session: Session, caller: Optional[CallerIdentity], order_id) -> Order:
    """Fetch an order. Customers only see their own orders."""
    caller = require_caller(caller)
    order = session.get(Order, order_id) if isinstance(order_id, int) else None
    if not order or (order.customer_id != caller.customer_id and not caller.is_staff):
        raise OrderNotFound(order_id)
    return order


def list_customer_orders(session: Session, caller: Optional[CallerIdentity]) -> List[Order]:
    """The caller's orders, newest first."""
    caller = require_caller(caller)
    return (
        session.query(Order)
        .filter(Order.customer_id == caller.customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
