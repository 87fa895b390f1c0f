"""
Order lifecycle - status transitions and their stock side effects.

    pending --confirm_payment--> pending (payment verified)
    pending --accept--> processing      (debit stock)
    processing --ship--> shipped
    shipped --deliver--> delivered
    pending|processing --cancel--> cancelled (credit stock if it was debited)

delivered and cancelled are terminal. Every transition is claimed with a
conditional UPDATE on the current status, so two callers racing on the same
order cannot both win.
"""
import logging
from typing import Dict, Optional, Sequence

from flask import current_app, has_app_context
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cakeshop.models import Order, OrderStatus
from cakeshop.exceptions import (
    InvalidStatusTransition, OrderNotFound, PermissionDenied, PersistenceFailure, ProductNotFound, ShopError
)
from cakeshop.services import cart_service, inventory_service
from cakeshop.services.auth_service import CallerIdentity, require_caller
from cakeshop.blueprints.metrics import order_transitions_total

logger = logging.getLogger(__name__)

PENDING = OrderStatus.PENDING.value
PROCESSING = OrderStatus.PROCESSING.value
SHIPPED = OrderStatus.SHIPPED.value
DELIVERED = OrderStatus.DELIVERED.value
CANCELLED = OrderStatus.CANCELLED.value

# event -> (statuses it may start from, resulting status)
TRANSITIONS = {
    'confirm_payment': ((PENDING,), PENDING),
    'accept': ((PENDING,), PROCESSING),
    'ship': ((PROCESSING,), SHIPPED),
    'deliver': ((SHIPPED,), DELIVERED),
    'cancel': ((PENDING, PROCESSING), CANCELLED),
}

# Requested target status -> event
TARGET_EVENTS = {
    PROCESSING: 'accept',
    SHIPPED: 'ship',
    DELIVERED: 'deliver',
    CANCELLED: 'cancel',
}

CUSTOMER_EVENTS = {'cancel'}


def _cleanup_enabled() -> bool:
    if has_app_context():
        return current_app.config.get('CART_CLEANUP_ENABLED', True)
    return True


def _load_order(session: Session, caller: Optional[CallerIdentity], order_id, event: str) -> Order:
    """
    Load an order the caller may act on.

    Customers only see their own orders and may only cancel them.
    """
    caller = require_caller(caller)
    order = session.get(Order, order_id) if isinstance(order_id, int) else None
    if not order:
        raise OrderNotFound(order_id)

    if not caller.is_staff:
        if order.customer_id != caller.customer_id:
            raise OrderNotFound(order_id)
        if event not in CUSTOMER_EVENTS:
            raise PermissionDenied('Only staff can change this order status')

    return order


def _try_claim(session: Session, order_id: int, from_statuses: Sequence[str], target: str,
               criteria=(), **values) -> bool:
    result = session.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(from_statuses), *criteria)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _claim(session: Session, order_id: int, from_statuses: Sequence[str], target: str,
           criteria=(), **values) -> None:
    """
    Move the order to ``target`` only if it is still in one of ``from_statuses``.

    Raises:
        InvalidStatusTransition: the order was in another status; nothing changed
    """
    if not _try_claim(session, order_id, from_statuses, target, criteria, **values):
        session.rollback()
        current = session.get(Order, order_id)
        raise InvalidStatusTransition(current.status if current else None, target)


def _lost_size(item) -> bool:
    """A sized line whose size was removed from the menu has no counter left to draw on."""
    return item.size_id is None and cart_service.requires_variant(item.menu_item)


def _stock_lines(order: Order):
    """Stock keys of the catalog lines. Lines whose size was removed are left out."""
    lines = []
    for item in order.items:
        if not item.draws_stock:
            continue
        if _lost_size(item):
            logger.warning(f"Order {order.id}: item {item.id} lost its size, skipping its stock")
            continue
        lines.append((item.menu_id, item.size_id, item.quantity))
    return lines


def _advance(session: Session, order: Order, event: str, **values) -> None:
    """Claim a transition that has no stock effect."""
    from_statuses, target = TRANSITIONS[event]
    try:
        _claim(session, order.id, from_statuses, target, **values)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Order {order.id}: {event} failed: {e}")
        raise PersistenceFailure()


def _commit(session: Session, order: Order, from_status: str, event: str) -> Order:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Order {order.id}: {event} failed to commit: {e}")
        raise PersistenceFailure()

    session.refresh(order)
    order_transitions_total.labels(from_status=from_status, to_status=order.status).inc()
    return order


def _cleanup_carts(session: Session, stock_keys) -> Dict:
    """Trim other carts after a debit. Errors are logged and swallowed; the order is already accepted."""
    try:
        summary = cart_service.cleanup_carts_after_debit(session, stock_keys)
        session.commit()
        return summary
    except (SQLAlchemyError, ShopError) as e:
        session.rollback()
        logger.error(f"Cart cleanup failed after stock debit: {e}")
        return {'removed': [], 'reduced': []}


def confirm_payment(session: Session, caller: Optional[CallerIdentity], order_id, payment_id: Optional[str] = None) -> Order:
    """Record a verified payment on a pending order. The status does not change."""
    order = _load_order(session, caller, order_id, 'confirm_payment')

    values = {'payment_verified': True}
    if payment_id:
        values['payment_id'] = str(payment_id)

    _advance(session, order, 'confirm_payment', **values)
    _commit(session, order, PENDING, 'confirm_payment')
    logger.info(f"Order {order.id}: payment confirmed by {caller.customer_id} (payment id {payment_id})")
    return order


def accept(session: Session, caller: Optional[CallerIdentity], order_id) -> Order:
    """
    Accept a pending order and debit stock for every catalog line.

    All debits happen in one transaction with the status change. If any
    line lacks stock, nothing is debited and the order stays pending.

    Raises:
        InvalidStatusTransition: the order is no longer pending
        InsufficientStock: a line can no longer be covered
        ProductNotFound: a sized line's size was removed from the menu
    """
    order = _load_order(session, caller, order_id, 'accept')
    from_statuses, target = TRANSITIONS['accept']
    lost = next((item for item in order.items if item.draws_stock and _lost_size(item)), None)
    if lost is not None:
        raise ProductNotFound(lost.menu_id)
    lines = _stock_lines(order)

    try:
        _claim(session, order.id, from_statuses, target, stock_debited=True)
        inventory_service.debit_many(session, lines)
    except ShopError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Order {order.id}: accept failed: {e}")
        raise PersistenceFailure()

    _commit(session, order, PENDING, 'accept')
    logger.info(f"Order {order.id} accepted by {caller.customer_id}, debited {len(lines)} stock line(s)")

    if lines and _cleanup_enabled():
        _cleanup_carts(session, [(menu_id, size_id) for menu_id, size_id, _ in lines])

    return order


def ship(session: Session, caller: Optional[CallerIdentity], order_id) -> Order:
    order = _load_order(session, caller, order_id, 'ship')
    _advance(session, order, 'ship')
    _commit(session, order, PROCESSING, 'ship')
    logger.info(f"Order {order.id} shipped")
    return order


def deliver(session: Session, caller: Optional[CallerIdentity], order_id) -> Order:
    order = _load_order(session, caller, order_id, 'deliver')
    _advance(session, order, 'deliver')
    _commit(session, order, SHIPPED, 'deliver')
    logger.info(f"Order {order.id} delivered")
    return order


def cancel(session: Session, caller: Optional[CallerIdentity], order_id) -> Order:
    """
    Cancel a pending or processing order.

    Stock is credited back only when it was debited at acceptance, using
    the quantities stored on the order items.
    """
    order = _load_order(session, caller, order_id, 'cancel')
    from_statuses, target = TRANSITIONS['cancel']
    from_status = order.status
    lines = _stock_lines(order)

    try:
        # Each claim also pins stock_debited so a concurrent accept cannot change what gets credited
        if _try_claim(session, order.id, from_statuses, target,
                      (Order.stock_debited.is_(True),), stock_debited=False):
            inventory_service.credit_many(session, lines)
        else:
            lines = []
            _claim(session, order.id, from_statuses, target, (Order.stock_debited.is_(False),))
    except ShopError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Order {order.id}: cancel failed: {e}")
        raise PersistenceFailure()

    _commit(session, order, from_status, 'cancel')
    logger.info(f"Order {order.id} cancelled by {caller.customer_id}, credited {len(lines)} stock line(s)")
    return order


EVENT_HANDLERS = {
    'accept': accept,
    'ship': ship,
    'deliver': deliver,
    'cancel': cancel,
}


def transition(session: Session, caller: Optional[CallerIdentity], order_id, target_status) -> Order:
    """Move an order to ``target_status`` through the matching event."""
    event = TARGET_EVENTS.get(target_status.strip().lower()) if isinstance(target_status, str) else None
    if event is None:
        order = _load_order(session, caller, order_id, 'cancel')
        raise InvalidStatusTransition(order.status, target_status)
    return EVENT_HANDLERS[event](session, caller, order_id)
