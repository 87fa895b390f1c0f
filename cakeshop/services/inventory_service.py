"""
Inventory ledger - stock counters for menu items and sizes.

Every stock change goes through ``debit``/``credit``. Each one is a single
conditional UPDATE, so concurrent debits on the same counter serialize in
the database and stock can never go below zero. Nothing here commits:
the caller owns the transaction.
"""
import logging
from collections import namedtuple
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update

from cakeshop.models import MenuItem, ItemSize
from cakeshop.exceptions import InsufficientStock, InvalidQuantity, ProductNotFound
from cakeshop.blueprints.metrics import stock_rejections_total

logger = logging.getLogger(__name__)

Availability = namedtuple('Availability', ['available', 'current_stock'])

# (menu_id, size_id, qty)
StockLine = Tuple[int, Optional[int], int]


def _counter(menu_id: int, size_id: Optional[int]):
    """Return the model and WHERE clause of the counter a stock key draws from."""
    if size_id is not None:
        return ItemSize, [ItemSize.id == size_id, ItemSize.menu_id == menu_id]
    return MenuItem, [MenuItem.id == menu_id]


def _describe(session, menu_id: int, size_id: Optional[int]) -> Tuple[str, Optional[str], int]:
    """Fetch (product name, size name, current stock) straight from the database."""
    if size_id is not None:
        row = session.execute(
            select(MenuItem.name, ItemSize.size_name, ItemSize.stock)
            .join(ItemSize, ItemSize.menu_id == MenuItem.id)
            .where(MenuItem.id == menu_id, ItemSize.id == size_id)
        ).first()
        if row is None:
            raise ProductNotFound(menu_id, size_id)
        return row[0], row[1], int(row[2])

    row = session.execute(
        select(MenuItem.name, MenuItem.stock).where(MenuItem.id == menu_id)
    ).first()
    if row is None:
        raise ProductNotFound(menu_id)
    return row[0], None, int(row[1])


def _validate_qty(qty) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
        raise InvalidQuantity()
    return qty


def get_stock(session, menu_id: int, size_id: Optional[int] = None) -> int:
    """Current stock of a stock key."""
    return _describe(session, menu_id, size_id)[2]


def check_availability(session, menu_id: int, requested_qty: int, size_id: Optional[int] = None) -> Availability:
    """Answer whether ``requested_qty`` units can currently be taken from stock."""
    requested_qty = _validate_qty(requested_qty)
    current_stock = get_stock(session, menu_id, size_id)
    return Availability(requested_qty <= current_stock, current_stock)


def debit(session, menu_id: int, qty: int, size_id: Optional[int] = None) -> None:
    """
    Take ``qty`` units out of stock.

    Raises:
        InsufficientStock: when fewer than ``qty`` units are left; stock is untouched
        ProductNotFound: when the stock key does not exist
    """
    qty = _validate_qty(qty)
    model, criteria = _counter(menu_id, size_id)

    result = session.execute(
        update(model)
        .where(*criteria, model.stock >= qty)
        .values(stock=model.stock - qty)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        name, size_name, current_stock = _describe(session, menu_id, size_id)
        stock_rejections_total.inc()
        logger.info(f"Debit rejected for menu {menu_id} size {size_id}: requested {qty}, stock {current_stock}")
        raise InsufficientStock(name, qty, current_stock, size_name)

    logger.info(f"Debited {qty} from menu {menu_id} size {size_id}")


def credit(session, menu_id: int, qty: int, size_id: Optional[int] = None) -> None:
    """Put ``qty`` units back into stock."""
    qty = _validate_qty(qty)
    model, criteria = _counter(menu_id, size_id)

    result = session.execute(
        update(model)
        .where(*criteria)
        .values(stock=model.stock + qty)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        raise ProductNotFound(menu_id, size_id)

    logger.info(f"Credited {qty} to menu {menu_id} size {size_id}")


def _merge_sorted(lines: Iterable[StockLine]) -> List[StockLine]:
    """Merge lines on the same stock key and sort them to get a deterministic lock order."""
    merged = {}
    for menu_id, size_id, qty in lines:
        key = (menu_id, size_id)
        merged[key] = merged.get(key, 0) + qty
    return [
        (menu_id, size_id, qty)
        for (menu_id, size_id), qty in sorted(merged.items(), key=lambda kv: (kv[0][0], kv[0][1] or 0))
    ]


def debit_many(session, lines: Iterable[StockLine]) -> None:
    """Debit several stock keys. The first failure propagates; the caller rolls back."""
    for menu_id, size_id, qty in _merge_sorted(lines):
        debit(session, menu_id, qty, size_id)


def credit_many(session, lines: Iterable[StockLine]) -> None:
    for menu_id, size_id, qty in _merge_sorted(lines):
        credit(session, menu_id, qty, size_id)
