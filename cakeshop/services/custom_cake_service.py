"""Custom cake designs: submitted by customers, priced by staff, then ordered."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cakeshop.models import CustomCake, CustomCakeStatus
from cakeshop.exceptions import BusinessLogicError, CustomCakeNotFound, PersistenceFailure
from cakeshop.services.auth_service import CallerIdentity, require_caller, require_staff

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('size', 'flavor', 'icingStyle')

# Request key -> model column
DESIGN_FIELDS = {
    'size': 'size',
    'flavor': 'flavor',
    'icingStyle': 'icing_style',
    'icingColor': 'icing_color',
    'filling': 'filling',
    'decorations': 'decorations',
    'customText': 'custom_text',
    'referenceImageUrl': 'reference_image_url',
}


def create_custom_cake(session: Session, caller: Optional[CallerIdentity], design: Dict) -> CustomCake:
    """
    Save a customer's design for staff review.

    Raises:
        AuthenticationRequired: no caller
        BusinessLogicError: size, flavor or icing style missing
    """
    caller = require_caller(caller)
    design = design or {}

    missing = [f for f in REQUIRED_FIELDS if not str(design.get(f) or '').strip()]
    if missing:
        raise BusinessLogicError(f"Missing required fields: {', '.join(missing)}", payload={'missing': missing})

    values = {}
    for key, column in DESIGN_FIELDS.items():
        value = design.get(key)
        if isinstance(value, str):
            value = value.strip() or None
        if value is not None:
            values[column] = value

    cake = CustomCake(customer_id=caller.customer_id, status=CustomCakeStatus.PENDING_REVIEW.value, **values)
    try:
        session.add(cake)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to save custom cake for customer {caller.customer_id}: {e}")
        raise PersistenceFailure()

    logger.info(f"Custom cake {cake.id} submitted by customer {caller.customer_id}")
    return cake


def get_custom_cake(session: Session, caller: Optional[CallerIdentity], custom_cake_id) -> CustomCake:
    caller = require_caller(caller)
    cake = session.get(CustomCake, custom_cake_id) if isinstance(custom_cake_id, int) else None
    if not cake or (cake.customer_id != caller.customer_id and not caller.is_staff):
        raise CustomCakeNotFound(custom_cake_id)
    return cake


def list_custom_cakes(session: Session, caller: Optional[CallerIdentity]) -> List[CustomCake]:
    caller = require_caller(caller)
    return (
        session.query(CustomCake)
        .filter(CustomCake.customer_id == caller.customer_id)
        .order_by(CustomCake.id.desc())
        .all()
    )


def set_price(session: Session, caller: Optional[CallerIdentity], custom_cake_id, price) -> CustomCake:
    """
    Price a reviewed design (staff only). Ordered or cancelled designs keep their price.

    Raises:
        PermissionDenied, CustomCakeNotFound, BusinessLogicError
    """
    caller = require_staff(caller)
    cake = get_custom_cake(session, caller, custom_cake_id)

    if cake.status not in (CustomCakeStatus.PENDING_REVIEW.value, CustomCakeStatus.PRICED.value):
        raise BusinessLogicError(f"Custom cake {cake.id} is {cake.status} and can no longer be priced",
                                 status_code=409)

    try:
        amount = Decimal(str(price)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise BusinessLogicError(f"Invalid price: {price}")
    if isinstance(price, bool) or not amount.is_finite() or amount <= 0:
        raise BusinessLogicError(f"Invalid price: {price}")

    cake.price = amount
    cake.status = CustomCakeStatus.PRICED.value
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to price custom cake {cake.id}: {e}")
        raise PersistenceFailure()

    logger.info(f"Custom cake {cake.id} priced at {amount} by staff {caller.customer_id}")
    return cake
