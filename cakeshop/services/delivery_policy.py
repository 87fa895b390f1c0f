"""Delivery/pickup and payment method rules applied once at checkout."""
from collections import namedtuple
from datetime import date, datetime
from typing import Optional, Union

from cakeshop.models import DeliveryMethod, PaymentMethod
from cakeshop.exceptions import (
    DeliveryAddressRequired, InvalidDeliveryMethod, InvalidPaymentMethod, InvalidPickupDate
)

FulfillmentDetails = namedtuple(
    'FulfillmentDetails',
    ['delivery_method', 'delivery_address', 'pickup_date', 'payment_method']
)

DELIVERY_METHODS = {m.value for m in DeliveryMethod}
PAYMENT_METHODS = {m.value for m in PaymentMethod}


def _normalize_choice(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ''


def parse_pickup_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Reduce a pickup date to a plain date. Datetimes lose their time part."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise InvalidPickupDate(value)
    raise InvalidPickupDate(value)


def validate_fulfillment(
    delivery_method,
    delivery_address: Optional[str] = None,
    pickup_date=None,
    payment_method=None,
) -> FulfillmentDetails:
    """
    Check the delivery/pickup fields and the payment method of a checkout.

    Delivery orders need a non-blank address. Pickup orders may carry a
    date-only pickup date. Fields meant for the other method are passed
    through as given.

    Raises:
        InvalidDeliveryMethod, DeliveryAddressRequired, InvalidPickupDate,
        InvalidPaymentMethod
    """
    method = _normalize_choice(delivery_method)
    if method not in DELIVERY_METHODS:
        raise InvalidDeliveryMethod(delivery_method)

    address = delivery_address.strip() if isinstance(delivery_address, str) else delivery_address
    if method == DeliveryMethod.DELIVERY.value and not address:
        raise DeliveryAddressRequired()

    # Not cleared for delivery orders; only malformed values are refused
    parsed_pickup_date = parse_pickup_date(pickup_date)

    payment = _normalize_choice(payment_method)
    if payment not in PAYMENT_METHODS:
        raise InvalidPaymentMethod(payment_method)

    return FulfillmentDetails(method, address or None, parsed_pickup_date, payment)
