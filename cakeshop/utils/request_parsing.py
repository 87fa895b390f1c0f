"""Helpers for reading JSON request bodies."""
from flask import request


def json_body() -> dict:
    """The request's JSON object, or an empty dict for missing or malformed bodies."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def parse_id(value):
    """
    Coerce a client-supplied id to int.

    Digit strings become ints. Anything else is returned unchanged so the
    lookup fails with the matching not-found error.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def checkout_fields(payload: dict) -> dict:
    """Map checkout keys of a request body onto order service keyword arguments."""
    customer_info = payload.get('customerInfo')
    return {
        'delivery_method': payload.get('deliveryMethod'),
        'payment_method': payload.get('paymentMethod'),
        'delivery_address': payload.get('deliveryAddress'),
        'pickup_date': payload.get('pickupDate'),
        'customer_info': customer_info if isinstance(customer_info, dict) else None,
    }
