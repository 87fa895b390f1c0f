"""
Caller identity from bearer tokens.

Tokens are issued by the authentication collaborator and signed with
``JWT_SECRET_KEY``. Claims: ``sub`` (customer id), ``role``, ``email``, ``exp``.
Core services never read request state; they receive a ``CallerIdentity``.
"""
import logging
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from cakeshop.models import Customer, CustomerRole
from cakeshop.exceptions import AuthenticationRequired, PermissionDenied

logger = logging.getLogger(__name__)

STAFF_ROLES = {CustomerRole.STAFF.value, CustomerRole.ADMIN.value}


class CallerIdentity(namedtuple('CallerIdentity', ['customer_id', 'role', 'email'])):
    """Authenticated caller as seen by the core services."""

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES


def issue_token(customer: Customer, secret_key: str, algorithm: str = 'HS256', expires_in: int = 3600) -> str:
    """Sign a bearer token for ``customer`` (used by the CLI and tests)."""
    payload = {
        'sub': str(customer.id),
        'role': customer.role,
        'email': customer.email,
        'exp': datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_token(token: str, secret_key: str, algorithm: str = 'HS256') -> dict:
    """
    Verify signature and expiry of a bearer token.

    Raises:
        AuthenticationRequired: token expired, malformed or badly signed
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationRequired('Token expired, please log in again')
    except jwt.InvalidTokenError:
        raise AuthenticationRequired('Invalid token')


def identify(session, token: Optional[str], secret_key: str, algorithm: str = 'HS256') -> CallerIdentity:
    """Resolve a bearer token into the identity of an active customer."""
    if not token:
        raise AuthenticationRequired('No token provided')

    claims = decode_token(token, secret_key, algorithm)
    try:
        customer_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        raise AuthenticationRequired('Invalid token')

    customer = session.query(Customer).filter_by(id=customer_id, active=True).first()
    if not customer:
        logger.warning(f"Token presented for unknown or inactive customer {customer_id}")
        raise AuthenticationRequired('Account not found or inactive')

    # The stored role wins over the claim so demoted staff lose access immediately
    return CallerIdentity(customer.id, customer.role, customer.email)


def require_caller(caller: Optional[CallerIdentity]) -> CallerIdentity:
    if caller is None or caller.customer_id is None:
        raise AuthenticationRequired()
    return caller


def require_staff(caller: Optional[CallerIdentity]) -> CallerIdentity:
    caller = require_caller(caller)
    if not caller.is_staff:
        raise PermissionDenied('Access denied: staff accounts only')
    return caller
