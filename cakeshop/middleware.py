"""Middleware for bearer-token authentication."""
from functools import wraps
from flask import g, request, current_app
from cakeshop.database import get_session
from cakeshop.exceptions import AuthenticationRequired, ShopError
from cakeshop.services.auth_service import identify, require_staff as _require_staff_identity


def _bearer_token():
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    # Links sent to the browser carry the token as a query parameter
    return request.args.get('token') or None


def load_caller():
    """
    Load the authenticated caller into g (Flask's per-request global).

    Called before each request. Sets g.caller to a CallerIdentity when a
    valid token is presented. A bad token is remembered in g.auth_error and
    only reported by endpoints that require authentication.
    """
    g.caller = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    try:
        g.caller = identify(
            get_session(),
            token,
            current_app.config['JWT_SECRET_KEY'],
            current_app.config.get('JWT_ALGORITHM', 'HS256'),
        )
    except ShopError as e:
        g.auth_error = e


def require_auth(f):
    """
    Decorator: Require a valid bearer token.

    Responds 401 with the reason the token was refused, if any.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('caller') is None:
            raise g.get('auth_error') or AuthenticationRequired('No token provided')
        return f(*args, **kwargs)
    return decorated_function


def require_staff(f):
    """
    Decorator: Require a staff or admin caller.

    Must be used AFTER require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _require_staff_identity(g.caller)
        return f(*args, **kwargs)
    return decorated_function
