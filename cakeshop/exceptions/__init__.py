"""Custom exceptions for the cake shop application.

Every error a request can fail with is a ``ShopError``. Its ``kind`` is the
stable identifier clients switch on; ``to_dict`` is what the JSON error
handler returns.
"""


class ShopError(Exception):
    """Base exception for all application errors."""
    kind = 'ShopError'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['kind'] = self.kind
        rv['status'] = 'error'
        return rv


class BusinessLogicError(ShopError):
    """Exception raised for business logic violations."""
    kind = 'BusinessLogicError'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(ShopError):
    """Exception raised when a resource is not found."""
    kind = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class AuthenticationRequired(ShopError):
    kind = 'AuthenticationRequired'

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class PermissionDenied(ShopError):
    """Raised when the caller's role does not allow the action."""
    kind = 'PermissionDenied'

    def __init__(self, message="Access denied"):
        super().__init__(message, 403)


class ProductNotFound(NotFoundError):
    kind = 'ProductNotFound'

    def __init__(self, menu_id, size_id=None):
        message = f"Menu item {menu_id} not found"
        payload = {'menuId': menu_id}
        if size_id is not None:
            message = f"Size {size_id} of menu item {menu_id} not found"
            payload['sizeId'] = size_id
        super().__init__(message, payload)


class OrderNotFound(NotFoundError):
    kind = 'OrderNotFound'

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", {'orderId': order_id})


class CartItemNotFound(NotFoundError):
    kind = 'CartItemNotFound'

    def __init__(self, cart_item_id):
        super().__init__(f"Cart item {cart_item_id} not found", {'cartItemId': cart_item_id})


class CustomCakeNotFound(NotFoundError):
    kind = 'CustomCakeNotFound'

    def __init__(self, custom_cake_id):
        super().__init__(f"Custom cake {custom_cake_id} not found", {'customCakeId': custom_cake_id})


class InvalidQuantity(BusinessLogicError):
    kind = 'InvalidQuantity'

    def __init__(self, message="Quantity must be a whole number of at least 1"):
        super().__init__(message)


class VariantRequired(BusinessLogicError):
    """Raised when a sized product is requested without a valid size."""
    kind = 'VariantRequired'

    def __init__(self, product_name, size=None):
        if size:
            message = f"Invalid size '{size}' for {product_name}"
        else:
            message = f"Size is required for {product_name}"
        super().__init__(message, payload={'size': size} if size else None)


class InsufficientStock(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    kind = 'InsufficientStock'

    def __init__(self, product_name, requested, current_stock, size_name=None):
        label = f"{product_name} ({size_name})" if size_name else product_name
        message = f"Only {current_stock} available for {label}, requested {requested}"
        super().__init__(message, status_code=409, payload={
            'currentStock': current_stock,
            'requested': requested,
        })
        self.product_name = product_name
        self.requested = requested
        self.current_stock = current_stock


class StockChangedDuringCheckout(BusinessLogicError):
    """Raised when one or more cart lines no longer pass validation at checkout."""
    kind = 'StockChangedDuringCheckout'

    def __init__(self, failures):
        names = ', '.join(f"#{f['line']} {f['message']}" for f in failures)
        super().__init__(
            f"Some items changed since they were added to the cart: {names}",
            status_code=409,
            payload={'lines': failures},
        )
        self.failures = failures


class InvalidPaymentMethod(BusinessLogicError):
    kind = 'InvalidPaymentMethod'

    def __init__(self, payment_method):
        super().__init__(f"Invalid payment method: {payment_method}", status_code=422)


class InvalidDeliveryMethod(BusinessLogicError):
    kind = 'InvalidDeliveryMethod'

    def __init__(self, delivery_method):
        super().__init__(f"Invalid delivery method: {delivery_method}", status_code=422)


class DeliveryAddressRequired(BusinessLogicError):
    kind = 'DeliveryAddressRequired'

    def __init__(self):
        super().__init__("A delivery address is required for delivery orders", status_code=422)


class InvalidPickupDate(BusinessLogicError):
    kind = 'InvalidPickupDate'

    def __init__(self, value):
        super().__init__(f"Invalid pickup date: {value}", status_code=422)


class InvalidStatusTransition(BusinessLogicError):
    """Raised when an order event is not legal from the order's current status."""
    kind = 'InvalidStatusTransition'

    def __init__(self, current_status, target_status):
        super().__init__(
            f"Cannot move order from {current_status} to {target_status}",
            status_code=409,
            payload={'from': current_status, 'to': target_status},
        )
        self.current_status = current_status
        self.target_status = target_status


class CustomCakeNotPriced(BusinessLogicError):
    kind = 'CustomCakeNotPriced'

    def __init__(self, custom_cake_id):
        super().__init__(
            f"Custom cake {custom_cake_id} has not been priced yet",
            status_code=409,
            payload={'customCakeId': custom_cake_id},
        )


class AssemblyFailed(ShopError):
    """Wraps the validation error that stopped an order from being assembled."""
    kind = 'AssemblyFailed'

    def __init__(self, cause):
        payload = dict(cause.payload or ())
        payload['cause'] = cause.kind
        super().__init__(f"Order could not be placed: {cause.message}", cause.status_code, payload)
        self.cause = cause


class PersistenceFailure(ShopError):
    kind = 'PersistenceFailure'

    def __init__(self, message="The operation could not be saved, please retry"):
        super().__init__(message, 503)
