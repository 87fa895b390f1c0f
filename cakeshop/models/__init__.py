"""Models package - exports all SQLAlchemy models."""
from cakeshop.models.customer import Customer, CustomerRole
from cakeshop.models.menu_item import MenuItem
from cakeshop.models.item_size import ItemSize
from cakeshop.models.custom_cake import CustomCake, CustomCakeStatus
from cakeshop.models.cart import Cart, CartItem
from cakeshop.models.order import Order, OrderStatus, DeliveryMethod, PaymentMethod, TERMINAL_STATUSES
from cakeshop.models.order_item import OrderItem

__all__ = [
    'Customer', 'CustomerRole',
    'MenuItem', 'ItemSize',
    'CustomCake', 'CustomCakeStatus',
    'Cart', 'CartItem',
    'Order', 'OrderStatus', 'DeliveryMethod', 'PaymentMethod', 'TERMINAL_STATUSES',
    'OrderItem',
]
