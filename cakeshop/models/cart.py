"""Cart and Cart Item models (persistent customer cart)."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cakeshop.database import Base, BigIntId


class Cart(Base):
    """
    Cart - one per customer.

    Holds candidate lines only; nothing in a cart reserves stock.
    """

    __tablename__ = 'cart'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigIntId, ForeignKey('customer.id', ondelete='CASCADE'), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    customer = relationship('Customer')
    items = relationship('CartItem', back_populates='cart', cascade='all, delete-orphan',
                         order_by='CartItem.id')

    def __repr__(self):
        return f"<Cart(id={self.id}, customer_id={self.customer_id})>"


class CartItem(Base):
    """Cart Item - a menu item (and size) with the quantity the customer wants."""

    __tablename__ = 'cart_item'
    __table_args__ = (
        UniqueConstraint('cart_id', 'menu_id', 'size_id', name='uq_cart_item_line'),
        CheckConstraint('quantity >= 1', name='ck_cart_item_quantity_positive'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    cart_id = Column(BigIntId, ForeignKey('cart.id', ondelete='CASCADE'), nullable=False, index=True)
    menu_id = Column(BigIntId, ForeignKey('menu_item.id', ondelete='CASCADE'), nullable=False, index=True)
    size_id = Column(BigIntId, ForeignKey('item_size.id', ondelete='CASCADE'), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    cart = relationship('Cart', back_populates='items')
    menu_item = relationship('MenuItem')
    size = relationship('ItemSize')

    def __repr__(self):
        return f"<CartItem(id={self.id}, menu_id={self.menu_id}, size_id={self.size_id}, quantity={self.quantity})>"

    def to_dict(self):
        return {
            'cartItemId': self.id,
            'menuId': self.menu_id,
            'sizeId': self.size_id,
            'size': self.size.size_name if self.size else None,
            'quantity': self.quantity,
        }
