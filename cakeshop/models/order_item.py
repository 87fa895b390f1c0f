"""Order Item model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from cakeshop.database import Base, BigIntId


class OrderItem(Base):
    """
    Order Item (snapshot line of an order).

    ``item_name``, ``size_name`` and ``price`` are copied at assembly time.
    The catalog references are kept for reporting and for stock credits,
    and go NULL if the catalog entry is later removed.
    """

    __tablename__ = 'order_item'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_order_item_quantity_positive'),
        CheckConstraint('price >= 0', name='ck_order_item_price_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    order_id = Column(BigIntId, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    menu_id = Column(BigIntId, ForeignKey('menu_item.id', ondelete='SET NULL'), nullable=True, index=True)
    size_id = Column(BigIntId, ForeignKey('item_size.id', ondelete='SET NULL'), nullable=True)
    custom_cake_id = Column(BigIntId, ForeignKey('custom_cake.id', ondelete='SET NULL'), nullable=True)
    item_name = Column(String(200), nullable=False)
    size_name = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')
    menu_item = relationship('MenuItem')
    size = relationship('ItemSize')
    custom_cake = relationship('CustomCake')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, item_name='{self.item_name}', quantity={self.quantity})>"

    @property
    def line_total(self):
        return self.price * self.quantity

    @property
    def draws_stock(self):
        """Catalog lines draw from the inventory; custom cakes do not."""
        return self.menu_id is not None and self.custom_cake_id is None

    def to_dict(self):
        return {
            'orderItemId': self.id,
            'menuId': self.menu_id,
            'sizeId': self.size_id,
            'customCakeId': self.custom_cake_id,
            'name': self.item_name,
            'size': self.size_name,
            'quantity': self.quantity,
            'price': str(self.price),
            'subtotal': str(self.line_total),
        }
