"""Item size model (product variant)."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from cakeshop.database import Base, BigIntId


class ItemSize(Base):
    """Item Size - a priced, separately stocked size of a menu item."""

    __tablename__ = 'item_size'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_item_size_stock_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    menu_id = Column(BigIntId, ForeignKey('menu_item.id', ondelete='CASCADE'), nullable=False, index=True)
    size_name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    # Relationships
    menu_item = relationship('MenuItem', back_populates='sizes')

    def __repr__(self):
        return f"<ItemSize(id={self.id}, menu_id={self.menu_id}, size_name='{self.size_name}', stock={self.stock})>"

    def to_dict(self):
        return {
            'sizeId': self.id,
            'sizeName': self.size_name,
            'price': str(self.price),
            'stock': self.stock,
        }
