"""Menu item model (catalog product)."""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cakeshop.database import Base, BigIntId


class MenuItem(Base):
    """
    Menu item - a product customers can put in their cart.

    Products with sizes keep their stock and price on each ItemSize;
    otherwise ``stock`` and ``base_price`` on the item itself apply.
    """

    __tablename__ = 'menu_item'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_menu_item_stock_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    has_sizes = Column(Boolean, nullable=False, default=False)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sizes = relationship('ItemSize', back_populates='menu_item', cascade='all, delete-orphan',
                         order_by='ItemSize.id')

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', stock={self.stock})>"

    @property
    def active_sizes(self):
        return [s for s in self.sizes if s.active]

    def find_size(self, size):
        """Find an active size by id or by name (trimmed, case-insensitive)."""
        if size is None:
            return None
        for item_size in self.active_sizes:
            if isinstance(size, int) and not isinstance(size, bool):
                if item_size.id == size:
                    return item_size
            elif item_size.size_name.strip().lower() == str(size).strip().lower():
                return item_size
        return None

    def to_dict(self):
        return {
            'menuId': self.id,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'image': self.image,
            'isActive': self.active,
            'hasSizes': self.has_sizes,
            'price': str(self.base_price),
            'stock': self.stock,
            'sizes': [s.to_dict() for s in self.active_sizes],
        }
