"""Custom cake model - a customer-designed cake priced by staff."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cakeshop.database import Base, BigIntId


class CustomCakeStatus(enum.Enum):
    PENDING_REVIEW = 'pending_review'
    PRICED = 'priced'
    ORDERED = 'ordered'
    CANCELLED = 'cancelled'


class CustomCake(Base):
    """
    Custom Cake - design choices submitted by a customer.

    Staff review the design and set ``price``; only then can it be ordered,
    as a single order line. Custom cakes are baked to order and have no stock.
    """

    __tablename__ = 'custom_cake'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigIntId, ForeignKey('customer.id', ondelete='CASCADE'), nullable=False, index=True)
    size = Column(String(50), nullable=False)
    flavor = Column(String(100), nullable=False)
    icing_style = Column(String(50), nullable=False)
    icing_color = Column(String(20), nullable=True)
    filling = Column(String(50), nullable=False, default='none')
    decorations = Column(String(50), nullable=False, default='none')
    custom_text = Column(String(255), nullable=True)
    reference_image_url = Column(String(255), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default=CustomCakeStatus.PENDING_REVIEW.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer')

    def __repr__(self):
        return f"<CustomCake(id={self.id}, size='{self.size}', status='{self.status}', price={self.price})>"

    @property
    def display_name(self):
        return f"Custom {self.flavor} cake"

    def to_dict(self):
        return {
            'customCakeId': self.id,
            'customerId': self.customer_id,
            'size': self.size,
            'flavor': self.flavor,
            'icingStyle': self.icing_style,
            'icingColor': self.icing_color,
            'filling': self.filling,
            'decorations': self.decorations,
            'customText': self.custom_text,
            'referenceImageUrl': self.reference_image_url,
            'price': str(self.price) if self.price is not None else None,
            'status': self.status,
        }
