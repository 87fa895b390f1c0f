"""Order model."""
import enum
from decimal import Decimal
from sqlalchemy import Column, String, Text, Boolean, Numeric, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cakeshop.database import Base, BigIntId


class OrderStatus(str, enum.Enum):
    """Order fulfillment status."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class DeliveryMethod(str, enum.Enum):
    PICKUP = 'pickup'
    DELIVERY = 'delivery'


class PaymentMethod(str, enum.Enum):
    CASH = 'cash'
    GCASH = 'gcash'


TERMINAL_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


class Order(Base):
    """
    Order - durable record of a checkout.

    Contact fields and item names/prices are copies taken when the order
    was assembled; later profile or catalog edits do not reach them.
    After creation only ``status``, ``payment_*`` and ``stock_debited``
    change, and only through the lifecycle service.
    """

    __tablename__ = 'orders'
    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='ck_orders_total_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigIntId, ForeignKey('customer.id', ondelete='RESTRICT'), nullable=False, index=True)

    # Contact snapshot
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False)

    delivery_method = Column(String(20), nullable=False, default=DeliveryMethod.PICKUP.value)
    delivery_address = Column(Text, nullable=True)
    pickup_date = Column(Date, nullable=True)

    payment_method = Column(String(20), nullable=False)
    payment_id = Column(String(100), nullable=True)
    payment_verified = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    # True between acceptance (stock debited) and cancellation (stock credited back)
    stock_debited = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.position')

    def __repr__(self):
        return f"<Order(id={self.id}, total={self.total_amount}, status='{self.status}')>"

    @property
    def items_total(self):
        """Sum of the snapshot line totals."""
        return sum((item.line_total for item in self.items), Decimal('0.00'))

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            'orderId': self.id,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'customerEmail': self.customer_email,
            'customerPhone': self.customer_phone,
            'totalAmount': str(self.total_amount),
            'deliveryMethod': self.delivery_method,
            'deliveryAddress': self.delivery_address,
            'pickupDate': self.pickup_date.isoformat() if self.pickup_date else None,
            'paymentMethod': self.payment_method,
            'paymentId': self.payment_id,
            'paymentVerified': self.payment_verified,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'items': [item.to_dict() for item in self.items],
        }
