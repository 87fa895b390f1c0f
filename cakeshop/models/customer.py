"""Customer model - shop accounts (customers and staff)."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from cakeshop.database import Base, BigIntId


class CustomerRole(enum.Enum):
    """Account levels carried in the bearer token."""
    CUSTOMER = 'Customer'
    STAFF = 'Staff'
    ADMIN = 'Admin'


class Customer(Base):
    """Customer account. Orders keep their own copy of the contact fields."""

    __tablename__ = 'customer'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default=CustomerRole.CUSTOMER.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def is_staff(self):
        """Check if account is staff or admin."""
        return self.role in [CustomerRole.STAFF.value, CustomerRole.ADMIN.value]

    def __repr__(self):
        return f"<Customer(id={self.id}, email='{self.email}', role='{self.role}')>"
