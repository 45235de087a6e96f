"""Razorpay order attempt model."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class OrderStatus(enum.Enum):
    """Outcome of one checkout attempt."""
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ProviderOrder(Base):
    """
    One Razorpay order opened by the payment flow.

    Every "Try Again" opens a new order, so a month can have several. The
    month's payment record is only written once an order reports a result.
    """

    __tablename__ = 'provider_order'
    __table_args__ = (
        Index('ix_provider_order_relationship_month', 'relationship_id', 'billing_month'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(String(100), nullable=False, unique=True)
    relationship_id = Column(BigIntPK, ForeignKey('relationship.id', ondelete='CASCADE'), nullable=False)
    renter_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False)
    owner_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False)
    billing_month = Column(String(7), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    electric_bill_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=OrderStatus.CREATED.value)
    provider_payment_id = Column(String(100), nullable=True)
    failure_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.CREATED.value

    def __repr__(self):
        return f"<ProviderOrder(order_id='{self.order_id}', month='{self.billing_month}', status='{self.status}')>"
