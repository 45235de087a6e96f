"""Payment record model."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class PaymentStatus(enum.Enum):
    """Payment record status enum."""
    PENDING = "pending"
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(enum.Enum):
    """How a payment reached the owner."""
    MANUAL_SWIPE = "manual_swipe"
    UPI_MANUAL = "upi_manual"
    RAZORPAY = "razorpay"
    OWNER_ENTERED = "owner_entered"
    RENTER_MARKED = "renter_marked"


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to string for DB storage.

    Args:
        value: PaymentMethod enum or string

    Returns:
        str: one of the PaymentMethod values

    Raises:
        ValueError: If value is invalid
    """
    if isinstance(value, PaymentMethod):
        return value.value

    if isinstance(value, str):
        normalized = value.lower().strip()
        if normalized in {m.value for m in PaymentMethod}:
            return normalized

    raise ValueError(f"Invalid payment method: {value!r}")


class Payment(Base):
    """
    Payment record for (renter, owner, billing_month).

    Many records exist historically per relationship; the one for the
    current billing month is the active one shown to both parties.
    """

    __tablename__ = 'payment'
    __table_args__ = (
        UniqueConstraint('renter_id', 'owner_id', 'billing_month', name='uq_payment_renter_owner_month'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    renter_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    owner_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    relationship_id = Column(BigIntPK, ForeignKey('relationship.id', ondelete='CASCADE'), nullable=False, index=True)
    billing_month = Column(String(7), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    electric_bill_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    transaction_id = Column(String(100), nullable=True)
    provider_order_id = Column(String(100), nullable=True, index=True)
    provider_payment_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    rental = relationship('Relationship')

    def to_dict(self):
        return {
            'id': self.id,
            'relationship_id': self.relationship_id,
            'billing_month': self.billing_month,
            'amount': str(self.amount),
            'electric_bill_amount': str(self.electric_bill_amount) if self.electric_bill_amount is not None else None,
            'status': self.status,
            'payment_method': self.payment_method,
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
            'transaction_id': self.transaction_id,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, month='{self.billing_month}', status='{self.status}', amount={self.amount})>"
