"""Rent status model - payment state of a relationship for one billing month."""
import enum
from datetime import date
from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class RentState(enum.Enum):
    """Rent status enum."""
    PENDING = "pending"
    UNPAID = "unpaid"
    PAID = "paid"


class RentStatus(Base):
    """
    Rent status for (relationship, billing_month).

    At most one row exists per key; writers go through an upsert on
    (relationship_id, billing_month) so concurrent writes are last-write-wins.
    """

    __tablename__ = 'rent_status'
    __table_args__ = (
        UniqueConstraint('relationship_id', 'billing_month', name='uq_rent_status_relationship_month'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    relationship_id = Column(BigIntPK, ForeignKey('relationship.id', ondelete='CASCADE'), nullable=False, index=True)
    billing_month = Column(String(7), nullable=False)  # YYYY-MM
    status = Column(String(20), nullable=False, default=RentState.PENDING.value)
    current_amount = Column(Numeric(12, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    last_payment_id = Column(BigIntPK, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    rental = relationship('Relationship')

    def is_overdue(self, today=None) -> bool:
        """A non-paid status past its due date (calculated, not stored)."""
        today = today or date.today()
        return (
            self.status != RentState.PAID.value
            and self.due_date is not None
            and self.due_date < today
        )

    def __repr__(self):
        return (
            f"<RentStatus(relationship={self.relationship_id}, month='{self.billing_month}', "
            f"status='{self.status}', amount={self.current_amount})>"
        )
