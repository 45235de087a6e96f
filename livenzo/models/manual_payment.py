"""Manual payment proof model."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class ProofStatus(enum.Enum):
    """Owner verification status of a submitted proof."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ManualPayment(Base):
    """
    Renter-submitted evidence of an out-of-band (UPI) payment.

    Stays pending until the owner verifies or rejects it.
    """

    __tablename__ = 'manual_payment'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    renter_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    owner_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    relationship_id = Column(BigIntPK, ForeignKey('relationship.id', ondelete='CASCADE'), nullable=False)
    billing_month = Column(String(7), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_id = Column(String(100), nullable=False)
    proof_image_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ProofStatus.PENDING.value)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=True)

    # Relationships
    renter = relationship('UserProfile', foreign_keys=[renter_id])

    def to_dict(self):
        return {
            'id': self.id,
            'relationship_id': self.relationship_id,
            'renter_id': self.renter_id,
            'renter_name': self.renter.display_name if self.renter else None,
            'billing_month': self.billing_month,
            'amount': str(self.amount),
            'transaction_id': self.transaction_id,
            'proof_image_url': self.proof_image_url,
            'notes': self.notes,
            'status': self.status,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
        }

    def __repr__(self):
        return f"<ManualPayment(id={self.id}, txn='{self.transaction_id}', status='{self.status}')>"
