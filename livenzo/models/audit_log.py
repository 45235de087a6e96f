"""
Audit Log model for tracking rent and payment actions.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Rent status
    RENT_STATUS_CHANGED = "RENT_STATUS_CHANGED"
    MONTHLY_RENT_SET = "MONTHLY_RENT_SET"

    # Payments
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    MANUAL_PROOF_SUBMITTED = "MANUAL_PROOF_SUBMITTED"
    MANUAL_PROOF_VERIFIED = "MANUAL_PROOF_VERIFIED"
    MANUAL_PROOF_REJECTED = "MANUAL_PROOF_REJECTED"

    # Utilities
    METER_PHOTO_UPLOADED = "METER_PHOTO_UPLOADED"


from livenzo.database import Base, BigIntPK

class AuditLog(Base):
    """
    Audit log for tracking who changed rent and payment state.
    """
    __tablename__ = 'audit_log'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=True, index=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'rent_status', 'payment'
    resource_id = Column(Integer)  # ID of the affected resource
    details = Column(Text)  # JSON with additional details
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship('UserProfile')

    def __repr__(self):
        return f"<AuditLog {self.action.value} by user {self.user_id} at {self.created_at}>"
