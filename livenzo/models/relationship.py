"""Relationship model - the accepted pairing of an owner and a renter."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class RelationshipStatus(enum.Enum):
    """Connection request status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Relationship(Base):
    """
    Owner <-> renter connection for a property.

    Only accepted, non-archived relationships take part in rent workflows.
    """

    __tablename__ = 'relationship'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    renter_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RelationshipStatus.PENDING.value)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship('UserProfile', foreign_keys=[owner_id])
    renter = relationship('UserProfile', foreign_keys=[renter_id])

    @property
    def is_active(self):
        return self.status == RelationshipStatus.ACCEPTED.value and not self.archived

    def __repr__(self):
        return f"<Relationship(id={self.id}, owner={self.owner_id}, renter={self.renter_id}, status='{self.status}')>"
