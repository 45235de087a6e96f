"""Meter photo model."""
from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class MeterPhoto(Base):
    """Renter-submitted utility meter photo for a billing month."""

    __tablename__ = 'meter_photo'
    __table_args__ = (
        Index('ix_meter_photo_relationship_month', 'relationship_id', 'billing_month'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    relationship_id = Column(BigIntPK, ForeignKey('relationship.id', ondelete='CASCADE'), nullable=False)
    renter_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False)
    owner_id = Column(BigIntPK, ForeignKey('user_profile.id'), nullable=False, index=True)
    photo_url = Column(String(500), nullable=False)
    photo_name = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    billing_month = Column(String(7), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'relationship_id': self.relationship_id,
            'photo_url': self.photo_url,
            'photo_name': self.photo_name,
            'file_size': self.file_size,
            'billing_month': self.billing_month,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<MeterPhoto(id={self.id}, relationship={self.relationship_id}, month='{self.billing_month}')>"
