"""User profile model - owners and renters."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from livenzo.database import Base, BigIntPK


class UserRole(enum.Enum):
    """Role a profile plays in the rental marketplace."""
    OWNER = "owner"
    RENTER = "renter"


class UserProfile(Base):
    """Profile of an authenticated user (identity is managed upstream)."""

    __tablename__ = 'user_profile'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.RENTER.value)
    avatar_url = Column(String(500), nullable=True)
    room_number = Column(String(20), nullable=True)
    upi_id = Column(String(100), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def display_name(self):
        return self.full_name or 'Unknown Renter'

    def __repr__(self):
        return f"<UserProfile(id={self.id}, email='{self.email}', role='{self.role}')>"
