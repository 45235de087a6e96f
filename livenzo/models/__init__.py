"""Models package - exports all SQLAlchemy models."""
# People and connections
from livenzo.models.user_profile import UserProfile, UserRole
from livenzo.models.relationship import Relationship, RelationshipStatus

# Rent and payments
from livenzo.models.rent_status import RentStatus, RentState
from livenzo.models.payment import Payment, PaymentStatus, PaymentMethod, normalize_payment_method
from livenzo.models.manual_payment import ManualPayment, ProofStatus
from livenzo.models.meter_photo import MeterPhoto
from livenzo.models.provider_order import ProviderOrder, OrderStatus

# Audit
from livenzo.models.audit_log import AuditLog, AuditAction

__all__ = [
    'UserProfile', 'UserRole', 'Relationship', 'RelationshipStatus',
    'RentStatus', 'RentState',
    'Payment', 'PaymentStatus', 'PaymentMethod', 'normalize_payment_method',
    'ManualPayment', 'ProofStatus', 'MeterPhoto', 'ProviderOrder', 'OrderStatus',
    'AuditLog', 'AuditAction',
]
