"""Rent status service - monthly rent, status transitions and the owner's renter list."""
import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from livenzo.blueprints.metrics import record_transition
from livenzo.exceptions import (
    BackendError, NotFoundError, TransitionRejectedError, UnauthorizedError, ValidationError
)
from livenzo.models import (
    AuditAction, MeterPhoto, Payment, PaymentMethod, PaymentStatus, Relationship,
    RelationshipStatus, RentState, RentStatus, normalize_payment_method
)
from livenzo.rent.transitions import ACTION_PAID, ACTION_UNPAID, validate_transition
from livenzo.services import notification_service
from livenzo.services.audit_service import log_action
from livenzo.utils.formatters import current_billing_month, parse_amount, recent_billing_months

logger = logging.getLogger(__name__)

Notifier = Callable[[str, int, dict], bool]


# ---------------------------------------------------------------------------
# Typed projections
# ---------------------------------------------------------------------------

@dataclass
class RenterProfile:
    id: int
    full_name: str
    avatar_url: Optional[str]
    room_number: Optional[str]


@dataclass
class LatestPayment:
    id: int
    status: str
    amount: Decimal
    payment_method: str
    payment_date: Optional[datetime]


@dataclass
class RenterPaymentSummary:
    """One row of the owner's rent management list."""
    relationship_id: int
    renter: RenterProfile
    billing_month: str
    status: Optional[str]  # None: no rent set for the month
    amount: Optional[Decimal]
    due_date: Optional[date]
    overdue: bool
    latest_payment: Optional[LatestPayment]
    meter_photo_count: int

    @property
    def has_meter_photos(self) -> bool:
        return self.meter_photo_count > 0

    def to_dict(self):
        data = asdict(self)
        data['amount'] = str(self.amount) if self.amount is not None else None
        data['due_date'] = self.due_date.isoformat() if self.due_date else None
        data['has_meter_photos'] = self.has_meter_photos
        if self.latest_payment:
            data['latest_payment']['amount'] = str(self.latest_payment.amount)
            payment_date = self.latest_payment.payment_date
            data['latest_payment']['payment_date'] = payment_date.isoformat() if payment_date else None
        return data


@dataclass
class StatusChange:
    """Result of an applied transition."""
    previous_status: str
    rent_status: RentStatus
    payment: Payment


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_relationship(session: Session, relationship_id: int) -> Relationship:
    relationship = session.get(Relationship, relationship_id)
    if relationship is None:
        raise NotFoundError('Renter relationship not found.')
    return relationship


def get_owned_relationship(session: Session, relationship_id: int, owner_id: int) -> Relationship:
    """Active relationship belonging to the owner."""
    relationship = get_relationship(session, relationship_id)
    if relationship.owner_id != owner_id:
        raise UnauthorizedError('This renter is not connected to you.')
    if not relationship.is_active:
        raise ValidationError('This rental relationship is not active.')
    return relationship


def get_active_relationship_for_renter(session: Session, renter_id: int) -> Relationship:
    """The renter's current (accepted, non-archived) relationship."""
    relationship = session.query(Relationship).filter(
        Relationship.renter_id == renter_id,
        Relationship.status == RelationshipStatus.ACCEPTED.value,
        Relationship.archived.is_(False)
    ).order_by(Relationship.created_at.desc(), Relationship.id.desc()).first()
    if relationship is None:
        raise NotFoundError('You are not connected to an owner yet.')
    return relationship


def get_rent_status(session: Session, relationship_id: int, billing_month: str) -> Optional[RentStatus]:
    return session.query(RentStatus).filter(
        RentStatus.relationship_id == relationship_id,
        RentStatus.billing_month == billing_month
    ).populate_existing().first()


def get_payment_record(session: Session, renter_id: int, owner_id: int, billing_month: str) -> Optional[Payment]:
    return session.query(Payment).filter(
        Payment.renter_id == renter_id,
        Payment.owner_id == owner_id,
        Payment.billing_month == billing_month
    ).populate_existing().first()


# ---------------------------------------------------------------------------
# Upserts
# ---------------------------------------------------------------------------

def _insert_for(session: Session, model):
    """INSERT construct with ON CONFLICT support for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert(model.__table__)
    if dialect == 'sqlite':
        return sqlite.insert(model.__table__)
    raise BackendError(f'Upsert is not supported on {dialect}')


def upsert_rent_status(
    session: Session,
    relationship_id: int,
    billing_month: str,
    status: str,
    current_amount: Decimal,
    due_date: Optional[date] = None,
    update_status: bool = True
) -> RentStatus:
    """
    Create or update the status row for (relationship_id, billing_month).

    Repeated calls for the same key leave a single row holding the last write.
    With update_status=False an existing row keeps its status.
    """
    values = {
        'relationship_id': relationship_id,
        'billing_month': billing_month,
        'status': status,
        'current_amount': current_amount,
        'due_date': due_date,
    }
    updates = {
        'current_amount': current_amount,
        'due_date': due_date,
        'updated_at': func.now(),
    }
    if update_status:
        updates['status'] = status

    try:
        stmt = _insert_for(session, RentStatus).values(**values)
        stmt = stmt.on_conflict_do_update(index_elements=['relationship_id', 'billing_month'], set_=updates)
        session.execute(stmt)
        return get_rent_status(session, relationship_id, billing_month)
    except SQLAlchemyError as e:
        logger.exception(f"[RENT] Status upsert failed for relationship {relationship_id} {billing_month}: {e}")
        raise BackendError('Could not save the rent status. Please try again.') from e


def upsert_payment_record(
    session: Session,
    relationship: Relationship,
    billing_month: str,
    amount: Decimal,
    status: str,
    payment_method,
    payment_date: Optional[datetime] = None,
    electric_bill_amount: Optional[Decimal] = None,
    transaction_id: Optional[str] = None,
    provider_order_id: Optional[str] = None,
    provider_payment_id: Optional[str] = None
) -> Payment:
    """Create or update the payment record for (renter, owner, billing_month)."""
    method = normalize_payment_method(payment_method)
    values = {
        'renter_id': relationship.renter_id,
        'owner_id': relationship.owner_id,
        'relationship_id': relationship.id,
        'billing_month': billing_month,
        'amount': amount,
        'electric_bill_amount': electric_bill_amount,
        'status': status,
        'payment_method': method,
        'payment_date': payment_date,
        'transaction_id': transaction_id,
        'provider_order_id': provider_order_id,
        'provider_payment_id': provider_payment_id,
    }
    updates = {
        'relationship_id': relationship.id,
        'amount': amount,
        'status': status,
        'payment_method': method,
        'payment_date': payment_date,
        'updated_at': func.now(),
    }
    # Optional columns are only overwritten when supplied
    for key in ('electric_bill_amount', 'transaction_id', 'provider_order_id', 'provider_payment_id'):
        if values[key] is not None:
            updates[key] = values[key]

    try:
        stmt = _insert_for(session, Payment).values(**values)
        stmt = stmt.on_conflict_do_update(index_elements=['renter_id', 'owner_id', 'billing_month'], set_=updates)
        session.execute(stmt)
        return get_payment_record(session, relationship.renter_id, relationship.owner_id, billing_month)
    except SQLAlchemyError as e:
        logger.exception(f"[RENT] Payment upsert failed for relationship {relationship.id} {billing_month}: {e}")
        raise BackendError('Could not save the payment record. Please try again.') from e


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def dispatch_notification(notifier: Optional[Notifier], notification_type: str, recipient_id: int, payload: dict) -> None:
    """Fire a notification; failures are logged and never raised."""
    notifier = notifier or notification_service.send_notification
    try:
        if not notifier(notification_type, recipient_id, payload):
            logger.warning(f"[NOTIFY] '{notification_type}' to user {recipient_id} was not delivered")
    except Exception as e:
        logger.warning(f"[NOTIFY] '{notification_type}' to user {recipient_id} failed: {e}")


def apply_status_action(
    session: Session,
    relationship: Relationship,
    action: str,
    actor_id: Optional[int] = None,
    billing_month: Optional[str] = None,
    payment_method=PaymentMethod.MANUAL_SWIPE,
    notifier: Optional[Notifier] = None,
    amount: Optional[Decimal] = None,
    electric_bill_amount: Optional[Decimal] = None,
    transaction_id: Optional[str] = None,
    provider_order_id: Optional[str] = None,
    provider_payment_id: Optional[str] = None,
    payment_date: Optional[datetime] = None
) -> StatusChange:
    """
    Move the month's rent status to `action` ('paid' or 'unpaid').

    The transition is validated first; a rejected one raises
    TransitionRejectedError and nothing is written. An applied one updates
    the status row and the month's payment record, writes an audit entry
    and, for pending -> unpaid, reminds the renter.

    Note: Caller is responsible for committing the session.
    """
    billing_month = billing_month or current_billing_month()
    current = get_rent_status(session, relationship.id, billing_month)
    previous_status = current.status if current else None

    decision = validate_transition(previous_status, action)
    if not decision.allowed:
        record_transition(action, decision.reason)
        logger.info(
            f"[RENT] Rejected '{action}' on relationship {relationship.id} {billing_month} "
            f"(current={previous_status}): {decision.reason}"
        )
        raise TransitionRejectedError(decision.reason, decision.message, previous_status, action)

    rent_status = upsert_rent_status(
        session, relationship.id, billing_month, action,
        current.current_amount, current.due_date
    )

    if action == ACTION_PAID:
        payment_status = PaymentStatus.PAID.value
        payment_date = payment_date or datetime.now(timezone.utc)
    else:
        payment_status = PaymentStatus.UNPAID.value
        payment_date = None

    payment = upsert_payment_record(
        session, relationship, billing_month,
        amount=amount if amount is not None else current.current_amount,
        status=payment_status,
        payment_method=payment_method,
        payment_date=payment_date,
        electric_bill_amount=electric_bill_amount,
        transaction_id=transaction_id,
        provider_order_id=provider_order_id,
        provider_payment_id=provider_payment_id,
    )

    rent_status.last_payment_id = payment.id
    session.flush()

    log_action(
        session,
        AuditAction.RENT_STATUS_CHANGED,
        resource_type='rent_status',
        resource_id=rent_status.id,
        details={
            'billing_month': billing_month,
            'from': previous_status,
            'to': action,
            'payment_method': payment.payment_method,
            'payment_id': payment.id,
        },
        actor_id=actor_id
    )
    record_transition(action, 'applied')
    logger.info(
        f"[RENT] relationship {relationship.id} {billing_month}: {previous_status} -> {action} "
        f"by user {actor_id} ({payment.payment_method})"
    )

    if previous_status == RentState.PENDING.value and action == ACTION_UNPAID:
        dispatch_notification(notifier, notification_service.RENT_REMINDER, relationship.renter_id, {
            'billing_month': billing_month,
            'amount': current.current_amount,
            'due_date': current.due_date.isoformat() if current.due_date else '',
        })

    return StatusChange(previous_status=previous_status, rent_status=rent_status, payment=payment)


def set_monthly_rent(
    session: Session,
    relationship: Relationship,
    amount,
    due_date: Optional[date] = None,
    actor_id: Optional[int] = None,
    billing_month: Optional[str] = None
) -> RentStatus:
    """
    Set the rent due for a month.

    Creates the month's status row as pending, or updates amount and due
    date of an existing row without touching its status.

    Note: Caller is responsible for committing the session.
    """
    if not relationship.is_active:
        raise ValidationError('This rental relationship is not active.')
    try:
        amount = parse_amount(amount, 'rent amount', allow_zero=False)
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'amount'})

    billing_month = billing_month or current_billing_month()
    rent_status = upsert_rent_status(
        session, relationship.id, billing_month, RentState.PENDING.value,
        amount, due_date, update_status=False
    )

    log_action(
        session,
        AuditAction.MONTHLY_RENT_SET,
        resource_type='rent_status',
        resource_id=rent_status.id,
        details={'billing_month': billing_month, 'amount': amount, 'due_date': due_date},
        actor_id=actor_id
    )
    logger.info(f"[RENT] Rent for relationship {relationship.id} {billing_month} set to {amount}")
    return rent_status


def list_owner_renters(session: Session, owner_id: int, billing_month: Optional[str] = None,
                       today: Optional[date] = None) -> List[RenterPaymentSummary]:
    """Active renters of an owner with their status for the month."""
    billing_month = billing_month or current_billing_month()
    relationships = session.query(Relationship).filter(
        Relationship.owner_id == owner_id,
        Relationship.status == RelationshipStatus.ACCEPTED.value,
        Relationship.archived.is_(False)
    ).order_by(Relationship.id).all()
    if not relationships:
        return []

    ids = [r.id for r in relationships]
    statuses: Dict[int, RentStatus] = {
        s.relationship_id: s for s in session.query(RentStatus).filter(
            RentStatus.relationship_id.in_(ids),
            RentStatus.billing_month == billing_month
        ).populate_existing()
    }
    payments: Dict[int, Payment] = {
        p.relationship_id: p for p in session.query(Payment).filter(
            Payment.relationship_id.in_(ids),
            Payment.billing_month == billing_month
        ).populate_existing()
    }
    photo_counts = dict(
        session.query(MeterPhoto.relationship_id, func.count(MeterPhoto.id)).filter(
            MeterPhoto.relationship_id.in_(ids),
            MeterPhoto.billing_month == billing_month
        ).group_by(MeterPhoto.relationship_id).all()
    )

    summaries = []
    for rel in relationships:
        renter = rel.renter
        rent = statuses.get(rel.id)
        payment = payments.get(rel.id)
        summaries.append(RenterPaymentSummary(
            relationship_id=rel.id,
            renter=RenterProfile(
                id=renter.id,
                full_name=renter.display_name,
                avatar_url=renter.avatar_url,
                room_number=renter.room_number,
            ),
            billing_month=billing_month,
            status=rent.status if rent else None,
            amount=rent.current_amount if rent else None,
            due_date=rent.due_date if rent else None,
            overdue=rent.is_overdue(today) if rent else False,
            latest_payment=LatestPayment(
                id=payment.id,
                status=payment.status,
                amount=payment.amount,
                payment_method=payment.payment_method,
                payment_date=payment.payment_date,
            ) if payment else None,
            meter_photo_count=photo_counts.get(rel.id, 0),
        ))
    return summaries


def get_renter_status(session: Session, relationship: Relationship, billing_month: Optional[str] = None,
                      today: Optional[date] = None) -> dict:
    """Status of the month as shown to the renter."""
    billing_month = billing_month or current_billing_month()
    rent = get_rent_status(session, relationship.id, billing_month)
    if rent is None:
        return {
            'relationship_id': relationship.id,
            'billing_month': billing_month,
            'rent_set': False,
            'status': None,
            'amount': None,
            'due_date': None,
            'overdue': False,
        }
    return {
        'relationship_id': relationship.id,
        'billing_month': billing_month,
        'rent_set': True,
        'status': rent.status,
        'amount': str(rent.current_amount),
        'due_date': rent.due_date.isoformat() if rent.due_date else None,
        'overdue': rent.is_overdue(today),
    }


def get_payment_history(session: Session, relationship: Relationship, months: int = 12,
                        today: Optional[date] = None) -> List[dict]:
    """
    Per-month breakdown, newest first.

    Months without a payment record read as pending.
    """
    month_keys = recent_billing_months(months, today)
    payments = {
        p.billing_month: p for p in session.query(Payment).filter(
            Payment.renter_id == relationship.renter_id,
            Payment.owner_id == relationship.owner_id,
            Payment.billing_month.in_(month_keys)
        )
    }
    statuses = {
        s.billing_month: s for s in session.query(RentStatus).filter(
            RentStatus.relationship_id == relationship.id,
            RentStatus.billing_month.in_(month_keys)
        )
    }

    history = []
    for month in month_keys:
        payment = payments.get(month)
        rent = statuses.get(month)
        amount = payment.amount if payment else (rent.current_amount if rent else None)
        history.append({
            'billing_month': month,
            'status': payment.status if payment else PaymentStatus.PENDING.value,
            'amount': str(amount) if amount is not None else None,
            'electric_bill_amount': (
                str(payment.electric_bill_amount)
                if payment and payment.electric_bill_amount is not None else None
            ),
            'payment_method': payment.payment_method if payment else None,
            'payment_date': payment.payment_date.isoformat() if payment and payment.payment_date else None,
        })
    return history
