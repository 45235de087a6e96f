"""Payment service - renter self-reports, owner entries, manual proof review and Razorpay orders."""
import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from livenzo.exceptions import NotFoundError, TransitionRejectedError, UnauthorizedError, ValidationError
from livenzo.models import (
    AuditAction, ManualPayment, OrderStatus, Payment, PaymentMethod, PaymentStatus, ProofStatus, ProviderOrder,
    Relationship
)
from livenzo.rent.transitions import ACTION_PAID
from livenzo.services import notification_service
from livenzo.services.audit_service import log_action
from livenzo.services.rent_status_service import (
    dispatch_notification, apply_status_action, get_payment_record, get_rent_status, upsert_payment_record
)
from livenzo.utils.formatters import current_billing_month, parse_amount

logger = logging.getLogger(__name__)


def mark_paid_by_renter(session: Session, relationship: Relationship, billing_month: Optional[str] = None,
                        notifier=None):
    """
    Renter reports the month as paid without going through a provider.

    Goes through the same transition rules as the owner's swipe; whichever
    write lands last is kept.
    """
    change = apply_status_action(
        session, relationship, ACTION_PAID,
        actor_id=relationship.renter_id,
        billing_month=billing_month,
        payment_method=PaymentMethod.RENTER_MARKED,
        notifier=notifier,
    )
    dispatch_notification(notifier, notification_service.PAYMENT_RECEIVED, relationship.owner_id, {
        'billing_month': change.rent_status.billing_month,
        'amount': change.payment.amount,
        'payment_method': 'renter confirmation',
    })
    return change


def record_owner_payment(
    session: Session,
    relationship: Relationship,
    amount,
    payment_date: Optional[date] = None,
    billing_month: Optional[str] = None,
    today: Optional[date] = None
):
    """
    Owner records a payment received outside the app.

    Args:
        amount: Amount received (must be greater than 0)
        payment_date: Day it was received; defaults to today, cannot be in the future

    Note: Caller is responsible for committing the session.
    """
    try:
        amount = parse_amount(amount, 'payment amount', allow_zero=False)
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'amount'})

    today = today or date.today()
    payment_date = payment_date or today
    if payment_date > today:
        raise ValidationError('Payment date cannot be in the future', {'field': 'payment_date'})

    paid_at = datetime.combine(payment_date, time.min, tzinfo=timezone.utc)
    change = apply_status_action(
        session, relationship, ACTION_PAID,
        actor_id=relationship.owner_id,
        billing_month=billing_month,
        payment_method=PaymentMethod.OWNER_ENTERED,
        amount=amount,
        payment_date=paid_at,
    )
    log_action(
        session,
        AuditAction.PAYMENT_RECORDED,
        resource_type='payment',
        resource_id=change.payment.id,
        details={'amount': amount, 'payment_date': payment_date, 'method': PaymentMethod.OWNER_ENTERED.value},
        actor_id=relationship.owner_id
    )
    return change


def submit_manual_proof(
    session: Session,
    relationship: Relationship,
    amount,
    transaction_id: str,
    proof_image_url: Optional[str] = None,
    notes: Optional[str] = None,
    billing_month: Optional[str] = None,
    electric_bill_amount: Optional[Decimal] = None,
    notifier=None
) -> ManualPayment:
    """
    Record renter-submitted evidence of a UPI payment for owner review.

    Creates a pending proof and a pending payment record for the month.

    Note: Caller is responsible for committing the session.
    """
    transaction_id = (transaction_id or '').strip()
    if not transaction_id:
        raise ValidationError('Please enter the transaction ID', {'field': 'transaction_id'})
    if len(transaction_id) > 100:
        raise ValidationError('Transaction ID is too long', {'field': 'transaction_id'})
    try:
        amount = parse_amount(amount, 'payment amount', allow_zero=False)
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'amount'})

    billing_month = billing_month or current_billing_month()
    notes = (notes or '').strip() or None

    proof = ManualPayment(
        renter_id=relationship.renter_id,
        owner_id=relationship.owner_id,
        relationship_id=relationship.id,
        billing_month=billing_month,
        amount=amount,
        transaction_id=transaction_id,
        proof_image_url=proof_image_url,
        notes=notes,
        status=ProofStatus.PENDING.value,
    )
    session.add(proof)
    session.flush()

    existing = get_payment_record(session, relationship.renter_id, relationship.owner_id, billing_month)
    if existing is not None and existing.status == PaymentStatus.PAID.value:
        logger.info(f"[FLOW] Proof {proof.id} submitted for already paid month {billing_month}")
    else:
        upsert_payment_record(
            session, relationship, billing_month,
            amount=amount,
            status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod.UPI_MANUAL,
            electric_bill_amount=electric_bill_amount,
            transaction_id=transaction_id,
        )

    log_action(
        session,
        AuditAction.MANUAL_PROOF_SUBMITTED,
        resource_type='manual_payment',
        resource_id=proof.id,
        details={'billing_month': billing_month, 'amount': amount, 'transaction_id': transaction_id},
        actor_id=relationship.renter_id
    )

    renter = relationship.renter
    dispatch_notification(notifier, notification_service.MANUAL_PROOF_SUBMITTED, relationship.owner_id, {
        'billing_month': billing_month,
        'amount': amount,
        'transaction_id': transaction_id,
        'renter_name': renter.display_name if renter else '',
    })
    return proof


def list_manual_proofs(session: Session, owner_id: int, status: Optional[str] = ProofStatus.PENDING.value
                       ) -> List[ManualPayment]:
    """Proofs awaiting (or past) the owner's review, newest first."""
    query = session.query(ManualPayment).filter(ManualPayment.owner_id == owner_id)
    if status:
        query = query.filter(ManualPayment.status == status)
    return query.order_by(ManualPayment.submitted_at.desc(), ManualPayment.id.desc()).all()


def verify_manual_proof(session: Session, proof_id: int, owner_id: int, decision: str,
                        notes: Optional[str] = None, notifier=None) -> ManualPayment:
    """
    Owner verifies or rejects a manual payment proof.

    Verifying marks the month paid. If the rent status cannot move to paid
    (e.g. it already is) the verification still stands and the rejected
    transition is only logged. Rejecting marks the payment record failed.

    Note: Caller is responsible for committing the session.
    """
    if decision not in (ProofStatus.VERIFIED.value, ProofStatus.REJECTED.value):
        raise ValidationError("Decision must be 'verified' or 'rejected'", {'field': 'decision'})

    proof = session.get(ManualPayment, proof_id)
    if proof is None:
        raise NotFoundError('Payment proof not found.')
    if proof.owner_id != owner_id:
        raise UnauthorizedError('This payment proof belongs to another owner.')
    if proof.status != ProofStatus.PENDING.value:
        raise ValidationError(f'This payment proof was already {proof.status}')

    relationship = session.get(Relationship, proof.relationship_id)
    now = datetime.now(timezone.utc)
    proof.status = decision
    proof.verified_at = now
    proof.verified_by = owner_id
    if notes:
        proof.notes = f"{proof.notes}\n{notes}" if proof.notes else notes

    if decision == ProofStatus.VERIFIED.value:
        try:
            apply_status_action(
                session, relationship, ACTION_PAID,
                actor_id=owner_id,
                billing_month=proof.billing_month,
                payment_method=PaymentMethod.UPI_MANUAL,
                amount=proof.amount,
                transaction_id=proof.transaction_id,
                payment_date=now,
            )
        except TransitionRejectedError as e:
            logger.warning(f"[FLOW] Proof {proof.id} verified but rent status not updated: {e.reason}")
            # Still record the verified payment against the month
            if get_rent_status(session, relationship.id, proof.billing_month) is not None:
                upsert_payment_record(
                    session, relationship, proof.billing_month,
                    amount=proof.amount,
                    status=PaymentStatus.PAID.value,
                    payment_method=PaymentMethod.UPI_MANUAL,
                    payment_date=now,
                    transaction_id=proof.transaction_id,
                )
        action = AuditAction.MANUAL_PROOF_VERIFIED
        notification_type = notification_service.MANUAL_PROOF_VERIFIED
    else:
        payment = get_payment_record(session, proof.renter_id, proof.owner_id, proof.billing_month)
        if payment is not None and payment.status != PaymentStatus.PAID.value:
            payment.status = PaymentStatus.FAILED.value
        action = AuditAction.MANUAL_PROOF_REJECTED
        notification_type = notification_service.MANUAL_PROOF_REJECTED

    session.flush()
    log_action(
        session,
        action,
        resource_type='manual_payment',
        resource_id=proof.id,
        details={'billing_month': proof.billing_month, 'notes': notes},
        actor_id=owner_id
    )
    dispatch_notification(notifier, notification_type, proof.renter_id, {
        'billing_month': proof.billing_month,
        'amount': proof.amount,
        'notes': notes or '',
    })
    logger.info(f"[FLOW] Proof {proof.id} {decision} by owner {owner_id}")
    return proof


# ---------------------------------------------------------------------------
# Razorpay orders
# ---------------------------------------------------------------------------

def open_provider_order(
    session: Session,
    relationship: Relationship,
    billing_month: str,
    order_id: str,
    amount: Decimal,
    electric_bill_amount: Optional[Decimal] = None
) -> ProviderOrder:
    """
    Remember a Razorpay order so its result can be matched to the month
    later, even after the renter retried or left the flow.

    The month's payment record is not touched until the order reports back.
    """
    order = ProviderOrder(
        order_id=order_id,
        relationship_id=relationship.id,
        renter_id=relationship.renter_id,
        owner_id=relationship.owner_id,
        billing_month=billing_month,
        amount=amount,
        electric_bill_amount=electric_bill_amount,
        status=OrderStatus.CREATED.value,
    )
    session.add(order)
    session.flush()
    logger.info(f"[RAZORPAY] Order {order_id} opened for relationship {relationship.id} {billing_month} ({amount})")
    return order


def find_provider_order(session: Session, order_id: Optional[str]) -> Optional[ProviderOrder]:
    if not order_id:
        return None
    return session.query(ProviderOrder).filter(ProviderOrder.order_id == order_id).first()


def abandon_provider_order(session: Session, order: ProviderOrder, reason: str) -> ProviderOrder:
    """The renter left the checkout before it reported anything. Only the order is closed."""
    if order.is_open:
        order.status = OrderStatus.CANCELLED.value
        order.failure_reason = reason[:255]
        session.flush()
    return order


def record_provider_failure(session: Session, order: ProviderOrder, reason: str, cancelled: bool = False,
                            actor_id: Optional[int] = None) -> Optional[Payment]:
    """
    A checkout ended without capturing money.

    Closes the order and marks the month's payment record failed. A paid
    month and an order that already has an outcome are left alone.
    """
    if not order.is_open:
        logger.info(f"[RAZORPAY] Order {order.order_id} already {order.status}, ignoring failure ({reason})")
        return None

    order.status = (OrderStatus.CANCELLED if cancelled else OrderStatus.FAILED).value
    order.failure_reason = reason[:255]

    existing = get_payment_record(session, order.renter_id, order.owner_id, order.billing_month)
    if existing is not None and existing.status == PaymentStatus.PAID.value:
        logger.info(f"[RAZORPAY] Month {order.billing_month} already paid, order {order.order_id} failure not recorded")
        session.flush()
        return None

    relationship = session.get(Relationship, order.relationship_id)
    payment = upsert_payment_record(
        session, relationship, order.billing_month,
        amount=order.amount,
        status=PaymentStatus.FAILED.value,
        payment_method=PaymentMethod.RAZORPAY,
        electric_bill_amount=order.electric_bill_amount,
        provider_order_id=order.order_id,
    )
    log_action(
        session,
        AuditAction.PAYMENT_FAILED,
        resource_type='payment',
        resource_id=payment.id,
        details={'billing_month': order.billing_month, 'order_id': order.order_id, 'reason': reason},
        actor_id=actor_id
    )
    return payment


def record_provider_capture(session: Session, order: ProviderOrder, payment_id: str,
                            actor_id: Optional[int] = None, notifier=None):
    """
    Record money captured by Razorpay for the order's month.

    Applies to any order of the month, including one the renter retried
    away from or cancelled, since the money was taken either way. Moves
    the rent status to paid. If the month is already paid (the webhook and
    the checkout callback can both arrive) the payment record is updated
    with the provider ids, unless another capture already paid it.
    Returns the StatusChange, or None when the status was left as is.
    """
    if order.status == OrderStatus.PAID.value and order.provider_payment_id == payment_id:
        logger.info(f"[RAZORPAY] Payment {payment_id} for order {order.order_id} already recorded")
        return None

    relationship = session.get(Relationship, order.relationship_id)
    if order.status != OrderStatus.CREATED.value:
        logger.warning(f"[RAZORPAY] Capture {payment_id} for order {order.order_id} that was {order.status}")
    order.status = OrderStatus.PAID.value
    order.provider_payment_id = payment_id
    order.failure_reason = None

    now = datetime.now(timezone.utc)
    try:
        return apply_status_action(
            session, relationship, ACTION_PAID,
            actor_id=actor_id,
            billing_month=order.billing_month,
            payment_method=PaymentMethod.RAZORPAY,
            notifier=notifier,
            amount=order.amount,
            electric_bill_amount=order.electric_bill_amount,
            transaction_id=payment_id,
            provider_order_id=order.order_id,
            provider_payment_id=payment_id,
            payment_date=now,
        )
    except TransitionRejectedError as e:
        logger.warning(f"[RAZORPAY] Payment {payment_id} captured but status not moved: {e.reason}")
        existing = get_payment_record(session, order.renter_id, order.owner_id, order.billing_month)
        if (existing is not None and existing.status == PaymentStatus.PAID.value
                and existing.provider_payment_id and existing.provider_payment_id != payment_id):
            # Second capture for the month; it stays on its order row
            logger.warning(
                f"[RAZORPAY] Month {order.billing_month} already paid by {existing.provider_payment_id}, "
                f"capture {payment_id} kept on order {order.order_id}"
            )
            session.flush()
            return None
        upsert_payment_record(
            session, relationship, order.billing_month,
            amount=order.amount,
            status=PaymentStatus.PAID.value,
            payment_method=PaymentMethod.RAZORPAY,
            payment_date=now,
            electric_bill_amount=order.electric_bill_amount,
            transaction_id=payment_id,
            provider_order_id=order.order_id,
            provider_payment_id=payment_id,
        )
        return None
