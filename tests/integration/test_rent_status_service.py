"""
Integration tests for rent status transitions against the database.
"""

from decimal import Decimal

import pytest
from livenzo.exceptions import TransitionRejectedError, ValidationError
from livenzo.models import AuditAction, AuditLog, Payment, PaymentMethod, RentState, RentStatus
from livenzo.services import notification_service
from livenzo.services.rent_status_service import (
    apply_status_action, get_payment_history, list_owner_renters, set_monthly_rent,
    upsert_payment_record, upsert_rent_status
)


class TestUpserts:
    """A (relationship, month) key maps to exactly one row."""

    def test_double_status_upsert_leaves_one_row(self, session, relationship, billing_month):
        upsert_rent_status(session, relationship.id, billing_month, 'pending', Decimal('12000'))
        upsert_rent_status(session, relationship.id, billing_month, 'paid', Decimal('12500'))
        session.commit()

        rows = session.query(RentStatus).filter_by(relationship_id=relationship.id).all()
        assert len(rows) == 1
        assert rows[0].status == 'paid'
        assert rows[0].current_amount == Decimal('12500')

    def test_double_payment_upsert_leaves_one_row(self, session, relationship, billing_month):
        upsert_payment_record(session, relationship, billing_month, Decimal('12000'), 'pending',
                              PaymentMethod.UPI_MANUAL, transaction_id='UTR1')
        payment = upsert_payment_record(session, relationship, billing_month, Decimal('12000'), 'paid',
                                        'manual_swipe')
        session.commit()

        assert session.query(Payment).filter_by(relationship_id=relationship.id).count() == 1
        assert payment.status == 'paid'
        assert payment.payment_method == 'manual_swipe'
        # Not supplied on the second write, so kept
        assert payment.transaction_id == 'UTR1'


class TestApplyStatusAction:

    def test_pending_to_paid(self, session, rent, relationship, owner, notifier):
        change = apply_status_action(session, relationship, 'paid', actor_id=owner.id)
        session.commit()

        assert change.previous_status == 'pending'
        assert change.rent_status.status == 'paid'
        assert change.payment.status == 'paid'
        assert change.payment.payment_date is not None
        assert change.payment.amount == Decimal('12000')
        assert change.rent_status.last_payment_id == change.payment.id
        assert notifier.calls == []

        audit = session.query(AuditLog).filter_by(action=AuditAction.RENT_STATUS_CHANGED).one()
        assert audit.user_id == owner.id

    def test_pending_to_unpaid_reminds_renter(self, session, rent, relationship, renter, notifier):
        change = apply_status_action(session, relationship, 'unpaid')
        session.commit()

        assert change.rent_status.status == 'unpaid'
        assert change.payment.status == 'unpaid'
        assert change.payment.payment_date is None
        assert notifier.calls[0][0] == notification_service.RENT_REMINDER
        assert notifier.calls[0][1] == renter.id

    def test_notification_failure_keeps_status(self, session, rent, relationship, notifier):
        notifier.error = RuntimeError('smtp down')
        change = apply_status_action(session, relationship, 'unpaid')
        session.commit()

        assert change.rent_status.status == 'unpaid'
        assert session.query(RentStatus).one().status == 'unpaid'

    def test_unpaid_to_paid(self, session, rent, relationship):
        apply_status_action(session, relationship, 'unpaid')
        change = apply_status_action(session, relationship, 'paid')
        assert change.previous_status == 'unpaid'
        assert change.rent_status.status == 'paid'

    def test_paid_is_final(self, session, rent, relationship):
        apply_status_action(session, relationship, 'paid')
        session.commit()

        with pytest.raises(TransitionRejectedError) as exc:
            apply_status_action(session, relationship, 'unpaid')
        assert exc.value.reason == 'already_paid'
        assert exc.value.status_code == 409
        assert session.query(RentStatus).one().status == 'paid'

    def test_no_rent_set(self, session, relationship):
        with pytest.raises(TransitionRejectedError) as exc:
            apply_status_action(session, relationship, 'paid')
        assert exc.value.reason == 'no_rent_set'
        assert session.query(Payment).count() == 0


class TestMonthlyRent:

    def test_set_rent_creates_pending_row(self, session, relationship, billing_month):
        rent = set_monthly_rent(session, relationship, '15000', billing_month=billing_month)
        session.commit()
        assert rent.status == RentState.PENDING.value
        assert rent.current_amount == Decimal('15000')

    def test_set_rent_keeps_existing_status(self, session, rent, relationship):
        apply_status_action(session, relationship, 'paid')
        updated = set_monthly_rent(session, relationship, '13000')
        assert updated.status == 'paid'
        assert updated.current_amount == Decimal('13000')

    def test_set_rent_rejects_zero(self, session, relationship):
        with pytest.raises(ValidationError):
            set_monthly_rent(session, relationship, '0')


class TestOwnerRenterList:

    def test_lists_status_for_month(self, session, rent, relationship, renter, owner):
        apply_status_action(session, relationship, 'paid')
        session.commit()

        summaries = list_owner_renters(session, owner.id)
        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.relationship_id == relationship.id
        assert summary.renter.room_number == '101'
        assert summary.status == 'paid'
        assert summary.latest_payment.status == 'paid'
        assert summary.overdue is False
        assert summary.has_meter_photos is False

    def test_renter_without_rent(self, session, relationship, owner):
        summary = list_owner_renters(session, owner.id)[0]
        assert summary.status is None
        assert summary.latest_payment is None

    def test_other_owner_sees_nothing(self, session, relationship, other_owner):
        assert list_owner_renters(session, other_owner.id) == []


class TestPaymentHistory:

    def test_months_without_payment_read_pending(self, session, rent, relationship):
        history = get_payment_history(session, relationship, months=3)
        assert len(history) == 3
        assert history[0]['billing_month'] == rent.billing_month
        assert all(h['status'] == 'pending' for h in history)
        assert Decimal(history[0]['amount']) == Decimal('12000')
        assert history[1]['amount'] is None
