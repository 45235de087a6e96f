"""
Unit tests for rent status transition rules.
"""

import pytest
from livenzo.models import RentState
from livenzo.rent.transitions import (
    ACTION_PAID, ACTION_UNPAID, MESSAGES,
    REASON_ALREADY_PAID, REASON_NO_RENT_SET, REASON_PAID_REQUIRES_PENDING_OR_UNPAID,
    REASON_UNPAID_REQUIRES_PENDING, REASON_UNSUPPORTED_ACTION, validate_transition
)


class TestValidateTransition:
    """Every (current status, action) pair."""

    @pytest.mark.parametrize('current,action,allowed,reason', [
        (None, ACTION_PAID, False, REASON_NO_RENT_SET),
        (None, ACTION_UNPAID, False, REASON_NO_RENT_SET),
        ('pending', ACTION_PAID, True, None),
        ('pending', ACTION_UNPAID, True, None),
        ('unpaid', ACTION_PAID, True, None),
        ('unpaid', ACTION_UNPAID, False, REASON_UNPAID_REQUIRES_PENDING),
        ('paid', ACTION_PAID, False, REASON_ALREADY_PAID),
        ('paid', ACTION_UNPAID, False, REASON_ALREADY_PAID),
    ])
    def test_transition_table(self, current, action, allowed, reason):
        decision = validate_transition(current, action)
        assert decision.allowed is allowed
        assert decision.reason == reason

    def test_rejection_carries_message(self):
        decision = validate_transition('paid', ACTION_PAID)
        assert decision.message == MESSAGES[REASON_ALREADY_PAID]
        assert decision.message == 'Rent for this month is already paid'

    def test_accepts_enum_values(self):
        assert validate_transition(RentState.PENDING, RentState.PAID).allowed
        assert not validate_transition(RentState.PAID, RentState.UNPAID).allowed

    def test_unknown_action_rejected_before_status_checks(self):
        decision = validate_transition(None, 'refunded')
        assert not decision.allowed
        assert decision.reason == REASON_UNSUPPORTED_ACTION

    def test_unknown_status_cannot_be_paid(self):
        decision = validate_transition('archived', ACTION_PAID)
        assert decision.reason == REASON_PAID_REQUIRES_PENDING_OR_UNPAID
