"""
Rent status transition rules.

A billing month starts as pending. Owners may flag it unpaid, and either
party may move pending or unpaid to paid. Paid is final for the month.
"""
from dataclasses import dataclass
from typing import Optional

from livenzo.models.rent_status import RentState

# Actions a caller may request
ACTION_PAID = 'paid'
ACTION_UNPAID = 'unpaid'
SUPPORTED_ACTIONS = (ACTION_PAID, ACTION_UNPAID)

# Rejection reasons (stable codes for API clients)
REASON_NO_RENT_SET = 'no_rent_set'
REASON_ALREADY_PAID = 'already_paid'
REASON_UNPAID_REQUIRES_PENDING = 'unpaid_requires_pending'
REASON_PAID_REQUIRES_PENDING_OR_UNPAID = 'paid_requires_pending_or_unpaid'
REASON_UNSUPPORTED_ACTION = 'unsupported_action'

MESSAGES = {
    REASON_NO_RENT_SET: 'No rent has been set for this month',
    REASON_ALREADY_PAID: 'Rent for this month is already paid',
    REASON_UNPAID_REQUIRES_PENDING: 'Can only mark unpaid when the status is pending',
    REASON_PAID_REQUIRES_PENDING_OR_UNPAID: 'Can only mark paid from pending or unpaid',
    REASON_UNSUPPORTED_ACTION: 'Unsupported rent status action',
}

_ALLOWED = {
    (RentState.PENDING.value, ACTION_PAID),
    (RentState.UNPAID.value, ACTION_PAID),
    (RentState.PENDING.value, ACTION_UNPAID),
}


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls):
        return cls(True)

    @classmethod
    def reject(cls, reason):
        return cls(False, reason, MESSAGES[reason])


def _state_value(value):
    if isinstance(value, RentState):
        return value.value
    return value


def validate_transition(current_status, requested_action) -> TransitionDecision:
    """
    Decide whether `requested_action` may be applied to `current_status`.

    Args:
        current_status: RentState, its string value, or None when no rent
            row exists for the month
        requested_action: 'paid' or 'unpaid'

    Returns:
        TransitionDecision; rejected decisions carry a reason code and the
        message to show the user.
    """
    current = _state_value(current_status)
    action = _state_value(requested_action)

    if action not in SUPPORTED_ACTIONS:
        return TransitionDecision.reject(REASON_UNSUPPORTED_ACTION)
    if current is None:
        return TransitionDecision.reject(REASON_NO_RENT_SET)
    if current == RentState.PAID.value:
        return TransitionDecision.reject(REASON_ALREADY_PAID)
    if (current, action) in _ALLOWED:
        return TransitionDecision.allow()
    if action == ACTION_UNPAID:
        return TransitionDecision.reject(REASON_UNPAID_REQUIRES_PENDING)
    return TransitionDecision.reject(REASON_PAID_REQUIRES_PENDING_OR_UNPAID)
