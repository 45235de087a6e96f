"""
Renter payment wizard state machine.

idle -> meter -> bill -> method -> (upi | razorpay | manual_proof) -> idle

A failed destination step can be retried from `method`. Cancel returns to
idle from anywhere and drops every amount entered so far.
"""
import enum
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Union
from urllib.parse import urlencode

from livenzo.exceptions import FlowStateError, ValidationError
from livenzo.utils.formatters import parse_amount, current_billing_month


class FlowState(enum.Enum):
    IDLE = 'idle'
    METER = 'meter'
    BILL = 'bill'
    METHOD = 'method'
    UPI = 'upi'
    RAZORPAY = 'razorpay'
    MANUAL_PROOF = 'manual_proof'
    FAILED = 'failed'


DESTINATION_STATES = (FlowState.UPI, FlowState.RAZORPAY, FlowState.MANUAL_PROOF)


@dataclass(frozen=True)
class UpiDestination:
    """Pay through any UPI app via a deep link; success is self-reported."""
    payee_id: str
    payee_name: str
    currency: str = 'INR'

    kind = 'upi'

    def deep_link(self, amount, note='Rent Payment') -> str:
        params = {
            'pa': self.payee_id,
            'pn': self.payee_name,
            'am': str(amount),
            'cu': self.currency,
            'tn': note,
        }
        return 'upi://pay?' + urlencode(params)


@dataclass(frozen=True)
class RazorpayDestination:
    """Hosted checkout; the provider calls back with a signed result."""
    key_id: Optional[str] = None
    currency: str = 'INR'

    kind = 'razorpay'


@dataclass(frozen=True)
class ManualProofDestination:
    """Renter submits a transaction id (and optional screenshot) for review."""

    kind = 'manual_proof'


PaymentDestination = Union[UpiDestination, RazorpayDestination, ManualProofDestination]

DESTINATION_KINDS = (UpiDestination.kind, RazorpayDestination.kind, ManualProofDestination.kind)


def destination_for(kind: str, config) -> PaymentDestination:
    """Build the destination variant for `kind` from app config."""
    currency = config.get('PAYMENT_CURRENCY', 'INR')
    if kind == UpiDestination.kind:
        return UpiDestination(
            payee_id=config.get('UPI_PAYEE_ID'),
            payee_name=config.get('UPI_PAYEE_NAME'),
            currency=currency,
        )
    if kind == RazorpayDestination.kind:
        return RazorpayDestination(key_id=config.get('RAZORPAY_KEY_ID'), currency=currency)
    if kind == ManualProofDestination.kind:
        return ManualProofDestination()
    raise ValidationError(f'Unknown payment method: {kind!r}', {'allowed': list(DESTINATION_KINDS)})


@dataclass(frozen=True)
class FlowResult:
    """What a completed flow produced."""
    relationship_id: int
    owner_id: int
    billing_month: str
    destination: str
    rent_amount: Decimal
    electricity_amount: Decimal
    total_amount: Decimal
    reference: Optional[str] = None


@dataclass
class PaymentFlow:
    """One renter's pass through the payment wizard."""

    state: FlowState = FlowState.IDLE
    flow_id: Optional[str] = None
    relationship_id: Optional[int] = None
    owner_id: Optional[int] = None
    billing_month: Optional[str] = None
    rent_amount: Optional[Decimal] = None
    electricity_amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    meter_photo_url: Optional[str] = None
    owner_calculates: bool = False
    destination: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False
    visited: List[str] = field(default_factory=list)

    # -- transitions --------------------------------------------------

    def start(self, relationship_id, owner_id, rent_amount, billing_month=None):
        if self.state not in (FlowState.IDLE, FlowState.FAILED):
            raise FlowStateError('A payment is already in progress', self.state.value)
        self._reset()
        self.flow_id = uuid.uuid4().hex
        self.relationship_id = relationship_id
        self.owner_id = owner_id
        self.billing_month = billing_month or current_billing_month()
        self.rent_amount = Decimal(str(rent_amount))
        self._enter(FlowState.METER)

    def complete_meter(self, photo_url=None, owner_calculates=False) -> bool:
        """
        Leave the meter step. Returns False for a repeated completion so
        duplicate events cannot advance the flow twice.
        """
        if self.state != FlowState.METER:
            if FlowState.METER.value in self.visited and self.state != FlowState.IDLE:
                return False
            raise FlowStateError('Payment flow is not waiting for a meter reading', self.state.value)
        self.meter_photo_url = photo_url
        self.owner_calculates = bool(owner_calculates)
        self._enter(FlowState.BILL)
        return True

    def submit_bill(self, raw_amount) -> Decimal:
        """Record the electricity amount and compute the total payable."""
        self._require(FlowState.BILL)
        try:
            electricity = parse_amount(raw_amount, 'electricity bill amount', allow_blank=True)
        except ValueError as e:
            raise ValidationError(str(e), {'field': 'electricity_amount'})

        self.electricity_amount = electricity if electricity is not None else Decimal('0')
        self.total_amount = self.rent_amount + self.electricity_amount
        self._enter(FlowState.METHOD)
        return self.total_amount

    def choose_destination(self, destination):
        kind = getattr(destination, 'kind', destination)
        if kind not in DESTINATION_KINDS:
            raise ValidationError(f'Unknown payment method: {kind!r}', {'allowed': list(DESTINATION_KINDS)})
        self._require(FlowState.METHOD)
        self.destination = kind
        self.error = None
        self.cancelled = False
        self._enter(FlowState(kind))

    def complete(self, reference=None) -> FlowResult:
        self._require(*DESTINATION_STATES)
        result = FlowResult(
            relationship_id=self.relationship_id,
            owner_id=self.owner_id,
            billing_month=self.billing_month,
            destination=self.destination,
            rent_amount=self.rent_amount,
            electricity_amount=self.electricity_amount,
            total_amount=self.total_amount,
            reference=reference,
        )
        self._reset()
        return result

    def fail(self, message, cancelled=False):
        """A destination step failed; amounts are kept for a retry."""
        self._require(*DESTINATION_STATES)
        self.error = message
        self.cancelled = bool(cancelled)
        self._enter(FlowState.FAILED)

    def retry(self):
        """'Try Again' goes back to choosing a method, never to the meter step."""
        self._require(FlowState.FAILED)
        self.error = None
        self.cancelled = False
        self.destination = None
        self.order_id = None
        self._enter(FlowState.METHOD)

    def cancel(self):
        self._reset()

    def abort(self, message):
        """Back to idle with an error to show (e.g. the upload failed)."""
        self._reset()
        self.error = message

    # -- helpers ------------------------------------------------------

    @property
    def active(self) -> bool:
        return self.state != FlowState.IDLE

    def _require(self, *states):
        if self.state not in states:
            expected = ', '.join(s.value for s in states)
            raise FlowStateError(
                f"Cannot do that while the payment is at '{self.state.value}' (expected {expected})",
                self.state.value,
            )

    def _enter(self, state):
        self.state = state
        self.visited.append(state.value)

    def _reset(self):
        self.state = FlowState.IDLE
        self.flow_id = None
        self.relationship_id = None
        self.owner_id = None
        self.billing_month = None
        self.rent_amount = None
        self.electricity_amount = None
        self.total_amount = None
        self.meter_photo_url = None
        self.owner_calculates = False
        self.destination = None
        self.order_id = None
        self.error = None
        self.cancelled = False
        self.visited = []

    # -- serialization ------------------------------------------------

    def to_dict(self):
        def dec(value):
            return str(value) if value is not None else None

        return {
            'state': self.state.value,
            'flow_id': self.flow_id,
            'relationship_id': self.relationship_id,
            'owner_id': self.owner_id,
            'billing_month': self.billing_month,
            'rent_amount': dec(self.rent_amount),
            'electricity_amount': dec(self.electricity_amount),
            'total_amount': dec(self.total_amount),
            'meter_photo_url': self.meter_photo_url,
            'owner_calculates': self.owner_calculates,
            'destination': self.destination,
            'order_id': self.order_id,
            'error': self.error,
            'cancelled': self.cancelled,
            'visited': list(self.visited),
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()

        def dec(value):
            return Decimal(str(value)) if value is not None else None

        return cls(
            state=FlowState(data.get('state', FlowState.IDLE.value)),
            flow_id=data.get('flow_id'),
            relationship_id=data.get('relationship_id'),
            owner_id=data.get('owner_id'),
            billing_month=data.get('billing_month'),
            rent_amount=dec(data.get('rent_amount')),
            electricity_amount=dec(data.get('electricity_amount')),
            total_amount=dec(data.get('total_amount')),
            meter_photo_url=data.get('meter_photo_url'),
            owner_calculates=bool(data.get('owner_calculates', False)),
            destination=data.get('destination'),
            order_id=data.get('order_id'),
            error=data.get('error'),
            cancelled=bool(data.get('cancelled', False)),
            visited=list(data.get('visited') or []),
        )
