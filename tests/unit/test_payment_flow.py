"""
Unit tests for the payment flow state machine.
"""

from decimal import Decimal

import pytest
from livenzo.exceptions import FlowStateError, ValidationError
from livenzo.rent.payment_flow import (
    FlowState, ManualProofDestination, PaymentFlow, RazorpayDestination, UpiDestination, destination_for
)


def _flow_at_method(electricity='850'):
    flow = PaymentFlow()
    flow.start(7, 3, Decimal('12000'), '2025-03')
    flow.complete_meter(owner_calculates=True)
    flow.submit_bill(electricity)
    return flow


class TestPaymentFlowSteps:
    """The flow moves meter -> bill -> method -> destination."""

    def test_start_enters_meter(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000, '2025-03')
        assert flow.state == FlowState.METER
        assert flow.rent_amount == Decimal('12000')

    def test_each_start_is_a_new_instance(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000, '2025-03')
        first_id = flow.flow_id
        flow.cancel()
        assert flow.flow_id is None
        flow.start(7, 3, 12000, '2025-03')
        assert flow.flow_id not in (None, first_id)

    def test_total_adds_electricity(self):
        flow = _flow_at_method('850')
        assert flow.state == FlowState.METHOD
        assert flow.total_amount == Decimal('12850')

    def test_empty_electricity_means_zero(self):
        flow = _flow_at_method('')
        assert flow.electricity_amount == Decimal('0')
        assert flow.total_amount == Decimal('12000')

    @pytest.mark.parametrize('raw', ['-5', 'abc', 'NaN'])
    def test_invalid_electricity_stays_on_bill(self, raw):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        flow.complete_meter(photo_url='http://x/meter.jpg')
        with pytest.raises(ValidationError):
            flow.submit_bill(raw)
        assert flow.state == FlowState.BILL

    def test_cannot_skip_meter(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        with pytest.raises(FlowStateError):
            flow.submit_bill('850')

    def test_duplicate_meter_completion_does_not_advance(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        assert flow.complete_meter(owner_calculates=True) is True
        assert flow.complete_meter(owner_calculates=True) is False
        assert flow.state == FlowState.BILL

    def test_meter_completion_without_flow_raises(self):
        with pytest.raises(FlowStateError):
            PaymentFlow().complete_meter()

    def test_cannot_start_twice(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        with pytest.raises(FlowStateError):
            flow.start(7, 3, 12000)

    def test_choose_destination(self):
        flow = _flow_at_method()
        flow.choose_destination(UpiDestination('me@upi', 'Owner'))
        assert flow.state == FlowState.UPI
        assert flow.destination == 'upi'

    def test_unknown_destination(self):
        flow = _flow_at_method()
        with pytest.raises(ValidationError):
            flow.choose_destination('cash')

    def test_complete_returns_result_and_resets(self):
        flow = _flow_at_method()
        flow.choose_destination('manual_proof')
        result = flow.complete(reference='UTR123')
        assert result.total_amount == Decimal('12850')
        assert result.destination == 'manual_proof'
        assert result.reference == 'UTR123'
        assert flow.state == FlowState.IDLE


class TestPaymentFlowExits:

    def test_cancel_from_bill_resets(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        flow.complete_meter(owner_calculates=True)
        flow.cancel()
        assert flow.state == FlowState.IDLE
        assert flow.rent_amount is None
        assert flow.visited == []

    def test_failure_then_retry_returns_to_method(self):
        flow = _flow_at_method()
        flow.choose_destination('razorpay')
        flow.order_id = 'order_1'
        flow.fail('Payment cancelled by user', cancelled=True)
        assert flow.state == FlowState.FAILED
        assert flow.cancelled

        flow.retry()
        assert flow.state == FlowState.METHOD
        assert flow.order_id is None
        assert flow.total_amount == Decimal('12850')

    def test_fail_outside_destination_raises(self):
        flow = _flow_at_method()
        with pytest.raises(FlowStateError):
            flow.fail('boom')

    def test_abort_keeps_error(self):
        flow = PaymentFlow()
        flow.start(7, 3, 12000)
        flow.abort('Upload failed. Please try again.')
        assert flow.state == FlowState.IDLE
        assert flow.error == 'Upload failed. Please try again.'

    def test_serialization_keeps_state(self):
        flow = _flow_at_method()
        restored = PaymentFlow.from_dict(flow.to_dict())
        assert restored == flow
        assert PaymentFlow.from_dict(None).state == FlowState.IDLE


class TestDestinations:

    def test_upi_deep_link(self):
        link = UpiDestination('owner@ybl', 'Livenzo').deep_link(Decimal('12850'))
        assert link.startswith('upi://pay?')
        assert 'pa=owner%40ybl' in link
        assert 'am=12850' in link
        assert 'cu=INR' in link

    def test_destination_for_config(self):
        config = {'UPI_PAYEE_ID': 'x@upi', 'UPI_PAYEE_NAME': 'X', 'RAZORPAY_KEY_ID': 'rzp_key'}
        assert destination_for('upi', config).payee_id == 'x@upi'
        assert destination_for('razorpay', config).key_id == 'rzp_key'
        assert isinstance(destination_for('manual_proof', config), ManualProofDestination)
        assert isinstance(destination_for('razorpay', config), RazorpayDestination)
        with pytest.raises(ValidationError):
            destination_for('cheque', config)
