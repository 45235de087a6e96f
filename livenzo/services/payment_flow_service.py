"""
Payment flow service - runs a renter's payment wizard against storage,
the payment provider and the rent records.

The flow itself lives in the key-value store so every step is a separate
request. Each step reloads it and checks its state, so a provider result
that arrives after the renter cancelled is refused instead of applied.

Steps that write to the database only stage the new flow. The caller
commits the session and then calls persist(), so the stored flow never
runs ahead of the database.
"""
import logging
from typing import Optional

import requests
from flask import current_app
from sqlalchemy.orm import Session

from livenzo.blueprints.metrics import record_flow_event
from livenzo.exceptions import (
    BackendError, FlowStateError, LivenzoError, PaymentCancelledError, PaymentFailedError,
    StorageUnavailableError, TransitionRejectedError, ValidationError
)
from livenzo.models import PaymentMethod, RentState, UserProfile
from livenzo.rent.payment_flow import FlowState, PaymentFlow, RazorpayDestination, UpiDestination, destination_for
from livenzo.rent.transitions import ACTION_PAID, MESSAGES, REASON_ALREADY_PAID, REASON_NO_RENT_SET
from livenzo.services import notification_service, payment_service, razorpay_client
from livenzo.services.meter_photo_service import upload_file, upload_meter_photo
from livenzo.services.rent_status_service import (
    apply_status_action, dispatch_notification, get_active_relationship_for_renter, get_rent_status
)
from livenzo.utils.formatters import current_billing_month

logger = logging.getLogger(__name__)

FLOW_KEY = 'payment_flow:{relationship_id}'
METER_LATCH_KEY = 'payment_flow:{relationship_id}:meter:{flow_id}'
CANCELLED_MESSAGE = 'Payment cancelled by user'
LEFT_CHECKOUT_MESSAGE = 'Renter left the checkout'


class PaymentFlowService:
    """
    Orchestrates one renter's payment flow.

    Usage:
        service = PaymentFlowService(db_session, g.user, get_kv_store())
        flow = service.start()
        outcome = service.submit_meter(owner_calculates=True)
        db_session.commit()
        service.persist()

    Note: Caller is responsible for committing the session, and for calling
    persist() after the commit (or discard() after a rollback).
    """

    def __init__(self, session: Session, renter: UserProfile, kv_store, config=None, notifier=None):
        self.session = session
        self.renter = renter
        self.kv_store = kv_store
        self.config = config if config is not None else current_app.config
        self.notifier = notifier
        self.relationship = get_active_relationship_for_renter(session, renter.id)
        self._key = FLOW_KEY.format(relationship_id=self.relationship.id)
        self._staged = None
        self._latches = []

    # -- persistence --------------------------------------------------

    def load(self) -> PaymentFlow:
        data = self.kv_store.get(self.renter.id, self._key)
        return PaymentFlow.from_dict(data)

    def save(self, flow: PaymentFlow) -> PaymentFlow:
        if not self.kv_store.set(self.renter.id, self._key, flow.to_dict(), ttl=self._ttl()):
            logger.error(f"[FLOW] Could not persist flow for renter {self.renter.id}")
            raise StorageUnavailableError()
        return flow

    def stage(self, flow: PaymentFlow) -> PaymentFlow:
        """Hold a flow until the database work of the same step is committed."""
        self._staged = flow
        return flow

    def persist(self) -> Optional[PaymentFlow]:
        """Store the staged flow. Call after the session was committed."""
        flow, self._staged = self._staged, None
        self._latches = []
        if flow is None:
            return None
        return self.save(flow)

    def discard(self):
        """Drop the staged flow and release latches taken by this step."""
        self._staged = None
        for key in self._latches:
            self.kv_store.delete(self.renter.id, key)
        self._latches = []

    def describe(self, flow: Optional[PaymentFlow] = None) -> dict:
        """Flow state for the client, with the UPI link when relevant."""
        flow = flow or self.load()
        data = flow.to_dict()
        if flow.state == FlowState.UPI:
            destination = destination_for(UpiDestination.kind, self.config)
            data['upi_link'] = destination.deep_link(flow.total_amount)
        elif flow.state == FlowState.RAZORPAY:
            destination = destination_for(RazorpayDestination.kind, self.config)
            data['checkout'] = self._checkout_options(destination, flow)
        return data

    # -- steps --------------------------------------------------------

    def start(self, billing_month: Optional[str] = None) -> PaymentFlow:
        """Open the flow for the month's rent."""
        billing_month = billing_month or current_billing_month()
        rent = get_rent_status(self.session, self.relationship.id, billing_month)
        if rent is None:
            raise TransitionRejectedError(REASON_NO_RENT_SET, MESSAGES[REASON_NO_RENT_SET], None, ACTION_PAID)
        if rent.status == RentState.PAID.value:
            raise TransitionRejectedError(REASON_ALREADY_PAID, MESSAGES[REASON_ALREADY_PAID], rent.status, ACTION_PAID)

        flow = self.load()
        flow.start(self.relationship.id, self.relationship.owner_id, rent.current_amount, billing_month)
        record_flow_event('started')
        logger.info(f"[FLOW] Renter {self.renter.id} started payment for {billing_month} ({rent.current_amount})")
        return self.save(flow)

    def submit_meter(self, file=None, owner_calculates=False) -> dict:
        """
        Finish the meter step with a photo or the 'owner will calculate' choice.

        Returns {'advanced': bool, 'flow': PaymentFlow}. A repeated submission,
        including one racing the first, does not upload again and does not
        advance. The stored latch decides which request wins.
        """
        flow = self.load()
        if flow.state != FlowState.METER:
            advanced = flow.complete_meter()
            return {'advanced': advanced, 'flow': flow}

        if not owner_calculates and file is None:
            raise ValidationError('Upload a meter photo or let the owner calculate the bill', {'field': 'photo'})

        if not self._take_meter_latch(flow):
            logger.info(f"[FLOW] Duplicate meter submission for renter {self.renter.id} ignored")
            return {'advanced': False, 'flow': flow}

        photo_url = None
        if not owner_calculates:
            try:
                photo = upload_meter_photo(self.session, self.relationship, file, flow.billing_month)
                photo_url = photo.photo_url
            except LivenzoError as e:
                flow.abort(e.message)
                self.save(flow)
                record_flow_event('meter_upload_failed')
                logger.warning(f"[FLOW] Meter upload failed for renter {self.renter.id}: {e.message}")
                raise

        advanced = flow.complete_meter(photo_url=photo_url, owner_calculates=owner_calculates)
        record_flow_event('meter_completed')
        self.stage(flow)
        return {'advanced': advanced, 'flow': flow}

    def submit_bill(self, raw_amount) -> PaymentFlow:
        flow = self.load()
        flow.submit_bill(raw_amount)
        record_flow_event('bill_submitted')
        return self.save(flow)

    def choose_method(self, kind: str) -> dict:
        """
        Pick how to pay. Razorpay opens a provider order; the month's
        payment record is only written once that order reports back.
        """
        flow = self.load()
        destination = destination_for(kind, self.config)
        flow.choose_destination(destination)

        if isinstance(destination, RazorpayDestination):
            order = self._create_order(flow, destination)
            flow.order_id = order['id']
            payment_service.open_provider_order(
                self.session, self.relationship, flow.billing_month,
                order_id=order['id'],
                amount=flow.total_amount,
                electric_bill_amount=flow.electricity_amount,
            )

        record_flow_event(f'method_{destination.kind}')
        self.stage(flow)
        return self.describe(flow)

    def confirm_upi(self):
        """The renter says the UPI payment went through."""
        flow = self.load()
        if flow.state != FlowState.UPI:
            raise FlowStateError('No UPI payment is waiting for confirmation', flow.state.value)

        try:
            change = apply_status_action(
                self.session, self.relationship, ACTION_PAID,
                actor_id=self.renter.id,
                billing_month=flow.billing_month,
                payment_method=PaymentMethod.UPI_MANUAL,
                notifier=self.notifier,
                amount=flow.total_amount,
                electric_bill_amount=flow.electricity_amount,
            )
        except TransitionRejectedError as e:
            flow.fail(e.message)
            self.save(flow)
            record_flow_event('upi_rejected')
            raise

        result = flow.complete()
        self.stage(flow)
        record_flow_event('completed_upi')
        self._notify_owner(change.payment, 'UPI')
        return result, change

    def razorpay_callback(self, order_id: str, payment_id: Optional[str] = None,
                          signature: Optional[str] = None, cancelled: bool = False,
                          error: Optional[str] = None):
        """
        Apply the checkout result reported by the client.

        The failed flow is staged before PaymentCancelledError and
        PaymentFailedError are raised, so the caller commits and persists
        on those too.

        Raises:
            FlowStateError: No checkout for this order is in progress (e.g. cancelled)
            PaymentCancelledError: The renter dismissed the checkout
            PaymentFailedError: The provider failed or the signature did not match
        """
        flow = self.load()
        if flow.state != FlowState.RAZORPAY or not order_id or flow.order_id != order_id:
            logger.info(f"[FLOW] Ignoring Razorpay result for order {order_id}: flow is '{flow.state.value}'")
            raise FlowStateError('This payment is no longer in progress', flow.state.value)

        order = payment_service.find_provider_order(self.session, order_id)
        if order is None:
            logger.error(f"[RAZORPAY] Flow points at unknown order {order_id}")
            raise FlowStateError('This payment is no longer in progress', flow.state.value)

        if cancelled:
            self._fail_provider_payment(flow, order, CANCELLED_MESSAGE, cancelled=True)
            raise PaymentCancelledError(CANCELLED_MESSAGE)

        if error:
            self._fail_provider_payment(flow, order, f'Payment failed: {error}')
            raise PaymentFailedError(f'Payment failed: {error}')

        client = razorpay_client.get_razorpay_client()
        if not client.verify_payment_signature(order_id, payment_id, signature):
            logger.warning(f"[RAZORPAY] Signature mismatch for order {order_id}")
            self._fail_provider_payment(flow, order, 'Payment verification failed')
            raise PaymentFailedError('Payment verification failed')

        change = payment_service.record_provider_capture(
            self.session, order, payment_id,
            actor_id=self.renter.id,
            notifier=self.notifier,
        )
        result = flow.complete(reference=payment_id)
        self.stage(flow)
        record_flow_event('completed_razorpay')
        if change is not None:
            self._notify_owner(change.payment, 'Razorpay')
        return result, change

    def submit_manual_proof(self, transaction_id: str, notes: Optional[str] = None, file=None):
        flow = self.load()
        if flow.state != FlowState.MANUAL_PROOF:
            raise FlowStateError('No manual payment is in progress', flow.state.value)

        proof_image_url = None
        if file is not None and file.filename:
            proof_image_url, _ = upload_file(file, 'payment-proofs', f"{self.relationship.id}/{flow.billing_month}")

        proof = payment_service.submit_manual_proof(
            self.session, self.relationship,
            amount=flow.total_amount,
            transaction_id=transaction_id,
            proof_image_url=proof_image_url,
            notes=notes,
            billing_month=flow.billing_month,
            electric_bill_amount=flow.electricity_amount,
            notifier=self.notifier,
        )
        result = flow.complete(reference=proof.transaction_id)
        self.stage(flow)
        record_flow_event('completed_manual_proof')
        return result, proof

    def retry(self) -> PaymentFlow:
        flow = self.load()
        flow.retry()
        record_flow_event('retried')
        return self.save(flow)

    def cancel(self) -> PaymentFlow:
        """
        Back to idle. An open Razorpay order is closed; the month's rent
        and payment records are not touched.
        """
        flow = self.load()
        was = flow.state.value
        if flow.state == FlowState.RAZORPAY and flow.order_id:
            order = payment_service.find_provider_order(self.session, flow.order_id)
            if order is not None:
                payment_service.abandon_provider_order(self.session, order, LEFT_CHECKOUT_MESSAGE)
        flow.cancel()
        record_flow_event('cancelled')
        logger.info(f"[FLOW] Renter {self.renter.id} cancelled payment at '{was}'")
        return self.stage(flow)

    # -- helpers ------------------------------------------------------

    def _ttl(self) -> int:
        return self.config.get('PAYMENT_FLOW_TTL', 3600)

    def _take_meter_latch(self, flow: PaymentFlow) -> bool:
        """Claim the meter step of this flow instance. False if already claimed."""
        key = METER_LATCH_KEY.format(relationship_id=self.relationship.id, flow_id=flow.flow_id)
        taken = self.kv_store.add(self.renter.id, key, 1, ttl=self._ttl())
        if taken is None:
            logger.error(f"[FLOW] Could not take meter latch for renter {self.renter.id}")
            raise StorageUnavailableError()
        if taken:
            self._latches.append(key)
        return taken

    def _checkout_options(self, destination: RazorpayDestination, flow: PaymentFlow) -> dict:
        return {
            'key_id': destination.key_id,
            'order_id': flow.order_id,
            'amount': razorpay_client.to_paise(flow.total_amount),
            'currency': destination.currency,
            'name': self.config.get('UPI_PAYEE_NAME', 'Livenzo'),
            'description': f'Rent for {flow.billing_month}',
            'prefill': {'name': self.renter.full_name or '', 'email': self.renter.email},
        }

    def _create_order(self, flow: PaymentFlow, destination: RazorpayDestination) -> dict:
        try:
            client = razorpay_client.get_razorpay_client()
            return client.create_order(
                flow.total_amount,
                receipt=f"rent_{self.relationship.id}_{flow.billing_month}",
                currency=destination.currency,
                notes={
                    'relationship_id': str(self.relationship.id),
                    'billing_month': flow.billing_month,
                },
            )
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.error(f"[RAZORPAY] Order creation failed for renter {self.renter.id}: {e}")
            flow.fail('Could not start the online payment. Please try again.')
            self.save(flow)
            record_flow_event('order_failed')
            raise BackendError('Could not start the online payment. Please try again.') from e

    def _fail_provider_payment(self, flow: PaymentFlow, order, message: str, cancelled: bool = False):
        payment_service.record_provider_failure(
            self.session, order, message, cancelled=cancelled, actor_id=self.renter.id
        )
        flow.fail(message, cancelled=cancelled)
        self.stage(flow)
        record_flow_event('cancelled_by_user' if cancelled else 'provider_failed')

    def _notify_owner(self, payment, method_label: str):
        dispatch_notification(self.notifier, notification_service.PAYMENT_RECEIVED, self.relationship.owner_id, {
            'billing_month': payment.billing_month,
            'amount': payment.amount,
            'payment_method': method_label,
        })
