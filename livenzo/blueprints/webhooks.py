"""
Webhooks Blueprint for Razorpay notifications.
Handles payment captured / failed events for rent orders.
"""

import logging
from flask import Blueprint, request, jsonify
from livenzo.database import get_session
from livenzo.exceptions import LivenzoError
from livenzo.models import OrderStatus
from livenzo.services import payment_service, razorpay_client

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


def _payment_entity(data: dict) -> dict:
    return ((data.get('payload') or {}).get('payment') or {}).get('entity') or {}


@webhooks_bp.route('/razorpay', methods=['POST'])
def razorpay_webhook():
    """
    Handle Razorpay webhook notifications.

    Expected events:
    - payment.captured
    - payment.failed
    """
    signature = request.headers.get('X-Razorpay-Signature', '')
    try:
        client = razorpay_client.get_razorpay_client()
    except ValueError as e:
        logger.error(f"[RAZORPAY] Webhook received but client not configured: {e}")
        return jsonify({'error': 'Payments not configured'}), 503

    if not client.verify_webhook_signature(request.get_data(), signature):
        logger.warning("[RAZORPAY] Invalid webhook signature")
        return jsonify({'error': 'Invalid signature'}), 401

    data = request.get_json(silent=True)
    if not data:
        logger.warning("[RAZORPAY] Empty webhook payload")
        return jsonify({'error': 'Empty payload'}), 400

    event = data.get('event')
    logger.info(f"[RAZORPAY] Received webhook: event={event}")

    if event == 'payment.captured':
        return handle_payment_captured(_payment_entity(data))
    elif event == 'payment.failed':
        return handle_payment_failed(_payment_entity(data))

    logger.info(f"[RAZORPAY] Unhandled webhook event: {event}")
    return jsonify({'status': 'ignored', 'event': event}), 200


def handle_payment_captured(entity: dict) -> tuple:
    """Move the month to paid for the order's relationship and billing month."""
    order_id = entity.get('order_id')
    payment_id = entity.get('id')
    if not order_id or not payment_id:
        return jsonify({'status': 'ignored', 'message': 'Missing order or payment id'}), 200

    session = get_session()
    try:
        order = payment_service.find_provider_order(session, order_id)
        if order is None:
            logger.warning(f"[RAZORPAY] No order record for {order_id}")
            return jsonify({'status': 'ignored', 'message': 'Unknown order'}), 200
        if order.status == OrderStatus.PAID.value:
            return jsonify({'status': 'ok', 'message': 'Already paid'}), 200

        payment_service.record_provider_capture(session, order, payment_id)
        session.commit()
    except LivenzoError as e:
        session.rollback()
        logger.error(f"[RAZORPAY] Could not apply capture for order {order_id}: {e.message}")
        return jsonify({'error': e.message}), e.status_code

    logger.info(f"[RAZORPAY] Payment {payment_id} captured for order {order_id}")
    return jsonify({'status': 'ok'}), 200


def handle_payment_failed(entity: dict) -> tuple:
    order_id = entity.get('order_id')
    if not order_id:
        return jsonify({'status': 'ignored', 'message': 'Missing order id'}), 200

    session = get_session()
    try:
        order = payment_service.find_provider_order(session, order_id)
        if order is None:
            return jsonify({'status': 'ignored', 'message': 'Unknown order'}), 200
        reason = entity.get('error_description') or 'payment_failed'
        payment_service.record_provider_failure(session, order, reason)
        session.commit()
    except LivenzoError as e:
        session.rollback()
        logger.error(f"[RAZORPAY] Could not record failure for order {order_id}: {e.message}")
        return jsonify({'error': e.message}), e.status_code

    return jsonify({'status': 'ok'}), 200
