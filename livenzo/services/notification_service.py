"""
Notifications to owners and renters, delivered by email through Flask-Mail.

Dispatch is best-effort: callers never roll back their own change because
a notification could not be sent. With MAIL_ASYNC the SMTP conversation
runs on a background thread so the request does not wait for it.
"""
import logging
import threading

from flask import current_app
from flask_mail import Mail, Message

from livenzo.database import get_session
from livenzo.models.user_profile import UserProfile
from livenzo.utils.formatters import money_inr

logger = logging.getLogger(__name__)

mail = Mail()

RENT_REMINDER = 'rent_reminder'
PAYMENT_RECEIVED = 'payment_received'
MANUAL_PROOF_SUBMITTED = 'manual_proof_submitted'
MANUAL_PROOF_VERIFIED = 'manual_proof_verified'
MANUAL_PROOF_REJECTED = 'manual_proof_rejected'

# type -> (subject, body); bodies are formatted with the payload
TEMPLATES = {
    RENT_REMINDER: (
        'Rent reminder for {billing_month}',
        'Hi {recipient_name},\n\nYour rent of {amount} for {billing_month} has been marked '
        'as unpaid by your owner. Please pay it as soon as possible.\n\nLivenzo',
    ),
    PAYMENT_RECEIVED: (
        'Payment received for {billing_month}',
        'Hi {recipient_name},\n\nA payment of {amount} for {billing_month} was recorded '
        'via {payment_method}.\n\nLivenzo',
    ),
    MANUAL_PROOF_SUBMITTED: (
        'Payment proof submitted for {billing_month}',
        'Hi {recipient_name},\n\n{renter_name} submitted a payment of {amount} for '
        '{billing_month} (transaction {transaction_id}). Please verify it.\n\nLivenzo',
    ),
    MANUAL_PROOF_VERIFIED: (
        'Payment verified for {billing_month}',
        'Hi {recipient_name},\n\nYour payment of {amount} for {billing_month} was verified.\n\nLivenzo',
    ),
    MANUAL_PROOF_REJECTED: (
        'Payment proof rejected for {billing_month}',
        'Hi {recipient_name},\n\nYour payment proof for {billing_month} was rejected.'
        '\n\n{notes}\n\nLivenzo',
    ),
}


class _Defaults(dict):
    def __missing__(self, key):
        return ''


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """Mail is configured and not suppressed."""
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def render_notification(notification_type: str, recipient: UserProfile, payload: dict):
    """Subject and body for a notification."""
    if notification_type not in TEMPLATES:
        raise ValueError(f"Unknown notification type: {notification_type!r}")
    subject, body = TEMPLATES[notification_type]
    values = _Defaults(payload or {})
    values['recipient_name'] = recipient.full_name or recipient.email
    if 'amount' in values and values['amount'] not in ('', None):
        values['amount'] = money_inr(values['amount'])
    return subject.format_map(values), body.format_map(values)


def send_notification(notification_type: str, recipient_id: int, payload: dict = None, session=None) -> bool:
    """
    Send a notification to a user.

    Returns:
        True if sent or queued (or mail is disabled), False if delivery failed
    """
    try:
        session = session or get_session()
        recipient = session.get(UserProfile, recipient_id)
        if recipient is None:
            logger.warning(f"[NOTIFY] Recipient {recipient_id} not found, '{notification_type}' skipped")
            return False

        subject, body = render_notification(notification_type, recipient, payload)

        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] '{notification_type}' skipped for user {recipient_id}")
            return True

        msg = Message(subject=subject, recipients=[recipient.email], body=body)
        if current_app.config.get('MAIL_ASYNC', False):
            app = current_app._get_current_object()
            threading.Thread(
                target=_deliver, args=(app, msg, notification_type, recipient_id), daemon=True
            ).start()
            return True
        mail.send(msg)
        logger.info(f"[NOTIFY] '{notification_type}' sent to user {recipient_id}")
        return True

    except Exception as e:
        logger.warning(f"[NOTIFY] Failed to send '{notification_type}' to user {recipient_id}: {e}")
        return False


def _deliver(app, msg, notification_type: str, recipient_id: int):
    """Send a rendered message from a background thread."""
    with app.app_context():
        try:
            mail.send(msg)
            logger.info(f"[NOTIFY] '{notification_type}' sent to user {recipient_id}")
        except Exception as e:
            logger.warning(f"[NOTIFY] Failed to send '{notification_type}' to user {recipient_id}: {e}")
