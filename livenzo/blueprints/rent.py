"""Rent management blueprint - the owner's renter list, swipes and monthly rent."""
import logging
import math
from datetime import date

from flask import Blueprint, current_app, g, jsonify, request

from livenzo.database import get_session
from livenzo.exceptions import LivenzoError, ValidationError
from livenzo.middleware import require_login, require_role
from livenzo.models import PaymentMethod, UserRole
from livenzo.rent.gestures import SwipeGestureInterpreter
from livenzo.services.kv_store import get_kv_store
from livenzo.services.meter_photo_service import list_meter_photos
from livenzo.services.rent_status_service import (
    apply_status_action, get_owned_relationship, get_payment_history, list_owner_renters, set_monthly_rent
)
from livenzo.utils.formatters import parse_billing_month

logger = logging.getLogger(__name__)

rent_bp = Blueprint('rent', __name__, url_prefix='/rent')

TUTORIAL_KEY = 'swipe_tutorial_seen'


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _billing_month(value):
    try:
        return parse_billing_month(value)
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'billing_month'})


def _parse_float(value, field):
    try:
        number = float(value if value is not None else 0)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number', {'field': field})
    if not math.isfinite(number):
        raise ValidationError(f'{field} must be a finite number', {'field': field})
    return number


def _parse_date(value, field):
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', {'field': field})


def _status_response(change):
    return {
        'status': 'success',
        'relationship_id': change.rent_status.relationship_id,
        'billing_month': change.rent_status.billing_month,
        'previous_status': change.previous_status,
        'rent_status': change.rent_status.status,
        'payment': change.payment.to_dict(),
    }


@rent_bp.route('/renters', methods=['GET'])
@require_login
@require_role(UserRole.OWNER)
def renters():
    """Active renters with this month's status (owner view)."""
    billing_month = _billing_month(request.args.get('billing_month'))
    summaries = list_owner_renters(get_session(), g.user.id, billing_month)
    return jsonify({
        'status': 'success',
        'billing_month': billing_month,
        'renters': [s.to_dict() for s in summaries],
    })


@rent_bp.route('/<int:relationship_id>/status', methods=['POST'])
@require_login
@require_role(UserRole.OWNER)
def update_status(relationship_id):
    """Mark the month paid or unpaid (button alternative to the swipe)."""
    data = _json_body()
    db_session = get_session()
    try:
        relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
        change = apply_status_action(
            db_session, relationship, data.get('action'),
            actor_id=g.user.id,
            billing_month=_billing_month(data.get('billing_month')),
            payment_method=PaymentMethod.MANUAL_SWIPE,
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise
    return jsonify(_status_response(change))


@rent_bp.route('/<int:relationship_id>/swipe', methods=['POST'])
@require_login
@require_role(UserRole.OWNER)
def swipe(relationship_id):
    """
    Apply a released swipe on a renter row.

    Body: {"offset": px, "velocity": px/s, "billing_month": "YYYY-MM"?}
    A release below both thresholds has no effect.
    """
    data = _json_body()
    offset = _parse_float(data.get('offset'), 'offset')
    velocity = _parse_float(data.get('velocity'), 'velocity')

    interpreter = SwipeGestureInterpreter.from_config(current_app.config)
    intent = interpreter.release(offset, velocity)
    if intent is None:
        return jsonify({'status': 'success', 'triggered': False, 'hint': interpreter.hint(offset)})

    db_session = get_session()
    try:
        relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
        change = apply_status_action(
            db_session, relationship, intent.action,
            actor_id=g.user.id,
            billing_month=_billing_month(data.get('billing_month')),
            payment_method=PaymentMethod.MANUAL_SWIPE,
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise

    response = _status_response(change)
    response.update({'triggered': True, 'direction': intent.direction, 'action': intent.action})
    return jsonify(response)


@rent_bp.route('/<int:relationship_id>/monthly-rent', methods=['POST'])
@require_login
@require_role(UserRole.OWNER)
def monthly_rent(relationship_id):
    """Set the rent due for a month: {"amount", "due_date"?, "billing_month"?}."""
    data = _json_body()
    db_session = get_session()
    try:
        relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
        rent_status = set_monthly_rent(
            db_session, relationship, data.get('amount'),
            due_date=_parse_date(data.get('due_date'), 'due_date'),
            actor_id=g.user.id,
            billing_month=_billing_month(data.get('billing_month')),
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise

    return jsonify({
        'status': 'success',
        'relationship_id': relationship.id,
        'billing_month': rent_status.billing_month,
        'rent_status': rent_status.status,
        'amount': str(rent_status.current_amount),
        'due_date': rent_status.due_date.isoformat() if rent_status.due_date else None,
    })


@rent_bp.route('/<int:relationship_id>/history', methods=['GET'])
@require_login
@require_role(UserRole.OWNER)
def history(relationship_id):
    """Per-month breakdown (the double-tap detail view)."""
    db_session = get_session()
    relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
    months = current_app.config.get('PAYMENT_HISTORY_MONTHS', 12)
    return jsonify({
        'status': 'success',
        'relationship_id': relationship.id,
        'history': get_payment_history(db_session, relationship, months),
    })


@rent_bp.route('/<int:relationship_id>/meter-photos', methods=['GET'])
@require_login
@require_role(UserRole.OWNER)
def meter_photos(relationship_id):
    """Meter photos for the month, latest first (the single-tap view)."""
    db_session = get_session()
    relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
    billing_month = _billing_month(request.args.get('billing_month'))
    photos = list_meter_photos(db_session, relationship.id, billing_month)
    return jsonify({
        'status': 'success',
        'billing_month': billing_month,
        'photos': [p.to_dict() for p in photos],
    })


@rent_bp.route('/tutorial', methods=['GET', 'POST'])
@require_login
def tutorial():
    """Whether the swipe tutorial was already shown to this user."""
    store = get_kv_store()
    if request.method == 'POST':
        seen = bool(_json_body().get('seen', True))
        if not store.set(g.user.id, TUTORIAL_KEY, seen):
            logger.warning(f"[KV] Could not store tutorial flag for user {g.user.id}")
        return jsonify({'status': 'success', 'seen': seen})

    return jsonify({'status': 'success', 'seen': bool(store.get(g.user.id, TUTORIAL_KEY))})
