"""
Payments blueprint - renter payment flow, self-reported payments and
owner review of manual proofs.
"""
import logging
from datetime import date

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from livenzo.database import get_session
from livenzo.exceptions import (
    BackendError, LivenzoError, PaymentCancelledError, PaymentFailedError, ValidationError
)
from livenzo.middleware import require_login, require_role
from livenzo.models import UserRole
from livenzo.services import payment_service
from livenzo.services.kv_store import get_kv_store
from livenzo.services.payment_flow_service import PaymentFlowService
from livenzo.services.rent_status_service import (
    get_active_relationship_for_renter, get_owned_relationship, get_payment_history, get_renter_status
)
from livenzo.utils.formatters import parse_billing_month

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__, url_prefix='/payments')


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _billing_month(value):
    try:
        return parse_billing_month(value)
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'billing_month'})


def _flow_service() -> PaymentFlowService:
    return PaymentFlowService(get_session(), g.user, get_kv_store())


def _flow_response(service, flow=None, **extra):
    body = {'status': 'success', 'flow': service.describe(flow)}
    body.update(extra)
    return jsonify(body)


def _result_dict(result):
    return {
        'relationship_id': result.relationship_id,
        'billing_month': result.billing_month,
        'destination': result.destination,
        'rent_amount': str(result.rent_amount),
        'electricity_amount': str(result.electricity_amount),
        'total_amount': str(result.total_amount),
        'reference': result.reference,
    }


# ---------------------------------------------------------------------------
# Renter: status and history
# ---------------------------------------------------------------------------

@payments_bp.route('/status', methods=['GET'])
@require_login
@require_role(UserRole.RENTER)
def status():
    """This month's rent status, with an overdue flag."""
    db_session = get_session()
    relationship = get_active_relationship_for_renter(db_session, g.user.id)
    billing_month = _billing_month(request.args.get('billing_month'))
    return jsonify({
        'status': 'success',
        'rent': get_renter_status(db_session, relationship, billing_month),
    })


@payments_bp.route('/history', methods=['GET'])
@require_login
@require_role(UserRole.RENTER)
def history():
    db_session = get_session()
    relationship = get_active_relationship_for_renter(db_session, g.user.id)
    months = current_app.config.get('PAYMENT_HISTORY_MONTHS', 12)
    return jsonify({
        'status': 'success',
        'relationship_id': relationship.id,
        'history': get_payment_history(db_session, relationship, months),
    })


@payments_bp.route('/mark-paid', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def mark_paid():
    """Renter reports this month's rent as paid."""
    data = _json_body()
    db_session = get_session()
    try:
        relationship = get_active_relationship_for_renter(db_session, g.user.id)
        change = payment_service.mark_paid_by_renter(
            db_session, relationship, billing_month=_billing_month(data.get('billing_month'))
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise
    return jsonify({
        'status': 'success',
        'rent_status': change.rent_status.status,
        'payment': change.payment.to_dict(),
    })


# ---------------------------------------------------------------------------
# Owner: payments entered by hand and manual proof review
# ---------------------------------------------------------------------------

@payments_bp.route('/owner-entry', methods=['POST'])
@require_login
@require_role(UserRole.OWNER)
def owner_entry():
    """Owner records a payment: {"relationship_id", "amount", "payment_date"?, "billing_month"?}."""
    data = _json_body()
    payment_date = None
    if data.get('payment_date'):
        try:
            payment_date = date.fromisoformat(str(data['payment_date']))
        except ValueError:
            raise ValidationError('payment_date must be a date (YYYY-MM-DD)', {'field': 'payment_date'})

    relationship_id = data.get('relationship_id')
    if not isinstance(relationship_id, int):
        raise ValidationError('relationship_id is required', {'field': 'relationship_id'})

    db_session = get_session()
    try:
        relationship = get_owned_relationship(db_session, relationship_id, g.user.id)
        change = payment_service.record_owner_payment(
            db_session, relationship, data.get('amount'),
            payment_date=payment_date,
            billing_month=_billing_month(data.get('billing_month')),
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise
    return jsonify({
        'status': 'success',
        'rent_status': change.rent_status.status,
        'payment': change.payment.to_dict(),
    })


@payments_bp.route('/manual-proofs', methods=['GET'])
@require_login
@require_role(UserRole.OWNER)
def manual_proofs():
    """Proofs to review; ?status=pending|verified|rejected|all (default pending)."""
    proof_status = request.args.get('status', 'pending')
    if proof_status == 'all':
        proof_status = None
    proofs = payment_service.list_manual_proofs(get_session(), g.user.id, proof_status)
    return jsonify({'status': 'success', 'proofs': [p.to_dict() for p in proofs]})


@payments_bp.route('/manual-proofs/<int:proof_id>/verify', methods=['POST'])
@require_login
@require_role(UserRole.OWNER)
def verify_manual_proof(proof_id):
    """Verify or reject a proof: {"decision": "verified"|"rejected", "notes"?}."""
    data = _json_body()
    db_session = get_session()
    try:
        proof = payment_service.verify_manual_proof(
            db_session, proof_id, g.user.id, data.get('decision'), notes=data.get('notes')
        )
        db_session.commit()
    except LivenzoError:
        db_session.rollback()
        raise
    return jsonify({'status': 'success', 'proof': proof.to_dict()})


# ---------------------------------------------------------------------------
# Renter: payment flow
# ---------------------------------------------------------------------------

def _commit_flow(db_session, service):
    """Commit the step's database work, then store the flow that depends on it."""
    try:
        db_session.commit()
    except SQLAlchemyError as e:
        db_session.rollback()
        service.discard()
        logger.exception(f"[FLOW] Commit failed for renter {g.user.id}: {e}")
        raise BackendError('Could not save your payment. Please try again.') from e
    service.persist()


def _rollback_flow(db_session, service):
    db_session.rollback()
    service.discard()


@payments_bp.route('/flow', methods=['GET'])
@require_login
@require_role(UserRole.RENTER)
def flow_state():
    return _flow_response(_flow_service())


@payments_bp.route('/flow/start', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_start():
    service = _flow_service()
    flow = service.start(_billing_month(_json_body().get('billing_month')))
    return _flow_response(service, flow)


@payments_bp.route('/flow/meter', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_meter():
    """Meter step: multipart 'photo' upload, or {"owner_calculates": true}."""
    photo = request.files.get('photo')
    owner_calculates = _json_body().get('owner_calculates', False)
    if not owner_calculates and request.form.get('owner_calculates') in ('1', 'true', 'on'):
        owner_calculates = True

    db_session = get_session()
    service = _flow_service()
    try:
        outcome = service.submit_meter(file=photo, owner_calculates=bool(owner_calculates))
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)
    return _flow_response(service, outcome['flow'], advanced=outcome['advanced'])


@payments_bp.route('/flow/bill', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_bill():
    """Electricity amount: {"electricity_amount": "850"} (empty means none)."""
    service = _flow_service()
    flow = service.submit_bill(_json_body().get('electricity_amount'))
    return _flow_response(service, flow)


@payments_bp.route('/flow/method', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_method():
    """Payment destination: {"method": "upi"|"razorpay"|"manual_proof"}."""
    db_session = get_session()
    service = _flow_service()
    try:
        described = service.choose_method(_json_body().get('method'))
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)
    return jsonify({'status': 'success', 'flow': described})


@payments_bp.route('/flow/upi/confirm', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_upi_confirm():
    db_session = get_session()
    service = _flow_service()
    try:
        result, change = service.confirm_upi()
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)
    return _flow_response(
        service,
        result=_result_dict(result),
        rent_status=change.rent_status.status,
        payment=change.payment.to_dict(),
    )


@payments_bp.route('/flow/razorpay/callback', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_razorpay_callback():
    """
    Checkout result from the client:
    {"razorpay_order_id", "razorpay_payment_id", "razorpay_signature"}
    or {"razorpay_order_id", "cancelled": true} / {"razorpay_order_id", "error": "..."}.
    """
    data = _json_body()
    db_session = get_session()
    service = _flow_service()
    try:
        result, change = service.razorpay_callback(
            order_id=data.get('razorpay_order_id'),
            payment_id=data.get('razorpay_payment_id'),
            signature=data.get('razorpay_signature'),
            cancelled=bool(data.get('cancelled')),
            error=data.get('error'),
        )
    except (PaymentCancelledError, PaymentFailedError):
        # Keep the failed payment record
        _commit_flow(db_session, service)
        raise
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)

    extra = {'result': _result_dict(result)}
    if change is not None:
        extra['rent_status'] = change.rent_status.status
        extra['payment'] = change.payment.to_dict()
    return _flow_response(service, **extra)


@payments_bp.route('/flow/manual', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_manual():
    """Manual proof: form or JSON with transaction_id, notes, optional 'screenshot' file."""
    data = request.form if request.form else _json_body()
    db_session = get_session()
    service = _flow_service()
    try:
        result, proof = service.submit_manual_proof(
            transaction_id=data.get('transaction_id'),
            notes=data.get('notes'),
            file=request.files.get('screenshot'),
        )
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)
    return _flow_response(service, result=_result_dict(result), proof=proof.to_dict())


@payments_bp.route('/flow/retry', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_retry():
    service = _flow_service()
    return _flow_response(service, service.retry())


@payments_bp.route('/flow/cancel', methods=['POST'])
@require_login
@require_role(UserRole.RENTER)
def flow_cancel():
    db_session = get_session()
    service = _flow_service()
    try:
        flow = service.cancel()
    except LivenzoError:
        _rollback_flow(db_session, service)
        raise
    _commit_flow(db_session, service)
    return _flow_response(service, flow)
