"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from livenzo.database import get_session
from livenzo.services.kv_store import get_kv_store

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        session = get_session()
        row = session.execute(text("SELECT 1 as health_check")).fetchone()

        if row and row[0] == 1:
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'message': 'Database connection successful'
            }), 200
        return jsonify({
            'status': 'unhealthy',
            'database': 'error',
            'message': 'Unexpected query result'
        }), 500

    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'message': 'Failed to connect to database'
        }), 500


@main_bp.route('/health/kv')
def health_kv():
    """
    Key-value store health check.

    Never returns 500: without the store the app keeps serving, only
    payment flows and tutorial flags are unavailable.
    """
    store = get_kv_store()
    if not store.is_available():
        return jsonify({
            'status': 'degraded',
            'kv': 'unavailable',
            'message': 'Key-value store disabled or Redis unavailable'
        }), 200

    store.set(0, 'health_check', {'test': 'ok'}, ttl=10)
    result = store.get(0, 'health_check')
    if result and result.get('test') == 'ok':
        return jsonify({'status': 'ok', 'kv': 'connected', 'message': 'Key-value store is working'}), 200
    return jsonify({
        'status': 'degraded',
        'kv': 'error',
        'message': 'Store connected but operations failing'
    }), 200
