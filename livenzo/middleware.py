"""Middleware for request user context and access control."""
from functools import wraps
from flask import session, g, jsonify, current_app
from livenzo.database import get_session
from livenzo.models import UserProfile, UserRole


def load_user():
    """
    Load the current user into g.

    Identity is established upstream; the session carries `user_id`.
    Sets g.user (or None) and g.user_role.
    """
    g.user = None
    g.user_role = None

    try:
        user_id = session.get('user_id')
        if user_id:
            db_session = get_session()
            if not db_session:
                return

            user = db_session.query(UserProfile).filter_by(id=user_id, active=True).first()
            if user:
                g.user = user
                g.user_id = user.id
                g.user_role = user.role
            else:
                session.pop('user_id', None)
    except Exception as e:
        # Avoid crashing the whole app if context loading fails
        current_app.logger.error(f"Error in load_user: {e}")


def require_login(f):
    """Decorator: Require an authenticated user (401 JSON otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_role(role: UserRole):
    """
    Decorator: Require the user to have a given role.

    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user') is None:
                return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
            if g.user.role != role.value:
                return jsonify({
                    'status': 'error',
                    'message': f'Only {role.value}s can do this'
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
