"""
Audit logging for rent status and payment actions.
"""
from livenzo.models.audit_log import AuditLog, AuditAction
from flask import request, g, has_request_context
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None,
    actor_id: int = None
):
    """
    Log an auditable action to the database.

    Args:
        session: Database session
        action: AuditAction enum value
        resource_type: Type of resource affected (e.g., 'rent_status', 'payment')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
        actor_id: Acting user; defaults to g.user inside a request
    """
    try:
        ip_address = None
        user_agent = None
        if has_request_context():
            if actor_id is None and g.get('user') is not None:
                actor_id = g.user.id
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent', '')[:255]

        details_json = None
        if details:
            try:
                details_json = json.dumps(details, default=str)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to serialize audit details: {e}")
                details_json = str(details)

        audit_entry = AuditLog(
            user_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details_json,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=datetime.utcnow()
        )
        session.add(audit_entry)
        # Note: Caller is responsible for committing the session

        logger.info(f"Audit log created: {action.value} by user {actor_id} on {resource_type} {resource_id}")

    except Exception as e:
        # Audit failures must not break the rent workflow
        logger.error(f"Failed to create audit log: {e}")

