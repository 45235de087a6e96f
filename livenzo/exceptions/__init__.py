"""Custom exceptions for the Livenzo rent service."""


class LivenzoError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(LivenzoError):
    """Raised for invalid user input, before any network call."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class TransitionRejectedError(LivenzoError):
    """Raised when a rent status transition is not allowed."""
    def __init__(self, reason, message, current_status=None, action=None):
        payload = {'reason': reason, 'current_status': current_status, 'action': action}
        super().__init__(message, 409, payload)
        self.reason = reason


class FlowStateError(LivenzoError):
    """Raised when a payment flow step is attempted out of order."""
    def __init__(self, message, state=None):
        super().__init__(message, 409, {'flow_state': state})


class NotFoundError(LivenzoError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthorizedError(LivenzoError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class BackendError(LivenzoError):
    """Raised when a collaborator (storage, provider, database) fails."""
    def __init__(self, message, payload=None):
        super().__init__(message, 502, payload)


class PaymentCancelledError(LivenzoError):
    """Raised when the payer dismisses the provider's payment UI."""
    def __init__(self, message="Payment cancelled by user"):
        super().__init__(message, 400, {'reason': 'cancelled_by_user'})


class StorageUnavailableError(LivenzoError):
    """Raised when the key-value store cannot persist state."""
    def __init__(self, message="Session storage is temporarily unavailable"):
        super().__init__(message, 503)


class PaymentFailedError(LivenzoError):
    """Raised when the provider reports a failed or unverifiable payment."""
    def __init__(self, message="Payment failed. Please try again."):
        super().__init__(message, 400, {'reason': 'payment_failed'})
