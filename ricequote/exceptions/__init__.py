"""Custom exceptions for the quote pricing and order engine."""

class QuoteEngineError(Exception):
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

class ValidationError(QuoteEngineError):
    """Bad input shape or format. The user corrects and resubmits."""
    def __init__(self, message="Invalid input", errors=None):
        self.errors = dict(errors or {})
        super().__init__(message, 400, {'errors': self.errors} if self.errors else None)

class PriceUnavailable(QuoteEngineError):
    """Grade or route lookup miss. Non-fatal: callers degrade to "price on request"."""
    def __init__(self, message="Price not available", payload=None):
        super().__init__(message, 404, payload)

class AllocationFailure(QuoteEngineError):
    """Counter transaction did not commit. Safe to retry the submission."""
    def __init__(self, counter_name, reason=None):
        self.counter_name = counter_name
        # Operator detail only; never part of the response
        self.reason = reason
        super().__init__("We could not number your order, please retry", 503, {'retryable': True})

class PersistenceFailure(QuoteEngineError):
    """Order write failed after an id was allocated. The id is burnt, never reused."""
    def __init__(self, quote_id, reason=None):
        self.quote_id = quote_id
        self.reason = reason
        super().__init__("We could not save your order, please retry", 500,
                         {'quote_id': quote_id, 'retryable': True})

class AuditFailure(QuoteEngineError):
    """History write failed. The order stays the source of truth."""
    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        super().__init__("The change was saved but its history entry was not", 500)

class NotFoundError(QuoteEngineError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class UnauthorizedError(QuoteEngineError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)

class SubmissionInProgress(QuoteEngineError):
    """A submission for the same customer is still running."""
    def __init__(self, message="A submission is already in progress"):
        super().__init__(message, 409)

class InvalidStatusTransition(QuoteEngineError):
    """Raised when an admin status change is not allowed."""
    def __init__(self, current, requested):
        message = f"Cannot move an order from {current} to {requested}"
        super().__init__(message, 409, {'current': current, 'requested': requested})
