"""Custom exceptions for the pharmacy application."""


class PharmacyError(Exception):
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


class ValidationError(PharmacyError):
    """Raised for malformed or empty input."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(PharmacyError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", resource=None, resource_id=None):
        payload = None
        if resource is not None:
            payload = {'resource': resource, 'id': resource_id}
        super().__init__(message, 404, payload)

    @classmethod
    def for_resource(cls, resource, resource_id):
        return cls(f"{resource} not found: {resource_id}", resource=resource, resource_id=resource_id)


class InsufficientStockError(PharmacyError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, medicine_name, available, requested, medicine_id=None):
        message = (
            f"Insufficient stock for {medicine_name}. "
            f"Available: {available}, Required: {requested}"
        )
        super().__init__(message, 400, {
            'medicine_id': medicine_id,
            'medicine_name': medicine_name,
            'available': available,
            'requested': requested,
        })
        self.medicine_name = medicine_name
        self.available = available
        self.requested = requested


class InvalidStateError(PharmacyError):
    """Raised when a record is not in a state that allows the operation."""
    def __init__(self, message, current_status=None):
        payload = {'current_status': current_status} if current_status else None
        super().__init__(message, 400, payload)
        self.current_status = current_status


class TransactionFailure(PharmacyError):
    """Raised when the store rejects an atomic write sequence. Nothing was applied."""
    def __init__(self, message="The transaction could not be completed", cause=None):
        super().__init__(message, 500)
        self.cause = cause


class UnauthorizedError(PharmacyError):
    """Raised when the request is not authenticated."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class ForbiddenError(PharmacyError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Access denied"):
        super().__init__(message, 403)
