"""Custom exceptions for the daycare management API."""


class DaycareError(Exception):
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


class BadRequestError(DaycareError):
    """Invalid input, invalid/expired token or a rule the request breaks."""
    def __init__(self, message="Bad request", payload=None):
        super().__init__(message, 400, payload)


class UnauthorizedError(DaycareError):
    """Missing or invalid credentials."""
    def __init__(self, message="Unauthorized", payload=None):
        super().__init__(message, 401, payload)


class ForbiddenError(DaycareError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Forbidden", payload=None):
        super().__init__(message, 403, payload)


class NotFoundError(DaycareError):
    """Exception raised when a resource is not found (or is outside the tenant)."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(DaycareError):
    """Duplicate email, subdomain or relationship."""
    def __init__(self, message="Resource already exists", payload=None):
        super().__init__(message, 409, payload)
