"""
Errors raised by the order lifecycle operations.

Each error carries the HTTP status code it is surfaced with, so the web
layer can render any of them through a single error handler.
"""


class OrderError(Exception):
    """Base class for failures scoped to a single order request."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"ok": False, "error": self.message}


class NotFound(OrderError):
    """Referenced restaurant, menu item or order does not exist."""

    status_code = 404


class InvalidRequest(OrderError):
    """Malformed input: empty lines, non-positive quantity, blank address."""

    status_code = 400


class InvalidTransition(OrderError):
    """Status change not permitted from the current status."""

    status_code = 400


class StaleOrderStatus(InvalidTransition):
    """The order's status changed between read and write."""

    status_code = 409


class Unauthorized(OrderError):
    """Actor lacks the role or ownership the operation requires."""

    status_code = 403
