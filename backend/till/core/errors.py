"""
Business-rule failures raised by the till services.

Every error is recoverable by the caller: services raise before writing
anything, so the session is left unchanged. The API maps each class to an
HTTP status through ``status_code``.
"""


class TillError(Exception):
    """Base class for business-rule violations."""

    status_code = 400
    code = "till_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(TillError):
    status_code = 404
    code = "not_found"


class InvalidState(TillError):
    """Mutation not allowed in the current state (closed entry, wrong step)."""

    status_code = 409
    code = "invalid_state"


class InvalidAmount(TillError):
    status_code = 422
    code = "invalid_amount"


class InsufficientStock(TillError):
    status_code = 409
    code = "insufficient_stock"


class ExceedsAvailable(TillError):
    """Safe deposit larger than the cash counted in the drawer."""

    status_code = 422
    code = "exceeds_available"


class DuplicateClosing(TillError):
    status_code = 409
    code = "duplicate_closing"


class AlreadyReconciled(TillError):
    status_code = 409
    code = "already_reconciled"
