"""
Domain errors raised by the service layer.

Validation and policy errors are raised before anything is written; the
FastAPI handler in ``dropship.main`` turns every ``DropshipError`` into the
standard error envelope.
"""
from typing import Optional


class DropshipError(Exception):
    """Base class for all domain errors"""
    code = "ERROR"
    status_code = 400
    title = "Error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(DropshipError):
    """Bad input shape or range (amount <= 0, missing reason, ...)"""
    code = "VALIDATION_ERROR"
    status_code = 400
    title = "Validation error"


class PolicyViolationError(ValidationError):
    """A business rule refused the operation"""
    code = "POLICY_VIOLATION"
    status_code = 409
    title = "Request not allowed"


class InsufficientBalanceError(PolicyViolationError):
    code = "INSUFFICIENT_BALANCE"


class AmountExceedsDuesError(PolicyViolationError):
    code = "AMOUNT_EXCEEDS_DUES"


class DuesBlockedError(PolicyViolationError):
    code = "DUES_BLOCKED"


class BelowMinimumError(PolicyViolationError):
    code = "BELOW_MINIMUM"


class InsufficientAvailableError(PolicyViolationError):
    code = "INSUFFICIENT_AVAILABLE"


class InsufficientCreditError(PolicyViolationError):
    code = "INSUFFICIENT_CREDIT"


class InvalidTransitionError(PolicyViolationError):
    code = "INVALID_TRANSITION"


class StaleStateError(PolicyViolationError):
    """The caller acted on a status that is no longer the stored one"""
    code = "STALE_STATE"


class NotFoundError(DropshipError):
    code = "NOT_FOUND"
    status_code = 404
    title = "Not found"


class RemoteError(DropshipError):
    """An edge function or other remote call failed; message is passed through"""
    code = "REMOTE_ERROR"
    status_code = 502
    title = "Remote service error"
