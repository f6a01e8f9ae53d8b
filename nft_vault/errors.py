"""
Failure kinds surfaced by vault operations.
"""
from enum import Enum


class ErrorCode(Enum):
    UNAUTHORIZED = "Unauthorized"
    INVALID_PARAMETERS = "InvalidParameters"
    NOT_FOUND = "NotFound"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    LISTING_EXISTS = "ListingExists"
    LISTING_NOT_FOUND = "ListingNotFound"
    TRANSFER_FAILED = "TransferFailed"
    ALREADY_STAKED = "AlreadyStaked"
    NOT_STAKED = "NotStaked"


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


class LedgerError(ValidationError):
    """
    A terminal failure of one operation.

    The ledger discards the operation's pending writes and reports `code`
    back to the caller.
    """

    def __init__(self, code: ErrorCode, message: str = ""):
        self.code = code
        self.message = message or code.value
        super().__init__(f"{code.value}: {self.message}")


class PrimitiveError(Exception):
    """Raised by the value-transfer or ownership primitive when a move fails."""
    pass


class InvariantViolation(Exception):
    """
    State is inconsistent (e.g. a staked asset without a recorded owner).

    Never converted to an ErrorCode: this is a defect, not a retryable failure.
    """
    pass
