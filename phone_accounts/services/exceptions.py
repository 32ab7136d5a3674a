"""Exception hierarchy for account lifecycle operations."""


class AccountServiceError(Exception):
    """Base exception for account service errors."""
    pass


class ConflictError(AccountServiceError):
    """Raised when an account already exists for a phone number."""
    pass


class NotFoundError(AccountServiceError):
    """Raised when an operation references an absent account."""
    pass


class VerificationFailure(AccountServiceError):
    """Raised when a code is submitted to a challenge that is already decided."""
    pass


class DeliveryFailure(AccountServiceError):
    """Raised when a verification code could not be delivered."""

    def __init__(self, reason: str):
        super().__init__(f"Failed to deliver verification code: {reason}")
        self.reason = reason


class PersistenceFailure(AccountServiceError):
    """Raised when the record store fails during an operation."""
    pass
