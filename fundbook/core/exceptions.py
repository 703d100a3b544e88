"""Custom exception classes for the ledger.

Provides a hierarchy of exceptions for consistent error handling
across the application with appropriate HTTP status codes.
"""

from decimal import Decimal


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception.

    Raised when a requested resource does not exist or belongs to
    another user. Foreign ownership is never reported differently.
    """

    def __init__(self, resource: str, identifier: str, status_code: int = 404) -> None:
        super().__init__(
            message=f"{resource} with id {identifier} not found",
            status_code=status_code,
        )
        self.resource = resource
        self.identifier = identifier


class ReferenceNotFoundError(NotFoundError):
    """A wallet or fund named inside a request body was not found.

    Unlike a missing path resource this is a bad request.
    """

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(resource, identifier, status_code=400)


class ValidationError(AppException):
    """Input validation failed exception.

    Raised when input data fails validation rules.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=400)


class ConfigurationError(ValidationError):
    """Fund pull configuration cannot be applied.

    Raised when non-savings pull percentages add up to more than 100.
    """

    def __init__(self, pull_sum: Decimal) -> None:
        super().__init__(
            f"Sum of fund pull percentages is {pull_sum}, it cannot exceed 100"
        )
        self.pull_sum = pull_sum


class InvariantViolation(AppException):
    """Operation would break a ledger invariant.

    Raised when deleting a wallet or fund that still holds money, or when
    touching the protected allocation rule of the Savings fund.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=400)


class HasBalanceError(InvariantViolation):
    """Wallet or fund still has a non-zero with-pending balance."""

    def __init__(self, resource: str, identifier: str, balance: Decimal) -> None:
        super().__init__(
            f"{resource} {identifier} has a non-zero balance ({balance}). "
            "Move the money elsewhere, then try again."
        )
        self.resource = resource
        self.identifier = identifier
        self.balance = balance


class ProtectedFundError(InvariantViolation):
    """The Savings fund cannot be deleted or re-pulled."""

    def __init__(self, action: str) -> None:
        super().__init__(f"The savings fund is protected: cannot {action}")
        self.action = action


class StorageFailure(AppException):
    """Database write or transaction failed.

    The core never retries. Retrying a create produces a duplicate event.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(
            message=f"Storage failure during {operation}",
            status_code=500,
        )
        self.operation = operation
