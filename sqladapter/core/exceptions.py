"""
Adapter exceptions.

Statement-level failures (connection, constraint, decode) are SQLAlchemy's
own exceptions and propagate unchanged. The classes here cover transaction
control and adapter state.
"""


class AdapterError(Exception):
    """Base class for adapter errors."""
    pass


class TransactionError(AdapterError):
    """Raised when a transaction cannot be begun, committed or rolled back."""
    pass


class BeginError(TransactionError):
    """Raised when a transaction cannot be started."""
    pass


class CommitError(TransactionError):
    """Raised when the unit of work succeeded but the commit failed."""
    pass


class RollbackError(TransactionError):
    """
    Raised when rolling back after a failed unit of work also fails.

    Both failures are kept:
        original: the exception raised by the unit of work
        rollback_error: the exception raised by the rollback
    """

    def __init__(self, original: BaseException, rollback_error: BaseException):
        self.original = original
        self.rollback_error = rollback_error
        super().__init__(
            f"{original}; rolling back transaction: {rollback_error}"
        )


class FilteredPolicyError(AdapterError):
    """Raised when saving a model that was only partially loaded."""
    pass
