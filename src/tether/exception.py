from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Type


class ErrorCategory(Enum):
    """Vendor independent classification of a data layer failure"""

    NOT_FOUND = "not_found"
    CONSTRAINT_VIOLATION = "constraint_violation"
    TRANSIENT_CONNECTIVITY = "transient_connectivity"
    DATA_INTEGRITY = "data_integrity"
    UNKNOWN = "unknown"
    PROGRAMMING_USAGE = "programming_usage"


class TetherError(Exception):
    category: ErrorCategory = ErrorCategory.UNKNOWN

    @property
    def retryable(self) -> bool:
        """Whether the caller may reasonably try the same call again"""
        return self.category is ErrorCategory.TRANSIENT_CONNECTIVITY


class MissingDriver(TetherError):
    pass


class ProgrammingUsageError(TetherError):
    """Raised when the binding discipline is broken by the caller. These
    are never retried."""

    category = ErrorCategory.PROGRAMMING_USAGE


class RecordNotFound(TetherError):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, message: str, key: Any = None) -> None:
        super().__init__(message)
        self.key = key


class DataAccessError(TetherError):
    """A driver-level failure after it has been classified

    Args:
        message (str): Human readable description
        operation (str, optional): The repository or transaction operation
            that failed. Defaults to `""`.
        statement (str, optional): The statement text being executed.
            Defaults to `""`.
        cause (BaseException, optional): The original driver failure.
            Defaults to `None`.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        statement: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self._operation = operation
        self._statement = statement
        self._cause = cause

    @property
    def operation(self) -> str:
        return self._operation

    @property
    def statement(self) -> str:
        return self._statement

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(category={self.category.name}, "
            f"operation={self.operation!r}, message={str(self)!r})"
        )


class ConstraintViolationError(DataAccessError):
    category = ErrorCategory.CONSTRAINT_VIOLATION


class TransientConnectivityError(DataAccessError):
    category = ErrorCategory.TRANSIENT_CONNECTIVITY


class DataIntegrityError(DataAccessError):
    category = ErrorCategory.DATA_INTEGRITY


class UnknownDataAccessError(DataAccessError):
    category = ErrorCategory.UNKNOWN


class TransactionError(DataAccessError):
    """Base exception for unit of work failures that did not originate
    from the driver"""

    category = ErrorCategory.DATA_INTEGRITY


class UnexpectedRollbackError(TransactionError):
    """Raised when the outermost commit finds the unit of work was marked
    rollback-only by a nested rollback"""

    pass


class TransactionTimeoutError(TransactionError):
    category = ErrorCategory.TRANSIENT_CONNECTIVITY


CATEGORY_ERRORS: Dict[ErrorCategory, Type[DataAccessError]] = {
    ErrorCategory.CONSTRAINT_VIOLATION: ConstraintViolationError,
    ErrorCategory.TRANSIENT_CONNECTIVITY: TransientConnectivityError,
    ErrorCategory.DATA_INTEGRITY: DataIntegrityError,
    ErrorCategory.UNKNOWN: UnknownDataAccessError,
}
