from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Dict, Hashable, Mapping, Optional, Tuple

from tether.exception import (
    CATEGORY_ERRORS,
    DataAccessError,
    ErrorCategory,
    TetherError,
)

logger = logging.getLogger(__name__)

# Matched by class name anywhere in the MRO, in this order
DBAPI_CATEGORIES: Tuple[Tuple[str, ErrorCategory], ...] = (
    ("IntegrityError", ErrorCategory.CONSTRAINT_VIOLATION),
    ("OperationalError", ErrorCategory.TRANSIENT_CONNECTIVITY),
    ("InterfaceError", ErrorCategory.TRANSIENT_CONNECTIVITY),
    ("DataError", ErrorCategory.DATA_INTEGRITY),
    ("ProgrammingError", ErrorCategory.DATA_INTEGRITY),
    ("InternalError", ErrorCategory.DATA_INTEGRITY),
    ("NotSupportedError", ErrorCategory.DATA_INTEGRITY),
    ("DatabaseError", ErrorCategory.DATA_INTEGRITY),
)
TRANSIENT_TYPES = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    OSError,
)


class ErrorTranslator:
    """Classifies raw driver failures into an `ErrorCategory`.

    The vendor code table is merged once at construction and never written
    afterwards, so a single instance can be shared by every caller.
    Subclasses supply `CODES` and override `extract_code`/`lookup` for their
    driver's vocabulary. Anything that cannot be matched by code falls back
    to the DB-API exception class names, and failing that to
    `ErrorCategory.UNKNOWN`.

    Example:

    ```python
    translator = ErrorTranslator()
    try:
        ...
    except Exception as e:
        raise translator.translate("create", statement, e) from e
    ```
    """

    vendor = "generic"
    CODES: Mapping[Hashable, ErrorCategory] = {}

    def __init__(
        self, codes: Optional[Mapping[Hashable, ErrorCategory]] = None
    ) -> None:
        table: Dict[Hashable, ErrorCategory] = dict(self.CODES)
        table.update(codes or {})
        self._codes = MappingProxyType(table)

    @property
    def codes(self) -> Mapping[Hashable, ErrorCategory]:
        return self._codes

    def translate(
        self, operation: str, statement: str, raw: BaseException
    ) -> DataAccessError:
        """Produce the canonical error for a driver failure. Never raises.

        Args:
            operation (str): Name of the failing operation
            statement (str): Statement text that was executing
            raw (BaseException): The driver failure

        Returns:
            DataAccessError: An error whose class matches its category
        """
        try:
            category = self.categorize(raw)
        except Exception as e:
            logger.warning(
                "Could not classify %r during %s: %s", raw, operation, e
            )
            category = ErrorCategory.UNKNOWN

        try:
            detail = f"{raw.__class__.__name__}: {raw}"
        except Exception:
            detail = raw.__class__.__name__

        logger.error(
            "%s error during %s: %s", category.name, operation or "-", detail
        )
        error_class = CATEGORY_ERRORS.get(
            category, CATEGORY_ERRORS[ErrorCategory.UNKNOWN]
        )
        return error_class(
            f"{operation} failed ({self.vendor}): {detail}",
            operation=operation,
            statement=statement,
            cause=raw,
        )

    def categorize(self, raw: BaseException) -> ErrorCategory:
        if isinstance(raw, TetherError):
            return raw.category
        code = self.extract_code(raw)
        if code is not None:
            category = self.lookup(code)
            if category is not None:
                return category
        return self.categorize_by_type(raw)

    def extract_code(self, raw: BaseException) -> Optional[Hashable]:
        return None

    def lookup(self, code: Hashable) -> Optional[ErrorCategory]:
        return self._codes.get(code)

    @staticmethod
    def categorize_by_type(raw: BaseException) -> ErrorCategory:
        names = [cls.__name__ for cls in type(raw).__mro__]
        for name, category in DBAPI_CATEGORIES:
            if name in names:
                return category
        if isinstance(raw, TRANSIENT_TYPES):
            return ErrorCategory.TRANSIENT_CONNECTIVITY
        return ErrorCategory.UNKNOWN


def first_int_arg(raw: Any) -> Optional[int]:
    args = getattr(raw, "args", ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return args[0]
    return None
