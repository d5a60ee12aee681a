from typing import Hashable, Optional

from tether.exception import ErrorCategory
from tether.translator import ErrorTranslator

CONSTRAINT = ErrorCategory.CONSTRAINT_VIOLATION
TRANSIENT = ErrorCategory.TRANSIENT_CONNECTIVITY
INTEGRITY = ErrorCategory.DATA_INTEGRITY

# Exact SQLSTATE codes first, then two character classes
POSTGRES_CODES = {
    "40001": TRANSIENT,  # serialization_failure
    "40P01": TRANSIENT,  # deadlock_detected
    "53300": TRANSIENT,  # too_many_connections
    "55P03": TRANSIENT,  # lock_not_available
    "57014": TRANSIENT,  # query_canceled
    "57P01": TRANSIENT,  # admin_shutdown
    "57P02": TRANSIENT,  # crash_shutdown
    "57P03": TRANSIENT,  # cannot_connect_now
    "XX001": INTEGRITY,  # data_corrupted
    "XX002": INTEGRITY,  # index_corrupted
    "08": TRANSIENT,  # connection_exception
    "22": INTEGRITY,  # data_exception
    "23": CONSTRAINT,  # integrity_constraint_violation
    "25": INTEGRITY,  # invalid_transaction_state
    "40": TRANSIENT,  # transaction_rollback
    "42": INTEGRITY,  # syntax_error_or_access_rule_violation
    "53": TRANSIENT,  # insufficient_resources
}


class PostgresErrorTranslator(ErrorTranslator):
    """Translator keyed on SQLSTATE, as exposed by psycopg (`sqlstate`) or
    psycopg2 (`pgcode`)."""

    vendor = "postgres"
    CODES = POSTGRES_CODES

    def extract_code(self, raw: BaseException) -> Optional[Hashable]:
        code = getattr(raw, "sqlstate", None) or getattr(raw, "pgcode", None)
        return code if isinstance(code, str) and len(code) == 5 else None

    def lookup(self, code: Hashable) -> Optional[ErrorCategory]:
        category = super().lookup(code)
        if category is None and isinstance(code, str):
            category = super().lookup(code[:2])
        return category
