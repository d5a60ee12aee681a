from typing import Hashable, Optional

from tether.exception import ErrorCategory
from tether.translator import ErrorTranslator, first_int_arg

CONSTRAINT = ErrorCategory.CONSTRAINT_VIOLATION
TRANSIENT = ErrorCategory.TRANSIENT_CONNECTIVITY
INTEGRITY = ErrorCategory.DATA_INTEGRITY

MYSQL_CODES = {
    1022: CONSTRAINT,  # ER_DUP_KEY
    1048: CONSTRAINT,  # ER_BAD_NULL_ERROR
    1062: CONSTRAINT,  # ER_DUP_ENTRY
    1169: CONSTRAINT,  # ER_DUP_UNIQUE
    1216: CONSTRAINT,  # ER_NO_REFERENCED_ROW
    1217: CONSTRAINT,  # ER_ROW_IS_REFERENCED
    1451: CONSTRAINT,  # ER_ROW_IS_REFERENCED_2
    1452: CONSTRAINT,  # ER_NO_REFERENCED_ROW_2
    1557: CONSTRAINT,  # ER_FOREIGN_DUPLICATE_KEY
    1586: CONSTRAINT,  # ER_DUP_ENTRY_WITH_KEY_NAME
    3819: CONSTRAINT,  # ER_CHECK_CONSTRAINT_VIOLATED
    1040: TRANSIENT,  # ER_CON_COUNT_ERROR
    1053: TRANSIENT,  # ER_SERVER_SHUTDOWN
    1205: TRANSIENT,  # ER_LOCK_WAIT_TIMEOUT
    1213: TRANSIENT,  # ER_LOCK_DEADLOCK
    2002: TRANSIENT,  # CR_CONNECTION_ERROR
    2003: TRANSIENT,  # CR_CONN_HOST_ERROR
    2006: TRANSIENT,  # CR_SERVER_GONE_ERROR
    2013: TRANSIENT,  # CR_SERVER_LOST
    1264: INTEGRITY,  # ER_WARN_DATA_OUT_OF_RANGE
    1265: INTEGRITY,  # WARN_DATA_TRUNCATED
    1292: INTEGRITY,  # ER_TRUNCATED_WRONG_VALUE
    1366: INTEGRITY,  # ER_TRUNCATED_WRONG_VALUE_FOR_FIELD
    1406: INTEGRITY,  # ER_DATA_TOO_LONG
}


class MysqlErrorTranslator(ErrorTranslator):
    """Translator for asyncmy/PyMySQL errors, which carry the server or
    client error number as their first argument."""

    vendor = "mysql"
    CODES = MYSQL_CODES

    def extract_code(self, raw: BaseException) -> Optional[Hashable]:
        return first_int_arg(raw)
