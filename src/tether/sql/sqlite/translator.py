from typing import Hashable, Optional

from tether.exception import ErrorCategory
from tether.translator import ErrorTranslator

CONSTRAINT = ErrorCategory.CONSTRAINT_VIOLATION
TRANSIENT = ErrorCategory.TRANSIENT_CONNECTIVITY
INTEGRITY = ErrorCategory.DATA_INTEGRITY

# Result codes from https://www.sqlite.org/rescode.html
SQLITE_CODES = {
    1: INTEGRITY,  # SQLITE_ERROR
    2: INTEGRITY,  # SQLITE_INTERNAL
    4: INTEGRITY,  # SQLITE_ABORT
    5: TRANSIENT,  # SQLITE_BUSY
    6: TRANSIENT,  # SQLITE_LOCKED
    7: TRANSIENT,  # SQLITE_NOMEM
    8: INTEGRITY,  # SQLITE_READONLY
    9: TRANSIENT,  # SQLITE_INTERRUPT
    10: TRANSIENT,  # SQLITE_IOERR
    11: INTEGRITY,  # SQLITE_CORRUPT
    13: INTEGRITY,  # SQLITE_FULL
    14: TRANSIENT,  # SQLITE_CANTOPEN
    15: TRANSIENT,  # SQLITE_PROTOCOL
    17: TRANSIENT,  # SQLITE_SCHEMA
    18: INTEGRITY,  # SQLITE_TOOBIG
    19: CONSTRAINT,  # SQLITE_CONSTRAINT
    20: INTEGRITY,  # SQLITE_MISMATCH
    21: INTEGRITY,  # SQLITE_MISUSE
    25: INTEGRITY,  # SQLITE_RANGE
    26: INTEGRITY,  # SQLITE_NOTADB
    275: CONSTRAINT,  # SQLITE_CONSTRAINT_CHECK
    787: CONSTRAINT,  # SQLITE_CONSTRAINT_FOREIGNKEY
    1299: CONSTRAINT,  # SQLITE_CONSTRAINT_NOTNULL
    1555: CONSTRAINT,  # SQLITE_CONSTRAINT_PRIMARYKEY
    2067: CONSTRAINT,  # SQLITE_CONSTRAINT_UNIQUE
    261: TRANSIENT,  # SQLITE_BUSY_RECOVERY
    517: TRANSIENT,  # SQLITE_BUSY_SNAPSHOT
}


class SQLiteErrorTranslator(ErrorTranslator):
    """Translator for `sqlite3` errors raised through aiosqlite.

    Extended result codes are tried before their primary code (the low
    byte). Interpreters older than 3.11 do not attach codes, in which case
    the DB-API class decides.
    """

    vendor = "sqlite"
    CODES = SQLITE_CODES

    def extract_code(self, raw: BaseException) -> Optional[Hashable]:
        code = getattr(raw, "sqlite_errorcode", None)
        return code if isinstance(code, int) else None

    def lookup(self, code: Hashable) -> Optional[ErrorCategory]:
        category = super().lookup(code)
        if category is None and isinstance(code, int):
            category = super().lookup(code & 0xFF)
        return category
