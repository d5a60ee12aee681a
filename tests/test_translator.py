import asyncio
import sqlite3

import pytest

from conftest import IntegrityError, OperationalError
from tether.exception import (
    ConstraintViolationError,
    DataIntegrityError,
    ErrorCategory,
    RecordNotFound,
    TransientConnectivityError,
    UnknownDataAccessError,
)
from tether.sql.mysql.translator import MysqlErrorTranslator
from tether.sql.postgres.translator import PostgresErrorTranslator
from tether.sql.sqlite.translator import SQLiteErrorTranslator
from tether.translator import ErrorTranslator


def sqlite_error(cls, message, code):
    error = cls(message)
    error.sqlite_errorcode = code
    return error


class PostgresError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


class HostileError(Exception):
    @property
    def sqlite_errorcode(self):
        raise RuntimeError("no code for you")

    def __str__(self):
        raise RuntimeError("no message either")


@pytest.mark.parametrize(
    "code,category",
    (
        (19, ErrorCategory.CONSTRAINT_VIOLATION),
        (1555, ErrorCategory.CONSTRAINT_VIOLATION),
        (2067, ErrorCategory.CONSTRAINT_VIOLATION),
        (5, ErrorCategory.TRANSIENT_CONNECTIVITY),
        (266, ErrorCategory.TRANSIENT_CONNECTIVITY),
        (11, ErrorCategory.DATA_INTEGRITY),
    ),
)
def test_sqlite_codes(code, category):
    error = sqlite_error(sqlite3.DatabaseError, "boom", code)

    assert SQLiteErrorTranslator().categorize(error) is category


def test_sqlite_duplicate_key():
    raw = sqlite_error(
        sqlite3.IntegrityError,
        "UNIQUE constraint failed: member.member_id",
        1555,
    )

    error = SQLiteErrorTranslator().translate(
        "create", "INSERT INTO member ...", raw
    )

    assert isinstance(error, ConstraintViolationError)
    assert error.category is ErrorCategory.CONSTRAINT_VIOLATION
    assert error.operation == "create"
    assert error.statement == "INSERT INTO member ..."
    assert error.cause is raw
    assert "sqlite" in str(error)
    assert "UNIQUE constraint failed" in str(error)
    assert not error.retryable


def test_sqlite_error_without_code_uses_class():
    translator = SQLiteErrorTranslator()

    assert (
        translator.categorize(sqlite3.IntegrityError("NOT NULL"))
        is ErrorCategory.CONSTRAINT_VIOLATION
    )
    assert (
        translator.categorize(sqlite3.OperationalError("database is locked"))
        is ErrorCategory.TRANSIENT_CONNECTIVITY
    )


@pytest.mark.parametrize(
    "sqlstate,error_class",
    (
        ("23505", ConstraintViolationError),
        ("23503", ConstraintViolationError),
        ("08006", TransientConnectivityError),
        ("40P01", TransientConnectivityError),
        ("57P01", TransientConnectivityError),
        ("22003", DataIntegrityError),
        ("XX001", DataIntegrityError),
        ("ZZ999", UnknownDataAccessError),
    ),
)
def test_postgres_sqlstate(sqlstate, error_class):
    raw = PostgresError("server said no", sqlstate)

    error = PostgresErrorTranslator().translate("update_balance", "", raw)

    assert type(error) is error_class


@pytest.mark.parametrize(
    "args,error_class",
    (
        (
            (1062, "Duplicate entry 'a' for key 'PRIMARY'"),
            ConstraintViolationError,
        ),
        (
            (2013, "Lost connection to MySQL server"),
            TransientConnectivityError,
        ),
        ((1213, "Deadlock found"), TransientConnectivityError),
        ((1406, "Data too long"), DataIntegrityError),
        ((9999, "Something new"), UnknownDataAccessError),
    ),
)
def test_mysql_errno(args, error_class):
    error = MysqlErrorTranslator().translate("create", "", Exception(*args))

    assert type(error) is error_class


def test_mysql_unknown_code_falls_back_to_class():
    raw = IntegrityError(9999, "something new")

    error = MysqlErrorTranslator().translate("create", "", raw)

    assert isinstance(error, ConstraintViolationError)


@pytest.mark.parametrize(
    "raw,category",
    (
        (IntegrityError("dup"), ErrorCategory.CONSTRAINT_VIOLATION),
        (OperationalError("gone"), ErrorCategory.TRANSIENT_CONNECTIVITY),
        (asyncio.TimeoutError(), ErrorCategory.TRANSIENT_CONNECTIVITY),
        (ConnectionResetError(), ErrorCategory.TRANSIENT_CONNECTIVITY),
        (ValueError("odd"), ErrorCategory.UNKNOWN),
    ),
)
def test_generic_classification(raw, category):
    assert ErrorTranslator().categorize(raw) is category


def test_transient_errors_are_retryable():
    error = ErrorTranslator().translate("begin", "", ConnectionResetError())

    assert isinstance(error, TransientConnectivityError)
    assert error.retryable


def test_tether_errors_keep_their_category():
    raw = RecordNotFound("missing", key="a")

    assert ErrorTranslator().categorize(raw) is ErrorCategory.NOT_FOUND


def test_translate_never_raises():
    error = SQLiteErrorTranslator().translate(
        "read_by_key", "", HostileError()
    )

    assert isinstance(error, UnknownDataAccessError)
    assert "HostileError" in str(error)


def test_custom_codes_override_defaults():
    translator = SQLiteErrorTranslator(
        codes={5: ErrorCategory.DATA_INTEGRITY}
    )
    raw = sqlite_error(sqlite3.OperationalError, "database is locked", 5)

    assert translator.categorize(raw) is ErrorCategory.DATA_INTEGRITY
    assert SQLiteErrorTranslator().categorize(raw) is (
        ErrorCategory.TRANSIENT_CONNECTIVITY
    )


def test_codes_are_read_only():
    translator = SQLiteErrorTranslator()

    with pytest.raises(TypeError):
        translator.codes[5] = ErrorCategory.UNKNOWN
