from importlib.metadata import version

from .base.provider import BaseProvider
from .exception import (
    ConstraintViolationError,
    DataAccessError,
    DataIntegrityError,
    ErrorCategory,
    ProgrammingUsageError,
    RecordNotFound,
    TetherError,
    TransactionError,
    TransactionTimeoutError,
    TransientConnectivityError,
    UnexpectedRollbackError,
    UnknownDataAccessError,
)
from .model import Member
from .registry import ConnectionRegistry
from .repository import MemberRepository
from .service import TransferService
from .sql.mysql.pool import MysqlPool
from .sql.postgres.pool import PostgresPool
from .sql.sqlite.pool import SQLitePool
from .tether import Tether
from .transaction import TransactionCoordinator, UnitOfWork
from .translator import ErrorTranslator

__version__ = version("tether")

__all__ = (
    "BaseProvider",
    "ConnectionRegistry",
    "ConstraintViolationError",
    "DataAccessError",
    "DataIntegrityError",
    "ErrorCategory",
    "ErrorTranslator",
    "Member",
    "MemberRepository",
    "MysqlPool",
    "PostgresPool",
    "ProgrammingUsageError",
    "RecordNotFound",
    "SQLitePool",
    "Tether",
    "TetherError",
    "TransactionCoordinator",
    "TransactionError",
    "TransactionTimeoutError",
    "TransferService",
    "TransientConnectivityError",
    "UnexpectedRollbackError",
    "UnitOfWork",
    "UnknownDataAccessError",
)
