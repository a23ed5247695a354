"""Relational database access helper over SQLAlchemy."""

from db_helper.core import (
    AdminOperations,
    AsyncAdminOperations,
    AsyncDatabaseSession,
    AsyncTransactionScope,
    DatabaseSession,
    StatementBuilder,
    TransactionScope,
    TransactionState,
)
from db_helper.core.binder import bind
from db_helper.errors import (
    ArgumentError,
    CommandError,
    ConversionError,
    DbConnectionError,
    DbHelperError,
    StateError,
)
from db_helper.export import create_exporter
from db_helper.models import (
    CommandType,
    DatabaseConfig,
    ParamItem,
    QueryKind,
    ResultSet,
    Statement,
)

__version__ = "1.0.0"

__all__ = [
    "AdminOperations",
    "ArgumentError",
    "AsyncAdminOperations",
    "AsyncDatabaseSession",
    "AsyncTransactionScope",
    "CommandError",
    "CommandType",
    "ConversionError",
    "DatabaseConfig",
    "DatabaseSession",
    "DbConnectionError",
    "DbHelperError",
    "ParamItem",
    "QueryKind",
    "ResultSet",
    "StateError",
    "Statement",
    "StatementBuilder",
    "TransactionScope",
    "TransactionState",
    "bind",
    "create_exporter",
]
