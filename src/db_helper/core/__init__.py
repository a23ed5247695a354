"""Core database operations layer."""

from .admin import AdminOperations, AsyncAdminOperations
from .builder import StatementBuilder
from .command import Command
from .connection import AsyncDatabaseSession, DatabaseSession
from .transaction import AsyncTransactionScope, TransactionScope, TransactionState

__all__ = [
    "AdminOperations",
    "AsyncAdminOperations",
    "AsyncDatabaseSession",
    "AsyncTransactionScope",
    "Command",
    "DatabaseSession",
    "StatementBuilder",
    "TransactionScope",
    "TransactionState",
]
