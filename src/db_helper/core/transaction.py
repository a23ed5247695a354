"""Transaction scopes bound to a session's connection."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy.engine import Connection, RootTransaction
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

from db_helper.errors import StateError, translate_errors

if TYPE_CHECKING:
    from db_helper.core.connection import AsyncDatabaseSession, DatabaseSession

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    """Lifecycle of a transaction scope."""

    NEW = "new"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class _ScopeBase:
    """State machine shared by the blocking and asyncio scopes."""

    def __init__(self, session: Union["DatabaseSession", "AsyncDatabaseSession"]):
        self.session = session
        self.state = TransactionState.NEW
        self.connection: Optional[Union[Connection, AsyncConnection]] = None
        self._transaction: Optional[Union[RootTransaction, AsyncTransaction]] = None

    @property
    def is_active(self) -> bool:
        """Check if the scope has begun and not yet finished."""
        return self.state is TransactionState.ACTIVE

    def _check_can_begin(self) -> None:
        if self.state is not TransactionState.NEW:
            raise StateError(f"Transaction can not begin: already {self.state.value}")

    def _check_can_finish(self) -> None:
        if self.state is TransactionState.NEW:
            raise StateError("Transaction not started")
        if self.state is not TransactionState.ACTIVE:
            raise StateError(f"Transaction already {self.state.value}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value})"


class TransactionScope(_ScopeBase):
    """
    Blocking transaction scope.

    Begin opens the session's connection and holds it until commit or
    rollback; every session operation issued meanwhile runs inside the
    transaction. Usable as a context manager: commit on normal exit, rollback
    when the block raises.
    """

    session: "DatabaseSession"

    def begin(self) -> "TransactionScope":
        """
        Open a connection, start a transaction and attach it to the session.

        Returns:
            This scope

        Raises:
            StateError: If this scope already began or the session has
                another active scope
            DbConnectionError: If the connection cannot be opened
        """
        with self.session._lock:
            self._check_can_begin()
            self.session._attach(self)
            try:
                self.connection = self.session._open_connection()
                with translate_errors("BEGIN TRANSACTION"):
                    self._transaction = self.connection.begin()
            except BaseException:
                self._release()
                raise
            self.state = TransactionState.ACTIVE
            logger.debug("Transaction started")
        return self

    def commit(self) -> None:
        """
        Commit and close the connection.

        Raises:
            StateError: If the scope is not active
            CommandError: If the commit fails; the scope ends rolled back
        """
        self._finish(TransactionState.COMMITTED)

    def rollback(self) -> None:
        """
        Roll back and close the connection.

        Raises:
            StateError: If the scope is not active
        """
        self._finish(TransactionState.ROLLED_BACK)

    def _finish(self, outcome: TransactionState) -> None:
        with self.session._lock:
            self._check_can_finish()
            try:
                with translate_errors(_outcome_statement(outcome)):
                    if outcome is TransactionState.COMMITTED:
                        self._transaction.commit()
                    else:
                        self._transaction.rollback()
            except BaseException:
                self.state = TransactionState.ROLLED_BACK
                logger.warning("Transaction ended without commit")
                raise
            else:
                self.state = outcome
                logger.debug(f"Transaction {outcome.value}")
            finally:
                self._release()

    def _release(self) -> None:
        self.session._detach(self)
        connection, self.connection = self.connection, None
        self._transaction = None
        if connection is not None:
            connection.close()

    def __enter__(self) -> "TransactionScope":
        if self.state is TransactionState.NEW:
            self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.is_active:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


class AsyncTransactionScope(_ScopeBase):
    """Asyncio counterpart of TransactionScope with the same state machine."""

    session: "AsyncDatabaseSession"

    async def begin(self) -> "AsyncTransactionScope":
        """Open a connection, start a transaction and attach it to the session."""
        async with self.session._lock:
            self._check_can_begin()
            self.session._attach(self)
            try:
                self.connection = await self.session._open_connection()
                with translate_errors("BEGIN TRANSACTION"):
                    self._transaction = await self.connection.begin()
            except BaseException:
                await self._release()
                raise
            self.state = TransactionState.ACTIVE
            logger.debug("Transaction started")
        return self

    async def commit(self) -> None:
        """Commit and close the connection."""
        await self._finish(TransactionState.COMMITTED)

    async def rollback(self) -> None:
        """Roll back and close the connection."""
        await self._finish(TransactionState.ROLLED_BACK)

    async def _finish(self, outcome: TransactionState) -> None:
        async with self.session._lock:
            self._check_can_finish()
            try:
                with translate_errors(_outcome_statement(outcome)):
                    if outcome is TransactionState.COMMITTED:
                        await self._transaction.commit()
                    else:
                        await self._transaction.rollback()
            except BaseException:
                self.state = TransactionState.ROLLED_BACK
                logger.warning("Transaction ended without commit")
                raise
            else:
                self.state = outcome
                logger.debug(f"Transaction {outcome.value}")
            finally:
                await self._release()

    async def _release(self) -> None:
        self.session._detach(self)
        connection, self.connection = self.connection, None
        self._transaction = None
        if connection is not None:
            await connection.close()

    async def __aenter__(self) -> "AsyncTransactionScope":
        if self.state is TransactionState.NEW:
            await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.is_active:
            return
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()


def _outcome_statement(outcome: TransactionState) -> str:
    return "COMMIT" if outcome is TransactionState.COMMITTED else "ROLLBACK"
