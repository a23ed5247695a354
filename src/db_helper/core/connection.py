"""Database sessions: one connection factory and one command per session.

A connection is opened immediately before each statement and closed right
after it, unless a transaction scope holds it open. Statement preparation,
result materialization, scalar decoding and error translation are shared by
the blocking and asyncio sessions; only the I/O calls differ.
"""

import asyncio
import functools
import logging
import threading
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Callable, Iterator, Optional, Sequence, Union

from sqlalchemy import TextClause, create_engine, exc
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from db_helper.core.binder import ParamsInput, normalize_params
from db_helper.core.builder import StatementBuilder, WhereInput
from db_helper.core.command import Command
from db_helper.core.transaction import AsyncTransactionScope, TransactionScope
from db_helper.errors import (
    ArgumentError,
    DbConnectionError,
    DbHelperError,
    StateError,
    translate_errors,
)
from db_helper.models.config import DatabaseConfig
from db_helper.models.params import QueryKind
from db_helper.models.query import ResultSet, Statement
from db_helper.utils.conversion import convert_scalar

logger = logging.getLogger(__name__)

ScopeType = Union[TransactionScope, AsyncTransactionScope]

# Dialects whose drivers report server messages as extra result sets
_MULTI_RESULT_DIALECTS = {"mssql"}


def _rowcount(result: CursorResult) -> int:
    return result.rowcount if result.rowcount is not None else -1


def _first_value(result: CursorResult) -> Any:
    if not result.returns_rows:
        return None
    return result.scalar()


def _materialize(result: CursorResult, table_name: Optional[str] = None) -> ResultSet:
    """Buffer every row of a result into a ResultSet."""
    if not result.returns_rows:
        return ResultSet(table_name=table_name)

    columns = list(result.keys())
    rows = [dict(zip(columns, row)) for row in result.fetchall()]
    return ResultSet(columns=columns, rows=rows, table_name=table_name)


def _run_on_cursor(conn: Connection, clause: TextClause, parameters: dict[str, Any]) -> int:
    """
    Execute on the raw DBAPI cursor and consume every result set.

    SQLAlchemy closes the cursor of a statement that returns no rows at
    once; pyodbc returns from BACKUP/RESTORE before the server finishes and
    reports progress as further result sets, so they are drained here.
    """
    compiled = clause.compile(dialect=conn.dialect)
    bound = compiled.construct_params(parameters)
    if compiled.positional:
        args: Any = tuple(bound[name] for name in compiled.positiontup)
    else:
        args = bound

    cursor = conn.connection.cursor()
    try:
        cursor.execute(compiled.string, args)
        rowcount = cursor.rowcount if cursor.rowcount is not None else -1
        if conn.dialect.name in _MULTI_RESULT_DIALECTS:
            while cursor.nextset():
                pass
        return rowcount
    finally:
        cursor.close()


class _SessionBase:
    """Statement preparation and transaction bookkeeping shared by both sessions."""

    builder: StatementBuilder

    def __init__(self, config: Union[DatabaseConfig, str]):
        if isinstance(config, str):
            config = DatabaseConfig.from_connection_string(config)
        self.config = config
        self.command = Command()
        self._scope: Optional[ScopeType] = None

    @property
    def dialect(self) -> str:
        """Get database dialect name."""
        return self.config.dialect

    @property
    def in_transaction(self) -> bool:
        """Check if a transaction scope currently holds the connection."""
        return self._scope is not None and self._scope.is_active

    @property
    def transaction_scope(self) -> Optional[ScopeType]:
        """The active transaction scope, if any."""
        return self._scope

    def _attach(self, scope: ScopeType) -> None:
        if self._scope is not None:
            raise StateError("A transaction is already active on this session")
        self._scope = scope

    def _detach(self, scope: ScopeType) -> None:
        if self._scope is scope:
            self._scope = None

    def _require_scope(self) -> ScopeType:
        if self._scope is None:
            raise StateError("Transaction not started")
        return self._scope

    def _require_no_scope(self) -> None:
        if self._scope is not None:
            raise StateError("Autocommit statements can not run inside a transaction")

    @property
    def _driver_error(self) -> type:
        return self.engine.dialect.loaded_dbapi.Error

    def _connection_error(self, error: Exception) -> DbConnectionError:
        cause = getattr(error, "orig", None) or error
        return DbConnectionError(
            f"Could not open connection to {self.config.safe_url}: {cause}"
        )

    def _text_statement(self, sql: str, params: ParamsInput) -> Statement:
        if not isinstance(sql, str) or not sql.strip():
            raise ArgumentError("Query text can not be empty")
        return Statement(sql=sql, parameters=normalize_params(params))

    def _crud_statement(
        self,
        kind: Union[QueryKind, str],
        table: str,
        columns: Optional[Sequence[str]],
        values: Optional[Sequence[Any]],
        where: WhereInput,
    ) -> tuple[Statement, Callable[[CursorResult], Any]]:
        statement = self.builder.build(kind, table, columns, values, where)
        if statement.kind is QueryKind.SELECT:
            return statement, functools.partial(_materialize, table_name=table)
        return statement, _rowcount


class DatabaseSession(_SessionBase):
    """
    Blocking session.

    Operations are serialized on a lock; a session is still meant to be
    owned by one unit of work at a time, so concurrent callers should use
    one session each.
    """

    def __init__(self, config: Union[DatabaseConfig, str]):
        """
        Initialize database session.

        Args:
            config: Database configuration, URL or ADO.NET connection string
        """
        super().__init__(config)
        self.engine: Engine = create_engine(
            self.config.sync_url,
            poolclass=NullPool,
            echo=self.config.echo_sql,
            connect_args=self.config.connect_args,
        )
        self.builder = StatementBuilder(self.engine.dialect.identifier_preparer)
        self._lock = threading.RLock()

    def _open_connection(self) -> Connection:
        try:
            return self.engine.connect()
        except exc.SQLAlchemyError as e:
            raise self._connection_error(e) from e

    @contextmanager
    def _acquire(self) -> Iterator[Connection]:
        """Yield the transaction's connection, or a fresh one closed on exit."""
        if self._scope is not None:
            yield self._scope.connection
            return

        conn = self._open_connection()
        try:
            with conn.begin():
                yield conn
        finally:
            conn.close()

    def _execute(self, statement: Statement, handler: Callable[[CursorResult], Any]) -> Any:
        with self._lock:
            clause = self.command.prepare(statement)
            logger.debug(f"Executing {self.command.command_type.value}: {self.command.text}")
            with translate_errors(self.command.text):
                with self._acquire() as conn:
                    result = conn.execute(clause, self.command.parameters)
                    return handler(result)

    def execute_non_query(self, sql: str, params: ParamsInput = None) -> int:
        """
        Execute a statement that returns no rows.

        Args:
            sql: SQL text with :name placeholders
            params: Bind parameters

        Returns:
            Affected row count (-1 when the driver cannot tell)

        Raises:
            DbConnectionError: If the connection cannot be opened
            CommandError: If execution fails
        """
        return self._execute(self._text_statement(sql, params), _rowcount)

    def execute_autocommit(self, sql: str, params: ParamsInput = None) -> int:
        """
        Execute a statement on its own autocommit connection.

        For commands the server refuses inside a transaction, such as
        BACKUP, RESTORE or CREATE DATABASE on SQL Server. No BEGIN is issued
        and every result set is consumed before the connection closes.

        Args:
            sql: SQL text with :name placeholders
            params: Bind parameters

        Returns:
            Driver row count (-1 when the driver cannot tell)

        Raises:
            StateError: If a transaction is active on this session
            CommandError: If execution fails
        """
        statement = self._text_statement(sql, params)
        with self._lock:
            self._require_no_scope()
            clause = self.command.prepare(statement)
            logger.debug(f"Executing with autocommit: {self.command.text}")
            conn = self._open_connection()
            try:
                with translate_errors(self.command.text, self._driver_error):
                    conn.execution_options(isolation_level="AUTOCOMMIT")
                    return _run_on_cursor(conn, clause, self.command.parameters)
            finally:
                conn.close()

    def execute_scalar(
        self, sql: str, params: ParamsInput = None, as_type: Optional[type] = None
    ) -> Any:
        """
        Execute a query and decode the first column of its first row.

        Args:
            sql: SQL text with :name placeholders
            params: Bind parameters
            as_type: Requested Python type; None returns the raw value

        Returns:
            Converted value; the zero value of ``as_type`` for NULL or no row

        Raises:
            ConversionError: If the value cannot be converted to ``as_type``
        """
        value = self._execute(self._text_statement(sql, params), _first_value)
        return convert_scalar(value, as_type)

    def get_table(self, sql: str, params: ParamsInput = None) -> ResultSet:
        """
        Execute a query and buffer all rows.

        Args:
            sql: SQL text with :name placeholders
            params: Bind parameters

        Returns:
            Materialized result set
        """
        return self._execute(self._text_statement(sql, params), _materialize)

    def run_proc(self, name: str, params: ParamsInput = None) -> ResultSet:
        """Call a stored procedure and buffer the rows it returns."""
        return self._execute(self.builder.build_procedure_call(name, params), _materialize)

    def run_function(self, name: str, params: ParamsInput = None) -> ResultSet:
        """Select every row of a table-valued function."""
        return self._execute(self.builder.build_function_call(name, params), _materialize)

    def run_query(
        self,
        kind: Union[QueryKind, str],
        table: str,
        columns: Optional[Sequence[str]] = None,
        values: Optional[Sequence[Any]] = None,
        where: WhereInput = None,
    ) -> Union[int, ResultSet]:
        """
        Build a CRUD statement from table metadata and run it.

        Args:
            kind: Statement kind
            table: Target table
            columns: Column names
            values: INSERT/UPDATE values matching columns positionally
            where: (column, value) pairs combined with AND

        Returns:
            ResultSet for SELECT, affected row count otherwise
        """
        statement, handler = self._crud_statement(kind, table, columns, values, where)
        return self._execute(statement, handler)

    def insert(self, table: str, columns: Sequence[str], values: Sequence[Any]) -> int:
        """Insert one row."""
        return self.run_query(QueryKind.INSERT, table, columns, values)

    def update(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Any],
        where: WhereInput = None,
    ) -> int:
        """Update matching rows."""
        return self.run_query(QueryKind.UPDATE, table, columns, values, where)

    def delete(self, table: str, where: WhereInput = None) -> int:
        """Delete matching rows (all rows when ``where`` is empty)."""
        return self.run_query(QueryKind.DELETE, table, where=where)

    def select(
        self, table: str, columns: Sequence[str] = ("*",), where: WhereInput = None
    ) -> ResultSet:
        """Select matching rows."""
        return self.run_query(QueryKind.SELECT, table, columns, where=where)

    def begin(self) -> TransactionScope:
        """
        Start a transaction on this session.

        Returns:
            The active transaction scope

        Raises:
            StateError: If a transaction is already active
        """
        return TransactionScope(self).begin()

    def commit(self) -> None:
        """Commit the active transaction."""
        self._require_scope().commit()

    def rollback(self) -> None:
        """Roll back the active transaction."""
        self._require_scope().rollback()

    def transaction(self) -> TransactionScope:
        """New scope for ``with session.transaction():`` blocks."""
        return TransactionScope(self)

    def test_connection(self) -> bool:
        """
        Test database connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.execute_scalar("SELECT 1")
            return True
        except DbHelperError as e:
            logger.info(f"Connection test failed: {e}")
            return False

    def dispose(self) -> None:
        """Roll back any open transaction and release the engine."""
        if self.in_transaction:
            self._scope.rollback()
        self.engine.dispose()
        logger.info(f"Disposed engine for {self.config.safe_url}")

    def __enter__(self) -> "DatabaseSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()


class AsyncDatabaseSession(_SessionBase):
    """Asyncio session with the same operations and results as DatabaseSession."""

    def __init__(self, config: Union[DatabaseConfig, str]):
        """
        Initialize asyncio database session.

        Args:
            config: Database configuration, URL or ADO.NET connection string
        """
        super().__init__(config)
        self.engine: AsyncEngine = create_async_engine(
            self.config.async_url,
            poolclass=NullPool,
            echo=self.config.echo_sql,
            connect_args=self.config.connect_args,
        )
        self.builder = StatementBuilder(self.engine.dialect.identifier_preparer)
        self._lock = asyncio.Lock()

    async def _open_connection(self) -> AsyncConnection:
        try:
            return await self.engine.connect()
        except exc.SQLAlchemyError as e:
            raise self._connection_error(e) from e

    @asynccontextmanager
    async def _acquire(self) -> AsyncGenerator[AsyncConnection, None]:
        """Yield the transaction's connection, or a fresh one closed on exit."""
        if self._scope is not None:
            yield self._scope.connection
            return

        conn = await self._open_connection()
        try:
            async with conn.begin():
                yield conn
        finally:
            await conn.close()

    async def _execute(
        self, statement: Statement, handler: Callable[[CursorResult], Any]
    ) -> Any:
        async with self._lock:
            clause = self.command.prepare(statement)
            logger.debug(f"Executing {self.command.command_type.value}: {self.command.text}")
            with translate_errors(self.command.text):
                async with self._acquire() as conn:
                    result = await conn.execute(clause, self.command.parameters)
                    return handler(result)

    async def execute_non_query(self, sql: str, params: ParamsInput = None) -> int:
        """Execute a statement that returns no rows; see DatabaseSession."""
        return await self._execute(self._text_statement(sql, params), _rowcount)

    async def execute_autocommit(self, sql: str, params: ParamsInput = None) -> int:
        """Execute a statement on its own autocommit connection; see DatabaseSession."""
        statement = self._text_statement(sql, params)
        async with self._lock:
            self._require_no_scope()
            clause = self.command.prepare(statement)
            logger.debug(f"Executing with autocommit: {self.command.text}")
            conn = await self._open_connection()
            try:
                with translate_errors(self.command.text, self._driver_error):
                    await conn.execution_options(isolation_level="AUTOCOMMIT")
                    return await conn.run_sync(
                        _run_on_cursor, clause, self.command.parameters
                    )
            finally:
                await conn.close()

    async def execute_scalar(
        self, sql: str, params: ParamsInput = None, as_type: Optional[type] = None
    ) -> Any:
        """Execute a query and decode the first column of its first row."""
        value = await self._execute(self._text_statement(sql, params), _first_value)
        return convert_scalar(value, as_type)

    async def get_table(self, sql: str, params: ParamsInput = None) -> ResultSet:
        """Execute a query and buffer all rows."""
        return await self._execute(self._text_statement(sql, params), _materialize)

    async def run_proc(self, name: str, params: ParamsInput = None) -> ResultSet:
        """Call a stored procedure and buffer the rows it returns."""
        statement = self.builder.build_procedure_call(name, params)
        return await self._execute(statement, _materialize)

    async def run_function(self, name: str, params: ParamsInput = None) -> ResultSet:
        """Select every row of a table-valued function."""
        statement = self.builder.build_function_call(name, params)
        return await self._execute(statement, _materialize)

    async def run_query(
        self,
        kind: Union[QueryKind, str],
        table: str,
        columns: Optional[Sequence[str]] = None,
        values: Optional[Sequence[Any]] = None,
        where: WhereInput = None,
    ) -> Union[int, ResultSet]:
        """Build a CRUD statement from table metadata and run it."""
        statement, handler = self._crud_statement(kind, table, columns, values, where)
        return await self._execute(statement, handler)

    async def insert(
        self, table: str, columns: Sequence[str], values: Sequence[Any]
    ) -> int:
        return await self.run_query(QueryKind.INSERT, table, columns, values)

    async def update(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Any],
        where: WhereInput = None,
    ) -> int:
        return await self.run_query(QueryKind.UPDATE, table, columns, values, where)

    async def delete(self, table: str, where: WhereInput = None) -> int:
        return await self.run_query(QueryKind.DELETE, table, where=where)

    async def select(
        self, table: str, columns: Sequence[str] = ("*",), where: WhereInput = None
    ) -> ResultSet:
        return await self.run_query(QueryKind.SELECT, table, columns, where=where)

    async def begin(self) -> AsyncTransactionScope:
        """Start a transaction on this session."""
        return await AsyncTransactionScope(self).begin()

    async def commit(self) -> None:
        """Commit the active transaction."""
        await self._require_scope().commit()

    async def rollback(self) -> None:
        """Roll back the active transaction."""
        await self._require_scope().rollback()

    def transaction(self) -> AsyncTransactionScope:
        """New scope for ``async with session.transaction():`` blocks."""
        return AsyncTransactionScope(self)

    async def test_connection(self) -> bool:
        """Test database connectivity."""
        try:
            await self.execute_scalar("SELECT 1")
            return True
        except DbHelperError as e:
            logger.info(f"Connection test failed: {e}")
            return False

    async def dispose(self) -> None:
        """Roll back any open transaction and release the engine."""
        if self.in_transaction:
            await self._scope.rollback()
        await self.engine.dispose()
        logger.info(f"Disposed engine for {self.config.safe_url}")

    async def __aenter__(self) -> "AsyncDatabaseSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()
