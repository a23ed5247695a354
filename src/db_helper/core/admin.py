"""Administrative command templates: backup, restore, table clone.

Database and table names are inlined (identifiers cannot be bound), so they
go through the builder's identifier validation and quoting; only the backup
file path is a bound parameter. Backup and restore run on an autocommit
connection because SQL Server rejects them inside a transaction; table clones
join the session's active transaction like any other statement.
"""

import logging
from typing import Any

from db_helper.core.builder import StatementBuilder
from db_helper.core.connection import AsyncDatabaseSession, DatabaseSession
from db_helper.errors import ArgumentError
from db_helper.models.params import ParamItem
from db_helper.models.query import Statement

logger = logging.getLogger(__name__)


def _require(**arguments: Any) -> None:
    for label, value in arguments.items():
        if value is None or not str(value).strip():
            raise ArgumentError(f"{label} can not be empty")


def backup_statement(
    builder: StatementBuilder, database_name: str, file_path: str
) -> Statement:
    """``BACKUP DATABASE <db> TO DISK = :file_path``"""
    _require(database_name=database_name, file_path=file_path)
    database_ref = builder.quote_identifier(database_name)
    return Statement(
        sql=f"BACKUP DATABASE {database_ref} TO DISK = :file_path",
        parameters=[ParamItem(name="file_path", value=file_path)],
    )


def restore_statement(
    builder: StatementBuilder, database_name: str, file_path: str
) -> Statement:
    """``RESTORE DATABASE <db> FROM DISK = :file_path WITH REPLACE``"""
    _require(database_name=database_name, file_path=file_path)
    database_ref = builder.quote_identifier(database_name)
    return Statement(
        sql=f"RESTORE DATABASE {database_ref} FROM DISK = :file_path WITH REPLACE",
        parameters=[ParamItem(name="file_path", value=file_path)],
    )


def clone_table_statement(
    builder: StatementBuilder, source_table: str, new_table: str, with_data: bool
) -> Statement:
    """``SELECT * INTO <new> FROM <source>``, empty when ``with_data`` is False."""
    _require(source_table=source_table, new_table=new_table)
    source_ref = builder.quote_identifier(source_table, qualified=True)
    new_ref = builder.quote_identifier(new_table, qualified=True)
    sql = f"SELECT * INTO {new_ref} FROM {source_ref}"
    if not with_data:
        sql += " WHERE 1 = 0"
    return Statement(sql=sql)


class AdminOperations:
    """Backup, restore and table cloning on a blocking session."""

    def __init__(self, session: DatabaseSession):
        """
        Initialize admin operations.

        Args:
            session: Session the commands run on
        """
        self.session = session

    def _run(self, statement: Statement) -> int:
        return self.session.execute_non_query(statement.sql, statement.parameters)

    def _run_autocommit(self, statement: Statement) -> int:
        return self.session.execute_autocommit(statement.sql, statement.parameters)

    def backup_database(self, database_name: str, file_path: str) -> int:
        """
        Back up a database to a file on the server.

        Args:
            database_name: Database to back up (caller-trusted identifier)
            file_path: Backup file path as seen by the server

        Returns:
            Driver row count (usually -1)

        Raises:
            ArgumentError: If either argument is blank or the name is invalid
            StateError: If a transaction is active on the session
        """
        logger.info(f"Backing up database {database_name} to {file_path}")
        statement = backup_statement(self.session.builder, database_name, file_path)
        return self._run_autocommit(statement)

    def restore_database(self, database_name: str, file_path: str) -> int:
        """Restore a database from a backup file, replacing it."""
        logger.info(f"Restoring database {database_name} from {file_path}")
        statement = restore_statement(self.session.builder, database_name, file_path)
        return self._run_autocommit(statement)

    def clone_table_structure(self, source_table: str, new_table: str) -> int:
        """Create ``new_table`` with the columns of ``source_table`` and no rows."""
        return self._run(
            clone_table_statement(self.session.builder, source_table, new_table, False)
        )

    def clone_table_with_data(self, source_table: str, new_table: str) -> int:
        """Create ``new_table`` as a copy of ``source_table`` including rows."""
        return self._run(
            clone_table_statement(self.session.builder, source_table, new_table, True)
        )


class AsyncAdminOperations:
    """Backup, restore and table cloning on an asyncio session."""

    def __init__(self, session: AsyncDatabaseSession):
        self.session = session

    async def _run(self, statement: Statement) -> int:
        return await self.session.execute_non_query(statement.sql, statement.parameters)

    async def _run_autocommit(self, statement: Statement) -> int:
        return await self.session.execute_autocommit(statement.sql, statement.parameters)

    async def backup_database(self, database_name: str, file_path: str) -> int:
        logger.info(f"Backing up database {database_name} to {file_path}")
        return await self._run_autocommit(
            backup_statement(self.session.builder, database_name, file_path)
        )

    async def restore_database(self, database_name: str, file_path: str) -> int:
        logger.info(f"Restoring database {database_name} from {file_path}")
        return await self._run_autocommit(
            restore_statement(self.session.builder, database_name, file_path)
        )

    async def clone_table_structure(self, source_table: str, new_table: str) -> int:
        return await self._run(
            clone_table_statement(self.session.builder, source_table, new_table, False)
        )

    async def clone_table_with_data(self, source_table: str, new_table: str) -> int:
        return await self._run(
            clone_table_statement(self.session.builder, source_table, new_table, True)
        )
