"""Pytest configuration and shared fixtures for database tests"""

import os
from pathlib import Path
from typing import AsyncGenerator, Generator, Optional

import pytest
from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

from db_helper import AsyncDatabaseSession, DatabaseConfig, DatabaseSession

# Load environment variables
load_dotenv()

CREATE_TABLE_T = "CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)"


# ==================== Configuration Fixtures ====================


@pytest.fixture(scope="session")
def mssql_database_url() -> Optional[str]:
    """SQL Server test database URL from environment"""
    return os.getenv("MSSQL_TEST_DATABASE_URL")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of a fresh SQLite database file"""
    return tmp_path / "helper.db"


@pytest.fixture
def sqlite_config(db_path: Path) -> DatabaseConfig:
    """SQLite database configuration"""
    return DatabaseConfig(url=f"sqlite:///{db_path}")


# ==================== SQLite Fixtures ====================


@pytest.fixture
def session(sqlite_config: DatabaseConfig) -> Generator[DatabaseSession, None, None]:
    """Blocking session with table t(id, name) created, disposed after the test"""
    db = DatabaseSession(sqlite_config)
    db.execute_non_query(CREATE_TABLE_T)
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
async def async_session(
    sqlite_config: DatabaseConfig,
) -> AsyncGenerator[AsyncDatabaseSession, None]:
    """Asyncio session with table t(id, name) created, disposed after the test"""
    db = AsyncDatabaseSession(sqlite_config)
    await db.execute_non_query(CREATE_TABLE_T)
    try:
        yield db
    finally:
        await db.dispose()


# ==================== SQL Server Fixtures ====================


@pytest.fixture
def mssql_config(mssql_database_url: Optional[str]) -> DatabaseConfig:
    """SQL Server database configuration"""
    if not mssql_database_url:
        pytest.skip("MSSQL_TEST_DATABASE_URL not set in environment")
    return DatabaseConfig(url=mssql_database_url)


@pytest.fixture
def mssql_session(
    mssql_config: DatabaseConfig,
) -> Generator[DatabaseSession, None, None]:
    """SQL Server session with proper cleanup"""
    db = DatabaseSession(mssql_config)
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
async def mssql_async_session(
    mssql_config: DatabaseConfig,
) -> AsyncGenerator[AsyncDatabaseSession, None]:
    """SQL Server asyncio session with proper cleanup"""
    db = AsyncDatabaseSession(mssql_config)
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def mssql_master_config(mssql_config: DatabaseConfig) -> DatabaseConfig:
    """Same server as mssql_config, connected to master for database-level commands"""
    url = make_url(mssql_config.url).set(database="master")
    return DatabaseConfig(
        url=url.render_as_string(hide_password=False),
        connect_args=mssql_config.connect_args,
    )


@pytest.fixture
def mssql_master_session(
    mssql_master_config: DatabaseConfig,
) -> Generator[DatabaseSession, None, None]:
    """SQL Server session on master with proper cleanup"""
    db = DatabaseSession(mssql_master_config)
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def mssql_backup_dir() -> str:
    """Backup directory as seen by the SQL Server process"""
    path = os.getenv("MSSQL_TEST_BACKUP_DIR")
    if not path:
        pytest.skip("MSSQL_TEST_BACKUP_DIR not set in environment")
    return path.rstrip("/\\")


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "mssql: SQL Server-specific tests")
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring database"
    )
    config.addinivalue_line("markers", "slow: Slow-running tests")
