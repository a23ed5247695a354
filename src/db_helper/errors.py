"""Error taxonomy for database helper operations."""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import exc


class DbHelperError(Exception):
    """Base class for all database helper errors."""


class ArgumentError(DbHelperError, ValueError):
    """Malformed or missing input: table name, column list, array lengths, paths."""


class DbConnectionError(DbHelperError, ConnectionError):
    """The database connection could not be opened."""


class CommandError(DbHelperError):
    """A statement failed on the server or in the driver."""

    def __init__(self, message: str, statement: Optional[str] = None):
        super().__init__(message)
        self.statement = statement


class StateError(DbHelperError, RuntimeError):
    """Transaction misuse: finishing a scope that never began, or beginning twice."""


class ConversionError(DbHelperError, ValueError):
    """A scalar result cannot be coerced to the requested type."""

    def __init__(self, message: str, value: Any = None, target: Optional[type] = None):
        super().__init__(message)
        self.value = value
        self.target = target


@contextmanager
def translate_errors(statement: str, *driver_errors: type) -> Iterator[None]:
    """
    Re-raise SQLAlchemy failures as CommandError.

    Works around both blocking and awaited calls, since the body of a
    synchronous context manager may contain ``await`` expressions.

    Args:
        statement: SQL text (or operation name) reported in the error
        driver_errors: DBAPI exception classes to translate as well, for
            blocks that use a raw driver cursor

    Raises:
        CommandError: If the wrapped block raises a SQLAlchemy error
    """
    try:
        yield
    except (exc.SQLAlchemyError, *driver_errors) as e:
        cause = getattr(e, "orig", None) or e
        raise CommandError(
            f"{type(e).__name__} while executing {statement!r}: {cause}",
            statement=statement,
        ) from e
