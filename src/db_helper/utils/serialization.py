"""JSON serialization of result rows using orjson.

orjson handles most column types natively (datetime, date, time, UUID,
dataclasses, pydantic models); the default handler below covers the ones
SQL Server and SQLite drivers return that it does not.
"""

import base64
import datetime
import decimal
from typing import Any

import orjson


def _default_handler(obj: Any) -> Any:
    """
    Custom default handler for types orjson doesn't handle natively.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation

    Raises:
        TypeError: If object cannot be serialized
    """
    # DECIMAL/NUMERIC/MONEY - keep the exact digits
    if isinstance(obj, decimal.Decimal):
        return str(obj)

    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    # VARBINARY/BLOB - try UTF-8 decode, fall back to base64
    if isinstance(obj, (bytes, bytearray, memoryview)):
        data = bytes(obj)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(data).decode("ascii")

    if isinstance(obj, (set, frozenset)):
        return list(obj)

    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def convert_value_to_json_safe(value: Any) -> Any:
    """
    Convert a value to JSON-serializable format.

    Round-trips through orjson so the result matches what ``dumps`` emits;
    values orjson still rejects fall back to ``str()``.
    """
    try:
        return orjson.loads(orjson.dumps(value, default=_default_handler))
    except TypeError:
        return str(value)


def convert_rows_to_json_safe(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert all values of all row dicts to JSON-serializable formats."""
    return [
        {key: convert_value_to_json_safe(value) for key, value in row.items()}
        for row in rows
    ]


def dumps_bytes(obj: Any) -> bytes:
    """
    Serialize object to UTF-8 JSON bytes using orjson.

    Args:
        obj: Object to serialize

    Returns:
        JSON document bytes
    """
    return orjson.dumps(obj, default=_default_handler)


def dumps(obj: Any) -> str:
    """Serialize object to a JSON string using orjson."""
    return dumps_bytes(obj).decode("utf-8")
