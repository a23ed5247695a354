"""Scalar result decoding through an explicit conversion table.

Each supported target type lists the source types it accepts, in match
order, with the converter used for that pair. Anything outside the table is
a ConversionError; a NULL (or missing row) decodes to the target's zero value.
"""

import datetime
import decimal
import uuid
from typing import Any, Callable, Optional

from db_helper.errors import ConversionError

Converter = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


def _integral(value: Any) -> int:
    if value != int(value):
        raise ValueError(f"{value!r} has a fractional part")
    return int(value)


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "y"):
        return True
    if lowered in ("false", "0", "no", "n"):
        return False
    raise ValueError(f"{value!r} is not a boolean")


def _decode(value: Any) -> str:
    return bytes(value).decode("utf-8")


ZERO_VALUES: dict[type, Any] = {
    int: 0,
    float: 0.0,
    decimal.Decimal: decimal.Decimal(0),
    str: "",
    bool: False,
    datetime.datetime: datetime.datetime.min,
    datetime.date: datetime.date.min,
    datetime.time: datetime.time.min,
    bytes: b"",
    uuid.UUID: uuid.UUID(int=0),
}

# bool before int and datetime before date: isinstance() matches subclasses
CONVERSIONS: dict[type, tuple[tuple[tuple[type, ...], Converter], ...]] = {
    int: (
        ((bool,), int),
        ((int,), int),
        ((float, decimal.Decimal), _integral),
        ((str,), _parse_int),
    ),
    float: (
        ((bool, int, float, decimal.Decimal), float),
        ((str,), float),
    ),
    decimal.Decimal: (
        ((bool,), lambda v: decimal.Decimal(int(v))),
        ((int, decimal.Decimal), decimal.Decimal),
        ((float,), lambda v: decimal.Decimal(str(v))),
        ((str,), lambda v: decimal.Decimal(v.strip())),
    ),
    str: (
        ((str,), _identity),
        ((bytes, bytearray, memoryview), _decode),
        ((datetime.date, datetime.time), lambda v: v.isoformat()),
        ((bool, int, float, decimal.Decimal, uuid.UUID), str),
    ),
    bool: (
        ((bool,), _identity),
        ((int, decimal.Decimal), lambda v: v != 0),
        ((str,), _parse_bool),
    ),
    datetime.datetime: (
        ((datetime.datetime,), _identity),
        ((datetime.date,), lambda v: datetime.datetime.combine(v, datetime.time.min)),
        ((str,), lambda v: datetime.datetime.fromisoformat(v.strip())),
    ),
    datetime.date: (
        ((datetime.datetime,), lambda v: v.date()),
        ((datetime.date,), _identity),
        ((str,), lambda v: datetime.date.fromisoformat(v.strip())),
    ),
    datetime.time: (
        ((datetime.time,), _identity),
        ((datetime.datetime,), lambda v: v.time()),
        ((str,), lambda v: datetime.time.fromisoformat(v.strip())),
    ),
    bytes: (
        ((bytes, bytearray, memoryview), bytes),
        ((str,), lambda v: v.encode("utf-8")),
    ),
    uuid.UUID: (
        ((uuid.UUID,), _identity),
        ((str,), lambda v: uuid.UUID(v.strip())),
        ((bytes,), lambda v: uuid.UUID(bytes=v)),
    ),
}


def zero_value(target: type) -> Any:
    """
    Zero value returned for NULL results of ``target``.

    Raises:
        ConversionError: If target is not a supported scalar type
    """
    if target not in ZERO_VALUES:
        raise ConversionError(
            f"Unsupported scalar type: {getattr(target, '__name__', target)}",
            target=target,
        )
    return ZERO_VALUES[target]


def convert_scalar(value: Any, target: Optional[type] = None) -> Any:
    """
    Coerce a scalar query result to ``target``.

    Args:
        value: Raw value returned by the driver (None for NULL or no row)
        target: Requested type; None returns the raw value unchanged

    Returns:
        Converted value, or the zero value of ``target`` for None

    Raises:
        ConversionError: If the target is unsupported, the source type has
            no entry for it, or the conversion itself fails
    """
    if target is None:
        return value

    zero = zero_value(target)
    if value is None:
        return zero

    target_name = target.__name__
    for source_types, converter in CONVERSIONS[target]:
        if isinstance(value, source_types):
            try:
                return converter(value)
            except (ValueError, TypeError, ArithmeticError) as e:
                raise ConversionError(
                    f"Cannot convert {value!r} to {target_name}: {e}",
                    value=value,
                    target=target,
                ) from e

    raise ConversionError(
        f"No conversion from {type(value).__name__} to {target_name}",
        value=value,
        target=target,
    )
