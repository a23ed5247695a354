"""Utility modules for scalar conversion and JSON serialization."""

from db_helper.utils.conversion import convert_scalar, zero_value
from db_helper.utils.serialization import (
    convert_rows_to_json_safe,
    convert_value_to_json_safe,
    dumps,
    dumps_bytes,
)

__all__ = [
    "convert_scalar",
    "zero_value",
    "convert_value_to_json_safe",
    "convert_rows_to_json_safe",
    "dumps",
    "dumps_bytes",
]
