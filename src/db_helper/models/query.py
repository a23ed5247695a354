"""Built statement and result set models."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from db_helper.models.params import ParamItem, QueryKind

Row = Mapping[str, Any]


class CommandType(str, Enum):
    """How the command text is interpreted by the executor."""

    TEXT = "text"
    STORED_PROCEDURE = "stored_procedure"
    TABLE_FUNCTION = "table_function"


class Statement(BaseModel):
    """SQL text plus its ordered bind parameters."""

    sql: str = Field(..., description="SQL text with :name placeholders")
    parameters: list[ParamItem] = Field(
        default_factory=list, description="Bind parameters in placeholder order"
    )
    command_type: CommandType = Field(
        default=CommandType.TEXT, description="Command interpretation"
    )
    kind: Optional[QueryKind] = Field(
        None, description="CRUD kind when produced by the statement builder"
    )

    @property
    def parameter_names(self) -> list[str]:
        """Bind parameter names in order."""
        return [p.name for p in self.parameters]

    model_config = {"frozen": True}


class ResultSet(BaseModel):
    """
    Fully materialized tabular result.

    Read-only: columns and rows are tuples and each row is a read-only
    mapping, so a result can be shared without defensive copies. Use
    ``to_dicts()`` for mutable copies.
    """

    columns: tuple[str, ...] = Field(
        default_factory=tuple, description="Column names in order"
    )
    rows: tuple[Row, ...] = Field(
        default_factory=tuple, description="Rows as column-name to value mappings"
    )
    table_name: Optional[str] = Field(
        None, description="Source table name for generated SELECT statements"
    )

    @field_validator("rows")
    @classmethod
    def freeze_rows(cls, v: tuple[Row, ...]) -> tuple[Row, ...]:
        """Copy each row into a read-only mapping."""
        return tuple(MappingProxyType(dict(row)) for row in v)

    @field_serializer("rows")
    def serialize_rows(self, rows: tuple[Row, ...]) -> list[dict[str, Any]]:
        return [dict(row) for row in rows]

    @property
    def row_count(self) -> int:
        """Number of rows."""
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        """Check if result set is empty."""
        return not self.rows

    @property
    def column_count(self) -> int:
        """Get number of columns."""
        return len(self.columns)

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[Row]:
        """First row, or None when the result is empty."""
        return self.rows[0] if self.rows else None

    def get_column_values(self, column: str) -> list[Any]:
        """Extract all values for a specific column."""
        if column not in self.columns:
            raise KeyError(f"Unknown column: {column}")
        return [row.get(column) for row in self.rows]

    def to_dicts(self) -> list[dict[str, Any]]:
        """Rows as new, mutable dictionaries."""
        return [dict(row) for row in self.rows]

    def to_table_string(self, max_rows: int = 10) -> str:
        """Format result as a simple table string."""
        if self.is_empty:
            return "No rows returned"

        result_lines = [" | ".join(self.columns)]
        result_lines.append("-" * len(result_lines[0]))

        for row in self.rows[:max_rows]:
            values = [str(row.get(col, "NULL")) for col in self.columns]
            result_lines.append(" | ".join(values))

        if len(self.rows) > max_rows:
            result_lines.append(f"... ({self.row_count - max_rows} more rows)")

        return "\n".join(result_lines)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "columns": ["id", "name"],
                    "rows": [{"id": 1, "name": "a"}],
                    "table_name": "users",
                }
            ]
        },
    }
