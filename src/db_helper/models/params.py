"""Bind parameter and statement kind models."""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Markers callers tend to carry over from SQL Server (@id) or SQLAlchemy (:id)
PARAMETER_MARKERS = "@:"

_BIND_NAME = re.compile(r"^(?!\d)\w+$")


class QueryKind(str, Enum):
    """Shape of a generated CRUD statement."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SELECT = "select"


class ParamItem(BaseModel):
    """One named bind parameter."""

    name: str = Field(..., description="Parameter name without a leading marker")
    value: Any = Field(None, description="Bound value (None binds SQL NULL)")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip a leading marker character and check the name is bindable."""
        name = v.strip().lstrip(PARAMETER_MARKERS)
        if not name:
            raise ValueError("Parameter name can not be empty")
        if not _BIND_NAME.match(name):
            raise ValueError(
                f"Invalid parameter name: {v!r}. "
                "Use letters, digits and underscores, not starting with a digit"
            )
        return name

    model_config = {
        "frozen": True,
        "json_schema_extra": {"examples": [{"name": "id", "value": 42}]},
    }
