"""Pydantic models for configuration, parameters and results."""

from .config import DatabaseConfig
from .params import ParamItem, QueryKind
from .query import CommandType, ResultSet, Statement

__all__ = [
    "DatabaseConfig",
    "ParamItem",
    "QueryKind",
    "CommandType",
    "ResultSet",
    "Statement",
]
