"""The reusable command object owned by a session."""

from typing import Any

from sqlalchemy import TextClause, text

from db_helper.core.binder import to_bind_dict
from db_helper.models.query import CommandType, Statement


class Command:
    """SQL text, command type and bound parameters of the statement in flight."""

    def __init__(self) -> None:
        self.text = ""
        self.command_type = CommandType.TEXT
        self.parameters: dict[str, Any] = {}

    def prepare(self, statement: Statement) -> TextClause:
        """
        Assign a new statement, replacing the previous one's parameters.

        Args:
            statement: Statement to execute next

        Returns:
            Executable text clause

        Raises:
            ArgumentError: If the statement has duplicate parameter names
        """
        self.parameters.clear()
        self.text = statement.sql
        self.command_type = statement.command_type
        self.parameters.update(to_bind_dict(statement.parameters))
        return text(self.text)

    def __repr__(self) -> str:
        return (
            f"Command(type={self.command_type.value}, text={self.text!r}, "
            f"parameters={sorted(self.parameters)})"
        )
