"""Dynamic SQL construction from table and column metadata."""

import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

from sqlalchemy.sql.compiler import IdentifierPreparer

from db_helper.core.binder import ParamsInput, bind, normalize_params, unique_name
from db_helper.errors import ArgumentError
from db_helper.models.params import ParamItem, QueryKind
from db_helper.models.query import CommandType, Statement

# Identifiers are inlined into SQL text, so only word characters are accepted
_IDENTIFIER = re.compile(r"^(?!\d)\w+$")

WHERE_PREFIX = "p_"

WhereInput = Optional[Union[Mapping[str, Any], Sequence[tuple[str, Any]]]]


class StatementBuilder:
    """Builds parameterized statements with identifiers quoted for one dialect."""

    def __init__(self, preparer: IdentifierPreparer):
        """
        Initialize statement builder.

        Args:
            preparer: Identifier preparer of the target dialect
        """
        self.preparer = preparer

    def quote_identifier(self, name: str, qualified: bool = False) -> str:
        """
        Validate an identifier and quote it for the target dialect.

        Args:
            name: Table, column, procedure, function or database name
            qualified: Allow dotted ``schema.object`` names

        Returns:
            Identifier safe to inline into SQL text

        Raises:
            ArgumentError: If the name is blank or has characters outside
                the allowed set
        """
        if not isinstance(name, str) or not name.strip():
            raise ArgumentError("Identifier can not be empty")
        name = name.strip()

        parts = name.split(".") if qualified else [name]
        for part in parts:
            if not _IDENTIFIER.match(part):
                raise ArgumentError(
                    f"Invalid identifier: {name!r}. "
                    "Use letters, digits and underscores, not starting with a digit"
                )
        return ".".join(self.preparer.quote(part) for part in parts)

    def build(
        self,
        kind: Union[QueryKind, str],
        table: str,
        columns: Optional[Sequence[str]] = None,
        values: Optional[Sequence[Any]] = None,
        where: WhereInput = None,
    ) -> Statement:
        """
        Build an INSERT, UPDATE, DELETE or SELECT statement.

        Args:
            kind: Statement kind
            table: Target table, optionally schema-qualified
            columns: Column names; required for every kind except DELETE
            values: Values for INSERT/UPDATE, positionally matching columns
            where: (column, value) pairs combined with AND

        Returns:
            Statement with SQL text and ordered bind parameters

        Raises:
            ArgumentError: On blank table, missing columns, length mismatch,
                duplicate columns or invalid identifiers
        """
        try:
            kind = QueryKind(kind)
        except ValueError:
            raise ArgumentError(f"Unknown query kind: {kind!r}")

        if not isinstance(table, str) or not table.strip():
            raise ArgumentError("Table name can not be empty")
        table_ref = self.quote_identifier(table, qualified=True)

        columns = list(columns or [])
        values = list(values or [])
        writes = kind in (QueryKind.INSERT, QueryKind.UPDATE)

        if kind is not QueryKind.DELETE and not columns:
            raise ArgumentError(f"{kind.value.upper()} on {table} requires at least one column")
        if writes and len(columns) != len(values):
            raise ArgumentError(
                f"{kind.value.upper()} on {table}: {len(columns)} columns "
                f"but {len(values)} values"
            )
        if not writes and values:
            raise ArgumentError(f"{kind.value.upper()} does not take values")
        if writes and len({str(c).strip().lower() for c in columns}) != len(columns):
            raise ArgumentError(f"Duplicate column in {kind.value.upper()} on {table}")

        parameters: list[ParamItem] = bind(columns, values) if writes else []

        if kind is QueryKind.INSERT:
            refs = ", ".join(self.quote_identifier(c) for c in columns)
            binds = ", ".join(f":{p.name}" for p in parameters)
            sql = f"INSERT INTO {table_ref} ({refs}) VALUES ({binds})"
        elif kind is QueryKind.UPDATE:
            assignments = ", ".join(
                f"{self.quote_identifier(c)} = :{p.name}"
                for c, p in zip(columns, parameters)
            )
            sql = f"UPDATE {table_ref} SET {assignments}"
        elif kind is QueryKind.DELETE:
            sql = f"DELETE FROM {table_ref}"
        else:
            sql = f"SELECT {self._projection(columns)} FROM {table_ref}"

        predicates = _where_pairs(where)
        if predicates:
            taken = {p.name for p in parameters}
            terms = []
            for column, value in predicates:
                ref = self.quote_identifier(column)
                name = unique_name(f"{WHERE_PREFIX}{column}", taken)
                taken.add(name)
                parameters.append(ParamItem(name=name, value=value))
                terms.append(f"{ref} = :{name}")
            sql += " WHERE " + " AND ".join(terms)

        return Statement(sql=sql, parameters=parameters, kind=kind)

    def build_procedure_call(self, name: str, params: ParamsInput = None) -> Statement:
        """Build ``EXEC proc @a = :a, ...`` for a stored procedure."""
        proc_ref = self.quote_identifier(name, qualified=True)
        parameters = normalize_params(params)
        sql = f"EXEC {proc_ref}"
        if parameters:
            sql += " " + ", ".join(f"@{p.name} = :{p.name}" for p in parameters)
        return Statement(
            sql=sql, parameters=parameters, command_type=CommandType.STORED_PROCEDURE
        )

    def build_function_call(self, name: str, params: ParamsInput = None) -> Statement:
        """Build ``SELECT * FROM fn(:a, ...)`` for a table-valued function."""
        function_ref = self.quote_identifier(name, qualified=True)
        parameters = normalize_params(params)
        arguments = ", ".join(f":{p.name}" for p in parameters)
        return Statement(
            sql=f"SELECT * FROM {function_ref}({arguments})",
            parameters=parameters,
            command_type=CommandType.TABLE_FUNCTION,
        )

    def _projection(self, columns: list[str]) -> str:
        if columns == ["*"]:
            return "*"
        return ", ".join(self.quote_identifier(c) for c in columns)


def _where_pairs(where: WhereInput) -> list[tuple[str, Any]]:
    if not where:
        return []
    if isinstance(where, Mapping):
        return list(where.items())

    pairs = []
    for pair in where:
        try:
            column, value = pair
        except (TypeError, ValueError):
            raise ArgumentError(f"WHERE terms must be (column, value) pairs, got {pair!r}")
        pairs.append((column, value))
    return pairs
