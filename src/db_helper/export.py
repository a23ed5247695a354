"""Render result sets as CSV, HTML or JSON documents."""

import csv
import html
import io
import logging
from abc import ABC, abstractmethod
from typing import Any

from db_helper.errors import ArgumentError
from db_helper.models.query import ResultSet
from db_helper.utils.serialization import convert_value_to_json_safe, dumps_bytes

logger = logging.getLogger(__name__)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(convert_value_to_json_safe(value))


class BaseExporter(ABC):
    """Turns a ResultSet into document bytes."""

    media_type: str = "application/octet-stream"
    extension: str = "bin"

    def file_name(self, stem: str) -> str:
        """File name for a document of this format, e.g. ``orders.csv``."""
        return f"{stem}.{self.extension}"

    @abstractmethod
    def export(self, result: ResultSet) -> bytes:
        """
        Render a result set.

        Args:
            result: Materialized rows to render

        Returns:
            Encoded document
        """


class CsvExporter(BaseExporter):
    """
    Comma separated values with a header row.

    Fields containing a quote, comma or line break are wrapped in double
    quotes, with embedded quotes doubled. NULL renders as an empty field.
    """

    media_type = "text/csv"
    extension = "csv"

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def export(self, result: ResultSet) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(result.columns)
        for row in result.rows:
            writer.writerow([_cell_text(row.get(col)) for col in result.columns])
        return buffer.getvalue().encode(self.encoding)


class HtmlExporter(BaseExporter):
    """Single HTML table, cell text escaped."""

    media_type = "text/html"
    extension = "html"

    def export(self, result: ResultSet) -> bytes:
        title = html.escape(result.table_name or "Result")
        lines = [
            "<!DOCTYPE html>",
            f"<html><head><meta charset=\"utf-8\"><title>{title}</title></head><body>",
            "<table>",
            "<thead><tr>"
            + "".join(f"<th>{html.escape(str(col))}</th>" for col in result.columns)
            + "</tr></thead>",
            "<tbody>",
        ]
        for row in result.rows:
            cells = "".join(
                f"<td>{html.escape(_cell_text(row.get(col)))}</td>"
                for col in result.columns
            )
            lines.append(f"<tr>{cells}</tr>")
        lines.extend(["</tbody>", "</table>", "</body></html>"])
        return "\n".join(lines).encode("utf-8")


class JsonExporter(BaseExporter):
    """``{"columns": [...], "rows": [...]}`` encoded with orjson."""

    media_type = "application/json"
    extension = "json"

    def export(self, result: ResultSet) -> bytes:
        return dumps_bytes({"columns": result.columns, "rows": result.to_dicts()})


EXPORTERS: dict[str, type[BaseExporter]] = {
    "csv": CsvExporter,
    "html": HtmlExporter,
    "json": JsonExporter,
}


def create_exporter(fmt: str) -> BaseExporter:
    """
    Get the exporter for a format name.

    Args:
        fmt: One of ``csv``, ``html`` or ``json`` (case-insensitive)

    Returns:
        Exporter instance

    Raises:
        ArgumentError: If the format is not supported
    """
    key = (fmt or "").strip().lower()
    exporter_cls = EXPORTERS.get(key)
    if exporter_cls is None:
        supported = ", ".join(sorted(EXPORTERS))
        raise ArgumentError(f"Unsupported export format: {fmt!r}. Supported: {supported}")
    logger.debug(f"Using {exporter_cls.__name__} for {key}")
    return exporter_cls()
