"""Unit Tests for result set exporters

Tests CSV, HTML and JSON rendering:
- CSV quoting of quotes, commas and line breaks
- HTML escaping
- JSON encoding of driver types
- Exporter lookup by format name
"""

import csv
import decimal
import io

import orjson
import pytest

from db_helper.errors import ArgumentError
from db_helper.export import CsvExporter, HtmlExporter, JsonExporter, create_exporter
from db_helper.models.query import ResultSet


@pytest.fixture
def result() -> ResultSet:
    """Rows exercising the CSV quoting rules"""
    return ResultSet(
        columns=["id", "name"],
        rows=[
            {"id": 1, "name": 'He said "hi", yo'},
            {"id": 2, "name": None},
            {"id": 3, "name": "line one\nline two"},
            {"id": 4, "name": "plain"},
        ],
        table_name="t",
    )


class TestCsvExporter:
    """Test CSV field quoting."""

    def test_quoting(self, result: ResultSet):
        """Test only fields with a quote, comma or newline are quoted."""
        text = CsvExporter().export(result).decode("utf-8")

        assert text.splitlines()[0] == "id,name"
        assert '1,"He said ""hi"", yo"\r\n' in text
        assert "2,\r\n" in text
        assert '3,"line one\nline two"\r\n' in text
        assert "4,plain\r\n" in text

    def test_round_trip_through_csv_reader(self, result: ResultSet):
        """Test a standard CSV reader recovers the original cell text."""
        text = CsvExporter().export(result).decode("utf-8")
        rows = list(csv.reader(io.StringIO(text, newline="")))

        assert rows[0] == ["id", "name"]
        assert rows[1] == ["1", 'He said "hi", yo']
        assert rows[2] == ["2", ""]
        assert rows[3] == ["3", "line one\nline two"]

    def test_empty_result_has_header_only(self):
        text = CsvExporter().export(ResultSet(columns=["id"])).decode("utf-8")

        assert text == "id\r\n"

    def test_encoding(self):
        exported = CsvExporter(encoding="utf-16").export(
            ResultSet(columns=["name"], rows=[{"name": "é"}])
        )

        assert exported.decode("utf-16") == "name\r\né\r\n"


class TestHtmlExporter:
    """Test HTML table rendering."""

    def test_escapes_cells(self):
        result = ResultSet(
            columns=["name"], rows=[{"name": "<b>bold</b> & co"}], table_name="t"
        )

        html = HtmlExporter().export(result).decode("utf-8")

        assert "<th>name</th>" in html
        assert "<td>&lt;b&gt;bold&lt;/b&gt; &amp; co</td>" in html
        assert "<title>t</title>" in html

    def test_null_renders_empty_cell(self, result: ResultSet):
        html = HtmlExporter().export(result).decode("utf-8")

        assert "<tr><td>2</td><td></td></tr>" in html


class TestJsonExporter:
    """Test JSON document rendering."""

    def test_document_shape(self, result: ResultSet):
        document = orjson.loads(JsonExporter().export(result))

        assert document["columns"] == ["id", "name"]
        assert document["rows"][0] == {"id": 1, "name": 'He said "hi", yo'}
        assert document["rows"][1]["name"] is None

    def test_decimal_kept_exact(self):
        result = ResultSet(
            columns=["price"], rows=[{"price": decimal.Decimal("19.99")}]
        )

        document = orjson.loads(JsonExporter().export(result))

        assert document["rows"][0]["price"] == "19.99"


class TestCreateExporter:
    """Test exporter lookup."""

    @pytest.mark.parametrize(
        "fmt,cls",
        [("csv", CsvExporter), ("HTML", HtmlExporter), (" json ", JsonExporter)],
    )
    def test_known_formats(self, fmt: str, cls: type):
        assert isinstance(create_exporter(fmt), cls)

    def test_media_types(self):
        assert create_exporter("csv").media_type == "text/csv"
        assert create_exporter("json").media_type == "application/json"

    @pytest.mark.parametrize(
        "fmt,expected",
        [("csv", "orders.csv"), ("html", "orders.html"), ("json", "orders.json")],
    )
    def test_file_name(self, fmt, expected):
        assert create_exporter(fmt).file_name("orders") == expected

    @pytest.mark.parametrize("fmt", ["pdf", "", None])
    def test_unknown_format(self, fmt):
        with pytest.raises(ArgumentError, match="Unsupported export format"):
            create_exporter(fmt)
