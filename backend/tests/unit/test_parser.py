"""
Tests for the delimited-text parser, previews and CSV export.
"""
import pytest

from membersync.pipeline.errors import ParseError
from membersync.processing.parser import (
    CsvColumn,
    from_csv_string,
    generate_preview,
    parse_csv,
    rows_to_records,
    to_csv_string,
)


class TestParseCsv:

    def test_headers_and_rows(self):
        table = parse_csv("name,email\nAnn,ann@example.com\nBob,bob@example.com\n")

        assert table.headers == ["name", "email"]
        assert table.rows == [["Ann", "ann@example.com"], ["Bob", "bob@example.com"]]
        assert table.total_rows == 2

    def test_quoted_fields_keep_delimiters_quotes_and_newlines(self):
        text = 'name,note\n"Smith, J","said ""hi"""\n"Lee","line one\nline two"\n'
        table = parse_csv(text)

        assert table.rows[0] == ["Smith, J", 'said "hi"']
        assert table.rows[1] == ["Lee", "line one\nline two"]

    def test_blank_lines_are_ignored(self):
        table = parse_csv("a,b\n1,2\n\n\n3,4\n")

        assert table.rows == [["1", "2"], ["3", "4"]]
        assert table.total_rows == 2

    def test_all_empty_rows_are_counted_but_dropped(self):
        table = parse_csv("a,b\n1,2\n,\n3,4\n")

        assert table.rows == [["1", "2"], ["3", "4"]]
        assert table.total_rows == 3

    def test_short_rows_are_padded_and_long_rows_truncated(self):
        table = parse_csv("a,b,c\n1\n1,2,3,4\n")

        assert table.rows == [["1", "", ""], ["1", "2", "3"]]

    def test_header_cells_are_stripped(self):
        table = parse_csv(" First Name , Email \nAnn,a@x.co\n")
        assert table.headers == ["First Name", "Email"]

    def test_byte_order_mark_is_removed(self):
        table = parse_csv("\ufeffemail\na@x.co\n")
        assert table.headers == ["email"]

    def test_empty_input(self):
        table = parse_csv("   \n")
        assert table.headers == []
        assert table.rows == []
        assert table.total_rows == 0

    def test_custom_delimiter(self):
        table = parse_csv("a;b\n1;2\n", delimiter=";")
        assert table.rows == [["1", "2"]]

    def test_unterminated_quote_raises_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            parse_csv('a,b\n"open,1\n')
        assert exc_info.value.line is not None


class TestPreview:

    def test_records_are_keyed_by_header(self):
        table = parse_csv("name,age\nAnn,30\n")
        assert rows_to_records(table) == [{"name": "Ann", "age": "30"}]

    def test_preview_limits_rows_but_analyses_all(self):
        text = "n\n" + "\n".join(str(i) for i in range(20)) + "\n"
        preview = generate_preview(parse_csv(text), max_rows=3)

        assert len(preview.rows) == 3
        assert preview.total_rows == 20
        assert preview.columns[0].name == "n"
        assert preview.columns[0].null_count == 0


class TestCsvExport:

    def test_fields_needing_quotes_are_quoted(self):
        output = to_csv_string(
            [{"name": "Smith, J", "note": 'say "hi"', "n": None}],
            ["name", "note", "n"],
        )
        assert output == 'name,note,n\n"Smith, J","say ""hi""",'

    def test_no_trailing_newline(self):
        output = to_csv_string([{"a": 1}, {"a": 2}], ["a"])
        assert output == "a\n1\n2"

    def test_column_labels_and_formatters(self):
        columns = [CsvColumn(key="amount", header="Amount ($)", format=lambda v, row: f"{v:.2f}")]
        output = to_csv_string([{"amount": 3.5}], columns)
        assert output == "Amount ($)\n3.50"

    def test_export_then_import_with_awkward_values(self):
        records = [{"a": "x,y", "b": "line\nbreak"}]
        text = to_csv_string(records, ["a", "b"])
        assert from_csv_string(text, ["a", "b"]) == records

    @pytest.mark.parametrize("text, columns", [
        ("a,b\n1,2\n3,4", ["a", "b"]),
        ("name\nAnn\nBob\nCy", ["name"]),
        ("email,first_name,points\nann@x.co,Ann,12\nbob@x.co,,7", ["email", "first_name", "points"]),
        ("a,b", ["a", "b"]),
    ])
    def test_import_then_export_reproduces_simple_text(self, text, columns):
        assert to_csv_string(from_csv_string(text, columns), columns) == text
