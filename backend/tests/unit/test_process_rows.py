"""
Tests for batch processing: clean, filter, then deduplicate.
"""
from membersync.core.constants import DuplicateHandling, FilterAction, FilterOperator, OnInvalid
from membersync.processing.pipeline import clean_row, process_rows
from membersync.processing.rules import (
    LowercaseRule,
    ParseNumberRule,
    SkipIfEmptyRule,
    TrimRule,
    ValidateEmailRule,
)
from membersync.processing.types import ColumnConfig, ColumnConfiguration, RowFilter


def _config(**kwargs) -> ColumnConfiguration:
    return ColumnConfiguration(
        columns=[
            ColumnConfig(
                source_name="Email",
                target_name="email",
                cleaning_rules=[TrimRule(), LowercaseRule(), ValidateEmailRule(on_invalid=OnInvalid.SKIP)],
            ),
            ColumnConfig(source_name="Name", target_name="first_name", cleaning_rules=[TrimRule()]),
            ColumnConfig(source_name="Visits", target_name="visits", cleaning_rules=[ParseNumberRule()]),
            ColumnConfig(source_name="Notes", target_name="notes", included=False),
        ],
        **kwargs,
    )


class TestCleanRow:

    def test_included_columns_are_renamed_and_cleaned(self):
        row = {"Email": " Ann@X.co ", "Name": " Ann ", "Visits": "3", "Notes": "vip"}

        assert clean_row(row, _config()) == {"email": "ann@x.co", "first_name": "Ann", "visits": 3}

    def test_missing_source_column_is_null(self):
        assert clean_row({"Email": "a@x.co"}, _config()) == {"email": "a@x.co", "first_name": None, "visits": None}

    def test_skip_outcome_drops_row(self):
        assert clean_row({"Email": "bogus", "Name": "Ann"}, _config()) is None

    def test_without_columns_row_passes_through(self):
        row = {"anything": "goes"}
        assert clean_row(row, ColumnConfiguration()) == row


class TestProcessRows:

    def test_skips_counted_across_rules_filters_and_duplicates(self):
        rows = [
            {"Email": "a@x.co", "Name": "Ann", "Visits": "3"},
            {"Email": "not-an-email", "Name": "Bob", "Visits": "1"},
            {"Email": "c@x.co", "Name": "Cy", "Visits": "0"},
            {"Email": "A@X.CO", "Name": "Ann again", "Visits": "9"},
        ]
        config = _config(
            row_filters=[RowFilter(column="visits", operator=FilterOperator.GREATER_THAN, value=0)],
            duplicate_key_columns=["email"],
            duplicate_handling=DuplicateHandling.KEEP_LAST,
        )

        result = process_rows(rows, config)

        assert result.cleaned_rows == [{"email": "a@x.co", "first_name": "Ann again", "visits": 9}]
        assert result.skipped_count == 3

    def test_filters_use_target_names(self):
        config = _config(
            row_filters=[RowFilter(
                column="first_name",
                operator=FilterOperator.STARTS_WITH,
                value="test",
                action=FilterAction.EXCLUDE,
            )],
        )
        rows = [
            {"Email": "a@x.co", "Name": "Test User"},
            {"Email": "b@x.co", "Name": "Real User"},
        ]

        result = process_rows(rows, config)

        assert [r["first_name"] for r in result.cleaned_rows] == ["Real User"]
        assert result.skipped_count == 1

    def test_empty_batch(self):
        result = process_rows([], _config())
        assert result.cleaned_rows == []
        assert result.skipped_count == 0

    def test_skip_if_empty_rule(self):
        config = ColumnConfiguration(columns=[
            ColumnConfig(source_name="id", target_name="id", cleaning_rules=[TrimRule(), SkipIfEmptyRule()]),
        ])
        result = process_rows([{"id": "1"}, {"id": "  "}], config)

        assert result.cleaned_rows == [{"id": "1"}]
        assert result.skipped_count == 1
