"""
Tests for destination field mapping.
"""
import pytest

from membersync.core.constants import DestinationType
from membersync.pipeline.errors import MappingError
from membersync.processing.mapper import (
    map_row_to_destination,
    normalize_field_mappings,
    suggest_field_mappings,
    validate_field_mappings,
)
from membersync.processing.types import FieldMapping


class TestValidateFieldMappings:

    def test_required_transaction_fields(self):
        mappings = [
            FieldMapping(source_column="email", target_field="member_email"),
            FieldMapping(source_column="total", target_field="amount"),
        ]
        with pytest.raises(MappingError) as exc_info:
            validate_field_mappings(mappings, DestinationType.TRANSACTIONS)

        assert exc_info.value.details["missing"] == ["transaction_date"]

    def test_empty_source_counts_as_unmapped(self):
        mappings = [
            FieldMapping(source_column="email", target_field="member_email"),
            FieldMapping(source_column="date", target_field="visit_date"),
            FieldMapping(source_column=" ", target_field="notes"),
        ]
        normalized = validate_field_mappings(mappings, DestinationType.VISITS)

        assert [m.target_field for m in normalized] == ["member_email", "visit_date"]

    def test_mapping_flagged_required_must_have_source(self):
        mappings = [
            FieldMapping(source_column="email", target_field="email"),
            FieldMapping(source_column="", target_field="phone", required=True),
        ]
        with pytest.raises(MappingError, match="phone"):
            validate_field_mappings(mappings, DestinationType.MEMBERS)

    def test_members_need_an_identity_field(self):
        with pytest.raises(MappingError, match="first_name or email"):
            validate_field_mappings(
                [FieldMapping(source_column="tel", target_field="phone")],
                DestinationType.MEMBERS,
            )

    def test_custom_destination_has_no_required_fields(self):
        assert validate_field_mappings([], DestinationType.CUSTOM) == []


class TestMapRow:

    def test_present_sources_only(self):
        mappings = [
            FieldMapping(source_column="mail", target_field="email"),
            FieldMapping(source_column="given", target_field="first_name"),
        ]
        assert map_row_to_destination({"mail": "a@x.co", "other": 1}, mappings) == {"email": "a@x.co"}

    def test_null_values_are_kept(self):
        mappings = [FieldMapping(source_column="mail", target_field="email")]
        assert map_row_to_destination({"mail": None}, mappings) == {"email": None}

    def test_normalize_drops_unmapped(self):
        mappings = [FieldMapping(source_column="", target_field="tags")]
        assert normalize_field_mappings(mappings) == []


class TestSuggestFieldMappings:

    def test_members_by_name_and_alias(self):
        suggestions = suggest_field_mappings(["First Name", "E-mail", "Zip", "Favourite Colour"], DestinationType.MEMBERS)
        by_target = {s.target_field: s.source_column for s in suggestions}

        assert by_target["first_name"] == "First Name"
        assert by_target["email"] == "E-mail"
        assert by_target["postal_code"] == "Zip"
        assert by_target["phone"] == ""

    def test_each_header_is_used_once(self):
        suggestions = suggest_field_mappings(["Email", "Date"], DestinationType.TRANSACTIONS)
        by_target = {s.target_field: s.source_column for s in suggestions}

        assert by_target["member_email"] == "Email"
        assert by_target["transaction_date"] == "Date"
        assert next(s for s in suggestions if s.target_field == "amount").required is True

    def test_custom_maps_every_header(self):
        suggestions = suggest_field_mappings(["Loyalty Points"], DestinationType.CUSTOM)
        assert suggestions == [FieldMapping(source_column="Loyalty Points", target_field="loyalty_points")]
