"""
Field mapper — binds cleaned columns to a destination schema.

Each fixed destination (members, transactions, visits) declares its
fields, which of them are required, and the header aliases used when
suggesting mappings.  The custom destination takes whatever columns
the import carries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from membersync.core.constants import DestinationType
from membersync.pipeline.errors import MappingError
from membersync.processing.cleaning import to_snake_case
from membersync.processing.types import FieldMapping, Row


@dataclass(frozen=True)
class DestinationField:
    name: str
    required: bool = False
    aliases: tuple[str, ...] = field(default_factory=tuple)


DESTINATION_FIELDS: dict[DestinationType, list[DestinationField]] = {
    DestinationType.MEMBERS: [
        DestinationField("first_name", aliases=("first", "firstname", "fname", "given_name", "name")),
        DestinationField("last_name", aliases=("last", "lastname", "lname", "surname", "family_name")),
        DestinationField("email", aliases=("email_address", "e_mail", "mail")),
        DestinationField("phone", aliases=("phone_number", "mobile", "cell", "telephone", "tel")),
        DestinationField("membership_status", aliases=("status", "member_status")),
        DestinationField("date_of_birth", aliases=("dob", "birthday", "birth_date", "birthdate")),
        DestinationField("address_line1", aliases=("address", "street", "address1", "street_address")),
        DestinationField("address_line2", aliases=("address2", "apt", "suite", "unit")),
        DestinationField("city", aliases=("town",)),
        DestinationField("state", aliases=("province", "region")),
        DestinationField("postal_code", aliases=("zip", "zipcode", "zip_code", "postcode")),
        DestinationField("tags", aliases=("labels", "groups")),
    ],
    DestinationType.TRANSACTIONS: [
        DestinationField("member_email", required=True, aliases=("email", "customer_email", "member")),
        DestinationField("amount", required=True, aliases=("total", "price", "value", "transaction_amount")),
        DestinationField("transaction_date", required=True, aliases=("date", "purchase_date", "order_date")),
        DestinationField("transaction_type", aliases=("type", "category")),
        DestinationField("description", aliases=("details", "item", "product", "memo")),
        DestinationField("payment_method", aliases=("payment", "method", "tender")),
        DestinationField("reference_number", aliases=("reference", "ref", "order_id", "invoice", "receipt")),
    ],
    DestinationType.VISITS: [
        DestinationField("member_email", required=True, aliases=("email", "customer_email", "member")),
        DestinationField("visit_date", required=True, aliases=("date", "check_in_date", "visited_on")),
        DestinationField("check_in_time", aliases=("check_in", "checkin", "time_in", "arrival")),
        DestinationField("check_out_time", aliases=("check_out", "checkout", "time_out", "departure")),
        DestinationField("visit_type", aliases=("type", "category")),
        DestinationField("service_name", aliases=("service", "class", "activity")),
        DestinationField("notes", aliases=("note", "comments", "comment")),
    ],
    DestinationType.CUSTOM: [],
}

# Members need at least one of these to be identifiable
MEMBER_IDENTITY_FIELDS = ("first_name", "email")


def normalize_field_mappings(mappings: Iterable[FieldMapping]) -> list[FieldMapping]:
    """Drop mappings whose source column is empty (they mean "unmapped")."""
    return [m for m in mappings if m.source_column and m.source_column.strip()]


def validate_field_mappings(
    mappings: Iterable[FieldMapping],
    destination: DestinationType | str,
) -> list[FieldMapping]:
    """
    Check mappings against the destination schema before a run.

    Returns the normalised mappings.

    Raises:
        MappingError: when a required destination field is unmapped.
    """
    raw = list(mappings)
    normalized = normalize_field_mappings(raw)
    mapped_targets = {m.target_field for m in normalized}
    destination = DestinationType(destination)

    missing = [
        f.name for f in DESTINATION_FIELDS[destination]
        if f.required and f.name not in mapped_targets
    ]
    missing += [
        m.target_field for m in raw
        if m.required and m not in normalized and m.target_field not in missing
    ]
    if missing:
        raise MappingError(
            f"Required fields are not mapped: {', '.join(missing)}",
            details={"destination": destination.value, "missing": missing},
        )

    if destination == DestinationType.MEMBERS and not mapped_targets & set(MEMBER_IDENTITY_FIELDS):
        raise MappingError(
            "Members need first_name or email mapped",
            details={"destination": destination.value, "missing": list(MEMBER_IDENTITY_FIELDS)},
        )
    return normalized


def map_row_to_destination(row: Mapping[str, Any], mappings: Iterable[FieldMapping]) -> Row:
    """Only targets whose source key is present in the row are emitted."""
    mapped: Row = {}
    for mapping in mappings:
        if mapping.source_column in row:
            mapped[mapping.target_field] = row[mapping.source_column]
    return mapped


def suggest_field_mappings(
    headers: Sequence[str],
    destination: DestinationType | str,
) -> list[FieldMapping]:
    """
    One mapping per destination field, matched on snake-cased header name
    or alias.  Unmatched fields come back with an empty source column.
    Custom destinations map every header to its snake-cased name.
    """
    destination = DestinationType(destination)
    if destination == DestinationType.CUSTOM:
        return [
            FieldMapping(source_column=h, target_field=to_snake_case(h) or h)
            for h in headers
        ]

    by_key = {to_snake_case(h): h for h in reversed(headers)}
    used: set[str] = set()
    suggestions = []
    for dest_field in DESTINATION_FIELDS[destination]:
        source = ""
        for candidate in (dest_field.name, *dest_field.aliases):
            header = by_key.get(candidate)
            if header is not None and header not in used:
                source = header
                used.add(header)
                break
        suggestions.append(FieldMapping(
            source_column=source,
            target_field=dest_field.name,
            required=dest_field.required,
        ))
    return suggestions
