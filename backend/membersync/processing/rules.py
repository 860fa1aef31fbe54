"""
Cleaning rules — one pydantic model per rule kind.

Rules are stored per data source as JSON, e.g.::

    [{"type": "trim"}, {"type": "validate_email", "on_invalid": "skip"}]

and parsed back into the closed `CleaningRule` union, discriminated on
`type`.  Every rule exposes `apply(value) -> RuleOutcome` and never
raises: values a rule cannot interpret become None (coercions) or are
resolved through `on_invalid` (validations).
"""

from __future__ import annotations

import re
from abc import abstractmethod
from datetime import date
from typing import Annotated, Any, Literal, NamedTuple, Union

from pydantic import BaseModel, Field, TypeAdapter

from membersync.core.config import settings
from membersync.core.constants import OnInvalid
from membersync.processing.value_parsers import (
    DEFAULT_NUMBER_STRIP,
    is_blank,
    is_url,
    normalize_email,
    normalize_phone,
    parse_date_value,
    parse_number,
    to_text,
)


class RuleOutcome(NamedTuple):
    value: Any
    skip: bool = False


class _Rule(BaseModel):
    """Common base.  Subclasses set a Literal `type` and implement apply()."""

    @abstractmethod
    def apply(self, value: Any) -> RuleOutcome:
        ...


class _StringRule(_Rule):
    """None passes through; anything else is stringified before transform()."""

    def apply(self, value: Any) -> RuleOutcome:
        if value is None:
            return RuleOutcome(None)
        return RuleOutcome(self.transform(to_text(value)))

    @abstractmethod
    def transform(self, text: str) -> Any:
        ...


class _ValidationRule(_Rule):
    on_invalid: OnInvalid = OnInvalid.SKIP

    def apply(self, value: Any) -> RuleOutcome:
        if is_blank(value):
            return RuleOutcome(value)
        normalized = self.normalize(to_text(value))
        if normalized is not None:
            return RuleOutcome(normalized)
        if self.on_invalid == OnInvalid.SKIP:
            return RuleOutcome(None, skip=True)
        if self.on_invalid == OnInvalid.NULL:
            return RuleOutcome(None)
        return RuleOutcome(value)

    @abstractmethod
    def normalize(self, text: str) -> str | None:
        """Canonical form of a valid value, or None when invalid."""


# ── Whitespace ───────────────────────────────────────────

class TrimRule(_StringRule):
    type: Literal["trim"] = "trim"

    def transform(self, text: str) -> str:
        return text.strip()


class CollapseWhitespaceRule(_StringRule):
    type: Literal["collapse_whitespace"] = "collapse_whitespace"

    def transform(self, text: str) -> str:
        return re.sub(r" {2,}", " ", text)


# ── Case ─────────────────────────────────────────────────

class LowercaseRule(_StringRule):
    type: Literal["lowercase"] = "lowercase"

    def transform(self, text: str) -> str:
        return text.lower()


class UppercaseRule(_StringRule):
    type: Literal["uppercase"] = "uppercase"

    def transform(self, text: str) -> str:
        return text.upper()


class TitleCaseRule(_StringRule):
    type: Literal["title_case"] = "title_case"

    def transform(self, text: str) -> str:
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), text.lower())


# ── Null handling ────────────────────────────────────────

class NullToDefaultRule(_Rule):
    type: Literal["null_to_default"] = "null_to_default"
    default_value: Any = ""

    def apply(self, value: Any) -> RuleOutcome:
        if value is None or value == "":
            return RuleOutcome(self.default_value)
        return RuleOutcome(value)


class EmptyToNullRule(_Rule):
    type: Literal["empty_to_null"] = "empty_to_null"

    def apply(self, value: Any) -> RuleOutcome:
        return RuleOutcome(None if is_blank(value) else value)


class SkipIfEmptyRule(_Rule):
    type: Literal["skip_if_empty"] = "skip_if_empty"

    def apply(self, value: Any) -> RuleOutcome:
        return RuleOutcome(value, skip=value is None or value == "")


# ── Coercion ─────────────────────────────────────────────

class ParseNumberRule(_Rule):
    type: Literal["parse_number"] = "parse_number"
    remove_chars: str = DEFAULT_NUMBER_STRIP

    def apply(self, value: Any) -> RuleOutcome:
        if value is None:
            return RuleOutcome(None)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return RuleOutcome(value)
        return RuleOutcome(parse_number(to_text(value), self.remove_chars))


class ParseBooleanRule(_Rule):
    type: Literal["parse_boolean"] = "parse_boolean"
    true_values: list[str] = Field(default_factory=lambda: ["true", "yes", "y", "1"])
    false_values: list[str] = Field(default_factory=lambda: ["false", "no", "n", "0"])

    def apply(self, value: Any) -> RuleOutcome:
        if value is None or isinstance(value, bool):
            return RuleOutcome(value)
        token = to_text(value).strip().lower()
        if token in {v.lower() for v in self.true_values}:
            return RuleOutcome(True)
        if token in {v.lower() for v in self.false_values}:
            return RuleOutcome(False)
        return RuleOutcome(None)


class ParsePercentageRule(_Rule):
    type: Literal["parse_percentage"] = "parse_percentage"
    as_decimal: bool = False

    def apply(self, value: Any) -> RuleOutcome:
        if value is None:
            return RuleOutcome(None)
        number = parse_number(to_text(value).replace("%", ""))
        if number is None:
            return RuleOutcome(None)
        return RuleOutcome(number / 100 if self.as_decimal else number)


class ParseDateRule(_Rule):
    """Parse per `format` (e.g. "MM/DD/YYYY", or "auto") into ISO YYYY-MM-DD."""

    type: Literal["parse_date"] = "parse_date"
    format: str = "auto"

    def apply(self, value: Any) -> RuleOutcome:
        if value is None:
            return RuleOutcome(None)
        if isinstance(value, date):
            return RuleOutcome(value.isoformat())
        parsed = parse_date_value(to_text(value), self.format)
        return RuleOutcome(parsed.isoformat() if parsed else None)


# ── Validation ───────────────────────────────────────────

class ValidateEmailRule(_ValidationRule):
    type: Literal["validate_email"] = "validate_email"

    def normalize(self, text: str) -> str | None:
        return normalize_email(text)


class ValidatePhoneRule(_ValidationRule):
    type: Literal["validate_phone"] = "validate_phone"
    format: Literal["e164", "international", "national"] = "e164"
    default_region: str = Field(default_factory=lambda: settings.DEFAULT_PHONE_REGION)

    def normalize(self, text: str) -> str | None:
        return normalize_phone(text, self.format, self.default_region)


class ValidateUrlRule(_ValidationRule):
    type: Literal["validate_url"] = "validate_url"

    def normalize(self, text: str) -> str | None:
        text = text.strip()
        return text if is_url(text) else None


# ── Transformation ───────────────────────────────────────

class FindReplaceRule(_StringRule):
    type: Literal["find_replace"] = "find_replace"
    find: str
    replace: str = ""
    regex: bool = False

    def transform(self, text: str) -> str:
        if not self.find:
            return text
        if not self.regex:
            return text.replace(self.find, self.replace)
        try:
            return re.sub(self.find, self.replace, text)
        except re.error:
            return text


class SplitRule(_StringRule):
    type: Literal["split"] = "split"
    delimiter: str = ","
    take_index: int = 0

    def transform(self, text: str) -> str | None:
        parts = text.split(self.delimiter) if self.delimiter else [text]
        if 0 <= self.take_index < len(parts):
            return parts[self.take_index].strip()
        return None


class PrefixRule(_StringRule):
    type: Literal["prefix"] = "prefix"
    value: str = ""

    def transform(self, text: str) -> str:
        return self.value + text


class SuffixRule(_StringRule):
    type: Literal["suffix"] = "suffix"
    value: str = ""

    def transform(self, text: str) -> str:
        return text + self.value


CleaningRule = Annotated[
    Union[
        TrimRule,
        CollapseWhitespaceRule,
        LowercaseRule,
        UppercaseRule,
        TitleCaseRule,
        NullToDefaultRule,
        EmptyToNullRule,
        SkipIfEmptyRule,
        ParseNumberRule,
        ParseBooleanRule,
        ParsePercentageRule,
        ParseDateRule,
        ValidateEmailRule,
        ValidatePhoneRule,
        ValidateUrlRule,
        FindReplaceRule,
        SplitRule,
        PrefixRule,
        SuffixRule,
    ],
    Field(discriminator="type"),
]

_rule_adapter: TypeAdapter = TypeAdapter(CleaningRule)
_rule_list_adapter: TypeAdapter = TypeAdapter(list[CleaningRule])


def parse_rule(data: dict[str, Any]) -> CleaningRule:
    """Build a rule from its stored JSON form.  Raises pydantic.ValidationError."""
    return _rule_adapter.validate_python(data)


def parse_rules(data: list[dict[str, Any]]) -> list[CleaningRule]:
    return _rule_list_adapter.validate_python(data)
