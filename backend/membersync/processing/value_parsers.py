"""
Scalar parsing and validation helpers shared by the type detector
and the cleaning rules.
"""

from __future__ import annotations

import re
from datetime import date, datetime

import phonenumbers
from dateutil import parser as date_parser
from email_validator import EmailNotValidError, validate_email
from phonenumbers import NumberParseException, PhoneNumberFormat

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
PHONE_RE = re.compile(r"^\+?(\d{1,3}[-\s.]?)?\(?\d{3}\)?[-\s.]?\d{3}[-\s.]?\d{4,6}$")
INTEGER_RE = re.compile(r"^[+-]?\d+$")
NUMBER_RE = re.compile(r"^[+-]?[$€£¥]?\s*[+-]?(\d{1,3}(,\d{3})+|\d+)?(\.\d+)?$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?$")

BOOLEAN_TOKENS = frozenset({"true", "false", "yes", "no", "1", "0"})

# Characters stripped by parse_number when none are configured
DEFAULT_NUMBER_STRIP = "$€£¥, "
CURRENCY_SYMBOLS = "$€£¥"

COMMON_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%m/%d/%y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
]

# Declared source formats accepted by the parse_date rule
DATE_FORMAT_TOKENS: dict[str, str] = {
    "YYYY-MM-DD": "%Y-%m-%d",
    "YYYY/MM/DD": "%Y/%m/%d",
    "MM/DD/YYYY": "%m/%d/%Y",
    "DD/MM/YYYY": "%d/%m/%Y",
    "MM-DD-YYYY": "%m-%d-%Y",
    "DD-MM-YYYY": "%d-%m-%Y",
    "DD.MM.YYYY": "%d.%m.%Y",
    "MM/DD/YY": "%m/%d/%y",
    "DD/MM/YY": "%d/%m/%y",
}


def is_blank(value: object) -> bool:
    """True for None and strings that are empty after stripping."""
    return value is None or (isinstance(value, str) and not value.strip())


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value.strip()))


def is_url(value: str) -> bool:
    return bool(URL_RE.match(value.strip()))


def looks_like_phone(value: str) -> bool:
    """Digit/punctuation pattern with an optional leading '+' and country code."""
    return bool(PHONE_RE.match(value.strip()))


def is_boolean_token(value: str) -> bool:
    return value.strip().lower() in BOOLEAN_TOKENS


def is_integer(value: str) -> bool:
    return bool(INTEGER_RE.match(value.strip()))


def is_number(value: str) -> bool:
    value = value.strip()
    if not value or not any(ch.isdigit() for ch in value):
        return False
    return bool(NUMBER_RE.match(value))


def parse_number(value: str, strip_chars: str = DEFAULT_NUMBER_STRIP) -> int | float | None:
    """
    Remove `strip_chars` (and currency symbols) then parse.  Whole
    numbers come back as int.

    Returns None when nothing numeric remains.
    """
    cleaned = value
    for ch in strip_chars + CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(ch, "")
    cleaned = cleaned.strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    if number.is_integer() and "." not in cleaned and "e" not in cleaned.lower():
        return int(number)
    return number


def parse_date_value(value: str, fmt: str | None = None) -> date | None:
    """
    Parse a date string.

    With `fmt` (a DATE_FORMAT_TOKENS key or a strptime pattern) only that
    format is accepted; otherwise ISO, COMMON_DATE_FORMATS and finally
    dateutil are tried in order.
    """
    value = value.strip()
    if not value:
        return None

    if fmt and fmt.lower() != "auto":
        pattern = DATE_FORMAT_TOKENS.get(fmt.upper(), fmt)
        try:
            return datetime.strptime(value, pattern).date()
        except ValueError:
            return None

    if ISO_DATE_RE.match(value):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            return None

    for pattern in COMMON_DATE_FORMATS:
        try:
            return datetime.strptime(value, pattern).date()
        except ValueError:
            continue

    # dateutil is permissive; only let it see values that carry a year
    if not re.search(r"\d{4}", value):
        return None
    try:
        return date_parser.parse(value, fuzzy=False).date()
    except (ValueError, OverflowError):
        return None


def is_date(value: str) -> bool:
    return parse_date_value(value) is not None


_PHONE_FORMATS = {
    "e164": PhoneNumberFormat.E164,
    "international": PhoneNumberFormat.INTERNATIONAL,
    "national": PhoneNumberFormat.NATIONAL,
}


def normalize_phone(value: str, fmt: str = "e164", region: str = "US") -> str | None:
    """
    Parse and re-format a phone number.  Returns None when the input is
    not a possible number for `region` (or its own '+' country code).
    """
    try:
        parsed = phonenumbers.parse(value.strip(), region)
    except NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, _PHONE_FORMATS.get(fmt, PhoneNumberFormat.E164))


def normalize_email(value: str) -> str | None:
    """Lower-cased address, or None when email_validator rejects its syntax."""
    try:
        validated = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None
    return validated.normalized.lower()


def to_text(value: object) -> str:
    """Stringify a cell for string rules and key building."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
