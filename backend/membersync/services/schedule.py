"""
Schedule & retry — when does a data source sync next?

All functions are pure: they take a ScheduleConfiguration and a reference
time and never touch the clock unless `from_` is omitted.  When `from_` is
timezone-aware and the configuration names a timezone, wall-clock fields
(time, day of week, day of month, cron fields) are evaluated in that zone.

Day-of-week numbering is 0 = Sunday ... 6 = Saturday throughout, matching
cron.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from celery.schedules import ParseException, crontab

from membersync.core.constants import ScheduleFrequency
from membersync.core.logging import get_logger
from membersync.processing.types import ScheduleConfiguration

logger = get_logger(__name__)

TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

DEFAULT_TIME = "00:00"
MAX_RETRIES_LIMIT = 10
MAX_RETRY_DELAY_MINUTES = 1440

# How far ahead a cron search looks before giving up (e.g. "0 0 30 2 *")
CRON_SEARCH_YEARS = 5


class CronParseError(ValueError):
    pass


# ═══════════════════════════════════════════════════════════
#  Cron expressions
# ═══════════════════════════════════════════════════════════

# One comma-separated entry: "*", "*/15", "5", "1-5" or "0-30/10"
CRON_PART_RE = re.compile(r"^(\*(/\d+)?|\d+(-\d+(/\d+)?)?)$")

CRON_FIELD_NAMES = ("minute", "hour", "day of month", "month", "day of week")


@dataclass(frozen=True)
class CronSchedule:
    """A parsed five-field cron expression: minute hour day-of-month month day-of-week."""

    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    dom_restricted: bool = True
    dow_restricted: bool = True

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        """
        Field values are expanded by celery's crontab, so ranges, lists
        and steps follow Celery Beat.  Day of week is 0-6, Sunday = 0.
        """
        parts = expression.split()
        if len(parts) != 5:
            raise CronParseError(f"Expected 5 fields, got {len(parts)}")
        for text, name in zip(parts, CRON_FIELD_NAMES):
            bad = [part for part in text.split(",") if not CRON_PART_RE.match(part)]
            if bad:
                raise CronParseError(f"Invalid {name} entry '{bad[0]}'")

        minute, hour, day_of_month, month_of_year, day_of_week = parts
        try:
            entry = crontab(
                minute=minute,
                hour=hour,
                day_of_week=day_of_week,
                day_of_month=day_of_month,
                month_of_year=month_of_year,
            )
        except (ParseException, ValueError) as exc:
            raise CronParseError(str(exc)) from exc

        return cls(
            minutes=frozenset(entry.minute),
            hours=frozenset(entry.hour),
            days_of_month=frozenset(entry.day_of_month),
            months=frozenset(entry.month_of_year),
            days_of_week=frozenset(entry.day_of_week),
            dom_restricted=day_of_month != "*",
            dow_restricted=day_of_week != "*",
        )

    def matches_day(self, moment: datetime) -> bool:
        dom_ok = moment.day in self.days_of_month
        dow_ok = _sunday_based_weekday(moment) in self.days_of_week
        # Vixie cron: when both day fields are restricted either may match
        if self.dom_restricted and self.dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok

    def next_after(self, moment: datetime) -> datetime | None:
        """First matching minute strictly after `moment`, or None."""
        candidate = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        horizon = candidate.year + CRON_SEARCH_YEARS

        while candidate.year <= horizon:
            if candidate.month not in self.months:
                candidate = _first_of_next_month(candidate)
                continue
            if not self.matches_day(candidate):
                candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
                continue
            if candidate.hour not in self.hours:
                candidate = (candidate + timedelta(hours=1)).replace(minute=0)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate
        return None


def _first_of_next_month(moment: datetime) -> datetime:
    if moment.month == 12:
        return moment.replace(year=moment.year + 1, month=1, day=1, hour=0, minute=0)
    return moment.replace(month=moment.month + 1, day=1, hour=0, minute=0)


def _sunday_based_weekday(moment: datetime) -> int:
    return (moment.weekday() + 1) % 7


# ═══════════════════════════════════════════════════════════
#  Next run
# ═══════════════════════════════════════════════════════════

def _parse_time(value: str | None) -> tuple[int, int]:
    match = TIME_RE.match(value or DEFAULT_TIME)
    if match is None:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)), int(match.group(2))


def _localize(config: ScheduleConfiguration, moment: datetime) -> datetime:
    if moment.tzinfo is not None and config.timezone:
        return moment.astimezone(ZoneInfo(config.timezone))
    return moment


def _at_time(moment: datetime, hour: int, minute: int) -> datetime:
    return moment.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _clamped_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def calculate_next_sync_time(
    config: ScheduleConfiguration,
    from_: datetime | None = None,
) -> datetime | None:
    """
    Next scheduled run strictly after `from_` (default: now, UTC).

    Returns None for manual schedules and for cron schedules without a
    valid expression.
    """
    now = _localize(config, from_ or datetime.now(timezone.utc))
    frequency = ScheduleFrequency(config.frequency)

    if frequency == ScheduleFrequency.MANUAL:
        return None

    if frequency == ScheduleFrequency.HOURLY:
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)

    if frequency == ScheduleFrequency.CRON:
        if not config.cron_expression:
            return None
        try:
            return CronSchedule.parse(config.cron_expression).next_after(now)
        except CronParseError as exc:
            logger.warning(
                "Invalid cron expression, no run scheduled",
                cron_expression=config.cron_expression,
                error=str(exc),
            )
            return None

    hour, minute = _parse_time(config.time)

    if frequency == ScheduleFrequency.DAILY:
        candidate = _at_time(now, hour, minute)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    if frequency == ScheduleFrequency.WEEKLY:
        target = (config.day_of_week if config.day_of_week is not None else 0) % 7
        days_ahead = (target - _sunday_based_weekday(now)) % 7
        candidate = _at_time(now + timedelta(days=days_ahead), hour, minute)
        if candidate <= now:
            candidate += timedelta(days=7)
        return candidate

    # monthly
    day = config.day_of_month or 1
    candidate = _at_time(
        now.replace(day=_clamped_day(now.year, now.month, day)), hour, minute
    )
    if candidate <= now:
        next_month = _first_of_next_month(now)
        candidate = _at_time(
            next_month.replace(day=_clamped_day(next_month.year, next_month.month, day)),
            hour,
            minute,
        )
    return candidate


# ═══════════════════════════════════════════════════════════
#  Retry
# ═══════════════════════════════════════════════════════════

def calculate_retry_delay(attempt: int, base_minutes: int) -> int:
    """Exponential backoff in minutes: base, 2*base, 4*base, ..."""
    return base_minutes * 2 ** max(attempt - 1, 0)


def calculate_next_retry_time(
    attempt: int,
    config: ScheduleConfiguration,
    from_: datetime | None = None,
) -> datetime:
    now = from_ or datetime.now(timezone.utc)
    return now + timedelta(minutes=calculate_retry_delay(attempt, config.retry_delay_minutes))


def should_retry(attempt: int, config: ScheduleConfiguration) -> bool:
    return bool(config.retry_on_failure) and attempt < config.max_retries


# ═══════════════════════════════════════════════════════════
#  Validation / presentation
# ═══════════════════════════════════════════════════════════

@dataclass
class ScheduleValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_schedule_config(config: ScheduleConfiguration) -> ScheduleValidation:
    errors: list[str] = []
    frequency = ScheduleFrequency(config.frequency)

    if frequency == ScheduleFrequency.CRON:
        if not config.cron_expression:
            errors.append("Cron expression is required for cron frequency")
        else:
            try:
                CronSchedule.parse(config.cron_expression)
            except CronParseError as exc:
                errors.append(f"Invalid cron expression: {exc}")

    if config.time is not None and not TIME_RE.match(config.time):
        errors.append("Time must be in HH:MM format (24-hour)")

    if config.day_of_week is not None and not 0 <= config.day_of_week <= 6:
        errors.append("Day of week must be between 0 (Sunday) and 6 (Saturday)")

    if config.day_of_month is not None and not 1 <= config.day_of_month <= 31:
        errors.append("Day of month must be between 1 and 31")

    if not 0 <= config.max_retries <= MAX_RETRIES_LIMIT:
        errors.append(f"Max retries must be between 0 and {MAX_RETRIES_LIMIT}")

    if not 1 <= config.retry_delay_minutes <= MAX_RETRY_DELAY_MINUTES:
        errors.append(f"Retry delay must be between 1 and {MAX_RETRY_DELAY_MINUTES} minutes")

    if config.timezone:
        try:
            ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown timezone: {config.timezone}")

    return ScheduleValidation(valid=not errors, errors=errors)


def get_schedule_description(config: ScheduleConfiguration) -> str:
    """Human-readable one-liner, e.g. 'Every Monday at 09:00 (Europe/London)'."""
    frequency = ScheduleFrequency(config.frequency)
    time = config.time or DEFAULT_TIME

    if frequency == ScheduleFrequency.MANUAL:
        return "Manual sync only"
    if frequency == ScheduleFrequency.HOURLY:
        description = "Every hour"
    elif frequency == ScheduleFrequency.DAILY:
        description = f"Daily at {time}"
    elif frequency == ScheduleFrequency.WEEKLY:
        day = DAY_NAMES[(config.day_of_week or 0) % 7]
        description = f"Every {day} at {time}"
    elif frequency == ScheduleFrequency.MONTHLY:
        description = f"Monthly on day {config.day_of_month or 1} at {time}"
    else:
        description = f"Custom schedule: {config.cron_expression or '(not set)'}"

    if config.timezone:
        description += f" ({config.timezone})"
    return description


FREQUENCY_OPTIONS: list[dict[str, str]] = [
    {"value": ScheduleFrequency.MANUAL, "label": "Manual", "description": "Only sync when triggered"},
    {"value": ScheduleFrequency.HOURLY, "label": "Hourly", "description": "Sync at the top of every hour"},
    {"value": ScheduleFrequency.DAILY, "label": "Daily", "description": "Sync once a day at a set time"},
    {"value": ScheduleFrequency.WEEKLY, "label": "Weekly", "description": "Sync once a week on a set day"},
    {"value": ScheduleFrequency.MONTHLY, "label": "Monthly", "description": "Sync once a month on a set day"},
    {"value": ScheduleFrequency.CRON, "label": "Custom (cron)", "description": "Sync on a cron expression"},
]


def get_frequency_options() -> list[dict[str, str]]:
    return [dict(option) for option in FREQUENCY_OPTIONS]


COMMON_TIMEZONES = [
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Phoenix",
    "America/Anchorage",
    "Pacific/Honolulu",
    "America/Toronto",
    "America/Vancouver",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
    "Asia/Singapore",
    "Australia/Sydney",
]


def get_common_timezones() -> list[str]:
    return list(COMMON_TIMEZONES)
