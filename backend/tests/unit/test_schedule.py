"""
Tests for next-run calculation, cron parsing, retry backoff and schedule
validation.
"""
from datetime import datetime, timezone

import pytest

from membersync.core.constants import ScheduleFrequency
from membersync.processing.types import ScheduleConfiguration
from membersync.services.schedule import (
    CronParseError,
    CronSchedule,
    calculate_next_retry_time,
    calculate_next_sync_time,
    calculate_retry_delay,
    get_common_timezones,
    get_frequency_options,
    get_schedule_description,
    should_retry,
    validate_schedule_config,
)

UTC = timezone.utc


def _at(*args):
    return datetime(*args, tzinfo=UTC)


def _config(frequency, **kwargs):
    return ScheduleConfiguration(frequency=frequency, **kwargs)


class TestNextSyncTime:

    def test_manual_never_runs(self):
        assert calculate_next_sync_time(_config(ScheduleFrequency.MANUAL), _at(2024, 6, 15, 10, 0)) is None

    @pytest.mark.parametrize("now, expected", [
        (_at(2024, 6, 15, 10, 30), _at(2024, 6, 15, 11, 0)),
        (_at(2024, 6, 15, 10, 0), _at(2024, 6, 15, 11, 0)),
        (_at(2024, 6, 15, 23, 30), _at(2024, 6, 16, 0, 0)),
    ])
    def test_hourly(self, now, expected):
        assert calculate_next_sync_time(_config(ScheduleFrequency.HOURLY), now) == expected

    def test_daily_later_today(self):
        config = _config(ScheduleFrequency.DAILY, time="14:00")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 15, 14, 0)

    def test_daily_time_passed_rolls_to_tomorrow(self):
        config = _config(ScheduleFrequency.DAILY, time="09:00")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 16, 9, 0)

    def test_daily_exactly_at_time_is_not_now(self):
        config = _config(ScheduleFrequency.DAILY, time="09:00")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 9, 0)) == _at(2024, 6, 16, 9, 0)

    def test_daily_defaults_to_midnight(self):
        config = _config(ScheduleFrequency.DAILY)
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 16, 0, 0)

    def test_weekly(self):
        # 2024-06-15 is a Saturday
        config = _config(ScheduleFrequency.WEEKLY, day_of_week=1, time="09:00")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 17, 9, 0)

    def test_weekly_same_day(self):
        config = _config(ScheduleFrequency.WEEKLY, day_of_week=1, time="09:00")
        assert calculate_next_sync_time(config, _at(2024, 6, 17, 8, 0)) == _at(2024, 6, 17, 9, 0)
        assert calculate_next_sync_time(config, _at(2024, 6, 17, 10, 0)) == _at(2024, 6, 24, 9, 0)

    def test_weekly_without_day_means_sunday(self):
        config = _config(ScheduleFrequency.WEEKLY)
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 16, 0, 0)

    def test_monthly_next_month(self):
        config = _config(ScheduleFrequency.MONTHLY, day_of_month=1)
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 7, 1, 0, 0)

    def test_monthly_day_is_clamped_to_month_length(self):
        config = _config(ScheduleFrequency.MONTHLY, day_of_month=31, time="09:00")
        assert calculate_next_sync_time(config, _at(2024, 2, 10, 0, 0)) == _at(2024, 2, 29, 9, 0)
        assert calculate_next_sync_time(config, _at(2024, 4, 30, 10, 0)) == _at(2024, 5, 31, 9, 0)

    def test_monthly_year_rollover(self):
        config = _config(ScheduleFrequency.MONTHLY, day_of_month=5)
        assert calculate_next_sync_time(config, _at(2024, 12, 20, 0, 0)) == _at(2025, 1, 5, 0, 0)

    def test_cron(self):
        config = _config(ScheduleFrequency.CRON, cron_expression="0 2 * * *")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 16, 2, 0)

    def test_cron_without_expression(self):
        assert calculate_next_sync_time(_config(ScheduleFrequency.CRON), _at(2024, 6, 15, 10, 0)) is None

    def test_stored_invalid_cron_has_no_next_run(self):
        config = _config(ScheduleFrequency.CRON, cron_expression="61 * * * *")
        assert calculate_next_sync_time(config, _at(2024, 6, 15, 10, 0)) is None

    def test_wall_clock_in_configured_timezone(self):
        config = _config(ScheduleFrequency.DAILY, time="09:00", timezone="America/New_York")

        # 12:00 UTC is 08:00 EDT
        result = calculate_next_sync_time(config, _at(2024, 6, 15, 12, 0))

        assert result == _at(2024, 6, 15, 13, 0)
        assert result.tzinfo.key == "America/New_York"

    def test_default_reference_is_now(self):
        result = calculate_next_sync_time(_config(ScheduleFrequency.HOURLY))
        assert result > datetime.now(UTC)


class TestCronSchedule:

    @pytest.mark.parametrize("expression, now, expected", [
        ("*/15 * * * *", _at(2024, 6, 15, 10, 7), _at(2024, 6, 15, 10, 15)),
        ("0 9 * * 1-5", _at(2024, 6, 15, 10, 0), _at(2024, 6, 17, 9, 0)),
        ("0 0 * * 0", _at(2024, 6, 15, 10, 0), _at(2024, 6, 16, 0, 0)),
        ("30 8 1,15 * *", _at(2024, 6, 15, 9, 0), _at(2024, 7, 1, 8, 30)),
        ("5-59/20 * * * *", _at(2024, 6, 15, 10, 30), _at(2024, 6, 15, 10, 45)),
        ("0 0 1 1 *", _at(2024, 6, 15, 10, 0), _at(2025, 1, 1, 0, 0)),
    ])
    def test_next_after(self, expression, now, expected):
        assert CronSchedule.parse(expression).next_after(now) == expected

    def test_day_of_month_or_day_of_week(self):
        # Both restricted: the 1st of the month or any Monday
        schedule = CronSchedule.parse("0 0 1 * 1")
        assert schedule.next_after(_at(2024, 6, 15, 10, 0)) == _at(2024, 6, 17, 0, 0)

    def test_impossible_date_gives_none(self):
        assert CronSchedule.parse("0 0 30 2 *").next_after(_at(2024, 6, 15, 10, 0)) is None

    def test_strictly_after(self):
        schedule = CronSchedule.parse("0 2 * * *")
        assert schedule.next_after(_at(2024, 6, 15, 2, 0)) == _at(2024, 6, 16, 2, 0)

    @pytest.mark.parametrize("expression", [
        "* * *",
        "61 * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 8",
        "* * * * 7",
        "5/20 * * * *",
        "*/0 * * * *",
        "a * * * *",
        "1,,2 * * * *",
    ])
    def test_invalid_expressions(self, expression):
        with pytest.raises(CronParseError):
            CronSchedule.parse(expression)


class TestRetry:

    @pytest.mark.parametrize("attempt, expected", [(1, 15), (2, 30), (3, 60), (4, 120)])
    def test_exponential_backoff(self, attempt, expected):
        assert calculate_retry_delay(attempt, 15) == expected

    def test_attempt_zero_uses_base(self):
        assert calculate_retry_delay(0, 15) == 15

    def test_next_retry_time(self):
        config = _config(ScheduleFrequency.DAILY, retry_delay_minutes=10)
        assert calculate_next_retry_time(2, config, _at(2024, 6, 15, 10, 0)) == _at(2024, 6, 15, 10, 20)

    def test_should_retry(self):
        config = _config(ScheduleFrequency.DAILY, retry_on_failure=True, max_retries=3)

        assert should_retry(0, config) is True
        assert should_retry(2, config) is True
        assert should_retry(3, config) is False
        assert should_retry(0, _config(ScheduleFrequency.DAILY, max_retries=3)) is False


class TestValidation:

    def test_valid(self):
        config = _config(
            ScheduleFrequency.WEEKLY,
            time="09:30",
            day_of_week=6,
            timezone="Europe/London",
            retry_on_failure=True,
            max_retries=3,
        )
        assert validate_schedule_config(config).valid is True

    def test_collects_every_error(self):
        config = _config(
            ScheduleFrequency.MONTHLY,
            time="9am",
            day_of_week=7,
            day_of_month=32,
            max_retries=11,
            retry_delay_minutes=0,
            timezone="Mars/Olympus_Mons",
        )
        result = validate_schedule_config(config)

        assert result.valid is False
        assert result.errors == [
            "Time must be in HH:MM format (24-hour)",
            "Day of week must be between 0 (Sunday) and 6 (Saturday)",
            "Day of month must be between 1 and 31",
            "Max retries must be between 0 and 10",
            "Retry delay must be between 1 and 1440 minutes",
            "Unknown timezone: Mars/Olympus_Mons",
        ]

    def test_cron_expression_required(self):
        result = validate_schedule_config(_config(ScheduleFrequency.CRON))
        assert result.errors == ["Cron expression is required for cron frequency"]

    def test_invalid_cron_expression(self):
        result = validate_schedule_config(_config(ScheduleFrequency.CRON, cron_expression="* * *"))
        assert result.errors[0].startswith("Invalid cron expression:")

    def test_time_boundaries(self):
        assert validate_schedule_config(_config(ScheduleFrequency.DAILY, time="23:59")).valid is True
        assert validate_schedule_config(_config(ScheduleFrequency.DAILY, time="24:00")).valid is False


class TestPresentation:

    @pytest.mark.parametrize("config, expected", [
        (_config(ScheduleFrequency.MANUAL, timezone="UTC"), "Manual sync only"),
        (_config(ScheduleFrequency.HOURLY), "Every hour"),
        (_config(ScheduleFrequency.DAILY, time="09:00"), "Daily at 09:00"),
        (_config(ScheduleFrequency.WEEKLY, day_of_week=1, time="09:00", timezone="Europe/London"),
         "Every Monday at 09:00 (Europe/London)"),
        (_config(ScheduleFrequency.MONTHLY, day_of_month=15), "Monthly on day 15 at 00:00"),
        (_config(ScheduleFrequency.CRON, cron_expression="0 2 * * *"), "Custom schedule: 0 2 * * *"),
    ])
    def test_description(self, config, expected):
        assert get_schedule_description(config) == expected

    def test_frequency_options(self):
        options = get_frequency_options()

        assert [o["value"] for o in options] == ["manual", "hourly", "daily", "weekly", "monthly", "cron"]
        assert all({"value", "label", "description"} <= set(o) for o in options)

    def test_common_timezones(self):
        zones = get_common_timezones()

        assert zones[0] == "UTC"
        assert "America/New_York" in zones
