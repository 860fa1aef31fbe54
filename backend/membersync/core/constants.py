"""Shared constants and enums used across the application."""

from enum import StrEnum


class SyncStatus(StrEnum):
    """Outcome of one sync run, as stored on the sync log."""

    STARTED = "started"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class DataSourceStatus(StrEnum):
    """Sync status of a data source."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"


class DestinationType(StrEnum):
    """Where cleaned rows are written."""

    MEMBERS = "members"
    TRANSACTIONS = "transactions"
    VISITS = "visits"
    CUSTOM = "custom"


class StepStatus(StrEnum):
    """Status of an individual pipeline step."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class DetectedType(StrEnum):
    """Semantic type inferred from sampled column values."""

    TEXT = "text"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMBER = "number"
    DATE = "date"


class StorageType(StrEnum):
    """Column storage type of a custom import table."""

    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"


class DuplicateHandling(StrEnum):
    """How rows sharing a duplicate key are resolved within a batch."""

    KEEP_ALL = "keep_all"
    KEEP_FIRST = "keep_first"
    KEEP_LAST = "keep_last"
    SKIP_ALL = "skip_all"


class FilterOperator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class FilterAction(StrEnum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class OnInvalid(StrEnum):
    """What a validation rule does with a value that fails validation."""

    SKIP = "skip"
    NULL = "null"
    KEEP = "keep"


class ScheduleFrequency(StrEnum):
    """Recurrence of a scheduled sync."""

    MANUAL = "manual"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CRON = "cron"


class DataSourceType(StrEnum):
    """Kinds of source a data source reads from."""

    CSV_UPLOAD = "csv_upload"
    CSV_URL = "csv_url"
    EXCEL = "excel"
    REST_API = "rest_api"
    POSTGRES = "postgres"
    MYSQL = "mysql"
