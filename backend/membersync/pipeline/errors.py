"""
Domain-specific exception hierarchy for the sync pipeline.

All pipeline exceptions inherit from PipelineError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (step name, execution ID, etc.) for logging/debugging.

Propagation:
    - ParseError             raised before any stage runs
    - MappingError           config-time (required destination field unmapped)
    - RowLevelStoreError     one row rejected by the store, recorded per row
    - InfrastructureError    store unavailable / query failed, ends the run
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        execution_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.execution_id = execution_id
        self.step_name = step_name
        self.details = details or {}
        super().__init__(message)


class StepExecutionError(PipelineError):
    """A step failed during execution."""
    pass


class ParseError(PipelineError):
    """Delimited input could not be parsed."""

    def __init__(self, message: str, *, line: int | None = None, **kwargs) -> None:
        self.line = line
        super().__init__(message, **kwargs)


class MappingError(PipelineError):
    """Field mappings do not satisfy the destination schema."""
    pass


class InfrastructureError(PipelineError):
    """The persistence boundary failed; the run cannot continue."""
    pass


class RowLevelStoreError(PipelineError):
    """The store rejected a single row; other rows are unaffected."""
    pass


class DuplicateRecordError(RowLevelStoreError):
    """A unique constraint rejected the row."""
    pass


class RowRejectedError(RowLevelStoreError):
    """The row violated some other constraint (type, not-null, foreign key)."""
    pass
