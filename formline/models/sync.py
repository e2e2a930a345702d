"""Pydantic models for sync runs: date ranges, summaries and the result envelope."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from formline.dates import to_utc, utc_now
from formline.models.base import FormlineBase

T = TypeVar("T")


class DateRange(FormlineBase):
    """Sync window.  ``end_date`` defaults to "now" when omitted."""

    start_date: datetime
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end_date is not None and self.start_date > self.end_date:
            raise ValueError("End date must be after start date")
        return self

    @property
    def end(self) -> datetime:
        return self.end_date or utc_now()


class TargetFailure(FormlineBase):
    """A target (user) that failed after exhausting its retries."""

    target: str
    error: str
    attempts: int


class SyncSummary(FormlineBase):
    """Aggregated statistics of one orchestrator run.

    Attributes:
        total_targets:   Targets discovered at the start of the run.
        succeeded:       Targets that completed (possibly after retries).
        failed:          Targets that exhausted their retries.
        retries:         Retry attempts consumed across all targets.
        total_items:     Activities fetched / daily metrics computed.
        created:         Rows created (or that would be, in a dry run).
        updated:         Rows updated (or that would be, in a dry run).
        skipped:         Items left untouched because their upstream data failed to load.
        elapsed_seconds: Wall-clock duration of the run.
        success_rate:    round(succeeded / total_targets * 100).
        dry_run:         True if no writes were performed.
    """

    total_targets: int = 0
    succeeded: int = 0
    failed: int = 0
    retries: int = 0
    total_items: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    elapsed_seconds: float = 0.0
    success_rate: int = 100
    dry_run: bool = False


class ServiceResult(BaseModel, Generic[T]):
    """Success/failure envelope returned by the public sync operations.

    Failures carry a human-readable message, an optional machine code and
    per-target detail; never a traceback.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    code: str | None = None
    details: list[TargetFailure] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: T, details: list[TargetFailure] | None = None) -> "ServiceResult[T]":
        return cls(success=True, data=data, details=details or [])

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "ServiceResult[T]":
        return cls(success=False, error=error, code=code)
