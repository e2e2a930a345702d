"""Pydantic models shared across Formline."""

from formline.models.activities import ActivityLoad, ActivityRecord
from formline.models.connections import FtpHistoryEntry, ServiceConnection
from formline.models.fitness import DailyFitnessSummary, DailyTrainingMetrics
from formline.models.sync import DateRange, ServiceResult, SyncSummary, TargetFailure

__all__ = [
    "ActivityLoad",
    "ActivityRecord",
    "FtpHistoryEntry",
    "ServiceConnection",
    "DailyFitnessSummary",
    "DailyTrainingMetrics",
    "DateRange",
    "ServiceResult",
    "SyncSummary",
    "TargetFailure",
]
