"""Reset/reseed package — table ordering, progress model, endpoint client, pipeline."""

from core.reseed.client import DataManagerClient, TableEndpoints, TableOperationError
from core.reseed.pipeline import TableResetPipeline
from core.reseed.progress import (
    LoggingProgressSink,
    PhaseProgress,
    PhaseSummary,
    ProgressSink,
    RunPhase,
    TableStatus,
)
from core.reseed.table_order import DELETION_ORDER, INSERTION_ORDER

__all__ = [
    "DELETION_ORDER",
    "INSERTION_ORDER",
    "DataManagerClient",
    "LoggingProgressSink",
    "PhaseProgress",
    "PhaseSummary",
    "ProgressSink",
    "RunPhase",
    "TableEndpoints",
    "TableOperationError",
    "TableResetPipeline",
    "TableStatus",
]
