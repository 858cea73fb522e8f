"""CODETIME Aggregation — scheduled daily summary persistence."""

from codetime.aggregation.models import (
    AggregationReport,
    SchedulerState,
    UserAggregationState,
)
from codetime.aggregation.scheduler import AggregationScheduler

__all__ = [
    "AggregationReport",
    "AggregationScheduler",
    "SchedulerState",
    "UserAggregationState",
]
