"""Aggregation data classes and states."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    AGGREGATING = "aggregating"


@dataclass
class UserAggregationState:
    """Per-user aggregation record owned by the scheduler."""
    user_id: str
    last_aggregated_at: Optional[datetime] = None
    in_progress: bool = False
    last_error: str = ""


@dataclass
class AggregationReport:
    """Outcome of one scheduler run."""
    users_scanned: int = 0
    aggregated: int = 0
    failed: int = 0
    skipped: int = 0
    days_written: int = 0
    pruned: int = 0
    started_at: str = ""
    finished_at: str = ""
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict:
        return asdict(self)
