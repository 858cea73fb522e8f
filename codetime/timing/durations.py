"""
CODETIME — Duration Estimator.

Turns a sparse sequence of heartbeats into elapsed time. Consecutive
heartbeats no further apart than the idle threshold belong to one span
and contribute their gap; the last heartbeat of every span contributes a
fixed epsilon, since nothing follows it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from codetime.timing.models import DEFAULT_EPSILON, DEFAULT_TIMEOUT, Heartbeat


def estimate_duration(
    heartbeats: Iterable[Heartbeat],
    timeout: timedelta = DEFAULT_TIMEOUT,
    epsilon: timedelta = DEFAULT_EPSILON,
) -> timedelta:
    """Estimate elapsed time covered by ``heartbeats``.

    Input order does not matter; heartbeats are processed by ascending
    time. Identical timestamps add nothing.

    Example:
        0s, 90s, 400s with a 120s timeout → 90s + 2·epsilon
        (one closed span after 90s, one single-heartbeat span at 400s).
    """
    return estimate_from_times(sorted(hb.time for hb in heartbeats), timeout, epsilon)


def estimate_from_times(
    times: list[datetime],
    timeout: timedelta = DEFAULT_TIMEOUT,
    epsilon: timedelta = DEFAULT_EPSILON,
) -> timedelta:
    """Same as :func:`estimate_duration` over pre-sorted timestamps."""
    if not times:
        return timedelta(0)

    total = timedelta(0)
    prev = times[0]
    for current in times[1:]:
        gap = current - prev
        if gap <= timeout:
            total += gap
        else:
            # Span closed by the gap
            total += epsilon
        prev = current
    return total + epsilon


def to_seconds(duration: timedelta) -> int:
    """Round a duration to the integer seconds stored in summary items."""
    return int(round(duration.total_seconds()))
