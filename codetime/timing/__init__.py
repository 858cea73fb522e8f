"""
CODETIME Timing — heartbeat-based coding time estimation.

Duration estimation, alias resolution, language mapping and summary
construction. Ingestion lives in :mod:`codetime.timing.tracker` and
cached range queries in :mod:`codetime.timing.retrieval`.
"""

from codetime.timing.aliases import AliasResolver, validate_alias
from codetime.timing.builder import SummaryBuilder, merge_all, merge_summaries
from codetime.timing.durations import estimate_duration
from codetime.timing.languages import LanguageMapper, validate_mapping
from codetime.timing.models import (
    UNKNOWN_KEY,
    Alias,
    Filters,
    Heartbeat,
    LanguageMapping,
    Summary,
    SummaryItem,
    SummaryType,
    classify_entity,
)

__all__ = [
    "UNKNOWN_KEY",
    "Alias",
    "AliasResolver",
    "Filters",
    "Heartbeat",
    "LanguageMapper",
    "LanguageMapping",
    "Summary",
    "SummaryBuilder",
    "SummaryItem",
    "SummaryType",
    "classify_entity",
    "estimate_duration",
    "merge_all",
    "merge_summaries",
    "validate_alias",
    "validate_mapping",
]
