"""
CODETIME — Storage layer.

SQLite stores for heartbeats, user rules, persisted daily summaries and
users. Every store shares one :class:`~codetime.connection_pool.ConnectionPool`
and raises :class:`~codetime.exceptions.StoreError` on database failures.
"""

from codetime.storage.heartbeats import HeartbeatStore
from codetime.storage.rules import AliasStore, LanguageMappingStore
from codetime.storage.summaries import SummaryStore
from codetime.storage.users import UserStore

__all__ = [
    "AliasStore",
    "HeartbeatStore",
    "LanguageMappingStore",
    "SummaryStore",
    "UserStore",
]
