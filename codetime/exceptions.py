"""
CODETIME — Custom Exceptions.

Typed error hierarchy so that SQLite details never leak through the
engine's public surface (CLI, API, scheduler logs aside).
"""


class CodetimeError(Exception):
    """Base exception for all CODETIME errors."""


class StoreError(CodetimeError):
    """Raised when a storage operation fails.

    Treated as transient: the scheduler logs it and retries the same range
    on its next tick.
    """


class InvalidHeartbeatError(CodetimeError):
    """Raised when a heartbeat lacks a user or a timestamp."""


class InvalidRuleError(CodetimeError):
    """Raised when an alias or language mapping rule cannot be accepted."""


class RegenerationError(CodetimeError):
    """Raised when a manual summary regeneration fails."""


class UserNotFound(CodetimeError):
    """Raised when a user is not found."""
