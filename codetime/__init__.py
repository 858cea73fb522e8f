"""
CODETIME — coding time from editor heartbeats.

Collects WakaTime-compatible heartbeats, estimates elapsed coding time
from the gaps between them and serves per-user summaries by project,
language, editor, operating system and machine.

The engine lives in :mod:`codetime.engine`; the HTTP API in
:mod:`codetime.api`.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
