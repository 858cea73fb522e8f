"""CODETIME schema migrations."""

from codetime.migrations.core import get_current_version, run_migrations  # noqa: F401
