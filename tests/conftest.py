from datetime import datetime, timezone

import pytest

from codetime import config
from codetime.engine import CodetimeEngine

# Fixed "now" for everything that depends on the scheduler clock
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_codetime_config():
    """Reset config from environment between every test."""
    config.reload()
    yield
    config.reload()


@pytest.fixture
async def engine(tmp_path):
    """Engine on a temp database whose scheduler clock is frozen at NOW."""
    eng = CodetimeEngine(tmp_path / "codetime.db", interval=3600, workers=2, clock=lambda: NOW)
    await eng.init_db()
    yield eng
    await eng.close()
