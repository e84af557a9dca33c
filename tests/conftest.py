import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# The database module reads DATABASE_URL at import time
_DB_DIR = tempfile.mkdtemp(prefix="soulgraph-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"

from src.soulgraph.config import SoulGraphConfig
from src.soulgraph.engine import RelationshipEngine


class FakeClock:
    """Manually advanced stand-in for the engine clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return SoulGraphConfig()


@pytest.fixture
def engine(config, clock):
    return RelationshipEngine(config=config, clock=clock)
