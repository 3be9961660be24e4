import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import pricing`, `import utils`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class FakeClock:
    """Settable wall clock for stores that timestamp records."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Settable monotonic clock for TTL caches."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0))


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()
