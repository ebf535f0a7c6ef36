from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


from address_mapper.geocoding import (  # noqa: E402
    Coordinate,
    Geocoder,
    InMemoryCoordinateCache,
    RateLimiter,
)


class FakeGeocoder(Geocoder):
    """Answers from a dict; records every query it receives."""

    def __init__(self, answers=None, errors=None, delays=None):
        self.answers = answers or {}
        self.errors = errors or {}
        self.delays = delays or {}
        self.calls: list[str] = []

    def search(self, query: str) -> Optional[Coordinate]:
        self.calls.append(query)
        if query in self.delays:
            time.sleep(self.delays[query])
        if query in self.errors:
            raise self.errors[query]
        return self.answers.get(query)


class CountingRateLimiter(RateLimiter):
    def __init__(self):
        self.acquired = 0

    async def acquire(self) -> None:
        self.acquired += 1


@pytest.fixture
def cache():
    return InMemoryCoordinateCache()


@pytest.fixture
def santa_fe():
    return Coordinate(lat=-34.59, lon=-58.40)
