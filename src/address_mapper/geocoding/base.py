"""
Abstract base classes for the resolution system.

These define the interfaces that all concrete implementations must follow.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from .models import Coordinate
from .normalizers import GEOCODE_PREFIX, PREFERENCE_PREFIX

if TYPE_CHECKING:
    from .models import PipelineRun


class Geocoder(ABC):
    """
    Abstract base for external geocoding providers.

    A provider answers one free-text query with at most one coordinate.
    """

    @abstractmethod
    def search(self, query: str) -> Optional[Coordinate]:
        """
        Look up a single query.

        Args:
            query: Address text as built from the row

        Returns:
            The first candidate's coordinate, or None when nothing matched

        Raises:
            ProviderError: non-success HTTP status
            NetworkError: transport failure
        """
        pass


class CoordinateStore(ABC):
    """
    Abstract base for the durable key/value cache.

    Geocode entries live under the "geo:" namespace and UI preferences
    under "pref:"; both share one store so they can be cleared
    independently by prefix.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Coordinate]:
        """Return the coordinate stored under `key`, if any."""
        pass

    @abstractmethod
    def put(self, key: str, coordinate: Coordinate) -> None:
        """Persist a coordinate. Last write wins."""
        pass

    def seed(self, entries: Mapping[str, Coordinate]) -> int:
        """Bulk load entries without triggering resolution. Returns the count written."""
        for key, coordinate in entries.items():
            self.put(key, coordinate)
        return len(entries)

    @abstractmethod
    def keys(self, prefix: Optional[str] = None) -> List[str]:
        """Enumerate stored keys, optionally limited to a prefix."""
        pass

    @abstractmethod
    def clear(self, prefix: str = GEOCODE_PREFIX) -> int:
        """Delete every key starting with `prefix`. Returns the number removed."""
        pass

    @abstractmethod
    def get_raw(self, key: str) -> Optional[Any]:
        """Return the decoded JSON value stored under `key`."""
        pass

    @abstractmethod
    def put_raw(self, key: str, value: Any) -> None:
        """Store any JSON-serialisable value under `key`."""
        pass

    def get_preference(self, name: str, default: Any = None) -> Any:
        value = self.get_raw(f"{PREFERENCE_PREFIX}{name}")
        return default if value is None else value

    def set_preference(self, name: str, value: Any) -> None:
        self.put_raw(f"{PREFERENCE_PREFIX}{name}", value)

    def items(self, prefix: str = GEOCODE_PREFIX) -> Dict[str, Coordinate]:
        """All coordinates under `prefix`, keyed by full storage key."""
        result: Dict[str, Coordinate] = {}
        for key in self.keys(prefix):
            coordinate = self.get(key)
            if coordinate is not None:
                result[key] = coordinate
        return result

    def close(self) -> None:
        """Close connections/cleanup resources."""
        pass


class RateLimiter(ABC):
    """
    Abstract base for rate limiters.

    One instance is shared by every worker of a pipeline run, so the
    spacing it enforces is global rather than per worker.
    """

    @abstractmethod
    async def acquire(self) -> None:
        """Suspend until it's safe to make another request."""
        pass


class ProgressReporter(ABC):
    """
    Abstract base for progress observers.

    The pipeline calls `update` after every row, `complete` once at the
    end of a batch and `celebrate` only if something was geocoded.
    """

    @abstractmethod
    def update(self, done: int, total: int) -> None:
        pass

    def complete(self, run: "PipelineRun") -> None:
        pass

    def celebrate(self, geocoded: int) -> None:
        pass
