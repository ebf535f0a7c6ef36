"""
Core data models for address resolution.

Coordinates are frozen dataclasses; rows and pipeline runs are mutable
but only the resolution pipeline writes to them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..settings import Settings


class GeocodeSource(StrEnum):
    """Where a row's coordinate came from."""
    NATIVE = "native"
    CACHE = "cache"
    PRELOAD = "preload"
    PROVIDER = "provider"
    NONE = "none"


class RowStatus(StrEnum):
    """Outcome of processing a single row."""
    PENDING = "pending"
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in WGS84 degrees."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        lat, lon = float(self.lat), float(self.lon)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValueError(f"Coordinate must be finite, got ({self.lat}, {self.lon})")
        if not -90 <= lat <= 90:
            raise ValueError(f"Latitude out of range: {lat}")
        if not -180 <= lon <= 180:
            raise ValueError(f"Longitude out of range: {lon}")
        # normalise ints / numpy scalars to plain floats
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lon", lon)

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(lat=float(data["lat"]), lon=float(data["lon"]))


@dataclass
class Row:
    """
    One input record.

    `fields` keeps the original column names and order; `index` is the
    ingestion position and is the row's identity for export.
    """
    index: int
    fields: Dict[str, str]
    coordinate: Optional[Coordinate] = None
    source: GeocodeSource = GeocodeSource.NONE
    status: RowStatus = RowStatus.PENDING

    def attach(self, coordinate: Coordinate, source: GeocodeSource) -> None:
        self.coordinate = coordinate
        self.source = source
        self.status = RowStatus.RESOLVED

    def clear(self) -> None:
        self.coordinate = None
        self.source = GeocodeSource.NONE
        self.status = RowStatus.PENDING

    @property
    def query(self) -> str:
        """Address query built from the row's street/neighborhood fields."""
        from .normalizers import build_query
        return build_query(self.fields)

    @property
    def region(self) -> str:
        from .normalizers import REGION_ALIASES, field_value
        return field_value(self.fields, REGION_ALIASES)

    @property
    def neighborhood(self) -> str:
        from .normalizers import NEIGHBORHOOD_ALIASES, field_value
        return field_value(self.fields, NEIGHBORHOOD_ALIASES)

    @property
    def address(self) -> str:
        from .normalizers import ADDRESS_ALIASES, field_value
        return field_value(self.fields, ADDRESS_ALIASES)


@dataclass
class PipelineRun:
    """Aggregate over one ingestion batch."""
    total: int
    generation: int = 0
    done: int = 0
    native: int = 0
    geocoded_remote: int = 0
    skipped: int = 0
    failed: int = 0
    failed_queries: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def geocoded(self) -> int:
        return self.native + self.geocoded_remote

    def record_failure(self, query: str) -> None:
        """Count a failed row; the query is kept once regardless of repeats."""
        self.failed += 1
        if query not in self.failed_queries:
            self.failed_queries.append(query)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation": self.generation,
            "total": self.total,
            "done": self.done,
            "geocoded": self.geocoded,
            "native": self.native,
            "geocoded_remote": self.geocoded_remote,
            "skipped": self.skipped,
            "failed": self.failed,
            "failed_queries": list(self.failed_queries),
            "cancelled": self.cancelled,
        }


@dataclass
class ResolutionConfig:
    """Configuration for the resolution pipeline."""
    # Provider
    api_base_url: str = "https://nominatim.openstreetmap.org/search"
    country_code: str = "ar"
    country_name: str = "Argentina"
    contact_email: Optional[str] = None
    user_agent: str = "Argentina-Map-App/1.0"
    accept_language: str = "es"
    api_timeout: float = 10.0

    # Rate limiting
    rate_limit_ms: int = 1200
    concurrency: int = 4

    # Persistence
    cache_path: Optional[Path] = None
    preload_path: Optional[Path] = None

    @property
    def rate_limit_s(self) -> float:
        return self.rate_limit_ms / 1000.0

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ResolutionConfig":
        """Build a config from loaded settings; keyword overrides win when not None."""
        values: Dict[str, Any] = {
            "api_base_url": settings.nominatim_url,
            "country_code": settings.country_code,
            "country_name": settings.country_name,
            "contact_email": settings.contact_email,
            "user_agent": settings.user_agent,
            "accept_language": settings.accept_language,
            "api_timeout": settings.timeout_s,
            "rate_limit_ms": settings.rate_limit_ms,
            "concurrency": settings.concurrency,
            "cache_path": settings.cache_path,
            "preload_path": settings.preload_path,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
