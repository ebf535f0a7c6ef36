"""
- Models: Data structures (Coordinate, Row, PipelineRun, ...)
- Base classes: Abstract interfaces
- Normalizers: Address keys and header alias lookup
- Extractors: Native coordinate columns
- Throttling: Rate limiting for API calls
- Storage: Backends for the coordinate cache
- Geocoders: Provider client and cache-first resolver
- Pipeline: Worker-pool batch resolution
- Reporters: Progress observers
"""

from .models import (
    Coordinate,
    Row,
    RowStatus,
    PipelineRun,
    GeocodeSource,
    ResolutionConfig,
)

from .base import (
    Geocoder,
    CoordinateStore,
    RateLimiter,
    ProgressReporter,
)

from .normalizers import (
    GEOCODE_PREFIX,
    PREFERENCE_PREFIX,
    REGION_ALIASES,
    NEIGHBORHOOD_ALIASES,
    ADDRESS_ALIASES,
    normalize_address,
    cache_key,
    address_key,
    build_query,
    field_value,
)

from .extractors import (
    CoordinateExtractor,
    LAT_ALIASES,
    LON_ALIASES,
    parse_number,
)

from .throttling import (
    MinIntervalRateLimiter,
    NoOpRateLimiter,
)

from .storage import (
    DuckDBCoordinateCache,
    InMemoryCoordinateCache,
    open_cache,
    load_coordinate_table,
    import_cache,
    export_cache,
)

from .geocoders import (
    NominatimClient,
    GeocodeResolver,
)

from .reporters import (
    LoggingProgressReporter,
    TqdmProgressReporter,
    CollectingProgressReporter,
    CompositeProgressReporter,
)

from .pipeline import (
    ResolutionPipeline,
    BatchSession,
    DEFAULT_CONCURRENCY,
)

__all__ = [
    # Models
    "Coordinate",
    "Row",
    "RowStatus",
    "PipelineRun",
    "GeocodeSource",
    "ResolutionConfig",
    # Base classes
    "Geocoder",
    "CoordinateStore",
    "RateLimiter",
    "ProgressReporter",
    # Normalizers
    "GEOCODE_PREFIX",
    "PREFERENCE_PREFIX",
    "REGION_ALIASES",
    "NEIGHBORHOOD_ALIASES",
    "ADDRESS_ALIASES",
    "normalize_address",
    "cache_key",
    "address_key",
    "build_query",
    "field_value",
    # Extractors
    "CoordinateExtractor",
    "LAT_ALIASES",
    "LON_ALIASES",
    "parse_number",
    # Throttling
    "MinIntervalRateLimiter",
    "NoOpRateLimiter",
    # Storage
    "DuckDBCoordinateCache",
    "InMemoryCoordinateCache",
    "open_cache",
    "load_coordinate_table",
    "import_cache",
    "export_cache",
    # Geocoders
    "NominatimClient",
    "GeocodeResolver",
    # Reporters
    "LoggingProgressReporter",
    "TqdmProgressReporter",
    "CollectingProgressReporter",
    "CompositeProgressReporter",
    # Pipeline
    "ResolutionPipeline",
    "BatchSession",
    "DEFAULT_CONCURRENCY",
]
