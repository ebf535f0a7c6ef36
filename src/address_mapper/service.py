"""
Wiring: build a ready-to-run session from configuration.

    from address_mapper.service import build_session, geocode_file

    session = build_session(ResolutionConfig(cache_path=Path("cache.duckdb")))
    run = geocode_file(session, "data.csv")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import requests

from .geocoding.base import CoordinateStore, Geocoder, ProgressReporter
from .geocoding.geocoders import GeocodeResolver, NominatimClient
from .geocoding.models import PipelineRun, ResolutionConfig
from .geocoding.pipeline import BatchSession, ResolutionPipeline
from .geocoding.reporters import LoggingProgressReporter
from .geocoding.storage import load_coordinate_table, open_cache
from .geocoding.throttling import MinIntervalRateLimiter
from .row_loader import load_rows

logger = logging.getLogger(__name__)


def build_session(
    config: ResolutionConfig,
    cache: Optional[CoordinateStore] = None,
    geocoder: Optional[Geocoder] = None,
    reporter: Optional[ProgressReporter] = None,
    session: Optional[requests.Session] = None,
) -> BatchSession:
    """
    Assemble cache, preload table, provider client, limiter, resolver
    and pipeline into a BatchSession.

    Raises:
        ParseError: if the configured preload file is malformed
    """
    cache = cache if cache is not None else open_cache(config.cache_path)
    preload = load_coordinate_table(config.preload_path) if config.preload_path else {}
    geocoder = geocoder or NominatimClient.from_config(config, session=session)

    resolver = GeocodeResolver(
        geocoder=geocoder,
        cache=cache,
        rate_limiter=MinIntervalRateLimiter.from_ms(config.rate_limit_ms),
        preload=preload,
    )
    pipeline = ResolutionPipeline(
        resolver=resolver,
        reporter=reporter or LoggingProgressReporter(),
        concurrency=config.concurrency,
        cache=cache,
    )
    logger.info(
        f"Session ready: concurrency={config.concurrency}, rate_limit={config.rate_limit_ms}ms, "
        f"preload={len(preload)} entries"
    )
    return BatchSession(pipeline)


def geocode_file(session: BatchSession, path: Path | str, source: Optional[str] = None) -> PipelineRun:
    """Load a row file and resolve it. A ParseError aborts before any row is processed."""
    rows, columns = load_rows(path, source=source)
    return session.run_batch(rows, columns)
