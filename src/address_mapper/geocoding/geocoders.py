"""
Nominatim search API wrapper and the cache-first resolver built on it.

Reference: https://nominatim.org/release-docs/latest/api/Search/
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from .base import CoordinateStore, Geocoder, RateLimiter
from .models import Coordinate, GeocodeSource, ResolutionConfig
from .normalizers import cache_key, normalize_address
from .throttling import NoOpRateLimiter
from ..utils.errors import NetworkError, ProviderError

logger = logging.getLogger(__name__)


class NominatimClient(Geocoder):
    """
    Nominatim (OSM) search wrapper.

    Each call issues exactly one GET restricted to the configured country
    and asking for a single candidate. Rate limiting is not done here;
    the resolver owns the limiter.
    """

    def __init__(
        self,
        api_base_url: str = "https://nominatim.openstreetmap.org/search",
        country_code: str = "ar",
        country_name: Optional[str] = "Argentina",
        contact_email: Optional[str] = None,
        user_agent: str = "Argentina-Map-App/1.0",
        accept_language: str = "es",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Nominatim wrapper.

        Args:
            api_base_url: Search endpoint URL
            country_code: ISO country code used for `countrycodes`
            country_name: Appended to every query to bias matching, if set
            contact_email: Sent as `email` per the usage policy, if set
            user_agent: User-Agent header
            accept_language: Accept-Language header
            timeout: HTTP request timeout in seconds
            session: Optional requests session (injectable for tests)
        """
        self.api_base_url = api_base_url
        self.country_code = country_code
        self.country_name = country_name
        self.contact_email = contact_email
        self.timeout = timeout
        self.session = session or requests.Session()

        agent = user_agent
        if contact_email and "@" in contact_email:
            agent = f"{user_agent} ({contact_email})"
        self.headers = {
            "Accept": "application/json",
            "Accept-Language": accept_language,
            "User-Agent": agent,
        }

        logger.info(f"Initialized NominatimClient: {api_base_url}, country={country_code}, timeout={timeout}s")

    @classmethod
    def from_config(cls, config: ResolutionConfig, session: Optional[requests.Session] = None) -> "NominatimClient":
        return cls(
            api_base_url=config.api_base_url,
            country_code=config.country_code,
            country_name=config.country_name,
            contact_email=config.contact_email,
            user_agent=config.user_agent,
            accept_language=config.accept_language,
            timeout=config.api_timeout,
            session=session,
        )

    def build_params(self, query: str) -> Dict[str, str]:
        q = f"{query}, {self.country_name}" if self.country_name else query
        params = {
            "q": q,
            "format": "json",
            "addressdetails": "0",
            "limit": "1",
            "countrycodes": self.country_code,
        }
        if self.contact_email and "@" in self.contact_email:
            params["email"] = self.contact_email
        return params

    def search(self, query: str) -> Optional[Coordinate]:
        params = self.build_params(query)
        logger.debug(f"Querying Nominatim: {params['q']}")

        try:
            response = self.session.get(
                self.api_base_url,
                params=params,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NetworkError(query, e) from e

        logger.debug(f"Nominatim status: {response.status_code}")
        if not response.ok:
            raise ProviderError(query, response.status_code, (response.text or "")[:200])

        try:
            candidates = response.json()
        except ValueError as e:
            raise ProviderError(query, response.status_code, "invalid JSON body") from e

        return self._extract_first(query, candidates)

    def _extract_first(self, query: str, candidates: Any) -> Optional[Coordinate]:
        """Coordinate of the first candidate, None when the list is empty."""
        if not isinstance(candidates, list):
            raise ProviderError(query, 200, f"unexpected payload: {str(candidates)[:200]}")
        if not candidates:
            return None

        first = candidates[0]
        try:
            # Nominatim returns coordinates as strings
            return Coordinate(lat=float(first["lat"]), lon=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(query, 200, f"malformed candidate: {str(first)[:200]}") from e


class GeocodeResolver:
    """
    Cache-first address resolver.

    Lookup order: durable cache, then the in-memory preload table, then
    the rate-limited provider. Successful lookups are written back to the
    cache; "no match" is never cached so a later run can try again.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        cache: CoordinateStore,
        rate_limiter: Optional[RateLimiter] = None,
        preload: Optional[Mapping[str, Coordinate]] = None,
    ):
        """
        Args:
            geocoder: External provider client
            cache: Durable coordinate store
            rate_limiter: Shared limiter (defaults to no limit)
            preload: normalized address -> coordinate seed table
        """
        self.geocoder = geocoder
        self.cache = cache
        self.rate_limiter = rate_limiter or NoOpRateLimiter()
        self.preload: Dict[str, Coordinate] = {
            normalize_address(k): v for k, v in (preload or {}).items()
        }

        self.cache_hits = 0
        self.preload_hits = 0
        self.network_calls = 0
        self._inflight: Dict[str, asyncio.Future] = {}

    def lookup_local(self, address: str) -> tuple[Optional[Coordinate], GeocodeSource]:
        """Cache and preload only; never touches the network."""
        normalized = normalize_address(address)
        key = cache_key(normalized)

        cached = self.cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            return cached, GeocodeSource.CACHE

        preloaded = self.preload.get(normalized)
        if preloaded is not None:
            self.preload_hits += 1
            self.cache.put(key, preloaded)
            return preloaded, GeocodeSource.PRELOAD

        return None, GeocodeSource.NONE

    async def resolve_with_source(self, address: str) -> tuple[Optional[Coordinate], GeocodeSource]:
        """
        Resolve an address and report where the answer came from.

        Concurrent calls for the same normalized address share a single
        provider request; the callers that joined it report CACHE.

        Raises:
            ProviderError: the provider answered with a non-success status
            NetworkError: the provider could not be reached
        """
        coordinate, source = self.lookup_local(address)
        if coordinate is not None:
            return coordinate, source

        key = cache_key(normalize_address(address))
        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight lookup for {address!r}")
            coordinate, source = await asyncio.shield(pending)
            if coordinate is None:
                return None, GeocodeSource.NONE
            return coordinate, GeocodeSource.CACHE

        pending = asyncio.ensure_future(self._fetch(address, key))
        self._inflight[key] = pending
        pending.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(pending)

    async def _fetch(self, address: str, key: str) -> tuple[Optional[Coordinate], GeocodeSource]:
        await self.rate_limiter.acquire()

        # filled while this request waited on the limiter
        coordinate, source = self.lookup_local(address)
        if coordinate is not None:
            return coordinate, source

        self.network_calls += 1
        # requests is blocking; keep the event loop free for other workers
        coordinate = await asyncio.to_thread(self.geocoder.search, address)
        if coordinate is None:
            logger.debug(f"No match for {address!r}")
            return None, GeocodeSource.NONE

        self.cache.put(key, coordinate)
        return coordinate, GeocodeSource.PROVIDER

    async def resolve(self, address: str) -> Optional[Coordinate]:
        coordinate, _ = await self.resolve_with_source(address)
        return coordinate

    def stats(self) -> Dict[str, int]:
        return {
            "cache_hits": self.cache_hits,
            "preload_hits": self.preload_hits,
            "network_calls": self.network_calls,
        }
