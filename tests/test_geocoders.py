import asyncio

import pytest
import requests

from address_mapper.geocoding import (
    Coordinate,
    GeocodeResolver,
    GeocodeSource,
    NominatimClient,
    ResolutionConfig,
    cache_key,
)
from address_mapper.utils.errors import NetworkError, ProviderError

from conftest import CountingRateLimiter, FakeGeocoder


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_client_sends_country_restricted_single_result_query():
    session = FakeSession(FakeResponse(payload=[{"lat": "-34.5880", "lon": "-58.4030", "display_name": "x"}]))
    client = NominatimClient(contact_email="maps@example.org", session=session)

    coord = client.search("Av. Santa Fe 3253, Palermo")

    assert coord == Coordinate(lat=-34.588, lon=-58.403)
    sent = session.requests[0]
    assert sent["url"] == "https://nominatim.openstreetmap.org/search"
    assert sent["params"] == {
        "q": "Av. Santa Fe 3253, Palermo, Argentina",
        "format": "json",
        "addressdetails": "0",
        "limit": "1",
        "countrycodes": "ar",
        "email": "maps@example.org",
    }
    assert sent["headers"]["Accept-Language"] == "es"
    assert "maps@example.org" in sent["headers"]["User-Agent"]
    assert sent["timeout"] == 10.0


def test_client_omits_email_without_at_sign():
    client = NominatimClient(contact_email="nobody", session=FakeSession())
    assert "email" not in client.build_params("x")


def test_client_from_config():
    config = ResolutionConfig(country_code="uy", country_name=None, api_timeout=3.0)
    client = NominatimClient.from_config(config, session=FakeSession())
    params = client.build_params("Av. 18 de Julio 1000")
    assert params["q"] == "Av. 18 de Julio 1000"
    assert params["countrycodes"] == "uy"
    assert client.timeout == 3.0


def test_client_zero_candidates_is_not_an_error():
    client = NominatimClient(session=FakeSession(FakeResponse(payload=[])))
    assert client.search("Calle Inexistente 999") is None


def test_client_http_failure_raises_provider_error():
    client = NominatimClient(session=FakeSession(FakeResponse(status_code=503, text="busy")))
    with pytest.raises(ProviderError) as excinfo:
        client.search("Calle 1")
    assert excinfo.value.status_code == 503


def test_client_bad_payload_raises_provider_error():
    client = NominatimClient(session=FakeSession(FakeResponse(payload=ValueError("no json"))))
    with pytest.raises(ProviderError):
        client.search("Calle 1")

    client = NominatimClient(session=FakeSession(FakeResponse(payload={"error": "x"})))
    with pytest.raises(ProviderError):
        client.search("Calle 1")


def test_client_transport_failure_raises_network_error():
    client = NominatimClient(session=FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(NetworkError) as excinfo:
        client.search("Calle 1")
    assert isinstance(excinfo.value.cause, requests.ConnectionError)


def test_resolve_twice_hits_network_once(cache, santa_fe):
    geocoder = FakeGeocoder({"Av. Santa Fe 3253, Palermo": santa_fe})
    limiter = CountingRateLimiter()
    resolver = GeocodeResolver(geocoder, cache, rate_limiter=limiter)

    async def scenario():
        first = await resolver.resolve("Av. Santa Fe 3253, Palermo")
        second = await resolver.resolve("Av. Santa Fe 3253, Palermo")
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second == santa_fe
    assert geocoder.calls == ["Av. Santa Fe 3253, Palermo"]
    assert limiter.acquired == 1
    assert cache.get(cache_key("av. santa fe 3253, palermo")) == santa_fe
    assert resolver.stats() == {"cache_hits": 1, "preload_hits": 0, "network_calls": 1}


def test_seeded_entry_resolves_without_network(cache, santa_fe):
    cache.seed({cache_key("av. santa fe 3253, palermo"): santa_fe})
    geocoder = FakeGeocoder()
    limiter = CountingRateLimiter()
    resolver = GeocodeResolver(geocoder, cache, rate_limiter=limiter)

    coord, source = asyncio.run(resolver.resolve_with_source("  AV. Santa Fe 3253, Palermo "))

    assert coord == santa_fe
    assert source == GeocodeSource.CACHE
    assert geocoder.calls == []
    assert limiter.acquired == 0


def test_preload_hit_is_written_to_cache(cache, santa_fe):
    geocoder = FakeGeocoder()
    resolver = GeocodeResolver(geocoder, cache, preload={"Av. Santa Fe 3253, Palermo": santa_fe})

    coord, source = asyncio.run(resolver.resolve_with_source("av. santa fe 3253, palermo"))

    assert coord == santa_fe
    assert source == GeocodeSource.PRELOAD
    assert geocoder.calls == []
    assert cache.get(cache_key("av. santa fe 3253, palermo")) == santa_fe


def test_no_match_is_not_cached(cache):
    geocoder = FakeGeocoder()
    resolver = GeocodeResolver(geocoder, cache)

    async def scenario():
        return [await resolver.resolve("Calle Inexistente 999") for _ in range(2)]

    assert asyncio.run(scenario()) == [None, None]
    assert geocoder.calls == ["Calle Inexistente 999", "Calle Inexistente 999"]
    assert cache.keys("geo:") == []


def test_provider_errors_propagate_and_are_not_cached(cache):
    geocoder = FakeGeocoder(errors={"Calle 1": ProviderError("Calle 1", 500)})
    resolver = GeocodeResolver(geocoder, cache)

    with pytest.raises(ProviderError):
        asyncio.run(resolver.resolve("Calle 1"))
    assert cache.keys("geo:") == []
