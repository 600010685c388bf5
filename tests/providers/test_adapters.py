"""
Tests for the per-provider geocode adapters.

Provider HTTP APIs are replaced by httpx.MockTransport handlers.
"""

import httpx
import pytest

from geodispatch.providers.adapters import GeocodeAdapterTable, built_in_adapters
from geodispatch.providers.base import ProviderCallError, clamp_confidence
from geodispatch.providers.google import geocode as google_geocode
from geodispatch.providers.mapbox import geocode as mapbox_geocode
from geodispatch.providers.osm import geocode as osm_geocode


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestOSMAdapter:
    """Test Nominatim geocoding."""

    @pytest.mark.asyncio
    async def test_geocode_success(self, providers_by_id):
        """It should map the first Nominatim hit to a GeocodeResult."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{
                "lat": "-23.5505",
                "lon": "-46.6333",
                "display_name": "São Paulo, Brasil",
                "importance": 0.82,
            }])

        async with _client(handler) as client:
            result = await osm_geocode(client, providers_by_id["osm"], "São Paulo")

        assert seen["params"]["q"] == "São Paulo"
        assert seen["params"]["format"] == "json"
        assert result.provider_id == "osm"
        assert result.latitude == -23.5505
        assert result.longitude == -46.6333
        assert result.formatted_address == "São Paulo, Brasil"
        assert result.confidence == 0.82

    @pytest.mark.asyncio
    async def test_no_results(self, providers_by_id):
        """It should fail with no_results on an empty list."""
        async with _client(lambda request: httpx.Response(200, json=[])) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await osm_geocode(client, providers_by_id["osm"], "nowhere")
        assert exc_info.value.reason == "no_results"

    @pytest.mark.asyncio
    async def test_http_error(self, providers_by_id):
        """It should report the HTTP status as the reason."""
        async with _client(lambda request: httpx.Response(503, text="busy")) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await osm_geocode(client, providers_by_id["osm"], "x")
        assert exc_info.value.reason == "http_503"

    @pytest.mark.asyncio
    async def test_malformed_body(self, providers_by_id):
        """It should fail with malformed_response when the body is not JSON."""
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await osm_geocode(client, providers_by_id["osm"], "x")
        assert exc_info.value.reason == "malformed_response"


class TestMapboxAdapter:
    """Test Mapbox geocoding."""

    @pytest.mark.asyncio
    async def test_geocode_success(self, providers_by_id):
        """It should read [lon, lat] centers and use relevance as confidence."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["token"] = request.url.params["access_token"]
            return httpx.Response(200, json={"features": [{
                "center": [-122.0841, 37.4220],
                "place_name": "1600 Amphitheatre Pkwy, Mountain View",
                "relevance": 0.97,
            }]})

        async with _client(handler) as client:
            result = await mapbox_geocode(client, providers_by_id["mapbox"], "1600 Amphitheatre", "pk.token")

        assert seen["path"].endswith("/1600%20Amphitheatre.json") or seen["path"].endswith("/1600 Amphitheatre.json")
        assert seen["token"] == "pk.token"
        assert result.latitude == 37.4220
        assert result.longitude == -122.0841
        assert result.confidence == 0.97

    @pytest.mark.asyncio
    async def test_missing_credential(self, providers_by_id):
        """It should not call the API without a token."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"features": []})

        async with _client(handler) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await mapbox_geocode(client, providers_by_id["mapbox"], "x", None)
        assert exc_info.value.reason == "missing_credential"
        assert calls == []

    @pytest.mark.asyncio
    async def test_no_features(self, providers_by_id):
        """It should fail with no_results on an empty feature list."""
        async with _client(lambda request: httpx.Response(200, json={"features": []})) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await mapbox_geocode(client, providers_by_id["mapbox"], "x", "pk.token")
        assert exc_info.value.reason == "no_results"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"features": {"k": 1}},
        {"features": 5},
        {"features": ["not-a-feature"]},
        {"features": [{"center": [1.0]}]},
    ])
    async def test_malformed_features(self, providers_by_id, payload):
        """It should fail with malformed_response on unexpected feature shapes."""
        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await mapbox_geocode(client, providers_by_id["mapbox"], "x", "pk.token")
        assert exc_info.value.reason == "malformed_response"


class TestGoogleAdapter:
    """Test Google geocoding."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("location_type,confidence", [
        ("ROOFTOP", 1.0),
        ("RANGE_INTERPOLATED", 0.8),
        ("GEOMETRIC_CENTER", 0.6),
        ("APPROXIMATE", 0.4),
    ])
    async def test_confidence_from_location_type(self, providers_by_id, location_type, confidence):
        """It should translate location_type into a confidence score."""
        payload = {"status": "OK", "results": [{
            "formatted_address": "Av. Paulista, São Paulo",
            "geometry": {"location": {"lat": -23.561, "lng": -46.656}, "location_type": location_type},
        }]}
        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            result = await google_geocode(client, providers_by_id["google"], "Av. Paulista", "AIza-key")
        assert result.confidence == confidence
        assert result.latitude == -23.561

    @pytest.mark.asyncio
    async def test_zero_results(self, providers_by_id):
        """It should map ZERO_RESULTS to no_results."""
        payload = {"status": "ZERO_RESULTS", "results": []}
        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await google_geocode(client, providers_by_id["google"], "x", "AIza-key")
        assert exc_info.value.reason == "no_results"

    @pytest.mark.asyncio
    async def test_denied_status_hides_message(self, providers_by_id):
        """It should expose only the API status, never its error message."""
        payload = {"status": "REQUEST_DENIED", "error_message": "The provided API key AIza-key is invalid."}
        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await google_geocode(client, providers_by_id["google"], "x", "AIza-key")
        assert exc_info.value.reason == "provider_status_request_denied"
        assert "AIza-key" not in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"status": 0},
        {"status": None, "results": []},
        {"status": "OK", "results": {"a": 1}},
        {"status": "OK", "results": ["not-a-result"]},
    ])
    async def test_malformed_payload(self, providers_by_id, payload):
        """It should fail with malformed_response on unexpected status or result shapes."""
        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            with pytest.raises(ProviderCallError) as exc_info:
                await google_geocode(client, providers_by_id["google"], "x", "AIza-key")
        assert exc_info.value.reason == "malformed_response"


class TestAdapterTable:
    """Test the adapter dispatch table."""

    def test_built_in(self):
        """It should register an adapter for every shipped provider."""
        table = built_in_adapters()
        for provider_id in ("osm", "mapbox", "google"):
            assert provider_id in table
        assert table.get("here") is None

    def test_register(self):
        """It should accept adapters for new providers."""
        async def adapter(client, provider, address, credential=None):
            raise ProviderCallError(provider.id, "no_results")

        table = GeocodeAdapterTable()
        table.register("acme", adapter)
        assert table.get("acme") is adapter


class TestClampConfidence:
    """Test confidence normalization."""

    @pytest.mark.parametrize("value,expected", [(0.5, 0.5), (3, 1.0), (-1, 0.0), ("bad", 0.0), (None, 0.0)])
    def test_clamp(self, value, expected):
        """It should keep scores within 0..1."""
        assert clamp_confidence(value) == expected
