"""
Tests for the surveillance data sources.
"""

import httpx
import pytest

from geodispatch.exceptions import SurveillanceUnavailable
from geodispatch.providers.models import OverlayFilters
from geodispatch.services.surveillance_source import (
    HttpSurveillanceSource,
    InMemorySurveillanceSource,
    parse_row,
)


def _source(handler) -> HttpSurveillanceSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSurveillanceSource("https://surveillance.test/api/", client=client)


class TestInMemorySource:
    """Test the in-memory source."""

    @pytest.mark.asyncio
    async def test_filters(self, sample_rows):
        """It should filter by disease and state."""
        source = InMemorySurveillanceSource(sample_rows)
        rows = await source.fetch_rows("chlamydia", OverlayFilters(state="CA"))
        assert [r.label for r in rows] == ["Los Angeles"]

    @pytest.mark.asyncio
    async def test_year_filter(self, sample_rows):
        """It should filter by the year of the last update."""
        source = InMemorySurveillanceSource(sample_rows)
        assert await source.fetch_rows("chlamydia", OverlayFilters(year=2023)) == []
        assert len(await source.fetch_rows("chlamydia", OverlayFilters(year=2024))) == 3


class TestParseRow:
    """Test normalization of service records."""

    def test_alternate_field_names(self):
        """It should accept lat/lng, totalCases and reportDate spellings."""
        row = parse_row("hiv", {
            "lat": 25.76, "lng": -80.19, "totalCases": 42, "population": 1000,
            "reportDate": "2024-05-01T00:00:00Z", "city": "Miami",
        })
        assert row.cases == 42
        assert row.latitude == 25.76
        assert row.longitude == -80.19
        assert row.label == "Miami"
        assert row.last_updated.year == 2024

    def test_missing_location(self):
        """It should drop records without coordinates."""
        assert parse_row("hiv", {"cases": 3, "population": 10}) is None

    def test_invalid_record(self):
        """It should drop records that fail validation."""
        assert parse_row("hiv", {"latitude": 200, "longitude": 0, "cases": 1, "population": 1}) is None


class TestHttpSource:
    """Test the HTTP client for the surveillance service."""

    @pytest.mark.asyncio
    async def test_fetch_rows(self):
        """It should call the rows endpoint with the filters and unwrap the envelope."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": [
                {"latitude": 40.7, "longitude": -74.0, "cases": 120, "population": 100000,
                 "last_updated": "2024-03-01T00:00:00Z", "location": "New York"},
                {"cases": 3},
            ]})

        source = _source(handler)
        rows = await source.fetch_rows("chlamydia", OverlayFilters(state="NY", year=2024))
        await source.aclose()

        assert seen["path"] == "/api/diseases/chlamydia/rows"
        assert seen["params"] == {"state": "NY", "year": "2024"}
        assert [r.label for r in rows] == ["New York"]

    @pytest.mark.asyncio
    async def test_disease_code_is_escaped(self):
        """It should keep the disease code inside a single path segment."""
        seen = {}

        def handler(request):
            seen["raw_path"] = request.url.raw_path.split(b"?")[0]
            return httpx.Response(200, json=[])

        source = _source(handler)
        await source.fetch_rows("hiv/aids", OverlayFilters())
        await source.aclose()

        assert seen["raw_path"] == b"/api/diseases/hiv%2Faids/rows"

    @pytest.mark.asyncio
    async def test_bare_list(self):
        """It should accept a bare JSON list."""
        payload = [{"lat": 1, "lon": 2, "cases": 1, "population": 10, "lastUpdated": "2024-01-01T00:00:00Z"}]
        source = _source(lambda request: httpx.Response(200, json=payload))
        rows = await source.fetch_rows("flu", OverlayFilters())
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_http_error(self):
        """It should raise SurveillanceUnavailable on error statuses."""
        source = _source(lambda request: httpx.Response(500))
        with pytest.raises(SurveillanceUnavailable) as exc_info:
            await source.fetch_rows("flu", OverlayFilters())
        assert exc_info.value.reason == "http_500"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """It should raise SurveillanceUnavailable when the service is unreachable."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = _source(handler)
        with pytest.raises(SurveillanceUnavailable) as exc_info:
            await source.fetch_rows("flu", OverlayFilters())
        assert exc_info.value.reason == "transport_error"

    @pytest.mark.asyncio
    async def test_malformed(self):
        """It should raise SurveillanceUnavailable on a body that is not JSON."""
        source = _source(lambda request: httpx.Response(200, text="oops"))
        with pytest.raises(SurveillanceUnavailable) as exc_info:
            await source.fetch_rows("flu", OverlayFilters())
        assert exc_info.value.reason == "malformed_response"
