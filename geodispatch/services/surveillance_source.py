"""
Surveillance data collaborator.

The dispatch service does not own disease records; it asks a surveillance
source for raw rows and only classifies and shapes them. Two sources are
provided: an HTTP client for the surveillance service and an in-memory source
used when no service is configured and in tests.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..exceptions import SurveillanceUnavailable
from ..providers.models import OverlayFilters, SurveillanceRow

logger = logging.getLogger(__name__)


class SurveillanceSource(ABC):
    """Given a disease code and filters, return raw surveillance rows."""

    @abstractmethod
    async def fetch_rows(self, disease_code: str, filters: OverlayFilters) -> List[SurveillanceRow]:
        """
        Fetch raw rows for a disease.

        Args:
            disease_code: Disease identifier (e.g. "chlamydia")
            filters: State/year filters to forward to the source

        Returns:
            Rows with coordinates; rows without a location are dropped
        """

    async def aclose(self) -> None:
        """Release any resources held by the source."""


class InMemorySurveillanceSource(SurveillanceSource):
    """Serves a fixed set of rows, filtered by disease, state and year."""

    def __init__(self, rows: Optional[Iterable[SurveillanceRow]] = None):
        self._rows = list(rows or [])

    async def fetch_rows(self, disease_code: str, filters: OverlayFilters) -> List[SurveillanceRow]:
        return [
            row for row in self._rows
            if row.disease_code == disease_code
            and (filters.state is None or row.state == filters.state)
            and (filters.year is None or row.last_updated.year == filters.year)
        ]


def parse_row(disease_code: str, item: Dict[str, Any]) -> Optional[SurveillanceRow]:
    """
    Normalize one record from the surveillance service.

    The service has shipped several field spellings over time (``lat``/``lng``,
    ``totalCases``, ``reportDate``); all of them are accepted.
    """
    latitude = item.get("latitude", item.get("lat"))
    longitude = item.get("longitude", item.get("lng", item.get("lon")))
    if latitude is None or longitude is None:
        return None

    last_updated = item.get("last_updated") or item.get("lastUpdated") or item.get("reportDate")
    try:
        return SurveillanceRow(
            disease_code=disease_code,
            cases=item.get("cases", item.get("totalCases", 0)) or 0,
            population=item.get("population", 0) or 0,
            latitude=latitude,
            longitude=longitude,
            last_updated=last_updated or datetime.now(timezone.utc),
            label=item.get("location") or item.get("city"),
            state=item.get("state"),
        )
    except ValidationError as e:
        logger.warning(f"Skipping invalid surveillance row for {disease_code}: {e.error_count()} errors")
        return None


class HttpSurveillanceSource(SurveillanceSource):
    """
    Client for the surveillance data service.

    Calls ``GET {base_url}/diseases/{code}/rows`` and accepts either a bare
    list or a ``{"data": [...]}`` envelope.
    """

    def __init__(self, base_url: str, timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def fetch_rows(self, disease_code: str, filters: OverlayFilters) -> List[SurveillanceRow]:
        params = {}
        if filters.state:
            params["state"] = filters.state
        if filters.year:
            params["year"] = filters.year

        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/diseases/{quote(disease_code, safe='')}/rows", params=params
            )
        except httpx.TimeoutException:
            raise SurveillanceUnavailable(disease_code, "timeout")
        except httpx.HTTPError as e:
            logger.error(f"Surveillance service transport error: {e.__class__.__name__}")
            raise SurveillanceUnavailable(disease_code, "transport_error")

        if not response.is_success:
            raise SurveillanceUnavailable(disease_code, f"http_{response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise SurveillanceUnavailable(disease_code, "malformed_response")

        items = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise SurveillanceUnavailable(disease_code, "malformed_response")

        rows = [row for row in (parse_row(disease_code, item) for item in items if isinstance(item, dict)) if row]
        logger.debug(f"Surveillance service returned {len(rows)}/{len(items)} usable rows for {disease_code}")
        return rows

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
