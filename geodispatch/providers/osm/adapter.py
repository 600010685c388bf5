"""
OpenStreetMap geocoding through Nominatim.
"""

import logging
from typing import Optional

import httpx

from ..base import ProviderCallError, clamp_confidence, ensure_success
from ..models import GeocodeResult, Provider

logger = logging.getLogger(__name__)


async def geocode(
    client: httpx.AsyncClient,
    provider: Provider,
    address: str,
    credential: Optional[str] = None,
) -> GeocodeResult:
    """
    Geocode an address with Nominatim.

    Nominatim's ``importance`` score is already in the 0..1 range and is used
    as the confidence.
    """
    params = {"format": "json", "q": address, "limit": 1}
    response = await client.get(provider.geocode_url, params=params)
    data = ensure_success(provider, response)

    if not isinstance(data, list):
        raise ProviderCallError(provider.id, "malformed_response")
    if not data:
        logger.debug(f"No Nominatim results for '{address}'")
        raise ProviderCallError(provider.id, "no_results")

    item = data[0]
    try:
        latitude = float(item["lat"])
        longitude = float(item["lon"])
        formatted = item.get("display_name") or address
    except (KeyError, TypeError, ValueError):
        raise ProviderCallError(provider.id, "malformed_response")

    return GeocodeResult(
        query=address,
        provider_id=provider.id,
        latitude=latitude,
        longitude=longitude,
        formatted_address=formatted,
        confidence=clamp_confidence(item.get("importance", 0)),
    )
