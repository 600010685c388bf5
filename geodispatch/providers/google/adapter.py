"""
Google Geocoding API.
"""

import logging
from typing import Optional

import httpx

from ..base import ProviderCallError, ensure_success, require_credential
from ..models import GeocodeResult, Provider

logger = logging.getLogger(__name__)

# Google reports precision as a location_type instead of a score
LOCATION_TYPE_CONFIDENCE = {
    "ROOFTOP": 1.0,
    "RANGE_INTERPOLATED": 0.8,
    "GEOMETRIC_CENTER": 0.6,
    "APPROXIMATE": 0.4,
}


async def geocode(
    client: httpx.AsyncClient,
    provider: Provider,
    address: str,
    credential: Optional[str] = None,
) -> GeocodeResult:
    """Geocode an address with Google; the API status must be ``OK``."""
    key = require_credential(provider, credential)
    response = await client.get(provider.geocode_url, params={"address": address, "key": key})
    data = ensure_success(provider, response)

    if not isinstance(data, dict) or "status" not in data:
        raise ProviderCallError(provider.id, "malformed_response")

    api_status = data["status"]
    if not isinstance(api_status, str):
        raise ProviderCallError(provider.id, "malformed_response")
    if api_status == "ZERO_RESULTS":
        raise ProviderCallError(provider.id, "no_results")
    if api_status != "OK":
        # REQUEST_DENIED, OVER_QUERY_LIMIT, ... (error_message is not forwarded)
        raise ProviderCallError(provider.id, f"provider_status_{api_status.lower()}")

    results = data.get("results") or []
    if not isinstance(results, list):
        raise ProviderCallError(provider.id, "malformed_response")
    if not results:
        raise ProviderCallError(provider.id, "no_results")

    try:
        result = results[0]
        geometry = result["geometry"]
        latitude = float(geometry["location"]["lat"])
        longitude = float(geometry["location"]["lng"])
        location_type = geometry.get("location_type", "APPROXIMATE")
        formatted = result.get("formatted_address") or address
    except (KeyError, TypeError, ValueError, AttributeError):
        raise ProviderCallError(provider.id, "malformed_response")

    return GeocodeResult(
        query=address,
        provider_id=provider.id,
        latitude=latitude,
        longitude=longitude,
        formatted_address=formatted,
        confidence=LOCATION_TYPE_CONFIDENCE.get(location_type, 0.4),
    )
