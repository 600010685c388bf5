"""
Mapbox Geocoding API (places endpoint).
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ..base import ProviderCallError, clamp_confidence, ensure_success, require_credential
from ..models import GeocodeResult, Provider

logger = logging.getLogger(__name__)


async def geocode(
    client: httpx.AsyncClient,
    provider: Provider,
    address: str,
    credential: Optional[str] = None,
) -> GeocodeResult:
    """Geocode an address with Mapbox; ``relevance`` becomes the confidence."""
    token = require_credential(provider, credential)
    url = f"{provider.geocode_url}/{quote(address, safe='')}.json"
    response = await client.get(url, params={"access_token": token, "limit": 1})
    data = ensure_success(provider, response)

    features = data.get("features") if isinstance(data, dict) else None
    if not isinstance(features, list):
        raise ProviderCallError(provider.id, "malformed_response")
    if not features:
        logger.debug(f"No Mapbox results for '{address}'")
        raise ProviderCallError(provider.id, "no_results")

    try:
        feature = features[0]
        # Mapbox centers are [longitude, latitude]
        longitude, latitude = float(feature["center"][0]), float(feature["center"][1])
        formatted = feature.get("place_name") or address
        relevance = feature.get("relevance", 0)
    except (KeyError, IndexError, TypeError, ValueError, AttributeError):
        raise ProviderCallError(provider.id, "malformed_response")

    return GeocodeResult(
        query=address,
        provider_id=provider.id,
        latitude=latitude,
        longitude=longitude,
        formatted_address=formatted,
        confidence=clamp_confidence(relevance),
    )
