"""
Geocode adapter dispatch.

A single dispatch table keyed by provider id replaces per-provider classes.
Adapters for providers added at runtime are registered the same way.
"""

import logging
from typing import Dict, Optional

from .base import GeocodeAdapter
from .google import adapter as google_adapter
from .mapbox import adapter as mapbox_adapter
from .osm import adapter as osm_adapter

logger = logging.getLogger(__name__)


class GeocodeAdapterTable:
    """Maps provider ids to their geocode adapter coroutine."""

    def __init__(self, adapters: Optional[Dict[str, GeocodeAdapter]] = None):
        self._adapters: Dict[str, GeocodeAdapter] = dict(adapters or {})

    def register(self, provider_id: str, adapter: GeocodeAdapter) -> None:
        """
        Register an adapter for a provider id.

        Args:
            provider_id: The provider the adapter serves
            adapter: Coroutine function with the GeocodeAdapter signature
        """
        self._adapters[provider_id] = adapter
        logger.info(f"Registered geocode adapter for {provider_id}")

    def get(self, provider_id: str) -> Optional[GeocodeAdapter]:
        return self._adapters.get(provider_id)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._adapters


def built_in_adapters() -> GeocodeAdapterTable:
    """Adapter table for the providers shipped with the service."""
    return GeocodeAdapterTable({
        "osm": osm_adapter.geocode,
        "mapbox": mapbox_adapter.geocode,
        "google": google_adapter.geocode,
    })
