"""
Multi-provider map data abstraction layer.

This module provides a unified view of the map-data providers the dispatch
service can route to (OpenStreetMap, Mapbox, Google Maps). Providers are
capability records kept in a registry; geocoding differences are confined to
one adapter function per provider, so the business logic only ever sees the
normalized models.
"""

from .adapters import GeocodeAdapterTable, built_in_adapters
from .base import GeocodeAdapter, ProviderCallError
from .models import (
    GeocodeResult,
    GeoLocation,
    OverlayFilters,
    OverlayMarker,
    Provider,
    SelectionStrategy,
    Severity,
    SeverityThresholds,
    SurveillanceRow,
    Tier,
)
from .registry import ProviderRegistry

__all__ = [
    'GeocodeAdapter',
    'GeocodeAdapterTable',
    'GeocodeResult',
    'GeoLocation',
    'OverlayFilters',
    'OverlayMarker',
    'Provider',
    'ProviderCallError',
    'ProviderRegistry',
    'SelectionStrategy',
    'Severity',
    'SeverityThresholds',
    'SurveillanceRow',
    'Tier',
    'built_in_adapters',
]
