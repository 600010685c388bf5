"""Google Maps provider (map tiles and Geocoding API)."""

from .adapter import geocode

__all__ = ['geocode']
