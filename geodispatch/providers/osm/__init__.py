"""
OpenStreetMap (OSM) provider.

Geocoding goes through Nominatim; tiles are served by tile.openstreetmap.org.
"""

from .adapter import geocode

__all__ = ['geocode']
