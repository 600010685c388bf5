"""Mapbox provider (styles API tiles and places geocoding)."""

from .adapter import geocode

__all__ = ['geocode']
