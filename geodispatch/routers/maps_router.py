"""
Public map data endpoints consumed by the rendering layer.

Endpoints:
- GET /api/maps/config - Resolved map configuration for a tier
- GET /api/maps/tile/{provider}/{z}/{x}/{y} - Tile URL for one tile
- GET /api/maps/geocode - Geocode an address through the tier's providers
- GET /api/maps/overlays/disease - Classified disease overlay markers
- GET /api/maps/data/disease/{disease} - Disease markers as GeoJSON
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..dependencies import get_dispatch_service
from ..providers.models import GeocodeResult, MapConfig, OverlayFilters, OverlayMarker, Severity
from ..services.dispatch_service import DispatchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maps", tags=["Maps"])

DISCONNECT_POLL_INTERVAL = 0.5


class TileCoordinates(BaseModel):
    z: int
    x: int
    y: int


class TileResponse(BaseModel):
    """Tile URL resolved for a provider."""

    tile_url: str = Field(..., description="Provider URL for the requested tile")
    provider: str
    coordinates: TileCoordinates


class OverlayResponse(BaseModel):
    """Disease overlay markers, highest rate first."""

    disease: str
    data_points: int
    overlays: List[OverlayMarker]
    metadata: Dict[str, Any]


@router.get("/config", response_model=MapConfig)
async def get_map_config(
    tier: str = Query("free", description="Caller's subscription tier"),
    provider: Optional[str] = Query(None, description="Explicit provider (must be in the tier)"),
    style: Optional[str] = Query(None, description="Style token; provider default when omitted"),
    zoom: int = Query(10, ge=0, le=24),
    center_lat: float = Query(40.7128, ge=-90, le=90),
    center_lng: float = Query(-74.0060, ge=-180, le=180),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> MapConfig:
    """
    Get the map configuration the frontend should render with.

    Returns:
        Chosen provider, its tile template and display metadata
    """
    return dispatch.get_map_config(
        tier,
        provider=provider,
        style=style,
        zoom=zoom,
        center=(center_lat, center_lng),
    )


@router.get("/tile/{provider}/{z}/{x}/{y}", response_model=TileResponse)
async def get_tile_url(
    provider: str,
    z: int,
    x: int,
    y: int,
    style: Optional[str] = Query(None),
    tier: str = Query("free", description="Caller's subscription tier"),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> TileResponse:
    """
    Resolve the URL of one tile.

    The provider must be available for the caller's tier.
    """
    tile_url = dispatch.resolve_tile_url(provider, z, x, y, style=style, tier=tier)
    return TileResponse(tile_url=tile_url, provider=provider, coordinates=TileCoordinates(z=z, x=x, y=y))


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set cancel_event when the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info(f"Client disconnected from {request.url.path}; cancelling")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.get("/geocode", response_model=GeocodeResult)
async def geocode(
    request: Request,
    address: str = Query(..., min_length=1, description="Free-text address"),
    tier: str = Query("free", description="Caller's subscription tier"),
    provider: Optional[str] = Query(None, description="Explicit provider (must be in the tier)"),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> GeocodeResult:
    """
    Geocode an address.

    Providers are attempted in strategy order until one answers. A client
    disconnect aborts the outstanding provider call.
    """
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        return await dispatch.geocode(address, tier, provider=provider, cancel_event=cancel_event)
    finally:
        watcher.cancel()


@router.get("/overlays/disease", response_model=OverlayResponse)
async def get_disease_overlay(
    disease: str = Query(..., min_length=1, description="Disease code"),
    state: Optional[str] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=2100),
    min_severity: Optional[Severity] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> OverlayResponse:
    """
    Build the disease overlay for a map.

    Returns:
        Markers with severity, color and popup payload
    """
    filters = OverlayFilters(state=state, year=year, min_severity=min_severity, limit=limit)
    markers = await dispatch.get_disease_overlay(disease, filters)
    return OverlayResponse(
        disease=disease,
        data_points=len(markers),
        overlays=markers,
        metadata={
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "state": state or "all",
            "year": year,
            "low_confidence_points": sum(1 for m in markers if m.low_confidence),
        },
    )


@router.get("/data/disease/{disease}")
async def get_disease_geojson(
    disease: str,
    state: Optional[str] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=2100),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    """Disease markers as a GeoJSON FeatureCollection."""
    return await dispatch.get_disease_geojson(disease, OverlayFilters(state=state, year=year))
