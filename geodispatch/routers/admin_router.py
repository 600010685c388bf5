"""
Administrative endpoints for the dispatch configuration.

Authentication is handled upstream; these routes assume an operator caller.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..dependencies import get_dispatch_service
from ..providers.models import SelectionStrategy, ServiceStatus, TierInfo
from ..services.dispatch_service import DispatchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maps", tags=["Maps Admin"])

HEALTH_STATUS_CODES = {"healthy": 200, "degraded": 206, "unhealthy": 503}


class UpdateApiKeyRequest(BaseModel):
    """Request to rotate a provider credential."""

    provider: str = Field(..., description="Provider id")
    api_key: str = Field(..., description="New credential; empty string clears it")


class UpdateApiKeyResponse(BaseModel):
    success: bool
    message: str
    provider: str
    configured: bool


class UpdateStrategyRequest(BaseModel):
    strategy: str = Field(..., description="failover, round-robin or weighted")


class UpdateStrategyResponse(BaseModel):
    success: bool
    message: str
    strategy: SelectionStrategy


class UpdateWeightRequest(BaseModel):
    provider: str
    weight: float = Field(..., description="Positive weight for the weighted strategy")


class UpdateWeightResponse(BaseModel):
    success: bool
    provider: str
    weight: float


class TiersResponse(BaseModel):
    tiers: List[TierInfo]
    load_balancing_strategies: List[str]
    current_strategy: SelectionStrategy


@router.get("/status", response_model=ServiceStatus)
async def get_status(dispatch: DispatchService = Depends(get_dispatch_service)) -> ServiceStatus:
    """Active strategy, provider health snapshot and tier summary."""
    return dispatch.get_status()


@router.get("/health")
async def health_check(dispatch: DispatchService = Depends(get_dispatch_service)):
    """
    Mapping service health.

    200 when every tier has a usable provider, 206 when only some do,
    503 when none does.
    """
    status = dispatch.get_status()
    return JSONResponse(
        status_code=HEALTH_STATUS_CODES[status.status],
        content={
            "status": status.status,
            "timestamp": status.timestamp.isoformat(),
            "tiers": {
                name: tier.available_provider_ids for name, tier in status.tiers_summary.items()
            },
        },
    )


@router.get("/tiers", response_model=TiersResponse)
async def list_tiers(dispatch: DispatchService = Depends(get_dispatch_service)) -> TiersResponse:
    """Tier definitions with the 'configured' flag of every provider."""
    return TiersResponse(
        tiers=dispatch.list_tiers(),
        load_balancing_strategies=[s.value for s in SelectionStrategy],
        current_strategy=dispatch.strategy.strategy,
    )


@router.post("/config/api-key", response_model=UpdateApiKeyResponse)
async def update_api_key(
    request: UpdateApiKeyRequest,
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> UpdateApiKeyResponse:
    """Rotate a provider credential; takes effect for the next request."""
    dispatch.set_credential(request.provider, request.api_key)
    configured = dispatch.credentials.has(request.provider)
    return UpdateApiKeyResponse(
        success=True,
        message=f"API key {'updated' if configured else 'cleared'} for {request.provider}",
        provider=request.provider,
        configured=configured,
    )


@router.post("/config/strategy", response_model=UpdateStrategyResponse)
async def update_strategy(
    request: UpdateStrategyRequest,
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> UpdateStrategyResponse:
    """Switch the load-balancing strategy."""
    strategy = dispatch.set_strategy(request.strategy)
    return UpdateStrategyResponse(
        success=True,
        message=f"Load balancing strategy updated to {strategy.value}",
        strategy=strategy,
    )


@router.post("/config/weights", response_model=UpdateWeightResponse)
async def update_weight(
    request: UpdateWeightRequest,
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> UpdateWeightResponse:
    """Set the weight of one provider for the weighted strategy."""
    dispatch.set_weight(request.provider, request.weight)
    return UpdateWeightResponse(success=True, provider=request.provider, weight=request.weight)
