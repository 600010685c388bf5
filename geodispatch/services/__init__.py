"""Services module."""
from geodispatch.services.credential_store import CredentialStore
from geodispatch.services.dispatch_service import DispatchService
from geodispatch.services.entitlement_service import EntitlementResolver
from geodispatch.services.geocoding_service import GeocodingService
from geodispatch.services.overlay_service import OverlayBuilder
from geodispatch.services.strategy_service import StrategyEngine

__all__ = [
    "CredentialStore",
    "DispatchService",
    "EntitlementResolver",
    "GeocodingService",
    "OverlayBuilder",
    "StrategyEngine",
]
