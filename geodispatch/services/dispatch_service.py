"""
Dispatch facade.

Single entry point for the public and administrative operations. It owns no
global state: the registry, credential store and strategy engine are passed in
at construction, so every test (and every app instance) works on isolated
state.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..exceptions import CredentialNotApplicable, EntitlementDenied, NoEligibleProvider
from ..providers.adapters import GeocodeAdapterTable, built_in_adapters
from ..providers.catalog import load_catalog
from ..providers.models import (
    GeocodeResult,
    MapConfig,
    OverlayFilters,
    OverlayMarker,
    ProviderHealth,
    SelectionStrategy,
    ServiceStatus,
    TierInfo,
    TierProviderInfo,
)
from ..providers.registry import ProviderRegistry
from ..providers.settings import DispatchSettings, get_settings
from .credential_store import CredentialStore
from .dispatch_state import DispatchState, DispatchTrace
from .entitlement_service import EntitlementResolver, is_configured
from .geocoding_service import GeocodingService
from .overlay_service import OverlayBuilder, to_geojson
from .provider_health import ProviderHealthTracker
from .strategy_service import StrategyEngine
from .surveillance_source import HttpSurveillanceSource, InMemorySurveillanceSource, SurveillanceSource
from .tile_service import resolve_tile_url, tile_template

logger = logging.getLogger(__name__)

DEFAULT_CENTER = (40.7128, -74.0060)
CONFIGURED_MARKER = "[CONFIGURED]"


class DispatchService:
    """
    Composes entitlement, strategy, geocoding, tiles and overlays.

    Use ``DispatchService.from_settings()`` to build a fully wired instance.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        credentials: CredentialStore,
        strategy: StrategyEngine,
        geocoding: GeocodingService,
        overlays: OverlayBuilder,
        surveillance: SurveillanceSource,
        health: ProviderHealthTracker,
    ):
        self.registry = registry
        self.credentials = credentials
        self.strategy = strategy
        self.geocoding = geocoding
        self.overlays = overlays
        self.surveillance = surveillance
        self.health = health
        self.entitlements = EntitlementResolver(registry)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[DispatchSettings] = None,
        registry: Optional[ProviderRegistry] = None,
        adapters: Optional[GeocodeAdapterTable] = None,
        surveillance: Optional[SurveillanceSource] = None,
        rng: Optional[random.Random] = None,
    ) -> "DispatchService":
        """
        Build a service from configuration.

        Args:
            settings: Settings to use; defaults to the global settings
            registry: Pre-built registry; defaults to the configured catalog
            adapters: Geocode adapters; defaults to the built-in ones
            surveillance: Surveillance source; defaults to the HTTP source when
                SURVEILLANCE_API_URL is set, otherwise an empty in-memory source
            rng: Random source for the weighted strategy
        """
        settings = settings or get_settings()
        logger.debug(f"Building dispatch service from settings: {settings.to_dict()}")

        if registry is None:
            providers, tiers = load_catalog(settings.dispatch_catalog_file)
            registry = ProviderRegistry(providers, tiers)

        if surveillance is None:
            if settings.surveillance_api_url:
                surveillance = HttpSurveillanceSource(
                    settings.surveillance_api_url, timeout=settings.surveillance_timeout
                )
            else:
                logger.warning("SURVEILLANCE_API_URL not set; disease overlays will be empty")
                surveillance = InMemorySurveillanceSource()

        credentials = CredentialStore(settings.initial_credentials())
        strategy = StrategyEngine(
            strategy=settings.dispatch_strategy,
            weights=settings.dispatch_provider_weights,
            rng=rng,
        )
        health = ProviderHealthTracker()
        geocoding = GeocodingService(
            entitlements=EntitlementResolver(registry),
            strategy=strategy,
            credentials=credentials,
            adapters=adapters or built_in_adapters(),
            health=health,
            timeout=settings.geocode_timeout,
            user_agent=settings.osm_user_agent,
        )
        overlays = OverlayBuilder(settings.default_thresholds(), settings.severity_overrides)

        logger.info(
            f"Dispatch service ready: {len(registry.providers())} providers, "
            f"{len(registry.tiers())} tiers, strategy={strategy.strategy.value}"
        )
        return cls(registry, credentials, strategy, geocoding, overlays, surveillance, health)

    async def aclose(self) -> None:
        await self.geocoding.aclose()
        await self.surveillance.aclose()

    # Administrative operations

    def get_status(self) -> ServiceStatus:
        """Active strategy, per-provider health and tier summary."""
        snapshot = self.credentials.snapshot()

        provider_health = {}
        for provider in self.registry.providers():
            provider_health[provider.id] = ProviderHealth(
                id=provider.id,
                name=provider.display_name,
                requires_credential=provider.requires_credential,
                credential_configured=bool(snapshot.get(provider.id)),
                available=is_configured(provider, snapshot),
                attribution=provider.attribution,
                stats=self.health.get(provider.id),
            )

        tiers = self.list_tiers(snapshot)
        served = sum(1 for tier in tiers if tier.available_provider_ids)
        if tiers and served == len(tiers):
            overall = "healthy"
        elif served:
            overall = "degraded"
        else:
            overall = "unhealthy"

        return ServiceStatus(
            timestamp=datetime.now(timezone.utc),
            status=overall,
            active_strategy=self.strategy.strategy,
            weights=self.strategy.weights(),
            provider_health=provider_health,
            tiers_summary={tier.name: tier for tier in tiers},
        )

    def set_credential(self, provider_id: str, secret: Optional[str]) -> None:
        """
        Rotate (or clear, with an empty secret) a provider credential.

        Raises:
            ProviderNotFound: Unknown provider
            CredentialNotApplicable: Provider does not use credentials
        """
        provider = self.registry.get(provider_id)
        if not provider.requires_credential:
            raise CredentialNotApplicable(provider_id)
        self.credentials.set(provider_id, secret)

    def set_strategy(self, name: str) -> SelectionStrategy:
        """Switch the load-balancing strategy; raises UnknownStrategy."""
        return self.strategy.set_strategy(name)

    def set_weight(self, provider_id: str, weight: float) -> None:
        self.registry.get(provider_id)
        self.strategy.set_weight(provider_id, weight)

    def list_tiers(self, credentials: Optional[Mapping[str, Optional[str]]] = None) -> List[TierInfo]:
        """Tier definitions with the resolved 'configured' flag per provider."""
        snapshot = credentials if credentials is not None else self.credentials.snapshot()
        tiers = []
        for tier in self.registry.tiers():
            providers = [
                TierProviderInfo(
                    id=provider.id,
                    name=provider.display_name,
                    requires_credential=provider.requires_credential,
                    configured=is_configured(provider, snapshot),
                )
                for provider in self.registry.list_for_tier(tier.name)
            ]
            tiers.append(TierInfo(
                name=tier.name,
                display_name=tier.display_name or tier.name,
                rate_limit=tier.rate_limit,
                features=list(tier.features),
                allowed_provider_ids=list(tier.allowed_provider_ids),
                providers=providers,
            ))
        return tiers

    # Public data operations

    def get_map_config(
        self,
        tier: str,
        provider: Optional[str] = None,
        style: Optional[str] = None,
        zoom: int = 10,
        center: Tuple[float, float] = DEFAULT_CENTER,
    ) -> MapConfig:
        """
        Resolve the provider and tile template the frontend should use.

        Raises:
            UnknownTier, EntitlementDenied, NoEligibleProvider, UnsupportedStyle
        """
        trace = DispatchTrace(operation="map_config", tier=tier)
        trace.enter(DispatchState.RESOLVING)
        snapshot = self.credentials.snapshot()
        try:
            candidates = self.entitlements.resolve(tier, snapshot, requested_provider=provider)
        except EntitlementDenied:
            trace.enter(DispatchState.DENIED)
            raise
        except NoEligibleProvider:
            self.strategy.reset_cursor(tier)
            raise

        trace.enter(DispatchState.SELECTING)
        # An explicit request resolves to that provider alone and skips the strategy
        chosen = candidates[0] if provider is not None else self.strategy.select(tier, candidates)
        trace.enter(DispatchState.EXECUTING)
        template = tile_template(chosen, style)
        self.health.record_selection(chosen.id)
        trace.attempts.append(chosen.id)
        trace.enter(DispatchState.SUCCESS)

        tier_def = self.registry.get_tier(tier)
        return MapConfig(
            provider=chosen.id,
            provider_name=chosen.display_name,
            tier=tier,
            tier_name=tier_def.display_name or tier,
            attribution=chosen.attribution,
            max_zoom=chosen.max_zoom,
            tile_size=chosen.tile_size,
            format=chosen.tile_format,
            tile_url_template=template,
            style=style or chosen.default_style,
            styles=list(chosen.styles),
            center=center,
            zoom=zoom,
            features=list(tier_def.features),
            rate_limit=tier_def.rate_limit,
            credential=CONFIGURED_MARKER if snapshot.get(chosen.id) else None,
            current_requests=self.health.get(chosen.id).selections,
        )

    def resolve_tile_url(
        self,
        provider: str,
        z: int,
        x: int,
        y: int,
        style: Optional[str] = None,
        tier: Optional[str] = None,
    ) -> str:
        """
        Build a tile URL for a provider.

        When a tier is given the provider must be entitled and configured
        for it.

        Raises:
            ProviderNotFound, EntitlementDenied, NoEligibleProvider, UnsupportedStyle
        """
        snapshot = self.credentials.snapshot()
        if tier is not None:
            chosen = self.entitlements.resolve(tier, snapshot, requested_provider=provider)[0]
        else:
            chosen = self.registry.get(provider)
        url = resolve_tile_url(chosen, z, x, y, style=style, credential=snapshot.get(chosen.id))
        self.health.record_selection(chosen.id)
        return url

    async def geocode(
        self,
        address: str,
        tier: str,
        provider: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GeocodeResult:
        """Geocode through the tier's providers; see GeocodingService.geocode."""
        return await self.geocoding.geocode(address, tier, provider=provider, cancel_event=cancel_event)

    async def get_disease_overlay(
        self,
        disease_code: str,
        filters: Optional[OverlayFilters] = None,
    ) -> List[OverlayMarker]:
        """Classified markers for a disease, highest rate first."""
        filters = filters or OverlayFilters()
        rows = await self.surveillance.fetch_rows(disease_code, filters)
        markers = self.overlays.build(rows, min_severity=filters.min_severity, limit=filters.limit)
        logger.info(f"Built {len(markers)} overlay markers for {disease_code} from {len(rows)} rows")
        return markers

    async def get_disease_geojson(
        self,
        disease_code: str,
        filters: Optional[OverlayFilters] = None,
    ) -> Dict[str, Any]:
        """Same markers as get_disease_overlay, as a GeoJSON FeatureCollection."""
        return to_geojson(await self.get_disease_overlay(disease_code, filters))
