"""
Provider registry.

Read-mostly catalog of known providers and subscription tiers. Providers can
be added at runtime; selections already made keep the candidate list they
captured, new providers only take part in later selections.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from ..exceptions import InvalidTierDefinition, ProviderNotFound, UnknownTier
from .models import Provider, Tier

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Catalog of providers and the tiers that reference them.

    All reads return snapshots (lists or immutable models), so callers never
    observe a half-applied registration.
    """

    def __init__(
        self,
        providers: Optional[Iterable[Provider]] = None,
        tiers: Optional[Iterable[Tier]] = None,
    ):
        self._lock = threading.Lock()
        self._providers: Dict[str, Provider] = {}
        self._tiers: Dict[str, Tier] = {}

        for provider in providers or []:
            self.register(provider)
        for tier in tiers or []:
            self.register_tier(tier)

    def register(self, provider: Provider) -> None:
        """
        Register (or replace) a provider.

        Args:
            provider: Capability record to add to the catalog
        """
        with self._lock:
            replaced = provider.id in self._providers
            self._providers[provider.id] = provider
        action = "Replaced" if replaced else "Registered"
        logger.info(f"{action} provider {provider.id}")

    def register_tier(self, tier: Tier) -> None:
        """
        Register (or replace) a tier.

        Raises:
            InvalidTierDefinition: If the tier references an unknown provider
        """
        with self._lock:
            unknown = [pid for pid in tier.allowed_provider_ids if pid not in self._providers]
            if unknown:
                raise InvalidTierDefinition(tier.name, f"unknown providers {unknown}")
            self._tiers[tier.name] = tier
        logger.info(f"Registered tier {tier.name} -> {tier.allowed_provider_ids}")

    def get(self, provider_id: str) -> Provider:
        """
        Get a provider by id.

        Raises:
            ProviderNotFound: If the id is not registered
        """
        with self._lock:
            provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return provider

    def get_tier(self, name: str) -> Tier:
        """
        Get a tier by name.

        Raises:
            UnknownTier: If the tier is not registered
        """
        with self._lock:
            tier = self._tiers.get(name)
        if tier is None:
            raise UnknownTier(name)
        return tier

    def list_for_tier(self, tier: str) -> List[Provider]:
        """Providers allowed for a tier, in the tier's preference order."""
        with self._lock:
            tier_def = self._tiers.get(tier)
            if tier_def is None:
                raise UnknownTier(tier)
            return [self._providers[pid] for pid in tier_def.allowed_provider_ids]

    def providers(self) -> List[Provider]:
        with self._lock:
            return list(self._providers.values())

    def tiers(self) -> List[Tier]:
        with self._lock:
            return list(self._tiers.values())

    def __contains__(self, provider_id: str) -> bool:
        with self._lock:
            return provider_id in self._providers
