"""
Entitlement resolution: which providers a subscription tier may use right now.
"""

import logging
from typing import List, Mapping, Optional

from ..exceptions import EntitlementDenied, NoEligibleProvider
from ..providers.models import Provider
from ..providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def is_configured(provider: Provider, credentials: Mapping[str, Optional[str]]) -> bool:
    """True when the provider needs no credential or has a non-empty one."""
    return not provider.requires_credential or bool(credentials.get(provider.id))


class EntitlementResolver:
    """
    Narrows a tier's providers to the candidates eligible for one request.

    Credential checks run against the snapshot passed in by the caller, never
    against the live store, so a rotation mid-request cannot change a
    selection that was already made.
    """

    def __init__(self, registry: ProviderRegistry):
        self._registry = registry

    def resolve(
        self,
        tier: str,
        credentials: Mapping[str, Optional[str]],
        requested_provider: Optional[str] = None,
        require_geocoding: bool = False,
    ) -> List[Provider]:
        """
        Resolve the ordered candidate list for a request.

        Args:
            tier: Resolved subscription tier of the caller
            credentials: Credential snapshot taken at the start of selection
            requested_provider: Provider explicitly named by the caller
            require_geocoding: Only keep providers offering geocoding

        Returns:
            Non-empty list of providers in tier preference order

        Raises:
            UnknownTier: If the tier does not exist
            EntitlementDenied: If the requested provider is outside the tier
            NoEligibleProvider: If no configured candidate remains
        """
        tier_def = self._registry.get_tier(tier)

        if requested_provider:
            if requested_provider not in tier_def.allowed_provider_ids:
                logger.warning(f"Tier {tier} denied access to provider {requested_provider}")
                raise EntitlementDenied(tier, requested_provider, tier_def.allowed_provider_ids)
            provider = self._registry.get(requested_provider)
            if not is_configured(provider, credentials):
                raise NoEligibleProvider(tier, f"{provider.id} has no credential configured")
            if require_geocoding and not provider.geocode_capability:
                raise NoEligibleProvider(tier, f"{provider.id} does not support geocoding")
            return [provider]

        candidates = [
            provider
            for provider in self._registry.list_for_tier(tier)
            if is_configured(provider, credentials)
            and (provider.geocode_capability or not require_geocoding)
        ]
        if not candidates:
            raise NoEligibleProvider(tier)

        logger.debug(f"Eligible providers for {tier}: {[p.id for p in candidates]}")
        return candidates
