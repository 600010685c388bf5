"""
Exception hierarchy for the geospatial dispatch service.

Every error raised by the dispatch layer derives from DispatchError, which
carries the HTTP status code and error type used by the API error handlers.
"""

from typing import Any, Dict, List, Optional


class DispatchError(Exception):
    """Base exception for all dispatch related errors"""

    status_code = 500
    error_type = "dispatch_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderNotFound(DispatchError):
    """Raised when a provider id is not in the registry"""

    status_code = 404
    error_type = "invalid_provider"

    def __init__(self, provider_id: str):
        super().__init__(f"Unknown provider: {provider_id}", {"provider": provider_id})
        self.provider_id = provider_id


class UnknownTier(DispatchError):
    """Raised when a tier name is not in the registry"""

    status_code = 404
    error_type = "unknown_tier"

    def __init__(self, tier: str):
        super().__init__(f"Invalid tier: {tier}", {"tier": tier})
        self.tier = tier


class InvalidTierDefinition(DispatchError):
    """Raised when a tier references no providers or unknown providers"""

    error_type = "invalid_tier_definition"

    def __init__(self, tier: str, reason: str):
        super().__init__(f"Tier '{tier}' is invalid: {reason}", {"tier": tier})
        self.tier = tier


class EntitlementDenied(DispatchError):
    """Raised when a caller requests a provider outside their tier"""

    status_code = 403
    error_type = "entitlement_denied"

    def __init__(self, tier: str, provider_id: str, allowed: List[str]):
        super().__init__(
            f"Provider {provider_id} not available for tier {tier}",
            {"tier": tier, "provider": provider_id, "available_providers": list(allowed)},
        )
        self.tier = tier
        self.provider_id = provider_id


class NoEligibleProvider(DispatchError):
    """Raised when no credential-satisfied provider remains for a tier"""

    status_code = 503
    error_type = "no_eligible_provider"

    def __init__(self, tier: str, reason: str = "no configured provider"):
        super().__init__(f"No available providers for tier: {tier} ({reason})", {"tier": tier})
        self.tier = tier


class UnsupportedStyle(DispatchError):
    """Raised when a provider does not offer the requested style token"""

    status_code = 400
    error_type = "unsupported_style"

    def __init__(self, provider_id: str, style: str, supported: List[str]):
        super().__init__(
            f"Style '{style}' is not supported by provider {provider_id}",
            {"provider": provider_id, "style": style, "supported_styles": list(supported)},
        )
        self.provider_id = provider_id
        self.style = style


class UnknownStrategy(DispatchError):
    """Raised when switching to a load-balancing strategy that does not exist"""

    status_code = 400
    error_type = "unknown_strategy"

    def __init__(self, name: str, available: List[str]):
        super().__init__(
            f"Invalid strategy: {name}",
            {"strategy": name, "available_strategies": list(available)},
        )
        self.name = name


class InvalidWeight(DispatchError):
    """Raised when a provider weight is not a positive number"""

    status_code = 400
    error_type = "invalid_weight"

    def __init__(self, provider_id: str, weight: Any):
        super().__init__(
            f"Weight for provider {provider_id} must be positive, got {weight}",
            {"provider": provider_id},
        )


class CredentialNotApplicable(DispatchError):
    """Raised when setting a credential on a provider that does not use one"""

    status_code = 400
    error_type = "credential_not_applicable"

    def __init__(self, provider_id: str):
        super().__init__(
            f"Provider does not require API key: {provider_id}", {"provider": provider_id}
        )
        self.provider_id = provider_id


class ProviderFailure:
    """Diagnostic record for one failed provider attempt (never holds response bodies)."""

    def __init__(self, provider_id: str, reason: str):
        self.provider_id = provider_id
        self.reason = reason

    def to_dict(self) -> Dict[str, str]:
        return {"provider": self.provider_id, "reason": self.reason}

    def __repr__(self) -> str:
        return f"ProviderFailure({self.provider_id!r}, {self.reason!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderFailure):
            return NotImplemented
        return (self.provider_id, self.reason) == (other.provider_id, other.reason)


class AllProvidersExhausted(DispatchError):
    """Internal terminal state: every candidate was attempted and failed"""

    error_type = "all_providers_exhausted"

    def __init__(self, failures: List[ProviderFailure]):
        super().__init__(
            f"All {len(failures)} candidate providers failed",
            {"reasons": [f.to_dict() for f in failures]},
        )
        self.failures = list(failures)


class GeocodeUnavailable(DispatchError):
    """Raised at the boundary when no eligible provider could geocode the address"""

    status_code = 502
    error_type = "geocode_unavailable"

    def __init__(self, query: str, reasons: List[ProviderFailure]):
        super().__init__(
            "Geocoding failed",
            {"query": query, "reasons": [r.to_dict() for r in reasons]},
        )
        self.query = query
        self.reasons = list(reasons)


class RequestCancelled(DispatchError):
    """Raised when the caller cancelled an in-flight request"""

    status_code = 499
    error_type = "cancelled"

    def __init__(self, query: str, attempted: List[str]):
        super().__init__("Request cancelled by caller", {"query": query, "attempted": list(attempted)})
        self.query = query
        self.attempted = list(attempted)


class SurveillanceUnavailable(DispatchError):
    """Raised when the surveillance data collaborator cannot be reached"""

    status_code = 502
    error_type = "surveillance_unavailable"

    def __init__(self, disease_code: str, reason: str):
        super().__init__(
            f"Surveillance data unavailable for {disease_code}",
            {"disease": disease_code, "reason": reason},
        )
        self.disease_code = disease_code
        self.reason = reason
