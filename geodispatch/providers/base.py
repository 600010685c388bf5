"""
Shared contract for provider geocode adapters.

Providers differ only in their URL templates and in how their geocoding
responses are shaped, so instead of a class hierarchy each provider exposes a
single coroutine with the GeocodeAdapter signature. Adapters translate the
provider-specific payload into GeocodeResult and signal every failure as a
ProviderCallError carrying a short reason code.
"""

from typing import Any, Awaitable, Callable, Optional

import httpx

from .models import GeocodeResult, Provider

GeocodeAdapter = Callable[
    [httpx.AsyncClient, Provider, str, Optional[str]],
    Awaitable[GeocodeResult],
]


class ProviderCallError(Exception):
    """
    A single provider attempt failed.

    The reason is a short code (``http_503``, ``no_results``, ...) that is safe
    to surface to callers; it never contains response bodies or request URLs,
    which may embed credentials.
    """

    def __init__(self, provider_id: str, reason: str):
        super().__init__(f"{provider_id}: {reason}")
        self.provider_id = provider_id
        self.reason = reason


def ensure_success(provider: Provider, response: httpx.Response) -> Any:
    """
    Check the HTTP status and decode the JSON body.

    Raises:
        ProviderCallError: On non-2xx status or a body that is not JSON
    """
    if not response.is_success:
        raise ProviderCallError(provider.id, f"http_{response.status_code}")
    try:
        return response.json()
    except ValueError:
        raise ProviderCallError(provider.id, "malformed_response")


def require_credential(provider: Provider, credential: Optional[str]) -> str:
    if not credential:
        raise ProviderCallError(provider.id, "missing_credential")
    return credential


def clamp_confidence(value: Any) -> float:
    """Coerce a provider score into the 0..1 range."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, score))
