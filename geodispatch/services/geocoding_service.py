"""
Geocoding façade.

Normalizes provider-specific geocode calls into GeocodeResult. Eligible
providers are attempted one at a time, in the order chosen by the active
strategy, each with a bounded timeout; the first success wins. When every
candidate fails the caller gets GeocodeUnavailable with one reason per
provider.

No shared lock is held while a provider call is in flight: credentials are
read from a snapshot and the strategy engine only locks while it picks.
"""

import asyncio
import logging
import time
from typing import List, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..exceptions import (
    AllProvidersExhausted,
    EntitlementDenied,
    GeocodeUnavailable,
    NoEligibleProvider,
    ProviderFailure,
    RequestCancelled,
)
from ..providers.adapters import GeocodeAdapterTable
from ..providers.base import ProviderCallError
from ..providers.models import GeocodeResult, Provider
from .credential_store import CredentialStore
from .dispatch_state import DispatchState, DispatchTrace
from .entitlement_service import EntitlementResolver
from .provider_health import ProviderHealthTracker
from .strategy_service import StrategyEngine

logger = logging.getLogger(__name__)


class GeocodingService:
    """
    Geocodes addresses through the eligible providers of a tier.

    Args:
        entitlements: Resolver narrowing a tier to its candidates
        strategy: Engine ordering the candidates
        credentials: Store the per-request snapshot is taken from
        adapters: Geocode adapter per provider id
        health: Tracker receiving per-provider call statistics
        timeout: Per-provider timeout in seconds
        client: Optional shared httpx client (created lazily otherwise)
        user_agent: User agent sent to providers (Nominatim requires one)
    """

    def __init__(
        self,
        entitlements: EntitlementResolver,
        strategy: StrategyEngine,
        credentials: CredentialStore,
        adapters: GeocodeAdapterTable,
        health: Optional[ProviderHealthTracker] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "geodispatch/1.0",
    ):
        self._entitlements = entitlements
        self._strategy = strategy
        self._credentials = credentials
        self._adapters = adapters
        self._health = health or ProviderHealthTracker()
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def geocode(
        self,
        address: str,
        tier: str,
        provider: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GeocodeResult:
        """
        Geocode an address for a caller of the given tier.

        Args:
            address: Free-text address
            tier: Caller's subscription tier
            provider: Provider explicitly requested by the caller
            cancel_event: Set by the caller to abort the request

        Returns:
            GeocodeResult from the first provider that answered

        Raises:
            EntitlementDenied: Requested provider is outside the tier
            NoEligibleProvider: No configured geocoding provider in the tier
            GeocodeUnavailable: Every candidate failed
            RequestCancelled: cancel_event was set before a provider answered
        """
        trace = DispatchTrace(operation="geocode", tier=tier)
        trace.enter(DispatchState.RESOLVING)

        snapshot = self._credentials.snapshot()
        try:
            candidates = self._entitlements.resolve(
                tier, snapshot, requested_provider=provider, require_geocoding=True
            )
        except EntitlementDenied:
            trace.enter(DispatchState.DENIED)
            raise
        except NoEligibleProvider:
            self._strategy.reset_cursor(tier)
            raise

        try:
            return await self._cascade(address, tier, candidates, snapshot, trace, cancel_event, requested=provider is not None)
        except AllProvidersExhausted as e:
            logger.error(f"Geocoding '{address}' failed on every provider for tier {tier}: {e.failures}")
            raise GeocodeUnavailable(address, e.failures)

    async def _cascade(
        self,
        address: str,
        tier: str,
        candidates: List[Provider],
        credentials: Mapping[str, Optional[str]],
        trace: DispatchTrace,
        cancel_event: Optional[asyncio.Event],
        requested: bool = False,
    ) -> GeocodeResult:
        """Attempt candidates sequentially; raises AllProvidersExhausted when none succeeds."""
        # A requested provider is used as-is and does not move the tier cursor
        ordered = iter(candidates) if requested else self._strategy.iter_candidates(tier, candidates)
        for candidate in ordered:
            trace.enter(DispatchState.SELECTING)
            if cancel_event is not None and cancel_event.is_set():
                trace.enter(DispatchState.CANCELLED)
                raise RequestCancelled(address, trace.attempts)

            self._health.record_selection(candidate.id)
            trace.enter(DispatchState.EXECUTING)
            trace.attempts.append(candidate.id)

            started = time.perf_counter()
            try:
                result = await self._call(candidate, address, credentials.get(candidate.id), cancel_event)
            except ProviderCallError as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                self._health.record_failure(candidate.id, e.reason, elapsed_ms)
                trace.failures.append(ProviderFailure(candidate.id, e.reason))
                logger.warning(f"Geocoding via {candidate.id} failed ({e.reason}), trying next candidate")
                if len(trace.attempts) < len(candidates):
                    trace.enter(DispatchState.RETRYING)
                continue
            except RequestCancelled:
                trace.enter(DispatchState.CANCELLED)
                logger.info(f"Geocoding '{address}' cancelled by caller while waiting on {candidate.id}")
                raise RequestCancelled(address, trace.attempts)
            except asyncio.CancelledError:
                trace.enter(DispatchState.CANCELLED)
                logger.info(f"Geocoding '{address}' cancelled while waiting on {candidate.id}")
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            self._health.record_success(candidate.id, elapsed_ms)
            trace.enter(DispatchState.SUCCESS)
            logger.info(f"Geocoded '{address}' via {candidate.id} in {elapsed_ms:.0f}ms")
            return result

        trace.enter(DispatchState.EXHAUSTED)
        raise AllProvidersExhausted(trace.failures)

    async def _call(
        self,
        provider: Provider,
        address: str,
        credential: Optional[str],
        cancel_event: Optional[asyncio.Event],
    ) -> GeocodeResult:
        """One bounded provider call; every failure becomes a ProviderCallError."""
        adapter = self._adapters.get(provider.id)
        if adapter is None:
            raise ProviderCallError(provider.id, "no_adapter")

        client = await self._get_client()
        call = asyncio.ensure_future(
            asyncio.wait_for(adapter(client, provider, address, credential), self.timeout)
        )
        try:
            if cancel_event is None:
                result = await call
            else:
                result = await self._await_unless_cancelled(call, cancel_event, address)
        except asyncio.TimeoutError:
            raise ProviderCallError(provider.id, "timeout")
        except httpx.TimeoutException:
            raise ProviderCallError(provider.id, "timeout")
        except httpx.HTTPError as e:
            # The exception text can contain the request URL (and its key)
            raise ProviderCallError(provider.id, f"transport_error:{e.__class__.__name__}")
        except ValidationError:
            raise ProviderCallError(provider.id, "malformed_response")
        except (KeyError, IndexError, TypeError, AttributeError):
            # Payload shapes the adapter did not guard against
            raise ProviderCallError(provider.id, "malformed_response")
        finally:
            if not call.done():
                call.cancel()

        # Answer under the façade's contract, whatever the adapter put there
        return result.model_copy(update={"query": address, "provider_id": provider.id})

    @staticmethod
    async def _await_unless_cancelled(
        call: "asyncio.Future[GeocodeResult]",
        cancel_event: asyncio.Event,
        address: str,
    ) -> GeocodeResult:
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if call in done:
            return call.result()

        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        raise RequestCancelled(address, [])
