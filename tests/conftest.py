"""
Pytest configuration and shared fixtures.

Every fixture builds fresh registry, credential and strategy instances, so
tests never share dispatch state.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import pytest

from geodispatch.providers.adapters import GeocodeAdapterTable
from geodispatch.providers.base import ProviderCallError
from geodispatch.providers.catalog import default_providers, default_tiers
from geodispatch.providers.models import GeocodeResult, Provider, SurveillanceRow
from geodispatch.providers.registry import ProviderRegistry
from geodispatch.providers.settings import DispatchSettings, reset_settings
from geodispatch.services.credential_store import CredentialStore
from geodispatch.services.dispatch_service import DispatchService
from geodispatch.services.surveillance_source import InMemorySurveillanceSource


class ScriptedRandom(random.Random):
    """Random source returning a fixed sequence of draws (cycled)."""

    def __init__(self, draws: List[float]):
        super().__init__()
        self._draws = list(draws)
        self._index = 0

    def random(self) -> float:
        value = self._draws[self._index % len(self._draws)]
        self._index += 1
        return value


class FakeAdapters:
    """
    Scriptable geocode adapters.

    Each provider id maps to a behaviour: a GeocodeResult to return, a reason
    code to fail with, or "hang" to never answer. Calls (and the credential
    each one received) are recorded in order.
    """

    def __init__(self, behaviours: Dict[str, object]):
        self.behaviours = dict(behaviours)
        self.calls: List[str] = []
        self.credentials: Dict[str, Optional[str]] = {}
        self.hooks: Dict[str, Callable[[], None]] = {}

    def adapter_for(self, provider_id: str):
        async def adapter(client, provider: Provider, address: str, credential: Optional[str] = None):
            self.calls.append(provider.id)
            self.credentials[provider.id] = credential
            hook = self.hooks.get(provider.id)
            if hook is not None:
                hook()
            behaviour = self.behaviours[provider.id]
            if behaviour == "hang":
                await asyncio.sleep(3600)
            if isinstance(behaviour, str):
                raise ProviderCallError(provider.id, behaviour)
            return behaviour
        return adapter

    def table(self) -> GeocodeAdapterTable:
        return GeocodeAdapterTable({pid: self.adapter_for(pid) for pid in self.behaviours})


def make_result(provider_id: str, latitude: float = 37.4220, longitude: float = -122.0841) -> GeocodeResult:
    return GeocodeResult(
        query="1600 Amphitheatre Pkwy",
        provider_id=provider_id,
        latitude=latitude,
        longitude=longitude,
        formatted_address="1600 Amphitheatre Pkwy, Mountain View, CA",
        confidence=0.9,
    )


@pytest.fixture
def registry():
    """Registry with the built-in providers and tiers."""
    return ProviderRegistry(default_providers(), default_tiers())


@pytest.fixture
def providers_by_id():
    return {provider.id: provider for provider in default_providers()}


@pytest.fixture
def credentials():
    """Store with a Mapbox token configured and no Google key."""
    return CredentialStore({"mapbox": "pk.test-mapbox", "google": None})


@pytest.fixture
def sample_rows():
    """Surveillance rows spanning every severity band."""
    updated = datetime(2024, 3, 1, tzinfo=timezone.utc)
    return [
        SurveillanceRow(disease_code="chlamydia", cases=10, population=100000,
                        latitude=40.71, longitude=-74.00, last_updated=updated,
                        label="New York", state="NY"),
        SurveillanceRow(disease_code="chlamydia", cases=300, population=100000,
                        latitude=34.05, longitude=-118.24, last_updated=updated,
                        label="Los Angeles", state="CA"),
        SurveillanceRow(disease_code="chlamydia", cases=120, population=100000,
                        latitude=41.88, longitude=-87.63, last_updated=updated,
                        label="Chicago", state="IL"),
        SurveillanceRow(disease_code="syphilis", cases=5, population=50000,
                        latitude=29.76, longitude=-95.37, last_updated=updated,
                        label="Houston", state="TX"),
    ]


@pytest.fixture
def fake_adapters():
    return FakeAdapters({
        "osm": make_result("osm"),
        "mapbox": make_result("mapbox"),
        "google": make_result("google"),
    })


@pytest.fixture
def dispatch_settings():
    """Settings independent from the process environment."""
    return DispatchSettings(
        mapbox_api_key="pk.test-mapbox",
        google_maps_api_key=None,
        dispatch_strategy="failover",
        dispatch_catalog_file=None,
        geocode_timeout=0.2,
        surveillance_api_url=None,
    )


@pytest.fixture
def dispatch(dispatch_settings, fake_adapters, sample_rows):
    """Fully wired dispatch service using fake adapters and in-memory surveillance data."""
    return DispatchService.from_settings(
        settings=dispatch_settings,
        adapters=fake_adapters.table(),
        surveillance=InMemorySurveillanceSource(sample_rows),
        rng=random.Random(7),
    )


@pytest.fixture
def clean_settings():
    """Reset the settings singleton around a test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def adapters_factory():
    return FakeAdapters


@pytest.fixture
def scripted_rng():
    return ScriptedRandom
