"""
Tests for DispatchSettings.
"""

import os
from unittest.mock import patch

from geodispatch.providers.models import SelectionStrategy
from geodispatch.providers.settings import DispatchSettings, get_settings, reset_settings


class TestDispatchSettingsDefaults:
    """Test default values."""

    def test_defaults(self, clean_settings):
        """It should default to failover with the built-in weights."""
        with patch.dict(os.environ, {}, clear=True):
            settings = DispatchSettings()
            assert settings.dispatch_strategy is SelectionStrategy.FAILOVER
            assert settings.dispatch_provider_weights == {"osm": 50.0, "mapbox": 30.0, "google": 20.0}
            assert settings.geocode_timeout == 10.0
            assert settings.initial_credentials() == {"mapbox": None, "google": None}

    def test_default_thresholds(self, clean_settings):
        """It should default severity thresholds to 50 and 200."""
        with patch.dict(os.environ, {}, clear=True):
            thresholds = DispatchSettings().default_thresholds()
            assert thresholds.moderate_from == 50.0
            assert thresholds.high_above == 200.0


class TestDispatchSettingsEnvironmentVariables:
    """Test environment variable overrides."""

    def test_credentials_from_env(self, clean_settings):
        """It should read provider credentials from the environment."""
        env = {"MAPBOX_API_KEY": "pk.env", "GOOGLE_MAPS_API_KEY": "AIza-env"}
        with patch.dict(os.environ, env, clear=True):
            settings = DispatchSettings()
            assert settings.initial_credentials() == {"mapbox": "pk.env", "google": "AIza-env"}

    def test_strategy_from_env(self, clean_settings):
        """It should accept round_robin from the environment."""
        with patch.dict(os.environ, {"DISPATCH_STRATEGY": "round_robin"}, clear=True):
            assert DispatchSettings().dispatch_strategy is SelectionStrategy.ROUND_ROBIN

    def test_api_url_from_env(self, clean_settings):
        """It should read the API URL the CLI talks to."""
        with patch.dict(os.environ, {"GEODISPATCH_API_URL": "http://dispatch.internal:9000/api"}, clear=True):
            assert DispatchSettings().geodispatch_api_url == "http://dispatch.internal:9000/api"
        with patch.dict(os.environ, {}, clear=True):
            assert DispatchSettings().geodispatch_api_url == "http://localhost:8001/api"

    def test_weights_and_overrides_from_json(self, clean_settings):
        """It should parse JSON weights and per-disease thresholds."""
        env = {
            "DISPATCH_PROVIDER_WEIGHTS": '{"osm": 3, "mapbox": 1}',
            "SEVERITY_OVERRIDES": '{"syphilis": {"moderate_from": 5, "high_above": 20}}',
        }
        with patch.dict(os.environ, env, clear=True):
            settings = DispatchSettings()
            assert settings.dispatch_provider_weights == {"osm": 3.0, "mapbox": 1.0}
            assert settings.severity_overrides["syphilis"].high_above == 20

    def test_to_dict_hides_secrets(self, clean_settings):
        """It should leave credentials out of the dictionary view."""
        with patch.dict(os.environ, {"MAPBOX_API_KEY": "pk.secret"}, clear=True):
            data = DispatchSettings().to_dict()
            assert "mapbox_api_key" not in data
            assert "pk.secret" not in str(data)


class TestSettingsSingleton:
    """Test the global settings accessor."""

    def test_singleton(self, clean_settings):
        """It should return the same instance until reset."""
        with patch.dict(os.environ, {}, clear=True):
            first = get_settings()
            assert get_settings() is first
            reset_settings()
            assert get_settings() is not first
