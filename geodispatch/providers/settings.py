"""
Configuration settings for the dispatch service using Pydantic Settings.

This module centralizes the operator-facing configuration: provider
credentials loaded at boot, the initial load-balancing strategy and weights,
outbound timeouts and the severity thresholds used by the overlay builder.
"""

from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .models import SelectionStrategy, SeverityThresholds


class DispatchSettings(BaseSettings):
    """
    Settings for the geospatial dispatch service.

    Uses Pydantic Settings to load and validate configuration from
    environment variables with proper type checking and defaults.
    """

    # Provider credentials (populate the credential store at startup)
    mapbox_api_key: Optional[str] = Field(
        default=None,
        alias="MAPBOX_API_KEY",
        description="Mapbox access token (required to use the Mapbox provider)"
    )
    google_maps_api_key: Optional[str] = Field(
        default=None,
        alias="GOOGLE_MAPS_API_KEY",
        description="Google Maps API key (required to use the Google provider)"
    )

    # Load balancing
    dispatch_strategy: SelectionStrategy = Field(
        default=SelectionStrategy.FAILOVER,
        alias="DISPATCH_STRATEGY",
        description="Initial load-balancing strategy (failover, round-robin, weighted)"
    )
    dispatch_provider_weights: Dict[str, float] = Field(
        default_factory=lambda: {"osm": 50.0, "mapbox": 30.0, "google": 20.0},
        alias="DISPATCH_PROVIDER_WEIGHTS",
        description="JSON mapping of provider id to weight for the weighted strategy"
    )

    # Catalog
    dispatch_catalog_file: Optional[str] = Field(
        default=None,
        alias="DISPATCH_CATALOG_FILE",
        description="Optional YAML file replacing the built-in provider and tier catalog"
    )

    # Outbound calls
    geocode_timeout: float = Field(
        default=10.0,
        gt=0,
        alias="GEOCODE_TIMEOUT",
        description="Per-provider geocoding timeout in seconds"
    )
    osm_user_agent: str = Field(
        default="geodispatch/1.0",
        alias="OSM_USER_AGENT",
        description="User agent for Nominatim requests"
    )

    # Overlay classification
    severity_moderate_from: float = Field(
        default=50.0,
        ge=0,
        alias="SEVERITY_MODERATE_FROM",
        description="Rate per 100k at which markers become moderate"
    )
    severity_high_above: float = Field(
        default=200.0,
        ge=0,
        alias="SEVERITY_HIGH_ABOVE",
        description="Rate per 100k above which markers become high"
    )
    severity_overrides: Dict[str, SeverityThresholds] = Field(
        default_factory=dict,
        alias="SEVERITY_OVERRIDES",
        description="JSON mapping of disease code to {moderate_from, high_above}"
    )

    # Surveillance collaborator
    surveillance_api_url: Optional[str] = Field(
        default=None,
        alias="SURVEILLANCE_API_URL",
        description="Base URL of the surveillance data service"
    )
    surveillance_timeout: float = Field(
        default=15.0,
        gt=0,
        alias="SURVEILLANCE_TIMEOUT",
        description="Timeout for surveillance data requests in seconds"
    )

    # API configuration
    geodispatch_api_url: str = Field(
        default="http://localhost:8001/api",
        alias="GEODISPATCH_API_URL",
        description="Dispatch API base URL (used by the CLI)"
    )
    geodispatch_host: str = Field(
        default="0.0.0.0",
        alias="GEODISPATCH_HOST",
        description="API server host"
    )
    geodispatch_port: int = Field(
        default=8001,
        alias="GEODISPATCH_PORT",
        description="API server port"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def initial_credentials(self) -> Dict[str, Optional[str]]:
        """Credentials keyed by provider id, as loaded from the environment."""
        return {
            "mapbox": self.mapbox_api_key or None,
            "google": self.google_maps_api_key or None,
        }

    def default_thresholds(self) -> SeverityThresholds:
        return SeverityThresholds(
            moderate_from=self.severity_moderate_from,
            high_above=self.severity_high_above,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary without secrets."""
        return self.model_dump(exclude={"mapbox_api_key", "google_maps_api_key"})


# Global settings instance
_settings: Optional[DispatchSettings] = None


def get_settings() -> DispatchSettings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Validated DispatchSettings instance
    """
    global _settings
    if _settings is None:
        _settings = DispatchSettings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing)."""
    global _settings
    _settings = None
