"""
Unified data models for the dispatch service.

These models provide one stable contract regardless of which map-data provider
answered a request. Provider-specific field names never leave the adapters;
callers only ever see GeocodeResult, OverlayMarker and the configuration views
defined here.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class SelectionStrategy(str, Enum):
    """Load-balancing policies available to the strategy engine."""
    FAILOVER = "failover"
    ROUND_ROBIN = "round-robin"
    WEIGHTED = "weighted"

    @classmethod
    def _missing_(cls, value):
        # Older clients send "round_robin"
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class Severity(str, Enum):
    """Severity tiers for disease-surveillance markers."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


SEVERITY_ORDER = [Severity.LOW, Severity.MODERATE, Severity.HIGH]

SEVERITY_COLORS = {
    Severity.LOW: "#28a745",
    Severity.MODERATE: "#ffc107",
    Severity.HIGH: "#fd7e14",
}


class Provider(BaseModel):
    """
    Capability record for one map-data backend.

    Providers differ only in their tile URL template, the styles they accept
    and the geocode adapter registered under their id.
    """
    id: str = Field(..., min_length=1, description="Stable provider key")
    display_name: str = Field(..., description="Human readable provider name")
    requires_credential: bool = Field(default=False, description="Whether an API key is needed")
    tile_url_template: str = Field(
        ...,
        description="Tile URL with {z}, {x}, {y}, {style} and optional {credential} placeholders"
    )
    geocode_capability: bool = Field(default=False, description="Whether geocoding is offered")
    geocode_url: Optional[str] = Field(None, description="Geocoding endpoint")
    styles: Dict[str, str] = Field(
        default_factory=dict,
        description="Public style token -> value substituted into {style}"
    )
    default_style: Optional[str] = Field(None, description="Style used when none is requested")
    attribution: str = Field(default="", description="Attribution text required by the provider")
    max_zoom: int = Field(default=19, ge=0, le=24)
    tile_size: int = Field(default=256, gt=0)
    tile_format: str = Field(default="png")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_default_style(self) -> "Provider":
        if self.default_style is not None and self.default_style not in self.styles:
            raise ValueError(
                f"default_style '{self.default_style}' is not one of the provider styles"
            )
        return self


class Tier(BaseModel):
    """Subscription class granting access to an ordered subset of providers."""
    name: str = Field(..., min_length=1)
    display_name: str = Field(default="")
    allowed_provider_ids: List[str] = Field(
        ...,
        min_length=1,
        description="Eligible providers; order encodes failover preference"
    )
    rate_limit: int = Field(default=1000, ge=0, description="Requests per interval (enforced upstream)")
    features: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("allowed_provider_ids")
    @classmethod
    def _no_duplicates(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("allowed_provider_ids must not contain duplicates")
        return value


class GeoLocation(BaseModel):
    """A WGS84 point."""
    latitude: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude coordinate")

    model_config = {"frozen": True}


class GeocodeResult(BaseModel):
    """
    Normalized geocoding answer.

    The same shape is returned whichever provider answered; provider_id tells
    the caller which one did.
    """
    query: str
    provider_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    formatted_address: str
    confidence: float = Field(..., ge=0.0, le=1.0, description="Provider-normalized confidence")

    model_config = {"frozen": True}


class SeverityThresholds(BaseModel):
    """Rate cut-offs (cases per 100k) used to classify overlay markers."""
    moderate_from: float = Field(default=50.0, ge=0)
    high_above: float = Field(default=200.0, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _ordered(self) -> "SeverityThresholds":
        if self.high_above < self.moderate_from:
            raise ValueError("high_above must be greater than or equal to moderate_from")
        return self

    def classify(self, rate_per_100k: float) -> Severity:
        if rate_per_100k < self.moderate_from:
            return Severity.LOW
        if rate_per_100k > self.high_above:
            return Severity.HIGH
        return Severity.MODERATE


class SurveillanceRow(BaseModel):
    """Raw row handed over by the surveillance data collaborator."""
    disease_code: str
    cases: int = Field(..., ge=0)
    population: int = Field(..., ge=0)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    last_updated: datetime
    label: Optional[str] = None
    state: Optional[str] = None


class OverlayMarker(BaseModel):
    """
    A single classified disease-surveillance point.

    Severity, color and popup are derived from the rate every time they are
    read, so they can never drift from the rate that produced them.
    """
    location: GeoLocation
    disease_code: str
    cases: int = Field(..., ge=0)
    rate_per_100k: float = Field(..., ge=0)
    population: int = Field(..., ge=0)
    last_updated: datetime
    low_confidence: bool = False
    label: Optional[str] = None
    thresholds: SeverityThresholds = Field(
        default_factory=SeverityThresholds,
        description="Cut-offs the severity is derived from"
    )

    model_config = {"frozen": True}

    @computed_field
    @property
    def severity(self) -> Severity:
        return self.thresholds.classify(self.rate_per_100k)

    @computed_field
    @property
    def color(self) -> str:
        return SEVERITY_COLORS[self.severity]

    @computed_field
    @property
    def popup(self) -> Dict[str, Any]:
        return {
            "title": self.label or self.disease_code.upper(),
            "disease": self.disease_code,
            "cases": self.cases,
            "population": self.population,
            "rate_per_100k": round(self.rate_per_100k, 2),
            "severity": self.severity.value,
            "last_updated": self.last_updated.isoformat(),
            "low_confidence": self.low_confidence,
        }


class OverlayFilters(BaseModel):
    """Filters forwarded to the surveillance collaborator and applied after classification."""
    state: Optional[str] = None
    year: Optional[int] = Field(None, ge=1900, le=2100)
    min_severity: Optional[Severity] = None
    limit: Optional[int] = Field(None, ge=1)


class ProviderStats(BaseModel):
    """
    Request statistics for a provider.

    Tracks usage and failures for the status snapshot exposed to operators.
    """
    provider_id: str = Field(..., description="Provider identifier")
    selections: int = Field(default=0, description="Times the provider was chosen for a request")
    total_requests: int = Field(default=0, description="Total outbound requests made")
    successful_requests: int = Field(default=0, description="Successful requests")
    failed_requests: int = Field(default=0, description="Failed requests")
    avg_response_time: float = Field(default=0.0, description="Average response time in ms")
    last_request_time: Optional[str] = Field(None, description="ISO timestamp of last request")
    last_failure_reason: Optional[str] = Field(None, description="Reason code of last failure")

    @computed_field
    @property
    def success_rate(self) -> float:
        """Calculate success rate percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100


class ProviderHealth(BaseModel):
    """Per-provider entry of the status snapshot."""
    id: str
    name: str
    requires_credential: bool
    credential_configured: bool
    available: bool
    attribution: str = ""
    stats: ProviderStats


class TierProviderInfo(BaseModel):
    id: str
    name: str
    requires_credential: bool
    configured: bool


class TierInfo(BaseModel):
    """Tier definition with the resolved 'configured' flag for each provider."""
    name: str
    display_name: str
    rate_limit: int
    features: List[str]
    allowed_provider_ids: List[str]
    providers: List[TierProviderInfo]

    @computed_field
    @property
    def available_provider_ids(self) -> List[str]:
        return [p.id for p in self.providers if p.configured]


class ServiceStatus(BaseModel):
    service: str = "Geospatial Dispatch Service"
    timestamp: datetime
    status: str = Field(..., description="healthy, degraded or unhealthy")
    active_strategy: SelectionStrategy
    weights: Dict[str, float]
    provider_health: Dict[str, ProviderHealth]
    tiers_summary: Dict[str, TierInfo]


class MapConfig(BaseModel):
    """Resolved map configuration handed to the rendering layer."""
    provider: str
    provider_name: str
    tier: str
    tier_name: str
    attribution: str
    max_zoom: int
    tile_size: int
    format: str
    tile_url_template: str
    style: Optional[str] = None
    styles: List[str] = Field(default_factory=list)
    center: Tuple[float, float]
    zoom: int
    features: List[str]
    rate_limit: int
    credential: Optional[str] = Field(
        None,
        description="'[CONFIGURED]' when the provider credential is set; the secret itself is never returned"
    )
    current_requests: int = 0
