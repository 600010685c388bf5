"""
Disease overlay builder.

Turns raw surveillance rows into classified map markers. Severity thresholds
come from configuration (with optional per-disease overrides); severity itself
is never stored, it is derived from the marker's rate whenever it is read.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..providers.models import (
    SEVERITY_ORDER,
    GeoLocation,
    OverlayMarker,
    Severity,
    SeverityThresholds,
    SurveillanceRow,
)

logger = logging.getLogger(__name__)

PER_100K = 100000


class OverlayBuilder:
    """Classifies surveillance rows into overlay markers."""

    def __init__(
        self,
        default_thresholds: Optional[SeverityThresholds] = None,
        overrides: Optional[Mapping[str, SeverityThresholds]] = None,
    ):
        self.default_thresholds = default_thresholds or SeverityThresholds()
        self.overrides: Dict[str, SeverityThresholds] = dict(overrides or {})

    def thresholds_for(self, disease_code: str) -> SeverityThresholds:
        return self.overrides.get(disease_code, self.default_thresholds)

    def build_marker(self, row: SurveillanceRow) -> OverlayMarker:
        """
        Classify one row.

        A zero population yields a rate of 0 flagged as low confidence rather
        than a trustworthy-looking 0.
        """
        if row.population == 0:
            rate = 0.0
            low_confidence = True
        else:
            rate = row.cases * PER_100K / row.population
            low_confidence = False

        return OverlayMarker(
            location=GeoLocation(latitude=row.latitude, longitude=row.longitude),
            disease_code=row.disease_code,
            cases=row.cases,
            rate_per_100k=rate,
            population=row.population,
            last_updated=row.last_updated,
            low_confidence=low_confidence,
            label=row.label,
            thresholds=self.thresholds_for(row.disease_code),
        )

    def build(
        self,
        rows: Iterable[SurveillanceRow],
        min_severity: Optional[Severity] = None,
        limit: Optional[int] = None,
    ) -> List[OverlayMarker]:
        """
        Classify rows and order them for rendering.

        Args:
            rows: Raw surveillance rows
            min_severity: Drop markers below this severity
            limit: Keep only the first N markers after sorting

        Returns:
            Markers stable-sorted by descending rate per 100k
        """
        markers = [self.build_marker(row) for row in rows]
        low_confidence = sum(1 for m in markers if m.low_confidence)
        if low_confidence:
            logger.info(f"{low_confidence} overlay rows had zero population and were flagged low confidence")

        if min_severity is not None:
            floor = SEVERITY_ORDER.index(min_severity)
            markers = [m for m in markers if SEVERITY_ORDER.index(m.severity) >= floor]

        # sorted() is stable, so equal rates keep the collaborator's order
        markers = sorted(markers, key=lambda m: m.rate_per_100k, reverse=True)
        if limit is not None:
            markers = markers[:limit]
        return markers


def to_geojson(markers: Iterable[OverlayMarker]) -> Dict[str, Any]:
    """Render markers as a GeoJSON FeatureCollection of points."""
    features = []
    for marker in markers:
        properties = marker.model_dump(mode="json", exclude={"location"})
        features.append({
            "type": "Feature",
            "geometry": {
                "type": "Point",
                "coordinates": [marker.location.longitude, marker.location.latitude],
            },
            "properties": properties,
        })
    return {"type": "FeatureCollection", "features": features}
