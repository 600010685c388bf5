"""
Tests for the disease overlay builder.
"""

from datetime import datetime, timezone

import pytest

from geodispatch.providers.models import Severity, SeverityThresholds, SurveillanceRow
from geodispatch.services.overlay_service import OverlayBuilder, to_geojson


def _row(cases: int, population: int, label: str = "Somewhere", disease: str = "chlamydia") -> SurveillanceRow:
    return SurveillanceRow(
        disease_code=disease,
        cases=cases,
        population=population,
        latitude=35.0,
        longitude=-90.0,
        last_updated=datetime(2024, 2, 1, tzinfo=timezone.utc),
        label=label,
    )


class TestBuildMarker:
    """Test classification of single rows."""

    @pytest.mark.parametrize("cases,expected", [
        (499, Severity.LOW),
        (500, Severity.MODERATE),
        (2000, Severity.MODERATE),
        (2001, Severity.HIGH),
    ])
    def test_severity_boundaries(self, cases, expected):
        """It should classify 49.9/50/200/200.1 per 100k correctly."""
        marker = OverlayBuilder().build_marker(_row(cases, 1000000))
        assert marker.severity is expected

    def test_rate(self):
        """It should compute cases per 100k."""
        marker = OverlayBuilder().build_marker(_row(25, 50000))
        assert marker.rate_per_100k == pytest.approx(50.0)
        assert marker.low_confidence is False

    def test_zero_population(self):
        """It should flag zero population as low confidence instead of dividing by zero."""
        marker = OverlayBuilder().build_marker(_row(12, 0))
        assert marker.rate_per_100k == 0.0
        assert marker.low_confidence is True
        assert marker.severity is Severity.LOW

    def test_per_disease_override(self):
        """It should use the disease's own thresholds when configured."""
        builder = OverlayBuilder(overrides={"syphilis": SeverityThresholds(moderate_from=5, high_above=20)})
        assert builder.build_marker(_row(15, 100000, disease="syphilis")).severity is Severity.MODERATE
        assert builder.build_marker(_row(15, 100000, disease="chlamydia")).severity is Severity.LOW


class TestBuild:
    """Test ordering and filtering."""

    def test_sorted_by_rate_descending(self, sample_rows):
        """It should put the highest rates first."""
        markers = OverlayBuilder().build(sample_rows)
        rates = [m.rate_per_100k for m in markers]
        assert rates == sorted(rates, reverse=True)
        assert markers[0].label == "Los Angeles"

    def test_stable_for_equal_rates(self):
        """It should keep the input order for equal rates."""
        rows = [_row(10, 1000, "first"), _row(10, 1000, "second"), _row(10, 1000, "third")]
        assert [m.label for m in OverlayBuilder().build(rows)] == ["first", "second", "third"]

    def test_min_severity(self, sample_rows):
        """It should drop markers below the minimum severity."""
        markers = OverlayBuilder().build(sample_rows, min_severity=Severity.MODERATE)
        assert {m.severity for m in markers} == {Severity.MODERATE, Severity.HIGH}

    def test_limit(self, sample_rows):
        """It should keep only the first N markers after sorting."""
        markers = OverlayBuilder().build(sample_rows, limit=2)
        assert [m.label for m in markers] == ["Los Angeles", "Chicago"]

    def test_empty(self):
        """It should return no markers for no rows."""
        assert OverlayBuilder().build([]) == []


class TestGeoJSON:
    """Test GeoJSON rendering."""

    def test_feature_collection(self, sample_rows):
        """It should emit one point feature per marker with [lon, lat] coordinates."""
        markers = OverlayBuilder().build(sample_rows)
        collection = to_geojson(markers)
        assert collection["type"] == "FeatureCollection"
        assert len(collection["features"]) == len(markers)
        first = collection["features"][0]
        assert first["geometry"] == {"type": "Point", "coordinates": [-118.24, 34.05]}
        assert first["properties"]["severity"] == "high"
        assert first["properties"]["color"] == "#fd7e14"
        assert "location" not in first["properties"]
