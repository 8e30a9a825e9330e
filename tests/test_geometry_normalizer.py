# -*- coding: utf-8 -*-
"""Tests for the Geometry Normalizer Engine.

Covers:
- Structural rejection and Feature auto-wrapping
- Elevation stripping (idempotent, recursive)
- Ring closing, degenerate rings, invalid coordinates
- Self-intersection rejection and optional repair
- Plot id, country, declared area and metadata resolution
- Deterministic id synthesis and duplicate ids
- Partial-failure warning and all-failed error

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import json

import pytest

from conftest import CLEAR_LAT, CLEAR_LON, collection, make_feature, square

from plotrisk.plot_analysis.config import PlotAnalysisConfig
from plotrisk.plot_analysis.exceptions import (
    NoValidFeaturesError,
    PayloadTooLargeError,
    StructuralInputError,
)
from plotrisk.plot_analysis.geometry_normalizer import (
    GeometryNormalizerEngine,
    geodesic_area_ha,
    resolve_country,
    resolve_declared_area,
    resolve_metadata,
    resolve_plot_id,
    strip_z,
)
from plotrisk.plot_analysis.models import IssueSeverity
from plotrisk.plot_analysis.provenance import ProvenanceTracker


BOWTIE = {
    "type": "Polygon",
    "coordinates": [[
        [CLEAR_LON, CLEAR_LAT],
        [CLEAR_LON + 0.01, CLEAR_LAT + 0.01],
        [CLEAR_LON + 0.01, CLEAR_LAT],
        [CLEAR_LON, CLEAR_LAT + 0.01],
        [CLEAR_LON, CLEAR_LAT],
    ]],
}


@pytest.fixture
def engine(config):
    return GeometryNormalizerEngine(config=config, provenance=ProvenanceTracker())


# ==============================================================================
# Structural validation
# ==============================================================================


class TestParseCollection:
    """Tests for structural validation of uploads."""

    def test_bare_feature_is_wrapped(self, engine):
        """A single Feature is accepted as a one-feature collection."""
        parsed = engine.parse_collection(make_feature(plot_id="A"))
        assert parsed["type"] == "FeatureCollection"
        assert len(parsed["features"]) == 1

    def test_json_text_is_parsed(self, engine):
        """JSON text and bytes are parsed."""
        text = json.dumps(collection(make_feature(plot_id="A")))
        assert len(engine.parse_collection(text)["features"]) == 1
        assert len(engine.parse_collection(text.encode("utf-8"))["features"]) == 1

    def test_invalid_json_rejected(self, engine):
        with pytest.raises(StructuralInputError) as exc_info:
            engine.parse_collection("{not json")
        assert exc_info.value.error == "Failed to parse GeoJSON file"

    def test_wrong_type_rejected(self, engine):
        with pytest.raises(StructuralInputError):
            engine.parse_collection({"type": "Polygon", "coordinates": []})

    def test_missing_features_rejected(self, engine):
        with pytest.raises(StructuralInputError) as exc_info:
            engine.parse_collection({"type": "FeatureCollection"})
        assert "features" in exc_info.value.error

    def test_empty_features_rejected(self, engine):
        with pytest.raises(StructuralInputError):
            engine.parse_collection(collection())

    def test_too_many_features(self):
        """More features than allowed is a payload error (413)."""
        engine = GeometryNormalizerEngine(config=PlotAnalysisConfig(max_features=2))
        raw = collection(*(make_feature(plot_id=str(i)) for i in range(3)))
        with pytest.raises(PayloadTooLargeError) as exc_info:
            engine.parse_collection(raw)
        assert exc_info.value.status_code == 413

    def test_unsupported_extension(self, engine):
        with pytest.raises(StructuralInputError):
            engine.parse_content("a,b,c", "plots.csv")

    def test_structural_errors_produce_no_partial_result(self, engine):
        """Structural rejection happens before any feature is normalized."""
        with pytest.raises(StructuralInputError):
            engine.normalize({"type": "FeatureCollection", "features": {}})
        assert engine.plots_normalized == 0


# ==============================================================================
# Geometry helpers
# ==============================================================================


class TestStripZ:
    """Tests for elevation stripping."""

    def test_polygon_z_removed(self):
        stripped = strip_z(square(CLEAR_LON, CLEAR_LAT, z=12.5))
        for position in stripped["coordinates"][0]:
            assert len(position) == 2

    def test_idempotent(self):
        """Stripping twice equals stripping once."""
        once = strip_z(square(CLEAR_LON, CLEAR_LAT, z=3.0))
        assert strip_z(once) == once

    def test_two_d_unchanged(self):
        geometry = square(CLEAR_LON, CLEAR_LAT)
        assert strip_z(geometry) == geometry

    def test_geometry_collection_recursion(self):
        geometry = {
            "type": "GeometryCollection",
            "geometries": [
                square(CLEAR_LON, CLEAR_LAT, z=1.0),
                {"type": "Point", "coordinates": [1.0, 2.0, 3.0]},
            ],
        }
        stripped = strip_z(geometry)
        assert stripped["geometries"][1]["coordinates"] == [1.0, 2.0]
        assert len(stripped["geometries"][0]["coordinates"][0][0]) == 2

    def test_input_not_mutated(self):
        geometry = square(CLEAR_LON, CLEAR_LAT, z=7.0)
        strip_z(geometry)
        assert len(geometry["coordinates"][0][0]) == 3


class TestGeodesicArea:
    """Tests for geodesic area computation."""

    def test_small_square_near_equator(self):
        """0.001 degree square near the equator is about 1.2 ha."""
        area = geodesic_area_ha(square(CLEAR_LON, CLEAR_LAT, size=0.001))
        assert 1.1 < area < 1.35

    def test_area_independent_of_winding(self):
        geometry = square(CLEAR_LON, CLEAR_LAT)
        reversed_geometry = {
            "type": "Polygon",
            "coordinates": [list(reversed(geometry["coordinates"][0]))],
        }
        assert geodesic_area_ha(geometry) == pytest.approx(geodesic_area_ha(reversed_geometry))


# ==============================================================================
# Field resolution
# ==============================================================================


class TestFieldResolution:
    """Tests for ordered field-resolution tables."""

    def test_plot_id_precedence(self):
        """properties.plot_id wins over every other alias."""
        feature = make_feature(feature_id="F", plot_id="P", id="I", Name="N")
        assert resolve_plot_id(feature, 0) == ("P", False)

    def test_properties_id_before_feature_id(self):
        feature = make_feature(feature_id="F", id="I")
        assert resolve_plot_id(feature, 0) == ("I", False)

    def test_feature_id(self):
        assert resolve_plot_id(make_feature(feature_id=42), 0) == ("42", False)

    def test_farmers_id_alias(self):
        feature = make_feature(**{".Farmers ID": "KOL-9"})
        assert resolve_plot_id(feature, 0) == ("KOL-9", False)

    def test_name_is_last_resort(self):
        assert resolve_plot_id(make_feature(Name="Kebun 1"), 0) == ("Kebun 1", False)

    def test_synthesized_id_is_positional(self):
        """Missing ids become PLOT_NNN from the 1-based position."""
        assert resolve_plot_id(make_feature(), 6) == ("PLOT_007", True)

    def test_blank_values_skipped(self):
        feature = make_feature(plot_id="  ", id="real")
        assert resolve_plot_id(feature, 0) == ("real", False)

    def test_country_aliases(self):
        assert resolve_country({"country_name": "Ghana", "country": "X"}) == "Ghana"
        assert resolve_country({"country": "Peru"}) == "Peru"
        assert resolve_country({"country_name": "Unknown", "country": "Peru"}) == "Peru"
        assert resolve_country({}) == "unknown"

    def test_declared_area_parsing(self):
        """Declared area strings with units are parsed."""
        assert resolve_declared_area({".Plot size": "0.50 Ha"}) == pytest.approx(0.5)
        assert resolve_declared_area({"area_ha": 2}) == pytest.approx(2.0)
        assert resolve_declared_area({"area": "n/a"}) is None
        assert resolve_declared_area({}) is None

    def test_metadata_aliases(self):
        metadata = resolve_metadata({
            ".Farmer Name": "Siti",
            "cooperative": "KUD Maju",
            "survey_date": "2024-03-01",
        })
        assert metadata["farmer_name"] == "Siti"
        assert metadata["aggregator_name"] == "KUD Maju"
        assert metadata["mapping_date"] == "2024-03-01"
        assert metadata["plot_name"] is None


# ==============================================================================
# Normalization
# ==============================================================================


class TestNormalize:
    """Tests for GeometryNormalizerEngine.normalize."""

    def test_sample_collection(self, engine, sample_collection):
        result = engine.normalize(sample_collection, source_name="sample.geojson")
        assert [p.plot_id for p in result.plots] == ["P-001", "F-77", "feat-3"]
        assert result.total_features == 3
        assert result.rejected_count == 0
        assert result.warning is None
        assert result.plots[0].country == "Indonesia"
        assert result.plots[2].country == "unknown"

    def test_geodesic_area_used_without_declared_area(self, engine):
        result = engine.normalize(make_feature(plot_id="A"))
        plot = result.plots[0]
        assert plot.declared_area_hectares is None
        assert plot.area_hectares == pytest.approx(
            geodesic_area_ha(square(CLEAR_LON, CLEAR_LAT)),
        )

    def test_declared_area_wins(self, engine):
        result = engine.normalize(make_feature(plot_id="A", **{".Plot size": "3.25 Ha"}))
        assert result.plots[0].area_hectares == pytest.approx(3.25)
        assert result.plots[0].declared_area_hectares == pytest.approx(3.25)

    def test_z_coordinates_stripped(self, engine):
        result = engine.normalize(make_feature(square(CLEAR_LON, CLEAR_LAT, z=55.0), plot_id="A"))
        for position in result.plots[0].geometry["coordinates"][0]:
            assert len(position) == 2

    def test_unclosed_ring_closed(self, engine):
        ring = square(CLEAR_LON, CLEAR_LAT)["coordinates"][0][:-1]
        result = engine.normalize(make_feature({"type": "Polygon", "coordinates": [ring]}, plot_id="A"))
        coords = result.plots[0].geometry["coordinates"][0]
        assert coords[0] == coords[-1]
        closed = [i for i in result.issues if i.code == "closed_ring"]
        assert closed and closed[0].severity == IssueSeverity.INFO

    def test_id_synthesis_is_deterministic(self, engine):
        """The same upload yields the same synthesized ids."""
        raw = collection(make_feature(), make_feature(square(CLEAR_LON + 0.01, CLEAR_LAT)))
        first = [p.plot_id for p in engine.normalize(raw).plots]
        second = [p.plot_id for p in engine.normalize(raw).plots]
        assert first == second == ["PLOT_001", "PLOT_002"]
        assert engine.normalize(raw).synthesized_ids == ["PLOT_001", "PLOT_002"]

    def test_synthesized_ids_follow_original_position(self, engine):
        """A rejected feature does not shift the ids of later features."""
        raw = collection(
            make_feature(plot_id="A"),
            {"type": "Feature", "properties": {}, "geometry": None},
            make_feature(square(CLEAR_LON + 0.01, CLEAR_LAT)),
        )
        result = engine.normalize(raw)
        assert [p.plot_id for p in result.plots] == ["A", "PLOT_003"]

    def test_duplicate_ids_kept_with_warning(self, engine):
        raw = collection(
            make_feature(plot_id="DUP"),
            make_feature(square(CLEAR_LON + 0.01, CLEAR_LAT), plot_id="DUP"),
        )
        result = engine.normalize(raw)
        assert len(result.plots) == 2
        assert result.duplicate_ids == ["DUP"]
        duplicate = [i for i in result.issues if i.code == "duplicate_id"]
        assert duplicate[0].severity == IssueSeverity.WARNING
        assert duplicate[0].feature_index == 1

    def test_unsupported_geometry_rejected(self, engine):
        raw = collection(
            make_feature(plot_id="A"),
            make_feature({"type": "Point", "coordinates": [CLEAR_LON, CLEAR_LAT]}, plot_id="B"),
        )
        result = engine.normalize(raw)
        assert [p.plot_id for p in result.plots] == ["A"]
        rejected = [i for i in result.issues if i.excludes_feature]
        assert rejected[0].code == "unsupported_geometry"
        assert rejected[0].plot_id == "B"

    def test_degenerate_ring_rejected(self, engine):
        line = {"type": "Polygon", "coordinates": [[
            [CLEAR_LON, CLEAR_LAT], [CLEAR_LON + 0.01, CLEAR_LAT], [CLEAR_LON, CLEAR_LAT],
        ]]}
        raw = collection(make_feature(plot_id="A"), make_feature(line, plot_id="B"))
        codes = [i.code for i in engine.normalize(raw).issues]
        assert "degenerate_ring" in codes

    def test_out_of_range_coordinates_rejected(self, engine):
        raw = collection(
            make_feature(plot_id="A"),
            make_feature(square(200.0, 10.0), plot_id="B"),
        )
        codes = [i.code for i in engine.normalize(raw).issues]
        assert "invalid_coordinates" in codes

    def test_self_intersection_rejected_by_default(self, engine):
        raw = collection(make_feature(plot_id="A"), make_feature(BOWTIE, plot_id="BOW"))
        result = engine.normalize(raw)
        assert [p.plot_id for p in result.plots] == ["A"]
        assert any(i.code == "invalid_geometry" for i in result.issues)

    def test_self_intersection_repaired_when_enabled(self):
        engine = GeometryNormalizerEngine(config=PlotAnalysisConfig(repair_invalid_geometry=True))
        result = engine.normalize(make_feature(BOWTIE, plot_id="BOW"))
        assert result.plots[0].geometry["type"] in ("Polygon", "MultiPolygon")
        assert any(i.code == "repaired_geometry" for i in result.issues)

    def test_polygon_geometry_collection_becomes_multipolygon(self, engine):
        geometry = {
            "type": "GeometryCollection",
            "geometries": [
                square(CLEAR_LON, CLEAR_LAT),
                square(CLEAR_LON + 0.01, CLEAR_LAT),
            ],
        }
        result = engine.normalize(make_feature(geometry, plot_id="GC"))
        assert result.plots[0].geometry["type"] == "MultiPolygon"
        assert len(result.plots[0].geometry["coordinates"]) == 2

    def test_mixed_upload(self, engine):
        """Missing id, 3-D polygon and two-point ring in one collection."""
        two_point = {"type": "Polygon", "coordinates": [[
            [CLEAR_LON, CLEAR_LAT], [CLEAR_LON + 0.01, CLEAR_LAT],
        ]]}
        raw = collection(
            make_feature(country="Indonesia"),
            make_feature(square(CLEAR_LON + 0.01, CLEAR_LAT, z=10.0), plot_id="Z-1"),
            make_feature(two_point, plot_id="LINE"),
        )
        result = engine.normalize(raw)

        assert [p.plot_id for p in result.plots] == ["PLOT_001", "Z-1"]
        assert result.plots[0].id_synthesized
        assert all(len(pos) == 2 for pos in result.plots[1].geometry["coordinates"][0])
        assert result.rejected_count == 1

        errors = [i for i in result.issues if i.severity == IssueSeverity.ERROR]
        assert len(errors) == 1
        assert errors[0].code == "degenerate_ring"
        assert errors[0].plot_id == "LINE"
        assert errors[0].feature_index == 2

    def test_majority_failure_warns(self, engine):
        raw = collection(
            make_feature(plot_id="A"),
            {"type": "Feature", "properties": {"plot_id": "B"}},
            {"type": "Feature", "properties": {"plot_id": "C"}, "geometry": None},
        )
        result = engine.normalize(raw)
        assert len(result.plots) == 1
        assert result.rejected_count == 2
        assert result.warning is not None

    def test_all_failed_raises_with_issues(self, engine):
        raw = collection(
            {"type": "Feature", "properties": {"plot_id": "B"}},
            {"type": "Polygon"},
        )
        with pytest.raises(NoValidFeaturesError) as exc_info:
            engine.normalize(raw)
        codes = [i.code for i in exc_info.value.issues]
        assert codes == ["missing_geometry", "invalid_feature"]
        assert exc_info.value.to_dict()["issues"][0]["plot_id"] == "B"

    def test_original_properties_preserved(self, engine):
        result = engine.normalize(make_feature(plot_id="A", crop="cocoa"))
        assert result.plots[0].properties["crop"] == "cocoa"

    def test_provenance_recorded(self, engine, sample_collection):
        engine.normalize(sample_collection, source_name="sample.geojson")
        chain = engine.provenance.get_chain("sample.geojson")
        assert chain[0]["entity_type"] == "normalization"

    def test_counters(self, engine, sample_collection):
        engine.normalize(sample_collection)
        assert engine.normalization_count == 1
        assert engine.plots_normalized == 3
        assert engine.features_rejected == 0


class TestNormalizeGeometry:
    """Tests for single-geometry normalization used by boundary edits."""

    def test_returns_geodesic_area(self, engine):
        geometry, area, notices = engine.normalize_geometry(square(CLEAR_LON, CLEAR_LAT, z=1.0))
        assert len(geometry["coordinates"][0][0]) == 2
        assert area == pytest.approx(geodesic_area_ha(square(CLEAR_LON, CLEAR_LAT)))
        assert notices == []

    def test_invalid_geometry_raises(self, engine):
        with pytest.raises(StructuralInputError):
            engine.normalize_geometry({"type": "Point", "coordinates": [0.0, 0.0]})
