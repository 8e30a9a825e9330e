# -*- coding: utf-8 -*-
"""Tests for KML to GeoJSON conversion.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import pytest

from plotrisk.plot_analysis.exceptions import StructuralInputError
from plotrisk.plot_analysis.geometry_normalizer import GeometryNormalizerEngine
from plotrisk.plot_analysis.kml_reader import KmlReader, parse_coordinates


KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark id="pm-1">
      <name>Kebun Sari</name>
      <ExtendedData>
        <Data name="plot_id"><value>KS-01</value></Data>
        <Data name="country"><value>Indonesia</value></Data>
      </ExtendedData>
      <Polygon>
        <outerBoundaryIs><LinearRing><coordinates>
          106.80,-6.20,10 106.801,-6.20,10 106.801,-6.199,10 106.80,-6.199,10 106.80,-6.20,10
        </coordinates></LinearRing></outerBoundaryIs>
      </Polygon>
    </Placemark>
    <Placemark>
      <name>Two parcels</name>
      <MultiGeometry>
        <Polygon><outerBoundaryIs><LinearRing><coordinates>
          106.81,-6.20 106.811,-6.20 106.811,-6.199 106.81,-6.20
        </coordinates></LinearRing></outerBoundaryIs></Polygon>
        <Polygon><outerBoundaryIs><LinearRing><coordinates>
          106.82,-6.20 106.821,-6.20 106.821,-6.199 106.82,-6.20
        </coordinates></LinearRing></outerBoundaryIs></Polygon>
      </MultiGeometry>
    </Placemark>
    <Placemark>
      <name>Well</name>
      <Point><coordinates>106.83,-6.20</coordinates></Point>
    </Placemark>
  </Document>
</kml>
"""


class TestKmlReader:
    """Tests for KmlReader."""

    def test_placemarks_become_features(self):
        collection = KmlReader().to_feature_collection(KML)
        assert collection["type"] == "FeatureCollection"
        assert len(collection["features"]) == 3

    def test_extended_data_and_name(self):
        feature = KmlReader().to_feature_collection(KML)["features"][0]
        assert feature["id"] == "pm-1"
        assert feature["properties"]["plot_id"] == "KS-01"
        assert feature["properties"]["Name"] == "Kebun Sari"
        assert feature["geometry"]["type"] == "Polygon"
        assert feature["geometry"]["coordinates"][0][0] == [106.80, -6.20, 10.0]

    def test_multigeometry_becomes_multipolygon(self):
        feature = KmlReader().to_feature_collection(KML)["features"][1]
        assert feature["geometry"]["type"] == "MultiPolygon"
        assert len(feature["geometry"]["coordinates"]) == 2

    def test_point_kept_for_normalizer(self):
        feature = KmlReader().to_feature_collection(KML)["features"][2]
        assert feature["geometry"] == {"type": "Point", "coordinates": [106.83, -6.20]}

    def test_malformed_xml_rejected(self):
        with pytest.raises(StructuralInputError):
            KmlReader().to_feature_collection("<kml><Placemark>")

    def test_non_kml_root_rejected(self):
        with pytest.raises(StructuralInputError):
            KmlReader().to_feature_collection("<gpx></gpx>")

    def test_parse_coordinates(self):
        assert parse_coordinates(" 1,2,3\n4,5 ") == [[1.0, 2.0, 3.0], [4.0, 5.0]]
        assert parse_coordinates(None) == []
        with pytest.raises(StructuralInputError):
            parse_coordinates("1,x")


class TestKmlUpload:
    """KML files flow through the same normalizer as GeoJSON."""

    def test_kml_normalized(self, config):
        engine = GeometryNormalizerEngine(config=config)
        parsed = engine.parse_content(KML, "plots.kml")
        result = engine.normalize(parsed, source_name="plots.kml")

        assert [p.plot_id for p in result.plots] == ["KS-01", "Two parcels"]
        assert result.rejected_count == 1
        assert result.plots[0].plot_name == "Kebun Sari"
        assert result.plots[0].country == "Indonesia"
        assert len(result.plots[0].geometry["coordinates"][0][0]) == 2
