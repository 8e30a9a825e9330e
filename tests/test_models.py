# -*- coding: utf-8 -*-
"""Tests for plot analysis data models.

Covers:
- Numeric coercion at the boundary
- DatasetLoss thresholds and flags
- ClassifiedPlot wire shape in both directions
- ViewportBounds validation
- Upload response body

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import math

import pytest
from pydantic import ValidationError

from plotrisk.plot_analysis.models import (
    ClassifiedPlot,
    ComplianceStatus,
    DatasetLoss,
    LossTier,
    NormalizedPlot,
    RiskLevel,
    UploadResult,
    UploadSummary,
    ViewportBounds,
    coerce_area,
    coerce_number,
)


class TestCoercion:
    """Tests for coerce_number and coerce_area."""

    @pytest.mark.parametrize("value,expected", [
        (None, 0.0),
        ("", 0.0),
        ("  ", 0.0),
        ("abc", 0.0),
        (True, 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
        ("0.25", 0.25),
        (" 3 ", 3.0),
        (7, 7.0),
        ([1], 0.0),
    ])
    def test_coerce_number(self, value, expected):
        assert coerce_number(value) == expected

    def test_coerce_area_clamps_negative(self):
        assert coerce_area("-2.5") == 0.0
        assert coerce_area(1.5) == 1.5

    def test_plot_area_coerced(self):
        plot = NormalizedPlot(plot_id="P", area_hectares="1.25", declared_area_hectares="")
        assert plot.area_hectares == 1.25
        assert plot.declared_area_hectares == 0.0


class TestDatasetLoss:
    """Tests for DatasetLoss."""

    def test_below_threshold_is_low(self):
        loss = DatasetLoss.from_area(0.001)
        assert loss.status == RiskLevel.LOW
        assert loss.tier == LossTier.NONE
        assert loss.flag == "FALSE"

    def test_marginal_and_significant(self):
        assert DatasetLoss.from_area(0.005).tier == LossTier.MARGINAL
        assert DatasetLoss.from_area(0.01).tier == LossTier.SIGNIFICANT
        assert DatasetLoss.from_area("0.5").flag == "TRUE"

    def test_unknown(self):
        loss = DatasetLoss.unknown()
        assert not loss.is_known
        assert not loss.has_loss
        assert loss.flag == "UNKNOWN"


class TestClassifiedPlotWireShape:
    """Tests for to_api_dict/from_api_dict."""

    def test_to_api_dict(self, classified_plots):
        wire = classified_plots[0].to_api_dict()
        assert wire["plotId"] == "P-01"
        assert wire["overallRisk"] == "HIGH"
        assert wire["complianceStatus"] == "NON-COMPLIANT"
        assert wire["gfwLoss"] == "TRUE"
        assert wire["gfwLossArea"] == pytest.approx(0.5)
        assert wire["highRiskDatasets"] == ["gfw"]

    def test_round_trip(self, classified_plots):
        plot = classified_plots[0]
        restored = ClassifiedPlot.from_api_dict(plot.to_api_dict())
        assert restored.model_dump() == plot.model_dump()

    def test_string_and_blank_loss_areas(self):
        plot = ClassifiedPlot.from_api_dict({
            "plotId": "X-1",
            "gfwLoss": "TRUE", "gfwLossArea": "0.004",
            "jrcLoss": "FALSE", "jrcLossArea": "",
            "sbtnLossArea": None,
        })
        assert plot.loss_for("gfw").area_hectares == pytest.approx(0.004)
        assert plot.loss_for("gfw").tier == LossTier.MARGINAL
        assert plot.loss_for("jrc").status == RiskLevel.LOW
        assert plot.loss_for("sbtn").status == RiskLevel.UNKNOWN
        assert plot.country == "unknown"
        assert plot.compliance_status == ComplianceStatus.UNKNOWN

    def test_missing_data_flag(self, classified_plots):
        assert not classified_plots[0].has_missing_data
        partial = classified_plots[0].model_copy(update={"wdpa_status": "UNKNOWN"})
        assert partial.has_missing_data


class TestViewportBounds:
    """Tests for ViewportBounds validation."""

    def test_valid(self):
        bounds = ViewportBounds(west="101", south=0, east=102, north=1)
        assert bounds.as_tuple() == (101.0, 0.0, 102.0, 1.0)
        assert bounds.area_deg2 == pytest.approx(1.0)

    @pytest.mark.parametrize("fields", [
        {"west": 2, "south": 0, "east": 1, "north": 1},
        {"west": 0, "south": 1, "east": 1, "north": 0},
        {"west": None, "south": 0, "east": 1, "north": 1},
        {"west": "", "south": 0, "east": 1, "north": 1},
        {"west": math.nan, "south": 0, "east": 1, "north": 1},
        {"west": -200, "south": 0, "east": 1, "north": 1},
        {"south": 0, "east": 1, "north": 1},
    ])
    def test_invalid(self, fields):
        with pytest.raises(ValidationError):
            ViewportBounds(**fields)

    def test_buffered_clipped(self):
        bounds = ViewportBounds(west=-179.8, south=89.0, east=-179.0, north=89.5)
        assert bounds.buffered(1.0).as_tuple() == (-180.0, 88.0, -178.0, 90.0)

    def test_cache_key_rounds(self):
        a = ViewportBounds(west=1.000001, south=0, east=2, north=1)
        b = ViewportBounds(west=1.000002, south=0, east=2, north=1)
        assert a.cache_key() == b.cache_key()


class TestUploadResult:
    """Tests for the upload response body."""

    def test_response_merges_properties(self, classified_plots):
        plot = classified_plots[0].model_copy(update={"properties": {"Farmer": "Siti"}})
        result = UploadResult(
            summary=UploadSummary(filename="plots.geojson", session_token="tok"),
            plots=[plot],
        )
        body = result.to_response()

        assert body["type"] == "FeatureCollection"
        properties = body["features"][0]["properties"]
        assert properties["Farmer"] == "Siti"
        assert properties["overallRisk"] == "HIGH"
        assert "geometry" not in properties
        assert body["sessionToken"] == "tok"
        assert body["summary"]["filename"] == "plots.geojson"
