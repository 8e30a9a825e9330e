# -*- coding: utf-8 -*-
"""Tests for loss and overlap oracles.

HTTP oracles are exercised against ``httpx.MockTransport`` so no network
access is needed.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import json

import httpx
import pytest

from conftest import CLEAR_LAT, CLEAR_LON, PROTECTED_LAT, PROTECTED_LON, square

from plotrisk.connectors.errors import (
    ConnectorAuthError,
    ConnectorConfigError,
    ConnectorServerError,
    ConnectorValidationError,
)
from plotrisk.plot_analysis.config import PlotAnalysisConfig
from plotrisk.plot_analysis.fallback_datasets import PEATLAND_FEATURES, WDPA_FEATURES
from plotrisk.plot_analysis.models import NormalizedPlot
from plotrisk.plot_analysis.oracles import (
    GfwDataApiLossOracle,
    HttpLossOracle,
    HttpOverlapOracle,
    LossReading,
    MockLossOracle,
    StaticOverlapOracle,
    build_default_oracles,
)


def _plot(lon: float = CLEAR_LON, lat: float = CLEAR_LAT, plot_id: str = "P-1") -> NormalizedPlot:
    return NormalizedPlot(
        plot_id=plot_id,
        country="Indonesia",
        geometry=square(lon, lat, size=0.01),
        area_hectares=120.0,
    )


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestLossReading:
    """Tests for LossReading conversion."""

    def test_hectares_win(self):
        assert LossReading(area_hectares=0.4).to_hectares(100.0) == pytest.approx(0.4)

    def test_rate_scaled(self):
        assert LossReading(loss_rate=0.05).to_hectares(10.0) == pytest.approx(0.5)

    def test_empty_reading_is_zero(self):
        assert LossReading().to_hectares(10.0) == 0.0


class TestHttpLossOracle:
    """Tests for HttpLossOracle."""

    @pytest.mark.asyncio
    async def test_posts_plot_and_reads_nested_rate(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"gfw_loss": {"gfw_loss_area": "0.002"}})

        oracle = HttpLossOracle("gfw", "https://oracle.test/gfw", client=_client(handler))
        reading = await oracle.query(_plot())

        assert captured["url"] == "https://oracle.test/gfw"
        assert captured["body"]["plot_id"] == "P-1"
        assert captured["body"]["geometry"]["type"] == "Polygon"
        assert reading.loss_rate == pytest.approx(0.002)

    def test_parse_flat_rate_and_hectares(self):
        oracle = HttpLossOracle("jrc", "https://oracle.test/jrc")
        assert oracle.parse_response({"jrc_loss_area": 0.1}).loss_rate == pytest.approx(0.1)
        assert oracle.parse_response({"loss_area_ha": "1.5"}).area_hectares == pytest.approx(1.5)

    def test_parse_missing_field(self):
        oracle = HttpLossOracle("sbtn", "https://oracle.test/sbtn")
        with pytest.raises(ConnectorValidationError):
            oracle.parse_response({"unexpected": True})

    def test_endpoint_required(self):
        with pytest.raises(ConnectorConfigError):
            HttpLossOracle("gfw", "")

    @pytest.mark.asyncio
    async def test_server_error_classified(self):
        oracle = HttpLossOracle(
            "gfw", "https://oracle.test/gfw",
            client=_client(lambda request: httpx.Response(503, text="down")),
        )
        with pytest.raises(ConnectorServerError) as exc_info:
            await oracle.query(_plot())
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_invalid_json_classified(self):
        oracle = HttpLossOracle(
            "gfw", "https://oracle.test/gfw",
            client=_client(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(ConnectorValidationError):
            await oracle.query(_plot())


class TestGfwDataApiLossOracle:
    """Tests for the GFW data API oracle."""

    @pytest.mark.asyncio
    async def test_sums_loss_rows(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers.get("x-api-key")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [
                {"umd_tree_cover_loss__ha": 0.25},
                {"umd_tree_cover_loss__ha": "0.5"},
            ]})

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), headers={"x-api-key": "secret"},
        )
        oracle = GfwDataApiLossOracle("secret", base_url="https://gfw.test/dataset", client=client)
        reading = await oracle.query(_plot())

        assert reading.area_hectares == pytest.approx(0.75)
        assert captured["url"] == "https://gfw.test/dataset/umd_tree_cover_loss/latest/query/json"
        assert captured["key"] == "secret"
        assert "umd_tree_cover_loss__year > 2020" in captured["body"]["sql"]

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        oracle = GfwDataApiLossOracle(
            "bad", base_url="https://gfw.test/dataset",
            client=_client(lambda request: httpx.Response(401, json={"message": "no"})),
        )
        with pytest.raises(ConnectorAuthError):
            await oracle.query(_plot())

    def test_key_required(self):
        with pytest.raises(ConnectorConfigError):
            GfwDataApiLossOracle("")


class TestMockLossOracle:
    """Tests for the deterministic offline oracle."""

    @pytest.mark.asyncio
    async def test_deterministic(self):
        oracle = MockLossOracle("gfw")
        first = await oracle.query(_plot(plot_id="X-9"))
        second = await oracle.query(_plot(plot_id="X-9"))
        assert first == second

    @pytest.mark.asyncio
    async def test_rate_bounded(self):
        oracle = MockLossOracle("jrc")
        for i in range(40):
            reading = await oracle.query(_plot(plot_id=f"P-{i}"))
            assert 0.0 <= reading.loss_rate <= 0.05


class TestOverlapOracles:
    """Tests for overlap oracles."""

    @pytest.mark.asyncio
    async def test_http_overlap_nested(self):
        oracle = HttpOverlapOracle(
            "wdpa", "https://oracle.test/wdpa",
            client=_client(lambda request: httpx.Response(
                200, json={"wdpa": {"intersection_area_ha": 0.3}},
            )),
        )
        assert await oracle.query(_plot()) == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_http_overlap_missing_field(self):
        oracle = HttpOverlapOracle(
            "peatland", "https://oracle.test/peat",
            client=_client(lambda request: httpx.Response(200, json={})),
        )
        with pytest.raises(ConnectorValidationError):
            await oracle.query(_plot())

    @pytest.mark.asyncio
    async def test_static_overlap_inside(self):
        oracle = StaticOverlapOracle("wdpa", WDPA_FEATURES)
        area = await oracle.query(_plot(PROTECTED_LON, PROTECTED_LAT))
        assert area > 100.0

    @pytest.mark.asyncio
    async def test_static_overlap_outside(self):
        oracle = StaticOverlapOracle("peatland", PEATLAND_FEATURES)
        assert await oracle.query(_plot()) == 0.0


class TestBuildDefaultOracles:
    """Tests for oracle selection from configuration."""

    def test_mock_defaults(self):
        loss, overlap = build_default_oracles(PlotAnalysisConfig(use_mock=True))
        assert all(isinstance(o, MockLossOracle) for o in loss.values())
        assert set(overlap) == {"wdpa", "peatland"}

    def test_endpoint_wins(self):
        loss, _ = build_default_oracles(PlotAnalysisConfig(
            use_mock=True, jrc_endpoint="https://oracle.test/jrc",
        ))
        assert isinstance(loss["jrc"], HttpLossOracle)
        assert isinstance(loss["gfw"], MockLossOracle)

    def test_gfw_data_api_with_key(self):
        loss, _ = build_default_oracles(PlotAnalysisConfig(use_mock=False, gfw_api_key="k"))
        assert isinstance(loss["gfw"], GfwDataApiLossOracle)
        assert "jrc" not in loss
