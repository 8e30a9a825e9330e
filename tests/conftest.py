# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures for the plot analysis tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from plotrisk.plot_analysis.config import PlotAnalysisConfig, reset_config, set_config
from plotrisk.plot_analysis.models import NormalizedPlot
from plotrisk.plot_analysis.oracles import LossOracle, LossReading, OverlapOracle
from plotrisk.plot_analysis.risk_classifier import RiskClassifierEngine


# A spot in Java that lies outside every bundled WDPA and peatland polygon
CLEAR_LON = 106.80
CLEAR_LAT = -6.20

# Inside the bundled Tesso Nilo protected area and the Riau peat dome
PROTECTED_LON = 101.80
PROTECTED_LAT = -0.10


def square(lon: float, lat: float, size: float = 0.001, z: Optional[float] = None) -> Dict[str, Any]:
    """Closed square Polygon with its south-west corner at (lon, lat)."""
    ring = [
        [lon, lat], [lon + size, lat], [lon + size, lat + size],
        [lon, lat + size], [lon, lat],
    ]
    if z is not None:
        ring = [p + [z] for p in ring]
    return {"type": "Polygon", "coordinates": [ring]}


def make_feature(
    geometry: Optional[Dict[str, Any]] = None,
    feature_id: Any = None,
    **properties: Any,
) -> Dict[str, Any]:
    feature: Dict[str, Any] = {
        "type": "Feature",
        "properties": properties,
        "geometry": geometry if geometry is not None else square(CLEAR_LON, CLEAR_LAT),
    }
    if feature_id is not None:
        feature["id"] = feature_id
    return feature


def collection(*features: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


class FixedLossOracle(LossOracle):
    """Loss oracle answering a fixed reading, raising, or stalling."""

    def __init__(
        self,
        dataset: str,
        area_ha: Optional[float] = 0.0,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.dataset = dataset
        self.area_ha = area_ha
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.closed = False

    async def query(self, plot: NormalizedPlot) -> LossReading:
        self.calls.append(plot.plot_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LossReading(area_hectares=self.area_ha)

    async def close(self) -> None:
        self.closed = True


class FixedOverlapOracle(OverlapOracle):
    """Overlap oracle answering a fixed area or raising."""

    def __init__(
        self,
        dataset: str,
        area_ha: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.dataset = dataset
        self.area_ha = area_ha
        self.error = error

    async def query(self, plot: NormalizedPlot) -> float:
        if self.error is not None:
            raise self.error
        return self.area_ha


def fixed_oracles(
    gfw: Optional[float] = 0.0,
    jrc: Optional[float] = 0.0,
    sbtn: Optional[float] = 0.0,
    wdpa: Optional[float] = 0.0,
    peatland: Optional[float] = 0.0,
):
    """Build loss and overlap oracles; None makes that oracle fail."""
    failure = ConnectionError("connection refused")
    loss = {
        name: FixedLossOracle(name, area, error=failure if area is None else None)
        for name, area in (("gfw", gfw), ("jrc", jrc), ("sbtn", sbtn))
    }
    overlap = {
        name: FixedOverlapOracle(name, area or 0.0, error=failure if area is None else None)
        for name, area in (("wdpa", wdpa), ("peatland", peatland))
    }
    return loss, overlap


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_config():
    """Give every test a fresh in-memory, offline configuration."""
    reset_config()
    set_config(PlotAnalysisConfig(
        use_mock=True,
        session_dir="",
        oracle_timeout_seconds=1.0,
        overlay_timeout_seconds=1.0,
    ))
    yield
    reset_config()


@pytest.fixture
def config():
    return PlotAnalysisConfig(
        use_mock=True,
        session_dir="",
        oracle_timeout_seconds=1.0,
        overlay_timeout_seconds=1.0,
    )


@pytest.fixture
def sample_collection():
    """Three plots using different supplier id conventions."""
    return collection(
        make_feature(square(CLEAR_LON, CLEAR_LAT), plot_id="P-001", country="Indonesia"),
        make_feature(
            square(CLEAR_LON + 0.01, CLEAR_LAT), **{".Farmers ID": "F-77", "country_name": "Indonesia"}
        ),
        make_feature(square(CLEAR_LON + 0.02, CLEAR_LAT), feature_id="feat-3"),
    )


@pytest.fixture
def normalized_plot():
    return NormalizedPlot(
        plot_id="P-001",
        country="Indonesia",
        geometry=square(CLEAR_LON, CLEAR_LAT),
        area_hectares=1.2,
        feature_index=0,
    )


@pytest.fixture
def make_classifier(config):
    """Factory building a RiskClassifierEngine over fixed oracles."""
    def _make(**areas: Optional[float]) -> RiskClassifierEngine:
        loss, overlap = fixed_oracles(**areas)
        return RiskClassifierEngine(config=config, loss_oracles=loss, overlap_oracles=overlap)
    return _make


@pytest.fixture
def classified_plots(config):
    """Ten classified plots: P-01..P-10, alternating countries and verdicts."""
    classifier = RiskClassifierEngine(
        config=config, loss_oracles={}, overlap_oracles={},
    )
    plots = []
    for i in range(10):
        plot = NormalizedPlot(
            plot_id=f"P-{i + 1:02d}",
            country="Indonesia" if i % 2 == 0 else "Malaysia",
            geometry=square(CLEAR_LON + i * 0.01, CLEAR_LAT),
            area_hectares=float(10 - i),
            feature_index=i,
        )
        gfw = 0.5 if i % 3 == 0 else 0.0
        plots.append(classifier.evaluate(
            plot, {"gfw": gfw, "jrc": 0.0, "sbtn": 0.0}, 0.0, 0.0,
        ))
    return plots
