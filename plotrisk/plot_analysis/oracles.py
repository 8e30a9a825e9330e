# -*- coding: utf-8 -*-
"""
Dataset Oracles

Interfaces and implementations of the external datasets the risk
classifier consults for every plot. Oracles are opaque: the classifier
only sees a loss reading or an overlap area, or an exception.

Loss oracles (gfw, jrc, sbtn):
    - HttpLossOracle: posts the plot geometry to an analysis endpoint and
      reads either a fractional loss rate (``<dataset>_loss_area``) or a
      loss area in hectares (``loss_area_ha``)
    - GfwDataApiLossOracle: queries the Global Forest Watch data API
      ``umd_tree_cover_loss`` dataset with SQL and sums
      ``umd_tree_cover_loss__ha`` for years after the 2020 cut-off
    - MockLossOracle: deterministic loss rates derived from the plot id

Overlap oracles (wdpa, peatland):
    - HttpOverlapOracle: posts the plot geometry, reads
      ``intersection_area_ha``
    - StaticOverlapOracle: intersects the plot with a bundled feature set
      using shapely and geodesic area

HTTP failures are classified into the ``plotrisk.connectors.errors``
taxonomy before they propagate.

Example:
    >>> from plotrisk.plot_analysis.oracles import build_default_oracles
    >>> loss_oracles, overlap_oracles = build_default_oracles(config)
    >>> reading = await loss_oracles["gfw"].query(plot)

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from shapely.geometry import mapping, shape
from shapely.ops import unary_union

from plotrisk.connectors.errors import (
    ConnectorConfigError,
    ConnectorValidationError,
    classify_connector_error,
)
from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.fallback_datasets import PEATLAND_FEATURES, WDPA_FEATURES
from plotrisk.plot_analysis.geometry_normalizer import geodesic_area_ha
from plotrisk.plot_analysis.models import (
    LOSS_DATASETS,
    NormalizedPlot,
    coerce_area,
    coerce_number,
)

logger = logging.getLogger(__name__)

# EUDR cut-off: loss after 31 December 2020 counts
EUDR_CUTOFF_YEAR = 2020


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LossReading:
    """What a loss oracle reports for one plot.

    Exactly one of ``area_hectares`` or ``loss_rate`` is normally set; a
    rate is a fraction of the plot area.
    """

    area_hectares: Optional[float] = None
    loss_rate: Optional[float] = None

    def to_hectares(self, plot_area_ha: float) -> float:
        """Resolve the reading into hectares for a plot of the given area."""
        if self.area_hectares is not None:
            return coerce_area(self.area_hectares)
        return coerce_area(coerce_number(self.loss_rate) * coerce_area(plot_area_ha))


# =============================================================================
# Interfaces
# =============================================================================


class LossOracle(ABC):
    """Forest-loss dataset consulted per plot."""

    dataset: str = ""

    @abstractmethod
    async def query(self, plot: NormalizedPlot) -> LossReading:
        """Return the loss reading for a plot.

        Raises:
            ConnectorError: If the dataset cannot be reached or answers
                with something unusable.
        """

    async def close(self) -> None:
        """Release network resources."""


class OverlapOracle(ABC):
    """Legal overlap dataset (protected areas, peatland) consulted per plot."""

    dataset: str = ""

    @abstractmethod
    async def query(self, plot: NormalizedPlot) -> float:
        """Return the overlap area between the plot and the dataset in hectares."""

    async def close(self) -> None:
        """Release network resources."""


# ---------------------------------------------------------------------------
# HTTP base
# ---------------------------------------------------------------------------


class _HttpOracleMixin:
    """Shared httpx client handling for HTTP-backed oracles."""

    connector: str = ""
    _client: Optional[httpx.AsyncClient] = None

    def _init_client(
        self,
        base_url: str,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers or {}
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
            )
        return self._client

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._get_client().post(url, json=payload)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise classify_connector_error(exc, self.connector, url=url)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def _plot_payload(plot: NormalizedPlot) -> Dict[str, Any]:
    return {
        "plot_id": plot.plot_id,
        "country": plot.country,
        "area_ha": plot.area_hectares,
        "geometry": plot.geometry,
    }


# =============================================================================
# Loss oracles
# =============================================================================


class HttpLossOracle(_HttpOracleMixin, LossOracle):
    """Loss oracle backed by a JSON analysis endpoint.

    The endpoint receives ``{plot_id, country, area_ha, geometry}`` and
    answers with one of::

        {"gfw_loss": {"gfw_loss_area": 0.012}}     # fraction of plot area
        {"gfw_loss_area": 0.012}                   # fraction of plot area
        {"loss_area_ha": 0.35}                     # hectares
    """

    def __init__(
        self,
        dataset: str,
        endpoint: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not endpoint:
            raise ConnectorConfigError(
                "Endpoint is required", connector=f"oracle/{dataset}",
            )
        self.dataset = dataset
        self.connector = f"oracle/{dataset}"
        self._init_client(endpoint, timeout, client=client)

    async def query(self, plot: NormalizedPlot) -> LossReading:
        data = await self._post_json("", _plot_payload(plot))
        return self.parse_response(data)

    def parse_response(self, data: Any) -> LossReading:
        """Extract a LossReading from an endpoint response."""
        if not isinstance(data, dict):
            raise ConnectorValidationError(
                "Response is not a JSON object", connector=self.connector,
            )
        if "loss_area_ha" in data:
            return LossReading(area_hectares=coerce_area(data["loss_area_ha"]))

        key = f"{self.dataset}_loss_area"
        nested = data.get(f"{self.dataset}_loss")
        if isinstance(nested, dict) and key in nested:
            return LossReading(loss_rate=coerce_number(nested[key]))
        if key in data:
            return LossReading(loss_rate=coerce_number(data[key]))

        raise ConnectorValidationError(
            f"Response carries neither loss_area_ha nor {key}",
            connector=self.connector,
            validation_errors=[{"missing": [key, "loss_area_ha"]}],
        )


class GfwDataApiLossOracle(_HttpOracleMixin, LossOracle):
    """Global Forest Watch data API loss oracle.

    Sums ``umd_tree_cover_loss__ha`` within the plot geometry for loss
    years after the EUDR cut-off.
    """

    dataset = "gfw"
    connector = "oracle/gfw-data-api"

    SQL = (
        "SELECT SUM(umd_tree_cover_loss__ha) AS umd_tree_cover_loss__ha "
        "FROM results WHERE umd_tree_cover_loss__year > {year} "
        "AND umd_tree_cover_density_2000__threshold >= 30"
    )

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://data-api.globalforestwatch.org/dataset",
        version: str = "latest",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ConnectorConfigError(
                "GFW API key is required", connector=self.connector,
            )
        self._version = version
        self._init_client(
            base_url.rstrip("/"),
            timeout,
            headers={"x-api-key": api_key},
            client=client,
        )

    async def query(self, plot: NormalizedPlot) -> LossReading:
        data = await self._post_json(
            f"/umd_tree_cover_loss/{self._version}/query/json",
            {
                "sql": self.SQL.format(year=EUDR_CUTOFF_YEAR),
                "geometry": plot.geometry,
            },
        )
        rows = data.get("data") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise ConnectorValidationError(
                "GFW response has no data array", connector=self.connector,
            )
        total = sum(
            coerce_area(row.get("umd_tree_cover_loss__ha"))
            for row in rows if isinstance(row, dict)
        )
        return LossReading(area_hectares=total)


class MockLossOracle(LossOracle):
    """Deterministic offline loss oracle.

    Roughly one plot in four shows loss for a given dataset; the rate is
    derived from a SHA-256 of ``dataset:plot_id`` so repeated runs agree.
    """

    def __init__(self, dataset: str) -> None:
        self.dataset = dataset

    async def query(self, plot: NormalizedPlot) -> LossReading:
        digest = hashlib.sha256(f"{self.dataset}:{plot.plot_id}".encode("utf-8")).digest()
        if digest[0] % 4 != 0:
            return LossReading(loss_rate=0.0)
        return LossReading(loss_rate=round(digest[1] / 255.0 * 0.05, 6))


# =============================================================================
# Overlap oracles
# =============================================================================


class HttpOverlapOracle(_HttpOracleMixin, OverlapOracle):
    """Overlap oracle backed by a JSON endpoint returning ``intersection_area_ha``."""

    def __init__(
        self,
        dataset: str,
        endpoint: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not endpoint:
            raise ConnectorConfigError(
                "Endpoint is required", connector=f"oracle/{dataset}",
            )
        self.dataset = dataset
        self.connector = f"oracle/{dataset}"
        self._init_client(endpoint, timeout, client=client)

    async def query(self, plot: NormalizedPlot) -> float:
        data = await self._post_json("", _plot_payload(plot))
        if isinstance(data, dict) and isinstance(data.get(self.dataset), dict):
            data = data[self.dataset]
        if not isinstance(data, dict) or "intersection_area_ha" not in data:
            raise ConnectorValidationError(
                "Response carries no intersection_area_ha", connector=self.connector,
            )
        return coerce_area(data["intersection_area_ha"])


class StaticOverlapOracle(OverlapOracle):
    """Overlap oracle over an in-memory feature set.

    Args:
        dataset: Dataset name (wdpa, peatland).
        features: GeoJSON features to intersect against.
    """

    def __init__(self, dataset: str, features: List[Dict[str, Any]]) -> None:
        self.dataset = dataset
        geoms = [shape(f["geometry"]) for f in features if f.get("geometry")]
        self._union = unary_union(geoms) if geoms else None
        logger.debug("StaticOverlapOracle %s: %d features", dataset, len(geoms))

    async def query(self, plot: NormalizedPlot) -> float:
        if self._union is None or not plot.geometry:
            return 0.0
        plot_geom = shape(plot.geometry)
        if not plot_geom.intersects(self._union):
            return 0.0
        intersection = plot_geom.intersection(self._union)
        if intersection.is_empty:
            return 0.0
        return geodesic_area_ha(mapping(intersection))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_default_oracles(
    config: Any = None,
) -> Tuple[Dict[str, LossOracle], Dict[str, OverlapOracle]]:
    """Build the loss and overlap oracles described by the configuration.

    A configured endpoint always wins. Without one, ``use_mock`` selects
    the offline oracles; otherwise GFW falls back to the data API when an
    API key is set. A dataset with no usable source gets no oracle and is
    classified UNKNOWN.

    Returns:
        Tuple of (loss oracles by dataset, overlap oracles by dataset).
    """
    cfg = config or get_config()
    timeout = cfg.oracle_timeout_seconds

    loss: Dict[str, LossOracle] = {}
    endpoints = {
        "gfw": cfg.gfw_endpoint,
        "jrc": cfg.jrc_endpoint,
        "sbtn": cfg.sbtn_endpoint,
    }
    for dataset in LOSS_DATASETS:
        endpoint = endpoints[dataset]
        if endpoint:
            loss[dataset] = HttpLossOracle(dataset, endpoint, timeout=timeout)
        elif dataset == "gfw" and cfg.gfw_api_key and not cfg.use_mock:
            loss[dataset] = GfwDataApiLossOracle(
                cfg.gfw_api_key, base_url=cfg.gfw_data_api_url, timeout=timeout,
            )
        elif cfg.use_mock:
            loss[dataset] = MockLossOracle(dataset)
        else:
            logger.warning("No loss oracle configured for %s", dataset)

    overlap: Dict[str, OverlapOracle] = {}
    if cfg.wdpa_endpoint:
        overlap["wdpa"] = HttpOverlapOracle("wdpa", cfg.wdpa_endpoint, timeout=timeout)
    elif cfg.use_mock:
        overlap["wdpa"] = StaticOverlapOracle("wdpa", WDPA_FEATURES)
    if cfg.peatland_endpoint:
        overlap["peatland"] = HttpOverlapOracle(
            "peatland", cfg.peatland_endpoint, timeout=timeout,
        )
    elif cfg.use_mock:
        overlap["peatland"] = StaticOverlapOracle("peatland", PEATLAND_FEATURES)

    logger.info(
        "Oracles built: loss=%s, overlap=%s",
        {name: type(o).__name__ for name, o in loss.items()},
        {name: type(o).__name__ for name, o in overlap.items()},
    )
    return loss, overlap


__all__ = [
    "EUDR_CUTOFF_YEAR",
    "LossReading",
    "LossOracle",
    "OverlapOracle",
    "HttpLossOracle",
    "GfwDataApiLossOracle",
    "MockLossOracle",
    "HttpOverlapOracle",
    "StaticOverlapOracle",
    "build_default_oracles",
]
