# -*- coding: utf-8 -*-
"""
Overlay Fallback Loader Engine

Loads map overlay layers through an ordered chain of data-source
strategies per layer. The first strategy that yields at least one feature
wins; a strategy that yields nothing hands over to the next one, except
the last, whose empty answer is a valid terminal result. A strategy that
raises or times out always hands over.

Features:
    - Independent per-layer state machine:
      unloaded -> loading -> loaded-primary | loaded-fallback | failed
    - Per-layer attempt log (strategy, outcome, feature count, error)
    - Per-layer asyncio.Lock; one layer's failure or slowness never
      touches another
    - Oversized viewports replaced by the strategy's default extent
    - Viewport cache reused when a layer is toggled back on
    - Strategies: WFS GeoJSON query, GeoJSON endpoint (bbox buffered,
      feature limit), tile footprint, bundled static dataset

Example:
    >>> from plotrisk.plot_analysis.overlay_loader import OverlayLoaderEngine
    >>> loader = OverlayLoaderEngine()
    >>> result = await loader.load("peatland", ViewportBounds(
    ...     west=100.0, south=-1.0, east=103.0, north=2.0))
    >>> result.state, len(result.features)

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from plotrisk.connectors.errors import (
    ConnectorConfigError,
    ConnectorValidationError,
    classify_connector_error,
)
from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.fallback_datasets import (
    BASE_LAYERS,
    TILE_TEMPLATES,
    filter_by_bounds,
    sample_features,
)
from plotrisk.plot_analysis.metrics import (
    record_overlay_fallback,
    record_overlay_load,
    record_processing_error,
)
from plotrisk.plot_analysis.models import (
    LayerResult,
    LayerSource,
    LayerState,
    StrategyAttempt,
    ViewportBounds,
)

logger = logging.getLogger(__name__)

PEATLAND_DATA_LAYER = "peatland-data"

_CACHE_ENTRIES_PER_LAYER = 8


# =============================================================================
# Strategies
# =============================================================================


class OverlayStrategy(ABC):
    """One data source in a layer's fallback chain.

    Attributes:
        name: Strategy name used in the attempt log.
        max_extent_deg2: Viewport area above which ``default_extent`` is
            queried instead; None disables the substitution.
        default_extent: Extent used for oversized or missing viewports.
    """

    name: str = "strategy"

    def __init__(
        self,
        max_extent_deg2: Optional[float] = None,
        default_extent: Optional[Tuple[float, float, float, float]] = None,
    ) -> None:
        self.max_extent_deg2 = max_extent_deg2
        self.default_extent = default_extent

    def effective_bounds(self, bounds: Optional[ViewportBounds]) -> Optional[ViewportBounds]:
        """Bounds this strategy actually queries."""
        default = (
            ViewportBounds.from_tuple(self.default_extent)
            if self.default_extent is not None else None
        )
        if bounds is None:
            return default
        if (
            default is not None
            and self.max_extent_deg2 is not None
            and bounds.area_deg2 > self.max_extent_deg2
        ):
            logger.debug(
                "%s: viewport %.1f deg2 exceeds %.1f, using default extent",
                self.name, bounds.area_deg2, self.max_extent_deg2,
            )
            return default
        return bounds

    @abstractmethod
    async def fetch(self, bounds: Optional[ViewportBounds]) -> List[Dict[str, Any]]:
        """Return GeoJSON features for the bounds (may be empty)."""

    async def close(self) -> None:
        """Release network resources."""


class GeoJsonEndpointStrategy(OverlayStrategy):
    """GET a GeoJSON FeatureCollection from an endpoint taking a bbox.

    Args:
        url: Endpoint URL.
        buffer_deg: Degrees added on every side of the bbox.
        limit: Maximum features requested.
        params: Extra query parameters.
        timeout: HTTP timeout in seconds.
        client: Optional shared httpx.AsyncClient.
    """

    name = "geojson-endpoint"

    def __init__(
        self,
        url: str,
        buffer_deg: float = 0.0,
        limit: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if not url:
            raise ConnectorConfigError("Overlay URL is required", connector=f"overlay/{self.name}")
        self.url = url
        self.buffer_deg = buffer_deg
        self.limit = limit
        self.params = dict(params or {})
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def build_params(self, bounds: Optional[ViewportBounds]) -> Dict[str, Any]:
        params = dict(self.params)
        if bounds is not None:
            if self.buffer_deg:
                bounds = bounds.buffered(self.buffer_deg)
            params["bbox"] = ",".join(f"{v:.6f}" for v in bounds.as_tuple())
        if self.limit is not None:
            params["limit"] = self.limit
        return params

    async def fetch(self, bounds: Optional[ViewportBounds]) -> List[Dict[str, Any]]:
        try:
            response = await self._get_client().get(self.url, params=self.build_params(bounds))
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise classify_connector_error(exc, f"overlay/{self.name}", url=self.url)
        features = _features_of(data, self.name)
        return features[: self.limit] if self.limit else features

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class WfsStrategy(GeoJsonEndpointStrategy):
    """OGC WFS 1.0.0 GetFeature returning GeoJSON (lon/lat axis order)."""

    name = "wfs"

    def __init__(self, url: str, type_name: str, **kwargs: Any) -> None:
        super().__init__(url, **kwargs)
        self.type_name = type_name

    def build_params(self, bounds: Optional[ViewportBounds]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "service": "WFS",
            "version": "1.0.0",
            "request": "GetFeature",
            "typeName": self.type_name,
            "outputFormat": "application/json",
            "srsName": "EPSG:4326",
        }
        if bounds is not None:
            if self.buffer_deg:
                bounds = bounds.buffered(self.buffer_deg)
            params["bbox"] = ",".join(f"{v:.6f}" for v in bounds.as_tuple())
        if self.limit is not None:
            params["maxFeatures"] = self.limit
        params.update(self.params)
        return params


_WEBMERCATOR_LAT_MAX = 85.05112878


def lonlat_to_tile_xy(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """Slippy-map tile column and row holding a lon/lat at ``zoom``."""
    n = 2 ** zoom
    lat_rad = math.radians(max(-_WEBMERCATOR_LAT_MAX, min(_WEBMERCATOR_LAT_MAX, lat)))
    x = int(math.floor((lon + 180.0) / 360.0 * n))
    y = int(math.floor(
        (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    ))
    return max(0, min(x, n - 1)), max(0, min(y, n - 1))


def tile_for_bounds(bounds: Tuple[float, float, float, float]) -> Tuple[int, int, int]:
    """(zoom, x, y) of the tile at the centre of the bounds, at the zoom
    where the bounds span roughly one tile."""
    west, south, east, north = bounds
    span = max(east - west, north - south, 1e-6)
    zoom = int(max(0, min(18, math.floor(math.log2(360.0 / span)))))
    x, y = lonlat_to_tile_xy((west + east) / 2.0, (south + north) / 2.0, zoom)
    return zoom, x, y


class TileFootprintStrategy(OverlayStrategy):
    """Single feature covering the viewport carrying the layer's tile template.

    Lets the map draw the raster tiles of a layer when no vector source
    answered. With ``check_tiles`` on, the tile at the viewport centre (XYZ) or a
    GetMap of the viewport (WMS) is requested first; a failed request or a
    non-image answer hands over to the next strategy. Without it no
    network I/O happens.

    Args:
        layer: Layer name.
        template: Tile template; defaults to TILE_TEMPLATES[layer].
        check_tiles: Request one tile before answering.
        timeout: HTTP timeout in seconds.
        client: Optional shared httpx.AsyncClient.
    """

    name = "tile-footprint"

    def __init__(
        self,
        layer: str,
        template: Optional[Dict[str, Any]] = None,
        check_tiles: bool = False,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.layer = layer
        self.template = template if template is not None else TILE_TEMPLATES.get(layer)
        self.check_tiles = check_tiles
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def tile_request(self, bounds: Tuple[float, float, float, float]) -> Tuple[str, Optional[Dict[str, Any]]]:
        """URL and query parameters of the tile requested before answering."""
        url = self.template["url"]
        if self.template.get("kind") == "wms":
            return url, {
                "service": "WMS",
                "version": "1.1.1",
                "request": "GetMap",
                "layers": self.template.get("layers", ""),
                "styles": "",
                "srs": "EPSG:4326",
                "bbox": ",".join(f"{v:.6f}" for v in bounds),
                "width": 256,
                "height": 256,
                "format": "image/png",
                "transparent": "true",
            }
        zoom, x, y = tile_for_bounds(bounds)
        tile_url = (
            url.replace("{s}", "a")
            .replace("{z}", str(zoom))
            .replace("{x}", str(x))
            .replace("{y}", str(y))
        )
        return tile_url, None

    async def _check_tile_server(self, bounds: Tuple[float, float, float, float]) -> None:
        url, params = self.tile_request(bounds)
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise classify_connector_error(exc, f"overlay/{self.name}", url=url)
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ConnectorValidationError(
                f"Tile server answered {content_type or 'no content type'} instead of an image",
                connector=f"overlay/{self.name}",
            )

    async def fetch(self, bounds: Optional[ViewportBounds]) -> List[Dict[str, Any]]:
        if not self.template:
            raise ConnectorConfigError(
                f"No tile template for layer {self.layer}",
                connector=f"overlay/{self.name}",
            )
        west, south, east, north = (
            bounds.as_tuple() if bounds is not None else (-180.0, -85.0, 180.0, 85.0)
        )
        if self.check_tiles:
            await self._check_tile_server((west, south, east, north))
        properties = {
            "layer": self.layer,
            "render": "tiles",
            "tile_url": self.template.get("url"),
            "tile_kind": self.template.get("kind", "xyz"),
            "attribution": self.template.get("attribution"),
        }
        if self.template.get("layers"):
            properties["wms_layers"] = self.template["layers"]
        return [{
            "type": "Feature",
            "properties": properties,
            "geometry": {
                "type": "Polygon",
                "coordinates": [[
                    [west, south], [east, south], [east, north],
                    [west, north], [west, south],
                ]],
            },
        }]

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class StaticDatasetStrategy(OverlayStrategy):
    """Bundled GeoJSON features filtered to the viewport."""

    name = "bundled-sample"

    def __init__(self, features: Sequence[Dict[str, Any]], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.features = list(features)

    async def fetch(self, bounds: Optional[ViewportBounds]) -> List[Dict[str, Any]]:
        return filter_by_bounds(self.features, bounds.as_tuple() if bounds else None)


def _features_of(data: Any, strategy: str) -> List[Dict[str, Any]]:
    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise ConnectorValidationError(
            "Response is not a GeoJSON FeatureCollection",
            connector=f"overlay/{strategy}",
        )
    return [
        feature for feature in data["features"]
        if isinstance(feature, dict) and feature.get("geometry")
    ]


def _source_for(position: int, chain_length: int) -> LayerSource:
    if position == 0:
        return LayerSource.PRIMARY
    if position == chain_length - 1:
        return LayerSource.STATIC_FALLBACK
    return LayerSource.SECONDARY


# ---------------------------------------------------------------------------
# Default chains
# ---------------------------------------------------------------------------


def build_default_chains(
    config: Any = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, List[OverlayStrategy]]:
    """Build the strategy chain of every known layer from configuration.

    Chains:
        wdpa: WFS query -> tile footprint -> bundled sample
        peatland: GeoJSON endpoint -> tile footprint -> bundled sample
        gfw/jrc/sbtn: vector query -> tile footprint -> bundled sample
        peatland-data: GeoJSON endpoint -> bundled sample (vector only)
        osm/satellite/terrain: tile footprint

    Tile footprints request one tile from their server unless ``use_mock`` is on, so
    a dead server hands over to the bundled sample.

    Args:
        config: Optional PlotAnalysisConfig. Uses global config if None.
        client: Optional httpx.AsyncClient shared by every network strategy.
    """
    cfg = config or get_config()
    extent = cfg.default_extent_bounds
    viewport = {"max_extent_deg2": cfg.overlay_max_extent_deg2, "default_extent": extent}
    timeout = cfg.overlay_timeout_seconds
    network = {"timeout": timeout, "client": client}

    def _tiles(layer: str) -> TileFootprintStrategy:
        return TileFootprintStrategy(layer, check_tiles=not cfg.use_mock, **network)

    def _peatland_endpoint() -> List[OverlayStrategy]:
        if not cfg.peatland_overlay_url:
            return []
        return [GeoJsonEndpointStrategy(
            cfg.peatland_overlay_url, buffer_deg=0.5, limit=500,
            **network, **viewport,
        )]

    chains: Dict[str, List[OverlayStrategy]] = {}

    wdpa: List[OverlayStrategy] = []
    if cfg.wdpa_wfs_url:
        wdpa.append(WfsStrategy(
            cfg.wdpa_wfs_url, "Koltiva-Internal:wdpa", limit=1000,
            **network, **viewport,
        ))
    chains["wdpa"] = wdpa + [
        _tiles("wdpa"),
        StaticDatasetStrategy(sample_features("wdpa"), **viewport),
    ]

    chains["peatland"] = _peatland_endpoint() + [
        _tiles("peatland"),
        StaticDatasetStrategy(sample_features("peatland"), **viewport),
    ]
    chains[PEATLAND_DATA_LAYER] = _peatland_endpoint() + [
        StaticDatasetStrategy(sample_features("peatland"), **viewport),
    ]

    for dataset in ("gfw", "jrc", "sbtn"):
        chain: List[OverlayStrategy] = []
        if cfg.loss_overlay_url:
            chain.append(GeoJsonEndpointStrategy(
                cfg.loss_overlay_url, params={"dataset": dataset}, limit=1000,
                **network, **viewport,
            ))
        chains[dataset] = chain + [
            _tiles(dataset),
            StaticDatasetStrategy(sample_features(dataset), **viewport),
        ]

    for base in sorted(BASE_LAYERS):
        chains[base] = [_tiles(base)]
    return chains


# =============================================================================
# OverlayLoaderEngine
# =============================================================================


class _LayerSlot:
    """Mutable per-layer state; touched only under the slot's lock."""

    def __init__(self, layer: str, strategies: List[OverlayStrategy]) -> None:
        self.layer = layer
        self.strategies = strategies
        self.state = LayerState.UNLOADED
        self.trying: Optional[int] = None
        self.enabled = False
        self.result: Optional[LayerResult] = None
        self.attempts: List[StrategyAttempt] = []
        self.cache: "OrderedDict[Tuple[float, ...], LayerResult]" = OrderedDict()
        self.lock = asyncio.Lock()


class OverlayLoaderEngine:
    """Loads overlay layers through per-layer fallback chains.

    Attributes:
        config: PlotAnalysisConfig instance.
        provenance: Optional ProvenanceTracker.
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        chains: Optional[Dict[str, List[OverlayStrategy]]] = None,
    ) -> None:
        """Initialize OverlayLoaderEngine.

        Args:
            config: Optional PlotAnalysisConfig. Uses global config if None.
            provenance: Optional ProvenanceTracker for audit trails.
            chains: Strategy chain per layer; defaults to
                build_default_chains(config).
        """
        self.config = config or get_config()
        self.provenance = provenance
        self._slots: Dict[str, _LayerSlot] = {}
        for layer, strategies in (chains if chains is not None else build_default_chains(self.config)).items():
            self.register_layer(layer, strategies)

        self._load_count: int = 0
        self._fallback_count: int = 0
        self._failure_count: int = 0
        logger.info("OverlayLoaderEngine initialized: layers=%s", sorted(self._slots))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_layer(self, layer: str, strategies: Sequence[OverlayStrategy]) -> None:
        """Register (or replace) the strategy chain of a layer."""
        if not strategies:
            raise ValueError(f"Layer {layer} needs at least one strategy")
        self._slots[layer] = _LayerSlot(layer, list(strategies))

    @property
    def layers(self) -> List[str]:
        return sorted(self._slots)

    def _slot(self, layer: str) -> _LayerSlot:
        try:
            return self._slots[layer]
        except KeyError:
            raise KeyError(f"Unknown overlay layer: {layer}")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, layer: str, bounds: Optional[ViewportBounds] = None) -> LayerResult:
        """Run the layer's chain for the viewport.

        Args:
            layer: Layer name.
            bounds: Viewport; None queries each strategy's default extent.

        Returns:
            LayerResult; ``available`` is False only when every strategy
            raised.

        Raises:
            KeyError: If the layer is unknown.
        """
        slot = self._slot(layer)
        async with slot.lock:
            result = await self._run_chain(slot, bounds)
            slot.result = result
            slot.enabled = True
            if result.available and bounds is not None:
                slot.cache[bounds.cache_key()] = result
                slot.cache.move_to_end(bounds.cache_key())
                while len(slot.cache) > _CACHE_ENTRIES_PER_LAYER:
                    slot.cache.popitem(last=False)
            return result

    async def toggle(
        self,
        layer: str,
        enabled: bool,
        bounds: Optional[ViewportBounds] = None,
    ) -> Optional[LayerResult]:
        """Turn a layer on or off.

        Off releases the loaded features and returns None. On reuses the
        cached result for the same viewport without querying, else loads.
        """
        slot = self._slot(layer)
        if not enabled:
            async with slot.lock:
                slot.enabled = False
                slot.result = None
                slot.trying = None
                slot.state = LayerState.UNLOADED
            logger.debug("Overlay %s toggled off", layer)
            return None

        if bounds is not None:
            async with slot.lock:
                cached = slot.cache.get(bounds.cache_key())
                if cached is not None:
                    slot.cache.move_to_end(bounds.cache_key())
                    slot.enabled = True
                    slot.state = cached.state
                    slot.result = cached.model_copy(update={"from_cache": True})
                    record_overlay_load(layer, "cache")
                    logger.debug("Overlay %s served from cache", layer)
                    return slot.result
        return await self.load(layer, bounds)

    def release(self, layer: str) -> None:
        """Drop the layer's loaded result and cache."""
        slot = self._slot(layer)
        slot.result = None
        slot.cache.clear()
        slot.state = LayerState.UNLOADED
        slot.enabled = False

    async def _run_chain(self, slot: _LayerSlot, bounds: Optional[ViewportBounds]) -> LayerResult:
        layer = slot.layer
        chain = slot.strategies
        attempts: List[StrategyAttempt] = []
        slot.attempts = attempts
        slot.state = LayerState.LOADING
        started = time.monotonic()
        empty_success: Optional[LayerResult] = None

        for position, strategy in enumerate(chain):
            slot.trying = position
            source = _source_for(position, len(chain))
            effective = strategy.effective_bounds(bounds)
            t0 = time.monotonic()
            try:
                features = await asyncio.wait_for(
                    strategy.fetch(effective), timeout=self.config.overlay_timeout_seconds,
                )
            except asyncio.TimeoutError:
                attempts.append(StrategyAttempt(
                    strategy=strategy.name, source=source, outcome="error",
                    error=f"timed out after {self.config.overlay_timeout_seconds}s",
                    duration_ms=(time.monotonic() - t0) * 1000.0,
                ))
                self._note_fallthrough(layer, strategy, "timeout")
                continue
            except Exception as exc:
                error = classify_connector_error(exc, f"overlay/{strategy.name}")
                attempts.append(StrategyAttempt(
                    strategy=strategy.name, source=source, outcome="error",
                    error=error.message, duration_ms=(time.monotonic() - t0) * 1000.0,
                ))
                self._note_fallthrough(layer, strategy, type(error).__name__)
                continue

            features = list(features or [])
            is_last = position == len(chain) - 1
            attempts.append(StrategyAttempt(
                strategy=strategy.name, source=source,
                outcome="loaded" if features else "empty",
                feature_count=len(features),
                duration_ms=(time.monotonic() - t0) * 1000.0,
            ))
            state = LayerState.LOADED_PRIMARY if position == 0 else LayerState.LOADED_FALLBACK
            result = LayerResult(
                layer=layer,
                available=True,
                source=source,
                state=state,
                features=features,
                bounds=effective.as_tuple() if effective is not None else None,
                attempts=attempts,
            )
            if features or is_last:
                return self._finish(slot, result, started)
            if empty_success is None:
                empty_success = result
            logger.debug("Overlay %s: %s returned no features", layer, strategy.name)
            record_overlay_fallback(layer, strategy.name)
            self._fallback_count += 1

        slot.trying = None
        if empty_success is not None:
            return self._finish(
                slot, empty_success.model_copy(update={"attempts": attempts}), started,
            )

        slot.state = LayerState.FAILED
        self._failure_count += 1
        record_overlay_load(layer, "unavailable", time.monotonic() - started)
        record_processing_error("overlay_loader", "layer_unavailable")
        logger.warning(
            "Overlay %s unavailable: all %d strategies failed", layer, len(chain),
        )
        return LayerResult.unavailable(
            layer, attempts, bounds.as_tuple() if bounds is not None else None,
        )

    def _finish(self, slot: _LayerSlot, result: LayerResult, started: float) -> LayerResult:
        slot.state = result.state
        slot.trying = None
        self._load_count += 1
        record_overlay_load(slot.layer, result.source.value, time.monotonic() - started)
        if result.source != LayerSource.PRIMARY:
            logger.warning(
                "Overlay %s loaded from %s (%d features)",
                slot.layer, result.source.value, len(result.features),
            )
        else:
            logger.info("Overlay %s loaded (%d features)", slot.layer, len(result.features))
        if self.provenance is not None:
            self.provenance.record(
                "overlay", slot.layer, "load",
                self.provenance.build_hash({
                    "source": result.source.value,
                    "bounds": result.bounds,
                    "features": len(result.features),
                }),
            )
        return result

    def _note_fallthrough(self, layer: str, strategy: OverlayStrategy, reason: str) -> None:
        self._fallback_count += 1
        record_overlay_fallback(layer, strategy.name)
        logger.warning("Overlay %s: strategy %s failed (%s)", layer, strategy.name, reason)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def state(self, layer: str) -> LayerState:
        """Current state of a layer."""
        return self._slot(layer).state

    def trying(self, layer: str) -> Optional[int]:
        """Position of the strategy being tried while loading."""
        return self._slot(layer).trying

    def is_enabled(self, layer: str) -> bool:
        return self._slot(layer).enabled

    def current_result(self, layer: str) -> Optional[LayerResult]:
        return self._slot(layer).result

    def attempt_log(self, layer: str) -> List[StrategyAttempt]:
        """Attempts of the layer's most recent load."""
        return list(self._slot(layer).attempts)

    def states(self) -> Dict[str, str]:
        return {layer: slot.state.value for layer, slot in sorted(self._slots.items())}

    async def close(self) -> None:
        """Close every strategy's network resources."""
        for slot in self._slots.values():
            for strategy in slot.strategies:
                await strategy.close()

    @property
    def load_count(self) -> int:
        return self._load_count

    @property
    def fallback_count(self) -> int:
        """Strategies that fell through to the next one."""
        return self._fallback_count

    @property
    def failure_count(self) -> int:
        return self._failure_count


__all__ = [
    "OverlayLoaderEngine",
    "OverlayStrategy",
    "GeoJsonEndpointStrategy",
    "WfsStrategy",
    "TileFootprintStrategy",
    "StaticDatasetStrategy",
    "build_default_chains",
    "PEATLAND_DATA_LAYER",
]
