# -*- coding: utf-8 -*-
"""
Bundled Fallback Datasets

Static GeoJSON samples used as the terminal strategy of every overlay
chain and by the offline overlap oracles, plus the tile templates of the
raster layers.

Datasets:
    - PEATLAND_FEATURES: Indonesian peat hydrological units (Riau, Jambi,
      Central/West Kalimantan, South/North Sumatra, Papua)
    - WDPA_FEATURES: protected-area sample for Sumatra and Kalimantan
    - LOSS_FEATURES: forest-loss alert samples keyed by dataset
    - TILE_TEMPLATES: XYZ/WMS templates per layer

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple


def _box(west: float, south: float, east: float, north: float) -> Dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [[
            [west, south],
            [east, south],
            [east, north],
            [west, north],
            [west, south],
        ]],
    }


def _peat(
    kubah: str,
    ekosistem: str,
    province: str,
    kabupaten: str,
    kecamatan: str,
    area_ha: float,
    box: Tuple[float, float, float, float],
) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {
            "Kubah_GBT": kubah,
            "Ekosistem": ekosistem,
            "Province": province,
            "Kabupaten": kabupaten,
            "Kecamatan": kecamatan,
            "Area_Ha": area_ha,
        },
        "geometry": _box(*box),
    }


# ---------------------------------------------------------------------------
# Peatland
# ---------------------------------------------------------------------------

PEATLAND_FEATURES: List[Dict[str, Any]] = [
    _peat("Kubah Gambut", "Hutan Rawa Gambut", "Riau", "Pelalawan",
          "Kerumutan", 25420.5, (100.0, -0.5, 102.0, 1.5)),
    _peat("Non Kubah Gambut", "Perkebunan Gambut", "Jambi", "Muaro Jambi",
          "Kumpeh Ulu", 18750.2, (102.0, -2.2, 104.5, -0.2)),
    _peat("Kubah Gambut", "Hutan Lindung Gambut", "Kalimantan Tengah",
          "Palangka Raya", "Sebangau", 32150.8, (112.5, -3.0, 115.5, -0.2)),
    _peat("Non Kubah Gambut", "Pertanian Gambut", "Sumatra Selatan",
          "Ogan Komering Ilir", "Mesuji Makmur", 6420.3, (104.0, -3.0, 105.5, -2.0)),
    _peat("Kubah Gambut", "Hutan Rawa Gambut", "Kalimantan Barat", "Ketapang",
          "Kendawangan", 12800.7, (109.0, -2.0, 111.0, -0.5)),
    _peat("Non Kubah Gambut", "Hutan Gambut Tropis", "Papua", "Merauke",
          "Kimaam", 9340.2, (140.0, -8.0, 141.0, -7.0)),
    _peat("Kubah Gambut", "Hutan Lindung Gambut", "Sumatra Utara",
          "Labuhan Batu", "Panai Hulu", 7890.5, (99.0, 1.5, 100.5, 2.5)),
]


# ---------------------------------------------------------------------------
# Protected areas
# ---------------------------------------------------------------------------

WDPA_FEATURES: List[Dict[str, Any]] = [
    {
        "type": "Feature",
        "properties": {
            "WDPAID": 1801, "NAME": "Tesso Nilo", "DESIG_ENG": "National Park",
            "IUCN_CAT": "II", "ISO3": "IDN", "REP_AREA": 838.5,
        },
        "geometry": _box(101.55, -0.35, 102.05, 0.05),
    },
    {
        "type": "Feature",
        "properties": {
            "WDPAID": 1792, "NAME": "Bukit Tigapuluh", "DESIG_ENG": "National Park",
            "IUCN_CAT": "II", "ISO3": "IDN", "REP_AREA": 1443.2,
        },
        "geometry": _box(102.2, -1.3, 102.8, -0.8),
    },
    {
        "type": "Feature",
        "properties": {
            "WDPAID": 1793, "NAME": "Sebangau", "DESIG_ENG": "National Park",
            "IUCN_CAT": "II", "ISO3": "IDN", "REP_AREA": 5687.3,
        },
        "geometry": _box(113.4, -2.9, 114.0, -2.0),
    },
    {
        "type": "Feature",
        "properties": {
            "WDPAID": 1816, "NAME": "Gunung Leuser", "DESIG_ENG": "National Park",
            "IUCN_CAT": "II", "ISO3": "IDN", "REP_AREA": 7927.0,
        },
        "geometry": _box(96.8, 2.9, 98.3, 4.2),
    },
]


# ---------------------------------------------------------------------------
# Forest-loss alerts
# ---------------------------------------------------------------------------

LOSS_FEATURES: Dict[str, List[Dict[str, Any]]] = {
    "gfw": [
        {
            "type": "Feature",
            "properties": {"dataset": "gfw", "loss_year": 2022, "loss_ha": 42.7},
            "geometry": _box(101.62, 0.41, 101.68, 0.46),
        },
        {
            "type": "Feature",
            "properties": {"dataset": "gfw", "loss_year": 2023, "loss_ha": 18.3},
            "geometry": _box(113.81, -1.62, 113.85, -1.58),
        },
    ],
    "jrc": [
        {
            "type": "Feature",
            "properties": {"dataset": "jrc", "forest_2020": False, "loss_ha": 35.1},
            "geometry": _box(101.63, 0.40, 101.69, 0.45),
        },
    ],
    "sbtn": [
        {
            "type": "Feature",
            "properties": {"dataset": "sbtn", "natural_land_2020": True, "loss_ha": 27.9},
            "geometry": _box(102.31, -1.02, 102.36, -0.98),
        },
    ],
}


# ---------------------------------------------------------------------------
# Tile templates
# ---------------------------------------------------------------------------

TILE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "gfw": {
        "kind": "xyz",
        "url": (
            "https://tiles.globalforestwatch.org/umd_tree_cover_loss/v1.12/"
            "dynamic/{z}/{x}/{y}.png?start_year=2021&end_year=2024"
            "&tree_cover_density_threshold=30&render_type=true_color"
        ),
        "attribution": "Hansen/UMD/Google/USGS/NASA via Global Forest Watch",
    },
    "jrc": {
        "kind": "wms",
        "url": "https://ies-ows.jrc.ec.europa.eu/iforce/gfc2020/wms.py",
        "layers": "gfc2020_v2",
        "attribution": "European Commission JRC GFC2020",
    },
    "sbtn": {
        "kind": "xyz",
        "url": (
            "https://gis-development.koltivaapi.com/data/v1/gee/tiles/"
            "sbtn_deforestation/{z}/{x}/{y}"
        ),
        "attribution": "SBTN Natural Lands Map",
    },
    "wdpa": {
        "kind": "wms",
        "url": "https://geoserver.koltivaapi.com/geoserver/Koltiva-Internal/wms",
        "layers": "Koltiva-Internal:wdpa",
        "attribution": "UNEP-WCMC and IUCN, Protected Planet",
    },
    "peatland": {
        "kind": "wms",
        "url": "https://geoserver.koltivaapi.com/geoserver/Koltiva-Internal/wms",
        "layers": "Koltiva-Internal:peatland_idn",
        "attribution": "KLHK Peat Hydrological Units",
    },
    "osm": {
        "kind": "xyz",
        "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": "OpenStreetMap contributors",
    },
    "satellite": {
        "kind": "xyz",
        "url": (
            "https://server.arcgisonline.com/ArcGIS/rest/services/"
            "World_Imagery/MapServer/tile/{z}/{y}/{x}"
        ),
        "attribution": "Esri World Imagery",
    },
    "terrain": {
        "kind": "xyz",
        "url": "https://{s}.tile.opentopomap.org/{z}/{x}/{y}.png",
        "attribution": "OpenTopoMap (CC-BY-SA)",
    },
}

BASE_LAYERS = frozenset({"osm", "satellite", "terrain"})


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------


def _feature_bbox(feature: Dict[str, Any]) -> Optional[Tuple[float, float, float, float]]:
    geometry = feature.get("geometry") or {}
    coords: List[Any] = []

    def _walk(node: Any) -> None:
        if node and isinstance(node[0], (int, float)):
            coords.append(node)
        else:
            for item in node or []:
                _walk(item)

    _walk(geometry.get("coordinates"))
    if not coords:
        return None
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    return (min(xs), min(ys), max(xs), max(ys))


def filter_by_bounds(
    features: List[Dict[str, Any]],
    bounds: Optional[Tuple[float, float, float, float]] = None,
) -> List[Dict[str, Any]]:
    """Return deep copies of features whose bbox intersects ``bounds``.

    Args:
        features: GeoJSON features.
        bounds: (west, south, east, north); None returns every feature.
    """
    if bounds is None:
        return copy.deepcopy(features)
    west, south, east, north = bounds
    selected = []
    for feature in features:
        bbox = _feature_bbox(feature)
        if bbox is None:
            continue
        min_x, min_y, max_x, max_y = bbox
        if max_x < west or min_x > east or max_y < south or min_y > north:
            continue
        selected.append(copy.deepcopy(feature))
    return selected


def sample_features(layer: str) -> List[Dict[str, Any]]:
    """Return the bundled sample features of a layer (empty if none)."""
    if layer == "peatland":
        return PEATLAND_FEATURES
    if layer == "wdpa":
        return WDPA_FEATURES
    return LOSS_FEATURES.get(layer, [])


__all__ = [
    "PEATLAND_FEATURES",
    "WDPA_FEATURES",
    "LOSS_FEATURES",
    "TILE_TEMPLATES",
    "BASE_LAYERS",
    "filter_by_bounds",
    "sample_features",
]
