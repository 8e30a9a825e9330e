# -*- coding: utf-8 -*-
"""
Geometry Normalizer Engine

Turns an uploaded GeoJSON Feature or FeatureCollection into a list of
immutable NormalizedPlot records plus a list of per-feature issues.

Features:
    - Auto-wraps a bare Feature into a FeatureCollection
    - Structural rejection of non-collections, missing or empty features
    - Recursive, idempotent elevation (Z) stripping for every geometry type
    - Ring closing, distinct-vertex check and shapely validity check
    - Optional make_valid repair for self-intersecting polygons
    - Ordered field-resolution tables for plot id, country, declared area
      and descriptive metadata, applied once here so that no downstream
      component inspects raw producer aliases
    - Deterministic PLOT_NNN id synthesis from feature position
    - Geodesic area in hectares via pyproj.Geod on the WGS84 ellipsoid
    - Duplicate ids tolerated and surfaced as issues
    - Graceful degradation: warning when more than half the features fail,
      terminal error only when all fail

Example:
    >>> from plotrisk.plot_analysis.geometry_normalizer import GeometryNormalizerEngine
    >>> engine = GeometryNormalizerEngine()
    >>> result = engine.normalize({"type": "Feature", "properties": {}, "geometry": {
    ...     "type": "Polygon",
    ...     "coordinates": [[[101.0, 0.0], [101.01, 0.0], [101.01, 0.01], [101.0, 0.0]]],
    ... }})
    >>> result.plots[0].plot_id
    'PLOT_001'

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import math
import numbers
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pyproj import Geod
from shapely import make_valid
from shapely.geometry import mapping, shape
from shapely.ops import unary_union
from shapely.validation import explain_validity

from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.exceptions import (
    NoValidFeaturesError,
    PayloadTooLargeError,
    StructuralInputError,
)
from plotrisk.plot_analysis.models import (
    IssueSeverity,
    NormalizationIssue,
    NormalizationResult,
    NormalizedPlot,
    coerce_number,
)
from plotrisk.plot_analysis.metrics import record_features, record_processing_error

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field resolution tables
# ---------------------------------------------------------------------------

# (location, key) pairs tried in order; location is "properties" or "feature"
ID_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("properties", "plot_id"),
    ("properties", "id"),
    ("feature", "id"),
    ("properties", ".Farmers ID"),
    ("properties", "farmer_id"),
    ("properties", "Name"),
)

COUNTRY_FIELDS: Tuple[str, ...] = ("country_name", "country")

AREA_FIELDS: Tuple[str, ...] = (
    ".Plot size",
    "area_ha",
    "total_area_hectares",
    "area",
    "Plot_Size",
)

METADATA_FIELDS: Dict[str, Tuple[str, ...]] = {
    "farmer_name": (".Farmer Name", "farmer_name", "grower_name"),
    "aggregator_name": (".Aggregator Name", "aggregator", "cooperative"),
    "mapping_date": (".Mapping date", "mapping_date", "survey_date"),
    "plot_name": ("Name", "name"),
}

UNKNOWN_COUNTRY = "unknown"

POLYGONAL_TYPES = frozenset({"Polygon", "MultiPolygon"})

_SQM_PER_HECTARE = 10_000.0

_AREA_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")

_GEOD = Geod(ellps="WGS84")


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------


def _is_position(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and isinstance(value[0], numbers.Real)
        and not isinstance(value[0], bool)
    )


def _strip_coordinates(coords: Any) -> Any:
    if _is_position(coords):
        return list(coords[:2])
    if isinstance(coords, (list, tuple)):
        return [_strip_coordinates(item) for item in coords]
    return coords


def strip_z(geometry: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop the third coordinate from every position of a geometry.

    Recurses through GeometryCollection members. Applying it to an
    already 2-D geometry returns an equal geometry.

    Args:
        geometry: GeoJSON geometry mapping (or None).

    Returns:
        A new geometry mapping with 2-D positions.
    """
    if not isinstance(geometry, dict):
        return geometry
    stripped = dict(geometry)
    if geometry.get("type") == "GeometryCollection":
        stripped["geometries"] = [
            strip_z(member) for member in geometry.get("geometries") or []
        ]
        return stripped
    if "coordinates" in geometry:
        stripped["coordinates"] = _strip_coordinates(geometry["coordinates"])
    return stripped


def _to_lists(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_to_lists(item) for item in value]
    return value


def geodesic_area_ha(geometry: Dict[str, Any]) -> float:
    """Geodesic area of a polygonal GeoJSON geometry in hectares."""
    area_m2, _ = _GEOD.geometry_area_perimeter(shape(geometry))
    return abs(area_m2) / _SQM_PER_HECTARE


class _FeatureRejected(Exception):
    """Internal signal carrying the issue code for a rejected feature."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _clean_ring(ring: Any, notices: List[Tuple[str, str]]) -> List[List[float]]:
    if not isinstance(ring, (list, tuple)) or not ring:
        raise _FeatureRejected("invalid_coordinates", "Ring is not a list of positions")

    cleaned: List[List[float]] = []
    for position in ring:
        if not _is_position(position) or len(position) < 2:
            raise _FeatureRejected(
                "invalid_coordinates", f"Unparseable position {position!r}",
            )
        try:
            x, y = float(position[0]), float(position[1])
        except (TypeError, ValueError):
            raise _FeatureRejected(
                "invalid_coordinates", f"Unparseable position {position!r}",
            )
        if not (math.isfinite(x) and math.isfinite(y)):
            raise _FeatureRejected("invalid_coordinates", "Non-finite coordinate")
        if not (-180.0 <= x <= 180.0 and -90.0 <= y <= 90.0):
            raise _FeatureRejected(
                "invalid_coordinates",
                f"Coordinate ({x}, {y}) outside WGS84 bounds",
            )
        cleaned.append([x, y])

    if cleaned[0] != cleaned[-1]:
        cleaned.append(list(cleaned[0]))
        notices.append(("closed_ring", "Unclosed ring was closed"))

    distinct = {tuple(p) for p in cleaned}
    if len(distinct) < 3:
        raise _FeatureRejected(
            "degenerate_ring",
            f"Ring has {len(distinct)} distinct vertices, at least 3 required",
        )
    return cleaned


def _clean_polygon(rings: Any, notices: List[Tuple[str, str]]) -> List[List[List[float]]]:
    if not isinstance(rings, (list, tuple)) or not rings:
        raise _FeatureRejected("invalid_coordinates", "Polygon has no rings")
    return [_clean_ring(ring, notices) for ring in rings]


def _collection_to_multipolygon(geometry: Dict[str, Any]) -> Dict[str, Any]:
    members = geometry.get("geometries") or []
    polygons: List[Any] = []
    for member in members:
        member_type = (member or {}).get("type")
        if member_type == "Polygon":
            polygons.append(member.get("coordinates"))
        elif member_type == "MultiPolygon":
            polygons.extend(member.get("coordinates") or [])
        elif member_type == "GeometryCollection":
            nested = _collection_to_multipolygon(member)
            polygons.extend(nested["coordinates"])
        else:
            raise _FeatureRejected(
                "unsupported_geometry",
                f"GeometryCollection member {member_type!r} is not polygonal",
            )
    if not polygons:
        raise _FeatureRejected("unsupported_geometry", "Empty GeometryCollection")
    return {"type": "MultiPolygon", "coordinates": polygons}


def _polygonal_part(geom: Any) -> Any:
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    if geom.geom_type == "GeometryCollection":
        parts = [g for g in geom.geoms if g.geom_type in POLYGONAL_TYPES]
        if parts:
            return unary_union(parts)
    return None


# ---------------------------------------------------------------------------
# Field resolution helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def resolve_plot_id(feature: Dict[str, Any], index: int) -> Tuple[str, bool]:
    """Resolve the canonical plot id of a feature.

    Args:
        feature: GeoJSON feature mapping.
        index: 0-based position of the feature in the submission.

    Returns:
        Tuple of (plot_id, synthesized).
    """
    properties = feature.get("properties") or {}
    for location, key in ID_FIELDS:
        source = properties if location == "properties" else feature
        value = _text(source.get(key))
        if value is not None:
            return value, False
    return f"PLOT_{index + 1:03d}", True


def resolve_country(properties: Dict[str, Any]) -> str:
    """Resolve the country of a feature, defaulting to ``"unknown"``."""
    for key in COUNTRY_FIELDS:
        value = _text(properties.get(key))
        if value is not None and value.lower() != UNKNOWN_COUNTRY:
            return value
    return UNKNOWN_COUNTRY


def resolve_declared_area(properties: Dict[str, Any]) -> Optional[float]:
    """Parse the producer-declared plot area in hectares, if any.

    Accepts plain numbers and strings such as ``"0.50 Ha"``.
    """
    for key in AREA_FIELDS:
        raw = properties.get(key)
        if raw is None or raw == "":
            continue
        if isinstance(raw, str):
            match = _AREA_PATTERN.search(raw)
            area = coerce_number(match.group(1)) if match else 0.0
        else:
            area = coerce_number(raw)
        if area > 0:
            return area
    return None


def resolve_metadata(properties: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Resolve descriptive metadata fields from producer aliases."""
    resolved: Dict[str, Optional[str]] = {}
    for field_name, keys in METADATA_FIELDS.items():
        resolved[field_name] = None
        for key in keys:
            value = _text(properties.get(key))
            if value is not None:
                resolved[field_name] = value
                break
    return resolved


# =============================================================================
# GeometryNormalizerEngine
# =============================================================================


class GeometryNormalizerEngine:
    """Normalizes uploaded plot boundaries into NormalizedPlot records.

    Attributes:
        config: PlotAnalysisConfig instance.
        provenance: Optional ProvenanceTracker.

    Example:
        >>> engine = GeometryNormalizerEngine()
        >>> result = engine.normalize(feature_collection)
        >>> print(len(result.plots), len(result.issues))
    """

    def __init__(self, config: Any = None, provenance: Any = None) -> None:
        """Initialize GeometryNormalizerEngine.

        Args:
            config: Optional PlotAnalysisConfig. Uses global config if None.
            provenance: Optional ProvenanceTracker for audit trails.
        """
        self.config = config or get_config()
        self.provenance = provenance
        self._normalization_count: int = 0
        self._plots_normalized: int = 0
        self._features_rejected: int = 0
        logger.info(
            "GeometryNormalizerEngine initialized: max_features=%d, repair=%s",
            self.config.max_features, self.config.repair_invalid_geometry,
        )

    # ------------------------------------------------------------------
    # Input parsing
    # ------------------------------------------------------------------

    def parse_collection(self, raw: Any) -> Dict[str, Any]:
        """Parse and structurally validate raw input into a FeatureCollection.

        Args:
            raw: JSON text or an already-parsed mapping.

        Returns:
            FeatureCollection mapping with a non-empty features list.

        Raises:
            StructuralInputError: If the input is not a usable collection.
            PayloadTooLargeError: If there are more features than allowed.
        """
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8-sig")
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise StructuralInputError(
                    "Failed to parse GeoJSON file", str(exc),
                )

        if not isinstance(raw, dict):
            raise StructuralInputError("Invalid GeoJSON: root must be an object")

        geo_type = raw.get("type")
        if geo_type == "Feature":
            logger.debug("Wrapping bare Feature into a FeatureCollection")
            raw = {"type": "FeatureCollection", "features": [raw]}
        elif geo_type != "FeatureCollection":
            raise StructuralInputError(
                f"Invalid GeoJSON: expected FeatureCollection, got {geo_type}",
            )

        features = raw.get("features")
        if not isinstance(features, list):
            raise StructuralInputError(
                "Invalid GeoJSON: missing or invalid features array",
                f"Features is {type(features).__name__}, expected array",
            )
        if not features:
            raise StructuralInputError("Invalid GeoJSON: features array is empty")
        if len(features) > self.config.max_features:
            raise PayloadTooLargeError(
                "Too many features",
                f"Feature count: {len(features)} exceeds "
                f"{self.config.max_features} limit",
            )
        return raw

    def read_file(self, path: Any) -> Dict[str, Any]:
        """Read a .geojson, .json or .kml file into a FeatureCollection.

        Args:
            path: File path.

        Returns:
            Parsed FeatureCollection mapping (not yet normalized).

        Raises:
            StructuralInputError: If the extension is unsupported.
        """
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8-sig")
        return self.parse_content(text, file_path.name)

    def parse_content(self, content: Any, filename: str = "") -> Dict[str, Any]:
        """Parse uploaded content, dispatching on the file extension.

        Args:
            content: File text or parsed mapping.
            filename: Original filename; ``.kml`` selects the KML reader.

        Returns:
            Structurally valid FeatureCollection mapping.
        """
        suffix = Path(filename).suffix.lower() if filename else ""
        if suffix == ".kml":
            from plotrisk.plot_analysis.kml_reader import KmlReader
            if not isinstance(content, str):
                raise StructuralInputError(
                    "Invalid KML", "KML content must be text",
                )
            return self.parse_collection(KmlReader().to_feature_collection(content))
        if suffix and suffix not in (".geojson", ".json"):
            raise StructuralInputError(
                "Unsupported file format",
                f"'{suffix}' is not one of .geojson, .json, .kml",
            )
        return self.parse_collection(content)

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, raw: Any, source_name: str = "") -> NormalizationResult:
        """Normalize a Feature or FeatureCollection into plots and issues.

        Args:
            raw: JSON text, a Feature or a FeatureCollection.
            source_name: Optional label (e.g. filename) for logs and provenance.

        Returns:
            NormalizationResult with the surviving plots.

        Raises:
            StructuralInputError: On structural problems (no partial result).
            NoValidFeaturesError: If every feature was rejected.
        """
        collection = self.parse_collection(raw)
        features = collection["features"]

        plots: List[NormalizedPlot] = []
        issues: List[NormalizationIssue] = []
        seen_ids: Dict[str, int] = {}
        rejected = 0

        for index, feature in enumerate(features):
            plot, feature_issues = self._normalize_feature(feature, index)
            if plot is None:
                rejected += 1
                issues.extend(feature_issues)
                continue

            if plot.id_synthesized:
                feature_issues.append(NormalizationIssue(
                    feature_index=index,
                    plot_id=plot.plot_id,
                    code="synthesized_id",
                    severity=IssueSeverity.INFO,
                    message=f"No identifier found; generated {plot.plot_id}",
                ))
            if plot.plot_id in seen_ids:
                feature_issues.append(NormalizationIssue(
                    feature_index=index,
                    plot_id=plot.plot_id,
                    code="duplicate_id",
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Plot id {plot.plot_id} already used by feature "
                        f"{seen_ids[plot.plot_id] + 1}"
                    ),
                ))
            else:
                seen_ids[plot.plot_id] = index

            issues.extend(feature_issues)
            plots.append(plot)

        total = len(features)
        self._normalization_count += 1
        self._plots_normalized += len(plots)
        self._features_rejected += rejected
        record_features("normalized", len(plots))
        record_features("rejected", rejected)

        if not plots:
            record_processing_error("normalizer", "no_valid_features")
            logger.warning(
                "All %d features of %s failed normalization", total,
                source_name or "upload",
            )
            raise NoValidFeaturesError(
                "No valid features found after processing",
                "All features were either invalid or missing required "
                "properties (geometry, plot ID)",
                issues=issues,
            )

        warning = None
        if rejected * 2 > total:
            warning = (
                f"{rejected} of {total} features failed validation; "
                f"continuing with {len(plots)} valid plots"
            )
            logger.warning("Normalization of %s: %s", source_name or "upload", warning)

        result = NormalizationResult(
            plots=plots,
            issues=issues,
            total_features=total,
            rejected_count=rejected,
            warning=warning,
        )

        if self.provenance is not None:
            self.provenance.record(
                "normalization",
                source_name or f"upload-{self._normalization_count}",
                "normalize",
                self.provenance.build_hash({
                    "plot_ids": [p.plot_id for p in plots],
                    "rejected": rejected,
                }),
            )

        logger.info(
            "Normalized %s: %d/%d features kept, %d issues",
            source_name or "upload", len(plots), total, len(issues),
        )
        return result

    def normalize_geometry(
        self,
        geometry: Any,
    ) -> Tuple[Dict[str, Any], float, List[Tuple[str, str]]]:
        """Normalize a single geometry (used when a plot boundary is edited).

        Args:
            geometry: GeoJSON geometry mapping.

        Returns:
            Tuple of (2-D geometry, geodesic area in hectares, notices).

        Raises:
            StructuralInputError: If the geometry is rejected.
        """
        try:
            return self._clean_geometry(geometry)
        except _FeatureRejected as exc:
            record_processing_error("normalizer", exc.code)
            raise StructuralInputError("Invalid geometry", exc.message)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _normalize_feature(
        self,
        feature: Any,
        index: int,
    ) -> Tuple[Optional[NormalizedPlot], List[NormalizationIssue]]:
        if not isinstance(feature, dict) or feature.get("type") != "Feature":
            found = feature.get("type") if isinstance(feature, dict) else type(feature).__name__
            return None, [NormalizationIssue(
                feature_index=index,
                code="invalid_feature",
                message=f"Expected type 'Feature', got {found!r}",
            )]

        properties = feature.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        plot_id, synthesized = resolve_plot_id(
            {**feature, "properties": properties}, index,
        )

        if not feature.get("geometry"):
            return None, [NormalizationIssue(
                feature_index=index,
                plot_id=plot_id,
                code="missing_geometry",
                message="Feature has no geometry",
            )]

        try:
            geometry, geodesic_area, notices = self._clean_geometry(feature["geometry"])
        except _FeatureRejected as exc:
            logger.debug("Feature %d (%s) rejected: %s", index + 1, plot_id, exc.message)
            return None, [NormalizationIssue(
                feature_index=index,
                plot_id=plot_id,
                code=exc.code,
                message=exc.message,
            )]

        issues = [
            NormalizationIssue(
                feature_index=index,
                plot_id=plot_id,
                code=code,
                severity=(
                    IssueSeverity.WARNING if code == "repaired_geometry"
                    else IssueSeverity.INFO
                ),
                message=message,
            )
            for code, message in notices
        ]

        declared = resolve_declared_area(properties)
        plot = NormalizedPlot(
            plot_id=plot_id,
            country=resolve_country(properties),
            geometry=geometry,
            area_hectares=declared if declared is not None else geodesic_area,
            id_synthesized=synthesized,
            feature_index=index,
            declared_area_hectares=declared,
            properties=properties,
            **resolve_metadata(properties),
        )
        return plot, issues

    def _clean_geometry(
        self,
        geometry: Any,
    ) -> Tuple[Dict[str, Any], float, List[Tuple[str, str]]]:
        if not isinstance(geometry, dict) or "type" not in geometry:
            raise _FeatureRejected("invalid_coordinates", "Geometry is not a GeoJSON object")

        geometry = strip_z(geometry)
        if geometry["type"] == "GeometryCollection":
            geometry = _collection_to_multipolygon(geometry)

        geo_type = geometry["type"]
        if geo_type not in POLYGONAL_TYPES:
            raise _FeatureRejected(
                "unsupported_geometry",
                f"Geometry type {geo_type!r} is not Polygon or MultiPolygon",
            )

        notices: List[Tuple[str, str]] = []
        coordinates = geometry.get("coordinates")
        if geo_type == "Polygon":
            cleaned: Any = _clean_polygon(coordinates, notices)
        else:
            if not isinstance(coordinates, (list, tuple)) or not coordinates:
                raise _FeatureRejected("invalid_coordinates", "MultiPolygon has no polygons")
            cleaned = [_clean_polygon(polygon, notices) for polygon in coordinates]

        normalized = {"type": geo_type, "coordinates": cleaned}
        geom = shape(normalized)
        if not geom.is_valid:
            reason = explain_validity(geom)
            if not self.config.repair_invalid_geometry:
                raise _FeatureRejected("invalid_geometry", f"Invalid geometry: {reason}")
            repaired = _polygonal_part(make_valid(geom))
            if repaired is None or repaired.is_empty:
                raise _FeatureRejected(
                    "invalid_geometry", f"Geometry could not be repaired: {reason}",
                )
            normalized = _to_lists(mapping(repaired))
            normalized = {"type": normalized["type"], "coordinates": normalized["coordinates"]}
            geom = repaired
            notices.append(("repaired_geometry", f"Repaired invalid geometry: {reason}"))

        if geom.is_empty:
            raise _FeatureRejected("degenerate_ring", "Geometry is empty")

        return normalized, geodesic_area_ha(normalized), notices

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def normalization_count(self) -> int:
        """Number of normalize() calls that produced a result."""
        return self._normalization_count

    @property
    def plots_normalized(self) -> int:
        return self._plots_normalized

    @property
    def features_rejected(self) -> int:
        return self._features_rejected


__all__ = [
    "GeometryNormalizerEngine",
    "ID_FIELDS",
    "COUNTRY_FIELDS",
    "AREA_FIELDS",
    "METADATA_FIELDS",
    "strip_z",
    "geodesic_area_ha",
    "resolve_plot_id",
    "resolve_country",
    "resolve_declared_area",
    "resolve_metadata",
]
