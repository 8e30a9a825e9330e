# -*- coding: utf-8 -*-
"""
KML Reader

Converts KML ``Placemark`` elements into a GeoJSON FeatureCollection so
that KML uploads flow through the same geometry normalizer as GeoJSON.

Supported:
    - Polygon (outer and inner boundaries)
    - MultiGeometry of polygons (nested MultiGeometry is flattened)
    - ``name`` element -> ``Name`` property
    - ``ExtendedData/Data/value`` and ``ExtendedData/SchemaData/SimpleData``
      attributes -> feature properties
    - KML 2.2 and Google earth namespaces, or no namespace at all

Non-polygonal placemarks (Point, LineString) are emitted with their
geometry so the normalizer can reject them with an issue.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from plotrisk.plot_analysis.exceptions import StructuralInputError

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _descendants(element: ET.Element, name: str) -> List[ET.Element]:
    return [node for node in element.iter() if _local(node.tag) == name]


def parse_coordinates(text: Optional[str]) -> List[List[float]]:
    """Parse a KML ``coordinates`` string (``lon,lat[,alt]`` tuples).

    Altitude is kept here; the normalizer strips it.

    Raises:
        StructuralInputError: If a tuple is not numeric.
    """
    positions: List[List[float]] = []
    for token in (text or "").split():
        parts = token.split(",")
        try:
            positions.append([float(part) for part in parts if part != ""])
        except ValueError:
            raise StructuralInputError(
                "Invalid KML", f"Unparseable coordinate tuple {token!r}",
            )
    return positions


class KmlReader:
    """Reads KML documents into GeoJSON FeatureCollections.

    Example:
        >>> reader = KmlReader()
        >>> collection = reader.to_feature_collection(kml_text)
        >>> collection["type"]
        'FeatureCollection'
    """

    def to_feature_collection(self, text: str) -> Dict[str, Any]:
        """Convert KML text into a GeoJSON FeatureCollection.

        Args:
            text: KML document text.

        Returns:
            FeatureCollection with one feature per Placemark.

        Raises:
            StructuralInputError: If the text is not well-formed XML or
                contains no KML root.
        """
        try:
            root = ET.fromstring(text.lstrip("﻿").strip())
        except ET.ParseError as exc:
            raise StructuralInputError("Failed to parse KML file", str(exc))

        if _local(root.tag) != "kml":
            raise StructuralInputError(
                "Invalid KML", f"Root element is <{_local(root.tag)}>, expected <kml>",
            )

        features = [
            self._placemark_to_feature(placemark)
            for placemark in _descendants(root, "Placemark")
        ]
        logger.debug("KML parsed: %d placemarks", len(features))
        return {"type": "FeatureCollection", "features": features}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _placemark_to_feature(self, placemark: ET.Element) -> Dict[str, Any]:
        properties = self._extended_data(placemark)
        name = _child(placemark, "name")
        if name is not None and name.text and name.text.strip():
            properties.setdefault("Name", name.text.strip())

        geometry = None
        for child in placemark:
            geometry = self._geometry(child)
            if geometry is not None:
                break

        feature: Dict[str, Any] = {
            "type": "Feature",
            "properties": properties,
            "geometry": geometry,
        }
        placemark_id = placemark.get("id")
        if placemark_id:
            feature["id"] = placemark_id
        return feature

    def _extended_data(self, placemark: ET.Element) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        extended = _child(placemark, "ExtendedData")
        if extended is None:
            return properties
        for data in _descendants(extended, "Data"):
            key = data.get("name")
            value = _child(data, "value")
            if key:
                properties[key] = value.text if value is not None else None
        for simple in _descendants(extended, "SimpleData"):
            key = simple.get("name")
            if key:
                properties[key] = simple.text
        return properties

    def _geometry(self, element: ET.Element) -> Optional[Dict[str, Any]]:
        tag = _local(element.tag)
        if tag == "Polygon":
            return {"type": "Polygon", "coordinates": self._polygon_rings(element)}
        if tag == "MultiGeometry":
            members = [
                member for member in (self._geometry(child) for child in element)
                if member is not None
            ]
            polygons: List[Any] = []
            for member in members:
                if member["type"] == "Polygon":
                    polygons.append(member["coordinates"])
                elif member["type"] == "MultiPolygon":
                    polygons.extend(member["coordinates"])
                else:
                    return {"type": "GeometryCollection", "geometries": members}
            return {"type": "MultiPolygon", "coordinates": polygons}
        if tag == "Point":
            coords = parse_coordinates(self._coordinates_text(element))
            return {"type": "Point", "coordinates": coords[0] if coords else []}
        if tag == "LineString":
            return {
                "type": "LineString",
                "coordinates": parse_coordinates(self._coordinates_text(element)),
            }
        return None

    def _polygon_rings(self, polygon: ET.Element) -> List[List[List[float]]]:
        rings: List[List[List[float]]] = []
        outer = _child(polygon, "outerBoundaryIs")
        if outer is not None:
            rings.append(parse_coordinates(self._coordinates_text(outer)))
        for inner in _children(polygon, "innerBoundaryIs"):
            rings.append(parse_coordinates(self._coordinates_text(inner)))
        return rings

    def _coordinates_text(self, element: ET.Element) -> Optional[str]:
        nodes = _descendants(element, "coordinates")
        return nodes[0].text if nodes else None


__all__ = ["KmlReader", "parse_coordinates"]
