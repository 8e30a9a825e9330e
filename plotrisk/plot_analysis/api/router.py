# -*- coding: utf-8 -*-
"""
Plot Analysis REST API Router

FastAPI router exposing the plot analysis service at prefix ``/api``.
Route handlers resolve the service from ``app.state`` (set by
``configure_plot_analysis``) and translate pipeline exceptions into the
``{error, details}`` response envelope.

Endpoints:
    POST   /api/geojson/upload
    GET    /api/analysis-results
    DELETE /api/analysis-results
    GET    /api/analysis-results/export.csv
    PATCH  /api/analysis-results/{plot_id}/geometry
    PATCH  /api/analysis-results/{plot_id}/compliance-status
    POST   /api/plots/save-association
    POST   /api/peatland-data
    POST   /api/overlays/{layer}

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response

from plotrisk.plot_analysis.exceptions import LayerUnavailableError, PlotAnalysisError
from plotrisk.plot_analysis.models import ViewportBounds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["plot-analysis"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _svc(request: Request) -> Any:
    """Get the configured service for route handlers."""
    service = getattr(request.app.state, "plot_analysis_service", None)
    if service is None:
        raise RuntimeError("Plot analysis service not configured")
    return service


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _pipeline_error(exc: PlotAnalysisError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _parse_bounds(raw: Any) -> ViewportBounds:
    """Parse ``{west, south, east, north}``; raises ValueError when invalid."""
    if not isinstance(raw, dict):
        raise ValueError("bounds must be an object")
    return ViewportBounds(
        west=raw.get("west"),
        south=raw.get("south"),
        east=raw.get("east"),
        north=raw.get("north"),
    )


# ---------------------------------------------------------------------------
# 1. POST /geojson/upload - Normalize and classify an uploaded file
# ---------------------------------------------------------------------------
@router.post("/geojson/upload")
async def post_upload_geojson(request: Request, body: Dict[str, Any]) -> JSONResponse:
    """Upload GeoJSON (or KML) text and return the enriched FeatureCollection."""
    content = body.get("geojson")
    if content is None:
        content = body.get("geojsonFile")
    if content is None or content == "":
        return _error(400, "No GeoJSON data provided")
    filename = str(body.get("filename") or body.get("fileName") or "")

    try:
        result = await _svc(request).upload(content, filename)
    except PlotAnalysisError as exc:
        logger.warning("Upload %s rejected: %s", filename or "(inline)", exc)
        return _pipeline_error(exc)
    return JSONResponse(content=result.to_response())


# ---------------------------------------------------------------------------
# 2. GET /analysis-results - Classified plots of the active session
# ---------------------------------------------------------------------------
@router.get("/analysis-results")
async def get_analysis_results(request: Request) -> JSONResponse:
    """List the classified plots in wire shape."""
    plots = _svc(request).get_results()
    return JSONResponse(content=[plot.to_api_dict() for plot in plots])


# ---------------------------------------------------------------------------
# 3. DELETE /analysis-results - Clear the active session
# ---------------------------------------------------------------------------
@router.delete("/analysis-results")
async def delete_analysis_results(request: Request) -> Dict[str, Any]:
    """Clear the active session."""
    _svc(request).clear_results()
    return {"success": True}


# ---------------------------------------------------------------------------
# 4. GET /analysis-results/export.csv - CSV export
# ---------------------------------------------------------------------------
@router.get("/analysis-results/export.csv")
async def get_export_csv(
    request: Request,
    search: Optional[str] = Query(None),
    risk: Optional[str] = Query(None),
    compliance: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    plotIds: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    order: str = Query("asc"),
) -> Response:
    """Export the selected (or all filtered) plots as CSV."""
    selected = [pid.strip() for pid in (plotIds or "").split(",") if pid.strip()]
    try:
        text = _svc(request).export_csv(
            search=search,
            risk=risk,
            compliance=compliance,
            country=country,
            plot_ids=selected,
            sort=sort,
            descending=order.lower() == "desc",
        )
    except ValueError as exc:
        return _error(400, "Invalid export parameters", str(exc))
    return Response(
        content=text.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="plot-analysis.csv"'},
    )


# ---------------------------------------------------------------------------
# 5. PATCH /analysis-results/{plot_id}/geometry - Edit a boundary
# ---------------------------------------------------------------------------
@router.patch("/analysis-results/{plot_id}/geometry")
async def patch_plot_geometry(
    request: Request,
    plot_id: str,
    body: Dict[str, Any],
) -> JSONResponse:
    """Replace a plot geometry, renormalize and reclassify it."""
    geometry = body.get("geometry", body)
    try:
        plot = await _svc(request).update_geometry(plot_id, geometry)
    except PlotAnalysisError as exc:
        return _pipeline_error(exc)
    except LookupError as exc:
        return _error(404, "Plot not found", str(exc))
    return JSONResponse(content=plot.to_api_dict())


# ---------------------------------------------------------------------------
# 6. PATCH /analysis-results/{plot_id}/compliance-status - Manual override
# ---------------------------------------------------------------------------
@router.patch("/analysis-results/{plot_id}/compliance-status")
async def patch_compliance_status(
    request: Request,
    plot_id: str,
    body: Dict[str, Any],
) -> JSONResponse:
    """Override the compliance status of one plot."""
    status = body.get("complianceStatus") or body.get("status")
    if not status:
        return _error(400, "complianceStatus is required")
    try:
        plot = _svc(request).update_compliance_status(plot_id, status)
    except PlotAnalysisError as exc:
        return _pipeline_error(exc)
    except LookupError as exc:
        return _error(404, "Plot not found", str(exc))
    except ValueError as exc:
        return _error(400, "Invalid compliance status", str(exc))
    return JSONResponse(content=plot.to_api_dict())


# ---------------------------------------------------------------------------
# 7. POST /plots/save-association - Associate plots with a supplier
# ---------------------------------------------------------------------------
@router.post("/plots/save-association")
async def post_save_association(request: Request, body: Dict[str, Any]) -> JSONResponse:
    """Associate analysed plots with a supplier."""
    try:
        result = _svc(request).save_association(
            body.get("plotIds"), body.get("supplierId"),
        )
    except PlotAnalysisError as exc:
        return _pipeline_error(exc)
    except LookupError as exc:
        return _error(404, str(exc))
    except ValueError as exc:
        return _error(400, str(exc))
    return JSONResponse(content={
        "success": True,
        "count": result.count,
        "supplierId": result.supplier_id,
        "plotIds": result.plot_ids,
        "missingPlotIds": result.missing_plot_ids,
        "message": f"Successfully associated {result.count} plots with supplier",
    })


# ---------------------------------------------------------------------------
# 8. POST /peatland-data - Peatland polygons for a viewport
# ---------------------------------------------------------------------------
@router.post("/peatland-data")
async def post_peatland_data(request: Request, body: Dict[str, Any]) -> JSONResponse:
    """Peatland FeatureCollection for the viewport bounds."""
    try:
        bounds = _parse_bounds(body.get("bounds"))
    except ValueError as exc:
        return _error(400, "Invalid bounds provided", str(exc))
    collection = await _svc(request).get_peatland_data(bounds)
    return JSONResponse(content=collection)


# ---------------------------------------------------------------------------
# 9. POST /overlays/{layer} - Load any overlay layer
# ---------------------------------------------------------------------------
@router.post("/overlays/{layer}")
async def post_load_overlay(
    request: Request,
    layer: str,
    body: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Load an overlay layer through its fallback chain."""
    raw_bounds = (body or {}).get("bounds")
    bounds = None
    if raw_bounds is not None:
        try:
            bounds = _parse_bounds(raw_bounds)
        except ValueError as exc:
            return _error(400, "Invalid bounds provided", str(exc))

    try:
        result = await _svc(request).load_overlay(layer, bounds)
    except KeyError:
        return _error(404, "Unknown overlay layer", layer)

    if not result.available:
        exc = LayerUnavailableError(layer, result.attempts)
        content = exc.to_dict()
        content["attempts"] = [a.model_dump(mode="json") for a in result.attempts]
        return JSONResponse(status_code=exc.status_code, content=content)

    return JSONResponse(content={
        "layer": result.layer,
        "source": result.source.value if result.source else None,
        "state": result.state.value,
        "fromCache": result.from_cache,
        "bounds": list(result.bounds) if result.bounds else None,
        "type": "FeatureCollection",
        "features": result.features,
    })


__all__ = ["router"]
