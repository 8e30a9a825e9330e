# -*- coding: utf-8 -*-
"""
Plot Analysis Service Setup

Provides ``configure_plot_analysis(app)`` which wires up the plot analysis
pipeline (geometry normalizer, risk classifier, session store, overlay
loader, provenance tracker) and mounts the REST API.

Also exposes ``get_plot_analysis(app)`` for programmatic access and the
``PlotAnalysisService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from plotrisk.plot_analysis.setup import configure_plot_analysis
    >>> app = FastAPI()
    >>> import asyncio
    >>> service = asyncio.run(configure_plot_analysis(app))

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.csv_export import plots_to_csv
from plotrisk.plot_analysis.exceptions import PayloadTooLargeError
from plotrisk.plot_analysis.geometry_normalizer import GeometryNormalizerEngine
from plotrisk.plot_analysis.metrics import (
    record_association,
    record_export,
    record_pipeline_duration,
    record_processing_error,
    record_upload,
)
from plotrisk.plot_analysis.models import (
    AnalysisStatistics,
    AssociationResult,
    ClassifiedPlot,
    ComplianceStatus,
    LayerResult,
    RestoreIntent,
    RiskLevel,
    UploadResult,
    UploadSummary,
    ViewportBounds,
)
from plotrisk.plot_analysis.overlay_loader import PEATLAND_DATA_LAYER, OverlayLoaderEngine
from plotrisk.plot_analysis.provenance import ProvenanceTracker
from plotrisk.plot_analysis.risk_classifier import ProgressCallback, RiskClassifierEngine
from plotrisk.plot_analysis.selection_engine import PlotTableView
from plotrisk.plot_analysis.session_store import AnalysisSessionStore

logger = logging.getLogger(__name__)


# ===================================================================
# Thread-safe singleton
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["PlotAnalysisService"] = None


def _file_format(filename: str) -> str:
    return "kml" if filename.lower().endswith(".kml") else "geojson"


def _payload_bytes(content: Any) -> int:
    if isinstance(content, (bytes, bytearray)):
        return len(content)
    if isinstance(content, str):
        return len(content.encode("utf-8"))
    return len(json.dumps(content, default=str).encode("utf-8"))


# ===================================================================
# PlotAnalysisService facade
# ===================================================================


class PlotAnalysisService:
    """Unified facade over the plot analysis pipeline.

    Aggregates the geometry normalizer, risk classifier, session store and
    overlay loader plus the provenance tracker through a single entry
    point. Each method records provenance and updates metrics.

    Attributes:
        config: PlotAnalysisConfig instance.
        provenance: ProvenanceTracker instance for SHA-256 audit trails.
        normalizer: GeometryNormalizerEngine for uploads and edits.
        classifier: RiskClassifierEngine for per-plot verdicts.
        session_store: AnalysisSessionStore owning the active session.
        overlay_loader: OverlayLoaderEngine for map layers.

    Example:
        >>> service = PlotAnalysisService()
        >>> result = await service.upload(geojson_text, "plots.geojson")
        >>> print(result.summary.plots_classified)
    """

    def __init__(
        self,
        config: Any = None,
        classifier: Optional[RiskClassifierEngine] = None,
        overlay_loader: Optional[OverlayLoaderEngine] = None,
        session_store: Optional[AnalysisSessionStore] = None,
    ) -> None:
        """Initialize the plot analysis service facade.

        Args:
            config: Optional configuration. Uses global config if None.
            classifier: Optional pre-built classifier (custom oracles).
            overlay_loader: Optional pre-built overlay loader.
            session_store: Optional pre-built session store.
        """
        self.config = config or get_config()
        self._init_provenance()
        self._init_engines(classifier, overlay_loader, session_store)

        self._total_uploads = 0
        self._total_features = 0
        self._total_exports = 0
        self._started = False
        logger.info("PlotAnalysisService facade created")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def _init_provenance(self) -> None:
        """Initialize the provenance tracker."""
        self.provenance = ProvenanceTracker()

    def _init_engines(
        self,
        classifier: Optional[RiskClassifierEngine],
        overlay_loader: Optional[OverlayLoaderEngine],
        session_store: Optional[AnalysisSessionStore],
    ) -> None:
        """Create the engines, sharing config and provenance."""
        self.normalizer = GeometryNormalizerEngine(
            config=self.config, provenance=self.provenance,
        )
        self.classifier = classifier or RiskClassifierEngine(
            config=self.config, provenance=self.provenance,
        )
        self.session_store = session_store or AnalysisSessionStore(
            config=self.config, provenance=self.provenance,
        )
        self.overlay_loader = overlay_loader or OverlayLoaderEngine(
            config=self.config, provenance=self.provenance,
        )

    # ------------------------------------------------------------------
    # Upload and results
    # ------------------------------------------------------------------

    async def upload(
        self,
        content: Any,
        filename: str = "",
        progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Normalize, classify and store an uploaded plot file.

        Starts a new session generation; results arriving after a newer
        upload or a clear are discarded.

        Args:
            content: GeoJSON/KML text or a parsed GeoJSON mapping.
            filename: Original filename (``.kml`` selects the KML reader).
            progress: Optional classification progress callback.

        Returns:
            UploadResult with plots, issues and summary.

        Raises:
            PayloadTooLargeError: Payload or feature count over the limit.
            StructuralInputError: Input is not a usable collection.
            NoValidFeaturesError: Every feature was rejected.
            StaleSessionError: A newer upload or clear superseded this one.
        """
        start = time.monotonic()
        file_format = _file_format(filename)
        generation = self.session_store.begin_generation()

        size = _payload_bytes(content)
        limit = int(self.config.max_payload_mb * 1024 * 1024)
        if size > limit:
            record_upload(file_format, "rejected")
            raise PayloadTooLargeError(
                "Request too large",
                f"Payload size: {size / (1024 * 1024):.1f}MB exceeds "
                f"{self.config.max_payload_mb:.0f}MB limit",
            )

        try:
            collection = self.normalizer.parse_content(content, filename)
            normalization = self.normalizer.normalize(collection, source_name=filename)
        except Exception:
            record_upload(file_format, "rejected")
            raise
        record_pipeline_duration("normalize", time.monotonic() - start)

        classified = await self.classifier.classify(normalization.plots, progress=progress)

        persist_start = time.monotonic()
        token = self.session_store.save(classified, generation=generation)
        record_pipeline_duration("persist", time.monotonic() - persist_start)

        counts = self.classifier.summarize(classified)
        summary = UploadSummary(
            filename=filename,
            session_token=token,
            generation=generation,
            total_features=normalization.total_features,
            plots_normalized=len(normalization.plots),
            plots_rejected=normalization.rejected_count,
            plots_classified=len(classified),
            plots_with_missing_data=counts["plots_with_missing_data"],
            risk_counts=counts["risk_counts"],
            compliance_counts=counts["compliance_counts"],
            duration_ms=round((time.monotonic() - start) * 1000.0, 2),
        )

        self._total_uploads += 1
        self._total_features += normalization.total_features
        record_upload(file_format, "success")
        logger.info(
            "Upload %s processed: %d/%d plots classified, %d with missing data",
            filename or "(inline)", len(classified), normalization.total_features,
            summary.plots_with_missing_data,
        )
        return UploadResult(
            summary=summary,
            plots=classified,
            issues=normalization.issues,
            warning=normalization.warning,
        )

    async def upload_file(
        self,
        path: Any,
        progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload a .geojson, .json or .kml file from disk."""
        file_path = Path(path)
        return await self.upload(
            file_path.read_text(encoding="utf-8-sig"), file_path.name, progress=progress,
        )

    def get_results(
        self,
        intent: RestoreIntent = RestoreIntent.API_READ,
    ) -> Tuple[ClassifiedPlot, ...]:
        """Classified plots of the active session (empty when none)."""
        return self.session_store.restore(None, intent) or ()

    def clear_results(self) -> None:
        """Clear the active session; in-flight uploads become stale."""
        self.session_store.clear()

    def _find_plot(self, plot_id: str, intent: RestoreIntent) -> ClassifiedPlot:
        for plot in self.get_results(intent):
            if plot.plot_id == plot_id:
                return plot
        raise LookupError(f"Plot {plot_id} not found in the analysis results")

    async def update_geometry(self, plot_id: str, geometry: Dict[str, Any]) -> ClassifiedPlot:
        """Replace a plot's boundary, renormalize and reclassify it.

        The area becomes the geodesic area of the new boundary.

        Raises:
            LookupError: If the plot is not in the active session.
            StructuralInputError: If the new geometry is rejected.
            StaleSessionError: If the session was cleared or replaced while
                the plot was being reclassified.
        """
        generation = self.session_store.current_generation
        plot = self._find_plot(plot_id, RestoreIntent.RETURN_FROM_EDIT)
        clean, area, _ = self.normalizer.normalize_geometry(geometry)
        edited = plot.model_copy(update={"geometry": clean, "area_hectares": area})
        reclassified = await self.classifier.reclassify(edited)
        self.session_store.replace_plot(None, reclassified, generation=generation)
        logger.info("Geometry of plot %s updated (%.4f ha)", plot_id, area)
        return reclassified

    async def revalidate(self, plot_id: str) -> ClassifiedPlot:
        """Re-run classification for one plot and store the fresh verdict.

        Raises:
            LookupError: If the plot is not in the active session.
            StaleSessionError: If the session was cleared or replaced while
                the plot was being reclassified.
        """
        generation = self.session_store.current_generation
        plot = self._find_plot(plot_id, RestoreIntent.REVALIDATION)
        reclassified = await self.classifier.reclassify(plot)
        self.session_store.replace_plot(None, reclassified, generation=generation)
        return reclassified

    def update_compliance_status(self, plot_id: str, status: Any) -> ClassifiedPlot:
        """Manually override a plot's compliance status.

        A HIGH risk plot can never be marked COMPLIANT.

        Raises:
            ValueError: If the status is not a known compliance value, or
                COMPLIANT is requested for a HIGH risk plot.
            LookupError: If the plot is not in the active session.
        """
        compliance = ComplianceStatus(str(status).upper())
        generation = self.session_store.current_generation
        plot = self._find_plot(plot_id, RestoreIntent.RETURN_FROM_EDIT)
        if compliance == ComplianceStatus.COMPLIANT and plot.overall_risk == RiskLevel.HIGH:
            raise ValueError(f"Plot {plot_id} is HIGH risk and cannot be marked COMPLIANT")
        updated = plot.model_copy(update={
            "compliance_status": compliance,
            "compliance_override": True,
        })
        self.session_store.replace_plot(None, updated, generation=generation)
        self.provenance.record(
            "compliance_override", plot_id, "set_compliance",
            self.provenance.build_hash({
                "plot_id": plot_id,
                "from": plot.compliance_status.value,
                "to": compliance.value,
            }),
        )
        logger.info(
            "Compliance of plot %s overridden: %s -> %s",
            plot_id, plot.compliance_status.value, compliance.value,
        )
        return updated

    def save_association(self, plot_ids: Any, supplier_id: Any) -> AssociationResult:
        """Associate plots of the active session with a supplier.

        Raises:
            ValueError: If plot_ids is not a non-empty list or supplier_id
                is missing.
            LookupError: If no plot of the session matches.
        """
        if not isinstance(plot_ids, list) or not plot_ids:
            record_association("rejected")
            raise ValueError("plotIds array is required")
        if not supplier_id or not str(supplier_id).strip():
            record_association("rejected")
            raise ValueError("supplierId is required")
        supplier = str(supplier_id).strip()
        wanted = [str(pid) for pid in plot_ids]

        generation = self.session_store.current_generation
        plots = self.get_results(RestoreIntent.SUPPLIER_ASSOCIATION)
        wanted_set = set(wanted)
        matches = [p for p in plots if p.plot_id in wanted_set]
        if not matches:
            record_association("not_found")
            raise LookupError("No analysis results found for the provided plot IDs")

        updated = [p.model_copy(update={"supplier_id": supplier}) for p in matches]
        self.session_store.replace_plots(None, updated, generation=generation)

        found = {p.plot_id for p in matches}
        result = AssociationResult(
            supplier_id=supplier,
            count=len(updated),
            plot_ids=[pid for pid in dict.fromkeys(wanted) if pid in found],
            missing_plot_ids=[pid for pid in dict.fromkeys(wanted) if pid not in found],
        )
        record_association("success")
        self.provenance.record(
            "association", supplier, "associate", self.provenance.build_hash(result),
        )
        logger.info("Associated %d plots with supplier %s", result.count, supplier)
        return result

    # ------------------------------------------------------------------
    # Table and export
    # ------------------------------------------------------------------

    def table_view(self, intent: RestoreIntent = RestoreIntent.RETURN_FROM_MAP) -> PlotTableView:
        """A fresh table view over the active session."""
        return PlotTableView(self.get_results(intent), config=self.config)

    def export_csv(
        self,
        search: Optional[str] = None,
        risk: Optional[str] = None,
        compliance: Optional[str] = None,
        country: Optional[str] = None,
        plot_ids: Optional[Sequence[str]] = None,
        sort: Optional[str] = None,
        descending: bool = False,
    ) -> str:
        """CSV of the selected (or all filtered) plots of the active session."""
        start = time.monotonic()
        view = self.table_view(RestoreIntent.EXPORT)
        view.set_filters(search=search, risk=risk, compliance=compliance, country=country)
        if sort:
            view.set_sort(sort, descending)
        for plot_id in plot_ids or []:
            view.select(plot_id)
        plots = view.export_plots()
        text = plots_to_csv(plots)

        self._total_exports += 1
        record_export("csv")
        record_pipeline_duration("export", time.monotonic() - start)
        self.provenance.record(
            "export", f"export-{self._total_exports}", "export_csv",
            self.provenance.build_hash([p.plot_id for p in plots]),
        )
        logger.info("Exported %d plots to CSV", len(plots))
        return text

    # ------------------------------------------------------------------
    # Overlays
    # ------------------------------------------------------------------

    async def load_overlay(self, layer: str, bounds: Optional[ViewportBounds] = None) -> LayerResult:
        """Load an overlay layer for the viewport.

        Raises:
            KeyError: If the layer is unknown.
        """
        return await self.overlay_loader.load(layer, bounds)

    async def toggle_overlay(
        self,
        layer: str,
        enabled: bool,
        bounds: Optional[ViewportBounds] = None,
    ) -> Optional[LayerResult]:
        """Turn an overlay layer on (cached when possible) or off."""
        return await self.overlay_loader.toggle(layer, enabled, bounds)

    async def get_peatland_data(self, bounds: ViewportBounds) -> Dict[str, Any]:
        """Peatland polygons for the viewport as a FeatureCollection.

        Falls back to the bundled peatland sample when the endpoint fails.
        """
        result = await self.overlay_loader.load(PEATLAND_DATA_LAYER, bounds)
        if not result.available:
            record_processing_error("overlay_loader", "peatland_unavailable")
        return result.feature_collection()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> AnalysisStatistics:
        """Get aggregate service statistics."""
        return AnalysisStatistics(
            total_uploads=self._total_uploads,
            total_features_received=self._total_features,
            total_plots_normalized=self.normalizer.plots_normalized,
            total_plots_rejected=self.normalizer.features_rejected,
            total_plots_classified=self.classifier.plots_classified,
            total_oracle_failures=self.classifier.oracle_failures,
            total_overlay_loads=self.overlay_loader.load_count,
            total_overlay_fallbacks=self.overlay_loader.fallback_count,
            total_exports=self._total_exports,
            active_session_plots=self.session_store.plot_count,
            risk_counts=self.classifier.risk_counts,
            compliance_counts=self.classifier.compliance_counts,
        )

    def get_provenance(self) -> ProvenanceTracker:
        """Get the ProvenanceTracker instance."""
        return self.provenance

    def get_metrics(self) -> Dict[str, Any]:
        """Get service metrics summary."""
        stats = self.get_statistics()
        return {
            "started": self._started,
            "total_uploads": stats.total_uploads,
            "total_plots_classified": stats.total_plots_classified,
            "total_oracle_failures": stats.total_oracle_failures,
            "total_overlay_loads": stats.total_overlay_loads,
            "total_overlay_fallbacks": stats.total_overlay_fallbacks,
            "total_exports": stats.total_exports,
            "active_session_plots": stats.active_session_plots,
            "session_generation": self.session_store.current_generation,
            "overlay_states": self.overlay_loader.states(),
            "provenance_entries": self.provenance.entry_count,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the plot analysis service.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("PlotAnalysisService already started; skipping")
            return

        logger.info("PlotAnalysisService starting up...")
        self._started = True
        logger.info("PlotAnalysisService startup complete")

    async def shutdown(self) -> None:
        """Shutdown the service and close oracle and overlay clients."""
        if not self._started:
            return

        await self.classifier.close()
        await self.overlay_loader.close()
        self._started = False
        logger.info("PlotAnalysisService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def _get_singleton() -> PlotAnalysisService:
    """Get or create the singleton PlotAnalysisService instance."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = PlotAnalysisService()
    return _singleton_instance


# ===================================================================
# FastAPI integration
# ===================================================================


async def configure_plot_analysis(
    app: Any,
    config: Any = None,
    service: Optional[PlotAnalysisService] = None,
) -> PlotAnalysisService:
    """Configure the plot analysis service on a FastAPI application.

    Creates the PlotAnalysisService (unless one is given), stores it in
    app.state, mounts the REST API router, and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional PlotAnalysisConfig.
        service: Optional pre-built service.

    Returns:
        PlotAnalysisService instance.
    """
    global _singleton_instance

    service = service or PlotAnalysisService(config=config)

    with _singleton_lock:
        _singleton_instance = service

    app.state.plot_analysis_service = service

    from plotrisk.plot_analysis.api.router import router as plot_analysis_router
    app.include_router(plot_analysis_router)
    logger.info("Plot analysis API router mounted")

    service.startup()

    logger.info("Plot analysis service configured on app")
    return service


def get_plot_analysis(app: Any) -> PlotAnalysisService:
    """Get the PlotAnalysisService instance from app state.

    Raises:
        RuntimeError: If service not configured.
    """
    service = getattr(app.state, "plot_analysis_service", None)
    if service is None:
        raise RuntimeError(
            "Plot analysis service not configured. "
            "Call configure_plot_analysis(app) first."
        )
    return service


def get_router() -> Any:
    """Get the plot analysis API router."""
    from plotrisk.plot_analysis.api.router import router
    return router


__all__ = [
    "PlotAnalysisService",
    "configure_plot_analysis",
    "get_plot_analysis",
    "get_router",
]
