# -*- coding: utf-8 -*-
"""
PlotRisk Plot Analysis Service SDK
==================================

This package ingests farm plot boundaries and assesses them against the
EU Deforestation Regulation (EUDR) cut-off of 31 December 2020. It supports:

- GeoJSON and KML uploads with heterogeneous supplier schemas
- Per-feature normalization: Z stripping, ring closing, optional repair,
  ordered ID/country/area/metadata resolution, geodesic area (pyproj)
- Tree-cover loss across three datasets (GFW, JRC GFC2020, SBTN Natural
  Lands) and overlap with protected areas (WDPA) and peatland
- Per-plot risk levels (HIGH, MEDIUM, LOW, UNKNOWN) and compliance
  verdicts; UNKNOWN is never reported as COMPLIANT
- Bounded-concurrency classification with progress reporting
- Durable analysis session with generations and intent-scoped restore
- Map overlays loaded through ordered fallback chains (WFS, GeoJSON
  endpoint, tile footprint, bundled sample) with per-layer caching
- Filtering, sorting, paging, selection and CSV export
- Prometheus metrics and SHA-256 chain-hashed provenance
- FastAPI REST API and a ``plotrisk`` CLI
- Thread-safe configuration with PLOTRISK_ env prefix

Key Components:
    - config: PlotAnalysisConfig with PLOTRISK_ env prefix
    - models: Pydantic v2 models (10 enums, core and result models)
    - geometry_normalizer: GeometryNormalizerEngine
    - kml_reader: KML to GeoJSON conversion
    - oracles: loss and overlap oracles (HTTP, GFW data API, static, mock)
    - risk_classifier: RiskClassifierEngine
    - session_store: AnalysisSessionStore
    - overlay_loader: OverlayLoaderEngine and overlay strategies
    - selection_engine: PlotTableView
    - csv_export: CSV rendering
    - provenance: SHA-256 chain-hashed audit trails
    - metrics: Prometheus metrics
    - setup: PlotAnalysisService facade

Example:
    >>> from plotrisk.plot_analysis import PlotAnalysisService
    >>> service = PlotAnalysisService()
    >>> result = await service.upload(geojson_text, "plots.geojson")
    >>> print(result.summary.risk_counts)
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from plotrisk.plot_analysis.config import (
    PlotAnalysisConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
from plotrisk.plot_analysis.exceptions import (
    PlotAnalysisError,
    StructuralInputError,
    PayloadTooLargeError,
    NoValidFeaturesError,
    StaleSessionError,
    SessionCorruptError,
    LayerUnavailableError,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from plotrisk.plot_analysis.models import (
    coerce_number,
    coerce_area,
    # Enumerations
    RiskLevel,
    ComplianceStatus,
    LossTier,
    LossDataset,
    OverlapDataset,
    IssueSeverity,
    LayerState,
    LayerSource,
    OverlayLayer,
    RestoreIntent,
    # Core models
    NormalizationIssue,
    NormalizedPlot,
    NormalizationResult,
    DatasetLoss,
    ClassifiedPlot,
    ViewportBounds,
    StrategyAttempt,
    # Results
    LayerResult,
    UploadSummary,
    UploadResult,
    AssociationResult,
    AnalysisStatistics,
)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from plotrisk.plot_analysis.geometry_normalizer import GeometryNormalizerEngine
from plotrisk.plot_analysis.kml_reader import KmlReader
from plotrisk.plot_analysis.risk_classifier import RiskClassifierEngine
from plotrisk.plot_analysis.session_store import AnalysisSessionStore
from plotrisk.plot_analysis.overlay_loader import OverlayLoaderEngine
from plotrisk.plot_analysis.selection_engine import PlotTableView
from plotrisk.plot_analysis.csv_export import plots_to_csv
from plotrisk.plot_analysis.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from plotrisk.plot_analysis.setup import (
    PlotAnalysisService,
    configure_plot_analysis,
    get_plot_analysis,
    get_router,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "PlotAnalysisConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Exceptions
    "PlotAnalysisError",
    "StructuralInputError",
    "PayloadTooLargeError",
    "NoValidFeaturesError",
    "StaleSessionError",
    "SessionCorruptError",
    "LayerUnavailableError",
    # Models
    "coerce_number",
    "coerce_area",
    "RiskLevel",
    "ComplianceStatus",
    "LossTier",
    "LossDataset",
    "OverlapDataset",
    "IssueSeverity",
    "LayerState",
    "LayerSource",
    "OverlayLayer",
    "RestoreIntent",
    "NormalizationIssue",
    "NormalizedPlot",
    "NormalizationResult",
    "DatasetLoss",
    "ClassifiedPlot",
    "ViewportBounds",
    "StrategyAttempt",
    "LayerResult",
    "UploadSummary",
    "UploadResult",
    "AssociationResult",
    "AnalysisStatistics",
    # Engines
    "GeometryNormalizerEngine",
    "KmlReader",
    "RiskClassifierEngine",
    "AnalysisSessionStore",
    "OverlayLoaderEngine",
    "PlotTableView",
    "plots_to_csv",
    "ProvenanceTracker",
    # Service
    "PlotAnalysisService",
    "configure_plot_analysis",
    "get_plot_analysis",
    "get_router",
]
