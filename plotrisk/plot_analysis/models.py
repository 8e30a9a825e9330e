# -*- coding: utf-8 -*-
"""
Plot Analysis Data Models

Pydantic v2 data models for the plot analysis pipeline. Defines all
enumerations, core data models and result wrappers required for:

- Plot normalization (canonical id, country, 2-D geometry, area)
- Per-dataset forest-loss classification (GFW, JRC, SBTN)
- Legal overlap gates (WDPA protected areas, peatland)
- Session persistence with numeric fidelity
- Overlay layer loading with per-layer state
- Upload summaries and service statistics

Models:
    - Enumerations (10): RiskLevel, ComplianceStatus, LossTier, LossDataset,
        OverlapDataset, IssueSeverity, LayerState, LayerSource, OverlayLayer,
        RestoreIntent
    - Core data models (7): NormalizationIssue, NormalizedPlot,
        NormalizationResult, DatasetLoss, ClassifiedPlot, ViewportBounds,
        StrategyAttempt
    - Result models (5): LayerResult, UploadSummary, UploadResult,
        AssociationResult, AnalysisStatistics

Numeric fields pass through ``coerce_number`` on validation, so values
supplied as strings, blanks or nulls by upstream producers always land as
floats and never as NaN.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import math
import numbers
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def coerce_number(value: Any) -> float:
    """Map any boundary value onto a finite float.

    ``None``, booleans, blank or non-numeric strings, NaN and infinities
    all become ``0.0``; numbers and numeric strings are parsed.

    Args:
        value: Raw value from an API payload or stored state.

    Returns:
        Finite float.

    Example:
        >>> coerce_number("0.25"), coerce_number(""), coerce_number(None)
        (0.25, 0.0, 0.0)
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def coerce_area(value: Any) -> float:
    """Coerce an area value and clamp it at zero."""
    return max(0.0, coerce_number(value))


# =============================================================================
# Enumerations
# =============================================================================


class RiskLevel(str, Enum):
    """Risk verdict for a dataset or a whole plot.

    MEDIUM is reserved for multi-tier scoring; the current rule never
    emits it but stored or imported results may carry it.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"


class ComplianceStatus(str, Enum):
    """EUDR compliance determination for a plot."""

    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON-COMPLIANT"
    UNKNOWN = "UNKNOWN"


class LossTier(str, Enum):
    """Presentation tier of a dataset's loss area."""

    NONE = "none"
    MARGINAL = "marginal"
    SIGNIFICANT = "significant"
    UNKNOWN = "unknown"


class LossDataset(str, Enum):
    """Independent forest-loss monitoring datasets."""

    GFW = "gfw"
    JRC = "jrc"
    SBTN = "sbtn"


class OverlapDataset(str, Enum):
    """Legal overlap datasets."""

    WDPA = "wdpa"
    PEATLAND = "peatland"


class IssueSeverity(str, Enum):
    """Severity of a normalization issue."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LayerState(str, Enum):
    """Lifecycle state of an overlay layer."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED_PRIMARY = "loaded-primary"
    LOADED_FALLBACK = "loaded-fallback"
    FAILED = "failed"


class LayerSource(str, Enum):
    """Which strategy of a layer's chain produced the features."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    STATIC_FALLBACK = "staticFallback"


class OverlayLayer(str, Enum):
    """Named, independently toggleable map layers."""

    WDPA = "wdpa"
    PEATLAND = "peatland"
    GFW = "gfw"
    JRC = "jrc"
    SBTN = "sbtn"
    OSM = "osm"
    SATELLITE = "satellite"
    TERRAIN = "terrain"


class RestoreIntent(str, Enum):
    """Declared reason for restoring an analysis session."""

    RETURN_FROM_MAP = "return_from_map"
    RETURN_FROM_EDIT = "return_from_edit"
    EXPORT = "export"
    SUPPLIER_ASSOCIATION = "supplier_association"
    REVALIDATION = "revalidation"
    API_READ = "api_read"


LOSS_DATASETS: Tuple[str, ...] = tuple(d.value for d in LossDataset)

# Overlap status literals (an overlap itself is reported as "X.XXXX ha")
PROTECTED = "PROTECTED"
NOT_PROTECTED = "NOT_PROTECTED"
PEATLAND = "PEATLAND"
NOT_PEATLAND = "NOT_PEATLAND"
STATUS_UNKNOWN = "UNKNOWN"


# =============================================================================
# Core Data Models
# =============================================================================


class NormalizationIssue(BaseModel):
    """A problem or notice recorded while normalizing one feature.

    Attributes:
        feature_index: 0-based position of the feature in the submission.
        plot_id: Resolved plot id, when one could be determined.
        code: Machine-readable issue code (synthesized_id, duplicate_id,
            missing_geometry, unsupported_geometry, invalid_coordinates,
            degenerate_ring, invalid_geometry, repaired_geometry,
            closed_ring, invalid_feature).
        severity: info/warning keep the feature; error excludes it.
        message: Human-readable description.
    """

    feature_index: Optional[int] = Field(
        None, description="0-based position of the feature in the submission",
    )
    plot_id: Optional[str] = Field(
        None, description="Resolved plot id, when one could be determined",
    )
    code: str = Field(..., description="Machine-readable issue code")
    severity: IssueSeverity = Field(
        default=IssueSeverity.ERROR, description="Issue severity",
    )
    message: str = Field(default="", description="Human-readable description")

    model_config = ConfigDict(frozen=True)

    @property
    def excludes_feature(self) -> bool:
        """Whether this issue removed the feature from the output."""
        return self.severity == IssueSeverity.ERROR


class NormalizedPlot(BaseModel):
    """A plot after normalization; immutable once produced.

    Attributes:
        plot_id: Canonical plot identifier.
        country: Country name or ``"unknown"``.
        geometry: 2-D GeoJSON Polygon or MultiPolygon.
        area_hectares: Declared area when given, else geodesic area.
        id_synthesized: Whether ``plot_id`` was generated (PLOT_NNN).
        feature_index: 0-based position in the submitted collection.
        declared_area_hectares: Area stated by the producer, if any.
        farmer_name: Producer-supplied farmer name.
        aggregator_name: Producer-supplied aggregator or cooperative.
        mapping_date: Producer-supplied mapping/survey date.
        plot_name: Producer-supplied plot name.
        properties: Original feature properties.
    """

    plot_id: str = Field(..., description="Canonical plot identifier")
    country: str = Field(default="unknown", description="Country name")
    geometry: Dict[str, Any] = Field(
        default_factory=dict, description="2-D GeoJSON Polygon or MultiPolygon",
    )
    area_hectares: float = Field(
        default=0.0, ge=0.0, description="Plot area in hectares",
    )
    id_synthesized: bool = Field(
        default=False, description="Whether plot_id was generated",
    )
    feature_index: int = Field(
        default=0, ge=0, description="0-based position in the submission",
    )
    declared_area_hectares: Optional[float] = Field(
        None, description="Area stated by the producer, if any",
    )
    farmer_name: Optional[str] = Field(None, description="Farmer name")
    aggregator_name: Optional[str] = Field(None, description="Aggregator name")
    mapping_date: Optional[str] = Field(None, description="Mapping date")
    plot_name: Optional[str] = Field(None, description="Plot name")
    properties: Dict[str, Any] = Field(
        default_factory=dict, description="Original feature properties",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("area_hectares", mode="before")
    @classmethod
    def _coerce_area(cls, value: Any) -> float:
        return coerce_area(value)

    @field_validator("declared_area_hectares", mode="before")
    @classmethod
    def _coerce_declared_area(cls, value: Any) -> Optional[float]:
        if value is None:
            return None
        return coerce_area(value)


class NormalizationResult(BaseModel):
    """Output of the geometry normalizer.

    Attributes:
        plots: Successfully normalized plots, in submission order.
        issues: Every issue recorded, including notices on kept features.
        total_features: Number of features submitted.
        rejected_count: Number of features excluded.
        warning: Set when more than half of the features were rejected.
    """

    plots: List[NormalizedPlot] = Field(default_factory=list)
    issues: List[NormalizationIssue] = Field(default_factory=list)
    total_features: int = Field(default=0, ge=0)
    rejected_count: int = Field(default=0, ge=0)
    warning: Optional[str] = Field(None)

    model_config = ConfigDict(from_attributes=True)

    @property
    def duplicate_ids(self) -> List[str]:
        """Plot ids that appear more than once, in first-seen order."""
        return [
            issue.plot_id for issue in self.issues
            if issue.code == "duplicate_id" and issue.plot_id is not None
        ]

    @property
    def synthesized_ids(self) -> List[str]:
        """Plot ids that were generated."""
        return [plot.plot_id for plot in self.plots if plot.id_synthesized]


class DatasetLoss(BaseModel):
    """Loss classification for one forest-loss dataset.

    Attributes:
        area_hectares: Loss area in hectares (0 when unknown).
        status: HIGH when loss is above threshold, LOW when not,
            UNKNOWN when the oracle could not be reached.
        tier: Presentation tier (none/marginal/significant/unknown).
    """

    area_hectares: float = Field(default=0.0, ge=0.0)
    status: RiskLevel = Field(default=RiskLevel.UNKNOWN)
    tier: LossTier = Field(default=LossTier.UNKNOWN)

    model_config = ConfigDict(frozen=True)

    @field_validator("area_hectares", mode="before")
    @classmethod
    def _coerce_area(cls, value: Any) -> float:
        return coerce_area(value)

    @classmethod
    def from_area(
        cls,
        area_hectares: Any,
        threshold_ha: float = 0.001,
        significant_ha: float = 0.01,
    ) -> DatasetLoss:
        """Classify a known loss area against the deforestation threshold."""
        area = coerce_area(area_hectares)
        if area <= threshold_ha:
            return cls(area_hectares=area, status=RiskLevel.LOW, tier=LossTier.NONE)
        tier = LossTier.SIGNIFICANT if area >= significant_ha else LossTier.MARGINAL
        return cls(area_hectares=area, status=RiskLevel.HIGH, tier=tier)

    @classmethod
    def unknown(cls) -> DatasetLoss:
        """Loss entry for a dataset whose oracle failed."""
        return cls(area_hectares=0.0, status=RiskLevel.UNKNOWN, tier=LossTier.UNKNOWN)

    @property
    def has_loss(self) -> bool:
        """Whether this dataset contributes to a HIGH verdict."""
        return self.status in (RiskLevel.HIGH, RiskLevel.MEDIUM)

    @property
    def is_known(self) -> bool:
        return self.status != RiskLevel.UNKNOWN

    @property
    def flag(self) -> str:
        """Wire flag: TRUE, FALSE or UNKNOWN."""
        if not self.is_known:
            return "UNKNOWN"
        return "TRUE" if self.has_loss else "FALSE"


class ClassifiedPlot(NormalizedPlot):
    """A normalized plot with its risk and compliance classification.

    Attributes:
        dataset_loss: Loss classification per dataset (gfw, jrc, sbtn).
        wdpa_status: PROTECTED/NOT_PROTECTED/UNKNOWN or "X.XXXX ha".
        peatland_status: PEATLAND/NOT_PEATLAND/UNKNOWN or "X.XXXX ha".
        overall_risk: Aggregate risk verdict.
        compliance_status: Compliance determination.
        high_risk_datasets: Datasets individually above threshold.
        analysis_date: When the plot was classified.
        supplier_id: Supplier the plot is associated with, if any.
        compliance_override: Whether compliance was set manually.
        provenance_hash: SHA-256 of the classification payload.
    """

    dataset_loss: Dict[str, DatasetLoss] = Field(default_factory=dict)
    wdpa_status: str = Field(default=STATUS_UNKNOWN)
    peatland_status: str = Field(default=STATUS_UNKNOWN)
    overall_risk: RiskLevel = Field(default=RiskLevel.UNKNOWN)
    compliance_status: ComplianceStatus = Field(default=ComplianceStatus.UNKNOWN)
    high_risk_datasets: List[str] = Field(default_factory=list)
    analysis_date: datetime = Field(default_factory=_utcnow)
    supplier_id: Optional[str] = Field(None)
    compliance_override: bool = Field(default=False)
    provenance_hash: str = Field(default="")

    @model_validator(mode="after")
    def _fill_missing_datasets(self) -> ClassifiedPlot:
        missing = [name for name in LOSS_DATASETS if name not in self.dataset_loss]
        if missing:
            losses = dict(self.dataset_loss)
            for name in missing:
                losses[name] = DatasetLoss.unknown()
            object.__setattr__(self, "dataset_loss", losses)
        return self

    def loss_for(self, dataset: str) -> DatasetLoss:
        """Return the loss entry for a dataset name (gfw, jrc, sbtn)."""
        return self.dataset_loss.get(dataset, DatasetLoss.unknown())

    @property
    def has_missing_data(self) -> bool:
        """Whether any loss or overlap dataset was unreachable."""
        if any(not self.loss_for(name).is_known for name in LOSS_DATASETS):
            return True
        return STATUS_UNKNOWN in (self.wdpa_status, self.peatland_status)

    @classmethod
    def from_normalized(cls, plot: NormalizedPlot, **classification: Any) -> ClassifiedPlot:
        """Build a ClassifiedPlot from a NormalizedPlot plus classification fields."""
        base = plot.model_dump()
        for key in cls.model_fields:
            if key in classification:
                base[key] = classification[key]
        return cls(**base)

    def to_api_dict(self) -> Dict[str, Any]:
        """Render the camelCase wire shape used by the REST API."""
        gfw = self.loss_for("gfw")
        jrc = self.loss_for("jrc")
        sbtn = self.loss_for("sbtn")
        return {
            "plotId": self.plot_id,
            "country": self.country,
            "area": self.area_hectares,
            "overallRisk": self.overall_risk.value,
            "complianceStatus": self.compliance_status.value,
            "gfwLoss": gfw.flag,
            "jrcLoss": jrc.flag,
            "sbtnLoss": sbtn.flag,
            "gfwLossArea": gfw.area_hectares,
            "jrcLossArea": jrc.area_hectares,
            "sbtnLossArea": sbtn.area_hectares,
            "geometry": self.geometry,
            "wdpaStatus": self.wdpa_status,
            "peatlandStatus": self.peatland_status,
            "highRiskDatasets": list(self.high_risk_datasets),
            "datasetLoss": {
                name: self.loss_for(name).model_dump(mode="json")
                for name in LOSS_DATASETS
            },
            "analysisDate": self.analysis_date.isoformat(),
            "supplierId": self.supplier_id,
            "idSynthesized": self.id_synthesized,
            "declaredArea": self.declared_area_hectares,
            "farmerName": self.farmer_name,
            "aggregatorName": self.aggregator_name,
            "mappingDate": self.mapping_date,
            "plotName": self.plot_name,
            "complianceOverride": self.compliance_override,
            "provenanceHash": self.provenance_hash,
        }

    @classmethod
    def from_api_dict(cls, data: Dict[str, Any]) -> ClassifiedPlot:
        """Parse the camelCase wire shape, coercing every numeric field.

        Loss areas supplied as strings, blanks or nulls become floats
        (``0.0`` when absent or invalid).
        """
        losses: Dict[str, DatasetLoss] = {}
        detailed = data.get("datasetLoss") or {}
        for name in LOSS_DATASETS:
            if isinstance(detailed.get(name), dict):
                losses[name] = DatasetLoss.model_validate(detailed[name])
                continue
            area = coerce_area(data.get(f"{name}LossArea"))
            flag = str(data.get(f"{name}Loss") or "").upper()
            if flag == "TRUE":
                tier = LossTier.SIGNIFICANT if area >= 0.01 else LossTier.MARGINAL
                losses[name] = DatasetLoss(
                    area_hectares=area, status=RiskLevel.HIGH, tier=tier,
                )
            elif flag == "FALSE":
                losses[name] = DatasetLoss(
                    area_hectares=area, status=RiskLevel.LOW, tier=LossTier.NONE,
                )
            else:
                losses[name] = DatasetLoss(
                    area_hectares=area, status=RiskLevel.UNKNOWN, tier=LossTier.UNKNOWN,
                )

        fields: Dict[str, Any] = {
            "plot_id": str(data.get("plotId") or ""),
            "country": data.get("country") or "unknown",
            "geometry": data.get("geometry") or {},
            "area_hectares": data.get("area"),
            "dataset_loss": losses,
            "wdpa_status": data.get("wdpaStatus") or STATUS_UNKNOWN,
            "peatland_status": data.get("peatlandStatus") or STATUS_UNKNOWN,
            "overall_risk": data.get("overallRisk") or RiskLevel.UNKNOWN,
            "compliance_status": data.get("complianceStatus") or ComplianceStatus.UNKNOWN,
            "high_risk_datasets": list(data.get("highRiskDatasets") or []),
            "supplier_id": data.get("supplierId"),
            "id_synthesized": bool(data.get("idSynthesized", False)),
            "declared_area_hectares": data.get("declaredArea"),
            "farmer_name": data.get("farmerName"),
            "aggregator_name": data.get("aggregatorName"),
            "mapping_date": data.get("mappingDate"),
            "plot_name": data.get("plotName"),
            "compliance_override": bool(data.get("complianceOverride", False)),
            "provenance_hash": data.get("provenanceHash") or "",
        }
        if data.get("analysisDate"):
            fields["analysis_date"] = data["analysisDate"]
        return cls(**fields)


class ViewportBounds(BaseModel):
    """Geographic bounding box in WGS84 degrees.

    Attributes:
        west: Minimum longitude.
        south: Minimum latitude.
        east: Maximum longitude.
        north: Maximum latitude.
    """

    west: float = Field(..., ge=-180.0, le=180.0)
    south: float = Field(..., ge=-90.0, le=90.0)
    east: float = Field(..., ge=-180.0, le=180.0)
    north: float = Field(..., ge=-90.0, le=90.0)

    model_config = ConfigDict(frozen=True)

    @field_validator("west", "south", "east", "north", mode="before")
    @classmethod
    def _require_finite(cls, value: Any) -> float:
        if value is None or isinstance(value, bool) or value == "":
            raise ValueError("bound is required")
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            raise ValueError("bound must be finite")
        return number

    @model_validator(mode="after")
    def _check_order(self) -> ViewportBounds:
        if self.west >= self.east:
            raise ValueError("west must be less than east")
        if self.south >= self.north:
            raise ValueError("south must be less than north")
        return self

    @classmethod
    def from_tuple(cls, bounds: Tuple[float, float, float, float]) -> ViewportBounds:
        west, south, east, north = bounds
        return cls(west=west, south=south, east=east, north=north)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)

    @property
    def area_deg2(self) -> float:
        """Area of the box in square degrees."""
        return (self.east - self.west) * (self.north - self.south)

    def buffered(self, degrees: float) -> ViewportBounds:
        """Return the box grown by ``degrees`` on every side, clipped to WGS84."""
        return ViewportBounds(
            west=max(-180.0, self.west - degrees),
            south=max(-90.0, self.south - degrees),
            east=min(180.0, self.east + degrees),
            north=min(90.0, self.north + degrees),
        )

    def cache_key(self, precision: int = 4) -> Tuple[float, ...]:
        """Rounded tuple used to match cached overlay results."""
        return tuple(round(v, precision) for v in self.as_tuple())


class StrategyAttempt(BaseModel):
    """Audit record of one overlay strategy attempt.

    Attributes:
        strategy: Strategy name.
        source: Position of the strategy in the chain.
        outcome: loaded, empty or error.
        feature_count: Features returned.
        error: Error text when outcome is error.
        duration_ms: Wall time of the attempt.
    """

    strategy: str
    source: LayerSource
    outcome: str
    feature_count: int = 0
    error: Optional[str] = None
    duration_ms: float = 0.0


# =============================================================================
# Result Models
# =============================================================================


class LayerResult(BaseModel):
    """Outcome of loading one overlay layer.

    ``available`` is False only when every strategy raised; that is the
    ``Unavailable`` result. An empty but successful terminal strategy is
    available with zero features.

    Attributes:
        layer: Layer name.
        available: Whether any strategy completed.
        source: Strategy position that produced the features.
        state: Layer state after the load.
        features: GeoJSON features.
        bounds: Effective query bounds (after extent substitution).
        attempts: Audit trail of strategy attempts.
        from_cache: Whether the result was served from the layer cache.
    """

    layer: str
    available: bool = True
    source: Optional[LayerSource] = None
    state: LayerState = LayerState.UNLOADED
    features: List[Dict[str, Any]] = Field(default_factory=list)
    bounds: Optional[Tuple[float, float, float, float]] = None
    attempts: List[StrategyAttempt] = Field(default_factory=list)
    from_cache: bool = False

    @classmethod
    def unavailable(
        cls,
        layer: str,
        attempts: List[StrategyAttempt],
        bounds: Optional[Tuple[float, float, float, float]] = None,
    ) -> LayerResult:
        return cls(
            layer=layer,
            available=False,
            source=None,
            state=LayerState.FAILED,
            features=[],
            bounds=bounds,
            attempts=attempts,
        )

    def feature_collection(self) -> Dict[str, Any]:
        """Return the features as a GeoJSON FeatureCollection."""
        return {"type": "FeatureCollection", "features": list(self.features)}


class UploadSummary(BaseModel):
    """Summary of one upload-and-classify run."""

    filename: str = Field(default="")
    session_token: str = Field(default="")
    generation: int = Field(default=0)
    total_features: int = Field(default=0)
    plots_normalized: int = Field(default=0)
    plots_rejected: int = Field(default=0)
    plots_classified: int = Field(default=0)
    plots_with_missing_data: int = Field(default=0)
    risk_counts: Dict[str, int] = Field(default_factory=dict)
    compliance_counts: Dict[str, int] = Field(default_factory=dict)
    duration_ms: float = Field(default=0.0)


class UploadResult(BaseModel):
    """Everything one upload produced: plots, issues and the summary."""

    summary: UploadSummary
    plots: List[ClassifiedPlot] = Field(default_factory=list)
    issues: List[NormalizationIssue] = Field(default_factory=list)
    warning: Optional[str] = None

    def to_feature_collection(self) -> Dict[str, Any]:
        """Enriched FeatureCollection: original properties plus risk fields."""
        features = []
        for plot in self.plots:
            wire = plot.to_api_dict()
            geometry = wire.pop("geometry")
            features.append({
                "type": "Feature",
                "properties": {**plot.properties, **wire},
                "geometry": geometry,
            })
        return {"type": "FeatureCollection", "features": features}

    def to_response(self) -> Dict[str, Any]:
        """Upload response body."""
        body = self.to_feature_collection()
        body["summary"] = self.summary.model_dump(mode="json")
        body["issues"] = [issue.model_dump(mode="json") for issue in self.issues]
        body["warning"] = self.warning
        body["sessionToken"] = self.summary.session_token
        return body


class AssociationResult(BaseModel):
    """Result of a bulk plot/supplier association."""

    supplier_id: str
    count: int = 0
    plot_ids: List[str] = Field(default_factory=list)
    missing_plot_ids: List[str] = Field(default_factory=list)


class AnalysisStatistics(BaseModel):
    """Aggregate service statistics."""

    total_uploads: int = 0
    total_features_received: int = 0
    total_plots_normalized: int = 0
    total_plots_rejected: int = 0
    total_plots_classified: int = 0
    total_oracle_failures: int = 0
    total_overlay_loads: int = 0
    total_overlay_fallbacks: int = 0
    total_exports: int = 0
    active_session_plots: int = 0
    risk_counts: Dict[str, int] = Field(default_factory=dict)
    compliance_counts: Dict[str, int] = Field(default_factory=dict)


__all__ = [
    # Helpers
    "coerce_number",
    "coerce_area",
    # Enumerations
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
    # Constants
    "LOSS_DATASETS",
    "PROTECTED",
    "NOT_PROTECTED",
    "PEATLAND",
    "NOT_PEATLAND",
    "STATUS_UNKNOWN",
    # Core models
    "NormalizationIssue",
    "NormalizedPlot",
    "NormalizationResult",
    "DatasetLoss",
    "ClassifiedPlot",
    "ViewportBounds",
    "StrategyAttempt",
    # Results
    "LayerResult",
    "UploadSummary",
    "UploadResult",
    "AssociationResult",
    "AnalysisStatistics",
]
