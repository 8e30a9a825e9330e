# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Plot Analysis Pipeline

14 Prometheus metrics for plot analysis service monitoring.

Metrics:
    1.  plotrisk_analysis_uploads_total (Counter) [format, status]
    2.  plotrisk_analysis_features_total (Counter) [outcome]
    3.  plotrisk_analysis_oracle_calls_total (Counter) [dataset, outcome]
    4.  plotrisk_analysis_oracle_duration_seconds (Histogram) [dataset]
    5.  plotrisk_analysis_classifications_total (Counter) [overall_risk, compliance_status]
    6.  plotrisk_analysis_session_operations_total (Counter) [operation, status]
    7.  plotrisk_analysis_overlay_loads_total (Counter) [layer, source]
    8.  plotrisk_analysis_overlay_fallbacks_total (Counter) [layer, strategy]
    9.  plotrisk_analysis_overlay_duration_seconds (Histogram) [layer]
    10. plotrisk_analysis_exports_total (Counter) [format]
    11. plotrisk_analysis_associations_total (Counter) [status]
    12. plotrisk_analysis_processing_errors_total (Counter) [engine, error_type]
    13. plotrisk_analysis_active_session_plots (Gauge) []
    14. plotrisk_analysis_pipeline_duration_seconds (Histogram) [stage]

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Uploads by file format and status
uploads_total = Counter(
    "plotrisk_analysis_uploads_total",
    "Total plot file uploads processed",
    labelnames=["format", "status"],
)

# 2. Features by normalization outcome
features_total = Counter(
    "plotrisk_analysis_features_total",
    "Total features processed by the geometry normalizer",
    labelnames=["outcome"],
)

# 3. Oracle calls by dataset and outcome
oracle_calls_total = Counter(
    "plotrisk_analysis_oracle_calls_total",
    "Total dataset oracle calls",
    labelnames=["dataset", "outcome"],
)

# 4. Oracle latency
oracle_duration_seconds = Histogram(
    "plotrisk_analysis_oracle_duration_seconds",
    "Dataset oracle call duration in seconds",
    labelnames=["dataset"],
    buckets=(
        0.05, 0.1, 0.25, 0.5, 1.0, 2.5,
        5.0, 10.0, 30.0, 60.0, 120.0,
    ),
)

# 5. Plot classifications by verdict
classifications_total = Counter(
    "plotrisk_analysis_classifications_total",
    "Total plots classified",
    labelnames=["overall_risk", "compliance_status"],
)

# 6. Session store operations
session_operations_total = Counter(
    "plotrisk_analysis_session_operations_total",
    "Total analysis session store operations",
    labelnames=["operation", "status"],
)

# 7. Overlay loads by layer and source
overlay_loads_total = Counter(
    "plotrisk_analysis_overlay_loads_total",
    "Total overlay layer loads",
    labelnames=["layer", "source"],
)

# 8. Overlay strategy fall-throughs
overlay_fallbacks_total = Counter(
    "plotrisk_analysis_overlay_fallbacks_total",
    "Total overlay strategies that fell through to the next strategy",
    labelnames=["layer", "strategy"],
)

# 9. Overlay load latency
overlay_duration_seconds = Histogram(
    "plotrisk_analysis_overlay_duration_seconds",
    "Overlay layer load duration in seconds",
    labelnames=["layer"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0),
)

# 10. Exports by format
exports_total = Counter(
    "plotrisk_analysis_exports_total",
    "Total plot exports produced",
    labelnames=["format"],
)

# 11. Supplier associations
associations_total = Counter(
    "plotrisk_analysis_associations_total",
    "Total bulk plot/supplier associations",
    labelnames=["status"],
)

# 12. Processing errors by engine and error type
processing_errors_total = Counter(
    "plotrisk_analysis_processing_errors_total",
    "Total processing errors encountered",
    labelnames=["engine", "error_type"],
)

# 13. Plots in the active session
active_session_plots = Gauge(
    "plotrisk_analysis_active_session_plots",
    "Number of classified plots in the active analysis session",
)

# 14. Pipeline stage duration
pipeline_duration_seconds = Histogram(
    "plotrisk_analysis_pipeline_duration_seconds",
    "Pipeline stage execution duration in seconds",
    labelnames=["stage"],
    buckets=(
        0.01, 0.05, 0.1, 0.25, 0.5, 1.0,
        2.5, 5.0, 10.0, 30.0, 60.0, 300.0,
    ),
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_upload(file_format: str, status: str = "success") -> None:
    """Record a plot file upload.

    Args:
        file_format: Input format (geojson, kml).
        status: Upload status (success, rejected, failed).
    """
    uploads_total.labels(format=file_format, status=status).inc()


def record_features(outcome: str, count: int = 1) -> None:
    """Record features leaving the normalizer.

    Args:
        outcome: normalized or rejected.
        count: Number of features.
    """
    if count > 0:
        features_total.labels(outcome=outcome).inc(count)


def record_oracle_call(dataset: str, outcome: str, duration: float = 0.0) -> None:
    """Record a dataset oracle call.

    Args:
        dataset: Dataset name (gfw, jrc, sbtn, wdpa, peatland).
        outcome: success, timeout or error.
        duration: Call duration in seconds.
    """
    oracle_calls_total.labels(dataset=dataset, outcome=outcome).inc()
    oracle_duration_seconds.labels(dataset=dataset).observe(duration)


def record_classification(overall_risk: str, compliance_status: str) -> None:
    """Record a plot classification verdict.

    Args:
        overall_risk: LOW, MEDIUM, HIGH or UNKNOWN.
        compliance_status: COMPLIANT, NON-COMPLIANT or UNKNOWN.
    """
    classifications_total.labels(
        overall_risk=overall_risk, compliance_status=compliance_status,
    ).inc()


def record_session_operation(operation: str, status: str = "success") -> None:
    """Record a session store operation.

    Args:
        operation: save, restore, clear, replace.
        status: success, not_found, corrupt, stale, rejected.
    """
    session_operations_total.labels(operation=operation, status=status).inc()


def record_overlay_load(layer: str, source: str, duration: float = 0.0) -> None:
    """Record an overlay layer load.

    Args:
        layer: Layer name.
        source: primary, secondary, staticFallback, cache or unavailable.
        duration: Load duration in seconds.
    """
    overlay_loads_total.labels(layer=layer, source=source).inc()
    overlay_duration_seconds.labels(layer=layer).observe(duration)


def record_overlay_fallback(layer: str, strategy: str) -> None:
    """Record an overlay strategy falling through to the next one."""
    overlay_fallbacks_total.labels(layer=layer, strategy=strategy).inc()


def record_export(export_format: str = "csv") -> None:
    """Record a plot export."""
    exports_total.labels(format=export_format).inc()


def record_association(status: str = "success") -> None:
    """Record a bulk supplier association."""
    associations_total.labels(status=status).inc()


def record_processing_error(engine: str, error_type: str) -> None:
    """Record a processing error.

    Args:
        engine: Engine that raised (normalizer, classifier, session_store,
            overlay_loader, selection).
        error_type: Error class name or short code.
    """
    processing_errors_total.labels(engine=engine, error_type=error_type).inc()


def update_active_session_plots(count: int) -> None:
    """Set the number of plots in the active session."""
    active_session_plots.set(count)


def record_pipeline_duration(stage: str, duration: float) -> None:
    """Record the duration of a pipeline stage.

    Args:
        stage: normalize, classify, persist, export.
        duration: Duration in seconds.
    """
    pipeline_duration_seconds.labels(stage=stage).observe(duration)


__all__ = [
    "record_upload",
    "record_features",
    "record_oracle_call",
    "record_classification",
    "record_session_operation",
    "record_overlay_load",
    "record_overlay_fallback",
    "record_export",
    "record_association",
    "record_processing_error",
    "update_active_session_plots",
    "record_pipeline_duration",
]
