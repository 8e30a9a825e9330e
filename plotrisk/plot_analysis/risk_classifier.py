# -*- coding: utf-8 -*-
"""
Risk Classifier Engine

Classifies each normalized plot against three independent forest-loss
datasets (GFW, JRC, SBTN) and two legal overlap datasets (WDPA protected
areas, peatland), then derives the plot's overall risk and compliance.

Rules:
    - A dataset shows loss when its loss area exceeds ``loss_threshold_ha``
      (0.001 ha). Loss below ``significant_loss_ha`` (0.01 ha) is
      marginal, at or above it significant; both count as loss.
    - overall_risk is HIGH when any reachable dataset shows loss, LOW
      otherwise, UNKNOWN when all three loss datasets are unreachable.
    - compliance_status is NON-COMPLIANT when overall_risk is HIGH or a
      hard legal gate fails (protected-area overlap; peatland overlap when
      the peatland gate is enabled). Otherwise UNKNOWN risk stays UNKNOWN
      and LOW risk is COMPLIANT.
    - An unreachable oracle (exception or timeout) makes its dataset
      UNKNOWN; it is excluded from aggregation and never gates.

Concurrency:
    Plots are classified concurrently, bounded by an asyncio.Semaphore of
    ``max_concurrent_plots``. The five oracle calls of a plot run through
    asyncio.gather, each wrapped in asyncio.wait_for.

Example:
    >>> from plotrisk.plot_analysis.risk_classifier import RiskClassifierEngine
    >>> engine = RiskClassifierEngine()
    >>> classified = await engine.classify(result.plots, progress=print)
    >>> classified[0].overall_risk
    <RiskLevel.LOW: 'LOW'>

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from plotrisk.connectors.errors import classify_connector_error
from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.metrics import (
    record_classification,
    record_oracle_call,
    record_pipeline_duration,
)
from plotrisk.plot_analysis.models import (
    LOSS_DATASETS,
    NOT_PEATLAND,
    NOT_PROTECTED,
    PEATLAND,
    PROTECTED,
    STATUS_UNKNOWN,
    ClassifiedPlot,
    ComplianceStatus,
    DatasetLoss,
    NormalizedPlot,
    RiskLevel,
    coerce_area,
)
from plotrisk.plot_analysis.oracles import (
    LossOracle,
    LossReading,
    OverlapOracle,
    build_default_oracles,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Any]


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------


def format_overlap(
    area_hectares: Optional[float],
    threshold_ha: float,
    negative_label: str,
) -> str:
    """Render an overlap area as a status string.

    Args:
        area_hectares: Overlap area, or None when the oracle failed.
        threshold_ha: Minimum overlap reported as an intersection.
        negative_label: NOT_PROTECTED or NOT_PEATLAND.

    Returns:
        ``"X.XXXX ha"``, the negative label, or UNKNOWN.
    """
    if area_hectares is None:
        return STATUS_UNKNOWN
    area = coerce_area(area_hectares)
    if area >= threshold_ha:
        return f"{area:.4f} ha"
    return negative_label


def overlap_detected(status: str) -> bool:
    """Whether an overlap status string reports an intersection."""
    return status in (PROTECTED, PEATLAND) or status.endswith(" ha")


def aggregate_risk(dataset_loss: Dict[str, DatasetLoss]) -> RiskLevel:
    """Overall risk from the per-dataset loss entries."""
    known = [loss for loss in dataset_loss.values() if loss.is_known]
    if not known:
        return RiskLevel.UNKNOWN
    if any(loss.has_loss for loss in known):
        return RiskLevel.HIGH
    return RiskLevel.LOW


def determine_compliance(
    overall_risk: RiskLevel,
    wdpa_status: str,
    peatland_status: str,
    peatland_gate_enabled: bool = True,
) -> ComplianceStatus:
    """Compliance from overall risk and the legal gates."""
    gate_failed = overlap_detected(wdpa_status) or (
        peatland_gate_enabled and overlap_detected(peatland_status)
    )
    if overall_risk == RiskLevel.HIGH or gate_failed:
        return ComplianceStatus.NON_COMPLIANT
    if overall_risk == RiskLevel.UNKNOWN:
        return ComplianceStatus.UNKNOWN
    return ComplianceStatus.COMPLIANT


# =============================================================================
# RiskClassifierEngine
# =============================================================================


class RiskClassifierEngine:
    """Classifies plots against loss and overlap oracles.

    Attributes:
        config: PlotAnalysisConfig instance.
        provenance: Optional ProvenanceTracker.
        loss_oracles: Loss oracle per dataset (gfw, jrc, sbtn).
        overlap_oracles: Overlap oracle per dataset (wdpa, peatland).
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        loss_oracles: Optional[Dict[str, LossOracle]] = None,
        overlap_oracles: Optional[Dict[str, OverlapOracle]] = None,
    ) -> None:
        """Initialize RiskClassifierEngine.

        Oracles not supplied are built from the configuration.

        Args:
            config: Optional PlotAnalysisConfig. Uses global config if None.
            provenance: Optional ProvenanceTracker for audit trails.
            loss_oracles: Optional loss oracles keyed by dataset.
            overlap_oracles: Optional overlap oracles keyed by dataset.
        """
        self.config = config or get_config()
        self.provenance = provenance
        if loss_oracles is None or overlap_oracles is None:
            default_loss, default_overlap = build_default_oracles(self.config)
            loss_oracles = default_loss if loss_oracles is None else loss_oracles
            overlap_oracles = (
                default_overlap if overlap_oracles is None else overlap_oracles
            )
        self.loss_oracles: Dict[str, LossOracle] = dict(loss_oracles)
        self.overlap_oracles: Dict[str, OverlapOracle] = dict(overlap_oracles)

        self._plots_classified: int = 0
        self._oracle_failures: int = 0
        self._risk_counts: Dict[str, int] = {}
        self._compliance_counts: Dict[str, int] = {}
        logger.info(
            "RiskClassifierEngine initialized: threshold=%.4fha, "
            "concurrency=%d, timeout=%.1fs, loss=%s, overlap=%s",
            self.config.loss_threshold_ha,
            self.config.max_concurrent_plots,
            self.config.oracle_timeout_seconds,
            sorted(self.loss_oracles),
            sorted(self.overlap_oracles),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def classify(
        self,
        plots: Sequence[NormalizedPlot],
        progress: Optional[ProgressCallback] = None,
    ) -> List[ClassifiedPlot]:
        """Classify plots concurrently, preserving input order.

        Args:
            plots: Normalized plots.
            progress: Optional callback receiving integer percentages
                0..100, non-decreasing. May be sync or async.

        Returns:
            ClassifiedPlot per input plot, in the same order.
        """
        start = time.monotonic()
        total = len(plots)
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_plots))
        reporter = _ProgressReporter(progress)
        await reporter.report(0)
        if not plots:
            await reporter.report(100)
            return []

        done = 0

        async def _bounded(plot: NormalizedPlot) -> ClassifiedPlot:
            nonlocal done
            async with semaphore:
                classified = await self.classify_plot(plot)
            done += 1
            await reporter.report(done * 100 // total)
            return classified

        results = await asyncio.gather(*(_bounded(plot) for plot in plots))

        elapsed = time.monotonic() - start
        record_pipeline_duration("classify", elapsed)
        missing = sum(1 for plot in results if plot.has_missing_data)
        logger.info(
            "Classified %d plots in %.2fs (%d with missing data)",
            total, elapsed, missing,
        )
        return list(results)

    async def classify_plot(self, plot: NormalizedPlot) -> ClassifiedPlot:
        """Query every oracle for one plot and apply the classification rules."""
        loss_names = list(LOSS_DATASETS)
        overlap_names = ["wdpa", "peatland"]
        calls = [self._query_loss(name, plot) for name in loss_names]
        calls += [self._query_overlap(name, plot) for name in overlap_names]
        answers = await asyncio.gather(*calls)

        loss_areas = dict(zip(loss_names, answers[:len(loss_names)]))
        wdpa_area, peat_area = answers[len(loss_names):]
        return self.evaluate(plot, loss_areas, wdpa_area, peat_area)

    async def reclassify(self, plot: Union[NormalizedPlot, ClassifiedPlot]) -> ClassifiedPlot:
        """Re-run classification for a single plot.

        The supplier association of an already classified plot is kept; a
        manual compliance override is dropped because the verdict is fresh.
        """
        classified = await self.classify_plot(plot)
        if isinstance(plot, ClassifiedPlot) and plot.supplier_id:
            classified = classified.model_copy(update={"supplier_id": plot.supplier_id})
        logger.info(
            "Reclassified plot %s: %s/%s", plot.plot_id,
            classified.overall_risk.value, classified.compliance_status.value,
        )
        return classified

    def evaluate(
        self,
        plot: NormalizedPlot,
        loss_areas: Dict[str, Optional[float]],
        wdpa_area: Optional[float],
        peatland_area: Optional[float],
    ) -> ClassifiedPlot:
        """Apply the classification rules to oracle answers.

        Args:
            plot: Plot being classified.
            loss_areas: Loss hectares per dataset; None marks an unreachable
                oracle.
            wdpa_area: Protected-area overlap hectares or None.
            peatland_area: Peatland overlap hectares or None.

        Returns:
            ClassifiedPlot carrying the verdict.
        """
        cfg = self.config
        dataset_loss: Dict[str, DatasetLoss] = {}
        for name in LOSS_DATASETS:
            area = loss_areas.get(name)
            if area is None:
                dataset_loss[name] = DatasetLoss.unknown()
            else:
                dataset_loss[name] = DatasetLoss.from_area(
                    area, cfg.loss_threshold_ha, cfg.significant_loss_ha,
                )

        wdpa_status = format_overlap(wdpa_area, cfg.overlap_threshold_ha, NOT_PROTECTED)
        peatland_status = format_overlap(
            peatland_area, cfg.overlap_threshold_ha, NOT_PEATLAND,
        )
        overall_risk = aggregate_risk(dataset_loss)
        compliance = determine_compliance(
            overall_risk, wdpa_status, peatland_status, cfg.peatland_gate_enabled,
        )
        high_risk = [
            name for name in LOSS_DATASETS if dataset_loss[name].has_loss
        ]

        classification = {
            "dataset_loss": dataset_loss,
            "wdpa_status": wdpa_status,
            "peatland_status": peatland_status,
            "overall_risk": overall_risk,
            "compliance_status": compliance,
            "high_risk_datasets": high_risk,
            "analysis_date": _utcnow(),
            "compliance_override": False,
        }
        provenance_hash = self._hash_classification(plot, classification)
        classified = ClassifiedPlot.from_normalized(
            plot, provenance_hash=provenance_hash, **classification,
        )

        self._plots_classified += 1
        self._risk_counts[overall_risk.value] = self._risk_counts.get(overall_risk.value, 0) + 1
        self._compliance_counts[compliance.value] = (
            self._compliance_counts.get(compliance.value, 0) + 1
        )
        record_classification(overall_risk.value, compliance.value)
        if self.provenance is not None:
            self.provenance.record(
                "classification", plot.plot_id, "classify", provenance_hash,
            )
        logger.debug(
            "Plot %s: risk=%s compliance=%s high=%s wdpa=%s peat=%s",
            plot.plot_id, overall_risk.value, compliance.value, high_risk,
            wdpa_status, peatland_status,
        )
        return classified

    @staticmethod
    def summarize(plots: Sequence[ClassifiedPlot]) -> Dict[str, Any]:
        """Counts by risk and compliance plus plots with missing data."""
        risk_counts = {level.value: 0 for level in RiskLevel}
        compliance_counts = {status.value: 0 for status in ComplianceStatus}
        missing = 0
        for plot in plots:
            risk_counts[plot.overall_risk.value] += 1
            compliance_counts[plot.compliance_status.value] += 1
            if plot.has_missing_data:
                missing += 1
        return {
            "risk_counts": risk_counts,
            "compliance_counts": compliance_counts,
            "plots_with_missing_data": missing,
        }

    async def close(self) -> None:
        """Close every oracle's network resources."""
        for oracle in list(self.loss_oracles.values()) + list(self.overlap_oracles.values()):
            await oracle.close()

    # ------------------------------------------------------------------
    # Oracle calls
    # ------------------------------------------------------------------

    async def _query_loss(self, dataset: str, plot: NormalizedPlot) -> Optional[float]:
        oracle = self.loss_oracles.get(dataset)
        if oracle is None:
            return None
        reading = await self._call(dataset, plot, oracle.query(plot))
        if reading is None:
            return None
        if isinstance(reading, LossReading):
            return reading.to_hectares(plot.area_hectares)
        return coerce_area(reading)

    async def _query_overlap(self, dataset: str, plot: NormalizedPlot) -> Optional[float]:
        oracle = self.overlap_oracles.get(dataset)
        if oracle is None:
            return None
        area = await self._call(dataset, plot, oracle.query(plot))
        return None if area is None else coerce_area(area)

    async def _call(self, dataset: str, plot: NormalizedPlot, coro: Any) -> Any:
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(coro, timeout=self.config.oracle_timeout_seconds)
        except asyncio.TimeoutError:
            self._oracle_failures += 1
            record_oracle_call(dataset, "timeout", time.monotonic() - start)
            logger.warning(
                "Oracle %s timed out after %.1fs for plot %s",
                dataset, self.config.oracle_timeout_seconds, plot.plot_id,
            )
            return None
        except Exception as exc:
            self._oracle_failures += 1
            error = classify_connector_error(exc, f"oracle/{dataset}")
            record_oracle_call(dataset, "error", time.monotonic() - start)
            logger.warning(
                "Oracle %s failed for plot %s: %s (%s)",
                dataset, plot.plot_id, error.message, type(error).__name__,
            )
            return None
        record_oracle_call(dataset, "success", time.monotonic() - start)
        return result

    def _hash_classification(
        self,
        plot: NormalizedPlot,
        classification: Dict[str, Any],
    ) -> str:

        payload = {
            "plot_id": plot.plot_id,
            "geometry": plot.geometry,
            "area_hectares": plot.area_hectares,
            "dataset_loss": {
                name: loss.model_dump(mode="json")
                for name, loss in classification["dataset_loss"].items()
            },
            "wdpa_status": classification["wdpa_status"],
            "peatland_status": classification["peatland_status"],
            "overall_risk": classification["overall_risk"].value,
            "compliance_status": classification["compliance_status"].value,
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def plots_classified(self) -> int:
        return self._plots_classified

    @property
    def oracle_failures(self) -> int:
        """Number of oracle calls that raised or timed out."""
        return self._oracle_failures

    @property
    def risk_counts(self) -> Dict[str, int]:
        return dict(self._risk_counts)

    @property
    def compliance_counts(self) -> Dict[str, int]:
        return dict(self._compliance_counts)


class _ProgressReporter:
    """Forwards strictly increasing integer percentages to a callback."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = -1

    async def report(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if self._callback is None or percent <= self._last:
            return
        self._last = percent
        result = self._callback(percent)
        if inspect.isawaitable(result):
            await result


__all__ = [
    "RiskClassifierEngine",
    "ProgressCallback",
    "format_overlap",
    "overlap_detected",
    "aggregate_risk",
    "determine_compliance",
]
