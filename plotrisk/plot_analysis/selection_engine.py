# -*- coding: utf-8 -*-
"""
Selection/Export Engine

Tabular view over a snapshot of classified plots: filtering, single-key
stable sorting, fixed-size paging, selection keyed by plot id and export.
Purely in-memory; never touches the network.

Rules:
    - Filters are AND-combined: case-insensitive substring search over
      plot id and country, exact risk, exact compliance, exact country.
    - Numeric columns sort numerically, the rest as case-insensitive
      strings. Sorting is stable in both directions.
    - Changing a filter or the sort resets the page to 1.
    - Selection keeps the order in which plot ids were selected. Plots
      sharing a duplicate id share one selection entry.
    - Export is the selected plots (selection order) that are visible
      under the current filters, or every filtered plot when nothing is
      selected.

Example:
    >>> view = PlotTableView(plots, page_size=10)
    >>> view.set_filters(risk="HIGH")
    >>> view.select("PLOT_007")
    >>> csv_text = plots_to_csv(view.export_plots())

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.models import (
    ClassifiedPlot,
    ComplianceStatus,
    RiskLevel,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sort keys
# ---------------------------------------------------------------------------

NUMERIC_SORT_FIELDS: Dict[str, Any] = {
    "area": lambda p: p.area_hectares,
    "gfw_loss_area": lambda p: p.loss_for("gfw").area_hectares,
    "jrc_loss_area": lambda p: p.loss_for("jrc").area_hectares,
    "sbtn_loss_area": lambda p: p.loss_for("sbtn").area_hectares,
}

TEXT_SORT_FIELDS: Dict[str, Any] = {
    "plot_id": lambda p: p.plot_id,
    "country": lambda p: p.country,
    "overall_risk": lambda p: p.overall_risk.value,
    "compliance_status": lambda p: p.compliance_status.value,
    "wdpa_status": lambda p: p.wdpa_status,
    "peatland_status": lambda p: p.peatland_status,
    "analysis_date": lambda p: p.analysis_date.isoformat(),
}

# camelCase column names accepted as aliases
SORT_ALIASES: Dict[str, str] = {
    "plotId": "plot_id",
    "overallRisk": "overall_risk",
    "complianceStatus": "compliance_status",
    "gfwLossArea": "gfw_loss_area",
    "jrcLossArea": "jrc_loss_area",
    "sbtnLossArea": "sbtn_loss_area",
    "wdpaStatus": "wdpa_status",
    "peatlandStatus": "peatland_status",
    "analysisDate": "analysis_date",
}


def sort_plots(
    plots: Sequence[ClassifiedPlot],
    field: str,
    descending: bool = False,
) -> List[ClassifiedPlot]:
    """Stable sort of plots by one column.

    Raises:
        ValueError: If the field is not sortable.
    """
    field = SORT_ALIASES.get(field, field)
    if field in NUMERIC_SORT_FIELDS:
        getter = NUMERIC_SORT_FIELDS[field]
        return sorted(plots, key=lambda p: float(getter(p)), reverse=descending)
    if field in TEXT_SORT_FIELDS:
        getter = TEXT_SORT_FIELDS[field]
        return sorted(plots, key=lambda p: str(getter(p)).casefold(), reverse=descending)
    raise ValueError(f"Unsortable field: {field}")


def select_for_export(
    filtered: Sequence[ClassifiedPlot],
    selected_ids: Sequence[str],
) -> List[ClassifiedPlot]:
    """Plots to export from a filtered view and a selection.

    Args:
        filtered: Plots visible under the current filters, in view order.
        selected_ids: Selected plot ids in selection order.

    Returns:
        Selected visible plots in selection order, or ``filtered`` when
        nothing is selected.
    """
    if not selected_ids:
        return list(filtered)
    by_id: Dict[str, List[ClassifiedPlot]] = {}
    for plot in filtered:
        by_id.setdefault(plot.plot_id, []).append(plot)
    exported: List[ClassifiedPlot] = []
    for plot_id in selected_ids:
        exported.extend(by_id.get(plot_id, []))
    return exported


# =============================================================================
# PlotTableView
# =============================================================================


class PlotTableView:
    """Filter/sort/page/select state over an immutable plot snapshot.

    Attributes:
        plots: The snapshot, in original order.
        page_size: Rows per page.
    """

    def __init__(
        self,
        plots: Sequence[ClassifiedPlot],
        page_size: Optional[int] = None,
        config: Any = None,
    ) -> None:
        cfg = config or get_config()
        self.plots = tuple(plots)
        self.page_size = max(1, page_size or cfg.page_size)

        self._search = ""
        self._risk: Optional[str] = None
        self._compliance: Optional[str] = None
        self._country: Optional[str] = None
        self._sort_field: Optional[str] = None
        self._descending = False
        self._page = 1
        self._selected: Dict[str, None] = {}

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_filters(
        self,
        search: Optional[str] = None,
        risk: Optional[str] = None,
        compliance: Optional[str] = None,
        country: Optional[str] = None,
    ) -> None:
        """Replace every filter at once; blank values disable a filter.

        Raises:
            ValueError: If risk or compliance is not a known value.
        """
        self._search = (search or "").strip()
        self._risk = RiskLevel(risk.upper()).value if risk else None
        self._compliance = ComplianceStatus(compliance.upper()).value if compliance else None
        self._country = country.strip() if country and country.strip() else None
        self._page = 1

    def set_search(self, text: Optional[str]) -> None:
        self._search = (text or "").strip()
        self._page = 1

    def set_risk_filter(self, risk: Optional[str]) -> None:
        self._risk = RiskLevel(risk.upper()).value if risk else None
        self._page = 1

    def set_compliance_filter(self, compliance: Optional[str]) -> None:
        self._compliance = ComplianceStatus(compliance.upper()).value if compliance else None
        self._page = 1

    def set_country_filter(self, country: Optional[str]) -> None:
        self._country = country.strip() if country and country.strip() else None
        self._page = 1

    def _matches(self, plot: ClassifiedPlot) -> bool:
        if self._search:
            needle = self._search.casefold()
            if needle not in plot.plot_id.casefold() and needle not in plot.country.casefold():
                return False
        if self._risk and plot.overall_risk.value != self._risk:
            return False
        if self._compliance and plot.compliance_status.value != self._compliance:
            return False
        if self._country and plot.country != self._country:
            return False
        return True

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def sort_by(self, field: str) -> None:
        """Sort by a column; repeating the same column flips the direction."""
        field = SORT_ALIASES.get(field, field)
        if field not in NUMERIC_SORT_FIELDS and field not in TEXT_SORT_FIELDS:
            raise ValueError(f"Unsortable field: {field}")
        if field == self._sort_field:
            self._descending = not self._descending
        else:
            self._sort_field = field
            self._descending = False
        self._page = 1

    def set_sort(self, field: Optional[str], descending: bool = False) -> None:
        """Set the sort explicitly; None restores original order."""
        if field is not None:
            field = SORT_ALIASES.get(field, field)
            if field not in NUMERIC_SORT_FIELDS and field not in TEXT_SORT_FIELDS:
                raise ValueError(f"Unsortable field: {field}")
        self._sort_field = field
        self._descending = descending
        self._page = 1

    @property
    def sort_field(self) -> Optional[str]:
        return self._sort_field

    @property
    def descending(self) -> bool:
        return self._descending

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def filtered(self) -> List[ClassifiedPlot]:
        """Plots passing the filters, in sort order."""
        rows = [plot for plot in self.plots if self._matches(plot)]
        if self._sort_field is not None:
            rows = sort_plots(rows, self._sort_field, self._descending)
        return rows

    @property
    def page(self) -> int:
        return self._page

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.filtered()) / self.page_size))

    def go_to_page(self, page: int) -> int:
        """Move to a page, clamped to the valid range; returns the page."""
        self._page = min(max(1, int(page)), self.total_pages)
        return self._page

    def page_rows(self) -> List[ClassifiedPlot]:
        rows = self.filtered()
        start = (self._page - 1) * self.page_size
        return rows[start:start + self.page_size]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, plot_id: str) -> None:
        self._selected.setdefault(plot_id, None)

    def deselect(self, plot_id: str) -> None:
        self._selected.pop(plot_id, None)

    def toggle_selection(self, plot_id: str) -> bool:
        """Flip selection of a plot id; returns the new state."""
        if plot_id in self._selected:
            self.deselect(plot_id)
            return False
        self.select(plot_id)
        return True

    def select_all_on_page(self) -> None:
        for plot in self.page_rows():
            self.select(plot.plot_id)

    def select_all_filtered(self) -> None:
        for plot in self.filtered():
            self.select(plot.plot_id)

    def clear_selection(self) -> None:
        self._selected.clear()

    @property
    def selected_ids(self) -> List[str]:
        """Selected plot ids in selection order."""
        return list(self._selected)

    def is_selected(self, plot_id: str) -> bool:
        return plot_id in self._selected

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_plots(self) -> List[ClassifiedPlot]:
        """Plots to export for the current filters and selection."""
        exported = select_for_export(self.filtered(), self.selected_ids)
        logger.debug(
            "Export selection: %d plots (%d ids selected)",
            len(exported), len(self._selected),
        )
        return exported

    def summary(self) -> Dict[str, Any]:
        """Counts by risk and compliance plus total area of the filtered view."""
        rows = self.filtered()
        risk_counts = {level.value: 0 for level in RiskLevel}
        compliance_counts = {status.value: 0 for status in ComplianceStatus}
        for plot in rows:
            risk_counts[plot.overall_risk.value] += 1
            compliance_counts[plot.compliance_status.value] += 1
        return {
            "total_plots": len(self.plots),
            "filtered_plots": len(rows),
            "selected_plots": len(self._selected),
            "total_area_hectares": round(sum(p.area_hectares for p in rows), 4),
            "risk_counts": risk_counts,
            "compliance_counts": compliance_counts,
        }


__all__ = [
    "PlotTableView",
    "sort_plots",
    "select_for_export",
    "NUMERIC_SORT_FIELDS",
    "TEXT_SORT_FIELDS",
]
