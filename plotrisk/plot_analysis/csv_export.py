# -*- coding: utf-8 -*-
"""
CSV Export

Renders classified plots as a spreadsheet-friendly CSV document: UTF-8
with a leading byte order mark, CRLF line endings, and minimal quoting
(fields containing a comma, quote, CR or LF are quoted with inner quotes
doubled).

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import csv
import io
from typing import Iterable, List

from plotrisk.plot_analysis.models import ClassifiedPlot

CSV_COLUMNS: List[str] = [
    "Plot ID",
    "Country",
    "Area (HA)",
    "Overall Risk",
    "Compliance Status",
    "GFW Loss",
    "JRC Loss",
    "SBTN Loss",
    "GFW Loss Area (HA)",
    "JRC Loss Area (HA)",
    "SBTN Loss Area (HA)",
    "WDPA Status",
    "Peatland Status",
    "High Risk Datasets",
    "Analysis Date",
    "Reference Note",
]

REFERENCE_NOTE = (
    "Deforestation assessed against GFW tree cover loss, JRC GFC2020 and "
    "SBTN Natural Lands after the EUDR cut-off of 31 December 2020"
)

BOM = "﻿"


def _area(value: float) -> str:
    return f"{value:.4f}"


def plot_to_row(plot: ClassifiedPlot, reference_note: str = REFERENCE_NOTE) -> List[str]:
    """Render one plot as a CSV row in CSV_COLUMNS order."""
    gfw = plot.loss_for("gfw")
    jrc = plot.loss_for("jrc")
    sbtn = plot.loss_for("sbtn")
    return [
        plot.plot_id,
        plot.country,
        _area(plot.area_hectares),
        plot.overall_risk.value,
        plot.compliance_status.value,
        gfw.flag,
        jrc.flag,
        sbtn.flag,
        _area(gfw.area_hectares),
        _area(jrc.area_hectares),
        _area(sbtn.area_hectares),
        plot.wdpa_status,
        plot.peatland_status,
        ";".join(plot.high_risk_datasets),
        plot.analysis_date.isoformat(),
        reference_note,
    ]


def plots_to_csv(
    plots: Iterable[ClassifiedPlot],
    reference_note: str = REFERENCE_NOTE,
    include_bom: bool = True,
) -> str:
    """Render plots as a CSV document.

    Args:
        plots: Plots in output order.
        reference_note: Text of the Reference Note column.
        include_bom: Prefix the document with a UTF-8 byte order mark.

    Returns:
        CSV text (encode as UTF-8 to write).
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for plot in plots:
        writer.writerow(plot_to_row(plot, reference_note))
    text = buffer.getvalue()
    return BOM + text if include_bom else text


__all__ = ["CSV_COLUMNS", "REFERENCE_NOTE", "plot_to_row", "plots_to_csv"]
