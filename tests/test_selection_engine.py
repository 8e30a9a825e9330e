# -*- coding: utf-8 -*-
"""Tests for the table view (filter, sort, page, select) and CSV export.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import csv
import io

import pytest

from plotrisk.plot_analysis.csv_export import (
    BOM,
    CSV_COLUMNS,
    REFERENCE_NOTE,
    plot_to_row,
    plots_to_csv,
)
from plotrisk.plot_analysis.models import ComplianceStatus, RiskLevel
from plotrisk.plot_analysis.selection_engine import (
    PlotTableView,
    select_for_export,
    sort_plots,
)


def _ids(plots):
    return [p.plot_id for p in plots]


def _rows(text):
    assert text.startswith(BOM)
    return list(csv.reader(io.StringIO(text[len(BOM):], newline="")))


@pytest.fixture
def view(classified_plots, config):
    return PlotTableView(classified_plots, page_size=4, config=config)


class TestFilters:
    """Tests for filter combination."""

    def test_risk_filter(self, view):
        view.set_risk_filter("high")
        assert _ids(view.filtered()) == ["P-01", "P-04", "P-07", "P-10"]

    def test_filters_and_combined(self, view):
        view.set_filters(risk="HIGH", country="Indonesia")
        assert _ids(view.filtered()) == ["P-01", "P-07"]

    def test_search_matches_id_and_country(self, view):
        view.set_search("p-1")
        assert _ids(view.filtered()) == ["P-10"]
        view.set_search("MALAY")
        assert len(view.filtered()) == 5

    def test_compliance_filter(self, view):
        view.set_compliance_filter("compliant")
        assert all(p.compliance_status == ComplianceStatus.COMPLIANT for p in view.filtered())
        assert len(view.filtered()) == 6

    def test_blank_filters_disabled(self, view):
        view.set_filters(search="  ", risk="", compliance=None, country=" ")
        assert len(view.filtered()) == 10

    def test_unknown_risk_rejected(self, view):
        with pytest.raises(ValueError):
            view.set_risk_filter("SEVERE")

    def test_filter_resets_page(self, view):
        view.go_to_page(2)
        view.set_country_filter("Malaysia")
        assert view.page == 1


class TestSorting:
    """Tests for sorting."""

    def test_numeric_sort(self, classified_plots):
        assert _ids(sort_plots(classified_plots, "area"))[:3] == ["P-10", "P-09", "P-08"]

    def test_text_sort_descending(self, classified_plots):
        assert _ids(sort_plots(classified_plots, "plotId", descending=True))[0] == "P-10"

    def test_stable_sort(self, classified_plots):
        ordered = sort_plots(classified_plots, "overall_risk")
        assert _ids(ordered)[:4] == ["P-01", "P-04", "P-07", "P-10"]
        reversed_ = sort_plots(classified_plots, "overall_risk", descending=True)
        assert _ids(reversed_)[:6] == ["P-02", "P-03", "P-05", "P-06", "P-08", "P-09"]

    def test_unsortable_field(self, classified_plots):
        with pytest.raises(ValueError):
            sort_plots(classified_plots, "geometry")

    def test_sort_by_toggles_direction(self, view):
        view.sort_by("area")
        assert not view.descending
        view.sort_by("area")
        assert view.descending
        assert _ids(view.filtered())[0] == "P-01"
        view.sort_by("country")
        assert view.sort_field == "country"
        assert not view.descending

    def test_set_sort_none_restores_order(self, view):
        view.set_sort("area")
        view.set_sort(None)
        assert _ids(view.filtered())[0] == "P-01"


class TestPaging:
    """Tests for fixed-size paging."""

    def test_pages(self, view):
        assert view.total_pages == 3
        assert _ids(view.page_rows()) == ["P-01", "P-02", "P-03", "P-04"]
        view.go_to_page(3)
        assert _ids(view.page_rows()) == ["P-09", "P-10"]

    def test_page_clamped(self, view):
        assert view.go_to_page(99) == 3
        assert view.go_to_page(-1) == 1

    def test_empty_view_has_one_page(self, config):
        empty = PlotTableView([], config=config)
        assert empty.total_pages == 1
        assert empty.page_rows() == []


class TestSelectionAndExport:
    """Tests for selection order and the export set."""

    def test_two_of_ten_selected(self, view):
        view.select("P-08")
        view.select("P-03")
        assert _ids(view.export_plots()) == ["P-08", "P-03"]

    def test_nothing_selected_exports_filtered(self, view):
        view.set_risk_filter("HIGH")
        assert len(view.export_plots()) == 4

    def test_selection_hidden_by_filter_not_exported(self, view):
        view.select("P-01")
        view.select("P-02")
        view.set_risk_filter("HIGH")
        assert _ids(view.export_plots()) == ["P-01"]

    def test_toggle_and_clear(self, view):
        assert view.toggle_selection("P-05")
        assert view.is_selected("P-05")
        assert not view.toggle_selection("P-05")
        view.select_all_on_page()
        assert view.selected_ids == ["P-01", "P-02", "P-03", "P-04"]
        view.clear_selection()
        assert view.selected_ids == []

    def test_select_all_filtered(self, view):
        view.set_country_filter("Indonesia")
        view.select_all_filtered()
        assert view.selected_ids == ["P-01", "P-03", "P-05", "P-07", "P-09"]

    def test_selection_follows_plot_across_sort_and_filter(self, view):
        """A selected plot stays selected and exported while its row moves."""
        view.select("P-07")
        assert _ids(view.filtered()).index("P-07") == 6

        view.set_sort("area")
        assert _ids(view.filtered()).index("P-07") == 3
        assert "P-07" in _ids(view.page_rows())
        assert view.is_selected("P-07")
        assert _ids(view.export_plots()) == ["P-07"]

        view.set_country_filter("Indonesia")
        assert _ids(view.filtered()) == ["P-09", "P-07", "P-05", "P-03", "P-01"]
        assert view.is_selected("P-07")
        assert view.selected_ids == ["P-07"]
        assert _ids(view.export_plots()) == ["P-07"]

    def test_duplicate_ids_share_selection(self, classified_plots):
        duplicate = classified_plots[1].model_copy(update={"plot_id": "P-01"})
        exported = select_for_export([classified_plots[0], duplicate], ["P-01"])
        assert len(exported) == 2

    def test_summary(self, view):
        view.select("P-02")
        summary = view.summary()
        assert summary["total_plots"] == 10
        assert summary["selected_plots"] == 1
        assert summary["risk_counts"][RiskLevel.HIGH.value] == 4
        assert summary["total_area_hectares"] == pytest.approx(55.0)


class TestCsvExport:
    """Tests for the CSV document."""

    def test_header_and_bom(self, classified_plots):
        rows = _rows(plots_to_csv(classified_plots[:2]))
        assert rows[0] == CSV_COLUMNS
        assert len(rows[0]) == 16
        assert len(rows) == 3

    def test_crlf_line_endings(self, classified_plots):
        text = plots_to_csv(classified_plots[:2])
        assert text.count("\r\n") == 3

    def test_row_values(self, classified_plots):
        row = plot_to_row(classified_plots[0])
        assert row[0] == "P-01"
        assert row[2] == "10.0000"
        assert row[3] == "HIGH"
        assert row[4] == "NON-COMPLIANT"
        assert row[5] == "TRUE"
        assert row[8] == "0.5000"
        assert row[-1] == REFERENCE_NOTE

    def test_quoting(self, classified_plots):
        odd = classified_plots[0].model_copy(update={"plot_id": 'Kebun "A", Blok 2'})
        text = plots_to_csv([odd], include_bom=False)
        assert '"Kebun ""A"", Blok 2"' in text
        assert _rows(BOM + text)[1][0] == 'Kebun "A", Blok 2'

    def test_empty_export_is_header_only(self):
        assert _rows(plots_to_csv([])) == [CSV_COLUMNS]

    def test_export_of_two_selected(self, view):
        view.select("P-03")
        view.select("P-08")
        rows = _rows(plots_to_csv(view.export_plots()))
        assert [r[0] for r in rows[1:]] == ["P-03", "P-08"]
