# -*- coding: utf-8 -*-
"""Tests for PlotAnalysisConfig environment loading and the singleton.

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import logging

import pytest

from plotrisk.plot_analysis.config import (
    PlotAnalysisConfig,
    get_config,
    reset_config,
    set_config,
)


class TestFromEnv:
    """Tests for PLOTRISK_* environment overrides."""

    def test_defaults(self, monkeypatch):
        for key in ("PLOTRISK_MAX_FEATURES", "PLOTRISK_USE_MOCK", "PLOTRISK_PAGE_SIZE"):
            monkeypatch.delenv(key, raising=False)
        config = PlotAnalysisConfig.from_env()
        assert config.max_features == 1000
        assert config.page_size == 10
        assert config.loss_threshold_ha == pytest.approx(0.001)

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("PLOTRISK_MAX_FEATURES", "25")
        monkeypatch.setenv("PLOTRISK_MAX_PAYLOAD_MB", "2.5")
        monkeypatch.setenv("PLOTRISK_USE_MOCK", "no")
        monkeypatch.setenv("PLOTRISK_REPAIR_INVALID_GEOMETRY", "YES")
        monkeypatch.setenv("PLOTRISK_SESSION_DIR", "/var/lib/plotrisk")

        config = PlotAnalysisConfig.from_env()

        assert config.max_features == 25
        assert config.max_payload_mb == pytest.approx(2.5)
        assert config.use_mock is False
        assert config.repair_invalid_geometry is True
        assert config.session_dir == "/var/lib/plotrisk"

    def test_invalid_numbers_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv("PLOTRISK_MAX_CONCURRENT_PLOTS", "many")
        monkeypatch.setenv("PLOTRISK_ORACLE_TIMEOUT_SECONDS", "soon")

        with caplog.at_level(logging.WARNING):
            config = PlotAnalysisConfig.from_env()

        assert config.max_concurrent_plots == 5
        assert config.oracle_timeout_seconds == pytest.approx(60.0)
        assert "PLOTRISK_MAX_CONCURRENT_PLOTS" in caplog.text

    def test_api_key_not_logged(self, monkeypatch, caplog):
        monkeypatch.setenv("PLOTRISK_GFW_API_KEY", "super-secret")
        with caplog.at_level(logging.INFO):
            config = PlotAnalysisConfig.from_env()
        assert config.gfw_api_key == "super-secret"
        assert "super-secret" not in caplog.text


class TestDefaultExtent:
    """Tests for default_extent parsing."""

    def test_parsed(self):
        config = PlotAnalysisConfig(default_extent="100,-5,110,5")
        assert config.default_extent_bounds == (100.0, -5.0, 110.0, 5.0)

    def test_invalid_falls_back(self):
        config = PlotAnalysisConfig(default_extent="somewhere")
        assert config.default_extent_bounds == (95.0, -11.0, 141.0, 6.0)


class TestSingleton:
    """Tests for the get/set/reset accessors."""

    def test_set_and_get(self):
        config = PlotAnalysisConfig(page_size=25)
        set_config(config)
        assert get_config() is config

    def test_reset_rebuilds_from_env(self, monkeypatch):
        monkeypatch.setenv("PLOTRISK_PAGE_SIZE", "7")
        reset_config()
        first = get_config()
        assert first.page_size == 7
        assert get_config() is first
