# -*- coding: utf-8 -*-
"""
Plot Analysis Service Configuration

Centralized configuration for the plot analysis pipeline covering:
- Logging level
- Deforestation loss threshold and marginal/significant tier boundary
- Legal overlap threshold and peatland gate policy
- Oracle endpoints, API key and per-call timeout
- Classification concurrency
- Upload limits (payload size, feature count)
- Geometry repair policy
- Session persistence directory
- Overlay endpoints, tile templates, timeout and default extent
- Table page size
- Feature toggle (use_mock for offline development)

All settings can be overridden via environment variables with the
``PLOTRISK_`` prefix (e.g. ``PLOTRISK_LOSS_THRESHOLD_HA``).

Example:
    >>> from plotrisk.plot_analysis.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.loss_threshold_ha, cfg.oracle_timeout_seconds)

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "PLOTRISK_"


# ---------------------------------------------------------------------------
# PlotAnalysisConfig
# ---------------------------------------------------------------------------


@dataclass
class PlotAnalysisConfig:
    """Complete configuration for the plot analysis pipeline.

    Attributes are grouped by concern: logging, risk thresholds, oracles,
    concurrency, upload limits, geometry, session storage, overlays,
    selection and feature toggles.

    Attributes:
        log_level: Logging level for the service and CLI.
        loss_threshold_ha: Loss area (hectares) above which a dataset
            reports deforestation. 0.001 ha is roughly 10 m2.
        significant_loss_ha: Boundary between marginal and significant
            loss for presentation.
        overlap_threshold_ha: Minimum protected-area or peatland overlap
            (hectares) reported as an intersection.
        peatland_gate_enabled: Whether a peatland overlap fails compliance.
        gfw_endpoint: Loss oracle endpoint for Global Forest Watch. Empty
            selects the GFW data API when an API key is set.
        jrc_endpoint: Loss oracle endpoint for the JRC forest cover map.
        sbtn_endpoint: Loss oracle endpoint for the SBTN natural lands map.
        wdpa_endpoint: Overlap oracle endpoint for protected areas.
        peatland_endpoint: Overlap oracle endpoint for peatland.
        gfw_api_key: API key for the Global Forest Watch data API.
        gfw_data_api_url: Base URL of the GFW data API.
        oracle_timeout_seconds: Timeout applied to each oracle call.
        max_concurrent_plots: Plots classified concurrently.
        max_features: Maximum features accepted per upload.
        max_payload_mb: Maximum upload payload size in megabytes.
        repair_invalid_geometry: Repair self-intersecting polygons with
            make_valid instead of rejecting them.
        session_dir: Directory for the file-backed session store. Empty
            keeps sessions in memory only.
        overlay_timeout_seconds: Timeout applied to each overlay strategy.
        wdpa_wfs_url: WFS endpoint returning protected areas as GeoJSON.
        peatland_overlay_url: GeoJSON endpoint returning peatland polygons.
        loss_overlay_url: Vector endpoint for forest-loss overlays.
        overlay_max_extent_deg2: Viewport area (square degrees) above which
            viewport-dependent strategies use the default extent.
        default_extent: Default (west, south, east, north) extent as a
            comma-separated string.
        page_size: Rows per page in the plot table view.
        use_mock: Use deterministic offline oracles instead of HTTP oracles.
    """

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Risk thresholds -----------------------------------------------------
    loss_threshold_ha: float = 0.001
    significant_loss_ha: float = 0.01
    overlap_threshold_ha: float = 0.0001
    peatland_gate_enabled: bool = True

    # -- Oracles -------------------------------------------------------------
    gfw_endpoint: str = ""
    jrc_endpoint: str = ""
    sbtn_endpoint: str = ""
    wdpa_endpoint: str = ""
    peatland_endpoint: str = ""
    gfw_api_key: str = ""
    gfw_data_api_url: str = "https://data-api.globalforestwatch.org/dataset"
    oracle_timeout_seconds: float = 60.0

    # -- Concurrency ---------------------------------------------------------
    max_concurrent_plots: int = 5

    # -- Upload limits -------------------------------------------------------
    max_features: int = 1000
    max_payload_mb: float = 50.0

    # -- Geometry ------------------------------------------------------------
    repair_invalid_geometry: bool = False

    # -- Session storage -----------------------------------------------------
    session_dir: str = ""

    # -- Overlays ------------------------------------------------------------
    overlay_timeout_seconds: float = 15.0
    wdpa_wfs_url: str = ""
    peatland_overlay_url: str = ""
    loss_overlay_url: str = ""
    overlay_max_extent_deg2: float = 400.0
    default_extent: str = "95.0,-11.0,141.0,6.0"

    # -- Selection -----------------------------------------------------------
    page_size: int = 10

    # -- Feature toggles -----------------------------------------------------
    use_mock: bool = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def default_extent_bounds(self) -> tuple:
        """Parse ``default_extent`` into a (west, south, east, north) tuple."""
        try:
            west, south, east, north = (
                float(part) for part in self.default_extent.split(",")
            )
        except ValueError:
            logger.warning(
                "Invalid default_extent %r, using 95.0,-11.0,141.0,6.0",
                self.default_extent,
            )
            return (95.0, -11.0, 141.0, 6.0)
        return (west, south, east, north)

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> PlotAnalysisConfig:
        """Build a PlotAnalysisConfig from environment variables.

        Every field can be overridden via ``PLOTRISK_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Integer values are parsed via ``int()``.
        Float values are parsed via ``float()``.

        Returns:
            Populated PlotAnalysisConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %s",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            log_level=_str("LOG_LEVEL", cls.log_level),
            loss_threshold_ha=_float(
                "LOSS_THRESHOLD_HA", cls.loss_threshold_ha,
            ),
            significant_loss_ha=_float(
                "SIGNIFICANT_LOSS_HA", cls.significant_loss_ha,
            ),
            overlap_threshold_ha=_float(
                "OVERLAP_THRESHOLD_HA", cls.overlap_threshold_ha,
            ),
            peatland_gate_enabled=_bool(
                "PEATLAND_GATE_ENABLED", cls.peatland_gate_enabled,
            ),
            gfw_endpoint=_str("GFW_ENDPOINT", cls.gfw_endpoint),
            jrc_endpoint=_str("JRC_ENDPOINT", cls.jrc_endpoint),
            sbtn_endpoint=_str("SBTN_ENDPOINT", cls.sbtn_endpoint),
            wdpa_endpoint=_str("WDPA_ENDPOINT", cls.wdpa_endpoint),
            peatland_endpoint=_str(
                "PEATLAND_ENDPOINT", cls.peatland_endpoint,
            ),
            gfw_api_key=_str("GFW_API_KEY", cls.gfw_api_key),
            gfw_data_api_url=_str(
                "GFW_DATA_API_URL", cls.gfw_data_api_url,
            ),
            oracle_timeout_seconds=_float(
                "ORACLE_TIMEOUT_SECONDS", cls.oracle_timeout_seconds,
            ),
            max_concurrent_plots=_int(
                "MAX_CONCURRENT_PLOTS", cls.max_concurrent_plots,
            ),
            max_features=_int("MAX_FEATURES", cls.max_features),
            max_payload_mb=_float("MAX_PAYLOAD_MB", cls.max_payload_mb),
            repair_invalid_geometry=_bool(
                "REPAIR_INVALID_GEOMETRY", cls.repair_invalid_geometry,
            ),
            session_dir=_str("SESSION_DIR", cls.session_dir),
            overlay_timeout_seconds=_float(
                "OVERLAY_TIMEOUT_SECONDS", cls.overlay_timeout_seconds,
            ),
            wdpa_wfs_url=_str("WDPA_WFS_URL", cls.wdpa_wfs_url),
            peatland_overlay_url=_str(
                "PEATLAND_OVERLAY_URL", cls.peatland_overlay_url,
            ),
            loss_overlay_url=_str("LOSS_OVERLAY_URL", cls.loss_overlay_url),
            overlay_max_extent_deg2=_float(
                "OVERLAY_MAX_EXTENT_DEG2", cls.overlay_max_extent_deg2,
            ),
            default_extent=_str("DEFAULT_EXTENT", cls.default_extent),
            page_size=_int("PAGE_SIZE", cls.page_size),
            use_mock=_bool("USE_MOCK", cls.use_mock),
        )

        logger.info(
            "PlotAnalysisConfig loaded: loss_threshold=%.4fha, "
            "significant=%.4fha, overlap_threshold=%.4fha, "
            "peatland_gate=%s, oracle_timeout=%.1fs, concurrency=%d, "
            "limits=%d features/%.0fMB, repair=%s, session_dir=%s, "
            "overlay_timeout=%.1fs, page_size=%d, mock=%s, gfw_key=%s",
            config.loss_threshold_ha,
            config.significant_loss_ha,
            config.overlap_threshold_ha,
            config.peatland_gate_enabled,
            config.oracle_timeout_seconds,
            config.max_concurrent_plots,
            config.max_features,
            config.max_payload_mb,
            config.repair_invalid_geometry,
            config.session_dir or "(memory)",
            config.overlay_timeout_seconds,
            config.page_size,
            config.use_mock,
            "***" if config.gfw_api_key else "(unset)",
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[PlotAnalysisConfig] = None
_config_lock = threading.Lock()


def get_config() -> PlotAnalysisConfig:
    """Return the singleton PlotAnalysisConfig, creating from env if needed.

    Returns:
        PlotAnalysisConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = PlotAnalysisConfig.from_env()
    return _config_instance


def set_config(config: PlotAnalysisConfig) -> None:
    """Replace the singleton PlotAnalysisConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("PlotAnalysisConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "PlotAnalysisConfig",
    "get_config",
    "set_config",
    "reset_config",
]
