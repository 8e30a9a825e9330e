# -*- coding: utf-8 -*-
"""
PlotRisk Connectors - External Dataset Error Taxonomy
=====================================================

Structured errors shared by every component that talks to an external
forest-monitoring dataset or overlay source.
"""

from plotrisk.connectors.errors import (
    ConnectorError,
    ConnectorConfigError,
    ConnectorAuthError,
    ConnectorNetworkError,
    ConnectorTimeoutError,
    ConnectorRateLimit,
    ConnectorNotFound,
    ConnectorBadRequest,
    ConnectorServerError,
    ConnectorValidationError,
    classify_connector_error,
)

__all__ = [
    "ConnectorError",
    "ConnectorConfigError",
    "ConnectorAuthError",
    "ConnectorNetworkError",
    "ConnectorTimeoutError",
    "ConnectorRateLimit",
    "ConnectorNotFound",
    "ConnectorBadRequest",
    "ConnectorServerError",
    "ConnectorValidationError",
    "classify_connector_error",
]
