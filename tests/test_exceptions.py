"""Tests for the PlotRisk exception hierarchies.

Comprehensive test suite covering:
- Pipeline exceptions and their response envelopes
- HTTP status mapping
- Connector errors and their serialization
- Classification of raw transport exceptions

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

import asyncio

import httpx
import pytest

from plotrisk.connectors.errors import (
    ConnectorAuthError,
    ConnectorBadRequest,
    ConnectorError,
    ConnectorNetworkError,
    ConnectorNotFound,
    ConnectorRateLimit,
    ConnectorServerError,
    ConnectorTimeoutError,
    ConnectorValidationError,
    classify_connector_error,
)
from plotrisk.plot_analysis.exceptions import (
    LayerUnavailableError,
    NoValidFeaturesError,
    PayloadTooLargeError,
    PlotAnalysisError,
    SessionCorruptError,
    StaleSessionError,
    StructuralInputError,
)
from plotrisk.plot_analysis.models import IssueSeverity, NormalizationIssue


def _status_error(status: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://oracle.test/gfw")
    response = httpx.Response(status, request=request, headers=headers or {})
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


# ==============================================================================
# Pipeline Exception Tests
# ==============================================================================

class TestPlotAnalysisError:
    """Tests for the base pipeline exception."""

    def test_envelope(self):
        """Error and details render as the response envelope."""
        exc = PlotAnalysisError("Invalid GeoJSON format", "Missing features array")

        assert exc.status_code == 400
        assert exc.to_dict() == {
            "error": "Invalid GeoJSON format",
            "details": "Missing features array",
        }
        assert str(exc) == "Invalid GeoJSON format: Missing features array"

    def test_envelope_without_details(self):
        assert PlotAnalysisError("Bad input").to_dict() == {"error": "Bad input"}

    def test_context_merged(self):
        exc = PayloadTooLargeError("Request too large", "60.0 MB", {"limit_mb": 50.0})
        assert exc.to_dict()["limit_mb"] == 50.0

    def test_hierarchy(self):
        assert issubclass(PayloadTooLargeError, StructuralInputError)
        assert issubclass(StructuralInputError, PlotAnalysisError)
        assert PayloadTooLargeError.status_code == 413


class TestSpecificErrors:
    """Tests for the specialised pipeline exceptions."""

    def test_no_valid_features_lists_issues(self):
        issue = NormalizationIssue(
            feature_index=0, severity=IssueSeverity.ERROR,
            code="missing_geometry", message="Feature has no geometry",
        )
        exc = NoValidFeaturesError("No valid plots", "All 1 features failed", issues=[issue])

        payload = exc.to_dict()
        assert payload["issues"][0]["code"] == "missing_geometry"
        assert payload["issues"][0]["severity"] == "error"

    def test_stale_session(self):
        exc = StaleSessionError(2, 3)
        assert exc.status_code == 409
        assert exc.to_dict()["current_generation"] == 3

    def test_session_corrupt_is_server_error(self):
        assert SessionCorruptError("Corrupt session").status_code == 500

    def test_layer_unavailable(self):
        exc = LayerUnavailableError("wdpa", attempts=["a", "b"])
        assert exc.status_code == 503
        assert exc.to_dict()["layer"] == "wdpa"
        assert exc.attempts == ["a", "b"]


# ==============================================================================
# Connector Error Tests
# ==============================================================================

class TestConnectorError:
    """Tests for ConnectorError."""

    def test_str_includes_parts(self):
        exc = ConnectorError(
            "Upstream failed", connector="oracle/gfw", status_code=502,
            request_id="req-1", url="https://oracle.test",
        )
        text = str(exc)
        assert text.startswith("[oracle/gfw] Upstream failed")
        assert "(HTTP 502)" in text
        assert "(request: req-1)" in text

    def test_to_dict(self):
        original = ValueError("boom")
        exc = ConnectorServerError("Down", connector="overlay/wfs", original_error=original)
        payload = exc.to_dict()
        assert payload["error_type"] == "ConnectorServerError"
        assert payload["original_error"] == "boom"

    def test_rate_limit_context(self):
        exc = ConnectorRateLimit("Slow down", connector="oracle/gfw", retry_after=30, limit=100)
        assert exc.context == {"retry_after": 30, "limit": 100}

    def test_validation_errors_kept(self):
        exc = ConnectorValidationError(
            "Bad payload", connector="oracle/jrc",
            validation_errors=[{"field": "jrc_loss_area"}],
        )
        assert exc.validation_errors == [{"field": "jrc_loss_area"}]


class TestClassifyConnectorError:
    """Tests for classify_connector_error."""

    @pytest.mark.parametrize("status,expected", [
        (401, ConnectorAuthError),
        (403, ConnectorAuthError),
        (404, ConnectorNotFound),
        (422, ConnectorBadRequest),
        (500, ConnectorServerError),
        (503, ConnectorServerError),
    ])
    def test_http_status(self, status, expected):
        error = classify_connector_error(_status_error(status), "oracle/gfw")
        assert isinstance(error, expected)
        assert error.status_code == status

    def test_rate_limit_retry_after(self):
        error = classify_connector_error(_status_error(429, {"Retry-After": "12"}), "oracle/gfw")
        assert isinstance(error, ConnectorRateLimit)
        assert error.retry_after == 12

    def test_timeout(self):
        error = classify_connector_error(asyncio.TimeoutError(), "oracle/gfw")
        assert isinstance(error, ConnectorTimeoutError)

    def test_httpx_timeout(self):
        error = classify_connector_error(httpx.ReadTimeout("read timed out"), "oracle/gfw")
        assert isinstance(error, ConnectorTimeoutError)

    def test_connection_refused(self):
        error = classify_connector_error(ConnectionError("connection refused"), "oracle/gfw")
        assert isinstance(error, ConnectorNetworkError)

    def test_value_error_is_validation(self):
        error = classify_connector_error(ValueError("bad number"), "oracle/gfw")
        assert isinstance(error, ConnectorValidationError)

    def test_connector_error_passthrough(self):
        original = ConnectorAuthError("No key", connector="oracle/gfw")
        assert classify_connector_error(original, "other") is original

    def test_unexpected(self):
        error = classify_connector_error(RuntimeError("weird"), "oracle/gfw")
        assert type(error) is ConnectorError
        assert "Unexpected error" in error.message
