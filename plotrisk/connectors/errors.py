"""
Connector Error Taxonomy
========================

Structured error hierarchy for the external dataset connectors used by the
plot analysis pipeline: forest-loss oracles (GFW, JRC, SBTN), overlap
oracles (WDPA, peatland) and overlay sources (WFS, tile and GeoJSON
endpoints).

Design principles:
- Base ConnectorError with structured context
- Specific error types for classification
- Machine-readable serialization via to_dict()
- classify_connector_error() maps httpx/asyncio failures onto the taxonomy
"""

import asyncio
from typing import Optional, Dict, Any, List


class ConnectorError(Exception):
    """
    Base exception for all connector errors

    Carries structured error information:
    - message: Human-readable error description
    - connector: Which connector raised the error (e.g. "oracle/gfw")
    - status_code: HTTP status code (if applicable)
    - request_id: Request identifier for debugging
    - url: Target URL (if applicable)
    - context: Additional error context
    - original_error: Wrapped exception (if any)
    """

    def __init__(
        self,
        message: str,
        connector: str,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.connector = connector
        self.status_code = status_code
        self.request_id = request_id
        self.url = url
        self.context = context or {}
        self.original_error = original_error

        parts = [f"[{connector}] {message}"]

        if status_code:
            parts.append(f"(HTTP {status_code})")
        if request_id:
            parts.append(f"(request: {request_id})")
        if url:
            parts.append(f"(URL: {url})")

        super().__init__(" ".join(parts))

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "connector": self.connector,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "url": self.url,
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None
        }


class ConnectorConfigError(ConnectorError):
    """
    Configuration error

    Raised when a connector is missing an endpoint or credential.

    Example:
        raise ConnectorConfigError(
            "Missing endpoint",
            connector="oracle/jrc",
            context={"required_env": "PLOTRISK_JRC_ENDPOINT"}
        )
    """
    pass


class ConnectorAuthError(ConnectorError):
    """
    Authentication/authorization error

    Common causes:
    - Invalid or expired GFW API key
    - Insufficient permissions on the dataset
    """
    pass


class ConnectorNetworkError(ConnectorError):
    """
    Network communication error

    Common causes:
    - DNS resolution failure
    - Connection refused or reset
    - TLS errors
    """
    pass


class ConnectorTimeoutError(ConnectorError):
    """
    Request timeout error

    Raised when a dataset call exceeds its timeout.
    """
    pass


class ConnectorRateLimit(ConnectorError):
    """
    Rate limit exceeded

    Includes retry information when the upstream sends it.
    """

    def __init__(
        self,
        message: str,
        connector: str,
        retry_after: Optional[int] = None,
        limit: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, connector, **kwargs)
        self.retry_after = retry_after
        self.limit = limit

        if retry_after:
            self.context["retry_after"] = retry_after
        if limit:
            self.context["limit"] = limit


class ConnectorNotFound(ConnectorError):
    """
    Resource not found error

    Common causes:
    - Dataset version retired upstream
    - Layer name not published by the WFS server
    """
    pass


class ConnectorBadRequest(ConnectorError):
    """
    Bad request error (client error)

    Common causes:
    - Geometry rejected by the upstream service
    - Malformed bounding box
    """
    pass


class ConnectorServerError(ConnectorError):
    """
    Server error (5xx)

    Usually retryable.
    """
    pass


class ConnectorValidationError(ConnectorError):
    """
    Response payload validation error

    Raised when an upstream answer cannot be interpreted (missing fields,
    not JSON, not a FeatureCollection).
    """

    def __init__(
        self,
        message: str,
        connector: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> None:
        super().__init__(message, connector, **kwargs)
        self.validation_errors = validation_errors or []

        if validation_errors:
            self.context["validation_errors"] = validation_errors


def classify_connector_error(
    error: Exception,
    connector: str,
    url: Optional[str] = None
) -> ConnectorError:
    """
    Classify a generic exception as a specific ConnectorError type

    Args:
        error: Original exception
        connector: Connector identifier
        url: Request URL if applicable

    Returns:
        ConnectorError subclass instance

    Example:
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        except Exception as e:
            raise classify_connector_error(e, "oracle/gfw", url)
    """
    if isinstance(error, ConnectorError):
        return error

    if isinstance(error, asyncio.TimeoutError):
        return ConnectorTimeoutError(
            "Request timed out",
            connector=connector,
            url=url,
            original_error=error
        )

    error_str = str(error).lower()
    error_name = type(error).__name__.lower()

    if "timeout" in error_name or "timeout" in error_str or "timed out" in error_str:
        return ConnectorTimeoutError(
            f"Request timed out: {error}",
            connector=connector,
            url=url,
            original_error=error
        )

    # HTTP status errors (httpx.HTTPStatusError carries .response)
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None) if response is not None else None

    if status_code is not None:
        if status_code in (401, 403):
            return ConnectorAuthError(
                f"Authentication failed: {error}",
                connector=connector,
                status_code=status_code,
                url=url,
                original_error=error
            )

        if status_code == 404:
            return ConnectorNotFound(
                f"Resource not found: {error}",
                connector=connector,
                status_code=status_code,
                url=url,
                original_error=error
            )

        if status_code == 429:
            retry_after = None
            headers = getattr(response, "headers", None)
            if headers is not None:
                raw = headers.get("Retry-After")
                if raw:
                    try:
                        retry_after = int(raw)
                    except ValueError:
                        retry_after = None

            return ConnectorRateLimit(
                f"Rate limit exceeded: {error}",
                connector=connector,
                status_code=status_code,
                retry_after=retry_after,
                url=url,
                original_error=error
            )

        if 400 <= status_code < 500:
            return ConnectorBadRequest(
                f"Bad request: {error}",
                connector=connector,
                status_code=status_code,
                url=url,
                original_error=error
            )

        if 500 <= status_code < 600:
            return ConnectorServerError(
                f"Server error: {error}",
                connector=connector,
                status_code=status_code,
                url=url,
                original_error=error
            )

    if any(x in error_str or x in error_name for x in ["connect", "network", "dns", "unreachable"]):
        return ConnectorNetworkError(
            f"Network error: {error}",
            connector=connector,
            url=url,
            original_error=error
        )

    if isinstance(error, (ValueError, KeyError, TypeError)):
        return ConnectorValidationError(
            f"Invalid response: {error}",
            connector=connector,
            url=url,
            original_error=error
        )

    return ConnectorError(
        f"Unexpected error: {error}",
        connector=connector,
        url=url,
        original_error=error
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
