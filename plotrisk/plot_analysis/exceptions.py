# -*- coding: utf-8 -*-
"""
Plot Analysis Exceptions

Error hierarchy for the plot analysis pipeline. Every error carries a short
user-facing ``error`` text and optional ``details`` so the REST layer can
answer with the ``{error, details}`` envelope unchanged.

Hierarchy:
    PlotAnalysisError
    ├── StructuralInputError      (not JSON, wrong type, no features)
    │   └── PayloadTooLargeError  (payload size or feature count limit)
    ├── NoValidFeaturesError      (every feature was rejected)
    ├── StaleSessionError         (results of an abandoned generation)
    ├── SessionCorruptError       (stored state cannot be parsed)
    └── LayerUnavailableError     (every overlay strategy failed)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class PlotAnalysisError(Exception):
    """Base exception for the plot analysis pipeline.

    Attributes:
        error: Short user-facing message.
        details: Optional longer explanation.
        context: Machine-readable context (counts, limits, ids).
    """

    status_code: int = 400

    def __init__(
        self,
        error: str,
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.error = error
        self.details = details
        self.context = context or {}
        message = f"{error}: {details}" if details else error
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Render the ``{error, details}`` response envelope."""
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        if self.context:
            payload.update(self.context)
        return payload


class StructuralInputError(PlotAnalysisError):
    """Raised when an upload is not a usable Feature/FeatureCollection.

    Non-retryable without fixing the file.
    """


class PayloadTooLargeError(StructuralInputError):
    """Raised when an upload exceeds the payload size or feature count limit."""

    status_code = 413


class NoValidFeaturesError(PlotAnalysisError):
    """Raised when every submitted feature failed normalization.

    Attributes:
        issues: Per-feature issues explaining each rejection.
    """

    def __init__(
        self,
        error: str,
        details: Optional[str] = None,
        issues: Optional[List[Any]] = None,
    ) -> None:
        super().__init__(error, details)
        self.issues = list(issues or [])

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["issues"] = [
            issue.model_dump(mode="json") if hasattr(issue, "model_dump") else issue
            for issue in self.issues
        ]
        return payload


class StaleSessionError(PlotAnalysisError):
    """Raised when results arrive for a session generation that was abandoned."""

    status_code = 409

    def __init__(self, generation: int, current_generation: int) -> None:
        super().__init__(
            "Analysis superseded",
            f"Results for generation {generation} discarded; "
            f"current generation is {current_generation}",
            {"generation": generation, "current_generation": current_generation},
        )
        self.generation = generation
        self.current_generation = current_generation


class SessionCorruptError(PlotAnalysisError):
    """Raised internally when stored session state cannot be parsed."""

    status_code = 500


class LayerUnavailableError(PlotAnalysisError):
    """Raised when every strategy of an overlay layer failed."""

    status_code = 503

    def __init__(self, layer: str, attempts: Optional[List[Any]] = None) -> None:
        super().__init__(
            "Overlay unavailable",
            f"All data sources for layer '{layer}' failed",
            {"layer": layer},
        )
        self.layer = layer
        self.attempts = list(attempts or [])


__all__ = [
    "PlotAnalysisError",
    "StructuralInputError",
    "PayloadTooLargeError",
    "NoValidFeaturesError",
    "StaleSessionError",
    "SessionCorruptError",
    "LayerUnavailableError",
]
