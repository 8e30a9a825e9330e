# -*- coding: utf-8 -*-
"""
Analysis Session Store

Owns the single active analysis session: the ordered list of classified
plots produced by the most recent successful upload. Consumers never hold
the live list; every restore hands out a fresh tuple of frozen models.

Features:
    - Atomic saves: the whole set becomes visible at once, or the prior set
      stays. The file backend writes a temp file and swaps it in with
      os.replace.
    - Numeric fidelity: stored state is JSON and every numeric field passes
      through ``coerce_number`` on restore, so blanks, strings and nulls
      come back as finite floats.
    - Explicit restore intent: a restore must name why it happens
      (RestoreIntent); incidental restores are refused.
    - Generation counter: results computed for an abandoned upload are
      rejected with StaleSessionError.
    - Corrupt state is treated as no session: it is cleared, logged and
      counted, and ``last_restore_error`` explains what happened.

Example:
    >>> from plotrisk.plot_analysis.session_store import AnalysisSessionStore
    >>> store = AnalysisSessionStore()
    >>> generation = store.begin_generation()
    >>> token = store.save(classified_plots, generation=generation)
    >>> plots = store.restore(token, RestoreIntent.EXPORT)

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.exceptions import SessionCorruptError, StaleSessionError
from plotrisk.plot_analysis.metrics import (
    record_processing_error,
    record_session_operation,
    update_active_session_plots,
)
from plotrisk.plot_analysis.models import ClassifiedPlot, RestoreIntent

logger = logging.getLogger(__name__)

SESSION_FILENAME = "analysis_session.json"
STATE_VERSION = 1


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def serialize_session(
    token: str,
    generation: int,
    plots: Sequence[ClassifiedPlot],
) -> str:
    """Serialize a session into its stored JSON form."""
    return json.dumps({
        "version": STATE_VERSION,
        "token": token,
        "generation": generation,
        "saved_at": _utcnow().isoformat(),
        "plots": [plot.model_dump(mode="json") for plot in plots],
    })


def deserialize_session(raw: Union[str, bytes]) -> Tuple[str, int, Tuple[ClassifiedPlot, ...]]:
    """Parse stored session JSON.

    Entries in the camelCase wire shape (``plotId`` key) are accepted as
    well as the stored model shape.

    Returns:
        Tuple of (token, generation, plots).

    Raises:
        SessionCorruptError: If the state cannot be parsed.
    """
    try:
        state = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise SessionCorruptError("Stored session is not valid JSON", str(exc))
    if not isinstance(state, dict):
        raise SessionCorruptError("Stored session is not an object")
    entries = state.get("plots")
    token = state.get("token")
    if not isinstance(entries, list) or not isinstance(token, str) or not token:
        raise SessionCorruptError("Stored session has no token or plots list")

    plots: List[ClassifiedPlot] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise SessionCorruptError(f"Stored plot {index} is not an object")
        try:
            if "plotId" in entry:
                plots.append(ClassifiedPlot.from_api_dict(entry))
            else:
                plots.append(ClassifiedPlot.model_validate(entry))
        except (ValidationError, TypeError, ValueError) as exc:
            raise SessionCorruptError(f"Stored plot {index} is invalid", str(exc))

    generation = state.get("generation")
    if not isinstance(generation, int) or isinstance(generation, bool):
        generation = 0
    return token, generation, tuple(plots)


# =============================================================================
# AnalysisSessionStore
# =============================================================================


class AnalysisSessionStore:
    """Holds the active analysis session behind a lock.

    Attributes:
        config: PlotAnalysisConfig instance.
        provenance: Optional ProvenanceTracker.
        last_restore_error: Description of the last corrupt-state recovery.
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        session_dir: Optional[str] = None,
    ) -> None:
        """Initialize AnalysisSessionStore.

        Args:
            config: Optional PlotAnalysisConfig. Uses global config if None.
            provenance: Optional ProvenanceTracker for audit trails.
            session_dir: Directory for the file backend; defaults to
                ``config.session_dir``. Empty keeps state in memory.
        """
        self.config = config or get_config()
        self.provenance = provenance
        directory = session_dir if session_dir is not None else self.config.session_dir
        self._path: Optional[Path] = Path(directory) / SESSION_FILENAME if directory else None

        self._lock = threading.Lock()
        self._state: Optional[str] = None
        self._token: Optional[str] = None
        self._generation: int = 0
        self._plot_count: int = 0
        self.last_restore_error: Optional[str] = None

        self._save_count: int = 0
        self._restore_count: int = 0
        self._corrupt_count: int = 0

        if self._path is not None:
            self._load_from_disk()
        logger.info(
            "AnalysisSessionStore initialized: backend=%s",
            str(self._path) if self._path else "memory",
        )

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    def begin_generation(self) -> int:
        """Start a new analysis generation and return its number.

        Any result still being computed for an older generation will be
        refused by save().
        """
        with self._lock:
            self._generation += 1
            logger.debug("Session generation advanced to %d", self._generation)
            return self._generation

    @property
    def current_generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # Save / restore
    # ------------------------------------------------------------------

    def save(
        self,
        plots: Sequence[ClassifiedPlot],
        generation: Optional[int] = None,
    ) -> str:
        """Atomically replace the active session with ``plots``.

        Args:
            plots: Classified plots in display order.
            generation: Generation the plots were computed for; None skips
                the staleness check.

        Returns:
            Opaque session token.

        Raises:
            StaleSessionError: If ``generation`` is not the current one.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                record_session_operation("save", "stale")
                logger.warning(
                    "Discarding %d plots for stale generation %d (current %d)",
                    len(plots), generation, self._generation,
                )
                raise StaleSessionError(generation, self._generation)

            token = uuid.uuid4().hex
            state = serialize_session(token, self._generation, plots)
            self._write(state)
            self._state = state
            self._token = token
            self._plot_count = len(plots)
            self._save_count += 1

        record_session_operation("save", "success")
        update_active_session_plots(len(plots))
        if self.provenance is not None:
            self.provenance.record(
                "session", token, "save",
                self.provenance.build_hash([p.provenance_hash for p in plots]),
            )
        logger.info("Saved analysis session %s with %d plots", token[:8], len(plots))
        return token

    def restore(
        self,
        token: Optional[str],
        intent: Optional[Union[RestoreIntent, str]],
    ) -> Optional[Tuple[ClassifiedPlot, ...]]:
        """Restore the session for a declared intent.

        Args:
            token: Session token from save(); None means the active session.
            intent: Why the session is being restored.

        Returns:
            Tuple of frozen ClassifiedPlot, or None when there is no
            matching session (cleared, never saved, other token, corrupt).

        Raises:
            ValueError: If no intent (or an unknown intent) is given.
        """
        if intent is None:
            raise ValueError("Session restore requires an explicit intent")
        intent = RestoreIntent(intent)

        with self._lock:
            state = self._state
            active_token = self._token
            if state is None or active_token is None:
                record_session_operation("restore", "not_found")
                return None
            if token is not None and token != active_token:
                record_session_operation("restore", "not_found")
                logger.debug("Restore for unknown token %s", str(token)[:8])
                return None
            try:
                _, _, plots = deserialize_session(state)
            except SessionCorruptError as exc:
                self._discard_corrupt(exc)
                return None
            self._restore_count += 1

        record_session_operation("restore", "success")
        logger.debug(
            "Restored session %s (%d plots) for %s",
            active_token[:8], len(plots), intent.value,
        )
        return plots

    def replace_plot(
        self,
        token: Optional[str],
        plot: ClassifiedPlot,
        generation: Optional[int] = None,
    ) -> bool:
        """Atomically swap one plot of the active session.

        The plot is matched on ``plot_id`` and ``feature_index`` (so
        duplicate ids stay distinct), falling back to the first plot with
        the same id.

        Returns:
            True when a plot was replaced.

        Raises:
            StaleSessionError: If ``generation`` is not the current one.
        """
        return self.replace_plots(token, [plot], generation=generation) == 1

    def replace_plots(
        self,
        token: Optional[str],
        plots: Sequence[ClassifiedPlot],
        generation: Optional[int] = None,
    ) -> int:
        """Atomically swap several plots of the active session.

        Args:
            token: Session the plots belong to; None means the active one.
            plots: Replacement plots.
            generation: Generation the plots were read from; None skips
                the staleness check.

        Returns:
            Number of plots replaced.

        Raises:
            StaleSessionError: If the session was cleared or replaced since
                ``generation``.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                record_session_operation("replace", "stale")
                logger.warning(
                    "Discarding edit of %d plots for stale generation %d (current %d)",
                    len(plots), generation, self._generation,
                )
                raise StaleSessionError(generation, self._generation)
            if self._state is None or self._token is None:
                record_session_operation("replace", "not_found")
                return 0
            if token is not None and token != self._token:
                record_session_operation("replace", "not_found")
                return 0
            try:
                active_token, generation, current = deserialize_session(self._state)
            except SessionCorruptError as exc:
                self._discard_corrupt(exc)
                return 0

            updated = list(current)
            replaced = 0
            for plot in plots:
                index = self._find(updated, plot)
                if index is None:
                    continue
                updated[index] = plot
                replaced += 1

            if replaced:
                state = serialize_session(active_token, generation, updated)
                self._write(state)
                self._state = state

        record_session_operation("replace", "success" if replaced else "not_found")
        logger.debug("Replaced %d plots in session %s", replaced, str(token or "")[:8])
        return replaced

    def clear(self) -> None:
        """Full reset: drop the session and advance the generation."""
        with self._lock:
            self._state = None
            self._token = None
            self._plot_count = 0
            self._generation += 1
            if self._path is not None and self._path.exists():
                self._path.unlink()
        record_session_operation("clear", "success")
        update_active_session_plots(0)
        logger.info("Analysis session cleared")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current_token(self) -> Optional[str]:
        return self._token

    @property
    def has_session(self) -> bool:
        return self._token is not None

    @property
    def plot_count(self) -> int:
        """Number of plots in the active session."""
        return self._plot_count

    @property
    def save_count(self) -> int:
        return self._save_count

    @property
    def corrupt_count(self) -> int:
        return self._corrupt_count

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _find(plots: List[ClassifiedPlot], plot: ClassifiedPlot) -> Optional[int]:
        fallback = None
        for index, existing in enumerate(plots):
            if existing.plot_id != plot.plot_id:
                continue
            if existing.feature_index == plot.feature_index:
                return index
            if fallback is None:
                fallback = index
        return fallback

    def _discard_corrupt(self, exc: SessionCorruptError) -> None:
        # Caller holds the lock.
        self._corrupt_count += 1
        self.last_restore_error = str(exc)
        self._state = None
        self._token = None
        self._plot_count = 0
        if self._path is not None and self._path.exists():
            self._path.unlink()
        record_session_operation("restore", "corrupt")
        record_processing_error("session_store", "corrupt_state")
        update_active_session_plots(0)
        logger.warning("Corrupt analysis session discarded: %s", exc)

    def _write(self, state: str) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".session-", suffix=".tmp", dir=str(self._path.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(state)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _load_from_disk(self) -> None:
        if self._path is None or not self._path.exists():
            return
        raw = self._path.read_text(encoding="utf-8")
        try:
            token, generation, plots = deserialize_session(raw)
        except SessionCorruptError as exc:
            self._discard_corrupt(exc)
            return
        self._state = raw
        self._token = token
        self._generation = generation
        self._plot_count = len(plots)
        update_active_session_plots(len(plots))
        logger.info("Loaded analysis session %s from disk (%d plots)", token[:8], len(plots))


__all__ = [
    "AnalysisSessionStore",
    "serialize_session",
    "deserialize_session",
    "SESSION_FILENAME",
]
