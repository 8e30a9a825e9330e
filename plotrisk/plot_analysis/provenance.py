# -*- coding: utf-8 -*-
"""
Provenance Tracking for the Plot Analysis Pipeline

Provides SHA-256 based audit trail tracking for plot analysis operations.
Maintains an in-memory chain-hashed operation log for tamper-evident
provenance of every verdict the pipeline produces.

Operation Types:
    - normalization: Feature collection normalized into plots
    - classification: Plot classified against loss and overlap datasets
    - session: Analysis session saved, replaced or cleared
    - overlay: Overlay layer loaded
    - export: Plot export produced
    - association: Plots associated with a supplier
    - compliance_override: Compliance status set manually

Example:
    >>> from plotrisk.plot_analysis.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> chain_hash = tracker.record("classification", "PLOT_001", "classify", "abc123")
    >>> valid, chain = tracker.verify_chain("PLOT_001")
    >>> assert valid is True

Author: PlotRisk Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Valid operation types
# ---------------------------------------------------------------------------

VALID_OPERATION_TYPES = frozenset({
    "normalization",
    "classification",
    "session",
    "overlay",
    "export",
    "association",
    "compliance_override",
})


# =============================================================================
# ProvenanceTracker
# =============================================================================


class ProvenanceTracker:
    """Tracks provenance for plot analysis operations with SHA-256 chain hashing.

    Every entry links to the previous one through its chain hash, so any
    edit to an earlier entry breaks every later hash.

    Attributes:
        _chain_store: In-memory chain storage grouped by entity_id.
        _global_chain: Flat list of all entries in order.
        _last_chain_hash: Most recent chain hash for linking.

    Example:
        >>> tracker = ProvenanceTracker()
        >>> tracker.record("normalization", "upload-1", "normalize", "abc123")
        >>> tracker.entry_count
        1
    """

    _GENESIS_HASH = hashlib.sha256(b"plotrisk-plot-analysis-genesis").hexdigest()

    def __init__(self) -> None:
        """Initialize ProvenanceTracker."""
        self._chain_store: Dict[str, List[Dict[str, Any]]] = {}
        self._global_chain: List[Dict[str, Any]] = []
        self._last_chain_hash: str = self._GENESIS_HASH
        logger.info("ProvenanceTracker initialized for plot analysis")

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        data_hash: str,
        user_id: str = "system",
    ) -> str:
        """Record a provenance entry for an entity operation.

        Args:
            entity_type: Type of entity (one of VALID_OPERATION_TYPES).
            entity_id: Unique entity identifier.
            action: Action performed.
            data_hash: SHA-256 hash of the operation data.
            user_id: User who performed the operation.

        Returns:
            Chain hash of the new entry.
        """
        if entity_type not in VALID_OPERATION_TYPES:
            logger.debug("Recording non-standard provenance type %s", entity_type)

        timestamp = _utcnow().isoformat()
        chain_hash = self._compute_chain_hash(
            self._last_chain_hash, data_hash, action, timestamp,
        )
        entry = {
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "data_hash": data_hash,
            "user_id": user_id,
            "timestamp": timestamp,
            "previous_hash": self._last_chain_hash,
            "chain_hash": chain_hash,
        }

        self._chain_store.setdefault(entity_id, []).append(entry)
        self._global_chain.append(entry)
        self._last_chain_hash = chain_hash

        logger.debug(
            "Recorded provenance: %s/%s action=%s hash=%s",
            entity_type, entity_id, action, chain_hash[:16],
        )
        return chain_hash

    def verify_chain(self, entity_id: str) -> Tuple[bool, List[Dict[str, Any]]]:
        """Verify the integrity of the provenance chain for an entity.

        Recomputes each entry's chain hash from its recorded predecessor.

        Args:
            entity_id: Entity ID whose chain to verify.

        Returns:
            Tuple of (is_valid, chain_entries).
        """
        chain = self._chain_store.get(entity_id, [])
        for index, entry in enumerate(chain):
            expected = self._compute_chain_hash(
                entry.get("previous_hash", ""),
                entry.get("data_hash", ""),
                entry.get("action", ""),
                entry.get("timestamp", ""),
            )
            if entry.get("chain_hash") != expected:
                logger.warning(
                    "Chain verification failed for %s at index %d",
                    entity_id, index,
                )
                return False, list(chain)
        return True, list(chain)

    def get_chain(self, entity_id: str) -> List[Dict[str, Any]]:
        """Get the provenance chain for an entity, oldest first."""
        return list(self._chain_store.get(entity_id, []))

    def get_global_chain(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get the global provenance chain, newest first.

        Args:
            limit: Maximum number of entries to return.
        """
        return list(reversed(self._global_chain[-limit:]))

    def _compute_chain_hash(
        self,
        previous_hash: str,
        data_hash: str,
        action: str,
        timestamp: str,
    ) -> str:
        combined = json.dumps({
            "previous": previous_hash,
            "data": data_hash,
            "action": action,
            "timestamp": timestamp,
        }, sort_keys=True)
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    @property
    def entry_count(self) -> int:
        """Return the total number of provenance entries."""
        return len(self._global_chain)

    @property
    def entity_count(self) -> int:
        """Return the number of unique entities tracked."""
        return len(self._chain_store)

    def export_json(self) -> str:
        """Export all provenance records as a JSON string."""
        return json.dumps(self._global_chain, indent=2, default=str)

    def build_hash(self, data: Any) -> str:
        """Build a SHA-256 hash for arbitrary data.

        Pydantic models are hashed through ``model_dump(mode="json")``.
        """
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="json")
        serialized = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


__all__ = [
    "ProvenanceTracker",
    "VALID_OPERATION_TYPES",
]
