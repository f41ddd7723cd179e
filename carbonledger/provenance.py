# -*- coding: utf-8 -*-
"""
Calculation Provenance - SHA-256 audit chain

Tamper-evident record of the steps of one emission calculation. Every
entry hashes its payload and links to the previous entry's hash, starting
from a genesis anchor, so any edit to a recorded step breaks
``verify_chain()``.

The calculation engine builds one chain per ``calculate`` call. The
chain's last hash is stored on the result as ``provenance_hash``; the
entries and the verification result are returned on the outcome.

Entity Types:
    activity     - one activity record (id prefixed with its category)
    calculation  - the aggregated result of a reporting record

Actions:
    lookup       - record normalized and priced with a factor
    reject       - record excluded with a per-record error
    calculate    - result aggregated
    recalculate  - result aggregated on an explicitly forced run

Example:
    >>> from carbonledger.provenance import ProvenanceChain
    >>> chain = ProvenanceChain()
    >>> entry = chain.add_entry("calculation", "calculate", "rec-1", {"total": "1.0"})
    >>> chain.verify_chain()
    True

Author: carbonledger Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

VALID_ENTITY_TYPES = frozenset({
    "activity",
    "calculation",
})

VALID_ACTIONS = frozenset({
    "lookup",
    "reject",
    "calculate",
    "recalculate",
})


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# ProvenanceEntry dataclass
# ---------------------------------------------------------------------------


@dataclass
class ProvenanceEntry:
    """A single provenance record.

    Attributes:
        entity_type: Type of entity the step acted on.
        entity_id: Identifier of the entity instance.
        action: Step performed.
        hash_value: Chain hash of this entry.
        parent_hash: Chain hash of the preceding entry.
        timestamp: UTC ISO timestamp.
        metadata: Extra fields, always including ``data_hash``.
    """

    entity_type: str
    entity_id: str
    action: str
    hash_value: str
    parent_hash: str
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "hash_value": self.hash_value,
            "parent_hash": self.parent_hash,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# ProvenanceChain
# ---------------------------------------------------------------------------


class ProvenanceChain:
    """Ordered SHA-256 hash chain of ProvenanceEntry objects.

    Thread-safe via a reentrant lock.
    """

    def __init__(self, genesis_hash: str = "carbonledger-emissions-genesis") -> None:
        self._genesis_hash: str = hashlib.sha256(genesis_hash.encode("utf-8")).hexdigest()
        self._entries: List[ProvenanceEntry] = []
        self._last_hash: str = self._genesis_hash
        self._lock: threading.RLock = threading.RLock()

    def add_entry(
        self,
        entity_type: str,
        action: str,
        entity_id: str,
        data: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProvenanceEntry:
        """Append an entry linked to the current chain head.

        Raises:
            ValueError: If entity_type or action is unknown, or entity_id is empty.
        """
        if entity_type not in VALID_ENTITY_TYPES:
            raise ValueError(f"Unknown provenance entity_type '{entity_type}'")
        if action not in VALID_ACTIONS:
            raise ValueError(f"Unknown provenance action '{action}'")
        if not entity_id:
            raise ValueError("entity_id must not be empty")

        timestamp = _utcnow().isoformat()
        data_hash = self._hash_data(data)
        entry_metadata: Dict[str, Any] = {"data_hash": data_hash}
        if metadata:
            entry_metadata.update(metadata)

        with self._lock:
            parent_hash = self._last_hash
            chain_hash = self._compute_chain_hash(parent_hash, data_hash, action, timestamp)
            entry = ProvenanceEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                hash_value=chain_hash,
                parent_hash=parent_hash,
                timestamp=timestamp,
                metadata=entry_metadata,
            )
            self._entries.append(entry)
            self._last_hash = chain_hash

        logger.debug(
            "Chain entry added: %s/%s action=%s hash=%s",
            entity_type, entity_id[:16], action, chain_hash[:16],
        )
        return entry

    def verify_chain(self) -> bool:
        """Check that every entry links to its predecessor (or the genesis hash)."""
        with self._lock:
            chain = list(self._entries)

        for i, entry in enumerate(chain):
            expected_parent = self._genesis_hash if i == 0 else chain[i - 1].hash_value
            if entry.parent_hash != expected_parent:
                logger.warning("verify_chain: chain break at entry[%d]", i)
                return False
            recomputed = self._compute_chain_hash(
                entry.parent_hash,
                entry.metadata.get("data_hash", ""),
                entry.action,
                entry.timestamp,
            )
            if recomputed != entry.hash_value:
                logger.warning("verify_chain: entry[%d] hash mismatch", i)
                return False
        return True

    def get_hash(self) -> str:
        """Most recent chain hash (the genesis hash for an empty chain)."""
        with self._lock:
            return self._last_hash

    @property
    def genesis_hash(self) -> str:
        return self._genesis_hash

    @property
    def entries(self) -> List[ProvenanceEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _hash_data(data: Optional[Any]) -> str:
        serialized = "null" if data is None else json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    @staticmethod
    def _compute_chain_hash(parent_hash: str, data_hash: str, action: str, timestamp: str) -> str:
        combined = json.dumps(
            {
                "action": action,
                "data_hash": data_hash,
                "parent_hash": parent_hash,
                "timestamp": timestamp,
            },
            sort_keys=True,
        )
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()


__all__ = ["ProvenanceEntry", "ProvenanceChain", "VALID_ENTITY_TYPES", "VALID_ACTIONS"]
