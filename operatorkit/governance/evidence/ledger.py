"""Evidence ledger.

``EvidenceLedger`` is the append-only audit trail of routing and decision
events. It is a correctness-relevant write path, not best-effort telemetry:

- ``append`` returns the stored record (with its sequence number) or raises
  ``StorageError``. It never drops a record silently.
- There is no update or delete operation.
- Sequence numbers are assigned by the backing repository and increase
  strictly in append order. Idempotency keys are scoped to a session:
  repeating a key for the same event returns the original record instead of
  writing a duplicate, and reusing it for a different event raises
  ``StorageError``.

Exports are flat JSON arrays sorted by sequence ascending. ``chain_hash``
folds the exported records into a single SHA-256 digest so an exported file
can be checked against the live ledger.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from ..errors import StorageError
from ..repos.interfaces import EvidenceRepository
from ..schemas.domain import EvidenceEvent

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


def _canonical(record: Dict[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def chain_hash_of(records: List[Dict[str, Any]]) -> str:
    """Fold exported records into a SHA-256 hash chain, starting from ``GENESIS_HASH``."""
    digest = GENESIS_HASH
    for record in records:
        digest = hashlib.sha256((digest + _canonical(record)).encode("utf-8")).hexdigest()
    return digest


def _replay_fields(event: EvidenceEvent) -> tuple:
    return (event.session_id, event.proposal_id, event.type, event.decision, event.state)


class EvidenceLedger:
    def __init__(self, repo: EvidenceRepository) -> None:
        self._repo = repo

    async def append(self, event: EvidenceEvent) -> EvidenceEvent:
        """
        Durably append ``event``.

        Returns:
            The stored event carrying its sequence number.

        Raises:
            StorageError: The backing store did not accept the record, or the
                idempotency key already belongs to a different event.
        """
        try:
            stored = await self._repo.append(event)
        except StorageError:
            logger.error(f"Evidence append failed for session {event.session_id} ({event.type.value})")
            raise
        except Exception as e:
            logger.error(f"Evidence append failed for session {event.session_id} ({event.type.value}): {e}")
            raise StorageError(f"evidence append failed: {e}") from e
        if stored.sequence is None:
            raise StorageError("evidence store did not assign a sequence number")
        if stored.id != event.id and _replay_fields(stored) != _replay_fields(event):
            logger.error(
                f"Idempotency key '{event.idempotency_key}' on session {event.session_id} "
                f"already records {stored.type.value} #{stored.sequence}"
            )
            raise StorageError(f"idempotency key '{event.idempotency_key}' was already used for a different event")
        logger.debug(f"Evidence #{stored.sequence} {stored.type.value} session={stored.session_id}")
        return stored

    async def list(self, session_id: Optional[str] = None) -> List[EvidenceEvent]:
        events = await self._repo.list(session_id)
        return sorted(events, key=lambda e: e.sequence or 0)

    async def export_records(self, session_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [e.export_record() for e in await self.list(session_id)]

    async def export_json(self, session_id: Optional[str] = None, *, indent: Optional[int] = None) -> str:
        """Serialize the ledger as an ordered JSON array of flat records."""
        return json.dumps(await self.export_records(session_id), indent=indent, ensure_ascii=False)

    async def chain_hash(self, session_id: Optional[str] = None) -> str:
        return chain_hash_of(await self.export_records(session_id))
