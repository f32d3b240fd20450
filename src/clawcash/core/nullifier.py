"""Nullifier ledger: the set of spent nullifier hashes.

Inserting a nullifier is the only double-spend guard. The ledger is keyed
by nullifier hash alone, so a note can never be spent twice, not even
through another pool. Entries are permanent; there is no removal.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from clawcash.core.records import NullifierRecord
from clawcash.exceptions import AlreadySpentError

logger = logging.getLogger(__name__)


class NullifierLedger(ABC):
    """Append-only set of spent nullifiers."""

    @abstractmethod
    def insert_if_absent(self, nullifier_hash: bytes, pool_id: int) -> NullifierRecord:
        """
        Record `nullifier_hash` as spent.

        Must be linearizable: of two concurrent inserts of the same hash,
        exactly one succeeds.

        Returns:
            NullifierRecord: The newly created record

        Raises:
            AlreadySpentError: If the hash was already recorded
        """

    @abstractmethod
    def is_spent(self, nullifier_hash: bytes) -> bool:
        """Check if a nullifier hash has been spent."""

    @abstractmethod
    def get_record(self, nullifier_hash: bytes) -> Optional[NullifierRecord]:
        """Get the record for a spent nullifier hash."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of spent nullifiers."""


class InMemoryNullifierLedger(NullifierLedger):
    """Process-local ledger guarded by a mutex."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[bytes, NullifierRecord] = {}

    def insert_if_absent(self, nullifier_hash: bytes, pool_id: int) -> NullifierRecord:
        record = NullifierRecord(nullifier_hash=nullifier_hash, pool_id=pool_id)
        with self._lock:
            if nullifier_hash in self._records:
                logger.warning(f"Rejected spent nullifier {nullifier_hash.hex()[:16]}...")
                raise AlreadySpentError(nullifier_hash)
            self._records[nullifier_hash] = record
        return record

    def is_spent(self, nullifier_hash: bytes) -> bool:
        return nullifier_hash in self._records

    def get_record(self, nullifier_hash: bytes) -> Optional[NullifierRecord]:
        return self._records.get(nullifier_hash)

    def __len__(self) -> int:
        return len(self._records)
