"""Persisted leaf and nullifier records.

Byte layout matches the deployed accounts:

    LeafRecord       commitment (32) | leaf_index (u32 LE) | pool_id (u8)   = 37 bytes
    NullifierRecord  nullifier_hash (32) | pool_id (u8)                      = 33 bytes

The SQL store keeps the fields in columns. The packed form is what the
HTTP API exports for leaves and spent nullifiers; clients decode it with
`from_bytes`.
"""

from dataclasses import dataclass

from clawcash.utils.hash import HASH_SIZE, is_hash
from clawcash.utils.encoding import (
    LEAF_INDEX_SIZE,
    POOL_ID_SIZE,
    leaf_index_from_bytes,
    leaf_index_to_bytes,
    pool_id_to_bytes,
)
from clawcash.exceptions import DeserializationError


@dataclass(frozen=True)
class LeafRecord:
    """One inserted commitment; immutable once written."""

    commitment: bytes
    leaf_index: int
    pool_id: int

    SIZE = HASH_SIZE + LEAF_INDEX_SIZE + POOL_ID_SIZE

    def to_bytes(self) -> bytes:
        return self.commitment + leaf_index_to_bytes(self.leaf_index) + pool_id_to_bytes(self.pool_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> "LeafRecord":
        if len(data) != cls.SIZE:
            raise DeserializationError(f"Leaf record must be {cls.SIZE} bytes, got {len(data)}")
        return cls(
            commitment=data[:HASH_SIZE],
            leaf_index=leaf_index_from_bytes(data[HASH_SIZE:HASH_SIZE + LEAF_INDEX_SIZE]),
            pool_id=data[-1],
        )

    def to_dict(self) -> dict:
        return {
            "commitment": self.commitment.hex(),
            "leaf_index": self.leaf_index,
            "pool_id": self.pool_id,
        }


@dataclass(frozen=True)
class NullifierRecord:
    """A spent nullifier. Its existence is the double-spend guard."""

    nullifier_hash: bytes
    pool_id: int

    SIZE = HASH_SIZE + POOL_ID_SIZE

    def __post_init__(self):
        if not is_hash(self.nullifier_hash):
            raise ValueError("Nullifier hash must be 32 bytes")

    def to_bytes(self) -> bytes:
        return self.nullifier_hash + pool_id_to_bytes(self.pool_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> "NullifierRecord":
        if len(data) != cls.SIZE:
            raise DeserializationError(
                f"Nullifier record must be {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(nullifier_hash=data[:HASH_SIZE], pool_id=data[-1])
