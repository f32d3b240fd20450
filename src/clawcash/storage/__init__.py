"""Storage layer for persistent data."""

from clawcash.storage.database import (
    DatabaseManager,
    PoolRecord,
    CommitmentLeaf,
    Nullifier,
    MerkleRoot,
    Base,
    get_db_manager,
    reset_db_manager,
)
from clawcash.storage.stores import SqlNullifierLedger, SqlPoolStore

__all__ = [
    "DatabaseManager",
    "PoolRecord",
    "CommitmentLeaf",
    "Nullifier",
    "MerkleRoot",
    "Base",
    "get_db_manager",
    "reset_db_manager",
    "SqlNullifierLedger",
    "SqlPoolStore",
]
