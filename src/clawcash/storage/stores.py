"""SQL-backed pool store and nullifier ledger."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clawcash.core.interfaces import PoolStore
from clawcash.core.merkle_tree import AccumulatorState
from clawcash.core.nullifier import NullifierLedger
from clawcash.core.records import LeafRecord, NullifierRecord
from clawcash.storage.database import DatabaseManager
from clawcash.utils.hash import HASH_SIZE
from clawcash.exceptions import (
    AlreadySpentError,
    DeserializationError,
    IndexMismatchError,
    PersistenceError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
)

logger = logging.getLogger(__name__)


def pack_frontier(frontier) -> bytes:
    return b"".join(frontier)


def unpack_frontier(data: bytes, depth: int) -> Tuple[bytes, ...]:
    if len(data) != depth * HASH_SIZE:
        raise DeserializationError(
            f"Stored frontier holds {len(data)} bytes, expected {depth * HASH_SIZE}"
        )
    return tuple(data[i:i + HASH_SIZE] for i in range(0, len(data), HASH_SIZE))


class SqlPoolStore(PoolStore):
    """Pool rows, leaf rows and root snapshots in a SQL database."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def save_pool(self, pool_id: int, denomination: int, state: AccumulatorState) -> None:
        try:
            with self.db.transaction() as session:
                self.db.add_pool(
                    session,
                    pool_id=pool_id,
                    denomination=denomination,
                    depth=state.depth,
                    next_index=state.next_index,
                    current_root=state.root,
                    frontier=pack_frontier(state.frontier),
                )
        except IntegrityError as e:
            raise PoolAlreadyInitializedError(f"Pool {pool_id} is already stored") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store pool {pool_id}: {e}") from e

    def record_deposit(self, leaf: LeafRecord, state: AccumulatorState) -> None:
        try:
            with self.db.transaction() as session:
                pool = self.db.get_pool(session, leaf.pool_id)
                if pool is None:
                    raise PoolNotInitializedError(f"Pool {leaf.pool_id} is not stored")
                if pool.next_index != leaf.leaf_index:
                    raise IndexMismatchError(expected=leaf.leaf_index, actual=pool.next_index)

                self.db.add_leaf(session, leaf.pool_id, leaf.leaf_index, leaf.commitment)
                pool.next_index = state.next_index
                pool.current_root = state.root
                pool.frontier = pack_frontier(state.frontier)
                self.db.add_merkle_root(session, leaf.pool_id, state.root, state.next_index)
        except IntegrityError as e:
            # Another writer took this index first
            with self.db.get_session() as session:
                actual = self.db.count_leaves(session, leaf.pool_id)
            raise IndexMismatchError(expected=leaf.leaf_index, actual=actual) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record deposit in pool {leaf.pool_id}: {e}") from e

    def load_pool(self, pool_id: int) -> Optional[Tuple[int, AccumulatorState]]:
        with self.db.get_session() as session:
            pool = self.db.get_pool(session, pool_id)
            if pool is None:
                return None
            state = AccumulatorState(
                depth=pool.depth,
                frontier=unpack_frontier(pool.frontier, pool.depth),
                next_index=pool.next_index,
                root=pool.current_root,
            )
            return pool.denomination, state

    def list_pool_ids(self) -> List[int]:
        with self.db.get_session() as session:
            return self.db.get_pool_ids(session)

    def get_leaves(self, pool_id: int) -> List[bytes]:
        with self.db.get_session() as session:
            return [leaf.commitment for leaf in self.db.get_leaves(session, pool_id)]

    def get_leaf(self, pool_id: int, leaf_index: int) -> Optional[LeafRecord]:
        with self.db.get_session() as session:
            row = self.db.get_leaf(session, pool_id, leaf_index)
            if row is None:
                return None
            return LeafRecord(commitment=row.commitment, leaf_index=row.leaf_index, pool_id=row.pool_id)

    def get_root_history(self, pool_id: int, limit: int = 100) -> List[Tuple[int, bytes]]:
        """Recent roots of a pool, newest first."""
        with self.db.get_session() as session:
            return [
                (row.num_leaves, row.root_hash)
                for row in self.db.get_root_history(session, pool_id, limit)
            ]


class SqlNullifierLedger(NullifierLedger):
    """
    Nullifier ledger on a unique column.

    The database decides races: of two concurrent inserts of one hash the
    unique constraint lets exactly one commit.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    def insert_if_absent(self, nullifier_hash: bytes, pool_id: int) -> NullifierRecord:
        record = NullifierRecord(nullifier_hash=nullifier_hash, pool_id=pool_id)
        try:
            with self.db.transaction() as session:
                self.db.add_nullifier(session, nullifier_hash, pool_id)
        except IntegrityError as e:
            logger.warning(f"Rejected spent nullifier {nullifier_hash.hex()[:16]}...")
            raise AlreadySpentError(nullifier_hash) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record nullifier: {e}") from e
        return record

    def is_spent(self, nullifier_hash: bytes) -> bool:
        return self.get_record(nullifier_hash) is not None

    def get_record(self, nullifier_hash: bytes) -> Optional[NullifierRecord]:
        with self.db.get_session() as session:
            row = self.db.get_nullifier(session, nullifier_hash)
            if row is None:
                return None
            return NullifierRecord(nullifier_hash=row.nullifier_hash, pool_id=row.pool_id)

    def __len__(self) -> int:
        with self.db.get_session() as session:
            return self.db.count_nullifiers(session)
