"""Fixed-denomination pool: one accumulator, one denomination, one vault.

Deposit flow:
    1. Preview the append (TreeFull / IndexMismatch surface here, nothing mutated)
    2. Charge the deposit fee through the fee gate
    3. Move the denomination from depositor to the pool vault
    4. Persist the leaf record and the new accumulator state
    5. Apply the new state in memory

Withdrawal flow:
    1. Membership verifier checks the proof against the current root
       (nullifier/preimage consistency first, then the Merkle path)
    2. Vault must hold one denomination
    3. Nullifier ledger insert-if-absent (the double-spend guard)
    4. Authorization to release exactly one denomination to the recipient

Deposits and withdrawals on one pool are serialized by a per-pool lock.
Each operation first picks up accumulator state that another writer
committed to the shared store.
Any failure leaves pool state untouched; collaborator side effects already
performed by a failed deposit are reversed.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

from clawcash.core.interfaces import FeeGate, FundsLedger, InMemoryPoolStore, PoolStore
from clawcash.core.membership import HashRevealProof, HashRevealVerifier, MembershipProof, MembershipVerifier
from clawcash.core.merkle_tree import AccumulatorState, IncrementalMerkleAccumulator
from clawcash.core.nullifier import InMemoryNullifierLedger, NullifierLedger
from clawcash.core.proof import build_merkle_path
from clawcash.core.records import LeafRecord
from clawcash.utils.encoding import bytes_to_hex
from clawcash.exceptions import (
    ClawCashException,
    IndexMismatchError,
    InsufficientFeeError,
    InsufficientFundsError,
    InsufficientVaultBalanceError,
    InvalidLeafIndexError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
)

logger = logging.getLogger(__name__)


class PoolStatus(str, Enum):
    """Pool lifecycle: a pool is initialized once and never deactivated."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


def vault_account(pool_id: int) -> str:
    """Account holding a pool's deposited funds."""
    return f"vault:{pool_id}"


@dataclass
class DepositReceipt:
    """Receipt for an accepted deposit."""

    pool_id: int
    leaf_index: int
    commitment: bytes
    merkle_root: bytes
    path: List[bytes]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pool_id": self.pool_id,
            "leaf_index": self.leaf_index,
            "commitment": bytes_to_hex(self.commitment),
            "merkle_root": bytes_to_hex(self.merkle_root),
            "path": [bytes_to_hex(node) for node in self.path],
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class WithdrawalAuthorization:
    """Instruction for the funds ledger to pay one denomination to a recipient."""

    pool_id: int
    recipient: str
    amount: int
    nullifier_hash: bytes
    merkle_root: bytes
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pool_id": self.pool_id,
            "recipient": self.recipient,
            "amount": self.amount,
            "nullifier_hash": bytes_to_hex(self.nullifier_hash),
            "merkle_root": bytes_to_hex(self.merkle_root),
            "timestamp": self.timestamp.isoformat(),
        }


class Pool:
    """
    A single denomination tier.

    Collaborators are optional: without a funds ledger the pool only issues
    authorizations, without a fee gate no fee is charged.
    """

    def __init__(
        self,
        pool_id: int,
        depth: int = IncrementalMerkleAccumulator.DEFAULT_DEPTH,
        verifier: Optional[MembershipVerifier] = None,
        nullifier_ledger: Optional[NullifierLedger] = None,
        funds_ledger: Optional[FundsLedger] = None,
        fee_gate: Optional[FeeGate] = None,
        store: Optional[PoolStore] = None,
        fee_amount: int = 0,
    ):
        self.pool_id = pool_id
        self.depth = depth
        self.verifier = verifier or HashRevealVerifier(depth)
        self.nullifier_ledger = nullifier_ledger or InMemoryNullifierLedger()
        self.funds_ledger = funds_ledger
        self.fee_gate = fee_gate
        self.store = store or InMemoryPoolStore()
        self.fee_amount = fee_amount

        self.denomination = 0
        self.status = PoolStatus.UNINITIALIZED
        self.accumulator = IncrementalMerkleAccumulator(depth)
        self.vault = vault_account(pool_id)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, denomination: int) -> None:
        """
        Fix the denomination and seed an empty accumulator.

        Raises:
            PoolAlreadyInitializedError: If the pool is already active
            ValueError: If denomination is not positive
        """
        if denomination <= 0:
            raise ValueError("Denomination must be positive")

        with self._lock:
            if self.status is PoolStatus.ACTIVE:
                raise PoolAlreadyInitializedError(f"Pool {self.pool_id} is already initialized")

            accumulator = IncrementalMerkleAccumulator(self.depth)
            self.store.save_pool(self.pool_id, denomination, accumulator.snapshot())

            self.accumulator = accumulator
            self.denomination = denomination
            self.status = PoolStatus.ACTIVE

        logger.info(f"Pool {self.pool_id} initialized: denomination {denomination}")

    def restore(self, denomination: int, state: AccumulatorState) -> None:
        """Reactivate a pool from persisted state."""
        with self._lock:
            self.accumulator = IncrementalMerkleAccumulator.from_state(state)
            self.denomination = denomination
            self.status = PoolStatus.ACTIVE

        logger.info(f"Pool {self.pool_id} restored with {state.next_index} leaves")

    def _require_active(self) -> None:
        if self.status is not PoolStatus.ACTIVE:
            raise PoolNotInitializedError(f"Pool {self.pool_id} is not initialized")

    def refresh(self) -> bool:
        """
        Reload the accumulator if the store holds a newer state.

        Returns:
            bool: True if the in-memory state was replaced
        """
        with self._lock:
            stored = self.store.load_pool(self.pool_id)
            if stored is None:
                return False
            _, state = stored
            if state.next_index == self.accumulator.next_index and state.root == self.accumulator.root:
                return False
            self.accumulator.load_state(state)

        logger.info(f"Pool {self.pool_id} reloaded from store at {state.next_index} leaves")
        return True

    def _compensate(self, compensations: List[Callable[[], None]]) -> None:
        for undo in reversed(compensations):
            try:
                undo()
            except Exception as e:
                logger.error(f"Failed to reverse deposit step in pool {self.pool_id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    def deposit(
        self,
        commitment: bytes,
        leaf_index: Optional[int] = None,
        depositor: Optional[str] = None,
    ) -> DepositReceipt:
        """
        Insert a commitment and take one denomination from the depositor.

        Args:
            commitment: H(secret || nullifier_preimage), 32 bytes
            leaf_index: Index the depositor expects to receive, if declared
            depositor: Paying account (required when fees or funds are wired)

        Returns:
            DepositReceipt: Assigned leaf index, new root and sibling path

        Raises:
            TreeFullError: If the pool is at capacity
            IndexMismatchError: If leaf_index is stale
            InsufficientFeeError: If the fee cannot be paid
            InsufficientFundsError: If the depositor cannot cover the denomination
        """
        self._require_active()

        with self._lock:
            self.refresh()
            result = self.accumulator.preview_append(commitment, leaf_index)
            leaf = LeafRecord(commitment=commitment, leaf_index=result.leaf_index, pool_id=self.pool_id)

            compensations: List[Callable[[], None]] = []
            try:
                fee = self.fee_amount
                if self.fee_gate is not None and fee > 0:
                    if depositor is None:
                        raise InsufficientFeeError("A depositor account is required to pay the fee")
                    self.fee_gate.charge_fee(depositor, fee)
                    compensations.append(partial(self.fee_gate.refund_fee, depositor, fee))

                if self.funds_ledger is not None:
                    if depositor is None:
                        raise InsufficientFundsError("A depositor account is required to fund a deposit")
                    self.funds_ledger.debit(depositor, self.denomination)
                    compensations.append(partial(self.funds_ledger.credit, depositor, self.denomination))
                    self.funds_ledger.credit(self.vault, self.denomination)
                    compensations.append(partial(self.funds_ledger.debit, self.vault, self.denomination))

                self.store.record_deposit(leaf, result.state)
            except Exception as e:
                logger.warning(f"Deposit into pool {self.pool_id} rejected: {type(e).__name__}: {e}")
                self._compensate(compensations)
                if isinstance(e, IndexMismatchError):
                    # Another writer advanced the stored pool
                    self.refresh()
                raise

            self.accumulator.apply(result)

        logger.info(f"Deposited {self.denomination} into pool {self.pool_id}. Leaf index: {result.leaf_index}")

        return DepositReceipt(
            pool_id=self.pool_id,
            leaf_index=result.leaf_index,
            commitment=commitment,
            merkle_root=result.root,
            path=result.path,
        )

    # ------------------------------------------------------------------
    # Withdrawal
    # ------------------------------------------------------------------

    def withdraw(
        self,
        secret: bytes,
        nullifier_preimage: bytes,
        nullifier_hash: bytes,
        leaf_index: int,
        path: Sequence[bytes],
        recipient: str,
    ) -> WithdrawalAuthorization:
        """
        Withdraw one denomination by revealing a note opening.

        Raises:
            ProofMismatchError: If nullifier_hash != H(nullifier_preimage)
            MalformedProofError: If the path has the wrong length
            InvalidProofError: If the path does not reach the current root
            AlreadySpentError: If the nullifier was already used
        """
        proof = HashRevealProof(
            nullifier_hash=nullifier_hash,
            secret=secret,
            nullifier_preimage=nullifier_preimage,
            leaf_index=leaf_index,
            path=list(path),
        )
        return self.withdraw_with_proof(proof, recipient)

    def withdraw_with_proof(self, proof: MembershipProof, recipient: str) -> WithdrawalAuthorization:
        """Withdraw one denomination with any proof the pool's verifier accepts."""
        self._require_active()

        with self._lock:
            self.refresh()
            root = self.accumulator.root
            try:
                nullifier_hash = self.verifier.verify(proof, root, recipient)

                if self.funds_ledger is not None and self.funds_ledger.balance(self.vault) < self.denomination:
                    raise InsufficientVaultBalanceError(f"Vault of pool {self.pool_id} cannot cover a withdrawal")

                self.nullifier_ledger.insert_if_absent(nullifier_hash, self.pool_id)
            except ClawCashException as e:
                logger.warning(f"Withdrawal from pool {self.pool_id} rejected: {type(e).__name__}: {e}")
                raise

            authorization = WithdrawalAuthorization(
                pool_id=self.pool_id,
                recipient=recipient,
                amount=self.denomination,
                nullifier_hash=nullifier_hash,
                merkle_root=root,
            )

            if self.funds_ledger is not None:
                self.funds_ledger.debit(self.vault, self.denomination)
                self.funds_ledger.credit(recipient, self.denomination)

        logger.info(
            f"Withdrawn {self.denomination} from pool {self.pool_id}, "
            f"nullifier {nullifier_hash.hex()[:16]}..."
        )
        return authorization

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_merkle_path(self, leaf_index: int) -> List[bytes]:
        """
        Sibling path of a leaf against the current root, rebuilt from stored leaves.

        Raises:
            InvalidLeafIndexError: If no leaf exists at leaf_index
        """
        self._require_active()
        with self._lock:
            self.refresh()
            leaves = self.store.get_leaves(self.pool_id)
        return build_merkle_path(leaves, leaf_index, self.depth)

    def get_leaf(self, leaf_index: int) -> LeafRecord:
        """
        Stored record of one inserted commitment.

        Raises:
            InvalidLeafIndexError: If no leaf exists at leaf_index
        """
        self._require_active()
        leaf = self.store.get_leaf(self.pool_id, leaf_index)
        if leaf is None:
            raise InvalidLeafIndexError(f"Pool {self.pool_id} has no leaf at index {leaf_index}")
        return leaf

    def get_root_history(self, limit: int = 100) -> List[Tuple[int, bytes]]:
        """(num_leaves, root) after each recent deposit, newest first."""
        self._require_active()
        return self.store.get_root_history(self.pool_id, limit)

    @property
    def root(self) -> bytes:
        return self.accumulator.root

    @property
    def next_index(self) -> int:
        return self.accumulator.next_index

    def get_state(self) -> dict:
        """Summary of the pool for reporting."""
        return {
            "pool_id": self.pool_id,
            "status": self.status.value,
            "denomination": self.denomination,
            "tree_depth": self.depth,
            "next_index": self.accumulator.next_index,
            "capacity": self.accumulator.capacity,
            "merkle_root": self.accumulator.root.hex(),
        }

    def __repr__(self) -> str:
        return (
            f"Pool(id={self.pool_id}, status={self.status.value}, "
            f"denomination={self.denomination}, leaves={self.accumulator.next_index})"
        )
