"""Claw Cash mixer: the protocol surface over a set of denomination pools.

The mixer owns the protocol configuration (authority, deposit fee,
treasury) and one `Pool` per configured denomination. Pool ids are the
positions in the denomination list.

Pools share:
    - the nullifier ledger (a nullifier is spent once, across all pools)
    - the funds ledger and fee gate
    - the pool store

Transaction Flow:

    INITIALIZE:
        authority activates pool id i with denomination denominations[i]

    DEPOSIT:
        1. Depositor computes commitment = H(secret || nullifier_preimage)
        2. Fee charged, denomination moved into the pool vault
        3. Commitment appended to the pool accumulator
        4. Receipt returned (leaf index, root, sibling path)

    WITHDRAW:
        1. Withdrawer presents a membership proof against the current root
        2. Nullifier recorded as spent
        3. One denomination released to the recipient
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from clawcash.core.interfaces import FeeGate, FundsLedger, InMemoryPoolStore, PoolStore
from clawcash.core.membership import MembershipProof, MembershipVerifier
from clawcash.core.merkle_tree import IncrementalMerkleAccumulator
from clawcash.core.nullifier import InMemoryNullifierLedger, NullifierLedger
from clawcash.core.pool import DepositReceipt, Pool, PoolStatus, WithdrawalAuthorization
from clawcash.core.records import LeafRecord, NullifierRecord
from clawcash.exceptions import InvalidPoolError, UnauthorizedError

logger = logging.getLogger(__name__)

DEFAULT_DENOMINATIONS = [100_000_000, 1_000_000_000, 10_000_000_000]
DEFAULT_FEE = 100_000_000
MAX_POOLS = 256


@dataclass
class ProtocolConfig:
    """Protocol-wide settings controlled by the authority."""

    authority: str
    fee_amount: int
    treasury: str

    def to_dict(self) -> dict:
        return {
            "authority": self.authority,
            "fee_amount": self.fee_amount,
            "treasury": self.treasury,
        }


@dataclass
class PoolSummary:
    """Public view of one pool."""

    pool_id: int
    denomination: int
    status: PoolStatus
    next_index: int
    capacity: int
    merkle_root: bytes

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pool_id": self.pool_id,
            "denomination": self.denomination,
            "status": self.status.value,
            "next_index": self.next_index,
            "capacity": self.capacity,
            "merkle_root": "0x" + self.merkle_root.hex(),
        }


class ClawCashMixer:
    """
    Fixed-denomination mixer made of independent pools.

    Pools start uninitialized; only the authority can activate them and
    change the deposit fee. A mixer built over a store that already holds
    pools resumes them where they left off.
    """

    def __init__(
        self,
        denominations: Optional[Sequence[int]] = None,
        tree_depth: int = IncrementalMerkleAccumulator.DEFAULT_DEPTH,
        authority: str = "authority",
        fee_amount: int = DEFAULT_FEE,
        treasury: str = "treasury",
        verifier: Optional[MembershipVerifier] = None,
        nullifier_ledger: Optional[NullifierLedger] = None,
        funds_ledger: Optional[FundsLedger] = None,
        fee_gate: Optional[FeeGate] = None,
        store: Optional[PoolStore] = None,
    ):
        """
        Initialize mixer.

        Args:
            denominations: Denomination per pool id
            tree_depth: Accumulator depth shared by all pools
            authority: Principal allowed to initialize pools and change the fee
            fee_amount: Deposit fee in fee-token units
            treasury: Account receiving deposit fees
            verifier: Membership verifier (hash-reveal by default)
            nullifier_ledger: Spent-nullifier set shared by all pools
            funds_ledger: Account balances; None issues authorizations only
            fee_gate: Fee collector; None charges no fee
            store: Pool persistence; in-memory by default

        Raises:
            ValueError: If a stored pool disagrees with the configured depth or denomination
        """
        denominations = list(DEFAULT_DENOMINATIONS if denominations is None else denominations)
        if not denominations or len(denominations) > MAX_POOLS:
            raise ValueError(f"Between 1 and {MAX_POOLS} denominations are required")
        if any(d <= 0 for d in denominations):
            raise ValueError("Denominations must be positive")
        if fee_amount < 0:
            raise ValueError("Fee amount cannot be negative")

        self.denominations = denominations
        self.tree_depth = tree_depth
        self.config = ProtocolConfig(authority=authority, fee_amount=fee_amount, treasury=treasury)
        self.nullifier_ledger = nullifier_ledger or InMemoryNullifierLedger()
        self.funds_ledger = funds_ledger
        self.fee_gate = fee_gate
        self.store = store or InMemoryPoolStore()

        self.pools: Dict[int, Pool] = {
            pool_id: Pool(
                pool_id=pool_id,
                depth=tree_depth,
                verifier=verifier,
                nullifier_ledger=self.nullifier_ledger,
                funds_ledger=funds_ledger,
                fee_gate=fee_gate,
                store=self.store,
                fee_amount=fee_amount,
            )
            for pool_id in range(len(denominations))
        }
        self._lock = threading.Lock()
        self.start_time = datetime.now()

        self._restore_pools()

    @classmethod
    def from_settings(cls, settings, **collaborators) -> "ClawCashMixer":
        """Build a mixer from a `Settings` instance plus explicit collaborators."""
        return cls(
            denominations=settings.pool_denominations,
            tree_depth=settings.tree_depth,
            authority=settings.authority,
            fee_amount=settings.fee_amount,
            treasury=settings.treasury_account,
            **collaborators,
        )

    def _restore_pools(self) -> None:
        for pool_id in self.store.list_pool_ids():
            if pool_id not in self.pools:
                logger.warning(f"Ignoring stored pool {pool_id}: no such denomination")
                continue
            stored = self.store.load_pool(pool_id)
            if stored is None:
                continue
            denomination, state = stored
            if state.depth != self.tree_depth:
                raise ValueError(
                    f"Stored pool {pool_id} has depth {state.depth}, mixer uses {self.tree_depth}"
                )
            if denomination != self.denominations[pool_id]:
                raise ValueError(
                    f"Stored pool {pool_id} has denomination {denomination}, "
                    f"mixer configures {self.denominations[pool_id]}"
                )
            self.pools[pool_id].restore(denomination, state)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _require_authority(self, caller: str) -> None:
        if caller != self.config.authority:
            logger.warning(f"Rejected administrative call from {caller}")
            raise UnauthorizedError(f"{caller} is not the protocol authority")

    def get_pool(self, pool_id: int) -> Pool:
        """
        Look up a pool by id.

        Raises:
            InvalidPoolError: If pool_id does not name a denomination
        """
        pool = self.pools.get(pool_id)
        if pool is None:
            raise InvalidPoolError(f"Pool id {pool_id} is not configured (have {len(self.pools)})")
        return pool

    def initialize_pool(self, pool_id: int, caller: str) -> PoolSummary:
        """
        Activate a pool with its configured denomination.

        Raises:
            UnauthorizedError: If caller is not the authority
            InvalidPoolError: If pool_id is out of range
            PoolAlreadyInitializedError: If the pool is already active
        """
        self._require_authority(caller)
        pool = self.get_pool(pool_id)
        pool.initialize(self.denominations[pool_id])
        return self.get_pool_summary(pool_id)

    def update_fee(self, caller: str, new_fee: int) -> ProtocolConfig:
        """
        Change the deposit fee; later deposits pay the new amount.

        Raises:
            UnauthorizedError: If caller is not the authority
            ValueError: If new_fee is negative
        """
        self._require_authority(caller)
        if new_fee < 0:
            raise ValueError("Fee amount cannot be negative")

        with self._lock:
            self.config.fee_amount = new_fee
            for pool in self.pools.values():
                pool.fee_amount = new_fee

        logger.info(f"Deposit fee updated to {new_fee}")
        return self.config

    # ------------------------------------------------------------------
    # Pool operations
    # ------------------------------------------------------------------

    def deposit(
        self,
        pool_id: int,
        commitment: bytes,
        leaf_index: Optional[int] = None,
        depositor: Optional[str] = None,
    ) -> DepositReceipt:
        """Deposit one denomination into a pool. See `Pool.deposit`."""
        return self.get_pool(pool_id).deposit(commitment, leaf_index=leaf_index, depositor=depositor)

    def withdraw(
        self,
        pool_id: int,
        secret: bytes,
        nullifier_preimage: bytes,
        nullifier_hash: bytes,
        leaf_index: int,
        path: Sequence[bytes],
        recipient: str,
    ) -> WithdrawalAuthorization:
        """Withdraw one denomination by revealing a note. See `Pool.withdraw`."""
        return self.get_pool(pool_id).withdraw(
            secret=secret,
            nullifier_preimage=nullifier_preimage,
            nullifier_hash=nullifier_hash,
            leaf_index=leaf_index,
            path=path,
            recipient=recipient,
        )

    def withdraw_with_proof(
        self, pool_id: int, proof: MembershipProof, recipient: str
    ) -> WithdrawalAuthorization:
        return self.get_pool(pool_id).withdraw_with_proof(proof, recipient)

    def get_merkle_path(self, pool_id: int, leaf_index: int) -> List[bytes]:
        """Current sibling path of a leaf in a pool."""
        return self.get_pool(pool_id).get_merkle_path(leaf_index)

    def is_spent(self, nullifier_hash: bytes) -> bool:
        return self.nullifier_ledger.is_spent(nullifier_hash)

    def get_nullifier(self, nullifier_hash: bytes) -> Optional[NullifierRecord]:
        """Spent-nullifier record, or None if the nullifier is unspent."""
        return self.nullifier_ledger.get_record(nullifier_hash)

    def get_leaf(self, pool_id: int, leaf_index: int) -> LeafRecord:
        return self.get_pool(pool_id).get_leaf(leaf_index)

    def get_root_history(self, pool_id: int, limit: int = 100) -> List[Tuple[int, bytes]]:
        """Recent roots of a pool for audit. Withdrawals only accept the current one."""
        return self.get_pool(pool_id).get_root_history(limit)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_pool_summary(self, pool_id: int) -> PoolSummary:
        pool = self.get_pool(pool_id)
        # An active pool reports the amount it actually pays out
        if pool.status is PoolStatus.ACTIVE:
            pool.refresh()
            denomination = pool.denomination
        else:
            denomination = self.denominations[pool_id]
        return PoolSummary(
            pool_id=pool_id,
            denomination=denomination,
            status=pool.status,
            next_index=pool.next_index,
            capacity=pool.accumulator.capacity,
            merkle_root=pool.root,
        )

    def list_pools(self) -> List[PoolSummary]:
        return [self.get_pool_summary(pool_id) for pool_id in sorted(self.pools)]

    def get_statistics(self) -> dict:
        """Aggregate counters across pools."""
        active = [pool for pool in self.pools.values() if pool.status is PoolStatus.ACTIVE]
        return {
            "num_pools": len(self.pools),
            "active_pools": len(active),
            "total_deposits": sum(pool.next_index for pool in active),
            "total_withdrawals": len(self.nullifier_ledger),
            "tree_depth": self.tree_depth,
            "fee_amount": self.config.fee_amount,
            "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
        }

    def __repr__(self) -> str:
        return f"ClawCashMixer(pools={len(self.pools)}, depth={self.tree_depth})"
