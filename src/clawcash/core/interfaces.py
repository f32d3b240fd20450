"""External collaborators of a pool: funds ledger, fee gate and pool store.

Pools only depend on the abstract classes. The in-memory implementations
back tests, examples and single-process deployments.
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from clawcash.core.merkle_tree import AccumulatorState
from clawcash.core.records import LeafRecord
from clawcash.exceptions import (
    IndexMismatchError,
    InsufficientFeeError,
    InsufficientFundsError,
)


class FundsLedger(ABC):
    """Moves denomination units between accounts."""

    @abstractmethod
    def debit(self, account: str, amount: int) -> None:
        """Remove `amount` from `account`; raises InsufficientFundsError without mutating."""

    @abstractmethod
    def credit(self, account: str, amount: int) -> None:
        """Add `amount` to `account`."""

    @abstractmethod
    def balance(self, account: str) -> int:
        """Current balance of `account`."""


class FeeGate(ABC):
    """Charges the per-deposit fee."""

    @abstractmethod
    def charge_fee(self, payer: str, amount: int) -> None:
        """Collect `amount` from `payer`; raises InsufficientFeeError without mutating."""

    @abstractmethod
    def refund_fee(self, payer: str, amount: int) -> None:
        """Return a fee collected by `charge_fee`."""


class PoolStore(ABC):
    """Durable storage for pool state and leaf records."""

    @abstractmethod
    def save_pool(self, pool_id: int, denomination: int, state: AccumulatorState) -> None:
        """Persist a newly initialized pool."""

    @abstractmethod
    def record_deposit(self, leaf: LeafRecord, state: AccumulatorState) -> None:
        """
        Persist a leaf record together with the accumulator state it produced.

        Both writes succeed or neither does.

        Raises:
            IndexMismatchError: If a leaf already exists at that index
        """

    @abstractmethod
    def load_pool(self, pool_id: int) -> Optional[Tuple[int, AccumulatorState]]:
        """Return (denomination, state) for a stored pool, or None."""

    @abstractmethod
    def list_pool_ids(self) -> List[int]:
        """Ids of all stored pools."""

    @abstractmethod
    def get_leaves(self, pool_id: int) -> List[bytes]:
        """All commitments of a pool, in insertion order."""

    @abstractmethod
    def get_leaf(self, pool_id: int, leaf_index: int) -> Optional[LeafRecord]:
        """The leaf record at `leaf_index`, or None."""

    @abstractmethod
    def get_root_history(self, pool_id: int, limit: int = 100) -> List[Tuple[int, bytes]]:
        """(num_leaves, root) snapshots of a pool, newest first."""


class InMemoryFundsLedger(FundsLedger):
    """Balances held in a dict."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = defaultdict(int, balances or {})

    def debit(self, account: str, amount: int) -> None:
        with self._lock:
            if self._balances[account] < amount:
                raise InsufficientFundsError(
                    f"Account {account} holds {self._balances[account]}, needs {amount}"
                )
            self._balances[account] -= amount

    def credit(self, account: str, amount: int) -> None:
        with self._lock:
            self._balances[account] += amount

    def balance(self, account: str) -> int:
        return self._balances[account]


class TokenFeeGate(FeeGate):
    """Collects fees in a fee token and sends them to the treasury."""

    def __init__(self, token_ledger: FundsLedger, treasury: str):
        self.token_ledger = token_ledger
        self.treasury = treasury

    def charge_fee(self, payer: str, amount: int) -> None:
        try:
            self.token_ledger.debit(payer, amount)
        except InsufficientFundsError as e:
            raise InsufficientFeeError(f"Cannot pay deposit fee of {amount}: {e}") from e
        self.token_ledger.credit(self.treasury, amount)

    def refund_fee(self, payer: str, amount: int) -> None:
        self.token_ledger.debit(self.treasury, amount)
        self.token_ledger.credit(payer, amount)


class InMemoryPoolStore(PoolStore):
    """Pool state and leaves kept in process memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pools: Dict[int, Tuple[int, AccumulatorState]] = {}
        self._leaves: Dict[int, List[bytes]] = defaultdict(list)
        self._roots: Dict[int, List[Tuple[int, bytes]]] = defaultdict(list)

    def save_pool(self, pool_id: int, denomination: int, state: AccumulatorState) -> None:
        with self._lock:
            self._pools[pool_id] = (denomination, state)

    def record_deposit(self, leaf: LeafRecord, state: AccumulatorState) -> None:
        with self._lock:
            leaves = self._leaves[leaf.pool_id]
            if leaf.leaf_index != len(leaves):
                raise IndexMismatchError(expected=leaf.leaf_index, actual=len(leaves))
            denomination, _ = self._pools[leaf.pool_id]
            leaves.append(leaf.commitment)
            self._pools[leaf.pool_id] = (denomination, state)
            self._roots[leaf.pool_id].append((state.next_index, state.root))

    def load_pool(self, pool_id: int) -> Optional[Tuple[int, AccumulatorState]]:
        return self._pools.get(pool_id)

    def list_pool_ids(self) -> List[int]:
        return sorted(self._pools)

    def get_leaves(self, pool_id: int) -> List[bytes]:
        return list(self._leaves[pool_id])

    def get_leaf(self, pool_id: int, leaf_index: int) -> Optional[LeafRecord]:
        leaves = self._leaves[pool_id]
        if not 0 <= leaf_index < len(leaves):
            return None
        return LeafRecord(commitment=leaves[leaf_index], leaf_index=leaf_index, pool_id=pool_id)

    def get_root_history(self, pool_id: int, limit: int = 100) -> List[Tuple[int, bytes]]:
        return list(reversed(self._roots[pool_id]))[:limit]
