"""Append-only incremental Merkle accumulator for pool commitments."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from clawcash.core.zero_hashes import MAX_TREE_DEPTH, ZeroHashLadder, get_zero_ladder
from clawcash.utils.hash import hash_pair, is_hash
from clawcash.exceptions import (
    DeserializationError,
    IndexMismatchError,
    InvalidCommitmentError,
    TreeFullError,
)


@dataclass(frozen=True)
class AccumulatorState:
    """Snapshot of the accumulator: frontier, next free index and root."""

    depth: int
    frontier: Tuple[bytes, ...]
    next_index: int
    root: bytes

    def to_dict(self) -> dict:
        return {
            "depth": self.depth,
            "frontier": [node.hex() for node in self.frontier],
            "next_index": self.next_index,
            "root": self.root.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccumulatorState":
        try:
            return cls(
                depth=int(data["depth"]),
                frontier=tuple(bytes.fromhex(node) for node in data["frontier"]),
                next_index=int(data["next_index"]),
                root=bytes.fromhex(data["root"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DeserializationError(f"Invalid accumulator state: {e}") from e


@dataclass(frozen=True)
class AppendResult:
    """Outcome of one append: assigned index, sibling path and the next state."""

    leaf_index: int
    path: List[bytes]
    state: AccumulatorState

    @property
    def root(self) -> bytes:
        return self.state.root


class IncrementalMerkleAccumulator:
    """
    Merkle accumulator that stores only its frontier.

    Leaves [0, next_index) hold inserted commitments in insertion order and
    every other leaf is ZERO. `frontier[level]` holds the most recent left
    node at that level, which is all an append needs to finish its path.
    Appends cost O(depth) time regardless of how many leaves exist.
    """

    DEFAULT_DEPTH = 20

    def __init__(self, depth: int = DEFAULT_DEPTH):
        """
        Initialize an empty accumulator.

        Args:
            depth: Tree depth D, 1..32 (capacity 2^D leaves)

        Raises:
            ValueError: If depth is invalid
        """
        if depth < 1 or depth > MAX_TREE_DEPTH:
            raise ValueError(f"Tree depth must be between 1 and {MAX_TREE_DEPTH}")

        self.depth = depth
        self.capacity = 2 ** depth
        self._ladder: ZeroHashLadder = get_zero_ladder(depth)

        self.frontier: List[bytes] = [self._ladder.empty_subtree(level) for level in range(depth)]
        self.next_index = 0
        self._root = self._ladder.empty_root

    @classmethod
    def from_state(cls, state: AccumulatorState) -> "IncrementalMerkleAccumulator":
        """Rebuild an accumulator from a persisted snapshot."""
        accumulator = cls(depth=state.depth)
        accumulator.load_state(state)
        return accumulator

    def preview_append(self, leaf: bytes, expected_index: Optional[int] = None) -> AppendResult:
        """
        Compute the effect of appending `leaf` without changing this accumulator.

        Args:
            leaf: Commitment to insert (32 bytes)
            expected_index: Index the caller believes is next, if it declares one

        Returns:
            AppendResult: Assigned index, sibling path and resulting state

        Raises:
            InvalidCommitmentError: If leaf is not 32 bytes
            TreeFullError: If the tree already holds 2^depth leaves
            IndexMismatchError: If expected_index is stale
        """
        if not is_hash(leaf):
            raise InvalidCommitmentError("Commitment must be 32 bytes")

        if self.next_index >= self.capacity:
            raise TreeFullError(f"Tree is full (max {self.capacity} commitments)")

        if expected_index is not None and expected_index != self.next_index:
            raise IndexMismatchError(expected=expected_index, actual=self.next_index)

        leaf_index = self.next_index
        frontier = list(self.frontier)
        path: List[bytes] = []

        current = leaf
        position = leaf_index

        for level in range(self.depth):
            if position % 2 == 0:
                # Left child: the right sibling is still empty
                frontier[level] = current
                sibling = self._ladder.empty_subtree(level)
                path.append(sibling)
                current = hash_pair(current, sibling)
            else:
                sibling = frontier[level]
                path.append(sibling)
                current = hash_pair(sibling, current)

            position >>= 1

        state = AccumulatorState(
            depth=self.depth,
            frontier=tuple(frontier),
            next_index=leaf_index + 1,
            root=current,
        )
        return AppendResult(leaf_index=leaf_index, path=path, state=state)

    def append(self, leaf: bytes, expected_index: Optional[int] = None) -> int:
        """
        Append a commitment and return its leaf index.

        Raises:
            TreeFullError: If the tree is at capacity
            IndexMismatchError: If expected_index is not the next free index
        """
        result = self.preview_append(leaf, expected_index)
        self.load_state(result.state)
        return result.leaf_index

    def apply(self, result: AppendResult) -> None:
        """
        Commit a previewed append.

        Raises:
            IndexMismatchError: If another append landed since the preview
        """
        if result.leaf_index != self.next_index:
            raise IndexMismatchError(expected=result.leaf_index, actual=self.next_index)
        self.load_state(result.state)

    def snapshot(self) -> AccumulatorState:
        """Return the current state as an immutable snapshot."""
        return AccumulatorState(
            depth=self.depth,
            frontier=tuple(self.frontier),
            next_index=self.next_index,
            root=self._root,
        )

    def load_state(self, state: AccumulatorState) -> None:
        """Replace the current state with `state`."""
        if state.depth != self.depth:
            raise ValueError(f"State depth {state.depth} does not match tree depth {self.depth}")
        if len(state.frontier) != self.depth or not all(is_hash(n) for n in state.frontier):
            raise ValueError(f"Frontier must hold {self.depth} hashes of 32 bytes")
        if state.next_index < 0 or state.next_index > self.capacity:
            raise ValueError(f"Invalid next index: {state.next_index}")
        if not is_hash(state.root):
            raise ValueError("Root must be 32 bytes")

        self.frontier = list(state.frontier)
        self.next_index = state.next_index
        self._root = state.root

    @property
    def root(self) -> bytes:
        """Get the current Merkle root hash."""
        return self._root

    @property
    def is_full(self) -> bool:
        return self.next_index >= self.capacity

    def get_state(self) -> dict:
        """
        Get the current state of the accumulator for serialization.

        Returns:
            dict: Depth, capacity, leaf count, frontier and root
        """
        state = self.snapshot().to_dict()
        state["capacity"] = self.capacity
        return state

    def __len__(self) -> int:
        """Return the number of leaves appended so far."""
        return self.next_index

    def __repr__(self) -> str:
        return (
            f"IncrementalMerkleAccumulator(depth={self.depth}, "
            f"leaves={self.next_index}/{self.capacity}, "
            f"root={self.root.hex()[:16]}...)"
        )
