"""Merkle membership proofs: verification and path reconstruction."""

from typing import Dict, List, Sequence

from clawcash.core.zero_hashes import get_zero_ladder
from clawcash.utils.hash import hash_pair, is_hash
from clawcash.exceptions import InvalidLeafIndexError, MalformedProofError


def compute_root(leaf: bytes, leaf_index: int, path: Sequence[bytes]) -> bytes:
    """
    Fold a sibling path into a root.

    At level i the candidate is the left input when bit i of the index is 0
    and the right input otherwise.
    """
    current = leaf
    position = leaf_index

    for sibling in path:
        if position % 2 == 0:
            current = hash_pair(current, sibling)
        else:
            current = hash_pair(sibling, current)
        position >>= 1

    return current


class MerkleProofVerifier:
    """Checks that a leaf sits at a given index under a given root."""

    def __init__(self, depth: int):
        self.depth = depth
        self.capacity = 2 ** depth

    def verify(
        self,
        leaf: bytes,
        leaf_index: int,
        path: Sequence[bytes],
        expected_root: bytes,
    ) -> bool:
        """
        Verify a membership proof.

        Args:
            leaf: Leaf value (32 bytes)
            leaf_index: Claimed position of the leaf
            path: Exactly `depth` sibling hashes, leaf level first
            expected_root: Root the proof must reconcile to

        Returns:
            bool: True iff the recomputed root equals expected_root

        Raises:
            MalformedProofError: If the path length or any hash width is wrong
        """
        if len(path) != self.depth:
            raise MalformedProofError(
                f"Path must have exactly {self.depth} hashes, got {len(path)}"
            )
        if not is_hash(leaf) or not all(is_hash(node) for node in path):
            raise MalformedProofError("Leaf and path entries must be 32-byte hashes")

        # Bits above the tree depth would be ignored by the fold
        if leaf_index < 0 or leaf_index >= self.capacity:
            return False

        return compute_root(leaf, leaf_index, path) == expected_root


def build_merkle_path(leaves: Sequence[bytes], leaf_index: int, depth: int) -> List[bytes]:
    """
    Rebuild the sibling path for `leaf_index` from the full leaf history.

    Only non-empty nodes are materialized; missing siblings fall back to the
    zero-hash ladder, so the cost is proportional to the number of leaves.

    Args:
        leaves: All inserted commitments, in insertion order
        leaf_index: Position of the leaf to prove
        depth: Tree depth

    Returns:
        List[bytes]: Sibling hashes from leaf level to just below the root

    Raises:
        InvalidLeafIndexError: If leaf_index is not an inserted position
    """
    if leaf_index < 0 or leaf_index >= len(leaves):
        raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

    ladder = get_zero_ladder(depth)
    layer: Dict[int, bytes] = dict(enumerate(leaves))
    path: List[bytes] = []
    position = leaf_index

    for level in range(depth):
        empty = ladder.empty_subtree(level)
        path.append(layer.get(position ^ 1, empty))

        parents: Dict[int, bytes] = {}
        for index in sorted(layer):
            parent = index >> 1
            if parent in parents:
                continue
            left = layer.get(parent * 2, empty)
            right = layer.get(parent * 2 + 1, empty)
            parents[parent] = hash_pair(left, right)

        layer = parents
        position >>= 1

    return path


def compute_root_from_leaves(leaves: Sequence[bytes], depth: int) -> bytes:
    """Compute the root of a tree holding `leaves` without an accumulator."""
    ladder = get_zero_ladder(depth)
    if not leaves:
        return ladder.empty_root
    return compute_root(leaves[0], 0, build_merkle_path(leaves, 0, depth))
