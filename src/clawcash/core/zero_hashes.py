"""Zero-hash ladder: hashes of empty subtrees for a fixed tree depth."""

from functools import lru_cache
from typing import Iterator, List, Tuple

from clawcash.utils.hash import ZERO_VALUE, hash_pair

MAX_TREE_DEPTH = 32  # Leaf indices are u32


def build_zero_hashes(depth: int) -> List[bytes]:
    """
    Build the zero-hash ladder for an empty tree.

    zh[0] = H(ZERO, ZERO) and zh[i] = H(zh[i-1], zh[i-1]), so zh[i] is the
    root of an empty subtree of height i + 1.

    Args:
        depth: Tree depth D

    Returns:
        List[bytes]: D hashes, lowest level first

    Raises:
        ValueError: If depth is outside 1..32
    """
    if depth < 1 or depth > MAX_TREE_DEPTH:
        raise ValueError(f"Tree depth must be between 1 and {MAX_TREE_DEPTH}")

    ladder = [hash_pair(ZERO_VALUE, ZERO_VALUE)]
    for _ in range(1, depth):
        ladder.append(hash_pair(ladder[-1], ladder[-1]))
    return ladder


class ZeroHashLadder:
    """Read-only view of the zero hashes for one depth."""

    def __init__(self, depth: int):
        self.depth = depth
        self._hashes: Tuple[bytes, ...] = tuple(build_zero_hashes(depth))

    def empty_subtree(self, level: int) -> bytes:
        """
        Hash of an empty node sitting at `level` (0 = leaf level).

        This is the default right sibling used while appending.
        """
        if level < 0 or level >= self.depth:
            raise IndexError(f"Level {level} outside tree of depth {self.depth}")
        return ZERO_VALUE if level == 0 else self._hashes[level - 1]

    @property
    def empty_root(self) -> bytes:
        """Root of a tree with no inserted leaves."""
        return self._hashes[-1]

    def __getitem__(self, index: int) -> bytes:
        return self._hashes[index]

    def __len__(self) -> int:
        return self.depth

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._hashes)

    def __repr__(self) -> str:
        return f"ZeroHashLadder(depth={self.depth}, root={self.empty_root.hex()[:16]}...)"


@lru_cache(maxsize=None)
def get_zero_ladder(depth: int) -> ZeroHashLadder:
    """Return the process-wide ladder for `depth`, building it on first use."""
    return ZeroHashLadder(depth)
