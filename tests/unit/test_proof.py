"""Tests for Merkle proof verification and path reconstruction."""

import os

import pytest

from clawcash.core.merkle_tree import IncrementalMerkleAccumulator
from clawcash.core.proof import (
    MerkleProofVerifier,
    build_merkle_path,
    compute_root,
    compute_root_from_leaves,
)
from clawcash.exceptions import InvalidLeafIndexError, MalformedProofError


@pytest.fixture
def filled():
    """Depth-3 accumulator with 5 random leaves, plus the leaves."""
    acc = IncrementalMerkleAccumulator(depth=3)
    leaves = [os.urandom(32) for _ in range(5)]
    for value in leaves:
        acc.append(value)
    return acc, leaves


@pytest.fixture
def verifier():
    return MerkleProofVerifier(depth=3)


class TestBuildMerklePath:
    """Tests for rebuilding paths from leaf history."""

    def test_every_leaf_verifies(self, filled, verifier):
        acc, leaves = filled
        for index, value in enumerate(leaves):
            path = build_merkle_path(leaves, index, 3)
            assert len(path) == 3
            assert verifier.verify(value, index, path, acc.root)

    def test_matches_insertion_path_for_last_leaf(self):
        acc = IncrementalMerkleAccumulator(depth=3)
        leaves = [os.urandom(32) for _ in range(3)]
        for value in leaves[:-1]:
            acc.append(value)
        result = acc.preview_append(leaves[-1])
        assert build_merkle_path(leaves, 2, 3) == result.path

    def test_invalid_index(self, filled):
        _, leaves = filled
        with pytest.raises(InvalidLeafIndexError):
            build_merkle_path(leaves, 5, 3)
        with pytest.raises(InvalidLeafIndexError):
            build_merkle_path(leaves, -1, 3)
        with pytest.raises(InvalidLeafIndexError):
            build_merkle_path([], 0, 3)

    def test_compute_root_from_leaves(self, filled):
        acc, leaves = filled
        assert compute_root_from_leaves(leaves, 3) == acc.root


class TestMerkleProofVerifier:
    """Tests for membership verification."""

    def test_wrong_leaf_rejected(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 0, 3)
        assert not verifier.verify(os.urandom(32), 0, path, acc.root)

    def test_wrong_index_rejected(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 0, 3)
        assert not verifier.verify(leaves[0], 1, path, acc.root)

    def test_index_outside_tree_rejected(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 0, 3)
        # Same low bits as index 0, but beyond the tree
        assert compute_root(leaves[0], 8, path) == acc.root
        assert not verifier.verify(leaves[0], 8, path, acc.root)
        assert not verifier.verify(leaves[0], -1, path, acc.root)

    def test_tampered_sibling_rejected(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 2, 3)
        for level in range(3):
            tampered = list(path)
            tampered[level] = bytes([tampered[level][0] ^ 1]) + tampered[level][1:]
            assert not verifier.verify(leaves[2], 2, tampered, acc.root)

    def test_stale_root_rejected(self, filled, verifier):
        acc, leaves = filled
        old_root = acc.root
        path = build_merkle_path(leaves, 0, 3)
        acc.append(os.urandom(32))
        assert verifier.verify(leaves[0], 0, path, old_root)
        assert not verifier.verify(leaves[0], 0, path, acc.root)

    def test_wrong_path_length(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 0, 3)
        with pytest.raises(MalformedProofError):
            verifier.verify(leaves[0], 0, path[:2], acc.root)
        with pytest.raises(MalformedProofError):
            verifier.verify(leaves[0], 0, path + [path[0]], acc.root)

    def test_wrong_hash_width(self, filled, verifier):
        acc, leaves = filled
        path = build_merkle_path(leaves, 0, 3)
        path[1] = b"\x00" * 31
        with pytest.raises(MalformedProofError):
            verifier.verify(leaves[0], 0, path, acc.root)
