"""Tests for the withdrawal membership verifiers."""

import os

import pytest

from clawcash.core.commitment import CommitmentScheme
from clawcash.core.membership import (
    HashRevealProof,
    HashRevealVerifier,
    MembershipProof,
    SuccinctProof,
    SuccinctProofVerifier,
)
from clawcash.core.merkle_tree import IncrementalMerkleAccumulator
from clawcash.exceptions import InvalidProofError, MalformedProofError, ProofMismatchError
from clawcash.utils.hash import sha256


@pytest.fixture
def tree_with_note(note):
    """Depth-3 accumulator holding the note at index 1."""
    acc = IncrementalMerkleAccumulator(depth=3)
    acc.append(os.urandom(32))
    result = acc.preview_append(note.commitment)
    acc.apply(result)
    return acc, result.path


def reveal(note, path, leaf_index=1, **overrides):
    fields = dict(
        nullifier_hash=note.nullifier_hash,
        secret=note.secret,
        nullifier_preimage=note.nullifier_preimage,
        leaf_index=leaf_index,
        path=list(path),
    )
    fields.update(overrides)
    return HashRevealProof(**fields)


class TestHashRevealVerifier:
    """Tests for revealed-note verification."""

    def test_valid_proof(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        assert verifier.verify(reveal(note, path), acc.root, "bob") == note.nullifier_hash

    def test_nullifier_mismatch(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        with pytest.raises(ProofMismatchError):
            verifier.verify(reveal(note, path, nullifier_hash=os.urandom(32)), acc.root, "bob")

    def test_nullifier_checked_before_path(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        proof = reveal(note, path[:1], nullifier_hash=os.urandom(32))
        with pytest.raises(ProofMismatchError):
            verifier.verify(proof, acc.root, "bob")

    def test_wrong_secret(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        with pytest.raises(InvalidProofError):
            verifier.verify(reveal(note, path, secret=os.urandom(32)), acc.root, "bob")

    def test_wrong_index(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        with pytest.raises(InvalidProofError):
            verifier.verify(reveal(note, path, leaf_index=0), acc.root, "bob")

    def test_short_path(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        with pytest.raises(MalformedProofError):
            verifier.verify(reveal(note, path[:2]), acc.root, "bob")

    def test_bad_preimage_width(self, note, tree_with_note):
        acc, path = tree_with_note
        verifier = HashRevealVerifier(depth=3)
        with pytest.raises(MalformedProofError):
            verifier.verify(reveal(note, path, nullifier_preimage=b"short"), acc.root, "bob")

    def test_wrong_proof_type(self, tree_with_note):
        acc, _ = tree_with_note
        with pytest.raises(MalformedProofError):
            HashRevealVerifier(depth=3).verify(MembershipProof(os.urandom(32)), acc.root, "bob")


class TestSuccinctProofVerifier:
    """Tests for backend-delegated verification."""

    def test_public_inputs(self):
        root, nullifier = os.urandom(32), os.urandom(32)
        assert SuccinctProofVerifier.public_inputs(root, nullifier, "bob") == [root, nullifier, sha256("bob")]

    def test_backend_accepts(self):
        root, nullifier = os.urandom(32), os.urandom(32)
        calls = []

        def backend(proof, inputs):
            calls.append((proof, inputs))
            return True

        verifier = SuccinctProofVerifier(backend)
        proof = SuccinctProof(nullifier_hash=nullifier, root=root, proof=b"opaque")

        assert verifier.verify(proof, root, "bob") == nullifier
        assert calls == [(b"opaque", [root, nullifier, sha256("bob")])]

    def test_backend_rejects(self):
        root, nullifier = os.urandom(32), os.urandom(32)
        verifier = SuccinctProofVerifier(lambda proof, inputs: False)
        with pytest.raises(InvalidProofError):
            verifier.verify(SuccinctProof(nullifier, root=root, proof=b"x"), root, "bob")

    def test_recipient_bound(self):
        root, nullifier = os.urandom(32), os.urandom(32)
        bound = SuccinctProofVerifier.public_inputs(root, nullifier, "bob")
        verifier = SuccinctProofVerifier(lambda proof, inputs: inputs == bound)

        assert verifier.verify(SuccinctProof(nullifier, root=root, proof=b"x"), root, "bob") == nullifier
        with pytest.raises(InvalidProofError):
            verifier.verify(SuccinctProof(nullifier, root=root, proof=b"x"), root, "mallory")

    def test_root_mismatch(self):
        nullifier = os.urandom(32)
        verifier = SuccinctProofVerifier(lambda proof, inputs: True)
        with pytest.raises(InvalidProofError):
            verifier.verify(SuccinctProof(nullifier, root=os.urandom(32), proof=b"x"), os.urandom(32), "bob")

    def test_missing_fields(self):
        root = os.urandom(32)
        verifier = SuccinctProofVerifier(lambda proof, inputs: True)
        with pytest.raises(MalformedProofError):
            verifier.verify(SuccinctProof(os.urandom(32), root=root, proof=b""), root, "bob")
        with pytest.raises(MalformedProofError):
            verifier.verify(SuccinctProof(b"short", root=root, proof=b"x"), root, "bob")

    def test_wrong_proof_type(self, note):
        verifier = SuccinctProofVerifier(lambda proof, inputs: True)
        with pytest.raises(MalformedProofError):
            verifier.verify(HashRevealProof(note.nullifier_hash), os.urandom(32), "bob")

    def test_plugs_into_pool(self, note):
        from clawcash.core.pool import Pool

        pool = Pool(pool_id=0, depth=3, verifier=SuccinctProofVerifier(lambda proof, inputs: True))
        pool.initialize(100)
        pool.deposit(note.commitment)

        proof = SuccinctProof(note.nullifier_hash, root=pool.root, proof=b"x")
        authorization = pool.withdraw_with_proof(proof, "bob")
        assert authorization.nullifier_hash == note.nullifier_hash
        assert pool.nullifier_ledger.is_spent(note.nullifier_hash)
