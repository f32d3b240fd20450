"""Membership verification capability for withdrawals.

A pool never checks withdrawal proofs itself; it hands them to a
`MembershipVerifier` and gets back the nullifier hash to spend. Two
verifiers exist:

    HashRevealVerifier     the withdrawer reveals secret, preimage, leaf
                           index and sibling path; the verifier re-derives
                           the commitment and folds the path.
    SuccinctProofVerifier  the withdrawer submits an opaque proof over the
                           public inputs (root, nullifier hash, recipient);
                           checking it is delegated to a proof backend.

Swapping one for the other leaves the accumulator and the nullifier ledger
untouched.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from clawcash.core.commitment import CommitmentScheme
from clawcash.core.proof import MerkleProofVerifier
from clawcash.utils.hash import is_hash, sha256
from clawcash.exceptions import (
    InvalidCommitmentError,
    InvalidNullifierError,
    InvalidProofError,
    MalformedProofError,
    ProofMismatchError,
)


@dataclass
class MembershipProof:
    """Anything that claims a nullifier hash for a withdrawal."""

    nullifier_hash: bytes


@dataclass
class HashRevealProof(MembershipProof):
    """Proof by revealing the note opening and its Merkle path."""

    secret: bytes = b""
    nullifier_preimage: bytes = b""
    leaf_index: int = 0
    path: List[bytes] = field(default_factory=list)


@dataclass
class SuccinctProof(MembershipProof):
    """Opaque proof bound to a root, a nullifier hash and a recipient."""

    root: bytes = b""
    proof: bytes = b""


ProofBackend = Callable[[bytes, Sequence[bytes]], bool]


class MembershipVerifier(ABC):
    """Decides whether a proof spends some leaf under the given root."""

    @abstractmethod
    def verify(self, proof: MembershipProof, root: bytes, recipient: str) -> bytes:
        """
        Check a withdrawal proof against the pool's current root.

        Returns:
            bytes: The nullifier hash the withdrawal spends

        Raises:
            MalformedProofError: If the proof has the wrong shape
            ProofMismatchError: If the claimed nullifier does not match the proof
            InvalidProofError: If the proof does not reconcile to `root`
        """


class HashRevealVerifier(MembershipVerifier):
    """Verifies revealed note openings with a Merkle path."""

    def __init__(self, depth: int):
        self.merkle = MerkleProofVerifier(depth)

    def verify(self, proof: MembershipProof, root: bytes, recipient: str) -> bytes:
        if not isinstance(proof, HashRevealProof):
            raise MalformedProofError(f"Expected a hash-reveal proof, got {type(proof).__name__}")

        # Cheap check first: the claimed nullifier must match the preimage
        try:
            nullifier_hash = CommitmentScheme.compute_nullifier(proof.nullifier_preimage)
        except InvalidNullifierError as e:
            raise MalformedProofError(str(e)) from e
        if nullifier_hash != proof.nullifier_hash:
            raise ProofMismatchError("Nullifier hash does not match nullifier preimage")

        try:
            commitment = CommitmentScheme.compute_commitment(proof.secret, proof.nullifier_preimage)
        except InvalidCommitmentError as e:
            raise MalformedProofError(str(e)) from e

        if not self.merkle.verify(commitment, proof.leaf_index, proof.path, root):
            raise InvalidProofError("Merkle path does not reconcile to the current root")

        return nullifier_hash


class SuccinctProofVerifier(MembershipVerifier):
    """
    Verifies opaque proofs through a pluggable backend.

    The backend receives the proof bytes and the public inputs
    [root, nullifier_hash, H(recipient)] and returns whether the proof holds.
    The leaf index never reaches the verifier.
    """

    def __init__(self, backend: ProofBackend):
        self.backend = backend

    @staticmethod
    def public_inputs(root: bytes, nullifier_hash: bytes, recipient: str) -> List[bytes]:
        return [root, nullifier_hash, sha256(recipient)]

    def verify(self, proof: MembershipProof, root: bytes, recipient: str) -> bytes:
        if not isinstance(proof, SuccinctProof):
            raise MalformedProofError(f"Expected a succinct proof, got {type(proof).__name__}")
        if not is_hash(proof.nullifier_hash) or not is_hash(proof.root) or not proof.proof:
            raise MalformedProofError("Succinct proof is missing root, nullifier or proof bytes")

        if proof.root != root:
            raise InvalidProofError("Proof was generated against a different root")

        inputs = self.public_inputs(root, proof.nullifier_hash, recipient)
        if not self.backend(proof.proof, inputs):
            raise InvalidProofError("Succinct proof rejected by verifier backend")

        return proof.nullifier_hash
