"""Commitment and nullifier derivation for pool notes."""

import os
from dataclasses import dataclass
from typing import Optional

from clawcash.utils.hash import compute_commitment, compute_nullifier
from clawcash.exceptions import (
    DeserializationError,
    InvalidCommitmentError,
    InvalidNullifierError,
)


@dataclass
class Note:
    """
    Secret material held by a depositor, never by the pool.

    The pool only ever sees `commitment` (at deposit) and
    `nullifier_hash` (at withdrawal).
    """

    secret: bytes
    nullifier_preimage: bytes
    commitment: bytes
    nullifier_hash: bytes
    pool_id: int
    leaf_index: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to the cash-note payload exchanged between wallets."""
        return {
            "type": "cash_note",
            "pool_id": self.pool_id,
            "secret": self.secret.hex(),
            "nullifier_preimage": self.nullifier_preimage.hex(),
            "commitment": self.commitment.hex(),
            "leaf_index": self.leaf_index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        """
        Rebuild a note from a cash-note payload.

        The commitment is re-derived and checked against the payload so a
        corrupted note is caught before any withdrawal is attempted.

        Raises:
            DeserializationError: If the payload is malformed or inconsistent
        """
        try:
            if data.get("type", "cash_note") != "cash_note":
                raise ValueError(f"Unexpected note type: {data['type']}")
            secret = bytes.fromhex(data["secret"])
            preimage = bytes.fromhex(data["nullifier_preimage"])
            commitment = CommitmentScheme.compute_commitment(secret, preimage)
            if "commitment" in data and bytes.fromhex(data["commitment"]) != commitment:
                raise ValueError("Commitment does not match secret and preimage")
            return cls(
                secret=secret,
                nullifier_preimage=preimage,
                commitment=commitment,
                nullifier_hash=CommitmentScheme.compute_nullifier(preimage),
                pool_id=int(data["pool_id"]),
                leaf_index=data.get("leaf_index"),
            )
        except (KeyError, TypeError, ValueError, InvalidCommitmentError) as e:
            raise DeserializationError(f"Invalid cash note: {e}") from e


class CommitmentScheme:
    """
    Hash-based commitment scheme.

    commitment = H(secret || nullifier_preimage)
    nullifier  = H(nullifier_preimage)
    """

    SECRET_SIZE = 32  # bytes
    PREIMAGE_SIZE = 32  # bytes

    @staticmethod
    def generate_secret() -> bytes:
        """Generate a random 32-byte secret."""
        return os.urandom(CommitmentScheme.SECRET_SIZE)

    @staticmethod
    def generate_nullifier_preimage() -> bytes:
        """Generate a random 32-byte nullifier preimage."""
        return os.urandom(CommitmentScheme.PREIMAGE_SIZE)

    @staticmethod
    def compute_commitment(secret: bytes, nullifier_preimage: bytes) -> bytes:
        """
        Compute commitment C = H(secret || nullifier_preimage).

        Args:
            secret: Depositor's secret (must be 32 bytes)
            nullifier_preimage: Nullifier preimage (must be 32 bytes)

        Returns:
            bytes: SHA-256 commitment (32 bytes)

        Raises:
            InvalidCommitmentError: If inputs are invalid
        """
        if not isinstance(secret, bytes) or len(secret) != CommitmentScheme.SECRET_SIZE:
            raise InvalidCommitmentError("Secret must be 32 bytes")
        if (
            not isinstance(nullifier_preimage, bytes)
            or len(nullifier_preimage) != CommitmentScheme.PREIMAGE_SIZE
        ):
            raise InvalidCommitmentError("Nullifier preimage must be 32 bytes")

        return compute_commitment(secret, nullifier_preimage)

    @staticmethod
    def compute_nullifier(nullifier_preimage: bytes) -> bytes:
        """
        Compute nullifier hash nf = H(nullifier_preimage).

        The same note always yields the same nullifier hash, which is what
        lets the ledger reject a second withdrawal.

        Raises:
            InvalidNullifierError: If input is invalid
        """
        if (
            not isinstance(nullifier_preimage, bytes)
            or len(nullifier_preimage) != CommitmentScheme.PREIMAGE_SIZE
        ):
            raise InvalidNullifierError("Nullifier preimage must be 32 bytes")

        return compute_nullifier(nullifier_preimage)

    @staticmethod
    def create_note(pool_id: int) -> Note:
        """
        Create a fresh note for a deposit into `pool_id`.

        Returns:
            Note: Secret material plus derived commitment and nullifier hash
        """
        secret = CommitmentScheme.generate_secret()
        preimage = CommitmentScheme.generate_nullifier_preimage()

        return Note(
            secret=secret,
            nullifier_preimage=preimage,
            commitment=CommitmentScheme.compute_commitment(secret, preimage),
            nullifier_hash=CommitmentScheme.compute_nullifier(preimage),
            pool_id=pool_id,
        )

    @staticmethod
    def verify_commitment(
        secret: bytes,
        nullifier_preimage: bytes,
        expected_commitment: bytes
    ) -> bool:
        """Check that a commitment opens to the given secret and preimage."""
        try:
            computed = CommitmentScheme.compute_commitment(secret, nullifier_preimage)
            return computed == expected_commitment
        except InvalidCommitmentError:
            return False

    @staticmethod
    def verify_nullifier(nullifier_preimage: bytes, expected_nullifier: bytes) -> bool:
        """Check that a nullifier hash matches the given preimage."""
        try:
            computed = CommitmentScheme.compute_nullifier(nullifier_preimage)
            return computed == expected_nullifier
        except InvalidNullifierError:
            return False
