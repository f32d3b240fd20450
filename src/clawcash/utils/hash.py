"""Cryptographic hash utilities."""

import hashlib
from typing import Union

HASH_SIZE = 32  # SHA-256 output size
ZERO_VALUE = b"\x00" * HASH_SIZE  # Value of every empty leaf


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte SHA-256 hash
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def hash_pair(left: bytes, right: bytes) -> bytes:
    """
    Compute the parent of two sibling nodes: H(left || right).

    Order is positional, never sorted by value, so proofs built
    elsewhere must use the same left/right convention.

    Args:
        left: Left child hash (32 bytes)
        right: Right child hash (32 bytes)

    Returns:
        bytes: Parent hash (32 bytes)
    """
    if not isinstance(left, bytes) or len(left) != HASH_SIZE:
        raise ValueError("Left hash must be 32 bytes")
    if not isinstance(right, bytes) or len(right) != HASH_SIZE:
        raise ValueError("Right hash must be 32 bytes")

    return sha256(left + right)


def compute_commitment(secret: bytes, nullifier_preimage: bytes) -> bytes:
    """
    Compute note commitment C = H(secret || nullifier_preimage).

    Args:
        secret: Depositor's secret (32 bytes)
        nullifier_preimage: Nullifier preimage (32 bytes)

    Returns:
        bytes: Commitment (32 bytes)
    """
    return sha256(secret + nullifier_preimage)


def compute_nullifier(nullifier_preimage: bytes) -> bytes:
    """
    Compute nullifier hash nf = H(nullifier_preimage).

    Args:
        nullifier_preimage: Nullifier preimage (32 bytes)

    Returns:
        bytes: Nullifier hash (32 bytes)
    """
    return sha256(nullifier_preimage)


def is_hash(value: object) -> bool:
    """Return True if value is a 32-byte hash."""
    return isinstance(value, bytes) and len(value) == HASH_SIZE
