"""Custom exceptions for the Claw Cash pool system."""


class ClawCashException(Exception):
    """Base exception for all Claw Cash errors."""
    pass


# Cryptography Errors
class CryptoError(ClawCashException):
    """Base exception for cryptographic input errors."""
    pass


class InvalidCommitmentError(CryptoError):
    """Raised when a commitment or its inputs are malformed."""
    pass


class InvalidNullifierError(CryptoError):
    """Raised when a nullifier or its preimage is malformed."""
    pass


# Merkle Tree Errors
class MerkleTreeError(ClawCashException):
    """Base exception for accumulator errors."""
    pass


class TreeFullError(MerkleTreeError):
    """Raised when the accumulator already holds 2^depth leaves."""
    pass


class IndexMismatchError(MerkleTreeError):
    """Raised when a caller's target leaf index is not the next free index."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Leaf index mismatch: caller declared {expected}, next free index is {actual}"
        )


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when a leaf index does not name an inserted leaf."""
    pass


# Proof Errors
class ProofError(ClawCashException):
    """Base exception for withdrawal proof errors."""
    pass


class MalformedProofError(ProofError):
    """Raised when a proof has the wrong shape (path length, hash width)."""
    pass


class InvalidProofError(ProofError):
    """Raised when a proof does not reconcile to the current root."""
    pass


class ProofMismatchError(ProofError):
    """Raised when the claimed nullifier hash does not match the preimage."""
    pass


class AlreadySpentError(ProofError):
    """Raised when a nullifier hash has already authorized a withdrawal."""

    def __init__(self, nullifier_hash: bytes):
        self.nullifier_hash = nullifier_hash
        super().__init__(f"Nullifier {nullifier_hash.hex()[:16]}... has already been spent")


# Pool Errors
class PoolError(ClawCashException):
    """Base exception for pool lifecycle and collaborator errors."""
    pass


class InvalidPoolError(PoolError):
    """Raised when a pool id does not name a configured denomination."""
    pass


class PoolNotInitializedError(PoolError):
    """Raised when operating on a pool that has not been initialized."""
    pass


class PoolAlreadyInitializedError(PoolError):
    """Raised when initializing a pool twice."""
    pass


class UnauthorizedError(PoolError):
    """Raised when a caller other than the protocol authority changes configuration."""
    pass


class InsufficientFeeError(PoolError):
    """Raised when the depositor cannot pay the deposit fee."""
    pass


class InsufficientFundsError(PoolError):
    """Raised when an account cannot cover a debit."""
    pass


class InsufficientVaultBalanceError(PoolError):
    """Raised when a pool vault holds less than one denomination."""
    pass


# Storage Errors
class StorageError(ClawCashException):
    """Base exception for storage errors."""
    pass


class PersistenceError(StorageError):
    """Raised when a record cannot be durably stored."""
    pass


class DeserializationError(StorageError):
    """Raised when stored or transported data cannot be decoded."""
    pass
