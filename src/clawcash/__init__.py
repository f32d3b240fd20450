"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "Claw Cash Team"
__description__ = "Claw Cash: fixed-denomination shielded payment pools"

from .core.commitment import CommitmentScheme, Note
from .core.merkle_tree import IncrementalMerkleAccumulator, AccumulatorState
from .core.proof import MerkleProofVerifier, build_merkle_path
from .core.nullifier import NullifierLedger, InMemoryNullifierLedger
from .core.pool import Pool, DepositReceipt, WithdrawalAuthorization
from .core.mixer import ClawCashMixer, ProtocolConfig

__all__ = [
    "CommitmentScheme",
    "Note",
    "IncrementalMerkleAccumulator",
    "AccumulatorState",
    "MerkleProofVerifier",
    "build_merkle_path",
    "NullifierLedger",
    "InMemoryNullifierLedger",
    "Pool",
    "DepositReceipt",
    "WithdrawalAuthorization",
    "ClawCashMixer",
    "ProtocolConfig",
]
