"""Pydantic data models for the Claw Cash HTTP API."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from clawcash.utils.encoding import hex_to_hash


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    version: str = "1.0.0"


class PoolResponse(BaseModel):
    """Public view of a pool."""
    pool_id: int
    denomination: int = Field(..., description="Amount moved by every deposit and withdrawal")
    status: str
    next_index: int = Field(..., description="Number of inserted commitments")
    capacity: int = Field(..., description="Maximum number of commitments (2^depth)")
    merkle_root: str = Field(..., description="Current Merkle root (hex)")


class PoolListResponse(BaseModel):
    pools: List[PoolResponse]


class InitializePoolRequest(BaseModel):
    """Request model for pool initialization."""
    authority: str = Field(..., min_length=1, description="Protocol authority")


class DepositRequest(BaseModel):
    """Request model for deposit operations."""
    commitment: str = Field(..., description="H(secret || nullifier_preimage) (hex)")
    leaf_index: Optional[int] = Field(default=None, ge=0, description="Expected leaf index")
    depositor: Optional[str] = Field(default=None, description="Paying account")

    @field_validator("commitment")
    @classmethod
    def validate_commitment(cls, v: str) -> str:
        hex_to_hash(v)
        return v


class DepositResponse(BaseModel):
    """Response model for deposit operations."""
    pool_id: int
    leaf_index: int = Field(..., description="Index in Merkle tree")
    commitment: str = Field(..., description="Commitment hash (hex)")
    merkle_root: str = Field(..., description="Merkle root after insertion (hex)")
    path: List[str] = Field(..., description="Sibling path of the new leaf (hex list)")
    timestamp: datetime


class WithdrawalRequest(BaseModel):
    """Request model for withdrawal operations."""
    secret: str = Field(..., description="Note secret (hex)")
    nullifier_preimage: str = Field(..., description="Nullifier preimage (hex)")
    nullifier_hash: str = Field(..., description="H(nullifier_preimage) (hex)")
    leaf_index: int = Field(..., ge=0, description="Leaf index in tree")
    merkle_path: List[str] = Field(..., description="Merkle path (hex list)")
    recipient: str = Field(..., min_length=1, description="Account receiving the denomination")

    @field_validator("secret", "nullifier_preimage", "nullifier_hash")
    @classmethod
    def validate_hashes(cls, v: str) -> str:
        hex_to_hash(v)
        return v

    @field_validator("merkle_path")
    @classmethod
    def validate_path(cls, v: List[str]) -> List[str]:
        for node in v:
            hex_to_hash(node)
        return v


class WithdrawalResponse(BaseModel):
    """Response model for withdrawal operations."""
    pool_id: int
    recipient: str
    amount: int = Field(..., description="Released amount")
    nullifier_hash: str = Field(..., description="Spent nullifier (hex)")
    merkle_root: str = Field(..., description="Root the proof was checked against (hex)")
    timestamp: datetime


class MerklePathResponse(BaseModel):
    pool_id: int
    leaf_index: int
    merkle_root: str
    path: List[str]


class LeafResponse(BaseModel):
    """One inserted commitment."""
    pool_id: int
    leaf_index: int
    commitment: str = Field(..., description="Commitment hash (hex)")
    record: str = Field(..., description="37-byte leaf record (hex)")


class RootSnapshot(BaseModel):
    num_leaves: int
    merkle_root: str


class RootHistoryResponse(BaseModel):
    """Roots after recent deposits, newest first."""
    pool_id: int
    roots: List[RootSnapshot]


class NullifierResponse(BaseModel):
    """Spent status of a nullifier."""
    nullifier_hash: str
    spent: bool
    pool_id: Optional[int] = Field(default=None, description="Pool the nullifier was spent in")
    record: Optional[str] = Field(default=None, description="33-byte nullifier record (hex)")


class UpdateFeeRequest(BaseModel):
    """Request model for fee updates."""
    authority: str = Field(..., min_length=1)
    fee_amount: int = Field(..., ge=0, description="New deposit fee")


class ProtocolConfigResponse(BaseModel):
    authority: str
    fee_amount: int
    treasury: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
