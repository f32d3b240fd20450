"""REST API endpoints for the Claw Cash pools."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clawcash import __version__
from clawcash.config import configure_logging, get_settings
from clawcash.core.mixer import ClawCashMixer
from clawcash.storage import SqlNullifierLedger, SqlPoolStore, get_db_manager
from clawcash.utils.encoding import bytes_to_hex, hex_to_hash
from clawcash.models.schemas import (
    DepositRequest,
    DepositResponse,
    ErrorResponse,
    HealthResponse,
    InitializePoolRequest,
    LeafResponse,
    MerklePathResponse,
    NullifierResponse,
    PoolListResponse,
    PoolResponse,
    ProtocolConfigResponse,
    RootHistoryResponse,
    RootSnapshot,
    UpdateFeeRequest,
    WithdrawalRequest,
    WithdrawalResponse,
)
from clawcash.exceptions import (
    AlreadySpentError,
    ClawCashException,
    CryptoError,
    DeserializationError,
    IndexMismatchError,
    InsufficientFeeError,
    InsufficientFundsError,
    InsufficientVaultBalanceError,
    InvalidLeafIndexError,
    InvalidPoolError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
    ProofError,
    TreeFullError,
    UnauthorizedError,
)

# Configure logging
logger = logging.getLogger(__name__)

# First match wins: subclasses before their bases
ERROR_STATUS = [
    (TreeFullError, 409, "TREE_FULL"),
    (IndexMismatchError, 409, "INDEX_MISMATCH"),
    (AlreadySpentError, 409, "ALREADY_SPENT"),
    (PoolAlreadyInitializedError, 409, "POOL_ALREADY_INITIALIZED"),
    (ProofError, 400, "INVALID_PROOF"),
    (CryptoError, 400, "INVALID_INPUT"),
    (DeserializationError, 400, "INVALID_INPUT"),
    (InvalidPoolError, 404, "INVALID_POOL"),
    (PoolNotInitializedError, 404, "POOL_NOT_INITIALIZED"),
    (InvalidLeafIndexError, 404, "LEAF_NOT_FOUND"),
    (UnauthorizedError, 403, "UNAUTHORIZED"),
    (InsufficientFeeError, 402, "INSUFFICIENT_FEE"),
    (InsufficientFundsError, 402, "INSUFFICIENT_FUNDS"),
    (InsufficientVaultBalanceError, 402, "INSUFFICIENT_VAULT_BALANCE"),
]

# Global mixer instance, built on first use
_mixer: Optional[ClawCashMixer] = None


# Initialize FastAPI
app = FastAPI(
    title="Claw Cash REST API",
    description="Fixed-denomination shielded pools with nullifier-based withdrawals",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Custom exception handler for validation errors - convert 422 to 400
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert Pydantic validation errors (422) to 400 Bad Request."""
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        error_messages.append(f"{field}: {error['msg']}")

    return JSONResponse(status_code=400, content={"detail": "; ".join(error_messages)})


@app.exception_handler(ClawCashException)
async def clawcash_exception_handler(request: Request, exc: ClawCashException):
    """Map domain errors to HTTP status codes."""
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return JSONResponse(
                status_code=status_code,
                content=ErrorResponse(error=str(exc), code=code).model_dump(),
            )

    logger.error(f"Unhandled domain error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=f"Internal server error: {exc}", code="INTERNAL_ERROR").model_dump(),
    )


def get_mixer() -> ClawCashMixer:
    """Get the process mixer, backed by the configured database."""
    global _mixer
    if _mixer is None:
        settings = get_settings()
        configure_logging(settings.log_level)
        db = get_db_manager(settings.database_url)
        _mixer = ClawCashMixer.from_settings(
            settings,
            store=SqlPoolStore(db),
            nullifier_ledger=SqlNullifierLedger(db),
        )
        logger.info(f"Mixer ready with {len(_mixer.pools)} pools on {settings.database_url}")
    return _mixer


def reset_mixer():
    """Drop the process mixer (for testing)."""
    global _mixer
    _mixer = None


def _pool_response(mixer: ClawCashMixer, pool_id: int) -> PoolResponse:
    return PoolResponse(**mixer.get_pool_summary(pool_id).to_dict())


# ============================================================================
# Health & System Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check():
    """Check service health and status."""
    return HealthResponse(status="operational", version=__version__)


@app.get("/statistics", tags=["System"])
def get_statistics(mixer: ClawCashMixer = Depends(get_mixer)):
    """Aggregate counters across pools."""
    return mixer.get_statistics()


@app.put("/config/fee", response_model=ProtocolConfigResponse, tags=["System"])
def update_fee(request: UpdateFeeRequest, mixer: ClawCashMixer = Depends(get_mixer)):
    """Change the deposit fee (authority only)."""
    config = mixer.update_fee(request.authority, request.fee_amount)
    return ProtocolConfigResponse(**config.to_dict())


# ============================================================================
# Pool Endpoints
# ============================================================================


@app.get("/pools", response_model=PoolListResponse, tags=["Pools"])
def list_pools(mixer: ClawCashMixer = Depends(get_mixer)):
    """List every configured pool."""
    return PoolListResponse(pools=[PoolResponse(**summary.to_dict()) for summary in mixer.list_pools()])


@app.get("/pools/{pool_id}", response_model=PoolResponse, tags=["Pools"])
def get_pool(pool_id: int, mixer: ClawCashMixer = Depends(get_mixer)):
    """Get the current state of a pool."""
    return _pool_response(mixer, pool_id)


@app.post("/pools/{pool_id}/initialize", response_model=PoolResponse, status_code=201, tags=["Pools"])
def initialize_pool(pool_id: int, request: InitializePoolRequest, mixer: ClawCashMixer = Depends(get_mixer)):
    """Activate a pool with its configured denomination."""
    mixer.initialize_pool(pool_id, request.authority)
    return _pool_response(mixer, pool_id)


@app.post("/pools/{pool_id}/deposit", response_model=DepositResponse, tags=["Transactions"])
def deposit(pool_id: int, request: DepositRequest, mixer: ClawCashMixer = Depends(get_mixer)):
    """
    Deposit one denomination.

    The commitment is appended to the pool accumulator; the response carries
    the assigned leaf index, the new root and the leaf's sibling path.
    """
    receipt = mixer.deposit(
        pool_id,
        hex_to_hash(request.commitment),
        leaf_index=request.leaf_index,
        depositor=request.depositor,
    )
    return DepositResponse(**receipt.to_dict())


@app.post("/pools/{pool_id}/withdraw", response_model=WithdrawalResponse, tags=["Transactions"])
def withdraw(pool_id: int, request: WithdrawalRequest, mixer: ClawCashMixer = Depends(get_mixer)):
    """Withdraw one denomination by revealing a note and its Merkle path."""
    authorization = mixer.withdraw(
        pool_id,
        secret=hex_to_hash(request.secret),
        nullifier_preimage=hex_to_hash(request.nullifier_preimage),
        nullifier_hash=hex_to_hash(request.nullifier_hash),
        leaf_index=request.leaf_index,
        path=[hex_to_hash(node) for node in request.merkle_path],
        recipient=request.recipient,
    )
    return WithdrawalResponse(**authorization.to_dict())


@app.get("/pools/{pool_id}/path/{leaf_index}", response_model=MerklePathResponse, tags=["Pools"])
def get_merkle_path(pool_id: int, leaf_index: int, mixer: ClawCashMixer = Depends(get_mixer)):
    """Current sibling path of a leaf."""
    path = mixer.get_merkle_path(pool_id, leaf_index)
    return MerklePathResponse(
        pool_id=pool_id,
        leaf_index=leaf_index,
        merkle_root=bytes_to_hex(mixer.get_pool(pool_id).root),
        path=[bytes_to_hex(node) for node in path],
    )


@app.get("/pools/{pool_id}/leaves/{leaf_index}", response_model=LeafResponse, tags=["Pools"])
def get_leaf(pool_id: int, leaf_index: int, mixer: ClawCashMixer = Depends(get_mixer)):
    """Stored record of one inserted commitment."""
    leaf = mixer.get_leaf(pool_id, leaf_index)
    return LeafResponse(
        pool_id=leaf.pool_id,
        leaf_index=leaf.leaf_index,
        commitment=bytes_to_hex(leaf.commitment),
        record=bytes_to_hex(leaf.to_bytes()),
    )


@app.get("/pools/{pool_id}/roots", response_model=RootHistoryResponse, tags=["Pools"])
def get_root_history(
    pool_id: int,
    limit: int = Query(100, ge=1, le=1000),
    mixer: ClawCashMixer = Depends(get_mixer),
):
    """Roots after recent deposits, for audit. Only the newest one validates withdrawals."""
    history = mixer.get_root_history(pool_id, limit)
    return RootHistoryResponse(
        pool_id=pool_id,
        roots=[RootSnapshot(num_leaves=n, merkle_root=bytes_to_hex(root)) for n, root in history],
    )


# ============================================================================
# Nullifier Endpoints
# ============================================================================


@app.get("/nullifiers/{nullifier_hash}", response_model=NullifierResponse, tags=["Nullifiers"])
def get_nullifier(nullifier_hash: str, mixer: ClawCashMixer = Depends(get_mixer)):
    """Whether a nullifier has been spent, in any pool."""
    try:
        value = hex_to_hash(nullifier_hash)
    except ValueError as e:
        raise DeserializationError(f"Invalid nullifier hash: {e}") from e

    record = mixer.get_nullifier(value)
    if record is None:
        return NullifierResponse(nullifier_hash=bytes_to_hex(value), spent=False)
    return NullifierResponse(
        nullifier_hash=bytes_to_hex(value),
        spent=True,
        pool_id=record.pool_id,
        record=bytes_to_hex(record.to_bytes()),
    )


def main():
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
