"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from clawcash.core.commitment import CommitmentScheme
from clawcash.core.interfaces import InMemoryFundsLedger, TokenFeeGate
from clawcash.core.mixer import ClawCashMixer
from clawcash.storage import DatabaseManager

TEST_DEPTH = 3
TEST_DENOMINATIONS = [100, 1_000, 10_000]
TEST_FEE = 5


@pytest.fixture
def note():
    """A fresh note for pool 0."""
    return CommitmentScheme.create_note(pool_id=0)


@pytest.fixture
def funds():
    """Funds ledger with two funded users."""
    return InMemoryFundsLedger({"alice": 1_000_000, "bob": 1_000_000})


@pytest.fixture
def fee_tokens():
    """Fee token ledger with two funded users."""
    return InMemoryFundsLedger({"alice": 1_000, "bob": 1_000})


@pytest.fixture
def mixer():
    """In-memory mixer without funds or fees, pool 0 initialized."""
    mixer = ClawCashMixer(denominations=TEST_DENOMINATIONS, tree_depth=TEST_DEPTH, fee_amount=0)
    mixer.initialize_pool(0, "authority")
    return mixer


@pytest.fixture
def funded_mixer(funds, fee_tokens):
    """In-memory mixer with a funds ledger and a fee gate, pool 0 initialized."""
    mixer = ClawCashMixer(
        denominations=TEST_DENOMINATIONS,
        tree_depth=TEST_DEPTH,
        fee_amount=TEST_FEE,
        funds_ledger=funds,
        fee_gate=TokenFeeGate(fee_tokens, treasury="treasury"),
    )
    mixer.initialize_pool(0, "authority")
    return mixer


@pytest.fixture
def temp_db(tmp_path):
    """Database manager on a temporary SQLite file."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'test.db'}")
    manager.create_tables()
    yield manager
    manager.dispose()
