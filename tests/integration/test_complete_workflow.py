"""Integration tests for complete pool workflows."""

import os
import threading

import pytest

from clawcash.core.commitment import CommitmentScheme, Note
from clawcash.core.interfaces import InMemoryFundsLedger, TokenFeeGate
from clawcash.core.mixer import ClawCashMixer
from clawcash.core.proof import MerkleProofVerifier, build_merkle_path
from clawcash.storage import DatabaseManager, SqlNullifierLedger, SqlPoolStore
from clawcash.exceptions import AlreadySpentError, IndexMismatchError


def withdraw(mixer, note, leaf_index, path, recipient="bob"):
    return mixer.withdraw(
        note.pool_id,
        secret=note.secret,
        nullifier_preimage=note.nullifier_preimage,
        nullifier_hash=note.nullifier_hash,
        leaf_index=leaf_index,
        path=path,
        recipient=recipient,
    )


class TestCompleteWorkflow:
    """Tests for complete deposit and withdrawal cycles."""

    @pytest.fixture
    def mixer(self):
        """Create a depth-3 mixer (capacity 8)."""
        mixer = ClawCashMixer(denominations=[100], tree_depth=3, fee_amount=0)
        mixer.initialize_pool(0, "authority")
        return mixer

    def test_four_deposits_then_spend_second(self, mixer):
        """Deposit c0..c3, prove c1 against the latest root, spend it once."""
        notes = [CommitmentScheme.create_note(0) for _ in range(4)]
        commitments = [note.commitment for note in notes]

        indices = [mixer.deposit(0, c).leaf_index for c in commitments]
        assert indices == [0, 1, 2, 3]

        root = mixer.get_pool(0).root
        path = build_merkle_path(commitments, 1, 3)
        assert MerkleProofVerifier(3).verify(commitments[1], 1, path, root)
        assert mixer.get_merkle_path(0, 1) == path

        authorization = withdraw(mixer, notes[1], 1, path)
        assert authorization.amount == 100
        assert authorization.merkle_root == root

        with pytest.raises(AlreadySpentError):
            withdraw(mixer, notes[1], 1, path, recipient="carol")

    def test_stale_index_does_not_overwrite(self, mixer):
        """A deposit that computed next_index = 5 after it moved to 6 fails."""
        commitments = [os.urandom(32) for _ in range(5)]
        for c in commitments:
            mixer.deposit(0, c)

        # Interleaved deposit takes index 5
        interleaved = os.urandom(32)
        assert mixer.deposit(0, interleaved, leaf_index=5).leaf_index == 5
        root = mixer.get_pool(0).root

        with pytest.raises(IndexMismatchError) as exc_info:
            mixer.deposit(0, os.urandom(32), leaf_index=5)

        assert exc_info.value.actual == 6
        assert mixer.get_pool(0).root == root
        assert mixer.get_pool(0).store.get_leaves(0)[5] == interleaved

    def test_racing_deposits_same_index(self, mixer):
        """Two threads both declaring index 5: one wins, one gets IndexMismatch."""
        for _ in range(5):
            mixer.deposit(0, os.urandom(32))

        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                mixer.deposit(0, os.urandom(32), leaf_index=5)
                result = "ok"
            except IndexMismatchError:
                result = "mismatch"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["mismatch", "ok"]
        assert mixer.get_pool(0).next_index == 6

    def test_note_round_trip_through_wallet(self, mixer):
        """A note saved as cash-note JSON can still be withdrawn."""
        note = CommitmentScheme.create_note(0)
        receipt = mixer.deposit(0, note.commitment)
        note.leaf_index = receipt.leaf_index
        mixer.deposit(0, os.urandom(32))

        restored = Note.from_dict(note.to_dict())
        path = mixer.get_merkle_path(0, restored.leaf_index)
        withdraw(mixer, restored, restored.leaf_index, path)
        assert mixer.is_spent(note.nullifier_hash)


class TestFundedWorkflow:
    """Tests for value conservation with funds and fees wired."""

    def test_balances(self):
        funds = InMemoryFundsLedger({"alice": 1_000, "bob": 1_000})
        fees = InMemoryFundsLedger({"alice": 10, "bob": 10})
        mixer = ClawCashMixer(
            denominations=[100, 500],
            tree_depth=3,
            fee_amount=2,
            funds_ledger=funds,
            fee_gate=TokenFeeGate(fees, "treasury"),
        )
        mixer.initialize_pool(0, "authority")
        mixer.initialize_pool(1, "authority")

        alice_note = CommitmentScheme.create_note(0)
        bob_note = CommitmentScheme.create_note(1)
        mixer.deposit(0, alice_note.commitment, depositor="alice")
        mixer.deposit(1, bob_note.commitment, depositor="bob")

        assert funds.balance("vault:0") == 100
        assert funds.balance("vault:1") == 500
        assert fees.balance("treasury") == 4

        withdraw(mixer, alice_note, 0, mixer.get_merkle_path(0, 0), recipient="carol")
        withdraw(mixer, bob_note, 0, mixer.get_merkle_path(1, 0), recipient="dave")

        assert funds.balance("carol") == 100
        assert funds.balance("dave") == 500
        assert funds.balance("vault:0") == 0
        assert funds.balance("vault:1") == 0
        total = sum(funds.balance(a) for a in ["alice", "bob", "carol", "dave", "vault:0", "vault:1"])
        assert total == 2_000


class TestDurableWorkflow:
    """Tests for the SQL-backed workflow."""

    def test_restart_between_deposit_and_withdraw(self, tmp_path):
        db = DatabaseManager(f"sqlite:///{tmp_path / 'pools.db'}")
        db.create_tables()

        def build():
            return ClawCashMixer(
                denominations=[100],
                tree_depth=3,
                fee_amount=0,
                store=SqlPoolStore(db),
                nullifier_ledger=SqlNullifierLedger(db),
            )

        mixer = build()
        mixer.initialize_pool(0, "authority")
        notes = [CommitmentScheme.create_note(0) for _ in range(3)]
        for note in notes:
            mixer.deposit(0, note.commitment)

        restarted = build()
        assert restarted.get_pool(0).root == mixer.get_pool(0).root
        assert restarted.deposit(0, os.urandom(32)).leaf_index == 3

        withdraw(restarted, notes[2], 2, restarted.get_merkle_path(0, 2))
        with pytest.raises(AlreadySpentError):
            withdraw(build(), notes[2], 2, restarted.get_merkle_path(0, 2))

        db.dispose()
