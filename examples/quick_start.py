#!/usr/bin/env python3
"""
Quick start guide for the Claw Cash pools.

Run this to see a complete workflow example.
"""

import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from clawcash.core.commitment import CommitmentScheme, Note
from clawcash.core.interfaces import InMemoryFundsLedger, TokenFeeGate
from clawcash.core.mixer import ClawCashMixer
from clawcash.exceptions import AlreadySpentError


def main():
    """Run a simple example of the Claw Cash pools."""

    print("=" * 70)
    print("CLAW CASH QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Set up the mixer
    print("Step 1: Create a mixer with three denomination pools")
    print("-" * 70)
    funds = InMemoryFundsLedger({"alice": 5_000_000_000, "bob": 5_000_000_000})
    fee_tokens = InMemoryFundsLedger({"alice": 1_000_000_000, "bob": 1_000_000_000})
    mixer = ClawCashMixer(
        tree_depth=8,
        funds_ledger=funds,
        fee_gate=TokenFeeGate(fee_tokens, treasury="treasury"),
    )
    mixer.initialize_pool(0, "authority")
    pool = mixer.get_pool(0)
    print(f"✓ Pool 0 active: denomination {pool.denomination}, capacity {pool.accumulator.capacity}")
    print()

    # Step 2: Alice deposits
    print("Step 2: Alice deposits into pool 0")
    print("-" * 70)
    alice_note = CommitmentScheme.create_note(pool_id=0)
    alice_receipt = mixer.deposit(0, alice_note.commitment, depositor="alice")
    alice_note.leaf_index = alice_receipt.leaf_index
    saved_note = json.dumps(alice_note.to_dict())
    print(f"✓ Deposit accepted")
    print(f"  Commitment: {alice_note.commitment.hex()[:32]}...")
    print(f"  Leaf Index: {alice_receipt.leaf_index}")
    print(f"  Root:       {alice_receipt.merkle_root.hex()[:32]}...")
    print()

    # Step 3: Bob deposits
    print("Step 3: Bob deposits into pool 0")
    print("-" * 70)
    bob_receipt = mixer.deposit(0, CommitmentScheme.create_note(0).commitment, depositor="bob")
    print(f"✓ Deposit accepted at leaf {bob_receipt.leaf_index}")
    print()

    # Step 4: Alice withdraws to a fresh account
    print("Step 4: Alice withdraws to carol using her saved note")
    print("-" * 70)
    note = Note.from_dict(json.loads(saved_note))
    path = mixer.get_merkle_path(0, note.leaf_index)
    authorization = mixer.withdraw(
        0,
        secret=note.secret,
        nullifier_preimage=note.nullifier_preimage,
        nullifier_hash=note.nullifier_hash,
        leaf_index=note.leaf_index,
        path=path,
        recipient="carol",
    )
    print(f"✓ Withdrawal authorized")
    print(f"  Amount:    {authorization.amount}")
    print(f"  Nullifier: {authorization.nullifier_hash.hex()[:32]}...")
    print()

    # Step 5: Double spend
    print("Step 5: Alice tries to spend the same note again")
    print("-" * 70)
    try:
        mixer.withdraw(
            0,
            secret=note.secret,
            nullifier_preimage=note.nullifier_preimage,
            nullifier_hash=note.nullifier_hash,
            leaf_index=note.leaf_index,
            path=path,
            recipient="alice",
        )
    except AlreadySpentError as e:
        print(f"✓ Rejected: {e}")
    print()

    # Step 6: Balances
    print("Step 6: Balances")
    print("-" * 70)
    for account in ["alice", "bob", "carol", pool.vault]:
        print(f"  {account:<8} {funds.balance(account)}")
    print(f"  fees collected: {fee_tokens.balance('treasury')}")
    print()

    print("Statistics:", mixer.get_statistics())


if __name__ == "__main__":
    main()
