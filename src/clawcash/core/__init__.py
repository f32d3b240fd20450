"""Pool core: accumulator, proofs, nullifiers and orchestration."""
