"""Tests for hashing, encoding and persisted record layouts."""

import hashlib
import os

import pytest

from clawcash.core.records import LeafRecord, NullifierRecord
from clawcash.exceptions import DeserializationError
from clawcash.utils.encoding import (
    bytes_to_hex,
    hex_to_bytes,
    hex_to_hash,
    leaf_index_from_bytes,
    leaf_index_to_bytes,
    pool_id_to_bytes,
)
from clawcash.utils.hash import (
    ZERO_VALUE,
    compute_commitment,
    compute_nullifier,
    hash_pair,
    is_hash,
    sha256,
)


class TestHashFunctions:
    """Test SHA-256 helpers."""

    def test_sha256_bytes(self):
        assert sha256(b"abc") == hashlib.sha256(b"abc").digest()

    def test_sha256_string(self):
        assert sha256("abc") == sha256(b"abc")

    def test_hash_pair_concatenates_in_order(self):
        left, right = os.urandom(32), os.urandom(32)
        assert hash_pair(left, right) == hashlib.sha256(left + right).digest()

    def test_hash_pair_is_positional(self):
        left, right = b"\x01" * 32, b"\x02" * 32
        assert hash_pair(left, right) != hash_pair(right, left)

    def test_hash_pair_rejects_short_input(self):
        with pytest.raises(ValueError):
            hash_pair(b"short", ZERO_VALUE)
        with pytest.raises(ValueError):
            hash_pair(ZERO_VALUE, b"\x00" * 33)

    def test_commitment_and_nullifier(self):
        secret, preimage = os.urandom(32), os.urandom(32)
        assert compute_commitment(secret, preimage) == hashlib.sha256(secret + preimage).digest()
        assert compute_nullifier(preimage) == hashlib.sha256(preimage).digest()

    def test_is_hash(self):
        assert is_hash(ZERO_VALUE)
        assert not is_hash(b"\x00" * 31)
        assert not is_hash("00" * 32)


class TestEncoding:
    """Test hex and integer encodings."""

    def test_hex_round_trip(self):
        data = os.urandom(16)
        assert hex_to_bytes(bytes_to_hex(data)) == data
        assert bytes_to_hex(b"\xab").startswith("0x")

    def test_hex_without_prefix(self):
        assert hex_to_bytes("abcd") == b"\xab\xcd"

    def test_hex_odd_length(self):
        with pytest.raises(ValueError):
            hex_to_bytes("abc")

    def test_hex_to_hash_requires_32_bytes(self):
        assert hex_to_hash("11" * 32) == b"\x11" * 32
        with pytest.raises(ValueError):
            hex_to_hash("11" * 31)
        with pytest.raises(ValueError):
            hex_to_hash("zz" * 32)

    def test_leaf_index_little_endian(self):
        assert leaf_index_to_bytes(1) == b"\x01\x00\x00\x00"
        assert leaf_index_to_bytes(0x01020304) == b"\x04\x03\x02\x01"
        assert leaf_index_from_bytes(b"\x04\x03\x02\x01") == 0x01020304

    def test_leaf_index_range(self):
        with pytest.raises(ValueError):
            leaf_index_to_bytes(-1)
        with pytest.raises(ValueError):
            leaf_index_to_bytes(2 ** 32)
        with pytest.raises(ValueError):
            leaf_index_from_bytes(b"\x00\x00")

    def test_pool_id_byte(self):
        assert pool_id_to_bytes(2) == b"\x02"
        with pytest.raises(ValueError):
            pool_id_to_bytes(256)


class TestRecords:
    """Test persisted record layouts."""

    def test_leaf_record_layout(self):
        commitment = b"\xaa" * 32
        record = LeafRecord(commitment=commitment, leaf_index=5, pool_id=1)
        data = record.to_bytes()

        assert len(data) == LeafRecord.SIZE == 37
        assert data[:32] == commitment
        assert data[32:36] == b"\x05\x00\x00\x00"
        assert data[36] == 1
        assert LeafRecord.from_bytes(data) == record

    def test_leaf_record_bad_size(self):
        with pytest.raises(DeserializationError):
            LeafRecord.from_bytes(b"\x00" * 36)

    def test_leaf_record_dict(self):
        record = LeafRecord(commitment=b"\x01" * 32, leaf_index=0, pool_id=0)
        assert record.to_dict() == {"commitment": "01" * 32, "leaf_index": 0, "pool_id": 0}

    def test_nullifier_record_layout(self):
        record = NullifierRecord(nullifier_hash=b"\xbb" * 32, pool_id=2)
        data = record.to_bytes()

        assert len(data) == NullifierRecord.SIZE == 33
        assert data == b"\xbb" * 32 + b"\x02"
        assert NullifierRecord.from_bytes(data) == record

    def test_nullifier_record_validation(self):
        with pytest.raises(ValueError):
            NullifierRecord(nullifier_hash=b"\x00" * 16, pool_id=0)
        with pytest.raises(DeserializationError):
            NullifierRecord.from_bytes(b"\x00" * 32)
