"""Encoding and decoding utilities."""

from clawcash.utils.hash import HASH_SIZE

LEAF_INDEX_SIZE = 4  # u32, little-endian
POOL_ID_SIZE = 1  # u8


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def hex_to_hash(hex_str: str) -> bytes:
    """
    Decode a hex string that must hold exactly one 32-byte hash.

    Raises:
        ValueError: If the string is not valid hex or not 32 bytes long
    """
    value = hex_to_bytes(hex_str)
    if len(value) != HASH_SIZE:
        raise ValueError(f"Expected {HASH_SIZE} bytes, got {len(value)}")
    return value


def leaf_index_to_bytes(leaf_index: int) -> bytes:
    """Encode a leaf index as 4 little-endian bytes."""
    if leaf_index < 0 or leaf_index >= 2 ** (8 * LEAF_INDEX_SIZE):
        raise ValueError(f"Leaf index out of range: {leaf_index}")
    return leaf_index.to_bytes(LEAF_INDEX_SIZE, "little")


def leaf_index_from_bytes(data: bytes) -> int:
    """Decode a 4-byte little-endian leaf index."""
    if len(data) != LEAF_INDEX_SIZE:
        raise ValueError(f"Leaf index must be {LEAF_INDEX_SIZE} bytes")
    return int.from_bytes(data, "little")


def pool_id_to_bytes(pool_id: int) -> bytes:
    """Encode a pool id as a single byte."""
    if pool_id < 0 or pool_id > 0xFF:
        raise ValueError(f"Pool id out of range: {pool_id}")
    return bytes([pool_id])
