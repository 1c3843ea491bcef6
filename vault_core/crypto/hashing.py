"""
Crypto - Hashing
Digest helpers behind the distribution tree and artifact fingerprints.

Leaves and interior nodes are hashed in separate domains:

    leaf = sha256(0x00 || payload)
    node = sha256(0x01 || left || right)

so a 64-byte leaf payload can never be passed off as a parent node.
"""
from __future__ import annotations

import hashlib
from typing import Any

from vault_core.schemas.canonical import dumps_canonical


LEAF_PREFIX: bytes = b"\x00"
NODE_PREFIX: bytes = b"\x01"

HEX_PREFIX = "0x"


def sha256(data: bytes) -> bytes:
    """32-byte SHA-256 digest of `data`."""
    return hashlib.sha256(data).digest()


def hash_leaf(payload: bytes) -> bytes:
    """
    Leaf hash for an encoded allocation.

    `payload` is the output of one of the encoders in
    vault_core.merkle.leaves; the tag byte is already part of it.
    """
    return sha256(LEAF_PREFIX + payload)


def hash_node(left: bytes, right: bytes) -> bytes:
    # not commutative: proofs carry the side of each sibling
    return sha256(NODE_PREFIX + left + right)


def hash_canonical(obj: Any) -> bytes:
    """Fingerprint of `obj` over its canonical JSON text (UTF-8)."""
    return sha256(dumps_canonical(obj).encode("utf-8"))


def to_hex(data: bytes) -> str:
    return HEX_PREFIX + data.hex()


def from_hex(text: str) -> bytes:
    """
    Decode hex written the way to_hex writes it.

    Raises:
        ValueError: missing prefix, odd digit count or non-hex digits
    """
    if text[:2] != HEX_PREFIX:
        raise ValueError(f"Hex value must start with '0x': {text[:12]!r}")

    digits = text[2:]
    if len(digits) & 1:
        raise ValueError(f"Hex digits must come in pairs (even length), got {len(digits)}")

    try:
        return bytes.fromhex(digits)
    except ValueError as e:
        raise ValueError(f"Invalid hex digits in {text[:12]!r}: {e}") from e


def from_hex32(text: str) -> bytes:
    """Decode a root or node hash; anything but 32 bytes is rejected."""
    data = from_hex(text)
    if len(data) != 32:
        raise ValueError(f"Hash must be 32 bytes, got {len(data)}")
    return data


__all__ = [
    "LEAF_PREFIX",
    "NODE_PREFIX",
    "sha256",
    "hash_leaf",
    "hash_node",
    "hash_canonical",
    "to_hex",
    "from_hex",
    "from_hex32",
]
