"""
Merkle - Leaf Encodings
Canonical byte encodings of allocation leaves.

Every encoding is a fixed, order-sensitive little-endian concatenation
(Borsh field order) of the leaf fields, prefixed with a one-byte encoding
tag before hashing. The tag keeps variants disjoint: a leaf committed
under one encoding never verifies under another.

Encodings:
- LEGACY:       index u16 | recipient | receiving u64 | sending u64
- CURRENT:      index u16 | timestamp i64 | recipient | receiving u64 | sending u64
- MULTI_LEGACY: index u16 | recipient | receiving_mint | receiving u64 | sending u64
- MULTI:        index u16 | timestamp i64 | recipient | receiving_mint | receiving u64 | sending u64
- NFT_SPECIFIC / NFT_COLLECTION:
                redeem_type (u32 len + utf-8) | index u16 | timestamp i64 |
                nft_mint | collection_mint | receiving u64 | sending u64

Legacy encodings belong to schedules created with a schedule-wide unlock
time (timestamp > 0); current ones to schedules whose leaves carry their
own unlock time (timestamp == 0).
"""
from __future__ import annotations

import struct
from enum import Enum
from typing import Union

from vault_core.crypto.hashing import hash_leaf
from vault_core.schemas.distribution import (
    Allocation,
    NftAllocation,
    RedeemType,
    ScheduleType,
)
from vault_core.schemas.errors import InvalidScheduleType, LeafMismatch


Leaf = Union[Allocation, NftAllocation]


class LeafEncoding(Enum):
    """Leaf encoding rule. The value is the tag byte mixed into the leaf hash."""

    LEGACY = 0
    CURRENT = 1
    MULTI_LEGACY = 2
    MULTI = 3
    NFT_SPECIFIC = 4
    NFT_COLLECTION = 5

    @property
    def tag(self) -> bytes:
        return bytes([self.value])

    @property
    def carries_timestamp(self) -> bool:
        return self not in (LeafEncoding.LEGACY, LeafEncoding.MULTI_LEGACY)

    @property
    def carries_mint(self) -> bool:
        return self in (LeafEncoding.MULTI_LEGACY, LeafEncoding.MULTI)

    @property
    def is_nft(self) -> bool:
        return self in (LeafEncoding.NFT_SPECIFIC, LeafEncoding.NFT_COLLECTION)


def encoding_for_schedule(schedule_type: ScheduleType | int, legacy: bool = False) -> LeafEncoding:
    """
    Pick the leaf encoding a schedule verifies against.

    Args:
        schedule_type: The schedule's type
        legacy: True when the schedule has a schedule-wide unlock time
            (fungible schedules only; NFT leaves always carry a timestamp)

    Raises:
        InvalidScheduleType: For unknown schedule types
    """
    try:
        schedule_type = ScheduleType(schedule_type)
    except ValueError as e:
        raise InvalidScheduleType(
            f"Unknown schedule type: {schedule_type}",
            details={"schedule_type": schedule_type},
        ) from e

    if schedule_type is ScheduleType.FUNGIBLE_SINGLE:
        return LeafEncoding.LEGACY if legacy else LeafEncoding.CURRENT
    if schedule_type is ScheduleType.FUNGIBLE_MULTI:
        return LeafEncoding.MULTI_LEGACY if legacy else LeafEncoding.MULTI
    if schedule_type is ScheduleType.NFT_SPECIFIC:
        return LeafEncoding.NFT_SPECIFIC
    return LeafEncoding.NFT_COLLECTION


def _mismatch(encoding: LeafEncoding, reason: str, leaf: Leaf) -> LeafMismatch:
    return LeafMismatch(
        f"Leaf does not fit {encoding.name} encoding: {reason}",
        details={"encoding": encoding.name, "index": leaf.index},
    )


def _encode_fungible(leaf: Allocation, encoding: LeafEncoding) -> bytes:
    if encoding.carries_timestamp and leaf.timestamp is None:
        raise _mismatch(encoding, "timestamp is required", leaf)
    if encoding.carries_mint and leaf.receiving_token_mint is None:
        raise _mismatch(encoding, "receiving_token_mint is required", leaf)
    if not encoding.carries_mint and leaf.receiving_token_mint is not None:
        raise _mismatch(encoding, "receiving_token_mint is not part of this encoding", leaf)

    parts = [struct.pack("<H", leaf.index)]
    if encoding.carries_timestamp:
        parts.append(struct.pack("<q", leaf.timestamp))
    parts.append(bytes(leaf.recipient))
    if encoding.carries_mint:
        parts.append(bytes(leaf.receiving_token_mint))
    parts.append(struct.pack("<QQ", leaf.receiving_amount, leaf.sending_amount))
    return b"".join(parts)


def _encode_nft(leaf: NftAllocation, encoding: LeafEncoding) -> bytes:
    expected = (
        RedeemType.SPECIFIC if encoding is LeafEncoding.NFT_SPECIFIC else RedeemType.COLLECTION
    )
    if leaf.redeem_type is not expected:
        raise _mismatch(encoding, f"redeem_type must be {expected.value!r}", leaf)

    redeem_type = leaf.redeem_type.value.encode("utf-8")
    return b"".join([
        struct.pack("<I", len(redeem_type)),
        redeem_type,
        struct.pack("<Hq", leaf.index, leaf.timestamp),
        bytes(leaf.leaf_mint),
        bytes(leaf.collection_mint),
        struct.pack("<QQ", leaf.receiving_amount, leaf.sending_amount),
    ])


def encode_leaf(leaf: Leaf, encoding: LeafEncoding) -> bytes:
    """
    Encode a leaf's fields under the given rule (without the tag byte).

    Raises:
        LeafMismatch: If the leaf's shape does not match the encoding
    """
    if encoding.is_nft:
        if not isinstance(leaf, NftAllocation):
            raise _mismatch(encoding, "expected an NFT allocation", leaf)
        return _encode_nft(leaf, encoding)
    if not isinstance(leaf, Allocation):
        raise _mismatch(encoding, "expected a fungible allocation", leaf)
    return _encode_fungible(leaf, encoding)


def leaf_hash(leaf: Leaf, encoding: LeafEncoding) -> bytes:
    """Domain-separated hash of a leaf: sha256(0x00 | tag | payload)."""
    return hash_leaf(encoding.tag + encode_leaf(leaf, encoding))


__all__ = [
    "Leaf",
    "LeafEncoding",
    "encoding_for_schedule",
    "encode_leaf",
    "leaf_hash",
]
