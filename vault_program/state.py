"""
Program - Account Records
Vault, Schedule and RedeemIndex accounts with their binary layouts.

Every record starts with an 8-byte discriminator, the first eight bytes of
sha256("account:<Name>"), followed by little-endian fields. Records are
mutable; the account store clones them to journal a transaction.

Layouts:
- Vault:       disc | signer_nonce u8 | owner | pending_new_owner |
               admin_count u32 | admins[32 * n]
- Schedule:    disc | nonce u8 | vault_id | event_id u64 |
               creation_timestamp i64 | timestamp i64 | merkle_root |
               schedule_type u8 | receiving_token_mint |
               receiving_token_account | sending_token_mint |
               sending_token_account | is_active u8 | user_count u16 |
               redemptions[ceil(user_count / 8)]
- RedeemIndex: disc | nonce u8 | schedule | index u16 | nft_mint | is_redeemed u8
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace

from solders.pubkey import Pubkey

from vault_core.crypto.derivation import (
    EMPTY_KEY,
    SIGNER_SEED,
    create_address,
)
from vault_core.crypto.hashing import sha256
from vault_core.schemas.distribution import ScheduleType
from vault_core.schemas.errors import InvalidAccount, InvalidScheduleType
from vault_program.ownership import OwnershipState, Owned, from_fields


def account_discriminator(name: str) -> bytes:
    return sha256(f"account:{name}".encode("utf-8"))[:8]


VAULT_DISCRIMINATOR = account_discriminator("Vault")
SCHEDULE_DISCRIMINATOR = account_discriminator("Schedule")
REDEEM_INDEX_DISCRIMINATOR = account_discriminator("RedeemIndex")

_VAULT_HEADER = struct.Struct("<8sB32s32sI")
_SCHEDULE_HEADER = struct.Struct("<8sB32sQqq32sB32s32s32s32sBH")
_REDEEM_INDEX = struct.Struct("<8sB32sH32sB")


def bitmap_size(user_count: int) -> int:
    """Bytes needed for one bit per index."""
    return (user_count + 7) // 8


def _check_discriminator(data: bytes, expected: bytes, kind: str) -> None:
    if len(data) < 8 or data[:8] != expected:
        raise InvalidAccount(f"Account data is not a {kind}", details={"kind": kind})


def _unpack(layout: struct.Struct, data: bytes, kind: str) -> tuple:
    if len(data) < layout.size:
        raise InvalidAccount(
            f"{kind} account data too short",
            details={"kind": kind, "size": len(data), "expected": layout.size},
        )
    return layout.unpack_from(data)


# =============================================================================
# Vault
# =============================================================================

@dataclass
class Vault:
    """
    Custodial vault. Assets are held by the vault signer, a derived
    authority recomputed from [SIGNER_SEED, vault] and `signer_nonce`.
    """

    address: Pubkey
    signer_nonce: int
    ownership: OwnershipState
    admins: list[Pubkey] = field(default_factory=list)

    @property
    def owner(self) -> Pubkey:
        return self.ownership.owner

    @property
    def pending_new_owner(self) -> Pubkey:
        return self.ownership.candidate or EMPTY_KEY

    def signer(self, program_id: Pubkey) -> Pubkey:
        return create_address([SIGNER_SEED, bytes(self.address)], self.signer_nonce, program_id)

    def is_admin(self, key: Pubkey) -> bool:
        """Owner or a member of the admin set."""
        return key == self.owner or key in self.admins

    def clone(self) -> "Vault":
        return replace(self, admins=list(self.admins))

    def to_bytes(self) -> bytes:
        header = _VAULT_HEADER.pack(
            VAULT_DISCRIMINATOR,
            self.signer_nonce,
            bytes(self.owner),
            bytes(self.pending_new_owner),
            len(self.admins),
        )
        return header + b"".join(bytes(admin) for admin in self.admins)

    @classmethod
    def from_bytes(cls, address: Pubkey, data: bytes) -> "Vault":
        _check_discriminator(data, VAULT_DISCRIMINATOR, "Vault")
        _, nonce, owner, pending, count = _unpack(_VAULT_HEADER, data, "Vault")
        offset = _VAULT_HEADER.size
        if len(data) < offset + 32 * count:
            raise InvalidAccount("Vault admin list truncated", details={"admin_count": count})
        admins = [
            Pubkey.from_bytes(data[offset + 32 * i: offset + 32 * (i + 1)])
            for i in range(count)
        ]
        return cls(
            address=address,
            signer_nonce=nonce,
            ownership=from_fields(Pubkey.from_bytes(owner), Pubkey.from_bytes(pending)),
            admins=admins,
        )


# =============================================================================
# Schedule
# =============================================================================

@dataclass
class Schedule:
    """
    One distribution event committed to a Merkle root.

    `timestamp > 0` marks a legacy schedule: one unlock time for every
    leaf, and leaves encoded without their own timestamp.
    """

    address: Pubkey
    nonce: int
    vault_id: Pubkey
    event_id: int
    creation_timestamp: int
    timestamp: int
    merkle_root: bytes
    schedule_type: ScheduleType
    receiving_token_mint: Pubkey
    receiving_token_account: Pubkey
    sending_token_mint: Pubkey
    sending_token_account: Pubkey
    is_active: bool
    user_count: int
    redemptions: bytearray = field(default_factory=bytearray)

    def __post_init__(self):
        if not self.redemptions:
            self.redemptions = bytearray(bitmap_size(self.user_count))

    @property
    def is_legacy(self) -> bool:
        # NFT leaves always carry their own unlock time
        return self.timestamp > 0 and not self.schedule_type.is_nft

    def clone(self) -> "Schedule":
        return replace(self, redemptions=bytearray(self.redemptions))

    def to_bytes(self) -> bytes:
        header = _SCHEDULE_HEADER.pack(
            SCHEDULE_DISCRIMINATOR,
            self.nonce,
            bytes(self.vault_id),
            self.event_id,
            self.creation_timestamp,
            self.timestamp,
            self.merkle_root,
            int(self.schedule_type),
            bytes(self.receiving_token_mint),
            bytes(self.receiving_token_account),
            bytes(self.sending_token_mint),
            bytes(self.sending_token_account),
            int(self.is_active),
            self.user_count,
        )
        return header + bytes(self.redemptions)

    @classmethod
    def from_bytes(cls, address: Pubkey, data: bytes) -> "Schedule":
        _check_discriminator(data, SCHEDULE_DISCRIMINATOR, "Schedule")
        (
            _, nonce, vault_id, event_id, creation_timestamp, timestamp, root,
            schedule_type, receiving_mint, receiving_account, sending_mint,
            sending_account, is_active, user_count,
        ) = _unpack(_SCHEDULE_HEADER, data, "Schedule")

        try:
            schedule_type = ScheduleType(schedule_type)
        except ValueError as e:
            raise InvalidScheduleType(f"Unknown schedule type: {schedule_type}") from e

        offset = _SCHEDULE_HEADER.size
        redemptions = bytearray(data[offset: offset + bitmap_size(user_count)])
        if len(redemptions) != bitmap_size(user_count):
            raise InvalidAccount("Schedule redemption bitmap truncated", details={"user_count": user_count})

        return cls(
            address=address,
            nonce=nonce,
            vault_id=Pubkey.from_bytes(vault_id),
            event_id=event_id,
            creation_timestamp=creation_timestamp,
            timestamp=timestamp,
            merkle_root=root,
            schedule_type=schedule_type,
            receiving_token_mint=Pubkey.from_bytes(receiving_mint),
            receiving_token_account=Pubkey.from_bytes(receiving_account),
            sending_token_mint=Pubkey.from_bytes(sending_mint),
            sending_token_account=Pubkey.from_bytes(sending_account),
            is_active=bool(is_active),
            user_count=user_count,
            redemptions=redemptions,
        )


# =============================================================================
# RedeemIndex
# =============================================================================

@dataclass
class RedeemIndex:
    """Claim marker of one NFT-collection slot. Its existence opens the slot."""

    address: Pubkey
    nonce: int
    schedule: Pubkey
    index: int
    nft_mint: Pubkey
    is_redeemed: bool = False

    def clone(self) -> "RedeemIndex":
        return replace(self)

    def to_bytes(self) -> bytes:
        return _REDEEM_INDEX.pack(
            REDEEM_INDEX_DISCRIMINATOR,
            self.nonce,
            bytes(self.schedule),
            self.index,
            bytes(self.nft_mint),
            int(self.is_redeemed),
        )

    @classmethod
    def from_bytes(cls, address: Pubkey, data: bytes) -> "RedeemIndex":
        _check_discriminator(data, REDEEM_INDEX_DISCRIMINATOR, "RedeemIndex")
        _, nonce, schedule, index, nft_mint, is_redeemed = _unpack(_REDEEM_INDEX, data, "RedeemIndex")
        return cls(
            address=address,
            nonce=nonce,
            schedule=Pubkey.from_bytes(schedule),
            index=index,
            nft_mint=Pubkey.from_bytes(nft_mint),
            is_redeemed=bool(is_redeemed),
        )


def new_vault(address: Pubkey, signer_nonce: int, owner: Pubkey) -> Vault:
    return Vault(address=address, signer_nonce=signer_nonce, ownership=Owned(owner))


__all__ = [
    "account_discriminator",
    "bitmap_size",
    "VAULT_DISCRIMINATOR",
    "SCHEDULE_DISCRIMINATOR",
    "REDEEM_INDEX_DISCRIMINATOR",
    "Vault",
    "Schedule",
    "RedeemIndex",
    "new_vault",
]
