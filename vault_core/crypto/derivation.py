"""
Crypto - Address Derivation
Deterministic, collision-free identities for every program account.

Each account address is a program-derived address: a pure function of an
ordered seed list plus the program id, returned together with the bump
that pushed the result off the ed25519 curve (so no private key exists
for it).

Seed schemes (part of the compatibility surface, never change them):
- Vault:           [VAULT_SEED, sha256(vault_name)]
- Vault signer:    [SIGNER_SEED, vault]
- Schedule:        [SCHEDULE_SEED, event_id u64 LE]
- Schedule signer: [SIGNER_SEED, schedule]
- RedeemIndex:     [REDEEM_INDEX_SEED, event_id u64 LE, index u16 LE, mint]
- NFT metadata:    [b"metadata", METADATA_PROGRAM_ID, mint] under METADATA_PROGRAM_ID

Addresses handed to an instruction are always re-derived and compared;
a mismatch is rejected with InvalidAccount, never silently recomputed.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Sequence

from solders.pubkey import Pubkey

from vault_core.crypto.hashing import sha256
from vault_core.schemas.errors import InvalidAccount, InvalidInput


logger = logging.getLogger(__name__)


SCHEDULE_SEED: bytes = bytes([244, 131, 10, 29, 174, 41, 128, 68])
SIGNER_SEED: bytes = bytes([2, 151, 229, 53, 244, 77, 229, 7])
VAULT_SEED: bytes = bytes([93, 85, 196, 21, 227, 86, 221, 123])
REDEEM_INDEX_SEED: bytes = b"redeem_index"
METADATA_SEED: bytes = b"metadata"

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
DEFAULT_PROGRAM_ID = Pubkey.from_string("7fCiqPGJdD254RS3iUYFHL1ACtqFX78YXHwYhkbLWpXY")

# System program id; doubles as the native-asset sentinel and the empty key.
NATIVE_MINT = Pubkey.default()
EMPTY_KEY = Pubkey.default()

MAX_U16 = 0xFFFF
MAX_U64 = 0xFFFF_FFFF_FFFF_FFFF


@dataclass(frozen=True)
class DerivedAddress:
    """A program-derived address and the bump that produced it."""

    address: Pubkey
    bump: int

    def __iter__(self):
        # Allows `address, bump = derive(...)`
        yield self.address
        yield self.bump


def derive(seeds: Sequence[bytes], program_id: Pubkey) -> DerivedAddress:
    """
    Derive a program address from an ordered seed list.

    Args:
        seeds: Ordered seed byte strings (each at most 32 bytes)
        program_id: Owning program identity

    Returns:
        DerivedAddress with the canonical (highest valid) bump
    """
    for seed in seeds:
        if len(seed) > 32:
            raise InvalidInput(
                f"Seed longer than 32 bytes ({len(seed)})",
                details={"seed": seed.hex()},
            )
    address, bump = Pubkey.find_program_address(list(seeds), program_id)
    return DerivedAddress(address=address, bump=bump)


def create_address(seeds: Sequence[bytes], bump: int, program_id: Pubkey) -> Pubkey:
    """Recompute a derived address from its seeds and a known bump."""
    return Pubkey.create_program_address([*seeds, bytes([bump])], program_id)


def expect_address(
    supplied: Pubkey,
    expected: Pubkey,
    label: str,
) -> None:
    """
    Reject an instruction whose supplied address differs from the derived one.

    Raises:
        InvalidAccount: On mismatch
    """
    if supplied != expected:
        logger.debug(f"{label} mismatch: supplied {supplied}, derived {expected}")
        raise InvalidAccount(
            f"{label} address does not match its derived address",
            details={"label": label, "supplied": str(supplied), "expected": str(expected)},
        )


# =============================================================================
# Seed helpers
# =============================================================================

def vault_derivation_path(vault_name: str) -> bytes:
    """Derivation path of a vault: sha256 of its UTF-8 name."""
    return sha256(vault_name.encode("utf-8"))


def event_id_seed(event_id: int) -> bytes:
    """Encode an event id as its u64 little-endian seed."""
    if not 0 <= event_id <= MAX_U64:
        raise InvalidInput(f"event_id out of u64 range: {event_id}")
    return struct.pack("<Q", event_id)


def index_seed(index: int) -> bytes:
    """Encode a leaf index as its u16 little-endian seed."""
    if not 0 <= index <= MAX_U16:
        raise InvalidInput(f"index out of u16 range: {index}")
    return struct.pack("<H", index)


# =============================================================================
# Account addresses
# =============================================================================

def find_vault_address(vault_name: str | bytes, program_id: Pubkey) -> DerivedAddress:
    """Vault address from its name (or a precomputed derivation path)."""
    path = vault_name if isinstance(vault_name, bytes) else vault_derivation_path(vault_name)
    return derive([VAULT_SEED, path], program_id)


def find_vault_signer_address(vault: Pubkey, program_id: Pubkey) -> DerivedAddress:
    """Custody authority of a vault; owns its token accounts and lamports."""
    return derive([SIGNER_SEED, bytes(vault)], program_id)


def find_schedule_address(event_id: int, program_id: Pubkey) -> DerivedAddress:
    return derive([SCHEDULE_SEED, event_id_seed(event_id)], program_id)


def find_schedule_signer_address(schedule: Pubkey, program_id: Pubkey) -> DerivedAddress:
    return derive([SIGNER_SEED, bytes(schedule)], program_id)


def find_redeem_index_address(
    event_id: int,
    index: int,
    nft_mint: Pubkey,
    program_id: Pubkey,
) -> DerivedAddress:
    """
    Marker account for an NFT-collection claim slot.

    Pass EMPTY_KEY as nft_mint for per-index exclusivity; pass the NFT mint
    for one independent slot per (index, mint).
    """
    return derive(
        [REDEEM_INDEX_SEED, event_id_seed(event_id), index_seed(index), bytes(nft_mint)],
        program_id,
    )


def find_metadata_address(mint: Pubkey) -> DerivedAddress:
    """Token-metadata account holding the collection reference of a mint."""
    return derive([METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint)], METADATA_PROGRAM_ID)


__all__ = [
    "SCHEDULE_SEED",
    "SIGNER_SEED",
    "VAULT_SEED",
    "REDEEM_INDEX_SEED",
    "METADATA_SEED",
    "METADATA_PROGRAM_ID",
    "DEFAULT_PROGRAM_ID",
    "NATIVE_MINT",
    "EMPTY_KEY",
    "MAX_U16",
    "MAX_U64",
    "DerivedAddress",
    "derive",
    "create_address",
    "expect_address",
    "vault_derivation_path",
    "event_id_seed",
    "index_seed",
    "find_vault_address",
    "find_vault_signer_address",
    "find_schedule_address",
    "find_schedule_signer_address",
    "find_redeem_index_address",
    "find_metadata_address",
]
