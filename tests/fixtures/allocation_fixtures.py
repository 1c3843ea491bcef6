"""
Allocation fixtures shared by all test modules.

Provides factory functions for:
- Deterministic test keys
- Fungible allocations (current, legacy and multi-token)
- NFT allocations (specific and collection)
"""

from typing import Optional

from solders.pubkey import Pubkey

from vault_core.crypto.hashing import sha256
from vault_core.schemas.distribution import Allocation, NftAllocation, RedeemType


# Fixed clock reading used across tests
NOW = 1_700_000_000


def key(label: str) -> Pubkey:
    """Deterministic public key for a label."""
    return Pubkey.from_bytes(sha256(f"test-key:{label}".encode("utf-8")))


def recipient(index: int) -> Pubkey:
    return key(f"recipient-{index}")


# =============================================================================
# Fungible allocations
# =============================================================================

def make_allocation(
    index: int = 0,
    recipient_key: Optional[Pubkey] = None,
    receiving_amount: int = 100,
    sending_amount: int = 0,
    timestamp: Optional[int] = NOW - 60,
    receiving_token_mint: Optional[Pubkey] = None,
) -> Allocation:
    """
    Create an Allocation for testing.

    Args:
        index: Leaf index.
        recipient_key: Claimant (defaults to recipient(index)).
        receiving_amount: Amount paid out by the vault.
        sending_amount: Amount the claimant pays in.
        timestamp: Leaf unlock time; None for legacy trees.
        receiving_token_mint: Set for multi-token schedules only.
    """
    return Allocation(
        index=index,
        timestamp=timestamp,
        recipient=recipient_key or recipient(index),
        receiving_amount=receiving_amount,
        sending_amount=sending_amount,
        receiving_token_mint=receiving_token_mint,
    )


def make_allocations(
    count: int,
    receiving_amount: int = 100,
    legacy: bool = False,
    receiving_token_mint: Optional[Pubkey] = None,
) -> list[Allocation]:
    """`count` allocations with dense indices and amounts 100, 200, ..."""
    return [
        make_allocation(
            index=i,
            receiving_amount=receiving_amount * (i + 1),
            timestamp=None if legacy else NOW - 60,
            receiving_token_mint=receiving_token_mint,
        )
        for i in range(count)
    ]


# =============================================================================
# NFT allocations
# =============================================================================

def make_nft_allocation(
    index: int = 0,
    redeem_type: RedeemType = RedeemType.SPECIFIC,
    nft_mint: Optional[Pubkey] = None,
    collection_mint: Optional[Pubkey] = None,
    receiving_amount: int = 50,
    sending_amount: int = 0,
    timestamp: int = NOW - 60,
) -> NftAllocation:
    """
    Create an NftAllocation for testing.

    Specific allocations default to the NFT mint key("nft-<index>");
    collection allocations never bind a mint.
    """
    if redeem_type is RedeemType.SPECIFIC and nft_mint is None:
        nft_mint = key(f"nft-{index}")
    return NftAllocation(
        redeem_type=redeem_type,
        index=index,
        timestamp=timestamp,
        nft_mint=nft_mint if redeem_type is RedeemType.SPECIFIC else None,
        collection_mint=collection_mint or key("collection"),
        receiving_amount=receiving_amount,
        sending_amount=sending_amount,
    )
