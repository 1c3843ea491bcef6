"""
Program - NFT Holding Checks
Proves the claimant holds an NFT that belongs to a verified collection.
"""
from __future__ import annotations

import logging
from typing import Optional

from solders.pubkey import Pubkey

from vault_core.crypto.derivation import find_metadata_address
from vault_core.schemas.errors import (
    InvalidAccount,
    InvalidMetadata,
    InvalidMintAccount,
    InvalidTokenAmount,
    Unauthorized,
    UnverifiedCollection,
)
from vault_program.ledger import NftMetadata, TokenAccount
from vault_program.store import AccountStore


logger = logging.getLogger(__name__)


def verify_nft_holding(
    store: AccountStore,
    claimant: Pubkey,
    nft_mint: Pubkey,
    collection_mint: Pubkey,
    nft_token_account: Optional[Pubkey],
) -> NftMetadata:
    """
    Check the claimant's NFT and its collection membership.

    The token account must belong to the claimant, hold `nft_mint` and
    hold exactly one unit. The metadata at the mint's derived metadata
    address must name `collection_mint` as a verified collection.

    Returns:
        The NFT's metadata record

    Raises:
        InvalidAccount: Token account missing
        Unauthorized: Token account not owned by the claimant
        InvalidMintAccount: Token account holds another mint
        InvalidTokenAmount: Balance is not exactly one
        InvalidMetadata: No metadata for the mint
        UnverifiedCollection: Collection absent, different or unverified
    """
    account = store.find(nft_token_account, TokenAccount) if nft_token_account is not None else None
    if account is None:
        raise InvalidAccount(
            "NFT token account does not exist",
            details={"address": str(nft_token_account)},
        )
    if account.owner != claimant:
        raise Unauthorized(
            "NFT token account is not owned by the claimant",
            details={"owner": str(account.owner), "claimant": str(claimant)},
        )
    if account.mint != nft_mint:
        raise InvalidMintAccount(
            "NFT token account holds a different mint",
            details={"account_mint": str(account.mint), "nft_mint": str(nft_mint)},
        )
    if account.amount != 1:
        raise InvalidTokenAmount(
            f"NFT token account must hold exactly one unit, holds {account.amount}",
            details={"amount": account.amount},
        )

    metadata_address, _ = find_metadata_address(nft_mint)
    metadata = store.find(metadata_address, NftMetadata)
    if metadata is None or metadata.mint != nft_mint:
        raise InvalidMetadata(
            f"No metadata for NFT mint {nft_mint}",
            details={"metadata": str(metadata_address)},
        )

    collection = metadata.collection
    if collection is None or collection.key != collection_mint or not collection.verified:
        raise UnverifiedCollection(
            "NFT is not a verified member of the collection",
            details={
                "collection_mint": str(collection_mint),
                "metadata_collection": str(collection.key) if collection else None,
                "verified": bool(collection and collection.verified),
            },
        )

    logger.debug(f"NFT {nft_mint} held by {claimant} verified in collection {collection_mint}")
    return metadata


__all__ = ["verify_nft_holding"]
