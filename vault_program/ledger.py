"""
Program - Token Ledger
Simulated token and metadata programs.

The distributor only moves assets; issuing them belongs to external
programs. TokenLedger stands in for those programs so a vault can be
funded and NFTs can be minted into a collection for claims to run
against: mints, token accounts, NFT metadata and native balances, all
kept in the shared AccountStore.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from solders.pubkey import Pubkey

from vault_core.crypto.derivation import find_metadata_address
from vault_core.schemas.errors import AccountNotFound, InvalidInput
from vault_program.store import AccountStore


logger = logging.getLogger(__name__)


@dataclass
class Mint:
    address: Pubkey
    decimals: int = 0
    supply: int = 0

    def clone(self) -> "Mint":
        return replace(self)


@dataclass
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int = 0

    def clone(self) -> "TokenAccount":
        return replace(self)


@dataclass(frozen=True)
class CollectionRef:
    key: Pubkey
    verified: bool = False


@dataclass
class NftMetadata:
    """Metadata of an NFT mint, stored at its derived metadata address."""

    address: Pubkey
    mint: Pubkey
    collection: Optional[CollectionRef] = None

    def clone(self) -> "NftMetadata":
        return replace(self)


class TokenLedger:
    """
    Issuance helpers over an AccountStore.

    Example:
        >>> ledger = TokenLedger(store)
        >>> ledger.create_mint(mint)
        >>> ledger.create_token_account(account, mint, owner)
        >>> ledger.mint_to(account, 1_000)
    """

    def __init__(self, store: AccountStore) -> None:
        self.store = store

    def create_mint(self, address: Pubkey, decimals: int = 0) -> Mint:
        with self.store.transaction():
            return self.store.create(address, Mint(address=address, decimals=decimals))

    def create_token_account(self, address: Pubkey, mint: Pubkey, owner: Pubkey) -> TokenAccount:
        with self.store.transaction():
            if self.store.find(mint, Mint) is None:
                raise AccountNotFound(f"Mint {mint} does not exist", details={"mint": str(mint)})
            account = TokenAccount(address=address, mint=mint, owner=owner)
            return self.store.create(address, account)

    def mint_to(self, account: Pubkey, amount: int) -> TokenAccount:
        if amount < 0:
            raise InvalidInput(f"Negative mint amount: {amount}")
        with self.store.transaction():
            token_account = self.store.find(account, TokenAccount)
            if token_account is None:
                raise AccountNotFound(f"Token account {account} does not exist")
            mint = self.store.load(token_account.mint, Mint)
            mint.supply += amount
            token_account.amount += amount
            return token_account

    def balance(self, account: Pubkey) -> int:
        token_account = self.store.find(account, TokenAccount)
        if token_account is None:
            raise AccountNotFound(f"Token account {account} does not exist")
        return token_account.amount

    def airdrop(self, address: Pubkey, lamports: int) -> None:
        with self.store.transaction():
            self.store.credit_lamports(address, lamports)

    def create_metadata(
        self,
        mint: Pubkey,
        collection: Optional[Pubkey] = None,
        verified: bool = False,
    ) -> NftMetadata:
        address, _ = find_metadata_address(mint)
        ref = CollectionRef(key=collection, verified=verified) if collection is not None else None
        with self.store.transaction():
            return self.store.create(address, NftMetadata(address=address, mint=mint, collection=ref))

    def mint_nft(
        self,
        mint: Pubkey,
        account: Pubkey,
        owner: Pubkey,
        collection: Optional[Pubkey] = None,
        verified: bool = True,
    ) -> TokenAccount:
        """Create a one-supply mint, its metadata and the holder's account."""
        with self.store.transaction():
            self.create_mint(mint)
            self.create_metadata(mint, collection, verified)
            self.create_token_account(account, mint, owner)
            token_account = self.mint_to(account, 1)
        logger.debug(f"Minted NFT {mint} to {owner} (collection {collection})")
        return token_account

    def move_nft(self, source: Pubkey, destination: Pubkey) -> None:
        """Hand an NFT to another holder's account (same mint)."""
        with self.store.transaction():
            src = self.store.load(source, TokenAccount)
            dst = self.store.load(destination, TokenAccount)
            if src.mint != dst.mint or src.amount < 1:
                raise InvalidInput("NFT cannot be moved between these accounts")
            src.amount -= 1
            dst.amount += 1


__all__ = [
    "Mint",
    "TokenAccount",
    "CollectionRef",
    "NftMetadata",
    "TokenLedger",
]
