"""
Program - Transfer Execution
Moves tokens and lamports for claims and withdrawals.

A mint equal to NATIVE_MINT (the system program id) routes a leg through
lamports instead of token accounts. Every failure raises a TransferError
subtype (or Unauthorized when the authority does not own the source);
the enclosing transaction rolls back any leg already applied.
"""
from __future__ import annotations

import logging
from typing import Optional

from solders.pubkey import Pubkey

from vault_core.crypto.derivation import NATIVE_MINT
from vault_core.schemas.errors import (
    AccountNotFound,
    InsufficientFunds,
    InvalidInput,
    MintMismatch,
    Unauthorized,
)
from vault_program.ledger import TokenAccount
from vault_program.store import AccountStore


logger = logging.getLogger(__name__)


def _token_account(store: AccountStore, address: Optional[Pubkey], role: str) -> TokenAccount:
    account = store.find(address, TokenAccount) if address is not None else None
    if account is None:
        raise AccountNotFound(
            f"{role} token account {address} does not exist",
            details={"role": role, "address": str(address)},
        )
    return account


def transfer_token(
    store: AccountStore,
    authority: Pubkey,
    source: Optional[Pubkey],
    destination: Optional[Pubkey],
    amount: int,
    expected_mint: Optional[Pubkey] = None,
) -> None:
    """
    Move `amount` units between two token accounts of the same mint.

    Raises:
        AccountNotFound: Source or destination missing
        Unauthorized: `authority` does not own the source account
        MintMismatch: Accounts hold different mints, or not `expected_mint`
        InsufficientFunds: Source balance below `amount`
    """
    if amount < 0:
        raise InvalidInput(f"Negative transfer amount: {amount}")

    src = _token_account(store, source, "source")
    dst = _token_account(store, destination, "destination")

    if src.owner != authority:
        raise Unauthorized(
            "Transfer authority does not own the source account",
            details={"authority": str(authority), "owner": str(src.owner)},
        )
    if src.mint != dst.mint or (expected_mint is not None and src.mint != expected_mint):
        raise MintMismatch(
            "Token accounts do not hold the expected mint",
            details={
                "source_mint": str(src.mint),
                "destination_mint": str(dst.mint),
                "expected_mint": str(expected_mint) if expected_mint else None,
            },
        )
    if src.amount < amount:
        raise InsufficientFunds(
            f"Insufficient balance in {src.address}",
            details={"address": str(src.address), "balance": src.amount, "required": amount},
        )

    src.amount -= amount
    dst.amount += amount
    logger.debug(f"Transferred {amount} of {src.mint} from {src.address} to {dst.address}")


def transfer_lamports(store: AccountStore, source: Pubkey, destination: Pubkey, amount: int) -> None:
    """
    Raises:
        InsufficientFunds: Source balance below `amount`
    """
    store.debit_lamports(source, amount)
    store.credit_lamports(destination, amount)
    logger.debug(f"Transferred {amount} lamports from {source} to {destination}")


def transfer_asset(
    store: AccountStore,
    mint: Pubkey,
    authority: Pubkey,
    source: Optional[Pubkey],
    destination: Optional[Pubkey],
    amount: int,
    native_destination: Optional[Pubkey] = None,
) -> None:
    """
    Move `amount` of `mint`, as lamports when `mint` is the native sentinel.

    For native legs `authority` pays and `native_destination` (defaulting
    to `destination`) receives.
    """
    if mint == NATIVE_MINT:
        transfer_lamports(store, authority, native_destination or destination, amount)
    else:
        transfer_token(store, authority, source, destination, amount, expected_mint=mint)


__all__ = [
    "transfer_token",
    "transfer_lamports",
    "transfer_asset",
]
