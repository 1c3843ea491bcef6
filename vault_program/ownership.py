"""
Vault ownership state machine.

    Owned(X) --propose(X -> Y)--> PendingTransfer(X, Y) --accept(Y)--> Owned(Y)

While a transfer is pending, X remains the owner for every owner-only
action. Only the named candidate can accept. X may re-propose (replacing
the candidate) or cancel by proposing the empty key.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from solders.pubkey import Pubkey

from vault_core.crypto.derivation import EMPTY_KEY
from vault_core.schemas.errors import Unauthorized


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owned:
    owner: Pubkey

    @property
    def candidate(self) -> None:
        return None


@dataclass(frozen=True)
class PendingTransfer:
    owner: Pubkey
    candidate: Pubkey


OwnershipState = Union[Owned, PendingTransfer]


def require_owner(state: OwnershipState, caller: Pubkey) -> None:
    """
    Raises:
        Unauthorized: If caller is not the current owner
    """
    if caller != state.owner:
        raise Unauthorized(
            "Signer is not the vault owner",
            details={"signer": str(caller), "owner": str(state.owner)},
        )


def propose_transfer(state: OwnershipState, caller: Pubkey, candidate: Pubkey) -> OwnershipState:
    """
    Owner names a new owner. Proposing the empty key cancels a pending transfer.

    Raises:
        Unauthorized: If caller is not the current owner
    """
    require_owner(state, caller)
    if candidate == EMPTY_KEY:
        return Owned(state.owner)
    return PendingTransfer(owner=state.owner, candidate=candidate)


def accept_transfer(state: OwnershipState, caller: Pubkey) -> Owned:
    """
    Named candidate takes ownership.

    Raises:
        Unauthorized: If no transfer is pending or caller is not the candidate
    """
    if not isinstance(state, PendingTransfer) or caller != state.candidate:
        raise Unauthorized(
            "Signer is not the pending new owner",
            details={"signer": str(caller), "candidate": str(state.candidate or EMPTY_KEY)},
        )
    logger.debug(f"Ownership moves from {state.owner} to {state.candidate}")
    return Owned(state.candidate)


def from_fields(owner: Pubkey, pending_new_owner: Pubkey) -> OwnershipState:
    """Rebuild the state from the stored (owner, pending_new_owner) pair."""
    if pending_new_owner == EMPTY_KEY:
        return Owned(owner)
    return PendingTransfer(owner=owner, candidate=pending_new_owner)


__all__ = [
    "Owned",
    "PendingTransfer",
    "OwnershipState",
    "require_owner",
    "propose_transfer",
    "accept_transfer",
    "from_fields",
]
