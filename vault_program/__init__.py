"""
Vault Program

In-memory execution of the Merkle vault distributor: account records,
the transactional account store, the simulated token ledger, and the
VaultProgram instruction processor.
"""

from .ledger import CollectionRef, Mint, NftMetadata, TokenAccount, TokenLedger
from .ownership import Owned, OwnershipState, PendingTransfer
from .program import VaultProgram
from .state import RedeemIndex, Schedule, Vault
from .store import AccountStore
from .tracker import BitmapTracker, MarkerTracker, tracker_for

__all__ = [
    "AccountStore",
    "BitmapTracker",
    "CollectionRef",
    "MarkerTracker",
    "Mint",
    "NftMetadata",
    "Owned",
    "OwnershipState",
    "PendingTransfer",
    "RedeemIndex",
    "Schedule",
    "TokenAccount",
    "TokenLedger",
    "Vault",
    "VaultProgram",
    "tracker_for",
]
