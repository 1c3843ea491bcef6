"""
Program - Redemption Trackers
At-most-once bookkeeping for claimed leaf indices.

Two strategies share one interface (is_redeemed / mark_redeemed) and are
picked per schedule type by tracker_for():

- BitmapTracker: one bit per index inside the Schedule account. Used by
  fungible and NFT-specific schedules, where each index has exactly one
  possible claimant.
- MarkerTracker: one RedeemIndex account per claim slot. Used by
  NFT-collection schedules, where any verified holder may claim an index;
  the marker must be initialised (init_redeem_index) before the claim.
"""
from __future__ import annotations

import logging
from typing import Protocol, Union

from solders.pubkey import Pubkey

from vault_core.config.runtime import RedeemIndexScope
from vault_core.crypto.derivation import EMPTY_KEY, find_redeem_index_address
from vault_core.schemas.errors import (
    AlreadyRedeemed,
    IndexNotInitialized,
    IndexOutOfRange,
    InvalidAccount,
)
from vault_program.state import RedeemIndex, Schedule
from vault_program.store import AccountStore


logger = logging.getLogger(__name__)


class RedemptionTracker(Protocol):
    def is_redeemed(self, index: int) -> bool: ...

    def mark_redeemed(self, index: int) -> None: ...


def marker_mint_key(nft_mint: Pubkey, scope: RedeemIndexScope) -> Pubkey:
    """Mint seed of a RedeemIndex: the empty key for per-index exclusivity."""
    return nft_mint if scope is RedeemIndexScope.PER_MINT else EMPTY_KEY


class BitmapTracker:
    """Packed bitmap stored in the schedule (bit i of byte i // 8)."""

    def __init__(self, schedule: Schedule) -> None:
        self.schedule = schedule

    def _locate(self, index: int) -> tuple[int, int]:
        if not 0 <= index < self.schedule.user_count:
            raise IndexOutOfRange(
                f"Index {index} outside schedule of {self.schedule.user_count} users",
                details={"index": index, "user_count": self.schedule.user_count},
            )
        return index // 8, 1 << (index % 8)

    def is_redeemed(self, index: int) -> bool:
        byte, mask = self._locate(index)
        return bool(self.schedule.redemptions[byte] & mask)

    def mark_redeemed(self, index: int) -> None:
        """
        Raises:
            AlreadyRedeemed: If the bit is already set
        """
        byte, mask = self._locate(index)
        if self.schedule.redemptions[byte] & mask:
            raise AlreadyRedeemed(
                f"Index {index} already redeemed",
                details={"schedule": str(self.schedule.address), "index": index},
            )
        self.schedule.redemptions[byte] |= mask

    def redeemed_count(self) -> int:
        return sum(bin(b).count("1") for b in self.schedule.redemptions)


class MarkerTracker:
    """RedeemIndex accounts keyed by (event_id, index, mint key)."""

    def __init__(
        self,
        store: AccountStore,
        schedule: Schedule,
        nft_mint: Pubkey,
        scope: RedeemIndexScope,
        program_id: Pubkey,
    ) -> None:
        self.store = store
        self.schedule = schedule
        self.mint_key = marker_mint_key(nft_mint, scope)
        self.program_id = program_id

    def address(self, index: int) -> Pubkey:
        return find_redeem_index_address(
            self.schedule.event_id, index, self.mint_key, self.program_id
        ).address

    def _marker(self, index: int) -> RedeemIndex:
        address = self.address(index)
        marker = self.store.find(address, RedeemIndex)
        if marker is None:
            raise IndexNotInitialized(
                f"Redeem index {index} has not been initialised",
                details={"schedule": str(self.schedule.address), "index": index, "address": str(address)},
            )
        if marker.schedule != self.schedule.address:
            raise InvalidAccount(
                "Redeem index belongs to another schedule",
                details={"marker_schedule": str(marker.schedule)},
            )
        return marker

    def is_redeemed(self, index: int) -> bool:
        """
        Raises:
            IndexNotInitialized: If the marker account does not exist
        """
        return self._marker(index).is_redeemed

    def mark_redeemed(self, index: int) -> None:
        """
        Raises:
            IndexNotInitialized: If the marker account does not exist
            AlreadyRedeemed: If the marker is already flagged
        """
        marker = self._marker(index)
        if marker.is_redeemed:
            raise AlreadyRedeemed(
                f"Index {index} already redeemed",
                details={"schedule": str(self.schedule.address), "index": index, "marker": str(marker.address)},
            )
        marker.is_redeemed = True


Tracker = Union[BitmapTracker, MarkerTracker]


def tracker_for(
    store: AccountStore,
    schedule: Schedule,
    program_id: Pubkey,
    scope: RedeemIndexScope = RedeemIndexScope.PER_INDEX,
    nft_mint: Pubkey = EMPTY_KEY,
) -> Tracker:
    """Tracker matching the schedule's type."""
    if schedule.schedule_type.uses_marker_accounts:
        return MarkerTracker(store, schedule, nft_mint, scope, program_id)
    return BitmapTracker(schedule)


__all__ = [
    "RedemptionTracker",
    "BitmapTracker",
    "MarkerTracker",
    "Tracker",
    "marker_mint_key",
    "tracker_for",
]
