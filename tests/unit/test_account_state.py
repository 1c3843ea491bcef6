"""
Account Record Unit Tests
Tests for vault_program/state.py and vault_program/ownership.py

Covers binary layouts, clone independence and the two-phase ownership
state machine.
"""
import pytest

from vault_core.crypto.derivation import DEFAULT_PROGRAM_ID, EMPTY_KEY, find_vault_signer_address
from vault_core.crypto.hashing import sha256
from vault_core.schemas.distribution import ScheduleType
from vault_core.schemas.errors import InvalidAccount, Unauthorized
from vault_program.ownership import (
    Owned,
    PendingTransfer,
    accept_transfer,
    from_fields,
    propose_transfer,
    require_owner,
)
from vault_program.state import (
    SCHEDULE_DISCRIMINATOR,
    VAULT_DISCRIMINATOR,
    RedeemIndex,
    Schedule,
    Vault,
    bitmap_size,
    new_vault,
)

from fixtures import NOW, key


def _schedule(user_count: int = 10, timestamp: int = 0, schedule_type=ScheduleType.FUNGIBLE_SINGLE) -> Schedule:
    return Schedule(
        address=key("schedule"),
        nonce=254,
        vault_id=key("vault"),
        event_id=77,
        creation_timestamp=NOW,
        timestamp=timestamp,
        merkle_root=sha256(b"root"),
        schedule_type=schedule_type,
        receiving_token_mint=key("mint"),
        receiving_token_account=key("vault-ata"),
        sending_token_mint=EMPTY_KEY,
        sending_token_account=key("fees"),
        is_active=True,
        user_count=user_count,
    )


class TestVaultLayout:

    def test_round_trip_with_pending_owner(self):
        vault = Vault(
            address=key("vault"),
            signer_nonce=253,
            ownership=PendingTransfer(owner=key("alice"), candidate=key("bob")),
            admins=[key("admin-1"), key("admin-2")],
        )
        data = vault.to_bytes()

        assert data[:8] == VAULT_DISCRIMINATOR
        assert len(data) == 8 + 1 + 32 + 32 + 4 + 64
        assert Vault.from_bytes(vault.address, data) == vault

    def test_no_pending_owner_stored_as_zero_key(self):
        vault = new_vault(key("vault"), 255, key("alice"))
        data = vault.to_bytes()

        assert data[41:73] == bytes(32)
        assert Vault.from_bytes(vault.address, data).ownership == Owned(key("alice"))

    def test_wrong_discriminator(self):
        data = _schedule().to_bytes()
        with pytest.raises(InvalidAccount):
            Vault.from_bytes(key("vault"), data)

    def test_truncated_admin_list(self):
        vault = new_vault(key("vault"), 255, key("alice"))
        vault.admins = [key("admin")]
        with pytest.raises(InvalidAccount):
            Vault.from_bytes(vault.address, vault.to_bytes()[:-1])

    def test_signer_recomputed_from_nonce(self):
        address = key("vault")
        signer, nonce = find_vault_signer_address(address, DEFAULT_PROGRAM_ID)
        vault = new_vault(address, nonce, key("alice"))
        assert vault.signer(DEFAULT_PROGRAM_ID) == signer

    def test_is_admin(self):
        vault = new_vault(key("vault"), 255, key("alice"))
        vault.admins = [key("carol")]

        assert vault.is_admin(key("alice"))
        assert vault.is_admin(key("carol"))
        assert not vault.is_admin(key("mallory"))


class TestScheduleLayout:

    def test_bitmap_sized_to_user_count(self):
        assert bitmap_size(1) == 1
        assert bitmap_size(8) == 1
        assert bitmap_size(9) == 2
        assert len(_schedule(user_count=17).redemptions) == 3

    def test_round_trip_preserves_bits(self):
        schedule = _schedule(user_count=20)
        schedule.redemptions[1] = 0b0000_0100
        data = schedule.to_bytes()

        assert data[:8] == SCHEDULE_DISCRIMINATOR
        restored = Schedule.from_bytes(schedule.address, data)
        assert restored == schedule
        assert restored.schedule_type is ScheduleType.FUNGIBLE_SINGLE

    def test_truncated_bitmap(self):
        schedule = _schedule(user_count=20)
        with pytest.raises(InvalidAccount):
            Schedule.from_bytes(schedule.address, schedule.to_bytes()[:-1])

    def test_legacy_flag(self):
        assert _schedule(timestamp=NOW).is_legacy
        assert not _schedule(timestamp=0).is_legacy
        assert not _schedule(timestamp=NOW, schedule_type=ScheduleType.NFT_SPECIFIC).is_legacy

    def test_clone_is_independent(self):
        schedule = _schedule()
        copy = schedule.clone()
        copy.redemptions[0] = 0xFF
        copy.is_active = False

        assert schedule.redemptions[0] == 0
        assert schedule.is_active


class TestRedeemIndexLayout:

    def test_round_trip(self):
        marker = RedeemIndex(
            address=key("marker"),
            nonce=250,
            schedule=key("schedule"),
            index=513,
            nft_mint=EMPTY_KEY,
            is_redeemed=True,
        )
        assert RedeemIndex.from_bytes(marker.address, marker.to_bytes()) == marker


class TestOwnershipStateMachine:
    """Owned(X) -> PendingTransfer(X, Y) -> Owned(Y)."""

    def test_propose_then_accept(self):
        alice, bob = key("alice"), key("bob")
        pending = propose_transfer(Owned(alice), alice, bob)

        assert pending == PendingTransfer(alice, bob)
        assert accept_transfer(pending, bob) == Owned(bob)

    def test_owner_keeps_rights_while_pending(self):
        alice, bob = key("alice"), key("bob")
        pending = propose_transfer(Owned(alice), alice, bob)

        require_owner(pending, alice)
        with pytest.raises(Unauthorized):
            require_owner(pending, bob)

    def test_only_owner_proposes(self):
        with pytest.raises(Unauthorized):
            propose_transfer(Owned(key("alice")), key("mallory"), key("mallory"))

    def test_only_candidate_accepts(self):
        alice, bob = key("alice"), key("bob")
        pending = propose_transfer(Owned(alice), alice, bob)

        with pytest.raises(Unauthorized):
            accept_transfer(pending, key("mallory"))
        with pytest.raises(Unauthorized):
            accept_transfer(pending, alice)

    def test_accept_without_proposal(self):
        with pytest.raises(Unauthorized):
            accept_transfer(Owned(key("alice")), key("alice"))

    def test_new_proposal_replaces_candidate(self):
        alice = key("alice")
        state = propose_transfer(Owned(alice), alice, key("bob"))
        state = propose_transfer(state, alice, key("carol"))

        with pytest.raises(Unauthorized):
            accept_transfer(state, key("bob"))
        assert accept_transfer(state, key("carol")) == Owned(key("carol"))

    def test_empty_key_cancels(self):
        alice = key("alice")
        state = propose_transfer(Owned(alice), alice, key("bob"))
        assert propose_transfer(state, alice, EMPTY_KEY) == Owned(alice)

    def test_from_fields(self):
        assert from_fields(key("a"), EMPTY_KEY) == Owned(key("a"))
        assert from_fields(key("a"), key("b")) == PendingTransfer(key("a"), key("b"))
