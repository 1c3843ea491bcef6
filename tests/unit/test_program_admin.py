"""
Vault Administration Tests
Tests for vault creation, admin sets, two-phase ownership, withdrawals
and schedule lifecycle on VaultProgram
"""
import pytest

from vault_core.config.runtime import ProgramConfig
from vault_core.crypto.derivation import EMPTY_KEY, NATIVE_MINT, find_vault_address
from vault_core.crypto.hashing import sha256
from vault_core.schemas.distribution import ScheduleType
from vault_core.schemas.errors import (
    AccountAlreadyExists,
    InsufficientFunds,
    InvalidAccount,
    InvalidInput,
    InvalidScheduleType,
    Unauthorized,
)
from vault_program.ownership import Owned, PendingTransfer
from vault_program.program import VaultProgram
from vault_program.state import Schedule, Vault

from fixtures import NOW, key, make_allocations, make_harness


ROOT = sha256(b"root")


def create_schedule(h, signer=None, **overrides):
    kwargs = dict(
        event_id=10,
        merkle_root=ROOT,
        schedule_type=ScheduleType.FUNGIBLE_SINGLE,
        user_count=4,
        receiving_token_mint=h.mint,
        receiving_token_account=h.vault_token_account,
    )
    kwargs.update(overrides)
    return h.program.create_schedule(signer or h.owner, h.vault.address, **kwargs)


class TestCreateVault:

    def test_vault_at_derived_address(self):
        program = VaultProgram(clock=lambda: NOW)
        vault = program.create_vault(key("owner"), "airdrop")

        assert vault.address == find_vault_address("airdrop", program.program_id).address
        assert vault.ownership == Owned(key("owner"))
        assert vault.admins == []
        assert program.store.load(vault.address, Vault) is vault

    def test_same_name_twice(self):
        program = VaultProgram(clock=lambda: NOW)
        program.create_vault(key("owner"), "airdrop")
        with pytest.raises(AccountAlreadyExists):
            program.create_vault(key("someone-else"), "airdrop")

    def test_supplied_address_must_match(self):
        program = VaultProgram(clock=lambda: NOW)
        with pytest.raises(InvalidAccount):
            program.create_vault(key("owner"), "airdrop", vault_address=key("wrong"))

    def test_program_id_from_config(self):
        program_id = key("custom-program")
        program = VaultProgram(config=ProgramConfig(program_id=str(program_id)), clock=lambda: NOW)
        vault = program.create_vault(key("owner"), "airdrop")
        assert vault.address == find_vault_address("airdrop", program_id).address


class TestAdmins:

    def test_owner_sets_admins(self, harness):
        carol = key("carol")
        vault = harness.program.set_vault(harness.owner, harness.vault.address, [carol, carol])
        assert vault.admins == [carol]

    def test_admin_cannot_set_admins(self, harness):
        carol = key("carol")
        harness.program.set_vault(harness.owner, harness.vault.address, [carol])
        with pytest.raises(Unauthorized):
            harness.program.set_vault(carol, harness.vault.address, [carol, key("dave")])

    def test_admin_creates_schedule(self, harness):
        carol = key("carol")
        harness.program.set_vault(harness.owner, harness.vault.address, [carol])
        schedule = create_schedule(harness, signer=carol)
        assert schedule.is_active

    def test_stranger_cannot_create_schedule(self, harness):
        with pytest.raises(Unauthorized):
            create_schedule(harness, signer=key("mallory"))

    def test_removed_admin_loses_rights(self, harness):
        carol = key("carol")
        harness.program.set_vault(harness.owner, harness.vault.address, [carol])
        harness.program.set_vault(harness.owner, harness.vault.address, [])
        with pytest.raises(Unauthorized):
            create_schedule(harness, signer=carol)


class TestOwnershipTransfer:

    def test_two_phase_transfer(self, harness):
        program, vault_address = harness.program, harness.vault.address
        alice, bob = harness.owner, key("bob")

        vault = program.transfer_ownership(alice, vault_address, bob)
        assert vault.ownership == PendingTransfer(alice, bob)
        assert vault.pending_new_owner == bob

        # the current owner keeps full rights until acceptance
        program.set_vault(alice, vault_address, [key("carol")])
        with pytest.raises(Unauthorized):
            program.set_vault(bob, vault_address, [])

        vault = program.accept_ownership(bob, vault_address)
        assert vault.owner == bob
        assert vault.pending_new_owner == EMPTY_KEY
        program.set_vault(bob, vault_address, [])
        with pytest.raises(Unauthorized):
            program.set_vault(alice, vault_address, [])

    def test_only_candidate_accepts(self, harness):
        harness.program.transfer_ownership(harness.owner, harness.vault.address, key("bob"))
        with pytest.raises(Unauthorized):
            harness.program.accept_ownership(key("mallory"), harness.vault.address)

    def test_admin_cannot_propose(self, harness):
        carol = key("carol")
        harness.program.set_vault(harness.owner, harness.vault.address, [carol])
        with pytest.raises(Unauthorized):
            harness.program.transfer_ownership(carol, harness.vault.address, carol)

    def test_cancel_with_empty_key(self, harness):
        program = harness.program
        program.transfer_ownership(harness.owner, harness.vault.address, key("bob"))
        vault = program.transfer_ownership(harness.owner, harness.vault.address, EMPTY_KEY)

        assert vault.ownership == Owned(harness.owner)
        with pytest.raises(Unauthorized):
            program.accept_ownership(key("bob"), harness.vault.address)


class TestWithdrawals:

    def test_withdraw_token(self, harness):
        destination = harness.token_account(key("treasury"))
        harness.program.withdraw_token(
            harness.owner, harness.vault.address, harness.vault_token_account, destination, 400
        )
        assert harness.ledger.balance(destination) == 400
        assert harness.ledger.balance(harness.vault_token_account) == 1_000_000 - 400

    def test_admin_withdraws_sol(self, harness):
        carol = key("carol")
        harness.program.set_vault(harness.owner, harness.vault.address, [carol])
        harness.ledger.airdrop(harness.vault_signer, 100)

        harness.program.withdraw_sol(carol, harness.vault.address, key("treasury"), 60)

        assert harness.store.lamports(harness.vault_signer) == 40
        assert harness.store.lamports(key("treasury")) == 60

    def test_stranger_cannot_withdraw(self, harness):
        destination = harness.token_account(key("mallory"))
        with pytest.raises(Unauthorized):
            harness.program.withdraw_token(
                key("mallory"), harness.vault.address, harness.vault_token_account, destination, 1
            )
        with pytest.raises(Unauthorized):
            harness.program.withdraw_sol(key("mallory"), harness.vault.address, key("mallory"), 1)

    def test_withdraw_more_than_held(self, harness):
        destination = harness.token_account(key("treasury"))
        with pytest.raises(InsufficientFunds):
            harness.program.withdraw_token(
                harness.owner, harness.vault.address, harness.vault_token_account, destination, 1_000_001
            )
        assert harness.ledger.balance(harness.vault_token_account) == 1_000_000

    def test_source_must_belong_to_vault_signer(self, harness):
        foreign = harness.token_account(key("someone"))
        harness.ledger.mint_to(foreign, 10)
        with pytest.raises(Unauthorized):
            harness.program.withdraw_token(
                harness.owner, harness.vault.address, foreign, harness.vault_token_account, 10
            )


class TestScheduleLifecycle:

    def test_schedule_fields(self, harness):
        harness.clock.now = NOW + 5
        schedule = create_schedule(harness, timestamp=NOW + 100)

        assert schedule.address == harness.program.schedule_address(10)
        assert schedule.vault_id == harness.vault.address
        assert schedule.creation_timestamp == NOW + 5
        assert schedule.merkle_root == ROOT
        assert schedule.is_active
        assert schedule.is_legacy
        assert len(schedule.redemptions) == 1
        assert harness.store.load(schedule.address, Schedule) is schedule

    def test_duplicate_event_id(self, harness):
        create_schedule(harness)
        with pytest.raises(AccountAlreadyExists):
            create_schedule(harness, merkle_root=sha256(b"other root"))
        assert harness.store.load(harness.program.schedule_address(10), Schedule).merkle_root == ROOT

    def test_unknown_schedule_type(self, harness):
        with pytest.raises(InvalidScheduleType):
            create_schedule(harness, schedule_type=7)

    def test_schedule_type_from_int(self, harness):
        schedule = create_schedule(harness, schedule_type=3)
        assert schedule.schedule_type is ScheduleType.NFT_COLLECTION

    @pytest.mark.parametrize("overrides", [
        {"merkle_root": b"short"},
        {"user_count": 0},
        {"user_count": 65_536},
        {"timestamp": -1},
    ])
    def test_malformed_schedule(self, harness, overrides):
        with pytest.raises(InvalidInput):
            create_schedule(harness, **overrides)

    def test_supplied_schedule_address_must_match(self, harness):
        with pytest.raises(InvalidAccount):
            create_schedule(harness, schedule_address=key("wrong"))

    def test_status_requires_admin(self, harness):
        schedule = create_schedule(harness)
        with pytest.raises(Unauthorized):
            harness.program.set_schedule_status(key("mallory"), harness.vault.address, schedule.address, False)

    def test_schedule_of_another_vault(self, harness):
        schedule = create_schedule(harness)
        other = harness.program.create_vault(key("other-owner"), "other-vault")

        with pytest.raises(InvalidAccount):
            harness.program.set_schedule_status(key("other-owner"), other.address, schedule.address, False)

    def test_native_schedule_needs_no_token_account(self, harness):
        schedule = create_schedule(harness, receiving_token_mint=NATIVE_MINT, receiving_token_account=EMPTY_KEY)
        assert schedule.receiving_token_mint == NATIVE_MINT


class TestPersistedState:
    """Records written by instructions survive their binary layouts."""

    def test_vault_and_schedule_round_trip(self, harness):
        harness.program.set_vault(harness.owner, harness.vault.address, [key("carol")])
        harness.program.transfer_ownership(harness.owner, harness.vault.address, key("bob"))
        schedule, _ = harness.publish(make_allocations(3))

        vault = harness.store.load(harness.vault.address, Vault)
        assert Vault.from_bytes(vault.address, vault.to_bytes()) == vault
        assert Schedule.from_bytes(schedule.address, schedule.to_bytes()) == schedule

    def test_events_start_empty(self):
        assert make_harness().program.events == []
