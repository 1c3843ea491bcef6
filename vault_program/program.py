"""
Program - Instruction Processor
VaultProgram executes every instruction of the distributor against an
AccountStore.

Instructions:
- Vault administration: create_vault, set_vault, transfer_ownership,
  accept_ownership, withdraw_sol, withdraw_token
- Schedules: create_schedule, set_schedule_status
- Claims: redeem (fungible), redeem_nft (NFT specific),
  init_redeem_index + redeem_nft_collection (NFT collection)

Each instruction runs in one store transaction: it either applies every
write (tracker mark, transfers, new accounts) or none of them.

Claim pipeline:
1. Load vault and schedule, re-derive the schedule address, check the
   schedule type and that it is active
2. Unlock time (schedule-wide for legacy schedules, per leaf otherwise)
3. Index range, then leaf construction in the schedule's encoding
4. Merkle proof against the stored root
5. NFT holding and collection checks (NFT schedules)
6. At-most-once mark in the schedule's tracker
7. Sending leg (claimant -> schedule) then receiving leg (vault -> claimant)
8. RedemptionRecord appended to `events`
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Sequence, Type, Union

from pydantic import ValidationError as PydanticValidationError
from solders.pubkey import Pubkey

from vault_core.config.runtime import ProgramConfig, RedeemIndexScope, get_default_config
from vault_core.crypto.derivation import (
    EMPTY_KEY,
    MAX_U16,
    NATIVE_MINT,
    expect_address,
    find_redeem_index_address,
    find_schedule_address,
    find_vault_address,
    find_vault_signer_address,
)
from vault_core.crypto.hashing import to_hex
from vault_core.merkle.leaves import Leaf
from vault_core.merkle.merkle_proofs import MerkleVerifier
from vault_core.merkle.merkle_tree import MerkleProof, ProofStep
from vault_core.schemas.distribution import (
    I64_MAX,
    Allocation,
    NftAllocation,
    RedeemType,
    RedemptionRecord,
    ScheduleType,
)
from vault_core.schemas.errors import (
    AccountNotFound,
    IndexOutOfRange,
    InvalidAccount,
    InvalidInput,
    InvalidScheduleType,
    LeafMismatch,
    ScheduleInactive,
    ScheduleLocked,
    Unauthorized,
    VaultException,
    WrongScheduleType,
)
from vault_program.nft import verify_nft_holding
from vault_program.ownership import accept_transfer, propose_transfer, require_owner
from vault_program.state import RedeemIndex, Schedule, Vault, new_vault
from vault_program.store import AccountStore
from vault_program.tracker import MarkerTracker, marker_mint_key, tracker_for
from vault_program.transfers import transfer_asset, transfer_lamports, transfer_token


logger = logging.getLogger(__name__)

ProofInput = Union[MerkleProof, Sequence[ProofStep]]

_FUNGIBLE = (ScheduleType.FUNGIBLE_SINGLE, ScheduleType.FUNGIBLE_MULTI)


def _proof_steps(proof: ProofInput) -> list[ProofStep]:
    steps = proof.steps if isinstance(proof, MerkleProof) else list(proof)
    for step in steps:
        if not isinstance(step, ProofStep):
            raise InvalidInput(
                "Proof must be a sequence of ProofStep",
                details={"got": type(step).__name__},
            )
    return steps


def _build_leaf(model: Type[Leaf], fields: dict[str, Any]) -> Leaf:
    try:
        return model(**fields)
    except PydanticValidationError as e:
        raise InvalidInput(
            f"Invalid claim fields: {e.error_count()} error(s)",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


class VaultProgram:
    """
    Merkle vault distributor.

    Example:
        >>> program = VaultProgram(clock=lambda: 1_700_000_000)
        >>> vault = program.create_vault(owner, "airdrop")
        >>> schedule = program.create_schedule(owner, vault.address, event_id=1, ...)
        >>> program.redeem(alice, vault.address, schedule.address, index=0, ...)
    """

    def __init__(
        self,
        store: Optional[AccountStore] = None,
        config: Optional[ProgramConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.store = store or AccountStore()
        self.config = config or get_default_config().program
        self.program_id = self.config.program_pubkey
        self.clock = clock or (lambda: int(time.time()))
        self.events: list[RedemptionRecord] = []

    @property
    def redeem_index_scope(self) -> RedeemIndexScope:
        return self.config.redeem_index_scope

    # -------------------------------------------------------------------------
    # Addresses
    # -------------------------------------------------------------------------

    def vault_address(self, vault_name: str) -> Pubkey:
        return find_vault_address(vault_name, self.program_id).address

    def vault_signer(self, vault: Pubkey) -> Pubkey:
        return find_vault_signer_address(vault, self.program_id).address

    def schedule_address(self, event_id: int) -> Pubkey:
        return find_schedule_address(event_id, self.program_id).address

    def redeem_index_address(self, event_id: int, index: int, nft_mint: Pubkey = EMPTY_KEY) -> Pubkey:
        """Marker address under the configured scope."""
        mint_key = marker_mint_key(nft_mint, self.redeem_index_scope)
        return find_redeem_index_address(event_id, index, mint_key, self.program_id).address

    # -------------------------------------------------------------------------
    # Loading and authorization
    # -------------------------------------------------------------------------

    def _load_vault(self, vault_address: Pubkey) -> Vault:
        return self.store.load(vault_address, Vault)

    def _load_schedule(self, vault: Vault, schedule_address: Pubkey) -> Schedule:
        schedule = self.store.load(schedule_address, Schedule)
        expect_address(schedule_address, self.schedule_address(schedule.event_id), "Schedule")
        if schedule.vault_id != vault.address:
            raise InvalidAccount(
                "Schedule does not belong to this vault",
                details={"schedule": str(schedule_address), "vault": str(vault.address)},
            )
        return schedule

    @staticmethod
    def _require_admin(vault: Vault, signer: Pubkey) -> None:
        if not vault.is_admin(signer):
            raise Unauthorized(
                "Signer is neither owner nor admin of the vault",
                details={"signer": str(signer), "vault": str(vault.address)},
            )

    # -------------------------------------------------------------------------
    # Vault administration
    # -------------------------------------------------------------------------

    def create_vault(
        self,
        owner: Pubkey,
        vault_name: str,
        vault_address: Optional[Pubkey] = None,
    ) -> Vault:
        """
        Create the vault derived from `vault_name`, owned by `owner`.

        Raises:
            InvalidAccount: Supplied address differs from the derived one
            AccountAlreadyExists: A vault with this name already exists
        """
        address = self.vault_address(vault_name)
        if vault_address is not None:
            expect_address(vault_address, address, "Vault")
        _, signer_nonce = find_vault_signer_address(address, self.program_id)

        with self.store.transaction():
            vault = self.store.create(address, new_vault(address, signer_nonce, owner))

        logger.info(f"Created vault {address} ({vault_name!r}) owned by {owner}")
        return vault

    def set_vault(self, signer: Pubkey, vault_address: Pubkey, admins: Sequence[Pubkey]) -> Vault:
        """Replace the admin set. Owner only."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            require_owner(vault.ownership, signer)
            vault.admins = list(dict.fromkeys(admins))

        logger.info(f"Vault {vault_address} admins set to {len(vault.admins)} key(s)")
        return vault

    def transfer_ownership(self, signer: Pubkey, vault_address: Pubkey, new_owner: Pubkey) -> Vault:
        """Propose `new_owner`. Owner only; the empty key cancels a pending proposal."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            vault.ownership = propose_transfer(vault.ownership, signer, new_owner)

        logger.info(f"Vault {vault_address} ownership proposed to {new_owner}")
        return vault

    def accept_ownership(self, signer: Pubkey, vault_address: Pubkey) -> Vault:
        """Pending candidate becomes owner."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            vault.ownership = accept_transfer(vault.ownership, signer)

        logger.info(f"Vault {vault_address} ownership accepted by {signer}")
        return vault

    def withdraw_sol(self, signer: Pubkey, vault_address: Pubkey, recipient: Pubkey, amount: int) -> None:
        """Move lamports out of the vault signer. Owner or admin."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            self._require_admin(vault, signer)
            transfer_lamports(self.store, vault.signer(self.program_id), recipient, amount)

        logger.info(f"Withdrew {amount} lamports from vault {vault_address} to {recipient}")

    def withdraw_token(
        self,
        signer: Pubkey,
        vault_address: Pubkey,
        source_token_account: Pubkey,
        recipient_token_account: Pubkey,
        amount: int,
    ) -> None:
        """Move tokens out of a vault-signer account. Owner or admin."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            self._require_admin(vault, signer)
            transfer_token(
                self.store,
                vault.signer(self.program_id),
                source_token_account,
                recipient_token_account,
                amount,
            )

        logger.info(
            f"Withdrew {amount} tokens from {source_token_account} to {recipient_token_account}"
        )

    # -------------------------------------------------------------------------
    # Schedules
    # -------------------------------------------------------------------------

    def create_schedule(
        self,
        signer: Pubkey,
        vault_address: Pubkey,
        *,
        event_id: int,
        merkle_root: bytes,
        schedule_type: Union[ScheduleType, int],
        user_count: int,
        receiving_token_mint: Pubkey,
        receiving_token_account: Pubkey = EMPTY_KEY,
        sending_token_mint: Pubkey = NATIVE_MINT,
        sending_token_account: Pubkey = EMPTY_KEY,
        timestamp: int = 0,
        schedule_address: Optional[Pubkey] = None,
    ) -> Schedule:
        """
        Commit a distribution event to a Merkle root. Owner or admin.

        A positive `timestamp` makes this a legacy schedule: claims unlock
        at that time and leaves are encoded without their own timestamp.

        Raises:
            InvalidScheduleType: Unknown schedule type
            InvalidInput: Malformed root, user count or timestamp
            Unauthorized: Signer is neither owner nor admin
            AccountAlreadyExists: A schedule for `event_id` already exists
        """
        try:
            schedule_type = ScheduleType(schedule_type)
        except ValueError as e:
            raise InvalidScheduleType(
                f"Unknown schedule type: {schedule_type}",
                details={"schedule_type": schedule_type},
            ) from e
        if not isinstance(merkle_root, (bytes, bytearray)) or len(merkle_root) != 32:
            raise InvalidInput("merkle_root must be 32 bytes")
        if not 1 <= user_count <= MAX_U16:
            raise InvalidInput(f"user_count out of range: {user_count}")
        if not 0 <= timestamp <= I64_MAX:
            raise InvalidInput(f"timestamp out of range: {timestamp}")

        address, nonce = find_schedule_address(event_id, self.program_id)
        if schedule_address is not None:
            expect_address(schedule_address, address, "Schedule")

        with self.store.transaction():
            vault = self._load_vault(vault_address)
            self._require_admin(vault, signer)
            schedule = Schedule(
                address=address,
                nonce=nonce,
                vault_id=vault.address,
                event_id=event_id,
                creation_timestamp=self.clock(),
                timestamp=timestamp,
                merkle_root=bytes(merkle_root),
                schedule_type=schedule_type,
                receiving_token_mint=receiving_token_mint,
                receiving_token_account=receiving_token_account,
                sending_token_mint=sending_token_mint,
                sending_token_account=sending_token_account,
                is_active=True,
                user_count=user_count,
            )
            self.store.create(address, schedule)

        logger.info(
            f"Created {schedule_type.name} schedule {address} for event {event_id} "
            f"({user_count} users, root {to_hex(schedule.merkle_root)})"
        )
        return schedule

    def set_schedule_status(
        self,
        signer: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        is_active: bool,
    ) -> Schedule:
        """Activate or deactivate claims. Owner or admin."""
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            self._require_admin(vault, signer)
            schedule = self._load_schedule(vault, schedule_address)
            schedule.is_active = bool(is_active)

        logger.info(f"Schedule {schedule_address} {'activated' if is_active else 'deactivated'}")
        return schedule

    def init_redeem_index(
        self,
        signer: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        index: int,
        nft_mint: Pubkey = EMPTY_KEY,
        redeem_index: Optional[Pubkey] = None,
    ) -> RedeemIndex:
        """
        Open the claim slot of an NFT-collection index. Any signer.

        Under PER_INDEX scope there is one slot per index; under PER_MINT
        one per (index, nft_mint).

        Raises:
            WrongScheduleType: Schedule is not an NFT-collection schedule
            IndexOutOfRange: Index not below the schedule's user count
            InvalidAccount: Supplied marker address differs from the derived one
            AccountAlreadyExists: The slot is already open
        """
        with self.store.transaction():
            vault = self._load_vault(vault_address)
            schedule = self._load_schedule(vault, schedule_address)
            if schedule.schedule_type is not ScheduleType.NFT_COLLECTION:
                raise WrongScheduleType(
                    "Redeem indices exist only for NFT-collection schedules",
                    details={"schedule_type": schedule.schedule_type.name},
                )
            self._check_index(schedule, index)

            mint_key = marker_mint_key(nft_mint, self.redeem_index_scope)
            address, nonce = find_redeem_index_address(schedule.event_id, index, mint_key, self.program_id)
            if redeem_index is not None:
                expect_address(redeem_index, address, "RedeemIndex")
            marker = self.store.create(address, RedeemIndex(
                address=address,
                nonce=nonce,
                schedule=schedule.address,
                index=index,
                nft_mint=mint_key,
            ))

        logger.info(f"Initialised redeem index {index} of schedule {schedule_address} by {signer}")
        return marker

    # -------------------------------------------------------------------------
    # Claims
    # -------------------------------------------------------------------------

    def redeem(
        self,
        claimant: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        *,
        index: int,
        receiving_amount: int,
        proof: ProofInput,
        timestamp: Optional[int] = None,
        sending_amount: int = 0,
        receiving_token_mint: Optional[Pubkey] = None,
        recipient_token_account: Optional[Pubkey] = None,
        vault_token_account: Optional[Pubkey] = None,
        fee_token_account: Optional[Pubkey] = None,
    ) -> RedemptionRecord:
        """
        Claim a fungible allocation (single or multi-token schedule).

        `timestamp` is the leaf's unlock time; legacy schedules unlock at
        their own timestamp and reject one given here.
        `receiving_token_mint` is required by multi-token schedules and
        must be omitted for single-token ones.
        """
        fields = {
            "index": index,
            "timestamp": timestamp,
            "recipient": claimant,
            "receiving_amount": receiving_amount,
            "sending_amount": sending_amount,
            "receiving_token_mint": receiving_token_mint,
        }
        return self._claim(
            instruction="redeem",
            allowed=_FUNGIBLE,
            claimant=claimant,
            vault_address=vault_address,
            schedule_address=schedule_address,
            index=index,
            timestamp=timestamp,
            leaf_model=Allocation,
            leaf_fields=fields,
            proof=proof,
            recipient_token_account=recipient_token_account,
            vault_token_account=vault_token_account,
            fee_token_account=fee_token_account,
        )

    def redeem_nft(
        self,
        claimant: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        *,
        index: int,
        timestamp: int,
        nft_mint: Pubkey,
        collection_mint: Pubkey,
        receiving_amount: int,
        proof: ProofInput,
        nft_token_account: Pubkey,
        sending_amount: int = 0,
        recipient_token_account: Optional[Pubkey] = None,
        vault_token_account: Optional[Pubkey] = None,
        fee_token_account: Optional[Pubkey] = None,
    ) -> RedemptionRecord:
        """Claim the allocation bound to one specific NFT."""
        fields = {
            "redeem_type": RedeemType.SPECIFIC,
            "index": index,
            "timestamp": timestamp,
            "nft_mint": nft_mint,
            "collection_mint": collection_mint,
            "receiving_amount": receiving_amount,
            "sending_amount": sending_amount,
        }
        return self._claim(
            instruction="redeem_nft",
            allowed=(ScheduleType.NFT_SPECIFIC,),
            claimant=claimant,
            vault_address=vault_address,
            schedule_address=schedule_address,
            index=index,
            timestamp=timestamp,
            leaf_model=NftAllocation,
            leaf_fields=fields,
            proof=proof,
            recipient_token_account=recipient_token_account,
            vault_token_account=vault_token_account,
            fee_token_account=fee_token_account,
            nft_mint=nft_mint,
            collection_mint=collection_mint,
            nft_token_account=nft_token_account,
        )

    def redeem_nft_collection(
        self,
        claimant: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        *,
        index: int,
        timestamp: int,
        nft_mint: Pubkey,
        collection_mint: Pubkey,
        receiving_amount: int,
        proof: ProofInput,
        nft_token_account: Pubkey,
        sending_amount: int = 0,
        redeem_index: Optional[Pubkey] = None,
        recipient_token_account: Optional[Pubkey] = None,
        vault_token_account: Optional[Pubkey] = None,
        fee_token_account: Optional[Pubkey] = None,
    ) -> RedemptionRecord:
        """
        Claim a collection allocation with any verified NFT of the collection.

        The leaf does not name the NFT; `nft_mint` is the one the claimant
        presents. The slot must have been opened with init_redeem_index.
        """
        fields = {
            "redeem_type": RedeemType.COLLECTION,
            "index": index,
            "timestamp": timestamp,
            "collection_mint": collection_mint,
            "receiving_amount": receiving_amount,
            "sending_amount": sending_amount,
        }
        return self._claim(
            instruction="redeem_nft_collection",
            allowed=(ScheduleType.NFT_COLLECTION,),
            claimant=claimant,
            vault_address=vault_address,
            schedule_address=schedule_address,
            index=index,
            timestamp=timestamp,
            leaf_model=NftAllocation,
            leaf_fields=fields,
            proof=proof,
            recipient_token_account=recipient_token_account,
            vault_token_account=vault_token_account,
            fee_token_account=fee_token_account,
            nft_mint=nft_mint,
            collection_mint=collection_mint,
            nft_token_account=nft_token_account,
            redeem_index=redeem_index,
        )

    @staticmethod
    def _check_index(schedule: Schedule, index: int) -> None:
        if not 0 <= index < schedule.user_count:
            raise IndexOutOfRange(
                f"Index {index} outside schedule of {schedule.user_count} users",
                details={"index": index, "user_count": schedule.user_count},
            )

    def _check_unlocked(self, schedule: Schedule, leaf_timestamp: Optional[int]) -> None:
        unlock_at = schedule.timestamp if schedule.is_legacy else (leaf_timestamp or 0)
        now = self.clock()
        if now < unlock_at:
            raise ScheduleLocked(
                f"Claim locked until {unlock_at}",
                details={"unlock_at": unlock_at, "now": now},
            )

    def _claim(
        self,
        *,
        instruction: str,
        allowed: tuple[ScheduleType, ...],
        claimant: Pubkey,
        vault_address: Pubkey,
        schedule_address: Pubkey,
        index: int,
        timestamp: Optional[int],
        leaf_model: Type[Leaf],
        leaf_fields: dict[str, Any],
        proof: ProofInput,
        recipient_token_account: Optional[Pubkey],
        vault_token_account: Optional[Pubkey],
        fee_token_account: Optional[Pubkey],
        nft_mint: Optional[Pubkey] = None,
        collection_mint: Optional[Pubkey] = None,
        nft_token_account: Optional[Pubkey] = None,
        redeem_index: Optional[Pubkey] = None,
    ) -> RedemptionRecord:
        try:
            with self.store.transaction():
                vault = self._load_vault(vault_address)
                schedule = self._load_schedule(vault, schedule_address)
                if schedule.schedule_type not in allowed:
                    raise WrongScheduleType(
                        f"{instruction} cannot claim from a {schedule.schedule_type.name} schedule",
                        details={"schedule_type": schedule.schedule_type.name, "instruction": instruction},
                    )
                if not schedule.is_active:
                    raise ScheduleInactive(
                        f"Schedule {schedule.address} is inactive",
                        details={"schedule": str(schedule.address)},
                    )

                if schedule.is_legacy and timestamp is not None:
                    raise LeafMismatch(
                        "Legacy schedule leaves carry no timestamp",
                        details={"index": index, "timestamp": timestamp},
                    )
                self._check_unlocked(schedule, timestamp)

                self._check_index(schedule, index)
                leaf = _build_leaf(leaf_model, leaf_fields)

                MerkleVerifier.verify_claim(
                    leaf,
                    _proof_steps(proof),
                    schedule.merkle_root,
                    schedule.schedule_type,
                    legacy=schedule.is_legacy,
                )

                if schedule.schedule_type.is_nft:
                    verify_nft_holding(self.store, claimant, nft_mint, collection_mint, nft_token_account)

                tracker = tracker_for(
                    self.store,
                    schedule,
                    self.program_id,
                    scope=self.redeem_index_scope,
                    nft_mint=nft_mint or EMPTY_KEY,
                )
                if isinstance(tracker, MarkerTracker) and redeem_index is not None:
                    expect_address(redeem_index, tracker.address(index), "RedeemIndex")
                tracker.mark_redeemed(index)

                receiving_mint = self._pay(
                    vault,
                    schedule,
                    claimant,
                    leaf,
                    recipient_token_account,
                    vault_token_account,
                    fee_token_account,
                )

                record = RedemptionRecord(
                    schedule=schedule.address,
                    event_id=schedule.event_id,
                    index=index,
                    recipient=claimant,
                    receiving_token_mint=receiving_mint,
                    receiving_amount=leaf.receiving_amount,
                    sending_amount=leaf.sending_amount,
                    nft_mint=nft_mint,
                    timestamp=self.clock(),
                )
        except VaultException as e:
            logger.warning(
                f"{instruction} rejected for index {index} of {schedule_address}: "
                f"{e.code} {e.message}"
            )
            raise

        self.events.append(record)
        logger.info(
            f"Redeemed index {index} of schedule {schedule_address} for {claimant}: "
            f"{record.receiving_amount} of {receiving_mint}"
        )
        return record

    def _pay(
        self,
        vault: Vault,
        schedule: Schedule,
        claimant: Pubkey,
        leaf: Leaf,
        recipient_token_account: Optional[Pubkey],
        vault_token_account: Optional[Pubkey],
        fee_token_account: Optional[Pubkey],
    ) -> Pubkey:
        """Run both legs of a claim. Returns the mint paid out."""
        if leaf.sending_amount > 0:
            if schedule.sending_token_account == EMPTY_KEY:
                raise AccountNotFound(
                    f"Schedule {schedule.address} has no sending account for a sending amount of {leaf.sending_amount}",
                    details={"schedule": str(schedule.address), "sending_amount": leaf.sending_amount},
                    retryable=False,
                )
            transfer_asset(
                self.store,
                schedule.sending_token_mint,
                claimant,
                fee_token_account,
                schedule.sending_token_account,
                leaf.sending_amount,
            )

        if schedule.schedule_type is ScheduleType.FUNGIBLE_MULTI:
            receiving_mint = leaf.receiving_token_mint
        else:
            receiving_mint = schedule.receiving_token_mint
            if vault_token_account is None:
                vault_token_account = schedule.receiving_token_account
            elif vault_token_account != schedule.receiving_token_account:
                raise InvalidAccount(
                    "Vault token account is not the schedule's receiving account",
                    details={
                        "supplied": str(vault_token_account),
                        "expected": str(schedule.receiving_token_account),
                    },
                )

        transfer_asset(
            self.store,
            receiving_mint,
            vault.signer(self.program_id),
            vault_token_account,
            recipient_token_account,
            leaf.receiving_amount,
            native_destination=claimant,
        )
        return receiving_mint


__all__ = ["VaultProgram"]
