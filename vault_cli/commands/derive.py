"""
CLI Derive Command

Print the program-derived addresses an operator needs to build
instructions: vault and vault signer, schedule and schedule signer,
redeem-index markers and NFT metadata accounts.

Usage:
    vault-distributor derive --vault-name airdrop
    vault-distributor derive --event-id 42 --index 0 [--mint <NFT mint>]
    vault-distributor derive --metadata-mint <NFT mint>
"""

from __future__ import annotations

import json
import logging
from argparse import Namespace
from typing import Any

from solders.pubkey import Pubkey

from vault_core.config.runtime import ProgramConfig
from vault_core.crypto.derivation import (
    EMPTY_KEY,
    DerivedAddress,
    find_metadata_address,
    find_redeem_index_address,
    find_schedule_address,
    find_schedule_signer_address,
    find_vault_address,
    find_vault_signer_address,
)
from vault_core.schemas.errors import InvalidInput
from vault_program.tracker import marker_mint_key


logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0


def _parse_pubkey(value: str, label: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise InvalidInput(f"{label} is not a base58 public key: {value!r}") from e


def _entry(derived: DerivedAddress) -> dict[str, Any]:
    return {"address": str(derived.address), "bump": derived.bump}


def derive_addresses(args: Namespace, program: ProgramConfig) -> dict[str, Any]:
    """Compute the requested addresses as a name -> {address, bump} mapping."""
    program_id = (
        _parse_pubkey(args.program_id, "--program-id") if args.program_id else program.program_pubkey
    )
    result: dict[str, Any] = {"program_id": str(program_id)}

    if args.vault_name is not None:
        vault = find_vault_address(args.vault_name, program_id)
        result["vault"] = _entry(vault)
        result["vault_signer"] = _entry(find_vault_signer_address(vault.address, program_id))

    elif args.event_id is not None:
        schedule = find_schedule_address(args.event_id, program_id)
        result["schedule"] = _entry(schedule)
        result["schedule_signer"] = _entry(find_schedule_signer_address(schedule.address, program_id))
        if args.index is not None:
            mint = _parse_pubkey(args.mint, "--mint") if args.mint else EMPTY_KEY
            mint_key = marker_mint_key(mint, program.redeem_index_scope)
            result["redeem_index"] = _entry(
                find_redeem_index_address(args.event_id, args.index, mint_key, program_id)
            )
            result["redeem_index_scope"] = program.redeem_index_scope.value

    else:
        mint = _parse_pubkey(args.metadata_mint, "--metadata-mint")
        result["metadata"] = _entry(find_metadata_address(mint))

    return result


def derive_cmd(args: Namespace) -> int:
    """
    Execute the derive command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    if args.index is not None and args.event_id is None:
        raise InvalidInput("--index requires --event-id")

    result = derive_addresses(args, args.runtime_config.program)
    logger.debug(f"Derived {len(result) - 1} entries")

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        for name, value in result.items():
            if isinstance(value, dict):
                print(f"{name}: {value['address']} (bump {value['bump']})")
            else:
                print(f"{name}: {value}")

    return EXIT_SUCCESS
