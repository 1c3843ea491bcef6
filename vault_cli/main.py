"""
Vault Distributor CLI - Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    vault-distributor build-tree ALLOCATIONS.json --encoding current [--out tree.json] [--json]
    vault-distributor verify TREE.json [--index N] [--root 0x...] [--json]
    vault-distributor derive --vault-name NAME [--json]
    vault-distributor derive --event-id ID [--index I] [--mint M] [--json]
    vault-distributor derive --metadata-mint M

Environment Variables:
    VAULT_PROGRAM_ID            Program id used for address derivation
    VAULT_REDEEM_INDEX_SCOPE    per_index | per_mint (default: per_index)
    VAULT_LOG_LEVEL             Log level (default: INFO)
    VAULT_LOG_FILE              Optional log file
"""

from __future__ import annotations

import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import Sequence

from vault_cli import __version__
from vault_cli.commands import build_tree, derive, verify
from vault_core.config.runtime import RuntimeConfig
from vault_core.merkle.leaves import LeafEncoding
from vault_core.schemas.errors import VaultException


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Route vault_* loggers to stderr and, when configured, a log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    # replaces handlers installed by an earlier main() call
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def load_config(path: Path | None) -> RuntimeConfig:
    """YAML file (if given) overlaid with environment variables."""
    if path is not None:
        return RuntimeConfig.from_yaml(path).with_env_overrides()
    return RuntimeConfig.from_env()


def _add_json_flag(sub: argparse.ArgumentParser, what: str) -> None:
    sub.add_argument("--json", action="store_true", default=False, help=f"Print {what} as JSON")


def create_parser() -> argparse.ArgumentParser:
    """Top-level parser plus the build-tree, verify and derive subcommands."""
    parser = argparse.ArgumentParser(
        prog="vault-distributor",
        description="Build Merkle distribution trees, check published proofs and derive vault account addresses.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", type=Path, default=None, help="YAML settings file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Overrides logging.level from the settings",
    )
    parser.add_argument("--debug", action="store_true", default=False, help="Show the traceback of a failure")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    build = commands.add_parser(
        "build-tree",
        help="Commit a list of allocations to a root",
        description="Hash every allocation into a leaf, fold the leaves into a root and emit one proof per leaf.",
    )
    build.add_argument("allocations", help="JSON list of allocations, bare or under an \"allocations\" key")
    build.add_argument(
        "--encoding", "-e",
        choices=[e.name.lower() for e in LeafEncoding],
        default="current",
        help="Leaf layout the target schedule expects (default: %(default)s)",
    )
    build.add_argument("--out", "-o", default=None, help="Artifact destination; stdout when omitted")
    _add_json_flag(build, "the build summary")
    build.set_defaults(func=build_tree.build_tree_cmd)

    check = commands.add_parser(
        "verify",
        help="Re-check a tree artifact",
        description="Recompute the root from the listed allocations and replay each stored proof against it.",
    )
    check.add_argument("tree", help="Artifact produced by build-tree")
    check.add_argument("--index", "-i", type=int, default=None, help="Check a single leaf instead of all")
    check.add_argument("--root", default=None, help="Root the artifact must match, as 0x hex")
    _add_json_flag(check, "the verification report")
    check.set_defaults(func=verify.verify_cmd)

    addrs = commands.add_parser(
        "derive",
        help="Compute program account addresses",
        description="Print the program-derived address and bump of vaults, schedules, redeem indexes and NFT metadata.",
    )
    seed = addrs.add_mutually_exclusive_group(required=True)
    seed.add_argument("--vault-name", help="Name the vault was created with")
    seed.add_argument("--event-id", type=int, help="Event id of a schedule")
    seed.add_argument("--metadata-mint", help="NFT mint whose metadata account to locate")
    addrs.add_argument("--index", type=int, default=None, help="Leaf index; needs --event-id")
    addrs.add_argument("--mint", default=None, help="NFT mint for the redeem index (per_mint scope only)")
    addrs.add_argument("--program-id", default=None, help="Derive under this program instead of the configured one")
    _add_json_flag(addrs, "the addresses")
    addrs.set_defaults(func=derive.derive_cmd)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run one CLI command.

    Returns the process exit code: EXIT_SUCCESS, EXIT_RUNTIME_ERROR, or
    EXIT_VERIFICATION_FAILED when a tree artifact does not check out.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Cannot load settings: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    setup_logging(level=args.log_level or config.logging.level, log_file=config.logging.file)
    args.runtime_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except VaultException as e:
        if args.debug:
            traceback.print_exc()
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if args.debug:
            traceback.print_exc()
        else:
            print(f"Unexpected failure: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
