"""
CLI Verify Command

Verify a published tree artifact offline:
- Rebuild the tree from its allocations and compare roots
- Optionally compare against an expected (on-ledger) root
- Check each published leaf hash and proof against the root

Usage:
    vault-distributor verify tree.json [--index N] [--root 0x...] [--json]
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from vault_core.crypto.hashing import from_hex32, to_hex
from vault_core.merkle.distribution import DistributionTree, TreeArtifact, TreeEntry
from vault_core.merkle.leaves import leaf_hash
from vault_core.merkle.merkle_tree import verify_inclusion
from vault_core.schemas.errors import IndexOutOfRange, VaultException


logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


@dataclass
class EntryCheck:
    index: int
    leaf_ok: bool
    proof_ok: bool

    @property
    def ok(self) -> bool:
        return self.leaf_ok and self.proof_ok


@dataclass
class VerifyReport:
    """Outcome of checking one tree artifact."""
    tree_path: str = ""
    root: str = ""
    root_ok: bool = False
    expected_root_ok: bool | None = None
    checked: int = 0
    failed: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if self.expected_root_ok is None:
            del d["expected_root_ok"]
        if not d["errors"]:
            del d["errors"]
        d["ok"] = self.all_ok
        return d

    @property
    def all_ok(self) -> bool:
        if not self.root_ok or self.failed or self.errors:
            return False
        return self.expected_root_ok is not False


def check_entry(artifact: TreeArtifact, entry: TreeEntry, tree: DistributionTree) -> EntryCheck:
    """Compare a published entry with the rebuilt leaf, then fold its proof."""
    leaf = leaf_hash(tree.leaf(entry.index), artifact.encoding)
    leaf_ok = to_hex(leaf) == entry.leaf_hash
    steps = [step.to_step() for step in entry.proof]
    proof_ok = verify_inclusion(leaf, steps, artifact.root_bytes())
    return EntryCheck(index=entry.index, leaf_ok=leaf_ok, proof_ok=proof_ok)


def print_report(report: VerifyReport) -> None:
    """Plain-text rendering, one field per line."""
    print(f"tree: {report.tree_path}")
    print(f"root: {report.root}")
    print(f"root_ok: {str(report.root_ok).lower()}")
    if report.expected_root_ok is not None:
        print(f"expected_root_ok: {str(report.expected_root_ok).lower()}")
    print(f"checked: {report.checked}")

    if report.failed:
        print(f"\nfailed ({len(report.failed)}):")
        for index in report.failed[:20]:
            print(f"  ✗ index {index}")

    if report.errors:
        print(f"\nerrors ({len(report.errors)}):")
        for message in report.errors[:10]:
            print(f"  ✗ {message}")


def verify_cmd(args: Namespace) -> int:
    """
    EXIT_SUCCESS when the rebuilt root, the optional --root and every
    checked proof agree; EXIT_VERIFICATION_FAILED otherwise.
    """
    tree_path = Path(args.tree)
    if not tree_path.exists():
        print(f"Error: Tree artifact not found: {tree_path}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        artifact = TreeArtifact.model_validate_json(tree_path.read_text())
    except PydanticValidationError as e:
        print(f"Error loading tree artifact: {e.error_count()} validation error(s)", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    report = VerifyReport(tree_path=str(tree_path), root=artifact.root)

    # Step 1: Rebuild and compare roots
    try:
        tree = DistributionTree.from_artifact(artifact)
        report.root_ok = True
    except VaultException as e:
        report.errors.append(f"Rebuild: {e.message}")
        tree = None

    # Step 2: Expected root
    if args.root is not None:
        report.expected_root_ok = from_hex32(args.root) == artifact.root_bytes()

    # Step 3: Published proofs
    if tree is not None:
        if args.index is not None:
            entries = [e for e in artifact.entries if e.index == args.index]
            if not entries:
                raise IndexOutOfRange(
                    f"No entry with index {args.index}",
                    details={"index": args.index, "leaf_count": artifact.leaf_count},
                )
        else:
            entries = artifact.entries

        for entry in entries:
            check = check_entry(artifact, entry, tree)
            report.checked += 1
            if not check.ok:
                report.failed.append(check.index)
                logger.debug(f"Entry {check.index}: leaf_ok={check.leaf_ok} proof_ok={check.proof_ok}")

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)

    if report.all_ok:
        logger.info(f"Tree {report.tree_path} verified ({report.checked} entries)")
        return EXIT_SUCCESS
    logger.warning(f"Tree {report.tree_path} failed verification: {len(report.failed)} bad entries")
    return EXIT_VERIFICATION_FAILED
