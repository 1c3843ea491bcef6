"""
CLI Build-Tree Command

Build the Merkle commitment of a distribution event:
- Parse and validate allocations for the chosen leaf encoding
- Compute the root and every proof
- Write the tree artifact as canonical JSON

Usage:
    vault-distributor build-tree allocations.json --encoding current --out tree.json
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from vault_core.merkle.distribution import DistributionTree
from vault_core.merkle.leaves import Leaf, LeafEncoding
from vault_core.schemas.canonical import dumps_canonical
from vault_core.schemas.distribution import Allocation, NftAllocation
from vault_core.schemas.errors import InvalidInput


logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


@dataclass
class BuildSummary:
    """Summary of a built tree for CLI output."""
    encoding: str = ""
    root: str = ""
    leaf_count: int = 0
    depth: int = 0
    fingerprint: str = ""
    out: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d["out"] is None:
            del d["out"]
        return d


def load_allocations(path: Path, encoding: LeafEncoding) -> list[Leaf]:
    """
    Read allocations from a JSON file.

    Accepts either a bare list or an object with an "allocations" list.

    Raises:
        InvalidInput: Malformed file or allocation
    """
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise InvalidInput(f"Allocations file is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("allocations")
    if not isinstance(data, list):
        raise InvalidInput("Allocations file must hold a list of allocations")

    model = NftAllocation if encoding.is_nft else Allocation
    leaves = []
    for position, item in enumerate(data):
        try:
            leaves.append(model.model_validate(item))
        except PydanticValidationError as e:
            raise InvalidInput(
                f"Allocation #{position} is invalid: {e.error_count()} error(s)",
                details={"position": position, "errors": [err["msg"] for err in e.errors()]},
            ) from e
    return leaves


def build_tree_cmd(args: Namespace) -> int:
    """
    Execute the build-tree command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    path = Path(args.allocations)
    if not path.exists():
        print(f"Error: Allocations file not found: {path}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    encoding = LeafEncoding[args.encoding.upper()]
    leaves = load_allocations(path, encoding)
    logger.info(f"Building {encoding.name} tree over {len(leaves)} allocations")

    tree = DistributionTree(leaves, encoding)
    artifact = tree.to_artifact()
    payload = dumps_canonical(artifact)

    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(payload + "\n")
        logger.info(f"Wrote tree artifact to {out}")
    else:
        print(payload)

    summary = BuildSummary(
        encoding=encoding.name.lower(),
        root=artifact.root,
        leaf_count=artifact.leaf_count,
        depth=artifact.depth,
        fingerprint=artifact.fingerprint(),
        out=args.out,
    )

    # Without --out the artifact owns stdout
    if args.out:
        if args.json:
            print(json.dumps(summary.to_dict(), indent=2))
        else:
            print(f"encoding: {summary.encoding}")
            print(f"root: {summary.root}")
            print(f"leaves: {summary.leaf_count}")
            print(f"depth: {summary.depth}")
            print(f"fingerprint: {summary.fingerprint}")
            print(f"out: {summary.out}")

    return EXIT_SUCCESS
