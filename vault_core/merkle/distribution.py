"""
Merkle - Distribution Tree Builder
Builds the commitment an operator submits when creating a schedule.

Given the allocations of one distribution event and the leaf encoding of
the target schedule, DistributionTree produces the root, a proof per
index, and a publishable JSON artifact (root + every leaf with its proof).

Builder rules:
- At least one allocation
- Indices must be exactly 0..n-1 (dense, no duplicates); input order
  does not matter, leaves are placed at their index
- Every allocation must fit the chosen encoding (LeafMismatch otherwise)
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field

from vault_core.crypto.hashing import from_hex32, hash_canonical, to_hex
from vault_core.merkle.leaves import Leaf, LeafEncoding, encoding_for_schedule, leaf_hash
from vault_core.merkle.merkle_tree import (
    MerkleProof,
    ProofStep,
    Side,
    build_merkle_levels,
    compute_tree_depth,
    proof_from_levels,
    verify_merkle_proof,
)
from vault_core.schemas.distribution import Allocation, NftAllocation, ScheduleType
from vault_core.schemas.errors import IndexOutOfRange, InvalidInput


logger = logging.getLogger(__name__)


# =============================================================================
# Artifact models
# =============================================================================

class ProofStepModel(BaseModel):
    """JSON form of a ProofStep."""

    model_config = ConfigDict(extra="forbid")

    side: Side
    hash: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")

    def to_step(self) -> ProofStep:
        return ProofStep(side=self.side, sibling=from_hex32(self.hash))

    @classmethod
    def from_step(cls, step: ProofStep) -> "ProofStepModel":
        return cls(side=step.side, hash=to_hex(step.sibling))


class TreeEntry(BaseModel):
    """One leaf of a published tree together with its proof."""

    model_config = ConfigDict(extra="forbid")

    index: int = Field(..., ge=0)
    allocation: dict[str, Any]
    leaf_hash: str
    proof: list[ProofStepModel] = Field(default_factory=list)


class TreeArtifact(BaseModel):
    """Publishable description of a committed distribution tree."""

    model_config = ConfigDict(extra="forbid")

    encoding: LeafEncoding
    root: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    leaf_count: int = Field(..., ge=1)
    depth: int = Field(..., ge=1)
    entries: list[TreeEntry]

    def root_bytes(self) -> bytes:
        return from_hex32(self.root)

    def fingerprint(self) -> str:
        """Hash of the canonical JSON form of this artifact."""
        return to_hex(hash_canonical(self))


# =============================================================================
# Builder
# =============================================================================

def _parse_allocation(data: dict[str, Any], encoding: LeafEncoding) -> Leaf:
    if encoding.is_nft:
        return NftAllocation.model_validate(data)
    return Allocation.model_validate(data)


class DistributionTree:
    """
    Merkle commitment over the allocations of one distribution event.

    Example:
        >>> tree = DistributionTree(allocations, LeafEncoding.CURRENT)
        >>> proof = tree.proof(0)
        >>> tree.verify(0)
        True
    """

    def __init__(self, leaves: Sequence[Leaf], encoding: LeafEncoding) -> None:
        if len(leaves) == 0:
            raise InvalidInput("Cannot build a distribution tree without allocations")

        ordered = sorted(leaves, key=lambda leaf: leaf.index)
        indices = [leaf.index for leaf in ordered]
        if indices != list(range(len(ordered))):
            duplicates = sorted(i for i, n in Counter(indices).items() if n > 1)
            raise InvalidInput(
                "Allocation indices must be dense and unique (0..n-1)",
                details={"duplicates": duplicates, "count": len(ordered)},
            )

        self.encoding = encoding
        self._leaves: list[Leaf] = ordered
        self._hashes = [leaf_hash(leaf, encoding) for leaf in ordered]
        self._levels = build_merkle_levels(self._hashes)
        logger.debug(
            f"Built {encoding.name} tree over {len(ordered)} leaves, root {to_hex(self.root)}"
        )

    @classmethod
    def for_schedule(
        cls,
        leaves: Sequence[Leaf],
        schedule_type: ScheduleType | int,
        legacy: bool = False,
    ) -> "DistributionTree":
        """Build a tree in the encoding a schedule of this type verifies against."""
        return cls(leaves, encoding_for_schedule(schedule_type, legacy))

    @property
    def root(self) -> bytes:
        return self._levels[-1][0]

    @property
    def leaves(self) -> list[Leaf]:
        return list(self._leaves)

    @property
    def leaf_hashes(self) -> list[bytes]:
        return list(self._hashes)

    @property
    def depth(self) -> int:
        return compute_tree_depth(len(self._leaves))

    def __len__(self) -> int:
        return len(self._leaves)

    def leaf(self, index: int) -> Leaf:
        self._check_index(index)
        return self._leaves[index]

    def proof(self, index: int) -> MerkleProof:
        """Proof path for the leaf at `index`."""
        self._check_index(index)
        return proof_from_levels(self._levels, index)

    def proof_steps(self, index: int) -> list[ProofStep]:
        return self.proof(index).steps

    def verify(self, index: int) -> bool:
        return verify_merkle_proof(self.proof(index))

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._leaves):
            raise IndexOutOfRange(
                f"Leaf index {index} out of range for {len(self._leaves)} leaves",
                details={"index": index, "count": len(self._leaves)},
            )

    # -------------------------------------------------------------------------
    # Artifact I/O
    # -------------------------------------------------------------------------

    def to_artifact(self) -> TreeArtifact:
        entries = []
        for index, leaf in enumerate(self._leaves):
            proof = self.proof(index)
            entries.append(TreeEntry(
                index=index,
                allocation=leaf.model_dump(mode="json", exclude_none=True),
                leaf_hash=to_hex(proof.leaf),
                proof=[ProofStepModel.from_step(step) for step in proof.steps],
            ))
        return TreeArtifact(
            encoding=self.encoding,
            root=to_hex(self.root),
            leaf_count=len(self._leaves),
            depth=self.depth,
            entries=entries,
        )

    @classmethod
    def from_artifact(cls, artifact: TreeArtifact) -> "DistributionTree":
        """
        Rebuild a tree from its artifact and check the published root.

        Raises:
            InvalidInput: If the rebuilt root differs from the artifact's root
        """
        leaves = [_parse_allocation(entry.allocation, artifact.encoding) for entry in artifact.entries]
        tree = cls(leaves, artifact.encoding)
        if tree.root != artifact.root_bytes():
            raise InvalidInput(
                "Artifact root does not match its allocations",
                details={"artifact_root": artifact.root, "rebuilt_root": to_hex(tree.root)},
            )
        return tree


__all__ = [
    "ProofStepModel",
    "TreeEntry",
    "TreeArtifact",
    "DistributionTree",
]
