"""
Merkle - Proof Convenience Wrappers
Class-based interfaces around the tree primitives.

- MerkleProver: Generate roots and proofs from allocations
- MerkleVerifier: Verify proofs, including the schedule-aware claim check
  used by the redemption program
"""
from __future__ import annotations

import logging
from typing import Sequence

from vault_core.crypto.hashing import to_hex
from vault_core.merkle.leaves import Leaf, LeafEncoding, encoding_for_schedule, leaf_hash
from vault_core.merkle.merkle_tree import (
    MerkleProof,
    ProofStep,
    build_merkle_proof,
    build_merkle_root,
    verify_inclusion,
    verify_merkle_proof,
)
from vault_core.schemas.distribution import ScheduleType
from vault_core.schemas.errors import InvalidProof


logger = logging.getLogger(__name__)


class MerkleProver:
    """
    Convenience class for generating Merkle proofs.

    Example:
        >>> proof = MerkleProver.prove_allocation(allocations, 1, LeafEncoding.CURRENT)
        >>> MerkleVerifier.verify(proof)
        True
    """

    @staticmethod
    def prove(leaves: Sequence[bytes], index: int) -> MerkleProof:
        """Proof for a pre-hashed leaf."""
        return build_merkle_proof(leaves, index)

    @staticmethod
    def prove_allocation(
        allocations: Sequence[Leaf],
        index: int,
        encoding: LeafEncoding,
    ) -> MerkleProof:
        """
        Proof for an allocation, hashed with the given encoding.

        Allocations are taken in list order; use DistributionTree when
        the input still needs index validation.
        """
        leaves = [leaf_hash(allocation, encoding) for allocation in allocations]
        return build_merkle_proof(leaves, index)

    @staticmethod
    def compute_root(leaves: Sequence[bytes]) -> bytes:
        return build_merkle_root(leaves)

    @staticmethod
    def compute_root_from_allocations(
        allocations: Sequence[Leaf],
        encoding: LeafEncoding,
    ) -> bytes:
        return build_merkle_root([leaf_hash(a, encoding) for a in allocations])


class MerkleVerifier:
    """Convenience class for verifying Merkle proofs."""

    @staticmethod
    def verify(proof: MerkleProof) -> bool:
        return verify_merkle_proof(proof)

    @staticmethod
    def verify_leaf_in_root(
        leaf: bytes,
        steps: Sequence[ProofStep],
        root: bytes,
    ) -> bool:
        return verify_inclusion(leaf, steps, root)

    @staticmethod
    def verify_allocation(
        allocation: Leaf,
        encoding: LeafEncoding,
        steps: Sequence[ProofStep],
        root: bytes,
    ) -> bool:
        """
        Verify an allocation is included in a root.

        Raises:
            LeafMismatch: If the allocation does not fit the encoding
        """
        return verify_inclusion(leaf_hash(allocation, encoding), steps, root)

    @staticmethod
    def verify_claim(
        allocation: Leaf,
        steps: Sequence[ProofStep],
        root: bytes,
        schedule_type: ScheduleType | int,
        legacy: bool = False,
    ) -> bytes:
        """
        Verify a claim against a schedule's committed root.

        The leaf encoding is chosen from the schedule type, so fields
        built for another schedule type cannot verify.

        Returns:
            The verified leaf hash

        Raises:
            InvalidScheduleType: Unknown schedule type
            LeafMismatch: Claim fields do not fit the schedule's leaf schema
            InvalidProof: Proof does not lead to the root
        """
        encoding = encoding_for_schedule(schedule_type, legacy)
        leaf = leaf_hash(allocation, encoding)
        if not verify_inclusion(leaf, steps, root):
            logger.debug(
                f"Proof rejected for index {allocation.index} "
                f"({encoding.name}, leaf {to_hex(leaf)}, root {to_hex(root)})"
            )
            raise InvalidProof(
                "Merkle proof does not match the committed root",
                details={"index": allocation.index, "encoding": encoding.name},
            )
        return leaf


__all__ = [
    "MerkleProver",
    "MerkleVerifier",
]
