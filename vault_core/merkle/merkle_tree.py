"""
Merkle - Tree
Root, proof and inclusion check over an ordered list of leaf hashes.

Every root a schedule has ever stored depends on these rules staying fixed:

- parent  = sha256(0x01 | left | right), see hash_node
- a level with an odd node count pairs its last node with itself
- no leaves: the root is sha256(b"")
- one leaf: the root is that leaf

Leaves arrive already hashed (vault_core.merkle.leaves.leaf_hash) and in
allocation index order. Nothing here reorders them.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from vault_core.crypto.hashing import hash_node, sha256


EMPTY_TREE_ROOT: bytes = sha256(b"")


class Side(str, Enum):
    """Which side of the running hash a proof sibling sits on."""

    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class ProofStep:
    """One sibling on the path from a leaf to the root."""

    side: Side
    sibling: bytes

    def __post_init__(self) -> None:
        # plain "left" / "right" strings from JSON proofs
        object.__setattr__(self, "side", Side(self.side))
        if len(self.sibling) != 32:
            raise ValueError(f"Proof sibling must be 32 bytes, got {len(self.sibling)}")


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof of one leaf, ordered from the leaf level upwards.

    `root` is the root the proof was cut from; verify_merkle_proof checks
    the steps against it.
    """
    leaf: bytes
    index: int
    steps: list[ProofStep] = field(default_factory=list)
    root: bytes = b""

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Negative leaf index {self.index}")

    @property
    def siblings(self) -> list[bytes]:
        return [step.sibling for step in self.steps]


def merkle_parent(left: bytes, right: bytes) -> bytes:
    return hash_node(left, right)


def _next_level(level: list[bytes]) -> list[bytes]:
    if len(level) & 1:
        level = level + [level[-1]]
    return [merkle_parent(a, b) for a, b in zip(level[::2], level[1::2])]


def build_merkle_levels(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """
    All levels of the tree, leaf level first, single-root level last.

    Levels are kept unpadded; the duplicate of an odd last node exists
    only while hashing the level above.
    """
    if not leaves:
        return [[EMPTY_TREE_ROOT]]

    levels: list[list[bytes]] = [list(leaves)]
    while len(levels[-1]) > 1:
        levels.append(_next_level(levels[-1]))
    return levels


def build_merkle_root(leaves: Sequence[bytes]) -> bytes:
    """
    Root over `leaves`.

    With three leaves [a, b, c] the tree is
    hash_node(hash_node(a, b), hash_node(c, c)).
    """
    return build_merkle_levels(leaves)[-1][0]


def proof_from_levels(levels: list[list[bytes]], index: int) -> MerkleProof:
    """Cut the proof of leaf `index` out of levels from build_merkle_levels."""
    steps: list[ProofStep] = []
    pos = index

    for level in levels[:-1]:
        if pos & 1:
            steps.append(ProofStep(Side.LEFT, level[pos - 1]))
        else:
            # past the end of an odd level the node is its own sibling
            partner = pos + 1 if pos + 1 < len(level) else pos
            steps.append(ProofStep(Side.RIGHT, level[partner]))
        pos >>= 1

    return MerkleProof(leaf=levels[0][index], index=index, steps=steps, root=levels[-1][0])


def build_merkle_proof(leaves: Sequence[bytes], index: int) -> MerkleProof:
    """
    Proof for leaves[index].

    Raises:
        ValueError: no leaves at all
        IndexError: index outside the leaf list
    """
    if not leaves:
        raise ValueError("No proof exists in an empty tree")
    if not 0 <= index < len(leaves):
        raise IndexError(f"Leaf {index} does not exist; tree has {len(leaves)} leaves")

    return proof_from_levels(build_merkle_levels(leaves), index)


def compute_root_from_proof(leaf: bytes, steps: Sequence[ProofStep]) -> bytes:
    """Hash `leaf` up through `steps`, placing each sibling on its recorded side."""
    node = leaf
    for step in steps:
        if step.side is Side.LEFT:
            node = merkle_parent(step.sibling, node)
        else:
            node = merkle_parent(node, step.sibling)
    return node


def verify_inclusion(leaf: bytes, steps: Sequence[ProofStep], root: bytes) -> bool:
    """
    True when `leaf` hashes up to `root` through `steps`.

    The whole path is folded before one constant-time comparison, so a
    failure does not reveal which step diverged.
    """
    return hmac.compare_digest(compute_root_from_proof(leaf, steps), root)


def verify_merkle_proof(proof: MerkleProof) -> bool:
    return verify_inclusion(proof.leaf, proof.steps, proof.root)


def compute_tree_depth(num_leaves: int) -> int:
    """
    Number of levels, root included: 0 leaves -> 0, 1 -> 1, 2 -> 2, 3 -> 3.
    """
    depth = 0
    width = num_leaves
    while width > 0:
        depth += 1
        if width == 1:
            break
        width = (width + 1) // 2
    return depth


__all__ = [
    "EMPTY_TREE_ROOT",
    "Side",
    "ProofStep",
    "MerkleProof",
    "merkle_parent",
    "build_merkle_levels",
    "build_merkle_root",
    "build_merkle_proof",
    "proof_from_levels",
    "compute_root_from_proof",
    "verify_inclusion",
    "verify_merkle_proof",
    "compute_tree_depth",
]
