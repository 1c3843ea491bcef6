"""
Merkle commitments over allocation leaves.

Contents:
- LeafEncoding / leaf_hash: canonical, domain-separated leaf encodings
- MerkleProof / ProofStep: side-tagged inclusion proofs
- build_merkle_root / build_merkle_proof / verify_merkle_proof
- DistributionTree: validated builder with JSON artifact I/O
- MerkleProver / MerkleVerifier: convenience wrappers

Hashing and padding rules are listed in merkle_tree.py.

Usage:
    from vault_core.merkle import DistributionTree, LeafEncoding

    tree = DistributionTree(allocations, LeafEncoding.CURRENT)
    root = tree.root
    steps = tree.proof_steps(2)
"""
from .leaves import (
    Leaf,
    LeafEncoding,
    encoding_for_schedule,
    encode_leaf,
    leaf_hash,
)

from .merkle_tree import (
    EMPTY_TREE_ROOT,
    MerkleProof,
    ProofStep,
    Side,
    merkle_parent,
    build_merkle_levels,
    build_merkle_root,
    build_merkle_proof,
    compute_root_from_proof,
    verify_inclusion,
    verify_merkle_proof,
    compute_tree_depth,
)

from .distribution import (
    DistributionTree,
    ProofStepModel,
    TreeArtifact,
    TreeEntry,
)

from .merkle_proofs import (
    MerkleProver,
    MerkleVerifier,
)


__all__ = [
    # Leaves
    "Leaf",
    "LeafEncoding",
    "encoding_for_schedule",
    "encode_leaf",
    "leaf_hash",
    # Core types
    "MerkleProof",
    "ProofStep",
    "Side",
    "EMPTY_TREE_ROOT",
    # Core functions
    "merkle_parent",
    "build_merkle_levels",
    "build_merkle_root",
    "build_merkle_proof",
    "compute_root_from_proof",
    "verify_inclusion",
    "verify_merkle_proof",
    "compute_tree_depth",
    # Builder
    "DistributionTree",
    "ProofStepModel",
    "TreeArtifact",
    "TreeEntry",
    # Convenience classes
    "MerkleProver",
    "MerkleVerifier",
]
