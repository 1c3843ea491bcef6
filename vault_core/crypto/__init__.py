"""
Core cryptographic utilities.

Hashing (plain, domain-separated leaf/node, canonical) and
program-derived address helpers.
"""
from .hashing import (
    LEAF_PREFIX,
    NODE_PREFIX,
    sha256,
    hash_leaf,
    hash_node,
    hash_canonical,
    to_hex,
    from_hex,
    from_hex32,
)
from .derivation import (
    DEFAULT_PROGRAM_ID,
    EMPTY_KEY,
    NATIVE_MINT,
    DerivedAddress,
    derive,
    create_address,
    expect_address,
    find_vault_address,
    find_vault_signer_address,
    find_schedule_address,
    find_schedule_signer_address,
    find_redeem_index_address,
    find_metadata_address,
)

__all__ = [
    "LEAF_PREFIX",
    "NODE_PREFIX",
    "sha256",
    "hash_leaf",
    "hash_node",
    "hash_canonical",
    "to_hex",
    "from_hex",
    "from_hex32",
    "DEFAULT_PROGRAM_ID",
    "EMPTY_KEY",
    "NATIVE_MINT",
    "DerivedAddress",
    "derive",
    "create_address",
    "expect_address",
    "find_vault_address",
    "find_vault_signer_address",
    "find_schedule_address",
    "find_schedule_signer_address",
    "find_redeem_index_address",
    "find_metadata_address",
]
