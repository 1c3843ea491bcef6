"""
Schemas
File: __init__.py

Purpose: Export the public API for the schemas module.
"""

from .canonical import (
    CANONICAL_JSON_SEPARATORS,
    canonical_equals,
    canonicalize_value,
    dumps_canonical,
    loads_canonical,
)

from .distribution import (
    Allocation,
    NftAllocation,
    PubkeyField,
    RedeemType,
    RedemptionRecord,
    ScheduleType,
)

from .errors import (
    AccountAlreadyExists,
    AccountNotFound,
    AlreadyRedeemed,
    AuthorizationError,
    CanonicalizationException,
    ErrorCodes,
    IndexNotInitialized,
    IndexOutOfRange,
    InsufficientFunds,
    InvalidAccount,
    InvalidInput,
    InvalidMetadata,
    InvalidMintAccount,
    InvalidProof,
    InvalidScheduleType,
    InvalidTokenAmount,
    LeafMismatch,
    MintMismatch,
    ProofError,
    ScheduleInactive,
    ScheduleLocked,
    StateError,
    TransferError,
    Unauthorized,
    UnverifiedCollection,
    ValidationError,
    VaultError,
    VaultException,
    WrongScheduleType,
)

__all__ = [
    # Canonical
    "CANONICAL_JSON_SEPARATORS",
    "canonical_equals",
    "canonicalize_value",
    "dumps_canonical",
    "loads_canonical",
    # Distribution
    "Allocation",
    "NftAllocation",
    "PubkeyField",
    "RedeemType",
    "RedemptionRecord",
    "ScheduleType",
    # Errors
    "AccountAlreadyExists",
    "AccountNotFound",
    "AlreadyRedeemed",
    "AuthorizationError",
    "CanonicalizationException",
    "ErrorCodes",
    "IndexNotInitialized",
    "IndexOutOfRange",
    "InsufficientFunds",
    "InvalidAccount",
    "InvalidInput",
    "InvalidMetadata",
    "InvalidMintAccount",
    "InvalidProof",
    "InvalidScheduleType",
    "InvalidTokenAmount",
    "LeafMismatch",
    "MintMismatch",
    "ProofError",
    "ScheduleInactive",
    "ScheduleLocked",
    "StateError",
    "TransferError",
    "Unauthorized",
    "UnverifiedCollection",
    "ValidationError",
    "VaultError",
    "VaultException",
    "WrongScheduleType",
]
