"""
Schemas - Error taxonomy
File: errors.py

Purpose: Every way an instruction or tree operation can fail, as a
stable code, a pydantic record for reports, and an exception class.

Every rejected instruction surfaces one concrete kind so that a
legitimate retry (e.g. after funding the vault) can be told apart
from a permanent rejection such as a double claim.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Codes
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the program."""

    # Validation Errors
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_ACCOUNT = "INVALID_ACCOUNT"
    INVALID_SCHEDULE_TYPE = "INVALID_SCHEDULE_TYPE"
    WRONG_SCHEDULE_TYPE = "WRONG_SCHEDULE_TYPE"
    INDEX_OUT_OF_RANGE = "INDEX_OUT_OF_RANGE"
    CANONICALIZATION_ERROR = "CANONICALIZATION_ERROR"

    # Proof Errors
    LEAF_MISMATCH = "LEAF_MISMATCH"
    INVALID_PROOF = "INVALID_PROOF"

    # State Errors
    SCHEDULE_INACTIVE = "SCHEDULE_INACTIVE"
    SCHEDULE_LOCKED = "SCHEDULE_LOCKED"
    ALREADY_REDEEMED = "ALREADY_REDEEMED"
    INDEX_NOT_INITIALIZED = "INDEX_NOT_INITIALIZED"
    ACCOUNT_ALREADY_EXISTS = "ACCOUNT_ALREADY_EXISTS"

    # Authorization Errors
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_MINT_ACCOUNT = "INVALID_MINT_ACCOUNT"
    INVALID_TOKEN_AMOUNT = "INVALID_TOKEN_AMOUNT"
    INVALID_METADATA = "INVALID_METADATA"
    UNVERIFIED_COLLECTION = "UNVERIFIED_COLLECTION"

    # Transfer Errors
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    MINT_MISMATCH = "MINT_MISMATCH"


# =============================================================================
# Serializable error record
# =============================================================================

class VaultError(BaseModel):
    """
    Base error model for structured error reporting.

    Used by the CLI and by callers that log or serialize rejections
    instead of propagating exceptions.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=False,
        validate_assignment=True,
    )

    code: str = Field(
        ...,
        description="ErrorCodes constant, stable across releases",
        examples=[ErrorCodes.INVALID_PROOF],
    )
    category: str = Field(
        default="VaultException",
        description="Error category (ValidationError, ProofError, ...)",
    )
    message: str = Field(
        ...,
        description="Operator-facing explanation",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Indices, keys and amounts involved",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can succeed if retried later",
    )

    def to_exception(self) -> "VaultException":
        """VaultException carrying this record, ready to raise."""
        return VaultException(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )


# =============================================================================
# Raised exceptions
# =============================================================================

class VaultException(Exception):
    """
    Base exception for all vault program errors.

    Carries structured error information and can be converted
    to a VaultError model.
    """

    default_code = "VAULT_ERROR"
    default_retryable = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        self.retryable = self.default_retryable if retryable is None else retryable

    @property
    def category(self) -> str:
        """Name of the taxonomy category this error belongs to."""
        for klass in type(self).__mro__:
            if klass in _CATEGORIES:
                return klass.__name__
        return "VaultException"

    def to_error_model(self) -> VaultError:
        """Convert this exception to a VaultError model."""
        return VaultError(
            code=self.code,
            category=self.category,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# --- Categories --------------------------------------------------------------

class ValidationError(VaultException):
    """Malformed input, rejected before any state mutation."""

    default_code = ErrorCodes.INVALID_INPUT


class ProofError(VaultException):
    """Leaf or Merkle proof does not match the committed root."""

    default_code = ErrorCodes.INVALID_PROOF


class StateError(VaultException):
    """The instruction conflicts with current account state."""

    default_code = ErrorCodes.SCHEDULE_INACTIVE


class AuthorizationError(VaultException):
    """The signer lacks the rights the instruction requires."""

    default_code = ErrorCodes.UNAUTHORIZED


class TransferError(VaultException):
    """A payout leg could not be executed; the whole claim rolls back."""

    default_code = ErrorCodes.INSUFFICIENT_FUNDS
    default_retryable = True


_CATEGORIES = (ValidationError, ProofError, StateError, AuthorizationError, TransferError)


# --- Validation kinds --------------------------------------------------------

class InvalidInput(ValidationError):
    default_code = ErrorCodes.INVALID_INPUT


class InvalidAccount(ValidationError):
    """A supplied address does not match the one derived from its seeds."""

    default_code = ErrorCodes.INVALID_ACCOUNT


class InvalidScheduleType(ValidationError):
    default_code = ErrorCodes.INVALID_SCHEDULE_TYPE


class WrongScheduleType(ValidationError):
    """Instruction used against a schedule of a different type."""

    default_code = ErrorCodes.WRONG_SCHEDULE_TYPE


class IndexOutOfRange(ValidationError):
    default_code = ErrorCodes.INDEX_OUT_OF_RANGE


class CanonicalizationException(ValidationError):
    """Raised when canonical serialization fails."""

    default_code = ErrorCodes.CANONICALIZATION_ERROR


# --- Proof kinds -------------------------------------------------------------

class LeafMismatch(ProofError):
    """Claim fields do not fit the leaf schema of the schedule type."""

    default_code = ErrorCodes.LEAF_MISMATCH


class InvalidProof(ProofError):
    default_code = ErrorCodes.INVALID_PROOF


# --- State kinds -------------------------------------------------------------

class ScheduleInactive(StateError):
    default_code = ErrorCodes.SCHEDULE_INACTIVE


class ScheduleLocked(StateError):
    """Unlock time not reached yet. Retrying later may succeed."""

    default_code = ErrorCodes.SCHEDULE_LOCKED
    default_retryable = True


class AlreadyRedeemed(StateError):
    default_code = ErrorCodes.ALREADY_REDEEMED


class IndexNotInitialized(StateError):
    default_code = ErrorCodes.INDEX_NOT_INITIALIZED


class AccountAlreadyExists(StateError):
    default_code = ErrorCodes.ACCOUNT_ALREADY_EXISTS


# --- Authorization kinds -----------------------------------------------------

class Unauthorized(AuthorizationError):
    default_code = ErrorCodes.UNAUTHORIZED


class InvalidMintAccount(AuthorizationError):
    default_code = ErrorCodes.INVALID_MINT_ACCOUNT


class InvalidTokenAmount(AuthorizationError):
    default_code = ErrorCodes.INVALID_TOKEN_AMOUNT


class InvalidMetadata(AuthorizationError):
    default_code = ErrorCodes.INVALID_METADATA


class UnverifiedCollection(AuthorizationError):
    """NFT metadata does not name the collection as a verified member."""

    default_code = ErrorCodes.UNVERIFIED_COLLECTION


# --- Transfer kinds ----------------------------------------------------------

class InsufficientFunds(TransferError):
    default_code = ErrorCodes.INSUFFICIENT_FUNDS


class AccountNotFound(TransferError):
    default_code = ErrorCodes.ACCOUNT_NOT_FOUND


class MintMismatch(TransferError):
    default_code = ErrorCodes.MINT_MISMATCH
    default_retryable = False
