"""
Schemas - Distribution
File: distribution.py

Purpose: Input models for allocations committed into a schedule, the
schedule type enumeration, and the redemption record emitted on every
successful claim.

Allocations are validated on construction: indices fit u16, amounts fit
u64, timestamps fit i64, and addresses parse as base58 public keys.
"""

from enum import Enum, IntEnum
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from solders.pubkey import Pubkey


U16_MAX = 0xFFFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def _parse_pubkey(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return Pubkey.from_string(value)
        except ValueError as e:
            raise ValueError(f"Invalid base58 public key: {value!r}") from e
    if isinstance(value, (bytes, bytearray)) and len(value) == 32:
        return Pubkey.from_bytes(bytes(value))
    return value


PubkeyField = Annotated[
    Pubkey,
    BeforeValidator(_parse_pubkey),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


class ScheduleType(IntEnum):
    """Kind of distribution a schedule performs. Stored as one byte."""

    FUNGIBLE_SINGLE = 0
    FUNGIBLE_MULTI = 1
    NFT_SPECIFIC = 2
    NFT_COLLECTION = 3

    @property
    def uses_marker_accounts(self) -> bool:
        """NFT-collection claims are tracked by RedeemIndex accounts, not a bitmap."""
        return self is ScheduleType.NFT_COLLECTION

    @property
    def is_nft(self) -> bool:
        return self in (ScheduleType.NFT_SPECIFIC, ScheduleType.NFT_COLLECTION)


class RedeemType(str, Enum):
    """NFT leaf flavour; part of the encoded leaf."""

    SPECIFIC = "specific"
    COLLECTION = "collection"


class Allocation(BaseModel):
    """
    One fungible allocation leaf.

    `timestamp` is the per-leaf unlock time (omitted for legacy trees).
    `receiving_token_mint` is set only for multi-token schedules.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    index: int = Field(..., ge=0, le=U16_MAX, description="Dense 0-based leaf position")
    timestamp: int | None = Field(default=None, ge=I64_MIN, le=I64_MAX)
    recipient: PubkeyField
    receiving_amount: int = Field(..., ge=0, le=U64_MAX)
    sending_amount: int = Field(default=0, ge=0, le=U64_MAX)
    receiving_token_mint: PubkeyField | None = None


class NftAllocation(BaseModel):
    """
    One NFT-gated allocation leaf.

    Specific leaves name the NFT mint that may claim. Collection leaves
    leave it empty: any verified member of `collection_mint` may claim.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    redeem_type: RedeemType
    index: int = Field(..., ge=0, le=U16_MAX)
    timestamp: int = Field(..., ge=I64_MIN, le=I64_MAX)
    nft_mint: PubkeyField | None = None
    collection_mint: PubkeyField
    receiving_amount: int = Field(..., ge=0, le=U64_MAX)
    sending_amount: int = Field(default=0, ge=0, le=U64_MAX)

    @model_validator(mode="after")
    def _check_mint_binding(self) -> "NftAllocation":
        if self.redeem_type is RedeemType.SPECIFIC and self.nft_mint is None:
            raise ValueError("specific NFT allocations must name nft_mint")
        if (
            self.redeem_type is RedeemType.COLLECTION
            and self.nft_mint is not None
            and self.nft_mint != Pubkey.default()
        ):
            raise ValueError("collection NFT allocations must not bind an nft_mint")
        return self

    @property
    def leaf_mint(self) -> Pubkey:
        """Mint committed into the leaf; the empty key for collection leaves."""
        return self.nft_mint if self.redeem_type is RedeemType.SPECIFIC else Pubkey.default()


class RedemptionRecord(BaseModel):
    """Emitted once per successful claim."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    schedule: PubkeyField
    event_id: int
    index: int
    recipient: PubkeyField
    receiving_token_mint: PubkeyField
    receiving_amount: int
    sending_amount: int
    nft_mint: PubkeyField | None = None
    timestamp: int = Field(..., description="Clock reading when the claim committed")
