"""
Leaf Encoding Unit Tests
Tests for vault_core/merkle/leaves.py and the schedule-aware claim check.

Covers byte layouts, encoding separation (a leaf committed under one
encoding never verifies under another) and shape mismatches.
"""
import struct

import pytest
from pydantic import ValidationError as PydanticValidationError
from solders.pubkey import Pubkey

from vault_core.merkle.distribution import DistributionTree
from vault_core.merkle.leaves import LeafEncoding, encode_leaf, encoding_for_schedule, leaf_hash
from vault_core.merkle.merkle_proofs import MerkleVerifier
from vault_core.schemas.distribution import Allocation, NftAllocation, RedeemType, ScheduleType
from vault_core.schemas.errors import InvalidProof, InvalidScheduleType, LeafMismatch

from fixtures import NOW, key, make_allocation, make_allocations, make_nft_allocation


class TestByteLayouts:
    """Little-endian field order per encoding."""

    def test_current_layout(self):
        a = make_allocation(index=7, receiving_amount=500, sending_amount=3, timestamp=NOW)
        expected = (
            struct.pack("<Hq", 7, NOW)
            + bytes(a.recipient)
            + struct.pack("<QQ", 500, 3)
        )
        assert encode_leaf(a, LeafEncoding.CURRENT) == expected

    def test_legacy_layout_has_no_timestamp(self):
        a = make_allocation(index=1, timestamp=None)
        expected = struct.pack("<H", 1) + bytes(a.recipient) + struct.pack("<QQ", 100, 0)
        assert encode_leaf(a, LeafEncoding.LEGACY) == expected

    def test_multi_layout_carries_mint(self):
        mint = key("mint-b")
        a = make_allocation(index=2, receiving_token_mint=mint, timestamp=NOW)
        encoded = encode_leaf(a, LeafEncoding.MULTI)

        assert encoded[2 + 8 + 32: 2 + 8 + 64] == bytes(mint)
        assert len(encoded) == 2 + 8 + 32 + 32 + 16

    def test_nft_collection_layout(self):
        n = make_nft_allocation(index=4, redeem_type=RedeemType.COLLECTION)
        encoded = encode_leaf(n, LeafEncoding.NFT_COLLECTION)

        assert encoded[:4] == struct.pack("<I", len("collection"))
        assert encoded[4:14] == b"collection"
        offset = 14 + 2 + 8
        assert encoded[offset: offset + 32] == bytes(Pubkey.default())
        assert encoded[offset + 32: offset + 64] == bytes(n.collection_mint)

    def test_leaf_hash_includes_tag(self):
        a = make_allocation()
        assert leaf_hash(a, LeafEncoding.CURRENT) != leaf_hash(a, LeafEncoding.LEGACY)


class TestShapeMismatch:
    """Fields that do not fit an encoding raise LeafMismatch."""

    def test_current_requires_timestamp(self):
        with pytest.raises(LeafMismatch, match="timestamp"):
            encode_leaf(make_allocation(timestamp=None), LeafEncoding.CURRENT)

    def test_multi_requires_mint(self):
        with pytest.raises(LeafMismatch, match="receiving_token_mint"):
            encode_leaf(make_allocation(), LeafEncoding.MULTI)

    def test_single_rejects_mint(self):
        with pytest.raises(LeafMismatch):
            encode_leaf(make_allocation(receiving_token_mint=key("m")), LeafEncoding.CURRENT)

    def test_nft_encoding_rejects_fungible_leaf(self):
        with pytest.raises(LeafMismatch):
            encode_leaf(make_allocation(), LeafEncoding.NFT_SPECIFIC)

    def test_fungible_encoding_rejects_nft_leaf(self):
        with pytest.raises(LeafMismatch):
            encode_leaf(make_nft_allocation(), LeafEncoding.CURRENT)

    def test_redeem_type_must_match_encoding(self):
        with pytest.raises(LeafMismatch, match="redeem_type"):
            encode_leaf(make_nft_allocation(), LeafEncoding.NFT_COLLECTION)


class TestAllocationValidation:

    def test_negative_amount_rejected(self):
        with pytest.raises(PydanticValidationError):
            Allocation(index=0, timestamp=0, recipient=key("r"), receiving_amount=-1)

    def test_amount_above_u64_rejected(self):
        with pytest.raises(PydanticValidationError):
            Allocation(index=0, timestamp=0, recipient=key("r"), receiving_amount=2**64)

    def test_index_above_u16_rejected(self):
        with pytest.raises(PydanticValidationError):
            Allocation(index=70_000, timestamp=0, recipient=key("r"), receiving_amount=1)

    def test_recipient_parsed_from_base58(self):
        a = Allocation(index=0, recipient=str(key("r")), receiving_amount=1)
        assert a.recipient == key("r")

    def test_bad_base58_rejected(self):
        with pytest.raises(PydanticValidationError):
            Allocation(index=0, recipient="not-a-key!", receiving_amount=1)

    def test_specific_nft_requires_mint(self):
        with pytest.raises(PydanticValidationError):
            NftAllocation(
                redeem_type=RedeemType.SPECIFIC,
                index=0,
                timestamp=0,
                collection_mint=key("c"),
                receiving_amount=1,
            )

    def test_collection_nft_rejects_mint(self):
        with pytest.raises(PydanticValidationError):
            NftAllocation(
                redeem_type=RedeemType.COLLECTION,
                index=0,
                timestamp=0,
                nft_mint=key("n"),
                collection_mint=key("c"),
                receiving_amount=1,
            )


class TestEncodingForSchedule:

    @pytest.mark.parametrize("schedule_type,legacy,encoding", [
        (ScheduleType.FUNGIBLE_SINGLE, False, LeafEncoding.CURRENT),
        (ScheduleType.FUNGIBLE_SINGLE, True, LeafEncoding.LEGACY),
        (ScheduleType.FUNGIBLE_MULTI, False, LeafEncoding.MULTI),
        (ScheduleType.FUNGIBLE_MULTI, True, LeafEncoding.MULTI_LEGACY),
        (ScheduleType.NFT_SPECIFIC, False, LeafEncoding.NFT_SPECIFIC),
        (ScheduleType.NFT_COLLECTION, False, LeafEncoding.NFT_COLLECTION),
    ])
    def test_mapping(self, schedule_type, legacy, encoding):
        assert encoding_for_schedule(schedule_type, legacy) is encoding

    def test_unknown_type(self):
        with pytest.raises(InvalidScheduleType):
            encoding_for_schedule(9)


class TestClaimVerification:
    """MerkleVerifier.verify_claim picks the encoding from the schedule."""

    def test_valid_claim_returns_leaf(self):
        allocations = make_allocations(4)
        tree = DistributionTree.for_schedule(allocations, ScheduleType.FUNGIBLE_SINGLE)

        leaf = MerkleVerifier.verify_claim(
            allocations[2], tree.proof_steps(2), tree.root, ScheduleType.FUNGIBLE_SINGLE
        )
        assert leaf == tree.leaf_hashes[2]

    def test_current_tree_rejected_as_legacy(self):
        allocations = make_allocations(4)
        tree = DistributionTree.for_schedule(allocations, ScheduleType.FUNGIBLE_SINGLE)

        with pytest.raises(InvalidProof):
            MerkleVerifier.verify_claim(
                allocations[1], tree.proof_steps(1), tree.root, ScheduleType.FUNGIBLE_SINGLE, legacy=True
            )

    def test_altered_amount_rejected(self):
        allocations = make_allocations(4)
        tree = DistributionTree.for_schedule(allocations, ScheduleType.FUNGIBLE_SINGLE)
        inflated = allocations[0].model_copy(update={"receiving_amount": 10**9})

        with pytest.raises(InvalidProof):
            MerkleVerifier.verify_claim(
                inflated, tree.proof_steps(0), tree.root, ScheduleType.FUNGIBLE_SINGLE
            )

    def test_specific_leaf_never_verifies_as_collection(self):
        """Same fields, different variant: disjoint hashes."""
        specific = make_nft_allocation(index=0, nft_mint=Pubkey.default())
        collection = make_nft_allocation(index=0, redeem_type=RedeemType.COLLECTION)

        assert leaf_hash(specific, LeafEncoding.NFT_SPECIFIC) != leaf_hash(
            collection, LeafEncoding.NFT_COLLECTION
        )
