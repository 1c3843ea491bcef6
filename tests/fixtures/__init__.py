"""
Test fixtures package for vault distributor tests.

This package provides factory functions for creating test objects.
Organized into layers:
- allocation_fixtures.py: Keys and allocation leaves
- program_fixtures.py: Program harness with a funded vault

Usage:
    from fixtures import make_allocations, make_harness

    def test_something():
        h = make_harness()
        schedule, tree = h.publish(make_allocations(3))
"""

from .allocation_fixtures import (
    NOW,
    key,
    recipient,
    make_allocation,
    make_allocations,
    make_nft_allocation,
)

from .program_fixtures import (
    Clock,
    VaultHarness,
    make_harness,
)

__all__ = [
    # Allocations
    "NOW",
    "key",
    "recipient",
    "make_allocation",
    "make_allocations",
    "make_nft_allocation",
    # Program
    "Clock",
    "VaultHarness",
    "make_harness",
]
