"""
Vault distributor core.

Commitment scheme (Merkle tree over allocation leaves), address derivation
and the shared schemas used by the redemption program and the CLI.
"""

__version__ = "0.1.0"
