"""
Vault Distributor CLI

Operator command-line interface for the Merkle vault distributor.

Usage:
    python -m vault_cli build-tree allocations.json --encoding current --out tree.json
    python -m vault_cli verify tree.json --index 3
    python -m vault_cli derive --event-id 42 --index 0
"""

__version__ = "0.1.0"
