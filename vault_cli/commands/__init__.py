"""
CLI command modules.
"""

from vault_cli.commands import build_tree, derive, verify

__all__ = ["build_tree", "derive", "verify"]
