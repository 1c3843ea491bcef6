"""
Runtime Configuration Module

Provides configuration loading and management for the vault distributor.
"""

from .runtime import (
    LoggingConfig,
    ProgramConfig,
    RedeemIndexScope,
    RuntimeConfig,
    get_default_config,
    set_default_config,
)

__all__ = [
    "LoggingConfig",
    "ProgramConfig",
    "RedeemIndexScope",
    "RuntimeConfig",
    "get_default_config",
    "set_default_config",
]
