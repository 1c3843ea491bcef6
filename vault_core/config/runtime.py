"""
Runtime Configuration

Program and logging settings for VaultProgram and the operator CLI.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from dotenv import load_dotenv
from solders.pubkey import Pubkey

from vault_core.crypto.derivation import DEFAULT_PROGRAM_ID

load_dotenv()


class RedeemIndexScope(str, Enum):
    """
    Exclusivity granularity of NFT-collection claim markers.

    PER_INDEX: one claim per index across the whole collection.
    PER_MINT: one claim per (index, NFT mint) pair.
    """

    PER_INDEX = "per_index"
    PER_MINT = "per_mint"


@dataclass
class ProgramConfig:
    """Configuration for the on-ledger program."""
    program_id: str = str(DEFAULT_PROGRAM_ID)
    redeem_index_scope: RedeemIndexScope = RedeemIndexScope.PER_INDEX

    def __post_init__(self):
        # Accept plain strings from env/YAML
        self.redeem_index_scope = RedeemIndexScope(self.redeem_index_scope)
        Pubkey.from_string(self.program_id)

    @property
    def program_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.program_id)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


# env variable -> (section, key, normaliser)
ENV_VARIABLES: dict[str, tuple[str, str, Callable[[str], str]]] = {
    "VAULT_PROGRAM_ID": ("program", "program_id", str.strip),
    "VAULT_REDEEM_INDEX_SCOPE": ("program", "redeem_index_scope", str.lower),
    "VAULT_LOG_LEVEL": ("logging", "level", str.upper),
    "VAULT_LOG_FILE": ("logging", "file", str.strip),
}


@dataclass
class RuntimeConfig:
    """
    Settings shared by VaultProgram and the vault-distributor CLI.

    Sources, later ones winning: built-in defaults, a YAML file, then
    VAULT_* environment variables (a .env file in the working directory
    counts as environment).
    """
    program: ProgramConfig = field(default_factory=ProgramConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def _get_env_overrides() -> dict[str, Any]:
        """Nested dict of the VAULT_* variables that are set and non-empty."""
        sections: dict[str, Any] = {}
        for name, (section, key, normalise) in ENV_VARIABLES.items():
            raw = os.getenv(name)
            if raw:
                sections.setdefault(section, {})[key] = normalise(raw)
        return sections

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        return cls.from_dict(cls._get_env_overrides())

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RuntimeConfig":
        """
        Read settings from YAML; an empty document yields the defaults.

        Raises:
            FileNotFoundError: path does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"No settings file at {path}")

        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfig":
        return cls(
            program=ProgramConfig(**(data.get("program") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
            extra=dict(data.get("extra") or {}),
        )

    def with_env_overrides(self) -> "RuntimeConfig":
        """
        Copy of this config with VAULT_* variables applied on top.

        Returns self unchanged when no variable is set.
        """
        overrides = self._get_env_overrides()
        if not overrides:
            return self

        merged = self.to_dict()
        for section, values in overrides.items():
            merged[section].update(values)
        return RuntimeConfig.from_dict(merged)

    def to_dict(self) -> dict[str, Any]:
        return {
            "program": {
                "program_id": self.program.program_id,
                "redeem_index_scope": self.program.redeem_index_scope.value,
            },
            "logging": {"level": self.logging.level, "file": self.logging.file},
            "extra": copy.deepcopy(self.extra),
        }


_default_config: Optional[RuntimeConfig] = None


def get_default_config() -> RuntimeConfig:
    """Process-wide config, read from the environment on first use."""
    global _default_config
    if _default_config is None:
        _default_config = RuntimeConfig.from_env()
    return _default_config


def set_default_config(config: RuntimeConfig) -> None:
    global _default_config
    _default_config = config
