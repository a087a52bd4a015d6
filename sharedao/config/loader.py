"""
ShareDAO TOML Configuration Loader

Loads all sections of config.toml at startup with environment variable overrides.

Environment variable mapping:
    [governance] voting_period                  → SHAREDAO_VOTING_PERIOD
    [governance] min_shares_to_create_proposal  → SHAREDAO_MIN_SHARES
    [governance] owner                          → SHAREDAO_OWNER
    [asset] decimals                            → SHAREDAO_ASSET_DECIMALS
    [logging] level                             → SHAREDAO_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    ASSET_DECIMALS,
    GOVERNANCE_MIN_SHARES_TO_CREATE_PROPOSAL,
    GOVERNANCE_VOTING_PERIOD_SECONDS,
    ZERO_ADDRESS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_MIN_SHARES_UNITS = GOVERNANCE_MIN_SHARES_TO_CREATE_PROPOSAL // 10 ** ASSET_DECIMALS


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _env_int(name: str) -> Optional[int]:
    """Integer override from the environment, or None when unset."""
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


# ---------------------------------------------------------------------------
# Subsection dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    voting_period: int = GOVERNANCE_VOTING_PERIOD_SECONDS
    # Whole asset units, scaled by [asset] decimals
    min_shares_to_create_proposal: int = _DEFAULT_MIN_SHARES_UNITS
    owner: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            voting_period=data.get("voting_period", GOVERNANCE_VOTING_PERIOD_SECONDS),
            min_shares_to_create_proposal=data.get(
                "min_shares_to_create_proposal", _DEFAULT_MIN_SHARES_UNITS
            ),
            owner=data.get("owner", ""),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if (v := _env_int("SHAREDAO_VOTING_PERIOD")) is not None:
            self.voting_period = v
        if (v := _env_int("SHAREDAO_MIN_SHARES")) is not None:
            self.min_shares_to_create_proposal = v
        if v := os.environ.get("SHAREDAO_OWNER"):
            self.owner = v


@dataclass
class AssetSectionConfig:
    """[asset] section."""
    name: str = "Governance Token"
    symbol: str = "GOV"
    decimals: int = ASSET_DECIMALS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetSectionConfig":
        return cls(
            name=data.get("name", "Governance Token"),
            symbol=data.get("symbol", "GOV"),
            decimals=data.get("decimals", ASSET_DECIMALS),
        )

    def apply_env(self) -> None:
        if (v := _env_int("SHAREDAO_ASSET_DECIMALS")) is not None:
            self.decimals = v

    @property
    def unit(self) -> int:
        return 10 ** self.decimals


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    log_file: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=data.get("level", "INFO"),
            file_output=data.get("file_output", False),
            log_file=data.get("log_file", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SHAREDAO_LOG_LEVEL"):
            self.level = v


# -----------------------------------------------------------------------
# Top-level unified config
# -----------------------------------------------------------------------

@dataclass
class DAOConfig:
    """
    Unified DAO configuration.

    Loads every section of config.toml and applies environment variable
    overrides.  This is the single source of truth at runtime.
    """
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)
    asset: AssetSectionConfig = field(default_factory=AssetSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create DAOConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
            asset=AssetSectionConfig.from_dict(data.get("asset", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            DAOConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.asset.apply_env()
        self.logging.apply_env()

    # --- derived values ---------------------------------------------------

    @property
    def min_shares_base_units(self) -> int:
        """Proposal threshold expressed in shares (asset base units)."""
        return self.governance.min_shares_to_create_proposal * self.asset.unit

    def apply_logging(self) -> None:
        """Push the [logging] section into the shared LogManager."""
        from ..logger import configure_logging

        configure_logging(
            log_level=self.logging.level,
            log_file=Path(self.logging.log_file) if self.logging.log_file else None,
            file_output=self.logging.file_output,
        )

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        for name, value in (
            ("voting_period", self.governance.voting_period),
            ("min_shares_to_create_proposal", self.governance.min_shares_to_create_proposal),
            ("decimals", self.asset.decimals),
        ):
            if not _is_int(value):
                raise ConfigurationError(
                    f"{name} must be an integer, got {type(value).__name__}"
                )
        if not isinstance(self.governance.owner, str):
            raise ConfigurationError("owner must be a string")
        if not isinstance(self.logging.file_output, bool):
            raise ConfigurationError("file_output must be true or false")

        if self.governance.voting_period <= 0:
            raise ConfigurationError("voting_period must be > 0")
        if self.governance.min_shares_to_create_proposal < 0:
            raise ConfigurationError("min_shares_to_create_proposal must be >= 0")
        if self.governance.owner == ZERO_ADDRESS:
            raise ConfigurationError("owner cannot be the zero address")
        if not 0 <= self.asset.decimals <= 18:
            raise ConfigurationError(f"Asset decimals must be 0-18, got {self.asset.decimals}")
        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governance": {
                "voting_period": self.governance.voting_period,
                "min_shares_to_create_proposal": self.governance.min_shares_to_create_proposal,
                "owner": self.governance.owner,
            },
            "asset": {
                "name": self.asset.name,
                "symbol": self.asset.symbol,
                "decimals": self.asset.decimals,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "log_file": self.logging.log_file,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load DAO configuration.

    Resolution order:
        1. Explicit *path* argument
        2. SHAREDAO_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("SHAREDAO_CONFIG", "config.toml")

    return DAOConfig.from_file(path)
