"""
ShareDAO Unified Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    AssetSectionConfig,
    DAOConfig,
    GovernanceSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "AssetSectionConfig",
    "DAOConfig",
    "GovernanceSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
