"""
ShareDAO Exceptions

Base exception classes shared by every ShareDAO subsystem. Subsystem-specific
errors live next to the code that raises them and derive from these.
"""


class ShareDAOException(Exception):
    """Base exception for ShareDAO."""
    pass


class ConfigurationError(ShareDAOException):
    """Configuration error."""
    pass


class GovernanceError(ShareDAOException):
    """Base governance exception. Every rejected DAO operation raises one."""
    pass


class AssetError(ShareDAOException):
    """Base exception for asset ledger operations."""
    pass
