"""
ShareDAO Asset Ledgers

Provides:
  - AssetLedger      : interface the DAO moves deposited funds through
  - GovToken         : in-memory fungible token with ERC-20–style interface
  - TokenCustody     : AssetLedger backed by a GovToken custody balance
"""

from .asset import (
    ApprovalEvent,
    AssetLedger,
    GovToken,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenCustody,
    TransferEvent,
)

__all__ = [
    "ApprovalEvent",
    "AssetLedger",
    "GovToken",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "TokenCustody",
    "TransferEvent",
]
