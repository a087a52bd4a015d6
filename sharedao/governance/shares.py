"""
Shares Ledger

Tracks each member's voting weight and the aggregate total. Shares are minted
1:1 against deposited asset base units and burned on withdrawal; the ledger
itself never talks to the asset, the DAO facade sequences the external
transfers around these calls.
"""

from typing import Any, Dict, List

from ..constants import MAX_UINT256
from ..exceptions import GovernanceError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InsufficientSharesError(GovernanceError):
    """Member holds fewer shares than the operation requires."""

    def __init__(self, required: int, actual: int, action: str = "withdraw"):
        self.required = required
        self.actual = actual
        self.action = action
        super().__init__(
            f"Shares too low to {action}: required {required}, have {actual}"
        )


class ShareOverflowError(GovernanceError):
    """Credit would push a balance or the total past MAX_UINT256."""


class InvalidAmountError(GovernanceError):
    """Amount is not a positive integer."""


class ExternalTransferFailedError(GovernanceError):
    """The asset ledger refused or failed a transfer."""


def require_amount(amount: int) -> int:
    """Validate a deposit / withdrawal amount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError("Amount must be positive")
    if amount > MAX_UINT256:
        raise ShareOverflowError(f"Amount {amount} exceeds uint256")
    return amount


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class ShareLedger:
    """
    Principal → shares mapping plus the running total.

    Invariant: total_shares == sum(shares_of(p) for every p). Both sides
    are written together in credit() / debit(); nothing else mutates them.
    Members are never removed, only zeroed.
    """

    def __init__(self):
        self._shares: Dict[str, int] = {}
        self._total_shares: int = 0

    # ── Read-only views ───────────────────────────────────────────────

    def shares_of(self, principal: str) -> int:
        return self._shares.get(principal, 0)

    @property
    def total_shares(self) -> int:
        return self._total_shares

    def holders(self) -> List[str]:
        """Members with a non-zero balance."""
        return [p for p, s in self._shares.items() if s > 0]

    def is_consistent(self) -> bool:
        return self._total_shares == sum(self._shares.values())

    # ── Mutations ─────────────────────────────────────────────────────

    def check_credit(self, principal: str, amount: int) -> None:
        """Raise ShareOverflowError if credit() would overflow; mutate nothing."""
        require_amount(amount)
        # total >= any single balance, so checking the total covers both
        if self._total_shares + amount > MAX_UINT256:
            raise ShareOverflowError(
                f"Crediting {amount} shares to {principal} would overflow the total"
            )

    def credit(self, principal: str, amount: int) -> int:
        """Add *amount* shares to *principal*. Returns the new balance."""
        self.check_credit(principal, amount)
        balance = self._shares.get(principal, 0) + amount
        self._shares[principal] = balance
        self._total_shares += amount
        logger.debug(f"Credit: {principal} +{amount} shares (balance={balance})")
        return balance

    def debit(self, principal: str, amount: int) -> int:
        """Remove *amount* shares from *principal*. Returns the new balance."""
        require_amount(amount)
        balance = self.shares_of(principal)
        if balance < amount:
            raise InsufficientSharesError(required=amount, actual=balance)
        balance -= amount
        self._shares[principal] = balance
        self._total_shares -= amount
        logger.debug(f"Debit: {principal} -{amount} shares (balance={balance})")
        return balance

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalShares": str(self._total_shares),
            "members": len(self._shares),
            "holders": len(self.holders()),
            "shares": {p: str(s) for p, s in self._shares.items()},
        }

    def __repr__(self) -> str:
        return f"<ShareLedger members={len(self._shares)} total={self._total_shares}>"
