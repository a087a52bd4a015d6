"""
Asset ledger interface and in-memory governance token.

The DAO never holds balances of the deposited asset itself; it asks an
AssetLedger to pull funds into custody on deposit and push them back out on
withdrawal. GovToken is an ERC-20–style reference token and TokenCustody
adapts it to the AssetLedger interface:

  - deposit  → token.transfer_from(spender=custody, member → custody)
  - withdraw → token.transfer(custody → member)

so members must approve the custody address before depositing.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..constants import ASSET_DECIMALS, MAX_UINT256
from ..exceptions import AssetError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InsufficientBalanceError(AssetError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(AssetError):
    """Raised when spender allowance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  INTERFACE
# ══════════════════════════════════════════════════════════════════════

class AssetLedger(ABC):
    """
    External fungible-asset ledger consumed by the DAO.

    Both calls either return True, return False (refused) or raise an
    AssetError; the DAO treats all non-True outcomes as a failed transfer.
    """

    @abstractmethod
    async def transfer_in(self, sender: str, amount: int) -> bool:
        """Move *amount* from *sender* into DAO custody."""

    @abstractmethod
    async def transfer_out(self, recipient: str, amount: int) -> bool:
        """Move *amount* from DAO custody to *recipient*."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer and mint."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE TOKEN
# ══════════════════════════════════════════════════════════════════════

MINT_ADDRESS = "0x" + "00" * 20


class GovToken:
    """
    Fungible token with integer base-unit balances.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, sender, recipient, amount)
        - total_supply → int

    plus faucet() for seeding balances in tests and demos.
    """

    def __init__(self, name: str = "Governance Token", symbol: str = "GOV", decimals: int = ASSET_DECIMALS):
        if not name:
            raise AssetError("Token name cannot be empty")
        if not symbol:
            raise AssetError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise AssetError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = 0

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._events: List[Any] = []

        logger.info(f"Token deployed: {symbol} ({name}), decimals={decimals}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def unit(self) -> int:
        return 10 ** self.decimals

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── State guards ──────────────────────────────────────────────────

    @staticmethod
    def _require_positive(amount: int, what: str):
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise AssetError(f"{what} amount must be a positive integer")

    # ── Supply ────────────────────────────────────────────────────────

    def faucet(self, recipient: str, amount: int) -> TransferEvent:
        """Mint *amount* base units to *recipient*."""
        self._require_positive(amount, "Mint")
        if self._total_supply + amount > MAX_UINT256:
            raise AssetError(f"Minting {amount} would overflow total supply")

        self._total_supply += amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TransferEvent(self.symbol, MINT_ADDRESS, recipient, amount)
        self._events.append(event)
        logger.debug(f"Faucet: {amount} {self.symbol} → {recipient}")
        return event

    # ── Core ERC-20 operations ────────────────────────────────────────

    async def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        self._require_positive(amount, "Transfer")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TransferEvent(self.symbol, sender, recipient, amount)
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    async def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise AssetError("Allowance amount cannot be negative")

        self._allowances[(owner, spender)] = amount

        event = ApprovalEvent(self.symbol, owner, spender, amount)
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    async def transfer_from(
        self,
        spender: str,
        sender: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """Transfer on behalf of *sender* using spender's allowance."""
        self._require_positive(amount, "Transfer")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        allow = self.allowance(sender, spender)
        if allow < amount:
            raise InsufficientAllowanceError(
                f"Allowance {allow} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._allowances[(sender, spender)] = allow - amount

        event = TransferEvent(self.symbol, sender, recipient, amount)
        self._events.append(event)
        logger.debug(
            f"transferFrom: spender={spender} {sender} → {recipient} {amount} {self.symbol}"
        )
        return event

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": str(self._total_supply),
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<GovToken {self.symbol} supply={self._total_supply}>"


# ══════════════════════════════════════════════════════════════════════
#  CUSTODY ADAPTER
# ══════════════════════════════════════════════════════════════════════

class TokenCustody(AssetLedger):
    """AssetLedger backed by a GovToken balance held at *custody_address*."""

    def __init__(self, token: GovToken, custody_address: str):
        if not custody_address:
            raise AssetError("Custody address is required")
        self.token = token
        self.custody_address = custody_address

    async def transfer_in(self, sender: str, amount: int) -> bool:
        await self.token.transfer_from(
            spender=self.custody_address,
            sender=sender,
            recipient=self.custody_address,
            amount=amount,
        )
        return True

    async def transfer_out(self, recipient: str, amount: int) -> bool:
        await self.token.transfer(self.custody_address, recipient, amount)
        return True

    @property
    def held(self) -> int:
        """Asset currently in custody."""
        return self.token.balance_of(self.custody_address)

    def __repr__(self) -> str:
        return f"<TokenCustody {self.token.symbol} at {self.custody_address}>"
