"""
Governance events.

One frozen record per committed mutation, appended to the DAO's event log.
Rejected operations emit nothing.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Deposited:
    member: str
    amount: int
    balance: int
    total_shares: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "member": self.member,
            "amount": str(self.amount),
            "balance": str(self.balance),
            "totalShares": str(self.total_shares),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Withdrawn:
    member: str
    amount: int
    balance: int
    total_shares: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Withdraw",
            "member": self.member,
            "amount": str(self.amount),
            "balance": str(self.balance),
            "totalShares": str(self.total_shares),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProposalCreated:
    key: bytes
    author: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCreated",
            "key": self.key.hex(),
            "author": self.author,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteCast:
    key: bytes
    voter: str
    side: str
    weight: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCast",
            "key": self.key.hex(),
            "voter": self.voter,
            "side": self.side,
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteChanged:
    key: bytes
    voter: str
    side: str
    weight: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteChanged",
            "key": self.key.hex(),
            "voter": self.voter,
            "side": self.side,
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProposalResolved:
    key: bytes
    status: str
    votes_support: int
    votes_reject: int
    total_shares: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalResolved",
            "key": self.key.hex(),
            "status": self.status,
            "votesSupport": str(self.votes_support),
            "votesReject": str(self.votes_reject),
            "totalShares": str(self.total_shares),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ParameterChanged:
    name: str
    old_value: int
    new_value: int
    changed_by: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ParameterChanged",
            "name": self.name,
            "oldValue": str(self.old_value),
            "newValue": str(self.new_value),
            "changedBy": self.changed_by,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OwnerChanged:
    previous_owner: str
    new_owner: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OwnerChanged",
            "previousOwner": self.previous_owner,
            "newOwner": self.new_owner,
            "timestamp": self.timestamp,
        }
