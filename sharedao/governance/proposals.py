"""
Governance Proposals

Defines the proposal lifecycle states, the Proposal dataclass and the
ProposalStore that enforces creation uniqueness and the minimum-weight
eligibility rule.
"""

import hashlib
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union

from ..constants import (
    GOVERNANCE_STATUS_APPROVED,
    GOVERNANCE_STATUS_REJECTED,
    GOVERNANCE_STATUS_UNDECIDED,
    PROPOSAL_KEY_DOMAIN,
    PROPOSAL_KEY_SIZE,
)
from ..exceptions import GovernanceError
from ..logger import get_logger
from .shares import InsufficientSharesError

logger = get_logger(__name__)

ProposalKey = Union[bytes, bytearray, str]


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class DuplicateProposalError(GovernanceError):
    """A proposal with this key already exists."""


class ProposalNotFoundError(GovernanceError):
    """No proposal is stored under this key."""


class InvalidProposalKeyError(GovernanceError):
    """Key is empty or of an unsupported type."""


class ProposalLifecycleError(GovernanceError):
    """Raised on illegal status transitions."""


# ══════════════════════════════════════════════════════════════════════
#  KEYS
# ══════════════════════════════════════════════════════════════════════

def normalize_key(key: ProposalKey) -> bytes:
    """
    Coerce a caller-supplied key into bytes.

    str keys are taken as their UTF-8 encoding, the same way a caller would
    hex-encode ASCII text before submission. The content is never inspected.
    """
    if isinstance(key, str):
        key = key.encode("utf-8")
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidProposalKeyError(
            f"Proposal key must be bytes or str, got {type(key).__name__}"
        )
    if not key:
        raise InvalidProposalKeyError("Proposal key cannot be empty")
    return bytes(key)


def proposal_key(text: str) -> bytes:
    """Derive a fixed-size key from proposal text."""
    payload = PROPOSAL_KEY_DOMAIN + text.encode("utf-8")
    return hashlib.blake2b(payload, digest_size=PROPOSAL_KEY_SIZE).digest()


# ══════════════════════════════════════════════════════════════════════
#  STATUS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Outcome of a proposal. APPROVED and REJECTED are terminal."""
    UNDECIDED = GOVERNANCE_STATUS_UNDECIDED
    APPROVED = GOVERNANCE_STATUS_APPROVED
    REJECTED = GOVERNANCE_STATUS_REJECTED


_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.UNDECIDED: {ProposalStatus.APPROVED, ProposalStatus.REJECTED},
    # Terminal states
    ProposalStatus.APPROVED: set(),
    ProposalStatus.REJECTED: set(),
}


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A proposal keyed by an opaque, caller-chosen key.

    Fields:
        key:            Unique key (usually a content hash)
        author:         Principal that created it
        created_at:     Timestamp of creation; the voting window opens here
        votes_support:  Shares locked into SUPPORT
        votes_reject:   Shares locked into REJECT
        status:         UNDECIDED until a side holds a strict majority of
                        all outstanding shares
        resolved_at:    Timestamp at which the status became terminal
    """
    key: bytes
    author: str
    created_at: float
    votes_support: int = 0
    votes_reject: int = 0
    status: ProposalStatus = ProposalStatus.UNDECIDED
    resolved_at: Optional[float] = None

    # ── Properties ────────────────────────────────────────────────────

    @property
    def key_hex(self) -> str:
        return self.key.hex()

    @property
    def is_terminal(self) -> bool:
        return self.status != ProposalStatus.UNDECIDED

    @property
    def total_votes(self) -> int:
        return self.votes_support + self.votes_reject

    def deadline(self, voting_period: int) -> float:
        """End of the voting window (exclusive)."""
        return self.created_at + voting_period

    def is_open(self, now: float, voting_period: int) -> bool:
        return now < self.deadline(voting_period)

    # ── State transitions ─────────────────────────────────────────────

    def resolve(self, new_status: ProposalStatus, now: float) -> None:
        """
        Fix the terminal outcome.

        Raises ProposalLifecycleError if the proposal already resolved.
        """
        allowed = _VALID_TRANSITIONS[self.status]
        if new_status not in allowed:
            raise ProposalLifecycleError(
                f"Cannot transition from {self.status.name} → {new_status.name}"
            )
        self.status = new_status
        self.resolved_at = now
        logger.info(f"Proposal key={self.key_hex[:16]}: UNDECIDED → {new_status.name}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key_hex,
            "author": self.author,
            "votesSupport": str(self.votes_support),
            "votesReject": str(self.votes_reject),
            "status": self.status.name,
            "createdAt": self.created_at,
            "resolvedAt": self.resolved_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal key={self.key_hex[:16]} author={self.author} "
            f"status={self.status.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """
    Keyed collection of proposals.

    Proposals are never deleted; once the voting window closes they are
    frozen but remain readable.
    """

    def __init__(self):
        self._proposals: Dict[bytes, Proposal] = {}

    # ── Create ────────────────────────────────────────────────────────

    def create(
        self,
        key: ProposalKey,
        author: str,
        author_shares: int,
        min_shares: int,
        now: float,
    ) -> Proposal:
        """
        Insert a new UNDECIDED proposal.

        Raises:
            InsufficientSharesError: author holds fewer than *min_shares*
            DuplicateProposalError: *key* already used
        """
        key = normalize_key(key)
        if author_shares < min_shares:
            raise InsufficientSharesError(
                required=min_shares, actual=author_shares, action="create proposal"
            )
        if key in self._proposals:
            raise DuplicateProposalError(f"Proposal already exists: {key.hex()}")

        proposal = Proposal(key=key, author=author, created_at=now)
        self._proposals[key] = proposal
        return proposal

    # ── Lookup ────────────────────────────────────────────────────────

    def get(self, key: ProposalKey) -> Optional[Proposal]:
        return self._proposals.get(normalize_key(key))

    def get_or_raise(self, key: ProposalKey) -> Proposal:
        proposal = self.get(key)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal doesn't exist: {normalize_key(key).hex()}")
        return proposal

    def snapshot(self, key: ProposalKey) -> Optional[Proposal]:
        """Detached copy, safe to hand to callers."""
        proposal = self.get(key)
        return replace(proposal) if proposal is not None else None

    def exists(self, key: ProposalKey) -> bool:
        return normalize_key(key) in self._proposals

    # ── Enumeration ───────────────────────────────────────────────────

    def keys(self) -> List[bytes]:
        return list(self._proposals.keys())

    def by_status(self, status: ProposalStatus) -> List[Proposal]:
        return [p for p in self._proposals.values() if p.status == status]

    @property
    def count(self) -> int:
        return len(self._proposals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalCount": len(self._proposals),
            "proposals": {k.hex(): p.to_dict() for k, p in self._proposals.items()},
        }

    def __repr__(self) -> str:
        return f"<ProposalStore proposals={len(self._proposals)}>"
