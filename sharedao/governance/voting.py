"""
Share-Weighted Voting Engine

Implements:
  - 1 share = 1 vote, weight read from the ledger at the moment of voting
  - Sides: SUPPORT / REJECT
  - One vote per member per proposal, changeable while the window is open
  - Automatic resolution once a side holds a strict majority of ALL
    outstanding shares (not just of votes cast)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from ..constants import (
    GOVERNANCE_SIDE_REJECT,
    GOVERNANCE_SIDE_SUPPORT,
    MAX_UINT256,
)
from ..context import Clock
from ..exceptions import GovernanceError
from ..logger import get_logger
from .parameters import GovernanceParameters
from .proposals import Proposal, ProposalKey, ProposalStatus, ProposalStore, normalize_key
from .shares import ShareLedger, ShareOverflowError

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingError(GovernanceError):
    """Base voting error."""


class VotingPeriodOverError(VotingError):
    """The proposal's voting window has closed."""


class AlreadyVotedError(VotingError):
    """Voter already cast a vote on this proposal."""


class NotYetVotedError(VotingError):
    """changeVote without a prior vote."""


class InvalidSideError(VotingError):
    """Side is neither SUPPORT nor REJECT."""


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class Side(IntEnum):
    SUPPORT = GOVERNANCE_SIDE_SUPPORT
    REJECT = GOVERNANCE_SIDE_REJECT

    @property
    def opposite(self) -> "Side":
        return Side.REJECT if self is Side.SUPPORT else Side.SUPPORT

    @classmethod
    def coerce(cls, value) -> "Side":
        # Enum lookup is by equality, so True and 1.0 would both read as REJECT
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidSideError(f"Invalid vote side: {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise InvalidSideError(f"Invalid vote side: {value!r}") from None


@dataclass
class VoteRecord:
    """
    A member's vote on one proposal.

    weight is the share balance locked into the tally when the vote was
    cast; change_vote moves exactly this amount. has_voted never goes back
    to False.
    """
    voter: str
    key: bytes
    side: Side
    weight: int
    cast_at: float
    changed_at: Optional[float] = None
    has_voted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voter": self.voter,
            "key": self.key.hex(),
            "side": self.side.name,
            "weight": str(self.weight),
            "castAt": self.cast_at,
            "changedAt": self.changed_at,
            "hasVoted": self.has_voted,
        }


def resolve_outcome(votes_support: int, votes_reject: int, total_shares: int) -> ProposalStatus:
    """Strict majority of all outstanding shares; SUPPORT is checked first."""
    if votes_support * 2 > total_shares:
        return ProposalStatus.APPROVED
    if votes_reject * 2 > total_shares:
        return ProposalStatus.REJECTED
    return ProposalStatus.UNDECIDED


# ══════════════════════════════════════════════════════════════════════
#  VOTING ENGINE
# ══════════════════════════════════════════════════════════════════════

class VotingEngine:
    """
    Casts, changes and tallies votes against stored proposals.

    Responsibilities:
        - Enforce the voting window (created_at + current voting period)
        - Enforce one vote per (member, proposal)
        - Keep per-side tallies in step with vote records
        - Resolve the proposal after every tally mutation
    """

    def __init__(
        self,
        store: ProposalStore,
        ledger: ShareLedger,
        parameters: GovernanceParameters,
        clock: Clock,
    ):
        self._store = store
        self._ledger = ledger
        self._params = parameters
        self._clock = clock
        self._votes: Dict[Tuple[str, bytes], VoteRecord] = {}

    # ── Window ────────────────────────────────────────────────────────

    def deadline(self, proposal: Proposal) -> float:
        return proposal.deadline(self._params.voting_period)

    def is_open(self, proposal: Proposal) -> bool:
        return proposal.is_open(self._clock.now(), self._params.voting_period)

    def _open_proposal(self, key: ProposalKey) -> Proposal:
        proposal = self._store.get_or_raise(key)
        if not self.is_open(proposal):
            raise VotingPeriodOverError(
                f"Voting period over for proposal {proposal.key_hex} "
                f"(deadline {self.deadline(proposal)})"
            )
        return proposal

    # ── Cast vote ─────────────────────────────────────────────────────

    def cast_vote(self, voter: str, side, key: ProposalKey) -> Tuple[VoteRecord, bool]:
        """
        Lock the voter's current share balance into one side of the tally.

        Returns the new VoteRecord and whether this vote resolved the proposal.
        """
        side = Side.coerce(side)
        proposal = self._open_proposal(key)

        vote_id = (voter, proposal.key)
        existing = self._votes.get(vote_id)
        if existing is not None and existing.has_voted:
            raise AlreadyVotedError(f"{voter} already voted on proposal {proposal.key_hex}")

        weight = self._ledger.shares_of(voter)
        self._check_tally(proposal, side, weight)

        record = VoteRecord(
            voter=voter,
            key=proposal.key,
            side=side,
            weight=weight,
            cast_at=self._clock.now(),
        )
        self._add(proposal, side, weight)
        self._votes[vote_id] = record

        logger.info(
            f"Vote: {voter} → {side.name} on key={proposal.key_hex[:16]} "
            f"({weight} shares)"
        )
        return record, self.resolve(proposal)

    # ── Change vote ───────────────────────────────────────────────────

    def change_vote(self, voter: str, key: ProposalKey) -> Tuple[VoteRecord, bool]:
        """
        Move the voter's locked weight to the opposite side.

        Returns the updated VoteRecord and whether the change resolved the
        proposal.
        """
        proposal = self._open_proposal(key)

        record = self._votes.get((voter, proposal.key))
        if record is None or not record.has_voted:
            raise NotYetVotedError(f"{voter} hasn't voted on proposal {proposal.key_hex}")

        new_side = record.side.opposite
        self._check_tally(proposal, new_side, record.weight)

        self._remove(proposal, record.side, record.weight)
        self._add(proposal, new_side, record.weight)
        record.side = new_side
        record.changed_at = self._clock.now()

        logger.info(
            f"Vote changed: {voter} → {new_side.name} on key={proposal.key_hex[:16]} "
            f"({record.weight} shares)"
        )
        return record, self.resolve(proposal)

    # ── Tally helpers ─────────────────────────────────────────────────

    @staticmethod
    def _check_tally(proposal: Proposal, side: Side, weight: int) -> None:
        current = proposal.votes_support if side is Side.SUPPORT else proposal.votes_reject
        if current + weight > MAX_UINT256:
            raise ShareOverflowError(f"{side.name} tally would overflow")

    @staticmethod
    def _add(proposal: Proposal, side: Side, weight: int) -> None:
        if side is Side.SUPPORT:
            proposal.votes_support += weight
        else:
            proposal.votes_reject += weight

    @staticmethod
    def _remove(proposal: Proposal, side: Side, weight: int) -> None:
        if side is Side.SUPPORT:
            proposal.votes_support -= weight
        else:
            proposal.votes_reject -= weight

    # ── Resolution ────────────────────────────────────────────────────

    def resolve(self, proposal: Proposal) -> bool:
        """
        Apply the majority rule. No-op once the proposal is terminal.

        Returns True if the proposal became terminal in this call.
        """
        if proposal.is_terminal:
            return False
        outcome = resolve_outcome(
            proposal.votes_support,
            proposal.votes_reject,
            self._ledger.total_shares,
        )
        if outcome == ProposalStatus.UNDECIDED:
            return False
        proposal.resolve(outcome, self._clock.now())
        return True

    # ── Queries ───────────────────────────────────────────────────────

    def get_vote(self, voter: str, key: ProposalKey) -> Optional[VoteRecord]:
        return self._votes.get((voter, normalize_key(key)))

    def has_voted(self, voter: str, key: ProposalKey) -> bool:
        record = self.get_vote(voter, key)
        return record is not None and record.has_voted

    def side_of(self, voter: str, key: ProposalKey) -> Optional[Side]:
        record = self.get_vote(voter, key)
        return record.side if record is not None and record.has_voted else None

    def get_votes(self, key: ProposalKey) -> List[VoteRecord]:
        key = normalize_key(key)
        return [r for (_, k), r in self._votes.items() if k == key]

    def voter_count(self, key: ProposalKey) -> int:
        return len(self.get_votes(key))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voteCount": len(self._votes),
            "votes": [r.to_dict() for r in self._votes.values()],
        }

    def __repr__(self) -> str:
        return f"<VotingEngine votes={len(self._votes)}>"
