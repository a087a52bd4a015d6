"""
ShareDAO Governance Core

Provides:
  - ShareLedger                                   (shares.py)
  - Proposal / ProposalStatus / ProposalStore     (proposals.py)
  - Side / VoteRecord / VotingEngine              (voting.py)
  - GovernanceParameters / AccessControl          (parameters.py)
  - Governance events                             (events.py)
  - DAO facade                                    (dao.py)
"""

from .shares import (
    ExternalTransferFailedError,
    InsufficientSharesError,
    InvalidAmountError,
    ShareLedger,
    ShareOverflowError,
)
from .proposals import (
    DuplicateProposalError,
    InvalidProposalKeyError,
    Proposal,
    ProposalLifecycleError,
    ProposalNotFoundError,
    ProposalStatus,
    ProposalStore,
    proposal_key,
)
from .voting import (
    AlreadyVotedError,
    InvalidSideError,
    NotYetVotedError,
    Side,
    VoteRecord,
    VotingEngine,
    VotingError,
    VotingPeriodOverError,
    resolve_outcome,
)
from .parameters import (
    AccessControl,
    AccessControlError,
    GovernanceParameters,
    InvalidOwnerError,
    InvalidParameterError,
    NotOwnerError,
)
from .events import (
    Deposited,
    OwnerChanged,
    ParameterChanged,
    ProposalCreated,
    ProposalResolved,
    VoteCast,
    VoteChanged,
    Withdrawn,
)
from .dao import DAO

__all__ = [
    # Shares
    "ExternalTransferFailedError",
    "InsufficientSharesError",
    "InvalidAmountError",
    "ShareLedger",
    "ShareOverflowError",
    # Proposals
    "DuplicateProposalError",
    "InvalidProposalKeyError",
    "Proposal",
    "ProposalLifecycleError",
    "ProposalNotFoundError",
    "ProposalStatus",
    "ProposalStore",
    "proposal_key",
    # Voting
    "AlreadyVotedError",
    "InvalidSideError",
    "NotYetVotedError",
    "Side",
    "VoteRecord",
    "VotingEngine",
    "VotingError",
    "VotingPeriodOverError",
    "resolve_outcome",
    # Parameters
    "AccessControl",
    "AccessControlError",
    "GovernanceParameters",
    "InvalidOwnerError",
    "InvalidParameterError",
    "NotOwnerError",
    # Events
    "Deposited",
    "OwnerChanged",
    "ParameterChanged",
    "ProposalCreated",
    "ProposalResolved",
    "VoteCast",
    "VoteChanged",
    "Withdrawn",
    # Facade
    "DAO",
]
