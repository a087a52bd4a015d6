"""
Governance Parameters and Access Control

GovernanceParameters is an explicit configuration object threaded through
the engine; AccessControl owns it and gates every mutation on the caller
being the current owner.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..constants import (
    ASSET_DECIMALS,
    GOVERNANCE_MIN_SHARES_TO_CREATE_PROPOSAL,
    GOVERNANCE_VOTING_PERIOD_SECONDS,
    MAX_UINT256,
    ZERO_ADDRESS,
)
from ..exceptions import GovernanceError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class AccessControlError(GovernanceError):
    """Base access-control error."""


class NotOwnerError(AccessControlError):
    """Caller is not the current owner."""


class InvalidOwnerError(AccessControlError):
    """Proposed owner is the null principal."""


class InvalidParameterError(GovernanceError):
    """Parameter value out of range."""


def is_null_principal(principal: Optional[str]) -> bool:
    return not principal or principal == ZERO_ADDRESS


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class GovernanceParameters:
    """
    Owner-controlled knobs.

    min_shares_to_create_proposal is stored in shares (asset base units);
    voting_period is in seconds.
    """
    owner: str
    min_shares_to_create_proposal: int = GOVERNANCE_MIN_SHARES_TO_CREATE_PROPOSAL
    voting_period: int = GOVERNANCE_VOTING_PERIOD_SECONDS
    asset_decimals: int = ASSET_DECIMALS

    def __post_init__(self):
        if is_null_principal(self.owner):
            raise InvalidOwnerError("Owner cannot be the null principal")
        if not isinstance(self.owner, str):
            raise InvalidOwnerError(f"Owner must be a string, got {type(self.owner).__name__}")
        for name in ("min_shares_to_create_proposal", "voting_period", "asset_decimals"):
            value = getattr(self, name)
            if not _is_int(value):
                raise InvalidParameterError(
                    f"{name} must be an integer, got {type(value).__name__}"
                )
        if self.voting_period <= 0:
            raise InvalidParameterError("Voting period must be positive")
        if self.min_shares_to_create_proposal < 0:
            raise InvalidParameterError("Minimum shares cannot be negative")

    @property
    def unit(self) -> int:
        """Shares per whole asset unit."""
        return 10 ** self.asset_decimals

    @classmethod
    def from_config(cls, config, owner: Optional[str] = None) -> "GovernanceParameters":
        """
        Build parameters from a DAOConfig.

        *owner* (the deployer) wins over [governance] owner. The config is
        validated first and raises ConfigurationError on bad input.
        """
        config.validate()
        return cls(
            owner=owner or config.governance.owner,
            min_shares_to_create_proposal=config.min_shares_base_units,
            voting_period=config.governance.voting_period,
            asset_decimals=config.asset.decimals,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "minSharesToCreateProposal": str(self.min_shares_to_create_proposal),
            "votingPeriod": self.voting_period,
            "assetDecimals": self.asset_decimals,
        }


# ══════════════════════════════════════════════════════════════════════
#  ACCESS CONTROL
# ══════════════════════════════════════════════════════════════════════

class AccessControl:
    """
    Single capability check in front of every parameter mutator.

    Each mutator returns (old, new) so the caller can emit an event.
    """

    def __init__(self, parameters: GovernanceParameters):
        self._params = parameters

    @property
    def parameters(self) -> GovernanceParameters:
        return self._params

    @property
    def owner(self) -> str:
        return self._params.owner

    def require_owner(self, caller: str) -> None:
        if caller != self._params.owner:
            raise NotOwnerError(f"Only Owner: {caller} is not the owner")

    def change_min_shares_to_create_proposal(self, value: int, caller: str) -> Tuple[int, int]:
        """*value* is in whole asset units."""
        self.require_owner(caller)
        if not _is_int(value) or value < 0:
            raise InvalidParameterError(f"Invalid minimum shares: {value!r}")
        scaled = value * self._params.unit
        if scaled > MAX_UINT256:
            raise InvalidParameterError(f"Minimum shares {value} overflows uint256")
        old = self._params.min_shares_to_create_proposal
        self._params.min_shares_to_create_proposal = scaled
        return old, scaled

    def change_voting_period(self, duration: int, caller: str) -> Tuple[int, int]:
        self.require_owner(caller)
        if not _is_int(duration) or duration <= 0:
            raise InvalidParameterError(f"Voting period must be a positive integer, got {duration!r}")
        old = self._params.voting_period
        self._params.voting_period = duration
        return old, duration

    def change_owner(self, new_owner: str, caller: str) -> Tuple[str, str]:
        self.require_owner(caller)
        if is_null_principal(new_owner):
            raise InvalidOwnerError("New owner cannot be the null principal")
        old = self._params.owner
        self._params.owner = new_owner
        return old, new_owner

    def __repr__(self) -> str:
        return f"<AccessControl owner={self._params.owner}>"
