"""
ShareDAO Facade

Public operation surface of the governance engine. Wires the Shares Ledger,
Proposal Store, Voting Engine and Access Control around one injected asset
ledger and clock, and serialises every mutation through a single
transactional boundary.

Operation ordering:
  deposit   : validate → overflow check → asset.transfer_in → credit
  withdraw  : validate → debit → asset.transfer_out (debit reverted on failure)
  vote      : exists → window open → not yet voted → tally → resolve
"""

import asyncio
from typing import Any, Dict, List, Optional

from ..context import Clock, SystemClock
from ..exceptions import AssetError, GovernanceError
from ..logger import get_logger
from ..tokens.asset import AssetLedger
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
from .parameters import AccessControl, GovernanceParameters, InvalidParameterError
from .proposals import Proposal, ProposalKey, ProposalStore
from .shares import ExternalTransferFailedError, ShareLedger, require_amount
from .voting import Side, VoteRecord, VotingEngine

logger = get_logger(__name__)


class _Transaction:
    """
    Task-reentrant async lock.

    Different tasks are serialised. The task already holding the lock may
    enter again, which is what happens when an asset ledger calls back into
    the DAO from inside a transfer.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0

    async def __aenter__(self):
        task = asyncio.current_task()
        if self._owner is task and task is not None:
            self._depth += 1
            return self
        await self._lock.acquire()
        self._owner = task
        self._depth = 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()
        return False


class DAO:
    """
    Share-weighted governance engine.

    Every mutator is a coroutine taking the authenticated caller as its last
    argument. A rejected operation raises a GovernanceError subclass and
    leaves all state, including the event log, exactly as it was.

    Usage:
        token = GovToken()
        dao = DAO(TokenCustody(token, "0xdao"), owner="0xowner")
        await dao.deposit(1000 * unit, "0xalice")
        await dao.create_proposal(proposal_key("Fund the audit"), "0xalice")
    """

    def __init__(
        self,
        asset: AssetLedger,
        owner: Optional[str] = None,
        clock: Optional[Clock] = None,
        parameters: Optional[GovernanceParameters] = None,
        config=None,
    ):
        if parameters is None:
            if config is not None:
                parameters = GovernanceParameters.from_config(config, owner=owner)
            else:
                parameters = GovernanceParameters(owner=owner)
        elif owner is not None and owner != parameters.owner:
            raise InvalidParameterError(
                f"Owner {owner} conflicts with parameters owner {parameters.owner}"
            )

        self._asset = asset
        self._clock = clock or SystemClock()
        self._params = parameters
        self._access = AccessControl(parameters)
        self._ledger = ShareLedger()
        self._store = ProposalStore()
        self._voting = VotingEngine(self._store, self._ledger, parameters, self._clock)
        self._tx = _Transaction()
        self._events: List[Any] = []

        logger.info(
            f"DAO deployed: owner={parameters.owner} "
            f"min_shares={parameters.min_shares_to_create_proposal} "
            f"voting_period={parameters.voting_period}s"
        )

    @classmethod
    def from_config(
        cls,
        asset: AssetLedger,
        config,
        owner: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> "DAO":
        """Deploy from a DAOConfig. *owner* overrides [governance] owner."""
        return cls(asset, owner=owner, clock=clock, config=config)

    # ── Shares ────────────────────────────────────────────────────────

    async def deposit(self, amount: int, caller: str) -> int:
        """
        Pull *amount* of the asset into custody and mint as many shares.

        Returns the caller's new share balance.
        """
        async with self._tx:
            try:
                require_amount(amount)
                self._ledger.check_credit(caller, amount)
                await self._transfer(self._asset.transfer_in, caller, amount, "deposit")
                try:
                    balance = self._ledger.credit(caller, amount)
                except GovernanceError as overflow:
                    # Only reachable if a reentrant deposit filled the ledger mid-transfer
                    await self._refund(caller, amount, overflow)
                    raise
            except GovernanceError as e:
                logger.warning(f"Deposit rejected: {caller} amount={amount}: {e}")
                raise

            self._emit(Deposited(
                member=caller,
                amount=amount,
                balance=balance,
                total_shares=self._ledger.total_shares,
                timestamp=self._clock.now(),
            ))
            logger.info(f"Deposit: {caller} +{amount} shares (balance={balance})")
            return balance

    async def withdraw(self, amount: int, caller: str) -> int:
        """
        Burn *amount* shares and return the asset to the caller.

        The ledger is debited before the external transfer is requested, so
        any reentrant call made during the transfer already sees the reduced
        balance. Returns the caller's new share balance.
        """
        async with self._tx:
            try:
                require_amount(amount)
                balance = self._ledger.debit(caller, amount)
                try:
                    await self._transfer(self._asset.transfer_out, caller, amount, "withdraw")
                except BaseException:
                    self._ledger.credit(caller, amount)
                    raise
            except GovernanceError as e:
                logger.warning(f"Withdraw rejected: {caller} amount={amount}: {e}")
                raise

            balance = self._ledger.shares_of(caller)
            self._emit(Withdrawn(
                member=caller,
                amount=amount,
                balance=balance,
                total_shares=self._ledger.total_shares,
                timestamp=self._clock.now(),
            ))
            logger.info(f"Withdraw: {caller} -{amount} shares (balance={balance})")
            return balance

    @staticmethod
    async def _transfer(transfer, principal: str, amount: int, action: str) -> None:
        try:
            ok = await transfer(principal, amount)
        except AssetError as e:
            raise ExternalTransferFailedError(f"Asset transfer failed during {action}: {e}") from e
        if ok is not True:
            raise ExternalTransferFailedError(f"Asset ledger refused {action} of {amount}")

    async def _refund(self, caller: str, amount: int, reason: GovernanceError) -> None:
        """Return a deposit that reached custody but could not be credited."""
        try:
            await self._transfer(self._asset.transfer_out, caller, amount, "deposit refund")
        except ExternalTransferFailedError as e:
            logger.error(f"Deposit refund failed: {amount} from {caller} stranded in custody: {e}")
            raise ExternalTransferFailedError(
                f"Refund of {amount} to {caller} failed after: {reason}"
            ) from reason

    # ── Proposals ─────────────────────────────────────────────────────

    async def create_proposal(self, key: ProposalKey, caller: str) -> Proposal:
        async with self._tx:
            try:
                proposal = self._store.create(
                    key,
                    author=caller,
                    author_shares=self._ledger.shares_of(caller),
                    min_shares=self._params.min_shares_to_create_proposal,
                    now=self._clock.now(),
                )
            except GovernanceError as e:
                logger.warning(f"Proposal rejected: {caller}: {e}")
                raise

            self._emit(ProposalCreated(
                key=proposal.key, author=caller, timestamp=proposal.created_at
            ))
            logger.info(f"Proposal created: key={proposal.key_hex[:16]} by {caller}")
            return self._store.snapshot(proposal.key)

    # ── Voting ────────────────────────────────────────────────────────

    async def vote(self, side, key: ProposalKey, caller: str) -> VoteRecord:
        async with self._tx:
            try:
                record, resolved = self._voting.cast_vote(caller, side, key)
            except GovernanceError as e:
                logger.warning(f"Vote rejected: {caller}: {e}")
                raise

            self._emit(VoteCast(
                key=record.key,
                voter=caller,
                side=record.side.name,
                weight=record.weight,
                timestamp=record.cast_at,
            ))
            if resolved:
                self._emit_resolution(record.key)
            return record

    async def change_vote(self, key: ProposalKey, caller: str) -> VoteRecord:
        async with self._tx:
            try:
                record, resolved = self._voting.change_vote(caller, key)
            except GovernanceError as e:
                logger.warning(f"Vote change rejected: {caller}: {e}")
                raise

            self._emit(VoteChanged(
                key=record.key,
                voter=caller,
                side=record.side.name,
                weight=record.weight,
                timestamp=record.changed_at,
            ))
            if resolved:
                self._emit_resolution(record.key)
            return record

    def _emit_resolution(self, key: bytes) -> None:
        proposal = self._store.get_or_raise(key)
        self._emit(ProposalResolved(
            key=proposal.key,
            status=proposal.status.name,
            votes_support=proposal.votes_support,
            votes_reject=proposal.votes_reject,
            total_shares=self._ledger.total_shares,
            timestamp=proposal.resolved_at,
        ))

    # ── Parameters ────────────────────────────────────────────────────

    async def change_min_shares_to_create_proposal(self, value: int, caller: str) -> int:
        """*value* is in whole asset units. Returns the stored share threshold."""
        async with self._tx:
            try:
                old, new = self._access.change_min_shares_to_create_proposal(value, caller)
            except GovernanceError as e:
                logger.warning(f"changeMinSharesToCreateProposal rejected: {caller}: {e}")
                raise
            self._emit_parameter("minSharesToCreateProposal", old, new, caller)
            return new

    async def change_voting_period(self, duration: int, caller: str) -> int:
        async with self._tx:
            try:
                old, new = self._access.change_voting_period(duration, caller)
            except GovernanceError as e:
                logger.warning(f"changeVotingPeriod rejected: {caller}: {e}")
                raise
            self._emit_parameter("votingPeriod", old, new, caller)
            return new

    async def change_owner(self, new_owner: str, caller: str) -> str:
        async with self._tx:
            try:
                old, new = self._access.change_owner(new_owner, caller)
            except GovernanceError as e:
                logger.warning(f"changeOwner rejected: {caller}: {e}")
                raise
            self._emit(OwnerChanged(previous_owner=old, new_owner=new, timestamp=self._clock.now()))
            logger.info(f"Owner changed: {old} → {new}")
            return new

    def _emit_parameter(self, name: str, old: int, new: int, caller: str) -> None:
        self._emit(ParameterChanged(
            name=name, old_value=old, new_value=new, changed_by=caller, timestamp=self._clock.now()
        ))
        logger.info(f"Parameter {name}: {old} → {new} (by {caller})")

    def _emit(self, event) -> None:
        self._events.append(event)

    # ── Read-only views ───────────────────────────────────────────────

    def shares(self, principal: str) -> int:
        return self._ledger.shares_of(principal)

    def total_shares(self) -> int:
        return self._ledger.total_shares

    def proposals(self, key: ProposalKey) -> Optional[Proposal]:
        """Detached copy of the proposal, or None if the key is unused."""
        return self._store.snapshot(key)

    def votes(self, principal: str, key: ProposalKey) -> bool:
        """Whether *principal* has voted on *key*."""
        return self._voting.has_voted(principal, key)

    def side_of_vote(self, principal: str, key: ProposalKey) -> Optional[Side]:
        return self._voting.side_of(principal, key)

    def vote_record(self, principal: str, key: ProposalKey) -> Optional[VoteRecord]:
        return self._voting.get_vote(principal, key)

    def owner(self) -> str:
        return self._params.owner

    def min_shares_to_create_proposal(self) -> int:
        return self._params.min_shares_to_create_proposal

    def voting_period(self) -> int:
        return self._params.voting_period

    def deadline_of(self, key: ProposalKey) -> float:
        return self._voting.deadline(self._store.get_or_raise(key))

    def is_voting_open(self, key: ProposalKey) -> bool:
        proposal = self._store.get(key)
        return proposal is not None and self._voting.is_open(proposal)

    @property
    def parameters(self) -> GovernanceParameters:
        return self._params

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def is_consistent(self) -> bool:
        return self._ledger.is_consistent()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameters": self._params.to_dict(),
            "ledger": self._ledger.to_dict(),
            "proposals": self._store.to_dict(),
            "votes": self._voting.to_dict(),
            "eventCount": len(self._events),
        }

    def __repr__(self) -> str:
        return (
            f"<DAO owner={self._params.owner} total_shares={self._ledger.total_shares} "
            f"proposals={self._store.count}>"
        )


