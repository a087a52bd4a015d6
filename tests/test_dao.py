"""
ShareDAO Facade Test Suite

Coverage:
  - deposit / withdraw against a real token custody, incl. round-trip
  - proposal creation eligibility and uniqueness
  - share-weighted voting, vote changes and resolution
  - owner-gated parameter changes
  - atomicity: failed external transfers roll back, reentrant withdrawals
    see the debited balance, concurrent callers are serialised
  - event log and rejection logging
"""

import asyncio
import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sharedao.config import DAOConfig
from sharedao.constants import ASSET_UNIT, MAX_UINT256, ZERO_ADDRESS
from sharedao.context import VirtualClock
from sharedao.governance import (
    DAO,
    Deposited,
    DuplicateProposalError,
    ExternalTransferFailedError,
    InsufficientSharesError,
    InvalidAmountError,
    InvalidOwnerError,
    InvalidParameterError,
    InvalidSideError,
    NotOwnerError,
    NotYetVotedError,
    OwnerChanged,
    ParameterChanged,
    ProposalCreated,
    ProposalNotFoundError,
    ProposalResolved,
    ProposalStatus,
    ShareOverflowError,
    Side,
    VoteCast,
    VoteChanged,
    VotingPeriodOverError,
    AlreadyVotedError,
    Withdrawn,
    proposal_key,
)
from sharedao.exceptions import AssetError, ConfigurationError
from sharedao.tokens import (
    AssetLedger,
    GovToken,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenCustody,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

OWNER = "0x" + "0a" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
CUSTODY = "0x" + "da" * 20
UNIT = ASSET_UNIT
KEY = proposal_key("Fund the security audit")


async def make_dao(balances=None, **kwargs):
    """Helper: DAO over a GovToken custody, members funded and approved."""
    token = GovToken()
    clock = VirtualClock()
    dao = DAO(TokenCustody(token, CUSTODY), owner=OWNER, clock=clock, **kwargs)
    for who, amount in (balances or {}).items():
        token.faucet(who, amount)
        await token.approve(who, CUSTODY, amount)
    return dao, token, clock


class ScriptedLedger(AssetLedger):
    """In-memory AssetLedger whose transfers can be scripted per test."""

    def __init__(self, balances=None):
        self.balances = dict(balances or {})
        self.custody = 0
        self.on_transfer_in = None
        self.on_transfer_out = None
        self.out_result = True
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def transfer_in(self, sender, amount):
        await self._enter()
        if self.on_transfer_in is not None:
            await self.on_transfer_in(sender, amount)
        if self.balances.get(sender, 0) < amount:
            raise AssetError(f"{sender} cannot cover {amount}")
        self.balances[sender] -= amount
        self.custody += amount
        return True

    async def transfer_out(self, recipient, amount):
        await self._enter()
        if self.on_transfer_out is not None:
            await self.on_transfer_out(recipient, amount)
        if self.out_result is not True:
            return self.out_result
        self.custody -= amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        return True


def make_scripted_dao(balances=None):
    ledger = ScriptedLedger(balances)
    dao = DAO(ledger, owner=OWNER, clock=VirtualClock())
    return dao, ledger


# ══════════════════════════════════════════════════════════════════════
#  DEPLOYMENT
# ══════════════════════════════════════════════════════════════════════


class TestDeploy:

    @pytest.mark.asyncio
    async def test_defaults(self):
        dao, _, _ = await make_dao()
        assert dao.owner() == OWNER
        assert dao.min_shares_to_create_proposal() == 100 * UNIT
        assert dao.voting_period() > 0
        assert dao.total_shares() == 0

    def test_null_owner_rejected(self):
        with pytest.raises(InvalidOwnerError):
            DAO(ScriptedLedger(), owner=ZERO_ADDRESS)

    def test_from_config(self):
        cfg = DAOConfig.from_dict({
            "governance": {"voting_period": 600, "min_shares_to_create_proposal": 5, "owner": ALICE},
        })
        dao = DAO.from_config(ScriptedLedger(), cfg, clock=VirtualClock())
        assert dao.owner() == ALICE
        assert dao.voting_period() == 600
        assert dao.min_shares_to_create_proposal() == 5 * UNIT

    def test_from_config_deployer_owner(self):
        cfg = DAOConfig.from_dict({"governance": {"owner": ALICE}})
        dao = DAO.from_config(ScriptedLedger(), cfg, owner=BOB)
        assert dao.owner() == BOB

    def test_from_config_validates_types(self):
        cfg = DAOConfig.from_dict({"governance": {"voting_period": 0.5, "owner": ALICE}})
        with pytest.raises(ConfigurationError, match="voting_period"):
            DAO.from_config(ScriptedLedger(), cfg)
        with pytest.raises(ConfigurationError):
            DAO(ScriptedLedger(), config=cfg)

    def test_conflicting_owner_rejected(self):
        from sharedao.governance import GovernanceParameters

        with pytest.raises(InvalidParameterError):
            DAO(ScriptedLedger(), owner=BOB, parameters=GovernanceParameters(owner=ALICE))


# ══════════════════════════════════════════════════════════════════════
#  SHARES
# ══════════════════════════════════════════════════════════════════════


class TestDeposit:

    @pytest.mark.asyncio
    async def test_deposit_mints_shares(self):
        dao, token, _ = await make_dao({ALICE: 1000 * UNIT})
        assert await dao.deposit(1000 * UNIT, ALICE) == 1000 * UNIT
        assert dao.shares(ALICE) == 1000 * UNIT
        assert dao.total_shares() == 1000 * UNIT
        assert token.balance_of(ALICE) == 0
        assert token.balance_of(CUSTODY) == 1000 * UNIT

    @pytest.mark.asyncio
    async def test_deposit_accumulates(self):
        dao, _, _ = await make_dao({ALICE: 10 * UNIT, BOB: 5 * UNIT})
        await dao.deposit(4 * UNIT, ALICE)
        await dao.deposit(6 * UNIT, ALICE)
        await dao.deposit(5 * UNIT, BOB)
        assert dao.shares(ALICE) == 10 * UNIT
        assert dao.total_shares() == 15 * UNIT
        assert dao.is_consistent()

    @pytest.mark.asyncio
    async def test_deposit_without_allowance(self):
        dao, token, _ = await make_dao()
        token.faucet(ALICE, 10 * UNIT)
        with pytest.raises(ExternalTransferFailedError) as exc:
            await dao.deposit(10 * UNIT, ALICE)
        assert isinstance(exc.value.__cause__, InsufficientAllowanceError)
        assert dao.shares(ALICE) == 0
        assert token.balance_of(ALICE) == 10 * UNIT
        assert dao.events == []

    @pytest.mark.asyncio
    async def test_deposit_without_funds(self):
        dao, _ = make_scripted_dao()
        with pytest.raises(ExternalTransferFailedError):
            await dao.deposit(UNIT, ALICE)
        assert dao.total_shares() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, 1.5])
    async def test_invalid_amount(self, amount):
        dao, ledger = make_scripted_dao({ALICE: UNIT})
        with pytest.raises(InvalidAmountError):
            await dao.deposit(amount, ALICE)
        assert ledger.balances[ALICE] == UNIT

    @pytest.mark.asyncio
    async def test_overflow_fails_before_transfer(self):
        dao, ledger = make_scripted_dao({ALICE: MAX_UINT256, BOB: 1})
        await dao.deposit(MAX_UINT256, ALICE)
        with pytest.raises(ShareOverflowError):
            await dao.deposit(1, BOB)
        assert ledger.balances[BOB] == 1
        assert dao.shares(BOB) == 0
        assert dao.total_shares() == MAX_UINT256

    @pytest.mark.asyncio
    async def test_overflow_after_reentrant_deposit_refunds(self):
        dao, ledger = make_scripted_dao({ALICE: MAX_UINT256, BOB: 1})

        async def fill_ledger(sender, amount):
            ledger.on_transfer_in = None
            await dao.deposit(MAX_UINT256, ALICE)

        ledger.on_transfer_in = fill_ledger
        with pytest.raises(ShareOverflowError):
            await dao.deposit(1, BOB)
        assert ledger.balances[BOB] == 1
        assert ledger.custody == MAX_UINT256
        assert dao.shares(BOB) == 0
        assert dao.total_shares() == MAX_UINT256
        assert dao.is_consistent()

    @pytest.mark.asyncio
    async def test_refused_refund_is_reported(self, caplog):
        dao, ledger = make_scripted_dao({ALICE: MAX_UINT256, BOB: 1})

        async def fill_ledger(sender, amount):
            ledger.on_transfer_in = None
            await dao.deposit(MAX_UINT256, ALICE)
            ledger.out_result = False

        ledger.on_transfer_in = fill_ledger
        with caplog.at_level(logging.ERROR, logger="sharedao"):
            with pytest.raises(ExternalTransferFailedError, match="Refund") as exc:
                await dao.deposit(1, BOB)
        assert isinstance(exc.value.__cause__, ShareOverflowError)
        assert any(
            r.levelno == logging.ERROR and "stranded" in r.getMessage()
            for r in caplog.records
        )
        assert dao.shares(BOB) == 0
        assert dao.total_shares() == MAX_UINT256

    @pytest.mark.asyncio
    async def test_refused_transfer_in(self):
        class Refusing(ScriptedLedger):
            async def transfer_in(self, sender, amount):
                return False

        dao = DAO(Refusing(), owner=OWNER)
        with pytest.raises(ExternalTransferFailedError, match="refused"):
            await dao.deposit(UNIT, ALICE)
        assert dao.shares(ALICE) == 0

    @pytest.mark.asyncio
    async def test_deposit_event(self):
        dao, _, clock = await make_dao({ALICE: 10 * UNIT})
        await dao.deposit(10 * UNIT, ALICE)
        (event,) = dao.events
        assert isinstance(event, Deposited)
        assert event.member == ALICE
        assert event.amount == 10 * UNIT
        assert event.total_shares == 10 * UNIT
        assert event.timestamp == clock.now()
        assert event.to_dict()["event"] == "Deposit"


class TestWithdraw:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        dao, token, _ = await make_dao({ALICE: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        assert await dao.withdraw(1000 * UNIT, ALICE) == 0
        assert dao.shares(ALICE) == 0
        assert dao.total_shares() == 0
        assert token.balance_of(ALICE) == 1000 * UNIT
        assert token.balance_of(CUSTODY) == 0

    @pytest.mark.asyncio
    async def test_partial(self):
        dao, token, _ = await make_dao({ALICE: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        await dao.withdraw(400 * UNIT, ALICE)
        assert dao.shares(ALICE) == 600 * UNIT
        assert token.balance_of(ALICE) == 400 * UNIT

    @pytest.mark.asyncio
    async def test_without_shares(self):
        dao, _, _ = await make_dao()
        with pytest.raises(InsufficientSharesError, match="Shares too low"):
            await dao.withdraw(1000 * UNIT, ALICE)

    @pytest.mark.asyncio
    async def test_more_than_held(self):
        dao, _, _ = await make_dao({ALICE: 10 * UNIT})
        await dao.deposit(10 * UNIT, ALICE)
        with pytest.raises(InsufficientSharesError):
            await dao.withdraw(10 * UNIT + 1, ALICE)
        assert dao.shares(ALICE) == 10 * UNIT

    @pytest.mark.asyncio
    async def test_cannot_withdraw_others_shares(self):
        dao, _, _ = await make_dao({ALICE: 10 * UNIT})
        await dao.deposit(10 * UNIT, ALICE)
        with pytest.raises(InsufficientSharesError):
            await dao.withdraw(UNIT, BOB)

    @pytest.mark.asyncio
    async def test_failed_transfer_reverts_debit(self):
        dao, token, _ = await make_dao({ALICE: 10 * UNIT})
        await dao.deposit(10 * UNIT, ALICE)
        # Drain custody out from under the DAO
        await token.transfer(CUSTODY, BOB, 10 * UNIT)
        with pytest.raises(ExternalTransferFailedError) as exc:
            await dao.withdraw(10 * UNIT, ALICE)
        assert isinstance(exc.value.__cause__, InsufficientBalanceError)
        assert dao.shares(ALICE) == 10 * UNIT
        assert dao.total_shares() == 10 * UNIT
        assert len(dao.events) == 1

    @pytest.mark.asyncio
    async def test_refused_transfer_reverts_debit(self):
        dao, ledger = make_scripted_dao({ALICE: UNIT})
        await dao.deposit(UNIT, ALICE)
        ledger.out_result = False
        with pytest.raises(ExternalTransferFailedError):
            await dao.withdraw(UNIT, ALICE)
        assert dao.shares(ALICE) == UNIT

    @pytest.mark.asyncio
    async def test_unexpected_error_reverts_and_propagates(self):
        dao, ledger = make_scripted_dao({ALICE: UNIT})
        await dao.deposit(UNIT, ALICE)

        async def explode(recipient, amount):
            raise RuntimeError("node unreachable")

        ledger.on_transfer_out = explode
        with pytest.raises(RuntimeError, match="unreachable"):
            await dao.withdraw(UNIT, ALICE)
        assert dao.shares(ALICE) == UNIT
        assert dao.is_consistent()

    @pytest.mark.asyncio
    async def test_withdraw_event(self):
        dao, _, _ = await make_dao({ALICE: 10 * UNIT})
        await dao.deposit(10 * UNIT, ALICE)
        await dao.withdraw(3 * UNIT, ALICE)
        event = dao.events[-1]
        assert isinstance(event, Withdrawn)
        assert event.balance == 7 * UNIT
        assert event.total_shares == 7 * UNIT


class TestReentrancy:

    @pytest.mark.asyncio
    async def test_reentrant_withdraw_sees_debit(self):
        dao, ledger = make_scripted_dao({ALICE: 100})
        await dao.deposit(100, ALICE)
        inner_errors = []

        async def reenter(recipient, amount):
            ledger.on_transfer_out = None
            try:
                await dao.withdraw(amount, recipient)
            except InsufficientSharesError as e:
                inner_errors.append(e)

        ledger.on_transfer_out = reenter
        await dao.withdraw(100, ALICE)

        assert len(inner_errors) == 1
        assert inner_errors[0].actual == 0
        assert dao.shares(ALICE) == 0
        assert ledger.balances[ALICE] == 100
        assert ledger.custody == 0
        assert sum(isinstance(e, Withdrawn) for e in dao.events) == 1

    @pytest.mark.asyncio
    async def test_reentrant_partial_withdraw_allowed(self):
        dao, ledger = make_scripted_dao({ALICE: 100})
        await dao.deposit(100, ALICE)

        async def reenter(recipient, amount):
            ledger.on_transfer_out = None
            await dao.withdraw(50, recipient)

        ledger.on_transfer_out = reenter
        await dao.withdraw(50, ALICE)
        assert dao.shares(ALICE) == 0
        assert ledger.balances[ALICE] == 100
        assert dao.is_consistent()


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_deposits_serialised(self):
        members = [f"0x{i:040x}" for i in range(1, 21)]
        dao, ledger = make_scripted_dao({m: 1000 for m in members})

        await asyncio.gather(*(dao.deposit(1000, m) for m in members))

        assert ledger.max_in_flight == 1
        assert dao.total_shares() == 20 * 1000
        assert dao.is_consistent()

    @pytest.mark.asyncio
    async def test_concurrent_double_withdraw(self):
        dao, ledger = make_scripted_dao({ALICE: 100})
        await dao.deposit(100, ALICE)

        results = await asyncio.gather(
            dao.withdraw(100, ALICE),
            dao.withdraw(100, ALICE),
            return_exceptions=True,
        )

        assert sum(isinstance(r, InsufficientSharesError) for r in results) == 1
        assert ledger.balances[ALICE] == 100
        assert dao.total_shares() == 0


# ══════════════════════════════════════════════════════════════════════
#  PROPOSALS
# ══════════════════════════════════════════════════════════════════════


class TestCreateProposal:

    @pytest.mark.asyncio
    async def test_create(self):
        dao, _, clock = await make_dao({ALICE: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        p = await dao.create_proposal(KEY, ALICE)
        assert p.author == ALICE
        assert p.status == ProposalStatus.UNDECIDED
        assert p.created_at == clock.now()
        assert dao.proposals(KEY).author == ALICE

    @pytest.mark.asyncio
    async def test_not_enough_shares(self):
        dao, _, _ = await make_dao({ALICE: 50 * UNIT})
        await dao.deposit(50 * UNIT, ALICE)
        with pytest.raises(InsufficientSharesError, match="Shares too low to create proposal"):
            await dao.create_proposal(KEY, ALICE)
        assert dao.proposals(KEY) is None

    @pytest.mark.asyncio
    async def test_duplicate_from_other_member(self):
        dao, _, _ = await make_dao({ALICE: 1000 * UNIT, BOB: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        await dao.deposit(1000 * UNIT, BOB)
        await dao.create_proposal(KEY, ALICE)
        with pytest.raises(DuplicateProposalError):
            await dao.create_proposal(KEY, BOB)
        assert dao.proposals(KEY).author == ALICE

    @pytest.mark.asyncio
    async def test_returned_proposal_is_a_copy(self):
        dao, _, _ = await make_dao({ALICE: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        p = await dao.create_proposal(KEY, ALICE)
        p.votes_support = 10 ** 30
        assert dao.proposals(KEY).votes_support == 0

    @pytest.mark.asyncio
    async def test_proposal_created_event(self):
        dao, _, _ = await make_dao({ALICE: 1000 * UNIT})
        await dao.deposit(1000 * UNIT, ALICE)
        await dao.create_proposal(KEY, ALICE)
        event = dao.events[-1]
        assert isinstance(event, ProposalCreated)
        assert event.key == KEY
        assert event.to_dict()["key"] == KEY.hex()


# ══════════════════════════════════════════════════════════════════════
#  VOTING
# ══════════════════════════════════════════════════════════════════════


async def make_voting_dao():
    """Helper: three members with 1000 / 100 / 10 units and one proposal."""
    dao, token, clock = await make_dao({
        ALICE: 1000 * UNIT,
        BOB: 100 * UNIT,
        CAROL: 10 * UNIT,
    })
    await dao.deposit(1000 * UNIT, ALICE)
    await dao.deposit(100 * UNIT, BOB)
    await dao.deposit(10 * UNIT, CAROL)
    await dao.create_proposal(KEY, ALICE)
    return dao, token, clock


class TestVote:

    @pytest.mark.asyncio
    async def test_weighted_majority(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, ALICE)
        await dao.vote(Side.REJECT, KEY, BOB)
        await dao.vote(Side.REJECT, KEY, CAROL)
        p = dao.proposals(KEY)
        assert p.votes_support == 1000 * UNIT
        assert p.votes_reject == 110 * UNIT
        assert p.status == ProposalStatus.APPROVED

    @pytest.mark.asyncio
    async def test_unknown_proposal(self):
        dao, _, _ = await make_voting_dao()
        with pytest.raises(ProposalNotFoundError):
            await dao.vote(Side.SUPPORT, proposal_key("nothing"), ALICE)

    @pytest.mark.asyncio
    async def test_period_over(self):
        dao, _, clock = await make_voting_dao()
        clock.advance(dao.voting_period())
        with pytest.raises(VotingPeriodOverError):
            await dao.vote(Side.SUPPORT, KEY, ALICE)
        assert not dao.votes(ALICE, KEY)
        assert not dao.is_voting_open(KEY)

    @pytest.mark.asyncio
    async def test_already_voted(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.REJECT, KEY, CAROL)
        with pytest.raises(AlreadyVotedError):
            await dao.vote(Side.REJECT, KEY, CAROL)
        assert dao.proposals(KEY).votes_reject == 10 * UNIT

    @pytest.mark.asyncio
    async def test_int_side_accepted(self):
        dao, _, _ = await make_voting_dao()
        record = await dao.vote(1, KEY, BOB)
        assert record.side is Side.REJECT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("side", [True, False, 1.0, "SUPPORT"])
    async def test_non_int_side_rejected(self, side):
        dao, _, _ = await make_voting_dao()
        with pytest.raises(InvalidSideError):
            await dao.vote(side, KEY, BOB)
        assert not dao.votes(BOB, KEY)
        assert dao.proposals(KEY).votes_reject == 0

    @pytest.mark.asyncio
    async def test_withdraw_after_vote_keeps_tally(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.REJECT, KEY, BOB)
        await dao.withdraw(100 * UNIT, BOB)
        assert dao.proposals(KEY).votes_reject == 100 * UNIT
        assert dao.total_shares() == 1010 * UNIT

    @pytest.mark.asyncio
    async def test_resolution_survives_withdrawals(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, ALICE)
        await dao.withdraw(1000 * UNIT, ALICE)
        await dao.vote(Side.REJECT, KEY, BOB)
        await dao.vote(Side.REJECT, KEY, CAROL)
        p = dao.proposals(KEY)
        assert p.votes_reject * 2 > dao.total_shares()
        assert p.status == ProposalStatus.APPROVED

    @pytest.mark.asyncio
    async def test_vote_events(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, ALICE)
        await dao.vote(Side.REJECT, KEY, BOB)
        cast = [e for e in dao.events if isinstance(e, VoteCast)]
        resolved = [e for e in dao.events if isinstance(e, ProposalResolved)]
        assert [e.voter for e in cast] == [ALICE, BOB]
        assert cast[0].weight == 1000 * UNIT
        assert len(resolved) == 1
        assert resolved[0].status == "APPROVED"
        assert resolved[0].total_shares == 1110 * UNIT


class TestChangeVote:

    @pytest.mark.asyncio
    async def test_moves_tally(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, BOB)
        await dao.change_vote(KEY, BOB)
        p = dao.proposals(KEY)
        assert p.votes_support == 0
        assert p.votes_reject == 100 * UNIT
        assert dao.side_of_vote(BOB, KEY) is Side.REJECT
        assert dao.votes(BOB, KEY)

    @pytest.mark.asyncio
    async def test_unknown_proposal(self):
        dao, _, _ = await make_voting_dao()
        with pytest.raises(ProposalNotFoundError):
            await dao.change_vote(proposal_key("nothing"), ALICE)

    @pytest.mark.asyncio
    async def test_without_vote(self):
        dao, _, _ = await make_voting_dao()
        with pytest.raises(NotYetVotedError):
            await dao.change_vote(KEY, BOB)

    @pytest.mark.asyncio
    async def test_period_over(self):
        dao, _, clock = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, BOB)
        clock.advance(dao.voting_period() + 1)
        with pytest.raises(VotingPeriodOverError):
            await dao.change_vote(KEY, BOB)
        assert dao.side_of_vote(BOB, KEY) is Side.SUPPORT

    @pytest.mark.asyncio
    async def test_moves_weight_cast_with(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, BOB)
        await dao.withdraw(40 * UNIT, BOB)
        record = await dao.change_vote(KEY, BOB)
        assert record.weight == 100 * UNIT
        p = dao.proposals(KEY)
        assert p.votes_support == 0
        assert p.votes_reject == 100 * UNIT

    @pytest.mark.asyncio
    async def test_vote_changed_event(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, BOB)
        await dao.change_vote(KEY, BOB)
        event = dao.events[-1]
        assert isinstance(event, VoteChanged)
        assert event.side == "REJECT"


class TestReads:

    @pytest.mark.asyncio
    async def test_side_of_vote_without_vote(self):
        dao, _, _ = await make_voting_dao()
        assert dao.side_of_vote(BOB, KEY) is None
        assert not dao.votes(BOB, KEY)

    @pytest.mark.asyncio
    async def test_deadline(self):
        dao, _, _ = await make_voting_dao()
        p = dao.proposals(KEY)
        assert dao.deadline_of(KEY) == p.created_at + dao.voting_period()
        assert dao.is_voting_open(KEY)
        assert not dao.is_voting_open(b"missing")

    @pytest.mark.asyncio
    async def test_deadline_follows_voting_period(self):
        dao, _, clock = await make_voting_dao()
        clock.advance(100)
        await dao.change_voting_period(50, OWNER)
        assert not dao.is_voting_open(KEY)
        with pytest.raises(VotingPeriodOverError):
            await dao.vote(Side.SUPPORT, KEY, ALICE)

    @pytest.mark.asyncio
    async def test_to_dict(self):
        dao, _, _ = await make_voting_dao()
        await dao.vote(Side.SUPPORT, KEY, ALICE)
        d = dao.to_dict()
        assert d["parameters"]["owner"] == OWNER
        assert d["ledger"]["totalShares"] == str(1110 * UNIT)
        assert d["proposals"]["proposalCount"] == 1
        assert d["votes"]["voteCount"] == 1
        assert "total_shares" in repr(dao)


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════


class TestParameterChanges:

    @pytest.mark.asyncio
    async def test_change_min_shares(self):
        dao, _, _ = await make_dao()
        assert await dao.change_min_shares_to_create_proposal(1000, OWNER) == 1000 * UNIT
        assert dao.min_shares_to_create_proposal() == 1000 * UNIT

    @pytest.mark.asyncio
    async def test_change_min_shares_not_owner(self):
        dao, _, _ = await make_dao()
        with pytest.raises(NotOwnerError, match="Only Owner"):
            await dao.change_min_shares_to_create_proposal(1000, ALICE)
        assert dao.min_shares_to_create_proposal() == 100 * UNIT

    @pytest.mark.asyncio
    async def test_raised_threshold_applies(self):
        dao, _, _ = await make_dao({ALICE: 500 * UNIT})
        await dao.deposit(500 * UNIT, ALICE)
        await dao.change_min_shares_to_create_proposal(1000, OWNER)
        with pytest.raises(InsufficientSharesError):
            await dao.create_proposal(KEY, ALICE)

    @pytest.mark.asyncio
    async def test_change_voting_period(self):
        dao, _, _ = await make_dao()
        await dao.change_voting_period(5, OWNER)
        assert dao.voting_period() == 5

    @pytest.mark.asyncio
    async def test_change_voting_period_not_owner(self):
        dao, _, _ = await make_dao()
        with pytest.raises(NotOwnerError):
            await dao.change_voting_period(5, BOB)

    @pytest.mark.asyncio
    async def test_change_voting_period_non_positive(self):
        dao, _, _ = await make_dao()
        with pytest.raises(InvalidParameterError):
            await dao.change_voting_period(0, OWNER)

    @pytest.mark.asyncio
    async def test_change_owner(self):
        dao, _, _ = await make_dao()
        await dao.change_owner(ALICE, OWNER)
        assert dao.owner() == ALICE
        with pytest.raises(NotOwnerError):
            await dao.change_voting_period(5, OWNER)

    @pytest.mark.asyncio
    async def test_change_owner_not_owner(self):
        dao, _, _ = await make_dao()
        with pytest.raises(NotOwnerError):
            await dao.change_owner(ALICE, BOB)
        assert dao.owner() == OWNER

    @pytest.mark.asyncio
    async def test_change_owner_to_null(self):
        dao, _, _ = await make_dao()
        with pytest.raises(InvalidOwnerError):
            await dao.change_owner(ZERO_ADDRESS, OWNER)
        assert dao.events == []

    @pytest.mark.asyncio
    async def test_parameter_events(self):
        dao, _, _ = await make_dao()
        await dao.change_voting_period(5, OWNER)
        await dao.change_owner(ALICE, OWNER)
        changed, owner_changed = dao.events
        assert isinstance(changed, ParameterChanged)
        assert changed.name == "votingPeriod"
        assert changed.new_value == 5
        assert isinstance(owner_changed, OwnerChanged)
        assert owner_changed.previous_owner == OWNER
        assert owner_changed.new_owner == ALICE


# ══════════════════════════════════════════════════════════════════════
#  INVARIANTS & LOGGING
# ══════════════════════════════════════════════════════════════════════


class TestInvariants:

    @pytest.mark.asyncio
    async def test_total_matches_sum_through_mixed_activity(self):
        dao, _, clock = await make_voting_dao()
        await dao.vote(Side.REJECT, KEY, CAROL)
        await dao.withdraw(60 * UNIT, BOB)
        with pytest.raises(InsufficientSharesError):
            await dao.withdraw(100 * UNIT, BOB)
        clock.advance(10)
        await dao.withdraw(1000 * UNIT, ALICE)
        total = sum(dao.shares(m) for m in (ALICE, BOB, CAROL))
        assert dao.total_shares() == total == 50 * UNIT
        assert dao.is_consistent()

    @pytest.mark.asyncio
    async def test_rejections_emit_no_events(self):
        dao, _, _ = await make_voting_dao()
        before = len(dao.events)
        for op in (
            dao.withdraw(10 ** 40, ALICE),
            dao.create_proposal(KEY, ALICE),
            dao.change_vote(KEY, ALICE),
            dao.change_owner(BOB, BOB),
        ):
            with pytest.raises(Exception):
                await op
        assert len(dao.events) == before

    @pytest.mark.asyncio
    async def test_rejection_logged_at_warning(self, caplog):
        dao, _, _ = await make_dao()
        with caplog.at_level(logging.WARNING, logger="sharedao"):
            with pytest.raises(InsufficientSharesError):
                await dao.withdraw(UNIT, ALICE)
        assert any(
            r.levelno == logging.WARNING and "Withdraw rejected" in r.getMessage()
            for r in caplog.records
        )
