"""Tests for src/core/perp_rewards/ledger.py — collateral and single-position bookkeeping."""

import pytest

from src.core.perp_rewards import (
    ArithmeticOverflowError,
    ExternalTransferFailedError,
    InsufficientBalanceError,
    InvalidSideError,
    ManualClock,
    Market,
    NoPositionOpenError,
    Position,
    PositionAlreadyOpenError,
    ReentrancyError,
    RewardConfig,
    Side,
    UnauthorizedError,
    ZeroAmountError,
    deploy_market,
)
from src.core.perp_rewards.math import UINT256_MAX

GENESIS = 1_700_000_000
E18 = 10**18


def _market(grant: int = 1_000 * E18, deposit: int = 1_000 * E18) -> Market:
    m = deploy_market(
        config=RewardConfig(start_time=GENESIS, check_invariants=True),
        time_source=ManualClock(GENESIS),
    )
    if grant:
        m.grant("alice", grant)
    if deposit:
        m.ledger.deposit("alice", deposit)
    return m


def _snapshot(m: Market):
    return m.store.dump(), len(m.store.events)


# ---------------------------------------------------------------------------
# deposit / withdraw
# ---------------------------------------------------------------------------

class TestDeposit:
    def test_deposit_credits_and_pulls(self):
        m = _market(deposit=0)
        m.ledger.deposit("alice", 400)
        assert m.ledger.get_balance("alice") == 400
        assert m.collateral_token.balance_of(m.ledger.address) == 400
        assert m.collateral_token.balance_of("alice") == 1_000 * E18 - 400

    def test_deposit_event(self):
        m = _market(deposit=0)
        m.ledger.deposit("alice", 5)
        (event,) = m.store.events_named("Deposit")
        assert event.as_dict() == {"trader": "alice", "amount": 5}

    def test_zero_amount(self):
        m = _market()
        before = _snapshot(m)
        with pytest.raises(ZeroAmountError, match="greater than 0"):
            m.ledger.deposit("alice", 0)
        assert _snapshot(m) == before

    def test_failed_pull_changes_nothing(self):
        m = _market(deposit=0)
        m.grant("bob", 10, approve=False)
        before = _snapshot(m)
        with pytest.raises(ExternalTransferFailedError) as exc:
            m.ledger.deposit("bob", 10)
        assert exc.value.code == "external_transfer_failed"
        assert _snapshot(m) == before
        assert m.ledger.get_balance("bob") == 0

    def test_pull_more_than_owned_fails(self):
        m = _market(grant=10, deposit=0)
        with pytest.raises(ExternalTransferFailedError):
            m.ledger.deposit("alice", 11)


class TestWithdraw:
    def test_withdraw_pushes(self):
        m = _market()
        m.ledger.withdraw("alice", 100)
        assert m.ledger.get_balance("alice") == 1_000 * E18 - 100
        assert m.collateral_token.balance_of("alice") == 100

    def test_withdraw_all(self):
        m = _market()
        m.ledger.withdraw("alice", 1_000 * E18)
        assert m.ledger.get_balance("alice") == 0
        assert m.collateral_token.balance_of(m.ledger.address) == 0

    def test_insufficient(self):
        m = _market()
        before = _snapshot(m)
        with pytest.raises(InsufficientBalanceError, match="Insufficient balance"):
            m.ledger.withdraw("alice", 1_000 * E18 + 1)
        assert _snapshot(m) == before

    def test_zero_amount(self):
        m = _market()
        with pytest.raises(ZeroAmountError):
            m.ledger.withdraw("alice", 0)

    def test_locked_collateral_not_withdrawable(self):
        m = _market(grant=100, deposit=100)
        m.ledger.open_position("alice", 60, Side.LONG, 2)
        with pytest.raises(InsufficientBalanceError):
            m.ledger.withdraw("alice", 41)
        m.ledger.withdraw("alice", 40)

    def test_failed_push_rolls_back(self):
        m = _market(grant=100, deposit=100)

        class Broken:
            def pull(self, trader, amount):
                return True

            def push(self, trader, amount):
                return False

        m.ledger._custody = Broken()
        before = _snapshot(m)
        with pytest.raises(ExternalTransferFailedError):
            m.ledger.withdraw("alice", 50)
        assert _snapshot(m) == before
        assert m.ledger.get_balance("alice") == 100

    def test_reentrant_withdraw_rejected(self):
        m = _market(grant=100, deposit=100)
        seen = []

        class Reentering:
            def __init__(self, inner):
                self.inner = inner

            def pull(self, trader, amount):
                return self.inner.pull(trader, amount)

            def push(self, trader, amount):
                try:
                    m.ledger.withdraw(trader, amount)
                except ReentrancyError as exc:
                    seen.append(exc.code)
                return self.inner.push(trader, amount)

        m.ledger._custody = Reentering(m.ledger._custody)
        m.ledger.withdraw("alice", 30)
        assert seen == ["reentrant_call"]
        # the outer withdrawal completed exactly once
        assert m.ledger.get_balance("alice") == 70
        assert m.collateral_token.balance_of("alice") == 30


# ---------------------------------------------------------------------------
# positions
# ---------------------------------------------------------------------------

class TestOpen:
    def test_open_locks_collateral_and_reports_volume(self):
        m = _market()
        pos = m.ledger.open_position("alice", 100 * E18, Side.LONG, 10)
        assert pos == Position(100 * E18, Side.LONG, 10)
        assert m.ledger.get_position("alice") == pos
        assert m.ledger.get_balance("alice") == 900 * E18
        assert m.ledger.locked_collateral("alice") == 100 * E18
        assert m.engine.trader_season_volume(1, "alice") == 1_000 * E18

    def test_side_by_name_or_int(self):
        m = _market()
        assert m.ledger.open_position("alice", 1, "short", 1).side is Side.SHORT
        m.grant("bob", 10)
        m.ledger.deposit("bob", 10)
        assert m.ledger.open_position("bob", 1, 0, 1).side is Side.LONG

    def test_invalid_side(self):
        m = _market()
        before = _snapshot(m)
        with pytest.raises(InvalidSideError):
            m.ledger.open_position("alice", 1, "sideways", 1)
        with pytest.raises(InvalidSideError):
            m.ledger.open_position("alice", 1, 7, 1)
        assert _snapshot(m) == before

    def test_zero_amount_or_leverage(self):
        m = _market()
        with pytest.raises(ZeroAmountError):
            m.ledger.open_position("alice", 0, Side.LONG, 1)
        with pytest.raises(ZeroAmountError):
            m.ledger.open_position("alice", 1, Side.LONG, 0)

    def test_insufficient(self):
        m = _market(grant=10, deposit=10)
        with pytest.raises(InsufficientBalanceError):
            m.ledger.open_position("alice", 11, Side.LONG, 1)

    def test_second_open_rejected(self):
        m = _market()
        m.ledger.open_position("alice", 1, Side.LONG, 1)
        before = _snapshot(m)
        with pytest.raises(PositionAlreadyOpenError, match="Position already open"):
            m.ledger.open_position("alice", 1, Side.SHORT, 1)
        assert _snapshot(m) == before

    def test_event(self):
        m = _market()
        m.ledger.open_position("alice", 7, Side.SHORT, 3)
        (event,) = m.store.events_named("PositionOpened")
        assert event.as_dict() == {"trader": "alice", "amount": 7, "side": Side.SHORT, "leverage": 3}

    def test_leveraged_volume_overflow(self):
        m = _market(grant=UINT256_MAX, deposit=UINT256_MAX)
        before = _snapshot(m)
        with pytest.raises(ArithmeticOverflowError):
            m.ledger.open_position("alice", UINT256_MAX, Side.LONG, 2)
        assert _snapshot(m) == before

    def test_reward_overflow_undoes_ledger_writes(self):
        # the volume fits but its reward does not; the ledger writes made
        # before the report are rolled back with it
        m = _market(grant=2**200, deposit=2**200)
        before = _snapshot(m)
        with pytest.raises(ArithmeticOverflowError):
            m.ledger.open_position("alice", 2**200, Side.LONG, 1)
        assert _snapshot(m) == before
        assert m.ledger.get_position("alice") is None
        assert m.ledger.get_balance("alice") == 2**200


class TestIncrease:
    def test_increase_keeps_side_and_leverage(self):
        m = _market()
        m.ledger.open_position("alice", 100, Side.SHORT, 5)
        pos = m.ledger.increase_position("alice", 50)
        assert pos == Position(150, Side.SHORT, 5)
        assert m.ledger.get_balance("alice") == 1_000 * E18 - 150
        assert m.engine.trader_season_volume(1, "alice") == 750

    def test_requires_position(self):
        m = _market()
        with pytest.raises(NoPositionOpenError, match="No position open"):
            m.ledger.increase_position("alice", 1)

    def test_no_position_checked_before_zero_amount(self):
        m = _market()
        with pytest.raises(NoPositionOpenError):
            m.ledger.increase_position("alice", 0)

    def test_insufficient(self):
        m = _market(grant=100, deposit=100)
        m.ledger.open_position("alice", 60, Side.LONG, 1)
        with pytest.raises(InsufficientBalanceError):
            m.ledger.increase_position("alice", 41)

    def test_event(self):
        m = _market()
        m.ledger.open_position("alice", 1, Side.LONG, 1)
        m.ledger.increase_position("alice", 9)
        (event,) = m.store.events_named("PositionIncreased")
        assert event.as_dict() == {"trader": "alice", "amount": 9}


class TestClose:
    def test_partial_close(self):
        m = _market()
        m.ledger.open_position("alice", 100, Side.LONG, 10)
        remaining = m.ledger.close_position("alice", 30)
        assert remaining == Position(70, Side.LONG, 10)
        assert m.ledger.get_balance("alice") == 1_000 * E18 - 70
        # volume is counted on close too
        assert m.engine.trader_season_volume(1, "alice") == 1_300

    def test_full_close_removes_position(self):
        m = _market()
        m.ledger.open_position("alice", 100, Side.LONG, 2)
        assert m.ledger.close_position("alice", 100) is None
        assert m.ledger.get_position("alice") is None
        assert m.ledger.get_balance("alice") == 1_000 * E18
        # reopening is allowed once flat
        m.ledger.open_position("alice", 1, Side.SHORT, 1)

    def test_requires_position(self):
        m = _market()
        with pytest.raises(NoPositionOpenError):
            m.ledger.close_position("alice", 1)

    def test_close_more_than_open(self):
        m = _market()
        m.ledger.open_position("alice", 10, Side.LONG, 1)
        before = _snapshot(m)
        with pytest.raises(InsufficientBalanceError):
            m.ledger.close_position("alice", 11)
        assert _snapshot(m) == before

    def test_zero_amount(self):
        m = _market()
        m.ledger.open_position("alice", 10, Side.LONG, 1)
        with pytest.raises(ZeroAmountError):
            m.ledger.close_position("alice", 0)

    def test_event(self):
        m = _market()
        m.ledger.open_position("alice", 10, Side.LONG, 1)
        m.ledger.close_position("alice", 4)
        (event,) = m.store.events_named("PositionClosed")
        assert event.as_dict() == {"trader": "alice", "amount": 4}


# ---------------------------------------------------------------------------
# conservation / wiring
# ---------------------------------------------------------------------------

class TestConservation:
    def test_collateral_matches_custody(self):
        m = _market()
        m.grant("bob", 500)
        m.ledger.deposit("bob", 500)
        m.ledger.open_position("alice", 300, Side.LONG, 3)
        m.ledger.open_position("bob", 200, Side.SHORT, 1)
        m.ledger.increase_position("alice", 50)
        m.ledger.close_position("bob", 120)
        m.ledger.withdraw("bob", 100)
        assert m.ledger.total_collateral() == m.collateral_token.balance_of(m.ledger.address)

    def test_ledger_is_the_only_reporter(self):
        m = _market()
        with pytest.raises(UnauthorizedError):
            m.engine.report_volume("alice", 10**30, "alice")
        assert m.engine.market_season_volume(1) == 0

    def test_every_position_action_reports(self):
        m = _market()
        m.ledger.open_position("alice", 10, Side.LONG, 2)
        m.ledger.increase_position("alice", 5)
        m.ledger.close_position("alice", 15)
        assert m.engine.trader_season_volume(1, "alice") == 20 + 10 + 30
        assert m.engine.market_season_volume(1) == 60
