"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ balances, liquidity, supply and events all reflect O
        O fails ⟹ none of them change

Every operation validates first, moves assets second and writes state last, so
a failing transfer cannot leave a partial update behind.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from navvault import (
    EventLog, LogicalClock, ShareLedger, TransferFailed, VaultError,
)

from tests.fakes import BTC, REFERENCE, START, FakeTransfer, make_roles, make_strategy


def _fake_vault():
    clock = LogicalClock(START)
    roles = make_roles()
    events = EventLog()
    fakes = {
        REFERENCE: FakeTransfer({"alice": 100 * BTC, "manager": 100 * BTC}),
        "WBTC": FakeTransfer({"alice": 100 * BTC}),
    }
    strategy = make_strategy(None, roles, clock, events, transfers=lambda asset: fakes[asset])
    ledger = ShareLedger(strategy, roles, clock, events=events)
    return fakes, strategy, ledger, events


def _snapshot(strategy, ledger, events, fakes):
    return (
        {a: strategy.collateral_balance(a) for a in (REFERENCE, "WBTC")},
        strategy.tracked_liquidity,
        ledger.total_supply,
        ledger.holders(),
        len(events),
        {a: dict(f.balances) for a, f in fakes.items()},
    )


OPERATIONS = ["deposit_reference", "deposit_wbtc", "redeem", "add_liquidity", "remove_liquidity"]


def _apply(op, amount, ledger, strategy):
    if op == "deposit_reference":
        ledger.deposit("alice", REFERENCE, amount, "alice")
    elif op == "deposit_wbtc":
        ledger.deposit("alice", "WBTC", amount, "alice")
    elif op == "redeem":
        ledger.redeem("manager", min(amount, ledger.balance_of("alice")) or 1, "alice", "alice")
    elif op == "add_liquidity":
        strategy.add_liquidity("manager", amount)
    elif op == "remove_liquidity":
        strategy.remove_liquidity("manager", amount, "manager")


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.lists(
        st.tuples(
            st.sampled_from(OPERATIONS),
            st.integers(min_value=1, max_value=10 * BTC),
            st.booleans(),
        ),
        max_size=25,
    ))
    @settings(max_examples=100, deadline=None)
    def test_failed_operations_leave_no_trace(self, ops):
        """
        PROPERTY: Any failing operation leaves the whole vault unchanged.
        """
        fakes, strategy, ledger, events = _fake_vault()
        for op, amount, inject in ops:
            if inject:
                for fake in fakes.values():
                    fake.fail_next = True
            before = _snapshot(strategy, ledger, events, fakes)
            try:
                _apply(op, amount, ledger, strategy)
            except VaultError:
                assert _snapshot(strategy, ledger, events, fakes) == before
            for fake in fakes.values():
                fake.fail_next = False


class TestAtomicityExamples:
    """Concrete failure paths."""

    def test_deposit_failing_pull_mints_nothing(self):
        fakes, strategy, ledger, events = _fake_vault()
        fakes["WBTC"].fail_next = True
        with pytest.raises(TransferFailed):
            ledger.deposit("alice", "WBTC", BTC, "alice")
        assert ledger.total_supply == 0
        assert strategy.collateral_balance("WBTC") == 0
        assert len(events) == 1  # the CollateralAdded event from setup

    def test_redeem_failing_push_burns_nothing(self):
        fakes, strategy, ledger, _ = _fake_vault()
        ledger.deposit("alice", REFERENCE, BTC, "alice")
        fakes[REFERENCE].fail_next = True
        with pytest.raises(TransferFailed):
            ledger.redeem("manager", BTC, "alice", "alice")
        assert ledger.balance_of("alice") == BTC
        assert strategy.tracked_liquidity == BTC
        assert strategy.collateral_balance(REFERENCE) == BTC
