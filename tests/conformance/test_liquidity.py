"""
Liquidity Conformance Tests

INVARIANT: Available liquidity never exceeds what the custodian really holds.

    ∀ operation sequences:
        available_liquidity() = min(tracked_liquidity, held(reference))
        available_liquidity() ≤ held(reference)
        collateral_balance(asset) ≥ 0
        notify(reference) ⟹ collateral_balance(reference) ≤ max(before, held - reserve)

The counter may drift above the held balance (funds leaving out of band), but
every read, and every withdrawal bound derived from it, is clamped.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from navvault import VaultError

from tests.fakes import BTC, REFERENCE, make_vault


OPERATIONS = [
    "deposit_reference", "deposit_wbtc", "inflow", "outflow", "notify",
    "withdraw", "add_liquidity", "remove_liquidity", "liquidity_then_notify_twice",
]


def _notify_within_ceiling(strategy, book, amount):
    """Notify the reference asset; its balance may only grow into unreserved holdings."""
    before = strategy.collateral_balance(REFERENCE)
    ceiling = book.balance_of("vault", REFERENCE) - strategy.liquidity_reserve
    strategy.notify_collateral_deposit("manager", REFERENCE, amount)
    assert strategy.collateral_balance(REFERENCE) <= max(before, ceiling)

operations = st.lists(
    st.tuples(st.sampled_from(OPERATIONS), st.integers(min_value=1, max_value=5 * BTC)),
    max_size=30,
)


def _apply(op, amount, book, strategy):
    held = book.balance_of("vault", REFERENCE)
    if op == "deposit_reference":
        strategy.deposit_collateral("alice", REFERENCE, amount)
    elif op == "deposit_wbtc":
        strategy.deposit_collateral("alice", "WBTC", amount)
    elif op == "inflow":
        book.transfer(REFERENCE, "bob", "vault", amount, memo="out-of-band")
    elif op == "outflow":
        book.set_balance("vault", REFERENCE, max(held - amount, 0))
    elif op == "notify":
        _notify_within_ceiling(strategy, book, amount)
    elif op == "withdraw":
        strategy.withdraw_collateral("manager", REFERENCE, amount, "bob")
    elif op == "add_liquidity":
        strategy.add_liquidity("manager", amount)
    elif op == "remove_liquidity":
        strategy.remove_liquidity("manager", amount, "manager")
    elif op == "liquidity_then_notify_twice":
        strategy.add_liquidity("manager", amount)
        _notify_within_ceiling(strategy, book, amount)
        settled = strategy.collateral_balance(REFERENCE)
        _notify_within_ceiling(strategy, book, amount)
        assert strategy.collateral_balance(REFERENCE) <= max(
            settled, book.balance_of("vault", REFERENCE) - strategy.liquidity_reserve,
        )


class TestLiquidityClampProperties:
    """Property-based liquidity tests."""

    @given(operations)
    @settings(max_examples=100, deadline=None)
    def test_available_never_exceeds_held(self, ops):
        """
        PROPERTY: After any sequence of operations, available liquidity is clamped.
        """
        _, book, _, strategy, _ = make_vault()
        for op, amount in ops:
            try:
                _apply(op, amount, book, strategy)
            except VaultError:
                pass

            held = book.balance_of("vault", REFERENCE)
            available = strategy.available_liquidity()
            assert available <= held
            assert available == min(strategy.tracked_liquidity, held)
            assert strategy.tracked_liquidity >= 0
            for asset in strategy.supported_collaterals():
                assert strategy.collateral_balance(asset) >= 0

    @given(st.integers(min_value=1, max_value=10 * BTC), st.integers(min_value=1, max_value=5))
    @settings(max_examples=50)
    def test_repeated_notifications_are_idempotent(self, amount, repeats):
        """
        PROPERTY: Notifying the same out-of-band transfer N times records it once.
        """
        _, book, _, strategy, _ = make_vault()
        book.transfer(REFERENCE, "bob", "vault", amount)
        for _ in range(repeats):
            strategy.notify_collateral_deposit("manager", REFERENCE, amount)
        assert strategy.tracked_liquidity == amount
        assert strategy.collateral_balance(REFERENCE) == amount

    @given(
        st.integers(min_value=1, max_value=10 * BTC),
        st.integers(min_value=0, max_value=10 * BTC),
        st.integers(min_value=1, max_value=20 * BTC),
        st.integers(min_value=1, max_value=5),
    )
    @settings(max_examples=50)
    def test_notifications_never_turn_reserve_into_collateral(self, reserve, inflow, claimed, repeats):
        """
        PROPERTY: Liquidity added by the manager never becomes collateral, however
        many notifications arrive for whatever amount.
        """
        _, book, _, strategy, ledger = make_vault()
        ledger.deposit("alice", "WBTC", 10 * BTC, "alice")
        price_before = ledger.price_per_share()
        strategy.add_liquidity("manager", reserve)
        if inflow:
            book.transfer(REFERENCE, "bob", "vault", inflow)

        for _ in range(repeats):
            strategy.notify_collateral_deposit("manager", REFERENCE, claimed)

        assert strategy.collateral_balance(REFERENCE) <= inflow
        assert strategy.liquidity_reserve == reserve
        if inflow == 0:
            assert ledger.price_per_share() == price_before

    @given(st.integers(min_value=1, max_value=10 * BTC), st.integers(min_value=0, max_value=10 * BTC))
    @settings(max_examples=50)
    def test_withdrawals_bounded_by_clamped_liquidity(self, deposit, lost):
        """
        PROPERTY: A withdrawal succeeds iff it fits within min(tracked, held).
        """
        _, book, _, strategy, _ = make_vault()
        strategy.deposit_collateral("alice", REFERENCE, deposit)
        book.set_balance("vault", REFERENCE, max(deposit - lost, 0))
        available = strategy.available_liquidity()
        assert available == max(deposit - lost, 0)

        if available > 0:
            strategy.withdraw_collateral("manager", REFERENCE, available, "bob")
        assert strategy.available_liquidity() == 0
