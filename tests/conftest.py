"""
conftest.py - Shared pytest fixtures for navvault tests

Provides common fixtures used across unit, conformance and functional tests:
- A logical clock and a role registry with owner/manager principals
- A funded custody book (reference asset plus three BTC-style collaterals)
- A reporter, a strategy and share ledgers in both valuation modes
"""

import pytest

from navvault import EventLog, LogicalClock, ShareLedger, ValuationMode

from tests.fakes import START, make_book, make_reporter, make_roles, make_strategy


@pytest.fixture
def clock():
    return LogicalClock(START)


@pytest.fixture
def roles():
    return make_roles()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def book(clock):
    return make_book(clock)


@pytest.fixture
def reporter(roles, clock, events):
    return make_reporter(roles, clock, events)


@pytest.fixture
def strategy(book, roles, clock, events):
    """Strategy over the book with WBTC approved next to the reference asset."""
    return make_strategy(book, roles, clock, events)


@pytest.fixture
def ledger(strategy, roles, clock, reporter, events):
    """Share ledger valuing the vault by its tracked collateral."""
    return ShareLedger(
        strategy, roles, clock,
        reporter=reporter, mode=ValuationMode.COLLATERAL, events=events,
    )


@pytest.fixture
def reported_ledger(strategy, roles, clock, reporter, events):
    """Share ledger valuing the vault by the reporter's price-per-share."""
    return ShareLedger(
        strategy, roles, clock,
        reporter=reporter, mode=ValuationMode.REPORTED, events=events,
    )
