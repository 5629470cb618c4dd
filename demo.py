#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Vault Step by Step

A pedagogical walkthrough of NAV-aware multi-collateral vault accounting.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup          - Custody book, roles, wiring a vault from config
  4-5:  Deposits       - Bootstrap minting, multi-collateral deposits
  6-7:  Pricing        - Bounded-rate price transitions, NAV-aware minting
  8-9:  Liquidity      - Out-of-band transfers, clamping, redemptions
  10:   Audit          - Event trail and conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
import logging
import sys

from navvault import (
    PRICE_SCALE, AssetBook, Capability, LogicalClock, RoleRegistry,
    VaultConfig, build_components, from_base_units,
    InsufficientLiquidity,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    decimals: int = 8
    funding: int = 50 * 10 ** 8
    max_deviation_bps: int = 500      # 5% of the start price...
    deviation_period: int = 3600      # ...per hour


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def btc(amount: int) -> str:
    return f"{from_base_units(amount, CONFIG.decimals):,.8f}"


def price(value: int) -> str:
    return f"{from_base_units(value, 18):.6f}"


def show_vault(parts, book):
    ledger, strategy = parts.ledger, parts.strategy
    print(f"Total supply:          {btc(ledger.total_supply)} shares")
    print(f"Total assets:          {btc(ledger.total_assets())}")
    print(f"Price per share:       {price(ledger.price_per_share())}")
    print(f"Tracked liquidity:     {btc(strategy.tracked_liquidity)}")
    print(f"Available liquidity:   {btc(strategy.available_liquidity())}")
    print(f"Custodian holdings:    { {a: btc(q) for a, q in book.holdings('vault').items()} }")


# ============================================================================
# PHASE 1: SETUP
# ============================================================================

def step_01_custody():
    step_header(1, "The Custody Book",
        "Every asset lives in an external book; the vault only moves it through transfers.")

    clock = LogicalClock(CONFIG.start_time)
    book = AssetBook("custody", clock)
    for asset in ("sovaBTC", "WBTC", "tBTC"):
        book.register_asset(asset, CONFIG.decimals)
    book.register_holder("alice", "bob", "desk")
    for holder in ("alice", "bob", "desk"):
        for asset in ("sovaBTC", "WBTC", "tBTC"):
            book.issue(asset, holder, CONFIG.funding)

    print(f">>> {book!r}")
    print(f"alice holds: { {a: btc(q) for a, q in book.holdings('alice').items()} }")
    return clock, book


def step_02_roles():
    step_header(2, "Capabilities",
        "The vault asks an authority whether a caller may act. It never stores roles itself.")

    roles = RoleRegistry({
        "admin": [Capability.OWNER, Capability.MANAGER],
        "desk": [Capability.MANAGER],
    })
    for who in ("admin", "desk", "alice"):
        caps = sorted(c.value for c in roles.capabilities_of(who))
        print(f"{who:<6} -> {caps or '-'}")
    return roles


def step_03_wire(clock, book, roles):
    step_header(3, "Wiring a Vault",
        "One config produces a reporter, a strategy and a share ledger sharing one event log.")

    config = VaultConfig(
        name="btc-vault",
        reference_asset="sovaBTC",
        reference_decimals=CONFIG.decimals,
        max_deviation_bps=CONFIG.max_deviation_bps,
        deviation_period=CONFIG.deviation_period,
        valuation_mode="reported",
        initial_collaterals=["WBTC", "tBTC"],
    )
    parts = build_components(config, book, roles, clock, owner="admin", updater="oracle")
    print(f">>> {parts.reporter!r}")
    print(f">>> {parts.strategy!r}")
    print(f">>> {parts.ledger!r}")
    wait_for_enter()
    return parts


# ============================================================================
# PHASE 2: DEPOSITS
# ============================================================================

def step_04_bootstrap(parts, book):
    step_header(4, "Bootstrap Deposit",
        "The first depositor receives shares 1:1 with the assets deposited.")

    shares = parts.ledger.deposit("alice", "WBTC", 10 * 10 ** 8, "alice")
    print(f"alice deposited 10 WBTC -> {btc(shares)} shares")
    show_vault(parts, book)
    wait_for_enter()


def step_05_multi_collateral(parts, book):
    step_header(5, "Multi-Collateral Deposits",
        "Any approved collateral counts 1:1; only the reference asset adds liquidity.")

    parts.ledger.deposit("bob", "tBTC", 5 * 10 ** 8, "bob")
    parts.ledger.deposit("bob", "sovaBTC", 5 * 10 ** 8, "bob")
    for asset in parts.strategy.supported_collaterals():
        print(f"{asset:<8} recorded: {btc(parts.strategy.collateral_balance(asset))}")
    show_vault(parts, book)
    wait_for_enter()


# ============================================================================
# PHASE 3: PRICING
# ============================================================================

def step_06_price_transition(parts, clock):
    step_header(6, "Bounded-Rate Price Updates",
        "A reported gain glides toward its target at most 5% per hour.")

    reporter = parts.reporter
    reporter.update("oracle", 112 * PRICE_SCALE // 100, "month-end NAV")
    for hour in range(4):
        print(f"t+{hour}h  price {price(reporter.get_current_price())}  "
              f"progress {reporter.get_transition_progress() / 100:.1f}%")
        clock.advance_by(CONFIG.deviation_period)
    wait_for_enter()


def step_07_nav_aware_minting(parts, book):
    step_header(7, "NAV-Aware Minting",
        "A late depositor buys shares at the current price, diluting nobody.")

    before = parts.ledger.convert_to_assets(parts.ledger.balance_of("alice"))
    shares = parts.ledger.deposit("bob", "WBTC", 10 * 10 ** 8, "bob")
    after = parts.ledger.convert_to_assets(parts.ledger.balance_of("alice"))
    print(f"bob deposited 10 WBTC -> {btc(shares)} shares")
    print(f"alice's value before/after: {btc(before)} / {btc(after)}")
    show_vault(parts, book)
    wait_for_enter()


# ============================================================================
# PHASE 4: LIQUIDITY
# ============================================================================

def step_08_out_of_band(parts, book):
    step_header(8, "Out-of-Band Transfers",
        "Funds sent straight to custody are invisible until notified, and clamped to what is held.")

    book.transfer("sovaBTC", "desk", "vault", 2 * 10 ** 8, memo="wire")
    print(f"after raw transfer, available liquidity: {btc(parts.strategy.available_liquidity())}")
    parts.strategy.notify_collateral_deposit("desk", "sovaBTC", 3 * 10 ** 8)
    print(f"after notifying 3 (only 2 arrived):      {btc(parts.strategy.available_liquidity())}")
    show_vault(parts, book)
    wait_for_enter()


def step_09_redeem(parts, book):
    step_header(9, "Manager-Executed Redemption",
        "Redemptions pay the reference asset and are bounded by available liquidity.")

    ledger = parts.ledger
    try:
        ledger.redeem("desk", ledger.balance_of("alice"), "alice", "alice")
    except InsufficientLiquidity as exc:
        print(f"✗ {exc}")

    parts.strategy.add_liquidity("desk", 10 * 10 ** 8)
    paid = ledger.redeem("desk", ledger.balance_of("alice"), "alice", "alice")
    print(f"✓ alice redeemed all shares for {btc(paid)} sovaBTC")
    show_vault(parts, book)
    wait_for_enter()


def step_10_audit(parts, book):
    step_header(10, "Audit Trail",
        "Every state change left one event; the custody book still nets to zero.")

    for event in parts.events:
        print(f"#{event.sequence:<3} {event.event_type.value:<22} {event.emitter}")
    print(f"\nconservation: {book.verify_conservation()}")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    clock, book = step_01_custody()
    roles = step_02_roles()
    parts = step_03_wire(clock, book, roles)
    step_04_bootstrap(parts, book)
    step_05_multi_collateral(parts, book)
    step_06_price_transition(parts, clock)
    step_07_nav_aware_minting(parts, book)
    step_08_out_of_band(parts, book)
    step_09_redeem(parts, book)
    step_10_audit(parts, book)


if __name__ == "__main__":
    main()
