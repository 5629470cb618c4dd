"""
shares.py - NAV-aware share ledger

Converts deposited collateral into vault shares and shares back into reference
asset, always proportionally to the vault's current value.

Core equations:
- Total assets (collateral mode): A = Σ tracked collateral balances
- Total assets (reported mode):   A = price_per_share * S / PRICE_SCALE
- Mint:   shares = assets * S / A   (S > 0),  shares = assets  (S == 0, bootstrap)
- Burn:   assets = shares * A / S
- Rounding: every conversion rounds toward the vault (down when paying out
  shares or assets, up when computing what a holder must give)

A depositor arriving when price-per-share > 1.0 therefore receives fewer shares
per unit than an early depositor, and more when it is below 1.0.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, Optional
import logging

from .core import (
    PRICE_SCALE,
    Amount, Capability, CapabilityAuthority, LogicalClock, Rounding,
    AssetNotSupported,
    InsufficientShares, InvalidAmount, StateError, ValidationError, VaultPaused,
    mul_div, require_address, require_capability, require_positive_amount,
)
from .events import EventLog, EventType
from .reporter import PriceReporter
from .strategy import CollateralStrategy

logger = logging.getLogger(__name__)


class ValuationMode(Enum):
    """
    Source of total assets.

    COLLATERAL: sum of the strategy's tracked balances (1:1 valuation).
    REPORTED: reporter price-per-share times total supply.
    """
    COLLATERAL = "collateral"
    REPORTED = "reported"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def compute_shares_for_deposit(
    assets: Amount,
    total_supply: Amount,
    total_assets: Amount,
    rounding: Rounding = Rounding.DOWN,
) -> Amount:
    """
    Shares worth `assets` against the current supply and asset base.

    Raises:
        StateError: shares are outstanding but nothing backs them (A == 0)
    """
    if total_supply == 0:
        return assets
    if total_assets == 0:
        raise StateError("outstanding shares have no backing assets")
    return mul_div(assets, total_supply, total_assets, rounding)


def compute_assets_for_shares(
    shares: Amount,
    total_supply: Amount,
    total_assets: Amount,
    rounding: Rounding = Rounding.DOWN,
) -> Amount:
    """Assets represented by `shares`; 1:1 when no shares exist."""
    if total_supply == 0:
        return shares
    return mul_div(shares, total_assets, total_supply, rounding)


def compute_price_per_share(total_supply: Amount, total_assets: Amount) -> int:
    """Assets per share in PRICE_SCALE fixed point; 1.0 for an empty vault."""
    if total_supply == 0:
        return PRICE_SCALE
    return mul_div(total_assets, PRICE_SCALE, total_supply)


# ============================================================================
# SHARE LEDGER
# ============================================================================

class ShareLedger:
    """
    Vault share token over a CollateralStrategy.

    The ledger reads the strategy and the reporter but neither of them ever
    calls into the ledger.

    Thread Safety:
        Not thread-safe. Every call runs to completion before the next.

    Example:
        ledger = ShareLedger(strategy, roles, clock, reporter=reporter,
                             mode=ValuationMode.REPORTED)
        shares = ledger.deposit("alice", "WBTC", 10 ** 8, "alice")
        ledger.convert_to_assets(shares)
    """

    def __init__(
        self,
        strategy: CollateralStrategy,
        authority: CapabilityAuthority,
        clock: LogicalClock,
        reporter: Optional[PriceReporter] = None,
        mode: ValuationMode = ValuationMode.COLLATERAL,
        name: str = "vault",
        events: Optional[EventLog] = None,
    ):
        if mode is ValuationMode.REPORTED and reporter is None:
            raise ValidationError("reported valuation mode requires a price reporter")
        self.strategy = strategy
        self.authority = authority
        self.clock = clock
        self.reporter = reporter
        self.mode = mode
        self.name = name
        self.events = events if events is not None else strategy.events
        self.paused = False
        self._total_supply: Amount = 0
        self._balances: Dict[str, Amount] = {}

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def asset(self) -> str:
        """The reference asset shares are denominated in."""
        return self.strategy.reference_asset

    @property
    def decimals(self) -> int:
        return self.strategy.reference_decimals

    @property
    def total_supply(self) -> Amount:
        return self._total_supply

    def balance_of(self, holder: str) -> Amount:
        return self._balances.get(holder, 0)

    def holders(self) -> Dict[str, Amount]:
        return {h: b for h, b in self._balances.items() if b}

    def total_assets(self) -> Amount:
        """Vault value in reference-asset base units."""
        if self.mode is ValuationMode.REPORTED:
            if self._total_supply == 0:
                return 0
            return mul_div(self.reporter.report(), self._total_supply, PRICE_SCALE)
        return self.strategy.total_collateral_assets()

    def price_per_share(self) -> int:
        """Assets per share, PRICE_SCALE fixed point."""
        if self.mode is ValuationMode.REPORTED:
            return self.reporter.report()
        return compute_price_per_share(self._total_supply, self.total_assets())

    def get_current_price(self) -> int:
        return self.price_per_share()

    def report(self) -> int:
        return self.price_per_share()

    def total_collateral_assets(self) -> Amount:
        return self.strategy.total_collateral_assets()

    def available_liquidity(self) -> Amount:
        return self.strategy.available_liquidity()

    def collateral_balance(self, asset: str) -> Amount:
        return self.strategy.collateral_balance(asset)

    # ========================================================================
    # CONVERSIONS
    # ========================================================================

    def convert_to_shares(self, assets: Amount) -> Amount:
        return compute_shares_for_deposit(assets, self._total_supply, self.total_assets())

    def convert_to_assets(self, shares: Amount) -> Amount:
        return compute_assets_for_shares(shares, self._total_supply, self.total_assets())

    def preview_deposit(self, assets: Amount) -> Amount:
        """Shares a deposit of `assets` would mint now (rounded down)."""
        return self.convert_to_shares(assets)

    def preview_redeem(self, shares: Amount) -> Amount:
        """Assets a redemption of `shares` would pay now (rounded down)."""
        return self.convert_to_assets(shares)

    def preview_withdraw(self, assets: Amount) -> Amount:
        """Shares that must be burned to receive `assets` (rounded up)."""
        return compute_shares_for_deposit(
            assets, self._total_supply, self.total_assets(), Rounding.UP,
        )

    # ========================================================================
    # USER OPERATIONS
    # ========================================================================

    def deposit(self, caller: str, asset: str, amount: Amount, receiver: str) -> Amount:
        """
        Deposit collateral and mint shares to receiver.

        Shares are priced against the NAV before the deposit; the strategy then
        records the balance change, which is visible to the very next deposit.

        Returns:
            Shares minted

        Raises:
            VaultPaused: the ledger is paused
            InvalidAmount: amount is not positive, or too small to mint a share
            InvalidAddress: receiver is null
            AssetNotSupported: asset is not a supported collateral
        """
        self._require_not_paused()
        require_positive_amount(amount)
        require_address(receiver, "receiver")
        if not self.strategy.is_supported_asset(asset):
            raise AssetNotSupported(f"{asset!r} is not a supported collateral")

        shares = self.preview_deposit(amount)
        if shares == 0:
            raise InvalidAmount(f"deposit of {amount} {asset} mints zero shares")

        self.strategy.deposit_collateral(caller, asset, amount)

        self._mint(receiver, shares)
        self.events.emit(
            EventType.DEPOSIT, self.name, self.clock.now,
            sender=caller, owner=receiver, asset=asset, assets=amount, shares=shares,
        )
        logger.debug("%s deposited %d %s for %d shares", caller, amount, asset, shares)
        return shares

    def redeem(self, caller: str, shares: Amount, owner: str, recipient: str) -> Amount:
        """
        Burn owner's shares and pay their value in reference asset (manager only).

        Payment goes through strategy.withdraw_collateral(), so it is bounded by
        available liquidity.

        Returns:
            Reference-asset base units paid

        Raises:
            AuthorizationError: caller is not a manager
            VaultPaused: the ledger is paused
            InsufficientShares: owner holds fewer than `shares`
            InvalidAmount: the shares are worth zero assets
            InsufficientLiquidity: not enough earmarked liquidity to pay out
        """
        require_capability(self.authority, caller, Capability.MANAGER, "redeem")
        self._require_not_paused()
        require_positive_amount(shares, "shares")
        require_address(recipient, "recipient")
        held = self.balance_of(owner)
        if shares > held:
            raise InsufficientShares(f"{owner} holds {held} shares, {shares} requested")

        assets = self.preview_redeem(shares)
        if assets == 0:
            raise InvalidAmount(f"{shares} shares redeem for zero assets")

        self.strategy.withdraw_collateral(caller, self.asset, assets, recipient)

        self._burn(owner, shares)
        self.events.emit(
            EventType.WITHDRAW, self.name, self.clock.now,
            sender=caller, receiver=recipient, owner=owner, assets=assets, shares=shares,
        )
        logger.debug("%s redeemed %d shares of %s for %d", caller, shares, owner, assets)
        return assets

    def transfer(self, caller: str, to: str, shares: Amount) -> None:
        """Move shares from caller to another holder."""
        self._require_not_paused()
        require_address(caller, "sender")
        require_address(to, "recipient")
        require_positive_amount(shares, "shares")
        held = self.balance_of(caller)
        if shares > held:
            raise InsufficientShares(f"{caller} holds {held} shares, {shares} requested")

        self._balances[caller] = held - shares
        self._balances[to] = self._balances.get(to, 0) + shares
        self.events.emit(
            EventType.SHARE_TRANSFER, self.name, self.clock.now,
            sender=caller, to=to, shares=shares,
        )

    # ========================================================================
    # ADMINISTRATION (owner)
    # ========================================================================

    def pause(self, caller: str) -> None:
        require_capability(self.authority, caller, Capability.OWNER, "pause")
        if self.paused:
            raise StateError("share ledger is already paused")
        self.paused = True
        self.events.emit(EventType.PAUSED, self.name, self.clock.now, account=caller)
        logger.info("%s paused by %s", self.name, caller)

    def unpause(self, caller: str) -> None:
        require_capability(self.authority, caller, Capability.OWNER, "unpause")
        if not self.paused:
            raise StateError("share ledger is not paused")
        self.paused = False
        self.events.emit(EventType.UNPAUSED, self.name, self.clock.now, account=caller)
        logger.info("%s unpaused by %s", self.name, caller)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _mint(self, holder: str, shares: Amount) -> None:
        self._balances[holder] = self._balances.get(holder, 0) + shares
        self._total_supply += shares

    def _burn(self, holder: str, shares: Amount) -> None:
        self._balances[holder] -= shares
        self._total_supply -= shares

    def _require_not_paused(self) -> None:
        if self.paused:
            raise VaultPaused(f"{self.name} is paused")

    def __repr__(self) -> str:
        return (
            f"ShareLedger({self.name!r}, mode={self.mode.value}, supply={self._total_supply}, "
            f"assets={self.total_assets()}, pps={self.price_per_share()})"
        )
