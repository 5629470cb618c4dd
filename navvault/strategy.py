"""
strategy.py - NAV-aware multi-collateral vault strategy

The CollateralStrategy custodies several approved collateral types and values
them 1:1 against a single reference asset. It is the accounting core the share
ledger reads when minting and burning.

Three counters are kept apart:

    collateral balances   per-asset amounts recorded as custodied
    tracked liquidity     reference-asset amount earmarked for withdrawal
    liquidity reserve     reference-asset funds from add_liquidity() that are
                          not collateral and never count toward NAV

Only reference-asset deposits and explicit add_liquidity() calls grow the
liquidity counter. Every read of available_liquidity() is clamped to the
custodian's live reference-asset balance, because the counter can drift from
what is actually held (out-of-band transfers, duplicate notifications).

Every operation validates first, moves assets through the AssetTransfer
collaborator second and writes its own state last, so a failure anywhere leaves
the strategy unchanged.
"""

from __future__ import annotations
from typing import Callable, Dict, List, Optional
import logging

from .core import (
    Amount, AssetTransfer, Capability, CapabilityAuthority, CollateralAsset,
    LogicalClock,
    AssetAlreadySupported, AssetNotSupported, DecimalsMismatch,
    InsufficientBalance, InsufficientLiquidity, InvalidAmount, ReferenceAssetLocked,
    is_null_address, require_address, require_capability, require_positive_amount,
    saturating_sub,
)
from .events import EventLog, EventType

logger = logging.getLogger(__name__)


class CollateralStrategy:
    """
    Multi-collateral custody and liquidity accounting.

    The supported set is an index arena (`_supported`) plus a reverse lookup
    (`_index`): removal moves the last element into the vacated slot and
    truncates, so no sibling is shifted.

    Thread Safety:
        Not thread-safe. Every call runs to completion before the next.

    Example:
        strategy = CollateralStrategy(
            reference_asset="sovaBTC",
            reference_decimals=8,
            transfers=book.bind("vault"),
            authority=roles,
            custodian="vault",
            clock=clock,
        )
        strategy.add_collateral("manager", "WBTC", 8)
        strategy.deposit_collateral("alice", "WBTC", 10 ** 8)
    """

    name = "CollateralStrategy"

    def __init__(
        self,
        reference_asset: str,
        reference_decimals: int,
        transfers: Callable[[str], AssetTransfer],
        authority: CapabilityAuthority,
        custodian: str,
        clock: LogicalClock,
        events: Optional[EventLog] = None,
    ):
        require_address(reference_asset, "reference_asset")
        require_address(custodian, "custodian")
        if reference_decimals < 0:
            raise DecimalsMismatch(f"reference decimals must be non-negative, got {reference_decimals}")

        self.reference_asset = reference_asset
        self.reference_decimals = reference_decimals
        self.custodian = custodian
        self.authority = authority
        self.clock = clock
        self.events = events if events is not None else EventLog()
        self._transfers = transfers
        self._share_ledger: Optional[str] = None

        self._supported: List[str] = [reference_asset]
        self._index: Dict[str, int] = {reference_asset: 0}
        self._decimals: Dict[str, int] = {reference_asset: reference_decimals}
        self._balances: Dict[str, Amount] = {}
        self._tracked_liquidity: Amount = 0
        self._liquidity_reserve: Amount = 0

    # ========================================================================
    # READS
    # ========================================================================

    def supported_collaterals(self) -> List[str]:
        """Supported assets in arena order (unordered by contract)."""
        return list(self._supported)

    def is_supported_asset(self, asset: str) -> bool:
        return asset in self._index

    def collateral_asset(self, asset: str) -> CollateralAsset:
        """Descriptor of an asset; decimals default to the reference's for unknown assets."""
        return CollateralAsset(
            asset=asset,
            decimals=self._decimals.get(asset, self.reference_decimals),
            supported=asset in self._index,
        )

    def collateral_balance(self, asset: str) -> Amount:
        return self._balances.get(asset, 0)

    def total_collateral_assets(self) -> Amount:
        """Sum of tracked balances, valued 1:1 in reference-asset units."""
        return sum(self._balances[asset] for asset in sorted(self._balances))

    @property
    def tracked_liquidity(self) -> Amount:
        """Raw liquidity counter, before clamping."""
        return self._tracked_liquidity

    @property
    def liquidity_reserve(self) -> Amount:
        """Reference asset added through add_liquidity() and not recorded as collateral."""
        return self._liquidity_reserve

    def held_balance(self, asset: str) -> Amount:
        """Live balance the custodian actually holds."""
        return self._transfers(asset).balance_of(self.custodian)

    def available_liquidity(self) -> Amount:
        """min(tracked liquidity, live reference-asset balance), evaluated now."""
        held = self.held_balance(self.reference_asset)
        if self._tracked_liquidity > held:
            logger.warning(
                "liquidity counter %d exceeds held %s balance %d; clamping",
                self._tracked_liquidity, self.reference_asset, held,
            )
            return held
        return self._tracked_liquidity

    @property
    def share_ledger(self) -> Optional[str]:
        return self._share_ledger

    # ========================================================================
    # COLLATERAL SET (manager)
    # ========================================================================

    def add_collateral(self, caller: str, asset: str, decimals: int) -> None:
        """
        Approve a new collateral type.

        Raises:
            AuthorizationError: caller is not a manager
            InvalidAddress: asset is null
            AssetAlreadySupported: asset is already in the set
            DecimalsMismatch: decimals differ from the reference asset's
        """
        require_capability(self.authority, caller, Capability.MANAGER, "add_collateral")
        require_address(asset, "asset")
        if asset in self._index:
            raise AssetAlreadySupported(f"{asset} is already supported")
        if decimals != self.reference_decimals:
            raise DecimalsMismatch(
                f"{asset} has {decimals} decimals, reference {self.reference_asset} "
                f"has {self.reference_decimals}"
            )

        self._index[asset] = len(self._supported)
        self._supported.append(asset)
        self._decimals[asset] = decimals
        self.events.emit(
            EventType.COLLATERAL_ADDED, self.name, self.clock.now,
            asset=asset, decimals=decimals,
        )
        logger.info("collateral added: %s", asset)

    def remove_collateral(self, caller: str, asset: str) -> None:
        """
        Withdraw approval of a collateral type (swap-and-truncate).

        Tracked balances of the removed asset stay on the books: they are still
        custodied and still count toward total_collateral_assets().

        Raises:
            AuthorizationError: caller is not a manager
            AssetNotSupported: asset is not in the set
            ReferenceAssetLocked: asset is the reference asset
        """
        require_capability(self.authority, caller, Capability.MANAGER, "remove_collateral")
        if asset not in self._index:
            raise AssetNotSupported(f"{asset} is not supported")
        if asset == self.reference_asset:
            raise ReferenceAssetLocked(f"reference asset {asset} cannot be removed")

        slot = self._index.pop(asset)
        last = self._supported.pop()
        if last != asset:
            self._supported[slot] = last
            self._index[last] = slot
        self.events.emit(
            EventType.COLLATERAL_REMOVED, self.name, self.clock.now,
            asset=asset,
        )
        logger.info("collateral removed: %s", asset)

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    def deposit_collateral(self, caller: str, asset: str, amount: Amount) -> None:
        """
        Pull amount of a supported asset from caller into custody.

        Only reference-asset deposits grow the liquidity counter.

        Raises:
            InvalidAddress: caller is null
            AssetNotSupported: asset is not supported
            InvalidAmount: amount is not positive
        """
        require_address(caller, "depositor")
        self._require_supported(asset)
        require_positive_amount(amount)

        self._transfers(asset).pull(caller, amount)

        self._balances[asset] = self._balances.get(asset, 0) + amount
        if asset == self.reference_asset:
            self._tracked_liquidity += amount
        self.events.emit(
            EventType.COLLATERAL_DEPOSITED, self.name, self.clock.now,
            depositor=caller, asset=asset, amount=amount,
        )
        logger.debug("%s deposited %d %s", caller, amount, asset)

    def notify_collateral_deposit(self, caller: str, asset: str, amount: Amount) -> None:
        """
        Record assets that reached custody outside deposit_collateral().

        Idempotent: the tracked balance becomes min(tracked + amount, ceiling)
        where the ceiling is what the custodian holds of the asset, less the
        liquidity reserve for the reference asset. The liquidity counter becomes
        min(tracked liquidity + amount, held). A duplicate or fabricated
        notification can therefore never turn reserve funds into collateral or
        push either counter past what is really held.

        Raises:
            AuthorizationError: caller is neither a manager nor the bound share ledger
            AssetNotSupported: asset is not supported
            InvalidAmount: amount is not positive
        """
        if self._share_ledger is None or caller != self._share_ledger:
            require_capability(self.authority, caller, Capability.MANAGER, "notify_collateral_deposit")
        self._require_supported(asset)
        require_positive_amount(amount)

        held = self.held_balance(asset)
        tracked = self._balances.get(asset, 0)
        is_reference = asset == self.reference_asset
        ceiling = max(held - self._liquidity_reserve, 0) if is_reference else held
        new_balance = min(tracked + amount, max(ceiling, tracked))

        clamped = new_balance < tracked + amount
        if is_reference:
            new_liquidity = min(self._tracked_liquidity + amount, held)
            clamped = clamped or new_liquidity < self._tracked_liquidity + amount
        if clamped:
            logger.warning(
                "notification of %d %s clamped to held balance %d", amount, asset, held,
            )
        self._balances[asset] = new_balance
        if is_reference:
            self._tracked_liquidity = new_liquidity

    # ========================================================================
    # WITHDRAWALS (manager)
    # ========================================================================

    def withdraw_collateral(self, caller: str, asset: str, amount: Amount, recipient: str) -> None:
        """
        Release custodied collateral to recipient.

        The reference asset is bounded by available_liquidity(), a stricter
        ceiling than its raw balance; other assets by their tracked balance.

        Raises:
            AuthorizationError: caller is not a manager
            AssetNotSupported: asset is not supported
            InvalidAmount: amount is not positive
            InvalidAddress: recipient is null
            InsufficientLiquidity: reference amount exceeds available liquidity
            InsufficientBalance: collateral amount exceeds its tracked balance
        """
        require_capability(self.authority, caller, Capability.MANAGER, "withdraw_collateral")
        self._require_supported(asset)
        require_positive_amount(amount)
        require_address(recipient, "recipient")

        balance = self._balances.get(asset, 0)
        if asset == self.reference_asset:
            available = self.available_liquidity()
            if amount > available:
                raise InsufficientLiquidity(
                    f"withdrawal of {amount} {asset} exceeds available liquidity {available}"
                )
        elif amount > balance:
            raise InsufficientBalance(
                f"withdrawal of {amount} {asset} exceeds tracked balance {balance}"
            )

        self._transfers(asset).push(recipient, amount)

        if asset == self.reference_asset:
            self._tracked_liquidity -= amount
            self._balances[asset] = saturating_sub(balance, amount)
            if amount > balance:
                self._liquidity_reserve = saturating_sub(self._liquidity_reserve, amount - balance)
        else:
            self._balances[asset] = balance - amount
        self.events.emit(
            EventType.COLLATERAL_WITHDRAWN, self.name, self.clock.now,
            asset=asset, amount=amount, recipient=recipient,
        )
        logger.debug("withdrew %d %s to %s", amount, asset, recipient)

    # ========================================================================
    # LIQUIDITY (manager)
    # ========================================================================

    def add_liquidity(self, caller: str, amount: Amount) -> None:
        """Pull reference asset from caller and earmark it as withdrawable."""
        require_capability(self.authority, caller, Capability.MANAGER, "add_liquidity")
        require_positive_amount(amount)

        self._transfers(self.reference_asset).pull(caller, amount)

        self._tracked_liquidity += amount
        self._liquidity_reserve += amount
        self.events.emit(
            EventType.LIQUIDITY_ADDED, self.name, self.clock.now,
            amount=amount, provider=caller,
        )

    def remove_liquidity(self, caller: str, amount: Amount, recipient: str) -> None:
        """
        Release earmarked reference asset to recipient.

        Drawn from the liquidity reserve first; any remainder reduces the
        recorded reference collateral, floored at zero.

        Raises:
            InsufficientLiquidity: amount exceeds available_liquidity()
        """
        require_capability(self.authority, caller, Capability.MANAGER, "remove_liquidity")
        require_positive_amount(amount)
        require_address(recipient, "recipient")
        available = self.available_liquidity()
        if amount > available:
            raise InsufficientLiquidity(
                f"removal of {amount} exceeds available liquidity {available}"
            )

        self._transfers(self.reference_asset).push(recipient, amount)

        self._tracked_liquidity -= amount
        from_reserve = min(amount, self._liquidity_reserve)
        self._liquidity_reserve -= from_reserve
        if amount > from_reserve:
            balance = self._balances.get(self.reference_asset, 0)
            self._balances[self.reference_asset] = saturating_sub(balance, amount - from_reserve)
        self.events.emit(
            EventType.LIQUIDITY_REMOVED, self.name, self.clock.now,
            amount=amount, recipient=recipient,
        )

    # ========================================================================
    # REBALANCING (manager)
    # ========================================================================

    def rebalance_collateral(self, caller: str, from_asset: str, to_asset: str, amount: Amount) -> None:
        """
        Reassign recorded balance between two non-reference collaterals.

        Bookkeeping only: nothing moves physically. The reassignment is refused
        if it would leave either asset recorded above what the custodian holds.

        Raises:
            AuthorizationError: caller is not a manager
            AssetNotSupported: either asset is unsupported or is the reference asset
            InvalidAmount: amount is not positive, or both assets are the same
            InsufficientBalance: from_asset's recorded balance is below amount, or
                to_asset's recorded balance would exceed its held balance
        """
        require_capability(self.authority, caller, Capability.MANAGER, "rebalance_collateral")
        self._require_supported(from_asset)
        self._require_supported(to_asset)
        if self.reference_asset in (from_asset, to_asset):
            raise AssetNotSupported("rebalancing does not apply to the reference asset")
        if from_asset == to_asset:
            raise InvalidAmount("rebalance requires two distinct assets")
        require_positive_amount(amount)

        from_balance = self._balances.get(from_asset, 0)
        to_balance = self._balances.get(to_asset, 0)
        if amount > from_balance:
            raise InsufficientBalance(
                f"rebalance of {amount} exceeds {from_asset} balance {from_balance}"
            )
        held = self.held_balance(to_asset)
        if to_balance + amount > held:
            raise InsufficientBalance(
                f"rebalance would record {to_balance + amount} {to_asset} "
                f"but custodian holds {held}"
            )

        self._balances[from_asset] = from_balance - amount
        self._balances[to_asset] = to_balance + amount
        self.events.emit(
            EventType.COLLATERAL_REBALANCED, self.name, self.clock.now,
            from_asset=from_asset, to_asset=to_asset, amount=amount,
        )

    # ========================================================================
    # WIRING (owner)
    # ========================================================================

    def bind_share_ledger(self, caller: str, ledger_id: str) -> None:
        """Record the share ledger allowed to call notify_collateral_deposit()."""
        require_capability(self.authority, caller, Capability.OWNER, "bind_share_ledger")
        require_address(ledger_id, "ledger_id")
        self._share_ledger = ledger_id

    def _require_supported(self, asset: str) -> None:
        if is_null_address(asset) or asset not in self._index:
            raise AssetNotSupported(f"{asset!r} is not a supported collateral")

    def __repr__(self) -> str:
        return (
            f"CollateralStrategy(reference={self.reference_asset}, "
            f"{len(self._supported)} collaterals, total={self.total_collateral_assets()}, "
            f"liquidity={self._tracked_liquidity})"
        )
