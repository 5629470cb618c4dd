"""
asset_book.py - In-memory multi-asset custody book

The AssetBook is the stand-in for the external asset-transfer collaborator. It
keeps holder balances for every registered asset and applies transfers atomically
(a transfer either fully applies or raises TransferFailed with nothing changed).

Key responsibilities:
    - Registers assets (with their decimals) and holders
    - Issues new units from the system account (the only account allowed to go negative)
    - Moves balances between holders and keeps a sequence-numbered transfer log
    - Provides the per-asset AssetTransfer views the vault strategy consumes

Out-of-band transfers (funds arriving at the vault without going through a vault
operation) are modelled as plain book transfers into the custodian account.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Any
import logging

from .core import (
    Amount, AssetTransfer, Balances, LogicalClock,
    TransferFailed,
    require_positive_amount,
)

logger = logging.getLogger(__name__)

# Reserved account for issuance and redemption of book units.
# The system account is exempt from the non-negative balance constraint.
SYSTEM_ACCOUNT = "system"


@dataclass(frozen=True, slots=True)
class TransferRecord:
    """
    One applied movement of an asset between two holders.

    Attributes:
        sequence: Monotonic position in the book's log
        asset: Asset moved
        source: Debited holder
        dest: Credited holder
        amount: Base units moved (always positive)
        memo: Free-form tag of the caller (e.g. "pull", "push", "issue")
        timestamp: Logical time the transfer was applied
    """
    sequence: int
    asset: str
    source: str
    dest: str
    amount: Amount
    memo: str
    timestamp: datetime

    def __repr__(self) -> str:
        return f"Transfer#{self.sequence}({self.amount} {self.asset}: {self.source}→{self.dest}, {self.memo})"


class AssetBook:
    """
    Holder → balance book for several assets.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own AssetBook instance.

    Example:
        book = AssetBook("custody", clock)
        book.register_asset("WBTC", 8)
        book.register_holder("alice")
        book.issue("WBTC", "alice", 10 ** 8)
        book.transfer("WBTC", "alice", "vault", 5 * 10 ** 7)
    """

    def __init__(
        self,
        name: str,
        clock: Optional[LogicalClock] = None,
        verbose: bool = False,
        test_mode: bool = False,
    ):
        """
        Create a custody book.

        Args:
            name: Book identifier
            clock: Logical clock used to timestamp transfers (default: a new clock)
            verbose: Print each applied or rejected transfer (default: False)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.clock = clock or LogicalClock()
        self.verbose = verbose
        self._test_mode = test_mode
        self.decimals: Dict[str, int] = {}
        self.registered_holders: Set[str] = {SYSTEM_ACCOUNT}
        self.balances: Dict[str, Dict[str, Amount]] = defaultdict(lambda: defaultdict(int))
        self.transfer_log: List[TransferRecord] = []

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, holder: str, asset: str) -> Amount:
        """Balance of one asset for a holder; 0 for unknown holders."""
        self._require_asset(asset)
        return self.balances[holder].get(asset, 0) if holder in self.balances else 0

    def holdings(self, holder: str) -> Balances:
        """All non-zero balances of a holder."""
        return {a: q for a, q in self.balances.get(holder, {}).items() if q}

    def total_supply(self, asset: str) -> Amount:
        """
        Amount of an asset held outside the system account.

        Holders are sorted before summation for deterministic accumulation.
        """
        self._require_asset(asset)
        return sum(
            self.balances[h].get(asset, 0)
            for h in sorted(self.registered_holders)
            if h != SYSTEM_ACCOUNT and h in self.balances
        )

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that every asset nets to zero across all holders, system included.

        Returns:
            Dict with 'valid' and 'discrepancies' (asset -> net sum).
        """
        discrepancies = {}
        for asset in self.decimals:
            net = sum(self.balances[h].get(asset, 0) for h in list(self.balances))
            if net != 0:
                discrepancies[asset] = net
        return {'valid': not discrepancies, 'discrepancies': discrepancies}

    def list_assets(self) -> List[str]:
        return sorted(self.decimals)

    def is_registered(self, holder: str) -> bool:
        return holder in self.registered_holders

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_asset(self, asset: str, decimals: int) -> None:
        """
        Register a new asset.

        Raises:
            ValueError: if the asset is already registered or decimals is negative
        """
        if asset in self.decimals:
            raise ValueError(f"Asset {asset} already registered")
        if decimals < 0:
            raise ValueError(f"decimals must be non-negative, got {decimals}")
        self.decimals[asset] = decimals
        if self.verbose:
            print(f"Registered asset: {asset} ({decimals} decimals)")

    def register_holder(self, *holders: str) -> None:
        """
        Register one or more holders.

        Raises:
            ValueError: if a holder is already registered or blank
        """
        for holder in holders:
            if not holder or not holder.strip():
                raise ValueError("holder cannot be empty")
            if holder in self.registered_holders:
                raise ValueError(f"Holder {holder} already registered")
            self.registered_holders.add(holder)

    def set_balance(self, holder: str, asset: str, amount: Amount) -> None:
        """
        Overwrite a holder's balance directly.

        WARNING: bypasses double-entry bookkeeping; only available in test mode.
        The difference is booked against the system account so conservation holds.
        """
        if not self._test_mode:
            raise TransferFailed(
                "set_balance() is disabled outside test mode. "
                "Use issue() or transfer() to modify balances."
            )
        self._require_asset(asset)
        self._require_holder(holder)
        delta = amount - self.balances[holder][asset]
        self.balances[holder][asset] = amount
        self.balances[SYSTEM_ACCOUNT][asset] -= delta

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def issue(self, asset: str, dest: str, amount: Amount) -> TransferRecord:
        """Create new units of an asset in dest's balance."""
        return self.transfer(asset, SYSTEM_ACCOUNT, dest, amount, memo="issue")

    def transfer(
        self,
        asset: str,
        source: str,
        dest: str,
        amount: Amount,
        memo: str = "transfer",
    ) -> TransferRecord:
        """
        Move amount of asset from source to dest atomically.

        Raises:
            InvalidAmount: if amount is not a positive int
            TransferFailed: if the asset or a holder is unknown, source equals
                dest, or the source balance would go negative
        """
        require_positive_amount(amount)
        reason = self._validate(asset, source, dest, amount)
        if reason:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            logger.debug("%s rejected transfer: %s", self.name, reason)
            raise TransferFailed(reason)

        self.balances[source][asset] -= amount
        self.balances[dest][asset] += amount
        record = TransferRecord(
            sequence=len(self.transfer_log),
            asset=asset,
            source=source,
            dest=dest,
            amount=amount,
            memo=memo,
            timestamp=self.clock.now,
        )
        self.transfer_log.append(record)
        if self.verbose:
            print(f"✓ {record!r}")
        return record

    def _validate(self, asset: str, source: str, dest: str, amount: Amount) -> str:
        """Return an empty string when the transfer is valid, else the reason."""
        if asset not in self.decimals:
            return f"asset not registered: {asset}"
        if source not in self.registered_holders:
            return f"holder not registered: {source}"
        if dest not in self.registered_holders:
            return f"holder not registered: {dest}"
        if source == dest:
            return "source and dest must be different"
        if source != SYSTEM_ACCOUNT:
            available = self.balances[source][asset]
            if available < amount:
                return f"{source} {asset}: balance {available} < {amount}"
        return ""

    def _require_asset(self, asset: str) -> None:
        if asset not in self.decimals:
            raise TransferFailed(f"asset not registered: {asset}")

    def _require_holder(self, holder: str) -> None:
        if holder not in self.registered_holders:
            raise TransferFailed(f"holder not registered: {holder}")

    # ========================================================================
    # COLLABORATOR VIEWS
    # ========================================================================

    def transfer_for(self, asset: str, custodian: str) -> BookTransfer:
        """AssetTransfer view of one asset, bound to custodian."""
        self._require_asset(asset)
        return BookTransfer(self, asset, custodian)

    def bind(self, custodian: str) -> Callable[[str], AssetTransfer]:
        """
        Resolver handed to CollateralStrategy: asset -> AssetTransfer.

        Registers the custodian account if it is not known yet.
        """
        if custodian not in self.registered_holders:
            self.register_holder(custodian)
        return lambda asset: self.transfer_for(asset, custodian)

    def __repr__(self) -> str:
        return (
            f"AssetBook({self.name!r}, {len(self.decimals)} assets, "
            f"{len(self.registered_holders)} holders, {len(self.transfer_log)} transfers)"
        )


class BookTransfer:
    """AssetTransfer implementation over an AssetBook for a single asset."""

    def __init__(self, book: AssetBook, asset: str, custodian: str):
        self.book = book
        self.asset = asset
        self.custodian = custodian

    def pull(self, source: str, amount: Amount) -> None:
        self.book.transfer(self.asset, source, self.custodian, amount, memo="pull")

    def push(self, dest: str, amount: Amount) -> None:
        self.book.transfer(self.asset, self.custodian, dest, amount, memo="push")

    def balance_of(self, holder: str) -> Amount:
        return self.book.balance_of(holder, self.asset)

    def __repr__(self) -> str:
        return f"BookTransfer({self.asset} @ {self.custodian})"
