"""
Core types and pure functions for the vault accounting system.

This module provides the foundational pieces shared by every component:
1. Constants: fixed-point scales, basis-point denominator, saturation ceiling
2. Protocols: AssetTransfer and CapabilityAuthority (external collaborators)
3. Exceptions: VaultError and the typed failure taxonomy
4. Fixed-point helpers: mul_div with explicit rounding, saturating arithmetic
5. LogicalClock: monotonic time source shared by reporter, strategy and ledger

All functions in this module are pure. Nothing here holds vault state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, getcontext
from enum import Enum
from typing import Dict, Optional, Protocol, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal is only used at the edges (human-readable amounts and prices).
# All vault accounting runs on integer base units.
#
_VAULT_DECIMAL_CONTEXT = getcontext()
_VAULT_DECIMAL_CONTEXT.prec = 50


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale for prices: 1.0 == 10**18.
PRICE_SCALE = 10 ** 18

# Basis-point denominator (100% == 10_000 bps).
BPS_DENOMINATOR = 10_000

# Saturation ceiling for deviation arithmetic.
MAX_UINT256 = 2 ** 256 - 1

# The null principal. Empty strings are treated the same way.
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

# Default decimals of the reference asset (18, like most ERC-20 style tokens).
DEFAULT_DECIMALS = 18

# Amount type: integer base units of an asset.
Amount = int

# Mapping from holder ID to base-unit balance of a single asset.
Balances = Dict[str, Amount]


# ============================================================================
# ENUMS
# ============================================================================

class Capability(Enum):
    """
    Capabilities the core asks the external authority about.

    OWNER: administrative operations (rate changes, updater set, pause).
    MANAGER: collateral set, withdrawals, liquidity, rebalancing, redemptions.
    UPDATER: price updates on the reporter.
    """
    OWNER = "owner"
    MANAGER = "manager"
    UPDATER = "updater"


class Rounding(Enum):
    """Rounding direction for integer division."""
    DOWN = "down"
    UP = "up"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetTransfer(Protocol):
    """
    Custody interface for one asset, bound to the vault's custodian account.

    pull() moves funds from a holder into custody, push() moves funds out of
    custody. Implementations raise on failure and leave balances untouched.
    """

    def pull(self, source: str, amount: Amount) -> None:
        ...

    def push(self, dest: str, amount: Amount) -> None:
        ...

    def balance_of(self, holder: str) -> Amount:
        ...


@runtime_checkable
class CapabilityAuthority(Protocol):
    """Answers whether a principal holds a capability. Nothing more is assumed."""

    def has_capability(self, principal: str, capability: Capability) -> bool:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class VaultError(Exception):
    """Base exception for all vault errors."""
    pass


class ValidationError(VaultError):
    """Raised when an input violates a precondition."""
    pass


class InvalidAddress(ValidationError):
    """Raised for a null or blank principal."""
    pass


class InvalidAmount(ValidationError):
    """Raised for zero, negative or non-integer amounts."""
    pass


class AssetNotSupported(ValidationError):
    """Raised when an operation names an asset outside the supported set."""
    pass


class AssetAlreadySupported(ValidationError):
    """Raised when adding an asset that is already supported."""
    pass


class DecimalsMismatch(ValidationError):
    """Raised when a collateral's decimals differ from the reference asset's."""
    pass


class InvalidDeviation(ValidationError):
    """Raised for non-positive deviation bps or deviation period."""
    pass


class InvalidSource(ValidationError):
    """Raised when a price update carries an empty source tag."""
    pass


class InvalidPrice(ValidationError):
    """Raised for a non-positive price."""
    pass


class AuthorizationError(VaultError):
    """Raised when the caller lacks the capability an operation requires."""
    pass


class StateError(VaultError):
    """Raised when current state does not allow the operation."""
    pass


class InsufficientLiquidity(StateError):
    """Raised when a reference-asset withdrawal exceeds available liquidity."""
    pass


class InsufficientBalance(StateError):
    """Raised when a withdrawal or reassignment exceeds a tracked balance."""
    pass


class InsufficientShares(StateError):
    """Raised when a holder does not own enough shares."""
    pass


class VaultPaused(StateError):
    """Raised when a paused share ledger receives a user operation."""
    pass


class ReferenceAssetLocked(StateError):
    """Raised when attempting to remove the reference asset."""
    pass


class TransferFailed(StateError):
    """Raised by a custody book when a move cannot be applied."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_null_address(address: Optional[str]) -> bool:
    """Return True for None, blank strings and the null address."""
    return not address or not address.strip() or address == NULL_ADDRESS


def require_address(address: Optional[str], label: str = "address") -> str:
    """Return address unchanged, or raise InvalidAddress if it is null."""
    if is_null_address(address):
        raise InvalidAddress(f"{label} cannot be the null address")
    return address


def require_positive_amount(amount: Amount, label: str = "amount") -> Amount:
    """
    Return amount unchanged if it is a strictly positive int.

    bool is rejected explicitly since it is an int subclass.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{label} must be an int in base units, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"{label} must be positive, got {amount}")
    return amount


def require_capability(
    authority: CapabilityAuthority,
    caller: str,
    capability: Capability,
    operation: str,
) -> None:
    """Raise AuthorizationError unless caller holds capability."""
    if is_null_address(caller) or not authority.has_capability(caller, capability):
        raise AuthorizationError(
            f"{caller!r} lacks {capability.value} capability for {operation}"
        )


# ============================================================================
# FIXED-POINT ARITHMETIC
# ============================================================================

def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.DOWN) -> int:
    """
    Compute a * b / denominator on non-negative ints with explicit rounding.

    Raises:
        ZeroDivisionError: if denominator is zero
        ValueError: if any operand is negative
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    if a < 0 or b < 0 or denominator < 0:
        raise ValueError(f"mul_div operands must be non-negative: {a}, {b}, {denominator}")
    quotient, remainder = divmod(a * b, denominator)
    if rounding is Rounding.UP and remainder:
        quotient += 1
    return quotient


def saturating_mul(*factors: int) -> int:
    """Multiply non-negative factors, saturating at MAX_UINT256."""
    product = 1
    for factor in factors:
        if factor <= 0:
            return 0
        product *= factor
        if product >= MAX_UINT256:
            return MAX_UINT256
    return product


def saturating_add(a: int, b: int) -> int:
    """Add two non-negative ints, saturating at MAX_UINT256."""
    return min(a + b, MAX_UINT256)


def saturating_sub(a: int, b: int) -> int:
    """Subtract b from a, flooring at zero."""
    return a - b if a > b else 0


# ============================================================================
# UNIT CONVERSION
# ============================================================================

def to_base_units(amount: Union[Decimal, str, int], decimals: int = DEFAULT_DECIMALS) -> Amount:
    """
    Convert a human-readable amount into integer base units.

    Fractions below one base unit are truncated (ROUND_DOWN).

    Example:
        to_base_units("1.5", 18) == 1_500_000_000_000_000_000
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if amount.is_nan() or amount.is_infinite():
        raise InvalidAmount(f"amount must be finite, got {amount}")
    scaled = (amount * (Decimal(10) ** decimals)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return int(scaled)


def from_base_units(amount: Amount, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert integer base units into a Decimal amount."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def to_price(value: Union[Decimal, str, int]) -> int:
    """Convert a human-readable price (e.g. "1.1") into PRICE_SCALE fixed point."""
    return to_base_units(value, 18)


# ============================================================================
# LOGICAL CLOCK
# ============================================================================

class LogicalClock:
    """
    Monotonic logical time shared by the vault components.

    Time never moves on its own; callers advance it explicitly. Components
    evaluate staleness lazily against `now` whenever they are read.

    Thread Safety:
        Not thread-safe, like the components that read it.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._now: datetime = initial_time or datetime(1970, 1, 1)

    @property
    def now(self) -> datetime:
        """Current logical time."""
        return self._now

    def advance(self, new_time: datetime) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: if new_time is before the current time
        """
        if new_time < self._now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._now}")
        self._now = new_time

    def advance_by(self, seconds: Union[int, float]) -> datetime:
        """Advance by a number of seconds and return the new time."""
        self.advance(self._now + timedelta(seconds=seconds))
        return self._now

    def __repr__(self) -> str:
        return f"LogicalClock({self._now.isoformat()})"


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, floored at zero."""
    seconds = int((end - start).total_seconds() // 1)
    return seconds if seconds > 0 else 0


@dataclass(frozen=True, slots=True)
class CollateralAsset:
    """
    An approved collateral type.

    Attributes:
        asset: Asset identifier (token address or symbol)
        decimals: Decimal scale, always equal to the reference asset's
        supported: Whether the asset is currently accepted
    """
    asset: str
    decimals: int
    supported: bool = True
