"""
navvault - NAV-aware multi-collateral vault accounting

A bounded-rate price reporter, a multi-collateral custody strategy and a share
ledger that mints and burns proportionally to net asset value.

Usage:
    from navvault import (
        AssetBook, RoleRegistry, LogicalClock, Capability,
        PriceReporter, CollateralStrategy, ShareLedger, ValuationMode,
    )

    clock = LogicalClock()
    roles = RoleRegistry({"admin": [Capability.OWNER, Capability.MANAGER]})
    book = AssetBook("custody", clock)
    book.register_asset("sovaBTC", 8)
    book.register_asset("WBTC", 8)
    book.register_holder("alice")
    book.issue("WBTC", "alice", 10 ** 8)

    strategy = CollateralStrategy("sovaBTC", 8, book.bind("vault"), roles, "vault", clock)
    strategy.add_collateral("admin", "WBTC", 8)
    vault = ShareLedger(strategy, roles, clock)
    vault.deposit("alice", "WBTC", 10 ** 8, "alice")
"""

from .core import (
    PRICE_SCALE,
    BPS_DENOMINATOR,
    MAX_UINT256,
    NULL_ADDRESS,
    DEFAULT_DECIMALS,
    Amount,
    Capability,
    Rounding,
    AssetTransfer,
    CapabilityAuthority,
    CollateralAsset,
    LogicalClock,
    VaultError,
    ValidationError,
    InvalidAddress,
    InvalidAmount,
    AssetNotSupported,
    AssetAlreadySupported,
    DecimalsMismatch,
    InvalidDeviation,
    InvalidSource,
    InvalidPrice,
    AuthorizationError,
    StateError,
    InsufficientLiquidity,
    InsufficientBalance,
    InsufficientShares,
    VaultPaused,
    ReferenceAssetLocked,
    TransferFailed,
    is_null_address,
    mul_div,
    saturating_mul,
    saturating_add,
    saturating_sub,
    to_base_units,
    from_base_units,
    to_price,
    elapsed_seconds,
)

from .events import EventType, VaultEvent, EventLog
from .authority import RoleRegistry
from .asset_book import AssetBook, BookTransfer, TransferRecord, SYSTEM_ACCOUNT

from .reporter import (
    PriceState,
    PriceReporter,
    compute_period_allowance,
    interpolate_price,
    transition_progress,
    periods_to_settle,
)

from .strategy import CollateralStrategy

from .shares import (
    ValuationMode,
    ShareLedger,
    compute_shares_for_deposit,
    compute_assets_for_shares,
    compute_price_per_share,
)

from .config import (
    VaultConfig,
    VaultComponents,
    load_config,
    save_config,
    build_components,
)

__version__ = "0.1.0"

__all__ = [
    # Constants
    'PRICE_SCALE', 'BPS_DENOMINATOR', 'MAX_UINT256', 'NULL_ADDRESS', 'DEFAULT_DECIMALS',
    # Core types
    'Amount', 'Capability', 'Rounding', 'AssetTransfer', 'CapabilityAuthority',
    'CollateralAsset', 'LogicalClock',
    # Exceptions
    'VaultError', 'ValidationError', 'InvalidAddress', 'InvalidAmount',
    'AssetNotSupported', 'AssetAlreadySupported', 'DecimalsMismatch',
    'InvalidDeviation', 'InvalidSource', 'InvalidPrice', 'AuthorizationError',
    'StateError', 'InsufficientLiquidity', 'InsufficientBalance',
    'InsufficientShares', 'VaultPaused', 'ReferenceAssetLocked', 'TransferFailed',
    # Arithmetic
    'is_null_address', 'mul_div', 'saturating_mul', 'saturating_add', 'saturating_sub',
    'to_base_units', 'from_base_units', 'to_price', 'elapsed_seconds',
    # Events
    'EventType', 'VaultEvent', 'EventLog',
    # Collaborators
    'RoleRegistry', 'AssetBook', 'BookTransfer', 'TransferRecord', 'SYSTEM_ACCOUNT',
    # Reporter
    'PriceState', 'PriceReporter', 'compute_period_allowance', 'interpolate_price',
    'transition_progress', 'periods_to_settle',
    # Strategy
    'CollateralStrategy',
    # Shares
    'ValuationMode', 'ShareLedger', 'compute_shares_for_deposit',
    'compute_assets_for_shares', 'compute_price_per_share',
    # Config
    'VaultConfig', 'VaultComponents', 'load_config', 'save_config', 'build_components',
]
