"""
Configuration for a navvault deployment

Supports:
- JSON file loading
- NAVVAULT_* environment variable overrides (a .env file is honoured)
- Validation returning every problem at once
- Wiring a reporter, strategy and share ledger from one config
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import os

from dotenv import load_dotenv

from .asset_book import AssetBook
from .core import (
    CapabilityAuthority, LogicalClock, ValidationError,
    is_null_address, to_price,
)
from .events import EventLog
from .reporter import PriceReporter
from .shares import ShareLedger, ValuationMode
from .strategy import CollateralStrategy

logger = logging.getLogger(__name__)

ENV_PREFIX = "NAVVAULT_"


@dataclass
class VaultConfig:
    """Deployment parameters of one vault."""
    name: str = "vault"
    reference_asset: str = "sovaBTC"
    reference_decimals: int = 8
    custodian: str = "vault"

    # Reporter
    initial_price: str = "1.0"
    max_deviation_bps: int = 1000
    deviation_period: int = 3600
    price_source: str = "genesis"

    valuation_mode: str = ValuationMode.COLLATERAL.value
    initial_collaterals: List[str] = field(default_factory=list)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors"""
        errors = []
        if is_null_address(self.reference_asset):
            errors.append("reference_asset must be set")
        if is_null_address(self.custodian):
            errors.append("custodian must be set")
        if not isinstance(self.reference_decimals, int) or not 0 <= self.reference_decimals <= 36:
            errors.append("reference_decimals must be an int in [0, 36]")
        try:
            if to_price(self.initial_price) <= 0:
                errors.append("initial_price must be positive")
        except (ValidationError, ArithmeticError, ValueError):
            errors.append(f"initial_price is not a decimal number: {self.initial_price!r}")
        if not isinstance(self.max_deviation_bps, int) or self.max_deviation_bps <= 0:
            errors.append("max_deviation_bps must be a positive int")
        if not isinstance(self.deviation_period, int) or self.deviation_period <= 0:
            errors.append("deviation_period must be a positive int of seconds")
        if self.valuation_mode not in {m.value for m in ValuationMode}:
            errors.append(f"valuation_mode must be one of {[m.value for m in ValuationMode]}")
        if self.reference_asset in self.initial_collaterals:
            errors.append("initial_collaterals must not repeat the reference asset")
        if len(set(self.initial_collaterals)) != len(self.initial_collaterals):
            errors.append("initial_collaterals contains duplicates")
        return errors

    @property
    def mode(self) -> ValuationMode:
        return ValuationMode(self.valuation_mode)

    @property
    def initial_price_scaled(self) -> int:
        """Initial price in PRICE_SCALE fixed point."""
        return to_price(self.initial_price)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# LOADING
# ============================================================================

_ENV_FIELDS = {
    "NAME": ("name", str),
    "REFERENCE_ASSET": ("reference_asset", str),
    "REFERENCE_DECIMALS": ("reference_decimals", int),
    "CUSTODIAN": ("custodian", str),
    "INITIAL_PRICE": ("initial_price", str),
    "MAX_DEVIATION_BPS": ("max_deviation_bps", int),
    "DEVIATION_PERIOD": ("deviation_period", int),
    "PRICE_SOURCE": ("price_source", str),
    "VALUATION_MODE": ("valuation_mode", str),
    "INITIAL_COLLATERALS": ("initial_collaterals", lambda v: [a.strip() for a in v.split(",") if a.strip()]),
}


def _apply_env_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply NAVVAULT_* environment variables on top of file values"""
    result = dict(config_dict)
    for suffix, (key, convert) in _ENV_FIELDS.items():
        value = os.getenv(ENV_PREFIX + suffix)
        if value is None:
            continue
        try:
            result[key] = convert(value)
        except ValueError as exc:
            raise ValidationError(f"{ENV_PREFIX}{suffix}={value!r}: {exc}") from exc
    return result


def _dict_to_config(d: Dict[str, Any]) -> VaultConfig:
    unknown = set(d) - set(VaultConfig.__dataclass_fields__)
    if unknown:
        raise ValidationError(f"unknown config keys: {sorted(unknown)}")
    data = dict(d)
    if "initial_price" in data:
        data["initial_price"] = str(data["initial_price"])
    if "initial_collaterals" in data:
        data["initial_collaterals"] = list(data["initial_collaterals"])
    return VaultConfig(**data)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> VaultConfig:
    """
    Load configuration from file and environment.

    Priority (highest to lowest):
    1. NAVVAULT_* environment variables (including those from a .env file)
    2. JSON config file (config_path, else NAVVAULT_CONFIG_PATH)
    3. VaultConfig defaults

    Variables from env_file (default: the nearest .env) never replace ones
    already set in the process environment.

    Raises:
        ValidationError: unknown keys, unparsable overrides or failed validation
        FileNotFoundError: an explicit config_path does not exist
    """
    load_dotenv(env_file)
    config_dict: Dict[str, Any] = {}

    if config_path is None:
        config_path = os.getenv(ENV_PREFIX + "CONFIG_PATH")

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.suffix != ".json":
            raise ValidationError(f"Unsupported config file format: {config_path.suffix}")
        logger.info("Loading config from %s", config_path)
        with open(config_path, "r") as f:
            config_dict = json.load(f)

    config_dict = _apply_env_overrides(config_dict)
    config = _dict_to_config(config_dict)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error("Config validation error: %s", error)
        raise ValidationError(f"Configuration validation failed with {len(errors)} errors: {errors}")
    return config


def save_config(config: VaultConfig, path: Union[str, Path]) -> None:
    path = Path(path)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info("Saved config to %s", path)


# ============================================================================
# WIRING
# ============================================================================

@dataclass
class VaultComponents:
    reporter: PriceReporter
    strategy: CollateralStrategy
    ledger: ShareLedger
    events: EventLog


def build_components(
    config: VaultConfig,
    book: AssetBook,
    authority: CapabilityAuthority,
    clock: LogicalClock,
    owner: str,
    updater: str,
) -> VaultComponents:
    """
    Wire a reporter, strategy and share ledger sharing one event log.

    Assets missing from the book are registered with the reference decimals.
    `owner` approves the initial collaterals and binds the share ledger, so it
    must hold both OWNER and MANAGER.
    """
    errors = config.validate()
    if errors:
        raise ValidationError(f"Configuration validation failed: {errors}")

    for asset in [config.reference_asset, *config.initial_collaterals]:
        if asset not in book.list_assets():
            book.register_asset(asset, config.reference_decimals)

    events = EventLog()
    reporter = PriceReporter(
        initial_price=config.initial_price_scaled,
        updater=updater,
        max_deviation_bps=config.max_deviation_bps,
        deviation_period=config.deviation_period,
        authority=authority,
        clock=clock,
        events=events,
        source=config.price_source,
    )
    strategy = CollateralStrategy(
        reference_asset=config.reference_asset,
        reference_decimals=config.reference_decimals,
        transfers=book.bind(config.custodian),
        authority=authority,
        custodian=config.custodian,
        clock=clock,
        events=events,
    )
    for asset in config.initial_collaterals:
        strategy.add_collateral(owner, asset, config.reference_decimals)

    ledger = ShareLedger(
        strategy, authority, clock,
        reporter=reporter, mode=config.mode, name=config.name, events=events,
    )
    strategy.bind_share_ledger(owner, ledger.name)
    logger.info(
        "built %s over %s with %d collaterals (%s valuation)",
        config.name, config.reference_asset, len(strategy.supported_collaterals()), config.valuation_mode,
    )
    return VaultComponents(reporter=reporter, strategy=strategy, ledger=ledger, events=events)
