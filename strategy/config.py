"""
strategy/config.py - Flash-arb engine configuration.

Layering (later wins):
1. config/arbitrum.yaml + config/strategy.yaml
2. optional override YAML (--config)
3. FLASH_ARB_* environment variables (.env loaded via python-dotenv)
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from config import deep_merge, load_chain, load_strategy, load_yaml
from core.constants import (
    DEFAULT_FLASH_FRACTION,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_UNITS,
    DEFAULT_MAX_FLASH_USD,
    DEFAULT_MAX_OPPORTUNITY_AGE_MS,
    DEFAULT_MIN_FLASH_USD,
    DEFAULT_MIN_POOL_TVL_USD,
    DEFAULT_MIN_PROFIT_USD,
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    DEFAULT_PATH_FEE_PLACEHOLDER,
    DEFAULT_POOL_REFRESH_MS,
    DEFAULT_SCAN_INTERVAL_MS,
    DEFAULT_VENUE_POOL_LIMITS,
    FALLBACK_GAS_PRICE_WEI,
    FLASH_FEE_BPS,
    MIN_POOL_REFRESH_MS,
    MIN_PROFIT_FRACTION,
    MIN_SCAN_INTERVAL_MS,
    DexId,
    ErrorCode,
    PricingKind,
)
from core.exceptions import ConfigError

ENV_PREFIX = "FLASH_ARB_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class VenueConfig:
    """Contracts for one venue."""
    dex: DexId
    router: str
    quoter: str
    factory: str | None = None
    pool_limit: int = 0


@dataclass
class LendableAsset:
    """A flash-loan asset with its USD pricing rule."""
    symbol: str
    address: str
    pricing: PricingKind


@dataclass
class ArbConfig:
    """Full engine configuration."""

    # Feature toggles
    enabled: bool = False
    dry_run: bool = True

    # Chain
    chain_id: int = 42161
    chain_name: str = "arbitrum_one"
    rpc_urls: list[str] = field(default_factory=list)
    rpc_timeout_seconds: float = 10.0

    # Pool index
    index_url: str = "https://yields.llama.fi/pools"
    index_chain: str = "Arbitrum"
    index_timeout_seconds: float = 30.0

    venues: dict[DexId, VenueConfig] = field(default_factory=dict)

    # Flash loan
    flash_fee_bps: int = FLASH_FEE_BPS
    lendable_assets: dict[str, LendableAsset] = field(default_factory=dict)
    reporting_asset: str = ""

    # Discovery
    min_pool_tvl_usd: Decimal = DEFAULT_MIN_POOL_TVL_USD
    pool_refresh_ms: int = DEFAULT_POOL_REFRESH_MS
    path_fee_placeholder: int = DEFAULT_PATH_FEE_PLACEHOLDER

    # Sizing
    flash_fraction: Decimal = DEFAULT_FLASH_FRACTION
    max_flash_usd: Decimal = DEFAULT_MAX_FLASH_USD
    min_flash_usd: Decimal = DEFAULT_MIN_FLASH_USD

    # Profit
    min_profit_usd: Decimal = DEFAULT_MIN_PROFIT_USD
    min_profit_fraction: Decimal = MIN_PROFIT_FRACTION

    # Gas
    gas_units: int = DEFAULT_GAS_UNITS
    gas_limit: int = DEFAULT_GAS_LIMIT
    fallback_gas_price_wei: int = FALLBACK_GAS_PRICE_WEI

    # Timing
    scan_interval_ms: int = DEFAULT_SCAN_INTERVAL_MS
    max_opportunity_age_ms: int = DEFAULT_MAX_OPPORTUNITY_AGE_MS
    operation_timeout_seconds: float = DEFAULT_OPERATION_TIMEOUT_SECONDS
    receipt_timeout_seconds: float = 120.0

    # Execution credentials
    receiver_address: str | None = None
    private_key: str | None = field(default=None, repr=False)

    def is_lendable(self, address: str) -> bool:
        return address.lower() in self.lendable_assets

    def venue_pool_limit(self, dex: DexId) -> int:
        venue = self.venues.get(dex)
        if venue and venue.pool_limit:
            return venue.pool_limit
        return DEFAULT_VENUE_POOL_LIMITS.get(dex, 0)

    def validate(self) -> None:
        """
        Raise ConfigError on invalid values.

        Live-mode credentials are checked by the executor, not here, so a
        scan-only deployment needs no key.
        """
        if self.scan_interval_ms < MIN_SCAN_INTERVAL_MS:
            raise ConfigError(
                f"scan_interval_ms must be >= {MIN_SCAN_INTERVAL_MS}",
                details={"scan_interval_ms": self.scan_interval_ms},
            )
        if self.pool_refresh_ms < MIN_POOL_REFRESH_MS:
            raise ConfigError(
                f"pool_refresh_ms must be >= {MIN_POOL_REFRESH_MS}",
                details={"pool_refresh_ms": self.pool_refresh_ms},
            )
        for name in ("min_profit_usd", "max_flash_usd", "min_flash_usd", "min_pool_tvl_usd"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be non-negative", details={name: str(getattr(self, name))})
        if not (Decimal("0") < self.flash_fraction <= Decimal("1")):
            raise ConfigError(
                "flash_fraction must be in (0, 1]",
                details={"flash_fraction": str(self.flash_fraction)},
            )
        if not (Decimal("0") <= self.min_profit_fraction <= Decimal("1")):
            raise ConfigError(
                "min_profit_fraction must be in [0, 1]",
                details={"min_profit_fraction": str(self.min_profit_fraction)},
            )
        if self.flash_fee_bps < 0 or self.gas_units <= 0 or self.gas_limit <= 0:
            raise ConfigError("flash_fee_bps, gas_units and gas_limit must be positive")
        if self.operation_timeout_seconds <= 0:
            raise ConfigError("operation_timeout_seconds must be positive")


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"{name} is not a number: {value!r}") from e


def _int(value: Any, name: str) -> int:
    try:
        return int(str(value).replace("_", ""))
    except ValueError as e:
        raise ConfigError(f"{name} is not an integer: {value!r}") from e


def _bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} is not a boolean: {value!r}")


def _address(value: Any) -> str | None:
    if not value:
        return None
    return str(value).strip().lower()


def _parse_venues(data: Mapping[str, Any]) -> dict[DexId, VenueConfig]:
    venues = {}
    for key, venue_data in (data or {}).items():
        try:
            dex = DexId(key)
        except ValueError as e:
            raise ConfigError(f"Unknown venue in config: {key}") from e
        if not venue_data:
            continue
        venues[dex] = VenueConfig(
            dex=dex,
            router=_address(venue_data.get("router")) or "",
            quoter=_address(venue_data.get("quoter")) or "",
            factory=_address(venue_data.get("factory")),
            pool_limit=_int(venue_data.get("pool_limit", DEFAULT_VENUE_POOL_LIMITS.get(dex, 0)), f"{key}.pool_limit"),
        )
    return venues


def _parse_lendable(items: list[dict] | None) -> dict[str, LendableAsset]:
    assets = {}
    for item in items or []:
        address = _address(item.get("address"))
        pricing = item.get("pricing")
        if not address or not pricing:
            # No price source: not lendable
            continue
        try:
            kind = PricingKind(pricing)
        except ValueError as e:
            raise ConfigError(f"Unknown pricing kind {pricing!r} for {address}") from e
        assets[address] = LendableAsset(
            symbol=str(item.get("symbol", "")),
            address=address,
            pricing=kind,
        )
    return assets


def build_arb_config(data: Mapping[str, Any]) -> ArbConfig:
    """Build ArbConfig from merged YAML data (no environment)."""
    chain = data.get("chain", {})
    index = data.get("index", {})
    flash = data.get("flash_loan", {})
    discovery = data.get("discovery", {})
    sizing = data.get("sizing", {})
    profit = data.get("profit", {})
    gas = data.get("gas", {})
    timing = data.get("timing", {})

    return ArbConfig(
        enabled=_bool(data.get("enabled", False), "enabled"),
        dry_run=_bool(data.get("dry_run", True), "dry_run"),
        chain_id=_int(chain.get("chain_id", 42161), "chain_id"),
        chain_name=str(chain.get("name", "arbitrum_one")),
        rpc_urls=list(chain.get("rpc_urls", [])),
        rpc_timeout_seconds=float(chain.get("rpc_timeout_seconds", 10)),
        index_url=str(index.get("url", "https://yields.llama.fi/pools")),
        index_chain=str(index.get("chain", "Arbitrum")),
        index_timeout_seconds=float(index.get("timeout_seconds", 30)),
        venues=_parse_venues(data.get("venues", {})),
        flash_fee_bps=_int(flash.get("fee_bps", FLASH_FEE_BPS), "fee_bps"),
        lendable_assets=_parse_lendable(flash.get("lendable_assets")),
        reporting_asset=_address(flash.get("reporting_asset")) or "",
        min_pool_tvl_usd=_decimal(discovery.get("min_pool_tvl_usd", DEFAULT_MIN_POOL_TVL_USD), "min_pool_tvl_usd"),
        pool_refresh_ms=_int(discovery.get("pool_refresh_ms", DEFAULT_POOL_REFRESH_MS), "pool_refresh_ms"),
        path_fee_placeholder=_int(discovery.get("path_fee_placeholder", DEFAULT_PATH_FEE_PLACEHOLDER), "path_fee_placeholder"),
        flash_fraction=_decimal(sizing.get("flash_fraction", DEFAULT_FLASH_FRACTION), "flash_fraction"),
        max_flash_usd=_decimal(sizing.get("max_flash_usd", DEFAULT_MAX_FLASH_USD), "max_flash_usd"),
        min_flash_usd=_decimal(sizing.get("min_flash_usd", DEFAULT_MIN_FLASH_USD), "min_flash_usd"),
        min_profit_usd=_decimal(profit.get("min_profit_usd", DEFAULT_MIN_PROFIT_USD), "min_profit_usd"),
        min_profit_fraction=_decimal(profit.get("min_profit_fraction", MIN_PROFIT_FRACTION), "min_profit_fraction"),
        gas_units=_int(gas.get("gas_units", DEFAULT_GAS_UNITS), "gas_units"),
        gas_limit=_int(gas.get("gas_limit", DEFAULT_GAS_LIMIT), "gas_limit"),
        fallback_gas_price_wei=_int(gas.get("fallback_gas_price_wei", FALLBACK_GAS_PRICE_WEI), "fallback_gas_price_wei"),
        scan_interval_ms=_int(timing.get("scan_interval_ms", DEFAULT_SCAN_INTERVAL_MS), "scan_interval_ms"),
        max_opportunity_age_ms=_int(timing.get("max_opportunity_age_ms", DEFAULT_MAX_OPPORTUNITY_AGE_MS), "max_opportunity_age_ms"),
        operation_timeout_seconds=float(timing.get("operation_timeout_seconds", DEFAULT_OPERATION_TIMEOUT_SECONDS)),
        receipt_timeout_seconds=float(timing.get("receipt_timeout_seconds", 120)),
        receiver_address=_address(flash.get("receiver_address")),
    )


def apply_env_overrides(config: ArbConfig, env: Mapping[str, str]) -> ArbConfig:
    """Apply FLASH_ARB_* overrides in place and return config."""

    def get(name: str) -> str | None:
        value = env.get(ENV_PREFIX + name)
        if value is None or str(value).strip() == "":
            return None
        return str(value).strip()

    if (value := get("ENABLED")) is not None:
        config.enabled = _bool(value, "FLASH_ARB_ENABLED")
    if (value := get("DRY_RUN")) is not None:
        config.dry_run = _bool(value, "FLASH_ARB_DRY_RUN")
    if (value := get("MIN_PROFIT_USD")) is not None:
        config.min_profit_usd = _decimal(value, "FLASH_ARB_MIN_PROFIT_USD")
    if (value := get("MAX_FLASH_USD")) is not None:
        config.max_flash_usd = _decimal(value, "FLASH_ARB_MAX_FLASH_USD")
    if (value := get("RECEIVER_ADDRESS")) is not None:
        config.receiver_address = _address(value)
    if (value := get("PRIVATE_KEY")) is not None:
        config.private_key = value
    if (value := get("RPC_URLS")) is not None:
        config.rpc_urls = [u.strip() for u in value.split(",") if u.strip()]
    if (value := get("SCAN_INTERVAL_MS")) is not None:
        config.scan_interval_ms = _int(value, "FLASH_ARB_SCAN_INTERVAL_MS")
    if (value := get("POOL_REFRESH_MS")) is not None:
        config.pool_refresh_ms = _int(value, "FLASH_ARB_POOL_REFRESH_MS")
    return config


def load_arb_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ArbConfig:
    """
    Load and validate engine configuration.

    Args:
        path: Optional YAML file merged over the packaged defaults
        env: Environment mapping (default: os.environ after load_dotenv)

    Raises:
        ConfigError: On unreadable or invalid configuration
    """
    try:
        data = deep_merge(load_chain(), load_strategy())
        if path is not None:
            data = deep_merge(data, load_yaml(path))
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(str(e), code=ErrorCode.CONFIG_INVALID) from e

    if env is None:
        load_dotenv()
        env = os.environ

    config = apply_env_overrides(build_arb_config(data), env)
    config.validate()
    return config
