# PATH: tests/unit/test_config.py
"""
Unit tests for configuration loading.
"""

from decimal import Decimal

import pytest

from config import CONFIG_DIR, deep_merge, load_chain, load_strategy
from core.constants import DexId, ErrorCode, PricingKind
from core.exceptions import ConfigError
from strategy.config import apply_env_overrides, build_arb_config, load_arb_config

USDC = "0xaf88d065e77c8cc2239327c5edb3a432268e5831"
WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"


class TestConfigFiles:

    def test_config_dir_exists(self):
        assert (CONFIG_DIR / "arbitrum.yaml").exists()
        assert (CONFIG_DIR / "strategy.yaml").exists()

    def test_load_chain(self):
        chain = load_chain()
        assert chain["chain"]["chain_id"] == 42161
        assert set(chain["venues"]) == {"uniswap_v3", "pancake_v3", "camelot_v3", "balancer"}

    def test_load_strategy(self):
        strategy = load_strategy()
        assert strategy["enabled"] is False
        assert strategy["dry_run"] is True

    def test_deep_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = deep_merge(base, {"a": {"y": 3}, "c": 4})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base["a"]["y"] == 2


class TestLoadArbConfig:

    def test_packaged_defaults(self):
        config = load_arb_config(env={})

        assert config.enabled is False
        assert config.dry_run is True
        assert config.chain_id == 42161
        assert config.min_profit_usd == Decimal("2")
        assert config.max_flash_usd == Decimal("50000")
        assert config.flash_fee_bps == 5
        assert config.gas_units == 800_000
        assert config.max_opportunity_age_ms == 30_000
        assert config.receiver_address is None
        assert config.private_key is None
        assert set(config.venues) == set(DexId)
        assert config.venues[DexId.BALANCER].factory is None

    def test_lendable_assets_need_pricing(self):
        config = load_arb_config(env={})

        assert config.lendable_assets[USDC].pricing == PricingKind.STABLE
        assert config.lendable_assets[WETH].pricing == PricingKind.NATIVE
        assert config.is_lendable(USDC.upper().replace("0X", "0x"))
        # ARB has no price source
        assert not config.is_lendable("0x912ce59144191c1204e64559fe8253a0e49e6548")

    def test_addresses_lowercased(self):
        config = load_arb_config(env={})
        assert config.venues[DexId.UNISWAP_V3].router == "0xe592427a0aece92de3edee1f18e0157c05861564"

    def test_env_overrides(self):
        config = load_arb_config(env={
            "FLASH_ARB_ENABLED": "true",
            "FLASH_ARB_DRY_RUN": "0",
            "FLASH_ARB_MIN_PROFIT_USD": "5.5",
            "FLASH_ARB_MAX_FLASH_USD": "10000",
            "FLASH_ARB_RECEIVER_ADDRESS": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
            "FLASH_ARB_RPC_URLS": "https://a.test, https://b.test",
            "FLASH_ARB_SCAN_INTERVAL_MS": "5000",
        })

        assert config.enabled is True
        assert config.dry_run is False
        assert config.min_profit_usd == Decimal("5.5")
        assert config.max_flash_usd == Decimal("10000")
        assert config.receiver_address == "0x5fbdb2315678afecb367f032d93f642f64180aa3"
        assert config.rpc_urls == ["https://a.test", "https://b.test"]
        assert config.scan_interval_ms == 5000

    def test_blank_env_values_ignored(self):
        config = load_arb_config(env={"FLASH_ARB_ENABLED": "", "FLASH_ARB_MIN_PROFIT_USD": "  "})
        assert config.enabled is False
        assert config.min_profit_usd == Decimal("2")

    def test_private_key_not_in_repr(self):
        key = "0x" + "11" * 32
        config = load_arb_config(env={"FLASH_ARB_PRIVATE_KEY": key})
        assert config.private_key == key
        assert key not in repr(config)

    def test_override_file(self, tmp_path):
        override = tmp_path / "local.yaml"
        override.write_text("enabled: true\nprofit:\n  min_profit_usd: '7'\n", encoding="utf-8")

        config = load_arb_config(override, env={})

        assert config.enabled is True
        assert config.min_profit_usd == Decimal("7")
        # Untouched siblings survive the merge
        assert config.min_profit_fraction == Decimal("0.8")

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_arb_config(tmp_path / "missing.yaml", env={})
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_malformed_yaml(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("enabled: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_arb_config(broken, env={})


class TestValidation:

    @pytest.mark.parametrize("env", [
        {"FLASH_ARB_SCAN_INTERVAL_MS": "999"},
        {"FLASH_ARB_POOL_REFRESH_MS": "1000"},
        {"FLASH_ARB_MIN_PROFIT_USD": "-1"},
        {"FLASH_ARB_ENABLED": "maybe"},
        {"FLASH_ARB_MAX_FLASH_USD": "lots"},
    ])
    def test_invalid_values_rejected(self, env):
        with pytest.raises(ConfigError):
            load_arb_config(env=env)

    def test_unknown_venue(self):
        with pytest.raises(ConfigError):
            build_arb_config({"venues": {"sushiswap": {"router": "0x1"}}})

    def test_unknown_pricing_kind(self):
        with pytest.raises(ConfigError):
            build_arb_config({"flash_loan": {"lendable_assets": [{"address": USDC, "pricing": "oracle"}]}})

    def test_flash_fraction_bounds(self):
        config = build_arb_config({"sizing": {"flash_fraction": "1.5"}})
        with pytest.raises(ConfigError):
            config.validate()

    def test_env_overrides_return_same_object(self):
        config = build_arb_config({})
        assert apply_env_overrides(config, {"FLASH_ARB_ENABLED": "yes"}) is config
        assert config.enabled is True

    def test_venue_pool_limit_fallback(self):
        config = build_arb_config({})
        assert config.venue_pool_limit(DexId.UNISWAP_V3) > 0
