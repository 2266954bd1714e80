# PATH: tests/unit/test_config.py
"""
Unit tests for configuration loading.
"""

import copy
from pathlib import Path

import pytest

from config import CONFIG_DIR, get_network_config, load_bot_yaml
from core.constants import OperatingMode
from core.exceptions import ConfigurationError
from strategy.config import build_bot_config, load_bot_config

MINIMAL = {
    "networks": {
        "ethereum": {
            "chain_id": 11155111,
            "rpc_urls": ["https://rpc.example/${TEST_API_KEY}"],
            "tokens": ["WETH"],
            "venues": {"uniswap": {"on_chain": True}, "coingecko": {"on_chain": False}},
        },
    },
    "token_addresses": {"ethereum": {"WETH": "0xabc"}},
}


class TestConfigFiles:
    """The shipped YAML loads and validates."""

    def test_config_dir_exists(self):
        assert CONFIG_DIR.exists()
        assert (CONFIG_DIR / "bot.yaml").exists()

    def test_load_bot_yaml(self):
        data = load_bot_yaml()
        assert "arbitrage" in data
        assert set(data["networks"]) == {"ethereum", "bsc", "polygon"}

    def test_get_network_config(self):
        assert get_network_config("bsc")["chain_id"] == 97
        with pytest.raises(KeyError):
            get_network_config("solana")

    def test_default_config_is_valid(self):
        config = load_bot_config(env={})

        assert config.mode == OperatingMode.TESTNET
        assert config.arbitrage.min_profit_percentage == 0.5
        assert config.arbitrage.max_transaction_amount == 0.1
        assert config.arbitrage.daily_transaction_limit == 10
        assert config.security.safe_mode is True
        assert config.security.floor_realized_profit is True
        assert config.schedule.auto_execute is False
        assert [v.name for v in config.networks["bsc"].venues] == ["pancakeswap", "biswap"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_bot_config(tmp_path / "nope.yaml", env={})

    def test_explicit_path(self, tmp_path: Path):
        path = tmp_path / "bot.yaml"
        path.write_text(
            "arbitrage:\n  min_profit_percentage: 1.5\n"
            "networks:\n  bsc:\n    tokens: [WBNB]\n    venues:\n      pancakeswap: {}\n",
            encoding="utf-8",
        )
        config = load_bot_config(path, env={})
        assert config.arbitrage.min_profit_percentage == 1.5
        assert config.networks["bsc"].venues[0].on_chain is True


class TestBuildBotConfig:
    """Mapping, environment overrides and validation."""

    def test_defaults_applied(self):
        config = build_bot_config(copy.deepcopy(MINIMAL), env={})

        assert config.arbitrage.slippage_tolerance == 1.0
        assert config.arbitrage.trusted_venues == ("uniswap", "sushiswap", "pancakeswap")
        assert config.schedule.price_update_interval_ms == 5000
        assert config.security.confirmation_timeout_seconds == 120.0

    def test_venue_flags(self):
        config = build_bot_config(copy.deepcopy(MINIMAL), env={})
        venues = {v.name: v.on_chain for v in config.networks["ethereum"].venues}
        assert venues == {"uniswap": True, "coingecko": False}
        assert config.networks["ethereum"].token_addresses == {"WETH": "0xabc"}

    def test_rpc_placeholders(self):
        config = build_bot_config(copy.deepcopy(MINIMAL), env={"TEST_API_KEY": "k1"})
        assert config.networks["ethereum"].rpc_urls == ["https://rpc.example/k1"]

    def test_network_rpc_url_from_env(self):
        config = build_bot_config(copy.deepcopy(MINIMAL), env={"ETHEREUM_RPC_URL": "https://sepolia.example"})
        assert config.networks["ethereum"].rpc_urls[-1] == "https://sepolia.example"

    def test_env_overrides(self):
        env = {
            "MIN_PROFIT_PERCENTAGE": "1.25",
            "MAX_TRANSACTION_AMOUNT": "0.5",
            "MAX_GAS_PRICE": "30",
            "SLIPPAGE_TOLERANCE": "0.5",
            "DAILY_TRANSACTION_LIMIT": "3",
            "PRICE_UPDATE_INTERVAL": "2000",
            "ENABLE_SECURITY_CHECKS": "false",
            "ENABLE_SIMULATION": "0",
            "WALLET_ADDRESS": "0xwallet",
            "LOG_LEVEL": "debug",
        }
        config = build_bot_config(copy.deepcopy(MINIMAL), env=env)

        assert config.arbitrage.min_profit_percentage == 1.25
        assert config.arbitrage.max_transaction_amount == 0.5
        assert config.arbitrage.max_gas_price_gwei == 30.0
        assert config.arbitrage.slippage_tolerance == 0.5
        assert config.arbitrage.daily_transaction_limit == 3
        assert config.schedule.price_update_interval_ms == 2000
        assert config.security.safe_mode is False
        assert config.security.enable_simulation is False
        assert config.security.wallet_address == "0xwallet"
        assert config.log_level == "DEBUG"

    def test_mainnet_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_bot_config(copy.deepcopy(MINIMAL), env={"NETWORK_MODE": "mainnet"})
        assert "testnet" in exc_info.value.message

    def test_unknown_mode_rejected(self):
        data = copy.deepcopy(MINIMAL)
        data["security"] = {"operating_mode": "devnet"}
        with pytest.raises(ConfigurationError):
            build_bot_config(data, env={})

    def test_bad_numeric_env(self):
        with pytest.raises(ConfigurationError):
            build_bot_config(copy.deepcopy(MINIMAL), env={"MAX_GAS_PRICE": "lots"})

    @pytest.mark.parametrize("section,key,value", [
        ("arbitrage", "max_transaction_amount", 0),
        ("arbitrage", "daily_transaction_limit", -1),
        ("arbitrage", "slippage_tolerance", -0.1),
        ("security", "confirmation_timeout_seconds", 0),
        ("schedule", "detection_interval_ms", 0),
    ])
    def test_invalid_values(self, section, key, value):
        data = copy.deepcopy(MINIMAL)
        data[section] = {key: value}
        with pytest.raises(ConfigurationError) as exc_info:
            build_bot_config(data, env={})
        assert exc_info.value.details["errors"]

    def test_network_without_venues(self):
        data = copy.deepcopy(MINIMAL)
        data["networks"]["ethereum"]["venues"] = {}
        with pytest.raises(ConfigurationError):
            build_bot_config(data, env={})

    def test_no_networks(self):
        with pytest.raises(ConfigurationError):
            build_bot_config({}, env={})
