"""
strategy/config.py - Bot configuration.

Defaults come from config/bot.yaml; environment variables (a .env file is
loaded first) override individual values. validate() rejects unsafe or
incomplete configurations with ConfigurationError.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

from config import DEFAULT_CONFIG_FILE, load_yaml
from core.constants import (
    CONFIDENCE_FRESHNESS_MS,
    DEFAULT_BASE_AMOUNT,
    DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_SCALE_CAP,
    DEFAULT_SCALE_COEFFICIENT,
    DEFAULT_TRUSTED_VENUES,
    MIN_CONFIDENCE,
    OperatingMode,
)
from core.exceptions import ConfigurationError

_PLACEHOLDER = re.compile(r"\$\{([A-Z0-9_]+)\}")


@dataclass
class ArbitrageConfig:
    """Detection and profitability parameters."""
    min_profit_percentage: float = 0.5
    max_transaction_amount: float = 0.1
    max_gas_price_gwei: float = 50.0
    slippage_tolerance: float = 1.0  # percent
    daily_transaction_limit: int = 10
    base_amount: float = DEFAULT_BASE_AMOUNT
    scale_coefficient: float = DEFAULT_SCALE_COEFFICIENT
    scale_cap: float = DEFAULT_SCALE_CAP
    min_confidence: float = MIN_CONFIDENCE
    freshness_threshold_ms: int = CONFIDENCE_FRESHNESS_MS
    trusted_venues: tuple[str, ...] = DEFAULT_TRUSTED_VENUES


@dataclass
class SecurityConfig:
    """Execution safety parameters."""
    operating_mode: str = OperatingMode.TESTNET.value
    safe_mode: bool = True
    enable_simulation: bool = True
    confirmation_timeout_seconds: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS
    floor_realized_profit: bool = True
    wallet_address: str = ""


@dataclass
class ScheduleConfig:
    """Periodic loop intervals."""
    price_update_interval_ms: int = 5000
    detection_interval_ms: int = 10000
    execution_interval_ms: int = 30000
    auto_execute: bool = False


@dataclass
class VenueConfig:
    name: str
    on_chain: bool = True


@dataclass
class NetworkConfig:
    """One network with its tokens and venues."""
    key: str
    name: str = ""
    chain_id: int = 0
    native_currency: str = "ETH"
    rpc_urls: list[str] = field(default_factory=list)
    fee_rate_gwei: float = 20.0
    tokens: list[str] = field(default_factory=list)
    venues: list[VenueConfig] = field(default_factory=list)
    token_addresses: dict[str, str] = field(default_factory=dict)


@dataclass
class PaperConfig:
    """Simulated collaborators used when no real backend is wired."""
    seed: int | None = None
    volatility: float = 0.0005
    venue_jitter: float = 0.004
    drop_rate: float = 0.0
    reference_prices: dict[str, float] = field(default_factory=dict)
    venue_bias: dict[str, float] = field(default_factory=dict)
    native_balance: float = 1.0
    token_balance: float = 0.0
    liquidity_pass_rate: float = 0.9
    submission_delay_seconds: float = 2.0
    confirmation_delay_seconds: float = 3.0


@dataclass
class BotConfig:
    """Full bot configuration."""
    arbitrage: ArbitrageConfig = field(default_factory=ArbitrageConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    networks: dict[str, NetworkConfig] = field(default_factory=dict)
    paper: PaperConfig = field(default_factory=PaperConfig)
    log_level: str = "INFO"

    @property
    def mode(self) -> OperatingMode:
        return OperatingMode(self.security.operating_mode)

    def validate(self) -> None:
        """
        Reject unsafe or incomplete configuration.

        Raises:
            ConfigurationError: listing every problem found
        """
        errors = []

        try:
            mode = OperatingMode(self.security.operating_mode)
        except ValueError:
            errors.append(f"Invalid operating mode: {self.security.operating_mode!r}")
        else:
            if mode != OperatingMode.TESTNET:
                errors.append(f"Unsafe operating mode {mode.value!r}: only testnet is allowed")

        arb = self.arbitrage
        if arb.max_transaction_amount <= 0:
            errors.append("max_transaction_amount must be positive")
        if arb.max_gas_price_gwei <= 0:
            errors.append("max_gas_price_gwei must be positive")
        if arb.daily_transaction_limit <= 0:
            errors.append("daily_transaction_limit must be positive")
        if arb.slippage_tolerance < 0:
            errors.append("slippage_tolerance must not be negative")
        if arb.base_amount <= 0 or arb.scale_cap <= 0 or arb.scale_coefficient <= 0:
            errors.append("trade sizing parameters must be positive")

        if self.security.confirmation_timeout_seconds <= 0:
            errors.append("confirmation_timeout_seconds must be positive")

        sched = self.schedule
        for name in ("price_update_interval_ms", "detection_interval_ms", "execution_interval_ms"):
            if getattr(sched, name) <= 0:
                errors.append(f"{name} must be positive")

        if not self.networks:
            errors.append("No networks configured")
        for key, network in self.networks.items():
            if not network.venues:
                errors.append(f"Network {key} has no venues")
            if not network.tokens:
                errors.append(f"Network {key} has no tokens")

        if errors:
            raise ConfigurationError(
                "; ".join(errors),
                details={"errors": errors},
            )


# =============================================================================
# LOADING
# =============================================================================

def _resolve_placeholders(value: str, env: Mapping[str, str]) -> str:
    return _PLACEHOLDER.sub(lambda m: env.get(m.group(1), ""), value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_networks(
    data: dict[str, Any],
    addresses: dict[str, Any],
    env: Mapping[str, str],
) -> dict[str, NetworkConfig]:
    networks = {}
    for key, raw in (data or {}).items():
        raw = raw or {}
        rpc_urls = [_resolve_placeholders(u, env) for u in raw.get("rpc_urls", []) or []]
        env_url = env.get(f"{key.upper()}_RPC_URL")
        if env_url:
            rpc_urls.append(env_url)

        venues = [
            VenueConfig(name=name, on_chain=_as_bool((opts or {}).get("on_chain", True)))
            for name, opts in (raw.get("venues") or {}).items()
        ]

        networks[key] = NetworkConfig(
            key=key,
            name=raw.get("name", key),
            chain_id=int(raw.get("chain_id", 0)),
            native_currency=raw.get("native_currency", "ETH"),
            rpc_urls=[u for u in rpc_urls if u],
            fee_rate_gwei=float(raw.get("fee_rate_gwei", 20.0)),
            tokens=list(raw.get("tokens") or []),
            venues=venues,
            token_addresses=dict(addresses.get(key) or {}),
        )
    return networks


def _apply_env_overrides(config: BotConfig, env: Mapping[str, str]) -> None:
    """Environment variables win over YAML values."""
    arb = config.arbitrage
    sec = config.security
    sched = config.schedule

    float_overrides = {
        "MIN_PROFIT_PERCENTAGE": (arb, "min_profit_percentage"),
        "MAX_TRANSACTION_AMOUNT": (arb, "max_transaction_amount"),
        "MAX_GAS_PRICE": (arb, "max_gas_price_gwei"),
        "SLIPPAGE_TOLERANCE": (arb, "slippage_tolerance"),
        "CONFIRMATION_TIMEOUT": (sec, "confirmation_timeout_seconds"),
    }
    int_overrides = {
        "DAILY_TRANSACTION_LIMIT": (arb, "daily_transaction_limit"),
        "PRICE_UPDATE_INTERVAL": (sched, "price_update_interval_ms"),
        "DETECTION_INTERVAL": (sched, "detection_interval_ms"),
        "EXECUTION_INTERVAL": (sched, "execution_interval_ms"),
    }
    bool_overrides = {
        "ENABLE_SECURITY_CHECKS": (sec, "safe_mode"),
        "ENABLE_SIMULATION": (sec, "enable_simulation"),
        "AUTO_EXECUTE": (sched, "auto_execute"),
    }

    try:
        for name, (target, attr) in float_overrides.items():
            if env.get(name):
                setattr(target, attr, float(env[name]))
        for name, (target, attr) in int_overrides.items():
            if env.get(name):
                setattr(target, attr, int(env[name]))
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric environment override: {e}") from e

    for name, (target, attr) in bool_overrides.items():
        if env.get(name):
            setattr(target, attr, _as_bool(env[name]))

    if env.get("NETWORK_MODE"):
        sec.operating_mode = env["NETWORK_MODE"].strip().lower()
    if env.get("WALLET_ADDRESS"):
        sec.wallet_address = env["WALLET_ADDRESS"]
    if env.get("LOG_LEVEL"):
        config.log_level = env["LOG_LEVEL"].upper()


def build_bot_config(data: dict[str, Any], env: Mapping[str, str] | None = None) -> BotConfig:
    """
    Build a validated BotConfig from parsed YAML data.

    Args:
        data: Parsed YAML
        env: Environment mapping (default: os.environ)
    """
    env = os.environ if env is None else env

    arb_data = data.get("arbitrage", {}) or {}
    sec_data = data.get("security", {}) or {}
    sched_data = data.get("schedule", {}) or {}
    paper_data = data.get("paper", {}) or {}

    defaults = ArbitrageConfig()
    arbitrage = ArbitrageConfig(
        min_profit_percentage=float(arb_data.get("min_profit_percentage", defaults.min_profit_percentage)),
        max_transaction_amount=float(arb_data.get("max_transaction_amount", defaults.max_transaction_amount)),
        max_gas_price_gwei=float(arb_data.get("max_gas_price_gwei", defaults.max_gas_price_gwei)),
        slippage_tolerance=float(arb_data.get("slippage_tolerance", defaults.slippage_tolerance)),
        daily_transaction_limit=int(arb_data.get("daily_transaction_limit", defaults.daily_transaction_limit)),
        base_amount=float(arb_data.get("base_amount", defaults.base_amount)),
        scale_coefficient=float(arb_data.get("scale_coefficient", defaults.scale_coefficient)),
        scale_cap=float(arb_data.get("scale_cap", defaults.scale_cap)),
        min_confidence=float(arb_data.get("min_confidence", defaults.min_confidence)),
        freshness_threshold_ms=int(arb_data.get("freshness_threshold_ms", defaults.freshness_threshold_ms)),
        trusted_venues=tuple(arb_data.get("trusted_venues", defaults.trusted_venues)),
    )

    security = SecurityConfig(
        operating_mode=str(sec_data.get("operating_mode", OperatingMode.TESTNET.value)).lower(),
        safe_mode=_as_bool(sec_data.get("safe_mode", True)),
        enable_simulation=_as_bool(sec_data.get("enable_simulation", True)),
        confirmation_timeout_seconds=float(
            sec_data.get("confirmation_timeout_seconds", DEFAULT_CONFIRMATION_TIMEOUT_SECONDS)
        ),
        floor_realized_profit=_as_bool(sec_data.get("floor_realized_profit", True)),
        wallet_address=sec_data.get("wallet_address") or "",
    )

    schedule = ScheduleConfig(
        price_update_interval_ms=int(sched_data.get("price_update_interval_ms", 5000)),
        detection_interval_ms=int(sched_data.get("detection_interval_ms", 10000)),
        execution_interval_ms=int(sched_data.get("execution_interval_ms", 30000)),
        auto_execute=_as_bool(sched_data.get("auto_execute", False)),
    )

    paper = PaperConfig(
        seed=paper_data.get("seed"),
        volatility=float(paper_data.get("volatility", 0.0005)),
        venue_jitter=float(paper_data.get("venue_jitter", 0.004)),
        drop_rate=float(paper_data.get("drop_rate", 0.0)),
        reference_prices={k: float(v) for k, v in (paper_data.get("reference_prices") or {}).items()},
        venue_bias={k: float(v) for k, v in (paper_data.get("venue_bias") or {}).items()},
        native_balance=float(paper_data.get("native_balance", 1.0)),
        token_balance=float(paper_data.get("token_balance", 0.0)),
        liquidity_pass_rate=float(paper_data.get("liquidity_pass_rate", 0.9)),
        submission_delay_seconds=float(paper_data.get("submission_delay_seconds", 2.0)),
        confirmation_delay_seconds=float(paper_data.get("confirmation_delay_seconds", 3.0)),
    )

    config = BotConfig(
        arbitrage=arbitrage,
        security=security,
        schedule=schedule,
        networks=_parse_networks(data.get("networks", {}), data.get("token_addresses", {}) or {}, env),
        paper=paper,
        log_level=str(data.get("log_level", "INFO")).upper(),
    )

    _apply_env_overrides(config, env)
    config.validate()
    return config


def load_bot_config(
    config_path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> BotConfig:
    """
    Load bot configuration from YAML and the environment.

    Args:
        config_path: Path to a YAML file (default: config/bot.yaml)
        env: Environment mapping; when None, .env is loaded into os.environ

    Returns:
        Validated BotConfig

    Raises:
        ConfigurationError: invalid or unsafe configuration
    """
    if env is None:
        load_dotenv()

    try:
        data = load_yaml(config_path or DEFAULT_CONFIG_FILE)
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e

    return build_bot_config(data, env)
