# PATH: tests/conftest.py
"""
Pytest configuration and fixtures for the arbitrage bot tests.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.models import Confirmation, Opportunity, generate_opportunity_id  # noqa: E402
from core.time import FakeClock  # noqa: E402
from strategy.config import ArbitrageConfig, SecurityConfig  # noqa: E402


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeFeeOracle:
    """Returns a fixed rate, or raises the configured error."""

    def __init__(self, rate: float = 20.0, error: Exception | None = None):
        self.rate = rate
        self.error = error
        self.calls = 0

    async def current_fee_rate(self, network: str) -> float:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rate


class FakeLiquidityProbe:
    def __init__(self, sufficient: bool = True, error: Exception | None = None):
        self.sufficient = sufficient
        self.error = error

    async def has_sufficient_liquidity(self, network, venue_a, venue_b, token, amount) -> bool:
        if self.error is not None:
            raise self.error
        return self.sufficient


class FakeBalanceProvider:
    def __init__(self, native: float = 1.0, token: float = 0.0):
        self.native = native
        self.token = token

    async def native_balance(self, address: str) -> float:
        return self.native

    async def token_balance(self, address: str, token: str) -> float:
        return self.token


class FakeBackend:
    """
    Deterministic execution backend.

    `gate` (an asyncio.Event) holds confirmation until set, which lets tests
    observe the coordinator mid-flight.
    """

    def __init__(
        self,
        confirmation: Confirmation | None = None,
        submit_error: Exception | None = None,
        hang: bool = False,
    ):
        self.confirmation = confirmation or Confirmation(
            success=True, actual_gas_cost=0.001, gas_used=250_000, efficiency=0.9,
        )
        self.submit_error = submit_error
        self.hang = hang
        self.gate: asyncio.Event | None = None
        self.submitted: list[str] = []

    async def submit(self, opportunity: Opportunity) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        ref = f"0xref{len(self.submitted)}"
        self.submitted.append(opportunity.id)
        return ref

    async def await_confirmation(self, execution_ref: str) -> Confirmation:
        if self.gate is not None:
            await self.gate.wait()
        if self.hang:
            await asyncio.Event().wait()
        return self.confirmation


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def arbitrage_config():
    return ArbitrageConfig()


@pytest.fixture
def security_config():
    return SecurityConfig(wallet_address="0xwallet")


def build_opportunity(
    clock: FakeClock | None = None,
    network: str = "ethereum",
    token: str = "WETH",
    buy_venue: str = "sushiswap",
    sell_venue: str = "uniswap",
    buy_price: float = 2000.0,
    sell_price: float = 2050.0,
    amount: float = 0.1,
    gas_cost: float = 0.01,
    net_profit: float = 4.94,
    net_profit_percentage: float = 2.47,
    confidence: float = 100.0,
    created_at_ms: int | None = None,
) -> Opportunity:
    """Opportunity with consistent defaults (the 2000 -> 2050 example)."""
    created = created_at_ms if created_at_ms is not None else (clock.now_ms() if clock else 0)
    gross = amount * (sell_price - buy_price)
    return Opportunity(
        id=generate_opportunity_id(network, token, buy_venue, sell_venue, created),
        network=network,
        token=token,
        buy_venue=buy_venue,
        sell_venue=sell_venue,
        buy_price=buy_price,
        sell_price=sell_price,
        spread=sell_price - buy_price,
        optimal_amount=amount,
        gross_profit=gross,
        gas_cost=gas_cost,
        slippage_cost=gross * 0.01,
        net_profit=net_profit,
        net_profit_percentage=net_profit_percentage,
        confidence=confidence,
        created_at_ms=created,
    )


@pytest.fixture
def make_opportunity(clock):
    def _make(**kwargs) -> Opportunity:
        kwargs.setdefault("clock", clock)
        return build_opportunity(**kwargs)
    return _make


@pytest.fixture
def fee_oracle():
    return FakeFeeOracle()


@pytest.fixture
def liquidity_probe():
    return FakeLiquidityProbe()


@pytest.fixture
def balances():
    return FakeBalanceProvider()


@pytest.fixture
def backend():
    return FakeBackend()
