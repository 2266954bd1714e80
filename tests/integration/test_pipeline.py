# PATH: tests/integration/test_pipeline.py
"""
Integration tests: prices -> detection -> store -> execution, wired by build_engine.

Runs offline against the simulated market (zero volatility and jitter, so
venue prices equal reference * (1 + bias)) with fake fee, liquidity,
balance and backend collaborators.
"""

import asyncio
import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import FakeBackend, FakeBalanceProvider, FakeFeeOracle, FakeLiquidityProbe
from chains.providers import RPCBalanceProvider
from core.constants import ExecutionOutcome
from core.time import FakeClock
from execution.backends import PaperBalanceProvider
from strategy.config import build_bot_config
from strategy.engine import build_engine
from strategy.jobs.run_bot import EXIT_CONFIG_ERROR, main

pytestmark = pytest.mark.integration


def _config_data(auto_execute: bool = True, bias: float = 0.02) -> dict:
    return {
        "security": {"wallet_address": "0xwallet"},
        "schedule": {
            "auto_execute": auto_execute,
            "price_update_interval_ms": 10,
            "detection_interval_ms": 10,
            "execution_interval_ms": 10,
        },
        "networks": {
            "ethereum": {
                "chain_id": 11155111,
                "tokens": ["WETH"],
                "venues": {
                    "uniswap": {"on_chain": True},
                    "sushiswap": {"on_chain": True},
                    "coingecko": {"on_chain": False},
                },
            },
        },
        "paper": {
            "seed": 7,
            "volatility": 0.0,
            "venue_jitter": 0.0,
            "drop_rate": 0.0,
            "reference_prices": {"WETH": 2000.0},
            "venue_bias": {"uniswap": 0.0, "sushiswap": bias, "coingecko": 0.05},
        },
    }


def _engine(config_data: dict, backend: FakeBackend | None = None):
    clock = FakeClock()
    config = build_bot_config(config_data, env={})
    engine = build_engine(
        config,
        clock=clock,
        fee_oracle=FakeFeeOracle(20.0),
        backend=backend or FakeBackend(),
        balance_provider=FakeBalanceProvider(native=1.0),
        liquidity_probe=FakeLiquidityProbe(),
    )
    return engine, clock


class TestRunOnce:
    """A single refresh / detect / execute cycle."""

    @pytest.mark.asyncio
    async def test_cycle_executes_best_opportunity(self):
        backend = FakeBackend()
        engine, _ = _engine(_config_data(), backend)

        summary = await engine.run_once()

        assert summary["samples_written"] == 3
        assert summary["opportunities"] == 1
        assert summary["execution"]["is_success"]
        assert summary["execution"]["tx_ref"] == "0xref0"
        assert len(backend.submitted) == 1

        stats = engine.execution_stats()
        assert stats["total_attempts"] == 1
        assert stats["successful_attempts"] == 1
        assert stats["daily_executions"] == 1
        assert not stats["busy"]

        records = engine.recent_executions()
        assert records[0]["outcome"] == ExecutionOutcome.SUCCEEDED.value

    @pytest.mark.asyncio
    async def test_off_chain_venue_never_traded(self):
        engine, _ = _engine(_config_data(auto_execute=False))

        await engine.run_once()
        best = engine.best_opportunities()

        assert len(best) == 1
        opp = best[0]
        assert (opp.buy_venue, opp.sell_venue) == ("uniswap", "sushiswap")
        assert opp.buy_price == pytest.approx(2000.0)
        assert opp.sell_price == pytest.approx(2040.0)
        assert opp.net_profit_percentage > engine.config.arbitrage.min_profit_percentage
        assert engine.opportunity_by_id(opp.id) == opp

    @pytest.mark.asyncio
    async def test_no_opportunity_without_spread(self):
        engine, _ = _engine(_config_data(bias=0.0))

        summary = await engine.run_once()

        assert summary["opportunities"] == 0
        assert summary["execution"] is None
        assert engine.detector_stats()["pairs_evaluated"] == 0

    @pytest.mark.asyncio
    async def test_query_surface(self):
        engine, clock = _engine(_config_data(auto_execute=False))
        await engine.run_once()

        assert engine.opportunity_by_id("missing") is None

        prices = engine.price_status()
        assert set(prices["prices"]["ethereum"]["WETH"]["prices"]) == {"uniswap", "sushiswap", "coingecko"}

        status = engine.status()
        assert status["networks"] == ["ethereum"]
        assert status["opportunities"]["usable"] == 1
        assert status["execution"]["total_attempts"] == 0

        clock.advance(61_000)
        assert engine.best_opportunities() == []

    @pytest.mark.asyncio
    async def test_manual_execute_best(self):
        engine, _ = _engine(_config_data(auto_execute=False))
        await engine.run_once()

        result = await engine.execute_best()

        assert result is not None
        assert result.is_success
        assert result.actual_profit > 0


class TestLoops:
    """The periodic loops run until stopped."""

    @pytest.mark.asyncio
    async def test_run_for_duration(self):
        backend = FakeBackend()
        engine, _ = _engine(_config_data(), backend)

        await engine.run(duration_seconds=0.1)

        assert not engine.running
        assert engine.feeds.stats.passes >= 1
        assert engine.detector.stats.cycles >= 1
        assert engine.loop_errors == {"prices": 0, "detection": 0, "execution": 0}

    @pytest.mark.asyncio
    async def test_request_stop(self):
        engine, _ = _engine(_config_data(auto_execute=False))

        task = asyncio.create_task(engine.run())
        await asyncio.sleep(0.05)
        assert engine.running

        engine.request_stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert not engine.running

    @pytest.mark.asyncio
    async def test_loop_survives_step_errors(self, monkeypatch):
        engine, _ = _engine(_config_data(auto_execute=False))

        async def broken():
            raise RuntimeError("boom")

        monkeypatch.setattr(engine.feeds, "refresh_all", broken)

        await engine.run(duration_seconds=0.1)

        assert engine.loop_errors["prices"] >= 2


class TestWiring:
    """build_engine collaborator selection."""

    def _rpc_config(self, wallet: str = "0xwallet") -> dict:
        data = _config_data(auto_execute=False)
        data["security"]["wallet_address"] = wallet
        data["networks"]["ethereum"]["rpc_urls"] = ["https://eth.example"]
        data["networks"]["bsc"] = {
            "chain_id": 97,
            "tokens": ["WBNB"],
            "rpc_urls": ["https://bsc.example"],
            "venues": {"pancakeswap": {}, "biswap": {}},
        }
        data["token_addresses"] = {"bsc": {"WBNB": "0xbb"}}
        return data

    def _build(self, data: dict):
        return build_engine(
            build_bot_config(data, env={}),
            clock=FakeClock(),
            fee_oracle=FakeFeeOracle(20.0),
            backend=FakeBackend(),
            liquidity_probe=FakeLiquidityProbe(),
        )

    def test_balance_provider_per_rpc_network(self):
        engine = self._build(self._rpc_config())
        coordinator = engine.coordinator

        assert set(coordinator.network_balances) == {"ethereum", "bsc"}
        bsc = coordinator.balances_for("bsc")
        assert isinstance(bsc, RPCBalanceProvider)
        assert bsc.provider.network == "bsc"
        assert bsc.token_addresses == {"WBNB": "0xbb"}
        assert coordinator.balances_for("ethereum").provider.network == "ethereum"

    def test_paper_balances_without_wallet(self):
        engine = self._build(self._rpc_config(wallet=""))

        assert engine.coordinator.network_balances == {}
        assert isinstance(engine.coordinator.balances_for("bsc"), PaperBalanceProvider)

    def test_rpc_stats_in_status(self):
        engine = self._build(self._rpc_config())

        rpc = engine.status()["rpc"]

        assert set(rpc) == {"ethereum", "bsc"}
        assert rpc["bsc"]["https://bsc.example"]["requests"] == 0

    def test_no_rpc_stats_for_paper_networks(self):
        engine, _ = _engine(_config_data())
        assert engine.status()["rpc"] == {}


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("restore_logging")
class TestCli:
    """strategy.jobs.run_bot command line."""

    def test_once(self):
        result = CliRunner().invoke(main, ["--once", "--seed", "3", "--no-json-logs", "-l", "ERROR"])

        assert result.exit_code == 0, result.output
        assert "ARBITRAGE BOT SUMMARY" in result.output
        summary = json.loads(result.output[: result.output.index("\n" + "=" * 60)])
        assert summary["execution"] is None

    def test_unsafe_config_exits_2(self, tmp_path: Path):
        path = tmp_path / "bot.yaml"
        path.write_text(
            "security:\n  operating_mode: mainnet\n"
            "networks:\n  bsc:\n    tokens: [WBNB]\n    venues:\n      pancakeswap: {}\n",
            encoding="utf-8",
        )

        result = CliRunner().invoke(main, ["--config", str(path), "--once"])

        assert result.exit_code == EXIT_CONFIG_ERROR
