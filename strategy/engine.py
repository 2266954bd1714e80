"""
strategy/engine.py - Composition root and periodic loops.

Three independent asyncio loops share the PriceCache and OpportunityStore:
  - price refresh  (schedule.price_update_interval_ms)
  - detection      (schedule.detection_interval_ms)
  - auto-execution (schedule.execution_interval_ms, only when auto_execute)

The loops are not synchronised with one another. An exception inside one
iteration is logged and the loop carries on with the next interval.

Query methods return plain values (or None) and never raise.
"""

import asyncio
from typing import Awaitable, Callable

from chains.providers import ProviderRegistry, RPCBalanceProvider, RPCFeeOracle
from core.exceptions import NotFoundError
from core.interfaces import BalanceProvider, ClockSource, ExecutionBackend, FeeOracle, LiquidityProbe
from core.logging import get_logger
from core.models import ExecutionResult, Opportunity
from core.time import SystemClock
from execution.backends import (
    PaperBalanceProvider,
    PaperExecutionBackend,
    PaperLiquidityProbe,
    StaticFeeOracle,
)
from execution.coordinator import ExecutionCoordinator
from execution.history import ExecutionHistory
from execution.security import DailyExecutionCounter, SecurityGate
from execution.simulator import PreTradeSimulator
from pricing.cache import PriceCache
from pricing.feeds import PriceFeedManager, VenueSource
from pricing.gas import GasEstimator
from pricing.sources import SimulatedMarketConfig, SimulatedPriceSource
from strategy.config import BotConfig
from strategy.detector import OpportunityDetector
from strategy.store import OpportunityStore

logger = get_logger("arb.strategy.engine")


class ArbitrageEngine:
    """Owns the pipeline components and runs the periodic loops."""

    def __init__(
        self,
        config: BotConfig,
        cache: PriceCache,
        feeds: PriceFeedManager,
        detector: OpportunityDetector,
        store: OpportunityStore,
        coordinator: ExecutionCoordinator,
        clock: ClockSource | None = None,
        registry: ProviderRegistry | None = None,
    ):
        self.config = config
        self.cache = cache
        self.feeds = feeds
        self.detector = detector
        self.store = store
        self.coordinator = coordinator
        self.registry = registry
        self._clock = clock or SystemClock()
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self.started_at_ms: int | None = None
        self.loop_errors: dict[str, int] = {"prices": 0, "detection": 0, "execution": 0}

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    # =========================================================================
    # CYCLE STEPS
    # =========================================================================

    async def refresh_prices(self) -> int:
        return await self.feeds.refresh_all()

    async def detect(self) -> list[Opportunity]:
        """One detection cycle; returns the accepted, ranked batch."""
        batch = await self.detector.scan(self.cache.all_snapshots())
        return self.store.ingest(batch)

    async def auto_execute(self) -> ExecutionResult | None:
        if not self.config.schedule.auto_execute:
            return None
        return await self.coordinator.execute_best(self.store)

    async def run_once(self) -> dict:
        """Refresh, detect and (when enabled) execute once, in order."""
        written = await self.refresh_prices()
        accepted = await self.detect()
        result = await self.auto_execute()
        return {
            "samples_written": written,
            "opportunities": len(accepted),
            "execution": result.to_dict() if result else None,
        }

    # =========================================================================
    # LOOPS
    # =========================================================================

    async def _loop(self, name: str, interval_ms: int, step: Callable[[], Awaitable]) -> None:
        logger.info(
            f"Loop {name} started ({interval_ms}ms)",
            extra={"context": {"loop": name, "interval_ms": interval_ms}},
        )
        while not self._stop.is_set():
            try:
                await step()
            except Exception as e:
                self.loop_errors[name] += 1
                logger.error(
                    f"Loop {name} iteration failed: {e}",
                    exc_info=True,
                    extra={"context": {"loop": name, "errors": self.loop_errors[name]}},
                )
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval_ms / 1000)
            except asyncio.TimeoutError:
                pass
        logger.info(f"Loop {name} stopped", extra={"context": {"loop": name}})

    def start(self) -> None:
        """Start the three loops on the running event loop."""
        if self.running:
            return
        self._stop.clear()
        self.started_at_ms = self._clock.now_ms()
        sched = self.config.schedule
        self._tasks = [
            asyncio.create_task(self._loop("prices", sched.price_update_interval_ms, self.refresh_prices)),
            asyncio.create_task(self._loop("detection", sched.detection_interval_ms, self.detect)),
        ]
        if sched.auto_execute:
            self._tasks.append(
                asyncio.create_task(self._loop("execution", sched.execution_interval_ms, self.auto_execute))
            )

    async def stop(self) -> None:
        """Signal the loops to stop and wait for them."""
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self.registry is not None:
            await self.registry.close_all()

    async def run(self, duration_seconds: float | None = None) -> None:
        """Run the loops until stop() is called or duration elapses."""
        self.start()
        try:
            if duration_seconds is None:
                await self._stop.wait()
            else:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=duration_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.stop()

    def request_stop(self) -> None:
        self._stop.set()

    # =========================================================================
    # PUBLIC SURFACE
    # =========================================================================

    def best_opportunities(self, limit: int = 10) -> list[Opportunity]:
        return self.store.best_opportunities(limit)

    def opportunity_by_id(self, opportunity_id: str) -> Opportunity | None:
        try:
            return self.store.by_id(opportunity_id)
        except NotFoundError:
            return None

    async def execute(self, opportunity: Opportunity) -> ExecutionResult:
        return await self.coordinator.execute(opportunity)

    async def execute_best(self) -> ExecutionResult | None:
        return await self.coordinator.execute_best(self.store)

    def execution_stats(self) -> dict:
        return self.coordinator.stats()

    def recent_executions(self, limit: int = 10) -> list[dict]:
        return [r.to_dict() for r in self.coordinator.recent_executions(limit)]

    def detector_stats(self) -> dict:
        return {**self.detector.stats.to_dict(), **self.store.stats()}

    def price_status(self) -> dict:
        return {
            **self.feeds.status(),
            "prices": {
                network: {token: snap.to_dict() for token, snap in tokens.items()}
                for network, tokens in self.cache.all_snapshots().items()
            },
        }

    def status(self) -> dict:
        now = self._clock.now_ms()
        return {
            "running": self.running,
            "mode": self.config.security.operating_mode,
            "auto_execute": self.config.schedule.auto_execute,
            "uptime_ms": now - self.started_at_ms if self.started_at_ms else 0,
            "networks": list(self.config.networks),
            "loop_errors": dict(self.loop_errors),
            "prices": self.cache.status(),
            "opportunities": self.store.stats(),
            "execution": self.coordinator.stats(),
            "rpc": self.rpc_status(),
        }

    def rpc_status(self) -> dict:
        """Per-endpoint call counters for each RPC-backed network."""
        if self.registry is None:
            return {}
        return {key: self.registry.get(key).get_stats_summary() for key in self.registry.networks}


# =============================================================================
# WIRING
# =============================================================================

def _price_sources(config: BotConfig) -> dict[str, list[VenueSource]]:
    market = SimulatedMarketConfig(
        reference_prices=config.paper.reference_prices,
        venue_bias=config.paper.venue_bias,
        volatility=config.paper.volatility,
        venue_jitter=config.paper.venue_jitter,
        drop_rate=config.paper.drop_rate,
    )
    seed = config.paper.seed
    on_chain = SimulatedPriceSource(market, is_on_chain=True, seed=seed)
    off_chain = SimulatedPriceSource(market, is_on_chain=False, seed=None if seed is None else seed + 1)

    return {
        key: [
            VenueSource(venue=v.name, adapter=on_chain if v.on_chain else off_chain)
            for v in network.venues
        ]
        for key, network in config.networks.items()
    }


def build_engine(
    config: BotConfig,
    clock: ClockSource | None = None,
    fee_oracle: FeeOracle | None = None,
    backend: ExecutionBackend | None = None,
    balance_provider: BalanceProvider | None = None,
    liquidity_probe: LiquidityProbe | None = None,
) -> ArbitrageEngine:
    """
    Wire an engine from configuration.

    Networks with RPC URLs get live fee rates (and live wallet balances on
    that network when a wallet address is set). Everything else uses the
    paper collaborators. Any collaborator may be injected; an injected
    balance provider answers for every network.
    """
    clock = clock or SystemClock()
    paper = config.paper
    registry = ProviderRegistry()

    for key, network in config.networks.items():
        if network.rpc_urls:
            registry.register(key, network.chain_id, network.rpc_urls)

    static_fees = StaticFeeOracle({k: n.fee_rate_gwei for k, n in config.networks.items()})
    if fee_oracle is None:
        fee_oracle = RPCFeeOracle(registry, fallback=static_fees) if registry.networks else static_fees

    network_balances: dict[str, BalanceProvider] = {}
    if balance_provider is None:
        balance_provider = PaperBalanceProvider(
            native=paper.native_balance,
            default_token_balance=paper.token_balance,
        )
        if config.security.wallet_address:
            network_balances = {
                key: RPCBalanceProvider(registry.get(key), config.networks[key].token_addresses)
                for key in registry.networks
            }

    backend = backend or PaperExecutionBackend(
        submission_delay_seconds=paper.submission_delay_seconds,
        confirmation_delay_seconds=paper.confirmation_delay_seconds,
        seed=paper.seed,
    )
    liquidity_probe = liquidity_probe or PaperLiquidityProbe(paper.liquidity_pass_rate, seed=paper.seed)

    cache = PriceCache(clock=clock)
    feeds = PriceFeedManager(
        cache,
        venues=_price_sources(config),
        tokens={k: list(n.tokens) for k, n in config.networks.items()},
        clock=clock,
    )
    detector = OpportunityDetector(GasEstimator(fee_oracle), config.arbitrage, clock)
    store = OpportunityStore(clock=clock, min_confidence=config.arbitrage.min_confidence)

    counter = DailyExecutionCounter(clock)
    gate = SecurityGate(
        config.arbitrage,
        config.security,
        counter,
        fee_oracle,
        liquidity_probe,
        clock,
    )
    coordinator = ExecutionCoordinator(
        security_gate=gate,
        backend=backend,
        balance_provider=balance_provider,
        arbitrage=config.arbitrage,
        security=config.security,
        simulator=PreTradeSimulator(config.arbitrage.slippage_tolerance),
        history=ExecutionHistory(),
        counter=counter,
        clock=clock,
        network_balances=network_balances,
    )

    logger.info(
        f"Engine wired for {len(config.networks)} networks",
        extra={"context": {
            "networks": list(config.networks),
            "rpc_networks": registry.networks,
            "auto_execute": config.schedule.auto_execute,
        }},
    )
    return ArbitrageEngine(
        config, cache, feeds, detector, store, coordinator,
        clock=clock,
        registry=registry,
    )
