"""
strategy/detector.py - Cross-venue opportunity detection.

For one token on one network, every unordered pair of on-chain venues with
different prices becomes a candidate: buy on the cheaper venue, sell on the
dearer one. Candidates are sized, costed (gas + slippage) and scored for
confidence; those below the minimum net profit percentage are dropped.

PROFIT MODEL
============
  gross    = amount * (sell - buy)
  slippage = gross * slippage_tolerance / 100
  net      = gross - gas_cost - slippage
  net_pct  = net / (amount * buy) * 100
============
"""

from dataclasses import dataclass, field
from itertools import combinations

from core.constants import (
    CONFIDENCE_MAX,
    CONFIDENCE_MAX_AGE_PENALTY,
    CONFIDENCE_TRUSTED_BONUS,
)
from core.interfaces import ClockSource
from core.logging import get_logger
from core.models import (
    Opportunity,
    PriceSample,
    PriceSnapshot,
    ProfitBreakdown,
    generate_opportunity_id,
)
from core.time import SystemClock
from pricing.gas import GasEstimator
from strategy.config import ArbitrageConfig

logger = get_logger("arb.strategy.detector")


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def calculate_profit(
    buy_price: float,
    sell_price: float,
    amount: float,
    gas_cost: float,
    slippage_tolerance: float,
) -> ProfitBreakdown:
    """
    Profit arithmetic for buying `amount` at buy_price and selling at sell_price.

    Args:
        slippage_tolerance: Percent of gross profit assumed lost to slippage
    """
    gross = amount * (sell_price - buy_price)
    slippage = gross * slippage_tolerance / 100
    net = gross - gas_cost - slippage
    notional = amount * buy_price
    net_pct = net / notional * 100 if notional > 0 else 0.0
    return ProfitBreakdown(
        gross_profit=gross,
        gas_cost=gas_cost,
        slippage_cost=slippage,
        net_profit=net,
        net_profit_percentage=net_pct,
    )


def optimal_trade_size(
    buy_price: float,
    sell_price: float,
    max_amount: float,
    base_amount: float,
    scale_coefficient: float,
    scale_cap: float,
) -> float:
    """Trade size growing with the raw spread, capped by max_amount."""
    profit_ratio = (sell_price - buy_price) / buy_price
    return min(max_amount, base_amount * min(profit_ratio * scale_coefficient, scale_cap))


def _age_penalty(sample: PriceSample, now_ms: int, freshness_ms: int) -> float:
    age = now_ms - sample.timestamp_ms
    if age <= freshness_ms:
        return 0.0
    return min(CONFIDENCE_MAX_AGE_PENALTY, (age - freshness_ms) / 1000)


def calculate_confidence(
    buy_sample: PriceSample,
    sell_sample: PriceSample,
    now_ms: int,
    trusted_venues: tuple[str, ...] | frozenset[str],
    freshness_ms: int,
) -> float:
    """
    Confidence score in [0, 100].

    Starts at 100, loses up to 50 points per side for sample age past the
    freshness threshold (1 point per second), gains 10 points per side on
    a trusted venue.
    """
    confidence = CONFIDENCE_MAX
    for sample in (buy_sample, sell_sample):
        confidence -= _age_penalty(sample, now_ms, freshness_ms)
        if sample.venue in trusted_venues:
            confidence += CONFIDENCE_TRUSTED_BONUS
    return max(0.0, min(CONFIDENCE_MAX, confidence))


# =============================================================================
# DETECTOR
# =============================================================================

@dataclass
class DetectorStats:
    """Detection cycle statistics."""
    cycles: int = 0
    last_run_ms: int | None = None
    last_run_ok: bool = True
    last_error: str | None = None
    last_candidates: int = 0
    total_candidates: int = 0
    pairs_evaluated: int = 0
    filtered_below_threshold: int = 0
    failed_tokens: int = 0
    candidates_by_network: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "cycles": self.cycles,
            "last_run_ms": self.last_run_ms,
            "last_run_ok": self.last_run_ok,
            "last_error": self.last_error,
            "last_candidates": self.last_candidates,
            "total_candidates": self.total_candidates,
            "pairs_evaluated": self.pairs_evaluated,
            "filtered_below_threshold": self.filtered_below_threshold,
            "failed_tokens": self.failed_tokens,
            "candidates_by_network": dict(self.candidates_by_network),
        }


class OpportunityDetector:
    """Turns price snapshots into candidate opportunities."""

    def __init__(
        self,
        gas_estimator: GasEstimator,
        config: ArbitrageConfig,
        clock: ClockSource | None = None,
    ):
        self.gas_estimator = gas_estimator
        self.config = config
        self._clock = clock or SystemClock()
        self._trusted = frozenset(config.trusted_venues)
        self.stats = DetectorStats()

    def _build(
        self,
        snapshot: PriceSnapshot,
        buy: PriceSample,
        sell: PriceSample,
        gas_cost: float,
        now_ms: int,
    ) -> Opportunity | None:
        cfg = self.config
        amount = optimal_trade_size(
            buy.price,
            sell.price,
            cfg.max_transaction_amount,
            cfg.base_amount,
            cfg.scale_coefficient,
            cfg.scale_cap,
        )
        profit = calculate_profit(buy.price, sell.price, amount, gas_cost, cfg.slippage_tolerance)

        if profit.net_profit_percentage < cfg.min_profit_percentage:
            self.stats.filtered_below_threshold += 1
            return None

        return Opportunity(
            id=generate_opportunity_id(snapshot.network, snapshot.token, buy.venue, sell.venue, now_ms),
            network=snapshot.network,
            token=snapshot.token,
            buy_venue=buy.venue,
            sell_venue=sell.venue,
            buy_price=buy.price,
            sell_price=sell.price,
            spread=sell.price - buy.price,
            optimal_amount=amount,
            gross_profit=profit.gross_profit,
            gas_cost=profit.gas_cost,
            slippage_cost=profit.slippage_cost,
            net_profit=profit.net_profit,
            net_profit_percentage=profit.net_profit_percentage,
            confidence=calculate_confidence(
                buy, sell, now_ms, self._trusted, cfg.freshness_threshold_ms
            ),
            created_at_ms=now_ms,
        )

    async def detect(self, snapshot: PriceSnapshot) -> list[Opportunity]:
        """
        Candidates for one token on one network.

        Only on-chain samples with a positive price qualify; fewer than two
        qualifying venues yields no candidates.
        """
        samples = snapshot.on_chain_samples
        if len(samples) < 2:
            return []

        estimate = await self.gas_estimator.estimate(snapshot.network)
        now = self._clock.now_ms()

        found = []
        for a, b in combinations(samples, 2):
            if a.price == b.price:
                continue
            self.stats.pairs_evaluated += 1
            buy, sell = (a, b) if a.price < b.price else (b, a)
            opportunity = self._build(snapshot, buy, sell, estimate.total_gas_cost, now)
            if opportunity is not None:
                found.append(opportunity)

        return found

    async def scan(self, snapshots: dict[str, dict[str, PriceSnapshot]]) -> list[Opportunity]:
        """
        One detection cycle over {network: {token: snapshot}}.

        A failure on one token is logged and counted; the other tokens are
        still evaluated.
        """
        self.stats.cycles += 1
        self.stats.last_run_ms = self._clock.now_ms()
        self.stats.last_run_ok = True
        self.stats.last_error = None

        found: list[Opportunity] = []
        for network, tokens in snapshots.items():
            for token, snapshot in tokens.items():
                try:
                    candidates = await self.detect(snapshot)
                except Exception as e:
                    self.stats.failed_tokens += 1
                    self.stats.last_run_ok = False
                    self.stats.last_error = f"{network}/{token}: {e}"
                    logger.error(
                        f"Detection failed for {token} on {network}: {e}",
                        exc_info=True,
                        extra={"context": {"network": network, "token": token}},
                    )
                    continue

                if candidates:
                    self.stats.candidates_by_network[network] = (
                        self.stats.candidates_by_network.get(network, 0) + len(candidates)
                    )
                found.extend(candidates)

        self.stats.last_candidates = len(found)
        self.stats.total_candidates += len(found)

        logger.debug(
            f"Detection cycle {self.stats.cycles}: {len(found)} candidates",
            extra={"context": {"cycle": self.stats.cycles, "candidates": len(found)}},
        )
        return found
