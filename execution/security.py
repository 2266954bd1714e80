"""
execution/security.py - Pre-execution security gate.

Gates run in a fixed order and the first failing gate decides the reason:
  1. safe mode enabled
  2. daily execution limit not reached
  3. opportunity not older than OPPORTUNITY_MAX_AGE_MS
  4. net profit percentage at or above the minimum
  5. live network fee rate at or below the maximum
  6. liquidity probe passes

A collaborator that raises while a gate runs fails the whole check with
SecurityBlocker.CHECK_ERROR.
"""

from typing import NamedTuple

from core.constants import OPPORTUNITY_MAX_AGE_MS, SecurityBlocker
from core.interfaces import ClockSource, FeeOracle, LiquidityProbe
from core.logging import get_logger
from core.models import Opportunity
from core.time import SystemClock, utc_day
from strategy.config import ArbitrageConfig, SecurityConfig

logger = get_logger("arb.execution.security")


# =============================================================================
# GATE RESULT
# =============================================================================

class GateResult(NamedTuple):
    """Result of a gate check."""
    passed: bool
    blocker: SecurityBlocker | None = None
    reason: str | None = None
    details: dict | None = None


PASSED = GateResult(passed=True)


def _blocked(blocker: SecurityBlocker, reason: str | None = None, **details) -> GateResult:
    return GateResult(
        passed=False,
        blocker=blocker,
        reason=reason or blocker.value,
        details=details or None,
    )


# =============================================================================
# DAILY COUNTER
# =============================================================================

class DailyExecutionCounter:
    """
    Successful executions in the current UTC calendar day.

    The count resets to zero the first time it is read or incremented on a
    new day.
    """

    def __init__(self, clock: ClockSource | None = None):
        self._clock = clock or SystemClock()
        self._day = utc_day(self._clock.now_ms())
        self._count = 0

    def _roll(self) -> None:
        today = utc_day(self._clock.now_ms())
        if today != self._day:
            logger.info(
                f"Daily execution counter reset ({self._day} -> {today})",
                extra={"context": {"previous_day": str(self._day), "previous_count": self._count}},
            )
            self._day = today
            self._count = 0

    @property
    def count(self) -> int:
        self._roll()
        return self._count

    def can_execute(self, limit: int) -> bool:
        return self.count < limit

    def increment(self) -> int:
        self._roll()
        self._count += 1
        return self._count


# =============================================================================
# INDIVIDUAL GATES
# =============================================================================

def gate_safe_mode(security: SecurityConfig) -> GateResult:
    """Reject when safe mode is off."""
    if not security.safe_mode:
        return _blocked(SecurityBlocker.SAFE_MODE_DISABLED)
    return PASSED


def gate_daily_limit(counter: DailyExecutionCounter, limit: int) -> GateResult:
    """Reject when today's successful executions reached the limit."""
    if not counter.can_execute(limit):
        return _blocked(SecurityBlocker.DAILY_LIMIT_REACHED, count=counter.count, limit=limit)
    return PASSED


def gate_age(opportunity: Opportunity, now_ms: int, max_age_ms: int = OPPORTUNITY_MAX_AGE_MS) -> GateResult:
    """Reject opportunities older than max_age_ms."""
    age = opportunity.age_ms(now_ms)
    if age > max_age_ms:
        return _blocked(SecurityBlocker.OPPORTUNITY_TOO_OLD, age_ms=age, max_age_ms=max_age_ms)
    return PASSED


def gate_min_profit(opportunity: Opportunity, min_profit_percentage: float) -> GateResult:
    """Reject when net profit percentage is below the minimum."""
    if opportunity.net_profit_percentage < min_profit_percentage:
        return _blocked(
            SecurityBlocker.PROFIT_BELOW_THRESHOLD,
            net_profit_percentage=opportunity.net_profit_percentage,
            min_profit_percentage=min_profit_percentage,
        )
    return PASSED


def gate_gas_price(fee_rate_gwei: float, max_gas_price_gwei: float) -> GateResult:
    """Reject when the live fee rate exceeds the maximum."""
    if fee_rate_gwei > max_gas_price_gwei:
        return _blocked(
            SecurityBlocker.GAS_PRICE_TOO_HIGH,
            f"{SecurityBlocker.GAS_PRICE_TOO_HIGH.value}: {fee_rate_gwei:g} gwei",
            fee_rate_gwei=fee_rate_gwei,
            max_gas_price_gwei=max_gas_price_gwei,
        )
    return PASSED


# =============================================================================
# SECURITY GATE
# =============================================================================

class SecurityGate:
    """Runs all gates against one opportunity."""

    def __init__(
        self,
        arbitrage: ArbitrageConfig,
        security: SecurityConfig,
        counter: DailyExecutionCounter,
        fee_oracle: FeeOracle,
        liquidity_probe: LiquidityProbe,
        clock: ClockSource | None = None,
    ):
        self.arbitrage = arbitrage
        self.security = security
        self.counter = counter
        self._fee_oracle = fee_oracle
        self._liquidity = liquidity_probe
        self._clock = clock or SystemClock()

    async def _run(self, opportunity: Opportunity) -> GateResult:
        for result in (
            gate_safe_mode(self.security),
            gate_daily_limit(self.counter, self.arbitrage.daily_transaction_limit),
            gate_age(opportunity, self._clock.now_ms()),
            gate_min_profit(opportunity, self.arbitrage.min_profit_percentage),
        ):
            if not result.passed:
                return result

        fee_rate = await self._fee_oracle.current_fee_rate(opportunity.network)
        result = gate_gas_price(fee_rate, self.arbitrage.max_gas_price_gwei)
        if not result.passed:
            return result

        sufficient = await self._liquidity.has_sufficient_liquidity(
            opportunity.network,
            opportunity.buy_venue,
            opportunity.sell_venue,
            opportunity.token,
            opportunity.optimal_amount,
        )
        if not sufficient:
            return _blocked(SecurityBlocker.INSUFFICIENT_LIQUIDITY)

        return PASSED

    async def check(self, opportunity: Opportunity) -> GateResult:
        """Run every gate in order; the first failure wins."""
        try:
            result = await self._run(opportunity)
        except Exception as e:
            logger.error(
                f"Security check error for {opportunity.id}: {e}",
                extra={"context": {"opportunity_id": opportunity.id, "error": str(e)}},
            )
            return _blocked(SecurityBlocker.CHECK_ERROR, f"{SecurityBlocker.CHECK_ERROR.value}: {e}")

        if not result.passed:
            logger.info(
                f"Security gate blocked {opportunity.id}: {result.reason}",
                extra={"context": {
                    "opportunity_id": opportunity.id,
                    "blocker": result.blocker.name,
                    **(result.details or {}),
                }},
            )
        return result
