# PATH: execution/simulator.py
"""
Pre-trade simulation.

PRE-TRADE SIMULATION CONTRACT:
==============================

Two legs, each applying the venue fee and the configured slippage:
  buy_out  = amount  * (1 - VENUE_FEE_RATE) * (1 - slippage)
  sell_out = buy_out * (1 - VENUE_FEE_RATE) * (1 - slippage)
  simulated_profit = sell_out - amount

A leg fails when its input or output is non-finite or non-positive.
A negative simulated profit does not fail the simulation; the profit
threshold is enforced earlier by the security gate.

==============================
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.constants import GAS_UNITS, VENUE_FEE_RATE
from core.logging import get_logger
from core.models import Opportunity

logger = get_logger("arb.execution.simulator")


@dataclass
class LegResult:
    """Result of one simulated swap."""
    direction: str
    venue: str
    amount_in: float
    amount_out: float = 0.0
    gas_estimate: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class SimulationResult:
    """Result of pre-trade simulation."""
    passed: bool
    simulated_profit: float = 0.0
    gas_estimate: int = 0
    buy_output: float = 0.0
    sell_output: float = 0.0
    blockers: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "simulated_profit": self.simulated_profit,
            "gas_estimate": self.gas_estimate,
            "buy_output": self.buy_output,
            "sell_output": self.sell_output,
            "blockers": self.blockers,
            "error": self.error,
        }


class SimulationBlocker:
    """Standard simulation blocker codes."""
    BUY_LEG_FAILED = "BUY_LEG_FAILED"
    SELL_LEG_FAILED = "SELL_LEG_FAILED"


def _valid_amount(value: float) -> bool:
    return math.isfinite(value) and value > 0


class PreTradeSimulator:
    """Simulates both legs of an arbitrage before submission."""

    def __init__(
        self,
        slippage_tolerance: float,
        fee_rate: float = VENUE_FEE_RATE,
    ):
        """
        Args:
            slippage_tolerance: Percent lost per leg to slippage
            fee_rate: Venue fee fraction per leg
        """
        self.slippage_tolerance = slippage_tolerance
        self.fee_rate = fee_rate

    def simulate_swap(self, direction: str, venue: str, amount: float) -> LegResult:
        """Simulate one swap of `amount` on `venue`."""
        gas = GAS_UNITS["swap_buy"] if direction == "buy" else GAS_UNITS["swap_sell"]
        leg = LegResult(direction=direction, venue=venue, amount_in=amount, gas_estimate=gas)

        if not _valid_amount(amount):
            leg.error = f"invalid {direction} input amount: {amount}"
            return leg

        out = amount * (1 - self.fee_rate) * (1 - self.slippage_tolerance / 100)
        if not _valid_amount(out):
            leg.error = f"invalid {direction} output amount: {out}"
            return leg

        leg.amount_out = out
        return leg

    def simulate(self, opportunity: Opportunity) -> SimulationResult:
        """Simulate the buy leg, then the sell leg on its output."""
        buy = self.simulate_swap("buy", opportunity.buy_venue, opportunity.optimal_amount)
        if not buy.success:
            return SimulationResult(
                passed=False,
                blockers=[SimulationBlocker.BUY_LEG_FAILED],
                error=f"buy simulation failed: {buy.error}",
            )

        sell = self.simulate_swap("sell", opportunity.sell_venue, buy.amount_out)
        if not sell.success:
            return SimulationResult(
                passed=False,
                buy_output=buy.amount_out,
                blockers=[SimulationBlocker.SELL_LEG_FAILED],
                error=f"sell simulation failed: {sell.error}",
            )

        result = SimulationResult(
            passed=True,
            simulated_profit=sell.amount_out - opportunity.optimal_amount,
            gas_estimate=buy.gas_estimate + sell.gas_estimate,
            buy_output=buy.amount_out,
            sell_output=sell.amount_out,
        )
        logger.debug(
            f"Simulation passed for {opportunity.id}",
            extra={"context": {"opportunity_id": opportunity.id, **result.to_dict()}},
        )
        return result
