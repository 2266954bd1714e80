"""
pricing/gas.py - Gas cost estimation for the arbitrage operation bundle.

cost = fee_rate (gwei) * 1e-9 * sum(GAS_UNITS)

Oracle failures and non-finite rates surface as GasEstimationError and never
propagate: a fixed conservative estimate is substituted so detection keeps
running. A zero rate means "unknown" and uses DEFAULT_GAS_PRICE_GWEI.
"""

import math

from core.constants import (
    DEFAULT_GAS_PRICE_GWEI,
    FALLBACK_GAS_COST,
    FALLBACK_GAS_PRICE_GWEI,
    FALLBACK_GAS_UNITS,
    GAS_UNITS,
    GWEI,
)
from core.exceptions import GasEstimationError
from core.interfaces import FeeOracle
from core.logging import get_logger
from core.models import GasEstimate

logger = get_logger("arb.pricing.gas")


FALLBACK_ESTIMATE = GasEstimate(
    gas_price_gwei=FALLBACK_GAS_PRICE_GWEI,
    total_gas_units=FALLBACK_GAS_UNITS,
    total_gas_cost=FALLBACK_GAS_COST,
    breakdown={"estimated": FALLBACK_GAS_UNITS},
    is_fallback=True,
)


class GasEstimator:
    """Turns a network's fee rate into an absolute cost estimate."""

    def __init__(
        self,
        fee_oracle: FeeOracle,
        gas_units: dict[str, int] | None = None,
        fallback: GasEstimate = FALLBACK_ESTIMATE,
    ):
        self._oracle = fee_oracle
        self.gas_units = dict(gas_units or GAS_UNITS)
        self.fallback = fallback
        self.fallback_count = 0

    @property
    def total_gas_units(self) -> int:
        return sum(self.gas_units.values())

    def cost_for(self, gas_price_gwei: float) -> float:
        """Bundle cost in native units at the given fee rate."""
        return gas_price_gwei * GWEI * self.total_gas_units

    async def fee_rate(self, network: str) -> float:
        """
        Current fee rate in gwei.

        Raises:
            GasEstimationError: oracle failed or answered a non-finite rate
        """
        try:
            rate = await self._oracle.current_fee_rate(network)
        except Exception as e:
            raise GasEstimationError(
                f"Fee oracle failed for {network}: {e}",
                details={"network": network},
            ) from e

        if rate is not None and not math.isfinite(rate):
            raise GasEstimationError(
                f"Fee oracle returned non-finite rate for {network}: {rate}",
                details={"network": network, "rate": rate},
            )
        if not rate or rate <= 0:
            return DEFAULT_GAS_PRICE_GWEI
        return rate

    async def estimate(self, network: str) -> GasEstimate:
        try:
            rate = await self.fee_rate(network)
        except GasEstimationError as e:
            self.fallback_count += 1
            logger.debug(
                f"Gas estimation failed for {network}, using fallback: {e.message}",
                extra={"context": {"network": network, "error_code": e.code.value}},
            )
            return self.fallback

        return GasEstimate(
            gas_price_gwei=rate,
            total_gas_units=self.total_gas_units,
            total_gas_cost=self.cost_for(rate),
            breakdown=dict(self.gas_units),
        )
