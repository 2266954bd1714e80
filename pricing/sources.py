"""
pricing/sources.py - Simulated price sources for paper mode.

SIMULATED PRICE CONTRACT:
=========================
  mid(network, token) follows a multiplicative random walk starting at the
  configured reference price, stepping on every fetch after the first:
      mid *= 1 + gauss(0, volatility)

  Each venue observes:
      price = mid * (1 + venue_bias[venue] + gauss(0, venue_jitter))

  With probability drop_rate a fetch returns 0.0 (the "no data" sentinel).
  Tokens without a reference price raise PriceSourceError.
=========================

NOTE: SIMULATION ONLY. Real DEX quoting is an external concern reached
through the PriceSourceAdapter interface.
"""

import random
from dataclasses import dataclass, field

from core.exceptions import PriceSourceError
from core.logging import get_logger

logger = get_logger("arb.pricing.sources")


@dataclass
class SimulatedMarketConfig:
    """Parameters of the simulated market."""
    reference_prices: dict[str, float] = field(default_factory=dict)
    venue_bias: dict[str, float] = field(default_factory=dict)
    volatility: float = 0.001
    venue_jitter: float = 0.002
    drop_rate: float = 0.0


class SimulatedPriceSource:
    """
    Random-walk price source shared by all simulated venues.

    One instance serves every venue of every network so venues observe the
    same underlying mid price and differ only by bias and jitter.
    """

    def __init__(
        self,
        config: SimulatedMarketConfig,
        is_on_chain: bool = True,
        seed: int | None = None,
    ):
        self.config = config
        self.is_on_chain = is_on_chain
        self._rng = random.Random(seed)
        self._mids: dict[tuple[str, str], float] = {}

    def _mid(self, network: str, token: str) -> float:
        key = (network, token)
        if key not in self._mids:
            self._mids[key] = self.config.reference_prices[token]
        else:
            step = self._rng.gauss(0.0, self.config.volatility)
            self._mids[key] = max(self._mids[key] * (1 + step), 1e-12)
        return self._mids[key]

    async def fetch_price(self, network: str, token: str, venue: str) -> float:
        if token not in self.config.reference_prices:
            raise PriceSourceError(
                f"No reference price for {token}",
                details={"network": network, "token": token, "venue": venue},
            )

        if self.config.drop_rate and self._rng.random() < self.config.drop_rate:
            logger.debug(
                f"Simulated fetch dropped for {venue}",
                extra={"context": {"network": network, "token": token, "venue": venue}},
            )
            return 0.0

        mid = self._mid(network, token)
        bias = self.config.venue_bias.get(venue, 0.0)
        jitter = self._rng.gauss(0.0, self.config.venue_jitter)
        return max(mid * (1 + bias + jitter), 0.0)
