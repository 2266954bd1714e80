"""
pricing/ - Price sampling layer.

Modules:
- cache: Latest price sample per (network, token, venue)
- gas: Gas cost estimation with fallback
- feeds: Periodic refresh of the cache from price sources
- sources: Simulated price sources (paper mode)
"""

from pricing.cache import PriceCache
from pricing.feeds import FeedStats, PriceFeedManager, VenueSource
from pricing.gas import FALLBACK_ESTIMATE, GasEstimator
from pricing.sources import SimulatedMarketConfig, SimulatedPriceSource

__all__ = [
    "PriceCache",
    "FeedStats",
    "PriceFeedManager",
    "VenueSource",
    "FALLBACK_ESTIMATE",
    "GasEstimator",
    "SimulatedMarketConfig",
    "SimulatedPriceSource",
]
