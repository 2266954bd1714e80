"""
pricing/feeds.py - Periodic price refresh into the PriceCache.

One refresh pass queries every (network, token, venue) through its
PriceSourceAdapter. Pairs are refreshed concurrently and complete at
different times, so a concurrent reader can see a half-refreshed cache.

Adapter failures are recovered as the 0.0 sentinel and never written.
"""

import asyncio
from dataclasses import dataclass

from core.constants import ErrorCode
from core.exceptions import ArbError
from core.interfaces import ClockSource, PriceSourceAdapter
from core.logging import get_logger
from core.time import SystemClock
from pricing.cache import PriceCache

logger = get_logger("arb.pricing.feeds")

# Average-price moves above this percentage are logged at INFO
SIGNIFICANT_CHANGE_PERCENT = 0.1


@dataclass
class VenueSource:
    """Binding of a venue name to the adapter that prices it."""
    venue: str
    adapter: PriceSourceAdapter


@dataclass
class FeedStats:
    """Refresh statistics."""
    passes: int = 0
    samples_written: int = 0
    empty_fetches: int = 0
    failed_fetches: int = 0
    last_pass_ms: int | None = None

    def to_dict(self) -> dict:
        return {
            "passes": self.passes,
            "samples_written": self.samples_written,
            "empty_fetches": self.empty_fetches,
            "failed_fetches": self.failed_fetches,
            "last_pass_ms": self.last_pass_ms,
        }


class PriceFeedManager:
    """Refreshes the PriceCache from the configured venues."""

    def __init__(
        self,
        cache: PriceCache,
        venues: dict[str, list[VenueSource]],
        tokens: dict[str, list[str]],
        clock: ClockSource | None = None,
    ):
        """
        Args:
            cache: Cache written by this manager (sole writer)
            venues: network -> venue bindings
            tokens: network -> token symbols
        """
        self.cache = cache
        self.venues = venues
        self.tokens = tokens
        self._clock = clock or SystemClock()
        self.stats = FeedStats()

    async def _fetch(self, network: str, token: str, source: VenueSource) -> float:
        try:
            price = await source.adapter.fetch_price(network, token, source.venue)
        except Exception as e:
            self.stats.failed_fetches += 1
            code = e.code.value if isinstance(e, ArbError) else ErrorCode.PRICE_SOURCE_FAILED.value
            logger.debug(
                f"Price fetch failed for {source.venue}: {e}",
                extra={"context": {
                    "network": network,
                    "token": token,
                    "venue": source.venue,
                    "error_code": code,
                }},
            )
            return 0.0
        if not price or price <= 0:
            self.stats.empty_fetches += 1
            return 0.0
        return float(price)

    async def refresh_token(self, network: str, token: str) -> int:
        """Refresh every venue of one token. Returns samples written."""
        previous = self.cache.peek(network, token)
        old_average = previous.average_price if previous else 0.0

        written = 0
        for source in self.venues.get(network, []):
            price = await self._fetch(network, token, source)
            if price <= 0:
                continue
            self.cache.upsert(network, token, source.venue, price, source.adapter.is_on_chain)
            written += 1

        self.stats.samples_written += written

        if written and old_average > 0:
            new_average = self.cache.peek(network, token).average_price
            change = (new_average - old_average) / old_average * 100
            if abs(change) > SIGNIFICANT_CHANGE_PERCENT:
                logger.info(
                    f"Price update {token} on {network}: {new_average:.6f} ({change:+.2f}%)",
                    extra={"context": {
                        "network": network,
                        "token": token,
                        "average_price": new_average,
                        "change_percent": round(change, 4),
                    }},
                )
        return written

    async def refresh_all(self) -> int:
        """
        One refresh pass over every configured (network, token).

        Returns:
            Number of samples written
        """
        pairs = [
            (network, token)
            for network, tokens in self.tokens.items()
            for token in tokens
        ]
        results = await asyncio.gather(
            *(self.refresh_token(network, token) for network, token in pairs),
            return_exceptions=True,
        )

        written = 0
        for (network, token), result in zip(pairs, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Refresh failed for {token} on {network}: {result}",
                    extra={"context": {"network": network, "token": token}},
                )
                continue
            written += result

        self.stats.passes += 1
        self.stats.last_pass_ms = self._clock.now_ms()
        return written

    def status(self) -> dict:
        return {**self.cache.status(), **self.stats.to_dict()}
