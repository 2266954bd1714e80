"""
pricing/cache.py - Latest price sample per (network, token, venue).

Single writer (the refresh loop), many readers (detection, queries).
Readers may observe a partially refreshed pass: one (network, token) may
already carry this pass's prices while another still carries the previous
pass's. Detection accepts that eventual consistency; there is no lock
ordering refresh against detection.
"""

from core.constants import PRICE_STALENESS_MS
from core.exceptions import NotFoundError
from core.interfaces import ClockSource
from core.logging import get_logger
from core.models import PriceSample, PriceSnapshot, average_price
from core.time import SystemClock

logger = get_logger("arb.pricing.cache")


class PriceCache:
    """Key-value store of PriceSample with derived snapshots."""

    def __init__(
        self,
        clock: ClockSource | None = None,
        staleness_threshold_ms: int = PRICE_STALENESS_MS,
    ):
        self._clock = clock or SystemClock()
        self.staleness_threshold_ms = staleness_threshold_ms
        self._samples: dict[tuple[str, str], dict[str, PriceSample]] = {}

    def upsert(
        self,
        network: str,
        token: str,
        venue: str,
        price: float,
        is_on_chain: bool,
    ) -> None:
        """Replace the sample for (network, token, venue)."""
        if price <= 0:
            logger.debug(
                "Ignoring non-positive price",
                extra={"context": {"network": network, "token": token, "venue": venue}},
            )
            return

        self._samples.setdefault((network, token), {})[venue] = PriceSample(
            venue=venue,
            price=price,
            timestamp_ms=self._clock.now_ms(),
            is_on_chain=is_on_chain,
        )

    def _build_snapshot(
        self,
        network: str,
        token: str,
        samples: dict[str, PriceSample],
    ) -> PriceSnapshot:
        now = self._clock.now_ms()
        newest = max(s.timestamp_ms for s in samples.values())
        age = max(0, now - newest)
        return PriceSnapshot(
            network=network,
            token=token,
            samples=dict(samples),
            average_price=average_price(samples),
            age_ms=age,
            is_stale=age > self.staleness_threshold_ms,
        )

    def snapshot(self, network: str, token: str) -> PriceSnapshot:
        """
        Snapshot of one token on one network.

        Raises:
            NotFoundError: no sample has been written for the pair yet
        """
        samples = self._samples.get((network, token))
        if not samples:
            raise NotFoundError(
                f"No prices available for {token} on {network}",
                details={"network": network, "token": token},
            )

        snapshot = self._build_snapshot(network, token, samples)
        if snapshot.is_stale:
            logger.warning(
                f"Stale prices for {token} on {network} ({snapshot.age_ms // 1000}s)",
                extra={"context": {"network": network, "token": token, "age_ms": snapshot.age_ms}},
            )
        return snapshot

    def peek(self, network: str, token: str) -> PriceSnapshot | None:
        """Snapshot without the not-found error or the staleness warning."""
        samples = self._samples.get((network, token))
        if not samples:
            return None
        return self._build_snapshot(network, token, samples)

    def all_snapshots(self) -> dict[str, dict[str, PriceSnapshot]]:
        """All snapshots grouped as {network: {token: snapshot}}."""
        result: dict[str, dict[str, PriceSnapshot]] = {}
        for (network, token), samples in list(self._samples.items()):
            if not samples:
                continue
            result.setdefault(network, {})[token] = self._build_snapshot(network, token, samples)
        return result

    def __len__(self) -> int:
        return len(self._samples)

    def status(self) -> dict:
        timestamps = [
            s.timestamp_ms
            for samples in self._samples.values()
            for s in samples.values()
        ]
        return {
            "cached_pairs": len(self._samples),
            "cached_samples": len(timestamps),
            "last_global_update_ms": max(timestamps) if timestamps else None,
        }
