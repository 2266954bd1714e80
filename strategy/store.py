"""
strategy/store.py - Filtered, ranked store of live opportunities.

Entries are usable while younger than OPPORTUNITY_MAX_AGE_MS and are
evicted once they reach OPPORTUNITY_RETENTION_MS. Between the two limits
an entry is kept for statistics but never returned for execution.

Ranking uses a stable sort on score, so equal scores keep the order in
which they were detected.
"""

from typing import Iterable

from core.constants import MIN_CONFIDENCE, OPPORTUNITY_MAX_AGE_MS, OPPORTUNITY_RETENTION_MS
from core.exceptions import NotFoundError
from core.interfaces import ClockSource
from core.logging import get_logger, log_opportunity
from core.models import Opportunity
from core.time import SystemClock

logger = get_logger("arb.strategy.store")


def rank(opportunities: Iterable[Opportunity]) -> list[Opportunity]:
    """Sort by score descending; ties keep their input order."""
    return sorted(opportunities, key=lambda o: o.score, reverse=True)


def filter_and_rank(
    batch: Iterable[Opportunity],
    now_ms: int,
    min_confidence: float = MIN_CONFIDENCE,
    max_age_ms: int = OPPORTUNITY_MAX_AGE_MS,
) -> list[Opportunity]:
    """Drop low-confidence and aged candidates, then rank the rest."""
    kept = [
        o for o in batch
        if o.confidence >= min_confidence and o.age_ms(now_ms) < max_age_ms
    ]
    return rank(kept)


class OpportunityStore:
    """Opportunities keyed by id, insertion-ordered."""

    def __init__(
        self,
        clock: ClockSource | None = None,
        min_confidence: float = MIN_CONFIDENCE,
        max_age_ms: int = OPPORTUNITY_MAX_AGE_MS,
        retention_ms: int = OPPORTUNITY_RETENTION_MS,
    ):
        self._clock = clock or SystemClock()
        self.min_confidence = min_confidence
        self.max_age_ms = max_age_ms
        self.retention_ms = retention_ms
        self._entries: dict[str, Opportunity] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, opportunity_id: str) -> bool:
        return opportunity_id in self._entries

    def _usable(self, opportunity: Opportunity, now_ms: int) -> bool:
        return opportunity.age_ms(now_ms) < self.max_age_ms

    def evict_expired(self) -> int:
        """Remove entries at or past the retention limit. Returns the count."""
        now = self._clock.now_ms()
        expired = [
            oid for oid, o in self._entries.items()
            if o.age_ms(now) >= self.retention_ms
        ]
        for oid in expired:
            del self._entries[oid]
        if expired:
            logger.debug(
                f"Evicted {len(expired)} expired opportunities",
                extra={"context": {"evicted": len(expired)}},
            )
        return len(expired)

    def ingest(self, batch: Iterable[Opportunity]) -> list[Opportunity]:
        """
        Filter, rank and store one detection batch.

        Earlier entries that have not expired are retained.

        Returns:
            The accepted batch in rank order
        """
        now = self._clock.now_ms()
        ranked = filter_and_rank(batch, now, self.min_confidence, self.max_age_ms)

        self.evict_expired()
        for opportunity in ranked:
            self._entries[opportunity.id] = opportunity

        for opportunity in ranked:
            log_opportunity(
                logger,
                opportunity_id=opportunity.id,
                buy_venue=opportunity.buy_venue,
                sell_venue=opportunity.sell_venue,
                token=opportunity.token,
                net_profit_percentage=opportunity.net_profit_percentage,
                net_profit=opportunity.net_profit,
                network=opportunity.network,
                confidence=opportunity.confidence,
            )
        return ranked

    def best_opportunities(self, limit: int = 10) -> list[Opportunity]:
        """Usable opportunities, best score first."""
        now = self._clock.now_ms()
        usable = [o for o in self._entries.values() if self._usable(o, now)]
        return rank(usable)[:max(0, limit)]

    def by_id(self, opportunity_id: str) -> Opportunity:
        """
        Usable opportunity by id.

        A stale entry is deleted as a side effect.

        Raises:
            NotFoundError: unknown id, or the entry is no longer usable
        """
        opportunity = self._entries.get(opportunity_id)
        if opportunity is not None and not self._usable(opportunity, self._clock.now_ms()):
            del self._entries[opportunity_id]
            opportunity = None

        if opportunity is None:
            raise NotFoundError(
                f"Opportunity not found: {opportunity_id}",
                details={"opportunity_id": opportunity_id},
            )
        return opportunity

    def stats(self) -> dict:
        now = self._clock.now_ms()
        entries = list(self._entries.values())
        recent = [o for o in entries if o.age_ms(now) < self.retention_ms]
        best = max(recent, key=lambda o: o.net_profit_percentage, default=None)
        return {
            "total": len(entries),
            "usable": sum(1 for o in entries if self._usable(o, now)),
            "recent_5m": len(recent),
            "best": best.to_dict() if best else None,
        }
