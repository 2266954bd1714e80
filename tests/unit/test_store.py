"""
tests/unit/test_store.py - Tests for the opportunity store and ranking.
"""

import pytest

from core.exceptions import NotFoundError
from strategy.store import OpportunityStore, filter_and_rank, rank


@pytest.fixture
def store(clock):
    return OpportunityStore(clock=clock)


class TestRanking:
    """Tests for filter_and_rank."""

    def test_sorted_by_score_descending(self, make_opportunity):
        low = make_opportunity(buy_venue="a", net_profit_percentage=1.0)
        high = make_opportunity(buy_venue="b", net_profit_percentage=3.0)
        mid = make_opportunity(buy_venue="c", net_profit_percentage=2.0)

        ranked = rank([low, high, mid])

        assert [o.buy_venue for o in ranked] == ["b", "c", "a"]
        for first, second in zip(ranked, ranked[1:]):
            assert first.score >= second.score

    def test_score_weights_confidence(self, make_opportunity):
        # 3% at 50 confidence scores 1.5, below 2% at 100
        shaky = make_opportunity(buy_venue="a", net_profit_percentage=3.0, confidence=50.0)
        solid = make_opportunity(buy_venue="b", net_profit_percentage=2.0, confidence=100.0)

        assert [o.buy_venue for o in rank([shaky, solid])] == ["b", "a"]

    def test_ties_keep_input_order(self, make_opportunity):
        batch = [make_opportunity(buy_venue=name) for name in ("x", "y", "z")]
        assert [o.buy_venue for o in rank(batch)] == ["x", "y", "z"]

    def test_drops_low_confidence(self, make_opportunity, clock):
        kept = make_opportunity(buy_venue="a", confidence=50.0)
        dropped = make_opportunity(buy_venue="b", confidence=49.9)

        assert filter_and_rank([kept, dropped], clock.now_ms()) == [kept]

    def test_drops_aged(self, make_opportunity, clock):
        old = make_opportunity(created_at_ms=clock.now_ms() - 60_000)
        assert filter_and_rank([old], clock.now_ms()) == []


class TestOpportunityStore:
    """Tests for OpportunityStore."""

    def test_ingest_and_best(self, store, make_opportunity):
        a = make_opportunity(buy_venue="a", net_profit_percentage=1.0)
        b = make_opportunity(buy_venue="b", net_profit_percentage=2.0)

        accepted = store.ingest([a, b])

        assert accepted == [b, a]
        assert store.best_opportunities() == [b, a]
        assert store.best_opportunities(1) == [b]

    def test_prior_entries_retained(self, store, make_opportunity, clock):
        first = make_opportunity(buy_venue="a")
        store.ingest([first])
        clock.advance(10_000)
        second = make_opportunity(buy_venue="b")
        store.ingest([second])

        assert len(store) == 2
        assert store.by_id(first.id) == first

    def test_usable_window(self, store, make_opportunity, clock):
        """Created at t=0, queried at t=61s: excluded and deleted."""
        opp = make_opportunity()
        store.ingest([opp])

        clock.advance(61_000)

        assert store.best_opportunities() == []
        assert opp.id in store
        with pytest.raises(NotFoundError):
            store.by_id(opp.id)
        assert opp.id not in store

    def test_unknown_id(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.by_id("nope")
        assert exc_info.value.details["opportunity_id"] == "nope"

    def test_eviction_after_retention(self, store, make_opportunity, clock):
        opp = make_opportunity()
        store.ingest([opp])

        clock.advance(299_999)
        assert store.evict_expired() == 0

        clock.advance(1)
        assert store.evict_expired() == 1
        assert len(store) == 0

    def test_ingest_evicts_expired(self, store, make_opportunity, clock):
        old = make_opportunity(buy_venue="a")
        store.ingest([old])
        clock.advance(300_000)

        fresh = make_opportunity(buy_venue="b")
        store.ingest([fresh])

        assert old.id not in store
        assert fresh.id in store

    def test_ingest_filters_batch(self, store, make_opportunity):
        weak = make_opportunity(confidence=10.0)
        assert store.ingest([weak]) == []
        assert len(store) == 0

    def test_stats(self, store, make_opportunity, clock):
        a = make_opportunity(buy_venue="a", net_profit_percentage=1.0)
        b = make_opportunity(buy_venue="b", net_profit_percentage=4.0)
        store.ingest([a, b])
        clock.advance(61_000)

        stats = store.stats()

        assert stats["total"] == 2
        assert stats["usable"] == 0
        assert stats["recent_5m"] == 2
        assert stats["best"]["id"] == b.id

    def test_stats_empty(self, store):
        assert store.stats() == {"total": 0, "usable": 0, "recent_5m": 0, "best": None}
