"""Tests for optimistic updates with snapshot rollback."""

import pytest

from bidyard.marketplace import BidCache, OptimisticUpdate
from factories import JOB_ID, make_bid


@pytest.fixture
def seeded_cache():
    cache = BidCache()
    cache.set_bids(JOB_ID, [make_bid("a", 100), make_bid("b", 200)])
    return cache


class TestOptimisticUpdate:
    """Tests for OptimisticUpdate."""

    def test_success_keeps_changes(self, seeded_cache):
        with OptimisticUpdate(seeded_cache, JOB_ID) as update:
            update.apply(lambda c: c.set_bid_statuses(JOB_ID, {"a": "accepted"}))

        assert seeded_cache.find_bid(JOB_ID, "a").status == "accepted"
        assert not update.rolled_back

    def test_failure_restores_and_reraises(self, seeded_cache):
        before = seeded_cache.bids(JOB_ID)

        with pytest.raises(RuntimeError, match="store down"):
            with OptimisticUpdate(seeded_cache, JOB_ID) as update:
                update.apply(lambda c: c.set_bid_statuses(JOB_ID, {"a": "accepted", "b": "rejected"}))
                raise RuntimeError("store down")

        assert seeded_cache.bids(JOB_ID) == before
        assert update.rolled_back

    @pytest.mark.asyncio
    async def test_async_failure_restores(self, seeded_cache):
        before = seeded_cache.bids(JOB_ID)

        async def failing_write():
            raise ValueError("rejected by store")

        with pytest.raises(ValueError):
            async with OptimisticUpdate(seeded_cache, JOB_ID, label="award") as update:
                update.apply(lambda c: c.merge_bid(make_bid("c", 50)))
                await failing_write()

        assert seeded_cache.bids(JOB_ID) == before

    def test_apply_requires_capture(self, seeded_cache):
        update = OptimisticUpdate(seeded_cache, JOB_ID)
        with pytest.raises(RuntimeError, match="before capture"):
            update.apply(lambda c: None)

    def test_explicit_restore(self, seeded_cache):
        update = OptimisticUpdate(seeded_cache, JOB_ID)
        update.capture()
        update.apply(lambda c: c.remove_bid(JOB_ID, "a"))

        update.restore()

        assert [b.id for b in seeded_cache.bids(JOB_ID)] == ["a", "b"]

    def test_restore_keeps_bids_merged_by_others(self, seeded_cache):
        with pytest.raises(RuntimeError):
            with OptimisticUpdate(seeded_cache, JOB_ID) as update:
                update.apply(lambda c: c.merge_bid(make_bid("provisional", 150)))
                update.apply(lambda c: c.set_bid_statuses(JOB_ID, {"a": "accepted"}))
                seeded_cache.merge_bid(make_bid("from-feed", 120, provider_id="provider-c"))
                raise RuntimeError("store down")

        assert [b.id for b in seeded_cache.bids(JOB_ID)] == ["a", "from-feed", "b"]
        assert seeded_cache.find_bid(JOB_ID, "a").status == "pending"

    def test_rollback_written_to_event_log(self, seeded_cache, data_dir):
        with pytest.raises(KeyError):
            with OptimisticUpdate(seeded_cache, JOB_ID, label="submit", actor_id="provider-a"):
                raise KeyError("boom")

        logs = list((data_dir / "logs").glob("bid-events-*.log"))
        assert len(logs) == 1
        content = logs[0].read_text()
        assert "rollback" in content
        assert "actor=provider-a" in content
        assert "op=submit" in content
