"""Tests for the in-memory change feed."""

from unittest.mock import AsyncMock

import pytest

from bidyard.marketplace import InMemoryChangeFeed
from factories import JOB_ID, bid_row


class TestInMemoryChangeFeed:
    """Tests for InMemoryChangeFeed."""

    @pytest.mark.asyncio
    async def test_delivers_only_matching_job(self):
        feed = InMemoryChangeFeed()
        callback = AsyncMock()
        await feed.subscribe_bid_inserts(JOB_ID, callback)

        await feed.publish_bid_insert(bid_row("b1", 100))
        await feed.publish_bid_insert(bid_row("b2", 100, job_id="job-2"))

        assert callback.await_count == 1
        assert callback.await_args.args[0]["id"] == "b1"

    @pytest.mark.asyncio
    async def test_redelivery(self):
        feed = InMemoryChangeFeed(deliveries_per_event=3)
        callback = AsyncMock()
        await feed.subscribe_bid_inserts(JOB_ID, callback)

        await feed.publish_bid_insert(bid_row("b1", 100))

        assert callback.await_count == 3

    def test_rejects_zero_deliveries(self):
        with pytest.raises(ValueError):
            InMemoryChangeFeed(deliveries_per_event=0)

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        feed = InMemoryChangeFeed()
        healthy = AsyncMock()
        await feed.subscribe_bid_inserts(JOB_ID, AsyncMock(side_effect=RuntimeError("boom")))
        await feed.subscribe_bid_inserts(JOB_ID, healthy)

        await feed.publish_bid_insert(bid_row("b1", 100))

        healthy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        feed = InMemoryChangeFeed()
        callback = AsyncMock()
        subscription = await feed.subscribe_bid_inserts(JOB_ID, callback)

        await subscription.unsubscribe()
        await subscription.unsubscribe()
        await feed.publish_bid_insert(bid_row("b1", 100))

        callback.assert_not_awaited()
        assert not subscription.active
        assert feed.subscription_count == 0

    @pytest.mark.asyncio
    async def test_subscribers_get_independent_copies(self):
        feed = InMemoryChangeFeed()
        seen = []

        async def mutate(row):
            row["amount"] = "0"
            seen.append(row)

        async def record(row):
            seen.append(row)

        await feed.subscribe_bid_inserts(JOB_ID, mutate)
        await feed.subscribe_bid_inserts(JOB_ID, record)

        await feed.publish_bid_insert(bid_row("b1", 100))

        assert seen[1]["amount"] != "0"
