"""End-to-end tests for MarketplaceClient over the in-memory backends."""

from decimal import Decimal

import pytest

from bidyard.marketplace import (
    ActorContext,
    JobNotFoundError,
    MarketplaceClient,
    UnauthorizedError,
)
from factories import CUSTOMER_ID, JOB_ID, PROVIDER_A, PROVIDER_B, PROVIDER_C


@pytest.fixture
def make_client(store, feed, billing):
    def _make(actor):
        return MarketplaceClient(actor, store, feed, billing)

    return _make


class TestMarketplaceClient:
    """Tests for MarketplaceClient."""

    @pytest.mark.asyncio
    async def test_full_bid_lifecycle(self, make_client, store):
        customer = make_client(ActorContext.customer(CUSTOMER_ID))
        providers = [make_client(ActorContext.provider(p)) for p in (PROVIDER_A, PROVIDER_B, PROVIDER_C)]

        async with customer, customer.watch_bids(JOB_ID) as watch:
            submitted = []
            for client, amount in zip(providers, ("50000", "120000", "75000")):
                submitted.append(await client.submit_bid(JOB_ID, amount))

            assert [b.amount for b in watch.bids] == [
                Decimal("50000"),
                Decimal("75000"),
                Decimal("120000"),
            ]

            result = await customer.accept_bid(JOB_ID, submitted[2].id)

        assert result.job.awarded_to == PROVIDER_C
        assert result.conversation_created
        assert result.rejected_count == 2
        statuses = {b.provider_id: b.status for b in store.bids_for(JOB_ID)}
        assert statuses == {PROVIDER_A: "rejected", PROVIDER_B: "rejected", PROVIDER_C: "accepted"}
        assert store.job(JOB_ID).status == "active"

    @pytest.mark.asyncio
    async def test_load_unknown_job(self, make_client):
        client = make_client(ActorContext.customer(CUSTOMER_ID))

        with pytest.raises(JobNotFoundError):
            await client.load_job("missing")

    @pytest.mark.asyncio
    async def test_has_bid_and_count(self, make_client):
        provider = make_client(ActorContext.provider(PROVIDER_A))

        assert not await provider.has_bid(JOB_ID)
        await provider.submit_bid(JOB_ID, 100, notes="Weekend start")

        assert await provider.has_bid(JOB_ID)
        assert await provider.bid_count(JOB_ID) == 1

    @pytest.mark.asyncio
    async def test_bids_fetched_once_then_cached(self, make_client, store):
        customer = make_client(ActorContext.customer(CUSTOMER_ID))
        await store.insert_bid(JOB_ID, PROVIDER_A, Decimal("100"))

        first = await customer.bids(JOB_ID)
        await store.insert_bid(JOB_ID, PROVIDER_B, Decimal("200"))

        assert len(first) == 1
        assert len(await customer.bids(JOB_ID)) == 1
        assert len(await customer.bids(JOB_ID, refresh=True)) == 2

    @pytest.mark.asyncio
    async def test_provider_cannot_accept(self, make_client):
        provider = make_client(ActorContext.provider(PROVIDER_A))
        bid = await provider.submit_bid(JOB_ID, 100)

        with pytest.raises(UnauthorizedError):
            await provider.accept_bid(JOB_ID, bid.id)

    @pytest.mark.asyncio
    async def test_reject_bid(self, make_client):
        provider = make_client(ActorContext.provider(PROVIDER_A))
        customer = make_client(ActorContext.customer(CUSTOMER_ID))
        bid = await provider.submit_bid(JOB_ID, 100)

        rejected = await customer.reject_bid(JOB_ID, bid.id)

        assert rejected.status == "rejected"

    @pytest.mark.asyncio
    async def test_close_releases_watches(self, make_client, feed):
        client = make_client(ActorContext.customer(CUSTOMER_ID))
        await client.watch_bids(JOB_ID).open()

        await client.close()

        assert feed.subscription_count == 0
