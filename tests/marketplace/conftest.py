"""Fixtures for marketplace tests."""

import pytest

from bidyard.marketplace import (
    ActorContext,
    BidCache,
    InMemoryBilling,
    InMemoryChangeFeed,
    InMemoryMarketplaceStore,
    Job,
    ProviderDisplay,
)
from factories import CUSTOMER_ID, JOB_ID, PROVIDER_A, PROVIDER_B, PROVIDER_C


@pytest.fixture
def job():
    return Job(id=JOB_ID, author_id=CUSTOMER_ID, title="Rewire the garage", location="Leeds")


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed, job):
    """In-memory store with one open job and three provider profiles."""
    store = InMemoryMarketplaceStore(feed=feed)
    store.save_job(job)
    store.save_profile(
        PROVIDER_A, ProviderDisplay(name="Acme Electric", average_rating=4.5, rating_count=12)
    )
    store.save_profile(PROVIDER_B, ProviderDisplay(name="Bright Sparks"))
    store.save_profile(PROVIDER_C, ProviderDisplay(name="Current Affairs"))
    return store


@pytest.fixture
def billing():
    return InMemoryBilling({PROVIDER_A: "500", PROVIDER_B: "500", PROVIDER_C: "500"})


@pytest.fixture
def cache():
    return BidCache()


@pytest.fixture
def customer():
    return ActorContext.customer(CUSTOMER_ID)


@pytest.fixture
def provider_a():
    return ActorContext.provider(PROVIDER_A)


@pytest.fixture
def provider_b():
    return ActorContext.provider(PROVIDER_B)
