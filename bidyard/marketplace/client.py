"""
Marketplace client facade.

One MarketplaceClient per connected client process. It owns that client's
bid cache and wires the submission, observation and award paths to the
same store, feed and cache, with the actor passed explicitly.
"""

import logging
from typing import List, Optional

from bidyard.marketplace.award import AwardCoordinator, AwardResult
from bidyard.marketplace.billing import BillingClient
from bidyard.marketplace.cache import BidCache
from bidyard.marketplace.config import MarketplaceConfig
from bidyard.marketplace.context import ActorContext
from bidyard.marketplace.errors import JobNotFoundError
from bidyard.marketplace.feed import ChangeFeed
from bidyard.marketplace.models import Bid, BidDraft, Job
from bidyard.marketplace.observation import BidListListener, BidObserver, BidWatch
from bidyard.marketplace.storage import MarketplaceStore
from bidyard.marketplace.submission import BidSubmitter

logger = logging.getLogger(__name__)


class MarketplaceClient:
    """Bid lifecycle operations for one actor.

    Example:
        client = MarketplaceClient(ActorContext.provider("p-1"), store, feed, billing)
        bid = await client.submit_bid("job-1", "95000", notes="Can start Monday")
    """

    def __init__(
        self,
        actor: ActorContext,
        store: MarketplaceStore,
        feed: ChangeFeed,
        billing: BillingClient,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.actor = actor
        self.store = store
        self.feed = feed
        self.billing = billing
        self.config = config or MarketplaceConfig()
        self.cache = BidCache()
        self.submitter = BidSubmitter(store, billing, self.cache, self.config)
        self.observer = BidObserver(store, feed, self.cache)
        self.awards = AwardCoordinator(store, self.cache)

    async def load_job(self, job_id: str) -> Job:
        """Fetch a job from the store and cache it."""
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        self.cache.put_job(job)
        return job

    async def bids(self, job_id: str, refresh: bool = False) -> List[Bid]:
        """The cached bid list for a job, fetching it on first use."""
        if refresh or not self.cache.has_bids(job_id):
            return self.cache.reconcile(job_id, await self.store.list_bids(job_id))
        return self.cache.bids(job_id)

    async def submit_bid(self, job_id: str, amount, notes: Optional[str] = None) -> Bid:
        draft = BidDraft.of(amount, notes)
        job = await self.load_job(job_id)
        return await self.submitter.submit(self.actor, job, draft)

    def watch_bids(self, job_id: str, on_change: Optional[BidListListener] = None) -> BidWatch:
        """Live view of a job's bids. Use as ``async with client.watch_bids(job_id)``."""
        return self.observer.watch(job_id, on_change=on_change)

    async def accept_bid(self, job_id: str, bid_id: str) -> AwardResult:
        job = await self.load_job(job_id)
        bids = await self.bids(job_id, refresh=True)
        return await self.awards.accept_bid(self.actor, job, bid_id, bids=bids)

    async def reject_bid(self, job_id: str, bid_id: str) -> Bid:
        job = await self.load_job(job_id)
        bids = await self.bids(job_id, refresh=True)
        return await self.awards.reject_bid(self.actor, job, bid_id, bids=bids)

    async def has_bid(self, job_id: str) -> bool:
        """Whether this actor has already bid on the job."""
        return await self.store.get_provider_bid(job_id, self.actor.user_id) is not None

    async def bid_count(self, job_id: str) -> int:
        return await self.store.count_bids(job_id)

    async def close(self) -> None:
        """Release every open watch."""
        await self.observer.close_all()
        logger.debug(f"Marketplace client closed | actor={self.actor.user_id}")

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False
