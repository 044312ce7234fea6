"""
Bid observation.

A watch keeps one job's cached bid list in step with the store: a full fetch
on open, then incremental merges of bid-insert events from the change feed.
The feed delivers at least once, so every merge dedupes by bid id.

Usage:
    async with observer.watch(job_id) as watch:
        watch.bids   # amount ascending, updated as providers bid
    # subscription released here
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from bidyard.marketplace.cache import BidCache
from bidyard.marketplace.errors import StoreError
from bidyard.marketplace.feed import ChangeFeed, Subscription
from bidyard.marketplace.models import Bid, ProviderDisplay
from bidyard.marketplace.storage import MarketplaceStore

logger = logging.getLogger(__name__)

BidListListener = Callable[[List[Bid]], None]


class BidWatch:
    """A live view of one job's bids, tied to a feed subscription."""

    def __init__(
        self,
        job_id: str,
        store: MarketplaceStore,
        feed: ChangeFeed,
        cache: BidCache,
        on_change: Optional[BidListListener] = None,
        on_close: Optional[Callable[["BidWatch"], None]] = None,
    ):
        self.job_id = job_id
        self.store = store
        self.feed = feed
        self.cache = cache
        self.on_change = on_change
        self._on_close = on_close
        self._subscription: Optional[Subscription] = None
        self._closed = False
        self.duplicates_ignored = 0

    @property
    def bids(self) -> List[Bid]:
        return self.cache.bids(self.job_id)

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._closed

    async def open(self) -> "BidWatch":
        """Subscribe, then fetch the full list.

        Subscribing first means an insert that lands during the fetch is
        either in the fetch result or delivered by the feed; the merge
        dedupes the overlap.
        """
        if self._closed:
            raise RuntimeError(f"Watch for job {self.job_id} is closed")
        if self._subscription is not None:
            return self
        self._subscription = await self.feed.subscribe_bid_inserts(self.job_id, self._on_insert)
        try:
            await self.refresh()
        except BaseException:
            await self.close()
            raise
        logger.debug(f"Watching bids | job={self.job_id} | count={len(self.bids)}")
        return self

    async def refresh(self) -> List[Bid]:
        """Re-fetch the bid list and reconcile it into the cache."""
        fetched = await self.store.list_bids(self.job_id)
        bids = self.cache.reconcile(self.job_id, fetched)
        self._notify()
        return bids

    async def close(self) -> None:
        """Release the feed subscription. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()
        if self._on_close is not None:
            self._on_close(self)
        logger.debug(f"Stopped watching bids | job={self.job_id}")

    async def _on_insert(self, row: Dict[str, Any]) -> None:
        if self._closed or row.get("job_id") != self.job_id:
            return
        if self.cache.find_bid(self.job_id, row.get("id")) is not None:
            self.duplicates_ignored += 1
            return

        provider_id = row.get("provider_id")
        try:
            display = await self.store.get_provider_display(provider_id)
        except StoreError as e:
            # Keep the bid; only its annotation is missing
            logger.warning(f"Provider display lookup failed for {provider_id}: {e}")
            display = None

        if self._closed:
            return
        bid = Bid.from_dict(row, provider=display or ProviderDisplay())
        if self.cache.merge_bid(bid):
            logger.debug(f"Merged bid | job={self.job_id} | bid={bid.id} | amount={bid.amount}")
            self._notify()
        else:
            self.duplicates_ignored += 1

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.bids)

    async def __aenter__(self) -> "BidWatch":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False


class BidObserver:
    """Creates bid watches for one client and tracks the live ones."""

    def __init__(self, store: MarketplaceStore, feed: ChangeFeed, cache: BidCache):
        self.store = store
        self.feed = feed
        self.cache = cache
        self._watches: List[BidWatch] = []

    @property
    def active_watches(self) -> List[BidWatch]:
        return list(self._watches)

    def watch(self, job_id: str, on_change: Optional[BidListListener] = None) -> BidWatch:
        """Create a watch for ``job_id``. Open it with ``async with`` or ``open()``."""
        watch = BidWatch(
            job_id,
            self.store,
            self.feed,
            self.cache,
            on_change=on_change,
            on_close=self._forget,
        )
        self._watches.append(watch)
        return watch

    def _forget(self, watch: BidWatch) -> None:
        if watch in self._watches:
            self._watches.remove(watch)

    async def close_all(self) -> None:
        for watch in list(self._watches):
            await watch.close()
