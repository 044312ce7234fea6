"""
Optimistic update with snapshot rollback.

Usage:
    async with OptimisticUpdate(cache, job_id, label="award") as update:
        update.apply(lambda c: c.set_bid_statuses(job_id, {bid_id: "accepted"}))
        await store.something()   # any exception restores the snapshot

The snapshot is taken on entry. If the block raises, the cached state is
restored before the exception propagates; the exception itself is never
suppressed. Bids that reached the cache from elsewhere while the block ran
(feed events from other providers) are not part of the optimistic change
and survive the restore.
"""

import logging
from typing import Callable, Optional, Set

from bidyard.logging_config import log_rollback
from bidyard.marketplace.cache import BidCache, CacheSnapshot

logger = logging.getLogger(__name__)


class OptimisticUpdate:
    """Capture-before-mutate, mutate, restore-on-failure for one cached job."""

    def __init__(self, cache: BidCache, job_id: str, label: str = "update", actor_id: str = "-"):
        self.cache = cache
        self.job_id = job_id
        self.label = label
        self.actor_id = actor_id
        self.snapshot: Optional[CacheSnapshot] = None
        self.rolled_back = False
        self._applied_ids: Set[str] = set()

    def _bid_ids(self) -> Set[str]:
        return {b.id for b in self.cache.bids(self.job_id)}

    def capture(self) -> CacheSnapshot:
        self.snapshot = self.cache.snapshot(self.job_id)
        self.rolled_back = False
        self._applied_ids = set()
        return self.snapshot

    def apply(self, mutate: Callable[[BidCache], object]) -> None:
        """Run ``mutate`` against the cache. Requires a captured snapshot."""
        if self.snapshot is None:
            raise RuntimeError("OptimisticUpdate.apply() called before capture()")
        before = self._bid_ids()
        mutate(self.cache)
        self._applied_ids |= self._bid_ids() - before

    def restore(self, error: Optional[BaseException] = None) -> None:
        """Put back the captured state, keeping bids merged in by others since."""
        if self.snapshot is None:
            return
        captured = {b.id for b in self.snapshot.bids or []}
        arrived = [
            b
            for b in self.cache.bids(self.job_id)
            if b.id not in captured and b.id not in self._applied_ids
        ]
        self.cache.restore(self.snapshot)
        for bid in arrived:
            self.cache.merge_bid(bid)
        self.rolled_back = True
        reason = f"{type(error).__name__}: {error}" if error else "explicit"
        logger.info(f"Rolled back optimistic {self.label} | job={self.job_id} | reason={reason}")
        log_rollback(self.actor_id, label=self.label, job_id=self.job_id, reason=reason)

    def __enter__(self) -> "OptimisticUpdate":
        self.capture()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.restore(exc)
        return False

    async def __aenter__(self) -> "OptimisticUpdate":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return self.__exit__(exc_type, exc, tb)
