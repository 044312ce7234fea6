"""
Client-side advisory cache of jobs and their bid lists.

The cache is what a client believes, not what the store holds. It is kept
sorted by amount ascending (matching the store's ordering) and reconciled
against feed events and explicit re-fetches.
"""

import copy
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from bidyard.marketplace.models import Bid, BidStatus, Job

_TERMINAL_BID_STATUSES = frozenset({BidStatus.ACCEPTED.value, BidStatus.REJECTED.value})


def sort_bids(bids: Iterable[Bid]) -> List[Bid]:
    """Amount ascending; ties by submission time, then id."""
    return sorted(
        bids,
        key=lambda b: (b.amount, b.created_at.isoformat() if b.created_at else "", b.id),
    )


@dataclass(frozen=True)
class CacheSnapshot:
    """Deep copy of one job's cached state."""

    job_id: str
    job: Optional[Job]
    bids: Optional[List[Bid]]


class BidCache:
    """Mapping of job id to the believed job row and bid list."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._bids: Dict[str, List[Bid]] = {}

    # === Jobs ===

    def job(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return replace(job) if job else None

    def put_job(self, job: Job) -> None:
        self._jobs[job.id] = replace(job)

    # === Bids ===

    def has_bids(self, job_id: str) -> bool:
        return job_id in self._bids

    def bids(self, job_id: str) -> List[Bid]:
        return list(self._bids.get(job_id, []))

    def find_bid(self, job_id: str, bid_id: str) -> Optional[Bid]:
        for bid in self._bids.get(job_id, []):
            if bid.id == bid_id:
                return bid
        return None

    def set_bids(self, job_id: str, bids: Iterable[Bid]) -> None:
        self._bids[job_id] = sort_bids(bids)

    def merge_bid(self, bid: Bid) -> bool:
        """Insert a bid unless its id is already present.

        Returns False for a duplicate, which makes repeated feed deliveries
        harmless.
        """
        current = self._bids.setdefault(bid.job_id, [])
        if any(b.id == bid.id for b in current):
            return False
        self._bids[bid.job_id] = sort_bids([*current, bid])
        return True

    def remove_bid(self, job_id: str, bid_id: str) -> bool:
        current = self._bids.get(job_id, [])
        kept = [b for b in current if b.id != bid_id]
        if len(kept) == len(current):
            return False
        self._bids[job_id] = kept
        return True

    def replace_bid(self, job_id: str, old_id: str, bid: Bid) -> None:
        """Swap a provisional entry for the confirmed one, deduping by id."""
        self.remove_bid(job_id, old_id)
        self.merge_bid(bid)

    def set_bid_statuses(self, job_id: str, statuses: Dict[str, str]) -> None:
        """Apply ``{bid_id: status}`` to the cached list."""
        self._bids[job_id] = [
            b.with_status(statuses[b.id]) if b.id in statuses else b
            for b in self._bids.get(job_id, [])
        ]

    def reconcile(self, job_id: str, fetched: Iterable[Bid]) -> List[Bid]:
        """Fold a fresh fetch into the cached list.

        Bids are never deleted, so entries the fetch did not return (feed
        events newer than the fetch, provisional submissions) are kept. A
        fetched row replaces the cached one except that a terminal cached
        status is never moved back to pending.
        """
        merged: Dict[str, Bid] = {b.id: b for b in self._bids.get(job_id, [])}
        for bid in fetched:
            cached = merged.get(bid.id)
            if cached and cached.status in _TERMINAL_BID_STATUSES and bid.is_pending:
                merged[bid.id] = replace(bid, status=cached.status)
            else:
                merged[bid.id] = bid
        self._bids[job_id] = sort_bids(merged.values())
        return self.bids(job_id)

    def forget(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._bids.pop(job_id, None)

    # === Snapshots ===

    def snapshot(self, job_id: str) -> CacheSnapshot:
        return CacheSnapshot(
            job_id=job_id,
            job=copy.deepcopy(self._jobs.get(job_id)),
            bids=copy.deepcopy(self._bids[job_id]) if job_id in self._bids else None,
        )

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Put a job's cached state back exactly as captured."""
        if snapshot.job is None:
            self._jobs.pop(snapshot.job_id, None)
        else:
            self._jobs[snapshot.job_id] = copy.deepcopy(snapshot.job)
        if snapshot.bids is None:
            self._bids.pop(snapshot.job_id, None)
        else:
            self._bids[snapshot.job_id] = copy.deepcopy(snapshot.bids)
