"""
Marketplace storage layer.

The store is the sole durable owner of jobs, bids and conversations. Every
method is a coroutine and every call is a suspension point. Each statement is
atomic on its own; there are no multi-statement transactions, so guarded
writes (compare-and-swap on the current status) are what keep concurrent
actors from stepping on each other.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple

from bidyard.marketplace.errors import StoreError
from bidyard.marketplace.models import (
    Bid,
    BidStatus,
    Conversation,
    Job,
    JobStatus,
    ProviderDisplay,
    utc_now,
)

logger = logging.getLogger(__name__)

# Constraint names surfaced on StoreError.constraint
BID_PER_PROVIDER_CONSTRAINT = "bids_job_id_provider_id_key"
ONE_ACCEPTED_BID_CONSTRAINT = "bids_one_accepted_per_job"
CONVERSATION_CONSTRAINT = "conversations_job_id_provider_id_key"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a guarded write.

    Attributes:
        row: The row after the write, or its current state when nothing
            was written. None when the row does not exist.
        changed: True if the store applied the write.
        error: None, "not_found", or "conflict" (the guard did not match).
    """

    row: Any = None
    changed: bool = False
    error: Optional[str] = None


class MarketplaceStore(Protocol):
    """Protocol for marketplace persistence backends."""

    # Jobs
    async def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    async def award_job(self, job_id: str, provider_id: str) -> WriteResult:
        """Mark a job active and awarded to ``provider_id``.

        Only applies while the job is open and unawarded. A job already
        awarded to the same provider is reported unchanged, one awarded to
        anyone else is a conflict.
        """
        ...

    # Bids
    async def list_bids(self, job_id: str) -> List[Bid]:
        """All bids for a job, amount ascending, with provider display data."""
        ...

    async def get_bid(self, bid_id: str) -> Optional[Bid]:
        """Get a bid by ID."""
        ...

    async def get_provider_bid(self, job_id: str, provider_id: str) -> Optional[Bid]:
        """Get the bid a provider placed on a job, if any."""
        ...

    async def count_bids(self, job_id: str) -> int:
        """Number of bids on a job."""
        ...

    async def insert_bid(
        self,
        job_id: str,
        provider_id: str,
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> Bid:
        """Insert a pending bid. Raises StoreError on failure."""
        ...

    async def reject_pending_bids(self, job_id: str, exclude_bid_id: str) -> int:
        """Reject every pending bid of a job except one. Returns rows changed."""
        ...

    async def set_bid_status(
        self,
        bid_id: str,
        status: BidStatus,
        expected_status: BidStatus = BidStatus.PENDING,
    ) -> WriteResult:
        """Move a bid to ``status`` only if it is currently ``expected_status``."""
        ...

    # Provider profiles
    async def get_provider_display(self, provider_id: str) -> Optional[ProviderDisplay]:
        """Display identity (name, logo, rating) for a provider."""
        ...

    # Conversations
    async def find_conversation(self, job_id: str, provider_id: str) -> Optional[Conversation]:
        """Get the conversation for a (job, provider) pair, if any."""
        ...

    async def insert_conversation(
        self, job_id: str, customer_id: str, provider_id: str
    ) -> Conversation:
        """Create a conversation. Raises StoreError on a duplicate pair."""
        ...


def _sort_key(bid: Bid) -> Tuple[Decimal, str, str]:
    created = bid.created_at.isoformat() if bid.created_at else ""
    return (bid.amount, created, bid.id)


class InMemoryMarketplaceStore:
    """In-memory store for testing and local development.

    Enforces the same row constraints a production database carries:
    one bid per (job, provider), at most one accepted bid per job, and one
    conversation per (job, provider). Every applied write is appended to
    ``writes`` so callers can assert on write counts.

    If a feed is attached, bid inserts are published to it after they are
    applied, like a database change feed.
    """

    def __init__(self, feed: Any = None):
        self._jobs: Dict[str, Job] = {}
        self._bids: Dict[str, Bid] = {}
        self._profiles: Dict[str, ProviderDisplay] = {}
        self._conversations: Dict[str, Conversation] = {}
        self._failures: Dict[str, List[Exception]] = {}
        self.feed = feed
        self.writes: List[Tuple[str, str]] = []

    async def _checkpoint(self, operation: str) -> None:
        """Suspend once, then raise any failure injected for ``operation``."""
        await asyncio.sleep(0)
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    def inject_failure(
        self, operation: str, error: Optional[Exception] = None, times: int = 1
    ) -> None:
        """Make the next ``times`` calls to ``operation`` raise ``error``."""
        error = error or StoreError(f"Simulated failure in {operation}")
        self._failures.setdefault(operation, []).extend([error] * times)

    # === Seeding ===

    def save_job(self, job: Job) -> str:
        self._jobs[job.id] = job
        return job.id

    def save_profile(self, provider_id: str, display: ProviderDisplay) -> None:
        self._profiles[provider_id] = display

    # === Jobs ===

    async def get_job(self, job_id: str) -> Optional[Job]:
        await self._checkpoint("get_job")
        job = self._jobs.get(job_id)
        return replace(job) if job else None

    async def award_job(self, job_id: str, provider_id: str) -> WriteResult:
        await self._checkpoint("award_job")
        job = self._jobs.get(job_id)
        if job is None:
            return WriteResult(error="not_found")
        if job.status == JobStatus.OPEN.value and job.awarded_to is None:
            updated = job.awarded(provider_id)
            self._jobs[job_id] = updated
            self.writes.append(("award_job", job_id))
            return WriteResult(row=replace(updated), changed=True)
        if job.awarded_to == provider_id:
            return WriteResult(row=replace(job))
        return WriteResult(row=replace(job), error="conflict")

    # === Bids ===

    def _with_display(self, bid: Bid) -> Bid:
        return replace(bid, provider=self._profiles.get(bid.provider_id, ProviderDisplay()))

    async def list_bids(self, job_id: str) -> List[Bid]:
        await self._checkpoint("list_bids")
        bids = [self._with_display(b) for b in self._bids.values() if b.job_id == job_id]
        return sorted(bids, key=_sort_key)

    async def get_bid(self, bid_id: str) -> Optional[Bid]:
        await self._checkpoint("get_bid")
        bid = self._bids.get(bid_id)
        return self._with_display(bid) if bid else None

    async def get_provider_bid(self, job_id: str, provider_id: str) -> Optional[Bid]:
        await self._checkpoint("get_provider_bid")
        for bid in self._bids.values():
            if bid.job_id == job_id and bid.provider_id == provider_id:
                return self._with_display(bid)
        return None

    async def count_bids(self, job_id: str) -> int:
        await self._checkpoint("count_bids")
        return sum(1 for b in self._bids.values() if b.job_id == job_id)

    async def insert_bid(
        self,
        job_id: str,
        provider_id: str,
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> Bid:
        await self._checkpoint("insert_bid")
        if job_id not in self._jobs:
            raise StoreError(f"Job {job_id} does not exist", constraint="bids_job_id_fkey")
        if any(b.job_id == job_id and b.provider_id == provider_id for b in self._bids.values()):
            raise StoreError(
                "duplicate key value violates unique constraint",
                constraint=BID_PER_PROVIDER_CONSTRAINT,
            )
        bid = Bid(
            id=str(uuid.uuid4()),
            job_id=job_id,
            provider_id=provider_id,
            amount=amount,
            notes=notes,
            status=BidStatus.PENDING.value,
            created_at=utc_now(),
        )
        self._bids[bid.id] = bid
        self.writes.append(("insert_bid", bid.id))

        if self.feed is not None:
            row = {**bid.to_row(), "id": bid.id, "created_at": bid.created_at.isoformat()}
            await self.feed.publish_bid_insert(row)
        return replace(bid)

    async def reject_pending_bids(self, job_id: str, exclude_bid_id: str) -> int:
        await self._checkpoint("reject_pending_bids")
        changed = 0
        for bid_id, bid in list(self._bids.items()):
            if bid.job_id == job_id and bid.is_pending and bid_id != exclude_bid_id:
                self._bids[bid_id] = bid.with_status(BidStatus.REJECTED)
                self.writes.append(("reject_bid", bid_id))
                changed += 1
        return changed

    async def set_bid_status(
        self,
        bid_id: str,
        status: BidStatus,
        expected_status: BidStatus = BidStatus.PENDING,
    ) -> WriteResult:
        await self._checkpoint("set_bid_status")
        bid = self._bids.get(bid_id)
        if bid is None:
            return WriteResult(error="not_found")
        status = BidStatus(status)
        if bid.status != BidStatus(expected_status).value:
            return WriteResult(row=self._with_display(bid), error="conflict")
        if status == BidStatus.ACCEPTED and any(
            b.job_id == bid.job_id and b.status == BidStatus.ACCEPTED.value and b.id != bid_id
            for b in self._bids.values()
        ):
            raise StoreError(
                "duplicate key value violates unique constraint",
                constraint=ONE_ACCEPTED_BID_CONSTRAINT,
            )
        updated = bid.with_status(status)
        self._bids[bid_id] = updated
        self.writes.append(("set_bid_status", bid_id))
        return WriteResult(row=self._with_display(updated), changed=True)

    # === Profiles ===

    async def get_provider_display(self, provider_id: str) -> Optional[ProviderDisplay]:
        await self._checkpoint("get_provider_display")
        return self._profiles.get(provider_id)

    # === Conversations ===

    async def find_conversation(self, job_id: str, provider_id: str) -> Optional[Conversation]:
        await self._checkpoint("find_conversation")
        for conversation in self._conversations.values():
            if conversation.job_id == job_id and conversation.provider_id == provider_id:
                return replace(conversation)
        return None

    async def insert_conversation(
        self, job_id: str, customer_id: str, provider_id: str
    ) -> Conversation:
        await self._checkpoint("insert_conversation")
        if any(
            c.job_id == job_id and c.provider_id == provider_id
            for c in self._conversations.values()
        ):
            raise StoreError(
                "duplicate key value violates unique constraint",
                constraint=CONVERSATION_CONSTRAINT,
            )
        conversation = Conversation(
            id=str(uuid.uuid4()),
            job_id=job_id,
            customer_id=customer_id,
            provider_id=provider_id,
            created_at=utc_now(),
        )
        self._conversations[conversation.id] = conversation
        self.writes.append(("insert_conversation", conversation.id))
        return replace(conversation)

    # === Inspection ===

    def conversations_for(self, job_id: str) -> List[Conversation]:
        return [c for c in self._conversations.values() if c.job_id == job_id]

    def bids_for(self, job_id: str) -> List[Bid]:
        return sorted((b for b in self._bids.values() if b.job_id == job_id), key=_sort_key)

    def job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)
