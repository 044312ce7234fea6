"""
Supabase-backed marketplace store.

Tables: ``job_listings``, ``bids``, ``profiles``, ``conversations``. The
supabase client is synchronous; each query runs in a worker thread so the
event loop keeps serving feed callbacks and other watches meanwhile.

The database is expected to carry these constraints:

- ``bids``: unique (job_id, provider_id); a partial unique index on job_id
  where status = 'accepted' (at most one accepted bid per job).
- ``conversations``: unique (job_id, provider_id).
"""

import asyncio
import logging
import re
from decimal import Decimal
from typing import Any, List, Optional

from supabase import Client

from bidyard.marketplace.errors import StoreError
from bidyard.marketplace.models import (
    Bid,
    BidStatus,
    Conversation,
    Job,
    JobStatus,
    ProviderDisplay,
)
from bidyard.marketplace.storage import WriteResult

logger = logging.getLogger(__name__)

JOBS_TABLE = "job_listings"
BIDS_TABLE = "bids"
PROFILES_TABLE = "profiles"
CONVERSATIONS_TABLE = "conversations"

PROVIDER_DISPLAY_COLUMNS = "company_name, logo_url, average_rating, rating_count"
UNIQUE_VIOLATION = "23505"

_CONSTRAINT_RE = re.compile(r'constraint "([^"]+)"')


def to_store_error(error: Exception, action: str) -> StoreError:
    """Translate a postgrest/httpx failure into a StoreError.

    Unique violations keep the constraint name so callers can tell a
    duplicate from a transport failure.
    """
    message = getattr(error, "message", None) or str(error)
    constraint = None
    match = _CONSTRAINT_RE.search(message)
    if match:
        constraint = match.group(1)
    elif getattr(error, "code", None) == UNIQUE_VIOLATION:
        constraint = "unique"
    return StoreError(f"Failed to {action}: {message}", constraint=constraint)


class SupabaseMarketplaceStore:
    """MarketplaceStore implementation over a supabase ``Client``."""

    def __init__(self, db: Client):
        self._db = db

    async def _execute(self, query: Any, action: str) -> Any:
        try:
            return await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.warning(f"Store call failed | action={action} | error={e}")
            raise to_store_error(e, action) from e

    # === Jobs ===

    async def get_job(self, job_id: str) -> Optional[Job]:
        result = await self._execute(
            self._db.table(JOBS_TABLE).select("*").eq("id", job_id), "fetch job"
        )
        return Job.from_dict(result.data[0]) if result.data else None

    async def award_job(self, job_id: str, provider_id: str) -> WriteResult:
        # Compare-and-swap: only an open, unawarded job can be awarded
        result = await self._execute(
            self._db.table(JOBS_TABLE)
            .update({"status": JobStatus.ACTIVE.value, "awarded_to": provider_id})
            .eq("id", job_id)
            .eq("status", JobStatus.OPEN.value)
            .is_("awarded_to", "null"),
            "award job",
        )
        if result.data:
            return WriteResult(row=Job.from_dict(result.data[0]), changed=True)

        job = await self.get_job(job_id)
        if job is None:
            return WriteResult(error="not_found")
        if job.awarded_to == provider_id:
            return WriteResult(row=job)
        logger.warning(
            f"Award conflict on job {job_id}: status '{job.status}', "
            f"awarded_to '{job.awarded_to}', attempted '{provider_id}'"
        )
        return WriteResult(row=job, error="conflict")

    # === Bids ===

    async def list_bids(self, job_id: str) -> List[Bid]:
        result = await self._execute(
            self._db.table(BIDS_TABLE)
            .select(f"*, profiles ( {PROVIDER_DISPLAY_COLUMNS} )")
            .eq("job_id", job_id)
            .order("amount", desc=False),
            "fetch bids",
        )
        return [Bid.from_dict(row) for row in result.data or []]

    async def get_bid(self, bid_id: str) -> Optional[Bid]:
        result = await self._execute(
            self._db.table(BIDS_TABLE)
            .select(f"*, profiles ( {PROVIDER_DISPLAY_COLUMNS} )")
            .eq("id", bid_id),
            "fetch bid",
        )
        return Bid.from_dict(result.data[0]) if result.data else None

    async def get_provider_bid(self, job_id: str, provider_id: str) -> Optional[Bid]:
        result = await self._execute(
            self._db.table(BIDS_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .eq("provider_id", provider_id)
            .limit(1),
            "fetch provider bid",
        )
        return Bid.from_dict(result.data[0]) if result.data else None

    async def count_bids(self, job_id: str) -> int:
        result = await self._execute(
            self._db.table(BIDS_TABLE).select("id", count="exact").eq("job_id", job_id),
            "count bids",
        )
        return result.count or 0

    async def insert_bid(
        self,
        job_id: str,
        provider_id: str,
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> Bid:
        data = {
            "job_id": job_id,
            "provider_id": provider_id,
            "amount": float(amount),
            "notes": notes,
            "status": BidStatus.PENDING.value,
        }
        result = await self._execute(self._db.table(BIDS_TABLE).insert(data), "insert bid")
        if not result.data:
            raise StoreError("Failed to insert bid: no row returned")
        return Bid.from_dict(result.data[0])

    async def reject_pending_bids(self, job_id: str, exclude_bid_id: str) -> int:
        result = await self._execute(
            self._db.table(BIDS_TABLE)
            .update({"status": BidStatus.REJECTED.value})
            .eq("job_id", job_id)
            .eq("status", BidStatus.PENDING.value)
            .neq("id", exclude_bid_id),
            "reject sibling bids",
        )
        return len(result.data or [])

    async def set_bid_status(
        self,
        bid_id: str,
        status: BidStatus,
        expected_status: BidStatus = BidStatus.PENDING,
    ) -> WriteResult:
        result = await self._execute(
            self._db.table(BIDS_TABLE)
            .update({"status": BidStatus(status).value})
            .eq("id", bid_id)
            .eq("status", BidStatus(expected_status).value),
            "update bid status",
        )
        if result.data:
            return WriteResult(row=Bid.from_dict(result.data[0]), changed=True)

        bid = await self.get_bid(bid_id)
        if bid is None:
            return WriteResult(error="not_found")
        return WriteResult(row=bid, error="conflict")

    # === Profiles ===

    async def get_provider_display(self, provider_id: str) -> Optional[ProviderDisplay]:
        result = await self._execute(
            self._db.table(PROFILES_TABLE).select(PROVIDER_DISPLAY_COLUMNS).eq("id", provider_id),
            "fetch provider profile",
        )
        return ProviderDisplay.from_profile(result.data[0]) if result.data else None

    # === Conversations ===

    async def find_conversation(self, job_id: str, provider_id: str) -> Optional[Conversation]:
        result = await self._execute(
            self._db.table(CONVERSATIONS_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .eq("provider_id", provider_id)
            .limit(1),
            "fetch conversation",
        )
        return Conversation.from_dict(result.data[0]) if result.data else None

    async def insert_conversation(
        self, job_id: str, customer_id: str, provider_id: str
    ) -> Conversation:
        data = {"job_id": job_id, "customer_id": customer_id, "provider_id": provider_id}
        result = await self._execute(
            self._db.table(CONVERSATIONS_TABLE).insert(data), "create conversation"
        )
        if not result.data:
            raise StoreError("Failed to create conversation: no row returned")
        return Conversation.from_dict(result.data[0])
